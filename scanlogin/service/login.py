"""
Login front: issuing new scan-to-login sessions and answering polls.
"""

from datetime import timedelta

from structlog.typing import FilteringBoundLogger

from scanlogin.config.settings import Settings
from scanlogin.core.models import NewSessionResponse, PollResponse
from scanlogin.core.random import scene as generate_scene
from scanlogin.core.tokens import issue_login_token

from .credentials import CredentialCache
from .platform import Platform
from .sessions import SessionStore


async def new_session(
    store: SessionStore,
    credentials: CredentialCache,
    platform: Platform,
    settings: Settings,
    log: FilteringBoundLogger,
) -> NewSessionResponse:
    """
    Mint a QR code bound to a fresh scene and record a pending session for
    it. Only the public fields are returned.

    Raises
    ------
    UpstreamUnavailable
        If the credential or QR code could not be obtained.
    DuplicateScene
        If the generated scene collides with a live one. This should never
        happen with a random scene and is an internal fault.
    """
    scene = generate_scene()
    log = log.bind(scene=scene)

    credential = await credentials.get_credential(log=log)
    ticket = await platform.create_qrcode(
        scene=scene,
        expire_seconds=int(settings.qrcode_expiry.total_seconds()),
        credential=credential,
        log=log,
    )

    qrcode_url = platform.qrcode_image_url(ticket.ticket)

    session = store.create(
        scene=scene,
        ttl=timedelta(seconds=ticket.expire_seconds),
        qrcode_url=qrcode_url,
    )

    log = log.bind(expires_at=session.expires_at)
    await log.ainfo("login.session_created")

    return NewSessionResponse(
        scene=session.scene,
        qrcode_url=qrcode_url,
        ticket=ticket.ticket,
        expires_at=session.expires_at,
    )


async def poll_session(
    scene: str,
    store: SessionStore,
    settings: Settings,
    log: FilteringBoundLogger,
) -> PollResponse:
    """
    Report the status of a session. With `consume_completed_on_poll` set, the
    poll that first observes a completed session also removes it.

    Raises
    ------
    SessionNotFound
        If the scene is unknown or has been evicted.
    """
    if settings.consume_completed_on_poll:
        session = store.take(scene)
    else:
        session = store.get(scene)

    if not session.completed:
        return PollResponse(status=session.status)

    response = PollResponse(
        status=session.status,
        subject=session.subject,
        display_label=session.display_label,
    )

    if settings.login_token_secret:
        token, expires = issue_login_token(
            session=session,
            secret=settings.login_token_secret,
            validity=settings.login_token_expiry,
            issuer=settings.login_token_issuer,
        )
        response.access_token = token
        response.access_token_expires = expires

    await log.ainfo("login.session_observed", scene=scene, subject=session.subject)

    return response
