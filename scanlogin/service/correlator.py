"""
Correlation of platform webhook events with pending login sessions.

A subscribe or scan event carries the scene bound to the QR code that was
scanned. We find the matching session, confirm with the platform that the
sender currently follows us, and complete the session with the sender as
its subject. Redelivered events are harmless because completing an already
completed session is a no-op.
"""

from structlog.typing import FilteringBoundLogger

from scanlogin.core.session import LoginSession
from scanlogin.core.webhook import EventKind, InboundEvent, InvalidEvent

from .credentials import CredentialCache
from .platform import Platform
from .sessions import SessionStore


class NotSubscribed(Exception):
    pass


async def process_event(
    event: InboundEvent,
    store: SessionStore,
    credentials: CredentialCache,
    platform: Platform,
    log: FilteringBoundLogger,
) -> LoginSession | None:
    """
    Apply a single inbound event.

    Returns
    -------
    session: LoginSession | None
        The completed session, or None if the event is not one we act on.

    Raises
    ------
    InvalidEvent
        If a subscribe/scan event has no usable scene or sender.
    SessionNotFound
        If no session matches the scene (stale or forged event).
    UpstreamUnavailable
        If the subscriber lookup, or the credential it needs, failed.
    NotSubscribed
        If the platform says the sender does not follow us.
    """
    kind = event.kind

    if kind == EventKind.OTHER:
        await log.adebug(
            "correlator.ignored", msg_type=event.msg_type, event_type=event.event
        )
        return None

    scene = event.scene()

    log = log.bind(event_kind=kind.value, scene=scene, subject=event.subject_id)

    if not scene:
        await log.awarning("correlator.missing_scene")
        raise InvalidEvent("Event carries no scene")

    if not event.subject_id:
        await log.awarning("correlator.missing_subject")
        raise InvalidEvent("Event carries no sender")

    # Raises SessionNotFound; nothing has been mutated yet.
    session = store.get(scene)

    if session.completed:
        # Redelivery; the subscriber lookup would not change the outcome.
        await log.ainfo("correlator.already_completed")
        return session

    credential = await credentials.get_credential(log=log)
    subscriber = await platform.subscriber_info(
        openid=event.subject_id, credential=credential, log=log
    )

    if not subscriber.subscribed:
        await log.ainfo("correlator.not_subscribed")
        raise NotSubscribed(f"Subject {event.subject_id} does not follow us")

    session = store.complete(
        scene=scene, subject=event.subject_id, label=subscriber.label
    )

    log = log.bind(completed_subject=session.subject)
    await log.ainfo("correlator.completed")

    return session
