"""
Platform webhook: URL verification and event delivery.

Event deliveries are always answered with `success` once the signature
checks out. The platform redelivers anything else, and none of our
correlation failures would be fixed by a redelivery, so the true outcome
only goes to the log.
"""

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse

from scanlogin.core.webhook import InvalidEvent, parse_event, verify_signature
from scanlogin.service import correlator as correlator_service
from scanlogin.service import sessions as session_service
from scanlogin.service.platform import UpstreamUnavailable

from .dependencies import (
    CredentialsDependency,
    LoggerDependency,
    PlatformDependency,
    SettingsDependency,
    StoreDependency,
)

ACKNOWLEDGEMENT = "success"

webhook_app = APIRouter(tags=["Platform Webhook"])


def _forbidden() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN, detail="Signature verification failed"
    )


@webhook_app.get(
    "/wechat/message",
    response_class=PlainTextResponse,
    summary="Webhook URL verification",
    description=(
        "Called by the platform when the webhook URL is configured. Echoes "
        "`echostr` back if the signature matches our shared token."
    ),
    responses={
        200: {"description": "Signature valid, `echostr` echoed"},
        403: {"description": "Signature invalid"},
    },
)
async def verify(
    settings: SettingsDependency,
    log: LoggerDependency,
    signature: str | None = Query(None),
    timestamp: str | None = Query(None),
    nonce: str | None = Query(None),
    echostr: str = Query(""),
) -> PlainTextResponse:
    if not verify_signature(
        token=settings.wechat_token,
        signature=signature,
        timestamp=timestamp,
        nonce=nonce,
    ):
        await log.awarning("api.webhook.verify.bad_signature")
        raise _forbidden()

    await log.ainfo("api.webhook.verify.success")

    return PlainTextResponse(echostr)


@webhook_app.post(
    "/wechat/message",
    response_class=PlainTextResponse,
    summary="Webhook event delivery",
    description=(
        "Receives subscribe and scan events from the platform and completes "
        "the matching login session. Always acknowledges with `success` "
        "once the signature is valid."
    ),
    responses={
        200: {"description": "Event received"},
        403: {"description": "Signature invalid"},
    },
)
async def message(
    request: Request,
    settings: SettingsDependency,
    store: StoreDependency,
    credentials: CredentialsDependency,
    platform: PlatformDependency,
    log: LoggerDependency,
    signature: str | None = Query(None),
    timestamp: str | None = Query(None),
    nonce: str | None = Query(None),
) -> PlainTextResponse:
    if not verify_signature(
        token=settings.wechat_token,
        signature=signature,
        timestamp=timestamp,
        nonce=nonce,
    ):
        await log.awarning("api.webhook.message.bad_signature")
        raise _forbidden()

    body = await request.body()

    try:
        event = parse_event(body)
        log = log.bind(msg_type=event.msg_type, event_type=event.event)
        await correlator_service.process_event(
            event=event,
            store=store,
            credentials=credentials,
            platform=platform,
            log=log,
        )
    except InvalidEvent as e:
        await log.awarning("api.webhook.message.invalid_event", error=str(e))
    except session_service.SessionNotFound as e:
        await log.awarning("api.webhook.message.session_not_found", error=str(e))
    except correlator_service.NotSubscribed as e:
        await log.ainfo("api.webhook.message.not_subscribed", error=str(e))
    except UpstreamUnavailable as e:
        await log.aerror("api.webhook.message.upstream_unavailable", error=str(e))

    return PlainTextResponse(ACKNOWLEDGEMENT)
