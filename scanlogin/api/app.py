"""
FastAPI app
"""

from contextlib import asynccontextmanager
from importlib.metadata import version

import httpx
from fastapi import FastAPI

from scanlogin.config.settings import Settings
from scanlogin.core.models import HealthResponse
from scanlogin.service.credentials import CredentialCache
from scanlogin.service.eviction import SessionSweeper
from scanlogin.service.platform import Platform
from scanlogin.service.sessions import SessionStore
from scanlogin.service.wechat import WechatPlatform, create_client

from .dependencies import SETTINGS, StoreDependency, logger
from .login import login_app
from .oauth import oauth_app
from .webhook import webhook_app


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper: SessionSweeper = app.state.sweeper
    sweeper.start()

    yield

    await sweeper.stop()
    await app.state.platform.close()
    await app.state.http_client.aclose()


def create_app(
    settings: Settings | None = None,
    platform: Platform | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """
    Build the application and the components it owns: one session store, one
    credential cache and one platform client per app.
    """
    if settings is None:
        settings = SETTINGS()

    if platform is None:
        if not settings.official_account_configured:
            raise RuntimeError(
                "Set SCANLOGIN_WECHAT_APP_ID, SCANLOGIN_WECHAT_APP_SECRET and "
                "SCANLOGIN_WECHAT_TOKEN"
            )
        platform = WechatPlatform(settings=settings)

    if http_client is None:
        http_client = create_client(settings)

    store = SessionStore()

    app = FastAPI(
        lifespan=lifespan,
        title="scanlogin",
        summary="Scan-to-login for messaging platform official accounts.",
        version=version("scanlogin"),
    )

    app.state.settings = settings
    app.state.platform = platform
    app.state.http_client = http_client
    app.state.store = store
    app.state.credentials = CredentialCache(
        platform=platform, safety_margin=settings.credential_safety_margin
    )
    app.state.sweeper = SessionSweeper(
        store=store,
        interval=settings.sweep_interval,
        grace=settings.sweep_grace,
        log=logger(),
    )

    @app.get("/health", response_model=HealthResponse)
    async def health(store: StoreDependency) -> HealthResponse:
        return HealthResponse(ok=True, sessions=len(store))

    app.include_router(login_app)
    app.include_router(webhook_app)
    app.include_router(oauth_app)

    return app
