"""
Configuration variables and fixtures for the API tests.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from scanlogin.api.app import create_app
from scanlogin.core.webhook import signature_for


def _open_platform(request: httpx.Request) -> httpx.Response:
    match request.url.path:
        case "/sns/oauth2/access_token" if request.url.params["code"] == "GOODCODE":
            return httpx.Response(
                200,
                json={"access_token": "USER_TOKEN", "openid": "OPENID1"},
            )
        case "/sns/userinfo":
            return httpx.Response(
                200, json={"openid": "OPENID1", "nickname": "alice"}
            )
        case _:
            return httpx.Response(200, json={"errcode": 40029, "errmsg": "bad code"})


@pytest.fixture
def app(server_settings, platform):
    yield create_app(
        settings=server_settings,
        platform=platform,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(_open_platform)),
    )


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def signed(server_settings):
    """
    Query parameters carrying a valid platform signature.
    """

    def params(**extra):
        timestamp, nonce = "1700000000", "271828"
        return {
            "signature": signature_for(
                token=server_settings.wechat_token, timestamp=timestamp, nonce=nonce
            ),
            "timestamp": timestamp,
            "nonce": nonce,
            **extra,
        }

    yield params
