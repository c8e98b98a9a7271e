"""
Core configuration
"""

from datetime import timedelta

import pytest
import structlog

from scanlogin.config.settings import Settings
from scanlogin.service.credentials import CredentialCache
from scanlogin.service.mock import MockPlatform
from scanlogin.service.sessions import SessionStore


@pytest.fixture
def server_settings():
    yield Settings(
        wechat_app_id="wx-test-app",
        wechat_app_secret="wx-test-secret",
        wechat_token="mytoken123",
        wechat_api_base="https://api.weixin.test",
        wechat_open_app_id="wx-open-app",
        wechat_open_app_secret="wx-open-secret",
        wechat_open_callback_url="https://login.example.org/oauth/callback",
        login_token_secret="test-signing-secret",
        credential_safety_margin=timedelta(seconds=60),
        qrcode_expiry=timedelta(seconds=300),
        _env_file=None,
    )


@pytest.fixture
def logger():
    yield structlog.get_logger()


@pytest.fixture
def platform():
    # OPENID1 follows us, with a remark set by the account operator.
    yield MockPlatform(subscribers={"OPENID1": "Alice (sales)", "OPENID2": None})


@pytest.fixture
def store():
    yield SessionStore()


@pytest.fixture
def credentials(platform, server_settings):
    yield CredentialCache(
        platform=platform, safety_margin=server_settings.credential_safety_margin
    )
