"""
Main settings object.
"""

from datetime import timedelta

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Official (service) account, used for the scan-to-subscribe login.
    wechat_app_id: str | None = None
    wechat_app_secret: str | None = None
    wechat_token: str | None = None

    wechat_api_base: str = "https://api.weixin.qq.com"
    wechat_qrcode_base: str = "https://mp.weixin.qq.com/cgi-bin/showqrcode"

    # Open platform website application, used for the redirect login.
    wechat_open_base: str = "https://open.weixin.qq.com"
    wechat_open_app_id: str | None = None
    wechat_open_app_secret: str | None = None
    wechat_open_callback_url: str | None = None

    qrcode_expiry: timedelta = timedelta(minutes=5)
    credential_safety_margin: timedelta = timedelta(seconds=60)
    upstream_timeout: timedelta = timedelta(seconds=10)

    sweep_interval: timedelta = timedelta(minutes=1)
    sweep_grace: timedelta = timedelta(minutes=5)

    # When set, a completed session is removed by the poll that observes it,
    # so a second poll sees a 404 rather than the final status again.
    consume_completed_on_poll: bool = False

    login_token_secret: str | None = None
    login_token_expiry: timedelta = timedelta(hours=8)
    login_token_issuer: str = "scanlogin"

    host: str = "0.0.0.0"
    port: int = 8080

    model_config = SettingsConfigDict(env_prefix="SCANLOGIN_", env_file=".env")

    @property
    def official_account_configured(self) -> bool:
        return bool(self.wechat_app_id and self.wechat_app_secret and self.wechat_token)

    @property
    def open_platform_configured(self) -> bool:
        return bool(
            self.wechat_open_app_id
            and self.wechat_open_app_secret
            and self.wechat_open_callback_url
        )
