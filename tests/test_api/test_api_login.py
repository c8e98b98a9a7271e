"""
End-to-end tests of the scan-to-login HTTP flow.
"""

from datetime import timedelta

from scanlogin.core.session import SessionStatus

SCAN_TEMPLATE = """<xml>
<ToUserName><![CDATA[gh_service]]></ToUserName>
<FromUserName><![CDATA[{subject}]]></FromUserName>
<CreateTime>1700000000</CreateTime>
<MsgType><![CDATA[event]]></MsgType>
<Event><![CDATA[{event}]]></Event>
<EventKey><![CDATA[{key}]]></EventKey>
</xml>"""


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True, "sessions": 0}


def test_new_session(client, app):
    for method in (client.get, client.post):
        response = method("/session/new")

        assert response.status_code == 200

        content = response.json()

        assert set(content) == {"scene", "qrcode_url", "ticket", "expires_at"}
        assert content["scene"] in app.state.store


def test_new_session_upstream_failure(client, platform):
    platform.fail = True

    response = client.post("/session/new")

    assert response.status_code == 502


def test_poll_unknown(client):
    assert client.get("/session/zzz").status_code == 404
    assert client.get("/login/check", params={"scene_str": "zzz"}).status_code == 404


def test_scan_to_login(client, app, signed):
    app.state.store.create(scene="abc123", ttl=timedelta(seconds=300))

    response = client.get("/session/abc123")

    assert response.status_code == 200
    assert response.json() == {"status": "pending"}

    response = client.post(
        "/wechat/message",
        params=signed(),
        content=SCAN_TEMPLATE.format(subject="OPENID1", event="SCAN", key="abc123"),
    )

    assert response.status_code == 200
    assert response.text == "success"

    response = client.get("/session/abc123")
    content = response.json()

    assert content["status"] == "ok"
    assert content["subject"] == "OPENID1"
    assert content["display_label"] == "Alice (sales)"
    assert "access_token" in content

    response = client.get("/login/check", params={"scene_str": "abc123"})

    assert response.json()["subject"] == "OPENID1"


def test_subscribe_to_login(client, signed):
    scene = client.post("/session/new").json()["scene"]

    response = client.post(
        "/wechat/message",
        params=signed(),
        content=SCAN_TEMPLATE.format(
            subject="OPENID2", event="subscribe", key=f"qrscene_{scene}"
        ),
    )

    assert response.text == "success"

    content = client.get(f"/session/{scene}").json()

    assert content["status"] == SessionStatus.COMPLETED.value
    assert content["subject"] == "OPENID2"


def test_consume_on_poll(server_settings, platform, signed):
    from fastapi.testclient import TestClient

    from scanlogin.api.app import create_app

    settings = server_settings.model_copy(update={"consume_completed_on_poll": True})
    app = create_app(settings=settings, platform=platform)

    with TestClient(app) as client:
        app.state.store.create(scene="abc123", ttl=timedelta(seconds=300))
        app.state.store.complete(scene="abc123", subject="OPENID1")

        assert client.get("/session/abc123").json()["status"] == "ok"
        assert client.get("/session/abc123").status_code == 404


def test_login_token_identifies_subject(client, app):
    app.state.store.create(scene="abc123", ttl=timedelta(seconds=300))
    app.state.store.complete(scene="abc123", subject="OPENID1", label="Alice (sales)")

    token = client.get("/session/abc123").json()["access_token"]

    response = client.get("/login/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200

    content = response.json()

    assert content["subject"] == "OPENID1"
    assert content["scene"] == "abc123"
    assert content["display_label"] == "Alice (sales)"


def test_login_token_rejected(client):
    assert client.get("/login/me").status_code == 401
    assert (
        client.get("/login/me", headers={"Authorization": "Bearer nonsense"}).status_code
        == 401
    )
    assert (
        client.get("/login/me", headers={"Authorization": "Basic abc"}).status_code
        == 401
    )


def test_login_tokens_disabled(server_settings, platform):
    from fastapi.testclient import TestClient

    from scanlogin.api.app import create_app

    settings = server_settings.model_copy(update={"login_token_secret": None})

    with TestClient(create_app(settings=settings, platform=platform)) as client:
        assert client.get("/login/me").status_code == 503
