import base64
import hashlib
import hmac
import json

import pytest
from fastapi.testclient import TestClient

from conftest import CHANNEL_SECRET
from privace_bot import line_utils, main

client = TestClient(main.app)


def _sign(body, secret: str = CHANNEL_SECRET) -> str:
    raw = body if isinstance(body, bytes) else body.encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), raw, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def _event(kind: str = "message", **extra) -> dict:
    event = {
        "type": kind,
        "timestamp": 1736812800000,
        "source": {"type": "user", "userId": "U0123456789abcdef"},
        "replyToken": f"reply-{kind}",
        "mode": "active",
        "webhookEventId": "01HZZZZZZZZZZZZZZZZZZZZZZZ",
        "deliveryContext": {"isRedelivery": False},
    }
    event.update(extra)
    return event


def _text_event(text: str = "こんにちは") -> dict:
    return _event(message={"type": "text", "id": "468789577898262530", "text": text, "quoteToken": "q3Plxr4AgKd"})


def _post_callback(payload, signature=None):
    body = payload if isinstance(payload, str) else json.dumps({"destination": "Uxxxxxxxx", "events": payload})
    return client.post(
        "/callback",
        content=body.encode("utf-8"),
        headers={"X-Line-Signature": signature if signature is not None else _sign(body), "Content-Type": "application/json"},
    )


@pytest.fixture()
def replies(monkeypatch):
    sent = []
    monkeypatch.setattr(line_utils, "reply_text", lambda token, text: sent.append((token, text)))
    return sent


# -------- health / form --------
def test_health():
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.text == "OK"


def test_form_targets_test_endpoint():
    resp = client.get("/form")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/html")
    assert 'action="/test"' in resp.text
    assert 'name="date"' in resp.text


# -------- /test --------
def test_missing_date_is_400(monkeypatch):
    monkeypatch.setattr(main, "fetch_train_url", lambda *a: pytest.fail("fetch"))
    assert client.get("/test").status_code == 400
    assert client.get("/test", params={"date": ""}).status_code == 400


@pytest.mark.parametrize("value", ["2025/01/14", "14-01-2025", "2025-02-30", "tomorrow"])
def test_malformed_date_is_400(monkeypatch, value):
    monkeypatch.setattr(main, "fetch_train_url", lambda *a: pytest.fail("fetch"))
    assert client.get("/test", params={"date": value}).status_code == 400


def test_bad_hour_or_minute_is_400(monkeypatch):
    monkeypatch.setattr(main, "fetch_train_url", lambda *a: pytest.fail("fetch"))
    assert client.get("/test", params={"date": "2025-01-14", "hour": "24"}).status_code == 400
    assert client.get("/test", params={"date": "2025-01-14", "minute": "xx"}).status_code == 400


def test_returns_resolved_link(monkeypatch):
    calls = []

    def fake_fetch(target, from_station, to_station, hour, minute):
        calls.append((target.isoformat(), from_station, to_station, hour, minute))
        return "https://privace.hankyu.co.jp/order/train.html?sid=1"

    monkeypatch.setattr(main, "fetch_train_url", fake_fetch)
    resp = client.get("/test", params={"date": "2025-01-14", "hour": "8", "minute": "5"})
    assert resp.status_code == 200
    assert resp.text == "https://privace.hankyu.co.jp/order/train.html?sid=1"
    assert calls == [("2025-01-14", "003970", "003450", "08", "05")]


def test_defaults_hour_and_minute(monkeypatch):
    calls = []
    monkeypatch.setattr(main, "fetch_train_url", lambda *a: calls.append(a[3:]) or "https://example.test")
    assert client.get("/test", params={"date": "2025-01-14"}).status_code == 200
    assert calls == [("07", "40")]


def test_scrape_failure_is_500(monkeypatch):
    def broken_fetch(*args):
        raise ConnectionError("site down")

    monkeypatch.setattr(main, "fetch_train_url", broken_fetch)
    resp = client.get("/test", params={"date": "2025-01-14"})
    assert resp.status_code == 500
    assert resp.text == "ConnectionError: site down"


# -------- /callback --------
def test_invalid_signature_is_400(replies):
    resp = _post_callback([_text_event()], signature=_sign("something else"))
    assert resp.status_code == 400
    assert replies == []


def test_missing_signature_is_400(replies):
    resp = _post_callback([_text_event()], signature="")
    assert resp.status_code == 400


def test_signed_malformed_body_is_500(replies):
    resp = _post_callback("this is not json")
    assert resp.status_code == 500
    assert replies == []


def test_signed_non_utf8_body_is_500(replies):
    raw = b'{"destination":"U","events":[]}\xff'
    resp = client.post(
        "/callback",
        content=raw,
        headers={"X-Line-Signature": _sign(raw), "Content-Type": "application/json"},
    )
    assert resp.status_code == 500
    assert replies == []


def test_unsigned_non_utf8_body_is_400(replies):
    raw = b'{"destination":"U","events":[]}\xff'
    resp = client.post(
        "/callback",
        content=raw,
        headers={"X-Line-Signature": _sign(b"other body"), "Content-Type": "application/json"},
    )
    assert resp.status_code == 400


def test_text_message_gets_static_reply(replies):
    resp = _post_callback([_text_event("予約したい")])
    assert resp.status_code == 200
    assert replies == [("reply-message", main.DEFAULT_REPLY)]
    assert main.DEFAULT_REPLY == "PRiVACE座席予約サイトはこちら！\nhttps://privace.hankyu.co.jp/order/search.html"


def test_non_message_events_are_ignored(replies):
    resp = _post_callback([_event("follow", follow={"isUnblocked": False})])
    assert resp.status_code == 200
    assert replies == []


def test_empty_event_list_is_ok(replies):
    resp = _post_callback([])
    assert resp.status_code == 200
    assert resp.text == "OK"


def test_reply_failure_still_200(monkeypatch):
    def broken_reply(token, text):
        raise RuntimeError("reply token expired")

    monkeypatch.setattr(line_utils, "reply_text", broken_reply)
    resp = _post_callback([_text_event(), _text_event("2")])
    assert resp.status_code == 200
