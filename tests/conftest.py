import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

os.environ["ENABLE_SCHEDULER"] = "false"

CHANNEL_SECRET = "test-channel-secret"


class FakeResponse:
    def __init__(self, text="", url="https://privace.hankyu.co.jp/order/search.html", status_code=200):
        self.text = text
        self.url = url
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            import requests
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeSession:
    """Records calls and returns canned GET/POST responses."""

    def __init__(self, get_response=None, post_response=None):
        self.get_response = get_response or FakeResponse()
        self.post_response = post_response or FakeResponse()
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        if isinstance(self.get_response, Exception):
            raise self.get_response
        return self.get_response

    def post(self, url, **kwargs):
        self.calls.append(("POST", url, kwargs))
        if isinstance(self.post_response, Exception):
            raise self.post_response
        return self.post_response


@pytest.fixture(autouse=True)
def line_env(monkeypatch):
    monkeypatch.setenv("LINE_CHANNEL_SECRET", CHANNEL_SECRET)
    monkeypatch.setenv("LINE_CHANNEL_ACCESS_TOKEN", "test-access-token")
    monkeypatch.delenv("LINE_USER_ID", raising=False)
    monkeypatch.delenv("LINE_DELIVERY_MODE", raising=False)
    for name in ("PRIVACE_FROM_STATION", "PRIVACE_TO_STATION", "PRIVACE_HOUR", "PRIVACE_MINUTE"):
        monkeypatch.delenv(name, raising=False)
