"""Shared pytest fixtures for chatgate tests."""
import sys
sys.dont_write_bytecode = True

import json  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
import requests  # noqa: E402

from chatgate.gateway.credentials import TenantCredentials  # noqa: E402


def make_response(status_code: int = 200, body: Any = None, text: str | None = None) -> requests.Response:
    """Build a real requests.Response without touching the network."""
    response = requests.Response()
    response.status_code = status_code
    if text is None:
        text = "" if body is None else json.dumps(body)
    response._content = text.encode("utf-8")
    response.encoding = "utf-8"
    return response


class FakeSession:
    """Scripted stand-in for requests.Session.

    Each scripted item is either a requests.Response or an exception to raise.
    Calls beyond the script return 404.
    """

    def __init__(self, script: list | None = None):
        self.script = list(script or [])
        self.calls: list[dict] = []

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.script:
            return make_response(404, {"error": "Not Found"})
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture
def credentials() -> TenantCredentials:
    return TenantCredentials(
        base_url="http://evolution.test/",
        token="tok_test_secret",
        instance_id="acme",
    )


@pytest.fixture
def response_factory():
    return make_response


@pytest.fixture
def fake_session():
    """Factory: fake_session([response, exception, ...])."""
    return FakeSession
