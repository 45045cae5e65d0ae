from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest

INSTANCE_URL = "https://example.my.salesforce.com"
SERVICE_URL = f"{INSTANCE_URL}/services/data/v60.0"
ASYNC_URL = f"{INSTANCE_URL}/services/async/60.0/"


class DummyResponse:
    """Just enough of requests.Response for the resources under test."""

    def __init__(
        self,
        status_code: int = 200,
        *,
        json_data: Any = None,
        content: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
        text: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self._json_data = json_data
        self.content = content
        self.headers = headers or {}
        self.text = text if text is not None else content.decode("utf-8", "replace")
        self.closed = False

    def json(self) -> Any:
        if self._json_data is None:
            raise ValueError("No JSON object could be decoded")
        return self._json_data

    def iter_content(self, chunk_size: int = 8192):
        for i in range(0, len(self.content), 4):
            yield self.content[i : i + 4]

    def close(self) -> None:
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


@dataclass
class Call:
    method: str
    url: str
    kwargs: Dict[str, Any] = field(default_factory=dict)

    @property
    def headers(self) -> Dict[str, str]:
        return self.kwargs.get("headers") or {}

    @property
    def params(self) -> Dict[str, Any]:
        return self.kwargs.get("params") or {}

    @property
    def data(self) -> Any:
        return self.kwargs.get("data")


class FakeClient:
    """Records every request and replays queued responses in order."""

    def __init__(self) -> None:
        self.calls: List[Call] = []
        self.responses: List[DummyResponse] = []

    def queue(self, *responses: DummyResponse) -> None:
        self.responses.extend(responses)

    def request(self, method: str, url: str, **kwargs: Any) -> DummyResponse:
        self.calls.append(Call(method, url, kwargs))
        if not self.responses:
            raise AssertionError(f"unexpected request {method} {url}")
        return self.responses.pop(0)


class FakeSession:
    """In-memory ServiceFormatter."""

    def __init__(self, http: FakeClient) -> None:
        self.http = http
        self.refreshed = 0
        self.timeout = 5.0

    def service_url(self) -> str:
        return SERVICE_URL

    def async_service_url(self) -> str:
        return ASYNC_URL

    def instance_url(self) -> str:
        return INSTANCE_URL

    def authorization_header(self, headers: Dict[str, str]) -> None:
        headers["Authorization"] = "Bearer 00DFAKE-TOKEN"

    def client(self) -> FakeClient:
        return self.http

    def refresh(self) -> None:
        self.refreshed += 1


@pytest.fixture
def http() -> FakeClient:
    return FakeClient()


@pytest.fixture
def session(http: FakeClient) -> FakeSession:
    return FakeSession(http)


@pytest.fixture(autouse=True)
def clean_sf_env(monkeypatch):
    """Keep a developer's SF_* variables out of the tests."""
    for name in (
        "SF_AUTH_FLOW",
        "SF_LOGIN_URL",
        "SF_CLIENT_ID",
        "SF_CLIENT_SECRET",
        "SF_USERNAME",
        "SF_PASSWORD",
        "SF_REFRESH_TOKEN",
        "SF_ACCESS_TOKEN",
        "SF_INSTANCE_URL",
        "SF_API_VERSION",
        "SF_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def respond(http: FakeClient):
    """Queue a canned response: ``respond(201)``, ``respond(json_data={...})``."""

    def _respond(status_code: int = 200, **kwargs: Any) -> DummyResponse:
        r = DummyResponse(status_code, **kwargs)
        http.queue(r)
        return r

    return _respond
