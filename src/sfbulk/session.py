from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import requests

from .config import SFConfig
from .credentials import Credentials, credentials_from_config
from .exceptions import DecodeError, SFBulkError, expect_status

__author__ = "sfbulk contributors"
__license__ = "MIT"

_logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "v60.0"


# ----------------------------------------------------------------------
# Collaborator interfaces
# ----------------------------------------------------------------------
class ServiceFormatter(Protocol):
    """What every resource needs from a session: URLs, auth and an HTTP client."""

    def service_url(self) -> str: ...

    def instance_url(self) -> str: ...

    def authorization_header(self, headers: Dict[str, str]) -> None: ...

    def client(self) -> requests.Session: ...

    def refresh(self) -> None: ...


class AsyncServiceFormatter(ServiceFormatter, Protocol):
    """Bulk API 1.0 lives under a separate ``/services/async`` root."""

    def async_service_url(self) -> str: ...


# ----------------------------------------------------------------------
# Concrete session
# ----------------------------------------------------------------------
class Session:
    """requests-backed session implementing :class:`AsyncServiceFormatter`."""

    def __init__(
        self,
        credentials: Optional[Credentials] = None,
        *,
        api_version: Optional[str] = None,
        access_token: Optional[str] = None,
        instance_url: Optional[str] = None,
        timeout: Optional[float] = 60.0,
        http: Optional[requests.Session] = None,
    ) -> None:
        self._credentials = credentials
        self._access_token = access_token
        self._instance_url = instance_url.rstrip("/") if instance_url else None
        self._token_type = "Bearer"
        self.api_version = api_version
        self.timeout = timeout
        self._http = http or requests.Session()

    @classmethod
    def from_config(cls, cfg: Optional[SFConfig] = None) -> Session:
        """Build a session from config; a pre-issued token skips the OAuth flow."""
        cfg = cfg or SFConfig.from_env()
        if cfg.access_token and cfg.instance_url:
            _logger.debug("Using existing access token from configuration.")
            credentials = None
        else:
            credentials = credentials_from_config(cfg)
        return cls(
            credentials,
            api_version=cfg.api_version,
            access_token=cfg.access_token,
            instance_url=cfg.instance_url,
            timeout=cfg.timeout,
        )

    # --------------------------- ServiceFormatter ---------------------

    def refresh(self) -> None:
        """Obtain a fresh access token and resolve the API version."""
        if self._credentials is not None:
            self._request_token(self._credentials)
        elif not (self._access_token and self._instance_url):
            raise SFBulkError("Session has neither credentials nor an access token.")

        if not self.api_version:
            self.api_version = self._discover_latest_api_version()
        _logger.info(
            "Session ready instance=%s api=%s", self._instance_url, self.api_version
        )

    def instance_url(self) -> str:
        if not self._instance_url:
            raise SFBulkError("Not connected: call refresh() first.")
        return self._instance_url

    def service_url(self) -> str:
        return f"{self.instance_url()}/services/data/{self._version()}"

    def async_service_url(self) -> str:
        return f"{self.instance_url()}/services/async/{self._version().lstrip('v')}/"

    def authorization_header(self, headers: Dict[str, str]) -> None:
        if not self._access_token:
            raise SFBulkError("Not connected: call refresh() first.")
        headers["Authorization"] = f"{self._token_type} {self._access_token}"

    def client(self) -> requests.Session:
        return self._http

    # --------------------------- Internal helpers --------------------

    def _version(self) -> str:
        return self.api_version or DEFAULT_API_VERSION

    def _request_token(self, credentials: Credentials) -> None:
        token_url = credentials.token_url()
        _logger.debug("Requesting access token from %s", token_url)
        r = self._http.request(
            "POST",
            token_url,
            data=credentials.retrieve(),
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
            },
            timeout=self.timeout,
        )
        expect_status(r, 200)
        payload = decode_json_object(r)

        try:
            self._access_token = payload["access_token"]
            self._instance_url = payload["instance_url"].rstrip("/")
        except (KeyError, AttributeError, TypeError) as e:
            raise DecodeError(f"Token response is missing {e}") from e
        self._token_type = payload.get("token_type") or "Bearer"

    def _discover_latest_api_version(self) -> str:
        headers: Dict[str, str] = {"Accept": "application/json"}
        self.authorization_header(headers)
        r = self._http.request(
            "GET", f"{self.instance_url()}/services/data/", headers=headers, timeout=self.timeout
        )
        expect_status(r, 200)
        versions = decode_json(r)
        if not versions:
            return DEFAULT_API_VERSION
        best = sorted(versions, key=lambda v: float(v.get("version", "0")), reverse=True)[0]
        version_str = best.get("url", "").rstrip("/").split("/")[-1]
        _logger.debug("Latest API version discovered: %s", version_str)
        return version_str or DEFAULT_API_VERSION


# ----------------------------------------------------------------------
# Request helpers shared by the resources
# ----------------------------------------------------------------------
def send(
    session: ServiceFormatter,
    method: str,
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    data: Any = None,
    stream: bool = False,
) -> requests.Response:
    """Issue one authorized request. No retries; transport errors propagate."""
    hdrs = dict(headers or {})
    session.authorization_header(hdrs)
    _logger.debug("%s %s params=%s", method, url, params)
    return session.client().request(
        method,
        url,
        headers=hdrs,
        params=params,
        data=data,
        stream=stream,
        timeout=getattr(session, "timeout", None),
    )


def decode_json(response: Any) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise DecodeError(f"Malformed JSON response: {e}") from e


def decode_json_object(response: Any) -> Dict[str, Any]:
    payload = decode_json(response)
    if not isinstance(payload, dict):
        raise DecodeError(f"expected a JSON object, got {type(payload).__name__}")
    return payload
