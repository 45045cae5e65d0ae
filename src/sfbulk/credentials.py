"""OAuth 2.0 credential providers.

A :class:`Credentials` wraps one provider. The provider knows the login URL
and how to render the ``application/x-www-form-urlencoded`` token request
body for its grant type. Fields are validated when the credentials are
built, so a bad configuration fails before any network call.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Protocol
from urllib.parse import urlencode

from .config import SFConfig
from .exceptions import MissingCredentialsError, ValidationError

PASSWORD_GRANT = "password"
REFRESH_TOKEN_GRANT = "refresh_token"
CLIENT_CREDENTIALS_GRANT = "client_credentials"


class Provider(Protocol):
    def retrieve(self) -> str: ...

    def url(self) -> str: ...


@dataclass(frozen=True)
class PasswordCredentials:
    """Username/password flow.

    ``url`` is the login URL, e.g. https://login.salesforce.com or
    https://test.salesforce.com. ``password`` must include the user's
    security token when the org requires one.
    """

    url: str
    username: str
    password: str
    client_id: str
    client_secret: str


@dataclass(frozen=True)
class RefreshTokenCredentials:
    """Exchange a refresh token from a previous login for a new access token."""

    url: str
    refresh_token: str
    client_id: str
    client_secret: str


@dataclass(frozen=True)
class ClientCredentials:
    """Connected-app client credentials flow."""

    url: str
    client_id: str
    client_secret: str


def _missing(values: Dict[str, str]) -> List[str]:
    return [name for name, value in values.items() if not value]


class _PasswordProvider:
    def __init__(self, creds: PasswordCredentials) -> None:
        self.creds = creds

    def retrieve(self) -> str:
        return urlencode(
            [
                ("grant_type", PASSWORD_GRANT),
                ("username", self.creds.username),
                ("password", self.creds.password),
                ("client_id", self.creds.client_id),
                ("client_secret", self.creds.client_secret),
            ]
        )

    def url(self) -> str:
        return self.creds.url


class _RefreshTokenProvider:
    def __init__(self, creds: RefreshTokenCredentials) -> None:
        self.creds = creds

    def retrieve(self) -> str:
        return urlencode(
            [
                ("grant_type", REFRESH_TOKEN_GRANT),
                ("format", "json"),
                ("refresh_token", self.creds.refresh_token),
                ("client_id", self.creds.client_id),
                ("client_secret", self.creds.client_secret),
            ]
        )

    def url(self) -> str:
        return self.creds.url


class _ClientCredentialsProvider:
    def __init__(self, creds: ClientCredentials) -> None:
        self.creds = creds

    def retrieve(self) -> str:
        return urlencode(
            [
                ("grant_type", CLIENT_CREDENTIALS_GRANT),
                ("client_id", self.creds.client_id),
                ("client_secret", self.creds.client_secret),
            ]
        )

    def url(self) -> str:
        return self.creds.url


class Credentials:
    """Token request body and login URL for one OAuth flow."""

    def __init__(self, provider: Provider) -> None:
        self._provider = provider

    def retrieve(self) -> str:
        """Return the URL-encoded form body for the token request."""
        return self._provider.retrieve()

    def url(self) -> str:
        """Return the login URL the token request is sent to."""
        return self._provider.url()

    def token_url(self) -> str:
        return f"{self.url().rstrip('/')}/services/oauth2/token"


def new_password_credentials(creds: PasswordCredentials) -> Credentials:
    missing = _missing(
        {
            "url": creds.url,
            "username": creds.username,
            "password": creds.password,
            "client_id": creds.client_id,
            "client_secret": creds.client_secret,
        }
    )
    if missing:
        raise MissingCredentialsError(missing, flow="password credentials")
    return Credentials(_PasswordProvider(creds))


def new_refresh_token_credentials(creds: RefreshTokenCredentials) -> Credentials:
    missing = _missing(
        {
            "url": creds.url,
            "refresh_token": creds.refresh_token,
            "client_id": creds.client_id,
            "client_secret": creds.client_secret,
        }
    )
    if missing:
        raise MissingCredentialsError(missing, flow="refresh token credentials")
    return Credentials(_RefreshTokenProvider(creds))


def new_client_credentials(creds: ClientCredentials) -> Credentials:
    missing = _missing(
        {
            "url": creds.url,
            "client_id": creds.client_id,
            "client_secret": creds.client_secret,
        }
    )
    if missing:
        raise MissingCredentialsError(missing, flow="client credentials")
    return Credentials(_ClientCredentialsProvider(creds))


def credentials_from_config(cfg: SFConfig) -> Credentials:
    """Pick and validate the OAuth flow named by ``cfg.auth_flow``."""
    flow = (cfg.auth_flow or "").strip().lower()
    if flow == CLIENT_CREDENTIALS_GRANT:
        return new_client_credentials(
            ClientCredentials(
                url=cfg.login_url or "",
                client_id=cfg.client_id or "",
                client_secret=cfg.client_secret or "",
            )
        )
    if flow == PASSWORD_GRANT:
        return new_password_credentials(
            PasswordCredentials(
                url=cfg.login_url or "",
                username=cfg.username or "",
                password=cfg.password or "",
                client_id=cfg.client_id or "",
                client_secret=cfg.client_secret or "",
            )
        )
    if flow == REFRESH_TOKEN_GRANT:
        return new_refresh_token_credentials(
            RefreshTokenCredentials(
                url=cfg.login_url or "",
                refresh_token=cfg.refresh_token or "",
                client_id=cfg.client_id or "",
                client_secret=cfg.client_secret or "",
            )
        )
    raise ValidationError(f"Unsupported SF_AUTH_FLOW: {cfg.auth_flow!r}")
