"""Salesforce Bulk API 1.0/2.0, SOQL and OAuth client."""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("sfbulk")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

from .config import SFConfig
from .credentials import (
    ClientCredentials,
    Credentials,
    PasswordCredentials,
    RefreshTokenCredentials,
    credentials_from_config,
    new_client_credentials,
    new_password_credentials,
    new_refresh_token_credentials,
)
from .exceptions import (
    DecodeError,
    JobError,
    MissingCredentialsError,
    SalesforceAPIError,
    SFBulkError,
    ValidationError,
)
from .session import AsyncServiceFormatter, ServiceFormatter, Session

# Keep library modules quiet unless the app configures logging:
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AsyncServiceFormatter",
    "ClientCredentials",
    "Credentials",
    "DecodeError",
    "JobError",
    "MissingCredentialsError",
    "PasswordCredentials",
    "RefreshTokenCredentials",
    "SFBulkError",
    "SFConfig",
    "SalesforceAPIError",
    "ServiceFormatter",
    "Session",
    "ValidationError",
    "credentials_from_config",
    "new_client_credentials",
    "new_password_credentials",
    "new_refresh_token_credentials",
]
