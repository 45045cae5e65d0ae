from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

DEFAULT_LOGIN_URL = "https://login.salesforce.com"


def load_env_files(
    candidates: Optional[Iterable[Path]] = None,
    *,
    quiet: bool = False,
) -> Optional[Path]:
    """Load the first existing ``.env``/``.dotenv`` file.

    Variables already present in the environment win over the file.
    Returns the path that was loaded, or ``None``.
    """
    if candidates is None:
        cwd = Path.cwd()
        candidates = (cwd / ".env", cwd / ".dotenv")

    for path in candidates:
        if path.exists():
            load_dotenv(path)
            if not quiet:
                _logger.debug("Loaded environment variables from %s", path)
            return path

    if not quiet:
        _logger.debug("No .env/.dotenv file found")
    return None


@dataclass
class SFConfig:
    """Connection settings for a Salesforce org."""

    # client_credentials | password | refresh_token
    auth_flow: str = "client_credentials"

    # Login URL (not the instance URL), e.g. https://test.salesforce.com
    login_url: str = DEFAULT_LOGIN_URL

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    refresh_token: Optional[str] = None

    # Pre-issued token; skips the OAuth call when both are set
    access_token: Optional[str] = None
    instance_url: Optional[str] = None

    # e.g. "v60.0"; discovered from the org when empty
    api_version: Optional[str] = None

    # Per-request socket timeout in seconds
    timeout: float = 60.0

    @classmethod
    def from_env(cls) -> SFConfig:
        """Build a config from ``SF_*`` environment variables."""
        timeout = os.getenv("SF_TIMEOUT")
        return cls(
            auth_flow=os.getenv("SF_AUTH_FLOW", "client_credentials"),
            login_url=os.getenv("SF_LOGIN_URL", DEFAULT_LOGIN_URL),
            client_id=os.getenv("SF_CLIENT_ID"),
            client_secret=os.getenv("SF_CLIENT_SECRET"),
            username=os.getenv("SF_USERNAME"),
            password=os.getenv("SF_PASSWORD"),
            refresh_token=os.getenv("SF_REFRESH_TOKEN"),
            access_token=os.getenv("SF_ACCESS_TOKEN"),
            instance_url=os.getenv("SF_INSTANCE_URL"),
            api_version=os.getenv("SF_API_VERSION"),
            timeout=float(timeout) if timeout else 60.0,
        )
