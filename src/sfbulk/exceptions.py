from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional


class SFBulkError(RuntimeError):
    """Base class for every error raised by sfbulk."""


class ValidationError(SFBulkError, ValueError):
    """Raised when required options are missing, before any request is sent."""


class MissingCredentialsError(ValidationError):
    """Raised when required OAuth credential fields are empty."""

    def __init__(self, missing: List[str], flow: str = "credentials"):
        self.missing = missing
        self.flow = flow
        super().__init__(f"{flow}: missing required field(s): " + ", ".join(missing))


class DecodeError(SFBulkError, ValueError):
    """Raised when a JSON or CSV response body cannot be decoded."""


class JobError(SFBulkError):
    """Raised when a job call returns a status that leaves the job unchanged."""


@dataclass
class ErrorDetail:
    error_code: str = ""
    message: str = ""
    fields: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        text = f"{self.error_code}: {self.message}" if self.error_code else self.message
        if self.fields:
            text += f" (fields: {', '.join(self.fields)})"
        return text


class SalesforceAPIError(SFBulkError):
    """Non-success HTTP status decoded from Salesforce's error body."""

    def __init__(self, status_code: int, errors: List[ErrorDetail], url: Optional[str] = None):
        self.status_code = status_code
        self.errors = errors
        self.url = url
        detail = "; ".join(str(e) for e in errors) or "no error details"
        super().__init__(f"Salesforce API error ({status_code}): {detail}")

    @classmethod
    def from_response(cls, response: Any) -> SalesforceAPIError:
        """Build the error from a response, tolerating every Salesforce error shape.

        - REST/Bulk 2.0: ``[{"errorCode": ..., "message": ..., "fields": [...]}]``
        - Bulk 1.0: ``{"exceptionCode": ..., "exceptionMessage": ...}``
        - OAuth: ``{"error": ..., "error_description": ...}``
        """
        try:
            payload = response.json()
        except ValueError:
            payload = None
        return cls(response.status_code, _error_details(payload, response), getattr(response, "url", None))


def _error_details(payload: Any, response: Any) -> List[ErrorDetail]:
    if isinstance(payload, dict):
        payload = [payload]
    if isinstance(payload, list) and payload:
        details = []
        for item in payload:
            if not isinstance(item, dict):
                details.append(ErrorDetail(message=str(item)))
                continue
            details.append(
                ErrorDetail(
                    error_code=str(
                        item.get("errorCode") or item.get("exceptionCode") or item.get("error") or ""
                    ),
                    message=str(
                        item.get("message")
                        or item.get("exceptionMessage")
                        or item.get("error_description")
                        or ""
                    ),
                    fields=list(item.get("fields") or []),
                )
            )
        return details

    text = (getattr(response, "text", "") or "").strip()
    if text:
        return [ErrorDetail(message=text)]
    reason = getattr(response, "reason", "") or ""
    return [ErrorDetail(message=reason)] if reason else []


def expect_status(response: Any, *codes: int) -> None:
    """Raise :class:`SalesforceAPIError` unless ``response`` has one of ``codes``."""
    if response.status_code not in codes:
        raise SalesforceAPIError.from_response(response)
