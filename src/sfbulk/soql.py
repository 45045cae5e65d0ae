"""SOQL queries over the REST ``/query`` and ``/queryAll`` endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Protocol

from .exceptions import ValidationError, expect_status
from .session import ServiceFormatter, decode_json_object, send

_logger = logging.getLogger(__name__)

_ACCEPT_JSON = {"Accept": "application/json"}


class QueryFormatter(Protocol):
    def format(self) -> str: ...


@dataclass
class RawQuery:
    """A ready-made SOQL string."""

    soql: str

    def format(self) -> str:
        if not self.soql or not self.soql.strip():
            raise ValidationError("soql: query can not be empty")
        return self.soql


@dataclass
class QueryInput:
    """Builds ``SELECT <fields> FROM <object> [WHERE] [ORDER BY] [LIMIT] [OFFSET]``.

    ``subqueries`` are relationship queries rendered in parentheses after
    the plain fields, e.g. ``(SELECT Id FROM Contacts)``.
    """

    object_type: str
    field_list: List[str] = field(default_factory=list)
    subqueries: List[QueryFormatter] = field(default_factory=list)
    where: str = ""
    order: str = ""
    limit: int = 0
    offset: int = 0

    def format(self) -> str:
        if not self.object_type:
            raise ValidationError("soql: object type can not be empty")
        if not self.field_list and not self.subqueries:
            raise ValidationError("soql: field list can not be empty")
        if self.limit < 0 or self.offset < 0:
            raise ValidationError("soql: limit and offset must not be negative")

        selected = list(self.field_list) + [f"({sub.format()})" for sub in self.subqueries]
        soql = f"SELECT {', '.join(selected)} FROM {self.object_type}"
        if self.where:
            soql += f" WHERE {self.where}"
        if self.order:
            soql += f" ORDER BY {self.order}"
        if self.limit:
            soql += f" LIMIT {self.limit}"
        if self.offset:
            soql += f" OFFSET {self.offset}"
        return soql


def _is_query_result(value: Any) -> bool:
    return isinstance(value, dict) and "records" in value and "done" in value


class QueryRecord:
    """One returned row: its sObject type, plain fields and nested sub-query results."""

    def __init__(self, payload: Dict[str, Any], resource: Resource) -> None:
        attrs = payload.get("attributes") or {}
        self.sobject: str = attrs.get("type", "")
        self.url: str = attrs.get("url", "")
        self.fields: Dict[str, Any] = {}
        self.subresults: Dict[str, QueryResult] = {}
        for key, value in payload.items():
            if key == "attributes":
                continue
            if _is_query_result(value):
                self.subresults[key] = QueryResult(value, resource)
            else:
                self.fields[key] = value

    def __repr__(self) -> str:
        return f"QueryRecord({self.sobject!r}, {self.fields!r})"


class QueryResult:
    def __init__(self, payload: Dict[str, Any], resource: Resource) -> None:
        self._resource = resource
        self.done: bool = bool(payload.get("done", True))
        self.total_size: int = int(payload.get("totalSize") or 0)
        self.next_records_url: str = payload.get("nextRecordsUrl") or ""
        self.records: List[QueryRecord] = [
            QueryRecord(rec, resource) for rec in payload.get("records") or []
        ]

    def more_records(self) -> bool:
        return not self.done and bool(self.next_records_url)

    def next(self) -> QueryResult:
        """Fetch the continuation page named by ``nextRecordsUrl``."""
        if not self.more_records():
            raise ValidationError("soql query result: no more records to query")
        return self._resource.next(self.next_records_url)

    def iter_records(self) -> Iterator[QueryRecord]:
        """Yield records of this page and every following page."""
        page: Optional[QueryResult] = self
        while page is not None:
            yield from page.records
            page = page.next() if page.more_records() else None


class Resource:
    """Entry point for SOQL queries."""

    def __init__(self, session: ServiceFormatter) -> None:
        if session is None:
            raise ValidationError("soql: session can not be None")
        session.refresh()
        self._session = session

    def query(self, querier: QueryFormatter, all: bool = False) -> QueryResult:
        """Run a query; ``all=True`` includes deleted and archived records."""
        if querier is None:
            raise ValidationError("soql resource query: querier can not be None")
        soql = querier.format()

        endpoint = "/queryAll/" if all else "/query/"
        _logger.debug("SOQL %s: %s", endpoint.strip("/"), soql)
        return self._result(self._session.service_url() + endpoint, params={"q": soql})

    def next(self, records_url: str) -> QueryResult:
        return self._result(self._session.instance_url() + records_url)

    def _result(self, url: str, params: Optional[Dict[str, str]] = None) -> QueryResult:
        r = send(self._session, "GET", url, headers=_ACCEPT_JSON, params=params)
        expect_status(r, 200)
        return QueryResult(decode_json_object(r), self)
