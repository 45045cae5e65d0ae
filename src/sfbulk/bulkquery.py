"""Bulk API 2.0 query jobs.

Results are paged with an opaque locator::

    locator = ""
    page = 0
    while True:
        page += 1
        locator = job.export_results(f"part-{page}.csv", max_records=50000, locator=locator)
        if not locator:
            break
"""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .enums import ColumnDelimiter, ContentType, LineEnding, QueryOperation, State
from .exceptions import JobError, ValidationError, expect_status
from .results import delimiter_for, parse_rows
from .session import ServiceFormatter, decode_json, send
from .utils import from_payload, stream_to_file, to_payload

_logger = logging.getLogger(__name__)

BULK2_QUERY_ENDPOINT = "/jobs/query"
LOCATOR_HEADER = "Sforce-Locator"

_JSON_HEADERS = {"Accept": "application/json", "Content-Type": "application/json"}


@dataclass
class QueryOptions:
    query: str = ""
    operation: str = ""
    column_delimiter: str = ""
    content_type: str = ""
    line_ending: str = ""


@dataclass
class QueryResponse:
    api_version: float = 0.0
    column_delimiter: str = ""
    concurrency_mode: str = ""
    content_type: str = ""
    created_by_id: str = ""
    created_date: str = ""
    id: str = ""
    job_type: str = ""
    line_ending: str = ""
    object: str = ""
    operation: str = ""
    state: str = ""
    system_modstamp: str = ""


@dataclass
class QueryInfo(QueryResponse):
    number_records_processed: int = 0
    retries: int = 0
    total_processing_time: int = 0
    error_message: str = ""

    def query_response(self) -> QueryResponse:
        names = {f.name for f in dataclasses.fields(QueryResponse)}
        return QueryResponse(**{k: v for k, v in dataclasses.asdict(self).items() if k in names})


def format_options(options: QueryOptions) -> QueryOptions:
    if not options.query:
        raise ValidationError("bulk job: query is required")

    return dataclasses.replace(
        options,
        line_ending=options.line_ending or LineEnding.LF.value,
        content_type=options.content_type or ContentType.CSV.value,
        column_delimiter=options.column_delimiter or ColumnDelimiter.COMMA.value,
        operation=options.operation or QueryOperation.QUERY.value,
    )


def _next_locator(response: Any) -> str:
    # Salesforce sends the literal "null" on the last page.
    locator = response.headers.get(LOCATOR_HEADER) or ""
    return "" if locator == "null" else locator


class QueryJob:
    def __init__(self, session: ServiceFormatter, response: Optional[QueryResponse] = None) -> None:
        self._session = session
        self.query_response = response or QueryResponse()

    def __repr__(self) -> str:
        return f"QueryJob(id={self.id!r}, state={self.state!r})"

    @property
    def id(self) -> str:
        return self.query_response.id

    @property
    def state(self) -> str:
        return self.query_response.state

    def create(self, options: QueryOptions) -> QueryResponse:
        options = format_options(options)
        self._response(
            "POST", self._session.service_url() + BULK2_QUERY_ENDPOINT, to_payload(options)
        )
        _logger.info("Created query job %s", self.id)
        return self.query_response

    def info(self) -> QueryInfo:
        return self.fetch_info(self.id)

    def fetch_info(self, job_id: str) -> QueryInfo:
        r = send(self._session, "GET", self._job_url(job_id), headers=_JSON_HEADERS)
        expect_status(r, 200)
        info = from_payload(QueryInfo, decode_json(r))
        self.query_response = info.query_response()
        _logger.debug("Query job %s state=%s", info.id, info.state)
        return info

    def abort(self) -> QueryResponse:
        self._response("PATCH", self._job_url(self.id), {"state": State.ABORTED.value})
        return self.query_response

    def delete(self) -> None:
        r = send(self._session, "DELETE", self._job_url(self.id))
        if r.status_code != 204:
            raise JobError(f"job error: unable to delete job {self.id} (HTTP {r.status_code})")
        _logger.info("Deleted query job %s", self.id)

    def export_results(self, filepath: str, max_records: int = 0, locator: str = "") -> str:
        """Write one page of results to ``filepath``; return the next locator or ``""``."""
        with self._results_request(max_records, locator, stream=True) as r:
            expect_status(r, 200)
            written = stream_to_file(r, filepath)
            next_locator = _next_locator(r)
        _logger.info(
            "Exported results page of job %s -> %s (%d bytes, more=%s)",
            self.id,
            filepath,
            written,
            bool(next_locator),
        )
        return next_locator

    def results(self, max_records: int = 0, locator: str = "") -> Tuple[List[Dict[str, str]], str]:
        """Fetch and parse one page of results; returns ``(rows, next_locator)``."""
        with self._results_request(max_records, locator) as r:
            expect_status(r, 200)
            rows = parse_rows(r.content, self.delimiter())
            return rows, _next_locator(r)

    def delimiter(self) -> str:
        return delimiter_for(self.query_response.column_delimiter)

    def _job_url(self, job_id: str) -> str:
        return f"{self._session.service_url()}{BULK2_QUERY_ENDPOINT}/{job_id}"

    def _results_request(self, max_records: int, locator: str, stream: bool = False) -> Any:
        params: Dict[str, str] = {}
        if locator:
            params["locator"] = locator
        if max_records > 0:
            params["maxRecords"] = str(max_records)
        return send(
            self._session,
            "GET",
            self._job_url(self.id) + "/results",
            headers={"Accept": "text/csv"},
            params=params or None,
            stream=stream,
        )

    def _response(self, method: str, url: str, body: Dict[str, Any]) -> QueryResponse:
        r = send(self._session, method, url, headers=_JSON_HEADERS, data=json.dumps(body))
        expect_status(r, 200)
        self.query_response = from_payload(QueryResponse, decode_json(r))
        return self.query_response


class Resource:
    """Entry point for Bulk API 2.0 query jobs."""

    def __init__(self, session: ServiceFormatter) -> None:
        if session is None:
            raise ValidationError("bulk: session can not be None")
        session.refresh()
        self._session = session

    def __str__(self) -> str:
        return "Bulk(Query)"

    def create_job(self, options: QueryOptions) -> QueryJob:
        job = QueryJob(self._session)
        job.create(options)
        return job

    def get_job(self, job_id: str) -> QueryJob:
        job = QueryJob(self._session)
        job.fetch_info(job_id)
        return job
