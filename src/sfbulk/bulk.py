"""Bulk API 2.0 ingest jobs.

Lifecycle driven by the caller, one blocking call per step::

    resource = Resource(session)
    job = resource.create_job(Options(object="Account", operation=Operation.INSERT))
    job.upload(csv_bytes)
    job.close()
    ...poll job.info() until its state is terminal...
    ok = job.successful_records()

The job's ``state`` is whatever the server last reported; nothing here
validates or predicts transitions.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .enums import ColumnDelimiter, ContentType, LineEnding, Operation, State
from .exceptions import JobError, SalesforceAPIError, ValidationError, expect_status
from .results import (
    FailedRecord,
    SuccessfulRecord,
    UnprocessedRecord,
    delimiter_for,
    parse_failed_results,
    parse_successful_results,
    parse_unprocessed_records,
)
from .session import ServiceFormatter, decode_json, decode_json_object, send
from .utils import from_payload, stream_to_file, to_payload

_logger = logging.getLogger(__name__)

BULK2_ENDPOINT = "/jobs/ingest"

_JSON_HEADERS = {"Accept": "application/json", "Content-Type": "application/json"}


# ----------------------------------------------------------------------
# Payloads
# ----------------------------------------------------------------------
@dataclass
class Options:
    """Options for a new ingest job.

    ``object`` and ``operation`` are required; ``external_id_field_name`` is
    required for upserts. The format fields default to CSV, LF and COMMA.
    """

    object: str = ""
    operation: str = ""
    external_id_field_name: str = ""
    column_delimiter: str = ""
    content_type: str = ""
    line_ending: str = ""


@dataclass
class WriteResponse:
    api_version: float = 0.0
    column_delimiter: str = ""
    concurrency_mode: str = ""
    content_type: str = ""
    content_url: str = ""
    created_by_id: str = ""
    created_date: str = ""
    external_id_field_name: str = ""
    id: str = ""
    job_type: str = ""
    line_ending: str = ""
    object: str = ""
    operation: str = ""
    state: str = ""
    system_modstamp: str = ""


@dataclass
class Info(WriteResponse):
    apex_processing_time: int = 0
    api_active_processing_time: int = 0
    number_records_failed: int = 0
    number_records_processed: int = 0
    retries: int = 0
    total_processing_time: int = 0
    error_message: str = ""

    def write_response(self) -> WriteResponse:
        names = {f.name for f in dataclasses.fields(WriteResponse)}
        return WriteResponse(**{k: v for k, v in dataclasses.asdict(self).items() if k in names})


def format_options(options: Options) -> Options:
    """Validate ``options`` and return a copy with empty format fields defaulted."""
    if not options.operation:
        raise ValidationError("bulk job: operation is required")
    if options.operation == Operation.UPSERT and not options.external_id_field_name:
        raise ValidationError("bulk job: external id field name is required for upsert operation")
    if not options.object:
        raise ValidationError("bulk job: object is required")

    return dataclasses.replace(
        options,
        line_ending=options.line_ending or LineEnding.LF.value,
        content_type=options.content_type or ContentType.CSV.value,
        column_delimiter=options.column_delimiter or ColumnDelimiter.COMMA.value,
    )


# ----------------------------------------------------------------------
# Job
# ----------------------------------------------------------------------
class Job:
    """One ingest job. Holds the last job record the server returned."""

    def __init__(self, session: ServiceFormatter, response: Optional[WriteResponse] = None) -> None:
        self._session = session
        self.write_response = response or WriteResponse()

    def __repr__(self) -> str:
        return f"Job(id={self.id!r}, state={self.state!r})"

    @property
    def id(self) -> str:
        return self.write_response.id

    @property
    def state(self) -> str:
        return self.write_response.state

    # --------------------------- lifecycle ---------------------------

    def create(self, options: Options) -> WriteResponse:
        options = format_options(options)
        self._response("POST", self._session.service_url() + BULK2_ENDPOINT, to_payload(options))
        _logger.info(
            "Created ingest job %s (%s %s)", self.id, options.operation, options.object
        )
        return self.write_response

    def info(self) -> Info:
        """Fetch processing counters and state; always a fresh request."""
        return self.fetch_info(self.id)

    def fetch_info(self, job_id: str) -> Info:
        r = send(self._session, "GET", self._job_url(job_id), headers=_JSON_HEADERS)
        expect_status(r, 200)
        info = from_payload(Info, decode_json(r))
        self.write_response = info.write_response()
        _logger.debug("Job %s state=%s processed=%d", info.id, info.state, info.number_records_processed)
        return info

    def close(self) -> WriteResponse:
        """Ask the server to queue the job; uploads are no longer accepted."""
        return self._set_state(State.UPLOAD_COMPLETE)

    def abort(self) -> WriteResponse:
        return self._set_state(State.ABORTED)

    def delete(self) -> None:
        r = send(self._session, "DELETE", self._job_url(self.id))
        if r.status_code != 204:
            raise JobError(f"job error: unable to delete job {self.id} (HTTP {r.status_code})")
        _logger.info("Deleted ingest job %s", self.id)

    def upload(self, data: Any) -> None:
        """Upload the job data (bytes, str or a binary file object)."""
        r = send(
            self._session,
            "PUT",
            self._job_url(self.id) + "/batches",
            headers={"Content-Type": "text/csv"},
            data=data,
        )
        if r.status_code != 201:
            if r.status_code >= 400:
                raise SalesforceAPIError.from_response(r)
            raise JobError(f"job error: upload to job {self.id} returned HTTP {r.status_code}, expected 201")
        _logger.info("Uploaded data to ingest job %s", self.id)

    # --------------------------- results -----------------------------

    def successful_records(self) -> List[SuccessfulRecord]:
        return parse_successful_results(self._fetch_results("successfulResults"), self.delimiter())

    def failed_records(self) -> List[FailedRecord]:
        return parse_failed_results(self._fetch_results("failedResults"), self.delimiter())

    def unprocessed_records(self) -> List[UnprocessedRecord]:
        return parse_unprocessed_records(self._fetch_results("unprocessedrecords"), self.delimiter())

    def export_successful_results(self, filename: str) -> int:
        return self._export_results("successfulResults", filename)

    def export_failed_results(self, filename: str) -> int:
        return self._export_results("failedResults", filename)

    def export_unprocessed_records(self, filename: str) -> int:
        return self._export_results("unprocessedrecords", filename)

    def read_successful_results(self, filename: str) -> List[SuccessfulRecord]:
        """Parse a file written by :meth:`export_successful_results`."""
        with open(filename, newline="", encoding="utf-8-sig") as f:
            return parse_successful_results(f, self.delimiter())

    def read_failed_results(self, filename: str) -> List[FailedRecord]:
        with open(filename, newline="", encoding="utf-8-sig") as f:
            return parse_failed_results(f, self.delimiter())

    def delimiter(self) -> str:
        return delimiter_for(self.write_response.column_delimiter)

    # --------------------------- helpers -----------------------------

    def _job_url(self, job_id: str) -> str:
        return f"{self._session.service_url()}{BULK2_ENDPOINT}/{job_id}"

    def _set_state(self, state: State) -> WriteResponse:
        self._response("PATCH", self._job_url(self.id), {"state": state.value})
        _logger.info("Requested state %s for job %s; server reports %s", state.value, self.id, self.state)
        return self.write_response

    def _response(self, method: str, url: str, body: Dict[str, Any]) -> WriteResponse:
        r = send(self._session, method, url, headers=_JSON_HEADERS, data=json.dumps(body))
        expect_status(r, 200)
        self.write_response = from_payload(WriteResponse, decode_json(r))
        return self.write_response

    def _fetch_results(self, kind: str) -> bytes:
        with send(
            self._session, "GET", f"{self._job_url(self.id)}/{kind}/", headers={"Accept": "text/csv"}
        ) as r:
            expect_status(r, 200)
            return r.content

    def _export_results(self, kind: str, filename: str) -> int:
        with send(
            self._session,
            "GET",
            f"{self._job_url(self.id)}/{kind}/",
            headers={"Accept": "text/csv"},
            stream=True,
        ) as r:
            expect_status(r, 200)
            written = stream_to_file(r, filename)
        _logger.info("Exported %s of job %s -> %s (%d bytes)", kind, self.id, filename, written)
        return written


# ----------------------------------------------------------------------
# Job listing
# ----------------------------------------------------------------------
@dataclass
class Parameters:
    """Filters for :meth:`Resource.all_jobs`."""

    is_pk_chunking_enabled: Optional[bool] = None
    job_type: str = ""
    concurrency_mode: str = ""
    query_locator: str = ""

    def to_params(self) -> Dict[str, str]:
        params = {
            k: v
            for k, v in to_payload(self).items()
            if k != "isPkChunkingEnabled"
        }
        if self.is_pk_chunking_enabled is not None:
            params["isPkChunkingEnabled"] = "true" if self.is_pk_chunking_enabled else "false"
        return params


class Jobs:
    """One page of the ingest job listing."""

    def __init__(self, session: ServiceFormatter, payload: Dict[str, Any]) -> None:
        self._session = session
        self.done: bool = bool(payload.get("done", True))
        self.next_records_url: str = payload.get("nextRecordsUrl") or ""
        self.records: List[WriteResponse] = [
            from_payload(WriteResponse, rec) for rec in payload.get("records") or []
        ]

    def has_next(self) -> bool:
        return not self.done and bool(self.next_records_url)

    def next(self) -> Jobs:
        if not self.has_next():
            raise ValidationError("jobs: no more pages")
        r = send(
            self._session,
            "GET",
            self._session.instance_url() + self.next_records_url,
            headers=_JSON_HEADERS,
        )
        expect_status(r, 200)
        return Jobs(self._session, decode_json_object(r))


# ----------------------------------------------------------------------
# Resource
# ----------------------------------------------------------------------
class Resource:
    """Entry point for Bulk API 2.0 ingest jobs."""

    def __init__(self, session: ServiceFormatter) -> None:
        if session is None:
            raise ValidationError("bulk: session can not be None")
        session.refresh()
        self._session = session

    def __str__(self) -> str:
        return "Bulk(Ingest)"

    def create_job(self, options: Options) -> Job:
        job = Job(self._session)
        job.create(options)
        return job

    def get_job(self, job_id: str) -> Job:
        job = Job(self._session)
        job.fetch_info(job_id)
        return job

    def all_jobs(self, parameters: Optional[Parameters] = None) -> Jobs:
        r = send(
            self._session,
            "GET",
            self._session.service_url() + BULK2_ENDPOINT,
            headers=_JSON_HEADERS,
            params=(parameters or Parameters()).to_params() or None,
        )
        expect_status(r, 200)
        return Jobs(self._session, decode_json_object(r))
