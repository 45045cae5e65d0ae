"""Bulk API 1.0 jobs and batches.

A job owns any number of batches. Each batch is submitted, polled and
retrieved on its own; the job only groups them. Every endpoint lives under
the session's async service URL (``/services/async/<version>/``).
"""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .enums import LineEnding, Operation
from .exceptions import JobError, ValidationError, expect_status
from .session import AsyncServiceFormatter, decode_json, decode_json_object, send
from .utils import from_payload, stream_to_file, to_payload

_logger = logging.getLogger(__name__)

BULK_ENDPOINT = "job"

PK_CHUNKING_HEADER = "Sforce-Enable-PKChunking"
LINE_ENDING_HEADER = "Sforce-Line-Ending"
CALL_OPTIONS_HEADER = "Sforce-Call-Options"


class ContentType(str, Enum):
    CSV = "CSV"
    JSON = "JSON"
    XML = "XML"
    ZIP_CSV = "ZIP_CSV"
    ZIP_JSON = "ZIP_JSON"
    ZIP_XML = "ZIP_XML"


# Request body MIME type for each batch content type.
BATCH_MIME_TYPES: Dict[str, str] = {
    ContentType.CSV.value: "text/csv",
    ContentType.JSON.value: "application/json",
    ContentType.XML.value: "application/xml",
    ContentType.ZIP_CSV.value: "zip/csv",
    ContentType.ZIP_JSON.value: "zip/json",
    ContentType.ZIP_XML.value: "zip/xml",
}


class State(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    ABORTED = "Aborted"
    FAILED = "Failed"


class BatchState(str, Enum):
    QUEUED = "Queued"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"
    # Job aborted while queued, or the original batch of a PK-chunked query.
    NOT_PROCESSED = "NotProcessed"


@dataclass
class Options:
    object: str = ""
    operation: str = ""
    external_id_field_name: str = ""
    content_type: str = ""


@dataclass
class HeaderOptions:
    """Settings that travel as request headers rather than in the JSON body."""

    line_ending: str = ""
    content_type: str = ""
    client: str = ""
    pk_chunking: str = ""


@dataclass
class JobInfo:
    api_version: float = 0.0
    apex_processing_time: int = 0
    api_active_processing_time: int = 0
    assignment_rule_id: str = ""
    concurrency_mode: str = ""
    content_type: str = ""
    created_by_id: str = ""
    created_date: str = ""
    external_id_field_name: str = ""
    id: str = ""
    number_batches_completed: int = 0
    number_batches_queued: int = 0
    number_batches_failed: int = 0
    number_batches_in_progress: int = 0
    number_batches_total: int = 0
    number_records_failed: int = 0
    number_records_processed: int = 0
    number_retries: int = 0
    object: str = ""
    operation: str = ""
    state: str = ""
    system_modstamp: str = ""
    total_processing_time: int = 0


@dataclass
class BatchInfo:
    apex_processing_time: int = 0
    api_active_processing_time: int = 0
    created_date: str = ""
    id: str = ""
    job_id: str = ""
    number_records_failed: int = 0
    number_records_processed: int = 0
    state: str = ""
    state_message: str = ""
    system_modstamp: str = ""
    total_processing_time: int = 0


def format_options(options: Options, header: HeaderOptions) -> HeaderOptions:
    """Validate ``options``; return ``header`` with its empty fields defaulted."""
    if not options.operation:
        raise ValidationError("bulk job: operation is required")
    if options.operation == Operation.UPSERT and not options.external_id_field_name:
        raise ValidationError("bulk job: external id field name is required for upsert operation")
    if not options.object:
        raise ValidationError("bulk job: object is required")

    return dataclasses.replace(
        header,
        line_ending=header.line_ending or LineEnding.LF.value,
        content_type=header.content_type or ContentType.CSV.value,
        pk_chunking=header.pk_chunking or "TRUE",
    )


class Job:
    def __init__(self, session: AsyncServiceFormatter, response: Optional[JobInfo] = None) -> None:
        self._session = session
        self.response = response or JobInfo()

    def __repr__(self) -> str:
        return f"Job(id={self.id!r}, state={self.state!r})"

    @property
    def id(self) -> str:
        return self.response.id

    @property
    def state(self) -> str:
        return self.response.state

    def create(self, options: Options, header: Optional[HeaderOptions] = None) -> JobInfo:
        header = format_options(options, header or HeaderOptions())
        body = to_payload(options)
        body.setdefault("contentType", header.content_type)

        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            PK_CHUNKING_HEADER: header.pk_chunking,
            LINE_ENDING_HEADER: header.line_ending,
        }
        if header.client:
            headers[CALL_OPTIONS_HEADER] = f"client={header.client}"

        r = send(
            self._session,
            "POST",
            self._session.async_service_url() + BULK_ENDPOINT,
            headers=headers,
            data=json.dumps(body),
        )
        # 1.0 answers job creation with 201; later reads with 200.
        expect_status(r, 200, 201)
        self.response = from_payload(JobInfo, decode_json(r))
        _logger.info("Created bulk 1.0 job %s (%s %s)", self.id, options.operation, options.object)
        return self.response

    def info(self) -> JobInfo:
        r = send(
            self._session, "GET", self._job_url(), headers={"Accept": "application/json"}
        )
        expect_status(r, 200)
        self.response = from_payload(JobInfo, decode_json(r))
        return self.response

    def create_batch(self, data: Any) -> BatchInfo:
        """Submit one batch in the job's content type; the server answers 201."""
        mime = BATCH_MIME_TYPES.get(self.response.content_type, "text/csv")
        r = send(
            self._session,
            "POST",
            self._job_url() + "/batch",
            headers={"Content-Type": mime, "Accept": "application/json"},
            data=data,
        )
        expect_status(r, 201)
        batch = from_payload(BatchInfo, decode_json(r))
        _logger.info("Submitted batch %s to job %s", batch.id, self.id)
        return batch

    def batch_info(self, batch: BatchInfo) -> BatchInfo:
        return self.fetch_batch_info(self.id, batch.id)

    def fetch_batch_info(self, job_id: str, batch_id: str) -> BatchInfo:
        r = send(
            self._session,
            "GET",
            f"{self._session.async_service_url()}{BULK_ENDPOINT}/{job_id}/batch/{batch_id}",
            headers={"Accept": "application/json"},
        )
        expect_status(r, 200)
        return from_payload(BatchInfo, decode_json(r))

    def batches(self) -> List[BatchInfo]:
        r = send(self._session, "GET", self._job_url() + "/batch", headers={"Accept": "application/json"})
        expect_status(r, 200)
        payload = decode_json_object(r)
        return [from_payload(BatchInfo, b) for b in payload.get("batchInfo") or []]

    def close(self) -> JobInfo:
        return self._set_state(State.CLOSED)

    def abort(self) -> JobInfo:
        return self._set_state(State.ABORTED)

    def delete(self) -> None:
        r = send(self._session, "DELETE", self._job_url())
        if r.status_code != 204:
            raise JobError(f"job error: unable to delete job {self.id} (HTTP {r.status_code})")

    def export_results(self, filename: str, batch: BatchInfo) -> int:
        """Stream one batch's result file to ``filename`` unchanged."""
        with send(
            self._session,
            "GET",
            f"{self._job_url()}/batch/{batch.id}/result",
            headers={"Accept": "text/csv"},
            stream=True,
        ) as r:
            expect_status(r, 200)
            written = stream_to_file(r, filename)
        _logger.info("Exported batch %s of job %s -> %s", batch.id, self.id, filename)
        return written

    def _job_url(self) -> str:
        return f"{self._session.async_service_url()}{BULK_ENDPOINT}/{self.id}"

    def _set_state(self, state: State) -> JobInfo:
        r = send(
            self._session,
            "POST",
            self._job_url(),
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            data=json.dumps({"state": state.value}),
        )
        expect_status(r, 200)
        self.response = from_payload(JobInfo, decode_json(r))
        return self.response


class Resource:
    """Entry point for Bulk API 1.0 jobs."""

    def __init__(self, session: AsyncServiceFormatter) -> None:
        if session is None:
            raise ValidationError("bulk: session can not be None")
        session.refresh()
        self._session = session

    def __str__(self) -> str:
        return "Bulk(v1)"

    def create_job(self, options: Options, header: Optional[HeaderOptions] = None) -> Job:
        job = Job(self._session)
        job.create(options, header)
        return job

    def get_job(self, job_id: str) -> Job:
        job = Job(self._session, JobInfo(id=job_id))
        job.info()
        return job
