from __future__ import annotations

import dataclasses
import json
import logging
import os
import time
from typing import Any, Optional, Union

import click
from tqdm import tqdm

from . import __version__, bulk, bulkquery, soql
from .config import SFConfig, load_env_files
from .enums import TERMINAL_STATES, ColumnDelimiter, Operation, QueryOperation, State
from .exceptions import MissingCredentialsError, SFBulkError
from .logging_config import configure_logging
from .session import Session
from .utils import ensure_dir

_logger = logging.getLogger(__name__)

# Load .env very early, so everything else sees env vars
load_env_files()


def _open_session() -> Session:
    try:
        return Session.from_config(SFConfig.from_env())
    except MissingCredentialsError as e:
        missing = ", ".join(e.missing)
        msg = (
            f"Missing Salesforce credentials: {missing}\n\n"
            "Set environment variables or create a .env file with:\n"
            "  SF_AUTH_FLOW, SF_LOGIN_URL, SF_CLIENT_ID, SF_CLIENT_SECRET\n"
            "  (plus SF_USERNAME/SF_PASSWORD or SF_REFRESH_TOKEN for those flows)"
        )
        raise click.ClickException(msg) from e


def wait_for_job(
    job: Union[bulk.Job, bulkquery.QueryJob],
    poll: float,
    timeout: Optional[float] = None,
) -> Any:
    """Poll ``job.info()`` until the server reports a terminal state."""
    deadline = time.monotonic() + timeout if timeout else None
    while True:
        info = job.info()
        if info.state in TERMINAL_STATES:
            return info
        if deadline is not None and time.monotonic() >= deadline:
            raise click.ClickException(f"Timed out waiting for job {job.id} (state {info.state})")
        _logger.info("Job %s is %s; checking again in %.0fs", job.id, info.state, poll)
        time.sleep(poll)


@click.group(
    context_settings={"help_option_names": ["-h", "--help"]},
    invoke_without_command=True,
)
@click.version_option(__version__, "--version", prog_name="sfbulk")
@click.option(
    "-v",
    "--verbose",
    "loglevel",
    flag_value=logging.INFO,
    default=None,
    help="Enable INFO logs.",
)
@click.option(
    "-vv",
    "--very-verbose",
    "loglevel",
    flag_value=logging.DEBUG,
    help="Enable DEBUG logs.",
)
@click.pass_context
def cli(ctx: click.Context, loglevel: Optional[int]) -> None:
    """Salesforce Bulk API client. Use subcommands like 'query' or 'export'."""
    configure_logging(loglevel)
    _logger.debug("CLI start, version=%s", __version__)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command("query")
@click.argument("soql_text", metavar="SOQL")
@click.option("--all", "query_all", is_flag=True, help="Include deleted and archived records.")
@click.option("--pretty", is_flag=True, help="Pretty-print JSON.")
def cmd_query(soql_text: str, query_all: bool, pretty: bool) -> None:
    """Run a SOQL query through the REST API, following every page."""
    session = _open_session()
    try:
        result = soql.Resource(session).query(soql.RawQuery(soql_text), all=query_all)
        records = [rec.fields for rec in result.iter_records()]
    except SFBulkError as e:
        raise click.ClickException(str(e)) from e

    out = {"totalSize": result.total_size, "records": records}
    click.echo(json.dumps(out, indent=2 if pretty else None, default=str))


@cli.command("export")
@click.argument("soql_text", metavar="SOQL")
@click.option(
    "--out",
    "out_dir",
    required=True,
    type=click.Path(file_okay=False),
    help="Output directory for the result pages.",
)
@click.option("--all", "query_all", is_flag=True, help="Use queryAll.")
@click.option("--max-records", type=int, default=0, show_default=True, help="Rows per page (0: server default).")
@click.option(
    "--delimiter",
    type=click.Choice([d.value for d in ColumnDelimiter]),
    default=ColumnDelimiter.COMMA.value,
    show_default=True,
)
@click.option("--poll", type=float, default=5.0, show_default=True, help="Seconds between status checks.")
@click.option("--timeout", type=float, default=None, help="Give up after this many seconds.")
def cmd_export(
    soql_text: str,
    out_dir: str,
    query_all: bool,
    max_records: int,
    delimiter: str,
    poll: float,
    timeout: Optional[float],
) -> None:
    """Run a Bulk 2.0 query job and write each result page to a CSV file."""
    session = _open_session()
    options = bulkquery.QueryOptions(
        query=soql_text,
        operation=(QueryOperation.QUERY_ALL if query_all else QueryOperation.QUERY).value,
        column_delimiter=delimiter,
    )
    try:
        job = bulkquery.Resource(session).create_job(options)
        info = wait_for_job(job, poll, timeout)
        if info.state != State.JOB_COMPLETE:
            raise click.ClickException(
                f"Query job {job.id} ended in state {info.state}: {info.error_message or 'no message'}"
            )

        ensure_dir(out_dir)
        pages = []
        locator = ""
        with tqdm(desc="Export pages", unit="page") as bar:
            while True:
                path = os.path.join(out_dir, f"{job.id}_{len(pages) + 1:04d}.csv")
                locator = job.export_results(path, max_records=max_records, locator=locator)
                pages.append(path)
                bar.update(1)
                if not locator:
                    break
    except SFBulkError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Wrote {info.number_records_processed} rows in {len(pages)} page(s) -> {out_dir}")


@cli.command("ingest")
@click.argument("object_name", metavar="OBJECT")
@click.argument("csv_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--operation",
    type=click.Choice([o.value for o in Operation]),
    required=True,
)
@click.option("--external-id", "external_id", default="", help="External ID field (upsert only).")
@click.option(
    "--delimiter",
    type=click.Choice([d.value for d in ColumnDelimiter]),
    default=ColumnDelimiter.COMMA.value,
    show_default=True,
)
@click.option(
    "--out",
    "out_dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Write successful/failed/unprocessed result files here.",
)
@click.option("--poll", type=float, default=5.0, show_default=True, help="Seconds between status checks.")
@click.option("--timeout", type=float, default=None, help="Give up after this many seconds.")
def cmd_ingest(
    object_name: str,
    csv_path: str,
    operation: str,
    external_id: str,
    delimiter: str,
    out_dir: Optional[str],
    poll: float,
    timeout: Optional[float],
) -> None:
    """Load a CSV file into OBJECT with a Bulk 2.0 ingest job."""
    session = _open_session()
    options = bulk.Options(
        object=object_name,
        operation=operation,
        external_id_field_name=external_id,
        column_delimiter=delimiter,
    )
    try:
        job = bulk.Resource(session).create_job(options)
        with open(csv_path, "rb") as f:
            job.upload(f)
        job.close()
        info = wait_for_job(job, poll, timeout)

        if out_dir:
            ensure_dir(out_dir)
            job.export_successful_results(os.path.join(out_dir, f"{job.id}_success.csv"))
            job.export_failed_results(os.path.join(out_dir, f"{job.id}_failed.csv"))
            job.export_unprocessed_records(os.path.join(out_dir, f"{job.id}_unprocessed.csv"))
    except SFBulkError as e:
        raise click.ClickException(str(e)) from e

    click.echo(
        f"Job {job.id} {info.state}: {info.number_records_processed} processed, "
        f"{info.number_records_failed} failed"
    )
    if info.state == State.FAILED:
        raise click.ClickException(info.error_message or f"Job {job.id} failed")


@cli.command("job-info")
@click.argument("job_id")
@click.option("--query", "is_query", is_flag=True, help="JOB_ID is a Bulk 2.0 query job.")
def cmd_job_info(job_id: str, is_query: bool) -> None:
    """Print the current state and counters of a Bulk 2.0 job."""
    session = _open_session()
    try:
        session.refresh()
        if is_query:
            info: Any = bulkquery.QueryJob(session).fetch_info(job_id)
        else:
            info = bulk.Job(session).fetch_info(job_id)
    except SFBulkError as e:
        raise click.ClickException(str(e)) from e
    click.echo(json.dumps(dataclasses.asdict(info), indent=2))
