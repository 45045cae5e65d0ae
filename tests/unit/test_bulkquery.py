"""Tests for sfbulk.bulkquery (Bulk API 2.0 query jobs)."""

import json

import pytest

from sfbulk import bulkquery
from sfbulk.enums import QueryOperation
from sfbulk.exceptions import JobError, SalesforceAPIError, ValidationError

SERVICE = "https://example.my.salesforce.com/services/data/v60.0"
JOB_URL = f"{SERVICE}/jobs/query/750R0000000zhfdIAA"


def query_record(**overrides):
    rec = {
        "id": "750R0000000zhfdIAA",
        "operation": "query",
        "object": "Account",
        "createdById": "005R0000000GiwjIAC",
        "createdDate": "2018-12-07T19:58:09.000+0000",
        "systemModstamp": "2018-12-07T19:59:14.000+0000",
        "state": "UploadComplete",
        "concurrencyMode": "Parallel",
        "contentType": "CSV",
        "apiVersion": 60.0,
        "jobType": "V2Query",
        "lineEnding": "LF",
        "columnDelimiter": "COMMA",
    }
    rec.update(overrides)
    return rec


@pytest.fixture
def job(session):
    return bulkquery.QueryJob(
        session, bulkquery.QueryResponse(id="750R0000000zhfdIAA", column_delimiter="COMMA")
    )


def test_query_required(session, http):
    resource = bulkquery.Resource(session)

    with pytest.raises(ValidationError, match="query is required"):
        resource.create_job(bulkquery.QueryOptions())

    assert http.calls == []


def test_format_options_defaults():
    opts = bulkquery.format_options(bulkquery.QueryOptions(query="SELECT Id FROM Account"))

    assert opts.operation == "query"
    assert opts.content_type == "CSV"
    assert opts.line_ending == "LF"
    assert opts.column_delimiter == "COMMA"


def test_format_options_keeps_explicit_values():
    opts = bulkquery.format_options(
        bulkquery.QueryOptions(
            query="SELECT Id FROM Account",
            operation=QueryOperation.QUERY_ALL,
            column_delimiter="TAB",
            line_ending="CRLF",
        )
    )

    assert opts.operation == "queryAll"
    assert opts.column_delimiter == "TAB"
    assert opts.line_ending == "CRLF"


def test_create_job(session, http, respond):
    respond(json_data=query_record())

    job = bulkquery.Resource(session).create_job(bulkquery.QueryOptions(query="SELECT Id FROM Account"))

    call = http.calls[0]
    assert call.method == "POST"
    assert call.url == f"{SERVICE}/jobs/query"
    assert json.loads(call.data)["operation"] == "query"
    assert job.id == "750R0000000zhfdIAA"
    assert job.state == "UploadComplete"
    assert str(bulkquery.Resource(session)) == "Bulk(Query)"


def test_get_job(session, http, respond):
    respond(json_data=query_record(state="JobComplete", numberRecordsProcessed=10))

    job = bulkquery.Resource(session).get_job("750R0000000zhfdIAA")

    assert http.calls[0].url == JOB_URL
    assert job.state == "JobComplete"


def test_info_replaces_snapshot(job, respond):
    respond(json_data=query_record(state="InProgress", columnDelimiter="PIPE"))

    info = job.info()

    assert info.state == "InProgress"
    assert job.query_response.column_delimiter == "PIPE"
    assert job.delimiter() == "|"


def test_export_results_pagination(job, http, respond, tmp_path):
    respond(content=b'"Id"\n"001"\n"002"\n', headers={"Sforce-Locator": "MTAwMDA"})
    respond(content=b'"Id"\n"003"\n', headers={"Sforce-Locator": "null"})

    pages = []
    locator = ""
    while True:
        path = tmp_path / f"page{len(pages) + 1}.csv"
        locator = job.export_results(str(path), max_records=2, locator=locator)
        pages.append(path)
        if not locator:
            break

    assert len(pages) == 2
    assert http.calls[0].url == f"{JOB_URL}/results"
    assert http.calls[0].params == {"maxRecords": "2"}
    assert http.calls[1].params == {"locator": "MTAwMDA", "maxRecords": "2"}
    assert pages[0].read_bytes() == b'"Id"\n"001"\n"002"\n'
    assert pages[1].read_bytes() == b'"Id"\n"003"\n'


def test_export_results_no_params_and_missing_header(job, http, respond, tmp_path):
    respond(content=b"Id\n001\n")

    locator = job.export_results(str(tmp_path / "all.csv"))

    assert locator == ""
    assert http.calls[0].params == {}
    assert http.calls[0].headers["Accept"] == "text/csv"


def test_export_results_error(job, respond, tmp_path):
    respond(400, json_data=[{"errorCode": "INVALIDJOBSTATE", "message": "not complete"}])

    with pytest.raises(SalesforceAPIError):
        job.export_results(str(tmp_path / "x.csv"))

    assert not (tmp_path / "x.csv").exists()


def test_results_parses_page(job, respond):
    respond(content=b"Id,Name\n001,Acme\n", headers={"Sforce-Locator": "abc"})

    rows, locator = job.results(max_records=1)

    assert rows == [{"Id": "001", "Name": "Acme"}]
    assert locator == "abc"


def test_abort_and_delete(job, http, respond):
    respond(json_data=query_record(state="Aborted"))
    respond(204)

    job.abort()
    job.delete()

    assert json.loads(http.calls[0].data) == {"state": "Aborted"}
    assert http.calls[0].method == "PATCH"
    assert http.calls[1].method == "DELETE"
    assert job.state == "Aborted"


def test_delete_requires_204(job, respond):
    respond(404)

    with pytest.raises(JobError):
        job.delete()
