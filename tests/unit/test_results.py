"""Tests for sfbulk.results (CSV result parsing)."""

import io

import pytest

from sfbulk.enums import ColumnDelimiter
from sfbulk.exceptions import DecodeError
from sfbulk.results import (
    FailedRecord,
    SuccessfulRecord,
    UnprocessedRecord,
    delimiter_for,
    parse_failed_results,
    parse_rows,
    parse_successful_results,
    parse_unprocessed_records,
)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("BACKQUOTE", "`"),
        ("CARET", "^"),
        ("COMMA", ","),
        ("PIPE", "|"),
        ("SEMICOLON", ";"),
        ("TAB", "\t"),
        (ColumnDelimiter.PIPE, "|"),
        ("", ","),
        (None, ","),
        ("COLON", ","),
        ("pipe", ","),
    ],
)
def test_delimiter_for(name, expected):
    assert delimiter_for(name) == expected


class TestSuccessfulResults:
    def test_single_row(self):
        records = parse_successful_results("sf__Id,sf__Created,Name\n001,true,Acme\n")

        assert records == [SuccessfulRecord(fields={"Name": "Acme"}, id="001", created=True)]

    def test_created_flag_literals(self):
        data = "sf__Id,sf__Created,Name\n001,1,A\n002,F,B\n003,False,C\n"

        records = parse_successful_results(data)

        assert [r.created for r in records] == [True, False, False]

    def test_invalid_created_flag_fails_whole_parse(self):
        data = "sf__Id,sf__Created,Name\n001,true,Acme\n002,yes,Other\n"

        with pytest.raises(DecodeError, match="sf__Created"):
            parse_successful_results(data)

    def test_fields_keep_header_order(self):
        data = "sf__Id,sf__Created,Name,Industry,Phone\n001,false,Acme,Retail,555\n"

        (record,) = parse_successful_results(data)

        assert list(record.fields) == ["Name", "Industry", "Phone"]
        assert record.fields["Phone"] == "555"

    def test_missing_reserved_column(self):
        with pytest.raises(DecodeError, match="sf__Created"):
            parse_successful_results("sf__Id,Name,Other\n001,Acme,x\n")

    def test_header_only(self):
        assert parse_successful_results("sf__Id,sf__Created,Name\n") == []

    def test_bytes_with_bom_and_crlf(self):
        data = "\ufeffsf__Id,sf__Created,Name\r\n001,true,Acme\r\n".encode("utf-8")

        records = parse_successful_results(data)

        assert records[0].id == "001"
        assert records[0].fields == {"Name": "Acme"}


class TestFailedResults:
    def test_parse(self):
        data = (
            'sf__Id,sf__Error,Name\n'
            ',REQUIRED_FIELD_MISSING:Required fields are missing: [Name]:Name --,""\n'
            '001,"DUPLICATE_VALUE:duplicate value found, id 001",Acme\n'
        )

        records = parse_failed_results(io.StringIO(data, newline=""))

        assert len(records) == 2
        assert records[0] == FailedRecord(
            fields={"Name": ""},
            id="",
            error="REQUIRED_FIELD_MISSING:Required fields are missing: [Name]:Name --",
        )
        assert records[1].error == "DUPLICATE_VALUE:duplicate value found, id 001"

    def test_pipe_delimiter(self):
        data = "sf__Id|sf__Error|Name|Description\n001|BAD|Acme|a,b\n"

        (record,) = parse_failed_results(data, "|")

        assert record.fields == {"Name": "Acme", "Description": "a,b"}


class TestUnprocessedRecords:
    def test_all_columns_are_fields(self):
        data = "Name,Phone\nAcme,555\nGlobex,556\n"

        records = parse_unprocessed_records(data)

        assert records == [
            UnprocessedRecord(fields={"Name": "Acme", "Phone": "555"}),
            UnprocessedRecord(fields={"Name": "Globex", "Phone": "556"}),
        ]

    def test_quoted_newline_and_tab_delimiter(self):
        data = 'Name\tDescription\nAcme\t"line one\nline two"\n'

        records = parse_unprocessed_records(data, "\t")

        assert records[0].fields["Description"] == "line one\nline two"


class TestMalformedInput:
    def test_short_row_discards_everything(self):
        data = "sf__Id,sf__Created,Name\n001,true,Acme\n002,true\n"

        with pytest.raises(DecodeError, match="expected 3 fields"):
            parse_successful_results(data)

    def test_long_row(self):
        with pytest.raises(DecodeError):
            parse_rows("A,B\n1,2,3\n")

    def test_bad_quoting(self):
        with pytest.raises(DecodeError):
            parse_rows('A,B\n"unterminated,2\n')

    def test_empty_input(self):
        with pytest.raises(DecodeError, match="missing header"):
            parse_rows(b"")

    def test_blank_lines_are_skipped(self):
        assert parse_rows("A,B\n1,2\n\n3,4\n") == [{"A": "1", "B": "2"}, {"A": "3", "B": "4"}]

    def test_invalid_utf8_bytes(self):
        with pytest.raises(DecodeError):
            parse_successful_results(b"sf__Id,sf__Created,Name\n001,true,\xff\xfe\n")

    def test_invalid_utf8_binary_stream(self):
        with pytest.raises(DecodeError):
            parse_rows(io.BytesIO(b"A,B\n1,\xff\n"))

    def test_duplicate_header_columns(self):
        with pytest.raises(DecodeError, match="repeats column"):
            parse_rows("Name,Phone,Name\nAcme,555,Other\n")
