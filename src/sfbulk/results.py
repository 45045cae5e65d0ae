"""CSV result sets returned by bulk jobs.

Successful and failed result files carry two reserved metadata columns
(``sf__Id`` plus ``sf__Created`` or ``sf__Error``) before the uploaded
field values; unprocessed-record and query result files carry only field
values. A parse is all-or-nothing: any malformed row raises
:class:`~sfbulk.exceptions.DecodeError` and no records are returned.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from typing import IO, Dict, Iterator, List, Optional, Union

from .enums import ColumnDelimiter
from .exceptions import DecodeError

SF_ID = "sf__Id"
SF_ERROR = "sf__Error"
SF_CREATED = "sf__Created"

# Columns reserved for metadata at the start of successful/failed result rows.
RESULT_FIELD_OFFSET = 2

DELIMITERS: Dict[str, str] = {
    ColumnDelimiter.BACKQUOTE.value: "`",
    ColumnDelimiter.CARET.value: "^",
    ColumnDelimiter.COMMA.value: ",",
    ColumnDelimiter.PIPE.value: "|",
    ColumnDelimiter.SEMICOLON.value: ";",
    ColumnDelimiter.TAB.value: "\t",
}

_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE = frozenset({"0", "f", "F", "FALSE", "false", "False"})

Source = Union[str, bytes, IO[str], IO[bytes]]


@dataclass
class UnprocessedRecord:
    fields: Dict[str, str]


@dataclass
class JobRecord(UnprocessedRecord):
    id: str


@dataclass
class SuccessfulRecord(JobRecord):
    created: bool


@dataclass
class FailedRecord(JobRecord):
    error: str


def delimiter_for(name: Optional[Union[str, ColumnDelimiter]]) -> str:
    """Map a job's ``columnDelimiter`` name to its character; default comma."""
    if isinstance(name, ColumnDelimiter):
        name = name.value
    return DELIMITERS.get(name or "", ",")


def parse_bool(value: str) -> bool:
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise DecodeError(f"invalid boolean value {value!r} in {SF_CREATED} column")


def header_position(column: str, header: List[str]) -> int:
    """Index of ``column`` in ``header``; a missing column is a decode error."""
    try:
        return header.index(column)
    except ValueError:
        raise DecodeError(f"result header has no {column} column: {header}") from None


def _text_stream(source: Source) -> IO[str]:
    if isinstance(source, bytes):
        return io.StringIO(source.decode("utf-8-sig"), newline="")
    if isinstance(source, str):
        return io.StringIO(source, newline="")
    if isinstance(source, io.TextIOBase):
        return source  # type: ignore[return-value]
    return io.TextIOWrapper(source, encoding="utf-8-sig", newline="")  # type: ignore[arg-type]


def _rows(source: Source, delimiter: str) -> Iterator[List[str]]:
    """Yield the header then each data row, enforcing a constant column count.

    Blank lines are skipped. Duplicate header names are rejected.
    """
    reader = None
    try:
        reader = csv.reader(_text_stream(source), delimiter=delimiter, strict=True)
        header = next(reader, None)
        if header is None:
            raise DecodeError("result set is empty: missing header row")
        if header and header[0].startswith("\ufeff"):
            header[0] = header[0][1:]
        duplicates = sorted({name for name in header if header.count(name) > 1})
        if duplicates:
            raise DecodeError(f"result header repeats column(s): {', '.join(duplicates)}")
        yield header
        for values in reader:
            if not values:
                continue
            if len(values) != len(header):
                raise DecodeError(
                    f"line {reader.line_num}: expected {len(header)} fields, got {len(values)}"
                )
            yield values
    except (csv.Error, UnicodeDecodeError) as e:
        line = reader.line_num if reader is not None else 0
        raise DecodeError(f"line {line}: {e}") from e


def _record(fields: List[str], values: List[str]) -> Dict[str, str]:
    return dict(zip(fields, values))


def parse_successful_results(source: Source, delimiter: str = ",") -> List[SuccessfulRecord]:
    rows = _rows(source, delimiter)
    header = next(rows)
    id_idx = header_position(SF_ID, header)
    created_idx = header_position(SF_CREATED, header)
    fields = header[RESULT_FIELD_OFFSET:]

    records: List[SuccessfulRecord] = []
    for values in rows:
        records.append(
            SuccessfulRecord(
                fields=_record(fields, values[RESULT_FIELD_OFFSET:]),
                id=values[id_idx],
                created=parse_bool(values[created_idx]),
            )
        )
    return records


def parse_failed_results(source: Source, delimiter: str = ",") -> List[FailedRecord]:
    rows = _rows(source, delimiter)
    header = next(rows)
    id_idx = header_position(SF_ID, header)
    error_idx = header_position(SF_ERROR, header)
    fields = header[RESULT_FIELD_OFFSET:]

    records: List[FailedRecord] = []
    for values in rows:
        records.append(
            FailedRecord(
                fields=_record(fields, values[RESULT_FIELD_OFFSET:]),
                id=values[id_idx],
                error=values[error_idx],
            )
        )
    return records


def parse_unprocessed_records(source: Source, delimiter: str = ",") -> List[UnprocessedRecord]:
    return [UnprocessedRecord(fields=row) for row in parse_rows(source, delimiter)]


def parse_rows(source: Source, delimiter: str = ",") -> List[Dict[str, str]]:
    """Plain CSV rows keyed by header name (query results, unprocessed records)."""
    rows = _rows(source, delimiter)
    header = next(rows)
    return [_record(header, values) for values in rows]
