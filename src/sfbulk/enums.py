"""Bulk API 2.0 enumerations.

All members are ``str`` enums so they compare equal to the raw strings the
server returns and serialize without conversion.
"""

from __future__ import annotations

from enum import Enum


class ColumnDelimiter(str, Enum):
    BACKQUOTE = "BACKQUOTE"
    CARET = "CARET"
    COMMA = "COMMA"
    PIPE = "PIPE"
    SEMICOLON = "SEMICOLON"
    TAB = "TAB"


class ContentType(str, Enum):
    CSV = "CSV"


class LineEnding(str, Enum):
    LF = "LF"
    CRLF = "CRLF"


class Operation(str, Enum):
    INSERT = "insert"
    DELETE = "delete"
    HARD_DELETE = "hardDelete"
    UPDATE = "update"
    UPSERT = "upsert"


class QueryOperation(str, Enum):
    # queryAll also returns deleted/merged records and archived Task/Event rows
    QUERY = "query"
    QUERY_ALL = "queryAll"


class State(str, Enum):
    OPEN = "Open"
    UPLOAD_COMPLETE = "UploadComplete"
    IN_PROGRESS = "InProgress"
    ABORTED = "Aborted"
    JOB_COMPLETE = "JobComplete"
    FAILED = "Failed"


class JobType(str, Enum):
    BIG_OBJECTS = "BigObjectIngest"
    CLASSIC = "Classic"
    V2_INGEST = "V2Ingest"
    V2_QUERY = "V2Query"


class ConcurrencyMode(str, Enum):
    PARALLEL = "Parallel"
    SERIAL = "Serial"


# Plain strings: Enum members hash by name, so they would not match server values in a set.
TERMINAL_STATES = frozenset(s.value for s in (State.ABORTED, State.JOB_COMPLETE, State.FAILED))
