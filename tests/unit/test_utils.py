# tests/unit/test_utils.py
from dataclasses import dataclass

import pytest

from sfbulk.enums import ColumnDelimiter
from sfbulk.exceptions import DecodeError
from sfbulk.utils import (
    camel_to_snake,
    ensure_dir,
    from_payload,
    snake_to_camel,
    stream_to_file,
    to_payload,
)


@dataclass
class Sample:
    column_delimiter: str = ""
    number_records_processed: int = 0
    external_id_field_name: str = ""


def test_ensure_dir_idempotent(tmp_path):
    d = tmp_path / "a" / "b"
    ensure_dir(str(d))
    assert d.exists() and d.is_dir()
    # second call should be a no-op
    ensure_dir(str(d))
    assert d.exists() and d.is_dir()


def test_case_conversion():
    assert camel_to_snake("numberRecordsProcessed") == "number_records_processed"
    assert camel_to_snake("id") == "id"
    assert snake_to_camel("external_id_field_name") == "externalIdFieldName"
    assert snake_to_camel("object") == "object"


def test_from_payload_drops_unknown_and_null():
    obj = from_payload(
        Sample,
        {"columnDelimiter": "PIPE", "numberRecordsProcessed": 7, "externalIdFieldName": None, "newField": 1},
    )
    assert obj == Sample(column_delimiter="PIPE", number_records_processed=7)


def test_to_payload_omits_empty_and_unwraps_enums():
    payload = to_payload(Sample(column_delimiter=ColumnDelimiter.TAB, number_records_processed=0))
    assert payload == {"columnDelimiter": "TAB", "numberRecordsProcessed": 0}


def test_stream_to_file(tmp_path, respond):
    target = tmp_path / "nested" / "out.csv"
    written = stream_to_file(respond(content=b"Id\n001\n002\n"), str(target))
    assert written == 11
    assert target.read_bytes() == b"Id\n001\n002\n"


def test_from_payload_rejects_non_objects():
    with pytest.raises(DecodeError, match="expected a JSON object"):
        from_payload(Sample, [])
    with pytest.raises(DecodeError):
        from_payload(Sample, None)
