from __future__ import annotations

import io

import pytest

from conftest import catalog_document, machine_xml
from machine_index.engine.decoder import (
    MachineElement,
    Record,
    StreamDecoder,
    machine_to_record,
    normalize_year,
    year_timestamp,
)
from machine_index.errors import DecodeError, ProcessReadError, YearParseError


def _decode(document: str, chunk_size: int = 64 * 1024) -> list[Record]:
    return list(StreamDecoder(chunk_size=chunk_size).decode(io.BytesIO(document.encode("utf-8"))))


@pytest.mark.parametrize(
    ("attributes", "expected"),
    [
        ({}, True),
        ({"runnable": "no"}, False),
        ({"isbios": "yes"}, False),
        ({"isdevice": "yes"}, False),
        ({"ismechanical": "yes"}, False),
        ({"cloneof": "pacman"}, True),
    ],
)
def test_qualification_rule(attributes: dict[str, str], expected: bool) -> None:
    records = _decode(catalog_document([machine_xml("puckman", **attributes)]))
    assert bool(records) is expected


def test_missing_attributes_qualify() -> None:
    document = catalog_document(
        ['<machine name="bare"><description>Bare</description><year>1990</year></machine>']
    )
    records = _decode(document)
    assert [record.name for record in records] == ["bare"]
    assert records[0].manufacturer == ""
    assert records[0].driver_status == ""


def test_record_fields_are_mapped() -> None:
    document = catalog_document(
        [machine_xml("galaga", year="1981", description="Galaga", manufacturer="Namco", status="imperfect")]
    )
    (record,) = _decode(document)
    assert record == Record(
        name="galaga",
        description="Galaga",
        year="1981",
        timestamp="1981-01-01T00:00:00Z",
        manufacturer="Namco",
        driver_status="imperfect",
    )
    assert record.to_document()["driver_status"] == "imperfect"


@pytest.mark.parametrize(
    ("raw", "year", "timestamp"),
    [
        ("1980", 1980, "1980-01-01T00:00:00Z"),
        ("198?", 1980, "1980-01-01T00:00:00Z"),
        ("19??", 1900, "1900-01-01T00:00:00Z"),
        ("????", 0, "0000-01-01T00:00:00Z"),
    ],
)
def test_year_placeholders(raw: str, year: int, timestamp: str) -> None:
    assert normalize_year(raw) == year
    assert year_timestamp(year) == timestamp
    (record,) = _decode(catalog_document([machine_xml("m", year=raw)]))
    assert record.year == raw
    assert record.timestamp == timestamp


@pytest.mark.parametrize("raw", ["", "19x0", "circa 1980", "1980.5"])
def test_invalid_year_is_fatal(raw: str) -> None:
    with pytest.raises(YearParseError) as excinfo:
        machine_to_record(MachineElement(name="broken", year=raw))
    assert excinfo.value.raw == raw
    assert excinfo.value.name == "broken"


def test_invalid_year_inside_stream_raises() -> None:
    document = catalog_document([machine_xml("good"), machine_xml("bad", year="19x0")])
    records = StreamDecoder().decode(io.BytesIO(document.encode()))
    assert next(records).name == "good"
    with pytest.raises(YearParseError):
        next(records)


def test_document_order_and_filtering() -> None:
    document = catalog_document(
        [
            machine_xml("aa1"),
            machine_xml("aa2", isdevice="yes"),
            machine_xml("aa3"),
            machine_xml("aa4", isbios="yes"),
            machine_xml("aa5"),
        ]
    )
    assert [record.name for record in _decode(document)] == ["aa1", "aa3", "aa5"]


def test_tiny_chunks_decode_identically() -> None:
    document = catalog_document([machine_xml(f"m{index}", year="19?5") for index in range(20)])
    assert _decode(document, chunk_size=7) == _decode(document)


def test_elements_are_released_after_use() -> None:
    document = catalog_document([machine_xml(f"m{index}") for index in range(5)])
    machines = list(StreamDecoder(chunk_size=16).elements(io.BytesIO(document.encode())))
    assert [machine.name for machine in machines] == [f"m{index}" for index in range(5)]
    assert all(isinstance(machine, MachineElement) for machine in machines)


def test_empty_stream_yields_nothing() -> None:
    assert list(StreamDecoder().decode(io.BytesIO(b""))) == []


def test_whitespace_only_stream_yields_nothing() -> None:
    assert list(StreamDecoder(chunk_size=2).decode(io.BytesIO(b"\n  \n\t"))) == []


def test_leading_whitespace_before_document_is_ignored() -> None:
    document = "\n\n  " + catalog_document([machine_xml("galaga")])
    assert [record.name for record in _decode(document, chunk_size=3)] == ["galaga"]


def test_document_without_machines_yields_nothing() -> None:
    assert _decode('<?xml version="1.0"?>\n<mame build="0.250"></mame>\n') == []


def test_malformed_xml_raises_decode_error() -> None:
    with pytest.raises(DecodeError):
        _decode('<mame><machine name="a"><year>1980</year></mame>')


def test_truncated_document_raises_decode_error() -> None:
    document = catalog_document([machine_xml("a")])
    with pytest.raises(DecodeError):
        _decode(document[: len(document) // 2])


def test_machine_without_name_raises_decode_error() -> None:
    with pytest.raises(DecodeError):
        _decode(catalog_document(["<machine><year>1980</year></machine>"]))


def test_read_failure_raises_process_read_error() -> None:
    class BrokenStream(io.RawIOBase):
        def readable(self) -> bool:
            return True

        def read(self, size: int = -1) -> bytes:
            raise OSError("pipe broke")

    with pytest.raises(ProcessReadError):
        list(StreamDecoder().decode(BrokenStream()))


def test_chunk_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        StreamDecoder(chunk_size=0)


def test_negative_year_timestamp() -> None:
    assert normalize_year("-50") == -50
    assert year_timestamp(-50) == "-0050-01-01T00:00:00Z"
