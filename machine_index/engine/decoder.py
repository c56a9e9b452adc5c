"""Incremental decoding of the catalog tool's machine XML."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import IO, Iterator

from lxml import etree

from ..errors import DecodeError, ProcessReadError, YearParseError

MACHINE_TAG = "machine"
YEAR_PLACEHOLDER = "?"
_YEAR_PATTERN = re.compile(r"[+-]?\d+")


@dataclass(slots=True, frozen=True)
class Record:
    """One indexed catalog entry."""

    name: str
    description: str
    year: str
    timestamp: str
    manufacturer: str
    driver_status: str

    def to_document(self) -> dict[str, str]:
        return asdict(self)


@dataclass(slots=True)
class MachineElement:
    """Raw ``machine`` element as emitted by the catalog tool."""

    name: str
    is_bios: str = ""
    is_device: str = ""
    is_mechanical: str = ""
    runnable: str = ""
    clone_of: str = ""
    sample_of: str = ""
    description: str = ""
    year: str = ""
    manufacturer: str = ""
    driver_status: str = ""

    @classmethod
    def from_element(cls, element: etree._Element) -> "MachineElement":
        name = element.get("name")
        if not name:
            line = getattr(element, "sourceline", None)
            raise DecodeError(f"machine element without a name attribute (line {line})")
        driver = element.find("driver")
        return cls(
            name=name,
            is_bios=element.get("isbios", ""),
            is_device=element.get("isdevice", ""),
            is_mechanical=element.get("ismechanical", ""),
            runnable=element.get("runnable", ""),
            clone_of=element.get("cloneof", ""),
            sample_of=element.get("sampleof", ""),
            description=element.findtext("description", default=""),
            year=element.findtext("year", default=""),
            manufacturer=element.findtext("manufacturer", default=""),
            driver_status=driver.get("status", "") if driver is not None else "",
        )

    def qualifies(self) -> bool:
        """True for runnable games; BIOS sets, devices and mechanical units are skipped."""

        return not (
            self.runnable == "no"
            or self.is_bios == "yes"
            or self.is_device == "yes"
            or self.is_mechanical == "yes"
        )


def normalize_year(raw: str, name: str | None = None) -> int:
    """Replace unknown digits with ``0`` and parse the result."""

    normalized = raw.replace(YEAR_PLACEHOLDER, "0")
    if not _YEAR_PATTERN.fullmatch(normalized):
        raise YearParseError(raw, name)
    return int(normalized)


def year_timestamp(year: int) -> str:
    """ISO-8601 UTC timestamp for January 1st of ``year``."""

    sign = "-" if year < 0 else ""
    return f"{sign}{abs(year):04d}-01-01T00:00:00Z"


def machine_to_record(machine: MachineElement) -> Record:
    year = normalize_year(machine.year, machine.name)
    return Record(
        name=machine.name,
        description=machine.description,
        year=machine.year,
        timestamp=year_timestamp(year),
        manufacturer=machine.manufacturer,
        driver_status=machine.driver_status,
    )


class StreamDecoder:
    """Pull XML from a byte stream and emit qualifying records.

    The stream is read ``chunk_size`` bytes at a time and each finished
    ``machine`` element is released once converted, so memory stays bounded
    by a single element no matter how large the document is.
    """

    def __init__(self, chunk_size: int = 64 * 1024, tag: str = MACHINE_TAG) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self.chunk_size = chunk_size
        self.tag = tag

    def decode(self, stream: IO[bytes]) -> Iterator[Record]:
        for machine in self.elements(stream):
            if machine.qualifies():
                yield machine_to_record(machine)

    def elements(self, stream: IO[bytes]) -> Iterator[MachineElement]:
        """Yield every ``machine`` element in document order, unfiltered."""

        parser = etree.XMLPullParser(events=("end",), tag=self.tag)
        fed = False
        while True:
            try:
                chunk = stream.read(self.chunk_size)
            except OSError as exc:
                raise ProcessReadError(f"failed reading catalog output: {exc}") from exc
            if not chunk:
                break
            if not fed:
                # Whitespace before the document is not XML; output of only
                # whitespace counts as empty.
                chunk = chunk.lstrip()
                if not chunk:
                    continue
                fed = True
            try:
                parser.feed(chunk)
            except etree.XMLSyntaxError as exc:
                raise DecodeError(f"malformed catalog XML: {exc}") from exc
            yield from self._drain(parser)
        if not fed:
            return
        try:
            parser.close()
        except etree.XMLSyntaxError as exc:
            raise DecodeError(f"malformed catalog XML: {exc}") from exc
        yield from self._drain(parser)

    def _drain(self, parser: etree.XMLPullParser) -> Iterator[MachineElement]:
        try:
            events = list(parser.read_events())
        except etree.XMLSyntaxError as exc:
            raise DecodeError(f"malformed catalog XML: {exc}") from exc
        for _event, element in events:
            machine = MachineElement.from_element(element)
            _release(element)
            yield machine


def _release(element: etree._Element) -> None:
    element.clear(keep_tail=True)
    parent = element.getparent()
    if parent is None:
        return
    while element.getprevious() is not None:
        del parent[0]


__all__ = [
    "MachineElement",
    "Record",
    "StreamDecoder",
    "machine_to_record",
    "normalize_year",
    "year_timestamp",
]
