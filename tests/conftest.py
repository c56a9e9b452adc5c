"""Pytest configuration providing a scriptable fake catalog tool and shared fixtures."""

from __future__ import annotations

import stat
import sys
import textwrap
from pathlib import Path
from typing import Any, Iterable

import pytest

from machine_index.config import IndexerConfig

FAKE_TOOL_SOURCE = textwrap.dedent(
    """
    import sys
    from pathlib import Path


    def emit(path, exit_path):
        if not path.exists():
            sys.stderr.write("no machines match " + path.stem + "\\n")
            return 1
        sys.stdout.buffer.write(path.read_bytes())
        sys.stdout.buffer.flush()
        if exit_path.exists():
            sys.stderr.write("simulated failure\\n")
            return int(exit_path.read_text())
        return 0


    def main(argv):
        root = Path(argv[argv.index("-rootpath") + 1])
        with (root / "calls.log").open("a", encoding="utf-8") as log:
            log.write(" ".join(argv) + "\\n")
        if "-ll" in argv:
            return emit(root / "listing.txt", root / "listing.exit")
        prefix = argv[argv.index("-lx") + 1].rstrip("*")
        details = root / "details"
        return emit(details / (prefix + ".xml"), details / (prefix + ".exit"))


    sys.exit(main(sys.argv[1:]))
    """
)

LISTING_HEADER = "Name:             Description:"


def machine_xml(
    name: str,
    *,
    year: str = "1980",
    description: str | None = None,
    manufacturer: str = "Namco",
    status: str = "good",
    isbios: str = "no",
    isdevice: str = "no",
    ismechanical: str = "no",
    runnable: str = "yes",
    cloneof: str | None = None,
) -> str:
    clone = f' cloneof="{cloneof}"' if cloneof else ""
    return (
        f'<machine name="{name}" isbios="{isbios}" isdevice="{isdevice}" '
        f'ismechanical="{ismechanical}" runnable="{runnable}"{clone}>'
        f"<description>{description or name.title()}</description>"
        f"<year>{year}</year>"
        f"<manufacturer>{manufacturer}</manufacturer>"
        f'<driver status="{status}" emulation="{status}" savestate="supported"/>'
        "</machine>"
    )


def catalog_document(machines: Iterable[str]) -> str:
    body = "\n\t".join(machines)
    return (
        '<?xml version="1.0"?>\n'
        "<!DOCTYPE mame [\n"
        "<!ELEMENT mame (machine+)>\n"
        "<!ATTLIST mame build CDATA #IMPLIED>\n"
        "]>\n"
        f'<mame build="0.250" debug="no" mameconfig="10">\n\t{body}\n</mame>\n'
    )


class FakeCatalog:
    """Fixture files and a launcher script standing in for the catalog tool."""

    def __init__(self, base: Path) -> None:
        self.root = base / "roms"
        self.details = self.root / "details"
        self.details.mkdir(parents=True)
        script = base / "fake_tool.py"
        script.write_text(FAKE_TOOL_SOURCE, encoding="utf-8")
        self.binary = base / "fake-mame"
        self.binary.write_text(
            f'#!/bin/sh\nexec "{sys.executable}" "{script}" "$@"\n', encoding="utf-8"
        )
        self.binary.chmod(self.binary.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        self.index_path = base / "index" / "machines.db"

    def listing(self, names: Iterable[str], *, exit_code: int = 0) -> None:
        lines = [LISTING_HEADER] + [f'{name:<18}"{name.title()}"' for name in names]
        (self.root / "listing.txt").write_text("\n".join(lines) + "\n", encoding="utf-8")
        if exit_code:
            (self.root / "listing.exit").write_text(str(exit_code), encoding="utf-8")

    def detail(self, prefix: str, machines: Iterable[str], *, exit_code: int = 0) -> None:
        (self.details / f"{prefix}.xml").write_text(catalog_document(machines), encoding="utf-8")
        if exit_code:
            (self.details / f"{prefix}.exit").write_text(str(exit_code), encoding="utf-8")

    def raw_detail(self, prefix: str, payload: bytes) -> None:
        (self.details / f"{prefix}.xml").write_bytes(payload)

    def config(self, **overrides: Any) -> IndexerConfig:
        base: dict[str, Any] = {
            "binary_path": self.binary,
            "root_data_path": self.root,
            "index_path": self.index_path,
            "parallelism": 2,
            "channel_capacity": 4,
        }
        base.update(overrides)
        return IndexerConfig(**base)

    def calls(self) -> list[list[str]]:
        log = self.root / "calls.log"
        if not log.exists():
            return []
        return [line.split() for line in log.read_text(encoding="utf-8").splitlines()]


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    monkeypatch.setenv("MACHINE_INDEX_HOME", str(home))
    return home


@pytest.fixture
def fake_catalog(tmp_path: Path) -> FakeCatalog:
    return FakeCatalog(tmp_path)
