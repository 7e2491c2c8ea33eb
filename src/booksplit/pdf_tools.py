"""Page counting and page-range extraction backends.

Two backends are available:

    poppler -- ``pdfinfo`` for the page count, ``pdfjam`` for extraction
               (external processes, output captured)
    pypdf   -- both operations in-process with pypdf

Every failure surfaces as ExternalToolError. Nothing is retried: these are
deterministic local calls.
"""
from __future__ import annotations

import re
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeAlias

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from booksplit.errors import ExternalToolError

PageCounter: TypeAlias = Callable[[Path], int]
Extractor: TypeAlias = Callable[[Path, int, int, Path], None]

_PDFINFO_PAGES_RE = re.compile(r"^Pages:\s+(\d+)$", re.MULTILINE)


@dataclass(frozen=True, slots=True)
class ToolResult:
    command: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_tool(cmd: list[str]) -> ToolResult:
    """Run an external command to completion, capturing its output."""
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise ExternalToolError(f"{cmd[0]} could not be started: {exc}", command=cmd) from exc
    return ToolResult(
        command=cmd,
        returncode=proc.returncode,
        stdout=proc.stdout,
        stderr=proc.stderr,
    )


def parse_pdfinfo_pages(output: str) -> int | None:
    """Pull the page count out of ``pdfinfo`` output, or None if absent."""
    m = _PDFINFO_PAGES_RE.search(output)
    return int(m.group(1)) if m else None


def pdfinfo_page_count(path: Path) -> int:
    result = run_tool(["pdfinfo", str(path)])
    if not result.ok:
        raise ExternalToolError(
            f"pdfinfo {path} failed",
            command=result.command,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    pages = parse_pdfinfo_pages(result.stdout)
    if pages is None:
        raise ExternalToolError(
            f"pdfinfo {path} didn't return last page",
            command=result.command,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    return pages


def pdfjam_extract(path: Path, first_page: int, last_page: int, outfile: Path) -> None:
    cmd = ["pdfjam", str(path), f"{first_page}-{last_page}", "-o", str(outfile)]
    result = run_tool(cmd)
    if not result.ok:
        raise ExternalToolError(
            f"pdfjam failed with args {cmd[1:]}",
            command=cmd,
            stdout=result.stdout,
            stderr=result.stderr,
        )


def pypdf_page_count(path: Path) -> int:
    try:
        return len(PdfReader(path).pages)
    except (OSError, PyPdfError) as exc:
        raise ExternalToolError(f"pypdf could not read {path}: {exc}") from exc


def pypdf_extract(path: Path, first_page: int, last_page: int, outfile: Path) -> None:
    """Copy pages ``first_page..last_page`` (1-based, inclusive) to ``outfile``."""
    try:
        reader = PdfReader(path)
        total = len(reader.pages)
        if first_page < 1 or last_page > total or first_page > last_page:
            raise ExternalToolError(
                f"pypdf cannot extract {first_page}-{last_page} from {path} ({total} pages)"
            )
        writer = PdfWriter()
        for idx in range(first_page - 1, last_page):
            writer.add_page(reader.pages[idx])
        with open(outfile, "wb") as f:
            writer.write(f)
    except (OSError, PyPdfError) as exc:
        raise ExternalToolError(
            f"pypdf failed extracting {first_page}-{last_page} from {path}: {exc}"
        ) from exc


@dataclass(frozen=True, slots=True)
class PdfBackend:
    name: str
    page_count: PageCounter
    extract: Extractor


BACKENDS: dict[str, PdfBackend] = {
    "poppler": PdfBackend("poppler", pdfinfo_page_count, pdfjam_extract),
    "pypdf": PdfBackend("pypdf", pypdf_page_count, pypdf_extract),
}


def get_backend(name: str) -> PdfBackend:
    try:
        return BACKENDS[name]
    except KeyError:
        raise ValueError(
            f"Unknown PDF backend {name!r}; expected one of {sorted(BACKENDS)}"
        ) from None
