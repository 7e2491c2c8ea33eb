"""Reader for hand-written section index files.

Index format (one section per line)::

    # comment lines and blank lines are ignored
    "Intro",1,5
    "Chapter 1: Setup, Tools",6
    "Appendix",40,44

Fields are ``name,first_page[,last_page]`` with CSV quoting so names may
contain commas. A malformed line aborts the whole read; a non-numeric first
page only skips that line with a warning.
"""
from __future__ import annotations

import csv
import re
from dataclasses import dataclass
from pathlib import Path

from booksplit.config import DEFAULT_COMMENT_PATTERN
from booksplit.errors import IndexFormatError, IndexReadError
from booksplit.reporting import warn

_PAGE_RE = re.compile(r"^\d+$")


@dataclass(frozen=True, slots=True)
class IndexEntry:
    """One data line of an index file."""

    name: str
    first_page: int
    last_page: int | None
    line_no: int


def tokenize_line(index_path: Path, line_no: int, line: str) -> list[str]:
    """Split one index line into stripped CSV fields.

    Raises IndexFormatError on bad quoting or more than three fields.
    """
    try:
        rows = list(csv.reader([line], strict=True, skipinitialspace=True))
    except csv.Error as exc:
        raise IndexFormatError(index_path, line_no, line, str(exc)) from exc
    if len(rows) != 1:
        raise IndexFormatError(index_path, line_no, line, "expected exactly one record")
    fields = [f.strip() for f in rows[0]]
    if len(fields) > 3:
        raise IndexFormatError(
            index_path, line_no, line, f"expected at most 3 fields, got {len(fields)}"
        )
    return fields


def parse_line(
    index_path: Path,
    line_no: int,
    line: str,
    *,
    verbose: bool = True,
) -> IndexEntry | None:
    """Parse one non-comment line; None means "skip this line"."""
    fields = tokenize_line(index_path, line_no, line)
    name = fields[0] if fields else ""
    first = fields[1] if len(fields) > 1 else ""
    last = fields[2] if len(fields) > 2 else ""

    if not _PAGE_RE.match(first):
        if verbose:
            warn(f"Invalid first page '{first}' for '{name}'; skipping")
        return None

    last_page: int | None = None
    if last:
        if not _PAGE_RE.match(last):
            raise IndexFormatError(
                index_path, line_no, line, f"invalid last page '{last}'"
            )
        last_page = int(last)

    first_page = int(first)
    if first_page < 1:
        raise IndexFormatError(
            index_path, line_no, line, f"first page must be >= 1, got {first_page}"
        )
    if last_page is not None and last_page < first_page:
        raise IndexFormatError(
            index_path, line_no, line,
            f"last page {last_page} comes before first page {first_page}",
        )

    return IndexEntry(
        name=name,
        first_page=first_page,
        last_page=last_page,
        line_no=line_no,
    )


def read_index(
    index_path: Path,
    *,
    comment_re: re.Pattern[str] | None = None,
    verbose: bool = True,
) -> list[IndexEntry]:
    """Read every data line of ``index_path`` in file order."""
    pattern = comment_re or re.compile(DEFAULT_COMMENT_PATTERN)
    entries: list[IndexEntry] = []
    try:
        text = index_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise IndexReadError(index_path, str(exc)) from exc
    for line_no, line in enumerate(text.split("\n"), start=1):
        if pattern.match(line):
            continue
        entry = parse_line(index_path, line_no, line, verbose=verbose)
        if entry is not None:
            entries.append(entry)
    return entries
