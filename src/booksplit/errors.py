"""Error hierarchy for index parsing, page-range validation and PDF tools.

Library code raises these; only the CLI turns them into an exit status.
"""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from booksplit.section import Section


class BookSplitError(RuntimeError):
    """Base class for every fatal booksplit failure."""


class IndexFormatError(BookSplitError):
    """Raised when an index line cannot be tokenized into a section record."""

    def __init__(self, index_path: Path, line_no: int, line: str, reason: str) -> None:
        self.index_path = index_path
        self.line_no = line_no
        self.line = line
        self.reason = reason
        super().__init__(
            f"Failed to parse line {line_no} of {index_path} ({reason}):\n[{line}]"
        )


class IndexReadError(BookSplitError):
    """Raised when an index file cannot be opened or decoded."""

    def __init__(self, index_path: Path, reason: str) -> None:
        self.index_path = index_path
        self.reason = reason
        super().__init__(f"Cannot read index {index_path}: {reason}")


class ImplausibleGapError(BookSplitError):
    """Raised when an inferred section would span more pages than allowed."""

    def __init__(self, book_name: str, this: Section, following: Section, max_gap: int) -> None:
        self.book_name = book_name
        self.section = this
        self.next_section = following
        self.max_gap = max_gap
        super().__init__(
            f"{this.name} p{this.first_page} in {book_name} followed by "
            f"{following.name} p{following.first_page} "
            f"(gap {following.first_page - this.first_page} > {max_gap})"
        )


class PageOverflowError(BookSplitError):
    """Raised when sections claim pages past the end of the document.

    ``offenders`` maps each offending section to every page it claims
    beyond ``total_pages``, in page order.
    """

    def __init__(
        self,
        book_name: str,
        total_pages: int,
        offenders: dict[Section, list[int]],
    ) -> None:
        self.book_name = book_name
        self.total_pages = total_pages
        self.offenders = offenders
        lines = [f"Sections with pages too high in {book_name} (last page {total_pages}):"]
        for section, pages in offenders.items():
            lines.append(f"  {section.name}: " + ", ".join(str(p) for p in pages))
        super().__init__("\n".join(lines))


class ExternalToolError(BookSplitError):
    """Raised when pdfinfo, pdfjam or the pypdf backend fails."""

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self.command = command or []
        self.stdout = stdout
        self.stderr = stderr
        parts = [message]
        if stdout or stderr:
            parts.append("-" * 70)
            parts.append(f"STDOUT:\n{stdout}")
            parts.append(f"STDERR:\n{stderr}")
        super().__init__("\n".join(parts))
