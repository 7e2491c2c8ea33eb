"""A named, page-bounded slice of a book."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from booksplit.reporting import log

if TYPE_CHECKING:
    from booksplit.book import Book
    from booksplit.pdf_tools import Extractor

_LATEX_META_RE = re.compile(r"([#&%])")


def latex_escape(name: str) -> str:
    """Backslash-escape the LaTeX meta-characters # & %."""
    return _LATEX_META_RE.sub(r"\\\1", name)


@dataclass(eq=False, slots=True)
class Section:
    """One section of a book, identified by its first page.

    ``last_page`` is None until inferred from the next section (or left
    unset for a trailing single-page section). Sections compare by
    ``first_page`` only; equality and hashing stay identity based so two
    sections starting on the same page remain distinct.
    """

    name: str
    book: Book = field(repr=False)
    first_page: int
    last_page: int | None = None
    latex_name: str = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.latex_name = latex_escape(self.name)
        if self.first_page < 1:
            raise ValueError(f"first_page must be >= 1, got {self.first_page}")
        if self.last_page is not None and self.last_page < self.first_page:
            raise ValueError(
                f"last_page {self.last_page} is before first_page {self.first_page}"
            )

    def __lt__(self, other: Section) -> bool:
        return self.first_page < other.first_page

    def pages(self) -> list[int] | range:
        """Inclusive page numbers covered by this section."""
        if self.last_page is None or self.last_page == self.first_page:
            return [self.first_page]
        return range(self.first_page, self.last_page + 1)

    def is_single_page(self) -> bool:
        return self.last_page is None or self.last_page == self.first_page

    def pages_string(self) -> str:
        if self.is_single_page():
            return str(self.first_page)
        return f"{self.first_page}-{self.last_page}"

    def pages_label(self) -> str:
        """Compact label: p7 for one page, pp7-12 for a range."""
        return ("p" if self.is_single_page() else "pp") + self.pages_string()

    def output_filename(self) -> str:
        filename = f"{self.name} ({self.book.name} {self.pages_label()}).pdf"
        return filename.replace("/", "_")

    def extract(self, output_dir: Path, extractor: Extractor, *, verbose: bool = True) -> str:
        """Write this section's pages to ``output_dir``.

        Returns "exists" when the target file is already present (nothing is
        run), otherwise "extracted".
        """
        filename = self.output_filename()
        outfile = output_dir / filename
        if outfile.exists():
            if verbose:
                log(f"  exists:    {filename}")
            return "exists"

        last = self.last_page if self.last_page is not None else self.first_page
        extractor(self.book.path, self.first_page, last, outfile)
        if verbose:
            log(f"  extracted: {filename}")
        return "extracted"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "latex_name": self.latex_name,
            "first_page": self.first_page,
            "last_page": self.last_page,
            "pages": self.pages_label(),
            "filename": self.output_filename(),
        }
