"""Book: a source PDF plus its validated, page-ranged sections.

Construction runs the whole pipeline and either returns a consistent Book
or raises:

    1. read the index into Sections, stable-sorted by first page
    2. ask the page counter for the document's page count (once)
    3. infer unset last pages from each section's successor
    4. apply the trailing-section policy to the final section
    5. build the page -> sections coverage map
    6. reject sections that run past the last page (one batched report)

``explode`` then writes one PDF per section and is safe to re-run.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from booksplit.config import TRAILING_EXTEND_TO_END, SplitConfig
from booksplit.errors import ExternalToolError, ImplausibleGapError, PageOverflowError
from booksplit.index_file import read_index
from booksplit.pdf_tools import Extractor, PageCounter, get_backend
from booksplit.reporting import log
from booksplit.section import Section

_PDF_SUFFIX_RE = re.compile(r"\.pdf$")


@dataclass(slots=True)
class ExplodeResult:
    """What one explode run did, in section order."""

    output_dir: Path
    extracted: list[str] = field(default_factory=list[str])
    existing: list[str] = field(default_factory=list[str])

    def to_dict(self) -> dict[str, Any]:
        return {
            "output_dir": str(self.output_dir),
            "extracted": list(self.extracted),
            "existing": list(self.existing),
        }


class Book:
    """A PDF split into named sections by a hand-authored index."""

    def __init__(
        self,
        path: Path | str,
        index_path: Path | str,
        description: str,
        *,
        config: SplitConfig | None = None,
        page_counter: PageCounter | None = None,
        verbose: bool = True,
    ) -> None:
        self.path = Path(path)
        self.index_path = Path(index_path)
        self.name = _PDF_SUFFIX_RE.sub("", self.path.name)
        self.description = description
        self.config = config or SplitConfig()
        self.verbose = verbose
        self.sections: list[Section] = []
        # Several sections may share a page, so each page maps to a list.
        self.page_coverage: dict[int, list[Section]] = {}

        self.read_index()
        self._total_pages = self._fetch_total_pages(
            page_counter or get_backend(self.config.backend).page_count
        )
        self.infer_last_pages()
        self.resolve_trailing_section()
        self.build_page_coverage()
        self.validate_page_numbers()

    def __repr__(self) -> str:
        return f"<Book {self.name} ({len(self.sections)} sections)>"

    @property
    def total_pages(self) -> int:
        return self._total_pages

    def add_section(self, section: Section) -> None:
        self.sections.append(section)

    # ------------------------------------------------------------------
    # Construction steps
    # ------------------------------------------------------------------

    def read_index(self) -> None:
        if self.verbose:
            log(f"Processing {self.index_path} ...")
        entries = read_index(
            self.index_path,
            comment_re=self.config.comment_re,
            verbose=self.verbose,
        )
        for entry in entries:
            self.add_section(
                Section(entry.name, self, entry.first_page, entry.last_page)
            )
        # list.sort is stable: sections sharing a first page keep file order.
        self.sections.sort()

    def _fetch_total_pages(self, page_counter: PageCounter) -> int:
        pages = page_counter(self.path)
        if not isinstance(pages, int) or isinstance(pages, bool) or pages < 0:
            raise ExternalToolError(
                f"page counter returned {pages!r} for {self.path}"
            )
        return pages

    def infer_last_pages(self) -> None:
        """Fill unset last pages from the start of the following section.

        Explicit last pages are never touched, so calling this again on a
        resolved book changes nothing. The final section is left alone.
        """
        max_gap = self.config.max_inferred_gap
        for this, following in zip(self.sections, self.sections[1:]):
            if this.last_page is not None:
                continue
            gap = following.first_page - this.first_page
            if gap == 0:
                num_pages = 1
            elif gap > max_gap:
                raise ImplausibleGapError(self.name, this, following, max_gap)
            else:
                num_pages = gap
            this.last_page = this.first_page + num_pages - 1

    def resolve_trailing_section(self) -> None:
        """Apply the configured policy to a final section with no last page."""
        if not self.sections:
            return
        last = self.sections[-1]
        if last.last_page is not None:
            return
        if self.config.trailing_section == TRAILING_EXTEND_TO_END:
            # A first page past the end is left for validation to report.
            if last.first_page <= self.total_pages:
                last.last_page = self.total_pages

    def build_page_coverage(self) -> None:
        self.page_coverage = {}
        for section in self.sections:
            for page in section.pages():
                self.page_coverage.setdefault(page, []).append(section)

    def validate_page_numbers(self) -> None:
        """Raise PageOverflowError listing every page past the document end."""
        offenders: dict[Section, list[int]] = {}
        for page in sorted(self.page_coverage):
            if page <= self.total_pages:
                continue
            for section in self.page_coverage[page]:
                offenders.setdefault(section, []).append(page)
        if offenders:
            err = PageOverflowError(self.name, self.total_pages, offenders)
            if self.verbose:
                log(str(err))
            raise err

    # ------------------------------------------------------------------
    # Queries and output
    # ------------------------------------------------------------------

    def missing_pages(self) -> list[int]:
        """Pages of the document that no section claims."""
        return [p for p in range(1, self.total_pages + 1) if p not in self.page_coverage]

    def explode(
        self,
        split_dir: Path | str,
        *,
        extractor: Extractor | None = None,
    ) -> ExplodeResult:
        """Write each section to its own PDF under ``split_dir``.

        Existing output files are kept and skipped, so a second run over the
        same directory extracts nothing.
        """
        output_dir = Path(split_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        extract = extractor or get_backend(self.config.backend).extract
        if self.verbose:
            log(f"Exploding {self.name} to {output_dir} ...")

        result = ExplodeResult(output_dir=output_dir)
        for section in self.sections:
            status = section.extract(output_dir, extract, verbose=self.verbose)
            if status == "exists":
                result.existing.append(section.output_filename())
            else:
                result.extracted.append(section.output_filename())
        return result

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": str(self.path),
            "index_path": str(self.index_path),
            "description": self.description,
            "total_pages": self.total_pages,
            "sections": [s.to_dict() for s in self.sections],
            "missing_pages": self.missing_pages(),
        }
