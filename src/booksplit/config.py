"""Tunables for page-range inference, loaded from JSON or CLI flags.

Example config::

    {
      "max_inferred_gap": 6,
      "trailing_section": "extend_to_end",
      "backend": "pypdf"
    }
"""
from __future__ import annotations

import re
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from booksplit.io_utils import load_json
from booksplit.pdf_tools import BACKENDS

# A section with no last page may span at most this many pages when its
# extent is inferred from the next section's first page.
MAX_INFERRED_GAP = 6

TRAILING_SINGLE_PAGE = "single_page"
TRAILING_EXTEND_TO_END = "extend_to_end"
TRAILING_POLICIES: tuple[str, ...] = (TRAILING_SINGLE_PAGE, TRAILING_EXTEND_TO_END)

DEFAULT_COMMENT_PATTERN = r"^\s*(#|$)"
DEFAULT_BACKEND = "poppler"


@dataclass(frozen=True, slots=True)
class SplitConfig:
    """Named knobs for one split run.

    ``trailing_section`` decides what happens to the last section when its
    last page is unset: ``single_page`` keeps it one page long,
    ``extend_to_end`` stretches it to the document's final page.
    """

    max_inferred_gap: int = MAX_INFERRED_GAP
    trailing_section: str = TRAILING_SINGLE_PAGE
    comment_pattern: str = DEFAULT_COMMENT_PATTERN
    backend: str = DEFAULT_BACKEND

    def __post_init__(self) -> None:
        if self.max_inferred_gap < 1:
            raise ValueError(
                f"max_inferred_gap must be >= 1, got {self.max_inferred_gap}"
            )
        if self.trailing_section not in TRAILING_POLICIES:
            raise ValueError(
                f"trailing_section must be one of {TRAILING_POLICIES}, "
                f"got {self.trailing_section!r}"
            )
        if self.backend not in BACKENDS:
            raise ValueError(
                f"backend must be one of {tuple(sorted(BACKENDS))}, got {self.backend!r}"
            )
        try:
            re.compile(self.comment_pattern)
        except re.error as exc:
            raise ValueError(f"Invalid comment_pattern {self.comment_pattern!r}: {exc}") from exc

    @property
    def comment_re(self) -> re.Pattern[str]:
        return re.compile(self.comment_pattern)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SplitConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_json(cls, path: Path) -> SplitConfig:
        """Load from a JSON object file."""
        if not path.exists():
            raise FileNotFoundError(f"Missing config: {path}")
        data = load_json(path)
        if not isinstance(data, dict):
            raise ValueError(f"Config must be a JSON object: {path}")
        return cls.from_dict(data)

    def with_overrides(self, **overrides: Any) -> SplitConfig:
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self
