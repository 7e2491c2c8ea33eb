"""Cross-book collector for runs that split several books at once.

A BookCatalog is handed each Book explicitly; there is no global registry.
Books are listed in description order (stable for equal descriptions).

DuckDB snapshot tables:
    books           -- one row per book
    sections        -- one row per section (FK book_name)
    _schema_version -- schema version tracking
"""
from __future__ import annotations

import importlib
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from booksplit.book import Book
from booksplit.section import latex_escape

# Dynamic DuckDB import for pyright compatibility
_duckdb_mod = importlib.import_module("duckdb")

CATALOG_SCHEMA_VERSION = "1.0"


class BookCatalog:
    """Ordered collection of validated books."""

    def __init__(self, books: list[Book] | None = None) -> None:
        self._books: list[Book] = list(books or [])

    def add(self, book: Book) -> None:
        self._books.append(book)

    def __len__(self) -> int:
        return len(self._books)

    def __iter__(self) -> Iterator[Book]:
        return iter(self.books())

    def books(self) -> list[Book]:
        return sorted(self._books, key=lambda b: b.description)

    def summary(self) -> list[dict[str, Any]]:
        return [book.to_dict() for book in self.books()]

    def latex_listing(self) -> str:
        """LaTeX fragment listing every section, grouped per book."""
        out: list[str] = []
        for book in self.books():
            out.append(f"\\section*{{{latex_escape(book.description)}}}")
            out.append("\\begin{itemize}")
            for section in book.sections:
                out.append(f"  \\item {section.latex_name} ({section.pages_label()})")
            out.append("\\end{itemize}")
            out.append("")
        return "\n".join(out)

    def write_duckdb(self, db_path: Path) -> dict[str, int]:
        """Replace the catalog tables in ``db_path``; return row counts."""
        db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = _duckdb_mod.connect(str(db_path))
        try:
            conn.execute("DROP TABLE IF EXISTS sections")
            conn.execute("DROP TABLE IF EXISTS books")
            conn.execute("DROP TABLE IF EXISTS _schema_version")
            conn.execute(
                """
                CREATE TABLE _schema_version (
                    table_name VARCHAR PRIMARY KEY,
                    version VARCHAR NOT NULL,
                    created_at TIMESTAMP
                )
                """
            )
            conn.execute(
                "INSERT INTO _schema_version VALUES ('catalog', ?, current_timestamp)",
                [CATALOG_SCHEMA_VERSION],
            )
            conn.execute(
                """
                CREATE TABLE books (
                    book_name VARCHAR,
                    description VARCHAR,
                    path VARCHAR,
                    index_path VARCHAR,
                    total_pages INTEGER,
                    missing_pages INTEGER
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE sections (
                    book_name VARCHAR,
                    ordinal INTEGER,
                    name VARCHAR,
                    first_page INTEGER,
                    last_page INTEGER,
                    filename VARCHAR
                )
                """
            )
            n_sections = 0
            for book in self.books():
                conn.execute(
                    "INSERT INTO books VALUES (?, ?, ?, ?, ?, ?)",
                    [
                        book.name,
                        book.description,
                        str(book.path),
                        str(book.index_path),
                        book.total_pages,
                        len(book.missing_pages()),
                    ],
                )
                for ordinal, section in enumerate(book.sections):
                    conn.execute(
                        "INSERT INTO sections VALUES (?, ?, ?, ?, ?, ?)",
                        [
                            book.name,
                            ordinal,
                            section.name,
                            section.first_page,
                            section.last_page,
                            section.output_filename(),
                        ],
                    )
                    n_sections += 1
        finally:
            conn.close()
        return {"books": len(self._books), "sections": n_sections}
