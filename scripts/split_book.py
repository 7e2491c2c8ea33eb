#!/usr/bin/env python3
"""Split book PDFs into per-section PDFs driven by hand-written indexes.

Usage:
    python3 scripts/split_book.py \
      --book indexes/realbook1.csv pdfs/realbook1.pdf "Real Book Vol. 1" \
      --book indexes/realbook2.csv pdfs/realbook2.pdf "Real Book Vol. 2" \
      --explode split/

Without --explode, reports pages no section claims. Every book is built and
validated before anything is written; if any book fails, nothing is split
and the exit status is 1.

Structured JSON output goes to stdout; human messages go to stderr.
"""
from __future__ import annotations

import argparse
import sys
from collections import Counter
from pathlib import Path
from typing import Any

from booksplit.book import Book
from booksplit.catalog import BookCatalog
from booksplit.config import TRAILING_POLICIES, SplitConfig
from booksplit.errors import BookSplitError
from booksplit.io_utils import save_json
from booksplit.pdf_tools import BACKENDS
from booksplit.reporting import dump_json, log


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__.split("\n", 1)[0])
    parser.add_argument(
        "--book",
        nargs=3,
        action="append",
        required=True,
        metavar=("INDEX", "PDF", "DESCRIPTION"),
        help="Index file, source PDF and description (repeatable)",
    )
    parser.add_argument(
        "--explode",
        default=None,
        metavar="DIR",
        help="Write per-section PDFs under DIR (one subdirectory per book "
        "when more than one book is given)",
    )
    parser.add_argument("--config", default=None, help="Path to split config JSON")
    parser.add_argument(
        "--backend",
        choices=sorted(BACKENDS),
        default=None,
        help="PDF backend (overrides config)",
    )
    parser.add_argument(
        "--trailing-section",
        choices=TRAILING_POLICIES,
        default=None,
        help="How to end a final section with no last page (overrides config)",
    )
    parser.add_argument(
        "--max-gap",
        type=int,
        default=None,
        help="Largest page gap allowed when inferring a last page (overrides config)",
    )
    parser.add_argument("--catalog-db", default=None, help="Write a DuckDB catalog here")
    parser.add_argument("--latex", default=None, help="Write a LaTeX section listing here")
    parser.add_argument(
        "--summary-json", default=None, help="Also write the JSON summary to this file"
    )
    parser.add_argument("--quiet", action="store_true", help="Suppress progress messages")
    return parser


def load_config(args: argparse.Namespace) -> SplitConfig:
    config = SplitConfig.from_json(Path(args.config)) if args.config else SplitConfig()
    return config.with_overrides(
        backend=args.backend,
        trailing_section=args.trailing_section,
        max_inferred_gap=args.max_gap,
    )


def build_books(
    triples: list[list[str]],
    config: SplitConfig,
    *,
    verbose: bool,
) -> tuple[BookCatalog, list[dict[str, str]]]:
    """Build every book, collecting failures instead of stopping at the first."""
    catalog = BookCatalog()
    failures: list[dict[str, str]] = []
    for index_path, pdf_path, description in triples:
        try:
            book = Book(pdf_path, index_path, description, config=config, verbose=verbose)
        except BookSplitError as exc:
            log(f"ERROR: {pdf_path}: {exc}")
            failures.append(
                {
                    "pdf": pdf_path,
                    "index": index_path,
                    "error": type(exc).__name__,
                    "message": str(exc),
                }
            )
            continue
        catalog.add(book)
    return catalog, failures


def report_missing(catalog: BookCatalog) -> None:
    for book in catalog:
        missing = book.missing_pages()
        if missing:
            log(f"{book.name}: {len(missing)} page(s) not in any section: "
                + ", ".join(str(p) for p in missing))
        else:
            log(f"{book.name}: every page belongs to a section")


def duplicate_book_names(catalog: BookCatalog) -> list[str]:
    """Book names shared by more than one PDF; these would share an output directory."""
    counts = Counter(book.name for book in catalog)
    return sorted(name for name, n in counts.items() if n > 1)


def explode_all(catalog: BookCatalog, split_dir: Path) -> list[dict[str, Any]]:
    per_book = len(catalog) > 1
    results: list[dict[str, Any]] = []
    for book in catalog:
        out_dir = split_dir / book.name if per_book else split_dir
        result = book.explode(out_dir)
        log(f"{book.name}: {len(result.extracted)} extracted, "
            f"{len(result.existing)} already present")
        results.append({"book": book.name, **result.to_dict()})
    return results


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    verbose = not args.quiet

    try:
        config = load_config(args)
    except (OSError, ValueError) as exc:
        log(f"Error: {exc}")
        return 1

    catalog, failures = build_books(args.book, config, verbose=verbose)
    output: dict[str, Any] = {
        "config": {
            "max_inferred_gap": config.max_inferred_gap,
            "trailing_section": config.trailing_section,
            "backend": config.backend,
        },
        "books": catalog.summary(),
        "failures": failures,
    }
    if failures:
        log(f"{len(failures)} book(s) failed validation; nothing was split")
        dump_json(output)
        return 1

    if args.explode and len(catalog) > 1:
        duplicates = duplicate_book_names(catalog)
        if duplicates:
            for name in duplicates:
                log(f"ERROR: several books are named {name!r}; their splits would collide")
                output["failures"].append(
                    {
                        "pdf": name,
                        "index": "",
                        "error": "DuplicateBookName",
                        "message": f"more than one --book PDF is named {name}",
                    }
                )
            dump_json(output)
            return 1

    if args.latex:
        latex_path = Path(args.latex)
        latex_path.parent.mkdir(parents=True, exist_ok=True)
        latex_path.write_text(catalog.latex_listing(), encoding="utf-8")
        log(f"Wrote LaTeX listing to {latex_path}")
    if args.catalog_db:
        output["catalog_db"] = catalog.write_duckdb(Path(args.catalog_db))
        log(f"Wrote catalog to {args.catalog_db}")

    if args.explode:
        try:
            output["explode"] = explode_all(catalog, Path(args.explode))
        except BookSplitError as exc:
            log(str(exc))
            dump_json(output)
            return 1
    else:
        report_missing(catalog)

    if args.summary_json:
        save_json(output, Path(args.summary_json))
    dump_json(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
