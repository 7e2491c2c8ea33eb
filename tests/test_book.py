"""Tests for booksplit.book: inference, coverage, validation and explode."""
from __future__ import annotations

from pathlib import Path

import pytest

from booksplit.book import Book
from booksplit.config import TRAILING_EXTEND_TO_END, SplitConfig
from booksplit.errors import (
    ExternalToolError,
    ImplausibleGapError,
    IndexFormatError,
    IndexReadError,
    PageOverflowError,
)


def _counter(total: int):
    calls: list[Path] = []

    def page_counter(path: Path) -> int:
        calls.append(path)
        return total

    page_counter.calls = calls  # type: ignore[attr-defined]
    return page_counter


def _book(
    tmp_path: Path,
    index_text: str,
    *,
    total: int = 20,
    config: SplitConfig | None = None,
) -> Book:
    index_path = tmp_path / "index.csv"
    index_path.write_text(index_text)
    return Book(
        tmp_path / "realbook.pdf",
        index_path,
        "Real Book",
        config=config,
        page_counter=_counter(total),
        verbose=False,
    )


class RecordingExtractor:
    def __init__(self) -> None:
        self.calls: list[tuple[Path, int, int, Path]] = []

    def __call__(self, path: Path, first: int, last: int, outfile: Path) -> None:
        self.calls.append((path, first, last, outfile))
        outfile.write_bytes(f"{first}-{last}".encode())


class TestConstruction:
    def test_name_drops_pdf_suffix(self, tmp_path: Path) -> None:
        book = _book(tmp_path, '"Intro",1,5\n')
        assert book.name == "realbook"
        assert book.description == "Real Book"
        assert repr(book) == "<Book realbook (1 sections)>"

    def test_page_counter_called_once(self, tmp_path: Path) -> None:
        index_path = tmp_path / "index.csv"
        index_path.write_text('"Intro",1,5\n"Outro",6\n')
        counter = _counter(20)
        book = Book(tmp_path / "realbook.pdf", index_path, "Real Book",
                    page_counter=counter, verbose=False)
        assert counter.calls == [tmp_path / "realbook.pdf"]  # type: ignore[attr-defined]
        assert book.total_pages == 20

    def test_total_pages_is_read_only(self, tmp_path: Path) -> None:
        book = _book(tmp_path, '"Intro",1,5\n')
        with pytest.raises(AttributeError):
            book.total_pages = 99  # type: ignore[misc]

    def test_sections_sorted_by_first_page(self, tmp_path: Path) -> None:
        book = _book(tmp_path, '"C",9,9\n"A",1,3\n"B",4,8\n')
        assert [s.name for s in book.sections] == ["A", "B", "C"]
        assert all(s.book is book for s in book.sections)

    def test_page_counter_failure_propagates(self, tmp_path: Path) -> None:
        index_path = tmp_path / "index.csv"
        index_path.write_text('"Intro",1,5\n')

        def broken(path: Path) -> int:
            raise ExternalToolError("pdfinfo failed", stderr="boom")

        with pytest.raises(ExternalToolError, match="pdfinfo failed"):
            Book(tmp_path / "x.pdf", index_path, "X", page_counter=broken, verbose=False)

    def test_page_counter_non_int_result_is_rejected(self, tmp_path: Path) -> None:
        index_path = tmp_path / "index.csv"
        index_path.write_text('"Intro",1,5\n')
        with pytest.raises(ExternalToolError, match="page counter returned"):
            Book(tmp_path / "x.pdf", index_path, "X",
                 page_counter=lambda _p: "20", verbose=False)  # type: ignore[arg-type,return-value]

    def test_empty_index(self, tmp_path: Path) -> None:
        book = _book(tmp_path, "# nothing yet\n", total=3)
        assert book.sections == []
        assert book.missing_pages() == [1, 2, 3]


class TestGapInference:
    def test_explicit_ranges_are_kept(self, tmp_path: Path) -> None:
        book = _book(tmp_path, '"A",1,3\n"B",4,9\n"C",10,20\n')
        assert [list(s.pages()) for s in book.sections] == [
            [1, 2, 3],
            [4, 5, 6, 7, 8, 9],
            list(range(10, 21)),
        ]

    def test_infers_from_next_section(self, tmp_path: Path) -> None:
        book = _book(tmp_path, '"A",1\n"B",4\n"C",5,8\n')
        a, b, _ = book.sections
        assert a.last_page == 3
        assert b.last_page == 4

    def test_same_first_page_gives_single_page(self, tmp_path: Path) -> None:
        book = _book(tmp_path, '"A",4\n"B",4\n"C",6,7\n')
        a, b, _ = book.sections
        assert (a.name, a.last_page) == ("A", 4)
        assert (b.name, b.last_page) == ("B", 5)

    def test_gap_at_threshold_is_allowed(self, tmp_path: Path) -> None:
        book = _book(tmp_path, '"A",1\n"B",7,7\n')
        assert book.sections[0].last_page == 6

    def test_gap_above_threshold_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ImplausibleGapError) as excinfo:
            _book(tmp_path, '"A",1\n"B",10\n')
        err = excinfo.value
        assert err.section.name == "A"
        assert err.next_section.name == "B"
        assert "A p1 in realbook followed by B p10" in str(err)

    def test_threshold_is_configurable(self, tmp_path: Path) -> None:
        book = _book(tmp_path, '"A",1\n"B",10,10\n', config=SplitConfig(max_inferred_gap=12))
        assert book.sections[0].last_page == 9

    def test_explicit_last_page_skips_gap_check(self, tmp_path: Path) -> None:
        book = _book(tmp_path, '"A",1,9\n"B",15,15\n')
        assert book.sections[0].last_page == 9

    def test_inference_is_idempotent(self, tmp_path: Path) -> None:
        book = _book(tmp_path, '"A",1\n"B",3\n"C",5,6\n"D",6,8\n')
        before = [(s.first_page, s.last_page) for s in book.sections]
        book.infer_last_pages()
        book.infer_last_pages()
        assert [(s.first_page, s.last_page) for s in book.sections] == before


class TestTrailingSection:
    INDEX = '"Intro",1,5\n"Chapter 1",6\n'

    def test_single_page_by_default(self, tmp_path: Path) -> None:
        book = _book(tmp_path, self.INDEX, total=20)
        chapter = book.sections[-1]
        assert chapter.last_page is None
        assert list(chapter.pages()) == [6]
        assert chapter.pages_label() == "p6"
        assert book.missing_pages() == list(range(7, 21))

    def test_extend_to_end(self, tmp_path: Path) -> None:
        config = SplitConfig(trailing_section=TRAILING_EXTEND_TO_END)
        book = _book(tmp_path, self.INDEX, total=20, config=config)
        chapter = book.sections[-1]
        assert chapter.last_page == 20
        assert chapter.pages_label() == "pp6-20"
        assert book.missing_pages() == []

    def test_extend_to_end_keeps_explicit_last_page(self, tmp_path: Path) -> None:
        config = SplitConfig(trailing_section=TRAILING_EXTEND_TO_END)
        book = _book(tmp_path, '"Intro",1,5\n"Chapter 1",6,8\n', total=20, config=config)
        assert book.sections[-1].last_page == 8

    def test_extend_to_end_past_document_still_fails(self, tmp_path: Path) -> None:
        config = SplitConfig(trailing_section=TRAILING_EXTEND_TO_END)
        with pytest.raises(PageOverflowError):
            _book(tmp_path, '"Intro",1,5\n"Ghost",25\n', total=20, config=config)


class TestCoverage:
    def test_overlap_is_recorded_not_rejected(self, tmp_path: Path) -> None:
        book = _book(tmp_path, '"A",1,5\n"B",3,8\n')
        a, b = book.sections
        assert book.page_coverage[3] == [a, b]
        assert book.page_coverage[5] == [a, b]
        assert book.page_coverage[1] == [a]
        assert book.page_coverage[8] == [b]

    def test_missing_pages(self, tmp_path: Path) -> None:
        book = _book(tmp_path, '"A",2,3\n"B",6,7\n', total=9)
        assert book.missing_pages() == [1, 4, 5, 8, 9]

    def test_missing_pages_never_overlap_sections(self, tmp_path: Path) -> None:
        book = _book(tmp_path, '"A",1\n"B",3,4\n"C",4,6\n"D",9,9\n"E",12\n', total=15)
        missing = set(book.missing_pages())
        for section in book.sections:
            assert missing.isdisjoint(section.pages())
        covered = {p for s in book.sections for p in s.pages()}
        assert missing | covered == set(range(1, 16))


class TestValidation:
    def test_reversed_range_rejected_before_any_tool_runs(self, tmp_path: Path) -> None:
        index_path = tmp_path / "index.csv"
        index_path.write_text('"Intro",1,5\n"A",10,5\n')
        counter = _counter(20)
        with pytest.raises(IndexFormatError, match="last page 5 comes before first page 10"):
            Book(tmp_path / "realbook.pdf", index_path, "Real Book",
                 page_counter=counter, verbose=False)
        assert counter.calls == []  # type: ignore[attr-defined]

    def test_page_zero_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(IndexFormatError, match="first page must be >= 1"):
            _book(tmp_path, '"Z",0,0\n"A",1,5\n')

    def test_resolved_ranges_are_ordered(self, tmp_path: Path) -> None:
        book = _book(tmp_path, '"A",1\n"B",1\n"C",3\n"D",4,9\n"E",12\n', total=15)
        for section in book.sections:
            assert section.first_page >= 1
            if section.last_page is not None:
                assert section.first_page <= section.last_page
            assert len(section.pages()) >= 1

    def test_missing_index_raises_library_error(self, tmp_path: Path) -> None:
        with pytest.raises(IndexReadError):
            Book(tmp_path / "realbook.pdf", tmp_path / "missing.csv", "Real Book",
                 page_counter=_counter(20), verbose=False)

    def test_page_past_end_raises_with_offending_pages(self, tmp_path: Path) -> None:
        with pytest.raises(PageOverflowError) as excinfo:
            _book(tmp_path, '"Big",1,25\n', total=20)
        err = excinfo.value
        assert err.total_pages == 20
        [(section, pages)] = err.offenders.items()
        assert section.name == "Big"
        assert pages == [21, 22, 23, 24, 25]
        assert "Big: 21, 22, 23, 24, 25" in str(err)

    def test_all_offenders_reported_together(self, tmp_path: Path) -> None:
        with pytest.raises(PageOverflowError) as excinfo:
            _book(tmp_path, '"A",1,5\n"B",9,11\n"C",12\n', total=10)
        offenders = {s.name: pages for s, pages in excinfo.value.offenders.items()}
        assert offenders == {"B": [11], "C": [12]}

    def test_report_is_logged(self, tmp_path: Path, capsys) -> None:
        index_path = tmp_path / "index.csv"
        index_path.write_text('"Big",1,25\n')
        with pytest.raises(PageOverflowError):
            Book(tmp_path / "realbook.pdf", index_path, "Real Book", page_counter=_counter(20))
        assert "Sections with pages too high" in capsys.readouterr().err


class TestExplode:
    INDEX = '"Intro",1,2\n"Blue / Green",3\n"Coda",5,6\n'

    def test_explode_writes_each_section(self, tmp_path: Path) -> None:
        book = _book(tmp_path, self.INDEX, total=6)
        extractor = RecordingExtractor()
        out_dir = tmp_path / "split" / "realbook"
        result = book.explode(out_dir, extractor=extractor)

        assert out_dir.is_dir()
        assert [(first, last) for _, first, last, _ in extractor.calls] == [(1, 2), (3, 4), (5, 6)]
        assert all(src == book.path for src, _, _, _ in extractor.calls)
        assert result.extracted == [
            "Intro (realbook pp1-2).pdf",
            "Blue _ Green (realbook pp3-4).pdf",
            "Coda (realbook pp5-6).pdf",
        ]
        assert result.existing == []
        assert sorted(p.name for p in out_dir.iterdir()) == sorted(result.extracted)

    def test_explode_twice_is_idempotent(self, tmp_path: Path, capsys) -> None:
        book = _book(tmp_path, self.INDEX, total=6)
        out_dir = tmp_path / "split"
        first = RecordingExtractor()
        book.explode(out_dir, extractor=first)
        files_after_first = sorted(p.name for p in out_dir.iterdir())

        book.verbose = True
        second = RecordingExtractor()
        result = book.explode(out_dir, extractor=second)

        assert second.calls == []
        assert result.extracted == []
        assert sorted(result.existing) == files_after_first
        assert sorted(p.name for p in out_dir.iterdir()) == files_after_first
        err = capsys.readouterr().err
        assert err.count("exists:") == 3

    def test_explode_keeps_unrelated_files(self, tmp_path: Path) -> None:
        book = _book(tmp_path, self.INDEX, total=6)
        out_dir = tmp_path / "split"
        out_dir.mkdir()
        (out_dir / "notes.txt").write_text("keep me")
        book.explode(out_dir, extractor=RecordingExtractor())
        assert (out_dir / "notes.txt").read_text() == "keep me"

    def test_extractor_failure_aborts(self, tmp_path: Path) -> None:
        book = _book(tmp_path, self.INDEX, total=6)

        def failing(path: Path, first: int, last: int, outfile: Path) -> None:
            if first == 3:
                raise ExternalToolError(
                    "pdfjam failed", stdout="some out", stderr="some err"
                )
            outfile.write_bytes(b"%PDF")

        with pytest.raises(ExternalToolError) as excinfo:
            book.explode(tmp_path / "split", extractor=failing)
        assert "STDOUT:\nsome out" in str(excinfo.value)
        assert "STDERR:\nsome err" in str(excinfo.value)
        assert [p.name for p in (tmp_path / "split").iterdir()] == ["Intro (realbook pp1-2).pdf"]

    def test_to_dict(self, tmp_path: Path) -> None:
        book = _book(tmp_path, '"A",2,3\n', total=4)
        d = book.to_dict()
        assert d["name"] == "realbook"
        assert d["total_pages"] == 4
        assert d["missing_pages"] == [1, 4]
        assert d["sections"][0]["pages"] == "pp2-3"
