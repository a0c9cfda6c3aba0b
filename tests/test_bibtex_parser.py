"""Tests for bibtex_parser.BibtexParser."""

from __future__ import annotations

from pathlib import Path

import pytest

from bibtex_parser import (
    FIELD_SETTERS,
    BibtexParser,
    MalformedFieldLineError,
    UnterminatedEntryError,
    apply_field,
)
from models import Record

TWO_ENTRIES = """\
@ARTICLE{7000001,
author={A. Silva and B. Souza},
title={Streaming Parsers},
journal={IEEE Transactions on Software Engineering},
year={2015},
pages={10-20},
keywords={parsing;streams},
month={Aug},}

@INPROCEEDINGS{7000002,
AUTHOR={C. Lima},
Title={Brace Counting},
booktitle={Proc. of Something},
year={2016},
pages={abc-20},
publisher={IEEE},}
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "papers.bib"
    path.write_text(text, encoding="utf-8")
    return path


def test_read_two_entries_then_nothing(tmp_path: Path) -> None:
    path = _write(tmp_path, TWO_ENTRIES)

    with BibtexParser(path) as parser:
        first = parser.read_block(1)
        second = parser.read_block(1)
        third = parser.read_block(1)

    assert [r.record_id for r in first] == ["7000001"]
    assert [r.record_id for r in second] == ["7000002"]
    assert third == []

    one = first[0]
    assert one.author == "A. Silva and B. Souza"
    assert one.title == "Streaming Parsers"
    assert one.journal == "IEEE Transactions on Software Engineering"
    assert one.year == "2015"
    assert one.published == 2015
    assert (one.initial_page, one.end_page) == (10, 20)
    assert one.keywords == "parsing;streams"

    two = second[0]
    assert two.author == "C. Lima"
    assert two.title == "Brace Counting"
    assert two.book_title == "Proc. of Something"
    assert (two.initial_page, two.end_page) == (0, 0)
    assert two.pages == "abc-20"


def test_block_size_zero_reads_everything(tmp_path: Path) -> None:
    path = _write(tmp_path, TWO_ENTRIES)

    with BibtexParser(path) as parser:
        records = parser.read_block(0)
        assert parser.has_next() is False

    assert len(records) == 2


def test_iter_blocks_yields_until_exhausted(tmp_path: Path) -> None:
    path = _write(tmp_path, TWO_ENTRIES * 3)

    with BibtexParser(path) as parser:
        sizes = [len(block) for block in parser.iter_blocks(4)]

    assert sizes == [4, 2]


def test_trailing_text_after_last_entry_is_end_of_data(tmp_path: Path) -> None:
    path = _write(tmp_path, TWO_ENTRIES + "\n% exported from IEEE Xplore\n\n")

    with BibtexParser(path) as parser:
        records = parser.read_block(0)

    assert len(records) == 2


def test_value_on_closing_line_keeps_trailing_brace(tmp_path: Path) -> None:
    path = _write(tmp_path, "@ARTICLE{1,\ntitle={Closing},\nmonth={Aug},}\n@ARTICLE{2,\nyear={2015},}\n")

    with BibtexParser(path) as parser:
        first, second = parser.read_block(0)

    assert first.title == "Closing"
    assert first.month == "Aug}"
    # "2015}" does not parse as a year
    assert second.year is None
    assert second.published == 0


def test_spaces_around_equals_and_header(tmp_path: Path) -> None:
    text = "  @ARTICLE{7000003, \n  year = {1999}, \n  title = {Spaced Out},\n  month={Jan},}\n"
    path = _write(tmp_path, text)

    with BibtexParser(path) as parser:
        (record,) = parser.read_block(0)

    assert record.record_id == "7000003"
    assert record.published == 1999
    assert record.title == "Spaced Out"


def test_line_without_equals_aborts_the_block(tmp_path: Path) -> None:
    text = TWO_ENTRIES + "@ARTICLE{7000009,\ntitle={Fine},\nthis line has no separator\n}\n"
    path = _write(tmp_path, text)

    with BibtexParser(path) as parser:
        with pytest.raises(MalformedFieldLineError) as excinfo:
            parser.read_block(0)

    assert excinfo.value.line_number == 19


def test_parse_error_stops_the_stream(tmp_path: Path) -> None:
    path = _write(tmp_path, "@ARTICLE{1,\nbroken line\n}\n@ARTICLE{2,\nyear={2015},\nmonth={Jan},}\n")

    with BibtexParser(path) as parser:
        with pytest.raises(MalformedFieldLineError):
            parser.read_block(0)

        assert parser.is_open() is False
        assert parser.has_next() is False
        with pytest.raises(RuntimeError):
            parser.read_block(0)
        assert list(parser.iter_blocks(0)) == []


def test_unterminated_entry_closes_the_parser(tmp_path: Path) -> None:
    parser = BibtexParser(_write(tmp_path, "@ARTICLE{7000010,\ntitle={Never closed},\n"))
    parser.open()

    with pytest.raises(UnterminatedEntryError):
        parser.read_block(0)

    assert parser.has_next() is False
    with pytest.raises(RuntimeError):
        parser.open()


@pytest.mark.parametrize("line", ["=value},", "title=", ""])
def test_empty_key_or_value_is_malformed(tmp_path: Path, line: str) -> None:
    path = _write(tmp_path, f"@ARTICLE{{1,\n{line}\n}}\n")

    with BibtexParser(path) as parser:
        with pytest.raises(MalformedFieldLineError):
            parser.read_block(0)


def test_unterminated_entry_is_fatal(tmp_path: Path) -> None:
    path = _write(tmp_path, "@ARTICLE{7000010,\ntitle={Never closed},\nyear={2015},\n")

    with BibtexParser(path) as parser:
        with pytest.raises(UnterminatedEntryError) as excinfo:
            parser.read_block(0)

    assert excinfo.value.record_id == "7000010"
    assert excinfo.value.balance == 1


def test_negative_block_size_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path, TWO_ENTRIES)
    with BibtexParser(path) as parser:
        with pytest.raises(ValueError):
            parser.read_block(-1)


def test_read_before_open_rejected(tmp_path: Path) -> None:
    parser = BibtexParser(_write(tmp_path, TWO_ENTRIES))
    assert parser.has_next() is False
    with pytest.raises(RuntimeError):
        parser.read_block(1)


def test_open_twice_and_reopen_after_close_rejected(tmp_path: Path) -> None:
    parser = BibtexParser(_write(tmp_path, TWO_ENTRIES))
    parser.open()
    with pytest.raises(RuntimeError):
        parser.open()
    parser.close()
    assert parser.has_next() is False
    with pytest.raises(RuntimeError):
        parser.open()


def test_apply_field_is_case_insensitive_and_ignores_unknown() -> None:
    record = Record(record_id="1")
    assert apply_field(record, " YEAR ", "2001") is True
    assert apply_field(record, "publisher", "IEEE") is False
    assert record.published == 2001


def test_field_setters_cover_bibliographic_keys() -> None:
    assert set(FIELD_SETTERS) == {
        "author", "title", "journal", "booktitle", "volume", "number",
        "issn", "month", "doi", "keywords", "year", "pages",
    }
