"""Tests for the CLI phases in main."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import main
from record_store import RecordStore, load_records_json

BIBTEX = """\
@ARTICLE{7000001,
title={Streaming Parsers},
year={2015},
keywords={parsing},
month={Jan},}
@ARTICLE{7000002,
title={Brace Counting},
year={2016},
keywords={parsing;braces},
month={Feb},}
@ARTICLE{7000003,
title={Third},
year={2016},
month={Mar},}
"""


def _bib(tmp_path: Path, text: str = BIBTEX) -> Path:
    path = tmp_path / "papers.bib"
    path.write_text(text, encoding="utf-8")
    return path


def test_run_enrich_parses_in_blocks_and_saves_snapshot(tmp_path: Path) -> None:
    json_path = tmp_path / "snapshot.json"

    with patch("main.enrich_records") as mock_enrich:
        records = main.run_enrich(str(_bib(tmp_path)), str(json_path), block_size=2, max_workers=2)

    assert [r.record_id for r in records] == ["7000001", "7000002", "7000003"]
    assert mock_enrich.call_count == 2
    assert [len(call.args[0]) for call in mock_enrich.call_args_list] == [2, 1]
    assert load_records_json(str(json_path)) == records


def test_run_enrich_without_enrichment(tmp_path: Path) -> None:
    with patch("main.enrich_records") as mock_enrich:
        main.run_enrich(str(_bib(tmp_path)), str(tmp_path / "s.json"), 0, 2, enrich=False)

    mock_enrich.assert_not_called()


def test_run_enrich_deletes_previous_snapshot(tmp_path: Path) -> None:
    json_path = tmp_path / "snapshot.json"
    json_path.write_text("stale", encoding="utf-8")

    main.run_enrich(str(_bib(tmp_path)), str(json_path), 0, 2, delete_previous=True, enrich=False)

    assert len(load_records_json(str(json_path))) == 3


def test_store_then_stats_from_db(tmp_path: Path) -> None:
    json_path = tmp_path / "snapshot.json"
    db_path = tmp_path / "papers.sqlite3"
    out_path = tmp_path / "stats.txt"
    main.run_enrich(str(_bib(tmp_path)), str(json_path), 0, 2, enrich=False)

    assert main.run_store(str(json_path), str(db_path)) == 3
    assert len(RecordStore(str(db_path)).load_all()) == 3

    result = main.run_stats("db", str(json_path), str(db_path), str(out_path), year_window=3)

    assert result == out_path
    assert out_path.read_text(encoding="utf-8").startswith("2015;1\n2016;2\n")


def test_store_twice_does_not_duplicate_records(tmp_path: Path) -> None:
    json_path = tmp_path / "snapshot.json"
    db_path = tmp_path / "papers.sqlite3"
    main.run_enrich(str(_bib(tmp_path)), str(json_path), 0, 2, enrich=False)

    main.run_store(str(json_path), str(db_path))
    main.run_store(str(json_path), str(db_path))

    assert [r.record_id for r in RecordStore(str(db_path)).load_all()] == ["7000001", "7000002", "7000003"]


def test_main_stats_from_missing_db_fails(tmp_path: Path) -> None:
    db_path = tmp_path / "missing.sqlite3"
    out_path = tmp_path / "stats.txt"

    code = main.main(["stats", "--db", str(db_path), "--output", str(out_path)])

    assert code == 1
    assert not db_path.exists()
    assert not out_path.exists()


def test_main_returns_error_on_malformed_bibtex(tmp_path: Path) -> None:
    bib = _bib(tmp_path, "@ARTICLE{1,\nnot a field line\n}\n")

    code = main.main(["enrich", "--bibtex", str(bib), "--json", str(tmp_path / "s.json"), "--no-enrich"])

    assert code == 1
    assert not (tmp_path / "s.json").exists()


def test_main_stats_from_json(tmp_path: Path) -> None:
    json_path = tmp_path / "snapshot.json"
    out_path = tmp_path / "stats.txt"
    main.run_enrich(str(_bib(tmp_path)), str(json_path), 0, 2, enrich=False)

    code = main.main(["stats", "--source", "json", "--json", str(json_path), "--output", str(out_path)])

    assert code == 0
    assert out_path.exists()


def test_main_missing_snapshot_fails(tmp_path: Path) -> None:
    code = main.main(["store", "--json", str(tmp_path / "missing.json"), "--db", str(tmp_path / "x.sqlite3")])
    assert code == 1
