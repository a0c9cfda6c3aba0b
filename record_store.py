"""Persistence for enriched records: a JSON snapshot and a SQLite table."""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from collections.abc import Iterable
from dataclasses import fields
from pathlib import Path

from models import Record

JSON_FILE_PATH = os.getenv("JSON_FILE_PATH", "papers_enriched.json")
RECORDS_DB_PATH = os.getenv("RECORDS_DB_PATH", "papers.sqlite3")

LOGGER = logging.getLogger(__name__)

_COLUMNS = [f.name for f in fields(Record)]
_COLUMN_TYPES = {int: "INTEGER", float: "REAL"}


# ---------------------------------------------------------------------------
# JSON snapshot
# ---------------------------------------------------------------------------


def save_records_json(records: Iterable[Record], path: str | None = None) -> int:
    """Write all records as one JSON array. Returns the number written."""
    target = Path(path or JSON_FILE_PATH)
    rows = [record.to_dict() for record in records]
    with target.open("w", encoding="utf-8") as fh:
        json.dump(rows, fh, ensure_ascii=False, indent=2)
    LOGGER.info("Saved %s records to %s", len(rows), target)
    return len(rows)


def load_records_json(path: str | None = None) -> list[Record]:
    source = Path(path or JSON_FILE_PATH)
    with source.open(encoding="utf-8") as fh:
        rows = json.load(fh)
    if not isinstance(rows, list):
        raise RuntimeError(f"Unexpected snapshot shape in {source}: expected a list")
    records = [Record.from_dict(row) for row in rows]
    LOGGER.info("Loaded %s records from %s", len(records), source)
    return records


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------


def _column_type(name: str) -> str:
    default = Record.__dataclass_fields__[name].default
    return _COLUMN_TYPES.get(type(default), "TEXT")


class RecordStore:
    """A single ``records`` table holding one row per record."""

    def __init__(self, db_path: str | None = None) -> None:
        self.db_path = db_path or RECORDS_DB_PATH

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        columns = ", ".join(
            "record_id TEXT PRIMARY KEY NOT NULL"
            if name == "record_id"
            else f"{name} {_column_type(name)}"
            for name in _COLUMNS
        )
        conn.execute(f"CREATE TABLE IF NOT EXISTS records ({columns})")
        return conn

    def insert(self, records: Iterable[Record]) -> int:
        """Insert records, replacing any stored row with the same record_id."""
        placeholders = ", ".join("?" for _ in _COLUMNS)
        rows = [tuple(getattr(record, name) for name in _COLUMNS) for record in records]
        conn = self._connect()
        try:
            with conn:
                conn.executemany(
                    f"INSERT OR REPLACE INTO records ({', '.join(_COLUMNS)}) VALUES ({placeholders})", rows
                )
        finally:
            conn.close()
        LOGGER.info("Inserted %s records into %s", len(rows), self.db_path)
        return len(rows)

    def load_all(self) -> list[Record]:
        conn = self._connect()
        try:
            rows = conn.execute(f"SELECT {', '.join(_COLUMNS)} FROM records ORDER BY rowid").fetchall()
        finally:
            conn.close()
        return [Record.from_dict(dict(row)) for row in rows]
