"""Streaming reader for IEEE Xplore BibTeX exports.

Entries are read line by line. An entry starts on a line beginning with ``@``
and ends when the braces opened since that line are all closed again. Every
line in between must be a ``key={value},`` pair; anything else aborts the
whole parse, since a broken line leaves the brace balance meaningless for the
rest of the file.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator
from typing import TextIO

from models import Record

LOGGER = logging.getLogger(__name__)


class BibtexParseError(Exception):
    """Base class for unrecoverable parse failures."""


class MalformedFieldLineError(BibtexParseError):
    """A field line did not split into a non-empty key and value on '='."""

    def __init__(self, line_number: int, line: str) -> None:
        super().__init__(f"line {line_number}: expected 'key=value', got {line!r}")
        self.line_number = line_number
        self.line = line


class UnterminatedEntryError(BibtexParseError):
    """The source ended while an entry still had unbalanced braces."""

    def __init__(self, record_id: str, balance: int) -> None:
        super().__init__(
            f"entry {record_id!r} ended with {balance} unclosed brace(s) at end of file"
        )
        self.record_id = record_id
        self.balance = balance


def _setter(attr: str) -> Callable[[Record, str], None]:
    def assign(record: Record, value: str) -> None:
        setattr(record, attr, value)

    return assign


# Lower-cased BibTeX key -> how the value lands on the record.
FIELD_SETTERS: dict[str, Callable[[Record, str], None]] = {
    "author": _setter("author"),
    "title": _setter("title"),
    "journal": _setter("journal"),
    "booktitle": _setter("book_title"),
    "volume": _setter("volume"),
    "number": _setter("number"),
    "issn": _setter("issn"),
    "month": _setter("month"),
    "doi": _setter("doi"),
    "keywords": _setter("keywords"),
    "year": Record.set_year,
    "pages": Record.set_pages,
}


def apply_field(record: Record, key: str, value: str) -> bool:
    """Assign one raw field to the record. Returns False for unknown keys."""
    setter = FIELD_SETTERS.get(key.strip().lower())
    if setter is None:
        LOGGER.debug("Ignoring unknown field %r on record %s", key, record.record_id)
        return False
    setter(record, value)
    return True


def _brace_balance(line: str) -> int:
    return line.count("{") - line.count("}")


def _field_value(raw: str) -> str:
    value = raw.strip()
    if value.startswith("{"):
        value = value[1:]
    return value.replace("},", "")


class BibtexParser:
    """Reads records from a BibTeX file in blocks.

    Usage::

        with BibtexParser("papers.bib") as parser:
            while parser.has_next():
                block = parser.read_block(100)
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = path
        self._handle: TextIO | None = None
        self._closed = False
        self._lookahead = ""
        self._line_number = 0

    # -- lifecycle ---------------------------------------------------------

    def open(self) -> None:
        if self._closed:
            raise RuntimeError("BibTeX parser is closed and cannot be reopened")
        if self.is_open():
            raise RuntimeError("BibTeX file is already open")
        self._handle = open(self.path, encoding="utf-8")
        self._lookahead = self._handle.readline()
        self._line_number = 0
        LOGGER.info("Opened BibTeX file %s", self.path)

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None
        self._closed = True

    def is_open(self) -> bool:
        return self._handle is not None

    def has_next(self) -> bool:
        """True while the file is open and has unread lines."""
        return self.is_open() and self._lookahead != ""

    def __enter__(self) -> BibtexParser:
        if not self.is_open():
            self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- reading -----------------------------------------------------------

    def read_block(self, block_size: int = 0) -> list[Record]:
        """Read up to ``block_size`` records; 0 reads everything left.

        Raises:
            ValueError: block_size is negative.
            RuntimeError: the parser is not open.
            BibtexParseError: the file is malformed. Records read earlier in
                the same call are discarded and the parser is closed.
        """
        if block_size < 0:
            raise ValueError("block_size must be zero or positive")
        if not self.is_open():
            raise RuntimeError("BibTeX file is not open; call open() first")

        records: list[Record] = []
        while (block_size == 0 or len(records) < block_size) and self.has_next():
            try:
                record = self._next_record()
            except BibtexParseError:
                # The brace balance is lost; nothing after this point can be trusted.
                self.close()
                raise
            if record is None:
                break
            records.append(record)

        LOGGER.debug("Read block of %s records from %s", len(records), self.path)
        return records

    def iter_blocks(self, block_size: int = 0) -> Iterator[list[Record]]:
        """Yield non-empty blocks until the file is exhausted."""
        while self.has_next():
            block = self.read_block(block_size)
            if not block:
                return
            yield block

    def _readline(self) -> str | None:
        if not self._lookahead:
            return None
        line = self._lookahead
        self._lookahead = self._handle.readline()  # type: ignore[union-attr]
        self._line_number += 1
        return line.rstrip("\r\n")

    def _next_record(self) -> Record | None:
        line = self._readline()
        while line is not None and not line.lstrip().startswith("@"):
            line = self._readline()

        if line is None:
            return None

        header = line.rstrip().rstrip(",")
        record = Record(record_id=header[line.find("{") + 1:])
        balance = _brace_balance(line)

        while balance != 0:
            line = self._readline()
            if line is None:
                raise UnterminatedEntryError(record.record_id, balance)

            parts = line.split("=", 1)
            if len(parts) != 2 or not parts[0] or not parts[1]:
                raise MalformedFieldLineError(self._line_number, line)

            apply_field(record, parts[0], _field_value(parts[1]))
            balance += _brace_balance(line)

        return record
