"""Record pre-filters shared by the statistics functions."""

from __future__ import annotations

from collections.abc import Sequence

from models import Record


def year_sort_key(year: str | None) -> tuple[bool, str]:
    """Lexical ordering for raw year strings; a missing year sorts first."""
    return (year is not None, year or "")


def distinct_years(records: Sequence[Record]) -> list[str | None]:
    """Distinct raw year values in ascending lexical order."""
    return sorted({record.year for record in records}, key=year_sort_key)


def restrict_to_year_window(records: Sequence[Record], year_window: int) -> list[Record]:
    """Keep only records from the ``year_window`` most recent distinct years.

    Years compare as strings, which orders zero-padded four-digit years
    correctly. When the data spans no more than ``year_window`` years every
    record is kept.
    """
    if year_window < 0:
        raise ValueError("year_window must be zero or positive")

    years = distinct_years(records)
    if year_window >= len(years):
        return list(records)

    kept = set(years[::-1][:year_window])
    return [record for record in records if record.year in kept]
