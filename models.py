"""Shared typed models for the bibliography statistics pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any


@dataclass(slots=True)
class Record:
    """One bibliographic entry parsed from an IEEE BibTeX export.

    Bibliographic fields are filled once by the parser. Venue, country,
    citation, visualization and impact fields are filled later by the
    enrichment step; nothing else mutates a record after it is built.
    """

    record_id: str
    author: str | None = None
    title: str | None = None
    journal: str | None = None
    book_title: str | None = None
    volume: str | None = None
    number: str | None = None
    issn: str | None = None
    month: str | None = None
    doi: str | None = None
    keywords: str | None = None
    year: str | None = None
    published: int = 0
    pages: str | None = None
    initial_page: int = 0
    end_page: int = 0
    # Enrichment
    id_conference: str | None = None
    country: str | None = None
    citations_count: int = 0
    visualizations: int = 0
    impact_factor: float = 0.0
    eigenfactor: float = 0.0
    influence_score: float = 0.0

    def set_year(self, raw: str | None) -> None:
        """Store the raw year and its integer value.

        An unparseable year leaves ``published`` at 0 and discards the raw
        string (``year`` becomes None).
        """
        try:
            parsed = int(raw)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            self.year = None
            self.published = 0
            return
        self.year = raw
        self.published = parsed

    def set_pages(self, raw: str | None) -> None:
        """Store the raw "BEGIN-END" page range and its integer bounds."""
        self.initial_page = 0
        self.end_page = 0
        self.pages = raw

        if raw is None or not raw.strip():
            return

        tokens = [tok for tok in raw.split("-") if tok]
        if len(tokens) != 2:
            return

        try:
            begin = int(tokens[0])
            end = int(tokens[1])
        except ValueError:
            return

        # NOTE: compares the bounds that were just reset to 0, not the parsed
        # candidates, so a reversed range such as "20-10" is still accepted.
        # Kept as-is; existing datasets were produced with this behaviour.
        if self.initial_page > self.end_page:
            return

        self.initial_page = begin
        self.end_page = end

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Record:
        """Rebuild a record from ``to_dict`` output, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


@dataclass(frozen=True, slots=True)
class GroupCount:
    """How many times a grouping value (a year, a country) was counted."""

    grouping: str | None
    count: int


@dataclass(frozen=True, slots=True)
class YearStat:
    year: str | None
    avg: float
    stddev: float


@dataclass(frozen=True, slots=True)
class CountryStat:
    """Per-country statistics over the yearly publication counts.

    ``mean`` holds the median of the yearly counts and ``median_point`` the
    midpoint between ``highest`` and ``lowest``. Both names match the columns
    of the published reports.
    """

    country: str | None
    avg: float
    stddev: float
    variance: float
    mean: float
    highest: float
    lowest: float
    mode: int
    median_point: float
