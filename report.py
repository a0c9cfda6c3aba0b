"""Statistics report: semicolon-delimited sections, one per statistic.

Sections are written in a fixed order and separated by an empty line:

  papers by year              year;count
  trailing citation share     year;avg;stddev
  citations by year           year;avg;stddev
  visualizations by year      year;avg;stddev
  countries by year           year;distinct_countries
  steps above threshold       country;steps
  most publishing countries   country;publications
  country statistics          country;avg;stddev;variance;highest;lowest;median_point;mean;mode
  keywords                    keyword;count

Runnable standalone against a JSON snapshot:
    python report.py papers_enriched.json
"""

from __future__ import annotations

import csv
import logging
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import paper_stats
from models import Record

LOGGER = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configurable paths / limits
# ---------------------------------------------------------------------------

STATISTICS_RESULT_PATH = os.getenv("STATISTICS_RESULT_PATH", "papers_statistics.txt")
REPORT_YEAR_WINDOW = int(os.getenv("REPORT_YEAR_WINDOW", "3"))
THRESHOLD_COUNTRIES_LIMIT = 20
MOST_PUBLISHING_LIMIT = 10
COUNTRY_STATS_LIMIT = 10
KEYWORDS_LIMIT = 100


def build_sections(records: Sequence[Record], year_window: int | None = None) -> list[list[list[Any]]]:
    """Compute every report section as a list of rows."""
    window = REPORT_YEAR_WINDOW if year_window is None else year_window

    def year_stats(stats):
        return [[s.year, s.avg, s.stddev] for s in stats]

    return [
        [[g.grouping, g.count] for g in paper_stats.count_by_year(records)],
        year_stats(paper_stats.trailing_citation_share(records)),
        year_stats(paper_stats.avg_citations_by_year(records)),
        year_stats(paper_stats.avg_visualizations_by_year(records)),
        [[g.grouping, g.count] for g in paper_stats.distinct_countries_by_year(records)],
        [
            [g.grouping, g.count]
            for g in paper_stats.top_countries_above_threshold(records, THRESHOLD_COUNTRIES_LIMIT, window)
        ],
        [
            list(pair)
            for pair in paper_stats.countries_with_most_publishing(records, MOST_PUBLISHING_LIMIT, window)
        ],
        [
            [c.country, c.avg, c.stddev, c.variance, c.highest, c.lowest, c.median_point, c.mean, c.mode]
            for c in paper_stats.country_stats(records, COUNTRY_STATS_LIMIT, window)
        ],
        [list(pair) for pair in paper_stats.keyword_frequency(records, KEYWORDS_LIMIT, window)],
    ]


def write_statistics_report(
    records: Sequence[Record],
    path: str | None = None,
    year_window: int | None = None,
) -> Path:
    """Write all sections to ``path`` (overwriting it) and return the path."""
    target = Path(path or STATISTICS_RESULT_PATH)
    sections = build_sections(records, year_window)

    with target.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh, delimiter=";", lineterminator="\n")
        for index, rows in enumerate(sections):
            if index:
                writer.writerow([])
            writer.writerows(["" if value is None else value for value in row] for row in rows)

    LOGGER.info("report: %d records, %d sections → %s", len(records), len(sections), target)
    return target


# ---------------------------------------------------------------------------
# Standalone execution
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import sys

    from dotenv import load_dotenv

    from record_store import load_records_json

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    source = sys.argv[1] if len(sys.argv) > 1 else None
    result = write_statistics_report(load_records_json(source))
    print(f"Statistics → {result}")
