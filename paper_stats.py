"""Aggregate statistics over parsed and enriched records.

Every function is a pure read-only pass: the record sequence is never
mutated, no state survives between calls, and ties keep first-seen order
(insertion-ordered dicts plus stable sorts), so repeated calls over the same
input produce identical output.

Functions taking ``year_window`` first restrict the records to the most
recent distinct years (see ``filters.restrict_to_year_window``).
"""

from __future__ import annotations

import logging
import math
import statistics
from collections import Counter
from collections.abc import Callable, Iterable, Sequence

from filters import distinct_years, restrict_to_year_window
from models import CountryStat, GroupCount, Record, YearStat

LOGGER = logging.getLogger(__name__)

# Pushes counts sitting exactly on mean + stddev over the threshold.
THRESHOLD_EPSILON = 0.00001
TRAILING_YEARS = 3


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------


def population_variance(values: Iterable[float], mu: float | None = None) -> float:
    """Sum of squared deviations divided by n (not n - 1); 0 below two values."""
    data = list(values)
    if len(data) < 2:
        return 0.0
    return float(statistics.pvariance(data, mu))


def population_stddev(values: Iterable[float], mu: float | None = None) -> float:
    return math.sqrt(population_variance(values, mu))


def _check_window_args(limit: int, year_window: int) -> None:
    if limit < 0:
        raise ValueError("limit must be zero or positive")
    if year_window < 0:
        raise ValueError("year_window must be zero or positive")


def _records_by_year(records: Sequence[Record]) -> dict[str | None, list[Record]]:
    grouped: dict[str | None, list[Record]] = {}
    for record in records:
        grouped.setdefault(record.year, []).append(record)
    return grouped


# ---------------------------------------------------------------------------
# By year
# ---------------------------------------------------------------------------


def count_by_year(records: Sequence[Record]) -> list[GroupCount]:
    """Number of records per raw year, ascending by year string."""
    counts = Counter(record.year for record in records)
    return [GroupCount(grouping=year, count=counts[year]) for year in distinct_years(records)]


def distinct_countries_by_year(records: Sequence[Record]) -> list[GroupCount]:
    """Number of distinct countries publishing in each year."""
    grouped = _records_by_year(records)
    return [
        GroupCount(grouping=year, count=len({record.country for record in grouped[year]}))
        for year in distinct_years(records)
    ]


def trailing_citation_share(records: Sequence[Record]) -> list[YearStat]:
    """Each paper's citations as a share of the three preceding years' total.

    For every year from the fourth distinct year on, the ratio
    ``citations / trailing_total`` is computed per record of that year and
    summarised as mean and population stddev. When the trailing years hold no
    citations at all the ratios are reported as 0.
    """
    years = distinct_years(records)
    if len(years) <= TRAILING_YEARS:
        return []

    grouped = _records_by_year(records)
    citations_per_year = {
        year: sum(record.citations_count for record in grouped[year]) for year in years
    }

    results: list[YearStat] = []
    for i in range(TRAILING_YEARS, len(years)):
        trailing_total = sum(citations_per_year[years[k]] for k in range(i - TRAILING_YEARS, i))
        if trailing_total == 0:
            LOGGER.warning("No citations in the %s years before %s", TRAILING_YEARS, years[i])
            ratios = [0.0 for _ in grouped[years[i]]]
        else:
            ratios = [record.citations_count / trailing_total for record in grouped[years[i]]]
        results.append(
            YearStat(year=years[i], avg=statistics.fmean(ratios), stddev=population_stddev(ratios))
        )
    return results


def _per_year_stat(records: Sequence[Record], value: Callable[[Record], float]) -> list[YearStat]:
    grouped = _records_by_year(records)
    results: list[YearStat] = []
    for year in distinct_years(records):
        values = [value(record) for record in grouped[year]]
        results.append(
            YearStat(year=year, avg=statistics.fmean(values), stddev=population_stddev(values))
        )
    return results


def avg_citations_by_year(records: Sequence[Record]) -> list[YearStat]:
    """Mean and population stddev of citation counts per year."""
    return _per_year_stat(records, lambda record: record.citations_count)


def avg_visualizations_by_year(records: Sequence[Record]) -> list[YearStat]:
    """Mean and population stddev of visualization counts per year."""
    return _per_year_stat(records, lambda record: record.visualizations)


# ---------------------------------------------------------------------------
# By country
# ---------------------------------------------------------------------------


def threshold_steps(count: int, threshold: float) -> int:
    """Whole thresholds spanned by ``count``; an exact multiple adds one step.

    With ``THRESHOLD_EPSILON`` added to the threshold an integer count is
    never an exact multiple in practice, so the extra step only shows up for
    thresholds passed in directly.
    """
    steps = math.floor(count / threshold)
    if count % threshold == 0:
        steps += 1
    return steps


def top_countries_above_threshold(
    records: Sequence[Record], limit: int, year_window: int
) -> list[GroupCount]:
    """Countries whose publication count exceeds mean + stddev, in steps.

    ``count`` in the result is the number of whole thresholds the country's
    publication count spans (an exact multiple counts one extra step).
    Countries below the threshold are left out. Sorted by steps, descending.
    """
    _check_window_args(limit, year_window)
    if limit == 0:
        return []

    working = restrict_to_year_window(records, year_window)
    if not working:
        return []

    count_by_country = Counter(record.country for record in working)
    counts = list(count_by_country.values())
    average = statistics.fmean(counts)
    threshold = average + population_stddev(counts, average) + THRESHOLD_EPSILON

    above: list[GroupCount] = []
    for country, count in count_by_country.items():
        steps = threshold_steps(count, threshold)
        if steps > 0:
            above.append(GroupCount(grouping=country, count=steps))

    above.sort(key=lambda item: item.count, reverse=True)
    return above[:limit]


def countries_with_most_publishing(
    records: Sequence[Record], limit: int, year_window: int
) -> list[tuple[str | None, int]]:
    """Countries ranked by number of publications, descending."""
    _check_window_args(limit, year_window)
    working = restrict_to_year_window(records, year_window)
    ranked = sorted(
        Counter(record.country for record in working).items(),
        key=lambda item: item[1],
        reverse=True,
    )
    return ranked[:limit]


def _median_of_sorted(values: list[int]) -> float:
    # The single-value branch is always overwritten by the odd-length branch
    # below (1 % 2 != 0); both give the same answer for one value.
    median: float = 0
    if len(values) == 1:
        median = values[0]
    if len(values) % 2 != 0:
        median = values[len(values) // 2]
    else:
        median = (values[len(values) // 2 - 1] + values[len(values) // 2]) / 2.0
    return median


def _mode(values: Iterable[int]) -> int:
    """Most frequent value, first seen on ties; -1 when nothing repeats."""
    frequency: dict[int, int] = {}
    for value in values:
        frequency[value] = frequency.get(value, 0) + 1

    top = max(frequency.values())
    if top <= 1:
        return -1
    return next(value for value, seen in frequency.items() if seen == top)


def country_stats(records: Sequence[Record], limit: int, year_window: int) -> list[CountryStat]:
    """Dispersion of each country's yearly publication counts.

    Sorted by the median of the yearly counts (``CountryStat.mean``),
    descending.
    """
    _check_window_args(limit, year_window)
    working = restrict_to_year_window(records, year_window)

    # country -> year -> publications, both in first-seen order
    yearly: dict[str | None, dict[str | None, int]] = {}
    for record in working:
        per_year = yearly.setdefault(record.country, {})
        per_year[record.year] = per_year.get(record.year, 0) + 1

    results: list[CountryStat] = []
    for country, per_year in yearly.items():
        counts = list(per_year.values())
        avg = sum(counts) / len(counts)
        variance = sum((count - avg) ** 2 for count in counts) / len(counts)
        highest = max(counts)
        lowest = min(counts)

        results.append(
            CountryStat(
                country=country,
                avg=avg,
                stddev=math.sqrt(variance),
                variance=variance,
                mean=_median_of_sorted(sorted(counts)),
                highest=highest,
                lowest=lowest,
                mode=_mode(counts),
                median_point=(highest + lowest) / 2.0,
            )
        )

    results.sort(key=lambda stat: stat.mean, reverse=True)
    return results[:limit]


# ---------------------------------------------------------------------------
# Keywords
# ---------------------------------------------------------------------------


def keyword_frequency(
    records: Sequence[Record], limit: int, year_window: int
) -> list[tuple[str, int]]:
    """Most used keywords, counted case-insensitively.

    Keywords are ``;``-separated. The spelling reported for a keyword is the
    first one seen.
    """
    _check_window_args(limit, year_window)
    working = restrict_to_year_window(records, year_window)

    spelling: dict[str, str] = {}
    counts: dict[str, int] = {}
    for record in working:
        if not record.keywords or not record.keywords.strip():
            continue
        for token in record.keywords.split(";"):
            keyword = token.strip()
            if not keyword:
                continue
            key = keyword.casefold()
            spelling.setdefault(key, keyword)
            counts[key] = counts.get(key, 0) + 1

    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [(spelling[key], count) for key, count in ranked[:limit]]
