"""IEEE Xplore enrichment: country, citation and venue metrics per record."""

from __future__ import annotations

import logging
import os
import random
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed

import requests
from bs4 import BeautifulSoup

from models import Record

PAPER_URL = "http://ieeexplore.ieee.org/xpl/articleDetails.jsp?arnumber={}"
CONFERENCE_URL = "http://ieeexplore.ieee.org/xpl/RecentIssue.jsp?punumber={}"
REQUEST_TIMEOUT_SECONDS = float(os.getenv("IEEE_REQUEST_TIMEOUT_SECONDS", "30"))
ENRICH_MAX_WORKERS = int(os.getenv("ENRICH_MAX_WORKERS", "2"))
# Random pause before each article fetch to avoid being rate-limited.
_POLITENESS_DELAY_SECONDS = (0.2, 0.6)
_PROGRESS_EVERY = 100

LOGGER = logging.getLogger(__name__)


def fetch_page(url: str, session: requests.Session | None = None) -> str:
    """GET a page and return its HTML; raises on non-2xx responses."""
    getter = session.get if session is not None else requests.get
    response = getter(url, timeout=REQUEST_TIMEOUT_SECONDS)
    response.raise_for_status()
    return response.text


def enrich_record(record: Record, session: requests.Session | None = None) -> Record:
    """Fill the enrichment fields of ``record`` in place and return it."""
    if not record.record_id or not record.record_id.strip():
        raise ValueError("record has no IEEE article number")

    html = fetch_page(PAPER_URL.format(record.record_id), session)
    apply_article_page(record, html)

    if record.id_conference:
        venue_html = fetch_page(CONFERENCE_URL.format(record.id_conference), session)
        apply_venue_page(record, venue_html)

    return record


def apply_article_page(record: Record, html: str) -> None:
    """Copy venue id, country, citations and visualizations from an article page."""
    if not html or not html.strip():
        raise ValueError(f"empty article page for record {record.record_id}")

    # Keep class as one raw string; the affiliation text is stored in it.
    soup = BeautifulSoup(html, "lxml", multi_valued_attributes=None)

    venue_id = _venue_id(soup)
    if venue_id:
        record.id_conference = venue_id

    country = _country(soup)
    if country is not None:
        record.country = country

    record.citations_count = _leading_count(soup.select_one("div.countHeader"))
    record.visualizations = _leading_count(soup.select_one("div.total-count"))


def apply_venue_page(record: Record, html: str) -> None:
    """Copy impact factor, eigenfactor and influence score from a venue page."""
    soup = BeautifulSoup(html, "lxml")
    metrics = soup.select("#journal-page-bdy > div:nth-of-type(1) > div:nth-of-type(2) > a")

    values = [_metric(link) for link in metrics[:3]]
    values += [None] * (3 - len(values))
    impact_factor, eigenfactor, influence_score = values

    if impact_factor is not None:
        record.impact_factor = impact_factor
    if eigenfactor is not None:
        record.eigenfactor = eigenfactor
    if influence_score is not None:
        record.influence_score = influence_score


def enrich_records(
    records: Sequence[Record],
    max_workers: int | None = None,
    delay: bool = True,
) -> int:
    """Enrich records in parallel; a failing record is logged and skipped.

    Returns the number of records enriched successfully.
    """
    workers = max(1, max_workers or ENRICH_MAX_WORKERS)
    total = len(records)
    done = 0
    succeeded = 0

    with requests.Session() as session, ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {
            pool.submit(_enrich_politely, record, session, delay): record for record in records
        }
        for future in as_completed(futures):
            record = futures[future]
            done += 1
            try:
                future.result()
                succeeded += 1
            except Exception as exc:  # one bad page must not stop the batch
                LOGGER.exception("Enrichment failed for record_id=%s: %s", record.record_id, exc)
            if done % _PROGRESS_EVERY == 0:
                LOGGER.info("Enrichment progress: %s of %s (%.2f%%)", done, total, 100.0 * done / total)

    LOGGER.info("Enrichment complete: total=%s succeeded=%s failed=%s", total, succeeded, total - succeeded)
    return succeeded


def _enrich_politely(record: Record, session: requests.Session, delay: bool) -> Record:
    if delay:
        time.sleep(random.uniform(*_POLITENESS_DELAY_SECONDS))
    return enrich_record(record, session)


def _venue_id(soup: BeautifulSoup) -> str | None:
    link = soup.select_one("#articleDetails > div > div:nth-of-type(2) > a[href]")
    if link is None:
        return None
    parts = [part for part in link["href"].split("punumber=") if part]
    if len(parts) > 1 and parts[1].isdigit():
        return parts[1]
    return None


def _country(soup: BeautifulSoup) -> str | None:
    # The affiliation lives in the class attribute: "Institute, City, Country|c|".
    span = soup.find("span", id="authorAffiliations")
    if span is None:
        return None
    affiliation = span.get("class")
    if not affiliation:
        return None
    tokens = [tok for tok in affiliation.split(",") if tok]
    if not tokens:
        return None
    return tokens[-1].replace("|c|", "").strip()


def _leading_count(node) -> int:
    """First whitespace token as an int, e.g. "12 Citations" -> 12."""
    if node is None:
        return 0
    tokens = node.get_text(" ").split()
    if len(tokens) < 2:
        return 0
    try:
        return int(tokens[0].strip())
    except ValueError:
        return 0


def _metric(link) -> float | None:
    span = link.find("span")
    if span is None:
        return None
    try:
        return float(span.get_text(strip=True).replace(",", ""))
    except ValueError:
        return 0.0
