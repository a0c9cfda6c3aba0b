"""CLI entrypoint for the IEEE bibliography statistics pipeline.

Phases:
  enrich  parse the BibTeX export block by block, enrich every record from
          IEEE Xplore and save a JSON snapshot
  store   load the JSON snapshot into the SQLite record store
  stats   compute the statistics and write the semicolon-delimited report
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from bibtex_parser import BibtexParseError, BibtexParser
from ieee_enricher import enrich_records
from models import Record
from record_store import RecordStore, load_records_json, save_records_json
from report import write_statistics_report


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags; defaults come from the environment."""
    parser = argparse.ArgumentParser(description="Parse, enrich and summarise IEEE BibTeX exports")
    parser.add_argument("phase", choices=["enrich", "store", "stats"], help="Pipeline phase to run")
    parser.add_argument("--bibtex", default=os.getenv("BIBTEX_FILE_PATH", "papers.bib"), help="BibTeX input file")
    parser.add_argument("--json", default=os.getenv("JSON_FILE_PATH", "papers_enriched.json"), help="JSON snapshot path")
    parser.add_argument("--db", default=os.getenv("RECORDS_DB_PATH", "papers.sqlite3"), help="SQLite record store path")
    parser.add_argument(
        "--output",
        default=os.getenv("STATISTICS_RESULT_PATH", "papers_statistics.txt"),
        help="Statistics report path (stats phase)",
    )
    parser.add_argument(
        "--block-size",
        type=int,
        default=int(os.getenv("BLOCK_SIZE", "100")),
        help="Records read per block; 0 reads the whole file at once",
    )
    parser.add_argument(
        "--year-window",
        type=int,
        default=int(os.getenv("REPORT_YEAR_WINDOW", "3")),
        help="Most recent distinct years used by the country and keyword rankings",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=int(os.getenv("ENRICH_MAX_WORKERS", "2")),
        help="Parallel IEEE page fetches",
    )
    parser.add_argument(
        "--delete-previous",
        action="store_true",
        default=_env_flag("DELETE_PREVIOUS_FILE"),
        help="Delete an existing JSON snapshot before enriching",
    )
    parser.add_argument("--no-enrich", action="store_true", help="Parse only; skip IEEE lookups")
    parser.add_argument(
        "--source",
        choices=["json", "db"],
        default="db",
        help="Where the stats phase reads records from (default: db)",
    )
    return parser.parse_args(argv)


def run_enrich(
    bibtex_path: str,
    json_path: str,
    block_size: int,
    max_workers: int,
    delete_previous: bool = False,
    enrich: bool = True,
) -> list[Record]:
    """Parse the BibTeX file in blocks, enrich each block and save a snapshot."""
    output = Path(json_path)
    if delete_previous and output.exists():
        output.unlink()
        logging.info("Deleted previous snapshot %s", output)

    all_records: list[Record] = []
    with BibtexParser(bibtex_path) as parser:
        for block in parser.iter_blocks(block_size):
            logging.info("Parsed block of %s records", len(block))
            if enrich:
                enrich_records(block, max_workers=max_workers)
            all_records.extend(block)

    save_records_json(all_records, json_path)
    logging.info("Enrich phase complete: records=%s snapshot=%s", len(all_records), json_path)
    return all_records


def run_store(json_path: str, db_path: str) -> int:
    """Copy the JSON snapshot into the SQLite record store."""
    records = load_records_json(json_path)
    return RecordStore(db_path).insert(records)


def run_stats(source: str, json_path: str, db_path: str, output_path: str, year_window: int) -> Path:
    """Load records and write the statistics report."""
    if source == "json":
        records = load_records_json(json_path)
    else:
        if not Path(db_path).exists():
            raise FileNotFoundError(f"Record store {db_path} does not exist; run the store phase first")
        records = RecordStore(db_path).load_all()
    logging.info("Computing statistics over %s records (year_window=%s)", len(records), year_window)
    return write_statistics_report(records, output_path, year_window=year_window)


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute the requested phase."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)

    try:
        if args.phase == "enrich":
            run_enrich(
                bibtex_path=args.bibtex,
                json_path=args.json,
                block_size=args.block_size,
                max_workers=args.max_workers,
                delete_previous=args.delete_previous,
                enrich=not args.no_enrich,
            )
        elif args.phase == "store":
            run_store(args.json, args.db)
        else:
            run_stats(args.source, args.json, args.db, args.output, args.year_window)
    except BibtexParseError as exc:
        logging.error("BibTeX file %s is malformed: %s", args.bibtex, exc)
        return 1
    except (OSError, ValueError, RuntimeError) as exc:
        logging.exception("Phase %s failed: %s", args.phase, exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
