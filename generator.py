"""
generator.py
Build a ROA dataset from a registry snapshot:
  <registry>/data/filter.txt, filter6.txt   -> per-AFI filter tables
  <registry>/data/route/, route6/           -> route objects
and write it as JSON. Every run is a full recomputation.
"""

import os, sys, argparse
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from dotenv import load_dotenv

from models import ROAEntry, Dataset, RoaError, AFI4, AFI6
from filters import FilterTable, build_tables
from parsers import parse_route_record
from reconcile import reconcile
from storage import filter_path, route_dir, read_lines, iter_record_paths, read_record, write_dataset
from log import get_logger, setup_logging

log = get_logger(__name__)

AFIS = [AFI4, AFI6]
VALIDITY = timedelta(days=7)


def load_filters(registry: str) -> Dict[str, FilterTable]:
    return build_tables(*(read_lines(filter_path(registry, afi)) for afi in AFIS))


def process_entry(path: str, tables: Dict[str, FilterTable]) -> List[ROAEntry]:
    text = read_record(path)
    record = parse_route_record(text)
    return reconcile(record, tables[record.afi])


def _process_safe(path: str, tables: Dict[str, FilterTable]) -> Tuple[List[ROAEntry], bool]:
    try:
        return process_entry(path, tables), True
    except (RoaError, OSError, UnicodeDecodeError) as e:
        log.error("Failed to process %s: %s", path, e)
        return [], False


def process_directory(path: str, tables: Dict[str, FilterTable], workers: int = 1) -> List[ROAEntry]:
    """
    Reconcile every record in a route directory, in file-name order.
    Per-record failures are logged and skipped; listing failures propagate.
    """
    paths = iter_record_paths(path)
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda p: _process_safe(p, tables), paths))
    else:
        results = [_process_safe(p, tables) for p in paths]

    roas: List[ROAEntry] = []
    failed = 0
    for entries, ok in results:
        roas.extend(entries)
        if not ok:
            failed += 1
    log.info("%s: %d files, %d roas, %d failed", path, len(paths), len(roas), failed)
    return roas


def assemble_dataset(roas: List[ROAEntry], now: Optional[datetime] = None) -> Dataset:
    now = now or datetime.now(timezone.utc)
    expire = now + VALIDITY
    return Dataset(generated=int(now.timestamp()), valid=int(expire.timestamp()), roas=list(roas))


def generate(registry: str, workers: int = 1, now: Optional[datetime] = None) -> Dataset:
    tables = load_filters(registry)
    roas: List[ROAEntry] = []
    for afi in AFIS:
        roas.extend(process_directory(route_dir(registry, afi), tables, workers))
    return assemble_dataset(roas, now)


def main(argv: Optional[List[str]] = None):
    load_dotenv()

    ap = argparse.ArgumentParser(description="Generate a ROA dataset from a routing registry")
    ap.add_argument("registry", help="Registry root (expects data/filter.txt, data/route/, ...)")
    ap.add_argument("output", help="Output JSON path, e.g. roa.json")
    ap.add_argument("--workers", type=int, default=int(os.environ.get("ROA_WORKERS", "1")),
                    help="Threads used to process route records")
    ap.add_argument("--pretty", action="store_true", help="Indent the JSON output")
    ap.add_argument("--log-level", default=os.environ.get("LOG_LEVEL", "INFO"))
    args = ap.parse_args(argv)

    setup_logging(args.log_level)

    try:
        dataset = generate(args.registry, workers=max(1, args.workers))
        write_dataset(args.output, dataset.serialize(), indent=2 if args.pretty else None)
    except (OSError, UnicodeDecodeError, OverflowError) as e:
        log.error("%s", e)
        sys.exit(1)

    log.info("wrote %d roas to %s", dataset.counts, args.output)


if __name__ == "__main__":
    main()
