#!/usr/bin/env python3
"""CLI script to import orders into the local store.

Reads raw orders from a JSON dump (a list, or an object with a ``Data`` /
``orders`` list) or pages them straight from the remote API, and feeds them
through the import engine one page at a time.

Usage:
    uv run python scripts/import_orders.py orders.json --dry-run
    uv run python scripts/import_orders.py --from-api --force-update --page-size 100
"""

import argparse
import json
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import Any

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import structlog

from order_sync.clients.orders_api import OrdersApiClient, iter_pages
from order_sync.config import get_settings
from order_sync.infrastructure.database.connection import get_db_session
from order_sync.logging import configure_logging
from order_sync.services.order_import import OrderImportService
from order_sync.services.report import RunTotals

logger = structlog.get_logger()


def load_dump(path: Path) -> list[dict[str, Any]]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        for key in ("Data", "data", "Orders", "orders"):
            if isinstance(payload.get(key), list):
                return payload[key]
    if not isinstance(payload, list):
        raise SystemExit(f"{path} does not contain a list of orders")
    return payload


def pages_from_dump(orders: list[dict[str, Any]], page_size: int) -> Iterator[list[dict[str, Any]]]:
    for start in range(0, len(orders), page_size):
        yield orders[start : start + page_size]


def main() -> int:
    parser = argparse.ArgumentParser(description="Import orders into the local store")
    parser.add_argument("dump", nargs="?", type=Path, help="JSON file of raw orders")
    parser.add_argument("--from-api", action="store_true", help="Page orders from the remote API")
    parser.add_argument("--dry-run", action="store_true", help="Classify only, write nothing")
    parser.add_argument("--force-update", action="store_true", help="Overwrite unchanged orders too")
    parser.add_argument("--page-size", type=int, default=None)
    parser.add_argument("--mode", choices=["bulk", "per_record"], default=None)
    args = parser.parse_args()

    if bool(args.dump) == args.from_api:
        parser.error("pass either a dump file or --from-api")

    settings = get_settings()
    configure_logging(settings)
    page_size = args.page_size or settings.orders_api_page_size

    if args.from_api:
        client = OrdersApiClient(settings)
        pages = (page.orders for page in iter_pages(client, page_size, settings.sync_max_pages))
    else:
        client = None
        pages = pages_from_dump(load_dump(args.dump), page_size)

    totals = RunTotals()
    logger.info("Starting order import", dry_run=args.dry_run, force_update=args.force_update)

    try:
        with get_db_session() as session:
            service = OrderImportService(session, settings, mode=args.mode)
            for orders in pages:
                if args.dry_run:
                    report = service.dry_run_import(orders)
                else:
                    report = service.import_batch(orders, force_update=args.force_update)
                totals.add(report)
    finally:
        if client is not None:
            client.close()

    logger.info("Order import completed", dry_run=args.dry_run, **totals.to_dict())
    return 1 if totals.failed else 0


if __name__ == "__main__":
    sys.exit(main())
