#!/usr/bin/env python3
"""Backfill the party model from the legacy farms, users, customers, suppliers and orders."""
from __future__ import annotations

import argparse
import signal
import sys
import threading
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from partyhub.core.logger import get_logger, init_logging, log_context, timeit
from partyhub.db import get_sessionmaker
from partyhub.services import BackfillMigrator

logger = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--verify-only", action="store_true", help="Only report migration coverage")
    parser.add_argument("--database-url", default=None, help="SQLAlchemy URL; defaults to the configured database")
    parser.add_argument("--log-level", default="INFO", help="Console and file log level")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    init_logging(app_name="party-backfill", level=args.log_level)
    log_context.bind(job="party_backfill")

    cancel = threading.Event()

    def _request_cancel(signum, _frame) -> None:
        logger.warning("Signal %s received; stopping after the current stage", signum)
        cancel.set()

    signal.signal(signal.SIGINT, _request_cancel)
    signal.signal(signal.SIGTERM, _request_cancel)

    migrator = BackfillMigrator(get_sessionmaker(args.database_url), cancel_event=cancel)

    if not args.verify_only:
        with timeit("party backfill", logger=logger, unit="rows") as timer:
            report = migrator.run()
            timer.set_total(report.total_migrated)
        if report.cancelled:
            logger.warning("Backfill stopped early; re-run to resume")
        if report.unlinked_orders:
            logger.warning("%d orders could not be linked to a customer party", len(report.unlinked_orders))

    verification = migrator.verify()
    if not verification.complete:
        logger.warning("Migration incomplete; see coverage counts above")
        return 1
    logger.info("All legacy rows carry a party reference")
    return 0


if __name__ == "__main__":
    sys.exit(main())
