"""One-shot monthly accrual batch.

Run with:  python -m leave_ledger.worker [--month YYYY-MM]

Catches every employee's accrual ledger up through the given month (the
current month by default). Safe to re-run; per-employee failures are logged
and counted without aborting the batch.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from leave_ledger.db import dispose_engine, get_session_factory
from leave_ledger.exceptions import AppError
from leave_ledger.services.accrual import parse_month, process_accruals_for_month

logger = logging.getLogger(__name__)


async def run_batch(month: str | None = None) -> int:
    """Run the batch once. Returns the number of per-employee errors."""
    session_factory = get_session_factory()
    try:
        async with session_factory() as session:
            result = await process_accruals_for_month(session, parse_month(month) if month else None)
    finally:
        await dispose_engine()
    return result.errors


def main(argv: list[str] | None = None) -> None:
    """Entry point for the batch process."""
    parser = argparse.ArgumentParser(description="Process monthly leave accruals.")
    parser.add_argument("--month", help="Month to process as YYYY-MM (default: current month)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    try:
        errors = asyncio.run(run_batch(args.month))
    except AppError as exc:
        logger.error("Accrual run rejected: %s", exc.message)
        sys.exit(2)
    if errors:
        sys.exit(1)


if __name__ == "__main__":
    main()
