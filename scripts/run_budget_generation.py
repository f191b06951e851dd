#!/usr/bin/env python
"""Run the scheduled budget generation sweep once.

Meant for the external job runner (cron, Kubernetes CronJob) on the first
day of each period:

  python scripts/run_budget_generation.py
  python scripts/run_budget_generation.py --date 2025-02-01
"""

import argparse
import asyncio
import sys
from datetime import date

from budget_engine.database import AsyncSessionLocal, close_db
from budget_engine.logging_config import configure_logging
from budget_engine.services.batch_scheduler import BatchScheduler


async def run(reference_date: date | None) -> int:
    try:
        summary = await BatchScheduler(AsyncSessionLocal).run(reference_date)
    finally:
        await close_db()

    for outcome in summary.results:
        line = (
            f"{outcome.status:<10} {outcome.template_name} {outcome.period_label} "
            f"({outcome.family_id})"
        )
        print(line + (f": {outcome.reason}" if outcome.reason else ""))
    print(
        f"Run {summary.run_month}: {summary.generated_count} generated, "
        f"{summary.skipped_count} skipped, {summary.error_count} errors "
        f"of {summary.total_templates} templates"
    )
    return 1 if summary.error_count else 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate this period's budgets from templates")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Treat this ISO date as today (default: the current date)",
    )
    args = parser.parse_args()

    configure_logging()
    return asyncio.run(run(args.date))


if __name__ == "__main__":
    sys.exit(main())
