# scripts/fix_call_dates.py
"""
Re-normalize every stored call's tradingDay to IST midnight.

Older rows were written as UTC midnight of the intended date
(2026-02-06T00:00:00Z); the canonical value is IST midnight of that same
date (2026-02-05T18:30:00Z). Rows already on IST midnight are skipped, so
the script is safe to re-run.

  python scripts/fix_call_dates.py [--dry-run]
"""

import argparse
import os
import sys

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from pymongo import MongoClient

from greencandle.mongo_collections import CALLS
from greencandle.services.calendar import TradingDay, as_mongo_datetime
from greencandle.settings import settings


def canonical_trading_day(stored):
    """IST-midnight instant (naive UTC) for the IST date a stored value falls on."""
    return as_mongo_datetime(TradingDay.from_instant(stored).start())


def fix_call_dates(db, dry_run: bool = False) -> dict:
    updated = skipped = failed = 0
    # rows from before the rename still carry `date`
    cursor = db[CALLS].find({}, {"tradingDay": 1, "date": 1})
    for i, call in enumerate(cursor):
        stored = call.get("tradingDay") or call.get("date")
        if stored is None:
            print(f"Skipping call {call['_id']} - no date field")
            skipped += 1
            continue
        try:
            fixed = canonical_trading_day(stored)
            if i < 3:
                print(f"Call {call['_id']}: {stored.isoformat()} -> {fixed.isoformat()}")
            if stored == fixed and "date" not in call:
                skipped += 1
                continue
            if not dry_run:
                db[CALLS].update_one(
                    {"_id": call["_id"]},
                    {"$set": {"tradingDay": fixed}, "$unset": {"date": ""}},
                )
            updated += 1
            if updated % 10 == 0:
                print(f"Processed {updated} calls...")
        except Exception as e:
            print(f"Error processing call {call['_id']}: {e} (value: {stored!r})")
            failed += 1
    return {"updated": updated, "skipped": skipped, "failed": failed}


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--dry-run", action="store_true", help="report changes without writing")
    args = parser.parse_args()

    client = MongoClient(settings.mongodb_uri)
    try:
        summary = fix_call_dates(client[settings.mongodb_db], dry_run=args.dry_run)
    finally:
        client.close()

    print("\n=== Migration Summary ===")
    print(f"Calls updated: {summary['updated']}{' (dry run)' if args.dry_run else ''}")
    print(f"Calls skipped (already correct): {summary['skipped']}")
    print(f"Calls failed: {summary['failed']}")
    if summary["failed"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
