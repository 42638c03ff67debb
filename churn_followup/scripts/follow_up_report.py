#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy.exc import OperationalError

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

load_dotenv(PROJECT_ROOT / ".env")

from churn_followup.core.config import settings
from churn_followup.database import SessionLocal, check_database_connection
from churn_followup.errors import NotFound
from churn_followup.logic.records import as_utc
from churn_followup.repositories.churn_repo import ChurnRecordStore
from churn_followup.services.call_recorder import get_follow_up_status
from churn_followup.services.categorizer import Category, categorize
from churn_followup.services.follow_up_views import list_due
from churn_followup.services.statistics import follow_up_statistics


def _parse_now(raw: str | None) -> datetime:
    if not raw:
        return datetime.now(timezone.utc)
    return as_utc(datetime.fromisoformat(raw))


def print_dashboard(store: ChurnRecordStore, now: datetime, limit: int) -> None:
    records = store.query()
    buckets = categorize(records, now)
    stats = follow_up_statistics(records)
    due = list_due(records, now)

    print(f"\nCHURN FOLLOW-UP REPORT | as of {now.isoformat()}")
    print("-" * 56)
    for category in Category:
        print(f"{category.value:<12} {len(buckets.bucket(category)):>6}")
    print(f"{'total':<12} {buckets.total:>6}")
    print("-" * 56)
    print(f"Reasons filled:       {stats.completed_churn_reasons} ({stats.completion_percentage}%)")
    print(f"Active follow-ups:    {stats.active_follow_ups}")
    print(f"Completed follow-ups: {stats.completed_follow_ups}")
    print("-" * 56)
    print(f"Due now: {len(due)}")
    for record in due[:limit]:
        reminder = record.next_reminder_at.isoformat() if record.next_reminder_at else "awaiting mail"
        print(f"  {record.id:<16} call {record.current_call_number}  {reminder}")


def print_record(store: ChurnRecordStore, record_id: str, now: datetime) -> None:
    view = get_follow_up_status(store, record_id, now=now)
    print(view.model_dump_json(indent=2))


def main() -> int:
    parser = argparse.ArgumentParser(description="Print churn follow-up dashboard counts and due reminders.")
    parser.add_argument("--record-id", help="Show the follow-up status of a single record instead")
    parser.add_argument("--now", help="ISO timestamp to evaluate against (defaults to current UTC time)")
    parser.add_argument("--limit", type=int, default=25, help="Max due records to list")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    now = _parse_now(args.now)
    try:
        check_database_connection()
    except OperationalError as exc:
        print(f"Report failed: database unreachable ({exc.orig})")
        return 1

    with SessionLocal() as db:
        store = ChurnRecordStore(db)
        try:
            if args.record_id:
                print_record(store, args.record_id, now)
            else:
                print_dashboard(store, now, args.limit)
        except NotFound as exc:
            print(f"Report failed: {exc}")
            return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
