"""Operational follow-up lists.

Reminders are pulled, not pushed: a record shows up here once its reminder
time has passed at the moment somebody asks.  "Due" is about reminders and
is unrelated to the categorizer's age-based OVERDUE bucket.
"""
from collections.abc import Iterable
from datetime import datetime

from churn_followup.logic.records import ChurnRecord, as_utc


def list_active(records: Iterable[ChurnRecord], now: datetime) -> list[ChurnRecord]:
    return [record for record in records if record.is_due(now)]


def list_due(records: Iterable[ChurnRecord], now: datetime) -> list[ChurnRecord]:
    """Records whose reminder has fired (or which are waiting unscheduled)."""
    now = as_utc(now)
    return sorted(
        (record for record in records if record.is_due(now)),
        key=lambda record: (as_utc(record.next_reminder_at) or now, record.id),
    )
