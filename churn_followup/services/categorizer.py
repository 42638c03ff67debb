"""Dashboard categorization of churn records.

Each record lands in exactly one bucket, decided by its reason and its age
only (call history plays no part):

  1. COMPLETED  - terminal reason, whatever the age
  2. NEW_COUNT  - unresolved reason, younger than NEW_RECORD_WINDOW_DAYS
  3. OVERDUE    - unresolved reason, NEW_RECORD_WINDOW_DAYS or older
  4. FOLLOW_UPS - anything else (a real, non-terminal reason)

Age is counted in calendar days in DASHBOARD_TIMEZONE so a record created
"today" stays new all day regardless of the server clock's zone.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

import pytz

from churn_followup.core.config import settings
from churn_followup.logic.reasons import is_terminal, is_unresolved
from churn_followup.logic.records import ChurnRecord, as_utc


class Category(str, Enum):
    NEW_COUNT = "newCount"
    OVERDUE = "overdue"
    FOLLOW_UPS = "followUps"
    COMPLETED = "completed"


@dataclass
class Categorization:
    new_count: list[ChurnRecord] = field(default_factory=list)
    overdue: list[ChurnRecord] = field(default_factory=list)
    follow_ups: list[ChurnRecord] = field(default_factory=list)
    completed: list[ChurnRecord] = field(default_factory=list)

    def bucket(self, category: Category) -> list[ChurnRecord]:
        return {
            Category.NEW_COUNT: self.new_count,
            Category.OVERDUE: self.overdue,
            Category.FOLLOW_UPS: self.follow_ups,
            Category.COMPLETED: self.completed,
        }[category]

    def counts(self) -> dict[str, int]:
        return {category.value: len(self.bucket(category)) for category in Category}

    @property
    def total(self) -> int:
        return sum(self.counts().values())


def _local_date(now: datetime) -> date:
    tz = pytz.timezone(settings.DASHBOARD_TIMEZONE)
    return as_utc(now).astimezone(tz).date()


def record_age_days(record: ChurnRecord, now: datetime) -> int:
    created = record.created_date
    if isinstance(created, datetime):
        created = created.date()
    return (_local_date(now) - created).days


def categorize_record(record: ChurnRecord, now: datetime) -> Category:
    if is_terminal(record.churn_reason):
        return Category.COMPLETED
    if is_unresolved(record.churn_reason):
        if record_age_days(record, now) < settings.NEW_RECORD_WINDOW_DAYS:
            return Category.NEW_COUNT
        return Category.OVERDUE
    return Category.FOLLOW_UPS


def categorize(records: Iterable[ChurnRecord], now: datetime) -> Categorization:
    result = Categorization()
    for record in records:
        result.bucket(categorize_record(record, now)).append(record)
    return result


def filter_by_category(
    records: Iterable[ChurnRecord],
    category: Category | str,
    now: datetime,
) -> list[ChurnRecord]:
    """One dashboard tab. The four tabs always partition the input."""
    wanted = Category(category)
    return [record for record in records if categorize_record(record, now) is wanted]
