from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from churn_followup.logic.reasons import controlled_status
from churn_followup.logic.records import ChurnRecord, FollowUpStatus

NOT_SPECIFIED = "Not Specified"


@dataclass
class FollowUpStatistics:
    total_records: int = 0
    missing_churn_reasons: int = 0
    completed_churn_reasons: int = 0
    completion_percentage: int = 0
    active_follow_ups: int = 0
    completed_follow_ups: int = 0
    churn_reason_breakdown: dict[str, int] = field(default_factory=dict)
    controlled_breakdown: dict[str, int] = field(default_factory=dict)


def follow_up_statistics(records: Iterable[ChurnRecord]) -> FollowUpStatistics:
    stats = FollowUpStatistics()
    reasons: Counter[str] = Counter()
    controlled: Counter[str] = Counter()

    for record in records:
        stats.total_records += 1
        reason = record.churn_reason.strip()
        if not reason:
            stats.missing_churn_reasons += 1
        if record.is_follow_up_active:
            stats.active_follow_ups += 1
        if record.follow_up_status is FollowUpStatus.COMPLETED:
            stats.completed_follow_ups += 1
        reasons[reason or NOT_SPECIFIED] += 1
        controlled[controlled_status(reason).value] += 1

    stats.completed_churn_reasons = stats.total_records - stats.missing_churn_reasons
    if stats.total_records:
        # round-half-up, matching the dashboard's percentage display
        stats.completion_percentage = int(
            stats.completed_churn_reasons * 100 / stats.total_records + 0.5
        )
    stats.churn_reason_breakdown = dict(reasons)
    stats.controlled_breakdown = dict(controlled)
    return stats
