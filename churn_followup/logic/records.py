"""Domain shapes for churn records and their call history.

Records are immutable; every transition builds a new ``ChurnRecord`` with
``dataclasses.replace``.  The call counter is not stored anywhere: it is
always ``len(call_attempts) + 1``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import ClassVar, Union

from churn_followup.errors import InvalidCallResponse
from churn_followup.logic.reasons import ControlledStatus


def as_utc(value: datetime | None) -> datetime | None:
    """Naive datetimes are taken to be UTC; aware ones are converted to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CallResponse(str, Enum):
    BUSY = "Busy"
    REQUESTED_CALLBACK = "Requested Callback"
    NO_ANSWER = "No Answer"
    CONNECTED = "Connected"

    @classmethod
    def coerce(cls, value: "str | CallResponse | None") -> "CallResponse":
        """Accept a member, its label ("No Answer") or its name ("no_answer")."""
        if isinstance(value, cls):
            return value
        key = " ".join(str(value or "").replace("_", " ").split()).lower()
        for member in cls:
            if key == member.value.lower():
                return member
        raise InvalidCallResponse(f"Unsupported call response: {value!r}")


class FollowUpStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    COMPLETED = "COMPLETED"


# ── Follow-up state ────────────────────────────────────────────────────────────
# Active-with-no-reminder is only ever AwaitingMailConfirmation.

@dataclass(frozen=True)
class Inactive:
    kind: ClassVar[str] = "inactive"


@dataclass(frozen=True)
class PendingReminder:
    at: datetime
    kind: ClassVar[str] = "pending_reminder"


@dataclass(frozen=True)
class AwaitingMailConfirmation:
    kind: ClassVar[str] = "awaiting_mail_confirmation"


FollowUpState = Union[Inactive, PendingReminder, AwaitingMailConfirmation]


def state_from_columns(kind: str | None, reminder_at: datetime | None) -> FollowUpState:
    if kind == PendingReminder.kind:
        if reminder_at is None:
            raise ValueError("pending_reminder state without a reminder timestamp")
        return PendingReminder(at=reminder_at)
    if kind == AwaitingMailConfirmation.kind:
        return AwaitingMailConfirmation()
    return Inactive()


# ── Records ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CallAttempt:
    call_number: int
    timestamp: datetime
    response: CallResponse
    churn_reason: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ChurnRecord:
    id: str
    created_date: date
    churn_reason: str = ""
    remarks: str = ""
    controlled_status: ControlledStatus = ControlledStatus.UNKNOWN
    mail_sent: bool = False
    follow_up: FollowUpState = field(default_factory=Inactive)
    follow_up_status: FollowUpStatus = FollowUpStatus.PENDING
    follow_up_completed_at: datetime | None = None
    call_attempts: tuple[CallAttempt, ...] = ()
    version: int = 0

    @property
    def current_call_number(self) -> int:
        return len(self.call_attempts) + 1

    @property
    def is_follow_up_active(self) -> bool:
        return not isinstance(self.follow_up, Inactive)

    @property
    def next_reminder_at(self) -> datetime | None:
        if isinstance(self.follow_up, PendingReminder):
            return self.follow_up.at
        return None

    def is_due(self, now: datetime) -> bool:
        """Active and either unscheduled or past its reminder."""
        if not self.is_follow_up_active:
            return False
        reminder_at = self.next_reminder_at
        return reminder_at is None or as_utc(reminder_at) <= as_utc(now)
