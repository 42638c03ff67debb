"""
Call attempt recording.

Flow per call:
  1. Load the record (NotFound if missing)
  2. Validate and transition through the follow-up state machine
  3. Persist atomically via the store (Conflict on a concurrent write)

Errors reach the caller unchanged; nothing is retried here.
"""
import logging
from datetime import datetime, timezone

from pydantic import BaseModel

from churn_followup.logic.follow_up import (
    apply_call,
    apply_completion,
    apply_mail_confirmation,
    apply_reason_edit,
)
from churn_followup.logic.records import CallAttempt, CallResponse, ChurnRecord, FollowUpStatus, as_utc
from churn_followup.repositories.churn_repo import ChurnRecordStore

logger = logging.getLogger(__name__)


class CallAttemptView(BaseModel):
    call_number: int
    timestamp: datetime
    response: CallResponse
    churn_reason: str | None = None
    notes: str | None = None

    @classmethod
    def from_attempt(cls, attempt: CallAttempt) -> "CallAttemptView":
        return cls(
            call_number=attempt.call_number,
            timestamp=attempt.timestamp,
            response=attempt.response,
            churn_reason=attempt.churn_reason,
            notes=attempt.notes,
        )


class FollowUpStatusView(BaseModel):
    record_id: str
    current_call_number: int
    call_attempts: list[CallAttemptView]
    is_follow_up_active: bool
    next_reminder_at: datetime | None = None
    mail_sent: bool
    follow_up_status: FollowUpStatus
    is_due: bool


def _now(now: datetime | None) -> datetime:
    return as_utc(now) or datetime.now(timezone.utc)


def record_call_attempt(
    store: ChurnRecordStore,
    record_id: str,
    response: str | CallResponse,
    *,
    reason: str | None = None,
    notes: str | None = None,
    mail_confirmed: bool = False,
    now: datetime | None = None,
) -> ChurnRecord:
    at = _now(now)
    updated = store.update(
        record_id,
        lambda record: apply_call(
            record,
            response,
            reason=reason,
            notes=notes,
            mail_confirmed=mail_confirmed,
            now=at,
        ),
    )
    last = updated.call_attempts[-1]
    logger.info(
        "call_recorder: record=%s call=%d response=%s active=%s reminder=%s mail_sent=%s",
        record_id,
        last.call_number,
        last.response.value,
        updated.is_follow_up_active,
        updated.next_reminder_at.isoformat() if updated.next_reminder_at else None,
        updated.mail_sent,
    )
    return updated


def confirm_mail_sent(
    store: ChurnRecordStore,
    record_id: str,
) -> ChurnRecord:
    updated = store.update(record_id, apply_mail_confirmation)
    logger.info(
        "call_recorder: mail confirmed record=%s active=%s",
        record_id, updated.is_follow_up_active,
    )
    return updated


def update_churn_reason(
    store: ChurnRecordStore,
    record_id: str,
    reason: str,
    *,
    remarks: str | None = None,
    mail_confirmed: bool = False,
    now: datetime | None = None,
) -> ChurnRecord:
    at = _now(now)
    updated = store.update(
        record_id,
        lambda record: apply_reason_edit(
            record,
            reason,
            remarks=remarks,
            mail_confirmed=mail_confirmed,
            now=at,
        ),
    )
    logger.info(
        "call_recorder: reason updated record=%s reason=%r status=%s",
        record_id, updated.churn_reason, updated.follow_up_status.value,
    )
    return updated


def mark_follow_up_complete(
    store: ChurnRecordStore,
    record_id: str,
    *,
    now: datetime | None = None,
) -> ChurnRecord:
    at = _now(now)
    updated = store.update(record_id, lambda record: apply_completion(record, now=at))
    logger.info("call_recorder: follow-up completed record=%s", record_id)
    return updated


def get_follow_up_status(
    store: ChurnRecordStore,
    record_id: str,
    *,
    now: datetime | None = None,
) -> FollowUpStatusView:
    record = store.get(record_id)
    return FollowUpStatusView(
        record_id=record.id,
        current_call_number=record.current_call_number,
        call_attempts=[CallAttemptView.from_attempt(a) for a in record.call_attempts],
        is_follow_up_active=record.is_follow_up_active,
        next_reminder_at=record.next_reminder_at,
        mail_sent=record.mail_sent,
        follow_up_status=record.follow_up_status,
        is_due=record.is_due(_now(now)),
    )
