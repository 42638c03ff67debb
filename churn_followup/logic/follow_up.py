"""Follow-up state machine.

Pure transitions over ``ChurnRecord``.  Nothing here touches the database;
the recorder service loads a record, hands it to one of the ``apply_*``
functions and persists whatever comes back.

Rules for a recorded call (in order):

  1. Calls from FORCED_CONNECTED_CALL_NUMBER (4) onward are Connected no
     matter what the agent picked.
  2. Validation, before anything is built:
       - InvalidCallResponse: response outside CallResponse.
       - MissingChurnReason: Connected without a reason.
       - MailConfirmationRequired: the "unknown" placeholder on the Connected
         call where reminders stop (3rd placeholder connect), or a
         non-Connected response on call 3, without a mail confirmation.
         A confirmation is this call's flag or the record's sticky mail_sent.
  3. Next state:
       - not Connected         -> PendingReminder(now), status untouched
                                  (Inactive while the reason is terminal)
       - Connected, terminal   -> Inactive, COMPLETED
       - Connected, call again -> N-th such connect: +2h, +48h, then
                                  AwaitingMailConfirmation (Inactive once mailed)
       - Connected, other      -> Inactive
  4. Mail override: once mail_sent is set, a call numbered above
     MAIL_CONFIRMATION_CALL_NUMBER always leaves the record Inactive.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta

from churn_followup.core.config import settings
from churn_followup.errors import MailConfirmationRequired, MissingChurnReason
from churn_followup.logic.reasons import (
    clean_reason,
    controlled_status,
    is_terminal,
    is_unknown_placeholder,
    needs_calling,
)
from churn_followup.logic.records import (
    AwaitingMailConfirmation,
    CallAttempt,
    CallResponse,
    ChurnRecord,
    FollowUpState,
    FollowUpStatus,
    Inactive,
    PendingReminder,
)


def resolve_response(record: ChurnRecord, response: str | CallResponse | None) -> CallResponse:
    """Coerce the agent's pick, then apply the forced-connection rule."""
    parsed = CallResponse.coerce(response)
    if record.current_call_number >= settings.FORCED_CONNECTED_CALL_NUMBER:
        return CallResponse.CONNECTED
    return parsed


def connected_call_again_count(attempts: tuple[CallAttempt, ...]) -> int:
    return sum(
        1
        for attempt in attempts
        if attempt.response is CallResponse.CONNECTED and needs_calling(attempt.churn_reason)
    )


def _reminder_state(connect_count: int, now: datetime, mail_sent: bool) -> FollowUpState:
    if connect_count <= 1:
        return PendingReminder(at=now + timedelta(hours=settings.FIRST_REMINDER_HOURS))
    if connect_count < settings.REMINDER_CUTOFF_CONNECTED_CALLS:
        return PendingReminder(at=now + timedelta(hours=settings.SECOND_REMINDER_HOURS))
    if mail_sent:
        return Inactive()
    return AwaitingMailConfirmation()


def _silenced_by_mail(mail_sent: bool, calls_before: int) -> bool:
    """Mail has gone out after the third call: stop chasing for good."""
    return mail_sent and calls_before >= settings.MAIL_CONFIRMATION_CALL_NUMBER


# ── Validation ─────────────────────────────────────────────────────────────────

def validate_call(
    record: ChurnRecord,
    response: str | CallResponse | None,
    reason: str | None,
    mail_confirmed: bool,
) -> CallResponse:
    resolved = resolve_response(record, response)
    has_confirmation = mail_confirmed or record.mail_sent

    if resolved is CallResponse.CONNECTED:
        if not (reason or "").strip():
            raise MissingChurnReason(
                f"Call {record.current_call_number} is Connected and needs a churn reason",
                record_id=record.id,
            )
        if is_unknown_placeholder(reason) and not has_confirmation:
            connects = connected_call_again_count(record.call_attempts) + 1
            if connects >= settings.REMINDER_CUTOFF_CONNECTED_CALLS:
                raise MailConfirmationRequired(
                    f"Connected call {connects} still has no answer; confirm the mail was sent",
                    record_id=record.id,
                )
    elif record.current_call_number == settings.MAIL_CONFIRMATION_CALL_NUMBER and not has_confirmation:
        raise MailConfirmationRequired(
            f"Call {record.current_call_number} did not connect; confirm the mail was sent",
            record_id=record.id,
        )
    return resolved


# ── Transitions ────────────────────────────────────────────────────────────────

def apply_call(
    record: ChurnRecord,
    response: str | CallResponse | None,
    *,
    reason: str | None = None,
    notes: str | None = None,
    mail_confirmed: bool = False,
    now: datetime,
) -> ChurnRecord:
    resolved = validate_call(record, response, reason, mail_confirmed)
    connected = resolved is CallResponse.CONNECTED
    stored_reason = clean_reason(reason) if connected else None

    attempt = CallAttempt(
        call_number=record.current_call_number,
        timestamp=now,
        response=resolved,
        churn_reason=stored_reason,
        notes=(notes or "").strip() or None,
    )
    attempts = record.call_attempts + (attempt,)
    mail_sent = record.mail_sent or bool(mail_confirmed)

    status = record.follow_up_status
    completed_at = record.follow_up_completed_at

    state: FollowUpState
    if not connected:
        # A closed case stays closed until a Connected call changes its reason.
        state = Inactive() if is_terminal(record.churn_reason) else PendingReminder(at=now)
    elif is_terminal(stored_reason):
        state = Inactive()
        status = FollowUpStatus.COMPLETED
        completed_at = now
    elif needs_calling(stored_reason):
        state = _reminder_state(connected_call_again_count(attempts), now, mail_sent)
        status = FollowUpStatus.ACTIVE if not isinstance(state, Inactive) else FollowUpStatus.INACTIVE
    else:
        state = Inactive()
        status = FollowUpStatus.INACTIVE

    if _silenced_by_mail(mail_sent, attempt.call_number - 1) and not isinstance(state, Inactive):
        state = Inactive()
        if status is not FollowUpStatus.COMPLETED:
            status = FollowUpStatus.INACTIVE

    changes: dict = {}
    if connected:
        changes["churn_reason"] = stored_reason
        changes["controlled_status"] = controlled_status(stored_reason)

    return replace(
        record,
        call_attempts=attempts,
        mail_sent=mail_sent,
        follow_up=state,
        follow_up_status=status,
        follow_up_completed_at=completed_at,
        **changes,
    )


def apply_mail_confirmation(record: ChurnRecord) -> ChurnRecord:
    """Standalone mail-sent confirmation; never appends a call."""
    state = record.follow_up
    status = record.follow_up_status
    calls_before = record.current_call_number - 1
    if isinstance(state, AwaitingMailConfirmation) or _silenced_by_mail(True, calls_before):
        state = Inactive()
        if status is FollowUpStatus.ACTIVE:
            status = FollowUpStatus.INACTIVE
    return replace(record, mail_sent=True, follow_up=state, follow_up_status=status)


def apply_reason_edit(
    record: ChurnRecord,
    reason: str | None,
    *,
    remarks: str | None = None,
    mail_confirmed: bool = False,
    now: datetime,
) -> ChurnRecord:
    """Direct reason edit from the record screen (no call attempt)."""
    if not (reason or "").strip():
        raise MissingChurnReason("A churn reason is required", record_id=record.id)
    mail_sent = record.mail_sent or bool(mail_confirmed)
    if is_unknown_placeholder(reason) and not mail_sent:
        raise MailConfirmationRequired(
            "Saving an 'I don't know' reason needs a mail-sent confirmation",
            record_id=record.id,
        )

    stored_reason = clean_reason(reason)
    completed_at = record.follow_up_completed_at
    state: FollowUpState

    if is_terminal(stored_reason):
        state = Inactive()
        status = FollowUpStatus.COMPLETED
        completed_at = now
    elif needs_calling(stored_reason):
        if _silenced_by_mail(mail_sent, record.current_call_number - 1):
            state = Inactive()
        elif isinstance(record.follow_up, AwaitingMailConfirmation) and mail_sent:
            state = Inactive()
        elif record.is_follow_up_active:
            state = record.follow_up
        else:
            state = PendingReminder(at=now)
        status = FollowUpStatus.ACTIVE if not isinstance(state, Inactive) else FollowUpStatus.INACTIVE
    else:
        state = Inactive()
        status = FollowUpStatus.INACTIVE

    return replace(
        record,
        churn_reason=stored_reason,
        controlled_status=controlled_status(stored_reason),
        remarks=remarks if remarks is not None else record.remarks,
        mail_sent=mail_sent,
        follow_up=state,
        follow_up_status=status,
        follow_up_completed_at=completed_at,
    )


def apply_completion(record: ChurnRecord, *, now: datetime) -> ChurnRecord:
    """Agent closes the follow-up by hand."""
    return replace(
        record,
        follow_up=Inactive(),
        follow_up_status=FollowUpStatus.COMPLETED,
        follow_up_completed_at=now,
    )
