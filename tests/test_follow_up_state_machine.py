"""Tests for churn_followup/logic/follow_up.py

Run with:  pytest tests/test_follow_up_state_machine.py -v
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from churn_followup.errors import InvalidCallResponse, MailConfirmationRequired, MissingChurnReason
from churn_followup.logic.follow_up import (
    apply_call,
    apply_completion,
    apply_mail_confirmation,
    apply_reason_edit,
    resolve_response,
)
from churn_followup.logic.records import (
    AwaitingMailConfirmation,
    CallAttempt,
    CallResponse,
    ChurnRecord,
    FollowUpStatus,
    Inactive,
    PendingReminder,
)


NOW = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


# ── Helpers ────────────────────────────────────────────────────────────────────

def _record(**kwargs):
    defaults = dict(id="R1", created_date=date(2026, 2, 26))
    defaults.update(kwargs)
    return ChurnRecord(**defaults)


def _busy_attempts(count):
    return tuple(
        CallAttempt(
            call_number=n,
            timestamp=NOW - timedelta(days=count - n + 1),
            response=CallResponse.BUSY,
        )
        for n in range(1, count + 1)
    )


def _connected_attempts(reason, count, start=1):
    return tuple(
        CallAttempt(
            call_number=n,
            timestamp=NOW - timedelta(days=10 - n),
            response=CallResponse.CONNECTED,
            churn_reason=reason,
        )
        for n in range(start, start + count)
    )


# ── Response resolution ───────────────────────────────────────────────────────

class TestResolveResponse:
    def test_accepts_labels_and_names(self):
        record = _record()
        assert resolve_response(record, "No Answer") is CallResponse.NO_ANSWER
        assert resolve_response(record, "requested_callback") is CallResponse.REQUESTED_CALLBACK
        assert resolve_response(record, CallResponse.BUSY) is CallResponse.BUSY

    def test_invalid_response(self):
        with pytest.raises(InvalidCallResponse):
            resolve_response(_record(), "Voicemail")

    def test_invalid_response_rejected_even_when_forced(self):
        record = _record(call_attempts=_busy_attempts(3))
        with pytest.raises(InvalidCallResponse):
            resolve_response(record, "Voicemail")

    def test_call_four_is_forced_connected(self):
        record = _record(call_attempts=_busy_attempts(3))
        assert record.current_call_number == 4
        assert resolve_response(record, "Busy") is CallResponse.CONNECTED


# ── Non-connected calls ───────────────────────────────────────────────────────

class TestNonConnected:
    @pytest.mark.parametrize("response", ["Busy", "Requested Callback", "No Answer"])
    def test_ready_immediately(self, response):
        updated = apply_call(_record(), response, now=NOW)

        assert updated.current_call_number == 2
        assert updated.is_follow_up_active is True
        assert updated.next_reminder_at == NOW
        assert updated.follow_up_status is FollowUpStatus.PENDING
        assert updated.call_attempts[-1].churn_reason is None

    def test_reason_is_ignored_and_record_reason_kept(self):
        record = _record(churn_reason="KAM needs to respond")
        updated = apply_call(record, "Busy", reason="Switched to Another POS", now=NOW)

        assert updated.churn_reason == "KAM needs to respond"
        assert updated.call_attempts[-1].churn_reason is None

    def test_third_call_requires_mail_confirmation(self):
        record = _record(call_attempts=_busy_attempts(2))
        with pytest.raises(MailConfirmationRequired):
            apply_call(record, "No Answer", now=NOW)

    def test_third_call_with_confirmation_stays_active(self):
        record = _record(call_attempts=_busy_attempts(2))
        updated = apply_call(record, "No Answer", mail_confirmed=True, now=NOW)

        assert updated.mail_sent is True
        assert updated.is_follow_up_active is True
        assert updated.next_reminder_at == NOW

    def test_third_call_accepts_earlier_confirmation(self):
        record = _record(call_attempts=_busy_attempts(2), mail_sent=True)
        updated = apply_call(record, "Busy", now=NOW)
        assert updated.next_reminder_at == NOW

    def test_terminal_record_stays_closed(self):
        record = _record(churn_reason="Ownership Transferred", follow_up_status=FollowUpStatus.COMPLETED)
        updated = apply_call(record, "Busy", now=NOW)

        assert updated.is_follow_up_active is False
        assert updated.next_reminder_at is None
        assert updated.current_call_number == 2

    def test_notes_are_trimmed(self):
        updated = apply_call(_record(), "Busy", notes="  line engaged  ", now=NOW)
        assert updated.call_attempts[-1].notes == "line engaged"


# ── Connected calls ───────────────────────────────────────────────────────────

class TestConnected:
    def test_missing_reason(self):
        with pytest.raises(MissingChurnReason):
            apply_call(_record(), "Connected", reason="   ", now=NOW)

    @pytest.mark.parametrize("prior_calls", [0, 1, 2, 3, 5])
    def test_terminal_reason_completes_at_any_call(self, prior_calls):
        record = _record(call_attempts=_busy_attempts(prior_calls), mail_sent=prior_calls >= 2)
        updated = apply_call(record, "Connected", reason="Permanently Closed (Outlet/brand)", now=NOW)

        assert updated.is_follow_up_active is False
        assert updated.next_reminder_at is None
        assert updated.follow_up_status is FollowUpStatus.COMPLETED
        assert updated.follow_up_completed_at == NOW
        assert updated.churn_reason == "Permanently Closed (Outlet/brand)"

    def test_unknown_reason_cadence(self):
        first = apply_call(_record(), "Connected", reason="unknown", now=NOW)
        assert first.next_reminder_at == NOW + timedelta(hours=2)
        assert first.follow_up_status is FollowUpStatus.ACTIVE

        second_at = NOW + timedelta(hours=3)
        second = apply_call(first, "Connected", reason="unknown", now=second_at)
        assert second.next_reminder_at == second_at + timedelta(hours=48)

        third_at = NOW + timedelta(days=3)
        with pytest.raises(MailConfirmationRequired):
            apply_call(second, "Connected", reason="unknown", now=third_at)

        third = apply_call(second, "Connected", reason="unknown", mail_confirmed=True, now=third_at)
        assert third.next_reminder_at is None
        assert third.is_follow_up_active is False
        assert third.current_call_number == 4

    def test_unknown_reason_stored_canonically(self):
        updated = apply_call(_record(), "Connected", reason="unknown", now=NOW)
        assert updated.churn_reason == "I don't know"
        assert updated.call_attempts[-1].churn_reason == "I don't know"

    def test_awaiting_manager_waits_for_mail(self):
        record = _record(call_attempts=_connected_attempts("KAM needs to respond", 2))
        updated = apply_call(record, "Connected", reason="KAM needs to respond", now=NOW)

        assert isinstance(updated.follow_up, AwaitingMailConfirmation)
        assert updated.is_follow_up_active is True
        assert updated.next_reminder_at is None
        assert updated.is_due(NOW) is True

    def test_other_reason_is_resolved(self):
        updated = apply_call(_record(), "Connected", reason="pending integration discussion", now=NOW)

        assert updated.is_follow_up_active is False
        assert updated.next_reminder_at is None
        assert updated.follow_up_status is FollowUpStatus.INACTIVE
        assert updated.churn_reason == "pending integration discussion"

    def test_connect_count_ignores_non_placeholder_connects(self):
        attempts = _connected_attempts("pending integration discussion", 1) + _connected_attempts(
            "I don't know", 1, start=2
        )
        updated = apply_call(_record(call_attempts=attempts), "Connected", reason="unknown", now=NOW)
        assert updated.next_reminder_at == NOW + timedelta(hours=48)

    def test_forced_connected_requires_reason(self):
        record = _record(call_attempts=_busy_attempts(3), mail_sent=True)
        with pytest.raises(MissingChurnReason):
            apply_call(record, "Busy", now=NOW)

    def test_forced_connected_is_recorded_as_connected(self):
        record = _record(call_attempts=_busy_attempts(3), mail_sent=True)
        updated = apply_call(record, "No Answer", reason="Switched to Another POS", now=NOW)

        assert updated.call_attempts[-1].response is CallResponse.CONNECTED
        assert updated.follow_up_status is FollowUpStatus.COMPLETED

    def test_mail_after_third_call_silences_placeholder(self):
        record = _record(call_attempts=_busy_attempts(3), mail_sent=True)
        updated = apply_call(record, "Connected", reason="KAM needs to respond", now=NOW)

        assert isinstance(updated.follow_up, Inactive)
        assert updated.follow_up_status is FollowUpStatus.INACTIVE


# ── Invariants ────────────────────────────────────────────────────────────────

class TestInvariants:
    def test_history_length_tracks_call_number(self):
        record = _record()
        steps = [
            ("Busy", None, False),
            ("Connected", "unknown", False),
            ("Connected", "unknown", False),
            ("Connected", "unknown", True),
            ("Connected", "Ownership Transferred", False),
        ]
        for response, reason, mail in steps:
            previous = record
            record = apply_call(record, response, reason=reason, mail_confirmed=mail, now=NOW)
            assert len(record.call_attempts) == record.current_call_number - 1
            assert record.call_attempts[:-1] == previous.call_attempts
            assert record.call_attempts[-1].call_number == previous.current_call_number

    def test_failed_validation_leaves_record_untouched(self):
        record = _record(call_attempts=_busy_attempts(2))
        with pytest.raises(MailConfirmationRequired):
            apply_call(record, "Busy", now=NOW)
        assert record.current_call_number == 3
        assert record.mail_sent is False


# ── Mail confirmation ─────────────────────────────────────────────────────────

class TestMailConfirmation:
    def test_awaiting_becomes_inactive(self):
        record = _record(
            call_attempts=_connected_attempts("KAM needs to respond", 3),
            follow_up=AwaitingMailConfirmation(),
            follow_up_status=FollowUpStatus.ACTIVE,
        )
        updated = apply_mail_confirmation(record)

        assert updated.mail_sent is True
        assert isinstance(updated.follow_up, Inactive)
        assert updated.follow_up_status is FollowUpStatus.INACTIVE

    def test_early_confirmation_keeps_reminder(self):
        record = _record(call_attempts=_busy_attempts(1), follow_up=PendingReminder(at=NOW))
        updated = apply_mail_confirmation(record)

        assert updated.mail_sent is True
        assert updated.next_reminder_at == NOW

    def test_after_third_call_stops_chasing(self):
        record = _record(call_attempts=_busy_attempts(3), follow_up=PendingReminder(at=NOW))
        updated = apply_mail_confirmation(record)
        assert updated.is_follow_up_active is False

    def test_is_sticky(self):
        record = apply_mail_confirmation(_record())
        updated = apply_call(record, "Busy", now=NOW)
        assert updated.mail_sent is True


# ── Reason edits and manual completion ────────────────────────────────────────

class TestReasonEdit:
    def test_unknown_needs_mail(self):
        with pytest.raises(MailConfirmationRequired):
            apply_reason_edit(_record(), "I don't know", now=NOW)

    def test_blank_reason_rejected(self):
        with pytest.raises(MissingChurnReason):
            apply_reason_edit(_record(), "  ", now=NOW)

    def test_placeholder_activates_inactive_record(self):
        updated = apply_reason_edit(_record(), "I don't know", mail_confirmed=True, remarks="left voicemail", now=NOW)

        assert updated.next_reminder_at == NOW
        assert updated.follow_up_status is FollowUpStatus.ACTIVE
        assert updated.remarks == "left voicemail"
        assert updated.call_attempts == ()

    def test_placeholder_keeps_existing_reminder(self):
        later = NOW + timedelta(hours=2)
        record = _record(follow_up=PendingReminder(at=later))
        updated = apply_reason_edit(record, "KAM needs to respond", now=NOW)
        assert updated.next_reminder_at == later

    def test_terminal_completes(self):
        record = _record(follow_up=PendingReminder(at=NOW))
        updated = apply_reason_edit(record, "Event Account / Demo Account", now=NOW)

        assert updated.is_follow_up_active is False
        assert updated.follow_up_status is FollowUpStatus.COMPLETED
        assert updated.controlled_status.value == "Uncontrolled"

    def test_other_reason_deactivates(self):
        record = _record(follow_up=PendingReminder(at=NOW))
        updated = apply_reason_edit(record, "pending integration discussion", now=NOW)
        assert updated.is_follow_up_active is False
        assert updated.follow_up_status is FollowUpStatus.INACTIVE


def test_apply_completion():
    record = _record(follow_up=PendingReminder(at=NOW), follow_up_status=FollowUpStatus.ACTIVE)
    updated = apply_completion(record, now=NOW)

    assert updated.is_follow_up_active is False
    assert updated.follow_up_status is FollowUpStatus.COMPLETED
    assert updated.follow_up_completed_at == NOW
