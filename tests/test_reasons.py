"""Tests for churn_followup/logic/reasons.py

Run with:  pytest tests/test_reasons.py -v
"""

import pytest

from churn_followup.logic.reasons import (
    ChurnReason,
    ControlledStatus,
    clean_reason,
    controlled_status,
    is_terminal,
    is_unknown_placeholder,
    is_unresolved,
    needs_calling,
    parse_reason,
)


# ── parse_reason ───────────────────────────────────────────────────────────────

class TestParseReason:
    def test_empty_and_whitespace_are_none(self):
        assert parse_reason(None) is ChurnReason.NONE
        assert parse_reason("") is ChurnReason.NONE
        assert parse_reason("   ") is ChurnReason.NONE

    def test_canonical_labels_case_insensitive(self):
        assert parse_reason("I DON'T KNOW") is ChurnReason.UNKNOWN
        assert parse_reason("  kam needs to respond ") is ChurnReason.AWAITING_ACCOUNT_MANAGER
        assert parse_reason("renewal payment overdue") is ChurnReason.RENEWAL_PAYMENT_OVERDUE
        assert parse_reason("Switched  to Another POS") is ChurnReason.SWITCHED_PROVIDER

    def test_aliases(self):
        assert parse_reason("unknown") is ChurnReason.UNKNOWN
        assert parse_reason("Awaiting account-manager response") is ChurnReason.AWAITING_ACCOUNT_MANAGER
        assert parse_reason("permanently closed") is ChurnReason.PERMANENTLY_CLOSED
        assert parse_reason("Now active again") is ChurnReason.OUTLET_ACTIVE_AGAIN

    def test_unrecognised_is_other(self):
        assert parse_reason("pending integration discussion") is ChurnReason.OTHER

    def test_member_passthrough(self):
        assert parse_reason(ChurnReason.EVENT_OR_DEMO_ACCOUNT) is ChurnReason.EVENT_OR_DEMO_ACCOUNT

    def test_clean_reason_canonicalises_known_and_trims_other(self):
        assert clean_reason("unknown") == "I don't know"
        assert clean_reason("  pending integration discussion ") == "pending integration discussion"
        assert clean_reason("") == ""


# ── Predicates ─────────────────────────────────────────────────────────────────

class TestPredicates:
    @pytest.mark.parametrize("reason", ["", None, "unknown", "I don't know", "KAM needs to respond"])
    def test_unresolved(self, reason):
        assert is_unresolved(reason) is True
        assert is_terminal(reason) is False

    @pytest.mark.parametrize("reason", [
        "Outlet once out of Sync- now Active",
        "Renewal payment overdue",
        "Temporarily Closed (Renovation / Relocation/Internet issue)",
        "Permanently Closed (Outlet/brand)",
        "Event Account / Demo Account",
        "Switched to Another POS",
        "Ownership Transferred",
    ])
    def test_terminal(self, reason):
        assert is_terminal(reason) is True
        assert is_unresolved(reason) is False
        assert needs_calling(reason) is False

    def test_in_progress_reason_is_neither(self):
        reason = "pending integration discussion"
        assert is_unresolved(reason) is False
        assert is_terminal(reason) is False
        assert needs_calling(reason) is False

    def test_needs_calling_excludes_empty(self):
        assert needs_calling("") is False
        assert needs_calling("unknown") is True
        assert needs_calling("KAM needs to respond") is True

    def test_unknown_placeholder_only_matches_unknown(self):
        assert is_unknown_placeholder("I don't know") is True
        assert is_unknown_placeholder("unknown") is True
        assert is_unknown_placeholder("KAM needs to respond") is False


class TestControlledStatus:
    def test_controlled(self):
        assert controlled_status("Switched to Another POS") is ControlledStatus.CONTROLLED
        assert controlled_status("I don't know") is ControlledStatus.CONTROLLED

    def test_uncontrolled(self):
        assert controlled_status("Permanently Closed (Outlet/brand)") is ControlledStatus.UNCONTROLLED

    def test_unknown(self):
        assert controlled_status("") is ControlledStatus.UNKNOWN
        assert controlled_status("pending integration discussion") is ControlledStatus.UNKNOWN
