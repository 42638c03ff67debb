"""Churn reason classification.

Every reason string a KAM can pick (or type) is parsed into the closed
``ChurnReason`` enumeration.  Anything not in the vocabulary lands on
``ChurnReason.OTHER`` and is treated as an ordinary in-progress reason.

Two families matter to the follow-up engine:

- Placeholders ("I don't know", "KAM needs to respond"): no substantive
  answer yet.  Used both for aging (``is_unresolved``) and for the call
  cadence (``needs_calling``).  The two predicates share their literal values
  today but are kept apart so one can change without dragging the other.
- Terminal reasons: the case is closed and nobody should be chased.

Matching is case-insensitive on the trimmed value; internal whitespace runs
are collapsed so "Switched  to another pos" still matches.
"""

from __future__ import annotations

import re
from enum import Enum


class ChurnReason(str, Enum):
    NONE = ""
    UNKNOWN = "I don't know"
    AWAITING_ACCOUNT_MANAGER = "KAM needs to respond"
    OUTLET_ACTIVE_AGAIN = "Outlet once out of Sync- now Active"
    RENEWAL_PAYMENT_OVERDUE = "Renewal Payment Overdue"
    TEMPORARILY_CLOSED = "Temporarily Closed (Renovation / Relocation/Internet issue)"
    PERMANENTLY_CLOSED = "Permanently Closed (Outlet/brand)"
    EVENT_OR_DEMO_ACCOUNT = "Event Account / Demo Account"
    SWITCHED_PROVIDER = "Switched to Another POS"
    OWNERSHIP_TRANSFERRED = "Ownership Transferred"
    OTHER = "other"


class ControlledStatus(str, Enum):
    CONTROLLED = "Controlled"
    UNCONTROLLED = "Uncontrolled"
    UNKNOWN = "Unknown"


PLACEHOLDER_REASONS = frozenset({
    ChurnReason.UNKNOWN,
    ChurnReason.AWAITING_ACCOUNT_MANAGER,
})

# Placeholders that keep the reminder cadence running after a Connected call.
CALL_AGAIN_REASONS = frozenset({
    ChurnReason.UNKNOWN,
    ChurnReason.AWAITING_ACCOUNT_MANAGER,
})

TERMINAL_REASONS = frozenset({
    ChurnReason.OUTLET_ACTIVE_AGAIN,
    ChurnReason.RENEWAL_PAYMENT_OVERDUE,
    ChurnReason.TEMPORARILY_CLOSED,
    ChurnReason.PERMANENTLY_CLOSED,
    ChurnReason.EVENT_OR_DEMO_ACCOUNT,
    ChurnReason.SWITCHED_PROVIDER,
    ChurnReason.OWNERSHIP_TRANSFERRED,
})

_CONTROLLED_REASONS = frozenset({
    ChurnReason.AWAITING_ACCOUNT_MANAGER,
    ChurnReason.UNKNOWN,
    ChurnReason.TEMPORARILY_CLOSED,
    ChurnReason.SWITCHED_PROVIDER,
    ChurnReason.OWNERSHIP_TRANSFERRED,
    ChurnReason.RENEWAL_PAYMENT_OVERDUE,
})

_UNCONTROLLED_REASONS = frozenset({
    ChurnReason.OUTLET_ACTIVE_AGAIN,
    ChurnReason.PERMANENTLY_CLOSED,
    ChurnReason.EVENT_OR_DEMO_ACCOUNT,
})


# ── Alias table ────────────────────────────────────────────────────────────────

_ALIASES: dict[str, ChurnReason] = {
    "unknown": ChurnReason.UNKNOWN,
    "i dont know": ChurnReason.UNKNOWN,
    "awaiting account-manager response": ChurnReason.AWAITING_ACCOUNT_MANAGER,
    "awaiting account manager response": ChurnReason.AWAITING_ACCOUNT_MANAGER,
    "now active again": ChurnReason.OUTLET_ACTIVE_AGAIN,
    "payment overdue": ChurnReason.RENEWAL_PAYMENT_OVERDUE,
    "temporarily closed": ChurnReason.TEMPORARILY_CLOSED,
    "permanently closed": ChurnReason.PERMANENTLY_CLOSED,
    "demo account": ChurnReason.EVENT_OR_DEMO_ACCOUNT,
    "event account": ChurnReason.EVENT_OR_DEMO_ACCOUNT,
    "switched provider": ChurnReason.SWITCHED_PROVIDER,
    "switched to another provider": ChurnReason.SWITCHED_PROVIDER,
}


def _normalise(raw: str | None) -> str:
    if not raw:
        return ""
    return re.sub(r"\s+", " ", raw.strip()).lower()


_LOOKUP: dict[str, ChurnReason] = {
    _normalise(member.value): member
    for member in ChurnReason
    if member not in (ChurnReason.NONE, ChurnReason.OTHER)
}
_LOOKUP.update(_ALIASES)


def parse_reason(raw: str | ChurnReason | None) -> ChurnReason:
    """Map a free-text reason onto the closed vocabulary.

    Empty / whitespace-only input is ``NONE``; anything unrecognised is
    ``OTHER``.
    """
    if isinstance(raw, ChurnReason):
        return raw
    key = _normalise(raw)
    if not key:
        return ChurnReason.NONE
    return _LOOKUP.get(key, ChurnReason.OTHER)


def clean_reason(raw: str | ChurnReason | None) -> str:
    """Stored form of a reason: canonical label when known, trimmed text otherwise."""
    parsed = parse_reason(raw)
    if parsed is ChurnReason.OTHER:
        return str(raw).strip()
    return parsed.value


# ── Predicates ─────────────────────────────────────────────────────────────────

def is_unresolved(raw: str | ChurnReason | None) -> bool:
    """No substantive answer yet: empty or a placeholder."""
    parsed = parse_reason(raw)
    return parsed is ChurnReason.NONE or parsed in PLACEHOLDER_REASONS


def needs_calling(raw: str | ChurnReason | None) -> bool:
    """A Connected call with this reason keeps the reminder cadence running."""
    return parse_reason(raw) in CALL_AGAIN_REASONS


def is_terminal(raw: str | ChurnReason | None) -> bool:
    return parse_reason(raw) in TERMINAL_REASONS


def is_unknown_placeholder(raw: str | ChurnReason | None) -> bool:
    return parse_reason(raw) is ChurnReason.UNKNOWN


def controlled_status(raw: str | ChurnReason | None) -> ControlledStatus:
    parsed = parse_reason(raw)
    if parsed in _CONTROLLED_REASONS:
        return ControlledStatus.CONTROLLED
    if parsed in _UNCONTROLLED_REASONS:
        return ControlledStatus.UNCONTROLLED
    return ControlledStatus.UNKNOWN
