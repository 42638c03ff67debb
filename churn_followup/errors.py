"""Error family raised by the follow-up core.

Validation errors are always raised before any state is built or persisted,
so a caller that catches one can be sure nothing changed.
"""


class FollowUpError(Exception):
    """Base class for every error the follow-up core raises."""

    def __init__(self, message: str, *, record_id: str | None = None) -> None:
        super().__init__(message)
        self.record_id = record_id


class ValidationError(FollowUpError, ValueError):
    pass


class MissingChurnReason(ValidationError):
    pass


class MailConfirmationRequired(ValidationError):
    pass


class InvalidCallResponse(ValidationError):
    pass


class NotFound(FollowUpError, LookupError):
    pass


class Conflict(FollowUpError, RuntimeError):
    """The record changed between read and write; reload and resubmit."""
