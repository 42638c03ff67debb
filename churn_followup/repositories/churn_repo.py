"""
Churn record store: all DB reads/writes for the follow-up engine.

Writes go through ``update(record_id, mutator)``: the row is read together
with its ``version``, the pure mutator builds the next record, and the write
is ``UPDATE ... WHERE id = :id AND version = :version``.  If another writer
got there first no row matches and ``Conflict`` is raised; the caller reloads
and resubmits.  Call attempts are insert-only.
"""
import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import date

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from churn_followup.errors import Conflict, NotFound
from churn_followup.logic.reasons import ControlledStatus, clean_reason, controlled_status, is_terminal
from churn_followup.logic.records import (
    CallAttempt,
    CallResponse,
    ChurnRecord,
    FollowUpState,
    FollowUpStatus,
    Inactive,
    as_utc,
    state_from_columns,
)
from churn_followup.models.churn import CallAttemptRow, ChurnRecordRow

logger = logging.getLogger(__name__)

RecordMutator = Callable[[ChurnRecord], ChurnRecord]
RecordPredicate = Callable[[ChurnRecord], bool]


def _attempt_from_row(row: CallAttemptRow) -> CallAttempt:
    return CallAttempt(
        call_number=row.call_number,
        timestamp=as_utc(row.called_at),
        response=CallResponse.coerce(row.response),
        churn_reason=row.churn_reason,
        notes=row.notes,
    )


def _record_from_row(row: ChurnRecordRow, attempt_rows: Iterable[CallAttemptRow]) -> ChurnRecord:
    attempts = tuple(_attempt_from_row(a) for a in sorted(attempt_rows, key=lambda a: a.call_number))
    return ChurnRecord(
        id=row.id,
        created_date=row.created_date,
        churn_reason=row.churn_reason or "",
        remarks=row.remarks or "",
        controlled_status=ControlledStatus(row.controlled_status or ControlledStatus.UNKNOWN.value),
        mail_sent=bool(row.mail_sent),
        follow_up=state_from_columns(row.follow_up_state, as_utc(row.next_reminder_at)),
        follow_up_status=FollowUpStatus(row.follow_up_status or FollowUpStatus.PENDING.value),
        follow_up_completed_at=as_utc(row.follow_up_completed_at),
        call_attempts=attempts,
        version=row.version or 0,
    )


def _state_columns(state: FollowUpState) -> dict[str, object]:
    return {
        "follow_up_state": state.kind,
        "next_reminder_at": getattr(state, "at", None),
    }


class ChurnRecordStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _load_row(self, record_id: str) -> ChurnRecordRow | None:
        return self.db.execute(
            select(ChurnRecordRow)
            .where(ChurnRecordRow.id == record_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get(self, record_id: str) -> ChurnRecord:
        row = self._load_row(record_id)
        if row is None:
            raise NotFound(f"Churn record {record_id} not found", record_id=record_id)
        attempt_rows = self.db.execute(
            select(CallAttemptRow)
            .where(CallAttemptRow.record_id == record_id)
            .order_by(CallAttemptRow.call_number)
        ).scalars().all()
        return _record_from_row(row, attempt_rows)

    def query(self, predicate: RecordPredicate | None = None) -> list[ChurnRecord]:
        """Every record (oldest first) for which ``predicate`` holds."""
        rows = self.db.execute(
            select(ChurnRecordRow)
            .order_by(ChurnRecordRow.created_date, ChurnRecordRow.id)
            .execution_options(populate_existing=True)
        ).scalars().all()
        grouped: dict[str, list[CallAttemptRow]] = {}
        for attempt in self.db.execute(select(CallAttemptRow)).scalars():
            grouped.setdefault(attempt.record_id, []).append(attempt)

        records = [_record_from_row(row, grouped.get(row.id, [])) for row in rows]
        if predicate is None:
            return records
        return [record for record in records if predicate(record)]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_record(
        self,
        record_id: str,
        created_date: date,
        *,
        churn_reason: str = "",
        remarks: str = "",
    ) -> ChurnRecord:
        """Insert a fresh record (call 1, no history). Used by ingestion."""
        if self._load_row(record_id) is not None:
            raise Conflict(f"Churn record {record_id} already exists", record_id=record_id)

        reason = clean_reason(churn_reason) if churn_reason else ""
        status = FollowUpStatus.COMPLETED if is_terminal(reason) else FollowUpStatus.PENDING
        row = ChurnRecordRow(
            id=record_id,
            created_date=created_date,
            churn_reason=reason,
            remarks=remarks,
            controlled_status=controlled_status(reason).value,
            mail_sent=False,
            follow_up_status=status.value,
            version=0,
            **_state_columns(Inactive()),
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise Conflict(f"Churn record {record_id} already exists", record_id=record_id) from exc
        logger.info("churn_repo: created record=%s created_date=%s", record_id, created_date)
        return self.get(record_id)

    def update(self, record_id: str, mutator: RecordMutator) -> ChurnRecord:
        current = self.get(record_id)
        try:
            updated = mutator(current)
        except Exception:
            # Release the read transaction; nothing was written.
            self.db.rollback()
            raise

        known = len(current.call_attempts)
        if updated.id != current.id or updated.call_attempts[:known] != current.call_attempts:
            self.db.rollback()
            raise ValueError(f"Mutator rewrote identity or call history of record {record_id}")
        new_attempts = updated.call_attempts[known:]

        try:
            result = self.db.execute(
                update(ChurnRecordRow)
                .where(
                    ChurnRecordRow.id == record_id,
                    ChurnRecordRow.version == current.version,
                )
                .values(
                    churn_reason=updated.churn_reason,
                    remarks=updated.remarks,
                    controlled_status=updated.controlled_status.value,
                    mail_sent=updated.mail_sent,
                    follow_up_status=updated.follow_up_status.value,
                    follow_up_completed_at=updated.follow_up_completed_at,
                    version=current.version + 1,
                    updated_at=func.now(),
                    **_state_columns(updated.follow_up),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                logger.warning(
                    "churn_repo: version conflict record=%s expected_version=%s",
                    record_id, current.version,
                )
                raise Conflict(
                    f"Churn record {record_id} changed concurrently; reload and retry",
                    record_id=record_id,
                )

            self._insert_attempts(record_id, new_attempts)
            self.db.commit()
        except SQLAlchemyError:
            # Constraint violations on the record row land here too.
            self.db.rollback()
            logger.exception("churn_repo: update failed record=%s", record_id)
            raise

        return replace(updated, version=current.version + 1)

    def _insert_attempts(self, record_id: str, attempts: Iterable[CallAttempt]) -> None:
        rows = [
            CallAttemptRow(
                record_id=record_id,
                call_number=attempt.call_number,
                response=attempt.response.value,
                churn_reason=attempt.churn_reason,
                notes=attempt.notes,
                called_at=attempt.timestamp,
            )
            for attempt in attempts
        ]
        if not rows:
            return
        numbers = ", ".join(str(row.call_number) for row in rows)
        self.db.add_all(rows)
        try:
            self.db.flush()
        except IntegrityError as exc:
            # Another writer already holds this (record_id, call_number).
            self.db.rollback()
            logger.warning("churn_repo: duplicate call attempt record=%s call=%s", record_id, numbers)
            raise Conflict(
                f"Call {numbers} for record {record_id} already recorded",
                record_id=record_id,
            ) from exc
