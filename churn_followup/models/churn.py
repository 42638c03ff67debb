from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from churn_followup.database import Base


class ChurnRecordRow(Base):
    __tablename__ = "churn_records"
    __table_args__ = (
        CheckConstraint(
            "follow_up_state <> 'pending_reminder' OR next_reminder_at IS NOT NULL",
            name="ck_churn_records_pending_has_reminder",
        ),
    )

    id = Column(String(64), primary_key=True)
    created_date = Column(Date, nullable=False, index=True)
    churn_reason = Column(Text, nullable=False, default="")
    remarks = Column(Text, nullable=False, default="")
    controlled_status = Column(String(20), nullable=False, default="Unknown")
    mail_sent = Column(Boolean, nullable=False, default=False)
    follow_up_state = Column(String(40), nullable=False, default="inactive", index=True)
    next_reminder_at = Column(DateTime(timezone=True), nullable=True, index=True)
    follow_up_status = Column(String(20), nullable=False, default="PENDING", index=True)
    follow_up_completed_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class CallAttemptRow(Base):
    __tablename__ = "churn_call_attempts"
    __table_args__ = (
        UniqueConstraint("record_id", "call_number", name="uq_churn_call_attempts_record_call"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    record_id = Column(String(64), ForeignKey("churn_records.id", ondelete="CASCADE"), nullable=False, index=True)
    call_number = Column(Integer, nullable=False)
    response = Column(String(30), nullable=False)
    churn_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    called_at = Column(DateTime(timezone=True), nullable=False)
