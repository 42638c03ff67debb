from alembic import op


def upgrade():
    op.execute("""
        CREATE TABLE IF NOT EXISTS churn_records (
            id VARCHAR(64) PRIMARY KEY,
            created_date DATE NOT NULL,
            churn_reason TEXT NOT NULL DEFAULT '',
            remarks TEXT NOT NULL DEFAULT '',
            controlled_status VARCHAR(20) NOT NULL DEFAULT 'Unknown',
            mail_sent BOOLEAN NOT NULL DEFAULT FALSE,
            follow_up_state VARCHAR(40) NOT NULL DEFAULT 'inactive',
            next_reminder_at TIMESTAMPTZ,
            follow_up_status VARCHAR(20) NOT NULL DEFAULT 'PENDING',
            follow_up_completed_at TIMESTAMPTZ,
            version INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_churn_records_pending_has_reminder
                CHECK (follow_up_state <> 'pending_reminder' OR next_reminder_at IS NOT NULL)
        );

        CREATE INDEX IF NOT EXISTS idx_churn_records_created_date ON churn_records(created_date);
        CREATE INDEX IF NOT EXISTS idx_churn_records_follow_up_state ON churn_records(follow_up_state);
        CREATE INDEX IF NOT EXISTS idx_churn_records_next_reminder_at ON churn_records(next_reminder_at);
        CREATE INDEX IF NOT EXISTS idx_churn_records_follow_up_status ON churn_records(follow_up_status);

        CREATE TABLE IF NOT EXISTS churn_call_attempts (
            id SERIAL PRIMARY KEY,
            record_id VARCHAR(64) NOT NULL REFERENCES churn_records(id) ON DELETE CASCADE,
            call_number INTEGER NOT NULL,
            response VARCHAR(30) NOT NULL,
            churn_reason TEXT,
            notes TEXT,
            called_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT uq_churn_call_attempts_record_call UNIQUE (record_id, call_number)
        );

        CREATE INDEX IF NOT EXISTS idx_churn_call_attempts_record_id ON churn_call_attempts(record_id);
    """)


def downgrade():
    op.execute("DROP TABLE IF EXISTS churn_call_attempts CASCADE;")
    op.execute("DROP TABLE IF EXISTS churn_records CASCADE;")
