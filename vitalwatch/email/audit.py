"""Append-only audit log of email send attempts.

Every attempt, successful or not, is written to
``email_delivery_attempts``. A failed audit write is logged and dropped:
the audit trail must never change whether an email is delivered.
"""

import logging

from vitalwatch.email.schemas import DeliveryAttempt
from vitalwatch.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS email_delivery_attempts (
    attempt_id   TEXT PRIMARY KEY,
    recipient    TEXT NOT NULL,
    subject      TEXT NOT NULL,
    provider     TEXT NOT NULL,
    status       TEXT NOT NULL,
    attempt      INTEGER NOT NULL,
    message_id   TEXT,
    error        TEXT,
    created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_email_attempts_created_at
    ON email_delivery_attempts(created_at DESC);
"""


class EmailAttemptLog:
    """Writes ``DeliveryAttempt`` rows."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def ensure_table(self) -> None:
        await self._db.execute(_CREATE_TABLE_SQL)

    async def record(self, attempt: DeliveryAttempt) -> None:
        """Append one attempt. Never raises."""
        sql = """
            INSERT INTO email_delivery_attempts (
                attempt_id, recipient, subject, provider, status,
                attempt, message_id, error, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
        """
        try:
            await self._db.execute(
                sql,
                attempt.attempt_id,
                attempt.to,
                attempt.subject,
                attempt.provider,
                attempt.status,
                attempt.attempt,
                attempt.message_id,
                attempt.error,
                attempt.created_at,
            )
        except Exception as e:
            logger.error(
                "Failed to audit email attempt (%s #%d to %s): %s",
                attempt.provider, attempt.attempt, attempt.to, e,
            )
