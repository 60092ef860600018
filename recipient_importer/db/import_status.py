"""
Persistent store for terminal import reports.

One row per (user_id, list_id): a later lineage for the same list replaces
the earlier report.
"""
from __future__ import annotations

import json
import logging
import threading
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from recipient_importer.db.session import get_engine
from recipient_importer.domain.imports.models import ImportStatusReport

logger = logging.getLogger(__name__)

CREATE_IMPORT_STATUS_SQL = """
CREATE TABLE IF NOT EXISTS import_status (
    user_id VARCHAR(255) NOT NULL,
    list_id VARCHAR(255) NOT NULL,
    import_status VARCHAR(20) NOT NULL,
    total_recipients_count INTEGER NOT NULL,
    imported_count INTEGER NOT NULL,
    corrupted_emails_count INTEGER NOT NULL,
    corrupted_emails TEXT,
    message TEXT,
    stack_trace TEXT,
    updated_at VARCHAR(64) NOT NULL,
    PRIMARY KEY (user_id, list_id)
)
"""

UPSERT_IMPORT_STATUS_SQL = """
INSERT INTO import_status (
    user_id, list_id, import_status, total_recipients_count, imported_count,
    corrupted_emails_count, corrupted_emails, message, stack_trace, updated_at
)
VALUES (
    :user_id, :list_id, :import_status, :total_recipients_count, :imported_count,
    :corrupted_emails_count, :corrupted_emails, :message, :stack_trace, :updated_at
)
ON CONFLICT (user_id, list_id) DO UPDATE
SET
    import_status = EXCLUDED.import_status,
    total_recipients_count = EXCLUDED.total_recipients_count,
    imported_count = EXCLUDED.imported_count,
    corrupted_emails_count = EXCLUDED.corrupted_emails_count,
    corrupted_emails = EXCLUDED.corrupted_emails,
    message = EXCLUDED.message,
    stack_trace = EXCLUDED.stack_trace,
    updated_at = EXCLUDED.updated_at
"""


def _row_to_report(row: Any) -> ImportStatusReport:
    return ImportStatusReport(
        user_id=row["user_id"],
        list_id=row["list_id"],
        import_status=row["import_status"],
        total_recipients_count=row["total_recipients_count"],
        imported_count=row["imported_count"],
        corrupted_emails_count=row["corrupted_emails_count"],
        corrupted_emails=json.loads(row["corrupted_emails"]) if row["corrupted_emails"] else [],
        message=row["message"],
        stack_trace=row["stack_trace"],
        updated_at=row["updated_at"],
    )


class ImportStatusStore:
    def __init__(self, engine: Optional[Engine] = None):
        self._engine = engine
        self._table_ready = False
        self._table_lock = threading.Lock()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = get_engine()
        return self._engine

    def ensure_table(self) -> None:
        """Create the import_status table on-demand."""
        if self._table_ready:
            return
        with self._table_lock:
            if self._table_ready:
                return
            with self.engine.begin() as conn:
                conn.execute(text(CREATE_IMPORT_STATUS_SQL))
            self._table_ready = True

    def save_report(self, report: ImportStatusReport) -> ImportStatusReport:
        self.ensure_table()
        params = {
            "user_id": report.user_id,
            "list_id": report.list_id,
            "import_status": report.import_status.value,
            "total_recipients_count": report.total_recipients_count,
            "imported_count": report.imported_count,
            "corrupted_emails_count": report.corrupted_emails_count,
            "corrupted_emails": json.dumps(list(report.corrupted_emails)),
            "message": report.message,
            "stack_trace": report.stack_trace,
            "updated_at": report.updated_at,
        }
        with self.engine.begin() as conn:
            conn.execute(text(UPSERT_IMPORT_STATUS_SQL), params)
        logger.info(
            f"Recorded {report.import_status.value} import status for list {report.list_id} "
            f"({report.imported_count}/{report.total_recipients_count})"
        )
        return report

    # The controller hands reports to any callable sink
    __call__ = save_report

    def get_report(self, user_id: str, list_id: str) -> Optional[ImportStatusReport]:
        self.ensure_table()
        query_sql = """
        SELECT *
        FROM import_status
        WHERE user_id = :user_id AND list_id = :list_id
        """
        with self.engine.connect() as conn:
            result = conn.execute(text(query_sql), {"user_id": user_id, "list_id": list_id})
            row = result.mappings().first()
            return _row_to_report(row) if row else None
