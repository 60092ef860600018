"""
Recipient persistence: the batch-write primitive used by the importer.

Rows are keyed by (list_id, id) and written with an upsert, so re-importing
the same file (or re-running a chunk after a crash) never duplicates a
recipient.
"""
from __future__ import annotations

import json
import logging
import threading
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.engine import Engine

from recipient_importer.db.session import get_engine
from recipient_importer.domain.imports.models import RecipientEntity

logger = logging.getLogger(__name__)

CREATE_RECIPIENTS_SQL = """
CREATE TABLE IF NOT EXISTS recipients (
    list_id VARCHAR(255) NOT NULL,
    id VARCHAR(512) NOT NULL,
    user_id VARCHAR(255) NOT NULL,
    email VARCHAR(320) NOT NULL,
    metadata TEXT,
    status VARCHAR(50) NOT NULL,
    is_confirmed BOOLEAN NOT NULL DEFAULT TRUE,
    created_at BIGINT NOT NULL,
    PRIMARY KEY (list_id, id)
)
"""

UPSERT_RECIPIENT_SQL = """
INSERT INTO recipients (list_id, id, user_id, email, metadata, status, is_confirmed, created_at)
VALUES (:list_id, :id, :user_id, :email, :metadata, :status, :is_confirmed, :created_at)
ON CONFLICT (list_id, id) DO UPDATE
SET
    user_id = EXCLUDED.user_id,
    email = EXCLUDED.email,
    metadata = EXCLUDED.metadata,
    status = EXCLUDED.status,
    is_confirmed = EXCLUDED.is_confirmed
"""


def _row_params(entity: RecipientEntity) -> Dict[str, Any]:
    record = entity.as_record()
    record["metadata"] = json.dumps(record["metadata"])
    return record


def _row_to_recipient(row: Any) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "user_id": row["user_id"],
        "list_id": row["list_id"],
        "email": row["email"],
        "metadata": json.loads(row["metadata"]) if row["metadata"] else {},
        "status": row["status"],
        "is_confirmed": bool(row["is_confirmed"]),
        "created_at": row["created_at"],
    }


class RecipientStore:
    """Writes recipient chunks in a single transaction per chunk."""

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
        """Create the recipients table on-demand."""
        if self._table_ready:
            return
        with self._table_lock:
            if self._table_ready:
                return
            with self.engine.begin() as conn:
                conn.execute(text(CREATE_RECIPIENTS_SQL))
            self._table_ready = True

    def save_all(self, entities: Sequence[RecipientEntity]) -> List[RecipientEntity]:
        """
        Upsert a chunk of recipients.

        The chunk commits or rolls back as a whole, so there is never a
        partial write to report: the returned list of unprocessed items is
        always empty on success. Database errors propagate to the caller.
        """
        if not entities:
            return []
        self.ensure_table()
        with self.engine.begin() as conn:
            conn.execute(text(UPSERT_RECIPIENT_SQL), [_row_params(entity) for entity in entities])
        logger.debug(f"Upserted {len(entities)} recipients into list {entities[0].list_id}")
        return []

    def list_recipients(self, list_id: str, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        self.ensure_table()
        query_sql = """
        SELECT *
        FROM recipients
        WHERE list_id = :list_id
        ORDER BY created_at, id
        LIMIT :limit OFFSET :offset
        """
        with self.engine.connect() as conn:
            result = conn.execute(text(query_sql), {"list_id": list_id, "limit": limit, "offset": offset})
            return [_row_to_recipient(row) for row in result.mappings().all()]

    def count_recipients(self, list_id: str) -> int:
        self.ensure_table()
        with self.engine.connect() as conn:
            result = conn.execute(
                text("SELECT COUNT(*) FROM recipients WHERE list_id = :list_id"),
                {"list_id": list_id},
            )
            return result.scalar() or 0
