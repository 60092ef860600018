"""
Data model for recipient list imports.

`ImportJob` and `RecipientEntity` are internal, immutable values. The
checkpoint and the status report cross process boundaries, so they are
pydantic models that serialise with the camelCase field names consumers
already rely on.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ImportStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class ExecutionState(str, Enum):
    """States of one execution of an import lineage."""
    FETCHING = "FETCHING"
    PERSISTING = "PERSISTING"
    CONTINUE_LOCAL = "CONTINUE_LOCAL"
    CHECKPOINT_DISPATCH = "CHECKPOINT_DISPATCH"
    DONE_SUCCESS = "DONE_SUCCESS"
    DONE_FAILED = "DONE_FAILED"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict using the wire (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SourceLocator(_CamelModel):
    bucket: str
    key: str


class ImportCheckpoint(_CamelModel):
    """Minimal state needed to resume a lineage in a new execution."""
    source_locator: SourceLocator
    offset: int = Field(default=0, ge=0)


class ImportStatusReport(_CamelModel):
    """Terminal outcome of an import lineage."""
    list_id: str
    user_id: str
    total_recipients_count: int
    imported_count: int
    corrupted_emails_count: int
    corrupted_emails: List[str] = Field(default_factory=list)
    import_status: ImportStatus
    updated_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    message: Optional[str] = None
    stack_trace: Optional[str] = None


@dataclass(frozen=True)
class ImportJob:
    """One import run, identified by its source object."""
    user_id: str
    list_id: str
    source_locator: SourceLocator
    file_format: str
    column_mapping: Mapping[str, str] = field(default_factory=dict)
    offset: int = 0

    def checkpoint(self, offset: int) -> ImportCheckpoint:
        return ImportCheckpoint(source_locator=self.source_locator, offset=offset)


@dataclass(frozen=True)
class RecipientEntity:
    id: str
    user_id: str
    list_id: str
    email: str
    metadata: Mapping[str, Optional[str]]
    status: str
    is_confirmed: bool
    created_at: int

    def as_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "list_id": self.list_id,
            "email": self.email,
            "metadata": dict(self.metadata),
            "status": self.status,
            "is_confirmed": self.is_confirmed,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class FilterResult:
    """Valid candidates in decode order, plus the emails that were rejected."""
    valid: List[RecipientEntity]
    corrupted_emails: List[str]

    @property
    def total(self) -> int:
        return len(self.valid) + len(self.corrupted_emails)


@dataclass(frozen=True)
class ChunkOutcome:
    written: int
    unwritten: int


@dataclass(frozen=True)
class ExecutionResult:
    """What one execution ended with: a terminal report or a checkpoint."""
    state: ExecutionState
    offset: int
    report: Optional[ImportStatusReport] = None
    checkpoint: Optional[ImportCheckpoint] = None
