"""
Time-bounded, resumable import of a recipient list.

One call to ``ImportController.run`` is one execution of an import lineage:

    FETCHING -> PERSISTING -> CONTINUE_LOCAL (loop)
                           -> CHECKPOINT_DISPATCH (hand the offset to a fresh execution)
                           -> DONE_SUCCESS / DONE_FAILED (terminal report)

Only the offset survives between executions. Every execution re-fetches and
re-decodes the whole source; because decoding, normalisation and filtering
are deterministic, the valid-entity list (and so the meaning of the offset)
is the same each time.
"""
from __future__ import annotations

import logging
import time
import traceback
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from recipient_importer.domain.imports.deadline import DEFAULT_EXECUTION_THRESHOLD_MS, DeadlineTracker
from recipient_importer.domain.imports.exceptions import PersistenceError, UnsupportedFormatError
from recipient_importer.domain.imports.models import (
    ExecutionResult,
    ExecutionState,
    FilterResult,
    ImportCheckpoint,
    ImportJob,
    ImportStatus,
    ImportStatusReport,
    SourceLocator,
)
from recipient_importer.domain.imports.normalizer import normalize_record
from recipient_importer.domain.imports.persister import MAX_CHUNK_SIZE, BatchPersister, PersistBatch, next_chunk
from recipient_importer.domain.imports.validators import filter_recipients

logger = logging.getLogger(__name__)

FetchSource = Callable[[SourceLocator], Any]  # returns an object with .content and .column_mapping
DecodeRecords = Callable[[bytes], Iterable[Mapping[str, Optional[str]]]]
Redispatch = Callable[[ImportCheckpoint], Any]
ReportSink = Callable[[ImportStatusReport], Any]


@dataclass(frozen=True)
class ImportRunConfig:
    chunk_size: int = MAX_CHUNK_SIZE
    execution_threshold_ms: int = DEFAULT_EXECUTION_THRESHOLD_MS
    email_column: str = "email"

    def __post_init__(self):
        if not 1 <= self.chunk_size <= MAX_CHUNK_SIZE:
            raise ValueError(f"chunk_size must be between 1 and {MAX_CHUNK_SIZE}, got {self.chunk_size}")
        if self.execution_threshold_ms < 0:
            raise ValueError("execution_threshold_ms must not be negative")

    @classmethod
    def from_settings(cls, settings) -> "ImportRunConfig":
        return cls(
            chunk_size=settings.import_chunk_size,
            execution_threshold_ms=settings.import_execution_threshold_ms,
            email_column=settings.import_email_column,
        )


def _now_ms() -> int:
    return int(time.time() * 1000)


class ImportController:
    """Drives one execution of an import lineage to a report or a checkpoint."""

    def __init__(
        self,
        *,
        config: ImportRunConfig,
        fetch_source: FetchSource,
        decoders: Dict[str, DecodeRecords],
        persist_batch: PersistBatch,
        remaining_time_ms: Callable[[], int],
        redispatch: Redispatch,
        report_sink: ReportSink,
        now_ms: Callable[[], int] = _now_ms,
    ):
        self.config = config
        self.fetch_source = fetch_source
        self.decoders = decoders
        self.persister = BatchPersister(persist_batch, chunk_size=config.chunk_size)
        self.deadline = DeadlineTracker(remaining_time_ms, threshold_ms=config.execution_threshold_ms)
        self.redispatch = redispatch
        self.report_sink = report_sink
        self.now_ms = now_ms

    def run(self, job: ImportJob) -> ExecutionResult:
        """
        Run one execution.

        Raises:
            UnsupportedFormatError: Before any fetch, for formats without a decoder
            SourceUnavailableError: If the source cannot be fetched
            DispatchError: If the checkpoint cannot be handed off
        """
        job, filtered = self._fetch(job)
        valid = filtered.valid

        offset = job.offset
        if offset > len(valid):
            logger.warning(
                f"Checkpoint offset {offset} is past the {len(valid)} valid recipients of {job.list_id}; clamping"
            )
            offset = len(valid)

        logger.info(f"[{ExecutionState.PERSISTING.value}] list {job.list_id} from offset {offset}/{len(valid)}")
        while offset < len(valid):
            chunk = next_chunk(valid, offset, self.config.chunk_size)
            try:
                outcome = self.persister.persist(chunk)
            except PersistenceError as e:
                return self._finish(job, filtered, offset, ImportStatus.FAILED, error=e)

            offset += outcome.written
            logger.info(
                f"Persisted chunk for {job.list_id}: written={outcome.written} "
                f"unwritten={outcome.unwritten} offset={offset}/{len(valid)}"
            )

            if offset >= len(valid):
                break
            if self.deadline.has_time():
                logger.debug(f"[{ExecutionState.CONTINUE_LOCAL.value}] time left for another chunk")
                continue
            return self._checkpoint(job, offset)

        return self._finish(job, filtered, offset, ImportStatus.SUCCESS)

    def _fetch(self, job: ImportJob) -> Tuple[ImportJob, FilterResult]:
        decode = self.decoders.get(job.file_format)
        if decode is None:
            raise UnsupportedFormatError(f"{job.file_format} is not supported")

        logger.info(f"[{ExecutionState.FETCHING.value}] {job.source_locator.key}")
        source = self.fetch_source(job.source_locator)
        job = replace(job, column_mapping=dict(source.column_mapping))

        created_at = self.now_ms()
        candidates = (
            normalize_record(raw, job, created_at, email_column=self.config.email_column)
            for raw in decode(source.content)
        )
        filtered = filter_recipients(candidates)
        logger.info(
            f"Decoded {filtered.total} recipients for list {job.list_id}: "
            f"{len(filtered.valid)} valid, {len(filtered.corrupted_emails)} corrupted"
        )
        return job, filtered

    def _checkpoint(self, job: ImportJob, offset: int) -> ExecutionResult:
        checkpoint = job.checkpoint(offset)
        logger.info(
            f"[{ExecutionState.CHECKPOINT_DISPATCH.value}] not enough time left; "
            f"continuing {job.list_id} from offset {offset}"
        )
        self.redispatch(checkpoint)
        return ExecutionResult(state=ExecutionState.CHECKPOINT_DISPATCH, offset=offset, checkpoint=checkpoint)

    def _finish(
        self,
        job: ImportJob,
        filtered: FilterResult,
        offset: int,
        status: ImportStatus,
        error: Optional[BaseException] = None,
    ) -> ExecutionResult:
        report = ImportStatusReport(
            list_id=job.list_id,
            user_id=job.user_id,
            total_recipients_count=filtered.total,
            imported_count=offset,
            corrupted_emails_count=len(filtered.corrupted_emails),
            corrupted_emails=list(filtered.corrupted_emails),
            import_status=status,
            message=str(error) if error is not None else None,
            stack_trace=(
                "".join(traceback.format_exception(type(error), error, error.__traceback__))
                if error is not None else None
            ),
        )

        if status is ImportStatus.SUCCESS:
            state = ExecutionState.DONE_SUCCESS
            logger.info(f"[{state.value}] imported {offset} recipients into list {job.list_id}")
        else:
            state = ExecutionState.DONE_FAILED
            logger.error(f"[{state.value}] import of list {job.list_id} stopped at {offset}: {error}")

        self.report_sink(report)
        return ExecutionResult(state=state, offset=offset, report=report)
