"""
Wiring of the import controller to its concrete capabilities.

Two execution environments are supported:

- event executions (see ``recipient_importer.handler``): the deadline comes
  from the invocation context and continuations are re-invoked as events;
- in-process executions (HTTP-triggered): the deadline is a fixed budget and
  continuations are queued on a local thread pool.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from recipient_importer.core.config import settings
from recipient_importer.db.import_status import ImportStatusStore
from recipient_importer.db.recipients import RecipientStore
from recipient_importer.domain.imports.controller import (
    ImportController,
    ImportRunConfig,
    Redispatch,
    ReportSink,
)
from recipient_importer.domain.imports.deadline import BudgetClock
from recipient_importer.domain.imports.models import ExecutionResult, ImportCheckpoint
from recipient_importer.domain.imports.persister import PersistBatch
from recipient_importer.domain.imports.processors.csv_processor import iter_csv_records
from recipient_importer.domain.imports.source import build_job, fetch_source
from recipient_importer.integrations.dispatch import ExecutorDispatcher

logger = logging.getLogger(__name__)

DECODERS = {
    "csv": iter_csv_records,
}

recipient_store = RecipientStore()
status_store = ImportStatusStore()

_executor: Optional[ThreadPoolExecutor] = None


def get_executor() -> ThreadPoolExecutor:
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(
            max_workers=settings.import_max_workers,
            thread_name_prefix="recipient-import",
        )
    return _executor


def build_controller(
    remaining_time_ms: Callable[[], int],
    redispatch: Redispatch,
    *,
    persist_batch: Optional[PersistBatch] = None,
    report_sink: Optional[ReportSink] = None,
) -> ImportController:
    return ImportController(
        config=ImportRunConfig.from_settings(settings),
        fetch_source=fetch_source,
        decoders=DECODERS,
        persist_batch=persist_batch or recipient_store.save_all,
        remaining_time_ms=remaining_time_ms,
        redispatch=redispatch,
        report_sink=report_sink or status_store,
    )


def run_local_execution(checkpoint: ImportCheckpoint) -> ExecutionResult:
    """
    Run one in-process execution under the configured time budget.

    Continuations are queued back onto the shared executor.
    """
    job = build_job(checkpoint.source_locator, offset=checkpoint.offset)
    controller = build_controller(
        BudgetClock(settings.import_execution_budget_seconds),
        ExecutorDispatcher(get_executor(), run_local_execution),
    )
    try:
        return controller.run(job)
    except Exception:
        logger.exception(f"Import execution for {checkpoint.source_locator.key} aborted")
        raise


def shutdown_executor(wait: bool = True) -> None:
    global _executor
    if _executor is not None:
        _executor.shutdown(wait=wait)
        _executor = None
