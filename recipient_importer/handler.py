"""
Event entry point for function-style deployments.

Accepted events:

- a storage notification: ``{"Records": [{"s3": {"bucket": {...}, "object": {...}}}]}``
- a continuation from an older dispatcher: the same, plus ``"importOffset": n``
- a checkpoint: ``{"sourceLocator": {"bucket": ..., "key": ...}, "offset": n}``
"""
import logging
from typing import Any, Dict, Mapping

from recipient_importer.core.config import settings
from recipient_importer.core.logging_config import configure_logging
from recipient_importer.domain.imports import service
from recipient_importer.domain.imports.deadline import LambdaContextClock
from recipient_importer.domain.imports.models import ImportCheckpoint
from recipient_importer.domain.imports.source import build_job, locator_from_notification
from recipient_importer.integrations.dispatch import LambdaDispatcher

logger = logging.getLogger(__name__)


def parse_event(event: Mapping[str, Any]) -> ImportCheckpoint:
    """
    Turn an incoming event into the checkpoint to resume from.

    Raises:
        ValueError: If the event has none of the accepted shapes
    """
    if "sourceLocator" in event:
        return ImportCheckpoint.model_validate(event)

    records = event.get("Records") or []
    if not records:
        raise ValueError("Event carries neither a sourceLocator nor storage Records")
    if len(records) > 1:
        logger.warning(f"Event carries {len(records)} records; importing the first only")

    locator = locator_from_notification(records[0].get("s3") or {})
    return ImportCheckpoint(source_locator=locator, offset=int(event.get("importOffset") or 0))


def handle(event: Mapping[str, Any], context: Any) -> Dict[str, Any]:
    configure_logging(settings.log_level)

    checkpoint = parse_event(event)
    job = build_job(checkpoint.source_locator, offset=checkpoint.offset)
    logger.info(f"Import execution for list {job.list_id} starting at offset {job.offset}")

    function_name = settings.dispatch_function_name or getattr(context, "function_name", "")
    controller = service.build_controller(
        LambdaContextClock(context),
        LambdaDispatcher(function_name),
    )
    result = controller.run(job)

    if result.report is not None:
        return result.report.to_payload()
    return {"checkpoint": result.checkpoint.to_payload()}
