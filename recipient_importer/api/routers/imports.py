"""
Endpoints for starting recipient list imports and reading their outcome.
"""
import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException

from recipient_importer.api.schemas.imports import ImportQueuedResponse, ImportRequest
from recipient_importer.domain.imports import service
from recipient_importer.domain.imports.exceptions import UnsupportedFormatError
from recipient_importer.domain.imports.models import ImportCheckpoint, SourceLocator
from recipient_importer.domain.imports.source import build_job

logger = logging.getLogger(__name__)

router = APIRouter(tags=["imports"])


@router.post("/imports", status_code=202, response_model=ImportQueuedResponse, response_model_by_alias=True)
async def start_import_endpoint(request: ImportRequest, background_tasks: BackgroundTasks):
    """
    Queue an import execution for the given source object.

    The format is checked before anything is queued, so unsupported files
    are rejected synchronously with 400. The terminal outcome is available
    from the status endpoint once the lineage finishes.
    """
    locator = SourceLocator(bucket=request.bucket, key=request.key)
    try:
        job = build_job(locator, offset=request.offset)
    except UnsupportedFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))

    checkpoint = ImportCheckpoint(source_locator=locator, offset=job.offset)
    background_tasks.add_task(service.run_local_execution, checkpoint)
    logger.info(f"Queued import of {locator.key} for list {job.list_id}")

    return ImportQueuedResponse(user_id=job.user_id, list_id=job.list_id, offset=job.offset)


@router.get("/imports/{user_id}/{list_id}/status")
async def get_import_status_endpoint(user_id: str, list_id: str):
    report = service.status_store.get_report(user_id, list_id)
    if report is None:
        raise HTTPException(status_code=404, detail="No finished import for this list")
    return report.to_payload()
