"""
Locating and fetching the source object of an import.

The object key encodes the owning user and list: ``<userId>.<listId>[...].<ext>``.
Keys from storage notifications are URL-encoded and are decoded here.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional
from urllib.parse import unquote_plus

from recipient_importer.core.config import settings
from recipient_importer.domain.imports.exceptions import (
    SourceUnavailableError,
    UnsupportedFormatError,
)
from recipient_importer.domain.imports.models import ImportJob, SourceLocator
from recipient_importer.integrations.storage import StorageError, download_file_with_metadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourcePayload:
    content: bytes
    column_mapping: Dict[str, str]


def locator_from_notification(record: Mapping[str, Any]) -> SourceLocator:
    """
    Build a locator from one storage notification record's ``s3`` section.

    Args:
        record: Mapping shaped like ``{"bucket": {"name": ...}, "object": {"key": ...}}``
    """
    try:
        bucket = record["bucket"]["name"]
        key = record["object"]["key"]
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed storage notification: missing {e}")
    return SourceLocator(bucket=bucket, key=unquote_plus(key))


def build_job(
    locator: SourceLocator,
    offset: int = 0,
    supported_formats: Optional[Iterable[str]] = None,
) -> ImportJob:
    """
    Derive an ImportJob from its source locator.

    The format check runs here, before anything touches storage.

    Raises:
        UnsupportedFormatError: If the key does not name a supported format
    """
    parts = locator.key.rsplit("/", 1)[-1].split(".")
    if len(parts) < 3 or not parts[0] or not parts[1]:
        raise UnsupportedFormatError(
            f"Source key '{locator.key}' must look like <userId>.<listId>.<ext>"
        )

    file_format = parts[-1].lower()
    allowed = {fmt.lower() for fmt in (supported_formats or settings.import_supported_formats)}
    if file_format not in allowed:
        logger.warning("Rejecting %s: %s is not supported", locator.key, file_format)
        raise UnsupportedFormatError(f"{file_format} is not supported")

    return ImportJob(
        user_id=parts[0],
        list_id=parts[1],
        source_locator=locator,
        file_format=file_format,
        offset=offset,
    )


def parse_column_mapping(metadata: Optional[Mapping[str, str]], mapping_key: Optional[str] = None) -> Dict[str, str]:
    """
    Extract the source-column -> attribute mapping from object metadata.

    The mapping is stored as JSON under ``mapping_key``. Objects uploaded
    without it carry the mapping as plain metadata entries instead.
    """
    if not metadata:
        return {}

    key = mapping_key or settings.import_column_mapping_key
    raw = metadata.get(key)
    if raw is None:
        return {str(k): str(v) for k, v in metadata.items()}

    try:
        mapping = json.loads(raw)
    except (TypeError, ValueError):
        raise UnsupportedFormatError(f"Column mapping under '{key}' is not valid JSON")
    if not isinstance(mapping, dict):
        raise UnsupportedFormatError(f"Column mapping under '{key}' must be a JSON object")
    return {str(k): str(v) for k, v in mapping.items()}


def fetch_source(locator: SourceLocator) -> SourcePayload:
    """
    Download the source object and its column mapping.

    Raises:
        SourceUnavailableError: If the object cannot be read from storage
    """
    logger.info("Fetching source s3://%s/%s", locator.bucket, locator.key)
    try:
        content, metadata = download_file_with_metadata(locator.bucket, locator.key)
    except StorageError as e:
        logger.error(f"Source fetch failed for {locator.key}: {e}")
        raise SourceUnavailableError(str(e)) from e

    return SourcePayload(content=content, column_mapping=parse_column_mapping(metadata))
