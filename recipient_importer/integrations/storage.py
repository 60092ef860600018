"""
S3-compatible storage integration for AWS S3, MinIO, Backblaze B2, etc.
Uses boto3 for universal S3-compatible storage operations.
"""
import logging
from typing import Dict, Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from recipient_importer.core.config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageConnectionError(StorageError):
    """Raised when storage connection fails."""
    pass


class StorageDownloadError(StorageError):
    """Raised when file download fails."""
    pass


def get_storage_client():
    """
    Get S3-compatible storage client.

    Static credentials are optional: when they are not configured boto3 falls
    back to its default chain (environment, instance or function role).

    Returns:
        boto3 S3 client configured for the storage provider

    Raises:
        StorageConnectionError: If the client cannot be created
    """
    config = Config(
        signature_version='s3v4',
        retries={'max_attempts': settings.storage_max_retries, 'mode': 'standard'}
    )

    client_kwargs = {
        'service_name': 's3',
        'config': config,
    }

    if settings.storage_access_key_id and settings.storage_secret_access_key:
        client_kwargs['aws_access_key_id'] = settings.storage_access_key_id
        client_kwargs['aws_secret_access_key'] = settings.storage_secret_access_key

    # Add endpoint URL for non-AWS providers (MinIO, B2, etc.)
    if settings.storage_endpoint_url:
        client_kwargs['endpoint_url'] = settings.storage_endpoint_url

    if settings.storage_region:
        client_kwargs['region_name'] = settings.storage_region

    try:
        return boto3.client(**client_kwargs)
    except Exception as e:
        logger.error(f"Failed to create storage client: {e}")
        raise StorageConnectionError(f"Failed to connect to storage: {str(e)}")


def download_file_with_metadata(bucket: str, file_path: str) -> Tuple[bytes, Dict[str, str]]:
    """
    Download an object together with its user metadata.

    Args:
        bucket: Bucket holding the object
        file_path: The full key of the object (e.g., "uploads/u1.l1.csv")

    Returns:
        Tuple of (content bytes, user metadata dict)

    Raises:
        StorageDownloadError: If download fails
    """
    try:
        client = get_storage_client()

        response = client.get_object(
            Bucket=bucket,
            Key=file_path
        )

        return response['Body'].read(), dict(response.get('Metadata') or {})

    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', 'Unknown')
        if error_code in ('NoSuchKey', 'NoSuchBucket', '404'):
            raise StorageDownloadError(f"File not found: {bucket}/{file_path}")
        logger.error(f"Storage download failed: {error_code} - {str(e)}")
        raise StorageDownloadError(f"Download failed: {str(e)}")
    except StorageError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during download: {str(e)}")
        raise StorageDownloadError(f"Download failed: {str(e)}")
