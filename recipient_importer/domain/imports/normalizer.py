import base64
from typing import Mapping, Optional

from recipient_importer.domain.imports.models import ImportJob, RecipientEntity

SUBSCRIBED = "subscribed"


def recipient_id(email: str) -> str:
    """Stable identity for an email: unpadded URL-safe base64 of its UTF-8 bytes."""
    return base64.urlsafe_b64encode(email.encode("utf-8")).decode("ascii").rstrip("=")


def normalize_record(
    raw: Mapping[str, Optional[str]],
    job: ImportJob,
    created_at: int,
    email_column: str = "email",
) -> RecipientEntity:
    """
    Turn one decoded row into a recipient candidate.

    Every mapped column except the email column is copied into ``metadata``
    under its destination attribute name. The result depends only on the
    arguments, so the same row always yields the same entity.
    """
    email = raw.get(email_column) or ""
    metadata = {
        attribute: raw.get(column)
        for column, attribute in job.column_mapping.items()
        if column != email_column
    }
    return RecipientEntity(
        id=recipient_id(email),
        user_id=job.user_id,
        list_id=job.list_id,
        email=email,
        metadata=metadata,
        status=SUBSCRIBED,
        is_confirmed=True,
        created_at=created_at,
    )
