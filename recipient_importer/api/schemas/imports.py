from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ImportRequest(BaseModel):
    """Start (or resume) the import of a recipient list stored in object storage."""
    bucket: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)
    offset: int = Field(default=0, ge=0)


class ImportQueuedResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: str = "queued"
    user_id: str
    list_id: str
    offset: int
