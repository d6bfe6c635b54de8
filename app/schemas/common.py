"""Common/shared schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that serializes snake_case fields as camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class EventResponse(CamelModel):
    id: int
    event_type: str
    block_number: int
    timestamp: int
    subject: str
    payload: dict[str, Any] | None
