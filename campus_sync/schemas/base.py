# campus_sync/schemas/base.py
"""Shared pydantic bases: snake_case attributes, camelCase on the wire."""
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..core.exceptions import ValidationError

M = TypeVar("M", bound=BaseModel)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def build_request(model: Type[M], **fields) -> M:
    """Validate an outgoing payload; bad input never reaches the network."""
    try:
        return model(**fields)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid {model.__name__} payload", 422, e.errors()) from e


class Entity(CamelModel):
    """Server-owned record. Frozen so the store only ever holds values."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
    )

    id: Optional[str] = None
