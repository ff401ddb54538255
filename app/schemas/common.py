"""Response envelope shared by every JSON endpoint."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Serializes field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class FieldError(BaseModel):
    field: str
    message: str
    value: Any = None


class ApiResponse(BaseModel, Generic[T]):
    success: bool
    message: str
    data: T | None = None
    error: str | None = None
    errors: list[FieldError] | None = None


class MessageData(BaseModel):
    message: str
