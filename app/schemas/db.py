"""Pydantic schemas for database explorer endpoints."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from app.schemas.common import CamelModel


class DbObjectResponse(BaseModel):
    id: str
    schema_name: str = Field(alias="schema")
    name: str
    type: Literal["TABLE", "VIEW"]

    model_config = {"populate_by_name": True}


class ColumnResponse(CamelModel):
    name: str
    data_type: str
    max_length: int | None = None
    is_nullable: bool


class RowsResponse(BaseModel):
    rows: list[dict[str, Any]]
    total: int
