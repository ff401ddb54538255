"""Database explorer API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user
from app.schemas.common import ApiResponse
from app.schemas.db import ColumnResponse, DbObjectResponse, RowsResponse
from app.services.explorer import TableNotFoundError, get_explorer_service
from app.services.query_builder import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    InvalidTableIdError,
    RowQuery,
    parse_table_id,
)

router = APIRouter(prefix="/api/db", tags=["Database Explorer"], dependencies=[Depends(get_current_user)])


def table_identifier(table_id: str) -> tuple[str, str]:
    """Path dependency turning ``schema.table`` into its parts. Rejects malformed ids with 400."""
    try:
        return parse_table_id(table_id)
    except InvalidTableIdError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.get("/tables", response_model=ApiResponse[list[DbObjectResponse]], response_model_exclude_unset=True)
def list_tables(db: Session = Depends(get_db)) -> ApiResponse[list[DbObjectResponse]]:
    """List all tables and views."""
    objects = get_explorer_service().list_objects(db)
    return ApiResponse(
        success=True,
        message="Tables and views fetched successfully",
        data=[DbObjectResponse(id=o.id, schema_name=o.schema, name=o.name, type=o.type) for o in objects],
    )


@router.get(
    "/tables/{table_id}/columns",
    response_model=ApiResponse[list[ColumnResponse]],
    response_model_exclude_unset=True,
)
def get_columns(
    ident: tuple[str, str] = Depends(table_identifier),
    db: Session = Depends(get_db),
) -> ApiResponse[list[ColumnResponse]]:
    """Column metadata for a table, without blocklisted columns."""
    schema, table = ident
    try:
        columns = get_explorer_service().get_columns(db, schema, table)
    except TableNotFoundError:
        raise HTTPException(status_code=404, detail="Table not found") from None

    return ApiResponse(
        success=True,
        message="Column metadata fetched successfully",
        data=[
            ColumnResponse(
                name=c.name,
                data_type=c.data_type,
                max_length=c.max_length,
                is_nullable=c.is_nullable,
            )
            for c in columns
        ],
    )


@router.get("/tables/{table_id}/rows", response_model=ApiResponse[RowsResponse], response_model_exclude_unset=True)
def get_rows(
    ident: tuple[str, str] = Depends(table_identifier),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    sort: str = Query("", max_length=128),
    order: str = Query("asc", pattern="^(?i:asc|desc)$"),
    search: str = Query("", max_length=200),
    db: Session = Depends(get_db),
) -> ApiResponse[RowsResponse]:
    """Page, sort and search the rows of a table."""
    schema, table = ident
    options = RowQuery(page=page, page_size=page_size, sort=sort, order=order, search=search)
    try:
        result = get_explorer_service().get_rows(db, schema, table, options)
    except TableNotFoundError:
        raise HTTPException(status_code=404, detail="Table not found") from None

    message = "Rows fetched successfully" if result.columns else "No columns available"
    return ApiResponse(success=True, message=message, data=RowsResponse(rows=result.rows, total=result.total))
