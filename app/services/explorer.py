"""Database explorer: catalog discovery and row listing for arbitrary tables."""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.engine import Dialect
from sqlalchemy.exc import CompileError, NoSuchTableError
from sqlalchemy.orm import Session
from sqlalchemy.types import TypeEngine

from app.config import get_settings
from app.services.query_builder import ColumnInfo, RowQuery, TableQuery, normalize_column_name

logger = logging.getLogger("ifrs_explorer")


@dataclass(frozen=True)
class DbObject:
    """A table or view visible to the explorer."""

    schema: str
    name: str
    type: str  # TABLE or VIEW

    @property
    def id(self) -> str:
        return f"{self.schema}.{self.name}"


@dataclass
class RowPage:
    """One page of rows plus the number of rows matching the search."""

    rows: list[dict[str, Any]]
    total: int
    columns: list[ColumnInfo]
    sort: str | None = None
    order: str = "asc"


class TableNotFoundError(LookupError):
    """Raised when the catalog has no table or view with the requested name."""


def _jsonable(value: Any) -> Any:
    # binary columns (rowversion, varbinary) are shown as hex
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return value


def sql_type_name(col_type: TypeEngine, dialect: Dialect) -> str:
    """Lower-cased SQL type name without arguments, e.g. ``nvarchar``."""
    try:
        rendered = col_type.compile(dialect=dialect)
    except CompileError:
        rendered = type(col_type).__name__
    return rendered.split("(", 1)[0].strip().lower()


class ExplorerService:
    """Lists database objects and reads their rows."""

    def __init__(self, excluded_columns: list[str], excluded_schemas: list[str]) -> None:
        self.excluded_columns = {normalize_column_name(name) for name in excluded_columns}
        self.excluded_schemas = {name.lower() for name in excluded_schemas}

    def is_excluded_column(self, name: str) -> bool:
        return normalize_column_name(name) in self.excluded_columns

    def list_objects(self, db: Session) -> list[DbObject]:
        """All tables and views, sorted by schema then name."""
        inspector = inspect(db.connection())
        objects: list[DbObject] = []
        for schema in inspector.get_schema_names():
            if schema.lower() in self.excluded_schemas:
                continue
            objects.extend(DbObject(schema, name, "TABLE") for name in inspector.get_table_names(schema=schema))
            objects.extend(DbObject(schema, name, "VIEW") for name in inspector.get_view_names(schema=schema))
        return sorted(objects, key=lambda obj: (obj.schema.lower(), obj.name.lower()))

    def get_columns(self, db: Session, schema: str, table: str) -> list[ColumnInfo]:
        """Visible columns of a table or view, in ordinal order.

        Raises TableNotFoundError if the object does not exist.
        """
        connection = db.connection()
        inspector = inspect(connection)
        try:
            reflected = inspector.get_columns(table, schema=schema)
        except NoSuchTableError:
            raise TableNotFoundError(f"{schema}.{table}") from None
        if not reflected:
            raise TableNotFoundError(f"{schema}.{table}")

        columns = []
        for col in reflected:
            if self.is_excluded_column(col["name"]):
                continue
            col_type = col["type"]
            columns.append(
                ColumnInfo(
                    name=col["name"],
                    data_type=sql_type_name(col_type, connection.dialect),
                    max_length=getattr(col_type, "length", None),
                    is_nullable=bool(col.get("nullable", True)),
                )
            )
        return columns

    def get_rows(self, db: Session, schema: str, table: str, options: RowQuery) -> RowPage:
        """Count and fetch one page of rows. Returns an empty page when no column is visible."""
        columns = self.get_columns(db, schema, table)
        if not columns:
            return RowPage(rows=[], total=0, columns=[])

        query = TableQuery(
            schema=schema,
            table=table,
            columns=columns,
            options=options,
            collation_case_insensitive=db.get_bind().dialect.name == "mssql",
        )
        total = db.execute(query.count_statement()).scalar_one()
        rows = []
        # Pages past the end skip the page query.
        if options.offset < total:
            rows = [
                {key: _jsonable(value) for key, value in row.items()}
                for row in db.execute(query.page_statement()).mappings()
            ]
        logger.debug("Fetched %d/%d rows from %s.%s", len(rows), total, schema, table)

        return RowPage(
            rows=rows,
            total=total,
            columns=columns,
            sort=query.sort_column,
            order="desc" if query.descending else "asc",
        )


_explorer_service: ExplorerService | None = None


def get_explorer_service() -> ExplorerService:
    """Get singleton explorer service instance."""
    global _explorer_service
    if _explorer_service is None:
        settings = get_settings()
        _explorer_service = ExplorerService(
            excluded_columns=settings.EXPLORER_EXCLUDED_COLUMNS,
            excluded_schemas=settings.EXPLORER_EXCLUDED_SCHEMAS,
        )
    return _explorer_service
