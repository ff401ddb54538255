"""Paged, sortable, searchable SELECTs against tables discovered at runtime.

Identifiers (schema, table and column names) and values travel on separate
paths. Identifiers are wrapped in ``quoted_name(..., quote=True)`` so the
dialect's identifier preparer always quotes them and doubles any embedded
quote character. Values (search term, offset, limit) are only ever bound
parameters.
"""

import re
from dataclasses import dataclass, field

from sqlalchemy import ColumnElement, Select, column, func, or_, select, table
from sqlalchemy.sql.elements import quoted_name
from sqlalchemy.sql.expression import TableClause

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")

TEXT_TYPES = frozenset({"nvarchar", "varchar", "nchar", "char", "text", "ntext"})

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100


class InvalidTableIdError(ValueError):
    """Raised when a table id is not ``schema.table`` with safe characters."""


def parse_table_id(table_id: str) -> tuple[str, str]:
    """Split ``schema.table`` into its parts, validating each one."""
    parts = table_id.split(".")
    if len(parts) != 2 or not all(IDENTIFIER_PATTERN.match(part) for part in parts):
        raise InvalidTableIdError("Invalid table identifier. Use schema.table format")
    return parts[0], parts[1]


def normalize_column_name(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "", name).lower()


def _ident(name: str) -> quoted_name:
    return quoted_name(name, quote=True)


@dataclass(frozen=True)
class ColumnInfo:
    """A column as reported by the database catalog."""

    name: str
    data_type: str
    max_length: int | None = None
    is_nullable: bool = True

    @property
    def searchable(self) -> bool:
        return self.data_type in TEXT_TYPES


@dataclass(frozen=True)
class RowQuery:
    """Paging, sorting and search options for a row listing."""

    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    sort: str = ""
    order: str = "asc"
    search: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "page", max(1, self.page))
        object.__setattr__(self, "page_size", min(MAX_PAGE_SIZE, max(1, self.page_size)))
        object.__setattr__(self, "order", "desc" if self.order.lower() == "desc" else "asc")
        object.__setattr__(self, "sort", self.sort.strip())
        object.__setattr__(self, "search", self.search.strip())

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class TableQuery:
    """Builds the count and page statements for one table.

    Both statements are filtered by the same predicate, so ``total`` always
    describes the rows the page statement draws from.
    """

    schema: str
    table: str
    columns: list[ColumnInfo]
    options: RowQuery = field(default_factory=RowQuery)
    # SQL Server LIKE already follows the column collation (case-insensitive
    # by default) and LOWER() rejects ntext.
    collation_case_insensitive: bool = False

    def __post_init__(self) -> None:
        if not self.columns:
            raise ValueError("TableQuery needs at least one column")
        self._table: TableClause = table(
            _ident(self.table),
            *(column(_ident(col.name)) for col in self.columns),
            schema=_ident(self.schema),
        )

    @property
    def column_names(self) -> list[str]:
        return [col.name for col in self.columns]

    @property
    def sort_column(self) -> str:
        if self.options.sort in self.column_names:
            return self.options.sort
        return self.columns[0].name

    @property
    def descending(self) -> bool:
        # Unknown sort keys fall back to the first column, ascending.
        return self.options.sort in self.column_names and self.options.order == "desc"

    @property
    def search_columns(self) -> list[ColumnInfo]:
        return [col for col in self.columns if col.searchable]

    def predicate(self) -> ColumnElement[bool] | None:
        """OR of substring matches across text columns, or None when there is nothing to filter."""
        if not self.options.search or not self.search_columns:
            return None
        matches = []
        for col in self.search_columns:
            target = self._table.c[col.name]
            if self.collation_case_insensitive:
                matches.append(target.contains(self.options.search, autoescape=True))
            else:
                matches.append(target.icontains(self.options.search, autoescape=True))
        return or_(*matches)

    def _filtered(self, stmt: Select) -> Select:
        where = self.predicate()
        if where is not None:
            stmt = stmt.where(where)
        return stmt

    def count_statement(self) -> Select:
        return self._filtered(select(func.count().label("total")).select_from(self._table))

    def page_statement(self) -> Select:
        order_col = self._table.c[self.sort_column]
        stmt = self._filtered(select(*self._table.c))
        return (
            stmt.order_by(order_col.desc() if self.descending else order_col.asc())
            .offset(self.options.offset)
            .limit(self.options.page_size)
        )
