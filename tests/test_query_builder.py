"""Tests for the row listing statement builder."""

import pytest
from sqlalchemy.dialects import mssql, sqlite

from app.services.query_builder import (
    ColumnInfo,
    InvalidTableIdError,
    RowQuery,
    TableQuery,
    normalize_column_name,
    parse_table_id,
)

COLUMNS = [
    ColumnInfo(name="id", data_type="int"),
    ColumnInfo(name="Account Name", data_type="nvarchar", max_length=100),
    ColumnInfo(name="notes", data_type="ntext"),
    ColumnInfo(name="balance", data_type="decimal"),
]


def _sql(stmt, dialect=None) -> str:
    return str(stmt.compile(dialect=dialect or sqlite.dialect()))


class TestParseTableId:
    def test_valid(self):
        assert parse_table_id("dbo.Accounts_2025") == ("dbo", "Accounts_2025")

    @pytest.mark.parametrize(
        "table_id",
        ["accounts", "dbo.accounts.extra", "dbo.", ".accounts", "dbo.acc ounts", "dbo.x;DROP", 'dbo."x"', "dbo.x-y"],
    )
    def test_invalid(self, table_id):
        with pytest.raises(InvalidTableIdError, match="schema.table"):
            parse_table_id(table_id)


class TestRowQuery:
    def test_defaults(self):
        options = RowQuery()
        assert (options.page, options.page_size, options.order) == (1, 25, "asc")
        assert options.offset == 0

    def test_clamping(self):
        options = RowQuery(page=0, page_size=500, order="DESC", search="  smith ")
        assert options.page == 1
        assert options.page_size == 100
        assert options.order == "desc"
        assert options.search == "smith"

    def test_offset(self):
        assert RowQuery(page=3, page_size=10).offset == 20

    def test_unknown_order_is_ascending(self):
        assert RowQuery(order="sideways").order == "asc"


class TestTableQuery:
    def test_requires_columns(self):
        with pytest.raises(ValueError):
            TableQuery(schema="dbo", table="t", columns=[])

    def test_identifiers_are_quoted(self):
        query = TableQuery(schema="dbo", table="accounts", columns=COLUMNS)
        sql = _sql(query.page_statement())
        assert '"dbo"."accounts"' in sql
        assert '"Account Name"' in sql

    def test_mssql_brackets_and_paging(self):
        query = TableQuery(schema="dbo", table="accounts", columns=COLUMNS, options=RowQuery(page=2, page_size=10))
        sql = _sql(query.page_statement(), mssql.dialect())
        assert "[dbo].[accounts]" in sql
        assert "[Account Name]" in sql
        assert "ORDER BY" in sql

    def test_embedded_quotes_are_doubled(self):
        cols = [ColumnInfo(name='we"ird', data_type="varchar")]
        sql = _sql(TableQuery(schema="dbo", table="t", columns=cols).page_statement())
        assert '"we""ird"' in sql

        cols = [ColumnInfo(name="we]ird", data_type="varchar")]
        sql = _sql(TableQuery(schema="dbo", table="t", columns=cols).page_statement(), mssql.dialect())
        assert "[we]]ird]" in sql

    def test_search_value_is_bound(self):
        term = "x' OR 1=1 --"
        query = TableQuery(schema="dbo", table="accounts", columns=COLUMNS, options=RowQuery(search=term))
        compiled = query.page_statement().compile(dialect=sqlite.dialect())
        assert term not in str(compiled)
        assert any(term in str(value) for value in compiled.params.values())

    def test_search_only_text_columns(self):
        query = TableQuery(schema="dbo", table="accounts", columns=COLUMNS, options=RowQuery(search="smith"))
        assert [c.name for c in query.search_columns] == ["Account Name", "notes"]
        where = _sql(query.predicate())
        assert '"Account Name"' in where
        assert '"notes"' in where
        assert '"balance"' not in where
        assert " OR " in where

    def test_count_and_page_share_filter(self):
        query = TableQuery(schema="dbo", table="accounts", columns=COLUMNS, options=RowQuery(search="smith"))
        where = _sql(query.predicate())
        assert where in _sql(query.count_statement())
        assert where in _sql(query.page_statement())

    def test_no_filter_without_search(self):
        query = TableQuery(schema="dbo", table="accounts", columns=COLUMNS)
        assert query.predicate() is None
        assert "WHERE" not in _sql(query.count_statement())

    def test_no_filter_without_text_columns(self):
        cols = [ColumnInfo(name="id", data_type="int")]
        query = TableQuery(schema="dbo", table="t", columns=cols, options=RowQuery(search="smith"))
        assert query.predicate() is None

    def test_case_insensitive_collation_skips_lower(self):
        options = RowQuery(search="smith")
        query = TableQuery(schema="dbo", table="t", columns=COLUMNS, options=options, collation_case_insensitive=True)
        assert "lower" not in _sql(query.predicate(), mssql.dialect()).lower()

    def test_sort_by_known_column(self):
        query = TableQuery(
            schema="dbo", table="t", columns=COLUMNS, options=RowQuery(sort="balance", order="desc")
        )
        assert query.sort_column == "balance"
        assert query.descending is True
        assert '"balance" DESC' in _sql(query.page_statement())

    def test_unknown_sort_falls_back_to_first_column(self):
        query = TableQuery(
            schema="dbo", table="t", columns=COLUMNS, options=RowQuery(sort="id; DROP TABLE t", order="desc")
        )
        assert query.sort_column == "id"
        assert query.descending is False
        assert "DROP" not in _sql(query.page_statement())


def test_normalize_column_name():
    assert normalize_column_name("Account Type") == "accounttype"
    assert normalize_column_name("account_typeDesc") == "accounttypedesc"
