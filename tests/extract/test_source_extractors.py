"""
Unit tests for legacy_kms.extract.source

Covers parse_code() (VB modules) and parse_sql() (SQL scripts).
"""

from __future__ import annotations

from legacy_kms.extract.source import parse_code, parse_sql


VB_MODULE = """\
Option Explicit

Public Sub LoadPrices()
    Dim sql As String
    sql = "SELECT * FROM prices WHERE active = 1"
End Sub

Private Function GetStock(plu As String) As Long
    rs.Open "UPDATE stock SET qty = 0 WHERE plu = '" & plu & "'"
End Function

Sub Cleanup()
End Sub
"""


# ---------------------------------------------------------------------------
# parse_code()
# ---------------------------------------------------------------------------

class TestParseCode:

    def test_functions_with_line_numbers(self):
        result = parse_code(VB_MODULE)
        assert [(f.name, f.type, f.line) for f in result.functions] == [
            ("LoadPrices", "Sub", 3),
            ("GetStock", "Function", 8),
            ("Cleanup", "Sub", 12),
        ]

    def test_function_count_matches_declarations(self):
        content = "\n".join(f"Public Sub S{i}()\nEnd Sub" for i in range(7))
        result = parse_code(content)
        assert len(result.functions) == 7
        assert [f.line for f in result.functions] == [1, 3, 5, 7, 9, 11, 13]

    def test_kind_is_capitalised(self):
        result = parse_code("PRIVATE FUNCTION shout()")
        assert result.functions[0].type == "Function"

    def test_embedded_queries(self):
        result = parse_code(VB_MODULE)
        assert [(q.type, q.line) for q in result.queries] == [
            ("SELECT", 5),
            ("UPDATE", 9),
        ]
        assert result.queries[0].query == "SELECT * FROM prices WHERE active = 1"

    def test_query_cut_at_closing_quote(self):
        result = parse_code(VB_MODULE)
        assert result.queries[1].query == "UPDATE stock SET qty = 0 WHERE plu = '"

    def test_unterminated_literal_keeps_whole_line(self):
        line = '    sql = "DELETE FROM audit'
        result = parse_code(line)
        assert result.queries[0].query == line.strip()
        assert result.queries[0].type == "DELETE"
        assert len(result.notices) == 1
        assert result.notices[0].field == "queries[0]"

    def test_lowercase_keyword_is_uppercased(self):
        result = parse_code('x = "exec   sp_refresh_prices @store = 1"')
        assert result.queries[0].type == "EXEC"

    def test_summary(self):
        result = parse_code(VB_MODULE)
        assert result.summary == "Module contains 3 functions/subs and 2 SQL operations."

    def test_empty_content(self):
        result = parse_code("")
        assert result.functions == []
        assert result.queries == []
        assert result.summary == "Module contains 0 functions/subs and 0 SQL operations."

    def test_to_record(self):
        result = parse_code(VB_MODULE)
        record = result.to_record("prices.bas", VB_MODULE)
        assert record["filename"] == "prices.bas"
        assert record["content"] == VB_MODULE
        assert record["functions"][0] == {"name": "LoadPrices", "type": "Sub", "line": 3}
        assert record["summary"] == result.summary


# ---------------------------------------------------------------------------
# parse_sql()
# ---------------------------------------------------------------------------

class TestParseSql:

    def test_terminated_statements_in_order(self):
        content = (
            "SELECT * FROM a;\n"
            "\n"
            "UPDATE b\n"
            "   SET x = 1\n"
            " WHERE id = 2;\n"
            "DELETE FROM c;\n"
        )
        result = parse_sql(content)
        assert [(q.type, q.line) for q in result.queries] == [
            ("SELECT", 1),
            ("UPDATE", 3),
            ("DELETE", 6),
        ]
        assert result.queries[1].query == "UPDATE b\n   SET x = 1\n WHERE id = 2;"
        assert result.summary == "SQL file contains 3 queries."

    def test_unterminated_trailing_statement_is_dropped(self):
        result = parse_sql("SELECT 1;\nSELECT 2\nFROM dual\n")
        assert len(result.queries) == 1
        assert result.queries[0].query == "SELECT 1;"
        assert len(result.notices) == 1
        assert result.notices[0].fallback == "dropped"

    def test_new_statement_flushes_open_one(self):
        result = parse_sql("SELECT 1\nINSERT INTO t VALUES (1);\n")
        assert [q.type for q in result.queries] == ["SELECT", "INSERT"]
        assert result.queries[0].query == "SELECT 1"

    def test_ddl_statements(self):
        result = parse_sql("create table t (id int);\nalter table t add x int;\ndrop table t;")
        assert [q.type for q in result.queries] == ["CREATE", "ALTER", "DROP"]

    def test_semicolon_without_open_statement_is_ignored(self):
        result = parse_sql("-- header;\nSELECT 1;\n")
        assert len(result.queries) == 1

    def test_lines_before_first_statement_are_ignored(self):
        result = parse_sql("-- comment\nSET NOCOUNT ON\nSELECT 1;")
        assert [q.query for q in result.queries] == ["SELECT 1;"]

    def test_empty_file(self):
        result = parse_sql("")
        assert result.queries == []
        assert result.notices == []
        assert result.summary == "SQL file contains 0 queries."

    def test_library_record(self):
        query = parse_sql("SELECT 1;").queries[0]
        record = query.to_library_record("q.sql", "Line 1 from q.sql")
        assert record == {
            "query_text": "SELECT 1;",
            "category": "select",
            "source_file": "q.sql",
            "example_usage": "Line 1 from q.sql",
        }
