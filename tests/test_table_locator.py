"""Locating statement tables in raw filing HTML."""
import re

from qfilings.table_locator import (
    best_scoring_table,
    find_table_containing,
    find_table_html,
    find_table_with_rows,
    iter_tables,
    table_row_labels,
)

NESTED = """
<html><body>
<p>Table of contents</p>
<table><tr><td>Layout
  <table><tr><td>CONSOLIDATED BALANCE SHEETS</td></tr>
    <tr><td>Cash and cash equivalents</td><td>
      <table><tr><td>$</td><td>23,466</td></tr></table>
    </td></tr>
  </table>
</td></tr></table>
<table><tr><td>Other</td></tr></table>
</body></html>
"""


def _balanced(s: str) -> bool:
    return s.lower().count("<table") == s.lower().count("</table")


class TestFindTableHtml:
    def test_nested_tables_balanced(self):
        table = find_table_html(NESTED, "Consolidated Balance Sheets")
        assert table is not None
        assert _balanced(table)
        assert "23,466" in table
        assert "Other" not in table

    def test_title_above_table(self):
        html = "<p>CONSOLIDATED STATEMENTS OF INCOME</p><table><tr><td>Revenues</td><td>1</td></tr></table>"
        table = find_table_html(html, "CONSOLIDATED STATEMENTS OF INCOME")
        assert table.startswith("<table")
        assert "Revenues" in table

    def test_accept_skips_table_of_contents(self):
        html = (
            "<table><tr><td>Consolidated Balance Sheets</td><td>3</td></tr></table>"
            "<p>Consolidated Balance Sheets</p>"
            "<table><tr><td>Total assets</td><td>407,384</td></tr></table>"
        )
        table = find_table_html(html, "Consolidated Balance Sheets", accept=lambda t: "Total assets" in t)
        assert "407,384" in table

    def test_offsets_survive_case_folding(self):
        """'ß' upper-cases to 'SS'; the title must still resolve to the table right after it."""
        html = (
            "<p>" + "Straße " * 80 + "</p>"
            "<p>BALANCE SHEETS</p>"
            "<table><tr><td>Total assets</td><td>407,384</td></tr></table>"
            "<table><tr><td>Footnotes</td></tr></table>"
        )
        table = find_table_html(html, "Balance Sheets")
        assert "407,384" in table
        assert "Footnotes" not in table

    def test_missing_title(self):
        assert find_table_html(NESTED, "CASH FLOWS") is None
        assert find_table_html("", "X") is None


class TestTableSearch:
    def test_iter_top_level_tables(self):
        tables = list(iter_tables(NESTED))
        assert len(tables) == 2
        assert all(_balanced(t) for t in tables)

    def test_row_labels_and_containing(self):
        html = "<table><tr><td></td><td>Revenues</td></tr><tr><td>Costs and expenses:</td></tr></table>"
        assert table_row_labels(html) == ["Revenues", "Costs and expenses:"]
        assert find_table_containing(html, ["Revenues", "Costs"]) is not None
        assert find_table_containing(html, ["Net income"]) is None

    def test_row_sequence(self):
        html = (
            "<table><tr><td>Costs and expenses</td></tr><tr><td>Revenues</td></tr></table>"
            "<table><tr><td>Revenues</td></tr><tr><td>Costs and expenses</td></tr></table>"
        )
        table = find_table_with_rows(html, re.compile("^Revenues"), [re.compile("^Costs")])
        assert table == list(iter_tables(html))[1]

    def test_best_scoring(self):
        html = "<table><tr><td>a</td></tr></table><table><tr><td>a b</td></tr></table>"
        assert "a b" in best_scoring_table(html, lambda t: len(t.split()), min_score=2)
        assert best_scoring_table(html, lambda t: 0) is None
