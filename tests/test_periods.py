"""Fiscal calendars and column header parsing."""
import pytest

from qfilings.companies import get_company
from qfilings.periods import (
    FiscalCalendar,
    current_column_index,
    fy_key,
    parse_as_of_columns,
    parse_fy_key,
    parse_period_header,
    parse_q_key,
    q_key,
)
from qfilings.rows import ExtractedRow


def _row(*cells: str) -> ExtractedRow:
    return ExtractedRow(label="", values=[], kind="section", cells=list(cells))


class TestFiscalCalendar:
    @pytest.mark.parametrize(
        "company, date, expected",
        [
            ("alphabet", (2024, 6, 30), (2024, 2)),
            ("alphabet", (2024, 12, 31), (2024, 4)),
            ("apple", (2024, 12, 28), (2025, 1)),
            ("apple", (2024, 9, 28), (2024, 4)),
            ("microsoft", (2024, 9, 30), (2025, 1)),
            ("microsoft", (2024, 6, 30), (2024, 4)),
            ("nvidia", (2024, 4, 28), (2025, 1)),
            ("nvidia", (2024, 1, 28), (2024, 4)),
            ("broadcom", (2025, 2, 2), (2025, 1)),
            ("broadcom", (2024, 11, 3), (2024, 4)),
        ],
    )
    def test_period_for(self, company, date, expected):
        assert get_company(company).calendar.period_for(*date) == expected

    def test_keys(self):
        assert fy_key(2024) == "FY2024" and q_key(2) == "Q2"
        assert parse_fy_key("FY2024") == 2024 and parse_q_key("Q3") == 3

    def test_default_is_calendar_year(self):
        assert FiscalCalendar().period_for(2023, 3, 31) == (2023, 1)


class TestAsOfColumns:
    """Balance sheet headers."""

    def test_dates_with_years(self):
        cols = parse_as_of_columns([_row("As of December 31, 2023", "As of June 30, 2024")])
        assert [(c.year, c.month) for c in cols] == [(2023, 12), (2024, 6)]
        assert current_column_index(cols) == 1

    def test_years_on_own_row(self):
        cols = parse_as_of_columns([_row("As of December 31,", "As of June 30,"), _row("2023", "2024")])
        assert [(c.year, c.month, c.day) for c in cols] == [(2023, 12, 31), (2024, 6, 30)]

    def test_one_month_two_years(self):
        cols = parse_as_of_columns([_row("December 31,"), _row("2024", "2023")])
        assert [c.year for c in cols] == [2023, 2024]

    def test_stops_at_assets_row(self):
        rows = [
            _row("As of September 30, 2024"),
            ExtractedRow(label="Assets", kind="section", cells=["Assets"]),
            _row("Note: March 31, 2020"),
        ]
        cols = parse_as_of_columns(rows)
        assert len(cols) == 1

    def test_no_header(self):
        assert parse_as_of_columns([_row("Revenues")]) == []
        assert current_column_index([]) is None


class TestPeriodHeader:
    def test_quarter_prior_then_current(self):
        header = parse_period_header([
            _row("Three Months Ended June 30,", "Six Months Ended June 30,"),
            _row("2023", "2024", "2023", "2024"),
        ])
        assert header.kind == "quarter"
        assert header.month == 6
        assert header.current_index == 1

    def test_year_current_first(self):
        header = parse_period_header([_row("Year Ended December 31,"), _row("2024", "2023")])
        assert header.kind == "year"
        assert header.current_index == 0

    def test_year_to_date(self):
        header = parse_period_header([_row("Nine Months Ended"), _row("September 30, 2023", "September 30, 2024")])
        assert header.kind == "ytd"
        assert header.current_index == 1

    def test_quarter_labels(self):
        header = parse_period_header([
            _row("Q2-2023", "Q3-2023", "Q4-2023", "Q1-2024", "Q2-2024", "YoY"),
            _row("Total revenues", "24,927", "23,350", "25,167", "21,301", "25,500", "2%"),
        ])
        assert header.kind == "quarter"
        assert header.quarters == [(2023, 2), (2023, 3), (2023, 4), (2024, 1), (2024, 2)]
        assert header.columns == 5
        assert header.current_index == 4
        assert header.index_for((2024, 1)) == 3
        assert header.index_for((2022, 4)) == 4

    def test_columns_counts_years(self):
        header = parse_period_header([_row("Year Ended December 31,"), _row("2024", "2023")])
        assert header.quarters == []
        assert header.columns == 2
