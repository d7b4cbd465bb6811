"""Financial number parsing."""
import pytest

from qfilings.numeric import (
    is_numeric_token,
    parse_dollar_amount,
    parse_number,
    parse_numbers_from_line,
    to_json_number,
)


class TestParseNumber:
    """Accounting notation, currency symbols and placeholders."""

    def test_parenthesized_is_negative(self):
        assert parse_number("(1,234)") == -1234

    def test_dollar_and_commas(self):
        assert parse_number("$57,006") == 57006

    @pytest.mark.parametrize("text", ["—", "-", "–", "&mdash;", "", None, "n/a"])
    def test_placeholders_are_none(self, text):
        assert parse_number(text) is None

    def test_decimal_eps(self):
        assert parse_number("$ 1.89") == pytest.approx(1.89)

    def test_split_paren_cell(self):
        """Negative values split over cells leave a dangling paren."""
        assert parse_number("(512") == -512


class TestNumericHelpers:
    def test_numeric_token(self):
        assert is_numeric_token("23,466")
        assert is_numeric_token("(1,234)")
        assert not is_numeric_token("$")
        assert not is_numeric_token("Total assets")

    def test_to_json_number_drops_float_suffix(self):
        assert to_json_number(23466.0) == 23466
        assert isinstance(to_json_number(23466.0), int)
        assert to_json_number(1.89) == pytest.approx(1.89)
        assert to_json_number(None) is None

    def test_dollar_amounts_in_millions(self):
        assert parse_dollar_amount("revenue was a record $51.2 billion, up 10%") == 51200
        assert parse_dollar_amount("Gaming revenue was $983 million") == 983
        assert parse_dollar_amount("up 12 percent") is None

    def test_numbers_from_pdf_line(self):
        """Dashes keep their column position."""
        assert parse_numbers_from_line("Revenue $ 1,234 — (56)") == [1234, None, -56]
