"""Segment revenue from narrative press releases and PDF segment notes."""
from qfilings.extraction.core import extract_line_rules
from qfilings.extraction.segments import (
    YEAR_ENDED,
    detect_column_order,
    extract_narrative_edgar,
    extract_narrative_gnw,
    extract_narrative_segments,
    extract_pdf_segment_blocks,
    extract_pdf_segment_columns,
    segment_note_text,
)
from qfilings.mappings import (
    MICROSOFT_INVESTMENT_LINES,
    MICROSOFT_SEGMENT_ROWS,
    NVIDIA_PDF_SEGMENTS,
    SEGMENT_RULES,
    get_rules,
)

NVIDIA_RULES = get_rules(SEGMENT_RULES, "nvidia")


GNW_RELEASE = """
<html><body>
<p>NVIDIA today reported revenue for the third quarter ended October 27, 2024, of $35.1 billion.</p>
<p><strong>Data Center</strong></p>
<ul>
  <li>Third-quarter revenue was a record $30.8 billion, up 17% from the previous quarter.</li>
  <li>Announced that the Blackwell platform is in full production.</li>
</ul>
<p><strong>Gaming and AI PC</strong></p>
<ul><li>Third-quarter Gaming revenue was $3.3 billion, up 14% from the previous quarter.</li></ul>
<p><strong>Professional Visualization</strong></p>
<p>Highlights for the quarter:</p>
<ul><li>Third-quarter revenue was $486 million, up 7% from the previous quarter.</li></ul>
<p><strong>Automotive and Robotics</strong></p>
<p><strong>Outlook</strong></p>
<ul><li>Revenue is expected to be $37.5 billion.</li></ul>
</body></html>
"""

EDGAR_RELEASE = """
<html><body>
<p><span style="font-weight:700">Data Center</span></p>
<p>Third-quarter revenue was a record $14.51 billion, up 41% from the previous quarter.</p>
<p><span style="font-weight:bold">Gaming</span></p>
<p>Gaming revenue of $2.86 billion rose 15% from the previous quarter.</p>
</body></html>
"""


class TestNarrativeSegments:
    def test_gnw_first_bullet(self):
        out = extract_narrative_gnw(GNW_RELEASE, NVIDIA_RULES)
        assert out["dataCenter"] == 30800
        assert out["gaming"] == 3300
        assert out["professionalVisualization"] == 486

    def test_gnw_heading_without_bullets_is_skipped(self):
        # the next heading paragraph ends the search for a bullet list
        out = extract_narrative_gnw(GNW_RELEASE, NVIDIA_RULES)
        assert "automotive" not in out

    def test_edgar_revenue_was(self, capsys):
        out = extract_narrative_edgar(EDGAR_RELEASE, NVIDIA_RULES)
        assert out["dataCenter"] == 14510
        assert out["gaming"] == 2860
        assert "gaming read from the first dollar amount" in capsys.readouterr().out

    def test_layout_fallback(self):
        result = extract_narrative_segments(EDGAR_RELEASE, NVIDIA_RULES)
        assert result is not None
        assert result.values["dataCenter"] == 14510
        assert result.period_kind == "quarter"

    def test_nothing_found(self):
        assert extract_narrative_segments("<p>No segments here.</p>", NVIDIA_RULES) is None


NVIDIA_NOTE = """Notes to Condensed Consolidated Financial Statements
Note 16 - Segment Information
Our Chief Executive Officer reviews financial information presented on an operating segment basis.
{header}
(In millions)
Three Months Ended Apr 28, 2024
Revenue $ 22,675 $ 3,369 $ — $ 26,044
Operating income (loss) $ 17,047 $ 1,241 $ (1,379) $ 16,909
Three Months Ended Apr 30, 2023
Revenue $ 4,460 $ 2,732 $ — $ 7,192
Operating income (loss) $ 2,166 $ 784 $ (810) $ 2,140
"""

NVIDIA_ANNUAL_NOTE = """Note 17 - Segment Information
Compute & Networking Graphics All Other Consolidated
(In millions)
Year Ended Jan 28, 2024
Revenue $ 47,405 $ 13,517 $ — $ 60,922
Operating income (loss) $ 32,016 $ 5,846 $ (4,890) $ 32,972
"""


class TestPdfSegmentColumns:
    def test_default_order(self):
        text = NVIDIA_NOTE.format(header="Compute &\nNetworking Graphics All Other Consolidated")
        result = extract_pdf_segment_columns(text, NVIDIA_PDF_SEGMENTS)
        assert result is not None
        assert result.values == {
            "computeAndNetworking": {"revenue": 22675, "operatingIncome": 17047},
            "graphics": {"revenue": 3369, "operatingIncome": 1241},
        }
        assert result.period_kind == "quarter"

    def test_swapped_header_order(self):
        text = NVIDIA_NOTE.format(header="Graphics Compute & Networking All Other Consolidated")
        note = segment_note_text(text, NVIDIA_PDF_SEGMENTS.note_re)
        assert detect_column_order(note, NVIDIA_PDF_SEGMENTS) == ["graphics", "computeAndNetworking"]
        result = extract_pdf_segment_columns(text, NVIDIA_PDF_SEGMENTS)
        assert result.values["graphics"]["revenue"] == 22675
        assert result.values["computeAndNetworking"]["operatingIncome"] == 1241

    def test_year_ended_block(self):
        result = extract_pdf_segment_columns(NVIDIA_ANNUAL_NOTE, NVIDIA_PDF_SEGMENTS, period=YEAR_ENDED)
        assert result is not None
        assert result.period_kind == "year"
        assert result.values["computeAndNetworking"]["revenue"] == 47405

    def test_no_note(self):
        assert extract_pdf_segment_columns("Revenue $ 1 $ 2", NVIDIA_PDF_SEGMENTS) is None


MICROSOFT_NOTE = """NOTE 19 — SEGMENT INFORMATION AND GEOGRAPHIC DATA
Segment revenue and operating income were as follows during the periods presented:
(In millions)
Three Months Ended September 30, 2024 2023
Productivity and Business Processes
Revenue $ 28,317 $ 25,994
Operating income $ 14,522 $ 13,134
Intelligent Cloud
Revenue $ 24,092 $ 20,013
Operating income $ 10,532 $ 8,922
More Personal Computing
Revenue $ 13,176 $ 10,510
Operating income $ 5,531 $ 3,472
Total $ 65,585 $ 56,517
"""


class TestPdfSegmentBlocks:
    def test_blocks(self):
        result = extract_pdf_segment_blocks(MICROSOFT_NOTE, MICROSOFT_SEGMENT_ROWS)
        assert result is not None
        assert result.values == {
            "productivityAndBusiness": {"revenue": 28317, "operatingIncome": 14522},
            "intelligentCloud": {"revenue": 24092, "operatingIncome": 10532},
            "morePersonalComputing": {"revenue": 13176, "operatingIncome": 5531},
        }

    def test_every_segment_needs_revenue(self):
        text = MICROSOFT_NOTE.replace("Revenue $ 13,176 $ 10,510\n", "")
        assert extract_pdf_segment_blocks(text, MICROSOFT_SEGMENT_ROWS) is None


class TestLineRules:
    def test_wrapped_label(self):
        text = "Equity investments measured at fair value\nTotal equity\ninvestments 9,624 8,234\n"
        result = extract_line_rules(text, MICROSOFT_INVESTMENT_LINES)
        assert result is not None
        assert result.values == {"equityInvestments": 9624}

    def test_balance_sheet_line(self):
        result = extract_line_rules("Goodwill 119,220\nEquity investments 14,600 9,879\n", MICROSOFT_INVESTMENT_LINES)
        assert result.values == {"equityInvestments": 14600}

    def test_excluded_line(self):
        assert extract_line_rules("Equity investments (see Note 4) 9,000\n", MICROSOFT_INVESTMENT_LINES) is None
