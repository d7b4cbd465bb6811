"""
Segment extraction from sources that are not row/column statement tables:
narrative press releases and the segment note of PDF filings.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Sequence

from bs4 import BeautifulSoup, Tag

from qfilings.extraction.core import TableExtraction, has_value, set_value
from qfilings.mappings import PdfSegmentSpec, RowRule
from qfilings.numeric import (
    dollar_match_to_millions,
    parse_dollar_amount,
    parse_numbers_from_line,
    to_json_number,
)

_WS_RE = re.compile(r"\s+")
_TAG_RE = re.compile(r"<[^>]+>")
_ENTITY_RE = re.compile(r"&#?\w+;")
_BOLD_HEADING_RE = re.compile(r"font-weight:\s*(?:700|bold)[^>]*>([^<]+)", re.IGNORECASE)
_REVENUE_WAS_RE = re.compile(
    r"revenue\s+was\s+(?:a\s+record\s+)?\$([\d,.]+)\s*(billion|million)", re.IGNORECASE
)
_ANY_DOLLAR_RE = re.compile(r"\$([\d,.]+)\s*(billion|million)", re.IGNORECASE)
_NEXT_PERIOD_RE = re.compile(r"^(?:Three Months|Six Months|Nine Months|Twelve Months|Year Ended)")

THREE_MONTHS = "Three Months Ended"
YEAR_ENDED = "Year Ended"


def _match_rule(text: str, rules: Sequence[RowRule]) -> Optional[str]:
    for r in rules:
        if r.matches(text):
            return r.key
    return None


# ----------------------------
# Narrative press releases
# ----------------------------

def extract_narrative_gnw(html: str, rules: Sequence[RowRule], *, max_siblings: int = 5) -> Dict[str, Any]:
    """
    GlobeNewswire layout: <p><strong>Data Center</strong></p> followed by a
    <ul> whose first bullet carries the segment revenue ("... $30.8 billion ...").
    """
    soup = BeautifulSoup(html or "", "lxml")
    out: Dict[str, Any] = {}
    for strong in soup.find_all("strong"):
        heading = _WS_RE.sub(" ", strong.get_text(" ", strip=True).replace(" ", " ")).strip()
        key = _match_rule(heading, rules)
        if key is None or key in out:
            continue
        para = strong.find_parent("p")
        if para is None:
            continue

        ul: Optional[Tag] = None
        sib = para.find_next_sibling()
        for _ in range(max_siblings):
            if sib is None:
                break
            if sib.name == "ul":
                ul = sib
                break
            # another heading paragraph ends the search
            if sib.name == "p" and sib.find("strong") is not None:
                break
            sib = sib.find_next_sibling()
        if ul is None:
            continue

        li = ul.find("li")
        if li is None:
            continue
        amount = parse_dollar_amount(li.get_text(" ", strip=True))
        if amount is None:
            print(f"WARNING: no amount in first bullet for {key}", flush=True)
            continue
        out[key] = to_json_number(amount)
    return out


def extract_narrative_edgar(html: str, rules: Sequence[RowRule], *, window: int = 3000) -> Dict[str, Any]:
    """
    EDGAR layout: a bold segment heading followed by narrative text. The
    amount comes from "revenue was (a record) $X billion" within `window`
    characters of the heading, falling back to the first dollar amount.
    """
    out: Dict[str, Any] = {}
    for m in _BOLD_HEADING_RE.finditer(html or ""):
        heading = m.group(1).strip()
        key = _match_rule(heading, rules)
        if key is None or key in out:
            continue
        chunk = html[m.start():m.start() + window]
        plain = _ENTITY_RE.sub(" ", _TAG_RE.sub(" ", chunk))
        rm = _REVENUE_WAS_RE.search(plain)
        if rm is None:
            rm = _ANY_DOLLAR_RE.search(plain)
            if rm is None:
                print(f"WARNING: no revenue amount found after heading {heading!r}", flush=True)
                continue
            print(f"WARNING: {key} read from the first dollar amount after its heading", flush=True)
        amount = dollar_match_to_millions(rm.group(1), rm.group(2))
        if amount is not None:
            out[key] = to_json_number(amount)
    return out


def extract_narrative_segments(html: str, rules: Sequence[RowRule]) -> Optional[TableExtraction]:
    """GlobeNewswire layout first, EDGAR layout as the fallback."""
    values = extract_narrative_gnw(html, rules) or extract_narrative_edgar(html, rules)
    if not values:
        return None
    return TableExtraction(values=values)


# ----------------------------
# PDF segment notes
# ----------------------------

def segment_note_text(text: str, note_re: re.Pattern) -> Optional[str]:
    """Text from the "Note N - Segment Information" heading onward."""
    m = note_re.search(text or "")
    if m is None:
        return None
    return text[m.start():]


def detect_column_order(note_text: str, spec: PdfSegmentSpec, *, lookback: int = 5) -> List[str]:
    """
    Segment keys in the order their column headings appear on the header
    line above "(In millions)". Falls back to the order given in spec.
    """
    lines = note_text.split("\n")
    default = [key for key, _ in spec.columns]
    for i, line in enumerate(lines):
        if "(In millions)" not in line:
            continue
        for j in range(max(0, i - lookback), i + 1):
            positions = [(lines[j].find(heading), key) for key, heading in spec.columns]
            if all(pos >= 0 for pos, _ in positions):
                return [key for _, key in sorted(positions)]
        break
    return default


def _period_block(lines: List[str], period: str) -> Optional[int]:
    for i, line in enumerate(lines):
        if period in line:
            return i
    return None


def extract_pdf_segment_columns(
    text: str,
    spec: PdfSegmentSpec,
    *,
    period: str = THREE_MONTHS,
    max_lines: int = 15,
) -> Optional[TableExtraction]:
    """
    Segment note laid out with segments as columns (NVIDIA):

                 Compute &
                 Networking   Graphics   All Other   Consolidated
      (In millions)
      Three Months Ended Apr 28, 2024
      Revenue    $ 22,675    $ 3,369    $ —         $ 26,044
      Operating income (loss) $ 17,047 $ 1,241 $ (1,379) $ 16,909
    """
    note = segment_note_text(text, spec.note_re)
    if note is None:
        return None
    order = detect_column_order(note, spec)
    lines = note.split("\n")
    start = _period_block(lines, period)
    if start is None:
        return None

    revenue_line: Optional[str] = None
    income_line: Optional[str] = None
    for i in range(start + 1, min(start + max_lines, len(lines))):
        trimmed = lines[i].strip()
        if i > start + 2 and _NEXT_PERIOD_RE.match(trimmed):
            break
        if revenue_line is None and trimmed.startswith("Revenue"):
            revenue_line = lines[i]
        elif income_line is None and trimmed.startswith("Operating income"):
            income_line = lines[i]
    if revenue_line is None or income_line is None:
        return None

    rev = parse_numbers_from_line(revenue_line)
    oi = parse_numbers_from_line(income_line)
    if len(rev) < len(order) or len(oi) < len(order):
        return None

    out: Dict[str, Any] = {}
    for col, key in enumerate(order):
        if rev[col] is not None:
            set_value(out, f"{key}.revenue", to_json_number(rev[col]))
        if oi[col] is not None:
            set_value(out, f"{key}.operatingIncome", to_json_number(oi[col]))
    return TableExtraction(values=out, period_kind="year" if period == YEAR_ENDED else "quarter")


_GENERIC_NOTE_RE = re.compile(r"^\s*Note\s+\d+[\s\-–—]+Segment\s+Information", re.IGNORECASE | re.MULTILINE)
_SEGMENT_HEADING_RE = re.compile(r"SEGMENT INFORMATION", re.IGNORECASE)


def extract_pdf_segment_blocks(
    text: str,
    rules: Sequence[RowRule],
    *,
    period: str = THREE_MONTHS,
    max_lines: int = 50,
) -> Optional[TableExtraction]:
    """
    Segment note laid out as one block per segment (Microsoft):

      Three Months Ended September 30,     2024      2023
      Productivity and Business Processes
        Revenue                          $ 28,317  $ 25,994
        Operating income                 $ 14,522  $ 13,134
      Intelligent Cloud
        ...

    Every segment in rules must yield a revenue for the result to count.
    """
    m = _GENERIC_NOTE_RE.search(text or "") or _SEGMENT_HEADING_RE.search(text or "")
    if m is None:
        return None
    lines = text[m.start():].split("\n")
    start = _period_block(lines, period)
    if start is None:
        return None

    out: Dict[str, Any] = {}
    current: Optional[str] = None
    for i in range(start + 1, min(start + max_lines, len(lines))):
        trimmed = lines[i].strip()
        if i > start + 3 and _NEXT_PERIOD_RE.match(trimmed):
            break
        key = _match_rule(trimmed, rules)
        if key is not None:
            current = key
        if current is None:
            continue
        if trimmed.startswith("Revenue") and not has_value(out, f"{current}.revenue"):
            nums = [n for n in parse_numbers_from_line(trimmed) if n is not None]
            if nums:
                set_value(out, f"{current}.revenue", to_json_number(nums[0]))
        elif trimmed.startswith("Operating income") and not has_value(out, f"{current}.operatingIncome"):
            nums = [n for n in parse_numbers_from_line(trimmed) if n is not None]
            if nums:
                set_value(out, f"{current}.operatingIncome", to_json_number(nums[0]))

    if not all(has_value(out, f"{r.key}.revenue") for r in rules):
        return None
    return TableExtraction(values=out, period_kind="year" if period == YEAR_ENDED else "quarter")
