"""Fiscal calendars and statement column headers."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from qfilings.rows import ExtractedRow

MONTHS = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
}

_MONTH_NAMES = "|".join(MONTHS)
_DATE_RE = re.compile(rf"\b({_MONTH_NAMES})\s+(\d{{1,2}}),?\s*((?:19|20)\d{{2}})?", re.IGNORECASE)
_YEAR_CELL_RE = re.compile(r"^((?:19|20)\d{2})$")
_QUARTER_LABEL_RE = re.compile(r"\bQ([1-4])-((?:19|20)\d{2})\b")
_QUARTER_HEADER_RE = re.compile(r"\b(quarter|three\s+months)\s+ended\b", re.IGNORECASE)
_YEAR_HEADER_RE = re.compile(r"\b(year|twelve\s+months|fiscal\s+year)\s+ended\b", re.IGNORECASE)
_YTD_HEADER_RE = re.compile(r"\b(six|nine)\s+months\s+ended\b|\byear\s+to\s+date\b", re.IGNORECASE)
_ASSETS_RE = re.compile(r"^assets:?$", re.IGNORECASE)


def fy_key(fy: int) -> str:
    return f"FY{fy}"


def q_key(q: int) -> str:
    return f"Q{q}"


def parse_fy_key(key: str) -> int:
    return int(str(key).upper().replace("FY", ""))


def parse_q_key(key: str) -> int:
    return int(str(key).upper().replace("Q", ""))


@dataclass(frozen=True)
class FiscalCalendar:
    """
    Map a statement date to (fiscal year, fiscal quarter).

    fy_end_month is the month the fiscal year closes in (12 for calendar
    years, 9 for Apple, 6 for Microsoft, 1 for NVIDIA, 10 for Broadcom).
    52/53-week years close on a weekday near the month end, so a date in the
    first week of a month belongs to the previous month's quarter.
    """
    fy_end_month: int = 12

    def period_for(self, year: int, month: int, day: int = 28) -> Tuple[int, int]:
        if day <= 7:
            month -= 1
            if month == 0:
                month, year = 12, year - 1
        offset = (month - (self.fy_end_month % 12 + 1)) % 12
        q = offset // 3 + 1
        fy = year if (self.fy_end_month == 12 or month <= self.fy_end_month) else year + 1
        return fy, q


@dataclass(frozen=True)
class ColumnDate:
    month: int
    day: int
    year: int

    def sort_key(self) -> Tuple[int, int, int]:
        return (self.year, self.month, self.day)


def _header_cells(rows: Sequence[ExtractedRow], *, stop: Optional[re.Pattern], max_rows: int) -> List[List[str]]:
    out: List[List[str]] = []
    for row in rows[:max_rows]:
        if stop is not None and row.label and stop.search(row.label):
            break
        out.append(list(row.cells))
    return out


def parse_as_of_columns(
    rows: Sequence[ExtractedRow],
    *,
    max_rows: int = 12,
) -> List[ColumnDate]:
    """
    Balance sheet column dates, left to right.

    Two header shapes are accepted:
      "As of December 31, 2023" | "As of June 30, 2024"          (date and year together)
      "As of December 31," | "As of June 30," then "2023" | "2024"  (year on its own row)
    Scanning stops at the "Assets" row.
    """
    months: List[Tuple[int, int, Optional[int]]] = []
    years: List[int] = []
    for cells in _header_cells(rows, stop=_ASSETS_RE, max_rows=max_rows):
        for cell in cells:
            ym = _YEAR_CELL_RE.match(cell)
            if ym:
                years.append(int(ym.group(1)))
                continue
            for m in _DATE_RE.finditer(cell):
                month = MONTHS[m.group(1).lower()]
                yr = int(m.group(3)) if m.group(3) else None
                months.append((month, int(m.group(2)), yr))

    if months and all(yr is not None for _, _, yr in months):
        return [ColumnDate(mo, d, yr) for mo, d, yr in months]  # type: ignore[arg-type]
    if len(months) >= 2 and len(years) >= 2:
        return [ColumnDate(mo, d, y) for (mo, d, _), y in zip(months, years)]
    if len(months) == 1 and len(years) >= 2:
        mo, d, _ = months[0]
        return [ColumnDate(mo, d, min(years)), ColumnDate(mo, d, max(years))]
    return []


def current_column_index(columns: Sequence[ColumnDate]) -> Optional[int]:
    """Index of the most recent column date, None when there are no columns."""
    if not columns:
        return None
    best = max(range(len(columns)), key=lambda i: columns[i].sort_key())
    return best


def parse_quarter_labels(text: str) -> List[Tuple[int, int]]:
    """(fy, q) of every "Q2-2024" style column label, left to right."""
    return [(int(m.group(2)), int(m.group(1))) for m in _QUARTER_LABEL_RE.finditer(text or "")]


@dataclass(frozen=True)
class PeriodHeader:
    """Column layout of an income or cash flow statement."""
    kind: str                   # "quarter" | "ytd" | "year" | "unknown"
    month: Optional[int]
    years: List[int]            # years of the first column group, left to right
    # (fy, q) per column when the header labels quarters ("Q2-2023 ... Q2-2024")
    quarters: List[Tuple[int, int]] = field(default_factory=list)

    @property
    def columns(self) -> int:
        return len(self.quarters) or len(self.years)

    @property
    def current_index(self) -> int:
        """Position of the current period among the first column group."""
        if self.quarters:
            return max(range(len(self.quarters)), key=lambda i: self.quarters[i])
        if len(self.years) < 2:
            return 0
        first, second = self.years[0], self.years[1]
        return 1 if second > first else 0

    def index_for(self, period: Optional[Tuple[int, int]]) -> int:
        """Column of a labelled quarter, else the current column."""
        if period is not None and period in self.quarters:
            return self.quarters.index(period)
        return self.current_index


def parse_period_header(
    rows: Sequence[ExtractedRow],
    *,
    stop: Optional[re.Pattern] = None,
    max_rows: int = 10,
) -> PeriodHeader:
    """
    Read "Quarter Ended June 30," / "Three Months Ended" / "Six Months Ended" /
    "Year Ended" headers and the year cells under them. Press-release slides
    label each column with its quarter instead ("Q2-2023" ... "Q2-2024").
    """
    kind = "unknown"
    month: Optional[int] = None
    years: List[int] = []
    quarters: List[Tuple[int, int]] = []
    for cells in _header_cells(rows, stop=stop, max_rows=max_rows):
        joined = " ".join(cells)
        if not quarters:
            quarters = parse_quarter_labels(joined)
            if quarters and kind == "unknown":
                kind = "quarter"
        if kind == "unknown":
            if _QUARTER_HEADER_RE.search(joined):
                kind = "quarter"
            elif _YTD_HEADER_RE.search(joined):
                kind = "ytd"
            elif _YEAR_HEADER_RE.search(joined):
                kind = "year"
        if month is None:
            dm = _DATE_RE.search(joined)
            if dm:
                month = MONTHS[dm.group(1).lower()]
        for cell in cells:
            ym = _YEAR_CELL_RE.match(cell)
            if ym:
                years.append(int(ym.group(1)))
            else:
                for dm in _DATE_RE.finditer(cell):
                    if dm.group(3):
                        years.append(int(dm.group(3)))
    return PeriodHeader(kind=kind, month=month, years=years, quarters=quarters)
