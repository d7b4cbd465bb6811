"""Shared table extraction engine driven by the rule tables in qfilings.mappings."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from qfilings.mappings import (
    LineRule,
    MatrixTableSpec,
    RowRule,
    SectionTableSpec,
    TextRule,
    TextRuleSet,
)
from qfilings.numeric import parse_number, parse_numbers_from_line, to_json_number
from qfilings.periods import (
    FiscalCalendar,
    current_column_index,
    parse_as_of_columns,
    parse_period_header,
)
from qfilings.rows import ROW_SECTION, ROW_SUBTOTAL, ExtractedRow, extract_rows
from qfilings.table_locator import (
    best_scoring_table,
    find_table_containing,
    find_table_html,
    find_table_with_rows,
    iter_tables,
    table_text,
)

# Column selection modes
COLUMNS_PERIOD = "period"   # income / cash flow header: prior vs current years
COLUMNS_AS_OF = "as_of"     # balance sheet "As of" dates

_DECIMAL_RE = re.compile(r"[\d,]+\.\d")


@dataclass
class TableExtraction:
    """Values read from one statement table of one filing."""
    values: Dict[str, Any]
    period: Optional[Tuple[int, int]] = None   # (fy, q) read from the column header, if any
    period_kind: str = "quarter"               # "quarter" | "ytd" | "year"
    # values of the table's other columns, keyed by their own (fy, q)
    other_periods: Dict[Tuple[int, int], Dict[str, Any]] = field(default_factory=dict)


@dataclass(frozen=True)
class Locator:
    """
    How to find a statement table. The first configured method that finds a
    table wins: titles, then row sequence, then contained texts, then scoring.
    """
    titles: Tuple[str, ...] = ()
    title_must_contain: Tuple[str, ...] = ()
    first_row: Optional[re.Pattern] = None
    followed_by: Tuple[re.Pattern, ...] = ()
    contains: Tuple[str, ...] = ()
    scorer: Optional[Callable[[str], int]] = None
    min_score: int = 1


def locate_table(html: str, locator: Locator) -> Optional[str]:
    accept = None
    if locator.title_must_contain:
        needles = locator.title_must_contain

        def accept(t: str) -> bool:
            txt = table_text(t)
            return all(n in txt for n in needles)

    for title in locator.titles:
        table = find_table_html(html, title, accept=accept)
        if table:
            return table
    if locator.first_row is not None and locator.followed_by:
        table = find_table_with_rows(html, locator.first_row, locator.followed_by)
        if table:
            return table
    if locator.contains:
        table = find_table_containing(html, locator.contains)
        if table:
            return table
    if locator.scorer is not None:
        return best_scoring_table(html, locator.scorer, min_score=locator.min_score)
    return None


def set_value(out: Dict[str, Any], key: str, value: Any) -> None:
    """Write value at a dotted key ("googleCloud.revenue") creating nested dicts."""
    parts = key.split(".")
    node = out
    for p in parts[:-1]:
        node = node.setdefault(p, {})
    node[parts[-1]] = value


def has_value(out: Dict[str, Any], key: str) -> bool:
    node: Any = out
    for p in key.split("."):
        if not isinstance(node, dict) or p not in node:
            return False
        node = node[p]
    return True


def pick_value(values: Sequence[str], index: int, columns: int = 1) -> Optional[float]:
    """
    Value of the current period column; a dash placeholder reads as None.

    columns is the number of period columns in the header. Under a single
    column header a row's lone value is that column's, wherever it sits.
    """
    if not values:
        return None
    if len(values) == 1 and columns <= 1:
        return parse_number(values[0])
    if index < len(values):
        return parse_number(values[index])
    return None


def apply_rules(
    rows: Sequence[ExtractedRow],
    rules: Sequence[RowRule],
    *,
    value_index: int = 0,
    columns: int = 1,
    skip: Optional[Callable[[str], bool]] = None,
) -> Dict[str, Any]:
    """
    Map rows to metric keys. Within one table the first matching row wins
    (or the rule's n-th match); section headers scope rules such as "Basic"
    under "Net income per share:".
    """
    out: Dict[str, Any] = {}
    seen: Dict[int, int] = {}
    section = ""
    for row in rows:
        if row.kind == ROW_SECTION:
            section = row.label
            continue
        if not row.label or not row.values:
            continue
        if skip is not None and skip(row.label):
            continue
        used = False
        for r_i, r in enumerate(rules):
            if not r.matches(row.label, section):
                continue
            seen[r_i] = seen.get(r_i, 0) + 1
            if used or seen[r_i] != r.nth or has_value(out, r.key):
                continue
            v = pick_value(row.values, value_index, columns)
            if v is not None:
                set_value(out, r.key, to_json_number(v))
                used = True
    return out


def _as_of_layout(rows: Sequence[ExtractedRow], calendar: FiscalCalendar) -> Tuple[int, List[Tuple[int, int]]]:
    """Current column index and the (fy, q) of every "As of" column."""
    cols = parse_as_of_columns(rows)
    idx = current_column_index(cols)
    if idx is None:
        return 0, []
    return idx, [calendar.period_for(c.year, c.month, c.day) for c in cols]


def extract_rule_table(
    html: str,
    locator: Locator,
    rules: Sequence[RowRule],
    *,
    row_strategy: str = "inline",
    columns: str = COLUMNS_PERIOD,
    calendar: FiscalCalendar = FiscalCalendar(),
    skip: Optional[Callable[[str], bool]] = None,
    header_stop: Optional[re.Pattern] = None,
    target: Optional[Tuple[int, int]] = None,
) -> Optional[TableExtraction]:
    """
    Locate one statement table and map its rows through rules. None when not found.

    When the header dates every column ("As of" dates, "Q2-2024" labels) the
    other columns are read too and returned in other_periods. target picks the
    column of a labelled quarter header; the latest column is used otherwise.
    """
    table = locate_table(html, locator)
    if table is None:
        return None
    rows = extract_rows(table, row_strategy)
    if not rows:
        return None

    periods: List[Tuple[int, int]] = []
    kind = "quarter"
    if columns == COLUMNS_AS_OF:
        value_index, periods = _as_of_layout(rows, calendar)
        width = len(periods)
    elif columns == COLUMNS_PERIOD:
        header = parse_period_header(rows, stop=header_stop)
        periods = list(header.quarters)
        value_index = header.index_for(target)
        width = header.columns
        if header.kind in {"ytd", "year"}:
            kind = header.kind
    else:
        raise ValueError(f"Unknown column mode: {columns}")

    values = apply_rules(rows, rules, value_index=value_index, columns=width, skip=skip)
    if not values:
        return None
    period = periods[value_index] if value_index < len(periods) else None
    others: Dict[Tuple[int, int], Dict[str, Any]] = {}
    for i, p in enumerate(periods):
        if i == value_index or p == period or p in others:
            continue
        column = apply_rules(rows, rules, value_index=i, columns=width, skip=skip)
        if column:
            others[p] = column
    return TableExtraction(values=values, period=period, period_kind=kind, other_periods=others)


def _header_layout(rows: Sequence[ExtractedRow], stop: Optional[re.Pattern] = None) -> Tuple[int, int, str]:
    """Current column index, period column count and period kind of a segment table."""
    header = parse_period_header(rows, stop=stop)
    kind = header.kind if header.kind in {"ytd", "year"} else "quarter"
    return header.current_index, header.columns, kind


def extract_section_table(
    html: str,
    locator: Locator,
    spec: SectionTableSpec,
    *,
    row_strategy: str = "inline",
) -> Optional[TableExtraction]:
    """
    Segment table with a revenue section and an operating income section:

      Net revenue:
        Client Computing Group          <- group header, no values
          Desktop / Notebook            <- sub-rows, skipped
                            10,000      <- subtotal, assigned to the group
        Data Center Group     6,000
      Operating income (loss):
        ...
      Total operating income
    """
    table = locate_table(html, locator)
    if table is None:
        return None

    rows = extract_rows(table, row_strategy)
    index, width, kind = _header_layout(rows, stop=spec.revenue_section)
    out: Dict[str, Any] = {}
    metric: Optional[str] = None
    group = None
    for row in rows:
        label = row.label
        if label and spec.revenue_section.search(label) and not row.values:
            metric, group = "revenue", None
            continue
        if label and spec.income_section.search(label) and not row.values:
            metric, group = "operatingIncome", None
            continue
        if label and spec.end_section.search(label):
            metric, group = None, None
            continue
        if metric is None:
            continue

        if row.kind == ROW_SUBTOTAL:
            v = pick_value(row.values, index, width)
            if group is not None and v is not None and not has_value(out, f"{group.key}.{metric}"):
                set_value(out, f"{group.key}.{metric}", to_json_number(v))
            group = None
            continue

        if row.kind == ROW_SECTION:
            group = next((g for g in spec.groups if g.header.search(label)), None)
            continue

        if group is not None and group.sub_rows is not None and group.sub_rows.search(label):
            continue

        v = pick_value(row.values, index, width)
        if v is None:
            continue
        for r in spec.segments:
            if r.matches(label):
                key = f"{r.key}.{metric}"
                if not has_value(out, key):
                    set_value(out, key, to_json_number(v))
                break

    if not out:
        return None
    return TableExtraction(values=out, period_kind=kind)


def extract_matrix_table(
    html: str,
    locator: Locator,
    spec: MatrixTableSpec,
) -> Optional[TableExtraction]:
    """Segments as columns: map header cells to segments, then metric rows by position."""
    table = locate_table(html, locator)
    if table is None:
        return None

    column_keys: List[str] = []
    metrics: Dict[str, List[str]] = {}
    for row in extract_rows(table, "matrix"):
        joined = " ".join(row.cells)
        if not column_keys and all(t in joined for t in spec.header_texts):
            for cell in row.cells:
                for r in spec.columns:
                    if r.matches(cell):
                        column_keys.append(r.key)
                        break
            continue
        if not column_keys or not row.label:
            continue
        for r in spec.metrics:
            if r.key not in metrics and r.matches(row.label):
                metrics[r.key] = list(row.values)
                break

    if not column_keys or not metrics:
        return None

    out: Dict[str, Any] = {}
    for metric, values in metrics.items():
        for col, seg in enumerate(column_keys):
            if seg.startswith("_") or col >= len(values):
                continue
            v = parse_number(values[col])
            if v is not None:
                set_value(out, f"{seg}.{metric}", to_json_number(v))
    if not out:
        return None
    return TableExtraction(values=out)


def extract_block_table(
    html: str,
    locator: Locator,
    segments: Sequence[RowRule],
    metrics: Sequence[RowRule],
    *,
    row_strategy: str = "inline",
    end: Optional[re.Pattern] = None,
) -> Optional[TableExtraction]:
    """
    Segment table laid out as one block per segment:

      Productivity and Business Processes     <- segment header, no values
        Revenue              28,317  25,994
        Operating income     14,522  13,134
      Intelligent Cloud
        ...
      Total                                   <- `end` closes the open block
    """
    table = locate_table(html, locator)
    if table is None:
        return None

    rows = extract_rows(table, row_strategy)
    index, width, kind = _header_layout(rows)
    out: Dict[str, Any] = {}
    current: Optional[str] = None
    for row in rows:
        label = row.label
        if not label:
            continue
        if row.kind == ROW_SECTION:
            current = next((r.key for r in segments if r.matches(label)), None)
            continue
        if end is not None and end.search(label):
            current = None
            continue
        if current is None:
            continue
        for r in metrics:
            if r.matches(label):
                key = f"{current}.{r.key}"
                v = pick_value(row.values, index, width)
                if v is not None and not has_value(out, key):
                    set_value(out, key, to_json_number(v))
                break

    if not out:
        return None
    return TableExtraction(values=out, period_kind=kind)


def extract_union_tables(
    html: str,
    table_filter: Callable[[str], bool],
    rules: Sequence[RowRule],
    *,
    row_strategy: str = "inline",
) -> Optional[TableExtraction]:
    """
    Apply rules across every table accepted by table_filter; the first table
    that yields a key wins it. The first value of a row is the current period.
    """
    out: Dict[str, Any] = {}
    for table in iter_tables(html):
        if not table_filter(table_text(table)):
            continue
        for key, value in apply_rules(extract_rows(table, row_strategy), rules).items():
            out.setdefault(key, value)
    if not out:
        return None
    return TableExtraction(values=out)


def _scaled(raw: str, scale: float) -> Optional[Any]:
    v = parse_number(raw)
    if v is None:
        return None
    if scale != 1.0:
        return to_json_number(round(v * scale))
    return to_json_number(v)


def extract_text_rules(
    blocks: Sequence[str],
    rule_set: TextRuleSet,
) -> Optional[TableExtraction]:
    """
    Regex rules over the first text block that contains every string of
    rule_set.block_texts and at least one decimal figure.
    """
    for block in blocks:
        if not all(t in block for t in rule_set.block_texts) or not _DECIMAL_RE.search(block):
            continue
        values = apply_text_rules(block, rule_set.rules)
        if values:
            return TableExtraction(values=values)
    return None


def apply_text_rules(text: str, rules: Sequence[TextRule]) -> Dict[str, Any]:
    """First capture group of each rule's pattern, times the rule's scale."""
    out: Dict[str, Any] = {}
    for r in rules:
        m = r.pattern.search(text or "")
        if not m:
            continue
        v = _scaled(m.group(1), r.scale)
        if v is not None:
            out[r.key] = v
    return out


def extract_line_rules(text: str, rules: Sequence[LineRule]) -> Optional[TableExtraction]:
    """
    First number of the first line matching each rule. A label wrapped over
    two lines ("Total equity" / "investments 9,624") is matched on the joined
    pair and read from the second line.
    """
    lines = (text or "").split("\n")
    out: Dict[str, Any] = {}
    for i, line in enumerate(lines):
        nxt = lines[i + 1] if i + 1 < len(lines) else ""
        for r in rules:
            if r.key in out:
                continue
            source = None
            if r.pattern.search(line):
                source = line
            elif nxt and r.pattern.search(f"{line.rstrip()} {nxt.strip()}") and not parse_numbers_from_line(line):
                source = nxt
            if source is None or (r.exclude is not None and r.exclude.search(line)):
                continue
            nums = [n for n in parse_numbers_from_line(source) if n is not None]
            if nums:
                out[r.key] = to_json_number(nums[0])
    if not out:
        return None
    return TableExtraction(values=out)
