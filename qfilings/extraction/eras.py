"""
Era dispatch: which extraction routine to run for a company, data domain and
fiscal quarter.

Filers change their table layouts, segment taxonomies and document formats
over the years. Each domain of each company has an ordered list of eras; an
era covers a (fy, q) range and wraps one extraction routine. Eras covering a
quarter are tried in order and the first one that returns data wins, so a
later entry acts as a fallback (press release first, then the 10-Q/10-K).
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from qfilings.companies import Company
from qfilings.extraction.core import (
    COLUMNS_AS_OF,
    COLUMNS_PERIOD,
    Locator,
    TableExtraction,
    apply_text_rules,
    extract_block_table,
    extract_line_rules,
    extract_matrix_table,
    extract_rule_table,
    extract_section_table,
    extract_text_rules,
    extract_union_tables,
)
from qfilings.extraction.segments import (
    THREE_MONTHS,
    YEAR_ENDED,
    extract_narrative_segments,
    extract_pdf_segment_blocks,
    extract_pdf_segment_columns,
)
from qfilings.extraction.slides import extract_quarter_slide
from qfilings.filings import FILING, PRESENTATION, PRESS_RELEASE, Filing
from qfilings.mappings import (
    ALPHABET_SEGMENT_PROFIT_RULES,
    ALPHABET_SEGMENT_PROFIT_RULES_GOOGLE,
    APPLE_GEOGRAPHIC_SEGMENTS,
    BALANCE_SHEET,
    BALANCE_SHEET_RULES,
    CASH_FLOW_RULES,
    CASH_FLOWS,
    FINANCIAL_RULES,
    FINANCIALS,
    INTEL_MATRIX_SPEC,
    INTEL_SECTION_SPECS,
    INVESTMENT_KEYS,
    INVESTMENTS,
    META_SEGMENT_PROFIT_RULES,
    MICROSOFT_INVESTMENT_LINES,
    MICROSOFT_SECTION_SPEC,
    MICROSOFT_SEGMENT_ROWS,
    NVIDIA_PDF_SEGMENTS,
    PALANTIR_SEGMENT_PROFIT_RULES,
    SEGMENT_BLOCK_END,
    SEGMENT_METRIC_RULES,
    SEGMENT_PROFIT,
    SEGMENT_RULES,
    SEGMENT_TABLE_TEXTS,
    SEGMENTS,
    TESLA_SEGMENT_PROFIT_RULES,
    TESLA_STATEMENT_SLIDE,
    TEXT_RULES,
    TSMC_FOOTNOTE_RULES,
    TSMC_PLATFORMS,
    RowRule,
    get_rules,
    is_financial_skip_row,
    rule,
)
from qfilings.numeric import to_json_number

Extractor = Callable[[Filing], Optional[TableExtraction]]

FIRST = (0, 1)
LAST = (9999, 4)


@dataclass(frozen=True)
class Era:
    name: str
    extract: Extractor
    start: Tuple[int, int] = FIRST
    end: Tuple[int, int] = LAST
    quarters: Tuple[int, ...] = (1, 2, 3, 4)

    def covers(self, fy: int, q: int) -> bool:
        return self.start <= (fy, q) <= self.end and q in self.quarters


def select_eras(eras: Sequence[Era], fy: int, q: int) -> List[Era]:
    """Eras covering (fy, q), in the order they are to be tried."""
    return [e for e in eras if e.covers(fy, q)]


def run_eras(eras: Sequence[Era], filing: Filing, *, domain: str = "") -> Optional[TableExtraction]:
    """
    Try each era covering the filing's quarter; the first result wins.
    Prints a warning and returns None when no era yields data.
    """
    candidates = select_eras(eras, filing.fy, filing.q)
    if not candidates:
        print(f"[{filing.company.name}] WARNING: {filing.label} {domain}: no extraction era covers this quarter", flush=True)
        return None
    for era in candidates:
        result = era.extract(filing)
        if result is not None and result.values:
            return result
    tried = ", ".join(e.name for e in candidates)
    print(f"[{filing.company.name}] WARNING: {filing.label} {domain}: table not found (tried {tried})", flush=True)
    return None


def extract_domain(company: Company, domain: str, filing: Filing) -> Optional[TableExtraction]:
    """Extract one data domain from one quarter's filings."""
    eras = company_eras(company).get(domain)
    if not eras:
        return None
    return run_eras(eras, filing, domain=domain)


# ----------------------------
# Extractor builders
# ----------------------------

def _rule_table(
    source: str,
    locator: Locator,
    rules: Sequence[RowRule],
    *,
    rows: Sequence[str] = ("inline",),
    columns: str = COLUMNS_PERIOD,
    skip: Optional[Callable[[str], bool]] = None,
) -> Extractor:
    def run(filing: Filing) -> Optional[TableExtraction]:
        html = filing.html(source)
        if not html:
            return None
        for strategy in rows:
            result = extract_rule_table(
                html, locator, rules,
                row_strategy=strategy,
                columns=columns,
                calendar=filing.company.calendar,
                skip=skip,
                target=(filing.fy, filing.q),
            )
            if result is not None:
                return result
        return None

    return run


def _section_table(source: str, locator: Locator, spec, *, rows: Sequence[str] = ("inline",)) -> Extractor:
    def run(filing: Filing) -> Optional[TableExtraction]:
        html = filing.html(source)
        if not html:
            return None
        for strategy in rows:
            result = extract_section_table(html, locator, spec, row_strategy=strategy)
            if result is not None:
                return result
        return None

    return run


def _block_table(
    source: str,
    locator: Locator,
    segments: Sequence[RowRule],
    *,
    rows: Sequence[str] = ("inline",),
) -> Extractor:
    def run(filing: Filing) -> Optional[TableExtraction]:
        html = filing.html(source)
        if not html:
            return None
        for strategy in rows:
            result = extract_block_table(
                html, locator, segments, SEGMENT_METRIC_RULES,
                row_strategy=strategy, end=SEGMENT_BLOCK_END,
            )
            if result is not None:
                return result
        return None

    return run


def _matrix_table(source: str, locator: Locator, spec) -> Extractor:
    def run(filing: Filing) -> Optional[TableExtraction]:
        html = filing.html(source)
        return extract_matrix_table(html, locator, spec) if html else None

    return run


def _narrative(rules: Sequence[RowRule]) -> Extractor:
    def run(filing: Filing) -> Optional[TableExtraction]:
        html = filing.html(PRESS_RELEASE)
        return extract_narrative_segments(html, rules) if html else None

    return run


def _pdf_period(filing: Filing) -> str:
    return YEAR_ENDED if filing.q == 4 else THREE_MONTHS


def _pdf_segment_columns(spec) -> Extractor:
    def run(filing: Filing) -> Optional[TableExtraction]:
        if not filing.is_pdf:
            return None
        text = filing.text(FILING)
        return extract_pdf_segment_columns(text, spec, period=_pdf_period(filing)) if text else None

    return run


def _pdf_segment_blocks(rules: Sequence[RowRule]) -> Extractor:
    def run(filing: Filing) -> Optional[TableExtraction]:
        if not filing.is_pdf:
            return None
        text = filing.text(FILING)
        return extract_pdf_segment_blocks(text, rules, period=_pdf_period(filing)) if text else None

    return run


def _pdf_lines(rules) -> Extractor:
    def run(filing: Filing) -> Optional[TableExtraction]:
        if not filing.is_pdf:
            return None
        text = filing.text(FILING)
        return extract_line_rules(text, rules) if text else None

    return run


def _hidden_text(rule_set) -> Extractor:
    def run(filing: Filing) -> Optional[TableExtraction]:
        return extract_text_rules(filing.hidden_blocks(PRESENTATION), rule_set)

    return run


def _slide(spec) -> Extractor:
    def run(filing: Filing) -> Optional[TableExtraction]:
        html = filing.html(PRESS_RELEASE)
        return extract_quarter_slide(html, spec, target=(filing.fy, filing.q)) if html else None

    return run


def _with(extractor: Extractor, post: Callable[[Dict[str, Any]], Dict[str, Any]]) -> Extractor:
    """Apply post to the values of a successful extraction, other columns included."""
    def run(filing: Filing) -> Optional[TableExtraction]:
        result = extractor(filing)
        if result is None:
            return None
        values = post(dict(result.values))
        if not values:
            return None
        others = {p: post(dict(v)) for p, v in result.other_periods.items()}
        return TableExtraction(
            values=values,
            period=result.period,
            period_kind=result.period_kind,
            other_periods={p: v for p, v in others.items() if v},
        )

    return run


def _combined(primary: Extractor, *extras: Extractor) -> Extractor:
    """Primary extraction plus keys it lacks from supplementary tables."""
    def run(filing: Filing) -> Optional[TableExtraction]:
        result = primary(filing)
        if result is None:
            return None
        for extra in extras:
            more = extra(filing)
            if more is None:
                continue
            for k, v in more.values.items():
                result.values.setdefault(k, v)
        return result

    return run


# ----------------------------
# Value post-processing
# ----------------------------

def revenue_only(values: Dict[str, Any]) -> Dict[str, Any]:
    """{seg: {revenue, operatingIncome}} -> {seg: revenue}."""
    out: Dict[str, Any] = {}
    for seg, metrics in values.items():
        if isinstance(metrics, dict) and metrics.get("revenue") is not None:
            out[seg] = metrics["revenue"]
    return out


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def derive_investments(values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Investment positions from balance sheet values, plus
    totalCashAndSecurities and netCash = totalCashAndSecurities - longTermDebt.
    A balance sheet without a long-term debt line counts as debt free.
    """
    out = {k: values[k] for k in INVESTMENT_KEYS if k in values}
    total = out.get("totalCashAndSecurities")
    if not _is_number(total):
        if _is_number(out.get("cashAndMarketable")):
            total = out["cashAndMarketable"]
        else:
            parts = [out.get(k) for k in ("cashAndEquivalents", "marketableSecurities", "shortTermInvestments")]
            nums = [p for p in parts if _is_number(p)]
            total = to_json_number(sum(nums)) if nums else None
        if total is not None:
            out["totalCashAndSecurities"] = total
    debt = out.get("longTermDebt")
    if _is_number(total):
        out["netCash"] = to_json_number(total - debt) if _is_number(debt) else total
    return out


def _segment_gross_profit(values: Dict[str, Any]) -> Dict[str, Any]:
    for seg in values.values():
        if isinstance(seg, dict) and _is_number(seg.get("revenue")) and _is_number(seg.get("costOfRevenue")):
            seg["grossProfit"] = to_json_number(seg["revenue"] - seg["costOfRevenue"])
    return values


def _tsmc_financials(values: Dict[str, Any]) -> Dict[str, Any]:
    rev, gp = values.get("revenue"), values.get("grossProfit")
    oi, ibt, ni = values.get("operatingIncome"), values.get("incomeBeforeTax"), values.get("netIncome")
    if _is_number(rev) and _is_number(gp):
        values["costOfRevenue"] = to_json_number(round(rev - gp, 6))
    if _is_number(gp) and _is_number(oi):
        values["operatingExpenses"] = to_json_number(round(gp - oi, 6))
    if _is_number(ibt) and _is_number(oi):
        values["nonOperatingIncome"] = to_json_number(round(ibt - oi, 6))
    if _is_number(ibt) and _is_number(ni):
        values["incomeTaxExpense"] = to_json_number(round(ibt - ni, 6))
    return values


# ----------------------------
# TSMC documents
# ----------------------------

_TSMC_PL_HINTS = ("Net sales", "Gross profit", "Income from operations", "Net income", "Income before tax")


def _tsmc_pl_table(text: str) -> bool:
    return any(h in text for h in _TSMC_PL_HINTS)


def _tsmc_financials_extractor(filing: Filing) -> Optional[TableExtraction]:
    html = filing.html(PRESS_RELEASE)
    if not html:
        return None
    result = extract_union_tables(html, _tsmc_pl_table, get_rules(FINANCIAL_RULES, "tsmc"))
    if result is None:
        return None
    text = filing.text(PRESS_RELEASE) or ""
    for k, v in apply_text_rules(text, TSMC_FOOTNOTE_RULES).items():
        result.values.setdefault(k, v)
    _tsmc_financials(result.values)
    return result


def tsmc_platform_shares(blocks: Sequence[str], fy: int, q: int) -> Optional[Dict[str, Any]]:
    """
    Revenue share by platform from the "Revenue by Platform" slide text
    ("4Q24 Revenue by Platform ... HPC 51% Smartphone 35% ..."). At least
    three platforms must be found.
    """
    label = re.compile(rf"{q}Q{fy % 100:02d}\s+Revenue by Platform", re.IGNORECASE)

    def shares(text: str) -> Dict[str, int]:
        out: Dict[str, int] = {}
        for platform in TSMC_PLATFORMS:
            m = re.search(rf"{platform}\s+(\d+)%", text, re.IGNORECASE)
            if m:
                out[platform.lower()] = int(m.group(1))
        return out

    candidates = [b for b in blocks if label.search(b) or ("Revenue by Platform" in b and "%" in b)]
    candidates += [b for b in blocks if "Smartphone" in b and "HPC" in b and "%" in b]
    for block in candidates:
        found = shares(block)
        if len(found) >= 3:
            return found
    return None


def _tsmc_segments_extractor(filing: Filing) -> Optional[TableExtraction]:
    found = tsmc_platform_shares(filing.hidden_blocks(PRESENTATION), filing.fy, filing.q)
    if not found:
        return None
    return TableExtraction(values={"_percentages": found})


# ----------------------------
# Locators
# ----------------------------

_BALANCE_SHEET = Locator(
    titles=("CONSOLIDATED BALANCE SHEETS", "BALANCE SHEETS"),
    title_must_contain=("Total assets",),
    contains=("Total assets", "Total liabilities"),
)
_INCOME_STATEMENT = Locator(
    titles=("STATEMENTS OF INCOME", "STATEMENTS OF OPERATIONS"),
    title_must_contain=("Net income",),
    first_row=re.compile(r"^(?:Total )?(?:net )?(?:revenues?|net sales)$", re.IGNORECASE),
    followed_by=(
        re.compile(r"Costs and expenses", re.IGNORECASE),
        re.compile(r"^(?:Total )?cost of (?:revenues?|sales)$", re.IGNORECASE),
    ),
)
_CASH_FLOWS = Locator(
    titles=("STATEMENTS OF CASH FLOWS",),
    title_must_contain=("operating activities",),
    contains=("operating activities", "investing activities"),
)

# Alphabet titles its statements without "CONDENSED"; P/L found by row sequence
_ALPHABET_INCOME_STATEMENT = Locator(
    first_row=re.compile(r"^Revenues$", re.IGNORECASE),
    followed_by=(re.compile(r"Costs and expenses", re.IGNORECASE), re.compile(r"^Cost of revenues$", re.IGNORECASE)),
)


def _texts(*texts: str) -> Locator:
    return Locator(contains=texts)


def intel_segment_table_score(text: str) -> int:
    """Score a table as Intel's segment revenue and operating income table (6 or more to accept)."""
    if not (200 < len(text) < 5000):
        return 0
    score = 0
    if "Operating income" in text or "operating income" in text or "operating loss" in text:
        score += 2
    if "revenue" in text or "Revenue" in text:
        score += 2
    for names in (
        ("Data Center Group", "DCG"),
        ("Client Computing", "CCG"),
        ("Datacenter and AI", "Data Center and AI", "DCAI"),
        ("Network and Edge", "NEX"),
        ("Intel Products", "Intel Foundry"),
        ("Mobileye", "Altera"),
    ):
        if any(n in text for n in names):
            score += 1
    if "Net revenue:" in text or "Operating segment revenue:" in text:
        score += 3
    if "Total net revenue" in text or "Total operating segment revenue" in text:
        score += 2
    return score


_INTEL_SEGMENTS = Locator(scorer=intel_segment_table_score, min_score=6)
_INTEL_MATRIX = Locator(contains=INTEL_MATRIX_SPEC.header_texts + ("Operating income",))


def _intel_fcf_table(text: str) -> int:
    return 1 if "GAAP" in text and ("free cash flow" in text.lower()) else 0


# ----------------------------
# Era tables
# ----------------------------

_ROWS: Dict[str, Tuple[str, ...]] = {
    "broadcom": ("legacy", "inline"),
    "microsoft": ("legacy", "inline"),
    "nvidia": ("gnw", "inline"),
}


def _statement_eras(company: Company) -> Dict[str, List[Era]]:
    name = company.name
    rows = _ROWS.get(name, ("inline", "legacy"))
    income = _ALPHABET_INCOME_STATEMENT if name == "alphabet" else _INCOME_STATEMENT
    fin_rules = get_rules(FINANCIAL_RULES, name)
    bs_rules = get_rules(BALANCE_SHEET_RULES, name)
    cf_rules = get_rules(CASH_FLOW_RULES, name)

    def statement(locator: Locator, rules: Sequence[RowRule], columns: str, skip=None) -> List[Era]:
        eras = [Era("press-release", _rule_table(PRESS_RELEASE, locator, rules, rows=rows, columns=columns, skip=skip))]
        if company.filing_ext == "htm":
            eras.append(Era("10-Q/10-K", _rule_table(FILING, locator, rules, rows=rows, columns=columns, skip=skip)))
        return eras

    financials = statement(income, fin_rules, COLUMNS_PERIOD, skip=is_financial_skip_row)
    balance = statement(_BALANCE_SHEET, bs_rules, COLUMNS_AS_OF)
    cash = statement(_CASH_FLOWS, cf_rules, COLUMNS_PERIOD)

    if name == "tesla":
        # Update decks carry the statement as a text slide; tables are the fallback
        financials = [Era("statement-slide", _slide(TESLA_STATEMENT_SLIDE))] + financials
    if name == "intel":
        fcf = _rule_table(PRESS_RELEASE, Locator(scorer=_intel_fcf_table), cf_rules, rows=rows)
        cash = [Era(e.name, _combined(e.extract, fcf)) for e in cash]
    if name == "nvidia":
        fcf_rules = [rule("freeCashFlow", r"^Free cash flow$")]
        fcf = _rule_table(PRESS_RELEASE, _texts("Free cash flow"), fcf_rules, rows=rows)
        cash = [Era(e.name, _combined(e.extract, fcf)) for e in cash]

    investments = [Era(e.name, _with(e.extract, derive_investments)) for e in balance]
    if name == "microsoft":
        investments = [
            Era(e.name, _combined(e.extract, _pdf_lines(MICROSOFT_INVESTMENT_LINES)))
            for e in investments
        ]

    return {
        FINANCIALS: financials,
        BALANCE_SHEET: balance,
        CASH_FLOWS: cash,
        INVESTMENTS: investments,
    }


def _segment_eras(company: Company) -> Dict[str, List[Era]]:
    name = company.name
    rows = _ROWS.get(name, ("inline", "legacy"))
    out: Dict[str, List[Era]] = {}

    if name in SEGMENT_TABLE_TEXTS:
        out[SEGMENTS] = [Era(
            "segment-table",
            _rule_table(PRESS_RELEASE, _texts(*SEGMENT_TABLE_TEXTS[name]), get_rules(SEGMENT_RULES, name), rows=rows),
        )]

    if name == "alphabet":
        locator = _texts("Google Cloud", "Other Bets", "Total income from operations")
        out[SEGMENT_PROFIT] = [
            Era("google", _rule_table(PRESS_RELEASE, locator, ALPHABET_SEGMENT_PROFIT_RULES_GOOGLE, rows=rows),
                end=(2020, 3)),
            Era("google-services", _rule_table(PRESS_RELEASE, locator, ALPHABET_SEGMENT_PROFIT_RULES, rows=rows),
                start=(2020, 4)),
        ]

    elif name == "apple":
        out[SEGMENTS] = [Era("net-sales", _rule_table(PRESS_RELEASE, _INCOME_STATEMENT, get_rules(SEGMENT_RULES, name), rows=rows))]
        out[SEGMENT_PROFIT] = [Era(
            "geographic-note",
            _block_table(FILING, _texts("Americas", "Greater China", "Net sales"), APPLE_GEOGRAPHIC_SEGMENTS, rows=rows),
        )]

    elif name == "intel":
        profit = [
            Era("era1", _section_table(PRESS_RELEASE, _INTEL_SEGMENTS, INTEL_SECTION_SPECS["era1"], rows=rows),
                end=(2021, 4)),
            Era("era2", _section_table(PRESS_RELEASE, _INTEL_SEGMENTS, INTEL_SECTION_SPECS["era2"], rows=rows),
                start=(2022, 1), end=(2023, 4)),
            Era("era3", _section_table(PRESS_RELEASE, _INTEL_SEGMENTS, INTEL_SECTION_SPECS["era3"], rows=rows),
                start=(2024, 1), end=(2024, 3)),
            Era("matrix", _matrix_table(PRESS_RELEASE, _INTEL_MATRIX, INTEL_MATRIX_SPEC), start=(2024, 4)),
        ]
        out[SEGMENT_PROFIT] = profit
        out[SEGMENTS] = [Era(e.name, _with(e.extract, revenue_only), e.start, e.end) for e in profit]

    elif name == "meta":
        out[SEGMENT_PROFIT] = [Era(
            "segment-table",
            _rule_table(PRESS_RELEASE, _texts("Family of Apps", "Reality Labs", "Income (loss) from operations"),
                        META_SEGMENT_PROFIT_RULES, rows=rows),
        )]

    elif name == "microsoft":
        table = Locator(titles=("SEGMENT RESULTS", "SEGMENT REVENUE AND OPERATING INCOME"))
        press = [
            Era("segment-blocks", _block_table(PRESS_RELEASE, table, MICROSOFT_SEGMENT_ROWS, rows=rows)),
            Era("segment-sections", _section_table(PRESS_RELEASE, table, MICROSOFT_SECTION_SPEC, rows=rows)),
        ]
        out[SEGMENTS] = [Era(e.name, _with(e.extract, revenue_only)) for e in press]
        out[SEGMENT_PROFIT] = [Era("pdf-note", _pdf_segment_blocks(MICROSOFT_SEGMENT_ROWS))] + press

    elif name == "nvidia":
        out[SEGMENTS] = [Era("narrative", _narrative(get_rules(SEGMENT_RULES, name)))]
        out[SEGMENT_PROFIT] = [Era("pdf-note", _pdf_segment_columns(NVIDIA_PDF_SEGMENTS))]

    elif name == "palantir":
        out[SEGMENT_PROFIT] = [Era(
            "10-Q-note",
            _rule_table(FILING, _texts("Contribution", "Government", "Commercial"), PALANTIR_SEGMENT_PROFIT_RULES, rows=rows),
        )]

    elif name == "tesla":
        profit_rules = TESLA_SEGMENT_PROFIT_RULES
        out[SEGMENT_PROFIT] = [
            Era("press-release", _with(_rule_table(PRESS_RELEASE, _INCOME_STATEMENT, profit_rules, rows=rows), _segment_gross_profit)),
            Era("10-Q/10-K", _with(_rule_table(FILING, _INCOME_STATEMENT, profit_rules, rows=rows), _segment_gross_profit)),
        ]

    elif name == "tsmc":
        out[SEGMENTS] = [Era("platform-share", _tsmc_segments_extractor, start=(2020, 1))]

    return out


@lru_cache(maxsize=None)
def company_eras(company: Company) -> Dict[str, List[Era]]:
    """Domain -> ordered eras for one company."""
    if company.name == "tsmc":
        eras: Dict[str, List[Era]] = {
            FINANCIALS: [Era("press-release", _tsmc_financials_extractor)],
            # Presentation slides carry figures as text only from FY2023
            BALANCE_SHEET: [Era("presentation", _hidden_text(TEXT_RULES["tsmc"][BALANCE_SHEET]), start=(2023, 1))],
            CASH_FLOWS: [Era("presentation", _hidden_text(TEXT_RULES["tsmc"][CASH_FLOWS]), start=(2023, 1))],
        }
        eras[INVESTMENTS] = [Era("presentation", _with(eras[BALANCE_SHEET][0].extract, derive_investments), start=(2023, 1))]
    else:
        eras = _statement_eras(company)
    eras.update(_segment_eras(company))
    return eras
