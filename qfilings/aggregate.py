"""
Join the per-domain JSON files of a company into one ordered time series with
derived fields (gross profit, SGA, non-operating income, free cash flow).
"""
from __future__ import annotations

import datetime as _dt
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from qfilings.companies import Company, data_dir, load_config
from qfilings.mappings import BALANCE_SHEET, CASH_FLOWS, FINANCIALS, INVESTMENTS, SEGMENT_PROFIT, SEGMENTS
from qfilings.numeric import to_json_number
from qfilings.periods import fy_key, parse_fy_key, q_key
from qfilings.reconciliation import read_json

STOCK_PRICES = "stock-prices"

Record = Dict[str, Any]


def _num(v: Any) -> Optional[float]:
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return v
    return None


def gross_profit(d: Record) -> Optional[float]:
    """Reported gross profit, else revenue - cost of revenue."""
    if _num(d.get("grossProfit")) is not None:
        return d["grossProfit"]
    rev, cost = _num(d.get("revenue")), _num(d.get("costOfRevenue"))
    if rev is None or cost is None:
        return None
    return to_json_number(round(rev - cost, 6))


def sga(d: Record) -> Optional[float]:
    """Reported SG&A, else sales and marketing + G&A (null only when both are null)."""
    if _num(d.get("sga")) is not None:
        return d["sga"]
    sm, ga = _num(d.get("salesAndMarketing")), _num(d.get("generalAndAdministrative"))
    if sm is None and ga is None:
        return None
    return to_json_number(round((sm or 0) + (ga or 0), 6))


def non_operating_income(d: Record) -> Optional[float]:
    if _num(d.get("otherIncomeExpense")) is not None:
        return d["otherIncomeExpense"]
    pretax, op = _num(d.get("incomeBeforeTax")), _num(d.get("operatingIncome"))
    if pretax is None or op is None:
        return None
    return to_json_number(round(pretax - op, 6))


def free_cash_flow(cf: Record) -> Optional[float]:
    """Reported free cash flow, else operating cash flow - |capex|."""
    if _num(cf.get("freeCashFlow")) is not None:
        return cf["freeCashFlow"]
    ocf, capex = _num(cf.get("operatingCF")), _num(cf.get("capex"))
    if ocf is None or capex is None:
        return None
    return to_json_number(round(ocf - abs(capex), 6))


def _segments(seg: Optional[Record]) -> Optional[Record]:
    if not seg:
        return None
    out = {k: v for k, v in seg.items() if not k.startswith("_") and _num(v) is not None}
    return out or None


def _segment_profit(sp: Optional[Record]) -> Optional[Record]:
    if not sp:
        return None
    out = {}
    for name, metrics in sp.items():
        if name.startswith("_") or not isinstance(metrics, dict):
            continue
        out[name] = {
            "revenue": metrics.get("revenue"),
            "operatingIncome": metrics.get("operatingIncome"),
            **{k: v for k, v in metrics.items() if k not in ("revenue", "operatingIncome")},
        }
    return out or None


def build_quarter(fy: int, q: int, d: Record, sources: Dict[str, Record]) -> Record:
    """One time-series entry; a missing domain record leaves its fields null."""

    def rec(domain: str) -> Optional[Record]:
        return ((sources.get(domain) or {}).get(fy_key(fy)) or {}).get(q_key(q))

    bs, cf, inv, price = rec(BALANCE_SHEET), rec(CASH_FLOWS), rec(INVESTMENTS), rec(STOCK_PRICES)
    eps = d.get("epsDiluted")
    if eps is None:
        eps = d.get("eps")

    return {
        "label": f"{fy_key(fy)} {q_key(q)}",
        "fy": fy,
        "q": q,
        "isOutlook": bool(d.get("isOutlook", False)),
        # P/L
        "revenue": d.get("revenue"),
        "costOfRevenue": d.get("costOfRevenue"),
        "grossProfit": gross_profit(d),
        "researchAndDevelopment": d.get("researchAndDevelopment"),
        "sga": sga(d),
        "totalOperatingExpenses": d.get("totalOperatingExpenses"),
        "operatingIncome": d.get("operatingIncome"),
        "nonOperatingIncome": non_operating_income(d),
        "netIncome": d.get("netIncome"),
        "eps": eps,
        "sharesDiluted": d.get("sharesDiluted"),
        "price": (price or {}).get("price"),
        "priceDate": (price or {}).get("priceDate", (price or {}).get("date")),
        "segments": _segments(rec(SEGMENTS)),
        "balanceSheet": {
            "cashAndEquivalents": bs.get("cashAndEquivalents"),
            "totalAssets": bs.get("totalAssets"),
            "totalLiabilities": bs.get("totalLiabilities"),
            "totalEquity": bs.get("totalEquity"),
            "totalDebt": bs.get("longTermDebt"),
        } if bs else None,
        "cashFlow": {
            "operatingCF": cf.get("operatingCF"),
            "investingCF": cf.get("investingCF"),
            "financingCF": cf.get("financingCF"),
            "freeCashFlow": free_cash_flow(cf),
        } if cf else None,
        "segmentProfit": _segment_profit(rec(SEGMENT_PROFIT)),
        "investments": dict(inv) if inv else None,
    }


def load_sources(root: Path, company: Company) -> Dict[str, Record]:
    """Every domain file of the company; missing files read as empty."""
    base = data_dir(root, company)
    out: Dict[str, Record] = {}
    for domain in (FINANCIALS, BALANCE_SHEET, CASH_FLOWS, SEGMENTS, SEGMENT_PROFIT, INVESTMENTS, STOCK_PRICES):
        data = read_json(base / f"{domain}.json", default={})
        if not data and domain == FINANCIALS:
            print(f"[{company.name}] WARNING: no financials.json, nothing to aggregate", flush=True)
        out[domain] = data or {}
    return out


def build_dataset(
    root: Path,
    company: Company,
    *,
    config: Optional[Dict[str, Any]] = None,
    generated_at: Optional[str] = None,
) -> Record:
    """
    The full-history document. Quarters follow financials.json; the last
    pageYears * 4 of them are flagged hasPage.
    """
    cfg = config if config is not None else load_config(root, company)
    sources = load_sources(root, company)
    financials = sources[FINANCIALS]

    quarters: List[Record] = []
    for fk in sorted(financials, key=parse_fy_key):
        fy = parse_fy_key(fk)
        for q in (1, 2, 3, 4):
            d = (financials.get(fk) or {}).get(q_key(q))
            if not d:
                continue
            quarters.append(build_quarter(fy, q, d, sources))

    start = max(0, len(quarters) - int(cfg["pageYears"]) * 4)
    for i, entry in enumerate(quarters):
        entry["hasPage"] = i >= start

    return {
        "company": company.display_name,
        "ticker": company.ticker,
        "generatedAt": generated_at or _dt.date.today().isoformat(),
        "nextEarningsDate": cfg.get("nextEarningsDate"),
        "quarters": quarters,
    }


def _page_ref(entry: Record) -> Record:
    return {"fy": entry["fy"], "q": entry["q"], "label": entry["label"]}


def quarter_pages(dataset: Record, *, chart_quarters: int) -> Iterator[Tuple[Record, Record]]:
    """
    (quarter entry, page document) for every hasPage quarter. The page keeps
    at most chart_quarters entries ending at its own quarter. The previous link
    points at the nearest earlier page, the next link at the nearest later
    page that is not an outlook.
    """
    quarters = dataset["quarters"]
    for i, entry in enumerate(quarters):
        if not entry.get("hasPage"):
            continue
        prev_page = next((_page_ref(quarters[j]) for j in range(i - 1, -1, -1) if quarters[j].get("hasPage")), None)
        next_page = next(
            (_page_ref(quarters[j]) for j in range(i + 1, len(quarters))
             if quarters[j].get("hasPage") and not quarters[j].get("isOutlook")),
            None,
        )
        page = dict(dataset)
        page["quarters"] = quarters[max(0, i + 1 - chart_quarters): i + 1]
        page["currentQuarter"] = _page_ref(entry)
        page["prevPage"] = prev_page
        page["nextPage"] = next_page
        yield entry, page
