"""Run every data domain over a company's filings and write companies/<name>/data/*.json."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from qfilings.companies import Company, data_dir
from qfilings.extraction import TableExtraction, company_eras, extract_domain
from qfilings.filings import Filing, iter_filings
from qfilings.mappings import BALANCE_SHEET, DOMAINS, FINANCIALS, INVESTMENTS, SEGMENTS
from qfilings.reconciliation import DOMAIN_POLICIES, QuarterStore, resolve_revenue_shares, write_json

# Point-in-time domains: a value is always the quarter-end position
_POINT_IN_TIME = {BALANCE_SHEET, INVESTMENTS}


def _count_fields(values: Dict[str, Any]) -> int:
    return sum(_count_fields(v) if isinstance(v, dict) else 1 for v in values.values())


def store_extraction(store: QuarterStore, domain: str, filing: Filing, result: TableExtraction) -> None:
    """
    File an extraction under the filing's quarter, its fiscal year, or as
    year-to-date. Columns dated to other quarters (the prior "As of" date, a
    slide's earlier quarters) fill those quarters where no filing of their own
    reported a value.
    """
    if result.period_kind == "quarter":
        for (fy, q), values in sorted(result.other_periods.items()):
            if (fy, q) != (filing.fy, filing.q):
                store.fill(fy, q, values)

    if domain in _POINT_IN_TIME:
        if result.period is not None and result.period != (filing.fy, filing.q):
            fy, q = result.period
            print(
                f"[{filing.company.name}] WARNING: {filing.label} {domain}: "
                f"statement dated FY{fy} Q{q}, stored under the folder's quarter",
                flush=True,
            )
        store.put(filing.fy, filing.q, result.values)
    elif result.period_kind == "year":
        store.put_annual(filing.fy, result.values)
    elif result.period_kind == "ytd" and filing.q > 1:
        store.put_ytd(filing.fy, filing.q, result.values)
    else:
        store.put(filing.fy, filing.q, result.values)


def extract_company(
    root: Path,
    company: Company,
    *,
    domains: Optional[Sequence[str]] = None,
) -> Dict[str, Any]:
    """
    Walk the company's filings oldest first, extract each domain, reconcile
    and write one JSON file per domain. Returns a small run report.
    """
    eras = company_eras(company)
    selected: List[str] = [d for d in (domains or DOMAINS) if eras.get(d)]
    filings = iter_filings(root, company)
    stores = {d: QuarterStore(DOMAIN_POLICIES[d], label=company.name) for d in selected}
    report: Dict[str, Any] = {"filings": len(filings), "domains": {}, "errors": []}

    print(f"[{company.name}] extracting {', '.join(selected)} from {len(filings)} quarters", flush=True)
    for filing in filings:
        for domain in selected:
            try:
                result = extract_domain(company, domain, filing)
            except Exception as e:
                msg = f"{filing.label} {domain}: {type(e).__name__}: {e}"
                print(f"[{company.name}] WARNING: {msg}", flush=True)
                report["errors"].append(msg)
                continue
            if result is None:
                continue
            store_extraction(stores[domain], domain, filing, result)
            print(f"[{company.name}] {filing.label} {domain}: {_count_fields(result.values)} fields ({result.period_kind})", flush=True)

    for store in stores.values():
        store.finalize()
    if SEGMENTS in stores and FINANCIALS in stores:
        resolve_revenue_shares(stores[SEGMENTS], stores[FINANCIALS])

    out_dir = data_dir(root, company)
    for domain, store in stores.items():
        data = store.to_json()
        write_json(out_dir / f"{domain}.json", data)
        report["domains"][domain] = sum(len(qs) for qs in data.values())
    return report
