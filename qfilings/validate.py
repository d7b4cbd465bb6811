from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from qfilings.companies import Company, data_dir
from qfilings.mappings import EXPECTED_FINANCIAL_KEYS, FINANCIALS, SEGMENT_SUBTOTAL_KEYS, SEGMENTS
from qfilings.periods import parse_fy_key, parse_q_key
from qfilings.reconciliation import read_json, write_json


@dataclass(frozen=True)
class RevenueValidation:
    ok: bool
    total_revenue: Optional[float]
    sum_segments: float
    abs_delta: Optional[float]
    pct_delta: Optional[float]
    notes: str


def validate_segment_table(
    *,
    segment_revenues: Dict[str, Optional[float]],
    total_revenue: Optional[float],
    tolerance_pct: float = 0.02,
) -> RevenueValidation:
    sum_segments = round(sum(float(v) for v in segment_revenues.values() if v is not None), 6)
    if total_revenue is None:
        return RevenueValidation(
            ok=False,
            total_revenue=None,
            sum_segments=sum_segments,
            abs_delta=None,
            pct_delta=None,
            notes="No total revenue reference available; cannot validate segments-to-total.",
        )

    abs_delta = round(abs(sum_segments - float(total_revenue)), 6)
    pct_delta = abs_delta / max(1.0, abs(float(total_revenue)))
    ok = pct_delta <= tolerance_pct
    notes = "OK" if ok else f"Delta {pct_delta:.3%} exceeds tolerance {tolerance_pct:.2%}"
    return RevenueValidation(
        ok=ok,
        total_revenue=total_revenue,
        sum_segments=sum_segments,
        abs_delta=abs_delta,
        pct_delta=round(pct_delta, 6),
        notes=notes,
    )


def segment_revenues(company: Company, seg: Dict[str, Any]) -> Dict[str, Optional[float]]:
    """Leaf segment revenues of one quarter, subtotal rows left out."""
    skip = set(SEGMENT_SUBTOTAL_KEYS.get(company.name, ()))
    return {
        k: v
        for k, v in seg.items()
        if not k.startswith("_") and k not in skip and isinstance(v, (int, float)) and not isinstance(v, bool)
    }


def missing_financial_keys(fin: Dict[str, Any]) -> List[str]:
    return [k for k in EXPECTED_FINANCIAL_KEYS if fin.get(k) is None]


def validate_company(root: Path, company: Company, *, tolerance_pct: float = 0.02) -> Dict[str, Any]:
    """
    Check every quarter of financials.json: segment revenues against revenue
    and expected keys present. Writes data/validation.json; never raises on
    bad data.
    """
    base = data_dir(root, company)
    financials = read_json(base / f"{FINANCIALS}.json", default={}) or {}
    segments = read_json(base / f"{SEGMENTS}.json", default={}) or {}

    report: Dict[str, Any] = {"company": company.name, "quarters": {}, "issues": 0}
    for fk in sorted(financials, key=parse_fy_key):
        for qk in sorted(financials[fk] or {}, key=parse_q_key):
            fin = financials[fk][qk] or {}
            entry: Dict[str, Any] = {"missingKeys": missing_financial_keys(fin)}
            seg = (segments.get(fk) or {}).get(qk)
            revenues = segment_revenues(company, seg) if seg else {}
            if revenues:
                check = validate_segment_table(
                    segment_revenues=revenues,
                    total_revenue=fin.get("revenue"),
                    tolerance_pct=tolerance_pct,
                )
                entry["segments"] = asdict(check)
                if not check.ok:
                    report["issues"] += 1
                    print(f"[{company.name}] WARNING: {fk} {qk} segments: {check.notes}", flush=True)
            if entry["missingKeys"]:
                report["issues"] += 1
                print(f"[{company.name}] WARNING: {fk} {qk} missing: {', '.join(entry['missingKeys'])}", flush=True)
            report["quarters"][f"{fk} {qk}"] = entry

    write_json(base / "validation.json", report)
    print(f"[{company.name}] validation: {len(report['quarters'])} quarters, {report['issues']} issues", flush=True)
    return report
