"""
Quarter reconciliation: merge partial per-filing records into one record per
fiscal quarter, derive Q4 from annual figures and single quarters from
year-to-date figures.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from qfilings.mappings import (
    BALANCE_SHEET,
    CASH_FLOWS,
    FINANCIALS,
    INVESTMENTS,
    NON_ADDITIVE_KEYS,
    SEGMENT_PROFIT,
    SEGMENTS,
)
from qfilings.numeric import to_json_number
from qfilings.periods import fy_key, parse_fy_key, parse_q_key, q_key

Record = Dict[str, Any]

KEEP_FIRST = "keep_first"         # populated fields are never overwritten
PREFER_LATEST = "prefer_latest"   # later filings win; null never erases a number

DOMAIN_POLICIES: Dict[str, str] = {
    BALANCE_SHEET: KEEP_FIRST,
    INVESTMENTS: KEEP_FIRST,
    FINANCIALS: PREFER_LATEST,
    CASH_FLOWS: PREFER_LATEST,
    SEGMENTS: PREFER_LATEST,
    SEGMENT_PROFIT: PREFER_LATEST,
}


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _clean(v: float) -> Any:
    # Subtracting decimals (EPS, NT$ billions) leaves float noise
    return to_json_number(round(v, 6))


def merge_record(existing: Record, incoming: Record, policy: str) -> Record:
    """Merge incoming into existing in place (nested segment maps included)."""
    if policy not in (KEEP_FIRST, PREFER_LATEST):
        raise ValueError(f"Unknown merge policy: {policy}")
    for key, value in incoming.items():
        if isinstance(value, dict):
            node = existing.get(key)
            if not isinstance(node, dict):
                if node is not None and policy == KEEP_FIRST:
                    continue
                node = existing[key] = {}
            merge_record(node, value, policy)
            continue
        current = existing.get(key)
        if value is None:
            existing.setdefault(key, None)
        elif current is None or policy == PREFER_LATEST:
            existing[key] = value
    return existing


def compute_q4(
    annual: Record,
    quarters: Sequence[Optional[Record]],
    *,
    skip: Iterable[str] = NON_ADDITIVE_KEYS,
) -> Record:
    """
    Q4 = annual - (Q1 + Q2 + Q3), per metric.

    A metric is derived only when the annual value and all three quarterly
    values are numbers; otherwise it is left out (never zero-filled). Nested
    {segment: {metric: value}} maps are handled per segment and segments with
    nothing derivable are dropped. Per-share and share-count keys are skipped.
    """
    skip_set: Set[str] = set(skip)
    out: Record = {}
    if len(quarters) != 3 or any(q is None for q in quarters):
        return out
    for key, a in annual.items():
        if isinstance(a, dict):
            subs = [q.get(key) if isinstance(q.get(key), dict) else None for q in quarters]  # type: ignore[union-attr]
            if any(s is None for s in subs):
                continue
            nested = compute_q4(a, subs, skip=skip_set)
            if nested:
                out[key] = nested
            continue
        if key in skip_set or key.startswith("_") or not _is_number(a):
            continue
        vals = [q.get(key) for q in quarters]  # type: ignore[union-attr]
        if not all(_is_number(v) for v in vals):
            continue
        out[key] = _clean(a - sum(vals))
    return out


def ytd_to_quarter(
    ytd: Record,
    prior: Sequence[Optional[Record]],
    *,
    skip: Iterable[str] = NON_ADDITIVE_KEYS,
    context: str = "",
) -> Record:
    """
    Single-quarter figures from year-to-date ones: H1 - Q1, 9M - Q1 - Q2.

    prior holds the single-quarter records of the earlier quarters of the same
    fiscal year. Metrics with a missing prior value are not converted.
    """
    skip_set: Set[str] = set(skip)
    out: Record = {}
    missing: List[str] = []
    for key, v in ytd.items():
        if isinstance(v, dict):
            subs = [p.get(key) if p is not None and isinstance(p.get(key), dict) else None for p in prior]
            if any(s is None for s in subs):
                missing.append(key)
                continue
            nested = ytd_to_quarter(v, subs, skip=skip_set, context=context)
            if nested:
                out[key] = nested
            continue
        if key in skip_set or not _is_number(v):
            continue
        vals = [p.get(key) if p is not None else None for p in prior]
        if not all(_is_number(x) for x in vals):
            missing.append(key)
            continue
        out[key] = _clean(v - sum(vals))
    if missing:
        print(f"{context}WARNING: year-to-date values not converted (prior quarter missing): {', '.join(missing)}", flush=True)
    return out


class QuarterStore:
    """
    Records of one data domain keyed by (fiscal year, quarter).

    Quarterly values are merged as they arrive under the store's policy;
    annual and year-to-date values are held back and folded in by finalize().
    """

    def __init__(self, policy: str = PREFER_LATEST, *, label: str = ""):
        if policy not in (KEEP_FIRST, PREFER_LATEST):
            raise ValueError(f"Unknown merge policy: {policy}")
        self.policy = policy
        self.label = label
        self.quarters: Dict[int, Dict[int, Record]] = {}
        self.annual: Dict[int, Record] = {}
        self.ytd: Dict[int, Dict[int, Record]] = {}

    def put(self, fy: int, q: int, values: Record) -> None:
        rec = self.quarters.setdefault(fy, {}).setdefault(q, {})
        merge_record(rec, values, self.policy)

    def fill(self, fy: int, q: int, values: Record) -> None:
        """Merge values into a quarter without overwriting anything already there."""
        merge_record(self.quarters.setdefault(fy, {}).setdefault(q, {}), values, KEEP_FIRST)

    def put_annual(self, fy: int, values: Record) -> None:
        merge_record(self.annual.setdefault(fy, {}), values, self.policy)

    def put_ytd(self, fy: int, q: int, values: Record) -> None:
        merge_record(self.ytd.setdefault(fy, {}).setdefault(q, {}), values, self.policy)

    def get(self, fy: int, q: int) -> Optional[Record]:
        return self.quarters.get(fy, {}).get(q)

    def finalize(self) -> None:
        """
        Convert year-to-date records, then derive Q4 from annual records.
        Derived values only fill metrics no filing reported directly.
        """
        prefix = f"[{self.label}] " if self.label else ""
        for fy in sorted(self.ytd):
            for q in sorted(self.ytd[fy]):
                if q == 1:
                    converted = dict(self.ytd[fy][q])
                else:
                    prior = [self.get(fy, p) for p in range(1, q)]
                    converted = ytd_to_quarter(self.ytd[fy][q], prior, context=f"{prefix}FY{fy} Q{q} ")
                if converted:
                    merge_record(self.quarters.setdefault(fy, {}).setdefault(q, {}), converted, KEEP_FIRST)

        for fy in sorted(self.annual):
            quarters = [self.get(fy, q) for q in (1, 2, 3)]
            if any(q is None for q in quarters):
                print(f"{prefix}WARNING: FY{fy} Q4 not derived (quarters missing)", flush=True)
                continue
            q4 = compute_q4(self.annual[fy], quarters)
            if q4:
                merge_record(self.quarters.setdefault(fy, {}).setdefault(4, {}), q4, KEEP_FIRST)

    def to_json(self) -> Dict[str, Dict[str, Record]]:
        """{"FY2024": {"Q1": {...}}} with years and quarters in ascending order."""
        out: Dict[str, Dict[str, Record]] = {}
        for fy in sorted(self.quarters):
            qs = {q_key(q): self.quarters[fy][q] for q in sorted(self.quarters[fy]) if self.quarters[fy][q]}
            if qs:
                out[fy_key(fy)] = qs
        return out

    @classmethod
    def from_json(cls, data: Dict[str, Dict[str, Record]], policy: str = PREFER_LATEST) -> "QuarterStore":
        store = cls(policy)
        for fk, qs in (data or {}).items():
            for qk, rec in (qs or {}).items():
                store.put(parse_fy_key(fk), parse_q_key(qk), rec)
        return store


def resolve_revenue_shares(segments: QuarterStore, financials: QuarterStore) -> None:
    """
    Turn revenue-share percentages ({"_percentages": {"hpc": 44, ...}}) into
    amounts using the quarter's revenue. Without a revenue the percentages
    are kept as the values.
    """
    for fy, qs in segments.quarters.items():
        for q, rec in qs.items():
            shares = rec.get("_percentages")
            if not isinstance(shares, dict):
                continue
            fin = financials.get(fy, q) or {}
            revenue = fin.get("revenue")
            for platform, pct in shares.items():
                if _is_number(revenue):
                    rec[platform] = to_json_number(round(revenue * pct / 100))
                else:
                    rec[platform] = pct


def write_json(path: Path, data: Any) -> None:
    """Whole-file overwrite; identical data always yields identical bytes."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def read_json(path: Path, default: Any = None) -> Any:
    path = Path(path)
    if not path.exists():
        return default
    return json.loads(path.read_text(encoding="utf-8"))
