from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from qfilings.periods import FiscalCalendar


class CompanyConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Company:
    name: str                      # directory name under companies/
    display_name: str
    ticker: str
    cik: int
    fy_end_month: int = 12
    press_release: str = "press-release.html"
    filing_ext: str = "htm"        # 10-Q / 10-K document extension: "htm" or "pdf"

    @property
    def calendar(self) -> FiscalCalendar:
        return FiscalCalendar(self.fy_end_month)

    def filing_document(self, q: int) -> str:
        """10-K for the fourth quarter, 10-Q otherwise."""
        form = "10-K" if q == 4 else "10-Q"
        return f"{form}.{self.filing_ext}"


COMPANIES: Dict[str, Company] = {
    c.name: c
    for c in [
        Company("alphabet", "Alphabet", "GOOGL", 1652044, press_release="press-release.htm"),
        Company("apple", "Apple", "AAPL", 320193, fy_end_month=9, press_release="press-release.htm"),
        Company("broadcom", "Broadcom", "AVGO", 1730168, fy_end_month=10),
        Company("intel", "Intel", "INTC", 50863),
        Company("meta", "Meta Platforms", "META", 1326801),
        Company("microsoft", "Microsoft", "MSFT", 789019, fy_end_month=6, filing_ext="pdf"),
        Company("nvidia", "NVIDIA", "NVDA", 1045810, fy_end_month=1, filing_ext="pdf"),
        Company("palantir", "Palantir", "PLTR", 1321655),
        Company("tesla", "Tesla", "TSLA", 1318605),
        Company("tsmc", "TSMC", "TSM", 1046179),
    ]
}

# Page configuration defaults; companies/<name>/config.json overrides them
DEFAULT_CONFIG: Dict[str, Any] = {
    "pageYears": 2,
    "chartYears": 4,
    "nextEarningsDate": None,
}


def get_company(name: str) -> Company:
    key = (name or "").strip().lower()
    if key not in COMPANIES:
        raise CompanyConfigError(f"Unknown company: {name!r} (known: {', '.join(sorted(COMPANIES))})")
    return COMPANIES[key]


def parse_company_list(arg: Optional[str]) -> List[Company]:
    """Comma separated names; None or "all" selects every company."""
    if not arg or arg.strip().lower() == "all":
        return [COMPANIES[k] for k in sorted(COMPANIES)]
    return [get_company(n) for n in arg.split(",") if n.strip()]


def company_dir(root: Path, company: Company) -> Path:
    return Path(root) / "companies" / company.name


def data_dir(root: Path, company: Company) -> Path:
    return company_dir(root, company) / "data"


def filings_dir(root: Path, company: Company) -> Path:
    return company_dir(root, company) / "filings"


def load_config(root: Path, company: Company) -> Dict[str, Any]:
    """Read companies/<name>/config.json with defaults for missing keys."""
    cfg = dict(DEFAULT_CONFIG)
    path = company_dir(root, company) / "config.json"
    if not path.exists():
        return cfg
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise CompanyConfigError(f"{path}: invalid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise CompanyConfigError(f"{path}: expected a JSON object")

    for key in ("pageYears", "chartYears"):
        if key in raw and (not isinstance(raw[key], int) or raw[key] < 1):
            raise CompanyConfigError(f"{path}: {key} must be a positive integer")
    cfg.update(raw)
    return cfg
