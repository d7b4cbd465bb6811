"""
Command line entry point:

  python -m qfilings.pipeline download --companies alphabet,intel
  python -m qfilings.pipeline extract
  python -m qfilings.pipeline validate
  python -m qfilings.pipeline aggregate      (alias: site)
  python -m qfilings.pipeline all
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from qfilings.companies import Company, parse_company_list
from qfilings.extract import extract_company
from qfilings.sec_edgar import _sec_user_agent, download_filings
from qfilings.site import write_site
from qfilings.validate import validate_company

DOWNLOAD = "download"
EXTRACT = "extract"
VALIDATE = "validate"
AGGREGATE = "aggregate"
SITE = "site"
ALL = "all"

STAGES = [DOWNLOAD, EXTRACT, VALIDATE, AGGREGATE]
COMMANDS = STAGES + [SITE, ALL]


def _stages_for(command: str) -> List[str]:
    if command == ALL:
        return list(STAGES)
    if command == SITE:
        return [AGGREGATE]
    if command not in STAGES:
        raise ValueError(f"Unknown command: {command}")
    return [command]


def _summary(result: Dict[str, Any]) -> Dict[str, Any]:
    """Stage result for the run report: counts instead of lists and nested records."""
    out: Dict[str, Any] = {}
    for k, v in result.items():
        if isinstance(v, list) or (isinstance(v, dict) and not all(isinstance(x, int) for x in v.values())):
            out[k] = len(v)
        else:
            out[k] = v
    return out


def run_pipeline(
    *,
    command: str,
    companies: List[Company],
    root: Path | str = Path("."),
    docs_dir: Optional[Path | str] = None,
    generated_at: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Run the selected stages for every company. A failing company is recorded
    in run_report.json and the run continues with the next one.
    """
    root = Path(root).expanduser().resolve()
    docs = Path(docs_dir).expanduser().resolve() if docs_dir else root / "docs"
    stages = _stages_for(command)
    if DOWNLOAD in stages:
        _sec_user_agent()

    handlers: Dict[str, Callable[[Company], Dict[str, Any]]] = {
        DOWNLOAD: lambda c: download_filings(root, c),
        EXTRACT: lambda c: extract_company(root, c),
        VALIDATE: lambda c: validate_company(root, c),
        AGGREGATE: lambda c: write_site(root, c, docs_dir=docs, generated_at=generated_at),
    }

    report: Dict[str, Any] = {"command": command, "companies": {}}
    for company in companies:
        per: Dict[str, Any] = {"ok": False, "errors": [], "stages": {}}
        report["companies"][company.name] = per
        try:
            print(f"[{company.name}] start ({', '.join(stages)})", flush=True)
            for stage in stages:
                result = handlers[stage](company)
                per["stages"][stage] = _summary(result)
                per["errors"].extend(result.get("errors", []))
            per["ok"] = True
            print(f"[{company.name}] done", flush=True)
        except Exception as e:
            per["errors"].append(f"{type(e).__name__}: {e}")
            print(f"[{company.name}] ERROR: {type(e).__name__}: {e}", flush=True)

    (root / "run_report.json").write_text(json.dumps(report, indent=2), encoding="utf-8")
    failed = [n for n, per in report["companies"].items() if not per["ok"]]
    if failed:
        print(f"Failed: {', '.join(failed)}", flush=True)
    return report


def _parse_args(argv: Optional[List[str]] = None) -> Dict[str, Any]:
    import argparse

    p = argparse.ArgumentParser(description="Download, extract and publish quarterly filing data.")
    p.add_argument("command", choices=COMMANDS)
    p.add_argument("--companies", default="all", help="Comma-separated company names, e.g. alphabet,intel (default: all)")
    p.add_argument("--root", default=".", help="Repository root holding companies/")
    p.add_argument("--docs", default=None, help="Site output directory (default: <root>/docs)")
    args = p.parse_args(argv)
    return {
        "command": args.command,
        "companies": parse_company_list(args.companies),
        "root": Path(args.root),
        "docs_dir": Path(args.docs) if args.docs else None,
    }


def main(argv: Optional[List[str]] = None) -> int:
    cfg = _parse_args(argv)
    report = run_pipeline(**cfg)
    return 0 if all(per["ok"] for per in report["companies"].values()) else 1


if __name__ == "__main__":
    raise SystemExit(main())
