"""
Static site output:

  docs/<company>/data.json
  docs/<company>/quarters/FY2024Q2/data.json
  docs/<company>/quarters/FY2024Q2/index.html
"""
from __future__ import annotations

import html
from pathlib import Path
from typing import Any, Dict, Optional

from qfilings.aggregate import build_dataset, quarter_pages
from qfilings.companies import Company, load_config
from qfilings.reconciliation import write_json

TEMPLATE_NAME = "template.html"

# Used when docs/<company>/quarters/template.html does not exist
DEFAULT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{{COMPANY}} {{QUARTER_LABEL}}</title>
  <meta property="og:title" content="{{COMPANY}} {{QUARTER_LABEL}}">
  <link rel="stylesheet" href="../../../css/style.css">
</head>
<body>
  <nav class="quarter-nav">
    <a href="#" id="prevLink" class="disabled">&larr;</a>
    <span class="current" id="currentLabel">{{QUARTER_LABEL}}</span>
    <a href="#" id="nextLink" class="disabled">&rarr;</a>
  </nav>
  <div class="container" id="mainContent" data-quarter="{{QUARTER_DIR}}"></div>
  <script src="../../../js/quarter-detail.js"></script>
</body>
</html>
"""


def quarter_dir_name(entry: Dict[str, Any]) -> str:
    return f"FY{entry['fy']}Q{entry['q']}"


def render_page(template: str, entry: Dict[str, Any], company: Company) -> str:
    return (
        template.replace("{{QUARTER_LABEL}}", entry["label"])
        .replace("{{QUARTER_DIR}}", quarter_dir_name(entry))
        .replace("{{COMPANY}}", html.escape(company.display_name))
    )


def write_site(
    root: Path,
    company: Company,
    *,
    docs_dir: Optional[Path] = None,
    generated_at: Optional[str] = None,
) -> Dict[str, Any]:
    """Regenerate the company's site files wholesale. Returns a small report."""
    cfg = load_config(root, company)
    dataset = build_dataset(root, company, config=cfg, generated_at=generated_at)
    out_dir = Path(docs_dir if docs_dir is not None else Path(root) / "docs") / company.name
    quarters_dir = out_dir / "quarters"

    write_json(out_dir / "data.json", dataset)
    print(f"[{company.name}] wrote {out_dir / 'data.json'} ({len(dataset['quarters'])} quarters)", flush=True)

    template_path = quarters_dir / TEMPLATE_NAME
    template = template_path.read_text(encoding="utf-8") if template_path.exists() else DEFAULT_TEMPLATE

    pages = 0
    for entry, page in quarter_pages(dataset, chart_quarters=int(cfg["chartYears"]) * 4):
        qdir = quarters_dir / quarter_dir_name(entry)
        write_json(qdir / "data.json", page)
        (qdir / "index.html").write_text(render_page(template, entry, company), encoding="utf-8")
        pages += 1
    print(
        f"[{company.name}] pageYears={cfg['pageYears']} ({pages} pages), chartYears={cfg['chartYears']}",
        flush=True,
    )
    return {"quarters": len(dataset["quarters"]), "pages": pages}
