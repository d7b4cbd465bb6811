from __future__ import annotations

import json
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from qfilings.companies import Company, company_dir, filings_dir
from qfilings.filings import PRESENTATION, PRESS_RELEASE

SEC_ARCHIVES_BASE = "https://www.sec.gov/Archives/edgar/data"

DELAY_S = 0.5
MAX_RETRIES = 3

_EX99_RE = re.compile(r"EX-99\.1", re.IGNORECASE)
_HREF_RE = re.compile(r'href="([^"]+)"', re.IGNORECASE)
_EX99_HREF_RE = re.compile(r'EX-99\.1[\s\S]*?href="([^"]+?)"', re.IGNORECASE)

# Forms whose document is the earnings press release exhibit
_PRESS_RELEASE_FORMS = {"8-K", "6-K"}


class SecEdgarError(RuntimeError):
    pass


@dataclass(frozen=True)
class FilingRef:
    """One entry of companies/<name>/filings.json."""
    cik: int
    fy: int
    q: int
    form: str
    accession_number: str = ""
    document: str = ""
    url: str = ""            # direct link for documents not on EDGAR (IR site PDFs, presentations)

    @property
    def accession_no_dashes(self) -> str:
        return self.accession_number.replace("-", "")

    @property
    def kind(self) -> str:
        if self.form.upper() in _PRESS_RELEASE_FORMS:
            return PRESS_RELEASE
        if self.form.lower() == PRESENTATION:
            return PRESENTATION
        return self.form.upper()

    @property
    def sec_index_url(self) -> str:
        return f"{SEC_ARCHIVES_BASE}/{self.cik}/{self.accession_no_dashes}/{self.accession_number}-index.htm"

    def sec_doc_url(self, document: Optional[str] = None) -> str:
        if self.url:
            return self.url
        return f"{SEC_ARCHIVES_BASE}/{self.cik}/{self.accession_no_dashes}/{document or self.document}"

    def dest_name(self, document: str) -> str:
        """press-release.htm, 10-Q.pdf, presentation.html ... keeping the source extension."""
        suffix = Path(document.split("?")[0]).suffix.lower() or ".htm"
        return f"{self.kind}{suffix}"


def _sec_user_agent() -> str:
    ua = os.getenv("SEC_USER_AGENT")
    if not ua or "@" not in ua:
        raise SecEdgarError(
            "SEC_USER_AGENT env var must be set and include contact info (e.g., email). "
            'Example: SEC_USER_AGENT="QFilings/0.1 (your.email@domain.com)"'
        )
    return ua


def _session() -> requests.Session:
    s = requests.Session()
    s.headers.update(
        {
            "User-Agent": _sec_user_agent(),
            "Accept-Encoding": "gzip, deflate, br",
            "Accept": "application/json,text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Connection": "keep-alive",
        }
    )
    return s


def _sleep_rate_limit(min_interval_s: float, last_call_ts: List[float]) -> None:
    """Ensure at least min_interval_s seconds between calls."""
    now = time.time()
    if last_call_ts and (now - last_call_ts[0]) < min_interval_s:
        time.sleep(min_interval_s - (now - last_call_ts[0]))
    if last_call_ts:
        last_call_ts[0] = time.time()
    else:
        last_call_ts.append(time.time())


def load_manifest(root: Path, company: Company) -> List[FilingRef]:
    """Read companies/<name>/filings.json: a list of {fy, q, form, accession, document}."""
    path = company_dir(root, company) / "filings.json"
    if not path.exists():
        raise SecEdgarError(f"No filing manifest for {company.name}: {path}")
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise SecEdgarError(f"{path}: expected a JSON list")
    out: List[FilingRef] = []
    for i, rec in enumerate(raw):
        try:
            out.append(
                FilingRef(
                    cik=company.cik,
                    fy=int(str(rec["fy"]).upper().replace("FY", "")),
                    q=int(str(rec["q"]).upper().replace("Q", "")),
                    form=str(rec["form"]),
                    accession_number=str(rec.get("accession") or ""),
                    document=str(rec.get("document") or ""),
                    url=str(rec.get("url") or ""),
                )
            )
        except (KeyError, ValueError) as e:
            raise SecEdgarError(f"{path}: entry {i} is malformed: {e}") from e
    return out


def extract_exhibit_filename(index_html: str) -> Optional[str]:
    """
    EX-99.1 file name from a filing index page: the first href within two
    lines of an "EX-99.1" line, else the first href after "EX-99.1".
    """
    lines = index_html.split("\n")
    for i, line in enumerate(lines):
        if _EX99_RE.search(line):
            window = "\n".join(lines[max(0, i - 2): i + 3])
            m = _HREF_RE.search(window)
            if m:
                return m.group(1).split("/")[-1]
    m = _EX99_HREF_RE.search(index_html)
    if m:
        return m.group(1).split("/")[-1]
    return None


def _get_with_retry(
    s: requests.Session,
    url: str,
    last_ts: List[float],
    *,
    retries: int = MAX_RETRIES,
    delay_s: float = DELAY_S,
    timeout_s: int = 60,
) -> requests.Response:
    """GET with linear backoff (delay_s x attempt); raises after the last attempt."""
    for attempt in range(1, retries + 1):
        _sleep_rate_limit(delay_s, last_ts)
        try:
            r = s.get(url, timeout=timeout_s)
            if r.status_code != 200:
                raise SecEdgarError(f"HTTP {r.status_code} for {url}")
            return r
        except (requests.RequestException, SecEdgarError) as e:
            if attempt == retries:
                raise
            print(f"  retry {attempt}/{retries - 1}: {e}", flush=True)
            time.sleep(delay_s * attempt)
    raise SecEdgarError(f"No attempts made for {url}")


def download_filing(
    s: requests.Session,
    ref: FilingRef,
    dest_dir: Path,
    last_ts: List[float],
    *,
    delay_s: float = DELAY_S,
) -> Optional[Path]:
    """Download one manifest entry. Returns the written path, None when it already exists."""
    document = ref.document
    if not document and not ref.url:
        existing = list(dest_dir.glob(f"{ref.kind}.*")) if dest_dir.exists() else []
        if existing:
            return None
        if ref.kind != PRESS_RELEASE:
            raise SecEdgarError(f"FY{ref.fy} Q{ref.q} {ref.form}: no document name")
        index = _get_with_retry(s, ref.sec_index_url, last_ts, delay_s=delay_s)
        document = extract_exhibit_filename(index.text) or ""
        if not document:
            raise SecEdgarError(f"FY{ref.fy} Q{ref.q}: EX-99.1 not found in filing index")

    dest = dest_dir / ref.dest_name(document or ref.url)
    if dest.exists():
        return None
    r = _get_with_retry(s, ref.sec_doc_url(document), last_ts, delay_s=delay_s, timeout_s=120)
    dest_dir.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(r.content)
    return dest


def download_filings(
    root: Path,
    company: Company,
    *,
    session: Optional[requests.Session] = None,
    delay_s: float = DELAY_S,
) -> Dict[str, Any]:
    """
    Download every manifest entry of a company into filings/FY<year>/Q<n>/.
    Existing files are skipped; failures are collected and the run goes on.
    """
    refs = load_manifest(root, company)
    s = session or _session()
    last_ts: List[float] = []
    base = filings_dir(root, company)
    result: Dict[str, Any] = {"downloaded": 0, "skipped": 0, "errors": []}

    print(f"[{company.name}] {len(refs)} filings in manifest", flush=True)
    for ref in refs:
        tag = f"FY{ref.fy} Q{ref.q} {ref.form}"
        try:
            path = download_filing(s, ref, base / f"FY{ref.fy}" / f"Q{ref.q}", last_ts, delay_s=delay_s)
        except (requests.RequestException, SecEdgarError, OSError) as e:
            msg = f"{tag}: {type(e).__name__}: {e}"
            print(f"[ERR] {msg}", flush=True)
            result["errors"].append(msg)
            continue
        if path is None:
            print(f"[SKIP] {tag} (already downloaded)", flush=True)
            result["skipped"] += 1
        else:
            print(f"[OK] {tag} -> {path.name}", flush=True)
            result["downloaded"] += 1

    print(
        f"[{company.name}] downloaded {result['downloaded']}, skipped {result['skipped']}, "
        f"failed {len(result['errors'])}",
        flush=True,
    )
    for msg in result["errors"]:
        print(f"  - {msg}", flush=True)
    return result
