"""
Walk the downloaded filings of one company:

  companies/<name>/filings/FY2024/Q2/press-release.htm
                                    /10-Q.htm | 10-Q.pdf
                                    /presentation.html
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Tuple

from qfilings.companies import Company, filings_dir
from qfilings.documents import hidden_text_blocks, read_html, read_text

_FY_DIR_RE = re.compile(r"^FY(\d{4})$")
_Q_DIR_RE = re.compile(r"^Q([1-4])$")

# Document kinds
PRESS_RELEASE = "press-release"
FILING = "filing"              # 10-Q for Q1-Q3, 10-K for Q4
PRESENTATION = "presentation"


@dataclass(frozen=True)
class Filing:
    company: Company
    fy: int
    q: int
    folder: Path

    @property
    def label(self) -> str:
        return f"FY{self.fy} Q{self.q}"

    def path(self, kind: str) -> Optional[Path]:
        """Path of a document kind in this quarter's folder, None when it was not downloaded."""
        if kind == PRESS_RELEASE:
            names = [self.company.press_release, "press-release.htm", "press-release.html"]
        elif kind == FILING:
            names = [self.company.filing_document(self.q)]
        elif kind == PRESENTATION:
            names = ["presentation.html", "presentation.htm"]
        else:
            raise ValueError(f"Unknown document kind: {kind}")
        for n in names:
            p = self.folder / n
            if p.exists():
                return p
        return None

    def html(self, kind: str) -> Optional[str]:
        p = self.path(kind)
        return _read_html_cached(p, *_stamp(p)) if p is not None else None

    def text(self, kind: str) -> Optional[str]:
        """Flattened text (HTML) or page text (PDF)."""
        p = self.path(kind)
        return _read_text_cached(p, *_stamp(p)) if p is not None else None

    def hidden_blocks(self, kind: str = PRESENTATION) -> List[str]:
        html = self.html(kind)
        return hidden_text_blocks(html) if html else []

    @property
    def is_pdf(self) -> bool:
        p = self.path(FILING)
        return p is not None and p.suffix.lower() == ".pdf"


def _stamp(path: Path) -> Tuple[int, int]:
    st = path.stat()
    return st.st_mtime_ns, st.st_size


# Every domain reads the same documents; keep the last few parsed.
# Keyed on modification time and size so a re-downloaded file is read again.
@lru_cache(maxsize=8)
def _read_html_cached(path: Path, mtime_ns: int, size: int) -> str:
    return read_html(path)


@lru_cache(maxsize=8)
def _read_text_cached(path: Path, mtime_ns: int, size: int) -> str:
    return read_text(path)


def iter_filings(root: Path, company: Company) -> List[Filing]:
    """Every FY<year>/Q<n> folder of the company, oldest first."""
    base = filings_dir(root, company)
    if not base.exists():
        return []
    out: List[Filing] = []
    for fy_dir in base.iterdir():
        fm = _FY_DIR_RE.match(fy_dir.name)
        if not fm or not fy_dir.is_dir():
            continue
        for q_dir in fy_dir.iterdir():
            qm = _Q_DIR_RE.match(q_dir.name)
            if not qm or not q_dir.is_dir():
                continue
            out.append(Filing(company=company, fy=int(fm.group(1)), q=int(qm.group(1)), folder=q_dir))
    out.sort(key=lambda f: (f.fy, f.q))
    return out
