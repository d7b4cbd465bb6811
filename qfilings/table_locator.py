"""
Locate financial statement tables inside raw filing HTML.

Filings nest layout tables inside statement tables (and the reverse), and the
statement title sits either inside the table's first rows (EDGAR) or in a
paragraph just above it (press-release services). Locating works on the raw
HTML string with a depth counter so that the returned substring is always a
balanced <table>...</table> element.

Dependencies:
  pip install beautifulsoup4 lxml
"""

from __future__ import annotations

import re
from typing import Callable, Iterator, List, Optional, Sequence

from bs4 import BeautifulSoup

_TABLE_OPEN_RE = re.compile(r"<table[\s>]", re.IGNORECASE)
_TABLE_TAG_RE = re.compile(r"<(/?)table[\s>]", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")


def _clean_text(s: str) -> str:
    return _WS_RE.sub(" ", (s or "").replace(" ", " ")).strip()


def _balanced_end(html: str, start: int) -> Optional[int]:
    """Return the offset just past the </table> that closes the table opened at start."""
    depth = 0
    for m in _TABLE_TAG_RE.finditer(html, start):
        if m.group(1):
            depth -= 1
            if depth == 0:
                close = html.find(">", m.start())
                return close + 1 if close != -1 else None
        else:
            depth += 1
    return None


def _table_start_for_offset(html: str, offset: int) -> int:
    """Table start for a title at offset: the open enclosing table, else the next one."""
    before = html[:offset].lower()
    last_open = before.rfind("<table")
    last_close = before.rfind("</table")
    if last_open != -1 and last_open > last_close:
        return last_open
    m = _TABLE_OPEN_RE.search(html, offset)
    return m.start() if m else -1


def find_table_html(
    html: str,
    title: str,
    *,
    accept: Optional[Callable[[str], bool]] = None,
) -> Optional[str]:
    """
    Return the <table> element associated with a title, or None.

    The title is matched case-insensitively. When `accept` is given, later
    occurrences of the title are tried until a table passes it (tables of
    contents repeat statement titles before the statements themselves).
    """
    if not html or not title:
        return None

    needle = re.compile(re.escape(title), re.IGNORECASE)
    m = needle.search(html)
    while m is not None:
        start = _table_start_for_offset(html, m.start())
        if start == -1:
            return None
        end = _balanced_end(html, start)
        if end is None:
            return None
        table = html[start:end]
        if accept is None or accept(table):
            return table
        m = needle.search(html, max(end, m.end()))
    return None


def iter_tables(html: str) -> Iterator[str]:
    """Yield every top-level balanced <table> element in document order."""
    pos = 0
    while True:
        m = _TABLE_OPEN_RE.search(html or "", pos)
        if not m:
            return
        end = _balanced_end(html, m.start())
        if end is None:
            return
        yield html[m.start():end]
        pos = end


def table_text(table_html: str) -> str:
    soup = BeautifulSoup(table_html, "lxml")
    return _clean_text(soup.get_text(" ", strip=True))


def table_row_labels(table_html: str) -> List[str]:
    """First non-empty cell text of every row."""
    soup = BeautifulSoup(table_html, "lxml")
    labels: List[str] = []
    for tr in soup.find_all("tr"):
        for td in tr.find_all(["td", "th"]):
            txt = _clean_text(td.get_text(" ", strip=True))
            if txt:
                labels.append(txt)
                break
    return labels


def find_table_containing(html: str, texts: Sequence[str]) -> Optional[str]:
    """First table whose text contains every string in texts."""
    for table in iter_tables(html):
        txt = table_text(table)
        if all(t in txt for t in texts):
            return table
    return None


def find_table_with_rows(
    html: str,
    first: re.Pattern,
    followed_by: Sequence[re.Pattern],
) -> Optional[str]:
    """
    First table with a row label matching `first` and a later row label
    matching any of `followed_by`.

    Income statements are recognized this way ("Revenues" then "Costs and
    expenses"), since their titles vary across years.
    """
    for table in iter_tables(html):
        seen_first = False
        for label in table_row_labels(table):
            if not seen_first:
                seen_first = bool(first.search(label))
                continue
            if any(p.search(label) for p in followed_by):
                return table
    return None


def best_scoring_table(
    html: str,
    scorer: Callable[[str], int],
    *,
    min_score: int = 1,
) -> Optional[str]:
    """Highest-scoring table text by scorer(table_text); None below min_score."""
    best: Optional[str] = None
    best_score = min_score - 1
    for table in iter_tables(html):
        score = scorer(table_text(table))
        if score > best_score:
            best, best_score = table, score
    return best
