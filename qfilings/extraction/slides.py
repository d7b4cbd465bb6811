"""
Statements laid out as text with one column per quarter.

Tesla's update deck carries its statement of operations as a text slide
rather than a table:

  Q2-2023 Q3-2023 Q4-2023 Q1-2024 Q2-2024 YoY
  REVENUES
  Automotive sales 20,419 18,582 20,630 16,460 18,530 -9%
  ...
  Total revenues 24,927 23,350 25,167 21,301 25,500 2%

Every labelled quarter is read. The filing's own quarter becomes the
extraction's values; the earlier quarters go to other_periods.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

from qfilings.extraction.core import TableExtraction
from qfilings.mappings import SlideSpec
from qfilings.numeric import to_json_number
from qfilings.periods import parse_quarter_labels

_WS_RE = re.compile(r"\s+")
_TOKEN_RE = re.compile(r"\((\d[\d,]*(?:\.\d+)?)\)|(\d[\d,]*(?:\.\d+)?)|([—–])")
_WORD_RE = re.compile(r"[A-Za-z]{3,}")


def slide_text(html: str, block_texts: Sequence[str]) -> Optional[str]:
    """Longest <font> text (older decks: <p>) holding every block text, whitespace collapsed."""
    soup = BeautifulSoup(html or "", "lxml")
    for tag in ("font", "p"):
        best: Optional[str] = None
        for el in soup.find_all(tag):
            text = _WS_RE.sub(" ", el.get_text(" ").replace("\xa0", " ")).strip()
            if all(t in text for t in block_texts) and (best is None or len(text) > len(best)):
                best = text
        if best:
            return best
    return None


def numbers_after(text: str, start: int, count: int) -> Optional[List[Optional[float]]]:
    """
    The `count` column values following offset start. Reading stops at the
    next word (the next row's label); "(1)" footnote markers are skipped and
    dashes read as None. None when fewer than `count` values follow.
    """
    out: List[Optional[float]] = []
    pos = start
    for m in _TOKEN_RE.finditer(text, start):
        if any(w != "YoY" for w in _WORD_RE.findall(text, pos, m.start())):
            break
        pos = m.end()
        neg, num, dash = m.groups()
        if neg is not None and len(neg) == 1:
            continue
        if dash:
            out.append(None)
        else:
            v = float((neg or num).replace(",", ""))
            out.append(-v if neg is not None else v)
        if len(out) == count:
            return out
    return None


def extract_quarter_slide(
    html: str,
    spec: SlideSpec,
    *,
    target: Optional[Tuple[int, int]] = None,
) -> Optional[TableExtraction]:
    """
    Read a quarter-column slide. target is the filing's (fy, q); when the
    slide has no such column the latest quarter is used.
    """
    text = slide_text(html, spec.block_texts)
    if text is None:
        return None
    head_end = text.find(spec.header_end)
    quarters = parse_quarter_labels(text[:head_end] if head_end > 0 else text[:200])
    if not quarters:
        return None

    columns: Dict[Tuple[int, int], Dict[str, Any]] = {}
    for r in spec.rules:
        start = 0
        if r.after is not None:
            am = r.after.search(text)
            if am is None:
                continue
            start = am.start()
        m = r.label.search(text, start)
        if not m:
            continue
        nums = numbers_after(text, m.end(), len(quarters))
        if nums is None:
            continue
        for period, v in zip(quarters, nums):
            if v is not None:
                columns.setdefault(period, {}).setdefault(r.key, to_json_number(v))

    if not columns:
        return None
    current = target if target in columns else max(columns)
    values = columns.pop(current)
    return TableExtraction(values=values, period=current, other_periods=columns)
