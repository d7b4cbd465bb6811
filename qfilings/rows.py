"""
Row classification for financial statement tables.

Each filer marks up label and value cells differently, and the markup changed
over the years. A strategy reads one <tr> and returns the row's label, its
numeric cell tokens and the row kind. Dash placeholders stay in the token list
as "—" so positions line up with the column header.

  inline   modern EDGAR/press-release markup: style="text-align:right|left", colspan
  legacy   older EDGAR markup: ALIGN="right" on <td> or an inner <p>, VALIGN="top"
           and margin-left label cells, 1pt separator cells
  gnw      GlobeNewswire press releases: gnw_align_* / gnw_padding_left_none classes
  matrix   column-matrix tables without alignment hints: every numeric cell
           after the label is a column
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from qfilings.numeric import DASHES, is_numeric_token

_WS_RE = re.compile(r"\s+")
_LABEL_PUNCT_RE = re.compile(r"^[$\d,.\-()\s—–−%]+$")
_FONT_SIZE_RE = re.compile(r"font-size:\s*([\d.]+)pt")
_OPEN_PAREN_RE = re.compile(r"^\(\$?[\d,.]+$")

ROW_LABEL = "label"
ROW_SECTION = "section"
ROW_SUBTOTAL = "subtotal"
ROW_EMPTY = "empty"


@dataclass
class ExtractedRow:
    """One table row reduced to its label and raw numeric tokens."""
    label: str
    values: List[str] = field(default_factory=list)
    kind: str = ROW_EMPTY          # "label" | "section" | "subtotal" | "empty"
    cells: List[str] = field(default_factory=list)  # all non-empty cell texts, in order


def clean_label(s: str) -> str:
    s = (s or "").replace(" ", " ").replace("’", "'").replace("​", "")
    return _WS_RE.sub(" ", s).strip()


def _value_text(cell: Tag) -> str:
    return _WS_RE.sub("", cell.get_text("", strip=True).replace(" ", ""))


def _style(tag: Optional[Tag]) -> str:
    if tag is None:
        return ""
    return str(tag.get("style") or "").lower().replace(" ", "")


def _attr(tag: Optional[Tag], name: str) -> str:
    if tag is None:
        return ""
    return str(tag.get(name) or "").lower().strip()


def _classes(tag: Tag) -> str:
    cls = tag.get("class") or []
    if isinstance(cls, str):
        return cls
    return " ".join(cls)


def _is_label_text(text: str) -> bool:
    return bool(text) and text != "$" and not _LABEL_PUNCT_RE.match(text)


def _is_value_token(text: str) -> bool:
    if not text or text == "$" or text in DASHES:
        return False
    if "—" in text or "–" in text:
        return False
    return any(ch.isdigit() for ch in text)


def _is_placeholder(text: str) -> bool:
    """A dash standing for "no amount" in a value column (also "$—")."""
    t = text.lstrip("$")
    return t in DASHES


def _push_value(values: List[str], raw: str) -> None:
    """
    Append a value token; a lone ')' closes a '(66' split across two cells.
    Dash placeholders are kept as "—" so positions line up with the header.
    """
    if raw.startswith(")") and values and _OPEN_PAREN_RE.match(values[-1]):
        values[-1] += ")"
        return
    if _is_placeholder(raw):
        values.append("—")
    elif _is_value_token(raw):
        values.append(raw)


def _cells(tr: Tag) -> List[Tag]:
    cells = [c for c in tr.find_all(["td", "th"], recursive=False)]
    return [c for c in cells if "display:none" not in _style(c)]


def _fallback_label(cells: List[Tag], skip: Callable[[Tag], bool] = lambda c: False) -> str:
    for c in cells:
        if skip(c):
            continue
        text = clean_label(c.get_text(" ", strip=True))
        if _is_label_text(text):
            return text
    return ""


# ----------------------------
# Strategies
# ----------------------------

def _inline_row(cells: List[Tag], *, label_colspan: int = 2) -> Tuple[str, List[str]]:
    label = ""
    values: List[str] = []
    for c in cells:
        text = clean_label(c.get_text(" ", strip=True))
        st = _style(c)
        try:
            colspan = int(str(c.get("colspan") or "1"))
        except ValueError:
            colspan = 1
        if not label and ("text-align:left" in st or colspan >= label_colspan) and _is_label_text(text):
            label = text
            continue
        raw = _value_text(c)
        if "text-align:right" in st or is_numeric_token(raw):
            _push_value(values, raw)
    if not label:
        label = _fallback_label(cells)
    return label, values


def _legacy_row(cells: List[Tag]) -> Tuple[str, List[str]]:
    label = ""
    values: List[str] = []
    for c in cells:
        p = c.find("p")
        td_style, p_style = _style(c), _style(p)
        td_align, p_align = _attr(c, "align"), _attr(p, "align")
        text = clean_label(c.get_text(" ", strip=True))

        is_value_cell = (
            ("text-align:center" in td_style and "text-align:right" in p_style)
            or "text-align:right" in td_style
            or td_align == "right"
            or p_align == "right"
            or "text-align:right" in p_style
        )
        if is_value_cell:
            fs = _FONT_SIZE_RE.search(p_style) or _FONT_SIZE_RE.search(td_style)
            if fs and float(fs.group(1)) <= 1:
                continue
            _push_value(values, _value_text(c))
            continue

        is_label_cell = (
            "text-align:left" in td_style
            or td_align == "left"
            or "text-align:left" in p_style
            or p_align == "left"
            or _attr(c, "valign") == "top"
            or "margin-left" in p_style
        )
        if not label and is_label_cell and _is_label_text(text) and len(text) > 1:
            label = text

    if not label:
        def _right(c: Tag) -> bool:
            p = c.find("p")
            return _attr(p, "align") == "right" or "text-align:right" in _style(p)

        label = _fallback_label(cells, skip=_right)
    return label, values


def _gnw_row(cells: List[Tag]) -> Tuple[str, List[str]]:
    label = ""
    values: List[str] = []
    for c in cells:
        st, cls = _style(c), _classes(c)
        text = clean_label(c.get_text(" ", strip=True))
        right = "text-align:right" in st or "gnw_align_right" in cls
        pad0 = "padding-left:0" in st or "gnw_padding_left_none" in cls
        left = "text-align:left" in st or "gnw_align_left" in cls
        if right and pad0:
            _push_value(values, _value_text(c))
            continue
        if not label and left and _is_label_text(text):
            label = text
    if not label:
        label = _fallback_label(cells)
    return label, values


def _matrix_row(cells: List[Tag]) -> Tuple[str, List[str]]:
    label = ""
    values: List[str] = []
    for c in cells:
        raw = _value_text(c)
        if not raw or raw == "$" or raw == "%":
            continue
        if raw in DASHES or raw in {"—", "–"}:
            if label:
                values.append("—")
            continue
        if is_numeric_token(raw):
            _push_value(values, raw)
            continue
        if not label:
            label = clean_label(c.get_text(" ", strip=True))
    return label, values


ROW_STRATEGIES: Dict[str, Callable[[List[Tag]], Tuple[str, List[str]]]] = {
    "inline": _inline_row,
    "legacy": _legacy_row,
    "gnw": _gnw_row,
    "matrix": _matrix_row,
}


def classify_row(tr: Tag, strategy: str = "inline") -> ExtractedRow:
    """Reduce one <tr> to an ExtractedRow using the named markup strategy."""
    if strategy not in ROW_STRATEGIES:
        raise ValueError(f"Unknown row strategy: {strategy}")
    cells = _cells(tr)
    texts = [clean_label(c.get_text(" ", strip=True)) for c in cells]
    label, values = ROW_STRATEGIES[strategy](cells)

    if label and values:
        kind = ROW_LABEL
    elif label:
        kind = ROW_SECTION
    elif any(v != "—" for v in values):
        kind = ROW_SUBTOTAL
    else:
        kind = ROW_EMPTY
    return ExtractedRow(label=label, values=values, kind=kind, cells=[t for t in texts if t])


def extract_rows(table_html: str, strategy: str = "inline") -> List[ExtractedRow]:
    """Classify every row of a located table, skipping empty rows."""
    soup = BeautifulSoup(table_html or "", "lxml")
    out: List[ExtractedRow] = []
    for tr in soup.find_all("tr"):
        row = classify_row(tr, strategy)
        if row.kind != ROW_EMPTY:
            out.append(row)
    return out
