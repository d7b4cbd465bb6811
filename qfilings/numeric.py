"""Parsing of financial number text found in filings."""
from __future__ import annotations

import re
from typing import List, Optional

# Placeholders that mean "no value" rather than zero
DASHES = {"-", "—", "–", "−", "\u0097", "&mdash;", "&ndash;", "&#8212;", "&#8211;", "&#151;"}

_STRIP_RE = re.compile(r"[\s $€£¥]+")
_NUMERIC_TOKEN_RE = re.compile(r"^[$\d,.\-()—–−]+$")
_DOLLAR_AMOUNT_RE = re.compile(r"\$\s*([\d,]+(?:\.\d+)?)\s*(billion|million)\b", re.IGNORECASE)
_LINE_NUMBER_RE = re.compile(r"\(\s*(\d[\d,]*(?:\.\d+)?)\s*\)|(\d[\d,]*(?:\.\d+)?)|([—–])")


def parse_number(text: Optional[str]) -> Optional[float]:
    """
    Parse a financial number.

    Handles:
    - '$57,006' -> 57006.0
    - '(1,234)' -> -1234.0 (accounting negative)
    - '—', '-', '&mdash;' -> None (placeholder, not zero)
    - 'n/a' -> None
    """
    if text is None:
        return None

    t = _STRIP_RE.sub("", str(text)).replace("\uff08", "(").replace("\uff09", ")")
    if not t or t in DASHES:
        return None
    if "—" in t or "–" in t or "&mdash;" in t or "&ndash;" in t:
        return None

    neg = False
    if t.startswith("(") or t.endswith(")"):
        neg = True
        t = t.strip("()")

    t = t.replace(",", "")
    if t.startswith("−"):
        t = "-" + t[1:]

    try:
        v = float(t)
    except ValueError:
        return None
    return -v if neg else v


def is_numeric_token(text: str) -> bool:
    """True for cell text made only of digits and number punctuation (not a bare '$')."""
    t = (text or "").replace(" ", "").replace(" ", "")
    if not t or t == "$":
        return False
    return bool(_NUMERIC_TOKEN_RE.match(t))


def to_json_number(v: Optional[float]) -> Optional[float]:
    """Integral floats become ints so JSON output reads 23466 rather than 23466.0."""
    if v is None:
        return None
    if float(v).is_integer():
        return int(v)
    return v


def parse_dollar_amount(text: str) -> Optional[float]:
    """
    Parse the first dollar amount in narrative text into millions.

    '$51.2 billion' -> 51200, '$983 million' -> 983; amounts without a unit are ignored
    """
    m = _DOLLAR_AMOUNT_RE.search(text or "")
    if not m:
        return None
    return dollar_match_to_millions(m.group(1), m.group(2))


def dollar_match_to_millions(amount: str, unit: str) -> Optional[float]:
    try:
        v = float(amount.replace(",", ""))
    except ValueError:
        return None
    if unit.lower() == "billion":
        v *= 1000
    return float(round(v))


def parse_numbers_from_line(line: str) -> List[Optional[float]]:
    """
    Extract the column values of one text line (PDF layout text).

    Parenthesized values are negative; dash placeholders are kept as None so
    that positions still line up with the column headers.
    """
    out: List[Optional[float]] = []
    for m in _LINE_NUMBER_RE.finditer(line or ""):
        neg_txt, pos_txt, dash = m.groups()
        if dash:
            out.append(None)
            continue
        raw = neg_txt if neg_txt is not None else pos_txt
        try:
            v = float(raw.replace(",", ""))
        except ValueError:
            out.append(None)
            continue
        out.append(-v if neg_txt is not None else v)
    return out
