"""Read downloaded filing documents: raw HTML, flattened text and PDF text."""
from __future__ import annotations

import re
from pathlib import Path
from typing import List

import fitz  # pymupdf
from bs4 import BeautifulSoup

_WS_RE = re.compile(r"\s+")
_MANY_NL_RE = re.compile(r"\n{3,}")
_SPACES_RE = re.compile(r"[ \t]+")


def read_html(path: Path) -> str:
    # Older EDGAR documents are not always valid UTF-8
    return Path(path).read_text(encoding="utf-8", errors="replace")


def read_pdf_text(path: Path) -> str:
    """Plain text of every page, pages joined by newlines."""
    doc = fitz.open(str(path))
    try:
        pages = [page.get_text() for page in doc]
    finally:
        doc.close()
    return "\n".join(pages)


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html or "", "lxml")
    for tag in soup(["script", "style"]):
        tag.decompose()
    text = soup.get_text(separator="\n")
    text = _MANY_NL_RE.sub("\n\n", text)
    text = _SPACES_RE.sub(" ", text)
    return text.strip()


def read_text(path: Path) -> str:
    """Text of a PDF, or the flattened text of an HTML document."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".pdf":
        return read_pdf_text(path)
    if suffix in (".htm", ".html"):
        return html_to_text(read_html(path))
    return path.read_text(encoding="utf-8", errors="replace")


def hidden_text_blocks(html: str, *, min_length: int = 20) -> List[str]:
    """
    Slide decks filed as HTML (TSMC presentations) are images plus their
    figures repeated as 1pt white text. Return those text runs, whitespace
    collapsed, in document order.
    """
    soup = BeautifulSoup(html or "", "lxml")
    blocks: List[str] = []
    for el in soup.find_all(["font", "p"]):
        style = str(el.get("style") or "")
        if "1pt" not in style or ("white" not in style.lower() and "#ffffff" not in style.lower()):
            continue
        text = _WS_RE.sub(" ", el.get_text(" ", strip=True)).strip()
        if len(text) > min_length:
            blocks.append(text)
    return blocks
