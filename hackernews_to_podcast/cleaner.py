from __future__ import annotations

import logging
import re
from typing import List, Optional

import trafilatura
from bs4 import BeautifulSoup


logger = logging.getLogger(__name__)


_BLANK_RUN = re.compile(r"\n{3,}")
_SPACE_RUN = re.compile(r"[ \t ]+")


def normalize_whitespace(text: str) -> str:
    lines = [_SPACE_RUN.sub(" ", ln).strip() for ln in text.splitlines()]
    return _BLANK_RUN.sub("\n\n", "\n".join(lines)).strip()


def cap_text(text: str, limit: int) -> str:
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit]


def html_to_text(html: str) -> str:
    """Visible text of an HTML fragment, one block per line."""
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup.find_all(["script", "style", "noscript", "img", "figure", "svg"]):
        tag.decompose()
    # Unwrap links, keep text
    for a in soup.find_all("a"):
        a.replace_with(a.get_text(" ", strip=True))
    return normalize_whitespace(soup.get_text("\n", strip=True))


def extract_article_text(page_html: str, url: Optional[str] = None) -> str:
    """Main readable text of an article page.

    trafilatura first; if it finds nothing (short pages, SPAs) fall back to
    the paragraph-ish blocks of the page.
    """
    if not page_html:
        return ""
    try:
        extracted = trafilatura.extract(page_html, url=url, include_comments=False, include_tables=False)
    except Exception as e:  # noqa: BLE001
        logger.info("trafilatura extraction failed", extra={"url": url, "error": str(e)})
        extracted = None
    if extracted and extracted.strip():
        return normalize_whitespace(extracted)

    soup = BeautifulSoup(page_html, "html.parser")
    for tag in soup.find_all(["script", "style", "noscript", "nav", "header", "footer", "aside"]):
        tag.decompose()
    parts: List[str] = []
    for el in soup.find_all(["h1", "h2", "h3", "p", "li", "blockquote", "pre"]):
        t = el.get_text(" ", strip=True)
        if t:
            parts.append(t)
    if not parts:
        return normalize_whitespace(soup.get_text("\n", strip=True))
    return normalize_whitespace("\n\n".join(parts))


def extract_comments_text(page_html: str) -> str:
    """Discussion text of a Hacker News item page (the `.comment-tree` table)."""
    if not page_html:
        return ""
    soup = BeautifulSoup(page_html, "html.parser")
    tree = soup.select_one(".comment-tree")
    if tree is None:
        return ""
    comments: List[str] = []
    for row in tree.select("tr.athing.comtr"):
        body = row.select_one(".commtext")
        if body is None:
            continue
        # drop the "reply" links inside the comment body
        for reply in body.select(".reply"):
            reply.decompose()
        author = row.select_one(".hnuser")
        text = body.get_text(" ", strip=True)
        if not text:
            continue
        comments.append(f"{author.get_text(strip=True)}: {text}" if author else text)
    if not comments:
        return html_to_text(str(tree))
    return "\n\n".join(comments)
