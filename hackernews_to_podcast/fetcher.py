from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .cleaner import cap_text, extract_article_text, extract_comments_text
from .config import SourceConfig
from .errors import TransientUpstreamError
from .models import Item, ItemContent


logger = logging.getLogger(__name__)


def _build_session(user_agent: str) -> requests.Session:
    retry = Retry(
        total=2,
        connect=2,
        read=1,
        backoff_factor=0.5,
        status_forcelist=(500, 502, 503, 504),
        allowed_methods=frozenset(["GET"]),
    )
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update(
        {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml",
            "Accept-Language": "en-US,en;q=0.9",
        }
    )
    return session


def parse_front_page(html: str, item_url: str, base_url: str) -> List[Item]:
    soup = BeautifulSoup(html or "", "html.parser")
    items: List[Item] = []
    for row in soup.select("tr.athing"):
        item_id = row.get("id", "")
        link = row.select_one(".titleline > a")
        if not item_id or link is None or not link.get("href"):
            continue
        items.append(
            Item(
                id=item_id,
                title=link.get_text(strip=True),
                # Ask HN / Show HN rows link to `item?id=...`
                url=urljoin(base_url, link["href"]),
                discussion_url=f"{item_url}?id={item_id}",
            )
        )
    return items


class HackerNewsFetcher:
    def __init__(self, cfg: SourceConfig, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.session = session or _build_session(cfg.user_agent)

    def list_items(self, date: str, limit: int) -> List[Item]:
        """Top stories of the front page archive for `date`, at most `limit`."""
        url = f"{self.cfg.front_url}?day={date}"
        logger.info("Fetching front page", extra={"date": date, "url": url})
        try:
            resp = self.session.get(url, timeout=self.cfg.timeout)
        except requests.RequestException as e:
            raise TransientUpstreamError(f"front page request failed: {e}") from e
        if resp.status_code != 200:
            raise TransientUpstreamError(f"front page returned HTTP {resp.status_code}")
        items = parse_front_page(resp.text, self.cfg.item_url, self.cfg.front_url)
        if limit > 0:
            items = items[:limit]
        logger.info("Listed stories", extra={"date": date, "count": len(items)})
        return items

    def _get_text(self, url: str) -> str:
        try:
            resp = self.session.get(url, timeout=self.cfg.timeout)
        except requests.RequestException as e:
            logger.warning("Fetch failed", extra={"url": url, "error": str(e)})
            return ""
        if resp.status_code != 200:
            logger.warning("Fetch non-200", extra={"url": url, "status": resp.status_code})
            return ""
        ctype = resp.headers.get("Content-Type", "")
        if ctype and "html" not in ctype and "text" not in ctype:
            logger.info("Skipping non-text body", extra={"url": url, "content_type": ctype})
            return ""
        return resp.text

    def fetch_article(self, item: Item) -> str:
        return extract_article_text(self._get_text(item.url), url=item.url)

    def fetch_comments(self, item: Item) -> str:
        return extract_comments_text(self._get_text(item.discussion_url))

    def fetch_content(self, item: Item, size_cap: int) -> ItemContent:
        # Article and discussion in parallel; both halves fail soft.
        with ThreadPoolExecutor(max_workers=2) as pool:
            article_f = pool.submit(self.fetch_article, item)
            comments_f = pool.submit(self.fetch_comments, item)
            article = self._result_or_empty(article_f, item, "article")
            comments = self._result_or_empty(comments_f, item, "comments")
        return ItemContent(
            title=item.title,
            article=cap_text(article, size_cap),
            comments=cap_text(comments, size_cap),
        )

    def fetch_item_content(self, item: Item, size_cap: int) -> str:
        """Delimited title/article/comments payload; "" if nothing was fetched."""
        content = self.fetch_content(item, size_cap)
        if not content.has_body:
            return ""
        return content.to_payload()

    @staticmethod
    def _result_or_empty(future, item: Item, part: str) -> str:
        try:
            return future.result() or ""
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "Content extraction failed",
                extra={"item_id": item.id, "part": part, "error": str(e)},
            )
            return ""
