"""News search providers.

Each provider turns a keyword list into HTTP requests for the batch scheduler and
normalizes the returned payloads into :class:`NewsArticle` records:

  1. NewsApiProvider    — newsapi.org ``/v2/everything`` (JSON)
  2. GoogleNewsProvider — Google News RSS search (XML via feedparser)
"""

import re
from datetime import datetime, timezone
from typing import List, Sequence

import feedparser
import requests

from marketpulse.core.http import HttpRequest
from marketpulse.core.logger import logger
from marketpulse.models.datatypes import NewsArticle, parse_timestamp
from marketpulse.providers.base import NewsProvider

_NEWSAPI_URL = "https://newsapi.org/v2/everything"
_GOOGLE_RSS_BASE = "https://news.google.com/rss/search"
_TAG_RE = re.compile(r"<[^>]+>")


# ── NewsApiProvider ───────────────────────────────────────────────────────────

class NewsApiProvider(NewsProvider):
    """NewsAPI.org ``/v2/everything`` provider.

    One request per keyword, newest articles first, English only.
    """

    name = "newsapi"

    def __init__(self, api_key: str) -> None:
        """Args:
            api_key: NewsAPI.org API key.
        """
        self.api_key = api_key

    def build_requests(self, keywords: Sequence[str], page_size: int = 20) -> List[HttpRequest]:
        return [
            HttpRequest(
                url=_NEWSAPI_URL,
                params={
                    "q": keyword,
                    "apiKey": self.api_key,
                    "language": "en",
                    "sortBy": "publishedAt",
                    "pageSize": page_size,
                },
                label=f"newsapi:{keyword}",
            )
            for keyword in keywords
        ]

    def parse(self, response: requests.Response) -> List[NewsArticle]:
        payload = response.json()
        if payload.get("status") != "ok":
            logger.error(
                f"NewsApiProvider: API error status={payload.get('status')} "
                f"code={payload.get('code')} | {payload.get('message', '')}"
            )
            return []

        articles: List[NewsArticle] = []
        for raw in payload.get("articles") or []:
            url = (raw.get("url") or "").strip()
            title = (raw.get("title") or "").strip()
            if not url or not title:
                continue
            try:
                published_at = parse_timestamp(raw.get("publishedAt"))
            except (TypeError, ValueError):
                logger.debug(f"NewsApiProvider: skipped (bad publishedAt): {url}")
                continue
            source = raw.get("source") or {}
            articles.append(NewsArticle(
                source=source.get("name") or "NewsAPI",
                title=title,
                description=(raw.get("description") or "").strip(),
                url=url,
                published_at=published_at,
                content=raw.get("content"),
            ))

        logger.info(f"NewsApiProvider: {len(articles)} articles parsed")
        return articles


# ── GoogleNewsProvider ────────────────────────────────────────────────────────

class GoogleNewsProvider(NewsProvider):
    """Google News RSS provider.

    Queries ``"<keyword> when:1d"`` so the window is filtered server-side.
    """

    name = "google_rss"

    def __init__(self, window: str = "1d", locale: str = "US", max_entries: int = 20) -> None:
        self.window = window
        self.locale = locale
        self.max_entries = max_entries

    def build_requests(self, keywords: Sequence[str], page_size: int = 20) -> List[HttpRequest]:
        # RSS search has no page size parameter; parse() truncates to max_entries.
        return [
            HttpRequest(
                url=_GOOGLE_RSS_BASE,
                params={
                    "q": f"{keyword} when:{self.window}",
                    "hl": f"en-{self.locale}",
                    "gl": self.locale,
                    "ceid": f"{self.locale}:en",
                },
                label=f"google_rss:{keyword}",
            )
            for keyword in keywords
        ]

    def parse(self, response: requests.Response) -> List[NewsArticle]:
        feed = feedparser.parse(response.content)

        if feed.bozo and hasattr(feed, "bozo_exception"):
            logger.warning(
                f"GoogleNewsProvider: RSS parse warning: {feed.bozo_exception} "
                f"| url={response.url}"
            )

        articles: List[NewsArticle] = []
        for entry in feed.entries[:self.max_entries]:
            title = (entry.get("title") or "").strip()
            url = (entry.get("link") or "").strip()
            if not title or not url:
                continue
            pub_parsed = entry.get("published_parsed")
            if not pub_parsed:
                logger.debug(f"GoogleNewsProvider: skipped (no pubDate): {url}")
                continue
            source_raw = entry.get("source", {})
            source = (
                source_raw.get("title", "Google News")
                if isinstance(source_raw, dict)
                else str(source_raw) or "Google News"
            )
            articles.append(NewsArticle(
                source=source,
                title=title,
                description=_TAG_RE.sub(" ", entry.get("summary") or "").strip(),
                url=url,
                published_at=datetime(*pub_parsed[:6], tzinfo=timezone.utc),
            ))

        logger.info(f"GoogleNewsProvider: {len(articles)} entries parsed")
        return articles
