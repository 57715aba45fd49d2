"""Ticker association: which tracked symbols does an article mention?

Matching is done on ``title + " " + description`` upper-cased:

  1. each known symbol as a whole word (``\\bAAPL\\b``)
  2. a fixed company-name table by substring (``"APPLE"`` → ``AAPL``)
  3. optionally, ``$CASHTAG`` mentions anywhere in title, description or content

A symbol is recorded once per article, in first-match order. Articles with no
match keep ``tickers=None``.
"""

import re
from dataclasses import replace
from typing import Dict, Iterable, List, Sequence

from marketpulse.core.logger import logger
from marketpulse.models.datatypes import NewsArticle

# Fixed lookup; no entity resolution beyond this table.
COMPANY_NAMES: Dict[str, str] = {
    "APPLE": "AAPL",
    "MICROSOFT": "MSFT",
    "AMAZON": "AMZN",
    "GOOGLE": "GOOGL",
    "ALPHABET": "GOOGL",
    "FACEBOOK": "META",
    "META PLATFORMS": "META",
    "TESLA": "TSLA",
    "NVIDIA": "NVDA",
}

_CASHTAG_RE = re.compile(r"\$([A-Z]{1,5})\b")


def _symbol_pattern(symbol: str) -> "re.Pattern[str]":
    return re.compile(rf"\b{re.escape(symbol.upper())}\b")


def find_tickers(
    article: NewsArticle,
    patterns: Dict[str, "re.Pattern[str]"],
    include_cashtags: bool = False,
) -> List[str]:
    """Return the symbols ``article`` mentions, each once, in first-match order."""
    search_text = f"{article.title} {article.description}".upper()
    found: List[str] = []

    for symbol, pattern in patterns.items():
        if pattern.search(search_text) and symbol not in found:
            found.append(symbol)

    for company, symbol in COMPANY_NAMES.items():
        if company in search_text and symbol not in found:
            found.append(symbol)

    if include_cashtags:
        # Cashtags are case-sensitive: "$aapl" is not a ticker mention
        raw_text = f"{article.title} {article.description} {article.content or ''}"
        for match in _CASHTAG_RE.finditer(raw_text):
            if match.group(1) not in found:
                found.append(match.group(1))

    return found


def associate(
    articles: Sequence[NewsArticle],
    known_symbols: Iterable[str],
    include_cashtags: bool = False,
) -> List[NewsArticle]:
    """
    Return copies of ``articles`` with ``tickers`` populated.

    Args:
        articles: Articles to tag.
        known_symbols: Tracked symbols matched as whole words.
        include_cashtags: Also tag ``$XYZ`` mentions, tracked or not.

    Returns:
        List[NewsArticle]: Same length and order as ``articles``. Articles with no
        match have ``tickers=None``.
    """
    patterns = {symbol.upper(): _symbol_pattern(symbol) for symbol in known_symbols}
    tagged: List[NewsArticle] = []
    for article in articles:
        found = find_tickers(article, patterns, include_cashtags)
        tagged.append(replace(article, tickers=tuple(found) if found else None))

    n_tagged = sum(1 for a in tagged if a.tickers)
    logger.info(f"associate: tagged={n_tagged}/{len(tagged)} symbols={len(patterns)}")
    return tagged


def group_by_stock(articles: Iterable[NewsArticle]) -> Dict[str, List[NewsArticle]]:
    """
    Invert ticker associations into ``symbol → articles``, newest first.

    An article mentioning N symbols appears in N groups. Articles are frozen,
    so the groups may share instances safely.
    """
    groups: Dict[str, List[NewsArticle]] = {}
    for article in articles:
        for ticker in article.tickers or ():
            groups.setdefault(ticker, []).append(article)

    for ticker in groups:
        groups[ticker].sort(key=lambda a: a.published_at, reverse=True)
    return groups
