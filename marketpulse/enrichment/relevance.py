"""Deduplication and relevance filtering for fetched news."""

from dataclasses import replace
from typing import Iterable, List, Set

from marketpulse.core.logger import logger
from marketpulse.models.datatypes import NewsArticle

RELEVANCE_THRESHOLD = 0.2

_STOCK_WEIGHT = 0.3
_MARKET_WEIGHT = 0.2
_TICKER_WEIGHT = 0.5


def dedupe_articles(articles: Iterable[NewsArticle]) -> List[NewsArticle]:
    """Drop later articles whose ``url`` was already seen. First-seen wins; order is kept."""
    seen: Set[str] = set()
    unique: List[NewsArticle] = []
    dropped = 0
    for article in articles:
        if article.url in seen:
            dropped += 1
            continue
        seen.add(article.url)
        unique.append(article)

    if dropped:
        logger.info(f"dedupe_articles: kept={len(unique)} dropped={dropped}")
    return unique


def relevance_score(article: NewsArticle) -> float:
    """Heuristic relevance in ``[0, 1]`` from title keywords and ticker presence."""
    title = article.title.lower()
    score = 0.0
    if "stock" in title:
        score += _STOCK_WEIGHT
    if "market" in title:
        score += _MARKET_WEIGHT
    if article.tickers:
        score += _TICKER_WEIGHT
    return min(1.0, round(score, 10))


def score_relevance(articles: Iterable[NewsArticle]) -> List[NewsArticle]:
    return [replace(a, relevance_score=relevance_score(a)) for a in articles]


def is_relevant(article: NewsArticle, threshold: float = RELEVANCE_THRESHOLD) -> bool:
    """
    An article passes when its score reaches ``threshold`` OR it has any ticker.

    With the default weights a ticker alone already scores 0.5, so the ticker
    clause only matters for thresholds above 0.5. It is kept as an explicit
    policy so raising the threshold never drops ticker-tagged articles.
    """
    score = article.relevance_score
    if score is None:
        score = relevance_score(article)
    return score >= threshold or bool(article.tickers)


def filter_relevant(
    articles: Iterable[NewsArticle],
    threshold: float = RELEVANCE_THRESHOLD,
) -> List[NewsArticle]:
    articles = list(articles)
    kept = [a for a in articles if is_relevant(a, threshold)]
    logger.info(
        f"filter_relevant: kept={len(kept)} dropped={len(articles) - len(kept)} "
        f"threshold={threshold}"
    )
    return kept
