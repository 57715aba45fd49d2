"""News / price-movement correlation for a single symbol.

For every article about the quote's symbol:

    possible_impact = aligned   if sentiment and price change share a strict sign
                      contrary  otherwise
    impact_score    = |sentiment| × |change|

``news_impact`` is the mean impact score over all relevant articles (0 when none).
The returned ``significant_articles`` are ranked by impact score, highest first,
ties broken by recency, and capped at :data:`MAX_SIGNIFICANT_ARTICLES`.
"""

from typing import Iterable, List

from marketpulse.core.logger import logger
from marketpulse.models.datatypes import (
    ArticleImpact, CorrelationResult, ImpactType, NewsArticle, StockQuote,
)

MAX_SIGNIFICANT_ARTICLES = 5


def mentions_symbol(article: NewsArticle, symbol: str) -> bool:
    """True when the article is tagged with ``symbol`` or its text contains it."""
    if article.tickers and symbol in article.tickers:
        return True
    return symbol in article.title or symbol in (article.description or "")


def classify_impact(sentiment: float, change: float) -> ImpactType:
    aligned = (sentiment > 0 and change > 0) or (sentiment < 0 and change < 0)
    return ImpactType.ALIGNED if aligned else ImpactType.CONTRARY


def correlate(quote: StockQuote, articles: Iterable[NewsArticle]) -> CorrelationResult:
    """
    Correlate article sentiment with the quote's price change.

    Args:
        quote: Quote whose ``symbol`` and ``change`` drive the correlation.
        articles: Candidate articles; unrelated ones are ignored.

    Returns:
        CorrelationResult: Mean impact and the top impact-ranked articles.
    """
    relevant = [a for a in articles if mentions_symbol(a, quote.symbol)]
    relevant.sort(key=lambda a: a.published_at, reverse=True)

    scored: List[ArticleImpact] = []
    for article in relevant:
        sentiment = article.sentiment_score or 0.0
        scored.append(ArticleImpact(
            article=article,
            possible_impact=classify_impact(sentiment, quote.change),
            impact_score=abs(sentiment) * abs(quote.change),
        ))

    news_impact = sum(s.impact_score for s in scored) / len(scored) if scored else 0.0

    # Stable sort keeps newest-first order among equal impact scores
    ranked = sorted(scored, key=lambda s: s.impact_score, reverse=True)

    logger.debug(
        f"correlate: symbol={quote.symbol} relevant={len(relevant)} "
        f"news_impact={news_impact:.4f}"
    )
    return CorrelationResult(
        news_impact=news_impact,
        significant_articles=tuple(ranked[:MAX_SIGNIFICANT_ARTICLES]),
    )
