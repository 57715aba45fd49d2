"""News ingestion pipeline.

Flow per run:
  1. Fetch   — one search request per (provider, keyword), paced via run_batched
  2. Parse   — provider payloads → NewsArticle
  3. Dedupe  — by url, first-seen wins (before any scoring)
  4. Score   — lexicon sentiment on title + description
  5. Tag     — ticker association against tracked symbols
  6. Filter  — relevance heuristic
  7. Store   — hand the record set to the DocumentStore

A failed request is logged and skipped; only a run where every request
failed is treated as a provider outage.
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, List, Sequence, Tuple

from marketpulse.core.batch import run_batched
from marketpulse.core.config import Settings
from marketpulse.core.errors import ProviderError
from marketpulse.core.http import HttpRequest, RequestExecutor
from marketpulse.core.logger import logger
from marketpulse.enrichment.relevance import dedupe_articles, filter_relevant, score_relevance
from marketpulse.enrichment.tickers import associate
from marketpulse.models.datatypes import NewsArticle
from marketpulse.providers.base import NewsProvider, SentimentProvider
from marketpulse.storage.base import DocumentStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NewsIngestion:
    """Fetches, enriches and stores financial news for one run.

    Args:
        settings: Settings for this invocation.
        executor: HTTP request executor.
        providers: News providers queried for every keyword, in order.
        sentiment: Sentiment scorer.
        store: Destination store.
        clock: Returns "now"; read at the start of every run.
    """

    def __init__(
        self,
        settings: Settings,
        executor: RequestExecutor,
        providers: Sequence[NewsProvider],
        sentiment: SentimentProvider,
        store: DocumentStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.settings = settings
        self.executor = executor
        self.providers = list(providers)
        self.sentiment = sentiment
        self.store = store
        self.clock = clock

    # ── public ────────────────────────────────────────────────────────────────

    def run(self) -> List[NewsArticle]:
        """Run the news pipeline once.

        Returns:
            The relevant, enriched articles handed to the store.

        Raises:
            ProviderError: If every search request failed.
            StorageError: If the store write failed.
        """
        run_date = self.clock().date()
        news_cfg = self.settings.news
        logger.info(
            f"NewsIngestion: starting run_date={run_date} providers="
            f"{[p.name for p in self.providers]} keywords={len(news_cfg.keywords)}"
        )

        fetched = self._fetch(news_cfg.keywords, news_cfg.page_size)
        unique = dedupe_articles(fetched)
        logger.info(f"NewsIngestion: fetched={len(fetched)} unique={len(unique)}")

        enriched = self.enrich(unique)
        relevant = filter_relevant(enriched, news_cfg.relevance_threshold)

        self.store.store_news(relevant, run_date)
        logger.info(
            f"NewsIngestion: completed run_date={run_date} stored={len(relevant)}"
        )
        return relevant

    def enrich(self, articles: Sequence[NewsArticle]) -> List[NewsArticle]:
        """Score sentiment, associate tickers and compute relevance."""
        scored = [
            replace(a, sentiment_score=self.sentiment.analyze(f"{a.title} {a.description}").score)
            for a in articles
        ]
        tagged = associate(
            scored, self.settings.symbols, include_cashtags=self.settings.news.include_cashtags,
        )
        return score_relevance(tagged)

    # ── internal ──────────────────────────────────────────────────────────────

    def _fetch(self, keywords: Sequence[str], page_size: int) -> List[NewsArticle]:
        planned: List[Tuple[NewsProvider, HttpRequest]] = [
            (provider, request)
            for provider in self.providers
            for request in provider.build_requests(keywords, page_size)
        ]
        if not planned:
            logger.warning("NewsIngestion: nothing to fetch (no providers or keywords)")
            return []

        http = self.settings.http
        responses = run_batched(
            self.executor,
            [request for _, request in planned],
            batch_size=http.batch_size,
            inter_batch_delay_ms=http.inter_batch_delay_ms,
            max_retries=http.max_retries,
            initial_delay_ms=http.initial_delay_ms,
        )

        if all(r is None for r in responses):
            raise ProviderError(f"All {len(planned)} news requests failed")

        articles: List[NewsArticle] = []
        for (provider, request), response in zip(planned, responses):
            if response is None:
                continue
            try:
                articles.extend(provider.parse(response))
            except ValueError as exc:
                logger.error(
                    f"NewsIngestion: unparseable payload label={request.label} | {exc}"
                )
        return articles
