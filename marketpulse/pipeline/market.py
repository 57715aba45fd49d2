"""Market data ingestion pipeline.

Flow per run:
  1. Quotes      — one GLOBAL_QUOTE request per tracked symbol via run_batched
  2. History     — trailing daily bars per symbol (store or yfinance)
  3. Enrichment  — volume ratio, relative strength, momentum
  4. Correlation — the day's stored news against each quote's price change
  5. Store       — raw quotes (latest + history) and per-symbol insights

Derived metrics are stored only as insights, never folded back into history.
"""

from datetime import date, datetime, timezone
from typing import Callable, List, Optional

from marketpulse.core.batch import run_batched
from marketpulse.core.config import Settings
from marketpulse.core.errors import ProviderError
from marketpulse.core.http import RequestExecutor
from marketpulse.core.logger import logger
from marketpulse.enrichment.correlation import correlate
from marketpulse.enrichment.market import enrich_stock_data
from marketpulse.models.datatypes import DailyBar, MarketInsight, NewsArticle, StockQuote
from marketpulse.providers.base import HistoryProvider, QuoteProvider
from marketpulse.storage.base import DocumentStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MarketIngestion:
    """Fetches, enriches and stores end-of-day quotes for the tracked symbols.

    Args:
        settings: Settings for this invocation.
        executor: HTTP request executor.
        quotes: Quote provider.
        history: Trailing history provider.
        store: Destination store; also the source of the day's news.
        clock: Returns "now"; read at the start of every run.
    """

    def __init__(
        self,
        settings: Settings,
        executor: RequestExecutor,
        quotes: QuoteProvider,
        history: HistoryProvider,
        store: DocumentStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.settings = settings
        self.executor = executor
        self.quotes = quotes
        self.history = history
        self.store = store
        self.clock = clock

    # ── public ────────────────────────────────────────────────────────────────

    def run(self) -> List[MarketInsight]:
        """Run the market pipeline once.

        Returns:
            One MarketInsight per symbol whose quote was fetched.

        Raises:
            ProviderError: If no quote could be fetched for any symbol.
            StorageError: If a store write failed.
        """
        run_date = self.clock().date()
        symbols = self.settings.symbols
        logger.info(f"MarketIngestion: starting run_date={run_date} symbols={len(symbols)}")

        quotes = self.fetch_quotes(symbols)
        if symbols and not quotes:
            raise ProviderError(f"No quotes fetched for any of {len(symbols)} symbols")

        news = self.store.get_news_for_date(run_date)
        insights = [self._build_insight(quote, news) for quote in quotes]

        self.store.store_quotes(quotes)
        self.store.store_market_insights(insights, run_date)
        logger.info(
            f"MarketIngestion: completed run_date={run_date} quotes={len(quotes)}/{len(symbols)}"
        )
        return insights

    def fetch_quotes(self, symbols: List[str]) -> List[StockQuote]:
        http = self.settings.http
        responses = run_batched(
            self.executor,
            [self.quotes.build_request(symbol) for symbol in symbols],
            batch_size=http.batch_size,
            inter_batch_delay_ms=http.inter_batch_delay_ms,
            max_retries=http.max_retries,
            initial_delay_ms=http.initial_delay_ms,
        )

        quotes: List[StockQuote] = []
        for symbol, response in zip(symbols, responses):
            if response is None:
                logger.error(f"MarketIngestion: skipping symbol={symbol} reason=fetch_failed")
                continue
            try:
                quote = self.quotes.parse(response)
            except ValueError as exc:
                logger.error(f"MarketIngestion: skipping symbol={symbol} reason=bad_payload | {exc}")
                continue
            if quote is None:
                logger.warning(f"MarketIngestion: skipping symbol={symbol} reason=no_quote")
                continue
            quotes.append(quote)
        return quotes

    # ── internal ──────────────────────────────────────────────────────────────

    def _build_insight(self, quote: StockQuote, news: List[NewsArticle]) -> MarketInsight:
        bars = self._history_for(quote.symbol, quote.latest_trading_day)
        enriched = enrich_stock_data(quote, bars)
        correlation = correlate(quote, news)
        logger.info(
            f"MarketIngestion: enriched symbol={quote.symbol} bars={len(bars or [])} "
            f"degraded={enriched.degraded} news_impact={correlation.news_impact:.4f} "
            f"significant={len(correlation.significant_articles)}"
        )
        return MarketInsight(enriched=enriched, correlation=correlation)

    def _history_for(self, symbol: str, trading_day: date) -> Optional[List[DailyBar]]:
        try:
            return self.history.fetch_history(
                symbol, self.settings.market.history_days, before=trading_day,
            )
        except Exception as exc:
            logger.error(
                f"MarketIngestion: history unavailable symbol={symbol}, enriching without it | {exc}"
            )
            return None
