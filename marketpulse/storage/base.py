"""Abstract interface of the persistent store the pipelines hand their records to."""

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional, Sequence

from marketpulse.models.datatypes import (
    DailyBar, MarketInsight, NewsArticle, OptionsContract, StockQuote,
)


class DocumentStore(ABC):
    """Write/read contract between the pipelines and storage.

    Write semantics (merge vs. overwrite) belong to the implementation. All
    writes raise :class:`~marketpulse.core.errors.StorageError` on failure.
    """

    @abstractmethod
    def store_news(self, articles: Sequence[NewsArticle], run_date: date) -> None:
        """Upsert articles by url and re-index them by their current tickers under ``run_date``."""
        pass

    @abstractmethod
    def store_quotes(self, quotes: Sequence[StockQuote]) -> None:
        """Replace the latest quote per symbol and upsert one history bar per trading day."""
        pass

    @abstractmethod
    def store_market_insights(self, insights: Sequence[MarketInsight], run_date: date) -> None:
        pass

    @abstractmethod
    def store_options(self, contracts: Sequence[OptionsContract]) -> None:
        """Replace the stored chain of every underlying present in ``contracts``."""
        pass

    @abstractmethod
    def get_news_for_date(self, run_date: date) -> List[NewsArticle]:
        pass

    @abstractmethod
    def get_ticker_news(self, ticker: str, limit: int = 20) -> List[NewsArticle]:
        """Most recent articles tagged with ``ticker``, newest first."""
        pass

    @abstractmethod
    def get_latest_quote(self, symbol: str) -> Optional[StockQuote]:
        pass

    @abstractmethod
    def get_quote_history(
        self, symbol: str, limit: int = 30, before: Optional[date] = None,
    ) -> List[DailyBar]:
        """Up to ``limit`` most recent bars strictly before ``before``, oldest to newest."""
        pass

    @abstractmethod
    def list_expirations(self, underlying: str) -> List[date]:
        pass

    @abstractmethod
    def get_options_chain(
        self, underlying: str, expiration: date,
    ) -> tuple[List[OptionsContract], List[OptionsContract]]:
        """Return ``(calls, puts)`` for one chain, each sorted by strike."""
        pass

    def close(self) -> None:
        """Release any held resources."""
