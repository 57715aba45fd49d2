"""Abstract base classes for data providers.

Fetching providers do not perform I/O themselves: they build
:class:`~marketpulse.core.http.HttpRequest` objects for the batch scheduler and
normalize the provider-specific payloads it returns.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional, Sequence

import requests

from marketpulse.core.http import HttpRequest
from marketpulse.models.datatypes import (
    DailyBar, NewsArticle, OptionsContract, SentimentResult, StockQuote,
)


class NewsProvider(ABC):
    """Abstract interface for searching financial news."""

    name: str = "news"

    @abstractmethod
    def build_requests(self, keywords: Sequence[str], page_size: int = 20) -> List[HttpRequest]:
        """
        Build one search request per keyword.

        Args:
            keywords (Sequence[str]): Search terms.
            page_size (int): Maximum articles per request.

        Returns:
            List[HttpRequest]: Requests in keyword order.
        """
        pass

    @abstractmethod
    def parse(self, response: requests.Response) -> List[NewsArticle]:
        """
        Normalize one search response into articles.

        Args:
            response (requests.Response): A successful provider response.

        Returns:
            List[NewsArticle]: Articles in provider order. Entries missing a url or
            title are dropped.
        """
        pass


class QuoteProvider(ABC):
    """Abstract interface for fetching the latest end-of-day quote of a symbol."""

    @abstractmethod
    def build_request(self, symbol: str) -> HttpRequest:
        pass

    @abstractmethod
    def parse(self, response: requests.Response) -> Optional[StockQuote]:
        """
        Normalize a quote response.

        Returns:
            Optional[StockQuote]: The quote, or None when the payload carries no quote
            (e.g. a rate-limit notice served with HTTP 200).
        """
        pass


class OptionsProvider(ABC):
    """Abstract interface for fetching the options chain of an underlying."""

    @abstractmethod
    def build_request(self, underlying: str, limit: int = 1000) -> HttpRequest:
        pass

    @abstractmethod
    def parse(self, response: requests.Response, underlying: str) -> List[OptionsContract]:
        pass


class HistoryProvider(ABC):
    """Abstract interface for trailing daily history of a symbol."""

    @abstractmethod
    def fetch_history(self, symbol: str, days: int, before: date) -> List[DailyBar]:
        """
        Fetch up to ``days`` daily bars strictly before ``before``.

        Args:
            symbol (str): The ticker symbol.
            days (int): Maximum number of bars.
            before (date): Exclusive upper bound, normally the quote's trading day.

        Returns:
            List[DailyBar]: Bars ordered oldest to newest.
        """
        pass


class SentimentProvider(ABC):
    """Abstract interface for classifying financial text sentiment."""

    @abstractmethod
    def analyze(self, text: str) -> SentimentResult:
        """
        Analyze the sentiment of a given text.

        Args:
            text (str): The text to analyze.

        Returns:
            SentimentResult: Score in ``[-1.0, 1.0]`` plus its category. Never raises.
        """
        pass
