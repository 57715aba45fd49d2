"""Market data integration: Alpha Vantage quotes and trailing daily history."""

from datetime import date
from typing import List, Optional

import pandas as pd
import requests
import yfinance as yf

from marketpulse.core.http import HttpRequest
from marketpulse.core.logger import logger
from marketpulse.core.retry import with_retries
from marketpulse.models.datatypes import DailyBar, StockQuote, parse_day
from marketpulse.providers.base import HistoryProvider, QuoteProvider
from marketpulse.storage.base import DocumentStore

_ALPHA_VANTAGE_URL = "https://www.alphavantage.co/query"


class AlphaVantageQuoteProvider(QuoteProvider):
    """Alpha Vantage ``GLOBAL_QUOTE`` implementation."""

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    def build_request(self, symbol: str) -> HttpRequest:
        return HttpRequest(
            url=_ALPHA_VANTAGE_URL,
            params={"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": self.api_key},
            label=f"quote:{symbol}",
        )

    def parse(self, response: requests.Response) -> Optional[StockQuote]:
        """
        Normalize a ``GLOBAL_QUOTE`` payload.

        Alpha Vantage reports throttling and bad symbols with HTTP 200 and a
        ``Note`` / ``Information`` / ``Error Message`` body; those yield None.
        """
        payload = response.json()
        data = payload.get("Global Quote")
        if not data:
            notice = (
                payload.get("Note")
                or payload.get("Information")
                or payload.get("Error Message")
                or "empty Global Quote"
            )
            logger.warning(f"AlphaVantageQuoteProvider: no quote returned | {notice}")
            return None

        try:
            return StockQuote(
                symbol=data["01. symbol"],
                open=float(data["02. open"]),
                high=float(data["03. high"]),
                low=float(data["04. low"]),
                price=float(data["05. price"]),
                volume=float(int(data["06. volume"])),
                latest_trading_day=parse_day(data["07. latest trading day"]),
                previous_close=float(data["08. previous close"]),
                change=float(data["09. change"]),
                change_percent=float(str(data["10. change percent"]).rstrip("%")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.error(f"AlphaVantageQuoteProvider: malformed quote payload | {exc}")
            return None


class StoredHistoryProvider(HistoryProvider):
    """History owned by the persistent store (one bar per previously ingested quote)."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def fetch_history(self, symbol: str, days: int, before: date) -> List[DailyBar]:
        return self.store.get_quote_history(symbol, limit=days, before=before)


class YFinanceProvider(HistoryProvider):
    """Yahoo Finance implementation for trailing daily history."""

    @with_retries(max_retries=3, initial_delay=2)
    def fetch_history(self, symbol: str, days: int, before: date) -> List[DailyBar]:
        """
        Fetch up to ``days`` daily OHLCV bars ending the trading day before ``before``.
        Requests a calendar buffer so weekends and holidays still yield ``days`` bars.

        Args:
            symbol (str): The ticker symbol.
            days (int): Number of trading days wanted.
            before (date): Exclusive end date.

        Returns:
            List[DailyBar]: Bars ordered oldest to newest.
        """
        end_dt = pd.Timestamp(before)
        start_dt = end_dt - pd.Timedelta(days=days * 2 + 10)
        logger.info(
            f"YFinanceProvider: fetching history symbol={symbol} "
            f"start={start_dt:%Y-%m-%d} end={end_dt:%Y-%m-%d}"
        )

        # yfinance `end` is exclusive, which matches `before`
        hist = yf.Ticker(symbol).history(
            start=start_dt.strftime("%Y-%m-%d"),
            end=end_dt.strftime("%Y-%m-%d"),
        )

        if hist.empty:
            logger.warning(f"YFinanceProvider: no OHLCV data returned for {symbol}")
            return []

        hist = hist.reset_index()

        # In yfinance, Date is often timezone-aware. We remove the tz before comparing.
        hist["Date"] = pd.to_datetime(hist["Date"]).dt.tz_localize(None).dt.date
        hist["Close"] = pd.to_numeric(hist["Close"], errors="coerce")
        hist["Volume"] = pd.to_numeric(hist["Volume"], errors="coerce").fillna(0)
        hist = hist.dropna(subset=["Close"])
        hist = hist[hist["Date"] < before].sort_values("Date").tail(days)

        return [
            DailyBar(
                day=row.Date,
                open=float(row.Open),
                high=float(row.High),
                low=float(row.Low),
                close=float(row.Close),
                volume=float(row.Volume),
            )
            for row in hist.itertuples(index=False)
        ]
