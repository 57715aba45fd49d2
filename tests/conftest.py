"""Shared fixtures and factories for the MarketPulse test suite."""

import json
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import MagicMock, patch

import pytest
import requests

from marketpulse.core.config import Settings
from marketpulse.models.datatypes import DailyBar, NewsArticle, StockQuote
from marketpulse.storage.sqlite_store import SQLiteStore

FIXED_NOW = datetime(2024, 6, 14, 21, 0, tzinfo=timezone.utc)


def make_response(
    status: int = 200,
    payload: Optional[Any] = None,
    content: bytes = b"",
    url: str = "https://api.example.test/",
) -> requests.Response:
    """Build a real ``requests.Response`` so ``raise_for_status`` behaves normally."""
    resp = requests.Response()
    resp.status_code = status
    resp.url = url
    if payload is not None:
        resp._content = json.dumps(payload).encode("utf-8")
        resp.headers["Content-Type"] = "application/json"
        resp.encoding = "utf-8"
    else:
        resp._content = content
    return resp


def make_article(
    url: str = "https://news.example.test/a",
    title: str = "Markets drift sideways",
    description: str = "",
    published_at: datetime = FIXED_NOW,
    **kwargs: Any,
) -> NewsArticle:
    return NewsArticle(
        source=kwargs.pop("source", "Example Wire"),
        title=title,
        description=description,
        url=url,
        published_at=published_at,
        **kwargs,
    )


def make_quote(symbol: str = "AAPL", **overrides: Any) -> StockQuote:
    fields: Dict[str, Any] = dict(
        symbol=symbol,
        open=100.0,
        high=105.0,
        low=99.0,
        price=104.0,
        volume=2_000_000,
        previous_close=101.0,
        change=3.0,
        change_percent=2.9703,
        latest_trading_day=date(2024, 6, 14),
    )
    fields.update(overrides)
    return StockQuote(**fields)


def make_bars(closes: List[float], volume: float = 1_000_000, start: date = date(2024, 5, 1)) -> List[DailyBar]:
    return [
        DailyBar(
            day=date.fromordinal(start.toordinal() + i),
            open=c, high=c, low=c, close=c, volume=volume,
        )
        for i, c in enumerate(closes)
    ]


class FakeSession:
    """Stands in for ``requests.Session``; routes GETs through a handler."""

    def __init__(self, handler: Callable[[str, Dict[str, Any]], requests.Response]) -> None:
        self.handler = handler
        self.calls: List[tuple] = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append((url, dict(params or {})))
        return self.handler(url, dict(params or {}))

    def close(self) -> None:
        pass


@pytest.fixture
def no_sleep():
    """Patch ``time.sleep`` everywhere and expose the mock for delay assertions."""
    with patch("time.sleep") as mock_sleep:
        yield mock_sleep


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with no pacing or backoff delays and a single retry."""
    return Settings.from_config({
        "symbols": ["AAPL", "MSFT"],
        "http": {
            "max_retries": 1,
            "initial_delay_ms": 0,
            "batch_size": 2,
            "inter_batch_delay_ms": 0,
        },
        "news": {"keywords": ["stock market", "earnings"], "providers": ["newsapi"]},
        "options": {"underlyings": ["AAPL"], "expirations": 2},
    })


@pytest.fixture
def store(tmp_path):
    s = SQLiteStore(str(tmp_path / "store.db"))
    yield s
    s.close()


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def mock_session() -> MagicMock:
    return MagicMock(spec=requests.Session)
