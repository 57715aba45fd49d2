"""Local SQLite implementation of the document store.

Records are stored as JSON blobs next to the handful of columns needed for
lookups and ordering:

    news_articles      url → article (later fetch wins)
    news_runs          (run_date, url) → which articles a run ingested
    ticker_news        (ticker, url) → per-ticker index, ordered by published_at
    market_quotes      symbol → latest quote
    quote_history      (symbol, day) → daily bar
    market_insights    (symbol, run_date) → enrichment + correlation output
    options_contracts  contract ticker → contract
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

from marketpulse.core.errors import StorageError
from marketpulse.core.logger import logger
from marketpulse.enrichment.options import split_calls_puts
from marketpulse.enrichment.tickers import group_by_stock
from marketpulse.models.datatypes import (
    DailyBar, MarketInsight, NewsArticle, OptionsContract, StockQuote, parse_day,
)
from marketpulse.storage.base import DocumentStore

_SCHEMA = """
CREATE TABLE IF NOT EXISTS news_articles (
    url TEXT PRIMARY KEY,
    published_at TEXT NOT NULL,
    payload TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS news_runs (
    run_date TEXT NOT NULL,
    url TEXT NOT NULL,
    PRIMARY KEY (run_date, url)
);
CREATE TABLE IF NOT EXISTS ticker_news (
    ticker TEXT NOT NULL,
    url TEXT NOT NULL,
    published_at TEXT NOT NULL,
    PRIMARY KEY (ticker, url)
);
CREATE TABLE IF NOT EXISTS market_quotes (
    symbol TEXT PRIMARY KEY,
    trading_day TEXT NOT NULL,
    payload TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS quote_history (
    symbol TEXT NOT NULL,
    day TEXT NOT NULL,
    payload TEXT NOT NULL,
    PRIMARY KEY (symbol, day)
);
CREATE TABLE IF NOT EXISTS market_insights (
    symbol TEXT NOT NULL,
    run_date TEXT NOT NULL,
    payload TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (symbol, run_date)
);
CREATE TABLE IF NOT EXISTS options_contracts (
    ticker TEXT PRIMARY KEY,
    underlying TEXT NOT NULL,
    expiration TEXT NOT NULL,
    strike REAL NOT NULL,
    payload TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteStore(DocumentStore):
    """A SQLite-backed document store for normalized pipeline records."""

    def __init__(self, db_path: str = "output/marketpulse.db") -> None:
        """
        Initialize the store and create its tables.

        Args:
            db_path (str): Path to the SQLite database file, or ``":memory:"``.
        """
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise StorageError(f"Could not open store at {db_path}: {e}") from e

    @contextmanager
    def _transaction(self, action: str) -> Iterator[sqlite3.Connection]:
        """Run a block in one transaction, translating SQLite errors to StorageError."""
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as e:
                logger.error(f"SQLiteStore: {action} failed | {e}")
                raise StorageError(f"{action} failed: {e}") from e

    def _query(self, sql: str, params: Tuple = ()) -> List[tuple]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                logger.error(f"SQLiteStore: query failed | {e}")
                raise StorageError(f"query failed: {e}") from e

    # ── writes ────────────────────────────────────────────────────────────────

    def store_news(self, articles: Sequence[NewsArticle], run_date: date) -> None:
        now = _now()
        with self._transaction("store_news") as conn:
            for article in articles:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO news_articles (url, published_at, payload, updated_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (article.url, article.published_at.isoformat(),
                     json.dumps(article.to_dict()), now),
                )
                conn.execute(
                    "INSERT OR IGNORE INTO news_runs (run_date, url) VALUES (?, ?)",
                    (run_date.isoformat(), article.url),
                )
                # Ticker index follows the latest write of the article
                conn.execute("DELETE FROM ticker_news WHERE url = ?", (article.url,))
            for ticker, group in group_by_stock(articles).items():
                conn.executemany(
                    """
                    INSERT OR REPLACE INTO ticker_news (ticker, url, published_at)
                    VALUES (?, ?, ?)
                    """,
                    [(ticker, a.url, a.published_at.isoformat()) for a in group],
                )
        logger.info(f"SQLiteStore: stored news articles={len(articles)} run_date={run_date}")

    def store_quotes(self, quotes: Sequence[StockQuote]) -> None:
        now = _now()
        with self._transaction("store_quotes") as conn:
            for quote in quotes:
                day = quote.latest_trading_day.isoformat()
                conn.execute(
                    """
                    INSERT OR REPLACE INTO market_quotes (symbol, trading_day, payload, updated_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (quote.symbol, day, json.dumps(quote.to_dict()), now),
                )
                conn.execute(
                    "INSERT OR REPLACE INTO quote_history (symbol, day, payload) VALUES (?, ?, ?)",
                    (quote.symbol, day, json.dumps(quote.to_bar().to_dict())),
                )
        logger.info(f"SQLiteStore: stored quotes={len(quotes)}")

    def store_market_insights(self, insights: Sequence[MarketInsight], run_date: date) -> None:
        now = _now()
        with self._transaction("store_market_insights") as conn:
            conn.executemany(
                """
                INSERT OR REPLACE INTO market_insights (symbol, run_date, payload, updated_at)
                VALUES (?, ?, ?, ?)
                """,
                [(i.symbol, run_date.isoformat(), json.dumps(i.to_dict()), now) for i in insights],
            )
        logger.info(f"SQLiteStore: stored market insights={len(insights)} run_date={run_date}")

    def store_options(self, contracts: Sequence[OptionsContract]) -> None:
        now = _now()
        with self._transaction("store_options") as conn:
            # Each underlying's chain is replaced wholesale by its latest fetch
            conn.executemany(
                "DELETE FROM options_contracts WHERE underlying = ?",
                [(u,) for u in sorted({c.underlying for c in contracts})],
            )
            conn.executemany(
                """
                INSERT OR REPLACE INTO options_contracts
                    (ticker, underlying, expiration, strike, payload, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (c.ticker, c.underlying, c.expiration.isoformat(), c.strike,
                     json.dumps(c.to_dict()), now)
                    for c in contracts
                ],
            )
        logger.info(f"SQLiteStore: stored options contracts={len(contracts)}")

    # ── reads ─────────────────────────────────────────────────────────────────

    def get_news_for_date(self, run_date: date) -> List[NewsArticle]:
        rows = self._query(
            """
            SELECT a.payload FROM news_runs r
            JOIN news_articles a ON a.url = r.url
            WHERE r.run_date = ?
            ORDER BY a.published_at DESC
            """,
            (run_date.isoformat(),),
        )
        return [NewsArticle.from_dict(json.loads(r[0])) for r in rows]

    def get_ticker_news(self, ticker: str, limit: int = 20) -> List[NewsArticle]:
        rows = self._query(
            """
            SELECT a.payload FROM ticker_news t
            JOIN news_articles a ON a.url = t.url
            WHERE t.ticker = ?
            ORDER BY t.published_at DESC
            LIMIT ?
            """,
            (ticker, limit),
        )
        return [NewsArticle.from_dict(json.loads(r[0])) for r in rows]

    def get_latest_quote(self, symbol: str) -> Optional[StockQuote]:
        rows = self._query("SELECT payload FROM market_quotes WHERE symbol = ?", (symbol,))
        return StockQuote.from_dict(json.loads(rows[0][0])) if rows else None

    def get_quote_history(
        self, symbol: str, limit: int = 30, before: Optional[date] = None,
    ) -> List[DailyBar]:
        if before is None:
            rows = self._query(
                "SELECT payload FROM quote_history WHERE symbol = ? ORDER BY day DESC LIMIT ?",
                (symbol, limit),
            )
        else:
            rows = self._query(
                """
                SELECT payload FROM quote_history
                WHERE symbol = ? AND day < ?
                ORDER BY day DESC LIMIT ?
                """,
                (symbol, before.isoformat(), limit),
            )
        return [DailyBar.from_dict(json.loads(r[0])) for r in reversed(rows)]

    def get_market_insight(self, symbol: str, run_date: date) -> Optional[dict]:
        rows = self._query(
            "SELECT payload FROM market_insights WHERE symbol = ? AND run_date = ?",
            (symbol, run_date.isoformat()),
        )
        return json.loads(rows[0][0]) if rows else None

    def list_expirations(self, underlying: str) -> List[date]:
        rows = self._query(
            """
            SELECT DISTINCT expiration FROM options_contracts
            WHERE underlying = ? ORDER BY expiration
            """,
            (underlying,),
        )
        return [parse_day(r[0]) for r in rows]

    def get_options_chain(
        self, underlying: str, expiration: date,
    ) -> Tuple[List[OptionsContract], List[OptionsContract]]:
        rows = self._query(
            """
            SELECT payload FROM options_contracts
            WHERE underlying = ? AND expiration = ?
            ORDER BY strike, ticker
            """,
            (underlying, expiration.isoformat()),
        )
        return split_calls_puts(OptionsContract.from_dict(json.loads(r[0])) for r in rows)

    def close(self) -> None:
        self._conn.close()
