"""Data structures for the news, market and options ingestion pipelines.

Records produced by a fetch are frozen; enrichment passes derive new values
with :func:`dataclasses.replace` instead of mutating shared instances.
"""

from dataclasses import asdict, dataclass, fields
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO 8601 timestamp (``Z`` suffix allowed) into an aware UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_day(value: Any) -> date:
    """Parse ``YYYY-MM-DD`` (or a date/datetime) into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


class SentimentCategory(str, Enum):
    VERY_NEGATIVE = "very negative"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    POSITIVE = "positive"
    VERY_POSITIVE = "very positive"


class ImpactType(str, Enum):
    ALIGNED = "aligned"
    CONTRARY = "contrary"


class OptionType(str, Enum):
    CALL = "call"
    PUT = "put"


@dataclass(frozen=True)
class NewsArticle:
    """
    Represents a normalized news article fetched from any news provider.

    ``url`` is the deduplication key. ``tickers`` is ``None`` (never empty) when
    no symbol was associated with the article.
    """
    source: str
    title: str
    description: str
    url: str
    published_at: datetime
    content: Optional[str] = None
    tickers: Optional[Tuple[str, ...]] = None
    sentiment_score: Optional[float] = None
    relevance_score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["published_at"] = self.published_at.isoformat()
        data["tickers"] = list(self.tickers) if self.tickers else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NewsArticle":
        tickers = data.get("tickers")
        return cls(
            source=data.get("source") or "",
            title=data.get("title") or "",
            description=data.get("description") or "",
            url=data["url"],
            published_at=parse_timestamp(data["published_at"]),
            content=data.get("content"),
            tickers=tuple(tickers) if tickers else None,
            sentiment_score=data.get("sentiment_score"),
            relevance_score=data.get("relevance_score"),
        )


@dataclass(frozen=True)
class DailyBar:
    """One trading day of OHLCV data. History sequences are ordered oldest to newest."""
    day: date
    open: float
    high: float
    low: float
    close: float
    volume: float

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["day"] = self.day.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DailyBar":
        return cls(
            day=parse_day(data["day"]),
            open=float(data["open"]),
            high=float(data["high"]),
            low=float(data["low"]),
            close=float(data["close"]),
            volume=float(data["volume"]),
        )


@dataclass(frozen=True)
class StockQuote:
    """A single end-of-day quote. One quote per symbol per fetch cycle."""
    symbol: str
    open: float
    high: float
    low: float
    price: float
    volume: float
    previous_close: float
    change: float
    change_percent: float
    latest_trading_day: date

    def to_bar(self) -> DailyBar:
        """Project the quote onto a history bar for its trading day."""
        return DailyBar(
            day=self.latest_trading_day,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.price,
            volume=self.volume,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["latest_trading_day"] = self.latest_trading_day.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StockQuote":
        kwargs = {f.name: data[f.name] for f in fields(cls)}
        kwargs["latest_trading_day"] = parse_day(kwargs["latest_trading_day"])
        return cls(**kwargs)


@dataclass(frozen=True)
class EnrichedStockData:
    """
    A quote plus derived metrics. Derived fields are ``None`` unless a history
    window was supplied; ``momentum`` additionally needs at least 10 bars.
    ``degraded`` is set when enrichment failed and only base fields are present.
    """
    quote: StockQuote
    average_volume: Optional[float] = None
    volume_ratio: Optional[float] = None
    relative_strength: Optional[float] = None
    momentum: Optional[float] = None
    degraded: bool = False

    @property
    def symbol(self) -> str:
        return self.quote.symbol

    def to_dict(self) -> Dict[str, Any]:
        data = self.quote.to_dict()
        data.update({
            "average_volume": self.average_volume,
            "volume_ratio": self.volume_ratio,
            "relative_strength": self.relative_strength,
            "momentum": self.momentum,
            "degraded": self.degraded,
        })
        return data


@dataclass(frozen=True)
class Greeks:
    delta: Optional[float] = None
    gamma: Optional[float] = None
    theta: Optional[float] = None
    vega: Optional[float] = None


@dataclass(frozen=True)
class OptionsContract:
    """An options contract. Grouping key is ``(underlying, expiration)``."""
    ticker: str
    underlying: str
    expiration: date
    strike: float
    type: OptionType
    open_interest: Optional[float] = None
    implied_volatility: Optional[float] = None
    greeks: Optional[Greeks] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticker": self.ticker,
            "underlying": self.underlying,
            "expiration": self.expiration.isoformat(),
            "strike": self.strike,
            "type": self.type.value,
            "open_interest": self.open_interest,
            "implied_volatility": self.implied_volatility,
            "greeks": asdict(self.greeks) if self.greeks else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OptionsContract":
        greeks = data.get("greeks")
        return cls(
            ticker=data["ticker"],
            underlying=data["underlying"],
            expiration=parse_day(data["expiration"]),
            strike=float(data["strike"]),
            type=OptionType(data["type"]),
            open_interest=data.get("open_interest"),
            implied_volatility=data.get("implied_volatility"),
            greeks=Greeks(**greeks) if greeks else None,
        )


@dataclass(frozen=True)
class SentimentResult:
    """Output of a single sentiment scoring call.

    Attributes:
        score: Continuous score in ``[-1.0, 1.0]``.
        category: Discrete bucket derived from ``score``.
        degraded: True when scoring failed and the neutral default was returned.
    """
    score: float
    category: SentimentCategory
    degraded: bool = False


@dataclass(frozen=True)
class ArticleImpact:
    article: NewsArticle
    possible_impact: ImpactType
    impact_score: float

    def to_dict(self) -> Dict[str, Any]:
        data = self.article.to_dict()
        data["possible_impact"] = self.possible_impact.value
        data["impact_score"] = self.impact_score
        return data


@dataclass(frozen=True)
class CorrelationResult:
    news_impact: float = 0.0
    significant_articles: Tuple[ArticleImpact, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "news_impact": self.news_impact,
            "significant_articles": [a.to_dict() for a in self.significant_articles],
        }


@dataclass(frozen=True)
class MarketInsight:
    """Per-symbol output of the market pipeline: enrichment plus news correlation."""
    enriched: EnrichedStockData
    correlation: CorrelationResult

    @property
    def symbol(self) -> str:
        return self.enriched.symbol

    def to_dict(self) -> Dict[str, Any]:
        data = self.enriched.to_dict()
        data["correlation"] = self.correlation.to_dict()
        return data
