"""Tests for request building and payload normalization of the upstream providers."""

from datetime import date, datetime, timezone
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest

from marketpulse.models.datatypes import OptionType
from marketpulse.providers.market import (
    AlphaVantageQuoteProvider, StoredHistoryProvider, YFinanceProvider,
)
from marketpulse.providers.news import GoogleNewsProvider, NewsApiProvider
from marketpulse.providers.options import PolygonOptionsProvider
from tests.conftest import make_bars, make_response

GLOBAL_QUOTE = {
    "Global Quote": {
        "01. symbol": "AAPL",
        "02. open": "189.2600",
        "03. high": "190.6500",
        "04. low": "188.3000",
        "05. price": "190.2000",
        "06. volume": "48710000",
        "07. latest trading day": "2024-06-14",
        "08. previous close": "188.5000",
        "09. change": "1.7000",
        "10. change percent": "0.9019%",
    }
}

RSS_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>stock market - Google News</title>
<item>
  <title>Stocks rally as tech leads - Example Wire</title>
  <link>https://news.example.test/rally</link>
  <pubDate>Fri, 14 Jun 2024 18:30:00 GMT</pubDate>
  <description>&lt;a href="x"&gt;Stocks rally&lt;/a&gt; as tech leads</description>
  <source url="https://example.test">Example Wire</source>
</item>
<item>
  <title>No date here</title>
  <link>https://news.example.test/nodate</link>
</item>
</channel></rss>"""


class TestNewsApiProvider:
    def test_one_request_per_keyword(self):
        reqs = NewsApiProvider("key").build_requests(["stock market", "earnings"], page_size=20)

        assert [r.params["q"] for r in reqs] == ["stock market", "earnings"]
        assert reqs[0].url == "https://newsapi.org/v2/everything"
        assert reqs[0].params == {
            "q": "stock market", "apiKey": "key", "language": "en",
            "sortBy": "publishedAt", "pageSize": 20,
        }
        assert reqs[1].label == "newsapi:earnings"

    def test_parse_normalizes_articles(self):
        payload = {
            "status": "ok",
            "articles": [
                {
                    "source": {"id": None, "name": "Reuters"},
                    "title": " Apple hits record high ",
                    "description": "Shares rose.",
                    "url": "https://news.example.test/apple",
                    "publishedAt": "2024-06-14T15:04:05Z",
                    "content": "Full text",
                },
                {"title": "missing url", "publishedAt": "2024-06-14T15:04:05Z"},
                {"title": "bad date", "url": "https://x", "publishedAt": "yesterday"},
                {"title": "no source", "url": "https://y", "publishedAt": "2024-06-14T10:00:00Z",
                 "description": None},
            ],
        }

        articles = NewsApiProvider("key").parse(make_response(200, payload))

        assert [a.url for a in articles] == ["https://news.example.test/apple", "https://y"]
        apple = articles[0]
        assert apple.source == "Reuters"
        assert apple.title == "Apple hits record high"
        assert apple.published_at == datetime(2024, 6, 14, 15, 4, 5, tzinfo=timezone.utc)
        assert apple.content == "Full text"
        assert apple.tickers is None and apple.sentiment_score is None
        assert articles[1].source == "NewsAPI"
        assert articles[1].description == ""

    def test_error_status_yields_no_articles(self):
        payload = {"status": "error", "code": "rateLimited", "message": "Too many requests"}
        assert NewsApiProvider("key").parse(make_response(200, payload)) == []


class TestGoogleNewsProvider:
    def test_builds_window_query(self):
        req = GoogleNewsProvider(window="1d").build_requests(["earnings"])[0]
        assert req.params["q"] == "earnings when:1d"
        assert req.params["ceid"] == "US:en"

    def test_parse_rss(self):
        articles = GoogleNewsProvider().parse(make_response(200, content=RSS_FEED))

        assert len(articles) == 1
        article = articles[0]
        assert article.url == "https://news.example.test/rally"
        assert article.source == "Example Wire"
        assert article.published_at == datetime(2024, 6, 14, 18, 30, tzinfo=timezone.utc)
        assert "<a" not in article.description
        assert "Stocks rally" in article.description

    def test_parse_truncates_to_max_entries(self):
        items = "".join(
            f"<item><title>t{i}</title><link>https://x/{i}</link>"
            f"<pubDate>Fri, 14 Jun 2024 18:30:00 GMT</pubDate></item>"
            for i in range(5)
        )
        feed = f"<rss version=\"2.0\"><channel>{items}</channel></rss>".encode()

        articles = GoogleNewsProvider(max_entries=3).parse(make_response(200, content=feed))

        assert [a.title for a in articles] == ["t0", "t1", "t2"]


class TestAlphaVantageQuoteProvider:
    def test_build_request(self):
        req = AlphaVantageQuoteProvider("av").build_request("MSFT")
        assert req.params == {"function": "GLOBAL_QUOTE", "symbol": "MSFT", "apikey": "av"}
        assert req.label == "quote:MSFT"

    def test_parse_global_quote(self):
        quote = AlphaVantageQuoteProvider("av").parse(make_response(200, GLOBAL_QUOTE))

        assert quote.symbol == "AAPL"
        assert quote.price == pytest.approx(190.2)
        assert quote.volume == 48_710_000
        assert quote.change == pytest.approx(1.7)
        assert quote.change_percent == pytest.approx(0.9019)
        assert quote.latest_trading_day == date(2024, 6, 14)

    @pytest.mark.parametrize("payload", [
        {"Note": "Thank you for using Alpha Vantage! Our standard API call frequency is 5 calls per minute."},
        {"Information": "The **demo** API key is for demo purposes only."},
        {"Error Message": "Invalid API call."},
        {"Global Quote": {}},
    ])
    def test_notices_yield_none(self, payload):
        assert AlphaVantageQuoteProvider("av").parse(make_response(200, payload)) is None

    def test_malformed_quote_yields_none(self):
        payload = {"Global Quote": dict(GLOBAL_QUOTE["Global Quote"], **{"05. price": "n/a"})}
        assert AlphaVantageQuoteProvider("av").parse(make_response(200, payload)) is None


class TestHistoryProviders:
    def test_stored_history_reads_store(self):
        store = MagicMock()
        store.get_quote_history.return_value = make_bars([1.0, 2.0])

        bars = StoredHistoryProvider(store).fetch_history("AAPL", 30, date(2024, 6, 14))

        assert len(bars) == 2
        store.get_quote_history.assert_called_once_with("AAPL", limit=30, before=date(2024, 6, 14))

    @patch("marketpulse.providers.market.yf.Ticker")
    def test_yfinance_history_is_trimmed_and_ordered(self, mock_ticker):
        index = pd.DatetimeIndex(
            ["2024-06-11", "2024-06-10", "2024-06-12", "2024-06-14"], tz="America/New_York", name="Date",
        )
        mock_ticker.return_value.history.return_value = pd.DataFrame(
            {
                "Open": [1.0, 1.0, 1.0, 1.0],
                "High": [2.0, 2.0, 2.0, 2.0],
                "Low": [0.5, 0.5, 0.5, 0.5],
                "Close": [11.0, 10.0, None, 14.0],
                "Volume": [100, 200, 300, 400],
            },
            index=index,
        )

        bars = YFinanceProvider().fetch_history("AAPL", days=5, before=date(2024, 6, 14))

        assert [b.day for b in bars] == [date(2024, 6, 10), date(2024, 6, 11)]
        assert [b.close for b in bars] == [10.0, 11.0]
        mock_ticker.assert_called_once_with("AAPL")

    @patch("marketpulse.providers.market.yf.Ticker")
    def test_yfinance_empty_history(self, mock_ticker):
        mock_ticker.return_value.history.return_value = pd.DataFrame()
        assert YFinanceProvider().fetch_history("AAPL", days=5, before=date(2024, 6, 14)) == []


class TestPolygonOptionsProvider:
    def test_reference_request(self):
        req = PolygonOptionsProvider("pk").build_request("AAPL", limit=1000)
        assert req.url == "https://api.polygon.io/v3/reference/options/contracts"
        assert req.params["underlying_ticker"] == "AAPL"
        assert req.params["expired"] == "false"

    def test_snapshot_request_caps_limit(self):
        req = PolygonOptionsProvider("pk", use_snapshot=True).build_request("SPY", limit=1000)
        assert req.url.endswith("/v3/snapshot/options/SPY")
        assert req.params["limit"] == 250

    def test_parse_reference_contracts(self):
        payload = {"results": [
            {"ticker": "O:AAPL240621C00190000", "expiration_date": "2024-06-21",
             "strike_price": 190, "contract_type": "call"},
            {"ticker": "O:AAPL240621P00190000", "expiration_date": "2024-06-21",
             "strike_price": 190, "contract_type": "put"},
            {"ticker": "broken", "contract_type": "call"},
        ]}

        contracts = PolygonOptionsProvider("pk").parse(make_response(200, payload), "AAPL")

        assert [c.type for c in contracts] == [OptionType.CALL, OptionType.PUT]
        assert contracts[0].strike == 190.0
        assert contracts[0].expiration == date(2024, 6, 21)
        assert contracts[0].underlying == "AAPL"
        assert contracts[0].greeks is None

    def test_parse_snapshot_contracts(self):
        payload = {"results": [{
            "details": {"ticker": "O:SPY240621C00540000", "expiration_date": "2024-06-21",
                        "strike_price": 540, "contract_type": "call"},
            "open_interest": 1200,
            "implied_volatility": 0.12,
            "greeks": {"delta": 0.51, "gamma": 0.04, "theta": -0.3, "vega": 0.2},
        }]}

        contract = PolygonOptionsProvider("pk", use_snapshot=True).parse(
            make_response(200, payload), "SPY",
        )[0]

        assert contract.open_interest == 1200.0
        assert contract.implied_volatility == pytest.approx(0.12)
        assert contract.greeks.delta == pytest.approx(0.51)

    def test_empty_results(self):
        assert PolygonOptionsProvider("pk").parse(make_response(200, {"results": []}), "AAPL") == []
