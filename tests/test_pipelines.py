"""End-to-end tests of the news, market and options pipelines against a fake HTTP session."""

from datetime import date, timedelta

import pytest
import requests

from marketpulse.core.errors import ProviderError
from marketpulse.core.http import RequestExecutor
from marketpulse.models.datatypes import DailyBar, OptionType
from marketpulse.pipeline.market import MarketIngestion
from marketpulse.pipeline.news import NewsIngestion
from marketpulse.pipeline.options import OptionsIngestion
from marketpulse.providers.base import HistoryProvider
from marketpulse.providers.market import AlphaVantageQuoteProvider, StoredHistoryProvider
from marketpulse.providers.news import NewsApiProvider
from marketpulse.providers.options import PolygonOptionsProvider
from marketpulse.providers.sentiment import LexiconSentimentProvider
from tests.conftest import FIXED_NOW, FakeSession, make_article, make_quote, make_response

TODAY = FIXED_NOW.date()

LEXICON = {"record": 2.0, "high": 1.5, "plunge": -2.5}


def _newsapi_article(url, title, description="", published="2024-06-14T15:00:00Z"):
    return {
        "source": {"name": "Example Wire"},
        "title": title,
        "description": description,
        "url": url,
        "publishedAt": published,
    }


def _global_quote(symbol, price, change, day="2024-06-14", volume=1_000_000):
    return {"Global Quote": {
        "01. symbol": symbol,
        "02. open": str(price - change),
        "03. high": str(price + 1),
        "04. low": str(price - 1),
        "05. price": str(price),
        "06. volume": str(volume),
        "07. latest trading day": day,
        "08. previous close": str(price - change),
        "09. change": str(change),
        "10. change percent": f"{change / (price - change) * 100:.4f}%",
    }}


class FailingHistory(HistoryProvider):
    def fetch_history(self, symbol, days, before):
        raise RuntimeError("history backend down")


class TestNewsIngestion:
    def _pipeline(self, settings, session, store, clock):
        return NewsIngestion(
            settings=settings,
            executor=RequestExecutor(session=session),
            providers=[NewsApiProvider("key")],
            sentiment=LexiconSentimentProvider(lexicon=LEXICON),
            store=store,
            clock=clock,
        )

    def test_fetch_dedupe_enrich_filter_store(self, fast_settings, store, fixed_clock, no_sleep):
        by_keyword = {
            "stock market": [
                _newsapi_article("https://n/1", "Apple hits record high"),
                _newsapi_article("https://n/2", "Weather turns sunny"),
            ],
            "earnings": [
                _newsapi_article("https://n/1", "Apple hits record high (syndicated)"),
                _newsapi_article("https://n/3", "Stock market plunge", published="2024-06-14T16:00:00Z"),
            ],
        }
        session = FakeSession(lambda url, params: make_response(
            200, {"status": "ok", "articles": by_keyword[params["q"]]},
        ))

        stored = self._pipeline(fast_settings, session, store, fixed_clock).run()

        assert [a.url for a in stored] == ["https://n/1", "https://n/3"]
        apple = stored[0]
        assert apple.title == "Apple hits record high"
        assert apple.tickers == ("AAPL",)
        assert apple.sentiment_score == pytest.approx(1.0)
        assert apple.relevance_score == pytest.approx(0.5)
        crash = stored[1]
        assert crash.tickers is None
        assert crash.sentiment_score < 0
        assert crash.relevance_score == pytest.approx(0.5)

        assert {a.url for a in store.get_news_for_date(TODAY)} == {"https://n/1", "https://n/3"}
        assert [a.url for a in store.get_ticker_news("AAPL")] == ["https://n/1"]

    def test_partial_failure_is_skipped(self, fast_settings, store, fixed_clock, no_sleep):
        def handler(url, params):
            if params["q"] == "earnings":
                return make_response(500)
            return make_response(200, {"status": "ok", "articles": [
                _newsapi_article("https://n/1", "MSFT stock climbs"),
            ]})

        stored = self._pipeline(fast_settings, FakeSession(handler), store, fixed_clock).run()

        assert [a.url for a in stored] == ["https://n/1"]

    def test_total_failure_raises(self, fast_settings, store, fixed_clock, no_sleep):
        def handler(url, params):
            raise requests.ConnectionError("network unreachable")

        with pytest.raises(ProviderError):
            self._pipeline(fast_settings, FakeSession(handler), store, fixed_clock).run()
        assert store.get_news_for_date(TODAY) == []

    def test_run_date_follows_clock(self, fast_settings, store, no_sleep):
        session = FakeSession(lambda url, params: make_response(200, {"status": "ok", "articles": [
            _newsapi_article("https://n/9", "AAPL stock update"),
        ]}))
        later = FIXED_NOW + timedelta(days=3)

        self._pipeline(fast_settings, session, store, lambda: later).run()

        assert store.get_news_for_date(TODAY) == []
        assert len(store.get_news_for_date(later.date())) == 1


class TestMarketIngestion:
    def _pipeline(self, settings, session, store, clock, history=None):
        return MarketIngestion(
            settings=settings,
            executor=RequestExecutor(session=session),
            quotes=AlphaVantageQuoteProvider("av"),
            history=history or StoredHistoryProvider(store),
            store=store,
            clock=clock,
        )

    def test_quotes_enriched_and_correlated(self, fast_settings, store, fixed_clock, no_sleep):
        store.store_news([
            make_article(url="n1", title="Apple slides", tickers=("AAPL",), sentiment_score=-0.4),
        ], TODAY)
        for i in range(10):
            store.store_quotes([make_quote(
                latest_trading_day=date(2024, 6, 1) + timedelta(days=i), price=100.0, volume=1_000_000,
            )])

        def handler(url, params):
            if params["symbol"] == "AAPL":
                return make_response(200, _global_quote("AAPL", 110.0, -1.5, volume=2_000_000))
            return make_response(200, {"Note": "API call frequency exceeded"})

        insights = self._pipeline(fast_settings, FakeSession(handler), store, fixed_clock).run()

        assert [i.symbol for i in insights] == ["AAPL"]
        enriched = insights[0].enriched
        assert enriched.volume_ratio == pytest.approx(2.0)
        assert enriched.relative_strength == pytest.approx(1.1)
        assert enriched.momentum == pytest.approx(0.1)
        correlation = insights[0].correlation
        assert correlation.news_impact == pytest.approx(0.6)
        assert correlation.significant_articles[0].article.url == "n1"

        assert store.get_latest_quote("AAPL").price == 110.0
        assert store.get_latest_quote("MSFT") is None
        assert store.get_market_insight("AAPL", TODAY)["momentum"] == pytest.approx(0.1)
        history = store.get_quote_history("AAPL", limit=30)
        assert history[-1] == DailyBar(date(2024, 6, 14), 111.5, 111.0, 109.0, 110.0, 2_000_000)

    def test_history_failure_enriches_without_it(self, fast_settings, store, fixed_clock, no_sleep):
        session = FakeSession(lambda url, params: make_response(
            200, _global_quote(params["symbol"], 50.0, 1.0),
        ))

        insights = self._pipeline(
            fast_settings, session, store, fixed_clock, history=FailingHistory(),
        ).run()

        assert len(insights) == 2
        assert all(i.enriched.volume_ratio is None for i in insights)
        assert all(i.correlation.news_impact == 0.0 for i in insights)

    def test_no_quotes_raises(self, fast_settings, store, fixed_clock, no_sleep):
        session = FakeSession(lambda url, params: make_response(503))
        with pytest.raises(ProviderError):
            self._pipeline(fast_settings, session, store, fixed_clock).run()


class TestOptionsIngestion:
    def _contract(self, exp, strike, kind):
        return {
            "ticker": f"O:AAPL{exp.replace('-', '')}{kind[0].upper()}{int(strike)}",
            "expiration_date": exp,
            "strike_price": strike,
            "contract_type": kind,
        }

    def test_keeps_two_nearest_future_expirations(self, fast_settings, store, fixed_clock, no_sleep):
        results = [
            self._contract("2024-06-07", 190, "call"),
            self._contract("2024-06-21", 190, "call"),
            self._contract("2024-06-21", 190, "put"),
            self._contract("2024-06-28", 195, "call"),
            self._contract("2024-07-19", 200, "put"),
        ]
        session = FakeSession(lambda url, params: make_response(200, {"results": results}))
        pipeline = OptionsIngestion(
            settings=fast_settings,
            executor=RequestExecutor(session=session),
            provider=PolygonOptionsProvider("pk"),
            store=store,
            clock=fixed_clock,
        )

        contracts = pipeline.run()

        assert sorted({c.expiration for c in contracts}) == [date(2024, 6, 21), date(2024, 6, 28)]
        assert store.list_expirations("AAPL") == [date(2024, 6, 21), date(2024, 6, 28)]
        calls, puts = store.get_options_chain("AAPL", date(2024, 6, 21))
        assert [c.type for c in calls] == [OptionType.CALL]
        assert [p.type for p in puts] == [OptionType.PUT]

    def test_all_requests_failed(self, fast_settings, store, fixed_clock, no_sleep):
        session = FakeSession(lambda url, params: make_response(500))
        pipeline = OptionsIngestion(
            settings=fast_settings,
            executor=RequestExecutor(session=session),
            provider=PolygonOptionsProvider("pk"),
            store=store,
            clock=fixed_clock,
        )
        with pytest.raises(ProviderError):
            pipeline.run()
