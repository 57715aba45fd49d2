"""Pipeline engine — wires settings, HTTP, providers and storage for one run.

Entry points (invoked by an external scheduler with no arguments):

    run_news_ingestion()     → NewsIngestion.run()
    run_market_ingestion()   → MarketIngestion.run()
    run_options_ingestion()  → OptionsIngestion.run()

Every entry point reads the configuration, opens the store and creates the HTTP
session afresh, and releases them when the run ends. Fatal errors are logged
and re-raised to the caller.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import requests

from marketpulse.core.config import Settings, load_config
from marketpulse.core.http import RequestExecutor
from marketpulse.core.logger import logger
from marketpulse.models.datatypes import MarketInsight, NewsArticle, OptionsContract
from marketpulse.pipeline.market import MarketIngestion
from marketpulse.pipeline.news import NewsIngestion
from marketpulse.pipeline.options import OptionsIngestion
from marketpulse.providers.base import HistoryProvider, NewsProvider
from marketpulse.providers.market import (
    AlphaVantageQuoteProvider, StoredHistoryProvider, YFinanceProvider,
)
from marketpulse.providers.news import GoogleNewsProvider, NewsApiProvider
from marketpulse.providers.options import PolygonOptionsProvider
from marketpulse.providers.sentiment import LexiconSentimentProvider
from marketpulse.storage.base import DocumentStore
from marketpulse.storage.sqlite_store import SQLiteStore

DEFAULT_CONFIG_PATH = "config.yaml"


class PipelineEngine:
    """Builds the per-domain pipelines from one configuration.

    Args:
        config: Parsed config.yaml dict (passed in; not re-loaded internally).
        store: Destination store. Defaults to a SQLiteStore at ``database``.
        session: HTTP session shared by every request of this run.
        clock: Injected into each pipeline; defaults to the current UTC time.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        store: Optional[DocumentStore] = None,
        session: Optional[requests.Session] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.settings = Settings.from_config(config)
        self.store = store or SQLiteStore(self.settings.database)
        self.executor = RequestExecutor(
            session=session, timeout=self.settings.http.timeout_seconds,
        )
        self._clock_kwargs = {"clock": clock} if clock else {}

    # ── builders ──────────────────────────────────────────────────────────────

    def news_pipeline(self) -> NewsIngestion:
        return NewsIngestion(
            settings=self.settings,
            executor=self.executor,
            providers=self._news_providers(),
            sentiment=LexiconSentimentProvider(),
            store=self.store,
            **self._clock_kwargs,
        )

    def market_pipeline(self) -> MarketIngestion:
        return MarketIngestion(
            settings=self.settings,
            executor=self.executor,
            quotes=AlphaVantageQuoteProvider(self.settings.alpha_vantage_api_key),
            history=self._history_provider(),
            store=self.store,
            **self._clock_kwargs,
        )

    def options_pipeline(self) -> OptionsIngestion:
        return OptionsIngestion(
            settings=self.settings,
            executor=self.executor,
            provider=PolygonOptionsProvider(
                self.settings.polygon_api_key, use_snapshot=self.settings.options.use_snapshot,
            ),
            store=self.store,
            **self._clock_kwargs,
        )

    def close(self) -> None:
        self.executor.close()
        self.store.close()

    # ── internal ──────────────────────────────────────────────────────────────

    def _news_providers(self) -> List[NewsProvider]:
        providers: List[NewsProvider] = []
        for name in self.settings.news.providers:
            if name == "newsapi":
                if not self.settings.news_api_key:
                    logger.warning("PipelineEngine: NEWS_API_KEY is not set; NewsAPI calls will be rejected")
                providers.append(NewsApiProvider(self.settings.news_api_key))
            elif name == "google_rss":
                providers.append(GoogleNewsProvider(max_entries=self.settings.news.page_size))
            else:
                logger.warning(f"PipelineEngine: unknown news provider {name!r} ignored")
        return providers

    def _history_provider(self) -> HistoryProvider:
        if self.settings.market.history_source == "yfinance":
            return YFinanceProvider()
        return StoredHistoryProvider(self.store)


# ── entry points ──────────────────────────────────────────────────────────────

def _run(domain: str, config_path: str | Path, build: Callable[[PipelineEngine], Any]) -> Any:
    """Load config, run one pipeline, always release resources, re-raise on failure."""
    engine: Optional[PipelineEngine] = None
    try:
        engine = PipelineEngine(config=load_config(config_path))
        return build(engine).run()
    except Exception as exc:
        logger.error(f"run_{domain}_ingestion: run failed | {exc}", exc_info=True)
        raise
    finally:
        if engine is not None:
            engine.close()


def run_news_ingestion(config_path: str | Path = DEFAULT_CONFIG_PATH) -> List[NewsArticle]:
    return _run("news", config_path, PipelineEngine.news_pipeline)


def run_market_ingestion(config_path: str | Path = DEFAULT_CONFIG_PATH) -> List[MarketInsight]:
    return _run("market", config_path, PipelineEngine.market_pipeline)


def run_options_ingestion(config_path: str | Path = DEFAULT_CONFIG_PATH) -> List[OptionsContract]:
    return _run("options", config_path, PipelineEngine.options_pipeline)
