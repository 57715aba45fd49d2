"""Configuration module for loading project settings and environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml
from dotenv import load_dotenv

from marketpulse.core.errors import ConfigError, ConfigFileNotFoundError

# Load environment variables from .env file
load_dotenv()

DEFAULT_SYMBOLS = ["AAPL", "MSFT", "GOOGL", "AMZN", "META", "TSLA", "NVDA", "JPM", "BAC", "V"]
DEFAULT_KEYWORDS = [
    "stock market",
    "earnings",
    "financial results",
    "quarterly report",
    "investor",
    "trading",
    "shares",
]
DEFAULT_UNDERLYINGS = ["AAPL", "MSFT", "TSLA", "AMZN", "SPY"]


def load_config(config_path: str | Path = "config.yaml") -> Dict[str, Any]:
    """
    Load configuration from the specified YAML file.

    Args:
        config_path (str | Path): Path to the configuration file. Defaults to "config.yaml".

    Returns:
        Dict[str, Any]: A dictionary containing the configuration settings.

    Raises:
        ConfigFileNotFoundError: If the file does not exist.
        ConfigError: If the file is empty or is not a YAML mapping.
    """
    config_file = Path(config_path)
    if not config_file.exists():
        raise ConfigFileNotFoundError(f"Configuration file not found at {config_path}")

    with open(config_file, "r", encoding="utf-8") as file:
        try:
            config_data = yaml.safe_load(file)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Configuration file {config_path} is not valid YAML: {exc}") from exc

    if not config_data or not isinstance(config_data, dict):
        raise ConfigError(f"Configuration file {config_path} is empty or invalid.")

    return config_data


@dataclass
class HttpSettings:
    """Retry, batching and timeout tunables shared by every fetch path."""
    max_retries: int = 3
    initial_delay_ms: int = 1000
    batch_size: int = 3
    inter_batch_delay_ms: int = 1000
    timeout_seconds: float = 15.0


@dataclass
class NewsSettings:
    keywords: List[str] = field(default_factory=lambda: list(DEFAULT_KEYWORDS))
    page_size: int = 20
    providers: List[str] = field(default_factory=lambda: ["newsapi"])
    include_cashtags: bool = True
    relevance_threshold: float = 0.2


@dataclass
class MarketSettings:
    history_source: str = "store"
    history_days: int = 30


@dataclass
class OptionsSettings:
    underlyings: List[str] = field(default_factory=lambda: list(DEFAULT_UNDERLYINGS))
    expirations: int = 2
    contract_limit: int = 1000
    use_snapshot: bool = False


@dataclass
class Settings:
    """Typed view over ``config.yaml`` plus API credentials from the environment.

    Built once per pipeline invocation; nothing here is cached across runs.
    """
    symbols: List[str] = field(default_factory=lambda: list(DEFAULT_SYMBOLS))
    database: str = "output/marketpulse.db"
    output_dir: str = "output"
    http: HttpSettings = field(default_factory=HttpSettings)
    news: NewsSettings = field(default_factory=NewsSettings)
    market: MarketSettings = field(default_factory=MarketSettings)
    options: OptionsSettings = field(default_factory=OptionsSettings)
    news_api_key: str = ""
    alpha_vantage_api_key: str = ""
    polygon_api_key: str = ""

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "Settings":
        """Build settings from a parsed config dict, reading API keys from the environment."""
        try:
            symbols = [str(s).upper() for s in config.get("symbols", DEFAULT_SYMBOLS)]
            output_dir = config.get("output_dir", "output")
            settings = cls(
                symbols=symbols,
                output_dir=output_dir,
                database=config.get("database", os.path.join(output_dir, "marketpulse.db")),
                http=HttpSettings(**config.get("http", {})),
                news=NewsSettings(**config.get("news", {})),
                market=MarketSettings(**config.get("market", {})),
                options=OptionsSettings(**config.get("options", {})),
                news_api_key=os.getenv("NEWS_API_KEY", ""),
                alpha_vantage_api_key=os.getenv("ALPHA_VANTAGE_API_KEY", ""),
                polygon_api_key=os.getenv("POLYGON_API_KEY", ""),
            )
        except TypeError as exc:
            # Unknown keys inside a section surface as unexpected keyword arguments
            raise ConfigError(f"Invalid configuration section: {exc}") from exc

        if settings.http.batch_size < 1:
            raise ConfigError("http.batch_size must be at least 1")
        if settings.http.max_retries < 0:
            raise ConfigError("http.max_retries must not be negative")
        if settings.market.history_source not in ("store", "yfinance"):
            raise ConfigError(
                f"market.history_source must be 'store' or 'yfinance', "
                f"got {settings.market.history_source!r}"
            )
        return settings
