"""Exception hierarchy for the ingestion pipeline.

Only failures that must abort a run are modelled here. Per-item fetch failures
and enrichment failures are logged and degraded where they happen.
"""


class MarketPulseError(Exception):
    """Base class for all pipeline errors raised to the entry points."""


class ConfigError(MarketPulseError, ValueError):
    """Raised when the configuration file is missing, empty or malformed."""


class ConfigFileNotFoundError(ConfigError, FileNotFoundError):
    """Raised when the configuration file does not exist."""


class ProviderError(MarketPulseError):
    """Raised when an upstream provider produced no usable data for a whole run."""


class StorageError(MarketPulseError):
    """Raised when reading from or writing to the persistent store fails."""


__all__ = [
    "MarketPulseError",
    "ConfigError",
    "ConfigFileNotFoundError",
    "ProviderError",
    "StorageError",
]
