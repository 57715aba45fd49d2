"""Derived market metrics from a quote and its trailing daily history."""

from typing import Optional, Sequence

from marketpulse.core.logger import logger
from marketpulse.models.datatypes import DailyBar, EnrichedStockData, StockQuote

MOMENTUM_WINDOW = 10


def enrich_stock_data(
    quote: StockQuote,
    history: Optional[Sequence[DailyBar]] = None,
) -> EnrichedStockData:
    """
    Enrich ``quote`` with volume ratio, relative strength and momentum.

    Args:
        quote: The current quote.
        history: Daily bars ordered oldest to newest, excluding the quote's own day.

    Returns:
        EnrichedStockData: Without history, only the base quote. With history,
        ``average_volume``, ``volume_ratio`` and ``relative_strength``; plus
        ``momentum`` when at least 10 bars are available, measured against the
        10th-most-recent close (``history[len - 10]``). On any computation error
        the base quote is returned with ``degraded=True``.
    """
    if not history:
        return EnrichedStockData(quote=quote)

    try:
        average_volume = sum(bar.volume for bar in history) / len(history)
        average_close = sum(bar.close for bar in history) / len(history)

        momentum = None
        if len(history) >= MOMENTUM_WINDOW:
            reference_close = history[len(history) - MOMENTUM_WINDOW].close
            momentum = (quote.price - reference_close) / reference_close

        return EnrichedStockData(
            quote=quote,
            average_volume=average_volume,
            volume_ratio=quote.volume / average_volume,
            relative_strength=quote.price / average_close,
            momentum=momentum,
        )
    except (ArithmeticError, AttributeError, TypeError) as exc:
        logger.error(
            f"enrich_stock_data: enrichment failed symbol={quote.symbol} "
            f"bars={len(history)}, returning base quote | {exc}"
        )
        return EnrichedStockData(quote=quote, degraded=True)
