"""Lexicon-based financial sentiment scoring.

Pipeline:
    text (str) → tokens → lexicon valences → per-token polarity → ×2 → clamp [-1, 1]

The lexicon is VADER's (``vaderSentiment``) extended with a fixed set of
market terms. VADER valences live on a [-4, 4] scale; the raw polarity is the
lexicon sum divided by the number of tokens.

Category thresholds (inclusive toward the more extreme bucket):

    score <= -0.6          → very negative
    -0.6 < score <= -0.2   → negative
    -0.2 < score <  0.2    → neutral
     0.2 <= score < 0.6    → positive
     0.6 <= score          → very positive
"""

import re
from typing import Dict, List, Mapping, Optional

from vaderSentiment.vaderSentiment import SentimentIntensityAnalyzer

from marketpulse.core.logger import logger
from marketpulse.models.datatypes import SentimentCategory, SentimentResult
from marketpulse.providers.base import SentimentProvider

SCALE_FACTOR = 2.0

_TOKEN_RE = re.compile(r"[a-z0-9]+")

# Market vocabulary missing from (or mis-weighted in) the general VADER lexicon.
FINANCIAL_LEXICON: Dict[str, float] = {
    # Bullish
    "beat": 1.5,
    "beats": 1.5,
    "bullish": 2.0,
    "breakout": 1.5,
    "gain": 1.5,
    "gains": 1.5,
    "high": 1.5,
    "highs": 1.5,
    "outperform": 2.0,
    "rally": 2.0,
    "rallies": 2.0,
    "rebound": 1.5,
    "record": 2.0,
    "soar": 2.5,
    "soars": 2.5,
    "surge": 2.0,
    "surges": 2.0,
    "upgrade": 1.8,
    "upgraded": 1.8,
    # Bearish
    "bearish": -2.0,
    "bankruptcy": -3.0,
    "crash": -3.0,
    "downgrade": -1.8,
    "downgraded": -1.8,
    "layoffs": -2.0,
    "loss": -1.5,
    "losses": -1.5,
    "miss": -1.5,
    "misses": -1.5,
    "plunge": -2.5,
    "plunges": -2.5,
    "recession": -2.0,
    "selloff": -2.0,
    "slump": -2.0,
    "tumble": -2.0,
    "tumbles": -2.0,
    "underperform": -2.0,
}


def categorize(score: float) -> SentimentCategory:
    """Map a score in ``[-1, 1]`` to its category. Total over all floats."""
    if score <= -0.6:
        return SentimentCategory.VERY_NEGATIVE
    if score <= -0.2:
        return SentimentCategory.NEGATIVE
    if score >= 0.6:
        return SentimentCategory.VERY_POSITIVE
    if score >= 0.2:
        return SentimentCategory.POSITIVE
    return SentimentCategory.NEUTRAL


def tokenize(text: str) -> List[str]:
    """Lower-case ``text`` and split it on whitespace and punctuation."""
    return _TOKEN_RE.findall(text.lower())


class LexiconSentimentProvider(SentimentProvider):
    """Fixed-lexicon sentiment scorer.

    Args:
        lexicon: Word → valence mapping. Defaults to VADER's lexicon merged with
            :data:`FINANCIAL_LEXICON`.
    """

    def __init__(self, lexicon: Optional[Mapping[str, float]] = None) -> None:
        if lexicon is None:
            merged = dict(SentimentIntensityAnalyzer().lexicon)
            merged.update(FINANCIAL_LEXICON)
            lexicon = merged
        self.lexicon: Mapping[str, float] = lexicon

    def score(self, text: str) -> float:
        """Return the sentiment score of ``text`` in ``[-1.0, 1.0]``; 0.0 on failure."""
        return self.analyze(text).score

    def analyze(self, text: str) -> SentimentResult:
        try:
            tokens = tokenize(text)
            if not tokens:
                return SentimentResult(score=0.0, category=SentimentCategory.NEUTRAL)
            raw = sum(float(self.lexicon.get(tok, 0.0)) for tok in tokens) / len(tokens)
            score = max(-1.0, min(1.0, raw * SCALE_FACTOR))
        except Exception as exc:
            logger.error(f"LexiconSentimentProvider: scoring failed, returning neutral | {exc}")
            return SentimentResult(score=0.0, category=SentimentCategory.NEUTRAL, degraded=True)

        return SentimentResult(score=score, category=categorize(score))
