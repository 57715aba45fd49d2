"""Output validator — checks the invariants of a populated store.

Checks:
  1. Every stored article has sentiment_score within [-1.0, 1.0]
  2. Every stored article has relevance_score within [0.0, 1.0]
  3. Article urls are unique and ticker lists have no repeats
  4. Every options chain has only call/put contracts of its own underlying

Usage:
    python -m marketpulse.pipeline.validator output/marketpulse.db
"""

import json
import sqlite3
import sys
from pathlib import Path
from typing import List, Tuple


def validate(db_path: str) -> Tuple[bool, List[str]]:
    """Run all validation checks against the SQLite store at db_path.

    Args:
        db_path: Path to the store written by the pipelines.

    Returns:
        Tuple of ``(passed: bool, messages: list[str])``.
        ``messages`` contains PASS/FAIL lines for each check.
    """
    messages: List[str] = []
    passed = True

    # ── load ──────────────────────────────────────────────────────────────────
    if not Path(db_path).exists():
        return False, [f"FAIL  store not found: {db_path}"]
    try:
        conn = sqlite3.connect(db_path)
        try:
            article_rows = conn.execute("SELECT url, payload FROM news_articles").fetchall()
            option_rows = conn.execute(
                "SELECT underlying, payload FROM options_contracts"
            ).fetchall()
        finally:
            conn.close()
    except sqlite3.Error as exc:
        return False, [f"FAIL  could not read store: {exc}"]

    articles = [json.loads(payload) for _, payload in article_rows]

    # ── check 1: sentiment_score in [-1, 1] ───────────────────────────────────
    bad_sentiment = [
        (a["url"], a.get("sentiment_score")) for a in articles
        if a.get("sentiment_score") is None or not -1.0 <= a["sentiment_score"] <= 1.0
    ]
    if not bad_sentiment:
        messages.append(f"PASS  sentiment_score in [-1.0, 1.0] for {len(articles)} articles")
    else:
        messages.append(
            f"FAIL  sentiment_score out of range in {len(bad_sentiment)} articles: "
            f"{bad_sentiment[:3]}"
        )
        passed = False

    # ── check 2: relevance_score in [0, 1] ────────────────────────────────────
    bad_relevance = [
        (a["url"], a.get("relevance_score")) for a in articles
        if a.get("relevance_score") is None or not 0.0 <= a["relevance_score"] <= 1.0
    ]
    if not bad_relevance:
        messages.append("PASS  relevance_score in [0.0, 1.0] for all articles")
    else:
        messages.append(
            f"FAIL  relevance_score out of range in {len(bad_relevance)} articles: "
            f"{bad_relevance[:3]}"
        )
        passed = False

    # ── check 3: unique urls, no repeated tickers ─────────────────────────────
    urls = [a["url"] for a in articles]
    repeated = [a["url"] for a in articles if a.get("tickers") and len(set(a["tickers"])) != len(a["tickers"])]
    if len(set(urls)) == len(urls) and not repeated:
        messages.append("PASS  article urls unique, ticker lists without repeats")
    else:
        messages.append(
            f"FAIL  duplicate urls={len(urls) - len(set(urls))} "
            f"repeated tickers in {repeated[:3]}"
        )
        passed = False

    # ── check 4: options chains ───────────────────────────────────────────────
    bad_contracts = []
    for underlying, payload in option_rows:
        contract = json.loads(payload)
        if contract.get("type") not in ("call", "put") or contract.get("underlying") != underlying:
            bad_contracts.append(contract.get("ticker"))
    if not bad_contracts:
        messages.append(f"PASS  {len(option_rows)} options contracts split into calls/puts")
    else:
        messages.append(f"FAIL  {len(bad_contracts)} malformed contracts: {bad_contracts[:3]}")
        passed = False

    return passed, messages


def main() -> int:
    if len(sys.argv) < 2:
        print("Usage: python -m marketpulse.pipeline.validator <path_to_db>")
        return 1
    db_path = sys.argv[1]
    passed, messages = validate(db_path)
    for msg in messages:
        print(msg)
    if passed:
        print("\nVALIDATION PASSED ✓")
        return 0
    else:
        print("\nVALIDATION FAILED ✗")
        return 1


if __name__ == "__main__":
    sys.exit(main())
