"""MarketPulse ingestion entry point.

Usage:
    python run_pipeline.py [news|market|options|all] [--config config.yaml]

Runs the requested ingestion pipeline(s) once and reports success/failure to
stdout and the pipeline log. Intended to be invoked by cron or any external
scheduler.
"""

import argparse
import sys

from dotenv import load_dotenv

load_dotenv()  # must precede marketpulse imports so env vars are available at module load

from marketpulse.core.errors import ConfigError  # noqa: E402
from marketpulse.core.logger import logger  # noqa: E402
from marketpulse.pipeline.engine import (  # noqa: E402
    run_market_ingestion, run_news_ingestion, run_options_ingestion,
)

# News first so the market run can correlate against the same day's articles
_RUNNERS = {
    "news": run_news_ingestion,
    "market": run_market_ingestion,
    "options": run_options_ingestion,
}


def main(argv: list[str] | None = None) -> int:
    """Run the pipeline(s). Returns 0 on success, 1 on failure."""
    parser = argparse.ArgumentParser(description="Run MarketPulse ingestion pipelines.")
    parser.add_argument("domain", nargs="?", default="all", choices=[*_RUNNERS, "all"])
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    args = parser.parse_args(argv)

    domains = list(_RUNNERS) if args.domain == "all" else [args.domain]
    failed = []
    for domain in domains:
        try:
            records = _RUNNERS[domain](args.config)
        except ConfigError as exc:
            logger.error(f"run_pipeline: failed to load config: {exc}")
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1
        except Exception as exc:
            print(f"ERROR: {domain} ingestion failed — {exc}", file=sys.stderr)
            failed.append(domain)
            continue
        print(f"SUCCESS: {domain} ingestion stored {len(records)} records")
        logger.info(f"run_pipeline: {domain} completed — {len(records)} records")

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
