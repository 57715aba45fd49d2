"""Options chain ingestion pipeline.

Fetches the chain of each configured underlying, keeps the nearest
expirations and stores the contracts unchanged.
"""

from datetime import datetime, timezone
from typing import Callable, List

from marketpulse.core.batch import run_batched
from marketpulse.core.config import Settings
from marketpulse.core.errors import ProviderError
from marketpulse.core.http import RequestExecutor
from marketpulse.core.logger import logger
from marketpulse.enrichment.options import group_by_expiration, nearest_expirations
from marketpulse.models.datatypes import OptionsContract
from marketpulse.providers.base import OptionsProvider
from marketpulse.storage.base import DocumentStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OptionsIngestion:
    """Fetches and stores options chains for one run."""

    def __init__(
        self,
        settings: Settings,
        executor: RequestExecutor,
        provider: OptionsProvider,
        store: DocumentStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.settings = settings
        self.executor = executor
        self.provider = provider
        self.store = store
        self.clock = clock

    def run(self) -> List[OptionsContract]:
        """Run the options pipeline once and return the stored contracts."""
        today = self.clock().date()
        opts = self.settings.options
        http = self.settings.http
        logger.info(
            f"OptionsIngestion: starting date={today} underlyings={len(opts.underlyings)}"
        )

        responses = run_batched(
            self.executor,
            [self.provider.build_request(u, opts.contract_limit) for u in opts.underlyings],
            batch_size=http.batch_size,
            inter_batch_delay_ms=http.inter_batch_delay_ms,
            max_retries=http.max_retries,
            initial_delay_ms=http.initial_delay_ms,
        )
        if opts.underlyings and all(r is None for r in responses):
            raise ProviderError(f"All {len(opts.underlyings)} options requests failed")

        contracts: List[OptionsContract] = []
        for underlying, response in zip(opts.underlyings, responses):
            if response is None:
                logger.error(f"OptionsIngestion: skipping underlying={underlying} reason=fetch_failed")
                continue
            try:
                chain = self.provider.parse(response, underlying)
            except ValueError as exc:
                logger.error(
                    f"OptionsIngestion: skipping underlying={underlying} reason=bad_payload | {exc}"
                )
                continue
            contracts.extend(nearest_expirations(chain, opts.expirations, today=today))

        for (underlying, expiration), group in group_by_expiration(contracts).items():
            logger.info(
                f"OptionsIngestion: chain underlying={underlying} expiration={expiration} "
                f"contracts={len(group)}"
            )

        self.store.store_options(contracts)
        logger.info(f"OptionsIngestion: completed contracts={len(contracts)}")
        return contracts
