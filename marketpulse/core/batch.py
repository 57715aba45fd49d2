"""Batched request execution with bounded parallelism and inter-batch pacing.

Requests are split into consecutive groups of ``batch_size``. Requests inside a
group run concurrently on a thread pool; groups run strictly one after another
with a pause between them so upstream rate limits are respected.
"""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Sequence

import requests

from marketpulse.core.http import HttpRequest, RequestExecutor
from marketpulse.core.logger import logger


def run_batched(
    executor: RequestExecutor,
    pending: Sequence[HttpRequest],
    batch_size: int = 3,
    inter_batch_delay_ms: int = 1000,
    max_retries: int = 3,
    initial_delay_ms: int = 1000,
) -> List[Optional[requests.Response]]:
    """Execute ``pending`` requests in paced batches.

    Args:
        executor: The request executor used for every item.
        pending: Requests to run, in order.
        batch_size: Number of requests in flight at once.
        inter_batch_delay_ms: Pause between consecutive batches (not after the last one).
        max_retries: Passed through to :meth:`RequestExecutor.execute`.
        initial_delay_ms: Passed through to :meth:`RequestExecutor.execute`.

    Returns:
        List with one entry per input request, at the same index: the response,
        or ``None`` if that request failed after retries.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")

    results: List[Optional[requests.Response]] = [None] * len(pending)
    total = len(pending)
    n_batches = (total + batch_size - 1) // batch_size
    start_time = time.time()

    for batch_no, start in enumerate(range(0, total, batch_size), start=1):
        batch = list(enumerate(pending[start:start + batch_size], start=start))
        logger.info(
            f"run_batched: batch={batch_no}/{n_batches} size={len(batch)} "
            f"range=[{start}, {start + len(batch)})"
        )

        with ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix="fetch") as pool:
            futures = {
                pool.submit(executor.execute, req, max_retries, initial_delay_ms): (idx, req)
                for idx, req in batch
            }
            for future in as_completed(futures):
                idx, req = futures[future]
                try:
                    results[idx] = future.result()
                except Exception as exc:
                    logger.error(
                        f"run_batched: item failed index={idx} label={req.label or req.url} | {exc}"
                    )
                    results[idx] = None

        if start + batch_size < total:
            time.sleep(inter_batch_delay_ms / 1000.0)

    failed = sum(1 for r in results if r is None)
    logger.info(
        f"run_batched: complete total={total} failed={failed} "
        f"elapsed={time.time() - start_time:.2f}s"
    )
    return results
