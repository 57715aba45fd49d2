"""Resilient HTTP request executor.

Every upstream fetch goes through :class:`RequestExecutor.execute`, which issues a
single GET and retries transient failures:

    * transport failures (no response received)
    * HTTP 429 (rate limited)
    * HTTP 5xx

Any other HTTP error status fails immediately.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from marketpulse.core.logger import logger
from marketpulse.core.retry import with_retries

DEFAULT_TIMEOUT_SECONDS = 15.0
BACKOFF_FACTOR = 1.5


@dataclass(frozen=True)
class HttpRequest:
    """A parameterized GET request against an upstream provider.

    Attributes:
        url: Absolute endpoint URL.
        params: Query string parameters.
        headers: Extra request headers.
        label: Short human-readable name used in log entries (e.g. ``"quote:AAPL"``).
    """
    url: str
    params: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    label: str = ""


def is_retryable(exc: BaseException) -> bool:
    """Return True for transport failures, HTTP 429 and HTTP 5xx."""
    if not isinstance(exc, requests.RequestException):
        return False
    response = exc.response
    if response is None:
        return True
    status = response.status_code
    return status == 429 or status >= 500


class RequestExecutor:
    """Issues single GET requests with bounded retry and backoff.

    Args:
        session: Shared ``requests.Session`` (created if not provided).
        timeout: Per-attempt timeout in seconds.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout

    def execute(
        self,
        request: HttpRequest,
        max_retries: int = 3,
        initial_delay_ms: int = 1000,
    ) -> requests.Response:
        """Send ``request``, retrying transient failures.

        Args:
            request: The request to issue.
            max_retries: Retries after the first attempt.
            initial_delay_ms: Delay before the first retry; grows by 1.5x per retry.

        Returns:
            requests.Response: A response with a non-error status.

        Raises:
            requests.RequestException: The last error once retries are exhausted,
                or immediately for non-retryable HTTP errors.
        """
        label = request.label or request.url

        @with_retries(
            max_retries=max_retries,
            initial_delay=initial_delay_ms / 1000.0,
            backoff=BACKOFF_FACTOR,
            retry_if=is_retryable,
            label=label,
        )
        def _send() -> requests.Response:
            logger.debug(f"RequestExecutor: GET label={label} url={request.url}")
            resp = self.session.get(
                request.url,
                params=request.params,
                headers=request.headers or None,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp

        return _send()

    def close(self) -> None:
        self.session.close()
