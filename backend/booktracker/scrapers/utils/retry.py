"""Retry utilities with exponential backoff for HTTP requests."""

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
import httpx
import structlog


logger = structlog.get_logger(__name__)


def _log_before_sleep(retry_state: RetryCallState) -> None:
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "retrying_request",
        function=getattr(retry_state.fn, "__qualname__", None),
        attempt=retry_state.attempt_number,
        error=str(exception),
    )


# Transport errors are retried once with short waits. HTTP status errors are not retried.
scrape_retry = retry(
    stop=stop_after_attempt(2),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
    retry=retry_if_exception_type(
        (
            httpx.ConnectError,
            httpx.ReadError,
            httpx.TimeoutException,
        )
    ),
    before_sleep=_log_before_sleep,
    reraise=True,
)


# Token fetch gets one extra attempt
auth_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
    retry=retry_if_exception_type(
        (
            httpx.ConnectError,
            httpx.ReadError,
            httpx.TimeoutException,
        )
    ),
    before_sleep=_log_before_sleep,
    reraise=True,
)
