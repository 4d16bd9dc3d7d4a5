"""Linear retry around an httpx transport.

Control-plane resources that are still provisioning usually become
available after a roughly constant delay, so waits are fixed (10s, no
jitter) and bounded by a five minute budget.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

import httpx

from dbxclient.errors import TransientTransportError
from dbxclient.logging.structured import get_logger

logger = get_logger("transport")

RETRY_DELAY_SECONDS = 10.0
RETRY_MAXIMUM_SECONDS = 300.0
# 429 plus every 5xx except 501 Not Implemented
RETRYABLE_STATUS_CODES = frozenset({429} | set(range(500, 600)) - {501})
MESSAGE_LIMIT = 512

RetryPredicate = Callable[[httpx.Request, httpx.Response | None, Exception | None], bool]


class RetryDecision(Enum):
    RETRY = "retry"
    STOP_SUCCESS = "stop_success"
    STOP_FATAL = "stop_fatal"


@dataclass
class RetryPolicy:
    wait_seconds: float = RETRY_DELAY_SECONDS
    max_duration_seconds: float = RETRY_MAXIMUM_SECONDS
    retryable_status_codes: frozenset[int] = RETRYABLE_STATUS_CODES
    # Returning False vetoes a retry the policy would otherwise make
    should_retry: RetryPredicate | None = None

    def __post_init__(self):
        if self.wait_seconds <= 0:
            raise ValueError("wait_seconds must be positive")

    @property
    def max_attempts(self) -> int:
        """Total attempts: the retry budget divided by the fixed wait."""
        return max(1, int(self.max_duration_seconds / self.wait_seconds))

    def classify(
        self,
        request: httpx.Request,
        response: httpx.Response | None = None,
        error: Exception | None = None,
    ) -> RetryDecision:
        if error is not None:
            retryable = isinstance(error, httpx.TransportError)
        elif response is not None:
            if response.status_code < 400:
                return RetryDecision.STOP_SUCCESS
            retryable = response.status_code in self.retryable_status_codes
        else:
            raise ValueError("classify needs a response or an error")

        if retryable and self.should_retry is not None:
            retryable = self.should_retry(request, response, error)
        return RetryDecision.RETRY if retryable else RetryDecision.STOP_FATAL

    def backoff(self, attempt: int) -> float:
        """Wait before the next attempt. Linear: the same for every attempt."""
        return self.wait_seconds


class RetryingTransport(httpx.AsyncBaseTransport):
    """Retries transient failures of the wrapped transport.

    Non-retryable responses are returned untouched and non-retryable
    errors re-raised. Once the attempt budget is spent the last cause is
    raised as TransientTransportError.
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._transport = transport
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        attempt = 0
        while True:
            attempt += 1
            response: httpx.Response | None = None
            error: Exception | None = None
            try:
                response = await self._transport.handle_async_request(request)
            except httpx.TransportError as e:
                error = e

            decision = self.policy.classify(request, response, error)
            if decision is RetryDecision.STOP_SUCCESS:
                return response
            if decision is RetryDecision.STOP_FATAL:
                if error is not None:
                    raise error
                return response

            status_code, message = await _describe(response, error)
            if attempt >= self.policy.max_attempts:
                logger.warning(
                    "Retry budget exhausted",
                    extra={"audit_data": {
                        "method": request.method,
                        "url": str(request.url),
                        "attempts": attempt,
                        "status_code": status_code,
                    }},
                )
                raise TransientTransportError(status_code, message, str(request.url), attempt) from error

            delay = self.policy.backoff(attempt)
            logger.info(
                "Transient failure, retrying",
                extra={"audit_data": {
                    "method": request.method,
                    "url": str(request.url),
                    "attempt": attempt,
                    "max_attempts": self.policy.max_attempts,
                    "status_code": status_code,
                    "error": message,
                    "delay_seconds": delay,
                }},
            )
            await self._sleep(delay)

    async def aclose(self) -> None:
        await self._transport.aclose()


async def _describe(response: httpx.Response | None, error: Exception | None) -> tuple[int, str]:
    """Status and message of a failed attempt. Releases the response."""
    if response is None:
        return 0, f"{type(error).__name__}: {error}"
    try:
        await response.aread()
        return response.status_code, response.text[:MESSAGE_LIMIT]
    finally:
        await response.aclose()
