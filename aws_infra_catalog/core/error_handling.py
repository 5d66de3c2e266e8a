"""Error taxonomy and retry handling for parameter store operations."""

import asyncio
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from .logging import get_logger


class ErrorClass(Enum):
    """Retry classification of a failed remote call."""

    RETRYABLE = "retryable"
    FATAL = "fatal"


class CatalogError(Exception):
    """Base exception for catalog discovery errors."""

    pass


class ParameterSourceError(CatalogError):
    """Remote parameter store rejected a call (auth, validation, unknown)."""

    def __init__(self, message: str, path: Optional[str] = None, code: str = ""):
        super().__init__(message)
        self.path = path
        self.code = code


class NotFoundError(ParameterSourceError):
    """The requested parameter path does not exist remotely."""

    pass


class ThrottledError(ParameterSourceError):
    """The remote store rejected the call because of rate limiting."""

    pass


class TransportError(ParameterSourceError):
    """Connectivity, timeout or transient server-side failure."""

    pass


class ValidationError(CatalogError):
    """Remote data or a caller-supplied value failed a structural check."""

    pass


class CacheError(CatalogError):
    """Cache snapshot could not be read or written. Treated as a cache miss."""

    pass


class FetchCancelledError(CatalogError):
    """The fetch session was cancelled before this operation could complete."""

    pass


class RetryExhaustedError(CatalogError):
    """Raised when every attempt of a retryable operation failed."""

    def __init__(self, attempts: int, cause: BaseException, context: str = ""):
        label = f" ({context})" if context else ""
        super().__init__(f"Gave up after {attempts} attempts{label}: {cause}")
        self.attempts = attempts
        self.cause = cause
        self.context = context


class PipelineError(CatalogError):
    """A discovery pipeline could not produce its core listing."""

    def __init__(self, pipeline: str, message: str):
        super().__init__(f"{pipeline} pipeline failed: {message}")
        self.pipeline = pipeline


class DiscoveryError(CatalogError):
    """Every requested discovery pipeline failed."""

    pass


RETRYABLE_KEYWORDS = (
    "throttl",
    "rate exceeded",
    "too many requests",
    "connection reset",
    "connection aborted",
    "timed out",
    "timeout",
    "name resolution",
    "dns",
)


def classify_error(error: BaseException) -> ErrorClass:
    """Classify an error for the retry decision.

    Throttling and transport failures are retried. Everything else (not found,
    validation, authentication, unknown) is fatal.

    Args:
        error: Exception raised by a remote call

    Returns:
        ErrorClass.RETRYABLE or ErrorClass.FATAL
    """
    if isinstance(error, (ThrottledError, TransportError)):
        return ErrorClass.RETRYABLE

    if isinstance(error, (NotFoundError, ParameterSourceError, CatalogError)):
        return ErrorClass.FATAL

    if isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return ErrorClass.RETRYABLE

    error_str = str(error).lower()
    if any(keyword in error_str for keyword in RETRYABLE_KEYWORDS):
        return ErrorClass.RETRYABLE

    return ErrorClass.FATAL


class RetryPolicy:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_retries: int = 5,
        base_delay: float = 0.1,
        factor: float = 2.0,
        max_delay: float = 10.0,
        jitter_ratio: float = 0.25,
    ):
        """Initialize retry policy.

        Args:
            max_retries: Total number of attempts before giving up
            base_delay: Delay before the first retry (seconds)
            factor: Exponential growth factor between retries
            max_delay: Upper bound for a single backoff delay (seconds)
            jitter_ratio: Maximum random jitter as a fraction of the delay
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.factor = factor
        self.max_delay = max_delay
        self.jitter_ratio = jitter_ratio

    @classmethod
    def from_config(cls, config) -> "RetryPolicy":
        """Build a policy from a Config object."""
        return cls(
            max_retries=config.max_retries,
            base_delay=config.base_delay,
            factor=config.backoff_factor,
            max_delay=config.max_delay,
        )

    def backoff_delay(self, attempt: int) -> float:
        """Delay before the retry that follows a failed attempt, without jitter.

        Args:
            attempt: Number of failed attempts so far minus one (0-based)
        """
        return min(self.max_delay, self.base_delay * (self.factor**attempt))


def _calculate_delay(policy: RetryPolicy, attempt: int) -> float:
    """Calculate jittered delay for a retry attempt.

    Args:
        policy: Retry policy
        attempt: Attempt number (0-based)

    Returns:
        Delay in seconds, never above policy.max_delay
    """
    delay = policy.backoff_delay(attempt)
    # Jitter to prevent thundering herd across a batch
    jitter = random.uniform(0, policy.jitter_ratio * delay)
    return min(policy.max_delay, delay + jitter)


@dataclass
class RetryState:
    """Attempt bookkeeping for a single retried operation."""

    attempts: int = 0
    last_error: Optional[BaseException] = None


class RetryController:
    """Run async operations with bounded exponential backoff and jitter."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        """Initialize retry controller.

        Args:
            policy: Retry policy (defaults if None)
            sleep: Coroutine function used to suspend between attempts
            cancel_event: Event that aborts further attempts once set
        """
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self.cancel_event = cancel_event
        self.logger = get_logger("retry")

    def _check_cancelled(self, context: str):
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise FetchCancelledError(f"Cancelled before attempt ({context})")

    async def execute(
        self,
        operation: Callable[[], Awaitable[Any]],
        classify: Callable[[BaseException], ErrorClass] = classify_error,
        context: str = "",
        state: Optional[RetryState] = None,
    ) -> Any:
        """Execute an operation, retrying retryable failures.

        Args:
            operation: Zero-argument coroutine function performing the remote call
            classify: Maps an exception to RETRYABLE or FATAL
            context: Label used in log lines and errors
            state: Optional RetryState updated with attempts and the last error

        Returns:
            Result of the first successful attempt

        Raises:
            RetryExhaustedError: If all attempts failed with retryable errors
            FetchCancelledError: If cancellation was observed between attempts
            Exception: The original exception for fatal errors
        """
        state = state if state is not None else RetryState()
        max_retries = self.policy.max_retries

        while True:
            self._check_cancelled(context)
            state.attempts += 1

            try:
                result = await operation()
            except Exception as e:
                state.last_error = e

                if classify(e) is ErrorClass.FATAL:
                    self.logger.debug(
                        f"Non-retryable error on attempt {state.attempts}: {e}",
                        context=context,
                    )
                    raise

                if state.attempts >= max_retries:
                    self.logger.error(
                        f"All {max_retries} attempts failed. Last error: {e}",
                        context=context,
                    )
                    raise RetryExhaustedError(state.attempts, e, context) from e

                delay = _calculate_delay(self.policy, state.attempts - 1)
                self.logger.warning(
                    f"Attempt {state.attempts}/{max_retries} failed: {e}. "
                    f"Retrying in {delay:.2f}s...",
                    context=context,
                )
                await self._sleep(delay)
                continue

            if state.attempts > 1:
                self.logger.debug(
                    f"Succeeded on attempt {state.attempts}", context=context
                )
            return result
