"""
Error handling utilities for the Travello chat relay.
"""
import asyncio
import functools
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Tuple, Type, TypeVar, Union

from loguru import logger

T = TypeVar("T")

GENERIC_GENERATION_MESSAGE = "Maaf, gagal menghasilkan respons. Silakan coba lagi."


class ChatError(Exception):
    """Base exception for every failure that may cross the HTTP boundary."""

    status_code = 500
    public_message = "Terjadi kesalahan pada server."

    def __init__(self, message: str = "", *, public_message: str | None = None):
        super().__init__(message or self.public_message)
        if public_message is not None:
            self.public_message = public_message


class ValidationError(ChatError):
    """Caller input is malformed. The message is shown to the caller verbatim."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message, public_message=message)


class AuthenticationError(ChatError):
    """No authenticated actor on a route that requires one."""

    status_code = 401
    public_message = "User not authenticated"


class GenerationError(ChatError):
    """The generation capability failed for good; the cause is only logged."""

    status_code = 500
    public_message = GENERIC_GENERATION_MESSAGE


class PersistenceError(ChatError):
    """The message store could not complete an operation."""

    status_code = 500
    public_message = "Penyimpanan percakapan sedang tidak tersedia."


class RetryableError(Exception):
    """Raised by generation backends for failures worth another attempt."""
    pass


def handle_exceptions(
    error_types: Union[Type[Exception], Tuple[Type[Exception], ...]] = Exception,
    default_value: Any = None
) -> Callable:
    """Decorator to handle exceptions and return a default value."""
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except error_types as e:
                logger.error(f"Error in {func.__name__}: {str(e)}")
                return default_value() if callable(default_value) else default_value
        return wrapper
    return decorator


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff for awaitable calls.

    ``delay_for(n)`` is the pause after the n-th failed attempt:
    ``min(max_delay, base_delay * backoff ** (n - 1))`` plus up to
    ``jitter`` of that value drawn from ``rng``. ``sleep`` and ``rng`` are
    injectable so tests can run the policy against a fake clock.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    backoff: float = 2.0
    max_delay: float = 10.0
    jitter: float = 0.1

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0 or self.jitter < 0:
            raise ValueError("delays and jitter must be non-negative")

    def delay_for(self, attempt: int, rng: Callable[[], float] = random.random) -> float:
        delay = min(self.max_delay, self.base_delay * (self.backoff ** (attempt - 1)))
        return delay + delay * self.jitter * rng()

    async def run(
        self,
        func: Callable[[], Awaitable[T]],
        *,
        should_retry: Callable[[BaseException], bool],
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
        label: str = "call",
    ) -> T:
        """Await ``func`` until it succeeds, fails non-transiently or runs out of attempts."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return await func()
            except Exception as e:
                if not should_retry(e):
                    raise
                if attempt >= self.max_attempts:
                    logger.error(f"Final retry attempt failed for {label}: {e!r}")
                    raise
                delay = self.delay_for(attempt, rng)
                logger.warning(f"Attempt {attempt}/{self.max_attempts} failed for {label}: {e!r}")
                logger.info(f"Retrying in {delay:.2f} seconds...")
                await sleep(delay)
