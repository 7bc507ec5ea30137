"""Generation client: validation, timeout and retry around one backend."""
from __future__ import annotations

import asyncio
import random
import time
from typing import Any, Awaitable, Callable, Sequence

import openai
from loguru import logger

from travello.llm.history import ContextEntry
from travello.utils.error_handler import (
    GenerationError,
    RetryableError,
    RetryPolicy,
    ValidationError,
)

DEFAULT_MAX_MESSAGE_CHARS = 4000
DEFAULT_TIMEOUT_SECONDS = 30.0
PROBE_MESSAGE = "ping"

TRANSIENT_ERRORS = (
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
    RetryableError,
    openai.APIConnectionError,  # includes APITimeoutError
    openai.RateLimitError,
    openai.InternalServerError,
)


def is_transient(exc: BaseException) -> bool:
    """Network, timeout, rate-limit and 5xx failures are worth another attempt."""
    if isinstance(exc, TRANSIENT_ERRORS):
        return True
    if isinstance(exc, openai.APIStatusError):
        return exc.status_code == 429 or exc.status_code >= 500
    return False


class GenerationClient:
    """Produces a reply for ``message`` given the ordered ``context``.

    The client never touches storage. Every attempt is bounded by
    ``timeout_seconds``; transient failures are retried according to
    ``policy`` and anything that still fails is raised as ``GenerationError``.
    """

    def __init__(
        self,
        backend,
        policy: RetryPolicy | None = None,
        *,
        max_message_chars: int = DEFAULT_MAX_MESSAGE_CHARS,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ):
        self.backend = backend
        self.policy = policy or RetryPolicy()
        self.max_message_chars = max_message_chars
        self.timeout_seconds = timeout_seconds
        self._sleep = sleep
        self._rng = rng

    @property
    def backend_name(self) -> str:
        return getattr(self.backend, "name", type(self.backend).__name__)

    def validate(self, message: str | None) -> str:
        """Reject empty or oversized messages before any network call."""
        if message is None or not isinstance(message, str) or not message.strip():
            raise ValidationError("Pesan tidak boleh kosong")
        if len(message) > self.max_message_chars:
            raise ValidationError(
                f"Pesan terlalu panjang (maksimal {self.max_message_chars} karakter)"
            )
        return message

    async def generate(self, context: Sequence[ContextEntry], message: str) -> str:
        message = self.validate(message)
        context = list(context)

        async def attempt() -> str:
            return await asyncio.wait_for(
                self.backend.generate(context, message), timeout=self.timeout_seconds
            )

        started = time.perf_counter()
        try:
            text = await self.policy.run(
                attempt,
                should_retry=is_transient,
                sleep=self._sleep,
                rng=self._rng,
                label=f"{self.backend_name} generation",
            )
        except Exception as e:
            kind = "transient, retries exhausted" if is_transient(e) else "non-transient"
            logger.error(f"Generation via {self.backend_name} failed ({kind}): {e!r}")
            raise GenerationError(f"{self.backend_name} generation failed: {e!r}") from e

        text = (text or "").strip()
        if not text:
            raise GenerationError(f"{self.backend_name} returned an empty reply")
        logger.debug(
            f"Generated {len(text)} chars via {self.backend_name} in "
            f"{(time.perf_counter() - started) * 1000:.0f} ms"
        )
        return text

    async def probe(self) -> bool:
        """Minimal round trip for health checks; never raises."""
        try:
            await self.generate([], PROBE_MESSAGE)
        except GenerationError:
            return False
        return True
