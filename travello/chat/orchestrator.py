"""Chat orchestration: one inbound message in, one persisted exchange out.

States per request::

    received -> session_resolved -> context_assembled -> generating
             -> persisting -> responded        (any state -> failed)

Turns are persisted only after a successful generation, so a failed request
leaves no trace in the message store. A storage failure after generation is
logged and counted but the reply is still returned.
"""
from __future__ import annotations

import asyncio
import datetime
import enum
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from loguru import logger

from travello.llm.suggestions import derive_suggestions
from travello.memory.models import USER_ID_MAX_CHARS, AiTurn, UserTurn, utc_now
from travello.utils.error_handler import (
    GenerationError,
    PersistenceError,
    ValidationError,
)


class ChatState(str, enum.Enum):
    RECEIVED = "received"
    SESSION_RESOLVED = "session-resolved"
    CONTEXT_ASSEMBLED = "context-assembled"
    GENERATING = "generating"
    PERSISTING = "persisting"
    RESPONDED = "responded"
    FAILED = "failed"


@dataclass
class ChatRequest:
    message: Optional[str]
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    history: Optional[Sequence[Any]] = None


@dataclass
class ChatExchange:
    response: str
    timestamp: datetime.datetime
    session_id: str
    suggestions: List[str] = field(default_factory=list)
    state: ChatState = ChatState.RESPONDED
    persisted: bool = True


class ChatMetrics:
    """In-process counters behind the stats endpoint."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self.started_at = clock()
        self.generations = 0
        self.total_generation_ms = 0.0
        self.generation_failures = 0
        self.persistence_failures = 0

    def record_generation(self, elapsed_ms: float) -> None:
        self.generations += 1
        self.total_generation_ms += elapsed_ms

    @property
    def average_response_time_ms(self) -> float:
        if not self.generations:
            return 0.0
        return self.total_generation_ms / self.generations

    @property
    def uptime_seconds(self) -> float:
        return self._clock() - self.started_at


def new_session_id(user_id: Optional[str] = None) -> str:
    """``session_<user>_<epoch ms>_<random>``; the random suffix keeps two
    callers in the same millisecond apart. The user part is cut so the id
    always fits the session column."""
    millis = int(time.time() * 1000)
    owner = (user_id or "anon")[:USER_ID_MAX_CHARS]
    return f"session_{owner}_{millis}_{uuid.uuid4().hex[:8]}"


class ChatOrchestrator:
    def __init__(self, store, assembler, generation, metrics: ChatMetrics | None = None):
        self.store = store
        self.assembler = assembler
        self.generation = generation
        self.metrics = metrics or ChatMetrics()

    def _enter(self, state: ChatState, session_id: Optional[str]) -> ChatState:
        logger.debug(f"chat[{session_id or '-'}] -> {state.value}")
        return state

    async def handle(self, request: ChatRequest) -> ChatExchange:
        """Run one request through the state machine.

        Raises ``ValidationError`` for bad input and ``GenerationError`` when
        no reply could be produced; nothing else escapes.
        """
        state = self._enter(ChatState.RECEIVED, request.session_id)
        received_at = utc_now()
        session_id: Optional[str] = request.session_id
        try:
            message = self.generation.validate(request.message)

            session_id = request.session_id or new_session_id(request.user_id)
            state = self._enter(ChatState.SESSION_RESOLVED, session_id)

            context = await self.assembler.assemble(session_id, request.history)
            state = self._enter(ChatState.CONTEXT_ASSEMBLED, session_id)

            state = self._enter(ChatState.GENERATING, session_id)
            started = time.perf_counter()
            reply = await self.generation.generate(context, message)
            self.metrics.record_generation((time.perf_counter() - started) * 1000)
        except ValidationError:
            self._enter(ChatState.FAILED, session_id)
            raise
        except GenerationError as e:
            self._fail(state, session_id, e)
            raise
        except Exception as e:
            self._fail(state, session_id, e)
            raise GenerationError(f"unexpected failure while {state.value}: {e!r}") from e

        self._enter(ChatState.PERSISTING, session_id)
        replied_at = max(utc_now(), received_at)
        persisted = await self._persist(
            UserTurn(session_id=session_id, text=message, user_id=request.user_id, timestamp=received_at),
            AiTurn(session_id=session_id, text=reply, user_id=request.user_id, timestamp=replied_at),
        )

        suggestions = derive_suggestions(reply)
        state = self._enter(ChatState.RESPONDED, session_id)
        logger.info(
            f"Chat reply | session={session_id} | user={request.user_id or '-'} | "
            f"message_len={len(message)} | response_len={len(reply)} | persisted={persisted}"
        )
        return ChatExchange(
            response=reply,
            timestamp=replied_at,
            session_id=session_id,
            suggestions=suggestions,
            state=state,
            persisted=persisted,
        )

    def _fail(self, state: ChatState, session_id: Optional[str], error: BaseException) -> None:
        self.metrics.generation_failures += 1
        self._enter(ChatState.FAILED, session_id)
        logger.error(f"Chat request failed while {state.value} (session={session_id}): {error!r}")

    async def _persist(self, user_turn: UserTurn, ai_turn: AiTurn) -> bool:
        # User turn first, then the reply: program order within one request.
        try:
            await asyncio.to_thread(self.store.append, user_turn)
            await asyncio.to_thread(self.store.append, ai_turn)
        except PersistenceError as e:
            self.metrics.persistence_failures += 1
            logger.error(
                f"Reply delivered but not persisted for session {user_turn.session_id}: {e}"
            )
            return False
        return True
