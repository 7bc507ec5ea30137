"""Session lifecycle operations: suggestions, history, clear, stats, health."""
from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import Dict, List, Optional

from loguru import logger

from travello.chat.orchestrator import ChatMetrics
from travello.llm.suggestions import DEFAULT_COUNT, derive_suggestions
from travello.memory.models import ChatTurn
from travello.utils.error_handler import PersistenceError, ValidationError, handle_exceptions


@dataclass
class HistoryPage:
    turns: List[ChatTurn]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class SessionService:
    def __init__(self, store, generation, metrics: ChatMetrics):
        self.store = store
        self.generation = generation
        self.metrics = metrics

    @handle_exceptions(PersistenceError, default_value=list)
    def _latest_turns(self, session_id: Optional[str], user_id: Optional[str]) -> List[ChatTurn]:
        if session_id:
            return self.store.list_by_session(session_id, 1)
        if user_id:
            return self.store.list_by_user(user_id, 1)
        return []

    async def get_suggestions(
        self,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
        count: int = DEFAULT_COUNT,
    ) -> List[str]:
        """Suggestions from the most recent stored turn; never raises."""
        turns = await asyncio.to_thread(self._latest_turns, session_id, user_id)
        latest_text = turns[-1].text if turns else ""
        return derive_suggestions(latest_text, count)

    async def history(
        self,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> HistoryPage:
        """Page ``page`` counts back from the newest turns; each page reads oldest first."""
        if page < 1:
            raise ValidationError("page must be >= 1")
        if limit < 1:
            raise ValidationError("limit must be >= 1")
        offset = (page - 1) * limit
        if session_id:
            turns = await asyncio.to_thread(self.store.list_by_session, session_id, limit, offset)
            total = await asyncio.to_thread(self.store.count_by_session, session_id)
        elif user_id:
            turns = await asyncio.to_thread(self.store.list_by_user, user_id, limit, offset)
            total = await asyncio.to_thread(self.store.count_by_user, user_id)
        else:
            raise ValidationError("sessionId is required")
        return HistoryPage(turns=turns, page=page, limit=limit, total=total)

    async def clear_session(self, session_id: Optional[str]) -> int:
        if not session_id:
            raise ValidationError("sessionId is required")
        deleted = await asyncio.to_thread(self.store.delete_by_session, session_id)
        logger.info(f"Cleared session {session_id}: {deleted} turns deleted")
        return deleted

    async def health_check(self) -> bool:
        healthy = await self.generation.probe()
        if not healthy:
            logger.warning("Health probe against the generation backend failed")
        return healthy

    async def get_stats(self, user_id: str) -> Dict[str, float]:
        total_chats = await asyncio.to_thread(self.store.count_by_user, user_id)
        total_sessions = await asyncio.to_thread(self.store.count_sessions_by_user, user_id)
        return {
            "totalChats": total_chats,
            "totalSessions": total_sessions,
            "averageResponseTime": round(self.metrics.average_response_time_ms, 2),
            "uptime": round(self.metrics.uptime_seconds, 2),
        }
