"""Turn persisted chat history into generation-ready context."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Sequence

from loguru import logger

from travello.utils.error_handler import PersistenceError

DEFAULT_HISTORY_LIMIT = 10

# Stored turn roles -> generation vocabulary.
ROLE_MAP = {"user": "user", "ai": "model"}
INLINE_ROLES = frozenset(ROLE_MAP.values())


@dataclass(frozen=True)
class ContextEntry:
    role: str  # "user" | "model"
    text: str


def parse_inline_history(history: Iterable[Any] | None, limit: int = DEFAULT_HISTORY_LIMIT) -> List[ContextEntry]:
    """Convert caller-supplied ``[{role, parts: [{text}]}]`` items into context.

    Items with an unknown role or no text are dropped; only the most recent
    ``limit`` entries are kept.
    """
    entries: List[ContextEntry] = []
    for item in history or []:
        if hasattr(item, "model_dump"):
            item = item.model_dump()
        if not isinstance(item, Mapping):
            continue
        role = item.get("role")
        if role not in INLINE_ROLES:
            continue
        parts = item.get("parts") or []
        text = "".join(
            str(part.get("text") or "") for part in parts if isinstance(part, Mapping)
        )
        if text.strip():
            entries.append(ContextEntry(role=role, text=text))
    if limit <= 0:
        return []
    return entries[-limit:]


class HistoryAssembler:
    """Loads the last N turns of a session as ordered ``ContextEntry`` items.

    Persisted history always wins over caller-supplied history; the inline
    history is only consulted for a session with no usable stored turns. A
    store failure degrades to "no stored history".
    """

    def __init__(self, store, limit: int = DEFAULT_HISTORY_LIMIT):
        self.store = store
        self.limit = limit

    async def assemble(
        self,
        session_id: str,
        inline_history: Sequence[Any] | None = None,
        limit: int | None = None,
    ) -> List[ContextEntry]:
        limit = self.limit if limit is None else limit
        try:
            turns = await asyncio.to_thread(self.store.list_by_session, session_id, limit)
        except PersistenceError as e:
            logger.warning(f"History unavailable for session {session_id}, continuing without it: {e}")
            turns = []

        entries = [
            ContextEntry(role=ROLE_MAP[turn.role], text=turn.text)
            for turn in turns
            if turn.role in ROLE_MAP and turn.text.strip()
        ]
        if entries:
            return entries

        inline = parse_inline_history(inline_history, limit)
        if inline:
            logger.debug(f"Session {session_id} has no stored turns, using {len(inline)} inline history entries")
        return inline
