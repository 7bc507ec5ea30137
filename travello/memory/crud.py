import dataclasses
from contextlib import contextmanager
from typing import Iterator, List

from loguru import logger
from sqlalchemy import distinct, func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from travello.utils.error_handler import PersistenceError

from .db import create_engine_for, init_db, make_session_factory
from .models import TURN_TYPES, ChatMessage, ChatTurn, row_from_turn, turn_from_row

# Concurrent appends on one session may race for the same seq.
SEQ_CONFLICT_ATTEMPTS = 3

# Rows written by other clients of the table may carry roles we do not model.
_KNOWN_ROLE = ChatMessage.role.in_(tuple(TURN_TYPES))


class MessageStore:
    """Append-only log of chat turns keyed by session and user.

    Every public method opens its own short-lived session, so one store can be
    shared by all requests; the only atomicity relied upon is that of a single
    insert or a single bulk delete. Storage failures surface as
    ``PersistenceError``.
    """

    def __init__(self, session_factory: sessionmaker, engine: Engine | None = None):
        self._session_factory = session_factory
        self._engine = engine

    @classmethod
    def from_url(cls, url: str, create_schema: bool = True) -> "MessageStore":
        engine = create_engine_for(url)
        store = cls(make_session_factory(engine), engine=engine)
        if create_schema:
            store.init_schema()
        return store

    def init_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("MessageStore was built without an engine")
        init_db(self._engine)

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        db: Session = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Message store {operation} failed: {e}")
            raise PersistenceError(f"{operation} failed: {e}") from e
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _next_seq(self, db: Session, session_id: str) -> int:
        last_seq = (
            db.query(func.max(ChatMessage.seq))
            .filter(ChatMessage.session_id == session_id)
            .scalar()
        )
        return (last_seq or 0) + 1

    def append(self, turn: ChatTurn) -> ChatTurn:
        """Persist a single chat turn and return it with its sequence number.

        ``(session_id, seq)`` is unique; losing a race for a sequence number
        re-reads it and tries again, up to ``SEQ_CONFLICT_ATTEMPTS`` times.
        """
        for attempt in range(1, SEQ_CONFLICT_ATTEMPTS + 1):
            with self._session("append") as db:
                seq = self._next_seq(db, turn.session_id)
                db.add(row_from_turn(turn, seq))
                try:
                    db.commit()
                except IntegrityError:
                    if attempt == SEQ_CONFLICT_ATTEMPTS:
                        raise
                    db.rollback()
                    logger.warning(
                        f"seq {seq} already taken in session {turn.session_id}, retrying append"
                    )
                    continue
            return dataclasses.replace(turn, seq=seq)

    def delete_by_session(self, session_id: str) -> int:
        """Remove every turn of ``session_id``; returns how many were removed."""
        with self._session("delete") as db:
            deleted = (
                db.query(ChatMessage)
                .filter(ChatMessage.session_id == session_id)
                .delete(synchronize_session=False)
            )
            db.commit()
        return int(deleted or 0)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_by_session(self, session_id: str, limit: int = 10, offset: int = 0) -> List[ChatTurn]:
        """Return the *most recent* ``limit`` turns for ``session_id``.

        ``offset`` skips that many newer turns first (paging backwards). The
        list is returned in chronological order (oldest -> newest) so that it
        can be appended to a prompt without additional sorting.
        """
        if not session_id or limit <= 0:
            return []
        with self._session("list_by_session") as db:
            rows = (
                db.query(ChatMessage)
                .filter(ChatMessage.session_id == session_id, _KNOWN_ROLE)
                .order_by(ChatMessage.timestamp.desc(), ChatMessage.seq.desc())
                .offset(max(offset, 0))
                .limit(limit)
                .all()
            )
            # Reverse so we go from oldest -> newest.
            rows.reverse()
            return [turn_from_row(r) for r in rows]

    def list_by_user(self, user_id: str, limit: int = 10, offset: int = 0) -> List[ChatTurn]:
        """Same contract as :meth:`list_by_session`, across all of a user's sessions."""
        if not user_id or limit <= 0:
            return []
        with self._session("list_by_user") as db:
            rows = (
                db.query(ChatMessage)
                .filter(ChatMessage.user_id == user_id, _KNOWN_ROLE)
                .order_by(ChatMessage.timestamp.desc(), ChatMessage.seq.desc())
                .offset(max(offset, 0))
                .limit(limit)
                .all()
            )
            rows.reverse()
            return [turn_from_row(r) for r in rows]

    def count_by_session(self, session_id: str) -> int:
        with self._session("count_by_session") as db:
            return int(
                db.query(func.count(ChatMessage.id))
                .filter(ChatMessage.session_id == session_id, _KNOWN_ROLE)
                .scalar()
                or 0
            )

    def count_by_user(self, user_id: str) -> int:
        with self._session("count_by_user") as db:
            return int(
                db.query(func.count(ChatMessage.id))
                .filter(ChatMessage.user_id == user_id, _KNOWN_ROLE)
                .scalar()
                or 0
            )

    def count_sessions_by_user(self, user_id: str) -> int:
        with self._session("count_sessions_by_user") as db:
            return int(
                db.query(func.count(distinct(ChatMessage.session_id)))
                .filter(ChatMessage.user_id == user_id, _KNOWN_ROLE)
                .scalar()
                or 0
            )
