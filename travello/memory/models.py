import datetime
import uuid
from dataclasses import dataclass, field
from typing import ClassVar, Optional, Union

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, UniqueConstraint, func

from .db import Base

SESSION_ID_MAX_CHARS = 128
USER_ID_MAX_CHARS = 64


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


class ChatMessage(Base):
    """ORM model representing a single chat turn (either user or ai).

    Attributes
    ----------
    id
        UUID4 string generated at creation.
    session_id
        Conversation key sent by the front-end or synthesised by the relay.
    user_id
        Authenticated actor, NULL for anonymous turns.
    role
        "user" or "ai".
    content
        The user message or the generated reply.
    seq
        Per-session sequence number assigned by the store on append; breaks
        ties between turns with equal timestamps.
    timestamp
        Logical time of the turn (UTC).
    created_at
        Row insertion time.
    """

    __tablename__ = "chat_messages"
    __table_args__ = (
        Index("ix_chat_messages_session_order", "session_id", "timestamp", "seq"),
        Index("ix_chat_messages_user_order", "user_id", "timestamp"),
        UniqueConstraint("session_id", "seq", name="uq_chat_messages_session_seq"),
    )

    id = Column(String(36), primary_key=True)
    session_id = Column(String(SESSION_ID_MAX_CHARS), nullable=False, index=True)
    user_id = Column(String(USER_ID_MAX_CHARS), nullable=True, index=True)
    role = Column(String(16), nullable=False)
    content = Column(Text, nullable=False)
    seq = Column(Integer, nullable=False, default=0)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


# ---------------------------------------------------------------------------
# Domain turns
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _Turn:
    session_id: str
    text: str
    user_id: Optional[str] = None
    timestamp: datetime.datetime = field(default_factory=utc_now)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    seq: int = 0

    role: ClassVar[str] = ""


@dataclass(frozen=True)
class UserTurn(_Turn):
    """An inbound user message."""

    role: ClassVar[str] = "user"


@dataclass(frozen=True)
class AiTurn(_Turn):
    """A generated reply."""

    role: ClassVar[str] = "ai"


ChatTurn = Union[UserTurn, AiTurn]

TURN_TYPES = {UserTurn.role: UserTurn, AiTurn.role: AiTurn}


def turn_from_row(row: ChatMessage) -> ChatTurn:
    turn_cls = TURN_TYPES.get(row.role)
    if turn_cls is None:
        raise ValueError(f"Unknown chat turn role: {row.role!r}")
    return turn_cls(
        session_id=row.session_id,
        text=row.content or "",
        user_id=row.user_id,
        timestamp=_as_utc(row.timestamp),
        id=row.id,
        seq=row.seq,
    )


def row_from_turn(turn: ChatTurn, seq: int) -> ChatMessage:
    return ChatMessage(
        id=turn.id,
        session_id=turn.session_id,
        user_id=turn.user_id,
        role=turn.role,
        content=turn.text,
        seq=seq,
        timestamp=_as_utc(turn.timestamp),
    )
