"""Request / response bodies of the chat HTTP API (camelCase on the wire)."""
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from travello.memory.models import SESSION_ID_MAX_CHARS

T = TypeVar("T")


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class HistoryPart(_WireModel):
    text: str = ""


class HistoryItem(_WireModel):
    role: str
    parts: List[HistoryPart] = Field(default_factory=list)


class ChatIn(_WireModel):
    # Optional so a missing message gets the same 400 as an empty one.
    message: Optional[str] = None
    session_id: Optional[str] = Field(default=None, alias="sessionId", max_length=SESSION_ID_MAX_CHARS)
    history: Optional[List[HistoryItem]] = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class Envelope(_WireModel, Generic[T]):
    success: bool = True
    data: T


class ErrorOut(_WireModel):
    success: bool = False
    error: str


class ChatData(_WireModel):
    response: str
    timestamp: datetime
    session_id: str = Field(alias="sessionId")
    suggestions: List[str] = Field(default_factory=list)


class HistoryEntryOut(_WireModel):
    id: str
    role: str
    content: str
    timestamp: datetime
    session_id: str = Field(alias="sessionId")


class PaginationOut(_WireModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(alias="totalPages")


class HistoryData(_WireModel):
    history: List[HistoryEntryOut]
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    pagination: PaginationOut


class SuggestionsData(_WireModel):
    suggestions: List[str]
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class ClearData(_WireModel):
    deleted_count: int = Field(alias="deletedCount")
    session_id: str = Field(alias="sessionId")


class HealthData(_WireModel):
    status: str
    service: str
    backend: str
    timestamp: datetime


class StatsData(_WireModel):
    total_chats: int = Field(alias="totalChats")
    total_sessions: int = Field(alias="totalSessions")
    average_response_time: float = Field(alias="averageResponseTime")
    uptime: float
