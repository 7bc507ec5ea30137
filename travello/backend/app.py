from __future__ import annotations

"""FastAPI backend for the Travello chat relay.

Run with:
    uvicorn travello.backend.app:create_app --factory --reload --port 8000
or:
    travello-chat

Env vars (see ``travello.config``):
    OPENAI_API_KEY or GEMINI_API_KEY   live generation (keyword replies otherwise)
    TRAVELLO_DATABASE_URL              chat memory database
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn
from loguru import logger

from travello import config
from travello.backend.middleware import make_auth_middleware, require_user
from travello.backend.schemas import (
    ChatData,
    ChatIn,
    ClearData,
    Envelope,
    ErrorOut,
    HealthData,
    HistoryData,
    HistoryEntryOut,
    PaginationOut,
    StatsData,
    SuggestionsData,
)
from travello.chat.orchestrator import ChatMetrics, ChatOrchestrator, ChatRequest
from travello.chat.session import SessionService
from travello.llm.backends import KeywordReplyBackend, OpenAIChatBackend
from travello.llm.generation import GenerationClient
from travello.llm.history import HistoryAssembler
from travello.memory.crud import MessageStore
from travello.memory.models import utc_now
from travello.utils.error_handler import ChatError, RetryPolicy
from travello.utils.logger import setup_logging
from travello.utils.openai_client import get_openai_client

SERVICE_NAME = "Travello Chat Assistant"


def build_generation_client() -> GenerationClient:
    """Generation client from ``travello.config``: live model or keyword replies."""
    if config.live_generation_enabled():
        backend = OpenAIChatBackend(
            get_openai_client(config.LLM_API_KEY, config.LLM_BASE_URL, config.GENERATION_TIMEOUT),
            model=config.LLM_MODEL,
            temperature=config.LLM_TEMPERATURE,
            max_tokens=config.LLM_MAX_TOKENS,
        )
    else:
        backend = KeywordReplyBackend()
    policy = RetryPolicy(
        max_attempts=config.RETRY_MAX_ATTEMPTS,
        base_delay=config.RETRY_BASE_DELAY,
        backoff=config.RETRY_BACKOFF,
        max_delay=config.RETRY_MAX_DELAY,
    )
    logger.info(f"Generation backend: {backend.name}")
    return GenerationClient(
        backend,
        policy,
        max_message_chars=config.MAX_MESSAGE_CHARS,
        timeout_seconds=config.GENERATION_TIMEOUT,
    )


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_orchestrator(request: Request) -> ChatOrchestrator:
    return request.app.state.orchestrator


def get_sessions(request: Request) -> SessionService:
    return request.app.state.sessions


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("", response_model=Envelope[ChatData])
async def chat(
    payload: ChatIn,
    user_id: str = Depends(require_user),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
):
    exchange = await orchestrator.handle(
        ChatRequest(
            message=payload.message,
            user_id=user_id,
            session_id=payload.session_id,
            history=payload.history,
        )
    )
    return Envelope[ChatData](
        data=ChatData(
            response=exchange.response,
            timestamp=exchange.timestamp,
            session_id=exchange.session_id,
            suggestions=exchange.suggestions,
        )
    )


@router.get("/history", response_model=Envelope[HistoryData])
async def history(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(require_user),
    sessions: SessionService = Depends(get_sessions),
):
    result = await sessions.history(session_id=session_id, user_id=user_id, page=page, limit=limit)
    return Envelope[HistoryData](
        data=HistoryData(
            history=[
                HistoryEntryOut(
                    id=turn.id,
                    role=turn.role,
                    content=turn.text,
                    timestamp=turn.timestamp,
                    session_id=turn.session_id,
                )
                for turn in result.turns
            ],
            session_id=session_id,
            pagination=PaginationOut(
                page=result.page,
                limit=result.limit,
                total=result.total,
                total_pages=result.total_pages,
            ),
        )
    )


@router.get("/suggestions", response_model=Envelope[SuggestionsData])
async def suggestions(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    user_id: str = Depends(require_user),
    sessions: SessionService = Depends(get_sessions),
):
    items = await sessions.get_suggestions(session_id=session_id, user_id=user_id)
    return Envelope[SuggestionsData](data=SuggestionsData(suggestions=items, session_id=session_id))


@router.delete("/clear", response_model=Envelope[ClearData])
async def clear(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    user_id: str = Depends(require_user),
    sessions: SessionService = Depends(get_sessions),
):
    deleted = await sessions.clear_session(session_id)
    return Envelope[ClearData](data=ClearData(deleted_count=deleted, session_id=session_id))


@router.get("/health", response_model=Envelope[HealthData])
async def health(request: Request, sessions: SessionService = Depends(get_sessions)):
    healthy = await sessions.health_check()
    return Envelope[HealthData](
        data=HealthData(
            status="Healthy" if healthy else "Unhealthy",
            service=SERVICE_NAME,
            backend=sessions.generation.backend_name,
            timestamp=utc_now(),
        )
    )


@router.get("/stats", response_model=Envelope[StatsData])
async def stats(
    user_id: str = Depends(require_user),
    sessions: SessionService = Depends(get_sessions),
):
    data = await sessions.get_stats(user_id)
    return Envelope[StatsData](data=StatsData(**data))


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorOut(error=message).model_dump())


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return error_response(exc.status_code, exc.public_message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(f"{request.method} {request.url.path} crashed: {exc!r}")
    return error_response(500, ChatError.public_message)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid request: {location}: {first.get('msg')}" if location else f"Invalid request: {first.get('msg')}"
    else:
        message = "Invalid request"
    return error_response(400, message)


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------


def create_app(
    store: MessageStore | None = None,
    generation: GenerationClient | None = None,
    *,
    database_url: str | None = None,
    history_limit: int | None = None,
    metrics: ChatMetrics | None = None,
) -> FastAPI:
    """Wire the chat relay. Collaborators not given are built from ``travello.config``."""
    setup_logging()

    owns_store = store is None
    if store is None:
        store = MessageStore.from_url(database_url or config.DATABASE_URL)
    if generation is None:
        generation = build_generation_client()
    metrics = metrics or ChatMetrics()

    assembler = HistoryAssembler(store, limit=history_limit or config.HISTORY_LIMIT)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"{SERVICE_NAME} ready (backend={generation.backend_name})")
        yield
        if owns_store:
            store.dispose()

    app = FastAPI(title=SERVICE_NAME, version="0.1.0", lifespan=lifespan)
    app.state.store = store
    app.state.orchestrator = ChatOrchestrator(store, assembler, generation, metrics)
    app.state.sessions = SessionService(store, generation, metrics)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=config.CORS_ORIGINS != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(make_auth_middleware(config.USER_HEADER))

    app.add_exception_handler(ChatError, chat_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(router)
    return app


def main() -> None:
    uvicorn.run("travello.backend.app:create_app", factory=True, host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    main()
