"""Actor identity for chat routes.

Authentication itself happens upstream (gateway / auth service). By the time a
request reaches this service the verified user id travels in a trusted header;
the middleware copies it onto ``request.state.user`` and ``require_user``
turns a missing actor into ``AuthenticationError``.
"""
from typing import Awaitable, Callable, Optional

from fastapi import Request
from loguru import logger
from starlette.responses import Response

from travello.memory.models import USER_ID_MAX_CHARS
from travello.utils.error_handler import AuthenticationError

# Paths that never need an actor (liveness probes, docs)
PUBLIC_PATHS = {
    "/chat/health",
    "/docs",
    "/openapi.json",
}


def _is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS


def make_auth_middleware(
    header_name: str,
) -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    async def auth_middleware(request: Request, call_next):
        request.state.user = None
        if not _is_public_path(request.url.path):
            user_id = (request.headers.get(header_name) or "").strip()
            if len(user_id) > USER_ID_MAX_CHARS:
                logger.warning(f"Ignoring {header_name} longer than {USER_ID_MAX_CHARS} chars")
            elif user_id:
                request.state.user = {"id": user_id}
        return await call_next(request)

    return auth_middleware


def current_user_id(request: Request) -> Optional[str]:
    user = getattr(request.state, "user", None)
    return user["id"] if user and user.get("id") else None


def require_user(request: Request) -> str:
    user_id = current_user_id(request)
    if not user_id:
        raise AuthenticationError("no authenticated actor on request")
    return user_id
