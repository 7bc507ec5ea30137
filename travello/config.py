"""
Configuration module for the Travello chat relay.

This module centralizes all configuration settings for the chat service,
loading values from environment variables with sensible defaults.
"""
import os
from typing import List

from dotenv import load_dotenv
from loguru import logger

from travello.utils.feature_flags import init_feature_flags, is_feature_enabled
from travello.utils.logger import setup_logging  # noqa: F401  (re-exported)

# Load environment variables from .env file
load_dotenv()


def _split_csv(raw: str) -> List[str]:
    raw = (raw or "").strip()
    if not raw or raw == "*":
        return ["*"]
    return [item.strip() for item in raw.split(",") if item.strip()]


# API Keys and Authentication
# Either key works: the OpenAI SDK also talks to OpenAI-compatible endpoints
# (Gemini, OpenRouter) when TRAVELLO_LLM_BASE_URL is set.
LLM_API_KEY = os.getenv("OPENAI_API_KEY") or os.getenv("GEMINI_API_KEY")
LLM_BASE_URL = os.getenv("TRAVELLO_LLM_BASE_URL") or None

# Generation settings
LLM_MODEL = os.getenv("TRAVELLO_LLM_MODEL", "gpt-4o-mini")
LLM_TEMPERATURE = float(os.getenv("TRAVELLO_LLM_TEMPERATURE", "0.7"))
LLM_MAX_TOKENS = int(os.getenv("TRAVELLO_LLM_MAX_TOKENS", "1000"))
GENERATION_TIMEOUT = float(os.getenv("TRAVELLO_GENERATION_TIMEOUT", "30"))
MAX_MESSAGE_CHARS = int(os.getenv("TRAVELLO_MAX_MESSAGE_CHARS", "4000"))

# Retry policy for the generation call
RETRY_MAX_ATTEMPTS = int(os.getenv("TRAVELLO_RETRY_MAX_ATTEMPTS", "3"))
RETRY_BASE_DELAY = float(os.getenv("TRAVELLO_RETRY_BASE_DELAY", "1.0"))
RETRY_BACKOFF = float(os.getenv("TRAVELLO_RETRY_BACKOFF", "2.0"))
RETRY_MAX_DELAY = float(os.getenv("TRAVELLO_RETRY_MAX_DELAY", "10.0"))

# Chat memory
DATABASE_URL = os.getenv("TRAVELLO_DATABASE_URL", "sqlite:///./travello_chat.db")
HISTORY_LIMIT = int(os.getenv("TRAVELLO_HISTORY_LIMIT", "10"))

# HTTP surface
USER_HEADER = os.getenv("TRAVELLO_USER_HEADER", "X-User-Id")
CORS_ORIGINS = _split_csv(os.getenv("TRAVELLO_CORS_ORIGINS", "*"))
HOST = os.getenv("TRAVELLO_HOST", "127.0.0.1")
PORT = int(os.getenv("TRAVELLO_PORT", "8000"))

# Initialize feature flags
init_feature_flags()


def live_generation_enabled() -> bool:
    """True when replies should come from the configured model endpoint."""
    return is_feature_enabled("use_live_generation") and bool(LLM_API_KEY)


def _check_generation_config() -> None:
    """Warn about settings that silently downgrade the chat experience."""
    if not LLM_API_KEY:
        logger.warning(
            "OPENAI_API_KEY / GEMINI_API_KEY not set - replies will come from the offline keyword backend"
        )


_check_generation_config()
