"""Common infra helpers (logger, error handling, feature flags, model client)."""

from .error_handler import (  # noqa: F401
    AuthenticationError,
    ChatError,
    GenerationError,
    PersistenceError,
    RetryableError,
    RetryPolicy,
    ValidationError,
    handle_exceptions,
)
from .feature_flags import init_feature_flags, is_feature_enabled  # noqa: F401
from .logger import setup_logging  # noqa: F401
