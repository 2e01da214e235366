"""Cross-cutting helpers: error types, timeouts, logging and redaction."""

from triage_bot.utils.async_helpers import (
    AuthorizationError,
    AuthorizationUnavailableError,
    ChannelAccessError,
    ExportError,
    StoreError,
    TriageBotError,
    with_timeout,
)
from triage_bot.utils.logging import (
    LogEventNames,
    LogFormat,
    configure_logging,
    request_context,
)
from triage_bot.utils.security import (
    RedactionError,
    SecretRedactor,
    mask_secret,
)

__all__ = [
    # Errors
    "AuthorizationError",
    "AuthorizationUnavailableError",
    "ChannelAccessError",
    "ExportError",
    "StoreError",
    "TriageBotError",
    "with_timeout",
    # Logging
    "LogEventNames",
    "LogFormat",
    "configure_logging",
    "request_context",
    # Security
    "RedactionError",
    "SecretRedactor",
    "mask_secret",
]
