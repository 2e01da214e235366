"""Keep Slack credentials out of logs and user-visible debug replies.

Redaction fails closed: a pattern that cannot be compiled or applied raises
RedactionError instead of passing the text through untouched.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Sequence

log = structlog.get_logger()

# (name, pattern). A ``keep`` group survives redaction so the key stays readable.
SECRET_PATTERNS: tuple[tuple[str, str], ...] = (
    ("slack_token", r"xox[abeoprs]-[A-Za-z0-9-]+"),
    ("slack_app_token", r"xapp-\d-[A-Za-z0-9-]+"),
    ("slack_webhook", r"https://hooks\.slack\.com/(?:services|workflows)/[A-Za-z0-9/_-]+"),
    ("bearer_header", r"(?i)(?P<keep>bearer\s+)[A-Za-z0-9._~+/=-]{16,}"),
    (
        "secret_assignment",
        r"(?i)(?P<keep>\b(?:client_secret|signing_secret|secret|password|token)\s*[=:]\s*)"
        r"[\"']?[^\s\"',}]{8,}",
    ),
)


class RedactionError(Exception):
    """Secret redaction could not be performed."""


class SecretRedactor:
    """Replaces known secret shapes in text with a placeholder.

    Example:
        redactor = SecretRedactor()
        redactor.redact("token=xoxb-123-456")  # "token=[REDACTED]"
    """

    def __init__(
        self,
        placeholder: str = "[REDACTED]",
        extra_patterns: Sequence[tuple[str, str]] = (),
    ) -> None:
        """Compile the default patterns plus any extras.

        Raises:
            RedactionError: If a pattern does not compile.
        """
        self.placeholder = placeholder
        self._patterns: dict[str, re.Pattern[str]] = {}
        for name, pattern in (*SECRET_PATTERNS, *extra_patterns):
            try:
                self._patterns[name] = re.compile(pattern)
            except re.error as e:
                log.error("secret_pattern_invalid", pattern_name=name, error=str(e))
                raise RedactionError(f"Invalid secret pattern {name!r}: {e}") from e

    @property
    def pattern_names(self) -> list[str]:
        return list(self._patterns)

    def _replace(self, match: re.Match[str]) -> str:
        keep = match.groupdict().get("keep") or ""
        return keep + self.placeholder

    def redact(self, text: str) -> str:
        """Return ``text`` with every detected secret replaced.

        Raises:
            RedactionError: If a pattern fails while scanning.
        """
        if not text:
            return text
        try:
            for pattern in self._patterns.values():
                text = pattern.sub(self._replace, text)
        except Exception as e:
            log.error("redaction_failed", error=str(e))
            raise RedactionError(f"Redaction failed: {e}") from e
        return text

    def contains_secret(self, text: str) -> bool:
        return bool(text) and any(p.search(text) for p in self._patterns.values())


def mask_secret(value: str, visible: int = 4) -> str:
    """Show only the ends of an identifier, e.g. for startup logs."""
    if len(value) <= visible * 2:
        return "***"
    return f"{value[:visible]}...{value[-visible:]}"
