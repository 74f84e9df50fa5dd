"""
Errors

Exception types raised across the tagger, plus a helper that keeps full
tracebacks in a log file while the CLI shows a short message.

Taxonomy:
    - ConfigurationError: bad provider id, missing key/model, unknown column
    - ProviderError: non-2xx response or transport failure from a provider
    - FatalRunError: rate limiting that outlived the retry budget
    - TagImportError: a tag CSV that cannot be turned into tags
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

RATE_LIMIT_STATUS = 429
RATE_LIMIT_TOKENS = ("quota", "rate limit")


class DataTaggerError(Exception):
    """Base class for all data-tagger errors."""


class ConfigurationError(DataTaggerError):
    """A job cannot start because its configuration is invalid."""


class ProviderError(DataTaggerError):
    """
    A provider call failed.

    Attributes:
        provider: Provider id that produced the error
        status_code: HTTP status, or None for transport failures and timeouts
        message: Provider-supplied (or transport) error message
    """

    def __init__(self, provider: str, status_code: Optional[int], message: str):
        self.provider = provider
        self.status_code = status_code
        self.message = message or ""
        super().__init__(self._format())

    def _format(self) -> str:
        if self.status_code is None:
            return f"{self.provider} API error: {self.message}"
        return f"{self.provider} API error: {self.status_code} - {self.message}"

    @property
    def is_rate_limit(self) -> bool:
        """True when the provider is asking us to slow down."""
        if self.status_code == RATE_LIMIT_STATUS:
            return True
        lowered = self.message.lower()
        return any(token in lowered for token in RATE_LIMIT_TOKENS)


class FatalRunError(DataTaggerError):
    """Rate limiting persisted past the retry budget; the run ends early."""

    def __init__(self, row_index: int, cause: ProviderError):
        self.row_index = row_index
        self.cause = cause
        super().__init__(f"{cause}. Processing stopped at row {row_index + 1}.")


class TagImportError(DataTaggerError, ValueError):
    """A tag CSV could not be imported."""


def _error_log_path() -> Path:
    """Resolve error log path, respecting DATA_TAGGER_HOME."""
    home = os.environ.get("DATA_TAGGER_HOME")
    if home:
        return Path(home) / "errors.log"
    return Path.home() / ".data-tagger" / "errors.log"


def log_exception(exc: Exception, context: str = "") -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'=' * 60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    except OSError:
        pass  # the error log is best-effort
    return log_path
