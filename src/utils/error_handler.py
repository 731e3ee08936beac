"""Error handling abstractions."""

from __future__ import annotations

from abc import ABC, abstractmethod

import logfire


class ErrorHandler(ABC):
    """Interface for reporting errors.

    Implementations should avoid raising further exceptions and should emit
    concise diagnostics suitable for production logs. The request pool routes
    exceptions escaping caller callbacks here so a faulty consumer cannot stall
    scheduling.
    """

    @abstractmethod
    def handle(self, message: str, exc: BaseException | None = None) -> None:
        """Record ``message`` with optional ``exc`` context."""


class LoggingErrorHandler(ErrorHandler):
    """Error handler that logs via ``logfire``."""

    def handle(self, message: str, exc: BaseException | None = None) -> None:
        """Log an error message with optional exception context.

        Args:
            message: Description of the error to record.
            exc: Exception instance providing additional context.
        """
        if exc:
            logfire.error(
                "{message}: {error}",
                message=message,
                error=repr(exc),
                _exc_info=exc,
            )
        else:
            logfire.error("{message}", message=message)


class RecordingErrorHandler(LoggingErrorHandler):
    """Logging handler that also keeps reported errors for later inspection."""

    def __init__(self) -> None:
        self.errors: list[tuple[str, BaseException | None]] = []

    def handle(self, message: str, exc: BaseException | None = None) -> None:
        self.errors.append((message, exc))
        super().handle(message, exc)
