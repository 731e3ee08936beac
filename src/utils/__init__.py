"""Utility interfaces and implementations."""

from .error_handler import ErrorHandler, LoggingErrorHandler, RecordingErrorHandler

__all__ = [
    "ErrorHandler",
    "LoggingErrorHandler",
    "RecordingErrorHandler",
]
