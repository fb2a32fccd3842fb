"""
Centralized Error Handling and Logging for King's Sword

Provides the exception taxonomy of the search subsystem and structured
logging helpers shared by the library, the search backends and the CLI.
"""

import logging
import sys
import time
from enum import Enum
from typing import Any, Dict, Optional

import structlog


class ErrorSeverity(Enum):
    """Error severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class KingSwordError(Exception):
    """Base exception for King's Sword specific errors."""

    def __init__(self, message: str, severity: ErrorSeverity = ErrorSeverity.ERROR):
        super().__init__(message)
        self.message = message
        self.severity = severity


class ConfigurationError(KingSwordError):
    """Configuration-related errors."""

    def __init__(self, message: str):
        super().__init__(message, ErrorSeverity.ERROR)


class EmptyQueryError(KingSwordError):
    """A query compiled down to zero usable terms. Means "no results"."""

    def __init__(self, message: str = "Query has no searchable terms"):
        super().__init__(message, ErrorSeverity.INFO)


class BackendUnavailable(KingSwordError):
    """The indexed engine is not initialized or not ready."""

    def __init__(self, message: str):
        super().__init__(message, ErrorSeverity.INFO)


class BackendExecutionError(KingSwordError):
    """The indexed engine raised while executing a query."""

    def __init__(self, message: str, severity: ErrorSeverity = ErrorSeverity.WARNING):
        super().__init__(message, severity)


class ExpansionFailure(KingSwordError):
    """Synonym lookup failed; search continues without synonyms."""

    def __init__(self, message: str):
        super().__init__(message, ErrorSeverity.WARNING)


class IndexingError(KingSwordError):
    """Document import errors."""

    def __init__(self, message: str, severity: ErrorSeverity = ErrorSeverity.ERROR):
        super().__init__(message, severity)


class ImportValidationError(IndexingError):
    """An import record is missing required fields."""


class ErrorHandler:
    """Centralized error handling and logging system with structured logging."""

    def __init__(self, logger_name: str = "kingsword", verbose: bool = False):
        """Initialize error handler with structured logging configuration."""
        self.logger_name = logger_name
        self.verbose = verbose
        self._setup_structured_logging()
        self.logger = structlog.get_logger(logger_name)

        self.error_start_time = time.time()
        self.error_counts = {"critical": 0, "error": 0, "warning": 0, "info": 0}

    def _setup_structured_logging(self):
        """Configure structured logging with processors and formatters."""
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="ISO"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.dev.set_exc_info,
                self._add_emoji_processor,
                (
                    structlog.dev.ConsoleRenderer(colors=True)
                    if self.verbose
                    else structlog.processors.JSONRenderer()
                ),
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        # Logs go to stderr so command output on stdout stays parseable
        logging.basicConfig(
            format="%(message)s",
            stream=sys.stderr,
            level=logging.DEBUG if self.verbose else logging.INFO,
        )

    def _add_emoji_processor(self, logger, method_name, event_dict):
        """Add emoji processor for visual feedback."""
        level_emoji = {
            "critical": "🚨",
            "error": "❌",
            "warning": "⚠️",
            "info": "ℹ️",
            "debug": "🔍",
        }

        level = event_dict.get("level", "info")
        event_dict.setdefault("emoji", level_emoji.get(level, "📝"))
        return event_dict

    def handle_error(self, error: Exception, context: str = "") -> bool:
        """
        Log an error at the level its severity calls for.

        Args:
            error: The exception to handle
            context: Where the error occurred (e.g. "search.indexed")

        Returns:
            bool: True if execution can continue, False if it should stop
        """
        if isinstance(error, KingSwordError):
            severity = error.severity.value
        else:
            severity = self._get_error_severity(error)

        self.error_counts[severity] = self.error_counts.get(severity, 0) + 1

        event = {
            "error_type": type(error).__name__,
            "context": context,
            "severity": severity,
        }
        message = str(error)

        if severity == "critical":
            self.logger.critical(message, **event)
            return False
        if severity == "error":
            self.logger.error(message, **event)
            return not isinstance(error, KingSwordError)
        if severity == "warning":
            self.logger.warning(message, **event)
            return True
        if severity == "debug":
            self.logger.debug(message, **event)
            return True
        self.logger.info(message, **event)
        return True

    def _get_error_severity(self, error: Exception) -> str:
        """Get severity level for generic exceptions."""
        if isinstance(error, (SystemExit, KeyboardInterrupt)):
            return "critical"
        elif isinstance(error, (ConnectionError, TimeoutError, ImportError)):
            return "warning"
        else:
            return "error"

    def log_info(self, message: str, emoji: str = "ℹ️", **context):
        """Log an informational message with structured context."""
        self.logger.info(message, emoji=emoji, **context)

    def log_warning(self, message: str, emoji: str = "⚠️", **context):
        """Log a warning message with structured context."""
        self.logger.warning(message, emoji=emoji, **context)

    def log_error(self, message: str, emoji: str = "❌", **context):
        """Log an error message with structured context."""
        self.logger.error(message, emoji=emoji, **context)

    def log_success(self, message: str, emoji: str = "✅", **context):
        """Log a success message with structured context."""
        self.logger.info(message, emoji=emoji, **context)

    def log_debug(self, message: str, **context):
        """Log a debug message with structured context."""
        if self.verbose:
            self.logger.debug(message, emoji="🔍", **context)

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of errors encountered so far."""
        runtime_seconds = time.time() - self.error_start_time
        return {
            "error_counts": self.error_counts.copy(),
            "total_errors": sum(self.error_counts.values()),
            "runtime_seconds": round(runtime_seconds, 2),
        }


# Global error handler instance
_error_handler: Optional[ErrorHandler] = None


def get_error_handler(verbose: bool = False) -> ErrorHandler:
    """Get the global error handler instance."""
    global _error_handler
    if _error_handler is None:
        _error_handler = ErrorHandler(verbose=verbose)
    return _error_handler


def configure_logging(verbose: bool = False) -> ErrorHandler:
    """Rebuild the global handler, e.g. when the CLI gets ``--verbose``."""
    global _error_handler
    _error_handler = ErrorHandler(verbose=verbose)
    return _error_handler


def handle_error(error: Exception, context: str = "") -> bool:
    """Convenience function to handle errors using the global handler."""
    return get_error_handler().handle_error(error, context)


def log_info(message: str, emoji: str = "ℹ️", **context):
    """Convenience function to log info using the global handler."""
    get_error_handler().log_info(message, emoji, **context)


def log_warning(message: str, emoji: str = "⚠️", **context):
    """Convenience function to log warning using the global handler."""
    get_error_handler().log_warning(message, emoji, **context)


def log_error(message: str, emoji: str = "❌", **context):
    """Convenience function to log error using the global handler."""
    get_error_handler().log_error(message, emoji, **context)


def log_success(message: str, emoji: str = "✅", **context):
    """Convenience function to log success using the global handler."""
    get_error_handler().log_success(message, emoji, **context)


def log_debug(message: str, **context):
    """Convenience function to log debug output using the global handler."""
    get_error_handler().log_debug(message, **context)


def get_error_summary() -> Dict[str, Any]:
    """Convenience function to get error summary using the global handler."""
    return get_error_handler().get_error_summary()
