"""
Error Handler Utility
=====================

This module provides the exception taxonomy and the centralized error handling
utilities for timeliner: logging setup, consistent error reporting and an
error context manager.

Errors fall in three families:
- ParseError: a bodyfile line could not be decoded (MalformedRecord, InvalidField)
- FilterError: the filter expression failed to compile or to evaluate
- UsageError: the API was driven in the wrong order (programmer error)

Author: Timeliner Development Team
Version: 1.0
"""

import logging
import sys
from typing import Optional, Any, List, Tuple

# Configure logger
logger = logging.getLogger(__name__)


class ErrorSeverity:
    """Error severity levels."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class TimelinerError(Exception):
    """Base exception for timeliner errors."""

    def __init__(self, message: str, details: Optional[str] = None,
                 severity: str = ErrorSeverity.ERROR):
        """
        Initialize timeliner error.

        Args:
            message: Short error message
            details: Technical details for logging
            severity: Error severity level
        """
        super().__init__(message)
        self.message = message
        self.details = details or message
        self.severity = severity
        self.line_number: Optional[int] = None

    def __str__(self) -> str:
        if self.line_number is not None:
            return f"line {self.line_number}: {self.message}"
        return self.message


class ParseError(TimelinerError):
    """Exception for bodyfile lines that cannot be decoded."""
    pass


class MalformedRecord(ParseError):
    """The field count cannot be reconciled to the bodyfile layout."""

    def __init__(self, field_count: int, expected: int = 11):
        super().__init__(
            f"Invalid bodyfile format, expected {expected} fields, got {field_count}"
        )
        self.field_count = field_count
        self.expected = expected


class InvalidField(ParseError):
    """A field that must be an integer is not."""

    def __init__(self, field_name: str, value: str, reason: Optional[str] = None):
        message = f"{field_name} was not an integer: {value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.field_name = field_name
        self.value = value


class FilterError(TimelinerError):
    """Exception for filter expression errors."""
    pass


class CompileError(FilterError):
    """The filter expression is syntactically invalid."""

    def __init__(self, message: str, expression: str = "", position: Optional[int] = None):
        details = message
        if expression:
            details = f"{message}\nExpression: {expression}"
            if position is not None:
                details += f"\n            {' ' * position}^"
        super().__init__(message, details, ErrorSeverity.CRITICAL)
        self.expression = expression
        self.position = position


class EvalError(FilterError):
    """A compiled filter failed while being evaluated against a record."""

    def __init__(self, message: str, kind: Any = None):
        if kind is not None:
            message = f"Could not evaluate expression for {kind}: {message}"
        super().__init__(message)
        self.kind = kind


class UsageError(TimelinerError):
    """The API was called out of order."""

    def __init__(self, message: str):
        super().__init__(message, severity=ErrorSeverity.CRITICAL)


class TimelineStateError(UsageError):
    """The timeline builder was driven in an invalid state."""
    pass


class ErrorHandler:
    """
    Centralized error handling and logging utility.

    Keeps a short history of handled errors so a run can report what it
    skipped, and provides a context manager for consistent error handling.
    """

    def __init__(self, logger_name: str = 'timeliner', max_stored_errors: int = 10):
        """
        Initialize the error handler with a logger.

        Args:
            logger_name: Name to use for the logger
            max_stored_errors: How many recent errors to keep
        """
        self.logger = logging.getLogger(logger_name)
        self.error_count = 0
        self._last_errors: List[Tuple[str, str]] = []
        self._max_stored_errors = max_stored_errors

    def setup_logging(self, log_level: int = logging.INFO, log_file: Optional[str] = None):
        """
        Configure logging settings.

        The console handler writes to stderr so the timeline on stdout stays
        machine readable.

        Args:
            log_level: Logging level (e.g., logging.INFO, logging.DEBUG)
            log_file: Optional file to write logs to
        """
        # Clear any existing handlers
        self.logger.handlers = []
        self.logger.setLevel(log_level)

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        if log_file:
            try:
                file_handler = logging.FileHandler(log_file)
                file_handler.setLevel(log_level)
                file_handler.setFormatter(formatter)
                self.logger.addHandler(file_handler)
            except OSError as e:
                self.logger.error(f"Failed to set up file logging: {str(e)}")

    def handle_error(self,
                     exception: Optional[Exception] = None,
                     message: str = "An error occurred",
                     log_level: int = logging.ERROR,
                     raise_exception: bool = True) -> bool:
        """
        Handle an error with consistent logging and optional re-raising.

        Args:
            exception: The exception that was caught (if any)
            message: Custom error message
            log_level: Logging level for the error
            raise_exception: Whether to re-raise the exception

        Returns:
            bool: Always returns False to allow for early returns
        """
        self.error_count += 1
        full_message = message

        if exception is not None:
            full_message = f"{message}: {str(exception)}"
            if isinstance(exception, TimelinerError) and exception.details != exception.message:
                self.logger.debug(exception.details)

        # Tracebacks only for unexpected errors, data errors are self-describing
        exc_info = exception is not None and not isinstance(exception, TimelinerError)
        self.logger.log(log_level, full_message, exc_info=exc_info)

        self._last_errors.append((logging.getLevelName(log_level), full_message))
        if len(self._last_errors) > self._max_stored_errors:
            self._last_errors.pop(0)

        if raise_exception and exception is not None:
            raise exception

        return False

    def get_recent_errors(self) -> List[Tuple[str, str]]:
        """Return the most recent (level, message) pairs."""
        return list(self._last_errors)

    def error_context(self,
                      exception: type = Exception,
                      message: str = "An error occurred in context",
                      log_level: int = logging.ERROR,
                      reraise: bool = True):
        """
        Context manager for handling exceptions in a with block.

        Args:
            exception: Exception type to catch
            message: Error message
            log_level: Logging level
            reraise: Whether to re-raise the exception

        Returns:
            Context manager
        """
        class ErrorContext:
            def __init__(self, handler, exception, message, log_level, reraise):
                self.handler = handler
                self.exception = exception
                self.message = message
                self.log_level = log_level
                self.reraise = reraise
                self.error = None

            def __enter__(self):
                return self

            def __exit__(self, exc_type, exc_val, exc_tb):
                if exc_type is not None and issubclass(exc_type, self.exception):
                    self.error = exc_val
                    self.handler.handle_error(exc_val, self.message, self.log_level, False)
                    return not self.reraise  # Only suppress if we're not re-raising
                return False

        return ErrorContext(self, exception, message, log_level, reraise)
