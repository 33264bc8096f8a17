"""
Error reporting and logging setup for the CHIP-8 virtual machine.

All package loggers live under the ``Chip8VM`` logger, which the global
``error_handler`` wires to the console and, optionally, a log file. Faults
raised by the execution loop are reported through the same handler, which
keeps a bounded history of them and forwards each one to any callback
registered for its category.
"""

import logging
import sys
import os
import traceback
import json
import datetime
from collections import deque
from typing import Dict, List, Any, Optional, Callable
from enum import Enum, auto
import threading
from functools import wraps

from ..common.errors import (
    RomLoadError, MemoryAccessError, UnknownOpcodeError, UnsupportedOpcodeError,
    StackOverflowError, StackUnderflowError, InvalidKeyError, RendererError
)

logger = logging.getLogger("Chip8VM")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

class ErrorLevel(Enum):
    """Error severity levels."""
    DEBUG = auto()
    INFO = auto()
    WARNING = auto()
    ERROR = auto()
    CRITICAL = auto()

class ErrorCategory(Enum):
    """Where an error came from."""
    SYSTEM = auto()
    CONFIGURATION = auto()
    LOAD = auto()
    DECODE = auto()
    EXECUTION = auto()
    RENDERER = auto()
    LIFECYCLE = auto()
    INPUT = auto()
    UNKNOWN = auto()

_CATEGORY_BY_TYPE = [
    (RomLoadError, ErrorCategory.LOAD),
    (RendererError, ErrorCategory.RENDERER),
    ((MemoryAccessError, UnknownOpcodeError, UnsupportedOpcodeError), ErrorCategory.DECODE),
    (InvalidKeyError, ErrorCategory.INPUT),
    ((StackOverflowError, StackUnderflowError), ErrorCategory.EXECUTION),
]

def category_for_exception(exception: BaseException) -> ErrorCategory:
    """Category for a virtual machine exception (UNKNOWN for anything else)."""
    for types, category in _CATEGORY_BY_TYPE:
        if isinstance(exception, types):
            return category
    return ErrorCategory.UNKNOWN

class ErrorHandler:
    """
    Logging configuration plus a record of reported errors.

    Each report is a plain dictionary (timestamp, level, category, message,
    exception type and arguments, formatted traceback and caller supplied
    context) so it can be exported as JSON unchanged.
    """

    def __init__(self,
                 log_file: Optional[str] = None,
                 console_level: int = logging.INFO,
                 file_level: int = logging.DEBUG,
                 report_errors: bool = True,
                 max_error_history: int = 100):
        """
        Initialize the handler and (re)configure the ``Chip8VM`` logger.

        Args:
            log_file: Also log to this file when given
            console_level: Level for the stdout handler
            file_level: Level for the file handler
            report_errors: Keep reported errors in the history
            max_error_history: Number of reports to keep
        """
        self.log_file = log_file
        self.console_level = console_level
        self.file_level = file_level
        self.report_errors = report_errors

        self.error_history = deque(maxlen=max_error_history)
        self.error_history_lock = threading.Lock()
        self.error_handlers: Dict[ErrorCategory, Callable[[Dict[str, Any]], None]] = {}

        self._configure_logging()

    def _configure_logging(self) -> None:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        # Handlers do the filtering
        logger.setLevel(logging.DEBUG)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.console_level)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(console_handler)

        if self.log_file:
            self._add_file_handler(self.log_file)

    def _add_file_handler(self, log_file: str) -> None:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(self.file_level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    def handle_error(self,
                     exception: Optional[BaseException] = None,
                     message: Optional[str] = None,
                     level: ErrorLevel = ErrorLevel.ERROR,
                     category: ErrorCategory = ErrorCategory.UNKNOWN,
                     context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Log an error, record it and pass it to the category callback.

        Args:
            exception: The exception being reported, if any
            message: Log message (defaults to ``str(exception)``)
            level: Severity
            category: Category used for filtering and callbacks
            context: Extra values stored with the report

        Returns:
            The error report
        """
        if message is None:
            message = str(exception) if exception is not None else "Unknown error"

        report = {
            "timestamp": datetime.datetime.now().isoformat(),
            "level": level.name,
            "category": category.name,
            "message": message,
            "exception_type": type(exception).__name__ if exception is not None else None,
            "exception_args": [str(arg) for arg in exception.args] if exception is not None else None,
            "traceback": self._format_traceback(exception),
            "context": context or {}
        }

        log_level = getattr(logging, level.name)
        logger.log(log_level, f"{message} ({category.name})")
        if report["traceback"]:
            logger.debug(f"Traceback: {report['traceback']}")

        if self.report_errors:
            with self.error_history_lock:
                self.error_history.append(report)

        callback = self.error_handlers.get(category)
        if callback is not None:
            try:
                callback(report)
            except Exception as e:
                logger.error(f"Error in {category.name} error callback: {e}")

        return report

    @staticmethod
    def _format_traceback(exception: Optional[BaseException]) -> Optional[str]:
        if exception is None or exception.__traceback__ is None:
            return None
        return "".join(traceback.format_exception(type(exception), exception, exception.__traceback__))

    def register_handler(self, category: ErrorCategory, handler: Callable[[Dict[str, Any]], None]) -> None:
        """Call ``handler`` with every report in ``category`` (replaces any previous one)."""
        self.error_handlers[category] = handler

    def unregister_handler(self, category: ErrorCategory) -> bool:
        return self.error_handlers.pop(category, None) is not None

    def clear_error_history(self) -> None:
        with self.error_history_lock:
            self.error_history.clear()

    def get_error_history(self,
                          level: Optional[ErrorLevel] = None,
                          category: Optional[ErrorCategory] = None,
                          max_errors: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Get recorded reports, oldest first.

        Args:
            level: Only reports of this severity
            category: Only reports in this category
            max_errors: Only the most recent N matching reports
        """
        with self.error_history_lock:
            errors = list(self.error_history)

        if level is not None:
            errors = [e for e in errors if e["level"] == level.name]
        if category is not None:
            errors = [e for e in errors if e["category"] == category.name]
        if max_errors:
            errors = errors[-max_errors:]

        return errors

    def get_error_summary(self) -> Dict[str, Any]:
        """Count recorded reports by category, level and exception type."""
        errors = self.get_error_history()

        summary = {
            "total": len(errors),
            "by_category": {},
            "by_level": {},
            "by_exception": {},
            "latest": errors[-1] if errors else None
        }
        for e in errors:
            counts = [("by_category", e["category"]), ("by_level", e["level"]),
                      ("by_exception", e["exception_type"])]
            for key, value in counts:
                if value is not None:
                    summary[key][value] = summary[key].get(value, 0) + 1

        return summary

    def export_error_report(self, filename: str) -> bool:
        """
        Write the summary and every recorded report to a JSON file.

        Returns:
            True if the file was written
        """
        report = {
            "timestamp": datetime.datetime.now().isoformat(),
            "summary": self.get_error_summary(),
            "errors": self.get_error_history()
        }

        try:
            directory = os.path.dirname(filename)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(filename, 'w') as f:
                json.dump(report, f, indent=2, default=str)
        except OSError as e:
            logger.error(f"Error exporting error report: {e}")
            return False

        logger.info(f"Exported error report to {filename}")
        return True

    def set_log_levels(self, console_level: int, file_level: Optional[int] = None) -> None:
        """
        Change handler levels.

        Args:
            console_level: Level for the stdout handler
            file_level: Level for the file handler (None keeps the current one)
        """
        self.console_level = console_level
        if file_level is not None:
            self.file_level = file_level

        for handler in logger.handlers:
            # FileHandler is a StreamHandler too
            if isinstance(handler, logging.FileHandler):
                handler.setLevel(self.file_level)
            elif isinstance(handler, logging.StreamHandler):
                handler.setLevel(console_level)

    def set_log_file(self, log_file: Optional[str]) -> None:
        """Log to ``log_file`` instead of the current file (None to stop file logging)."""
        for handler in list(logger.handlers):
            if isinstance(handler, logging.FileHandler):
                logger.removeHandler(handler)
                handler.close()

        self.log_file = log_file
        if log_file:
            self._add_file_handler(log_file)

    def log_exception(self, exception: BaseException,
                      message: Optional[str] = None,
                      category: Optional[ErrorCategory] = None,
                      context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Report an exception at ERROR level; the category is derived when not given."""
        return self.handle_error(
            exception=exception,
            message=message,
            level=ErrorLevel.ERROR,
            category=category or category_for_exception(exception),
            context=context
        )

    def log_warning(self, message: str,
                    category: ErrorCategory = ErrorCategory.UNKNOWN,
                    context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.handle_error(
            message=message,
            level=ErrorLevel.WARNING,
            category=category,
            context=context
        )


# Global error handler instance
error_handler = ErrorHandler()

def error_boundary(category: ErrorCategory = ErrorCategory.UNKNOWN):
    """
    Report exceptions raised by the decorated function.

    SYSTEM errors are re-raised after being reported; for any other category
    the wrapped call returns None instead.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                error_handler.log_exception(
                    e,
                    message=f"Error in {func.__name__}: {e}",
                    category=category,
                    context={"function": func.__name__, "module": func.__module__}
                )
                if category == ErrorCategory.SYSTEM:
                    raise
                return None

        return wrapper
    return decorator

def performance_log(threshold_ms: float = 100):
    """Warn when a call to the decorated function takes longer than ``threshold_ms``."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = datetime.datetime.now()

            result = func(*args, **kwargs)

            elapsed_ms = (datetime.datetime.now() - start_time).total_seconds() * 1000
            if elapsed_ms > threshold_ms:
                logger.warning(f"Performance: {func.__name__} took {elapsed_ms:.2f}ms "
                               f"(threshold: {threshold_ms}ms)")

            return result

        return wrapper
    return decorator
