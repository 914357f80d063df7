"""
Centralized logging configuration for Class Service.

Provides one structured logging interface shared by the API process and the
consumer workers:
- Structured entries with correlation IDs and metadata
- JSON output for production, coloured console output for development
- Optional file output (always JSON)
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from class_service.core.config import config
from class_service.utils.correlation_id import get_correlation_id

SERVICE_NAME = config.service_name
ENVIRONMENT = config.environment
LOG_LEVEL = config.log_level.upper()
LOG_FORMAT = config.log_format.lower()


class StructuredLogger:
    """
    Logger wrapper producing structured entries with correlation IDs.
    """

    def __init__(self):
        self.service_name = SERVICE_NAME
        self.environment = ENVIRONMENT
        self._logger = logging.getLogger(SERVICE_NAME)
        self._setup_logging()

    def _setup_logging(self):
        """Configure the service logger with handlers"""
        self._logger.handlers.clear()
        self._logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
        self._logger.propagate = False

        if config.log_to_console:
            console_handler = logging.StreamHandler(sys.stdout)
            if LOG_FORMAT == "json":
                console_handler.setFormatter(JSONFormatter())
            else:
                console_handler.setFormatter(ConsoleFormatter())
            self._logger.addHandler(console_handler)

        if config.log_to_file:
            log_dir = os.path.dirname(config.log_file_path)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)

            file_handler = logging.FileHandler(config.log_file_path)
            file_handler.setFormatter(JSONFormatter())  # Always JSON for files
            self._logger.addHandler(file_handler)

    def _build_log_entry(
        self,
        level: str,
        message: str,
        correlation_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """Build structured log entry"""
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level.upper(),
            "service": self.service_name,
            "environment": self.environment,
            "message": message,
            "correlationId": correlation_id or get_correlation_id(),
        }

        if metadata:
            entry["metadata"] = metadata

        entry.update(kwargs)

        return entry

    def _log(
        self,
        level: str,
        message: str,
        correlation_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        """Internal logging method"""
        log_entry = self._build_log_entry(level, message, correlation_id, metadata, **kwargs)
        log_method = getattr(self._logger, level.lower())

        # 'message' would clash with the LogRecord attribute of the same name
        extra_data = {k: v for k, v in log_entry.items() if k != "message"}
        log_method(message, extra=extra_data)

    @staticmethod
    def _with_error(
        metadata: Optional[Dict[str, Any]],
        error: Optional[Union[str, Exception]],
    ) -> Dict[str, Any]:
        metadata = dict(metadata or {})
        if isinstance(error, Exception):
            metadata["error"] = {
                "type": type(error).__name__,
                "message": str(error),
            }
        elif error:
            metadata["error"] = {"message": str(error)}
        return metadata

    def debug(
        self,
        message: str,
        correlation_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        """Debug level logging"""
        self._log("DEBUG", message, correlation_id, metadata, **kwargs)

    def info(
        self,
        message: str,
        correlation_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        """Info level logging"""
        self._log("INFO", message, correlation_id, metadata, **kwargs)

    def warning(
        self,
        message: str,
        correlation_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        error: Optional[Union[str, Exception]] = None,
        **kwargs
    ):
        """Warning level logging"""
        if error:
            metadata = self._with_error(metadata, error)
        self._log("WARNING", message, correlation_id, metadata, **kwargs)

    def error(
        self,
        message: str,
        correlation_id: Optional[str] = None,
        error: Optional[Union[str, Exception]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        """Error level logging"""
        if error:
            metadata = self._with_error(metadata, error)
        self._log("ERROR", message, correlation_id, metadata, **kwargs)

    def critical(
        self,
        message: str,
        correlation_id: Optional[str] = None,
        error: Optional[Union[str, Exception]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        """Critical level logging"""
        if error:
            metadata = self._with_error(metadata, error)
        self._log("CRITICAL", message, correlation_id, metadata, **kwargs)

    def performance(
        self,
        operation: str,
        duration_ms: int,
        threshold_ms: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        """Log operation timing, at WARNING when over threshold"""
        metadata = dict(metadata or {})
        metadata.update({
            "operation": operation,
            "durationMs": duration_ms,
            "thresholdMs": threshold_ms,
        })

        level = "WARNING" if threshold_ms and duration_ms > threshold_ms else "INFO"
        self._log(level, f"Operation completed: {operation}", metadata=metadata, **kwargs)


_RESERVED_RECORD_KEYS = {
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "message", "pathname", "process",
    "processName", "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "taskName",
}


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record):
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored console formatter for development"""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        reset = self.COLORS['RESET']

        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S')
        line = f"{color}[{timestamp}] {record.levelname}{reset} - {record.getMessage()}"

        metadata = getattr(record, "metadata", None)
        if metadata:
            line += f" {json.dumps(metadata, default=str)}"

        return line


# Create and export the logger instance
logger = StructuredLogger()
