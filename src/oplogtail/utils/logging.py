"""
Logging utility module for oplogtail.

Provides JSON-structured logging with a per-tail session ID so that log lines
from concurrently running tails can be told apart.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional, Dict, Any, TYPE_CHECKING

if TYPE_CHECKING:
    from ..config.settings import LoggingSettings

# Context variable for the tail session ID
_session_id: ContextVar[Optional[str]] = ContextVar('session_id', default=None)

# Attributes present on every LogRecord; anything else came from ``extra=``
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {'message', 'asctime'}


def get_session_id() -> Optional[str]:
    """Get the current session ID from context.

    Returns:
        Current session ID or None if not set
    """
    return _session_id.get()


def new_session_id() -> str:
    """Generate a session ID for a new tail."""
    return uuid.uuid4().hex[:12]


class SessionContext:
    """Context manager binding a session ID to log records emitted inside it."""

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id or new_session_id()
        self._token = None

    def __enter__(self) -> str:
        self._token = _session_id.set(self.session_id)
        return self.session_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        _session_id.reset(self._token)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log string
        """
        log_data: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        session_id = get_session_id()
        if session_id and 'session_id' not in record.__dict__:
            log_data['session_id'] = session_id

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        # Fields passed via ``extra=`` land on the record itself
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith('_'):
                log_data[key] = value

        return json.dumps(log_data, default=str)


def get_logger(name: str, level: int = logging.INFO, json_format: bool = True) -> logging.Logger:
    """Get a logger writing to stderr.

    Args:
        name: Logger name (typically __name__)
        level: Logging level (default: INFO)
        json_format: Emit JSON lines instead of plain text

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s'))

    logger.addHandler(handler)
    logger.propagate = False  # Prevent duplicate logs from parent loggers

    return logger


def configure_logging(settings: 'LoggingSettings') -> logging.Logger:
    """Configure the ``oplogtail`` logger hierarchy from settings.

    Library modules log through ``logging.getLogger(__name__)``; this attaches
    the handler to their common parent.
    """
    level = logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger = logging.getLogger('oplogtail')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    return get_logger('oplogtail', level=level, json_format=settings.json_format)
