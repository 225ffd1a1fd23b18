# identity/utils/logging_config.py
import logging
import json
import sys
from datetime import datetime, timezone
from typing import Dict, Optional
from functools import wraps
from contextlib import contextmanager

# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_ATTRS = frozenset([
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'exc_info', 'exc_text', 'stack_info', 'lineno', 'funcName',
    'created', 'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'message', 'taskName',
])


class StructuredLogger(logging.Logger):
    """Logger that merges the active log_context into every record"""

    def _log(self, level, msg, args, exc_info=None, extra=None, stack_info=False, stacklevel=1):
        extra = dict(extra) if extra else {}

        if hasattr(self, '_context'):
            for key, value in self._context.items():
                extra.setdefault(key, value)

        extra['timestamp'] = datetime.now(timezone.utc).isoformat()

        if hasattr(self, '_service_name'):
            extra['service'] = self._service_name

        super()._log(level, msg, args, exc_info, extra, stack_info, stacklevel)


class JSONFormatter(logging.Formatter):
    """Formatter that outputs one JSON object per record"""

    def format(self, record):
        log_record = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'name': record.name,
            'level': record.levelname,
            'message': record.getMessage(),
            'service': getattr(record, 'service', 'unknown')
        }

        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_record:
                log_record[key] = value

        return json.dumps(log_record, default=str)


def setup_logging(
        service_name: str,
        log_level: str = 'INFO',
        log_format: str = 'json'  # 'json' or 'text'
) -> logging.Logger:
    """
    Set up logging configuration for a component

    Args:
        service_name: Name of the component, used as the logger name
        log_level: Logging level
        log_format: Format to use ('json' or 'text')

    Returns:
        Configured logger
    """
    logging.setLoggerClass(StructuredLogger)

    logger = logging.getLogger(service_name)
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, log_level.upper()))

    if log_format == 'json':
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    logger._service_name = service_name

    # Children (identity.verification, ...) propagate here; stop at this level
    logger.propagate = False

    return logger


def mask(value: Optional[str], visible: int = 5) -> str:
    """Shorten an identity (email, phone) for log output"""
    if not value:
        return ""
    return value[:visible] + "..."


@contextmanager
def log_context(logger: logging.Logger, **kwargs):
    """
    Context manager for adding contextual information to logs

    Args:
        logger: Logger instance
        **kwargs: Context key-value pairs
    """
    old_context = getattr(logger, '_context', {})
    new_context = old_context.copy()
    new_context.update(kwargs)
    logger._context = new_context
    try:
        yield
    finally:
        logger._context = old_context


def log_operation(operation_name: str):
    """
    Decorator for logging function entry and exit

    The logger is taken from the `logger` attribute of the first argument
    (instances of the service classes carry one), falling back to this
    module's logger.

    Args:
        operation_name: Name of the operation being performed
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = getattr(args[0], 'logger', None) if args else None
            if not isinstance(logger, logging.Logger):
                logger = logging.getLogger(__name__)

            with log_context(logger, operation=operation_name):
                logger.debug(f"Starting {operation_name}")
                try:
                    result = func(*args, **kwargs)
                    logger.debug(f"Completed {operation_name}")
                    return result
                except Exception as e:
                    logger.debug(f"Error in {operation_name}: {type(e).__name__}")
                    raise

        return wrapper

    return decorator


class LogAggregator:
    """
    Aggregates per-item counters into a single summary log
    """

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.counters: Dict[str, int] = {}
        self.start_time = datetime.now(timezone.utc)

    def increment(self, counter: str, by: int = 1):
        """Bump a named counter reported with the summary"""
        self.counters[counter] = self.counters.get(counter, 0) + by

    def log_summary(self, level: int = logging.INFO):
        """Log the aggregated summary"""
        duration = (datetime.now(timezone.utc) - self.start_time).total_seconds()

        summary = {'duration_seconds': duration}
        summary.update(self.counters)

        self.logger.log(level, f"{self.operation} completed", extra=summary)
