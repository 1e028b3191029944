"""
Structured logging utilities for the signal engine.

structlog configuration shared by the level analyzer and the analyzer
registry, plus helpers for binding analyzer context and recording
timing of signal collection rounds.
"""

import logging
import os
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import structlog
from structlog.types import Processor


class LogLevel(str, Enum):
    """Logging levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats"""
    JSON = "json"
    TEXT = "text"
    COLORED = "colored"


_logging_configured = False


def configure_logging(
    level: LogLevel = LogLevel.INFO,
    format_type: LogFormat = LogFormat.JSON,
    log_file: Optional[Union[str, Path]] = None,
    service_name: str = "signal-engine",
    service_version: str = "1.0.0",
    environment: str = "development",
    force: bool = False,
) -> None:
    """
    Configure structured logging for the whole application

    Args:
        level: Minimum log level
        format_type: Console output format
        log_file: Optional path of a JSON log file
        service_name: Service name attached to every event
        service_version: Service version attached to every event
        environment: Deployment environment attached to every event
        force: Reconfigure even if logging was already configured
    """
    global _logging_configured

    if _logging_configured and not force:
        return

    level = LogLevel(level)
    format_type = LogFormat(format_type)

    processors = [
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ]
        ),
        structlog.processors.format_exc_info,
        _add_service_context(service_name, service_version, environment),
    ]

    if format_type == LogFormat.JSON:
        processors.append(structlog.processors.JSONRenderer())
    elif format_type == LogFormat.COLORED:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(
            structlog.processors.KeyValueRenderer(
                key_order=['timestamp', 'level', 'logger', 'event']
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.value),
    )

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, level.value))
        # Files are always JSON
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
            )
        )
        logging.getLogger().addHandler(file_handler)

    _suppress_noisy_loggers()

    _logging_configured = True


def _add_service_context(
    service_name: str,
    service_version: str,
    environment: str
) -> Processor:
    """Build a processor that stamps service metadata on each event"""
    pid = os.getpid()

    def processor(logger, method_name, event_dict):
        event_dict.update({
            'service': service_name,
            'version': service_version,
            'environment': environment,
            'pid': pid,
        })
        return event_dict

    return processor


def _suppress_noisy_loggers():
    for logger_name in ('asyncio', 'concurrent.futures', 'urllib3.connectionpool'):
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a configured structured logger

    Args:
        name: Logger name (defaults to the caller's module name)

    Returns:
        Structured logger
    """
    if not _logging_configured:
        configure_logging()

    if name is None:
        import inspect
        frame = inspect.currentframe().f_back
        name = frame.f_globals.get('__name__', 'unknown')

    return structlog.get_logger(name)


def get_analyzer_logger(
    analyzer: str,
    symbol: Optional[str] = None,
) -> structlog.stdlib.BoundLogger:
    """
    Get a logger bound with analyzer context

    Args:
        analyzer: Analyzer name
        symbol: Trading symbol (optional)

    Returns:
        Logger with analyzer context attached
    """
    context = {'analyzer': analyzer}
    if symbol:
        context['symbol'] = symbol
    return get_logger("analyzer").bind(**context)


def log_performance_metrics(
    logger,
    operation: str,
    duration_seconds: float,
    success: bool = True,
    additional_metrics: Optional[Dict[str, Any]] = None
):
    """
    Log performance metrics of an operation

    Args:
        logger: Target logger
        operation: Operation name
        duration_seconds: Duration in seconds
        success: Whether the operation succeeded
        additional_metrics: Extra fields to attach
    """
    metrics = {
        'operation': operation,
        'duration_seconds': round(duration_seconds, 4),
        'success': success,
        'performance_log': True,
    }

    if additional_metrics:
        metrics.update(additional_metrics)

    if success:
        logger.info(f"Performance: {operation} completed", **metrics)
    else:
        logger.error(f"Performance: {operation} failed", **metrics)


class LoggerMixin:
    """
    Mixin providing a class-bound structured logger

    Classes may assign ``self._logger`` up front to inject their own
    logger; otherwise one is created lazily on first access.
    """

    _logger = None

    @property
    def logger(self):
        """Logger bound with the class name"""
        if self._logger is None:
            class_name = self.__class__.__name__
            base_logger = get_logger(f"{self.__class__.__module__}.{class_name}")
            self._logger = base_logger.bind(**{'class': class_name})
        return self._logger
