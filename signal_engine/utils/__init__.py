"""
Utility modules for the signal engine

Logging, the exception hierarchy and numeric/data helpers.
"""

from .logger import LoggerMixin, configure_logging, get_analyzer_logger, get_logger, log_performance_metrics
from .exceptions import (
    AnalyzerEvaluationException,
    AnalyzerNotFoundException,
    ConfigurationException,
    InvalidDataException,
    SignalEngineException,
    log_exception,
)
from .helpers import (
    clamp,
    ensure_datetime,
    parse_timeframe_to_minutes,
    percent_distance,
    round_half_up,
    safe_divide,
    validate_ohlcv_data,
)

__all__ = [
    # Logging
    "LoggerMixin",
    "configure_logging",
    "get_analyzer_logger",
    "get_logger",
    "log_performance_metrics",

    # Exceptions
    "AnalyzerEvaluationException",
    "AnalyzerNotFoundException",
    "ConfigurationException",
    "InvalidDataException",
    "SignalEngineException",
    "log_exception",

    # Helpers
    "clamp",
    "ensure_datetime",
    "parse_timeframe_to_minutes",
    "percent_distance",
    "round_half_up",
    "safe_divide",
    "validate_ohlcv_data",
]
