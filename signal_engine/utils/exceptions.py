"""
Exception hierarchy for the signal engine.

Insufficient market data is normally absorbed by the analyzers (they
return a neutral result), so most of these surface either from input
validation of the data types or from configuration mistakes.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional


class SignalEngineException(Exception):
    """
    Base exception of the signal engine

    Every engine-specific error derives from this class so callers can
    handle them uniformly.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        """
        Args:
            message: Human readable error message
            error_code: Machine readable error code
            details: Extra error details
            original_exception: Underlying exception, if any
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now()

        if original_exception:
            self.details['original_error'] = str(original_exception)
            self.details['original_type'] = type(original_exception).__name__

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize the exception for structured logging

        Returns:
            Dictionary describing the error
        """
        return {
            'error_type': self.__class__.__name__,
            'error_code': self.error_code,
            'message': self.message,
            'details': self.details,
            'timestamp': self.timestamp.isoformat(),
            'original_exception': str(self.original_exception) if self.original_exception else None
        }

    def __str__(self) -> str:
        base_msg = f"[{self.error_code}] {self.message}"
        if self.details:
            base_msg += f" | Details: {self.details}"
        return base_msg


class InvalidDataException(SignalEngineException):
    """
    Raised for malformed market data

    Candles with high below low, negative volumes, signals with a
    confidence outside [0, 100] and similar inconsistencies.
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        invalid_value: Optional[Any] = None
    ):
        details = {}
        if field_name:
            details['field_name'] = field_name
        if invalid_value is not None:
            details['invalid_value'] = str(invalid_value)

        super().__init__(
            message=message,
            error_code="INVALID_DATA",
            details=details
        )


class ConfigurationException(SignalEngineException):
    """Raised for invalid configuration; always a setup mistake"""

    def __init__(
        self,
        message: str,
        config_section: Optional[str] = None,
        invalid_params: Optional[List[str]] = None,
        original_exception: Optional[Exception] = None
    ):
        details = {}
        if config_section:
            details['config_section'] = config_section
        if invalid_params:
            details['invalid_params'] = invalid_params

        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details=details,
            original_exception=original_exception
        )


class AnalyzerNotFoundException(ConfigurationException):
    """Raised when an administrative call names an unregistered analyzer"""

    def __init__(self, name: str, registered: Optional[List[str]] = None):
        super().__init__(
            message=f"Analyzer not registered: {name}",
            config_section="registry",
            invalid_params=[name]
        )
        self.error_code = "ANALYZER_NOT_FOUND"
        self.name = name
        if registered is not None:
            self.details['registered'] = registered


class AnalyzerEvaluationException(SignalEngineException):
    """Wraps a failure raised by an analyzer's evaluate call"""

    def __init__(self, analyzer_name: str, original_exception: Exception):
        super().__init__(
            message=f"Analyzer {analyzer_name} failed: {original_exception}",
            error_code="ANALYZER_EVALUATION_ERROR",
            details={'analyzer': analyzer_name},
            original_exception=original_exception
        )
        self.analyzer_name = analyzer_name


def log_exception(
    logger,
    exception: Exception,
    context: Optional[Dict[str, Any]] = None,
    event: Optional[str] = None,
):
    """
    Log an exception together with its context

    Args:
        logger: Structured logger
        exception: Exception to log
        context: Extra context fields
        event: Event name; the exception message is the event when omitted
            and goes into ``error_message`` otherwise
    """
    context = context or {}

    if isinstance(exception, SignalEngineException):
        if event is not None:
            context = {**context, "error_message": exception.message}
        logger.error(
            event or exception.message,
            error_code=exception.error_code,
            error_type=exception.__class__.__name__,
            details=exception.details,
            exc_info=exception.original_exception or False,
            **context
        )
    else:
        logger.error(
            event or f"Unexpected exception: {exception}",
            error_type=type(exception).__name__,
            error_message=str(exception),
            exc_info=exception,
            **context
        )
