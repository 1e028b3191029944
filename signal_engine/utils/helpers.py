"""
Helper utilities for the signal engine.

Timeframe parsing, price distance arithmetic, rounding and the
conversion between OHLCV DataFrames and candle sequences.
"""

import math
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, List, Optional, Union

import pandas as pd

from .exceptions import InvalidDataException

SUPPORTED_TIMEFRAMES = {
    "1m": 1, "3m": 3, "5m": 5, "15m": 15, "30m": 30,
    "1h": 60, "2h": 120, "4h": 240, "6h": 360, "8h": 480, "12h": 720,
    "1d": 1440, "3d": 4320, "1w": 10080, "1M": 43200
}

OHLCV_COLUMNS = ['open', 'high', 'low', 'close', 'volume']

_COLUMN_ALIASES = {
    'o': 'open', 'h': 'high', 'l': 'low', 'c': 'close', 'v': 'volume',
    'vol': 'volume', 'time': 'timestamp', 'date': 'timestamp',
    'datetime': 'timestamp', 'ts': 'timestamp',
}


def parse_timeframe_to_minutes(timeframe: str) -> int:
    """
    Convert a timeframe label into minutes

    Args:
        timeframe: Timeframe label such as "5m" or "4h"

    Returns:
        Candle interval in minutes

    Raises:
        InvalidDataException: If the timeframe is unknown
    """
    if timeframe in SUPPORTED_TIMEFRAMES:
        return SUPPORTED_TIMEFRAMES[timeframe]
    normalized = timeframe.strip().lower() if isinstance(timeframe, str) else timeframe
    if normalized in SUPPORTED_TIMEFRAMES:
        return SUPPORTED_TIMEFRAMES[normalized]
    raise InvalidDataException(
        f"Unsupported timeframe: {timeframe}",
        field_name="timeframe",
        invalid_value=timeframe
    )


def ensure_datetime(value: Union[datetime, pd.Timestamp, int, float, str]) -> datetime:
    """
    Coerce a timestamp-like value into a timezone-aware UTC datetime

    Numbers are read as Unix epoch seconds. Naive datetimes are assumed
    to already be UTC.

    Args:
        value: datetime, pandas Timestamp, epoch seconds or ISO string

    Returns:
        Aware datetime in UTC
    """
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    elif isinstance(value, bool):
        raise InvalidDataException("Boolean is not a timestamp", field_name="timestamp", invalid_value=value)
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise InvalidDataException("Timestamp must be finite", field_name="timestamp", invalid_value=value)
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (ValueError, OverflowError, OSError) as e:
            raise InvalidDataException(
                f"Epoch seconds out of range: {value}",
                field_name="timestamp",
                invalid_value=value
            ) from e
    elif isinstance(value, str):
        try:
            value = pd.Timestamp(value).to_pydatetime()
        except ValueError as e:
            raise InvalidDataException(
                f"Cannot parse timestamp: {value}",
                field_name="timestamp",
                invalid_value=value
            ) from e

    if not isinstance(value, datetime):
        raise InvalidDataException(
            f"Unsupported timestamp type: {type(value).__name__}",
            field_name="timestamp",
            invalid_value=value
        )

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def safe_divide(
    numerator: Union[int, float],
    denominator: Union[int, float],
    default: Optional[float] = None
) -> Optional[float]:
    """
    Divide, returning ``default`` when the denominator is zero

    Args:
        numerator: Numerator
        denominator: Denominator
        default: Value returned on division by zero

    Returns:
        Quotient or default
    """
    if denominator == 0:
        return default
    return float(numerator) / float(denominator)


def percent_distance(price: float, reference: float) -> float:
    """
    Absolute distance between two prices as a percent of the reference

    Args:
        price: Observed price
        reference: Price the distance is measured against

    Returns:
        ``|price - reference| / reference * 100``, infinity when the
        reference is zero
    """
    ratio = safe_divide(abs(price - reference), abs(reference))
    return math.inf if ratio is None else ratio * 100


def round_half_up(value: float, precision: int = 0) -> float:
    """
    Round with ROUND_HALF_UP semantics instead of banker's rounding

    Args:
        value: Value to round
        precision: Decimal places

    Returns:
        Rounded value
    """
    quantize_exp = Decimal(1).scaleb(-precision)
    return float(Decimal(str(value)).quantize(quantize_exp, rounding=ROUND_HALF_UP))


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(value, upper))


def normalize_ohlcv_frame(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize column names and move the timestamp into a column

    Accepts frames indexed by a DatetimeIndex or carrying a
    timestamp-like column under a common alias.

    Args:
        df: Raw OHLCV frame

    Returns:
        Copy with lowercase OHLCV columns and a ``timestamp`` column,
        sorted by time
    """
    data = df.copy()
    data.columns = [str(col).strip().lower() for col in data.columns]
    data = data.rename(columns={k: v for k, v in _COLUMN_ALIASES.items() if k in data.columns and v not in data.columns})

    if 'timestamp' not in data.columns:
        if isinstance(data.index, pd.DatetimeIndex):
            data = data.rename_axis('timestamp').reset_index()
        else:
            raise InvalidDataException("OHLCV frame needs a timestamp column or DatetimeIndex", field_name="timestamp")

    if pd.api.types.is_numeric_dtype(data['timestamp']):
        data['timestamp'] = pd.to_datetime(data['timestamp'], unit='s', utc=True)
    else:
        data['timestamp'] = pd.to_datetime(data['timestamp'], utc=True)

    validate_ohlcv_data(data)
    return data.sort_values('timestamp').reset_index(drop=True)


def validate_ohlcv_data(df: pd.DataFrame, required_cols: Optional[List[str]] = None) -> bool:
    """
    Validate an OHLCV frame

    Args:
        df: Frame to check
        required_cols: Required columns (OHLCV by default)

    Returns:
        True if the data is valid

    Raises:
        InvalidDataException: On missing columns, non-numeric or
            negative values, or inconsistent high/low
    """
    if required_cols is None:
        required_cols = OHLCV_COLUMNS

    missing_cols = [col for col in required_cols if col not in df.columns]
    if missing_cols:
        raise InvalidDataException(f"Missing required columns: {missing_cols}")

    if df.empty:
        raise InvalidDataException("DataFrame is empty")

    for col in OHLCV_COLUMNS:
        if col in df.columns and not pd.api.types.is_numeric_dtype(df[col]):
            raise InvalidDataException(f"Column {col} must be numeric", field_name=col)

    if all(col in df.columns for col in ['open', 'high', 'low', 'close']):
        if (df['high'] < df[['open', 'close']].max(axis=1)).any():
            raise InvalidDataException("High price must be >= max(open, close)", field_name="high")
        if (df['low'] > df[['open', 'close']].min(axis=1)).any():
            raise InvalidDataException("Low price must be <= min(open, close)", field_name="low")

    for col in OHLCV_COLUMNS:
        if col in df.columns and (df[col] < 0).any():
            raise InvalidDataException(f"Column {col} contains negative values", field_name=col)

    return True


def to_float(value: Any) -> float:
    """Convert Decimal/numpy scalars to float, rejecting NaN"""
    result = float(value)
    if math.isnan(result):
        raise InvalidDataException("Value must not be NaN", invalid_value=value)
    return result
