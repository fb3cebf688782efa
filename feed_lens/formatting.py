"""Digest rendering helpers.

Missing values render as ``PLACEHOLDER`` instead of being left out, so every
record in a digest has the same lines.
"""
from __future__ import annotations

import functools
import logging
from datetime import timedelta
from typing import Any, Callable, TypeVar

from feed_lens.errors import FormatError

_log = logging.getLogger(__name__)

PLACEHOLDER = "N/A"

F = TypeVar("F", bound=Callable[..., str])


def format_number(value: float | None, decimals: int = 2) -> str:
    if value is None:
        return PLACEHOLDER
    return f"{value:.{decimals}f}"


def format_percent(value: float | None, decimals: int = 2, *, ratio: bool = False) -> str:
    """Render a percentage; ``ratio=True`` means 0.05 should read as 5.00%."""
    if value is None:
        return PLACEHOLDER
    if ratio:
        value *= 100
    return f"{value:.{decimals}f}%"


def format_usd(value: float | None) -> str:
    """Abbreviate dollar amounts: $1.23B, $4.56M, otherwise $789.00."""
    if value is None:
        return PLACEHOLDER
    magnitude = abs(value)
    if magnitude >= 1e9:
        return f"${value / 1e9:.2f}B"
    if magnitude >= 1e6:
        return f"${value / 1e6:.2f}M"
    return f"${value:.2f}"


def format_dollars(value: float | None) -> str:
    """Unabbreviated dollar amount, e.g. $1234.50."""
    if value is None:
        return PLACEHOLDER
    return f"${value:.2f}"


def format_list(values: list[Any] | None) -> str:
    if not values:
        return PLACEHOLDER
    return ", ".join(str(v) for v in values)


def format_interval(interval: timedelta) -> str:
    """Render a refresh interval in its largest whole unit, e.g. 15 minutes, 30 seconds."""
    seconds = interval.total_seconds()
    for unit, size in (("hour", 3600), ("minute", 60)):
        if seconds >= size and seconds % size == 0:
            count = int(seconds // size)
            return f"{count} {unit}{'' if count == 1 else 's'}"
    return f"{seconds:g} second{'' if seconds == 1 else 's'}"


def safe_format(apology: str) -> Callable[[F], F]:
    """Make a formatter return ``apology`` instead of raising."""
    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> str:
            try:
                return fn(*args, **kwargs)
            except Exception as exc:
                error = exc if isinstance(exc, FormatError) else FormatError(f"{fn.__name__}: {exc!r}")
                _log.error("formatting failed, returning placeholder digest: %s", error, exc_info=exc)
                return apology
        return wrapper  # type: ignore[return-value]
    return decorator
