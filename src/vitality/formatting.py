"""Formatting utilities for consistent output across the engine and CLI."""

import math

UNAVAILABLE = "N/A"


def format_uptime(seconds: float | None) -> str:
    """Format an uptime duration in abbreviated form.

    Returns:
        "2d 3h 15m", "3h 0m", "15m", or "0m" under a minute. Days are
        omitted when zero. Negative, NaN or missing input gives "N/A".
    """
    try:
        if seconds is None or math.isnan(seconds) or seconds < 0:
            return UNAVAILABLE
        total_minutes = int(seconds // 60)
    except (TypeError, ValueError, OverflowError):
        return UNAVAILABLE

    days, rem = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rem, 60)
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_bytes(size: float) -> str:
    """Format a byte count using decimal units (as Finder reports volumes)."""
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(size) < 1000:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1000
    return f"{size:.1f} PB"


def format_rate(bytes_per_sec: float) -> str:
    """Format a throughput rate, e.g. "1.2 MB/s"."""
    return f"{format_bytes(bytes_per_sec)}/s"
