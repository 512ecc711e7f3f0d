"""Human-readable values for CLI summaries (timestamps, tempo, confidence)."""

from typing import Sequence, Tuple

# (lower bound, label), checked top-down
CONFIDENCE_LABELS: Sequence[Tuple[float, str]] = ((0.8, "HIGH"), (0.5, "MED"), (0.0, "LOW"))


def format_time(seconds: float, include_hours: bool = True) -> str:
    """Track position as MM:SS, or HH:MM:SS past the hour.

    Examples:
        >>> format_time(65.5)
        '01:05'
        >>> format_time(3665.5, include_hours=False)
        '61:05'
    """
    sign = "-" if seconds < 0 else ""
    whole = int(abs(seconds))
    hours, rest = divmod(whole, 3600) if include_hours else (0, whole)
    minutes, secs = divmod(rest, 60)

    if hours:
        return f"{sign}{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{sign}{minutes:02d}:{secs:02d}"


def format_time_range(start_sec: float, end_sec: float) -> str:
    return f"{format_time(start_sec)} - {format_time(end_sec)}"


def format_bpm(bpm: float, precision: int = 1) -> str:
    return f"{bpm:.{precision}f} BPM"


def format_confidence(confidence: float) -> str:
    """Percentage plus a HIGH / MED / LOW tag."""
    label = next((name for bound, name in CONFIDENCE_LABELS if confidence >= bound), "LOW")
    return f"{confidence * 100:.0f}% ({label})"
