"""Display helpers for timer values."""

from datetime import datetime, timedelta
from typing import Optional

NO_TIME = "--:--:--"


def format_hms(seconds: int) -> str:
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def projected_end(start: Optional[datetime], duration_seconds: int) -> str:
    if start is None:
        return NO_TIME
    return (start + timedelta(seconds=duration_seconds)).strftime("%H:%M:%S")


def countdown(total_seconds: int, elapsed_seconds: int) -> str:
    return format_hms(max(0, total_seconds - elapsed_seconds))


def running_title(seconds: Optional[int]) -> str:
    return "CT" if seconds is None else f"CT ({format_hms(seconds)})"


__all__ = ["format_hms", "projected_end", "countdown", "running_title", "NO_TIME"]
