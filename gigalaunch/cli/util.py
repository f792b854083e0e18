"""Formatting of values printed by the CLI.
"""

from datetime import datetime

from typing import Union


def format_locale_date(raw: Union[str, float]) -> str:
    """Format a timestamp, or an ISO 8601 date of the manifest, with the locale's format.
    """
    if isinstance(raw, float):
        date = datetime.fromtimestamp(raw)
    else:
        # Python < 3.11 doesn't parse the 'Z' suffix.
        date = datetime.fromisoformat(raw[:-1] + "+00:00" if raw.endswith("Z") else raw)
    return date.strftime("%c")


def format_number(n: float) -> str:
    """Format a number with a k, M or G suffix and one truncated decimal.
    """
    if n < 1000:
        return str(int(n))
    for suffix in ("k", "M"):
        n /= 1000
        if n < 1000:
            return f"{int(n * 10) / 10:.1f} {suffix}"
    return f"{int(n / 100) / 10:.1f} G"


def format_duration(n: float) -> str:
    for unit, seconds in (("h", 3600), ("m", 60)):
        if n >= seconds:
            return f"{int(n / seconds)} {unit}"
    return f"{int(n)} s"
