"""Helpers for decoding rows returned by Supabase."""
from datetime import datetime


def parse_timestamp(timestamp_str: str) -> datetime:
    """
    Parse a timestamp string from Supabase, handling various formats.

    Supabase can return timestamps with varying microsecond precision, which
    ``datetime.fromisoformat`` on older interpreters cannot always handle.
    The fractional part is normalized to exactly six digits.

    Args:
        timestamp_str: Timestamp string from Supabase

    Returns:
        datetime object
    """
    timestamp_str = timestamp_str.replace("Z", "+00:00")

    # Format: 2026-02-21T02:08:26.18976+00:00
    if "." in timestamp_str:
        head, fraction = timestamp_str.split(".", 1)
        tz = ""
        for sign in ("+", "-"):
            if sign in fraction:
                fraction, tz_rest = fraction.split(sign, 1)
                tz = sign + tz_rest
                break
        fraction = fraction[:6].ljust(6, "0")
        timestamp_str = f"{head}.{fraction}{tz}"

    return datetime.fromisoformat(timestamp_str)
