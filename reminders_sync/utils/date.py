"""Due-date conversion between `YYYY-MM-DD` text and `datetime.date`."""

from datetime import date, datetime
from typing import Optional

ISO_FORMAT = "%Y-%m-%d"


def parse_date(date_str: Optional[str]) -> Optional[date]:
    """
    Read a due date written as `YYYY-MM-DD`.

    Unpadded month and day (`2025-3-1`) are accepted, and a time part after
    `T` is dropped. Anything that is not a real calendar day gives None.
    """
    if not date_str:
        return None

    text = date_str.strip().partition("T")[0]
    try:
        return datetime.strptime(text, ISO_FORMAT).date()
    except ValueError:
        pass

    pieces = text.split("-")
    if len(pieces) != 3:
        return None
    try:
        year, month, day = (int(piece) for piece in pieces)
        return date(year, month, day)
    except ValueError:
        return None


def format_date(d: Optional[date]) -> Optional[str]:
    return d.strftime(ISO_FORMAT) if d else None


def dates_equal(date1: Optional[date], date2: Optional[date], tolerance_days: int = 0) -> bool:
    """True when both are unset, or both are set and at most `tolerance_days` apart."""
    if date1 is None or date2 is None:
        return date1 is date2
    return abs((date1 - date2).days) <= tolerance_days
