"""
Time-window resolver.

Maps a window kind and a reference instant to a half-open ``[start, end)``
range. Calendar kinds follow calendar boundaries in the configured
timezone; trailing kinds are fixed-length look-backs ending at ``now``.

Pure functions only. No I/O.
"""

from datetime import datetime, timedelta, tzinfo
from typing import Optional, Union

from scorecard.config import get_settings
from scorecard.models.enums import WindowKind
from scorecard.models.results import WindowRange
from scorecard.utils.timeutils import ensure_aware, get_timezone

from .errors import InvalidWindowKind

# Smallest representable step; to-date windows end one tick after now so
# that the reference instant itself is inside the range.
TICK = timedelta(microseconds=1)


def parse_window_kind(raw: Union[str, WindowKind]) -> WindowKind:
    """
    Parse window kind text.

    Raises:
        InvalidWindowKind: If the text is not one of the fixed kinds
    """
    if isinstance(raw, WindowKind):
        return raw
    try:
        return WindowKind(str(raw).strip().lower())
    except ValueError:
        raise InvalidWindowKind(str(raw)) from None


def _default_tz() -> tzinfo:
    return get_timezone(get_settings().default_timezone)


def _midnight(year: int, month: int, day: int, tz: tzinfo) -> datetime:
    return datetime(year, month, day, tzinfo=tz)


def resolve(
    kind: Union[str, WindowKind],
    now: datetime,
    tz: Optional[tzinfo] = None,
) -> WindowRange:
    """
    Resolve a window kind against a reference instant.

    Args:
        kind: Window kind (text is parsed)
        now: Reference instant; naive values are read in ``tz``
        tz: Calendar timezone (default: settings.default_timezone)

    Returns:
        Half-open window range with start < end

    Raises:
        InvalidWindowKind: If ``kind`` is not recognised
    """
    window = parse_window_kind(kind)
    tz = tz or _default_tz()
    local = ensure_aware(now, tz).astimezone(tz)
    today = local.date()

    if window == WindowKind.DAY:
        start = _midnight(today.year, today.month, today.day, tz)
        tomorrow = today + timedelta(days=1)
        return WindowRange(
            start=start, end=_midnight(tomorrow.year, tomorrow.month, tomorrow.day, tz)
        )

    if window == WindowKind.WEEK:
        monday = today - timedelta(days=today.weekday())
        next_monday = monday + timedelta(days=7)
        return WindowRange(
            start=_midnight(monday.year, monday.month, monday.day, tz),
            end=_midnight(next_monday.year, next_monday.month, next_monday.day, tz),
        )

    if window == WindowKind.MTD:
        return WindowRange(start=_midnight(today.year, today.month, 1, tz), end=local + TICK)

    if window == WindowKind.QTD:
        quarter_month = 3 * ((today.month - 1) // 3) + 1
        return WindowRange(
            start=_midnight(today.year, quarter_month, 1, tz), end=local + TICK
        )

    if window == WindowKind.YTD:
        return WindowRange(start=_midnight(today.year, 1, 1, tz), end=local + TICK)

    return WindowRange(start=local - timedelta(days=window.trailing_days), end=local)


def previous(
    kind: Union[str, WindowKind],
    current: WindowRange,
    tz: Optional[tzinfo] = None,
) -> WindowRange:
    """
    Range of the period preceding ``current``.

    Cumulative kinds (week, mtd, qtd, ytd) re-resolve just before the
    current start, so the previous mtd is the whole prior month. Fixed
    length kinds (day, trailing_N) shift the range back by its own length.
    """
    window = parse_window_kind(kind)
    if window.is_cumulative:
        return resolve(window, current.start - TICK, tz)
    return current.shifted(-current.length)
