"""Trend calculator: current window value against the preceding period."""

from scorecard.models.enums import Trend
from scorecard.models.results import MaybeValue, is_no_data

DEFAULT_EPSILON = 0.01


def trend(current: MaybeValue, previous: MaybeValue, epsilon: float = DEFAULT_EPSILON) -> Trend:
    """
    Direction of change from ``previous`` to ``current``.

    Relative changes within ``epsilon`` of the previous magnitude are flat.
    A zero previous value has no relative scale, so only the sign counts.
    """
    if is_no_data(current) or is_no_data(previous):
        return Trend.FLAT

    delta = current - previous
    if previous != 0 and abs(delta) <= epsilon * abs(previous):
        return Trend.FLAT
    if delta > 0:
        return Trend.UP
    if delta < 0:
        return Trend.DOWN
    return Trend.FLAT
