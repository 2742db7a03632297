"""
Status classifier.

Maps a window value to on_track / at_risk / off_track using red and yellow
thresholds, or a goal band when no thresholds are defined. The improvement
direction is never guessed from the unit: it is either explicit or implied
by the ordering of two distinct thresholds.
"""

from typing import Optional

from scorecard.models.enums import Direction, Status
from scorecard.models.metrics import Thresholds
from scorecard.models.results import MaybeValue, is_no_data

DEFAULT_GOAL_BAND = 0.10


def effective_direction(
    direction: Optional[Direction], thresholds: Optional[Thresholds]
) -> Optional[Direction]:
    """Explicit direction, else the one implied by threshold ordering."""
    if direction is not None:
        return direction
    if thresholds is None:
        return None
    return thresholds.implied_direction()


def _better_or_equal(value: float, bound: float, direction: Direction) -> bool:
    if direction == Direction.HIGHER_IS_BETTER:
        return value >= bound
    return value <= bound


def _classify_thresholds(value: float, thresholds: Thresholds, direction: Direction) -> Status:
    if thresholds.red is not None and not _better_or_equal(value, thresholds.red, direction):
        return Status.OFF_TRACK
    if thresholds.yellow is not None and not _better_or_equal(
        value, thresholds.yellow, direction
    ):
        return Status.AT_RISK
    return Status.ON_TRACK


def _classify_goal(value: float, goal: float, direction: Direction, goal_band: float) -> Status:
    if _better_or_equal(value, goal, direction):
        return Status.ON_TRACK
    if abs(value - goal) <= goal_band * abs(goal):
        return Status.AT_RISK
    return Status.OFF_TRACK


def classify(
    value: MaybeValue,
    goal: Optional[float] = None,
    thresholds: Optional[Thresholds] = None,
    direction: Optional[Direction] = None,
    goal_band: float = DEFAULT_GOAL_BAND,
) -> Status:
    """
    Classify a value against thresholds or a goal.

    Args:
        value: Window value, or NO_DATA
        goal: Goal for the window, if any
        thresholds: Red/yellow thresholds for the window, if any
        direction: Explicit improvement direction
        goal_band: Relative distance from the goal still counted as at_risk

    Returns:
        Status; unclassified when there is no value, no direction, or
        nothing to compare against
    """
    if is_no_data(value) or value is None:
        return Status.UNCLASSIFIED

    resolved = effective_direction(direction, thresholds)
    if resolved is None:
        return Status.UNCLASSIFIED

    if thresholds is not None and not thresholds.is_empty:
        return _classify_thresholds(value, thresholds, resolved)

    if goal is not None:
        return _classify_goal(value, goal, resolved, goal_band)

    return Status.UNCLASSIFIED
