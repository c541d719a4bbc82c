"""Hours and progress arithmetic shared by the tree, timeline and board views."""

from typing import Iterable, Optional

from .task_node import BudgetHealth, ProgressBand, TimeEntry

COMPLETE_THRESHOLD = 100.0
MID_THRESHOLD = 50.0
AT_RISK_RATIO = 0.8


def hours_used(entries: Iterable[TimeEntry]) -> float:
    """Sum the hours of the given time entries."""
    return sum(entry.hours for entry in entries)


def progress_ratio(hours: float, estimated_hours: Optional[float]) -> float:
    """Hours used over estimate; can exceed 1. Zero when there is no estimate."""
    if not estimated_hours or estimated_hours <= 0:
        return 0.0
    return hours / estimated_hours


def progress_percent(hours: float, estimated_hours: Optional[float]) -> float:
    """Progress in percent, clamped at 100. Zero when there is no estimate."""
    return min(100.0, progress_ratio(hours, estimated_hours) * 100.0)


def progress_band(progress: float) -> ProgressBand:
    """Classify a progress percentage into a timeline color band."""
    if progress >= COMPLETE_THRESHOLD:
        return ProgressBand.COMPLETE
    if progress >= MID_THRESHOLD:
        return ProgressBand.MID
    return ProgressBand.LOW


def budget_health(hours: float, estimated_hours: Optional[float]) -> BudgetHealth:
    """
    Compare hours used with the estimate.

    Over 100% of the estimate is over budget, 80% or more is at risk and
    anything below is on track. Tasks without an estimate are unestimated.
    """
    if not estimated_hours:
        return BudgetHealth.UNESTIMATED
    ratio = progress_ratio(hours, estimated_hours)
    if ratio > 1:
        return BudgetHealth.OVER_BUDGET
    if ratio >= AT_RISK_RATIO:
        return BudgetHealth.AT_RISK
    return BudgetHealth.ON_TRACK
