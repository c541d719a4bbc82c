"""Gantt timeline layout: per-task offset/width fractions and time scale ticks."""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional

from pydantic import BaseModel

from .errors import InvalidDateError
from .hierarchy import Forest
from .progress import progress_band
from .task_node import DateLike, ProgressBand, TaskRecord, TickStride


def parse_date(value: DateLike) -> date:
    """
    Coerce a date, datetime or ISO ``YYYY-MM-DD`` string to a date.

    Full ISO timestamps such as ``2024-01-03T09:30:00Z`` keep only their
    date part; anything else trailing the date is rejected.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            return datetime.fromisoformat(text).date()
        except ValueError:
            raise InvalidDateError(f"Invalid date: {value!r}") from None
    raise InvalidDateError(f"Invalid date: {value!r}")


@dataclass(frozen=True)
class ProjectWindow:
    """Inclusive project date range the timeline is drawn against."""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise InvalidDateError(
                f"Project window starts after it ends ({self.start} > {self.end})"
            )

    @classmethod
    def create(
        cls,
        start: DateLike,
        end: Optional[DateLike] = None,
        now: Optional[DateLike] = None,
    ) -> "ProjectWindow":
        """Build a window; a missing end falls back to ``now``, then to ``start``."""
        start_date = parse_date(start)
        if end is not None:
            end_date = parse_date(end)
        elif now is not None:
            end_date = parse_date(now)
        else:
            end_date = start_date
        return cls(start_date, end_date)

    @property
    def total_days(self) -> int:
        """Inclusive day count."""
        return (self.end - self.start).days + 1


class TaskLayout(BaseModel):
    """Where one task's bar sits on the timeline, as fractions of the window."""

    task_id: str
    task_number: str = ""
    title: str = ""
    level: int = 0
    start: date
    end: date
    offset_fraction: float
    width_fraction: float
    progress: float = 0.0
    band: ProgressBand = ProgressBand.LOW


def project_task(
    task: TaskRecord,
    window: ProjectWindow,
    progress: float = 0.0,
) -> TaskLayout:
    """
    Lay out one task against the project window.

    A task without a start date starts with the project; one without a due
    date lasts until the day after its start. Bars are at least one day wide.
    """
    start = parse_date(task.start_date) if task.start_date is not None else window.start
    end = parse_date(task.due_date) if task.due_date is not None else start + timedelta(days=1)

    total_days = window.total_days
    span_days = max(1, (end - start).days + 1)

    return TaskLayout(
        task_id=task.id,
        task_number=task.task_number or "",
        title=task.title,
        start=start,
        end=end,
        offset_fraction=(start - window.start).days / total_days,
        width_fraction=span_days / total_days,
        progress=progress,
        band=progress_band(progress),
    )


def project_forest(forest: Forest, window: ProjectWindow) -> List[TaskLayout]:
    """Lay out every task of the forest, in display order."""
    layouts = []
    for node in forest.walk():
        layout = project_task(node.task, window, node.progress)
        layout.task_number = node.task_number
        layout.level = node.level
        layouts.append(layout)
    return layouts


def _add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def time_scale_ticks(
    window: ProjectWindow,
    stride: TickStride = TickStride.WEEK,
) -> List[date]:
    """
    Time scale marks from the window start, one per stride, up to the end.

    A mark landing exactly on the end date is included.
    """
    stride = TickStride(stride)
    ticks = []
    step = 0
    current = window.start
    while current <= window.end:
        ticks.append(current)
        step += 1
        if stride == TickStride.DAY:
            current = window.start + timedelta(days=step)
        elif stride == TickStride.WEEK:
            current = window.start + timedelta(days=7 * step)
        else:
            current = _add_months(window.start, step)
    return ticks
