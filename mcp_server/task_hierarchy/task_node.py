"""Task record, time entry and tree node data models."""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator


class TaskStatus(str, Enum):
    """Task workflow status (kanban column)."""
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    COMPLETED = "completed"


class DropPosition(str, Enum):
    """Where a dragged task lands relative to the row it is dropped on."""
    BEFORE = "before"
    AFTER = "after"
    CHILD = "child"


class ProgressBand(str, Enum):
    """Timeline bar color band."""
    COMPLETE = "complete"
    MID = "mid"
    LOW = "low"


class BudgetHealth(str, Enum):
    """Hours used compared with the estimate, for list and kanban views."""
    UNESTIMATED = "unestimated"
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    OVER_BUDGET = "over_budget"


class TickStride(str, Enum):
    """Spacing of Gantt time scale marks."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class Role(str, Enum):
    """Caller role supplied by the identity provider."""
    ADMIN = "admin"
    USER = "user"
    CLIENT = "client"


# Dates stay as supplied (date or ISO string) until the timeline parses them.
DateLike = Union[datetime, date, str]


class TaskRecord(BaseModel):
    """
    A task row as supplied by the persistence layer.

    The engine treats records as an immutable snapshot: ``task_number`` is only
    a display hint and is recomputed from ``task_order`` and ancestry.
    """

    id: str = Field(..., min_length=1, description="Unique task identifier")
    project_id: Optional[str] = Field(None, description="Owning project")
    title: str = Field("", max_length=200, description="Task title")
    description: Optional[str] = Field(None, description="Task description")

    # Hierarchy
    parent_task_id: Optional[str] = Field(None, description="Parent task ID, None for roots")
    task_order: int = Field(default=0, description="Position within the sibling group")
    task_number: Optional[str] = Field(None, description="Dotted number, derived")

    # Scheduling
    start_date: Optional[DateLike] = Field(None, description="Planned start date")
    due_date: Optional[DateLike] = Field(None, description="Planned due date")
    estimated_hours: Optional[float] = Field(None, ge=0, description="Estimated effort in hours")

    status: TaskStatus = Field(default=TaskStatus.TODO, description="Current task status")
    assigned_to: Optional[str] = Field(None, description="Assigned user ID")

    class Config:
        """Pydantic model configuration."""
        extra = "ignore"

    @field_validator("parent_task_id", "project_id", "assigned_to", "start_date", "due_date", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("task_order", mode="before")
    @classmethod
    def _order_default(cls, value):
        return 0 if value is None else value

    def is_root(self) -> bool:
        """Check if this task declares no parent."""
        return self.parent_task_id is None

    def __str__(self) -> str:
        return f"TaskRecord({self.title}, {self.status.value}, order={self.task_order})"


class TimeEntry(BaseModel):
    """Hours logged by a user, optionally against a task."""

    id: str = Field(..., min_length=1, description="Unique entry identifier")
    task_id: Optional[str] = Field(None, description="Task the hours were logged against")
    project_id: Optional[str] = Field(None, description="Owning project")
    user_id: Optional[str] = Field(None, description="User who logged the hours")
    hours: float = Field(..., gt=0, description="Hours logged")
    entry_date: Optional[date] = Field(None, description="Day the work was done")
    description: Optional[str] = Field(None, description="What was done")

    class Config:
        """Pydantic model configuration."""
        extra = "ignore"


class TaskNode(BaseModel):
    """
    One slot of the forest arena.

    Parent and children are stored as arena indices rather than nested
    objects; ``Forest`` resolves them.
    """

    index: int
    task: TaskRecord
    parent_index: Optional[int] = None
    child_indices: List[int] = Field(default_factory=list)

    level: int = 0
    task_number: str = ""

    # Rollups
    total_hours: float = 0.0
    subtree_hours: float = 0.0
    progress: float = 0.0
    progress_ratio: float = 0.0

    @property
    def id(self) -> str:
        return self.task.id

    def is_root(self) -> bool:
        """Check if this node sits at the top of the forest."""
        return self.parent_index is None

    def is_leaf(self) -> bool:
        """Check if this node has no children."""
        return len(self.child_indices) == 0

    def label(self) -> str:
        """Short display label: number, title and status."""
        number = f"{self.task_number} " if self.task_number else ""
        return f"{number}{self.task.title} [{self.task.status.value}]"

    def __repr__(self) -> str:
        return (
            f"TaskNode(id={self.id}, number='{self.task_number}', level={self.level}, "
            f"parent_index={self.parent_index})"
        )
