"""Task Hierarchy - numbered task trees, drag-and-drop moves and Gantt layout."""

__version__ = "0.1.0"

from .errors import (
    ConflictError,
    CycleError,
    InvalidDateError,
    NotFoundError,
    PermissionDeniedError,
    TaskHierarchyError,
)
from .task_node import (
    BudgetHealth,
    DropPosition,
    ProgressBand,
    Role,
    TaskNode,
    TaskRecord,
    TaskStatus,
    TickStride,
    TimeEntry,
)
from .hierarchy import Forest, build_forest, filter_tasks
from .numbering import assign_task_numbers, sort_by_task_number, task_number_key
from .reorder import MoveDelta, OrderUpdate, ReorderEngine, drop_position_for, next_task_order, plan_move
from .timeline import ProjectWindow, TaskLayout, parse_date, project_forest, project_task, time_scale_ticks
from .store import TaskStore

__all__ = [
    "TaskHierarchyError", "NotFoundError", "InvalidDateError", "CycleError",
    "ConflictError", "PermissionDeniedError",
    "TaskStatus", "DropPosition", "ProgressBand", "BudgetHealth", "TickStride", "Role",
    "TaskRecord", "TimeEntry", "TaskNode",
    "Forest", "build_forest", "filter_tasks",
    "assign_task_numbers", "sort_by_task_number", "task_number_key",
    "MoveDelta", "OrderUpdate", "ReorderEngine", "drop_position_for", "next_task_order", "plan_move",
    "ProjectWindow", "TaskLayout", "parse_date", "project_forest", "project_task", "time_scale_ticks",
    "TaskStore",
]
