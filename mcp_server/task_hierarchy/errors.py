"""Error types raised by the task hierarchy engine and its store."""


class TaskHierarchyError(Exception):
    """Base class for all task hierarchy failures."""


class NotFoundError(TaskHierarchyError, LookupError):
    """A referenced task id is absent from the working set."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


class InvalidDateError(TaskHierarchyError, ValueError):
    """A date could not be parsed, or a date range is inverted."""


class CycleError(TaskHierarchyError, ValueError):
    """A move would make a task a descendant of itself."""

    def __init__(self, task_id: str, new_parent_id: str):
        self.task_id = task_id
        self.new_parent_id = new_parent_id
        super().__init__(
            f"Cannot move task {task_id} under {new_parent_id}: "
            f"{new_parent_id} is the task itself or one of its descendants"
        )


class ConflictError(TaskHierarchyError):
    """
    A sibling group changed between planning a move and committing it.

    Retryable: reload the tasks, plan the move again and resubmit.
    """

    retryable = True

    def __init__(self, group_key: str, expected: str, actual: str):
        self.group_key = group_key
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Sibling group {group_key} was modified concurrently "
            f"(expected version {expected[:8]}, found {actual[:8]})"
        )


class PermissionDeniedError(TaskHierarchyError):
    """The caller's role may not perform the requested mutation."""
