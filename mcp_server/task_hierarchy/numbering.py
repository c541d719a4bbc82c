"""Dotted hierarchical task numbering ("2.1.3")."""

from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from .task_node import TaskRecord

if TYPE_CHECKING:
    from .hierarchy import Forest


def assign_task_numbers(forest: "Forest") -> "Forest":
    """
    Number every node of an ordered forest.

    Roots get "1", "2", ... in sibling order and a child of "N" gets "N.1",
    "N.2", ... Sibling lists must already be sorted by ``task_order``. Any
    existing ``task_number`` is overwritten.
    """
    stack: List[Tuple[int, str]] = [
        (root_index, str(position))
        for position, root_index in reversed(list(enumerate(forest.root_indices, start=1)))
    ]

    while stack:
        index, number = stack.pop()
        node = forest.nodes[index]
        node.task_number = number
        for position, child_index in reversed(list(enumerate(node.child_indices, start=1))):
            stack.append((child_index, f"{number}.{position}"))

    return forest


def task_number_key(task_number: Optional[str]) -> Tuple[int, ...]:
    """Parse a dotted number into a sortable tuple; bad segments count as 0."""
    if not task_number:
        return ()

    parts = []
    for segment in task_number.split("."):
        try:
            parts.append(int(segment))
        except ValueError:
            parts.append(0)
    return tuple(parts)


def sort_by_task_number(tasks: Sequence[TaskRecord]) -> List[TaskRecord]:
    """
    Stable sort by existing task number.

    Records without a number keep their input order after the numbered ones.
    """
    return sorted(
        tasks,
        key=lambda t: (t.task_number is None or t.task_number == "", task_number_key(t.task_number)),
    )
