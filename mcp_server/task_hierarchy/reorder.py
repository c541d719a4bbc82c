"""Drag-and-drop move planning: new parent, new order and sibling renumbering."""

import hashlib
from typing import AbstractSet, Dict, List, Optional, Sequence

import networkx as nx
from pydantic import BaseModel, Field

from .errors import CycleError, NotFoundError
from .task_node import DropPosition, TaskRecord

ROOT_GROUP = "<root>"

# Fractions of the row height that split it into before / child / after bands
BEFORE_BAND = 0.25
AFTER_BAND = 0.75


class OrderUpdate(BaseModel):
    """New ``task_order`` for a displaced sibling."""
    task_id: str
    new_order: int


class MoveDelta(BaseModel):
    """
    Everything the store must write, as one unit, to perform a move.

    ``expected_versions`` maps each touched sibling group (see
    ``group_key``) to the version it had when the move was planned; the
    commit must fail if any group changed since.
    """

    task_id: str = Field(..., description="Dragged task")
    new_parent_id: Optional[str] = Field(None, description="New parent, None for roots")
    new_order: int = Field(..., ge=0, description="New position within the sibling group")
    sibling_updates: List[OrderUpdate] = Field(default_factory=list)
    expected_versions: Dict[str, str] = Field(default_factory=dict)

    def apply(self, tasks: Sequence[TaskRecord]) -> List[TaskRecord]:
        """Return copies of ``tasks`` with the move applied; the input is untouched."""
        orders = {update.task_id: update.new_order for update in self.sibling_updates}
        result = []
        for task in tasks:
            if task.id == self.task_id:
                task = task.model_copy(
                    update={"parent_task_id": self.new_parent_id, "task_order": self.new_order}
                )
            elif task.id in orders:
                task = task.model_copy(update={"task_order": orders[task.id]})
            result.append(task)
        return result


def group_key(parent_id: Optional[str]) -> str:
    """Key identifying a sibling group in ``MoveDelta.expected_versions``."""
    return ROOT_GROUP if parent_id is None else parent_id


def effective_parent_id(task: TaskRecord, present_ids: AbstractSet[str]) -> Optional[str]:
    """Parent as the forest shows it: a parent missing from the snapshot means root."""
    parent_id = task.parent_task_id
    return parent_id if parent_id in present_ids else None


def _group(tasks: Sequence[TaskRecord], parent_id: Optional[str]) -> List[TaskRecord]:
    present_ids = {task.id for task in tasks}
    return [task for task in tasks if effective_parent_id(task, present_ids) == parent_id]


def sibling_group_version(tasks: Sequence[TaskRecord], parent_id: Optional[str]) -> str:
    """Fingerprint of a sibling group's membership and orders."""
    pairs = sorted((task.id, task.task_order) for task in _group(tasks, parent_id))
    digest = hashlib.sha1()
    for task_id, order in pairs:
        digest.update(f"{task_id}:{order};".encode("utf-8"))
    return digest.hexdigest()


def next_task_order(tasks: Sequence[TaskRecord], parent_id: Optional[str]) -> int:
    """Order for a task appended to the end of a sibling group."""
    orders = [task.task_order for task in _group(tasks, parent_id)]
    return max(orders) + 1 if orders else 0


def drop_position_for(offset_y: float, row_height: float) -> DropPosition:
    """
    Resolve the drop position from the pointer's offset within the target row.

    Top quarter is ``before``, bottom quarter is ``after`` and the middle half
    is ``child``. A pointer exactly on either boundary counts as ``child``.
    """
    if row_height <= 0:
        raise ValueError(f"Row height must be positive, got {row_height}")

    if offset_y < row_height * BEFORE_BAND:
        return DropPosition.BEFORE
    if offset_y > row_height * AFTER_BAND:
        return DropPosition.AFTER
    return DropPosition.CHILD


class ReorderEngine:
    """
    Plans moves over one snapshot of a project's tasks.

    The engine only computes; committing the returned ``MoveDelta`` is the
    store's job.
    """

    def __init__(self, tasks: Sequence[TaskRecord]):
        self.tasks: Dict[str, TaskRecord] = {}
        self._position: Dict[str, int] = {}
        for task in tasks:
            if task.id not in self.tasks:
                self._position[task.id] = len(self.tasks)
                self.tasks[task.id] = task

        self.graph = nx.DiGraph()  # parent -> child over present tasks
        for task in self.tasks.values():
            self.graph.add_node(task.id)
            if task.parent_task_id is not None and task.parent_task_id in self.tasks:
                self.graph.add_edge(task.parent_task_id, task.id)

    def _require(self, task_id: str) -> TaskRecord:
        task = self.tasks.get(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    def parent_of(self, task: TaskRecord) -> Optional[str]:
        """Effective parent of a task; a parent outside the snapshot means root."""
        return effective_parent_id(task, self.tasks.keys())

    def siblings(self, parent_id: Optional[str]) -> List[TaskRecord]:
        """Tasks sharing ``parent_id``, sorted by order."""
        group = [task for task in self.tasks.values() if self.parent_of(task) == parent_id]
        return sorted(group, key=lambda t: (t.task_order, self._position[t.id]))

    def is_descendant(self, task_id: str, ancestor_id: str) -> bool:
        """Check if ``task_id`` sits anywhere below ``ancestor_id``."""
        if task_id not in self.graph or ancestor_id not in self.graph:
            return False
        return task_id in nx.descendants(self.graph, ancestor_id)

    def plan_move(self, dragged_id: str, target_id: str, position: DropPosition) -> MoveDelta:
        """
        Compute the delta for dropping ``dragged_id`` on ``target_id``.

        ``before``/``after`` place the task next to the target under the
        target's parent; ``child`` makes it the target's first child. The
        destination group, and the source group when the parent changes, are
        renumbered 0..n-1. Only siblings whose order changes are listed.

        Raises:
            NotFoundError: either task is not in the snapshot
            CycleError: the new parent is the dragged task or its descendant
        """
        position = DropPosition(position)
        dragged = self._require(dragged_id)
        target = self._require(target_id)

        if dragged_id == target_id:
            return MoveDelta(
                task_id=dragged_id,
                new_parent_id=self.parent_of(dragged),
                new_order=dragged.task_order,
            )

        new_parent_id = target.id if position == DropPosition.CHILD else self.parent_of(target)
        if new_parent_id is not None and (
            new_parent_id == dragged_id or self.is_descendant(new_parent_id, dragged_id)
        ):
            raise CycleError(dragged_id, new_parent_id)

        destination = [t for t in self.siblings(new_parent_id) if t.id != dragged_id]
        if position == DropPosition.CHILD:
            slot = 0
        else:
            target_slot = next(i for i, t in enumerate(destination) if t.id == target_id)
            slot = target_slot if position == DropPosition.BEFORE else target_slot + 1

        regrouped = destination[:slot] + [dragged] + destination[slot:]
        updates = [
            OrderUpdate(task_id=task.id, new_order=order)
            for order, task in enumerate(regrouped)
            if task.id != dragged_id and task.task_order != order
        ]
        versions = {
            group_key(new_parent_id): sibling_group_version(
                list(self.tasks.values()), new_parent_id
            )
        }

        old_parent_id = self.parent_of(dragged)
        if old_parent_id != new_parent_id:
            remaining = [t for t in self.siblings(old_parent_id) if t.id != dragged_id]
            updates.extend(
                OrderUpdate(task_id=task.id, new_order=order)
                for order, task in enumerate(remaining)
                if task.task_order != order
            )
            versions[group_key(old_parent_id)] = sibling_group_version(
                list(self.tasks.values()), old_parent_id
            )

        return MoveDelta(
            task_id=dragged_id,
            new_parent_id=new_parent_id,
            new_order=slot,
            sibling_updates=updates,
            expected_versions=versions,
        )


def plan_move(
    tasks: Sequence[TaskRecord],
    dragged_id: str,
    target_id: str,
    position: DropPosition,
) -> MoveDelta:
    """Plan a single move over ``tasks``."""
    return ReorderEngine(tasks).plan_move(dragged_id, target_id, position)
