"""Forest construction from flat task snapshots."""

from collections import defaultdict
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set

import networkx as nx

from .errors import NotFoundError
from .numbering import assign_task_numbers, sort_by_task_number
from .progress import progress_percent, progress_ratio
from .task_node import TaskNode, TaskRecord, TaskStatus, TimeEntry


class Forest:
    """
    Arena-backed forest of task nodes.

    ``nodes`` is a flat list; each node refers to its parent and children by
    index. The forest is a read-only projection of one snapshot: rebuild it
    after the snapshot changes instead of editing it in place.
    """

    def __init__(
        self,
        nodes: List[TaskNode],
        root_indices: List[int],
        detached_ids: Optional[List[str]] = None,
    ):
        self.nodes = nodes
        self.root_indices = root_indices
        # Tasks promoted to roots because their declared parent chain loops
        self.detached_ids = detached_ids or []
        self._index_by_id: Dict[str, int] = {node.id: node.index for node in nodes}

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, task_id: str) -> bool:
        return task_id in self._index_by_id

    @property
    def roots(self) -> List[TaskNode]:
        return [self.nodes[i] for i in self.root_indices]

    def get(self, task_id: str) -> Optional[TaskNode]:
        """Get a node by task ID."""
        index = self._index_by_id.get(task_id)
        return None if index is None else self.nodes[index]

    def find_by_number(self, task_number: str) -> Optional[TaskNode]:
        """Get a node by its dotted task number."""
        for node in self.nodes:
            if node.task_number == task_number:
                return node
        return None

    def children(self, node: TaskNode) -> List[TaskNode]:
        """Direct children of a node, in sibling order."""
        return [self.nodes[i] for i in node.child_indices]

    def parent(self, node: TaskNode) -> Optional[TaskNode]:
        """Forest parent of a node, None for roots."""
        return None if node.parent_index is None else self.nodes[node.parent_index]

    def walk(self) -> Iterator[TaskNode]:
        """Yield every node depth-first in display order."""
        stack = list(reversed(self.root_indices))
        while stack:
            node = self.nodes[stack.pop()]
            yield node
            stack.extend(reversed(node.child_indices))

    def lineage(self, task_id: str) -> List[TaskNode]:
        """Path from the root down to the given task."""
        node = self.get(task_id)
        if node is None:
            raise NotFoundError(task_id)

        path = []
        while node is not None:
            path.append(node)
            node = self.parent(node)
        return list(reversed(path))

    def by_status(self) -> Dict[TaskStatus, List[TaskNode]]:
        """Group nodes into kanban columns, in display order."""
        columns: Dict[TaskStatus, List[TaskNode]] = {status: [] for status in TaskStatus}
        for node in self.walk():
            columns[node.task.status].append(node)
        return columns

    def detect_cycles(self) -> List[List[str]]:
        """Find parent/child cycles among the declared parent links."""
        graph = nx.DiGraph()
        for node in self.nodes:
            graph.add_node(node.id)
            parent_id = node.task.parent_task_id
            if parent_id is not None and parent_id in self._index_by_id:
                graph.add_edge(parent_id, node.id)
        return [list(cycle) for cycle in nx.simple_cycles(graph)]

    def stats(self) -> Dict[str, float]:
        """Summary counts for the forest."""
        stats: Dict[str, float] = {
            "total": len(self.nodes),
            "root_tasks": len(self.root_indices),
            "leaf_tasks": 0,
            "max_depth": 0,
            "total_hours": 0.0,
            "detached": len(self.detached_ids),
        }
        for status in TaskStatus:
            stats[status.value] = 0

        for node in self.nodes:
            stats[node.task.status.value] += 1
            stats["total_hours"] += node.total_hours
            if node.is_leaf():
                stats["leaf_tasks"] += 1
            stats["max_depth"] = max(stats["max_depth"], node.level)

        return stats


def build_forest(
    tasks: Sequence[TaskRecord],
    time_entries: Iterable[TimeEntry] = (),
) -> Forest:
    """
    Build a numbered forest with rollups from a flat list of tasks.

    Tasks whose parent is missing from the list become roots. Siblings are
    ordered by ``task_order``; the existing ``task_number`` only breaks ties.
    A parent chain that loops back on itself never hangs the build: one task
    of the loop is detached, promoted to a root and reported in
    ``Forest.detached_ids``.
    """
    records: List[TaskRecord] = []
    seen_ids: Set[str] = set()
    for record in sort_by_task_number(tasks):
        if record.id in seen_ids:
            continue
        seen_ids.add(record.id)
        records.append(record)

    nodes = [TaskNode(index=i, task=record) for i, record in enumerate(records)]
    index_by_id = {node.id: node.index for node in nodes}

    declared_parent: List[Optional[int]] = [
        index_by_id.get(record.parent_task_id) if record.parent_task_id is not None else None
        for record in records
    ]

    def sibling_key(index: int):
        return (records[index].task_order, index)

    children_of: Dict[int, List[int]] = defaultdict(list)
    root_indices: List[int] = []
    for index, parent_index in enumerate(declared_parent):
        if parent_index is None:
            root_indices.append(index)
        else:
            children_of[parent_index].append(index)

    for siblings in children_of.values():
        siblings.sort(key=sibling_key)

    visited: Set[int] = set()
    for root_index in root_indices:
        _descend(nodes, children_of, root_index, visited)

    # Whatever is left hangs off a parent cycle
    detached_ids: List[str] = []
    while len(visited) < len(nodes):
        first_unplaced = next(i for i in range(len(nodes)) if i not in visited)
        cycle_member = _find_cycle_member(declared_parent, first_unplaced)
        children_of[declared_parent[cycle_member]].remove(cycle_member)
        detached_ids.append(nodes[cycle_member].id)
        root_indices.append(cycle_member)
        _descend(nodes, children_of, cycle_member, visited)

    root_indices.sort(key=sibling_key)

    forest = Forest(nodes, root_indices, detached_ids)
    _compute_rollups(forest, time_entries)
    return assign_task_numbers(forest)


def _descend(
    nodes: List[TaskNode],
    children_of: Dict[int, List[int]],
    start: int,
    visited: Set[int],
) -> None:
    """Attach the subtree under ``start`` and assign levels, stopping at revisits."""
    stack = [(start, None, 0)]
    while stack:
        index, parent_index, level = stack.pop()
        if index in visited:
            continue
        visited.add(index)

        node = nodes[index]
        node.parent_index = parent_index
        node.level = level
        if parent_index is not None:
            nodes[parent_index].child_indices.append(index)

        for child_index in reversed(children_of.get(index, [])):
            stack.append((child_index, index, level + 1))


def _find_cycle_member(declared_parent: List[Optional[int]], start: int) -> int:
    """Follow declared parents from ``start`` until a task repeats."""
    seen: Set[int] = set()
    current = start
    while current not in seen:
        seen.add(current)
        parent_index = declared_parent[current]
        if parent_index is None:
            # Unreachable for unplaced tasks; a root-ward chain would have been placed
            return current
        current = parent_index
    return current


def _compute_rollups(forest: Forest, time_entries: Iterable[TimeEntry]) -> None:
    """Fill direct hours, subtree hours and progress on every node."""
    hours_by_task: Dict[str, float] = defaultdict(float)
    for entry in time_entries:
        if entry.task_id is not None:
            hours_by_task[entry.task_id] += entry.hours

    for node in forest.nodes:
        node.total_hours = hours_by_task.get(node.id, 0.0)
        node.progress = progress_percent(node.total_hours, node.task.estimated_hours)
        node.progress_ratio = progress_ratio(node.total_hours, node.task.estimated_hours)

    # Reversed pre-order visits children before their parents
    for node in reversed(list(forest.walk())):
        node.subtree_hours = node.total_hours + sum(
            child.subtree_hours for child in forest.children(node)
        )


def filter_tasks(
    tasks: Sequence[TaskRecord],
    query: str = "",
    status: Optional[TaskStatus] = None,
    assigned_to: Optional[str] = None,
) -> List[TaskRecord]:
    """Filter tasks by status, assignee and a case-insensitive title/description match."""
    results = []
    query_lower = query.lower()

    for task in tasks:
        if status and task.status != status:
            continue

        if assigned_to and task.assigned_to != assigned_to:
            continue

        if query and not (
            query_lower in task.title.lower()
            or (task.description and query_lower in task.description.lower())
        ):
            continue

        results.append(task)

    return results
