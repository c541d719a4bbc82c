"""SQLite persistence for tasks and time entries, with atomic move commits."""

import logging
import sqlite3
from datetime import date
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

import networkx as nx

from .errors import ConflictError, CycleError, NotFoundError, PermissionDeniedError
from .hierarchy import Forest, build_forest
from .reorder import MoveDelta, ReorderEngine, group_key, next_task_order, sibling_group_version
from .task_node import DateLike, DropPosition, Role, TaskRecord, TaskStatus, TimeEntry
from .timeline import parse_date

logger = logging.getLogger(__name__)

# Roles allowed to commit structural changes
MOVE_ROLES = {Role.ADMIN, Role.USER}


class TaskStore:
    """
    Task and time entry storage backed by SQLite.

    Rows keep their indexed columns (project, parent, task) next to a JSON
    ``data`` column holding the full pydantic record.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize the store, creating the schema if needed."""
        self.db_path = Path(db_path) if db_path else Path("tasks.db")
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_database(self) -> None:
        """Initialize SQLite database schema."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    project_id TEXT,
                    parent_task_id TEXT,
                    data TEXT NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_tasks_project
                ON tasks(project_id)
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS time_entries (
                    id TEXT PRIMARY KEY,
                    task_id TEXT,
                    project_id TEXT,
                    data TEXT NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_time_entries_task
                ON time_entries(task_id)
            """)

    def _save_task(self, conn: sqlite3.Connection, task: TaskRecord) -> None:
        conn.execute("""
            INSERT INTO tasks (id, project_id, parent_task_id, data)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                project_id = excluded.project_id,
                parent_task_id = excluded.parent_task_id,
                data = excluded.data,
                updated_at = CURRENT_TIMESTAMP
        """, (task.id, task.project_id, task.parent_task_id, task.model_dump_json()))

    @staticmethod
    def _load_tasks(conn: sqlite3.Connection, project_id: Optional[str]) -> List[TaskRecord]:
        cursor = conn.execute(
            "SELECT data FROM tasks WHERE project_id IS ? ORDER BY rowid", (project_id,)
        )
        return [TaskRecord.model_validate_json(row[0]) for row in cursor.fetchall()]

    # Tasks

    @staticmethod
    def _checked_dates(start_date: Optional[DateLike], due_date: Optional[DateLike]):
        """Parse scheduling dates so malformed values are rejected before storage."""
        start = parse_date(start_date) if start_date is not None else None
        due = parse_date(due_date) if due_date is not None else None
        return start, due

    def create_task(
        self,
        project_id: str,
        title: str,
        parent_task_id: Optional[str] = None,
        description: Optional[str] = None,
        start_date: Optional[DateLike] = None,
        due_date: Optional[DateLike] = None,
        estimated_hours: Optional[float] = None,
        status: TaskStatus = TaskStatus.TODO,
        assigned_to: Optional[str] = None,
        task_id: Optional[str] = None,
    ) -> TaskRecord:
        """Create a task at the end of its sibling group."""
        start_date, due_date = self._checked_dates(start_date, due_date)

        with self._connect() as conn:
            project_tasks = self._load_tasks(conn, project_id)
            if parent_task_id and not any(t.id == parent_task_id for t in project_tasks):
                raise NotFoundError(parent_task_id)

            task = TaskRecord(
                id=task_id or str(uuid4()),
                project_id=project_id,
                title=title,
                description=description,
                parent_task_id=parent_task_id,
                task_order=next_task_order(project_tasks, parent_task_id or None),
                start_date=start_date,
                due_date=due_date,
                estimated_hours=estimated_hours,
                status=status,
                assigned_to=assigned_to,
            )
            self._save_task(conn, task)

        logger.info(f"Created task {task.id} in project {project_id} at order {task.task_order}")
        return task

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        """Get a task by ID."""
        with self._connect() as conn:
            row = conn.execute("SELECT data FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return TaskRecord.model_validate_json(row[0]) if row else None

    def update_task(self, task: TaskRecord) -> None:
        """
        Update an existing task.

        A changed parent must exist in the same project and must not be the
        task itself or one of its descendants.
        """
        current = self.get_task(task.id)
        if current is None:
            raise NotFoundError(task.id)
        self._checked_dates(task.start_date, task.due_date)

        if task.parent_task_id is not None and task.parent_task_id != current.parent_task_id:
            engine = ReorderEngine(self.list_tasks_for_project(current.project_id))
            if task.parent_task_id not in engine.tasks:
                raise NotFoundError(task.parent_task_id)
            if task.parent_task_id == task.id or engine.is_descendant(task.parent_task_id, task.id):
                raise CycleError(task.id, task.parent_task_id)

        with self._connect() as conn:
            self._save_task(conn, task)

    def set_status(self, task_id: str, status: TaskStatus) -> TaskRecord:
        """Move a task to another status column."""
        task = self.get_task(task_id)
        if task is None:
            raise NotFoundError(task_id)

        updated = task.model_copy(update={"status": TaskStatus(status)})
        with self._connect() as conn:
            self._save_task(conn, updated)

        logger.info(f"Task {task_id} status {task.status.value} -> {updated.status.value}")
        return updated

    def delete_task(self, task_id: str, cascade: bool = False) -> List[str]:
        """
        Delete a task, optionally with its whole subtree. Returns deleted IDs.

        Time entries logged against the deleted tasks go with them.
        """
        task = self.get_task(task_id)
        if task is None:
            raise NotFoundError(task_id)

        graph = ReorderEngine(self.list_tasks_for_project(task.project_id)).graph
        descendants = list(nx.descendants(graph, task_id))
        if descendants and not cascade:
            raise ValueError(f"Task {task_id} has children. Use cascade=True to delete them.")

        doomed = [task_id] + descendants
        with self._connect() as conn:
            placeholders = ",".join("?" * len(doomed))
            conn.execute(f"DELETE FROM time_entries WHERE task_id IN ({placeholders})", doomed)
            conn.execute(f"DELETE FROM tasks WHERE id IN ({placeholders})", doomed)

        logger.info(f"Deleted {len(doomed)} task(s) starting at {task_id}")
        return doomed

    def list_projects(self) -> List[str]:
        """Project IDs that have at least one task."""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT DISTINCT project_id FROM tasks WHERE project_id IS NOT NULL ORDER BY project_id"
            )
            return [row[0] for row in cursor.fetchall()]

    def list_tasks_for_project(self, project_id: Optional[str]) -> List[TaskRecord]:
        """All tasks of a project, in creation order."""
        with self._connect() as conn:
            return self._load_tasks(conn, project_id)

    # Time entries

    def log_time(
        self,
        hours: float,
        task_id: Optional[str] = None,
        project_id: Optional[str] = None,
        user_id: Optional[str] = None,
        entry_date: Optional[date] = None,
        description: Optional[str] = None,
    ) -> TimeEntry:
        """Record hours against a task or directly against a project."""
        if hours is None or hours <= 0:
            raise ValueError("Hours must be greater than 0")

        if task_id:
            task = self.get_task(task_id)
            if task is None:
                raise NotFoundError(task_id)
            project_id = project_id or task.project_id
        if not project_id:
            raise ValueError("Project is required")

        entry = TimeEntry(
            id=str(uuid4()),
            task_id=task_id or None,
            project_id=project_id,
            user_id=user_id,
            hours=hours,
            entry_date=entry_date or date.today(),
            description=description,
        )
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO time_entries (id, task_id, project_id, data) VALUES (?, ?, ?, ?)",
                (entry.id, entry.task_id, entry.project_id, entry.model_dump_json()),
            )
        return entry

    def list_time_entries_for_task(self, task_id: str) -> List[TimeEntry]:
        """Time entries logged against one task."""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT data FROM time_entries WHERE task_id = ? ORDER BY rowid", (task_id,)
            )
            return [TimeEntry.model_validate_json(row[0]) for row in cursor.fetchall()]

    def list_time_entries_for_project(self, project_id: str) -> List[TimeEntry]:
        """All time entries of a project, task-level and project-level."""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT data FROM time_entries WHERE project_id = ? ORDER BY rowid", (project_id,)
            )
            return [TimeEntry.model_validate_json(row[0]) for row in cursor.fetchall()]

    def load_forest(self, project_id: str) -> Forest:
        """Build the numbered forest for a project."""
        return build_forest(
            self.list_tasks_for_project(project_id),
            self.list_time_entries_for_project(project_id),
        )

    # Moves

    def plan_move(self, dragged_id: str, target_id: str, position: DropPosition) -> MoveDelta:
        """Plan a move against the dragged task's current project snapshot."""
        dragged = self.get_task(dragged_id)
        if dragged is None:
            raise NotFoundError(dragged_id)
        engine = ReorderEngine(self.list_tasks_for_project(dragged.project_id))
        return engine.plan_move(dragged_id, target_id, position)

    def apply_reorder(self, delta: MoveDelta, role: Role) -> None:
        """
        Commit a move delta as one transaction.

        Every sibling group in ``delta.expected_versions`` is re-read inside
        the transaction; if any changed since the delta was planned nothing is
        written and ``ConflictError`` is raised. Stored task numbers are
        refreshed in the same transaction.
        """
        role = Role(role)
        if role not in MOVE_ROLES:
            logger.warning(f"Rejected move of task {delta.task_id} for role {role.value}")
            raise PermissionDeniedError(f"Role '{role.value}' may not reorder tasks")

        conn = self._connect()
        try:
            with conn:
                conn.execute("BEGIN IMMEDIATE")
                row = conn.execute(
                    "SELECT project_id FROM tasks WHERE id = ?", (delta.task_id,)
                ).fetchone()
                if row is None:
                    raise NotFoundError(delta.task_id)
                tasks = self._load_tasks(conn, row[0])

                for key, expected in delta.expected_versions.items():
                    parent_id = None if key == group_key(None) else key
                    actual = sibling_group_version(tasks, parent_id)
                    if actual != expected:
                        logger.warning(f"Conflict committing move of task {delta.task_id}: group {key} changed")
                        raise ConflictError(key, expected, actual)

                updated = delta.apply(tasks)
                numbers = {node.id: node.task_number for node in build_forest(updated).nodes}
                changed_ids = {delta.task_id} | {u.task_id for u in delta.sibling_updates}
                for task in updated:
                    number = numbers.get(task.id)
                    if task.id in changed_ids or task.task_number != number:
                        self._save_task(conn, task.model_copy(update={"task_number": number}))
        finally:
            conn.close()

        logger.info(
            f"Moved task {delta.task_id} under {delta.new_parent_id or 'root'} at order "
            f"{delta.new_order} ({len(delta.sibling_updates)} sibling update(s))"
        )

    def move_task(
        self,
        dragged_id: str,
        target_id: str,
        position: DropPosition,
        role: Role,
    ) -> MoveDelta:
        """Plan and commit a move in one call."""
        delta = self.plan_move(dragged_id, target_id, position)
        self.apply_reorder(delta, role)
        return delta

    def refresh_task_numbers(self, project_id: str) -> int:
        """Store freshly computed task numbers for a project. Returns rows changed."""
        with self._connect() as conn:
            tasks = self._load_tasks(conn, project_id)
            numbers = {node.id: node.task_number for node in build_forest(tasks).nodes}
            changed = [t for t in tasks if t.task_number != numbers[t.id]]
            for task in changed:
                self._save_task(conn, task.model_copy(update={"task_number": numbers[task.id]}))
        return len(changed)
