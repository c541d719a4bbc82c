"""
Shared fixtures for the task hierarchy tests.
"""

import sys
from pathlib import Path

import pytest

# The MCP server module lives next to the package, outside any installed path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "mcp_server"))

from task_hierarchy import TaskRecord, TaskStore, TimeEntry  # noqa: E402
from task_hierarchy.config import CONFIG_ENV, DB_ENV, LOG_LEVEL_ENV  # noqa: E402


def make_task(task_id, parent=None, order=0, **fields):
    """Build a task record with sensible defaults."""
    fields.setdefault("title", task_id)
    fields.setdefault("project_id", "p1")
    return TaskRecord(id=task_id, parent_task_id=parent, task_order=order, **fields)


def make_entry(task_id, hours, entry_id=None):
    return TimeEntry(id=entry_id or f"e-{task_id}-{hours}", task_id=task_id, project_id="p1", hours=hours)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep every test away from the user's real config file."""
    monkeypatch.setenv(CONFIG_ENV, str(tmp_path / "config.json"))
    monkeypatch.delenv(DB_ENV, raising=False)
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)


@pytest.fixture
def store(tmp_path):
    """Empty store on a throwaway database."""
    return TaskStore(tmp_path / "tasks.db")


@pytest.fixture
def abc_store(store):
    """Three root tasks A, B, C in project p1."""
    for task_id in ("A", "B", "C"):
        store.create_task(project_id="p1", title=task_id, task_id=task_id)
    return store
