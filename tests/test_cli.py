import pytest
from typer.testing import CliRunner

from task_hierarchy import TaskStore
from task_hierarchy.cli import app
from task_hierarchy.config import EngineConfig, save_config

runner = CliRunner()


@pytest.fixture
def db(tmp_path):
    return str(tmp_path / "cli.db")


def invoke(db, *args):
    return runner.invoke(app, [*args, "--db", db, "--project", "p1"])


def test_add_and_tree(db):
    result = invoke(db, "add", "Design", "--estimate", "8")
    assert result.exit_code == 0
    assert "Created task 1" in result.stdout

    result = invoke(db, "add", "Sketch", "--parent", "1")
    assert result.exit_code == 0
    assert "Created task 1.1" in result.stdout

    result = invoke(db, "tree")
    assert result.exit_code == 0
    assert "Design" in result.stdout
    assert "1.1" in result.stdout


def test_tree_without_tasks(db):
    result = invoke(db, "tree")
    assert result.exit_code == 0
    assert "No tasks found" in result.stdout


def test_missing_project_exits(db):
    result = runner.invoke(app, ["tree", "--db", db])
    assert result.exit_code == 1


def test_default_project_from_config(db, tmp_path):
    save_config(EngineConfig(db_path=tmp_path / "cli.db", default_project="p1"))
    runner.invoke(app, ["add", "Configured"])
    assert [t.title for t in TaskStore(tmp_path / "cli.db").list_tasks_for_project("p1")] == ["Configured"]


def test_log_time(db):
    invoke(db, "add", "Build", "--estimate", "4")
    result = invoke(db, "log-time", "1", "2")
    assert result.exit_code == 0
    assert "Logged 2h" in result.stdout

    result = invoke(db, "log-time", "1", "0")
    assert result.exit_code == 1


def test_unknown_task_reference(db):
    result = invoke(db, "log-time", "9.9", "1")
    assert result.exit_code == 1
    assert "not found" in result.stdout


def test_move_and_dry_run(db, tmp_path):
    for title in ("A", "B", "C"):
        invoke(db, "add", title)

    result = invoke(db, "move", "1", "3", "--position", "after", "--dry-run")
    assert result.exit_code == 0
    assert "Dry run" in result.stdout

    result = invoke(db, "move", "1", "3", "--position", "after")
    assert result.exit_code == 0
    assert "Moved A to 3" in result.stdout

    forest = TaskStore(tmp_path / "cli.db").load_forest("p1")
    assert [n.task.title for n in forest.roots] == ["B", "C", "A"]


def test_move_rejects_client_and_cycles(db):
    invoke(db, "add", "Parent")
    invoke(db, "add", "Kid", "--parent", "1")
    invoke(db, "add", "Other")

    result = invoke(db, "move", "1", "2", "--role", "client")
    assert result.exit_code == 1

    result = invoke(db, "move", "1", "1.1", "--position", "child")
    assert result.exit_code == 1


def test_gantt(db):
    invoke(db, "add", "Plan", "--start", "2024-01-03", "--due", "2024-01-04")
    result = invoke(db, "gantt", "--start", "2024-01-01", "--end", "2024-01-10")
    assert result.exit_code == 0
    assert "Plan" in result.stdout

    result = invoke(db, "gantt", "--start", "2024-02-01", "--end", "2024-01-01")
    assert result.exit_code == 1


def test_kanban_stats_and_renumber(db):
    invoke(db, "add", "Todo task")
    invoke(db, "add", "Done task", "--status", "completed")

    result = invoke(db, "kanban")
    assert result.exit_code == 0
    assert "Done" in result.stdout

    result = invoke(db, "stats")
    assert result.exit_code == 0
    assert "Total" in result.stdout

    result = invoke(db, "renumber")
    assert result.exit_code == 0
    assert "Updated 2 task number(s)" in result.stdout


def test_add_rejects_malformed_dates(db, tmp_path):
    result = invoke(db, "add", "Broken", "--start", "2024-01-03garbage")
    assert result.exit_code == 1
    assert TaskStore(tmp_path / "cli.db").list_tasks_for_project("p1") == []


def test_status_command_moves_kanban_column(db, tmp_path):
    invoke(db, "add", "Card")
    result = invoke(db, "status", "1", "in_progress")
    assert result.exit_code == 0
    assert "in_progress" in result.stdout

    forest = TaskStore(tmp_path / "cli.db").load_forest("p1")
    assert forest.find_by_number("1").task.status.value == "in_progress"

    result = invoke(db, "status", "1", "blocked")
    assert result.exit_code != 0


def test_list_tasks_filters(db):
    invoke(db, "add", "Alpha", "--assignee", "ana")
    invoke(db, "add", "Beta", "--assignee", "ben", "--status", "review")

    result = invoke(db, "list-tasks", "--assignee", "ana")
    assert result.exit_code == 0
    assert "Alpha" in result.stdout
    assert "Beta" not in result.stdout

    result = invoke(db, "list-tasks", "--status", "review")
    assert "Beta" in result.stdout
    assert "Alpha" not in result.stdout

    result = invoke(db, "list-tasks", "--query", "gamma")
    assert "No tasks found" in result.stdout
