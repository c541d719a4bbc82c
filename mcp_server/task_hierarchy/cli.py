"""Command-line interface for project task hierarchies."""

from datetime import date
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from .config import load_config
from .errors import TaskHierarchyError
from .hierarchy import Forest, filter_tasks
from .progress import budget_health
from .store import TaskStore
from .task_node import BudgetHealth, DropPosition, ProgressBand, Role, TaskNode, TaskStatus, TickStride
from .timeline import ProjectWindow, TaskLayout, project_forest, time_scale_ticks

app = typer.Typer(help="Task Hierarchy - numbered task trees, moves and Gantt timelines")
console = Console()

STATUS_COLORS = {
    TaskStatus.TODO: "white",
    TaskStatus.IN_PROGRESS: "blue",
    TaskStatus.REVIEW: "yellow",
    TaskStatus.COMPLETED: "green",
}

HEALTH_COLORS = {
    BudgetHealth.UNESTIMATED: "dim",
    BudgetHealth.ON_TRACK: "green",
    BudgetHealth.AT_RISK: "yellow",
    BudgetHealth.OVER_BUDGET: "red",
}

BAND_COLORS = {
    ProgressBand.COMPLETE: "green",
    ProgressBand.MID: "blue",
    ProgressBand.LOW: "grey50",
}


def get_store(db_path: Optional[str] = None) -> TaskStore:
    """Get store instance with optional database path."""
    if db_path:
        return TaskStore(Path(db_path))
    return TaskStore(load_config().db_path)


def resolve_project(project: Optional[str]) -> str:
    """Use the given project or the configured default."""
    project = project or load_config().default_project
    if not project:
        console.print("[red]Error: no project given and no default_project configured[/red]")
        raise typer.Exit(1)
    return project


def resolve_node(forest: Forest, ref: str) -> TaskNode:
    """Find a task by ID or by dotted task number."""
    node = forest.get(ref) or forest.find_by_number(ref)
    if node is None:
        console.print(f"[red]Task {ref} not found[/red]")
        raise typer.Exit(1)
    return node


def format_hours(node: TaskNode) -> Text:
    """Hours used over estimate, colored by budget health."""
    health = budget_health(node.total_hours, node.task.estimated_hours)
    estimate = node.task.estimated_hours or 0
    return Text(f"{node.total_hours:.1f}/{estimate:g}h", style=HEALTH_COLORS[health])


def render_bar(layout: TaskLayout, width: int) -> Text:
    """Draw a timeline bar ``width`` characters wide."""
    start = min(width - 1, max(0, round(layout.offset_fraction * width)))
    length = max(1, min(width - start, round(layout.width_fraction * width)))
    bar = Text(" " * start)
    bar.append("█" * length, style=BAND_COLORS[layout.band])
    bar.append(" " * (width - start - length))
    return bar


@app.command()
def add(
    title: str = typer.Argument(..., help="Task title"),
    project: Optional[str] = typer.Option(None, "--project", "-P", help="Project ID"),
    parent: Optional[str] = typer.Option(None, "--parent", "-p", help="Parent task ID or number"),
    description: Optional[str] = typer.Option(None, "--desc", "-d", help="Task description"),
    start: Optional[str] = typer.Option(None, "--start", help="Start date (YYYY-MM-DD)"),
    due: Optional[str] = typer.Option(None, "--due", help="Due date (YYYY-MM-DD)"),
    estimate: Optional[float] = typer.Option(None, "--estimate", "-e", help="Estimated hours"),
    status: TaskStatus = typer.Option(TaskStatus.TODO, "--status", help="Task status"),
    assignee: Optional[str] = typer.Option(None, "--assignee", "-a", help="Assigned user ID"),
    db_path: Optional[str] = typer.Option(None, "--db", help="Database path"),
):
    """Create a new task at the end of its sibling group."""
    store = get_store(db_path)
    project = resolve_project(project)

    parent_id = None
    if parent:
        parent_id = resolve_node(store.load_forest(project), parent).id

    try:
        task = store.create_task(
            project_id=project,
            title=title,
            parent_task_id=parent_id,
            description=description,
            start_date=start,
            due_date=due,
            estimated_hours=estimate,
            status=status,
            assigned_to=assignee,
        )
    except (TaskHierarchyError, ValueError) as e:
        console.print(f"[red]Error creating task: {e}[/red]")
        raise typer.Exit(1)

    number = store.load_forest(project).get(task.id).task_number
    console.print(f"[green]Created task {number}: {task.id}[/green]")


@app.command("log-time")
def log_time(
    task_ref: str = typer.Argument(..., help="Task ID or number"),
    hours: float = typer.Argument(..., help="Hours worked"),
    project: Optional[str] = typer.Option(None, "--project", "-P", help="Project ID"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User ID"),
    description: Optional[str] = typer.Option(None, "--desc", "-d", help="What was done"),
    db_path: Optional[str] = typer.Option(None, "--db", help="Database path"),
):
    """Log hours against a task."""
    store = get_store(db_path)
    project = resolve_project(project)
    node = resolve_node(store.load_forest(project), task_ref)

    try:
        store.log_time(hours, task_id=node.id, user_id=user, entry_date=date.today(), description=description)
    except (TaskHierarchyError, ValueError) as e:
        console.print(f"[red]Error logging time: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Logged {hours:g}h on {node.task_number} {node.task.title}[/green]")


@app.command()
def tree(
    project: Optional[str] = typer.Option(None, "--project", "-P", help="Project ID"),
    db_path: Optional[str] = typer.Option(None, "--db", help="Database path"),
):
    """Show the numbered task tree with hours and progress."""
    store = get_store(db_path)
    project = resolve_project(project)
    forest = store.load_forest(project)

    if not len(forest):
        console.print("[yellow]No tasks found[/yellow]")
        return

    def build_tree(node: TaskNode, tree_node: Tree) -> None:
        """Recursively build tree visualization."""
        for child in forest.children(node):
            build_tree(child, tree_node.add(node_label(child)))

    def node_label(node: TaskNode) -> Text:
        label = Text(f"{node.task_number} ", style="bold")
        label.append(node.task.title, style=STATUS_COLORS[node.task.status])
        label.append(f" [{node.task.status.value}] ")
        label.append_text(format_hours(node))
        label.append(f" {node.progress:.0f}%", style="dim")
        return label

    root = Tree(f"Project {project}")
    for node in forest.roots:
        build_tree(node, root.add(node_label(node)))
    console.print(root)

    if forest.detached_ids:
        console.print(f"[yellow]Parent cycle detected; detached: {', '.join(forest.detached_ids)}[/yellow]")


@app.command()
def gantt(
    project: Optional[str] = typer.Option(None, "--project", "-P", help="Project ID"),
    start: str = typer.Option(..., "--start", help="Project start (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, "--end", help="Project end, defaults to today"),
    stride: Optional[TickStride] = typer.Option(None, "--stride", help="Time scale spacing"),
    width: int = typer.Option(40, "--width", min=10, help="Timeline width in characters"),
    db_path: Optional[str] = typer.Option(None, "--db", help="Database path"),
):
    """Show a Gantt timeline of the project's tasks."""
    store = get_store(db_path)
    project = resolve_project(project)
    stride = stride or load_config().tick_stride

    try:
        window = ProjectWindow.create(start, end, now=date.today())
        layouts = project_forest(store.load_forest(project), window)
    except TaskHierarchyError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    ticks = time_scale_ticks(window, stride)
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim")
    table.add_column("Task", style="bold")
    table.add_column(f"{ticks[0]:%b %d} .. {window.end:%b %d} ({len(ticks)} ticks)", no_wrap=True)
    table.add_column("Progress", justify="right")

    for layout in layouts:
        table.add_row(
            layout.task_number,
            "  " * layout.level + layout.title,
            render_bar(layout, width),
            f"{layout.progress:.0f}%",
        )

    console.print(table)


@app.command()
def kanban(
    project: Optional[str] = typer.Option(None, "--project", "-P", help="Project ID"),
    db_path: Optional[str] = typer.Option(None, "--db", help="Database path"),
):
    """Show tasks grouped by status."""
    store = get_store(db_path)
    project = resolve_project(project)
    columns = store.load_forest(project).by_status()

    table = Table(show_header=True, header_style="bold magenta")
    for status, nodes in columns.items():
        table.add_column(f"{status.value} ({len(nodes)})", style=STATUS_COLORS[status])

    cells = [
        "\n".join(f"{node.task_number} {node.task.title}" for node in nodes)
        for nodes in columns.values()
    ]
    table.add_row(*cells)
    console.print(table)


@app.command("status")
def set_status(
    task_ref: str = typer.Argument(..., help="Task ID or number"),
    status: TaskStatus = typer.Argument(..., help="New status"),
    project: Optional[str] = typer.Option(None, "--project", "-P", help="Project ID"),
    db_path: Optional[str] = typer.Option(None, "--db", help="Database path"),
):
    """Move a task to another kanban column."""
    store = get_store(db_path)
    project = resolve_project(project)
    node = resolve_node(store.load_forest(project), task_ref)

    store.set_status(node.id, status)
    console.print(f"[green]Moved {node.task_number} {node.task.title} to {status.value}[/green]")


@app.command()
def list_tasks(
    query: Optional[str] = typer.Option(None, "--query", "-q", help="Search title and description"),
    status: Optional[TaskStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
    assignee: Optional[str] = typer.Option(None, "--assignee", "-a", help="Filter by assigned user"),
    project: Optional[str] = typer.Option(None, "--project", "-P", help="Project ID"),
    db_path: Optional[str] = typer.Option(None, "--db", help="Database path"),
):
    """List tasks with optional filtering."""
    store = get_store(db_path)
    forest = store.load_forest(resolve_project(project))

    matches = filter_tasks([node.task for node in forest.walk()], query or "", status, assignee)
    if not matches:
        console.print("[yellow]No tasks found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim")
    table.add_column("Title", style="bold")
    table.add_column("Status")
    table.add_column("Assignee")
    table.add_column("Hours", justify="right")

    for task in matches:
        node = forest.get(task.id)
        table.add_row(
            node.task_number,
            task.title,
            Text(task.status.value, style=STATUS_COLORS[task.status]),
            task.assigned_to or "-",
            format_hours(node),
        )

    console.print(table)


@app.command()
def move(
    dragged: str = typer.Argument(..., help="Task to move (ID or number)"),
    target: str = typer.Argument(..., help="Task to drop onto (ID or number)"),
    position: DropPosition = typer.Option(DropPosition.AFTER, "--position", help="before, after or child"),
    role: Role = typer.Option(Role.USER, "--role", help="Caller role"),
    project: Optional[str] = typer.Option(None, "--project", "-P", help="Project ID"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the delta without committing"),
    db_path: Optional[str] = typer.Option(None, "--db", help="Database path"),
):
    """Move a task before, after or under another task."""
    store = get_store(db_path)
    project = resolve_project(project)
    forest = store.load_forest(project)
    dragged_node = resolve_node(forest, dragged)
    target_node = resolve_node(forest, target)

    try:
        delta = store.plan_move(dragged_node.id, target_node.id, position)
        if not dry_run:
            store.apply_reorder(delta, role)
    except TaskHierarchyError as e:
        console.print(f"[red]Error moving task: {e}[/red]")
        raise typer.Exit(1)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Task")
    table.add_column("Parent")
    table.add_column("Order", justify="right")
    table.add_row(dragged_node.task.title, delta.new_parent_id or "(root)", str(delta.new_order))
    for update in delta.sibling_updates:
        sibling = forest.get(update.task_id)
        table.add_row(sibling.task.title if sibling else update.task_id, "", str(update.new_order))
    console.print(table)

    if dry_run:
        console.print("[yellow]Dry run: nothing committed[/yellow]")
    else:
        number = store.load_forest(project).get(dragged_node.id).task_number
        console.print(f"[green]Moved {dragged_node.task.title} to {number}[/green]")


@app.command()
def renumber(
    project: Optional[str] = typer.Option(None, "--project", "-P", help="Project ID"),
    db_path: Optional[str] = typer.Option(None, "--db", help="Database path"),
):
    """Store freshly computed task numbers."""
    store = get_store(db_path)
    changed = store.refresh_task_numbers(resolve_project(project))
    console.print(f"[green]Updated {changed} task number(s)[/green]")


@app.command()
def stats(
    project: Optional[str] = typer.Option(None, "--project", "-P", help="Project ID"),
    db_path: Optional[str] = typer.Option(None, "--db", help="Database path"),
):
    """Show task statistics."""
    store = get_store(db_path)
    forest = store.load_forest(resolve_project(project))

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    for key, value in forest.stats().items():
        table.add_row(key.replace("_", " ").title(), f"{value:g}")

    console.print(table)

    cycles = forest.detect_cycles()
    if cycles:
        console.print(f"\n[bold red]Parent cycles ({len(cycles)}):[/bold red]")
        for cycle in cycles[:3]:
            console.print(f"  • {' -> '.join(cycle)}")


if __name__ == "__main__":
    app()
