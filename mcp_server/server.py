#!/usr/bin/env python3
"""
Task Hierarchy MCP Server

An MCP server exposing numbered project task trees, drag-and-drop style
moves and Gantt timeline layout.
"""

import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server
from mcp.types import Resource, ServerCapabilities, TextContent, Tool

from task_hierarchy import (
    DropPosition,
    Forest,
    ProjectWindow,
    Role,
    TaskHierarchyError,
    TaskNode,
    TaskStatus,
    TaskStore,
    TickStride,
    filter_tasks,
    project_forest,
    time_scale_ticks,
)
from task_hierarchy.config import configure_logging, load_config
from task_hierarchy.progress import budget_health

config = load_config()
configure_logging(config)
logger = logging.getLogger("task-hierarchy-mcp")

# Global store instance
task_store: Optional[TaskStore] = None

STATUS_EMOJI = {
    "todo": "⏳",
    "in_progress": "🔄",
    "review": "🔍",
    "completed": "✅",
}


def get_task_store() -> TaskStore:
    """Get or create the global store instance."""
    global task_store
    if task_store is None:
        logger.info(f"Using database path: {config.db_path}")
        task_store = TaskStore(config.db_path)
    return task_store


def resolve_node(forest: Forest, ref: str) -> TaskNode:
    """Find a task by ID or dotted number."""
    node = forest.get(ref) or forest.find_by_number(ref)
    if node is None:
        raise ValueError(f"Task {ref} not found")
    return node


def format_node(node: TaskNode) -> str:
    """Format one tree line."""
    status = node.task.status.value
    estimate = node.task.estimated_hours or 0
    health = budget_health(node.total_hours, node.task.estimated_hours).value
    return (
        f"{STATUS_EMOJI.get(status, '⚪')} {node.task_number} **{node.task.title}** "
        f"({node.total_hours:.1f}/{estimate:g}h, {node.progress:.0f}%, {health})"
    )


def render_tree(forest: Forest) -> str:
    """Indented text rendering of the whole forest."""
    if not len(forest):
        return "No tasks found"

    lines = []
    for node in forest.walk():
        prefix = "  " * node.level + ("└─ " if node.level > 0 else "")
        lines.append(f"{prefix}{format_node(node)}")

    if forest.detached_ids:
        lines.append("")
        lines.append(f"⚠️ Parent cycle detected; detached: {', '.join(forest.detached_ids)}")
    return "\n".join(lines)


def render_timeline(forest: Forest, window: ProjectWindow, stride: TickStride) -> str:
    """Timeline layout as JSON, ready for a chart renderer."""
    payload = {
        "window": {"start": window.start.isoformat(), "end": window.end.isoformat(), "total_days": window.total_days},
        "ticks": [tick.isoformat() for tick in time_scale_ticks(window, stride)],
        "tasks": [layout.model_dump(mode="json") for layout in project_forest(forest, window)],
    }
    return json.dumps(payload, indent=2)


def run_tool(store: TaskStore, name: str, arguments: Dict[str, Any]) -> str:
    """Execute a tool call and return its text response."""
    if name == "get_task_tree":
        forest = store.load_forest(arguments["project_id"])
        return f"## Project {arguments['project_id']}\n\n{render_tree(forest)}"

    elif name == "create_task":
        project_id = arguments["project_id"]
        parent_id = None
        if arguments.get("parent"):
            parent_id = resolve_node(store.load_forest(project_id), arguments["parent"]).id

        task = store.create_task(
            project_id=project_id,
            title=arguments["title"],
            parent_task_id=parent_id,
            description=arguments.get("description"),
            start_date=arguments.get("start_date"),
            due_date=arguments.get("due_date"),
            estimated_hours=arguments.get("estimated_hours"),
            status=TaskStatus(arguments.get("status", "todo")),
            assigned_to=arguments.get("assigned_to"),
        )
        node = store.load_forest(project_id).get(task.id)
        return f"✅ **Task Created**\n\n{format_node(node)}\n🆔 ID: `{task.id}`"

    elif name == "log_time":
        project_id = arguments["project_id"]
        node = resolve_node(store.load_forest(project_id), arguments["task"])
        store.log_time(
            float(arguments["hours"]),
            task_id=node.id,
            user_id=arguments.get("user_id"),
            description=arguments.get("description"),
        )
        node = store.load_forest(project_id).get(node.id)
        return f"⏱️ **Time Logged**\n\n{format_node(node)}"

    elif name in ("plan_move", "move_task"):
        forest = store.load_forest(arguments["project_id"])
        dragged = resolve_node(forest, arguments["task"])
        target = resolve_node(forest, arguments["target"])
        position = DropPosition(arguments.get("position", "after"))

        delta = store.plan_move(dragged.id, target.id, position)
        if name == "move_task":
            store.apply_reorder(delta, Role(arguments["role"]))

        response = f"**{'Moved' if name == 'move_task' else 'Planned move of'}** {dragged.task.title}\n\n"
        response += f"```json\n{delta.model_dump_json(indent=2)}\n```"
        if name == "move_task":
            response += "\n\n" + render_tree(store.load_forest(arguments["project_id"]))
        return response

    elif name == "get_timeline":
        forest = store.load_forest(arguments["project_id"])
        window = ProjectWindow.create(arguments["start"], arguments.get("end"), now=date.today())
        stride = TickStride(arguments.get("stride", config.tick_stride.value))
        return render_timeline(forest, window, stride)

    elif name == "get_kanban":
        columns = store.load_forest(arguments["project_id"]).by_status()
        sections = []
        for status, nodes in columns.items():
            sections.append(f"### {STATUS_EMOJI[status.value]} {status.value} ({len(nodes)})")
            sections.extend(f"- {node.task_number} {node.task.title}" for node in nodes)
        return "\n".join(sections)

    elif name == "set_status":
        project_id = arguments["project_id"]
        node = resolve_node(store.load_forest(project_id), arguments["task"])
        store.set_status(node.id, TaskStatus(arguments["status"]))
        node = store.load_forest(project_id).get(node.id)
        return f"📋 **Status Updated**\n\n{format_node(node)}"

    elif name == "search_tasks":
        forest = store.load_forest(arguments["project_id"])
        status = arguments.get("status")
        matches = filter_tasks(
            [node.task for node in forest.walk()],
            query=arguments.get("query", ""),
            status=TaskStatus(status) if status else None,
            assigned_to=arguments.get("assigned_to"),
        )
        if not matches:
            return "🔍 No tasks found matching the criteria"

        response = f"🔍 **Found {len(matches)} task(s)**\n\n"
        response += "\n".join(format_node(forest.get(task.id)) for task in matches)
        return response

    raise ValueError(f"Unknown tool: {name}")


# Create the MCP server
server = Server("task-hierarchy")


@server.list_resources()
async def handle_list_resources() -> List[Resource]:
    """List one tree resource per project plus the statistics summary."""
    store = get_task_store()

    resources = [
        Resource(
            uri=f"hierarchy://{project_id}/tree",
            name=f"Task tree for {project_id}",
            description="Numbered task hierarchy with hours and progress",
            mimeType="text/plain",
        )
        for project_id in store.list_projects()
    ]
    resources.append(Resource(
        uri="hierarchy://stats/summary",
        name="Task Statistics",
        description="Summary statistics per project",
        mimeType="application/json",
    ))
    return resources


@server.read_resource()
async def handle_read_resource(uri: str) -> str:
    """Read a specific hierarchy resource."""
    store = get_task_store()
    uri = str(uri)

    if uri == "hierarchy://stats/summary":
        summary = {project_id: store.load_forest(project_id).stats() for project_id in store.list_projects()}
        return json.dumps(summary, indent=2)

    if uri.startswith("hierarchy://") and uri.endswith("/tree"):
        project_id = uri[len("hierarchy://"):-len("/tree")]
        return render_tree(store.load_forest(project_id))

    raise ValueError(f"Unknown resource: {uri}")


PROJECT_PROPERTY = {"type": "string", "description": "Project ID"}
TASK_REF = "Task ID or dotted task number (e.g. 2.1)"


@server.list_tools()
async def handle_list_tools() -> List[Tool]:
    """List available task hierarchy tools."""
    return [
        Tool(
            name="get_task_tree",
            description="Show the numbered task tree of a project with hours and progress",
            inputSchema={
                "type": "object",
                "properties": {"project_id": PROJECT_PROPERTY},
                "required": ["project_id"],
            },
        ),
        Tool(
            name="create_task",
            description="Create a task at the end of its sibling group",
            inputSchema={
                "type": "object",
                "properties": {
                    "project_id": PROJECT_PROPERTY,
                    "title": {"type": "string", "description": "Task title"},
                    "parent": {"type": "string", "description": f"Optional parent: {TASK_REF}"},
                    "description": {"type": "string", "description": "Optional task description"},
                    "start_date": {"type": "string", "description": "Start date (YYYY-MM-DD)"},
                    "due_date": {"type": "string", "description": "Due date (YYYY-MM-DD)"},
                    "estimated_hours": {"type": "number", "description": "Estimated hours"},
                    "status": {"type": "string", "enum": [s.value for s in TaskStatus]},
                    "assigned_to": {"type": "string", "description": "Assigned user ID"},
                },
                "required": ["project_id", "title"],
            },
        ),
        Tool(
            name="log_time",
            description="Log hours against a task",
            inputSchema={
                "type": "object",
                "properties": {
                    "project_id": PROJECT_PROPERTY,
                    "task": {"type": "string", "description": TASK_REF},
                    "hours": {"type": "number", "description": "Hours worked (> 0)"},
                    "user_id": {"type": "string", "description": "User who did the work"},
                    "description": {"type": "string", "description": "What was done"},
                },
                "required": ["project_id", "task", "hours"],
            },
        ),
        Tool(
            name="plan_move",
            description="Preview the effect of dropping one task before, after or under another",
            inputSchema={
                "type": "object",
                "properties": {
                    "project_id": PROJECT_PROPERTY,
                    "task": {"type": "string", "description": f"Task to move: {TASK_REF}"},
                    "target": {"type": "string", "description": f"Drop target: {TASK_REF}"},
                    "position": {"type": "string", "enum": [p.value for p in DropPosition]},
                },
                "required": ["project_id", "task", "target"],
            },
        ),
        Tool(
            name="move_task",
            description="Move a task before, after or under another task and commit the new order",
            inputSchema={
                "type": "object",
                "properties": {
                    "project_id": PROJECT_PROPERTY,
                    "task": {"type": "string", "description": f"Task to move: {TASK_REF}"},
                    "target": {"type": "string", "description": f"Drop target: {TASK_REF}"},
                    "position": {"type": "string", "enum": [p.value for p in DropPosition]},
                    "role": {"type": "string", "enum": [r.value for r in Role], "description": "Caller role"},
                },
                "required": ["project_id", "task", "target", "role"],
            },
        ),
        Tool(
            name="get_timeline",
            description="Gantt layout: per-task offset and width fractions plus time scale ticks",
            inputSchema={
                "type": "object",
                "properties": {
                    "project_id": PROJECT_PROPERTY,
                    "start": {"type": "string", "description": "Project start (YYYY-MM-DD)"},
                    "end": {"type": "string", "description": "Project end, defaults to today"},
                    "stride": {"type": "string", "enum": [s.value for s in TickStride]},
                },
                "required": ["project_id", "start"],
            },
        ),
        Tool(
            name="get_kanban",
            description="Tasks grouped by status column",
            inputSchema={
                "type": "object",
                "properties": {"project_id": PROJECT_PROPERTY},
                "required": ["project_id"],
            },
        ),
        Tool(
            name="set_status",
            description="Move a task to another status column",
            inputSchema={
                "type": "object",
                "properties": {
                    "project_id": PROJECT_PROPERTY,
                    "task": {"type": "string", "description": TASK_REF},
                    "status": {"type": "string", "enum": [s.value for s in TaskStatus]},
                },
                "required": ["project_id", "task", "status"],
            },
        ),
        Tool(
            name="search_tasks",
            description="Find tasks by text, status and assignee",
            inputSchema={
                "type": "object",
                "properties": {
                    "project_id": PROJECT_PROPERTY,
                    "query": {"type": "string", "description": "Text to match in title or description"},
                    "status": {"type": "string", "enum": [s.value for s in TaskStatus]},
                    "assigned_to": {"type": "string", "description": "Assigned user ID"},
                },
                "required": ["project_id"],
            },
        ),
    ]


@server.call_tool()
async def handle_call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
    """Handle tool calls for task hierarchy management."""
    try:
        text = run_tool(get_task_store(), name, arguments or {})
    except (TaskHierarchyError, ValueError, KeyError) as e:
        logger.error(f"Error in tool {name}: {e}")
        text = f"❌ Error: {e}"
    return [TextContent(type="text", text=text)]


async def main():
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            InitializationOptions(
                server_name="task-hierarchy",
                server_version="0.1.0",
                capabilities=ServerCapabilities(
                    tools={},
                    resources={},
                ),
            ),
        )


if __name__ == "__main__":
    import asyncio
    asyncio.run(main())
