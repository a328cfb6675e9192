"""Rich rendering of tasks and messages for the colony CLI."""

from __future__ import annotations

from collections.abc import Iterable

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from agentcolony.messaging import Message, MessageType
from agentcolony.tasks import Task, TaskPriority, TaskStatistics, TaskStatus

_STATUS_STYLE = {
    TaskStatus.PENDING: "white",
    TaskStatus.CLAIMED: "cyan",
    TaskStatus.IN_PROGRESS: "blue",
    TaskStatus.BLOCKED: "red",
    TaskStatus.COMPLETED: "green",
    TaskStatus.CANCELLED: "dim",
}

_PRIORITY_STYLE = {
    TaskPriority.LOW: "dim",
    TaskPriority.MEDIUM: "white",
    TaskPriority.HIGH: "yellow",
    TaskPriority.CRITICAL: "bold red",
}

_TYPE_BADGE = {
    MessageType.INFO: ("[INFO]", "blue"),
    MessageType.TASK: ("[TASK]", "bold cyan"),
    MessageType.QUESTION: ("[QUESTION]", "magenta"),
    MessageType.ANSWER: ("[ANSWER]", "green"),
    MessageType.COMPLETED: ("[COMPLETED]", "bold green"),
    MessageType.ERROR: ("[ERROR]", "bold red"),
}


def status_text(status: TaskStatus) -> Text:
    return Text(status.value, style=_STATUS_STYLE[status])


def _when(task: Task) -> str:
    return task.updated_at.strftime("%Y-%m-%d %H:%M:%S")


def render_tasks(console: Console, tasks: list[Task], title: str = "Tasks") -> None:
    """Full task table, one row per task in queue order."""
    if not tasks:
        console.print("[dim]No tasks found[/dim]")
        return

    table = Table(title=title)
    table.add_column("ID", style="bold")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Agent")
    table.add_column("Progress", justify="right")
    table.add_column("Depends on")
    table.add_column("Updated", style="dim")

    for task in tasks:
        agent = task.claimed_by or task.assigned_to or "-"
        table.add_row(
            task.id,
            escape(task.title),
            status_text(task.status),
            Text(task.priority.value, style=_PRIORITY_STYLE[task.priority]),
            agent,
            f"{task.progress}%",
            ", ".join(task.dependencies) or "-",
            _when(task),
        )
    console.print(table)


def render_compact(console: Console, tasks: list[Task]) -> None:
    """One line per task, for narrow panes."""
    if not tasks:
        console.print("[dim]No tasks found[/dim]")
        return
    for task in tasks:
        line = Text()
        line.append(f"{task.id:<16} ", style="bold")
        line.append(f"{task.status.value:<12}", style=_STATUS_STYLE[task.status])
        line.append(f"{task.progress:>3}% ")
        line.append(task.title)
        if task.claimed_by:
            line.append(f" ({task.claimed_by})", style="cyan")
        console.print(line)


def render_task(console: Console, task: Task) -> None:
    """Every field of one task."""
    console.print(f"[bold]{task.id}[/bold]: {escape(task.title)}")
    console.print("  Status: ", status_text(task.status), sep="")
    console.print(f"  Priority: [{_PRIORITY_STYLE[task.priority]}]{task.priority.value}[/]")
    if task.description:
        console.print(f"  Description: {escape(task.description)}")
    console.print(f"  Assigned to: {task.assigned_to or '-'}")
    console.print(f"  Claimed by: {task.claimed_by or '-'}")
    console.print(f"  Progress: {task.progress}%")
    if task.blocked_reason:
        console.print(f"  Blocked: [red]{escape(task.blocked_reason)}[/red]")
    if task.dependencies:
        console.print(f"  Depends on: {', '.join(task.dependencies)}")
    if task.tags:
        console.print(f"  Tags: {', '.join(task.tags)}")
    console.print(f"  Created: {task.created_at.isoformat()}")
    for label, stamp in (
        ("Claimed", task.claimed_at),
        ("Started", task.started_at),
        ("Completed", task.completed_at),
    ):
        if stamp is not None:
            console.print(f"  {label}: {stamp.isoformat()}")
    console.print(f"  Updated: {task.updated_at.isoformat()}")


def render_statistics(console: Console, stats: TaskStatistics) -> None:
    table = Table(title="Task Statistics")
    table.add_column("Status", style="bold")
    table.add_column("Count", justify="right")
    for status in TaskStatus:
        table.add_row(status_text(status), str(getattr(stats, status.value)))
    table.add_row("total", str(stats.total), style="bold")
    console.print(table)
    console.print(
        f"Completion: {stats.completion_percentage:.1f}%  Active: {stats.active_count}"
    )


def message_header(message: Message, viewer: str | None = None) -> Text:
    """Type badge, sender and recipient badge, timestamp."""
    label, style = _TYPE_BADGE[message.message_type]
    header = Text()
    header.append(label, style=style)
    header.append(" ")
    header.append(message.sender, style="bold yellow" if message.sender == "system" else "cyan")
    header.append(" ")
    if message.is_broadcast:
        header.append("[BROADCAST]", style="yellow")
    elif viewer is not None and message.recipient == viewer:
        header.append("[DIRECT]", style="green")
    else:
        header.append(f"[TO: {message.recipient}]", style="green" if viewer is None else "dim")
    header.append(" ")
    header.append(message.timestamp.isoformat(timespec="seconds"), style="dim")
    return header


def render_messages(
    console: Console,
    messages: Iterable[Message],
    viewer: str | None = None,
    empty: str = "No messages",
) -> None:
    messages = list(messages)
    if not messages:
        console.print(f"[dim]{empty}[/dim]")
        return
    for message in messages:
        console.print(message_header(message, viewer))
        console.print(f"  {message.content}", markup=False, highlight=False)
        if message.context.git_branch:
            console.print(f"  [dim]on {escape(message.context.git_branch)}[/dim]")
        console.print()
    console.print(f"[green]Displayed {len(messages)} message(s)[/green]")
