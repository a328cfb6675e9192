"""Command-line interface for agentcolony."""

from __future__ import annotations

import argparse
import subprocess
import sys
from collections.abc import Sequence
from pathlib import Path

from rich.console import Console

from agentcolony import board
from agentcolony.config import Config, load_config
from agentcolony.coordination import CoordinationFacade
from agentcolony.errors import CoordinationError, ValidationError
from agentcolony.logging import get_logger, setup_logging
from agentcolony.messaging import MessageContext, MessageType
from agentcolony.tasks import TaskPriority, TaskStatus

log = get_logger("cli")


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from None
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0: {value!r}")
    return number


def _csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="colony",
        description="Shared task queue and mailboxes for cooperating agents",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )
    parser.add_argument(
        "--root",
        type=Path,
        help="Coordination root (default: .colony in the current directory)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Extra config file, applied after user and project config",
    )
    parser.add_argument(
        "--retries",
        type=_non_negative_int,
        help="Retry budget for contended task updates",
    )

    groups = parser.add_subparsers(dest="group", help="Command group")

    # Tasks
    tasks = groups.add_parser("tasks", help="Manage the task queue")
    task_commands = tasks.add_subparsers(dest="command", help="Task command")

    create = task_commands.add_parser("create", help="Create a pending task")
    create.add_argument("id", help="Unique task id")
    create.add_argument("title", help="Short title")
    create.add_argument("description", nargs="?", default="", help="Longer description")
    create.add_argument("--assigned-to", help="Agent id, or 'auto' for any agent")
    create.add_argument(
        "--priority",
        default=TaskPriority.MEDIUM.value,
        help="low, medium, high or critical (default: medium)",
    )
    create.add_argument("--depends-on", type=_csv, default=[], help="Comma-separated task ids")
    create.add_argument("--tags", type=_csv, default=[], help="Comma-separated tags")

    claim = task_commands.add_parser("claim", help="Claim a pending task")
    claim.add_argument("id")
    claim.add_argument("agent")

    for name, help_text in (
        ("start", "Start working on a claimed task"),
        ("unblock", "Resume a blocked task"),
        ("complete", "Mark a task completed"),
        ("cancel", "Cancel a task"),
        ("delete", "Delete a task permanently"),
        ("show", "Show one task"),
    ):
        sub = task_commands.add_parser(name, help=help_text)
        sub.add_argument("id")

    progress = task_commands.add_parser("progress", help="Record progress on a task")
    progress.add_argument("id")
    progress.add_argument("progress", type=int, help="Percent complete (0-100)")

    block = task_commands.add_parser("block", help="Block a task")
    block.add_argument("id")
    block.add_argument("reason")

    list_parser = task_commands.add_parser("list", help="List tasks")
    list_parser.add_argument("--status", help="Only tasks in this status")
    list_parser.add_argument("--compact", action="store_true", help="One line per task")

    agent = task_commands.add_parser("agent", help="Tasks held by or assigned to an agent")
    agent.add_argument("agent")

    claimable = task_commands.add_parser("claimable", help="Tasks an agent can claim now")
    claimable.add_argument("agent")

    task_commands.add_parser("stats", help="Task counts per status")

    # Messages
    messages = groups.add_parser("messages", help="Send and read messages")
    message_commands = messages.add_subparsers(dest="command", help="Message command")

    send = message_commands.add_parser("send", help="Send a message to an agent")
    send.add_argument("to", help="Recipient agent id, or 'all' to broadcast")
    send.add_argument("content")
    send.add_argument("--type", default=MessageType.INFO.value, help="Message type (default: info)")
    send.add_argument("--from", dest="sender", help="Sender agent id")

    broadcast = message_commands.add_parser("broadcast", help="Message every agent")
    broadcast.add_argument("content")
    broadcast.add_argument("--type", default=MessageType.INFO.value, help="Message type (default: info)")
    broadcast.add_argument("--from", dest="sender", help="Sender agent id")

    inbox = message_commands.add_parser("list", help="Messages for an agent")
    inbox.add_argument("agent")

    message_commands.add_parser("all", help="Every message in the colony")

    sent = message_commands.add_parser("sent", help="Messages sent by an agent")
    sent.add_argument("agent")

    return parser


def git_branch(cwd: Path) -> str | None:
    """Current git branch of ``cwd``, or None outside a repository."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--abbrev-ref", "HEAD"],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=5,
            check=True,
        )
    except (OSError, subprocess.SubprocessError) as e:
        log.debug("no git branch for %s: %s", cwd, e)
        return None
    branch = result.stdout.strip()
    return branch or None


def _sender(parsed: argparse.Namespace, config: Config) -> str:
    sender = parsed.sender or config.agent.id
    if not sender:
        raise ValidationError(
            "no sender: pass --from, set agent.id in config or COLONY_AGENT_ID"
        )
    return sender


def _run_tasks(parsed: argparse.Namespace, colony: CoordinationFacade, console: Console) -> int:
    command = parsed.command

    if command == "create":
        task = colony.create_task(
            parsed.id,
            parsed.title,
            parsed.description,
            assigned_to=parsed.assigned_to,
            priority=parsed.priority,
            dependencies=parsed.depends_on,
            tags=parsed.tags,
        )
        console.print(f"[green]Created task {task.id}[/green] ({task.priority.value})")
    elif command == "claim":
        task = colony.claim_task(parsed.id, parsed.agent)
        console.print(f"[green]Task {task.id} claimed by {task.claimed_by}[/green]")
    elif command == "start":
        task = colony.start_task(parsed.id)
        console.print(f"[green]Task {task.id} in progress[/green]")
    elif command == "progress":
        task = colony.update_progress(parsed.id, parsed.progress)
        console.print(f"[green]Task {task.id} at {task.progress}%[/green]")
    elif command == "block":
        task = colony.block_task(parsed.id, parsed.reason)
        console.print(f"[yellow]Task {task.id} blocked[/yellow]")
    elif command == "unblock":
        task = colony.unblock_task(parsed.id)
        console.print(f"[green]Task {task.id} resumed as {task.status.value}[/green]")
    elif command == "complete":
        task = colony.complete_task(parsed.id)
        console.print(f"[green]Task {task.id} completed[/green]")
    elif command == "cancel":
        task = colony.cancel_task(parsed.id)
        console.print(f"[yellow]Task {task.id} cancelled[/yellow]")
    elif command == "delete":
        task = colony.delete_task(parsed.id)
        console.print(f"[yellow]Task {task.id} deleted[/yellow]")
    elif command == "show":
        board.render_task(console, colony.get_task(parsed.id))
    elif command == "list":
        status = TaskStatus.parse(parsed.status) if parsed.status else None
        tasks = colony.list_tasks(status)
        if parsed.compact:
            board.render_compact(console, tasks)
        else:
            board.render_tasks(console, tasks)
    elif command == "agent":
        board.render_tasks(console, colony.agent_tasks(parsed.agent), title=f"Tasks for {parsed.agent}")
    elif command == "claimable":
        board.render_tasks(
            console,
            colony.claimable_tasks(parsed.agent),
            title=f"Claimable by {parsed.agent}",
        )
    elif command == "stats":
        board.render_statistics(console, colony.task_statistics())
    else:
        return 2
    return 0


def _run_messages(
    parsed: argparse.Namespace,
    colony: CoordinationFacade,
    config: Config,
    console: Console,
) -> int:
    command = parsed.command

    if command in ("send", "broadcast"):
        sender = _sender(parsed, config)
        cwd = Path.cwd()
        context = MessageContext(project_dir=str(cwd), git_branch=git_branch(cwd))
        if command == "broadcast":
            message = colony.broadcast(sender, parsed.content, parsed.type, context)
        else:
            message = colony.send_message(sender, parsed.to, parsed.content, parsed.type, context)
        target = "all agents" if message.is_broadcast else message.recipient
        console.print(f"[green]Sent {message.id} to {target}[/green]")
    elif command == "list":
        board.render_messages(
            console,
            colony.read_messages(parsed.agent),
            viewer=parsed.agent,
            empty=f"No messages for agent '{parsed.agent}'",
        )
    elif command == "all":
        board.render_messages(console, colony.all_messages(), empty="No messages in the colony")
    elif command == "sent":
        board.render_messages(
            console,
            colony.sent_messages(parsed.agent),
            empty=f"No messages sent by '{parsed.agent}'",
        )
    else:
        return 2
    return 0


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    try:
        parsed = parser.parse_args(args)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 2

    if parsed.group is None or parsed.command is None:
        parser.print_help()
        return 2

    console = Console()
    try:
        project_dir = Path.cwd()
        config = load_config(project_dir=project_dir, config_path=parsed.config)
        if parsed.verbose:
            config.logging.verbose = min(1 + parsed.verbose, 4)
        setup_logging(config.logging)

        if parsed.root is not None:
            config.store.root = str(parsed.root)
        if parsed.retries is not None:
            config.claims.max_retries = parsed.retries
        colony = CoordinationFacade.from_config(config, project_dir)

        if parsed.group == "tasks":
            return _run_tasks(parsed, colony, console)
        return _run_messages(parsed, colony, config, console)
    except CoordinationError as e:
        log.debug("%s failed: %s", parsed.command, e)
        print(f"error[{e.kind}]: {e.message}", file=sys.stderr)
        return 1


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the colony CLI."""
    return run_cli(sys.argv[1:] if argv is None else argv)
