"""CLI module for tckts - typer app and all commands."""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, List, Optional

import typer
from typing_extensions import Annotated

from tckts_core.constants import CURRENT_SCHEMA_VERSION
from tckts_core.dependencies import blocking_dependencies, dependents_of, find_cycle
from tckts_core.exceptions import (
    DependencyNotComplete,
    InvalidTicketId,
    ProjectNotFound,
    TcktsError,
)
from tckts_core.ids import TicketId, parse_ticket_id, parse_ticket_id_list
from tckts_core.migrations import run_pending_migrations
from tckts_core.models import Priority, Project, Status, TicketType
from tckts_core.storage import (
    get_lock_path,
    get_project_path,
    get_tckts_dir,
    init_project,
    list_projects,
    load_config_or_default,
    load_project,
    save_project,
    set_default_project,
)
from tckts_core.utils import file_lock, normalize_prefix

__all__ = ["app", "main"]

# Create Typer app
app = typer.Typer(help="tckts - plain-text ticket tracker that lives in your repository")

PRIORITY_MARKERS = {
    Priority.HIGH: " !!!",
    Priority.MEDIUM: " !!",
    Priority.LOW: " !",
}


# --- helpers ---


def _print_available_projects(tckts_dir: Path) -> None:
    projects = list_projects(tckts_dir)
    if projects:
        print(f"Available projects: {', '.join(projects)}")
    else:
        print("No projects initialized. Run 'tckts init <PREFIX>' to create one.")


@contextmanager
def _exit_on_error(tckts_dir: Path) -> Generator[None, None, None]:
    """Turn tckts failures into an error message and exit code 1."""
    try:
        yield
    except DependencyNotComplete as e:
        print(f"Error: {e}")
        for dep in e.blocking:
            print(f"  - {dep}")
        raise typer.Exit(code=1)
    except ProjectNotFound as e:
        print(f"Error: {e}")
        _print_available_projects(tckts_dir)
        raise typer.Exit(code=1)
    except TcktsError as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)


def _parse_id(text: str) -> TicketId:
    try:
        ticket_id = parse_ticket_id(text)
    except InvalidTicketId:
        print(f"Error: Invalid ticket ID '{text}'")
        raise typer.Exit(code=1)
    # Prefixes are stored uppercase
    return TicketId(ticket_id.prefix.upper(), ticket_id.number)


def _resolve_prefix(tckts_dir: Path, project_flag: Optional[str]) -> str:
    """Use --project if given, else the configured default project."""
    if project_flag:
        return normalize_prefix(project_flag)

    default = load_config_or_default(tckts_dir).default_project
    if default:
        return default

    print("Error: Missing required -p/--project option")
    _print_available_projects(tckts_dir)
    print("Tip: Set a default project with 'tckts default <PREFIX>'")
    raise typer.Exit(code=1)


@contextmanager
def _locked_project(tckts_dir: Path, prefix: str) -> Generator[Project, None, None]:
    """Load a project under the tckts lock and save it if the block succeeds."""
    if prefix not in list_projects(tckts_dir):
        raise ProjectNotFound(f"Project '{prefix}' not found")

    with file_lock(get_lock_path(tckts_dir)):
        project = load_project(tckts_dir, prefix)
        yield project
        save_project(tckts_dir, project)


# --- commands ---


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
):
    """Run pending schema migrations before any command."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    if ctx.invoked_subcommand == "migrate":
        return

    tckts_dir = get_tckts_dir()
    if not tckts_dir.is_dir():
        return

    with _exit_on_error(tckts_dir):
        with file_lock(get_lock_path(tckts_dir)):
            migrated = run_pending_migrations(tckts_dir)

    for prefix in migrated:
        print(f"Migrated {prefix} to schema v{CURRENT_SCHEMA_VERSION}")


@app.command()
def init(
    prefix: Annotated[str, typer.Argument(help="Project prefix (A-Z, 0-9, _)")],
    default: Annotated[bool, typer.Option("--default", help="Make this the default project")] = False,
):
    """Initialize a new project with the given prefix."""
    tckts_dir = get_tckts_dir()

    with _exit_on_error(tckts_dir):
        prefix = normalize_prefix(prefix)
        init_project(tckts_dir, prefix)
        if default:
            set_default_project(tckts_dir, prefix)

    print(f"Initialized project '{prefix}' in {get_project_path(tckts_dir, prefix)}")


@app.command()
def add(
    title: Annotated[str, typer.Argument(help="Ticket title")],
    project_flag: Annotated[Optional[str], typer.Option("--project", "-p", help="Project prefix")] = None,
    ticket_type: Annotated[TicketType, typer.Option("--type", "-t", help="Ticket type")] = TicketType.TASK,
    message: Annotated[str, typer.Option("--message", "-m", help="Ticket description")] = "",
    depends: Annotated[Optional[str], typer.Option("--depends", "-d", help="Comma-separated dependency IDs")] = None,
    priority: Annotated[Optional[Priority], typer.Option(help="Priority level")] = None,
):
    """Add a new ticket to a project."""
    tckts_dir = get_tckts_dir()

    with _exit_on_error(tckts_dir):
        prefix = _resolve_prefix(tckts_dir, project_flag)
        dep_ids = [
            TicketId(dep.prefix.upper(), dep.number)
            for dep in parse_ticket_id_list(depends or "")
        ]

        with _locked_project(tckts_dir, prefix) as project:
            cycle = find_cycle(project, project.next_number, dep_ids)
            ticket = project.add_ticket(ticket_type, title, message, dep_ids, priority)

    print(f"Created {ticket.id}: {ticket.title}")
    if ticket.depends:
        print(f"  Depends-on: {', '.join(str(dep) for dep in ticket.depends)}")
    if cycle:
        print(f"Warning: dependency cycle {' -> '.join(str(i) for i in cycle)}")


@app.command(name="list")
def list_cmd(
    prefix: Annotated[Optional[str], typer.Argument(help="Project prefix")] = None,
    show_all: Annotated[bool, typer.Option("--all", "-a", help="Include completed tickets")] = False,
    blocked: Annotated[bool, typer.Option("--blocked", help="Only tickets with open dependencies")] = False,
):
    """List tickets for a project."""
    tckts_dir = get_tckts_dir()

    with _exit_on_error(tckts_dir):
        prefix = _resolve_prefix(tckts_dir, prefix)
        project = load_project(tckts_dir, prefix)

        if not project.tickets:
            print(f"No tickets in project '{prefix}'.")
            return

        print(f"\n{prefix} Tickets:")
        print("-" * 45)

        displayed = 0
        for ticket in project.tickets:
            if not show_all and ticket.is_done:
                continue

            is_blocked = bool(blocking_dependencies(project, ticket.number))
            if blocked and not is_blocked:
                continue

            status_char = "x" if ticket.is_done else " "
            line = f"[{status_char}] {ticket.id} | {ticket.ticket_type.value} | {ticket.title}"
            if ticket.status == Status.IN_PROGRESS:
                line += " [IN PROGRESS]"
            if is_blocked:
                line += " [BLOCKED]"
            if ticket.priority is not None:
                line += PRIORITY_MARKERS[ticket.priority]
            print(line)
            displayed += 1

        if displayed == 0:
            print("No blocked tickets." if blocked else "No pending tickets.")
        print()


@app.command()
def show(ticket_id: Annotated[str, typer.Argument(help="Ticket ID")]):
    """Show ticket details."""
    tckts_dir = get_tckts_dir()
    tid = _parse_id(ticket_id)

    with _exit_on_error(tckts_dir):
        project = load_project(tckts_dir, tid.prefix)
        ticket = project.get_ticket(tid.number)
        blocking = blocking_dependencies(project, tid.number)
        dependents = dependents_of(project, tid.number)

    print()
    print(f"--- {ticket.id} ---")
    print(f"Title:    {ticket.title}")
    print(f"Type:     {ticket.ticket_type.value}")
    print(f"Status:   {ticket.status.value}")
    print(f"Created:  {ticket.created_at}")
    if ticket.priority is not None:
        print(f"Priority: {ticket.priority.value}")
    if ticket.depends:
        deps = []
        for dep in ticket.depends:
            deps.append(f"{dep} (open)" if dep in blocking else str(dep))
        print(f"Depends:  {', '.join(deps)}")
    if dependents:
        print(f"Blocks:   {', '.join(str(t.id) for t in dependents)}")

    if ticket.history:
        print("\nHistory:")
        for entry in ticket.history:
            print(f"  {entry.status.value:<12} {entry.at}")

    if ticket.description:
        print("\nDescription:")
        for line in ticket.description.split("\n"):
            print(f"  {line}")
    print()


@app.command()
def start(ticket_id: Annotated[str, typer.Argument(help="Ticket ID")]):
    """Mark a ticket as in progress."""
    tckts_dir = get_tckts_dir()
    tid = _parse_id(ticket_id)

    with _exit_on_error(tckts_dir):
        with _locked_project(tckts_dir, tid.prefix) as project:
            project.mark_in_progress(tid.number)

    print(f"Started {tid}")


@app.command()
def done(ticket_id: Annotated[str, typer.Argument(help="Ticket ID")]):
    """Mark a ticket as complete. Fails if it has open dependencies."""
    tckts_dir = get_tckts_dir()
    tid = _parse_id(ticket_id)

    with _exit_on_error(tckts_dir):
        with _locked_project(tckts_dir, tid.prefix) as project:
            project.complete_ticket(tid.number)

    print(f"Completed {tid}")


@app.command()
def update(
    ticket_id: Annotated[str, typer.Argument(help="Ticket ID")],
    title: Annotated[Optional[str], typer.Option("--title", "-t", help="New title")] = None,
    description: Annotated[Optional[str], typer.Option("--description", "-d", help="New description")] = None,
    status: Annotated[Optional[Status], typer.Option("--status", "-s", help="New status")] = None,
):
    """Update a ticket's title, description, or status."""
    tckts_dir = get_tckts_dir()
    tid = _parse_id(ticket_id)

    if title is None and description is None and status is None:
        print("Error: At least one of --title, --description, or --status required")
        raise typer.Exit(code=1)

    with _exit_on_error(tckts_dir):
        with _locked_project(tckts_dir, tid.prefix) as project:
            if status == Status.DONE:
                blocking = blocking_dependencies(project, tid.number)
                if blocking:
                    raise DependencyNotComplete(
                        f"Cannot mark {tid} as done: blocked by open dependencies",
                        blocking=blocking,
                    )
            project.update_ticket(tid.number, title=title, description=description, status=status)

    if status is not None:
        print(f"Updated {tid} status to {status.value}")
    else:
        print(f"Updated {tid}")


@app.command(name="rm")
def remove(ticket_id: Annotated[str, typer.Argument(help="Ticket ID")]):
    """Remove a ticket and drop it from other tickets' dependencies."""
    tckts_dir = get_tckts_dir()
    tid = _parse_id(ticket_id)

    with _exit_on_error(tckts_dir):
        with _locked_project(tckts_dir, tid.prefix) as project:
            project.remove_ticket(tid.number)

    print(f"Removed {tid}")


app.command(name="remove", hidden=True)(remove)


@app.command()
def projects():
    """List all initialized projects."""
    tckts_dir = get_tckts_dir()

    prefixes = list_projects(tckts_dir)
    if not prefixes:
        print("No projects initialized. Run 'tckts init <PREFIX>' to create one.")
        return

    config = load_config_or_default(tckts_dir)
    with _exit_on_error(tckts_dir):
        for prefix in prefixes:
            project = load_project(tckts_dir, prefix, config=config)
            open_count = sum(1 for t in project.tickets if not t.is_done)
            marker = "*" if prefix == config.default_project else " "
            print(f"{marker} {prefix:<12} {open_count} open / {len(project.tickets)} total")


@app.command()
def default(
    prefix: Annotated[Optional[str], typer.Argument(help="Project prefix")] = None,
    clear: Annotated[bool, typer.Option("--clear", help="Unset the default project")] = False,
):
    """Show or set the default project."""
    tckts_dir = get_tckts_dir()

    with _exit_on_error(tckts_dir):
        if clear:
            set_default_project(tckts_dir, None)
            print("Cleared default project")
        elif prefix is None:
            current = load_config_or_default(tckts_dir).default_project
            print(current if current else "No default project set")
        else:
            prefix = normalize_prefix(prefix)
            set_default_project(tckts_dir, prefix)
            print(f"Default project set to '{prefix}'")


@app.command()
def migrate(
    force: Annotated[bool, typer.Option("--force", help="Skip the git safety check")] = False,
):
    """Upgrade project files to the current schema version."""
    tckts_dir = get_tckts_dir()

    migrated: List[str] = []
    if tckts_dir.is_dir():
        with _exit_on_error(tckts_dir):
            with file_lock(get_lock_path(tckts_dir)):
                migrated = run_pending_migrations(tckts_dir, force=force)

    if not migrated:
        print(f"All projects are at schema v{CURRENT_SCHEMA_VERSION}")
    for prefix in migrated:
        print(f"Migrated {prefix} to schema v{CURRENT_SCHEMA_VERSION}")


def main():
    """Main CLI entry point."""
    app()
