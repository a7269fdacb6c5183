"""Dependency checks for tckts - blocking dependencies, dependents, cycles.

Only same-project edges are examined. A dependency on another project's
ticket is skipped here; callers that care must load that project and run
the same check against it.
"""

from typing import TYPE_CHECKING, Iterable, List, Optional

from tckts_core.ids import TicketId

if TYPE_CHECKING:
    from tckts_core.models import Project, Ticket

__all__ = [
    "blocking_dependencies",
    "is_blocked",
    "dependents_of",
    "find_cycle",
]


def blocking_dependencies(project: "Project", number: int) -> List[TicketId]:
    """Get same-project dependencies of a ticket that are not done yet.

    Args:
        project: Project owning the ticket
        number: Ticket number

    Returns:
        Blocking ticket ids, in the ticket's ``depends`` order

    Raises:
        TicketNotFound: If the ticket does not exist

    Notes:
        - Dependencies pointing at a missing ticket are not blocking
        - Cross-project dependencies are excluded
    """
    ticket = project.get_ticket(number)

    blocking = []
    for dep in ticket.depends:
        if dep.prefix != project.prefix:
            continue
        dep_ticket = project.find_by_number(dep.number)
        if dep_ticket is not None and not dep_ticket.is_done:
            blocking.append(dep)

    return blocking


def is_blocked(project: "Project", number: int) -> bool:
    """Check if a ticket has at least one open same-project dependency."""
    return len(blocking_dependencies(project, number)) > 0


def dependents_of(project: "Project", number: int) -> List["Ticket"]:
    """Get tickets in the project that depend on the given ticket number."""
    target = TicketId(project.prefix, number)
    return [ticket for ticket in project.tickets if target in ticket.depends]


def find_cycle(
    project: "Project",
    number: int,
    depends: Optional[Iterable[TicketId]] = None,
) -> Optional[List[TicketId]]:
    """Detect whether a ticket's dependencies lead back to the ticket itself.

    Args:
        project: Project to search
        number: Ticket number at the start of the search (need not exist yet)
        depends: Proposed dependencies of that ticket; defaults to its current ones

    Returns:
        The cycle as a list of ids starting and ending with the ticket,
        or None if there is no cycle

    Example:
        With 2 depending on 1, giving 1 the dependency 2 returns
        [P-1, P-2, P-1].
    """
    start = TicketId(project.prefix, number)

    if depends is None:
        ticket = project.find_by_number(number)
        depends = ticket.depends if ticket is not None else []

    visited = set()
    # Depth-first search over (node, path) pairs
    stack = [(dep, [start, dep]) for dep in reversed(list(depends))]

    while stack:
        current, path = stack.pop()

        if current.prefix != project.prefix:
            continue
        if current == start:
            return path
        if current in visited:
            continue
        visited.add(current)

        current_ticket = project.find_by_number(current.number)
        if current_ticket is None:
            continue

        for dep in reversed(current_ticket.depends):
            stack.append((dep, path + [dep]))

    return None
