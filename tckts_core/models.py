"""Entity model for tckts - tickets, history, and the Project aggregate.

A Project owns its tickets exclusively. Every mutation goes through a
Project method so the limits and invariants hold after each call:

- ticket numbers are unique and never reassigned (``next_number`` only grows)
- removing a ticket purges its id from every same-project ``depends`` list
- when ``history`` is non-empty its last entry matches ``status``
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from tckts_core.constants import (
    MAX_DEPENDENCIES_PER_TICKET,
    MAX_DESCRIPTION_LENGTH_BYTES,
    MAX_PREFIX_LENGTH_BYTES,
    MAX_TICKETS_PER_PROJECT,
    MAX_TITLE_LENGTH_BYTES,
)
from tckts_core.dependencies import blocking_dependencies
from tckts_core.exceptions import (
    AlreadyDone,
    DependencyNotComplete,
    DescriptionTooLong,
    InvalidPriority,
    InvalidStatus,
    InvalidTicketType,
    PrefixTooLong,
    TicketNotFound,
    TitleTooLong,
    TooManyDependencies,
    TooManyTickets,
)
from tckts_core.ids import TicketId
from tckts_core.utils import byte_length, get_iso_timestamp

__all__ = [
    "TicketType",
    "Status",
    "Priority",
    "LEGACY_STATUSES",
    "HistoryEntry",
    "Ticket",
    "Project",
]


class TicketType(str, Enum):
    """Kind of work a ticket tracks."""

    BUG = "bug"
    FEATURE = "feature"
    TASK = "task"
    CHORE = "chore"
    EPIC = "epic"


class Status(str, Enum):
    """Ticket lifecycle states."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DONE = "done"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# The block-text format only knows these two
LEGACY_STATUSES = frozenset({Status.PENDING, Status.DONE})


@dataclass(frozen=True)
class HistoryEntry:
    """A past status value and the UTC time it was set."""

    status: Status
    at: str


@dataclass
class Ticket:
    """A single work item, owned by its Project."""

    id: TicketId
    ticket_type: TicketType
    status: Status
    title: str
    created_at: str
    depends: List[TicketId] = field(default_factory=list)
    priority: Optional[Priority] = None
    description: str = ""
    history: List[HistoryEntry] = field(default_factory=list)

    @property
    def number(self) -> int:
        return self.id.number

    @property
    def is_done(self) -> bool:
        return self.status == Status.DONE

    @property
    def started_at(self) -> Optional[str]:
        """Time of the latest transition to in_progress, if any."""
        return self._last_transition(Status.IN_PROGRESS)

    @property
    def completed_at(self) -> Optional[str]:
        """Time of the latest transition to done, if any."""
        return self._last_transition(Status.DONE)

    def _last_transition(self, status: Status) -> Optional[str]:
        for entry in reversed(self.history):
            if entry.status == status:
                return entry.at
        return None


def _check_title(title: str) -> None:
    if byte_length(title) > MAX_TITLE_LENGTH_BYTES:
        raise TitleTooLong(
            f"Title is {byte_length(title)} bytes (max {MAX_TITLE_LENGTH_BYTES})"
        )


def _check_description(description: str) -> None:
    if byte_length(description) > MAX_DESCRIPTION_LENGTH_BYTES:
        raise DescriptionTooLong(
            f"Description is {byte_length(description)} bytes "
            f"(max {MAX_DESCRIPTION_LENGTH_BYTES})"
        )


def _coerce(enum_cls, value, error_cls):
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise error_cls(f"Invalid {enum_cls.__name__} '{value}' (expected one of: {choices})") from None


class Project:
    """Aggregate root: a prefix, its tickets in creation order, and the next number.

    Attributes:
        prefix: Namespace of every ticket id in this project
        tickets: Tickets in insertion (creation) order
        next_number: Number the next added ticket receives
    """

    def __init__(
        self,
        prefix: str,
        tickets: Optional[List[Ticket]] = None,
        next_number: int = 1,
    ):
        if byte_length(prefix) > MAX_PREFIX_LENGTH_BYTES:
            raise PrefixTooLong(
                f"Prefix is {byte_length(prefix)} bytes (max {MAX_PREFIX_LENGTH_BYTES})"
            )
        self.prefix = prefix
        self.tickets: List[Ticket] = list(tickets or [])
        self.next_number = next_number

    @classmethod
    def create(cls, prefix: str) -> "Project":
        """Create an empty project.

        Raises:
            PrefixTooLong: If prefix exceeds MAX_PREFIX_LENGTH_BYTES
        """
        return cls(prefix)

    def __repr__(self) -> str:
        return f"Project(prefix={self.prefix!r}, tickets={len(self.tickets)}, next_number={self.next_number})"

    def __len__(self) -> int:
        return len(self.tickets)

    # --- lookup ---

    def find_by_number(self, number: int) -> Optional[Ticket]:
        for ticket in self.tickets:
            if ticket.id.number == number:
                return ticket
        return None

    def find_by_id(self, ticket_id: TicketId) -> Optional[Ticket]:
        """Find a ticket by full id; ids from another project never match."""
        if ticket_id.prefix != self.prefix:
            return None
        return self.find_by_number(ticket_id.number)

    def get_ticket(self, number: int) -> Ticket:
        """Like find_by_number, but raises TicketNotFound instead of returning None."""
        ticket = self.find_by_number(number)
        if ticket is None:
            raise TicketNotFound(f"Ticket '{self.prefix}-{number}' not found")
        return ticket

    # --- mutation ---

    def add_ticket(
        self,
        ticket_type: TicketType,
        title: str,
        description: str = "",
        depends: Iterable[TicketId] = (),
        priority: Optional[Priority] = None,
    ) -> Ticket:
        """Create a pending ticket and append it to the project.

        Args:
            ticket_type: Kind of ticket
            title: Single-line title
            description: Free text body
            depends: Ticket ids this ticket depends on (any project)
            priority: Optional priority

        Returns:
            The newly added ticket

        Raises:
            TitleTooLong: Title over MAX_TITLE_LENGTH_BYTES
            DescriptionTooLong: Description over MAX_DESCRIPTION_LENGTH_BYTES
            TooManyTickets: Project already holds MAX_TICKETS_PER_PROJECT tickets
            TooManyDependencies: More than MAX_DEPENDENCIES_PER_TICKET deps
            InvalidTicketType / InvalidPriority: Unknown enum value

        Notes:
            - Cycles among same-project dependencies are not rejected here;
              see dependencies.find_cycle
            - On failure the project is left unchanged
        """
        depends = list(depends)

        ticket_type = _coerce(TicketType, ticket_type, InvalidTicketType)
        if priority is not None:
            priority = _coerce(Priority, priority, InvalidPriority)
        _check_title(title)
        _check_description(description)
        if len(self.tickets) >= MAX_TICKETS_PER_PROJECT:
            raise TooManyTickets(
                f"Project '{self.prefix}' already has {len(self.tickets)} tickets "
                f"(max {MAX_TICKETS_PER_PROJECT})"
            )
        if len(depends) > MAX_DEPENDENCIES_PER_TICKET:
            raise TooManyDependencies(
                f"Too many dependencies: {len(depends)} (max {MAX_DEPENDENCIES_PER_TICKET})"
            )

        now = get_iso_timestamp()
        ticket = Ticket(
            id=TicketId(self.prefix, self.next_number),
            ticket_type=ticket_type,
            status=Status.PENDING,
            title=title,
            created_at=now,
            depends=depends,
            priority=priority,
            description=description,
            history=[HistoryEntry(Status.PENDING, now)],
        )

        self.tickets.append(ticket)
        self.next_number += 1

        return ticket

    def remove_ticket(self, number: int) -> Ticket:
        """Delete a ticket and drop its id from every remaining depends list.

        Returns:
            The removed ticket

        Raises:
            TicketNotFound: If no ticket has this number
        """
        ticket = self.get_ticket(number)
        self.tickets.remove(ticket)

        for other in self.tickets:
            other.depends = [dep for dep in other.depends if dep != ticket.id]

        return ticket

    def set_status(self, number: int, status: Status) -> Ticket:
        """Change a ticket's status and record the transition in its history.

        Does not check dependencies; use complete_ticket for a guarded
        transition to done.

        Raises:
            TicketNotFound: If no ticket has this number
            InvalidStatus: If status is not a known status
        """
        ticket = self.get_ticket(number)
        status = _coerce(Status, status, InvalidStatus)
        ticket.status = status
        ticket.history.append(HistoryEntry(status, get_iso_timestamp()))
        return ticket

    def set_title(self, number: int, title: str) -> Ticket:
        ticket = self.get_ticket(number)
        _check_title(title)
        ticket.title = title
        return ticket

    def set_description(self, number: int, description: str) -> Ticket:
        ticket = self.get_ticket(number)
        _check_description(description)
        ticket.description = description
        return ticket

    def update_ticket(
        self,
        number: int,
        title: Optional[str] = None,
        description: Optional[str] = None,
        status: Optional[Status] = None,
    ) -> Ticket:
        """Update several fields at once; all values are validated before any is applied.

        Raises:
            TicketNotFound: If no ticket has this number
            TitleTooLong / DescriptionTooLong: If a new value exceeds its limit
            InvalidStatus: If status is not a known status
        """
        ticket = self.get_ticket(number)

        if title is not None:
            _check_title(title)
        if description is not None:
            _check_description(description)
        if status is not None:
            status = _coerce(Status, status, InvalidStatus)

        if title is not None:
            ticket.title = title
        if description is not None:
            ticket.description = description
        if status is not None:
            self.set_status(number, status)

        return ticket

    def mark_in_progress(self, number: int) -> Ticket:
        """Start work on a ticket.

        Raises:
            TicketNotFound: If no ticket has this number
            AlreadyDone: If the ticket is already done
        """
        ticket = self.get_ticket(number)
        if ticket.is_done:
            raise AlreadyDone(f"Ticket '{ticket.id}' is already done")
        return self.set_status(number, Status.IN_PROGRESS)

    def mark_done(self, number: int) -> Ticket:
        """Mark a ticket done without checking its dependencies."""
        return self.set_status(number, Status.DONE)

    def complete_ticket(self, number: int) -> Ticket:
        """Mark a ticket done after checking its same-project dependencies.

        Raises:
            TicketNotFound: If no ticket has this number
            DependencyNotComplete: If any same-project dependency is not done;
                the exception's ``blocking`` lists them
        """
        blocking = blocking_dependencies(self, number)
        if blocking:
            names = ", ".join(str(dep) for dep in blocking)
            raise DependencyNotComplete(
                f"Cannot complete {self.prefix}-{number}: blocked by {names}",
                blocking=blocking,
            )
        return self.mark_done(number)
