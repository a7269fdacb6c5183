"""Ticket identifiers for tckts - PREFIX-NUMBER parsing and formatting."""

from dataclasses import dataclass
from typing import List

from tckts_core.exceptions import InvalidTicketId

__all__ = [
    "TicketId",
    "parse_ticket_id",
    "format_ticket_id",
    "parse_ticket_id_list",
]


@dataclass(frozen=True)
class TicketId:
    """Identifier of a ticket: project prefix plus per-project number.

    Equality and hashing are structural, so ``TicketId("A", 1) == TicketId("A", 1)``.
    """

    prefix: str
    number: int

    @classmethod
    def parse(cls, text: str) -> "TicketId":
        return parse_ticket_id(text)

    def __str__(self) -> str:
        return format_ticket_id(self)


def parse_ticket_id(text: str) -> TicketId:
    """Parse a ticket ID of the form PREFIX-NUMBER.

    The split happens on the last hyphen so prefixes that contain hyphens
    parse correctly.

    Args:
        text: Ticket ID text (e.g., "BACKEND-123")

    Returns:
        Parsed TicketId

    Raises:
        InvalidTicketId: If the dash is missing, first or last, or the
            suffix is not a non-negative decimal integer

    Examples:
        >>> parse_ticket_id("BACKEND-123")
        TicketId(prefix='BACKEND', number=123)
        >>> parse_ticket_id("MY-PROJECT-42")
        TicketId(prefix='MY-PROJECT', number=42)
    """
    dash_idx = text.rfind("-")
    if dash_idx <= 0 or dash_idx == len(text) - 1:
        raise InvalidTicketId(f"Invalid ticket ID '{text}': expected PREFIX-NUMBER")

    prefix = text[:dash_idx]
    number_str = text[dash_idx + 1:]

    # isdigit() alone accepts non-ASCII digits such as "²"
    if not (number_str.isascii() and number_str.isdigit()):
        raise InvalidTicketId(f"Invalid ticket ID '{text}': '{number_str}' is not a number")

    return TicketId(prefix=prefix, number=int(number_str))


def format_ticket_id(ticket_id: TicketId) -> str:
    """Format a ticket ID as PREFIX-NUMBER, without zero padding."""
    return f"{ticket_id.prefix}-{ticket_id.number}"


def parse_ticket_id_list(text: str) -> List[TicketId]:
    """Parse a comma-separated list of ticket IDs.

    Blank items are skipped, so "A-1, ,A-2," yields two ids.

    Raises:
        InvalidTicketId: If any item is not a valid ticket ID
    """
    ids = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        ids.append(parse_ticket_id(part))
    return ids
