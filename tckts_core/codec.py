"""Format codec for tckts - JSONL and legacy block-text project files.

Three on-disk shapes exist:

- legacy block text (schema v1 fields), starting with a header line::

      # tckts | prefix: BACKEND | version: 1
      ---
      id: BACKEND-1
      type: task
      status: pending
      title: Set up database
      created_at: 2024-12-23T10:30:00Z

      Free-form description.
      \\--- a description line that starts with three dashes
      ---

- JSONL v1: one ticket object per line with ``started_at``/``completed_at``
- JSONL v2 (current): one ticket object per line with ``history``

Decoding happens in two stages. ``read_records`` turns either encoding into
plain record dicts; ``ticket_from_record`` normalizes a record of a given
schema version into a Ticket. Encoding always produces JSONL v2 unless the
block-text writer is asked for explicitly.
"""

import json
import re
from typing import Any, Dict, List, Optional

from tckts_core.constants import (
    BLOCK_DELIMITER,
    BLOCK_HEADER_PREFIX,
    CURRENT_SCHEMA_VERSION,
)
from tckts_core.exceptions import (
    InvalidFormat,
    InvalidHeader,
    InvalidJson,
    InvalidTicketId,
    MissingRequiredField,
)
from tckts_core.ids import TicketId, parse_ticket_id
from tckts_core.models import (
    LEGACY_STATUSES,
    HistoryEntry,
    Priority,
    Project,
    Status,
    Ticket,
    TicketType,
)

__all__ = [
    "ENCODING_JSONL",
    "ENCODING_TEXT",
    "REQUIRED_FIELDS",
    "detect_encoding",
    "read_records",
    "write_records",
    "legacy_history",
    "ticket_from_record",
    "ticket_to_record",
    "parse_project",
    "serialize_project",
    "parse_block_text",
    "serialize_block_text",
    "escape_description_line",
    "unescape_description_line",
]

ENCODING_JSONL = "jsonl"
ENCODING_TEXT = "text"

REQUIRED_FIELDS = ("id", "type", "status", "title", "created_at")

# Field order of a serialized ticket; absent keys are skipped
_V1_FIELD_ORDER = (
    "id", "type", "status", "title", "created_at", "started_at",
    "completed_at", "depends", "priority", "description",
)
_V2_FIELD_ORDER = (
    "id", "type", "status", "title", "created_at", "history",
    "depends", "priority", "description",
)

_HEADER_RE = re.compile(
    r"^# tckts \| prefix: (?P<prefix>\S+) \| version: (?P<version>\d+)\s*$"
)
_ESCAPED_DELIMITER_RE = re.compile(r"^\\*---")
_BLOCK_TEXT_VERSION = 1


# --- encoding detection ---


def detect_encoding(content: str) -> str:
    """Detect which encoding a project file uses.

    Returns:
        ENCODING_TEXT if the first non-blank line is a block-text header,
        otherwise ENCODING_JSONL (an empty file is JSONL)
    """
    for line in content.splitlines():
        if not line.strip():
            continue
        if line.startswith(BLOCK_HEADER_PREFIX):
            return ENCODING_TEXT
        return ENCODING_JSONL
    return ENCODING_JSONL


def read_records(prefix: str, content: str) -> List[Dict[str, Any]]:
    """Decode a project file of either encoding into raw record dicts.

    Args:
        prefix: Expected project prefix
        content: Full file content

    Returns:
        One dict per ticket, in file order, with JSON-level values

    Raises:
        FormatError: If any line or block fails to decode
    """
    if detect_encoding(content) == ENCODING_TEXT:
        return parse_block_text(prefix, content)
    return _read_jsonl_records(content)


def _read_jsonl_records(content: str) -> List[Dict[str, Any]]:
    records = []

    for line_num, line in enumerate(content.split("\n"), 1):
        line = line.strip(" \t\r")
        if not line:
            continue

        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            raise InvalidJson(f"malformed JSON: {e.msg}", line=line_num) from e

        if not isinstance(record, dict):
            raise InvalidJson("ticket line is not a JSON object", line=line_num)

        missing = [key for key in REQUIRED_FIELDS if key not in record]
        if missing:
            raise InvalidJson(
                f"missing required field(s): {', '.join(missing)}", line=line_num
            )

        record["_line"] = line_num
        records.append(record)

    return records


def write_records(records: List[Dict[str, Any]]) -> str:
    """Encode records as JSONL, one compact object per line.

    Keys whose value is None are omitted; keys starting with "_" are
    bookkeeping and never written.
    """
    lines = []
    for record in records:
        data = {
            key: value
            for key, value in record.items()
            if value is not None and not key.startswith("_")
        }
        lines.append(json.dumps(data, ensure_ascii=False, separators=(",", ":")) + "\n")
    return "".join(lines)


# --- record <-> ticket ---


def legacy_history(
    created_at: str,
    started_at: Optional[str] = None,
    completed_at: Optional[str] = None,
    status: Optional[str] = None,
) -> List[Dict[str, str]]:
    """Build a v2 history list from the v1 timestamp fields.

    Creation implies a pending entry; a start time adds in_progress and a
    completion time adds done. If status is given and the trail ends on a
    different status (e.g. done without completed_at), a closing entry for
    status is added at the last known time.
    """
    history = [{"status": Status.PENDING.value, "at": created_at}]
    if started_at:
        history.append({"status": Status.IN_PROGRESS.value, "at": started_at})
    if completed_at:
        history.append({"status": Status.DONE.value, "at": completed_at})
    if status is not None and history[-1]["status"] != status:
        history.append({"status": status, "at": history[-1]["at"]})
    return history


def _require_str(record: Dict[str, Any], key: str, line: Optional[int]) -> str:
    value = record.get(key)
    if not isinstance(value, str):
        raise InvalidJson(f"field '{key}' must be a string", line=line)
    return value


def _optional_str(record: Dict[str, Any], key: str, line: Optional[int]) -> Optional[str]:
    value = record.get(key)
    if value is not None and not isinstance(value, str):
        raise InvalidJson(f"field '{key}' must be a string", line=line)
    return value


def _parse_enum(enum_cls, value: str, key: str, line: Optional[int]):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidJson(f"invalid {key} '{value}'", line=line) from None


def _parse_id(text: str, line: Optional[int]) -> TicketId:
    try:
        return parse_ticket_id(text)
    except InvalidTicketId as e:
        raise InvalidFormat(str(e), line=line) from e


def ticket_from_record(
    record: Dict[str, Any],
    prefix: str,
    version: int = CURRENT_SCHEMA_VERSION,
) -> Ticket:
    """Normalize a decoded record into a Ticket.

    Args:
        record: Record from read_records
        prefix: Project prefix the ticket id must carry
        version: Schema version of the record (1 synthesizes history
            from started_at/completed_at)

    Raises:
        InvalidJson: If a field has the wrong type or an unknown enum value
        InvalidFormat: If an id is malformed or belongs to another project
    """
    line = record.get("_line")

    ticket_id = _parse_id(_require_str(record, "id", line), line)
    if ticket_id.prefix != prefix:
        raise InvalidFormat(
            f"ticket '{ticket_id}' does not belong to project '{prefix}'", line=line
        )

    ticket_type = _parse_enum(TicketType, _require_str(record, "type", line), "type", line)
    status = _parse_enum(Status, _require_str(record, "status", line), "status", line)
    title = _require_str(record, "title", line)
    created_at = _require_str(record, "created_at", line)

    depends_raw = record.get("depends") or []
    if not isinstance(depends_raw, list) or not all(isinstance(d, str) for d in depends_raw):
        raise InvalidJson("field 'depends' must be a list of ticket IDs", line=line)
    depends = [_parse_id(dep, line) for dep in depends_raw]

    priority_raw = _optional_str(record, "priority", line)
    priority = (
        _parse_enum(Priority, priority_raw, "priority", line)
        if priority_raw is not None
        else None
    )

    description = _optional_str(record, "description", line) or ""

    if version < 2:
        history_raw = legacy_history(
            created_at,
            _optional_str(record, "started_at", line),
            _optional_str(record, "completed_at", line),
            status.value,
        )
    else:
        history_raw = record.get("history") or []

    if not isinstance(history_raw, list):
        raise InvalidJson("field 'history' must be a list", line=line)

    history = []
    for entry in history_raw:
        if not isinstance(entry, dict) or "status" not in entry or "at" not in entry:
            raise InvalidJson("history entries need 'status' and 'at'", line=line)
        history.append(
            HistoryEntry(
                status=_parse_enum(Status, entry["status"], "history status", line),
                at=_require_str(entry, "at", line),
            )
        )

    if version >= 2 and history and history[-1].status != status:
        raise InvalidJson(
            f"last history entry is '{history[-1].status.value}' but status is '{status.value}'",
            line=line,
        )

    return Ticket(
        id=ticket_id,
        ticket_type=ticket_type,
        status=status,
        title=title,
        created_at=created_at,
        depends=depends,
        priority=priority,
        description=description,
        history=history,
    )


def ticket_to_record(ticket: Ticket, version: int = CURRENT_SCHEMA_VERSION) -> Dict[str, Any]:
    """Convert a Ticket to a record dict of the given schema version.

    Empty optional fields (no depends, no priority, empty description) are
    left out rather than written as null.
    """
    values: Dict[str, Any] = {
        "id": str(ticket.id),
        "type": ticket.ticket_type.value,
        "status": ticket.status.value,
        "title": ticket.title,
        "created_at": ticket.created_at,
        "depends": [str(dep) for dep in ticket.depends] or None,
        "priority": ticket.priority.value if ticket.priority is not None else None,
        "description": ticket.description or None,
    }

    if version < 2:
        values["started_at"] = ticket.started_at
        values["completed_at"] = ticket.completed_at
        order = _V1_FIELD_ORDER
    else:
        values["history"] = [
            {"status": entry.status.value, "at": entry.at} for entry in ticket.history
        ] or None
        order = _V2_FIELD_ORDER

    return {key: values[key] for key in order if values.get(key) is not None}


# --- project level ---


def parse_project(
    prefix: str,
    content: str,
    version: int = CURRENT_SCHEMA_VERSION,
) -> Project:
    """Parse a project file into a Project.

    Args:
        prefix: Project prefix (from the file name, not the file content)
        content: Full file content, JSONL or block text
        version: Schema version recorded for the project; block text is
            always read as v1

    Returns:
        Project with next_number = highest ticket number + 1

    Raises:
        FormatError: If anything in the file fails to decode; there is no
            partial result
    """
    if detect_encoding(content) == ENCODING_TEXT:
        version = 1

    project = Project(prefix)
    seen = set()

    for record in read_records(prefix, content):
        ticket = ticket_from_record(record, prefix, version)
        if ticket.id.number in seen:
            raise InvalidFormat(
                f"duplicate ticket '{ticket.id}'", line=record.get("_line")
            )
        seen.add(ticket.id.number)
        project.tickets.append(ticket)

    project.next_number = max(seen) + 1 if seen else 1
    return project


def serialize_project(project: Project) -> str:
    """Serialize a Project to JSONL v2.

    Tickets are sorted by created_at ascending (ties keep creation order)
    so output is byte-for-byte deterministic. An empty project serializes
    to an empty string.
    """
    tickets = sorted(project.tickets, key=lambda t: t.created_at)
    return write_records([ticket_to_record(ticket) for ticket in tickets])


# --- legacy block text ---


def escape_description_line(line: str) -> str:
    """Escape a description line that could be mistaken for a block delimiter.

    Lines starting with "---", or with backslashes followed by "---", gain
    one leading backslash so unescaping is exact.
    """
    if _ESCAPED_DELIMITER_RE.match(line):
        return "\\" + line
    return line


def unescape_description_line(line: str) -> str:
    if line.startswith("\\") and _ESCAPED_DELIMITER_RE.match(line):
        return line[1:]
    return line


def _parse_header(prefix: str, line: str) -> None:
    match = _HEADER_RE.match(line)
    if match is None:
        raise InvalidHeader(f"invalid header '{line}'", line=1)
    if match.group("prefix") != prefix:
        raise InvalidHeader(
            f"header prefix '{match.group('prefix')}' does not match '{prefix}'", line=1
        )


def _finish_block(
    prefix: str,
    metadata: Dict[str, str],
    description: List[str],
    start_line: int,
) -> Dict[str, Any]:
    for key in REQUIRED_FIELDS:
        if key not in metadata:
            raise MissingRequiredField(f"missing required field '{key}'", line=start_line)

    if metadata["status"] not in {s.value for s in LEGACY_STATUSES}:
        raise InvalidFormat(
            f"invalid legacy status '{metadata['status']}'", line=start_line
        )
    if metadata["type"] not in {t.value for t in TicketType}:
        raise InvalidFormat(f"invalid type '{metadata['type']}'", line=start_line)
    if metadata.get("priority") and metadata["priority"] not in {p.value for p in Priority}:
        raise InvalidFormat(f"invalid priority '{metadata['priority']}'", line=start_line)

    record: Dict[str, Any] = {
        "id": metadata["id"],
        "type": metadata["type"],
        "status": metadata["status"],
        "title": metadata["title"],
        "created_at": metadata["created_at"],
        "_line": start_line,
    }
    for key in ("started_at", "completed_at", "priority"):
        if metadata.get(key):
            record[key] = metadata[key]

    if metadata.get("depends"):
        record["depends"] = [d.strip() for d in metadata["depends"].split(",") if d.strip()]

    if description:
        record["description"] = "\n".join(description)

    return record


def parse_block_text(prefix: str, content: str) -> List[Dict[str, Any]]:
    """Parse the legacy block-text format into v1 record dicts.

    Raises:
        InvalidHeader: Missing or malformed header, or prefix mismatch
        MissingRequiredField: A block lacks id, type, status, title or created_at
        InvalidFormat: Stray text between blocks, a malformed metadata
            line, a non-legacy status, or an unterminated block
    """
    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines.pop()

    # Skip leading blank lines before the header
    idx = 0
    while idx < len(lines) and not lines[idx].strip():
        idx += 1
    if idx >= len(lines):
        raise InvalidHeader("missing header", line=1)
    _parse_header(prefix, lines[idx].rstrip("\r"))
    idx += 1

    records = []
    state = "between"
    metadata: Dict[str, str] = {}
    description: List[str] = []
    block_start = 0

    for line_num in range(idx + 1, len(lines) + 1):
        line = lines[line_num - 1].rstrip("\r")

        if state == "between":
            if not line.strip():
                continue
            if line != BLOCK_DELIMITER:
                raise InvalidFormat(f"expected '{BLOCK_DELIMITER}', got '{line}'", line=line_num)
            state = "metadata"
            metadata, description, block_start = {}, [], line_num

        elif state == "metadata":
            if line == BLOCK_DELIMITER:
                records.append(_finish_block(prefix, metadata, description, block_start))
                state = "between"
            elif not line.strip():
                state = "description"
            else:
                key, sep, value = line.partition(":")
                if not sep:
                    raise InvalidFormat(f"expected 'key: value', got '{line}'", line=line_num)
                key = key.strip()
                # Titles keep their own padding; only the separator space is dropped
                if value.startswith(" "):
                    value = value[1:]
                metadata[key] = value if key == "title" else value.strip()

        else:
            if line == BLOCK_DELIMITER:
                records.append(_finish_block(prefix, metadata, description, block_start))
                state = "between"
            else:
                description.append(unescape_description_line(line))

    if state != "between":
        raise InvalidFormat("unterminated ticket block", line=block_start)

    return records


def serialize_block_text(project: Project) -> str:
    """Serialize a Project to the legacy block-text format.

    Statuses other than pending and done are written as pending, and
    history is reduced to started_at/completed_at, since the legacy
    format has no room for more.

    Raises:
        InvalidFormat: If a title contains a line break
    """
    out = [f"{BLOCK_HEADER_PREFIX} | prefix: {project.prefix} | version: {_BLOCK_TEXT_VERSION}"]

    for ticket in sorted(project.tickets, key=lambda t: t.created_at):
        if "\n" in ticket.title or "\r" in ticket.title:
            raise InvalidFormat(f"title of '{ticket.id}' contains a line break")

        status = ticket.status if ticket.status in LEGACY_STATUSES else Status.PENDING

        out.append(BLOCK_DELIMITER)
        out.append(f"id: {ticket.id}")
        out.append(f"type: {ticket.ticket_type.value}")
        out.append(f"status: {status.value}")
        out.append(f"title: {ticket.title}")
        out.append(f"created_at: {ticket.created_at}")
        if ticket.started_at:
            out.append(f"started_at: {ticket.started_at}")
        if ticket.completed_at:
            out.append(f"completed_at: {ticket.completed_at}")
        if ticket.depends:
            out.append("depends: " + ", ".join(str(dep) for dep in ticket.depends))
        if ticket.priority is not None:
            out.append(f"priority: {ticket.priority.value}")

        if ticket.description:
            out.append("")
            out.extend(escape_description_line(line) for line in ticket.description.split("\n"))

        out.append(BLOCK_DELIMITER)

    return "\n".join(out) + "\n"
