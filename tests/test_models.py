"""Tests for the Project aggregate: limits, numbering, removal, status history."""

import pytest


def test_create_project_starts_numbering_at_one():
    from tckts_core import Project

    project = Project.create("TEST")

    assert project.prefix == "TEST"
    assert project.tickets == []
    assert project.next_number == 1


def test_create_project_rejects_long_prefix():
    from tckts_core import Project, PrefixTooLong

    Project.create("A" * 32)
    with pytest.raises(PrefixTooLong):
        Project.create("A" * 33)


def test_add_ticket_assigns_fields(clock):
    """New tickets are pending, numbered, stamped, and have one history entry."""
    from tckts_core import Project, TicketType, Status, Priority, TicketId

    project = Project.create("TEST")
    ticket = project.add_ticket(TicketType.TASK, "Test ticket", "Description", priority=Priority.HIGH)

    assert ticket.id == TicketId("TEST", 1)
    assert ticket.title == "Test ticket"
    assert ticket.description == "Description"
    assert ticket.status == Status.PENDING
    assert ticket.ticket_type == TicketType.TASK
    assert ticket.priority == Priority.HIGH
    assert ticket.created_at == "2024-12-23T10:30:00Z"
    assert [(e.status, e.at) for e in ticket.history] == [(Status.PENDING, "2024-12-23T10:30:00Z")]
    assert project.next_number == 2


def test_add_ticket_accepts_enum_values_as_strings():
    from tckts_core import Project, TicketType, Priority

    project = Project.create("TEST")
    ticket = project.add_ticket("bug", "Crash", priority="low")

    assert ticket.ticket_type == TicketType.BUG
    assert ticket.priority == Priority.LOW


def test_find_by_number_and_id():
    from tckts_core import Project, TicketType, TicketId

    project = Project.create("ABC")
    project.add_ticket(TicketType.TASK, "Test")

    assert project.find_by_number(1).title == "Test"
    assert project.find_by_number(999) is None
    assert project.find_by_id(TicketId("ABC", 1)) is not None
    assert project.find_by_id(TicketId("XYZ", 1)) is None


def test_title_limit_counts_bytes():
    """280 bytes is allowed, 281 is not; multibyte characters count per byte."""
    from tckts_core import Project, TicketType, TitleTooLong

    project = Project.create("TEST")
    project.add_ticket(TicketType.TASK, "x" * 280)

    with pytest.raises(TitleTooLong):
        project.add_ticket(TicketType.TASK, "x" * 281)
    with pytest.raises(TitleTooLong):
        project.add_ticket(TicketType.TASK, "é" * 141)

    assert len(project.tickets) == 1
    assert project.next_number == 2


def test_description_limit():
    from tckts_core import Project, TicketType, DescriptionTooLong

    project = Project.create("TEST")
    project.add_ticket(TicketType.TASK, "ok", "d" * 64 * 1024)

    with pytest.raises(DescriptionTooLong):
        project.add_ticket(TicketType.TASK, "too long", "d" * (64 * 1024 + 1))


def test_dependency_limit():
    from tckts_core import Project, TicketType, TicketId, TooManyDependencies

    project = Project.create("TEST")
    project.add_ticket(TicketType.TASK, "ok", depends=[TicketId("OTHER", n) for n in range(100)])

    with pytest.raises(TooManyDependencies):
        project.add_ticket(TicketType.TASK, "too many", depends=[TicketId("OTHER", n) for n in range(101)])
    assert len(project.tickets) == 1


def test_ticket_count_limit(monkeypatch):
    from tckts_core import Project, TicketType, TooManyTickets

    monkeypatch.setattr("tckts_core.models.MAX_TICKETS_PER_PROJECT", 3)
    project = Project.create("TEST")
    for i in range(3):
        project.add_ticket(TicketType.TASK, f"Ticket {i}")

    with pytest.raises(TooManyTickets):
        project.add_ticket(TicketType.TASK, "One too many")
    assert project.next_number == 4


def test_remove_ticket():
    from tckts_core import Project, TicketType

    project = Project.create("TEST")
    project.add_ticket(TicketType.TASK, "Ticket 1")
    project.add_ticket(TicketType.BUG, "Ticket 2")

    removed = project.remove_ticket(1)

    assert removed.title == "Ticket 1"
    assert [t.id.number for t in project.tickets] == [2]


def test_remove_missing_ticket():
    from tckts_core import Project, TicketNotFound

    project = Project.create("TEST")

    with pytest.raises(TicketNotFound):
        project.remove_ticket(999)


def test_remove_cascades_to_depends():
    """Removing a ticket drops it from every same-project depends list."""
    from tckts_core import Project, TicketType, TicketId

    project = Project.create("TEST")
    project.add_ticket(TicketType.TASK, "A")
    project.add_ticket(TicketType.TASK, "B", depends=[TicketId("TEST", 1)])
    project.add_ticket(
        TicketType.TASK, "C", depends=[TicketId("TEST", 1), TicketId("OTHER", 1), TicketId("TEST", 2)]
    )

    project.remove_ticket(1)

    assert project.find_by_number(2).depends == []
    assert project.find_by_number(3).depends == [TicketId("OTHER", 1), TicketId("TEST", 2)]


def test_numbers_are_never_reused():
    from tckts_core import Project, TicketType

    project = Project.create("TEST")
    for title in ("one", "two", "three"):
        project.add_ticket(TicketType.TASK, title)

    project.remove_ticket(2)
    ticket = project.add_ticket(TicketType.TASK, "four")

    assert ticket.id.number == 4


def test_set_status_appends_history(clock):
    from tckts_core import Project, TicketType, Status

    project = Project.create("TEST")
    project.add_ticket(TicketType.TASK, "Work")

    project.set_status(1, Status.IN_PROGRESS)
    project.set_status(1, Status.BLOCKED)
    ticket = project.set_status(1, "done")

    assert ticket.status == Status.DONE
    assert [e.status for e in ticket.history] == [
        Status.PENDING, Status.IN_PROGRESS, Status.BLOCKED, Status.DONE,
    ]
    assert ticket.history[-1].status == ticket.status
    assert ticket.started_at == "2024-12-23T10:30:01Z"
    assert ticket.completed_at == "2024-12-23T10:30:03Z"


def test_set_status_missing_ticket():
    from tckts_core import Project, Status, TicketNotFound

    with pytest.raises(TicketNotFound):
        Project.create("TEST").set_status(5, Status.DONE)


def test_set_title_and_description_revalidate():
    from tckts_core import Project, TicketType, TitleTooLong, DescriptionTooLong

    project = Project.create("TEST")
    ticket = project.add_ticket(TicketType.TASK, "Old")

    project.set_title(1, "New")
    project.set_description(1, "Body")
    with pytest.raises(TitleTooLong):
        project.set_title(1, "x" * 281)
    with pytest.raises(DescriptionTooLong):
        project.set_description(1, "x" * (64 * 1024 + 1))

    assert ticket.title == "New"
    assert ticket.description == "Body"
    assert len(ticket.history) == 1


def test_update_ticket_is_all_or_nothing():
    from tckts_core import Project, TicketType, Status, TitleTooLong

    project = Project.create("TEST")
    ticket = project.add_ticket(TicketType.TASK, "Title", "Body")

    with pytest.raises(TitleTooLong):
        project.update_ticket(1, title="x" * 281, description="changed", status=Status.DONE)

    assert ticket.description == "Body"
    assert ticket.status == Status.PENDING

    project.update_ticket(1, description="changed", status=Status.IN_PROGRESS)
    assert ticket.description == "changed"
    assert ticket.status == Status.IN_PROGRESS


def test_mark_in_progress_rejects_done_ticket():
    from tckts_core import Project, TicketType, Status, AlreadyDone

    project = Project.create("TEST")
    project.add_ticket(TicketType.TASK, "Work")
    assert project.mark_in_progress(1).status == Status.IN_PROGRESS

    project.mark_done(1)
    with pytest.raises(AlreadyDone):
        project.mark_in_progress(1)


def test_mark_done_missing_ticket():
    from tckts_core import Project, TicketNotFound

    with pytest.raises(TicketNotFound):
        Project.create("TEST").mark_done(999)


def test_complete_ticket_checks_dependencies():
    from tckts_core import Project, TicketType, TicketId, Status, DependencyNotComplete

    project = Project.create("TEST")
    project.add_ticket(TicketType.TASK, "First")
    project.add_ticket(TicketType.TASK, "Second", depends=[TicketId("TEST", 1)])

    with pytest.raises(DependencyNotComplete) as exc_info:
        project.complete_ticket(2)

    assert exc_info.value.blocking == [TicketId("TEST", 1)]
    assert project.find_by_number(2).status == Status.PENDING

    project.complete_ticket(1)
    assert project.complete_ticket(2).status == Status.DONE


def test_set_status_does_not_check_dependencies():
    """The unguarded transition allows done with an open dependency."""
    from tckts_core import Project, TicketType, TicketId, Status

    project = Project.create("TEST")
    project.add_ticket(TicketType.TASK, "First")
    project.add_ticket(TicketType.TASK, "Second", depends=[TicketId("TEST", 1)])

    assert project.set_status(2, Status.DONE).status == Status.DONE


def test_add_ticket_rejects_unknown_type_and_priority():
    from tckts_core import Project, TicketType, InvalidTicketType, InvalidPriority, ValidationError

    project = Project.create("TEST")

    with pytest.raises(InvalidTicketType):
        project.add_ticket("story", "Unknown type")
    with pytest.raises(InvalidPriority):
        project.add_ticket(TicketType.TASK, "Unknown priority", priority="urgent")
    with pytest.raises(ValidationError):
        project.add_ticket("story", "Still a validation error")

    assert project.tickets == []
    assert project.next_number == 1


def test_set_status_rejects_unknown_status():
    from tckts_core import Project, TicketType, Status, InvalidStatus, TcktsError

    project = Project.create("TEST")
    ticket = project.add_ticket(TicketType.TASK, "Work")

    with pytest.raises(InvalidStatus):
        project.set_status(1, "archived")
    with pytest.raises(TcktsError):
        project.set_status(1, "archived")

    assert ticket.status == Status.PENDING
    assert len(ticket.history) == 1


def test_update_ticket_rejects_unknown_status_before_applying():
    from tckts_core import Project, TicketType, InvalidStatus

    project = Project.create("TEST")
    ticket = project.add_ticket(TicketType.TASK, "Title")

    with pytest.raises(InvalidStatus):
        project.update_ticket(1, title="Changed", status="archived")

    assert ticket.title == "Title"
    assert len(ticket.history) == 1
