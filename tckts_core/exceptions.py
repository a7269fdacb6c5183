"""Custom exceptions for tckts."""

from typing import List, Optional

__all__ = [
    "TcktsError",
    "ValidationError",
    "TitleTooLong",
    "DescriptionTooLong",
    "TooManyTickets",
    "TooManyDependencies",
    "PrefixTooLong",
    "InvalidPrefix",
    "InvalidTicketId",
    "InvalidTicketType",
    "InvalidStatus",
    "InvalidPriority",
    "NotFoundError",
    "TicketNotFound",
    "ProjectNotFound",
    "ProjectAlreadyExists",
    "StateError",
    "AlreadyDone",
    "DependencyNotComplete",
    "FormatError",
    "InvalidHeader",
    "InvalidJson",
    "MissingRequiredField",
    "InvalidFormat",
    "ConfigError",
    "ConfigNotFound",
    "InvalidConfig",
    "MigrationError",
    "NotGitRepo",
    "UncommittedChanges",
    "MigrationFailed",
    "LockError",
]


class TcktsError(Exception):
    """Base class for every failure raised by tckts_core."""

    pass


# Validation: the single operation is rejected, state is unchanged


class ValidationError(TcktsError):
    """Raised when input exceeds a limit or is malformed."""

    pass


class TitleTooLong(ValidationError):
    pass


class DescriptionTooLong(ValidationError):
    pass


class TooManyTickets(ValidationError):
    pass


class TooManyDependencies(ValidationError):
    pass


class PrefixTooLong(ValidationError):
    pass


class InvalidPrefix(ValidationError):
    """Raised when a prefix is empty or contains characters other than A-Z, 0-9, _."""

    pass


class InvalidTicketId(ValidationError):
    """Raised when text is not a PREFIX-NUMBER ticket id."""

    pass


class InvalidTicketType(ValidationError):
    pass


class InvalidStatus(ValidationError):
    pass


class InvalidPriority(ValidationError):
    pass


# Lookup


class NotFoundError(TcktsError):
    pass


class TicketNotFound(NotFoundError):
    pass


class ProjectNotFound(NotFoundError):
    pass


class ProjectAlreadyExists(TcktsError):
    pass


# Status transitions


class StateError(TcktsError):
    pass


class AlreadyDone(StateError):
    """Raised when starting a ticket that is already done."""

    pass


class DependencyNotComplete(StateError):
    """Raised when completing a ticket with open same-project dependencies.

    Attributes:
        blocking: Ticket ids that are not done yet, in ``depends`` order
    """

    def __init__(self, message: str, blocking: Optional[List] = None):
        super().__init__(message)
        self.blocking = list(blocking or [])


# Format: the whole file fails to parse


class FormatError(TcktsError):
    """Raised when a project file cannot be decoded.

    Attributes:
        line: 1-based line number of the offending line, if known
    """

    def __init__(self, message: str, line: Optional[int] = None):
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
        self.line = line


class InvalidHeader(FormatError):
    pass


class InvalidJson(FormatError):
    pass


class MissingRequiredField(FormatError):
    pass


class InvalidFormat(FormatError):
    pass


# Config


class ConfigError(TcktsError):
    pass


class ConfigNotFound(ConfigError):
    pass


class InvalidConfig(ConfigError):
    pass


# Migration: fatal to the whole command


class MigrationError(TcktsError):
    pass


class NotGitRepo(MigrationError):
    pass


class UncommittedChanges(MigrationError):
    pass


class MigrationFailed(MigrationError):
    pass


class LockError(TcktsError):
    """Raised when unable to acquire file lock."""

    pass
