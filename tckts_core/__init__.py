"""tckts - Plain-text ticket tracker that stores tickets in your repository.

This package provides the core functionality for the tckts ticket store.
Import from here for the public API.
"""

from tckts_core.exceptions import (
    TcktsError,
    ValidationError,
    TitleTooLong,
    DescriptionTooLong,
    TooManyTickets,
    TooManyDependencies,
    PrefixTooLong,
    InvalidPrefix,
    InvalidTicketId,
    InvalidTicketType,
    InvalidStatus,
    InvalidPriority,
    NotFoundError,
    TicketNotFound,
    ProjectNotFound,
    ProjectAlreadyExists,
    StateError,
    AlreadyDone,
    DependencyNotComplete,
    FormatError,
    InvalidHeader,
    InvalidJson,
    MissingRequiredField,
    InvalidFormat,
    ConfigError,
    ConfigNotFound,
    InvalidConfig,
    MigrationError,
    NotGitRepo,
    UncommittedChanges,
    MigrationFailed,
    LockError,
)
from tckts_core.constants import (
    MAX_TITLE_LENGTH_BYTES,
    MAX_DESCRIPTION_LENGTH_BYTES,
    MAX_TICKETS_PER_PROJECT,
    MAX_PREFIX_LENGTH_BYTES,
    MAX_DEPENDENCIES_PER_TICKET,
    CURRENT_SCHEMA_VERSION,
    DEFAULT_TCKTS_DIR,
    TCKTS_DIR_ENV_VAR,
)
from tckts_core.utils import (
    get_iso_timestamp,
    normalize_prefix,
    file_lock,
)
from tckts_core.ids import (
    TicketId,
    parse_ticket_id,
    format_ticket_id,
    parse_ticket_id_list,
)
from tckts_core.models import (
    TicketType,
    Status,
    Priority,
    HistoryEntry,
    Ticket,
    Project,
)
from tckts_core.dependencies import (
    blocking_dependencies,
    is_blocked,
    dependents_of,
    find_cycle,
)
from tckts_core.codec import (
    detect_encoding,
    read_records,
    write_records,
    parse_project,
    serialize_project,
    parse_block_text,
    serialize_block_text,
)
from tckts_core.storage import (
    Config,
    ProjectMeta,
    get_tckts_dir,
    get_project_path,
    list_projects,
    load_config,
    load_config_or_default,
    save_config,
    set_default_project,
    init_project,
    load_project,
    save_project,
)
from tckts_core.migrations import (
    Migration,
    MIGRATIONS,
    GitClient,
    migrate_v1_to_v2,
    check_git_safety,
    migrate_project,
    run_pending_migrations,
)
from tckts_core.cli import app, main

__all__ = [
    # Exceptions
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
    # Constants
    "MAX_TITLE_LENGTH_BYTES",
    "MAX_DESCRIPTION_LENGTH_BYTES",
    "MAX_TICKETS_PER_PROJECT",
    "MAX_PREFIX_LENGTH_BYTES",
    "MAX_DEPENDENCIES_PER_TICKET",
    "CURRENT_SCHEMA_VERSION",
    "DEFAULT_TCKTS_DIR",
    "TCKTS_DIR_ENV_VAR",
    # Utils
    "get_iso_timestamp",
    "normalize_prefix",
    "file_lock",
    # IDs
    "TicketId",
    "parse_ticket_id",
    "format_ticket_id",
    "parse_ticket_id_list",
    # Models
    "TicketType",
    "Status",
    "Priority",
    "HistoryEntry",
    "Ticket",
    "Project",
    # Dependencies
    "blocking_dependencies",
    "is_blocked",
    "dependents_of",
    "find_cycle",
    # Codec
    "detect_encoding",
    "read_records",
    "write_records",
    "parse_project",
    "serialize_project",
    "parse_block_text",
    "serialize_block_text",
    # Storage
    "Config",
    "ProjectMeta",
    "get_tckts_dir",
    "get_project_path",
    "list_projects",
    "load_config",
    "load_config_or_default",
    "save_config",
    "set_default_project",
    "init_project",
    "load_project",
    "save_project",
    # Migrations
    "Migration",
    "MIGRATIONS",
    "GitClient",
    "migrate_v1_to_v2",
    "check_git_safety",
    "migrate_project",
    "run_pending_migrations",
    # CLI
    "app",
    "main",
]
