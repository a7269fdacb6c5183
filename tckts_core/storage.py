"""Project directory service for tckts - paths, config, load/save.

Every function takes the tckts directory explicitly. The CLI resolves it
once with get_tckts_dir() and passes it down, so nothing below reads the
environment on its own.

Layout::

    <tckts_dir>/
        config.json        {"default_project": "X", "projects": {"X": {"version": 2}}}
        <PREFIX>.tckts     one file per project (a <PREFIX>.jsonl file is also accepted)
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from tckts_core.codec import parse_project, serialize_project
from tckts_core.constants import (
    CONFIG_FILENAME,
    CURRENT_SCHEMA_VERSION,
    DEFAULT_TCKTS_DIR,
    LEGACY_PROJECT_FILE_EXTENSION,
    LOCK_FILENAME,
    PROJECT_FILE_EXTENSION,
    TCKTS_DIR_ENV_VAR,
)
from tckts_core.exceptions import (
    ConfigNotFound,
    InvalidConfig,
    ProjectAlreadyExists,
    ProjectNotFound,
)
from tckts_core.models import Project

__all__ = [
    "ProjectMeta",
    "Config",
    "get_tckts_dir",
    "get_config_path",
    "get_lock_path",
    "get_project_path",
    "list_projects",
    "load_config",
    "load_config_or_default",
    "save_config",
    "set_default_project",
    "set_project_version",
    "init_project",
    "read_project_file",
    "write_project_file",
    "load_project",
    "save_project",
]

logger = logging.getLogger(__name__)

# Schema version assumed for a project entry that carries no version
_UNVERSIONED_SCHEMA = 1


@dataclass
class ProjectMeta:
    """Per-project bookkeeping kept in config.json."""

    version: int = CURRENT_SCHEMA_VERSION


@dataclass
class Config:
    """Process-wide persisted state.

    Attributes:
        default_project: Prefix used when a command names no project
        projects: Schema version per registered prefix
    """

    default_project: Optional[str] = None
    projects: Dict[str, ProjectMeta] = field(default_factory=dict)

    def version_of(self, prefix: str) -> int:
        """Schema version recorded for a project, or the current one if unregistered."""
        meta = self.projects.get(prefix)
        return meta.version if meta is not None else CURRENT_SCHEMA_VERSION

    def to_dict(self) -> dict:
        data: dict = {}
        if self.default_project is not None:
            data["default_project"] = self.default_project
        if self.projects:
            data["projects"] = {
                prefix: {"version": meta.version} for prefix, meta in self.projects.items()
            }
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """Build a Config from decoded config.json content.

        Raises:
            InvalidConfig: If the structure or any value has the wrong type
        """
        if not isinstance(data, dict):
            raise InvalidConfig("config must be a JSON object")

        default_project = data.get("default_project")
        if default_project is not None and not isinstance(default_project, str):
            raise InvalidConfig("'default_project' must be a string")

        projects_raw = data.get("projects") or {}
        if not isinstance(projects_raw, dict):
            raise InvalidConfig("'projects' must be an object")

        projects = {}
        for prefix, meta in projects_raw.items():
            if not isinstance(meta, dict):
                raise InvalidConfig(f"entry for project '{prefix}' must be an object")
            version = meta.get("version", _UNVERSIONED_SCHEMA)
            if not isinstance(version, int) or isinstance(version, bool) or version < 1:
                raise InvalidConfig(f"invalid version for project '{prefix}': {version!r}")
            projects[prefix] = ProjectMeta(version=version)

        return cls(default_project=default_project, projects=projects)


# --- paths ---


def get_tckts_dir() -> Path:
    """Get the tckts directory (./.tckts).

    Can be overridden via the TCKTS_DIR environment variable.
    """
    return Path(os.environ.get(TCKTS_DIR_ENV_VAR) or DEFAULT_TCKTS_DIR)


def get_config_path(tckts_dir: Path) -> Path:
    return Path(tckts_dir) / CONFIG_FILENAME


def get_lock_path(tckts_dir: Path) -> Path:
    """Get the advisory lock path used by mutating CLI commands."""
    return Path(tckts_dir) / LOCK_FILENAME


def get_project_path(tckts_dir: Path, prefix: str) -> Path:
    """Get the storage file of a project.

    Returns <dir>/<PREFIX>.tckts unless only a <dir>/<PREFIX>.jsonl file
    exists, in which case that one is used.
    """
    tckts_dir = Path(tckts_dir)
    primary = tckts_dir / f"{prefix}{PROJECT_FILE_EXTENSION}"
    if not primary.exists():
        legacy = tckts_dir / f"{prefix}{LEGACY_PROJECT_FILE_EXTENSION}"
        if legacy.exists():
            return legacy
    return primary


def list_projects(tckts_dir: Path) -> List[str]:
    """List prefixes of all project files, sorted.

    Returns an empty list when the directory does not exist.
    """
    tckts_dir = Path(tckts_dir)
    if not tckts_dir.is_dir():
        return []

    prefixes = set()
    for entry in tckts_dir.iterdir():
        if not entry.is_file():
            continue
        if entry.suffix in (PROJECT_FILE_EXTENSION, LEGACY_PROJECT_FILE_EXTENSION) and entry.stem:
            prefixes.add(entry.stem)

    return sorted(prefixes)


# --- config ---


def load_config(tckts_dir: Path) -> Config:
    """Load config.json.

    Raises:
        ConfigNotFound: If the file does not exist
        InvalidConfig: If the file is not valid config JSON
    """
    config_path = get_config_path(tckts_dir)
    try:
        content = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigNotFound(f"No config at {config_path}") from None

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise InvalidConfig(f"Invalid JSON in {config_path}: {e.msg}") from e

    return Config.from_dict(data)


def load_config_or_default(tckts_dir: Path) -> Config:
    """Load config.json, or return an empty Config if there is none yet."""
    try:
        return load_config(tckts_dir)
    except ConfigNotFound:
        return Config()


def save_config(tckts_dir: Path, config: Config) -> None:
    """Write config.json, creating the tckts directory if needed."""
    tckts_dir = Path(tckts_dir)
    tckts_dir.mkdir(parents=True, exist_ok=True)
    get_config_path(tckts_dir).write_text(
        json.dumps(config.to_dict(), indent=2) + "\n", encoding="utf-8"
    )


def set_default_project(tckts_dir: Path, prefix: Optional[str]) -> Config:
    """Set (or clear, with None) the default project.

    Raises:
        ProjectNotFound: If prefix names no existing project
    """
    if prefix is not None and prefix not in list_projects(tckts_dir):
        raise ProjectNotFound(f"Project '{prefix}' not found")

    config = load_config_or_default(tckts_dir)
    config.default_project = prefix
    save_config(tckts_dir, config)
    return config


def set_project_version(tckts_dir: Path, prefix: str, version: int) -> None:
    """Record a project's schema version in config.json."""
    config = load_config_or_default(tckts_dir)
    config.projects.setdefault(prefix, ProjectMeta()).version = version
    save_config(tckts_dir, config)


# --- projects ---


def init_project(tckts_dir: Path, prefix: str) -> Project:
    """Create an empty project file and register it in config.

    Args:
        tckts_dir: tckts directory (created if missing)
        prefix: Project prefix, already normalized

    Returns:
        The new, empty Project

    Raises:
        PrefixTooLong: If prefix exceeds the limit
        ProjectAlreadyExists: If a file for this prefix already exists
    """
    project = Project.create(prefix)

    tckts_dir = Path(tckts_dir)
    tckts_dir.mkdir(parents=True, exist_ok=True)

    project_path = get_project_path(tckts_dir, prefix)
    try:
        with project_path.open("x", encoding="utf-8") as f:
            f.write(serialize_project(project))
    except FileExistsError:
        raise ProjectAlreadyExists(f"Project '{prefix}' already exists") from None

    set_project_version(tckts_dir, prefix, CURRENT_SCHEMA_VERSION)
    logger.info("Initialized project %s at %s", prefix, project_path)

    return project


def read_project_file(tckts_dir: Path, prefix: str) -> str:
    """Read a project's raw file content.

    Raises:
        ProjectNotFound: If the project has no storage file
    """
    project_path = get_project_path(tckts_dir, prefix)
    try:
        return project_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ProjectNotFound(f"Project '{prefix}' not found") from None


def write_project_file(tckts_dir: Path, prefix: str, content: str) -> Path:
    """Overwrite a project's storage file in place.

    There is no locking and no temp-file-then-rename here; a crash mid-write
    can leave a truncated file.
    """
    project_path = get_project_path(tckts_dir, prefix)
    project_path.write_text(content, encoding="utf-8")
    return project_path


def load_project(tckts_dir: Path, prefix: str, config: Optional[Config] = None) -> Project:
    """Load and parse a project.

    Args:
        tckts_dir: tckts directory
        prefix: Project prefix
        config: Already loaded config (read from disk if omitted)

    Raises:
        ProjectNotFound: If the project has no storage file
        FormatError: If the file fails to parse
    """
    content = read_project_file(tckts_dir, prefix)
    if config is None:
        config = load_config_or_default(tckts_dir)
    return parse_project(prefix, content, version=config.version_of(prefix))


def save_project(tckts_dir: Path, project: Project) -> None:
    """Serialize a project as current-schema JSONL and write it to its storage file.

    If config still records an older schema version for the project, the
    entry is bumped, since the file now holds current-schema records.
    Config is read, and the project serialized, before anything is written.
    """
    config = load_config_or_default(tckts_dir)
    content = serialize_project(project)

    path = write_project_file(tckts_dir, project.prefix, content)
    logger.debug("Saved %d tickets to %s", len(project.tickets), path)

    meta = config.projects.get(project.prefix)
    if meta is not None and meta.version < CURRENT_SCHEMA_VERSION:
        meta.version = CURRENT_SCHEMA_VERSION
        save_config(tckts_dir, config)
