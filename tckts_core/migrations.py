"""Schema migrations for tckts - version chain and git safety gate.

Each project's schema version lives in config.json. Before a command runs,
run_pending_migrations walks every registered project:

    CheckVersions -> [CheckGitSafety] -> ApplyChain -> PersistVersion

CheckGitSafety is skipped with force=True. It refuses to migrate when the
tckts directory is outside a git repository or has uncommitted changes, so
the pre-migration data can always be recovered from git.
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from tckts_core.codec import (
    legacy_history,
    parse_project,
    read_records,
    write_records,
)
from tckts_core.constants import CURRENT_SCHEMA_VERSION, LOCK_FILENAME
from tckts_core.exceptions import (
    FormatError,
    MigrationFailed,
    NotGitRepo,
    ProjectNotFound,
    UncommittedChanges,
)
from tckts_core.storage import (
    load_config_or_default,
    read_project_file,
    set_project_version,
    write_project_file,
)

__all__ = [
    "Migration",
    "MIGRATIONS",
    "GitClient",
    "migrate_v1_to_v2",
    "plan_migrations",
    "check_git_safety",
    "migrate_project",
    "run_pending_migrations",
]

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


@dataclass(frozen=True)
class Migration:
    """One step of the schema chain; transform must not touch disk."""

    from_version: int
    to_version: int
    transform: Callable[[List[Record]], List[Record]]


def migrate_v1_to_v2(records: List[Record]) -> List[Record]:
    """Replace started_at/completed_at with a history list.

    The history gets a pending entry at created_at, then in_progress at
    started_at and done at completed_at when those are present, and ends
    on the record's status (see codec.legacy_history). Running
    this on v2 records would drop their history, so callers gate on the
    recorded version.
    """
    migrated = []
    for record in records:
        new_record: Record = {}
        for key, value in record.items():
            if key in ("started_at", "completed_at"):
                continue
            new_record[key] = value
            if key == "created_at":
                new_record["history"] = legacy_history(
                    value,
                    record.get("started_at"),
                    record.get("completed_at"),
                    record.get("status"),
                )
        migrated.append(new_record)
    return migrated


MIGRATIONS = (
    Migration(from_version=1, to_version=2, transform=migrate_v1_to_v2),
)


class GitClient:
    """Minimal git queries needed by the safety gate."""

    def __init__(self, repo_path: Optional[str] = None):
        """Initialize GitClient.

        Args:
            repo_path: Directory git runs in. If None, uses current directory.
        """
        self.repo_path = repo_path

    def _run(self, args: List[str]) -> subprocess.CompletedProcess:
        return subprocess.run(
            args,
            cwd=self.repo_path,
            capture_output=True,
            text=True,
            check=False,
        )

    def is_repository(self) -> bool:
        try:
            result = self._run(["git", "rev-parse", "--git-dir"])
        except FileNotFoundError:
            # git is not installed
            return False
        return result.returncode == 0

    def status_porcelain(self, path: str = ".", exclude: Sequence[str] = ()) -> str:
        """Get `git status --porcelain` output for a path.

        Raises:
            MigrationFailed: If git exits with an error
        """
        args = ["git", "status", "--porcelain", "--", path]
        args.extend(f":(exclude){pattern}" for pattern in exclude)
        result = self._run(args)
        if result.returncode != 0:
            raise MigrationFailed(f"git status failed: {result.stderr.strip()}")
        return result.stdout


def plan_migrations(
    from_version: int,
    to_version: int = CURRENT_SCHEMA_VERSION,
    migrations: Sequence[Migration] = MIGRATIONS,
) -> List[Migration]:
    """Find the ordered chain of migrations from one version to another.

    Raises:
        MigrationFailed: If some version on the way has no migration
    """
    chain = []
    version = from_version
    while version < to_version:
        step = next((m for m in migrations if m.from_version == version), None)
        if step is None:
            raise MigrationFailed(f"No migration from schema v{version}")
        chain.append(step)
        version = step.to_version
    return chain


def check_git_safety(tckts_dir: Path, git: Optional[GitClient] = None) -> None:
    """Ensure the tckts directory is committed to git before migrating.

    Args:
        tckts_dir: tckts directory
        git: Git client (defaults to one running inside tckts_dir)

    Raises:
        NotGitRepo: If no git repository contains tckts_dir
        UncommittedChanges: If git reports changes under tckts_dir
    """
    tckts_dir = Path(tckts_dir)
    if git is None:
        git = GitClient(repo_path=str(tckts_dir.resolve()))

    if not git.is_repository():
        raise NotGitRepo(
            f"Migration requires a git repository around {tckts_dir}; "
            "use --force to migrate without git safety"
        )

    # The lock file is recreated by every command and never committed
    status = git.status_porcelain(".", exclude=(LOCK_FILENAME,))
    if status.strip():
        raise UncommittedChanges(
            f"Cannot migrate with uncommitted changes in {tckts_dir}/; "
            "commit or stash them first, or use --force"
        )


def migrate_project(
    tckts_dir: Path,
    prefix: str,
    from_version: int,
    migrations: Sequence[Migration] = MIGRATIONS,
) -> int:
    """Apply the migration chain to one project and record the new version.

    The transformed file is checked to parse at the target version before
    it is written; the version is bumped only after the write.

    Returns:
        Schema version the project ends at

    Raises:
        MigrationFailed: If the file is missing, unreadable, or a step fails
    """
    chain = plan_migrations(from_version, CURRENT_SCHEMA_VERSION, migrations)
    if not chain:
        return from_version

    try:
        records = read_records(prefix, read_project_file(tckts_dir, prefix))
    except (ProjectNotFound, FormatError) as e:
        raise MigrationFailed(f"Cannot migrate {prefix}: {e}") from e

    version = from_version
    for step in chain:
        logger.info("Migrating %s from v%d to v%d", prefix, step.from_version, step.to_version)
        try:
            records = step.transform(records)
        except Exception as e:
            raise MigrationFailed(
                f"Migration of {prefix} from v{step.from_version} to v{step.to_version} failed: {e}"
            ) from e
        version = step.to_version

    content = write_records(records)
    try:
        parse_project(prefix, content, version=version)
    except FormatError as e:
        raise MigrationFailed(f"Migrated {prefix} does not parse at v{version}: {e}") from e

    write_project_file(tckts_dir, prefix, content)
    set_project_version(tckts_dir, prefix, version)
    logger.info("Migrated %s to schema v%d", prefix, version)

    return version


def run_pending_migrations(
    tckts_dir: Path,
    force: bool = False,
    git: Optional[GitClient] = None,
    migrations: Sequence[Migration] = MIGRATIONS,
) -> List[str]:
    """Migrate every registered project whose schema is behind.

    Args:
        tckts_dir: tckts directory
        force: Skip the git safety check
        git: Git client for the safety check
        migrations: Migration chain (the built-in one by default)

    Returns:
        Prefixes that were migrated, in config order; empty if nothing
        was behind (config is then left untouched)

    Raises:
        NotGitRepo / UncommittedChanges: Safety check failed
        MigrationFailed: A project could not be migrated
    """
    config = load_config_or_default(tckts_dir)

    pending = [
        (prefix, meta.version)
        for prefix, meta in config.projects.items()
        if meta.version < CURRENT_SCHEMA_VERSION
    ]
    if not pending:
        return []

    # Must run before any project file is rewritten
    if not force:
        check_git_safety(tckts_dir, git)

    migrated = []
    for prefix, version in pending:
        migrate_project(tckts_dir, prefix, version, migrations)
        migrated.append(prefix)

    return migrated
