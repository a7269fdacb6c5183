"""Shared utilities for tckts - timestamps, prefixes, file locking."""

import fcntl
import re
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator, Optional

from tckts_core.constants import LOCK_TIMEOUT, MAX_PREFIX_LENGTH_BYTES
from tckts_core.exceptions import InvalidPrefix, LockError, PrefixTooLong

__all__ = [
    "get_iso_timestamp",
    "byte_length",
    "normalize_prefix",
    "file_lock",
]

_PREFIX_RE = re.compile(r"[A-Za-z0-9_]+")


def get_iso_timestamp(now: Optional[datetime] = None) -> str:
    """Get a UTC timestamp in ISO format with second precision and Z suffix.

    Args:
        now: Moment to format (defaults to the current time)

    Returns:
        Timestamp string (e.g., "2024-01-15T10:30:00Z")
    """
    if now is None:
        now = datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def byte_length(text: str) -> int:
    """Length of text in UTF-8 bytes, the unit every size limit is measured in."""
    return len(text.encode("utf-8"))


def normalize_prefix(prefix: str) -> str:
    """Validate a user-supplied project prefix and convert it to uppercase.

    Args:
        prefix: Raw prefix (e.g., "backend")

    Returns:
        Uppercase prefix (e.g., "BACKEND")

    Raises:
        InvalidPrefix: If prefix is empty or has characters outside A-Z, 0-9, _
        PrefixTooLong: If prefix exceeds MAX_PREFIX_LENGTH_BYTES

    Examples:
        >>> normalize_prefix("backend")
        'BACKEND'
        >>> normalize_prefix("my_app2")
        'MY_APP2'
    """
    if not _PREFIX_RE.fullmatch(prefix):
        raise InvalidPrefix(
            f"Invalid prefix '{prefix}': must be alphanumeric (A-Z, 0-9, _)"
        )
    if byte_length(prefix) > MAX_PREFIX_LENGTH_BYTES:
        raise PrefixTooLong(
            f"Prefix is {byte_length(prefix)} bytes (max {MAX_PREFIX_LENGTH_BYTES})"
        )
    return prefix.upper()


@contextmanager
def file_lock(lock_path: Path, timeout: float = LOCK_TIMEOUT) -> Generator[object, None, None]:
    """Acquire an exclusive advisory lock on a file.

    Args:
        lock_path: Path to lock file
        timeout: Maximum time to wait for lock (seconds)

    Yields:
        The lock file object

    Raises:
        LockError: If unable to acquire lock within timeout

    Usage:
        with file_lock(Path(".tckts/.lock")):
            # load, mutate, save
            pass
    """
    lock_path = Path(lock_path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)

    lock_file = open(lock_path, "w")

    try:
        start_time = time.time()
        while True:
            try:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.time() - start_time >= timeout:
                    raise LockError(
                        f"Could not acquire lock on {lock_path} within {timeout}s"
                    )
                time.sleep(0.01)

        yield lock_file

    finally:
        try:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
        except OSError:
            pass
        lock_file.close()
