"""Constants for tckts - limits, file names, and enum values."""

__all__ = [
    "MAX_TITLE_LENGTH_BYTES",
    "MAX_DESCRIPTION_LENGTH_BYTES",
    "MAX_TICKETS_PER_PROJECT",
    "MAX_PREFIX_LENGTH_BYTES",
    "MAX_DEPENDENCIES_PER_TICKET",
    "CURRENT_SCHEMA_VERSION",
    "DEFAULT_TCKTS_DIR",
    "TCKTS_DIR_ENV_VAR",
    "PROJECT_FILE_EXTENSION",
    "LEGACY_PROJECT_FILE_EXTENSION",
    "CONFIG_FILENAME",
    "LOCK_FILENAME",
    "LOCK_TIMEOUT",
    "BLOCK_DELIMITER",
    "BLOCK_HEADER_PREFIX",
]

# Limits (bytes are UTF-8 encoded lengths)
MAX_TITLE_LENGTH_BYTES = 280
MAX_DESCRIPTION_LENGTH_BYTES = 64 * 1024
MAX_TICKETS_PER_PROJECT = 10_000
MAX_PREFIX_LENGTH_BYTES = 32
MAX_DEPENDENCIES_PER_TICKET = 100

# On-disk schema version written by this release
CURRENT_SCHEMA_VERSION = 2

# Storage layout
DEFAULT_TCKTS_DIR = ".tckts"
TCKTS_DIR_ENV_VAR = "TCKTS_DIR"
PROJECT_FILE_EXTENSION = ".tckts"
LEGACY_PROJECT_FILE_EXTENSION = ".jsonl"
CONFIG_FILENAME = "config.json"

# File locking
LOCK_FILENAME = ".lock"
LOCK_TIMEOUT = 5.0

# Legacy block-text format
BLOCK_DELIMITER = "---"
BLOCK_HEADER_PREFIX = "# tckts"
