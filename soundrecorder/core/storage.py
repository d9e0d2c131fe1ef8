"""Sample file storage for SoundRecorder.

This module resolves the directory recordings are written to, creates
uniquely named sample files in it, and lists existing samples.
"""

import datetime
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from .config import DEFAULT_NAME_FORMAT, SAMPLE_PREFIX

_UNSAFE_CHARS = re.compile(r'[\\*|":<>/?]')


def sanitize_timestamp(value: str) -> str:
    """Replace characters that are unsafe in file names with underscores."""
    return _UNSAFE_CHARS.sub("_", value).replace(" ", "_")


def resolve_storage_dir(storage_path: str, fallback_path: Optional[str] = None) -> Path:
    """Return a writable directory for new samples.

    The primary *storage_path* is created if missing.  When it cannot be
    created or is not writable, *fallback_path* is used instead.

    Raises:
        OSError: If neither directory is usable.
    """
    sample_dir = Path(storage_path).expanduser()
    try:
        sample_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.debug(f"Could not create {sample_dir}: {e}")

    if sample_dir.is_dir() and os.access(sample_dir, os.W_OK):
        return sample_dir

    if not fallback_path:
        raise PermissionError(f"Storage directory is not writable: {sample_dir}")

    fallback_dir = Path(fallback_path).expanduser()
    logger.warning(f"{sample_dir} is not writable, falling back to {fallback_dir}")
    fallback_dir.mkdir(parents=True, exist_ok=True)
    if not os.access(fallback_dir, os.W_OK):
        raise PermissionError(f"Fallback storage directory is not writable: {fallback_dir}")
    return fallback_dir


def create_unique_file(
    prefix: str,
    suffix: Optional[str] = None,
    directory: Optional[Path] = None,
    name_format: str = DEFAULT_NAME_FORMAT,
    now: Optional[datetime.datetime] = None,
) -> Path:
    """Create a new empty file named after the current time.

    The name is ``prefix + timestamp + suffix``.  The file is created
    exclusively; if a file with that name already exists a counter is added
    to the stem until creation succeeds, so two calls never return the same
    path.

    Args:
        prefix: Leading part of the file name, at least 3 characters.
        suffix: Extension including the dot.  Defaults to ``'.tmp'``.
        directory: Target directory.  Defaults to the system temp directory.
        name_format: strftime pattern used for the timestamp.
        now: Timestamp to use.  Defaults to ``datetime.datetime.now()``.

    Returns:
        Path of the created file.

    Raises:
        ValueError: If *prefix* is shorter than 3 characters.
        OSError: If the file cannot be created.
    """
    if len(prefix) < 3:
        raise ValueError("prefix must be at least 3 characters")
    if suffix is None:
        suffix = ".tmp"
    if directory is None:
        directory = Path(tempfile.gettempdir())
    if now is None:
        now = datetime.datetime.now()

    stem = prefix + sanitize_timestamp(now.strftime(name_format))
    attempt = 0
    while True:
        name = stem if attempt == 0 else f"{stem}-{attempt}"
        candidate = Path(directory) / f"{name}{suffix}"
        try:
            with open(candidate, "x"):
                pass
        except FileExistsError:
            attempt += 1
            continue
        return candidate


def create_sample_file(
    directory: Path,
    extension: str,
    name_prefix: str = SAMPLE_PREFIX,
    name_format: str = DEFAULT_NAME_FORMAT,
) -> Path:
    """Create the output file for a new recording in *directory*.

    With a non-empty *name_prefix* the file is timestamped via
    :func:`create_unique_file`; otherwise a random name is used.
    """
    if name_prefix:
        return create_unique_file(name_prefix + "-", extension, directory, name_format)

    fd, path = tempfile.mkstemp(prefix=SAMPLE_PREFIX, suffix=extension, dir=str(directory))
    os.close(fd)
    return Path(path)


class StorageManager:
    """Lists sample files in a storage directory."""

    def __init__(self, storage_dir: str = "recordings/") -> None:
        """Initialize storage manager.

        Args:
            storage_dir: Directory holding recorded samples
        """
        self.storage_dir = Path(storage_dir).expanduser()

    def list_recordings(
        self, extensions: Sequence[str] = (".wav", ".flac", ".ogg")
    ) -> List[Dict[str, Any]]:
        """List stored samples, oldest first.

        Args:
            extensions: File extensions that count as samples

        Returns:
            List of recording metadata dictionaries
        """
        if not self.storage_dir.is_dir():
            return []

        recordings = [
            self._metadata(path)
            for path in self.storage_dir.iterdir()
            if path.is_file() and path.suffix.lower() in extensions
        ]
        recordings.sort(key=lambda r: r["modified"])
        return recordings

    @staticmethod
    def _metadata(path: Path) -> Dict[str, Any]:
        stat = path.stat()
        return {
            "name": path.name,
            "path": str(path),
            "size": stat.st_size,
            "modified": stat.st_mtime,
        }
