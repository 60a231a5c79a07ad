"""
Utility functions for hashing, paths and update scheduling
"""

import hashlib
import os
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Callable

from mod_updater import constants


def calculate_hash(file_path: str, algorithm: str = constants.HASH_ALGORITHM,
                   chunk_size: int = constants.CHUNK_READ_SIZE,
                   progress_callback: Optional[Callable[[int], None]] = None) -> str:
    """
    Calculate hash of a file.

    Args:
        file_path: Path to the file
        algorithm: Hash algorithm ("sha256" or "md5")
        chunk_size: Size of chunks to read
        progress_callback: Optional callback function called with bytes read

    Returns:
        Hex digest of the hash

    Raises:
        OSError: If the file cannot be read
    """
    if algorithm == "sha256":
        hasher = hashlib.sha256()
    elif algorithm == "md5":
        hasher = hashlib.md5()
    else:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")

    with open(file_path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            hasher.update(chunk)
            if progress_callback:
                progress_callback(len(chunk))

    return hasher.hexdigest()


def normalize_relative_path(path: str) -> str:
    """
    Normalize a mod-relative path for manifests.

    Backslashes become forward slashes, leading "./" and "/" are stripped
    and repeated separators are collapsed. Case is preserved.

    Args:
        path: Path to normalize

    Returns:
        Normalized path
    """
    normalized = path.replace("\\", "/")
    parts = [part for part in normalized.split("/") if part and part != "."]
    return "/".join(parts)


def resolve_mod_file(mod_dir: str, relative_path: str) -> str:
    """
    Locate a manifest-listed file inside a mod folder.

    Manifests written on Windows may not match the case of the files on
    disk. Each component of ``relative_path`` is matched exactly first and
    then case-insensitively against the folder listing. Lookup never leaves
    ``mod_dir``; components that match nothing are kept as written.

    Args:
        mod_dir: Installed mod folder
        relative_path: Normalized manifest path ("/" separated)

    Returns:
        Path of the file on disk, or where it would be
    """
    current = mod_dir
    for component in normalize_relative_path(relative_path).split("/"):
        candidate = os.path.join(current, component)
        if os.name != "nt" and not os.path.exists(candidate) and os.path.isdir(current):
            wanted = component.casefold()
            try:
                matches = sorted(name for name in os.listdir(current) if name.casefold() == wanted)
            except OSError:
                matches = []
            if matches:
                candidate = os.path.join(current, matches[0])
        current = candidate
    return current


SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_size(size_bytes: int) -> str:
    """Format a byte count for download listings ("512 B", "1.5 MB")."""
    if size_bytes < 1024:
        return f"{size_bytes} B"

    size = float(size_bytes)
    unit = 0
    while size >= 1024 and unit < len(SIZE_UNITS) - 1:
        size /= 1024
        unit += 1
    return f"{size:.1f} {SIZE_UNITS[unit]}"


class UpdateUnit(Enum):
    """Unit of the automatic update check interval."""
    ALWAYS = 0
    HOURS = 1
    DAYS = 2
    WEEKS = 3


def update_check_due(unit: UpdateUnit, amount: int, last_check: Optional[datetime],
                     now: Optional[datetime] = None) -> bool:
    """
    Decide whether an automatic update check should run.

    Args:
        unit: Interval unit
        amount: Number of units between checks
        last_check: Time of the previous check (UTC), None if never checked
        now: Current time, defaults to datetime.now(timezone.utc)

    Returns:
        True if the interval has elapsed
    """
    if unit == UpdateUnit.ALWAYS or last_check is None:
        return True

    if now is None:
        now = datetime.now(timezone.utc)
    if last_check.tzinfo is None:
        last_check = last_check.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    if unit == UpdateUnit.HOURS:
        interval = timedelta(hours=amount)
    elif unit == UpdateUnit.DAYS:
        interval = timedelta(days=amount)
    else:
        interval = timedelta(weeks=amount)

    return now - last_check >= interval
