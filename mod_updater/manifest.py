"""
Manifest generation, storage and on-disk verification for installed mods
"""

import logging
import os
from typing import Callable, List, Optional

from mod_updater import constants, utils
from mod_updater.diff import diff_manifests
from mod_updater.errors import ManifestFormatError, ModIOError
from mod_updater.models import DiffEntry, Manifest, ManifestEntry

logger = logging.getLogger("mod_updater.manifest")


def manifest_path(mod_dir: str) -> str:
    """Path of the manifest sidecar for a mod folder."""
    return os.path.join(mod_dir, constants.MANIFEST_FILE)


def version_path(mod_dir: str) -> str:
    """Path of the version marker sidecar for a mod folder."""
    return os.path.join(mod_dir, constants.VERSION_FILE)


def _list_files(root_dir: str) -> List[str]:
    """Walk root_dir and return mod-relative paths of regular files."""
    files = []

    def on_error(error: OSError) -> None:
        logger.warning(f"Cannot list {error.filename}: {error.strerror}")

    for dirpath, dirnames, filenames in os.walk(root_dir, onerror=on_error):
        dirnames.sort()
        for filename in filenames:
            full_path = os.path.join(dirpath, filename)
            if not os.path.isfile(full_path):
                continue
            relative = utils.normalize_relative_path(os.path.relpath(full_path, root_dir))
            if relative.lower() in constants.SIDECAR_FILES:
                continue
            files.append(relative)
    return files


def build_manifest(root_dir: str,
                   progress_callback: Optional[Callable[[str, int, int], None]] = None) -> Manifest:
    """
    Hash every file of a mod into a manifest.

    Sidecar files (mod.manifest, mod.version) at the mod root are excluded.
    Files that cannot be read are skipped and listed in ``manifest.skipped``.

    Args:
        root_dir: Mod folder
        progress_callback: Optional callback(relative_path, index, total)

    Returns:
        Manifest with entries sorted by case-normalized path

    Raises:
        ModIOError: If root_dir does not exist or cannot be listed
    """
    if not os.path.isdir(root_dir):
        raise ModIOError(f"Mod folder not found: {root_dir}", root_dir)
    try:
        os.listdir(root_dir)
    except OSError as e:
        raise ModIOError(f"Cannot read mod folder {root_dir}: {e}", root_dir) from e

    files = sorted(_list_files(root_dir), key=lambda p: (p.lower(), p))
    manifest = Manifest()

    for index, relative in enumerate(files):
        if progress_callback:
            progress_callback(relative, index, len(files))

        full_path = os.path.join(root_dir, *relative.split("/"))
        try:
            size = os.path.getsize(full_path)
            content_hash = utils.calculate_hash(full_path)
        except OSError as e:
            logger.warning(f"Skipping unreadable file {relative}: {e}")
            manifest.skipped.append(relative)
            continue

        entry = ManifestEntry(relative_path=relative, content_hash=content_hash, size=size)
        if entry.key in manifest:
            # Only possible on case-sensitive file systems
            logger.warning(f"Skipping {relative}: differs from another file only by case")
            manifest.skipped.append(relative)
            continue
        manifest.add(entry)

    logger.debug(f"Built manifest for {root_dir}: {len(manifest)} files, "
                 f"{len(manifest.skipped)} skipped")
    return manifest


def load_manifest(mod_dir: str) -> Manifest:
    """
    Read the stored manifest of a mod.

    Raises:
        ModIOError: If the manifest is missing, unreadable or malformed
    """
    path = manifest_path(mod_dir)
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise ModIOError(f"Cannot read manifest {path}: {e}", path) from e

    try:
        return Manifest.from_text(text)
    except ManifestFormatError as e:
        raise ModIOError(f"Malformed manifest {path}: {e}", path) from e


def save_manifest(mod_dir: str, manifest: Manifest) -> str:
    """
    Write a manifest next to the mod's files.

    Returns:
        Path of the written file
    """
    path = manifest_path(mod_dir)
    try:
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            f.write(manifest.to_text())
    except OSError as e:
        raise ModIOError(f"Cannot write manifest {path}: {e}", path) from e
    logger.info(f"Saved manifest with {len(manifest)} entries to {path}")
    return path


def has_manifest(mod_dir: str) -> bool:
    return os.path.isfile(manifest_path(mod_dir))


def read_version_marker(mod_dir: str) -> Optional[str]:
    """Return the stored version tag, or None if the mod has no marker."""
    path = version_path(mod_dir)
    try:
        with open(path, "r", encoding="utf-8") as f:
            marker = f.read().strip()
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning(f"Cannot read version marker {path}: {e}")
        return None
    return marker or None


def manifest_mtime(mod_dir: str) -> Optional[float]:
    """Modification time of the stored manifest, None if absent."""
    try:
        return os.path.getmtime(manifest_path(mod_dir))
    except OSError:
        return None


def scan_listed_files(mod_dir: str, expected: Manifest) -> Manifest:
    """
    Hash only the files listed in ``expected``.

    Missing or unreadable files are left out of the result (and listed in
    ``skipped`` when unreadable).
    """
    observed = Manifest()
    for entry in expected:
        full_path = utils.resolve_mod_file(mod_dir, entry.relative_path)
        if not os.path.isfile(full_path):
            logger.debug(f"Missing file {entry.relative_path} in {mod_dir}")
            continue
        try:
            size = os.path.getsize(full_path)
            content_hash = utils.calculate_hash(full_path)
        except OSError as e:
            logger.warning(f"Cannot hash {entry.relative_path}: {e}")
            observed.skipped.append(entry.relative_path)
            continue
        observed.add(ManifestEntry(relative_path=entry.relative_path,
                                   content_hash=content_hash, size=size))
    return observed


def verify_mod(mod_dir: str, manifest: Optional[Manifest] = None) -> List[DiffEntry]:
    """
    Check an installed mod against its stored manifest.

    Files missing from disk come back as ADDED (expected but not observed),
    corrupted files as CHANGED. Files not listed in the manifest (saves,
    config files) are not inspected.

    Args:
        mod_dir: Mod folder
        manifest: Stored manifest, loaded from mod_dir when None

    Returns:
        Diff of the stored manifest against the files on disk

    Raises:
        ModIOError: If no manifest is given and none can be loaded
    """
    if manifest is None:
        manifest = load_manifest(mod_dir)
    observed = scan_listed_files(mod_dir, manifest)
    return diff_manifests(manifest, observed)
