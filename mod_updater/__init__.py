"""
Mod Updater - update checks and integrity verification for installed game mods

This library records a mod's files in a manifest, verifies installed mods
against it, and checks GitHub releases, GameBanana items or plain manifest
endpoints for newer versions.

Supports full re-downloads as well as incremental updates that fetch only
the files whose content changed.
"""

from mod_updater.constants import VERSION as __version__
__author__ = "mod-updater Contributors"
__license__ = "MIT"

from mod_updater.config import UpdaterConfig
from mod_updater.diff import ManifestDiff, diff_manifests
from mod_updater.manifest import build_manifest, verify_mod
from mod_updater.models import (
    BatchResult, DownloadDescriptor, Manifest, ManifestEntry, ManifestState, ModInfo, UpdateMode
)
from mod_updater.updater import ModUpdater

__all__ = [
    "ModUpdater",
    "UpdaterConfig",
    "ModInfo",
    "Manifest",
    "ManifestEntry",
    "ManifestState",
    "ManifestDiff",
    "DownloadDescriptor",
    "BatchResult",
    "UpdateMode",
    "build_manifest",
    "verify_mod",
    "diff_manifests",
]
