"""
Manifest diff utilities for comparing mod file inventories
"""

from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from mod_updater.models import DiffEntry, Manifest, ManifestEntry, ManifestState


def diff_manifests(expected: Manifest, observed: Manifest) -> List[DiffEntry]:
    """
    Compare two manifests file by file.

    ``expected`` is the source of truth for what should be present (a remote
    manifest, or the stored manifest during verification). ``observed`` is
    what is actually there (a stored manifest or a live scan).

    - only in expected: ADDED
    - only in observed: REMOVED
    - in both: UNCHANGED if hash and size match, else CHANGED

    Entries follow ``expected``'s order; observed-only entries come last,
    in ``observed``'s order.

    Args:
        expected: Manifest describing the wanted state
        observed: Manifest describing the actual state

    Returns:
        One DiffEntry per distinct path
    """
    result: List[DiffEntry] = []

    for current in expected:
        local = observed.get(current.relative_path)
        if local is None:
            result.append(DiffEntry(current.relative_path, ManifestState.ADDED, current=current))
        elif current.matches(local):
            result.append(DiffEntry(current.relative_path, ManifestState.UNCHANGED,
                                    current=current, local=local))
        else:
            result.append(DiffEntry(current.relative_path, ManifestState.CHANGED,
                                    current=current, local=local))

    for local in observed:
        if expected.get(local.relative_path) is None:
            result.append(DiffEntry(local.relative_path, ManifestState.REMOVED, local=local))

    return result


def changed_entries(diff: Iterable[DiffEntry]) -> Manifest:
    """Collect the expected side of ADDED and CHANGED entries as a manifest."""
    delta = Manifest()
    for entry in diff:
        if entry.state in (ManifestState.ADDED, ManifestState.CHANGED) and entry.current is not None:
            delta.add(entry.current)
    return delta


def merge_manifest(diff: Iterable[DiffEntry],
                   accept: Optional[Callable[[DiffEntry], bool]] = None) -> Manifest:
    """
    Build a new manifest from a diff.

    Accepted entries take the expected side (REMOVED entries are dropped);
    rejected entries keep the observed side. Without ``accept`` every change
    is accepted, which yields ``expected``.

    Args:
        diff: Result of diff_manifests
        accept: Predicate deciding which changes to take

    Returns:
        Merged manifest
    """
    merged = Manifest()
    for entry in diff:
        take_current = entry.state == ManifestState.UNCHANGED or accept is None or accept(entry)
        chosen: Optional[ManifestEntry] = entry.current if take_current else entry.local
        if chosen is not None:
            merged.add(chosen)
    return merged


@dataclass
class ManifestDiff:
    """
    Summary of a manifest comparison grouped by state.

    Attributes:
        added: Files expected but missing on the observed side
        changed: Files whose content differs
        removed: Files present on the observed side only
        unchanged: Files that match
    """
    added: List[DiffEntry] = field(default_factory=list)
    changed: List[DiffEntry] = field(default_factory=list)
    removed: List[DiffEntry] = field(default_factory=list)
    unchanged: List[DiffEntry] = field(default_factory=list)

    @classmethod
    def from_entries(cls, entries: Iterable[DiffEntry]) -> "ManifestDiff":
        summary = cls()
        buckets = {
            ManifestState.ADDED: summary.added,
            ManifestState.CHANGED: summary.changed,
            ManifestState.REMOVED: summary.removed,
            ManifestState.UNCHANGED: summary.unchanged,
        }
        for entry in entries:
            buckets[entry.state].append(entry)
        return summary

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.changed or self.removed)

    def __str__(self) -> str:
        """Human-readable summary of diff."""
        parts = []
        if self.added:
            parts.append(f"{len(self.added)} added")
        if self.changed:
            parts.append(f"{len(self.changed)} changed")
        if self.removed:
            parts.append(f"{len(self.removed)} removed")

        return "ManifestDiff: " + ", ".join(parts) if parts else "ManifestDiff: no changes"
