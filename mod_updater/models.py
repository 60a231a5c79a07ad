"""
Data models for mod manifests, update sources and download descriptors
"""

import configparser
import hashlib
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Dict, Iterator, Union

from mod_updater import constants, utils
from mod_updater.errors import ManifestFormatError, MalformedSourceError


@dataclass
class ManifestEntry:
    """
    A single file recorded in a mod manifest.

    Attributes:
        relative_path: Path relative to the mod root, using forward slashes
        content_hash: SHA-256 hex digest of the file content
        size: File size in bytes
    """
    relative_path: str
    content_hash: str
    size: int = 0

    def __post_init__(self):
        self.relative_path = utils.normalize_relative_path(self.relative_path)
        self.content_hash = self.content_hash.strip().lower()

    @property
    def key(self) -> str:
        """Case-normalized path used to match entries between manifests."""
        return self.relative_path.lower()

    def matches(self, other: "ManifestEntry") -> bool:
        """Check if two entries describe the same content."""
        return self.content_hash == other.content_hash and self.size == other.size

    @classmethod
    def from_line(cls, line: str, line_number: int = 0) -> "ManifestEntry":
        """Parse a ``path<TAB>size<TAB>hash`` manifest line."""
        parts = line.rstrip("\r\n").split("\t")
        if len(parts) != 3:
            raise ManifestFormatError(
                f"Line {line_number}: expected 3 tab-separated fields, got {len(parts)}",
                line_number
            )

        path, size, content_hash = parts
        if not path:
            raise ManifestFormatError(f"Line {line_number}: empty file path", line_number)
        try:
            size_value = int(size)
        except ValueError:
            raise ManifestFormatError(f"Line {line_number}: invalid size {size!r}", line_number)
        if size_value < 0:
            raise ManifestFormatError(f"Line {line_number}: negative size", line_number)

        return cls(relative_path=path, content_hash=content_hash, size=size_value)

    def to_line(self) -> str:
        """Serialize entry to a manifest line (without newline)."""
        return f"{self.relative_path}\t{self.size}\t{self.content_hash}"


@dataclass
class Manifest:
    """
    Ordered inventory of the files that make up a mod.

    Entries are uniquely keyed by their case-normalized relative path.
    Insertion order is kept when serializing but carries no meaning.

    Attributes:
        entries: Manifest entries in insertion order
        skipped: Files that could not be hashed while building (not serialized)
    """
    entries: List[ManifestEntry] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list, compare=False)
    _index: Dict[str, ManifestEntry] = field(default_factory=dict, init=False,
                                             repr=False, compare=False)

    def __post_init__(self):
        entries = self.entries
        self.entries = []
        for entry in entries:
            self.add(entry)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[ManifestEntry]:
        return iter(self.entries)

    def __contains__(self, path: str) -> bool:
        return utils.normalize_relative_path(path).lower() in self._index

    def add(self, entry: ManifestEntry) -> None:
        """Append an entry, rejecting duplicate paths."""
        if entry.key in self._index:
            raise ValueError(f"Duplicate manifest entry: {entry.relative_path}")
        self.entries.append(entry)
        self._index[entry.key] = entry

    def get(self, path: str) -> Optional[ManifestEntry]:
        """Look up an entry by path (case and slash insensitive)."""
        return self._index.get(utils.normalize_relative_path(path).lower())

    @property
    def total_size(self) -> int:
        return sum(entry.size for entry in self.entries)

    @classmethod
    def from_text(cls, text: str) -> "Manifest":
        """Parse a serialized manifest."""
        manifest = cls()
        for line_number, line in enumerate(text.splitlines(), 1):
            if not line.strip():
                continue
            entry = ManifestEntry.from_line(line, line_number)
            if entry.key in manifest._index:
                raise ManifestFormatError(
                    f"Line {line_number}: duplicate entry {entry.relative_path}", line_number
                )
            manifest.add(entry)
        return manifest

    def to_text(self) -> str:
        """Serialize manifest, one entry per line."""
        return "".join(entry.to_line() + "\n" for entry in self.entries)

    def fingerprint(self) -> str:
        """SHA-256 of the serialized manifest, usable as a version tag."""
        return hashlib.sha256(self.to_text().encode("utf-8")).hexdigest()


class ManifestState(Enum):
    """Classification of a file when comparing two manifests."""
    UNCHANGED = "unchanged"
    ADDED = "added"
    CHANGED = "changed"
    REMOVED = "removed"


@dataclass
class DiffEntry:
    """
    Per-file result of a manifest comparison.

    Attributes:
        relative_path: Path of the file
        state: Classification of the file
        current: Expected (remote/stored) entry, absent for REMOVED
        local: Observed (local/previous) entry, absent for ADDED
    """
    relative_path: str
    state: ManifestState
    current: Optional[ManifestEntry] = None
    local: Optional[ManifestEntry] = None


# ========== Update sources ==========

@dataclass(frozen=True)
class NoSource:
    """Mod has no update source configured."""

    def validate(self) -> None:
        pass

    def describe(self) -> str:
        return "none"


@dataclass(frozen=True)
class ReleaseFeedSource:
    """GitHub releases of ``repo`` carrying an asset named ``asset_name``."""
    repo: str
    asset_name: str = ""

    def validate(self) -> None:
        if not self.asset_name:
            raise MalformedSourceError("GitHubRepo specified, but GitHubAsset is missing.")
        if self.repo.count("/") != 1:
            raise MalformedSourceError(f"GitHubRepo {self.repo!r} is not in owner/name form.")

    def describe(self) -> str:
        return f"GitHub {self.repo} ({self.asset_name})"


@dataclass(frozen=True)
class ContentSiteSource:
    """GameBanana item identified by type and numeric id."""
    item_type: str = ""
    item_id: Optional[int] = None

    def validate(self) -> None:
        if not self.item_type:
            raise MalformedSourceError("GameBananaItemId specified, but GameBananaItemType is missing.")
        if self.item_id is None:
            raise MalformedSourceError("GameBananaItemType specified, but GameBananaItemId is missing or invalid.")

    def describe(self) -> str:
        return f"GameBanana {self.item_type} {self.item_id}"


@dataclass(frozen=True)
class GenericManifestSource:
    """Arbitrary endpoint exposing a ``mod.manifest`` and the files it lists."""
    url: str

    def validate(self) -> None:
        if not self.url.lower().startswith(("http://", "https://")):
            raise MalformedSourceError(f"UpdateUrl {self.url!r} is not an http(s) URL.")

    def describe(self) -> str:
        return f"manifest {self.url}"


UpdateSource = Union[NoSource, ReleaseFeedSource, ContentSiteSource, GenericManifestSource]

_GITHUB_DOWNLOAD_RE = re.compile(constants.GITHUB_DOWNLOAD_PATTERN)


def source_from_fields(github_repo: Optional[str] = None, github_asset: Optional[str] = None,
                       item_type: Optional[str] = None, item_id: Optional[int] = None,
                       update_url: Optional[str] = None) -> UpdateSource:
    """
    Pick the update source from raw metadata fields.

    Sources are checked in fixed priority: release feed, then content site,
    then generic manifest. A partially configured source is still returned
    so that validation reports it instead of falling through.
    """
    if github_repo:
        return ReleaseFeedSource(repo=github_repo.strip(), asset_name=(github_asset or "").strip())
    if item_type or item_id is not None:
        return ContentSiteSource(item_type=(item_type or "").strip(), item_id=item_id)
    if update_url:
        return GenericManifestSource(url=update_url.strip())
    return NoSource()


def source_from_download_url(url: str) -> UpdateSource:
    """
    Derive a release feed source from a GitHub release asset URL.

    Returns NoSource for any other URL.
    """
    match = _GITHUB_DOWNLOAD_RE.match(url)
    if not match:
        return NoSource()
    return ReleaseFeedSource(repo=match.group(1), asset_name=match.group(2))


@dataclass
class ModInfo:
    """
    Identity and update configuration of one mod.

    Attributes:
        name: Display name
        author: Mod author
        version: Version string from the mod's metadata
        description: Short description
        update_source: Where updates come from
    """
    name: str
    author: str = ""
    version: str = ""
    description: str = ""
    update_source: UpdateSource = field(default_factory=NoSource)

    @classmethod
    def from_dict(cls, fields: Dict[str, str]) -> "ModInfo":
        """Create ModInfo from ``mod.ini`` style keys (case-insensitive)."""
        values = {key.lower(): (value or "").strip() for key, value in fields.items()}

        item_id: Optional[int] = None
        raw_item_id = values.get("gamebananaitemid", "")
        if raw_item_id:
            try:
                item_id = int(raw_item_id)
            except ValueError:
                item_id = None

        if raw_item_id and item_id is None and not values.get("githubrepo"):
            # Unparseable id still counts as a content site configuration
            source: UpdateSource = ContentSiteSource(
                item_type=values.get("gamebananaitemtype", ""), item_id=None
            )
        else:
            source = source_from_fields(
                github_repo=values.get("githubrepo"),
                github_asset=values.get("githubasset"),
                item_type=values.get("gamebananaitemtype"),
                item_id=item_id,
                update_url=values.get("updateurl"),
            )

        return cls(
            name=values.get("name", ""),
            author=values.get("author", ""),
            version=values.get("version", ""),
            description=values.get("description", ""),
            update_source=source,
        )

    @classmethod
    def from_ini(cls, path: str) -> "ModInfo":
        """
        Read a ``mod.ini`` file.

        The file is a plain ``key=value`` list; a section header is optional.

        Args:
            path: Path to mod.ini

        Returns:
            ModInfo built from the file
        """
        with open(path, "r", encoding="utf-8-sig") as f:
            text = f.read()

        parser = configparser.ConfigParser(interpolation=None, strict=False, delimiters=("=",))
        parser.read_string("[mod]\n" + text)

        fields: Dict[str, str] = {}
        for section in parser.sections():
            for key, value in parser.items(section):
                fields.setdefault(key, value)
        return cls.from_dict(fields)


# ========== Remote metadata ==========

@dataclass
class ReleaseAsset:
    """A file attached to a GitHub release."""
    name: str
    download_url: str
    size: int = 0

    @classmethod
    def from_json(cls, asset_json: Dict[str, Any]) -> "ReleaseAsset":
        """Create a ReleaseAsset from GitHub API JSON."""
        return cls(
            name=asset_json.get("name", ""),
            download_url=asset_json.get("browser_download_url", ""),
            size=asset_json.get("size", 0) or 0
        )


@dataclass
class Release:
    """
    A GitHub release.

    Attributes:
        tag_name: Git tag of the release, used as the version marker
        name: Release title
        body: Release notes
        published_at: Publication timestamp (ISO 8601)
        draft: Unpublished draft
        prerelease: Marked as prerelease
        assets: Attached files
    """
    tag_name: str
    name: str = ""
    body: str = ""
    published_at: str = ""
    draft: bool = False
    prerelease: bool = False
    assets: List[ReleaseAsset] = field(default_factory=list)

    @classmethod
    def from_json(cls, release_json: Dict[str, Any]) -> "Release":
        """Create a Release from GitHub API JSON."""
        return cls(
            tag_name=release_json.get("tag_name", ""),
            name=release_json.get("name") or "",
            body=release_json.get("body") or "",
            published_at=release_json.get("published_at") or "",
            draft=bool(release_json.get("draft", False)),
            prerelease=bool(release_json.get("prerelease", False)),
            assets=[ReleaseAsset.from_json(a) for a in release_json.get("assets", [])]
        )

    def find_asset(self, asset_name: str) -> Optional[ReleaseAsset]:
        """Find an asset by name, ignoring case."""
        wanted = asset_name.lower()
        for asset in self.assets:
            if asset.name.lower() == wanted:
                return asset
        return None


@dataclass
class ContentSiteFile:
    """A downloadable file of a GameBanana item."""
    file_id: int
    file_name: str = ""
    download_url: str = ""
    size: int = 0
    date_added: int = 0
    description: str = ""

    @classmethod
    def from_json(cls, file_json: Dict[str, Any]) -> "ContentSiteFile":
        """Create a ContentSiteFile from GameBanana API JSON."""
        return cls(
            file_id=int(file_json.get("_idRow", 0)),
            file_name=file_json.get("_sFile", ""),
            download_url=file_json.get("_sDownloadUrl", ""),
            size=int(file_json.get("_nFilesize", 0) or 0),
            date_added=int(file_json.get("_tsDateAdded", 0) or 0),
            description=file_json.get("_sDescription", "") or ""
        )


@dataclass
class ContentSiteItem:
    """
    A GameBanana item (mod, tool, ...).

    Attributes:
        item_id: Numeric item id
        name: Item name
        owner_name: Submitter name
        date_updated: Last update timestamp (Unix seconds), 0 if unknown
        files: Downloadable files
    """
    item_id: int
    name: str = ""
    owner_name: str = ""
    date_updated: int = 0
    files: List[ContentSiteFile] = field(default_factory=list)

    @classmethod
    def from_json(cls, item_json: Dict[str, Any]) -> "ContentSiteItem":
        """Create a ContentSiteItem from GameBanana ProfilePage JSON."""
        submitter = item_json.get("_aSubmitter") or {}
        date_updated = item_json.get("_tsDateUpdated") or item_json.get("_tsDateModified") or 0
        return cls(
            item_id=int(item_json.get("_idRow", 0)),
            name=item_json.get("_sName", ""),
            owner_name=submitter.get("_sName", ""),
            date_updated=int(date_updated),
            files=[ContentSiteFile.from_json(f) for f in item_json.get("_aFiles") or []]
        )

    def newest_file(self) -> Optional[ContentSiteFile]:
        """Most recently added file (ties broken by the higher id)."""
        if not self.files:
            return None
        return max(self.files, key=lambda f: (f.date_added, f.file_id))


class UpdateMode(Enum):
    """How a batch pass treats version comparisons."""
    NORMAL = "normal"
    FORCED = "forced"
    REPAIR = "repair"


@dataclass
class DownloadDescriptor:
    """
    Describes what to fetch for one mod, from where, and to which folder.

    Attributes:
        mod: Metadata of the mod being updated
        mod_id: Folder name of the mod
        destination_path: Mod folder the transfer component writes into
        source_url: Archive URL, or base URL of the files in manifest_delta
        manifest_delta: Files to fetch for an incremental update, None for a full package
        version_tag: Marker to record in mod.version once installed
        release_name: Name of the release or file on the remote side
        changelog: Release notes, if the source provides them
        size: Download size in bytes, 0 if unknown
        published: Publication timestamp (ISO 8601), if known
    """
    mod: ModInfo
    mod_id: str
    destination_path: str
    source_url: str
    manifest_delta: Optional[Manifest] = None
    version_tag: Optional[str] = None
    release_name: str = ""
    changelog: str = ""
    size: int = 0
    published: str = ""

    @property
    def is_incremental(self) -> bool:
        return self.manifest_delta is not None

    @property
    def files_to_download(self) -> List[ManifestEntry]:
        if self.manifest_delta is None:
            return []
        return list(self.manifest_delta.entries)


@dataclass
class BatchResult:
    """
    Outcome of one update pass.

    Attributes:
        descriptors: Downloads to offer, in input order
        errors: One message per failed mod, in input order
        cancelled: True if the pass stopped early on request
    """
    descriptors: List[DownloadDescriptor] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    cancelled: bool = False


@dataclass
class VerificationResult:
    """Integrity check of one installed mod against its stored manifest."""
    mod_id: str
    mod: ModInfo
    diff: List[DiffEntry] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return any(entry.state != ManifestState.UNCHANGED for entry in self.diff)

    @property
    def failed_count(self) -> int:
        return sum(1 for entry in self.diff if entry.state != ManifestState.UNCHANGED)

    @property
    def known_good(self) -> List[ManifestEntry]:
        """Stored entries whose files are still intact on disk."""
        return [entry.current for entry in self.diff
                if entry.state == ManifestState.UNCHANGED and entry.current is not None]
