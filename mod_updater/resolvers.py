"""
Update source resolvers

A resolver decides whether a newer version of one mod exists on its
configured source and, if so, describes what to download. Resolvers only
read local state (version marker, stored manifest) and never modify the
mod folder.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

from mod_updater import constants
from mod_updater import manifest as manifest_store
from mod_updater.api import ContentSiteAPI, ManifestAPI, ReleaseFeedAPI
from mod_updater.diff import changed_entries, diff_manifests
from mod_updater.errors import NotFoundError
from mod_updater.models import (
    ContentSiteSource, ContentSiteItem, ContentSiteFile, DownloadDescriptor,
    GenericManifestSource, Manifest, ManifestEntry, ModInfo, ReleaseFeedSource
)


class ReleaseFeedResolver:
    """
    Resolves updates from GitHub releases.

    The newest published release carrying the configured asset wins. Any
    difference between its tag and the stored version counts as an update.
    """

    def __init__(self, api: ReleaseFeedAPI):
        self.api = api
        self.logger = logging.getLogger("mod_updater.resolvers.release_feed")

    def resolve(self, mod_id: str, mod: ModInfo, mod_dir: str, force: bool = False,
                cancel: Optional[threading.Event] = None) -> Optional[DownloadDescriptor]:
        """
        Check one mod against its release feed.

        Args:
            mod_id: Mod folder name
            mod: Mod metadata with a ReleaseFeedSource
            mod_dir: Installed mod folder (also the download destination)
            force: Return a descriptor even if the tag matches
            cancel: Cancellation event

        Returns:
            Descriptor for the release asset, or None if up to date

        Raises:
            MalformedSourceError: Source lacks an asset name
            NotFoundError: No release carries the asset
            NetworkError: Release listing could not be fetched
        """
        source = mod.update_source
        if not isinstance(source, ReleaseFeedSource):
            raise TypeError(f"{mod.name} is not configured for a release feed")
        source.validate()

        releases = self.api.get_releases(source.repo, cancel=cancel)

        for release in releases:
            if release.draft or release.prerelease:
                continue
            asset = release.find_asset(source.asset_name)
            if asset is not None:
                break
        else:
            raise NotFoundError(f"No release of {source.repo} has an asset named {source.asset_name}")

        stored = manifest_store.read_version_marker(mod_dir) or mod.version
        if not force and stored == release.tag_name:
            self.logger.debug(f"{mod.name} is up to date ({stored})")
            return None

        self.logger.info(f"{mod.name}: {stored or '?'} -> {release.tag_name}")
        return DownloadDescriptor(
            mod=mod,
            mod_id=mod_id,
            destination_path=mod_dir,
            source_url=asset.download_url,
            version_tag=release.tag_name,
            release_name=release.name or release.tag_name,
            changelog=release.body,
            size=asset.size,
            published=release.published_at
        )


class ContentSiteResolver:
    """
    Resolves updates from GameBanana items.

    The stored marker is the id of the installed file. Mods installed before
    markers existed fall back to comparing the item's update time with the
    manifest's modification time.
    """

    def __init__(self, api: ContentSiteAPI):
        self.api = api
        self.logger = logging.getLogger("mod_updater.resolvers.content_site")

    def resolve(self, mod_id: str, mod: ModInfo, mod_dir: str, force: bool = False,
                cancel: Optional[threading.Event] = None) -> Optional[DownloadDescriptor]:
        """
        Check one mod against its content site item.

        Returns:
            Descriptor for the newest file, or None if up to date

        Raises:
            MalformedSourceError: Item type or id missing
            NotFoundError: Item missing or without files
            NetworkError: Item query failed
        """
        source = mod.update_source
        if not isinstance(source, ContentSiteSource):
            raise TypeError(f"{mod.name} is not configured for a content site item")
        source.validate()

        item = self.api.get_item(source.item_type, source.item_id, cancel=cancel)
        newest = item.newest_file()
        if newest is None:
            raise NotFoundError(f"{source.item_type} {source.item_id} has no files")

        if not force and not self._is_newer(item, newest, mod_dir):
            self.logger.debug(f"{mod.name} is up to date (file {newest.file_id})")
            return None

        self.logger.info(f"{mod.name}: new file {newest.file_name} ({newest.file_id})")
        return DownloadDescriptor(
            mod=mod,
            mod_id=mod_id,
            destination_path=mod_dir,
            source_url=newest.download_url,
            version_tag=str(newest.file_id),
            release_name=newest.file_name or item.name,
            changelog=newest.description,
            size=newest.size,
            published=_format_timestamp(newest.date_added)
        )

    def _is_newer(self, item: ContentSiteItem, newest: ContentSiteFile, mod_dir: str) -> bool:
        marker = manifest_store.read_version_marker(mod_dir)
        if marker is not None:
            return marker != str(newest.file_id)

        installed_at = manifest_store.manifest_mtime(mod_dir)
        updated_at = item.date_updated or newest.date_added
        if installed_at is not None and updated_at:
            return updated_at > installed_at

        return True


def split_manifest_url(url: str) -> Tuple[str, str]:
    """
    Work out the manifest URL and the base URL of the files it lists.

    ``url`` may point at the manifest itself or at the folder holding it.
    A query string stays on the manifest URL; the base URL carries none.

    Returns:
        Tuple of (manifest URL, base URL ending in "/")
    """
    parts = urlsplit(url)
    path = parts.path
    if path.lower().endswith("/" + constants.MANIFEST_FILE):
        folder = path[:-len(constants.MANIFEST_FILE)]
        return url, urlunsplit((parts.scheme, parts.netloc, folder, "", ""))

    folder = path if path.endswith("/") else path + "/"
    manifest_url = urlunsplit((parts.scheme, parts.netloc, folder + constants.MANIFEST_FILE, parts.query, ""))
    return manifest_url, urlunsplit((parts.scheme, parts.netloc, folder, "", ""))


class GenericManifestResolver:
    """
    Resolves updates from a plain web folder exposing a mod.manifest.

    This is the only source that supports incremental updates: the
    descriptor lists just the files whose content differs.
    """

    def __init__(self, api: ManifestAPI):
        self.api = api
        self.logger = logging.getLogger("mod_updater.resolvers.generic_manifest")

    def resolve(self, mod_id: str, mod: ModInfo, mod_dir: str, force: bool = False,
                cancel: Optional[threading.Event] = None,
                known_good: Optional[List[ManifestEntry]] = None) -> Optional[DownloadDescriptor]:
        """
        Compare the remote manifest with the local files.

        Args:
            mod_id: Mod folder name
            mod: Mod metadata with a GenericManifestSource
            mod_dir: Installed mod folder
            force: Fetch every remote file regardless of local state
            cancel: Cancellation event
            known_good: Local entries verified intact on disk (repair). When
                given, they replace the stored manifest as the local side.

        Returns:
            Descriptor whose manifest_delta lists the files to fetch, or None
            if nothing differs

        Raises:
            MalformedSourceError: Update URL is not http(s)
            NotFoundError: Remote manifest missing
            NetworkError: Remote manifest could not be fetched
            ManifestFormatError: Remote manifest is malformed
            ModIOError: Stored manifest is unreadable
        """
        source = mod.update_source
        if not isinstance(source, GenericManifestSource):
            raise TypeError(f"{mod.name} is not configured for a manifest endpoint")
        source.validate()

        manifest_url, base_url = split_manifest_url(source.url)
        remote = self.api.get_manifest(manifest_url, cancel=cancel)

        if known_good is not None:
            delta = changed_entries(diff_manifests(remote, Manifest(list(known_good))))
        elif force:
            delta = Manifest(list(remote))
        else:
            if manifest_store.has_manifest(mod_dir):
                local = manifest_store.load_manifest(mod_dir)
            else:
                local = Manifest()
            delta = changed_entries(diff_manifests(remote, local))

        full_fetch = force and known_good is None
        if not delta and not full_fetch:
            self.logger.debug(f"{mod.name} matches the remote manifest")
            return None

        self.logger.info(f"{mod.name}: {len(delta)} of {len(remote)} files to fetch")
        return DownloadDescriptor(
            mod=mod,
            mod_id=mod_id,
            destination_path=mod_dir,
            source_url=base_url,
            manifest_delta=delta,
            version_tag=remote.fingerprint(),
            release_name=mod.name,
            size=delta.total_size
        )


def _format_timestamp(timestamp: int) -> str:
    if not timestamp:
        return ""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()
