"""Shared fixtures and fakes for the test suite."""

import hashlib
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import pytest

from mod_updater.config import UpdaterConfig
from mod_updater.errors import NotFoundError
from mod_updater.models import (
    ContentSiteItem, Manifest, ManifestEntry, Release, ReleaseAsset
)
from mod_updater.updater import ModUpdater


def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def entry(path: str, content: bytes) -> ManifestEntry:
    """Manifest entry for the given content."""
    return ManifestEntry(relative_path=path, content_hash=sha256(content), size=len(content))


def make_release(tag: str, asset_name: str, repo: str = "owner/mod", **kwargs) -> Release:
    url = f"https://github.com/{repo}/releases/download/{tag}/{asset_name}"
    return Release(tag_name=tag, name=f"Release {tag}",
                   assets=[ReleaseAsset(name=asset_name, download_url=url, size=1024)], **kwargs)


def write_files(root: Path, files: Dict[str, bytes]) -> None:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)


OnCall = Optional[Callable[[str], None]]


class FakeReleaseAPI:
    """In-memory stand-in for ReleaseFeedAPI."""

    def __init__(self, releases: Optional[Dict[str, Union[List[Release], Exception]]] = None,
                 on_call: OnCall = None):
        self.releases = releases or {}
        self.on_call = on_call
        self.calls: List[str] = []

    def get_releases(self, repo: str, cancel: Optional[threading.Event] = None) -> List[Release]:
        self.calls.append(repo)
        if self.on_call:
            self.on_call(repo)
        value = self.releases.get(repo)
        if isinstance(value, Exception):
            raise value
        if value is None:
            raise NotFoundError(f"Not found: {repo}")
        return value


class FakeContentAPI:
    """In-memory stand-in for ContentSiteAPI."""

    def __init__(self, items: Optional[Dict[int, Union[ContentSiteItem, Exception]]] = None):
        self.items = items or {}
        self.calls: List[int] = []

    def get_item(self, item_type: str, item_id: int,
                 cancel: Optional[threading.Event] = None) -> ContentSiteItem:
        self.calls.append(item_id)
        value = self.items.get(item_id)
        if isinstance(value, Exception):
            raise value
        if value is None:
            raise NotFoundError(f"{item_type} {item_id}: not found")
        return value


class FakeManifestAPI:
    """In-memory stand-in for ManifestAPI."""

    def __init__(self, manifests: Optional[Dict[str, Union[Manifest, Exception]]] = None):
        self.manifests = manifests or {}
        self.calls: List[str] = []

    def get_manifest(self, url: str, cancel: Optional[threading.Event] = None) -> Manifest:
        self.calls.append(url)
        value = self.manifests.get(url)
        if isinstance(value, Exception):
            raise value
        if value is None:
            raise NotFoundError(f"Not found: {url}")
        return value


@pytest.fixture
def config() -> UpdaterConfig:
    return UpdaterConfig(timeout=1, retries=1)


@pytest.fixture
def release_api() -> FakeReleaseAPI:
    return FakeReleaseAPI()


@pytest.fixture
def content_api() -> FakeContentAPI:
    return FakeContentAPI()


@pytest.fixture
def manifest_api() -> FakeManifestAPI:
    return FakeManifestAPI()


@pytest.fixture
def updater(tmp_path, config, release_api, content_api, manifest_api) -> ModUpdater:
    (tmp_path / "mods").mkdir()
    with ModUpdater(str(tmp_path), config, release_api=release_api,
                    content_api=content_api, manifest_api=manifest_api) as instance:
        yield instance
