"""Tests for data models."""

import pytest

from mod_updater.errors import ManifestFormatError, MalformedSourceError
from mod_updater.models import (
    ContentSiteItem, ContentSiteSource, DownloadDescriptor, GenericManifestSource, Manifest,
    ManifestEntry, ModInfo, NoSource, Release, ReleaseFeedSource, source_from_download_url,
    source_from_fields
)

from conftest import entry


class TestManifestEntry:
    """Test manifest entry parsing and normalization."""

    def test_normalizes_path_and_hash(self) -> None:
        """Test that backslashes and hash case are normalized."""
        item = ManifestEntry(relative_path=".\\Data\\Sprites\\Player.gif", content_hash="ABCDEF", size=3)
        assert item.relative_path == "Data/Sprites/Player.gif"
        assert item.content_hash == "abcdef"
        assert item.key == "data/sprites/player.gif"

    def test_parses_line(self) -> None:
        """Test that a tab-separated line is parsed."""
        item = ManifestEntry.from_line("Data/Game.bin\t42\tdeadbeef\n")
        assert item == ManifestEntry("Data/Game.bin", "deadbeef", 42)
        assert item.to_line() == "Data/Game.bin\t42\tdeadbeef"

    def test_rejects_malformed_lines(self) -> None:
        """Test that bad lines raise ManifestFormatError with the line number."""
        with pytest.raises(ManifestFormatError, match="Line 3"):
            ManifestEntry.from_line("only\ttwo", 3)
        with pytest.raises(ManifestFormatError, match="invalid size"):
            ManifestEntry.from_line("file\tbig\tdeadbeef")
        with pytest.raises(ManifestFormatError, match="empty file path"):
            ManifestEntry.from_line("\t1\tdeadbeef")


class TestManifest:
    """Test manifest container and serialization."""

    def test_serialization_preserves_order(self) -> None:
        """Test that insertion order survives a text round-trip."""
        manifest = Manifest([entry("z.txt", b"z"), entry("a.txt", b"a"), entry("m/b.txt", b"b")])
        parsed = Manifest.from_text(manifest.to_text())
        assert [e.relative_path for e in parsed] == ["z.txt", "a.txt", "m/b.txt"]
        assert parsed == manifest

    def test_lookup_ignores_case_and_slashes(self) -> None:
        """Test that get and membership use the normalized key."""
        manifest = Manifest([entry("Data/Game.bin", b"x")])
        assert manifest.get("data\\GAME.bin") is manifest.entries[0]
        assert "DATA/game.bin" in manifest
        assert manifest.get("other") is None

    def test_rejects_duplicates(self) -> None:
        """Test that two entries with the same key are rejected."""
        with pytest.raises(ValueError, match="Duplicate"):
            Manifest([entry("a.txt", b"1"), entry("A.TXT", b"2")])
        with pytest.raises(ManifestFormatError, match="duplicate"):
            Manifest.from_text("a.txt\t1\taa\nA.txt\t1\tbb\n")

    def test_skips_blank_lines(self) -> None:
        """Test that blank lines are ignored when parsing."""
        manifest = Manifest.from_text("\na.txt\t1\taa\n\n\nb.txt\t2\tbb\n")
        assert len(manifest) == 2
        assert manifest.total_size == 3

    def test_fingerprint_tracks_content(self) -> None:
        """Test that the fingerprint changes with the content."""
        first = Manifest([entry("a.txt", b"1")])
        second = Manifest([entry("a.txt", b"2")])
        assert first.fingerprint() == Manifest([entry("a.txt", b"1")]).fingerprint()
        assert first.fingerprint() != second.fingerprint()
        assert len(first.fingerprint()) == 64


class TestUpdateSource:
    """Test update source selection."""

    def test_priority_order(self) -> None:
        """Test that release feed beats content site beats manifest URL."""
        source = source_from_fields(github_repo="o/r", github_asset="Mod.zip", item_type="Mod",
                                    item_id=5, update_url="https://example.com/mod/")
        assert source == ReleaseFeedSource("o/r", "Mod.zip")

        source = source_from_fields(item_type="Mod", item_id=5, update_url="https://example.com/mod/")
        assert source == ContentSiteSource("Mod", 5)

        source = source_from_fields(update_url="https://example.com/mod/")
        assert source == GenericManifestSource("https://example.com/mod/")

        assert source_from_fields() == NoSource()

    def test_missing_asset_is_malformed(self) -> None:
        """Test that a repo without asset does not fall through to other sources."""
        source = source_from_fields(github_repo="o/r", update_url="https://example.com/")
        assert isinstance(source, ReleaseFeedSource)
        with pytest.raises(MalformedSourceError, match="GitHubAsset is missing"):
            source.validate()

    def test_content_site_requires_both_fields(self) -> None:
        """Test that item type and id must both be present."""
        with pytest.raises(MalformedSourceError):
            ContentSiteSource("Mod", None).validate()
        with pytest.raises(MalformedSourceError):
            ContentSiteSource("", 12).validate()
        ContentSiteSource("Mod", 12).validate()

    def test_manifest_url_must_be_http(self) -> None:
        """Test that non-http update URLs are rejected."""
        with pytest.raises(MalformedSourceError):
            GenericManifestSource("file:///etc/passwd").validate()

    def test_describe(self) -> None:
        """Test the readable source descriptions."""
        assert NoSource().describe() == "none"
        assert ReleaseFeedSource("o/r", "Mod.zip").describe() == "GitHub o/r (Mod.zip)"
        assert ContentSiteSource("Mod", 12).describe() == "GameBanana Mod 12"
        assert GenericManifestSource("https://x/").describe() == "manifest https://x/"

    def test_from_download_url(self) -> None:
        """Test that GitHub asset URLs map to a release feed source."""
        source = source_from_download_url(
            "https://github.com/someone/CoolMod/releases/download/v1.2/CoolMod.zip")
        assert source == ReleaseFeedSource("someone/CoolMod", "CoolMod.zip")
        assert source_from_download_url("https://example.com/CoolMod.zip") == NoSource()


class TestModInfo:
    """Test mod metadata loading."""

    def test_from_ini_without_section(self, tmp_path) -> None:
        """Test that a section-less mod.ini is read."""
        ini = tmp_path / "mod.ini"
        ini.write_text(
            "Name=Cool Mod\n"
            "Author=Someone\n"
            "Version=1.0\n"
            "Description=Adds things: lots of them\n"
            "GitHubRepo=someone/CoolMod\n"
            "GitHubAsset=CoolMod.zip\n",
            encoding="utf-8"
        )
        info = ModInfo.from_ini(str(ini))
        assert info.name == "Cool Mod"
        assert info.version == "1.0"
        assert info.description == "Adds things: lots of them"
        assert info.update_source == ReleaseFeedSource("someone/CoolMod", "CoolMod.zip")

    def test_from_dict_content_site(self) -> None:
        """Test that GameBanana keys build a content site source."""
        info = ModInfo.from_dict({"Name": "X", "GameBananaItemType": "Mod", "GameBananaItemId": "123"})
        assert info.update_source == ContentSiteSource("Mod", 123)

    def test_invalid_item_id_is_malformed(self) -> None:
        """Test that a non-numeric item id is reported rather than ignored."""
        info = ModInfo.from_dict({"Name": "X", "GameBananaItemType": "Mod", "GameBananaItemId": "abc",
                                  "UpdateUrl": "https://example.com/"})
        assert isinstance(info.update_source, ContentSiteSource)
        with pytest.raises(MalformedSourceError):
            info.update_source.validate()


class TestRemoteModels:
    """Test parsing of remote metadata."""

    def test_release_from_json(self) -> None:
        """Test GitHub release parsing and asset lookup."""
        release = Release.from_json({
            "tag_name": "v2", "name": None, "body": "notes", "draft": False, "prerelease": False,
            "assets": [{"name": "Mod.ZIP", "browser_download_url": "https://dl/Mod.ZIP", "size": 10}]
        })
        assert release.name == ""
        assert release.find_asset("mod.zip").download_url == "https://dl/Mod.ZIP"
        assert release.find_asset("other.zip") is None

    def test_content_site_newest_file(self) -> None:
        """Test that the newest file is chosen by date added."""
        item = ContentSiteItem.from_json({
            "_idRow": 5, "_sName": "Mod", "_aSubmitter": {"_sName": "Someone"},
            "_tsDateUpdated": 300,
            "_aFiles": [
                {"_idRow": 1, "_sFile": "old.zip", "_tsDateAdded": 100, "_sDownloadUrl": "https://dl/1"},
                {"_idRow": 2, "_sFile": "new.zip", "_tsDateAdded": 200, "_sDownloadUrl": "https://dl/2"},
            ]
        })
        assert item.owner_name == "Someone"
        assert item.newest_file().file_id == 2
        assert ContentSiteItem(item_id=1).newest_file() is None

    def test_descriptor_files_to_download(self) -> None:
        """Test the incremental flag of descriptors."""
        full = DownloadDescriptor(mod=ModInfo("A"), mod_id="A", destination_path="/m/A", source_url="u")
        assert not full.is_incremental
        assert full.files_to_download == []

        delta = Manifest([entry("a.txt", b"1")])
        partial = DownloadDescriptor(mod=ModInfo("A"), mod_id="A", destination_path="/m/A",
                                     source_url="u", manifest_delta=delta)
        assert partial.is_incremental
        assert [e.relative_path for e in partial.files_to_download] == ["a.txt"]
