"""
HTTP clients for the update sources

Each client wraps one remote service:
- ReleaseFeedAPI: GitHub release listings
- ContentSiteAPI: GameBanana item metadata
- ManifestAPI: plain mod.manifest files on arbitrary web servers

All requests are bounded by the configured timeout and stop retrying as soon
as the caller's cancellation event is set.
"""

import logging
import threading
import time
from typing import List, Optional, Dict, Any
from urllib.parse import quote

import requests

from mod_updater import constants
from mod_updater.config import UpdaterConfig
from mod_updater.errors import ManifestFormatError, NetworkError, NotFoundError, OperationCancelled
from mod_updater.models import ContentSiteItem, Manifest, Release

# Responses worth another attempt
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


def create_session(config: UpdaterConfig) -> requests.Session:
    """Create a requests session with the engine's User-Agent."""
    session = requests.Session()
    session.headers.update({
        "User-Agent": config.user_agent
    })
    return session


class APIClient:
    """
    Shared request logic for the update source clients.

    Args:
        config: Engine settings (timeout, retries, tokens)
        session: Session to reuse; a new one is created if omitted
    """

    def __init__(self, config: Optional[UpdaterConfig] = None,
                 session: Optional[requests.Session] = None):
        self.config = config or UpdaterConfig()
        self.session = session or create_session(self.config)
        self.logger = logging.getLogger("mod_updater.api")

    def _get(self, url: str, headers: Optional[Dict[str, str]] = None,
             cancel: Optional[threading.Event] = None) -> requests.Response:
        """
        GET a URL with retries.

        Args:
            url: URL to request
            headers: Extra request headers
            cancel: Event that aborts the request loop when set

        Returns:
            Successful response

        Raises:
            NotFoundError: HTTP 404
            NetworkError: Connection failure, timeout or error status after all retries
            OperationCancelled: If cancel is set before an attempt
        """
        retries = max(1, self.config.retries)
        last_error: Optional[NetworkError] = None

        for attempt in range(retries):
            if cancel is not None and cancel.is_set():
                raise OperationCancelled(f"Request to {url} cancelled")

            try:
                response = self.session.get(url, headers=headers, timeout=self.config.timeout)
            except requests.Timeout:
                last_error = NetworkError(f"Request timed out after {self.config.timeout}s", url=url)
            except requests.RequestException as exc:
                last_error = NetworkError(f"Connection failed: {exc}", url=url)
            else:
                self.logger.debug(f"GET {url} -> {response.status_code}")

                if response.status_code == 404:
                    raise NotFoundError(f"Not found: {url}", 404, url)
                if response.status_code in RETRY_STATUS_CODES:
                    last_error = NetworkError(f"HTTP {response.status_code} from {url}",
                                              response.status_code, url)
                elif not response.ok:
                    raise NetworkError(f"HTTP {response.status_code} {response.reason} from {url}",
                                       response.status_code, url)
                else:
                    return response

            self.logger.warning(f"Request failed (attempt {attempt + 1}/{retries}): {last_error}")
            if attempt < retries - 1:
                self._backoff(attempt, cancel)

        raise last_error

    def _backoff(self, attempt: int, cancel: Optional[threading.Event]) -> None:
        """Wait before the next attempt; returns early on cancellation."""
        delay = constants.RETRY_BACKOFF * (attempt + 1)
        if cancel is not None:
            cancel.wait(delay)
        else:
            time.sleep(delay)

    def _get_json(self, url: str, headers: Optional[Dict[str, str]] = None,
                  cancel: Optional[threading.Event] = None) -> Any:
        response = self._get(url, headers=headers, cancel=cancel)
        try:
            return response.json()
        except ValueError as exc:
            raise NetworkError(f"Invalid JSON from {url}: {exc}", response.status_code, url) from exc


class ReleaseFeedAPI(APIClient):
    """Client for GitHub release listings."""

    def get_releases(self, repo: str, cancel: Optional[threading.Event] = None) -> List[Release]:
        """
        List the releases of a repository, newest first.

        Args:
            repo: Repository in "owner/name" form
            cancel: Cancellation event

        Returns:
            Releases in the order GitHub returns them
        """
        url = constants.GITHUB_RELEASES_URL.format(repo=repo)
        headers = {"Accept": "application/vnd.github+json"}
        if self.config.github_token:
            headers["Authorization"] = f"token {self.config.github_token}"

        data = self._get_json(url, headers=headers, cancel=cancel)
        if not isinstance(data, list):
            raise NetworkError(f"Unexpected release listing for {repo}", url=url)

        releases = [Release.from_json(item) for item in data]
        self.logger.debug(f"Found {len(releases)} releases for {repo}")
        return releases


class ContentSiteAPI(APIClient):
    """Client for GameBanana item metadata."""

    def get_item(self, item_type: str, item_id: int,
                 cancel: Optional[threading.Event] = None) -> ContentSiteItem:
        """
        Fetch an item's profile, including its file list.

        Args:
            item_type: Item type, e.g. "Mod"
            item_id: Numeric item id
            cancel: Cancellation event

        Returns:
            Parsed item
        """
        url = constants.GAMEBANANA_ITEM_URL.format(item_type=quote(item_type), item_id=item_id)
        data = self._get_json(url, headers={"Accept": "application/json"}, cancel=cancel)

        if not isinstance(data, dict):
            raise NetworkError(f"Unexpected response for {item_type} {item_id}", url=url)
        if data.get("_sErrorCode") or data.get("error"):
            message = data.get("_sErrorMessage") or data.get("error") or data.get("_sErrorCode")
            raise NotFoundError(f"{item_type} {item_id}: {message}", url=url)

        return ContentSiteItem.from_json(data)


class ManifestAPI(APIClient):
    """Client for manifests served from arbitrary URLs."""

    def get_manifest(self, url: str, cancel: Optional[threading.Event] = None) -> Manifest:
        """
        Download and parse a remote mod.manifest.

        Raises:
            ManifestFormatError: If the file is not a valid manifest
        """
        response = self._get(url, cancel=cancel)
        try:
            manifest = Manifest.from_text(response.content.decode("utf-8-sig"))
        except UnicodeDecodeError as exc:
            raise ManifestFormatError(f"Remote manifest {url} is not valid UTF-8: {exc}") from exc
        except ManifestFormatError as exc:
            raise ManifestFormatError(f"Remote manifest {url}: {exc}", exc.line_number) from exc

        self.logger.debug(f"Remote manifest {url}: {len(manifest)} entries")
        return manifest
