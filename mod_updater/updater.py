"""
Batch update orchestration

ModUpdater runs one update, forced update or repair pass over a list of
mods. A pass never stops on a single mod's failure: every failure becomes
one line in BatchResult.errors and the next mod is processed.
"""

import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from mod_updater import manifest as manifest_store
from mod_updater.api import ContentSiteAPI, ManifestAPI, ReleaseFeedAPI, create_session
from mod_updater.config import UpdaterConfig
from mod_updater.errors import (
    ModIOError, NotFoundError, OperationCancelled, UpdaterBusyError, UpdaterError
)
from mod_updater.models import (
    BatchResult, ContentSiteSource, DownloadDescriptor, GenericManifestSource, ManifestEntry,
    ModInfo, NoSource, ReleaseFeedSource, UpdateMode, VerificationResult
)
from mod_updater.resolvers import ContentSiteResolver, GenericManifestResolver, ReleaseFeedResolver

ModList = Sequence[Tuple[str, ModInfo]]


def _is_cancelled(cancel: Optional[threading.Event]) -> bool:
    return cancel is not None and cancel.is_set()


def format_error(mod_id: str, mod: ModInfo, error: Exception) -> str:
    """Per-mod error line shown to the user."""
    return f"[{mod.name or mod_id}] {error}"


class ModUpdater:
    """
    Checks a game installation's mods for updates.

    One instance serves one game installation and runs at most one pass at
    a time. Starting a second pass while one is running raises
    UpdaterBusyError instead of interleaving them.

    Example:
        >>> updater = ModUpdater("/games/mania")
        >>> cancel = threading.Event()
        >>> future = updater.start(mods, cancel)
        >>> result = future.result()
    """

    def __init__(self, game_root: str, config: Optional[UpdaterConfig] = None,
                 release_api: Optional[ReleaseFeedAPI] = None,
                 content_api: Optional[ContentSiteAPI] = None,
                 manifest_api: Optional[ManifestAPI] = None):
        """
        Initialize the updater.

        Args:
            game_root: Game folder; mods live in <game_root>/<config.mods_dir>/<mod id>
            config: Engine settings, defaults if omitted
            release_api: Release feed client (created if omitted)
            content_api: Content site client (created if omitted)
            manifest_api: Manifest endpoint client (created if omitted)
        """
        self.game_root = game_root
        self.config = config or UpdaterConfig()
        self.logger = logging.getLogger("mod_updater.updater")

        if not (release_api and content_api and manifest_api):
            session = create_session(self.config)
            release_api = release_api or ReleaseFeedAPI(self.config, session)
            content_api = content_api or ContentSiteAPI(self.config, session)
            manifest_api = manifest_api or ManifestAPI(self.config, session)

        self.release_feed = ReleaseFeedResolver(release_api)
        self.content_site = ContentSiteResolver(content_api)
        self.generic_manifest = GenericManifestResolver(manifest_api)

        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None

    # ========== Pass control ==========

    @property
    def busy(self) -> bool:
        """True while a pass is running."""
        return self._lock.locked()

    def _acquire(self) -> None:
        if not self._lock.acquire(blocking=False):
            raise UpdaterBusyError("An update pass is already running for this game")

    def check_for_updates(self, mods: ModList, cancel: Optional[threading.Event] = None,
                          mode: UpdateMode = UpdateMode.NORMAL,
                          verification: Optional[List[VerificationResult]] = None) -> BatchResult:
        """
        Run a pass on the calling thread.

        Args:
            mods: (mod id, metadata) pairs, processed in order
            cancel: Event polled before each mod; when set the pass returns early
            mode: NORMAL, FORCED (ignore versions) or REPAIR (fix failed verification)
            verification: Results of verify_mods for REPAIR; computed when omitted

        Returns:
            Descriptors and errors in input order

        Raises:
            UpdaterBusyError: If another pass is running
        """
        mods = list(mods)
        self._acquire()
        return self._run_and_release(mods, cancel, mode, verification)

    def start(self, mods: ModList, cancel: Optional[threading.Event] = None,
              mode: UpdateMode = UpdateMode.NORMAL,
              verification: Optional[List[VerificationResult]] = None) -> "Future[BatchResult]":
        """
        Run a pass on the updater's background worker thread.

        Takes the same arguments as check_for_updates.

        Returns:
            Future resolving to the BatchResult

        Raises:
            UpdaterBusyError: If another pass is running
        """
        self._acquire()
        try:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mod-updater")
            return self._executor.submit(self._run_and_release, list(mods), cancel, mode, verification)
        except BaseException:
            self._lock.release()
            raise

    def shutdown(self, wait: bool = True) -> None:
        """Stop the background worker."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    def __enter__(self) -> "ModUpdater":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    def _run_and_release(self, mods: List[Tuple[str, ModInfo]], cancel: Optional[threading.Event],
                         mode: UpdateMode,
                         verification: Optional[List[VerificationResult]]) -> BatchResult:
        try:
            return self._run(mods, cancel, mode, verification)
        finally:
            self._lock.release()

    # ========== Pass ==========

    def mod_dir(self, mod_id: str) -> str:
        """Folder of an installed mod."""
        return os.path.join(self.game_root, self.config.mods_dir, mod_id)

    def _run(self, mods: List[Tuple[str, ModInfo]], cancel: Optional[threading.Event],
             mode: UpdateMode, verification: Optional[List[VerificationResult]]) -> BatchResult:
        result = BatchResult()
        repair = mode == UpdateMode.REPAIR
        known_good: Dict[str, List[ManifestEntry]] = {}
        verify_errors: Dict[str, str] = {}

        if repair:
            known_good, verify_errors = self._select_repairs(mods, cancel, verification)
            if _is_cancelled(cancel):
                self.logger.info("Repair cancelled during verification")
                result.errors.extend(verify_errors[mod_id] for mod_id, _ in mods if mod_id in verify_errors)
                result.cancelled = True
                return result

        self.logger.info(f"Checking {len(mods)} mod(s) for updates ({mode.value})")

        for mod_id, mod in mods:
            if _is_cancelled(cancel):
                self.logger.info("Update check cancelled")
                result.cancelled = True
                break

            if repair:
                if mod_id in verify_errors:
                    result.errors.append(verify_errors[mod_id])
                    continue
                if mod_id not in known_good:
                    continue

            try:
                descriptor = self._resolve(mod_id, mod, mode, cancel, known_good.get(mod_id))
            except OperationCancelled:
                self.logger.info(f"Update check cancelled while checking {mod.name}")
                result.cancelled = True
                break
            except NotFoundError as e:
                if self.config.report_not_found:
                    result.errors.append(format_error(mod_id, mod, e))
                self.logger.info(f"[{mod.name}] no update available: {e}")
                continue
            except UpdaterError as e:
                self.logger.warning(f"[{mod.name}] update check failed: {e}")
                result.errors.append(format_error(mod_id, mod, e))
                continue
            except Exception as e:
                self.logger.error(f"[{mod.name}] unexpected error: {e}", exc_info=True)
                result.errors.append(format_error(mod_id, mod, e))
                continue

            if descriptor is not None:
                result.descriptors.append(descriptor)

        self.logger.info(f"Update check finished: {len(result.descriptors)} update(s), "
                         f"{len(result.errors)} error(s)")
        return result

    def _resolve(self, mod_id: str, mod: ModInfo, mode: UpdateMode,
                 cancel: Optional[threading.Event],
                 known_good: Optional[List[ManifestEntry]]) -> Optional[DownloadDescriptor]:
        """Dispatch one mod to the resolver of its update source."""
        source = mod.update_source
        mod_dir = self.mod_dir(mod_id)
        force = mode != UpdateMode.NORMAL

        if isinstance(source, NoSource):
            return None
        self.logger.debug(f"[{mod.name}] checking {source.describe()}")
        if isinstance(source, ReleaseFeedSource):
            return self.release_feed.resolve(mod_id, mod, mod_dir, force=force, cancel=cancel)
        if isinstance(source, ContentSiteSource):
            return self.content_site.resolve(mod_id, mod, mod_dir, force=force, cancel=cancel)
        if isinstance(source, GenericManifestSource):
            return self.generic_manifest.resolve(
                mod_id, mod, mod_dir, force=force, cancel=cancel,
                known_good=known_good if mode == UpdateMode.REPAIR else None
            )
        raise TypeError(f"Unknown update source: {source!r}")

    # ========== Verification ==========

    def verify_mods(self, mods: ModList, cancel: Optional[threading.Event] = None,
                    errors: Optional[List[str]] = None) -> List[VerificationResult]:
        """
        Check installed mods against their stored manifests.

        Mods without a readable manifest are skipped; a message is appended
        to ``errors`` when given.

        Args:
            mods: (mod id, metadata) pairs
            cancel: Event polled before each mod
            errors: List collecting per-mod failure messages

        Returns:
            One result per verified mod, in input order
        """
        results = []
        for mod_id, mod in mods:
            if _is_cancelled(cancel):
                self.logger.info("Verification cancelled")
                break

            try:
                results.append(self._verify_one(mod_id, mod))
            except ModIOError as e:
                self.logger.warning(f"[{mod.name}] cannot verify: {e}")
                if errors is not None:
                    errors.append(format_error(mod_id, mod, e))
        return results

    def _verify_one(self, mod_id: str, mod: ModInfo) -> VerificationResult:
        mod_dir = self.mod_dir(mod_id)
        if not manifest_store.has_manifest(mod_dir):
            raise ModIOError("No mod.manifest, cannot verify", manifest_store.manifest_path(mod_dir))

        verified = VerificationResult(mod_id=mod_id, mod=mod, diff=manifest_store.verify_mod(mod_dir))
        if verified.failed:
            self.logger.info(f"[{mod.name}] {verified.failed_count} file(s) failed verification")
        return verified

    def _select_repairs(self, mods: List[Tuple[str, ModInfo]], cancel: Optional[threading.Event],
                        verification: Optional[Iterable[VerificationResult]]
                        ) -> Tuple[Dict[str, List[ManifestEntry]], Dict[str, str]]:
        """
        Find the mods that failed verification.

        Returns:
            Tuple of (intact entries per failed mod id, error line per mod id
            that could not be verified)
        """
        errors: Dict[str, str] = {}
        if verification is None:
            verification = []
            for mod_id, mod in mods:
                if _is_cancelled(cancel):
                    self.logger.info("Verification cancelled")
                    break
                try:
                    verification.append(self._verify_one(mod_id, mod))
                except ModIOError as e:
                    self.logger.warning(f"[{mod.name}] cannot verify: {e}")
                    errors[mod_id] = format_error(mod_id, mod, e)

        known_good = {v.mod_id: v.known_good for v in verification if v.failed}
        self.logger.info(f"{len(known_good)} of {len(mods)} mod(s) need repair")
        return known_good, errors
