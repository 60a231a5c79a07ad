"""
Example usage of mod_updater library

This script demonstrates how to:
1. Read the installed mods of a game folder
2. Verify them against their stored manifests
3. Check every mod for updates in the background
"""

import logging
import os
import sys
import threading

from mod_updater import ModInfo, ModUpdater, UpdaterConfig
from mod_updater.errors import UpdaterBusyError


def setup_logging():
    """Configure logging for the example."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def main():
    """Main example function."""
    setup_logging()
    logger = logging.getLogger("example")

    if len(sys.argv) < 2:
        logger.error("Usage: python example.py <game folder>")
        return 1

    game_root = sys.argv[1]
    config = UpdaterConfig.load()
    mods_root = os.path.join(game_root, config.mods_dir)

    # Collect installed mods
    mods = []
    for mod_id in sorted(os.listdir(mods_root)):
        ini_path = os.path.join(mods_root, mod_id, "mod.ini")
        if os.path.isfile(ini_path):
            mods.append((mod_id, ModInfo.from_ini(ini_path)))
    logger.info(f"Found {len(mods)} mods")

    with ModUpdater(game_root, config) as updater:
        # Verify mods that ship a manifest
        for verified in updater.verify_mods(mods):
            if verified.failed:
                logger.warning(f"{verified.mod.name}: {verified.failed_count} damaged file(s)")

        # Check for updates on the worker thread
        cancel = threading.Event()
        future = updater.start(mods, cancel)

        try:
            updater.start(mods)
        except UpdaterBusyError:
            logger.info("A second check is refused while the first one runs")

        result = future.result()

    for descriptor in result.descriptors:
        logger.info(f"Update for {descriptor.mod.name}: {descriptor.version_tag} from {descriptor.source_url}")
    for error in result.errors:
        logger.error(error)

    logger.info("Example completed successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
