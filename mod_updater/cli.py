#!/usr/bin/env python3
"""
Command-line interface for mod_updater

Minimal front end for generating manifests, verifying installed mods and
checking for updates. Downloads are left to the caller.
"""

import argparse
import logging
import os
import sys
import threading
from typing import List, Tuple

from mod_updater import constants, utils
from mod_updater import manifest as manifest_store
from mod_updater.config import UpdaterConfig
from mod_updater.diff import ManifestDiff, diff_manifests
from mod_updater.errors import UpdaterError
from mod_updater.models import BatchResult, ManifestState, ModInfo, UpdateMode
from mod_updater.updater import ModUpdater


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def load_mods(game_root: str, mods_dir: str, mod_ids: List[str]) -> List[Tuple[str, ModInfo]]:
    """
    Read mod.ini of the requested mods (all mods when mod_ids is empty).

    Mods without a readable mod.ini are reported and left out.
    """
    root = os.path.join(game_root, mods_dir)
    if not mod_ids:
        try:
            mod_ids = sorted(name for name in os.listdir(root)
                             if os.path.isfile(os.path.join(root, name, constants.MOD_INI_FILE)))
        except OSError as e:
            print(f"✗ Cannot list mods folder {root}: {e}")
            return []

    mods = []
    for mod_id in mod_ids:
        ini_path = os.path.join(root, mod_id, constants.MOD_INI_FILE)
        try:
            info = ModInfo.from_ini(ini_path)
        except Exception as e:
            print(f"✗ {mod_id}: cannot read {constants.MOD_INI_FILE}: {e}")
            continue
        if not info.name:
            info.name = mod_id
        mods.append((mod_id, info))
    return mods


def print_result(result: BatchResult) -> None:
    """Print descriptors and errors of a pass."""
    if result.errors:
        print("The following errors occurred while checking for updates:\n")
        for error in result.errors:
            print(f"  {error}")
        print()

    if not result.descriptors:
        print("Mods are up to date.")
    else:
        print(f"{len(result.descriptors)} update(s) available:\n")
        for descriptor in result.descriptors:
            version = descriptor.version_tag or "?"
            if descriptor.is_incremental:
                what = f"{len(descriptor.files_to_download)} file(s)"
            else:
                what = "full package"
            size = utils.format_size(descriptor.size) if descriptor.size else "unknown size"
            print(f"  {descriptor.mod.name} -> {version[:12]} ({what}, {size})")
            print(f"    from {descriptor.source_url}")
            print(f"    into {descriptor.destination_path}")

    if result.cancelled:
        print("\nCheck was cancelled before all mods were processed.")


def cmd_generate(args, config: UpdaterConfig):
    """Handle generate command: write mod.manifest for each mod."""
    status = 0
    for mod_id in args.mod_ids:
        mod_dir = os.path.join(args.game_root, config.mods_dir, mod_id)
        try:
            manifest = manifest_store.build_manifest(mod_dir)
        except UpdaterError as e:
            print(f"✗ {mod_id}: {e}")
            status = 1
            continue

        for skipped in manifest.skipped:
            print(f"  ! {mod_id}: could not read {skipped}")

        if manifest_store.has_manifest(mod_dir):
            try:
                previous = manifest_store.load_manifest(mod_dir)
            except UpdaterError as e:
                print(f"  ! {mod_id}: replacing unreadable manifest ({e})")
            else:
                summary = ManifestDiff.from_entries(diff_manifests(manifest, previous))
                if not summary.has_changes:
                    print(f"✓ {mod_id}: manifest is current")
                    continue
                print(f"  {mod_id}: {summary}")

        manifest_store.save_manifest(mod_dir, manifest)
        print(f"✓ {mod_id}: {len(manifest)} file(s), {utils.format_size(manifest.total_size)}")
    return status


def cmd_verify(args, config: UpdaterConfig):
    """Handle verify command."""
    mods = load_mods(args.game_root, config.mods_dir, args.mod_ids)
    updater = ModUpdater(args.game_root, config)

    errors: List[str] = []
    results = updater.verify_mods(mods, errors=errors)
    for error in errors:
        print(f"✗ {error}")

    failed = [r for r in results if r.failed]
    if not failed:
        print(f"✓ All {len(results)} verified mod(s) passed verification.")
        return 1 if errors else 0

    print("The following mods failed verification:")
    for verified in failed:
        print(f"  {verified.mod.name}: {verified.failed_count} file(s)")
        if args.verbose:
            for entry in verified.diff:
                if entry.state != ManifestState.UNCHANGED:
                    print(f"    {entry.state.value:9} {entry.relative_path}")
    print("\nRun 'mod-updater repair' to fetch the damaged files.")
    return 1


def _run_pass(args, config: UpdaterConfig, mode: UpdateMode):
    mods = load_mods(args.game_root, config.mods_dir, args.mod_ids)
    if not mods:
        print("No mods to check.")
        return 1

    cancel = threading.Event()
    with ModUpdater(args.game_root, config) as updater:
        future = updater.start(mods, cancel, mode)
        try:
            result = future.result()
        except KeyboardInterrupt:
            print("\nCancelling...")
            cancel.set()
            result = future.result()

    print_result(result)
    return 1 if result.errors else 0


def cmd_check(args, config: UpdaterConfig):
    """Handle check command."""
    return _run_pass(args, config, UpdateMode.FORCED if args.force else UpdateMode.NORMAL)


def cmd_repair(args, config: UpdaterConfig):
    """Handle repair command."""
    return _run_pass(args, config, UpdateMode.REPAIR)


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Mod Updater - update checks and integrity verification for installed mods",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:\n"
               "  mod-updater generate ~/Mania MyMod     # Write mods/MyMod/mod.manifest\n"
               "  mod-updater verify ~/Mania             # Verify every mod with a manifest\n"
               "  mod-updater check ~/Mania              # Check all mods for updates\n"
               "  mod-updater check ~/Mania MyMod --force\n"
               "  mod-updater repair ~/Mania MyMod       # Fetch only damaged files"
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings file (default: ~/.config/mod_updater/config.json)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    generate_parser = subparsers.add_parser("generate", help="Generate mod.manifest files")
    generate_parser.add_argument("game_root", help="Game folder")
    generate_parser.add_argument("mod_ids", nargs="+", help="Mod folder names")
    generate_parser.set_defaults(func=cmd_generate)

    verify_parser = subparsers.add_parser("verify", help="Verify installed mods against their manifests")
    verify_parser.add_argument("game_root", help="Game folder")
    verify_parser.add_argument("mod_ids", nargs="*", help="Mod folder names (default: all)")
    verify_parser.set_defaults(func=cmd_verify)

    check_parser = subparsers.add_parser("check", help="Check mods for updates")
    check_parser.add_argument("game_root", help="Game folder")
    check_parser.add_argument("mod_ids", nargs="*", help="Mod folder names (default: all)")
    check_parser.add_argument(
        "--force",
        action="store_true",
        help="Describe a complete re-download even for up to date mods"
    )
    check_parser.set_defaults(func=cmd_check)

    repair_parser = subparsers.add_parser("repair", help="Find files to re-fetch for damaged mods")
    repair_parser.add_argument("game_root", help="Game folder")
    repair_parser.add_argument("mod_ids", nargs="*", help="Mod folder names (default: all)")
    repair_parser.set_defaults(func=cmd_repair)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose)
    config = UpdaterConfig.load(args.config)

    try:
        return args.func(args, config)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 130
    except Exception as e:
        logging.exception("Unexpected error")
        print(f"\n✗ Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
