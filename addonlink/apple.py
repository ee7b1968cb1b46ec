# addonlink/apple.py
"""
Apple linking: rebuild an xcframework whose frameworks and binaries carry
the library name.

Every ``<triplet>/<old>.framework`` of the bundle is processed on a private
temporary copy: the binary is renamed, then the framework directory, the
binary's install name is rewritten and Info.plist is updated. xcodebuild
then merges the renamed frameworks straight into the output path.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from typing import Iterator, List, Tuple

from addonlink.errors import BundleShapeError
from addonlink.logging import get_logger
from addonlink.planner import LinkPlanEntry
from addonlink.prebuilds import create_xcframework
from addonlink.tools import set_install_name
from addonlink.utils import copy_tree, remove_path

logger = get_logger("apple")


def update_info_plist(file_path: str, old_library_name: str, new_library_name: str) -> None:
    """
    Replace every occurrence of the old library name in an Info.plist.

    This is a plain text replacement, not a plist rewrite: an old name that
    also appears elsewhere in the file gets replaced there too.
    """
    with open(file_path, "r", encoding="utf-8") as fh:
        contents = fh.read()
    with open(file_path, "w", encoding="utf-8") as fh:
        fh.write(contents.replace(old_library_name, new_library_name))


def glob_framework_dirs(start_path: str) -> Iterator[Tuple[str, str]]:
    """(triplet dir, framework entry name) for every */*.framework directory."""
    for triplet in sorted(os.listdir(start_path)):
        triplet_path = os.path.join(start_path, triplet)
        if not os.path.isdir(triplet_path):
            continue
        for name in sorted(os.listdir(triplet_path)):
            if name.endswith(".framework") and os.path.isdir(os.path.join(triplet_path, name)):
                yield triplet_path, name


def rename_framework(triplet_path: str, framework_name: str, new_library_name: str) -> str:
    framework_path = os.path.join(triplet_path, framework_name)
    old_library_name = framework_name[: -len(".framework")]
    old_library_path = os.path.join(framework_path, old_library_name)
    new_framework_path = os.path.join(triplet_path, f"{new_library_name}.framework")
    new_library_path = os.path.join(new_framework_path, new_library_name)
    if not os.path.lexists(old_library_path):
        raise BundleShapeError(f"Expected a library at '{old_library_path}'")
    if framework_path != new_framework_path and os.path.lexists(new_framework_path):
        raise BundleShapeError(f"More than one framework in {triplet_path}")
    # the framework directory still has its old name at this point
    os.rename(old_library_path, os.path.join(framework_path, new_library_name))
    if framework_path != new_framework_path:
        os.rename(framework_path, new_framework_path)
    set_install_name(new_library_path, f"@rpath/{new_library_name}.framework/{new_library_name}")
    info_plist = os.path.join(new_framework_path, "Info.plist")
    if os.path.exists(info_plist):
        update_info_plist(info_plist, old_library_name, new_library_name)
    return new_framework_path


def link_xcframework(entry: LinkPlanEntry) -> LinkPlanEntry:
    if entry.skip:
        logger.info("apple: %s is up to date", entry.output_path)
        return entry

    remove_path(entry.output_path)
    temp_path = tempfile.mkdtemp(prefix=f"addonlink-{entry.library_name}-")
    try:
        work_path = os.path.join(temp_path, os.path.basename(entry.original_path))
        copy_tree(entry.original_path, work_path)
        framework_paths: List[str] = [
            rename_framework(triplet_path, name, entry.library_name)
            for triplet_path, name in list(glob_framework_dirs(work_path))
        ]
        if not framework_paths:
            raise BundleShapeError(f"No frameworks found in {entry.original_path}")
        create_xcframework(framework_paths, entry.output_path, auto_link=False)
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)
    logger.info("apple: linked %s -> %s", entry.original_path, entry.output_path)
    return entry
