# addonlink/android.py
"""Android linking: copy a <name>.android.node directory and rename its libraries."""

from __future__ import annotations

import os

from addonlink.context import MARKER_FILENAME
from addonlink.errors import BundleShapeError
from addonlink.logging import get_logger
from addonlink.planner import LinkPlanEntry
from addonlink.prebuilds import ANDROID_ARCHITECTURES
from addonlink.utils import copy_tree, remove_path

logger = get_logger("android")


def link_android_dir(entry: LinkPlanEntry) -> LinkPlanEntry:
    if entry.skip:
        logger.info("android: %s is up to date", entry.output_path)
        return entry

    remove_path(entry.output_path)
    copy_tree(entry.original_path, entry.output_path)
    for arch in ANDROID_ARCHITECTURES.values():
        arch_path = os.path.join(entry.output_path, arch)
        if not os.path.isdir(arch_path):
            # missing architectures are fine
            continue
        names = os.listdir(arch_path)
        if len(names) != 1:
            raise BundleShapeError(f"Expected exactly one library file in {arch_path}, found {len(names)}")
        library_path = os.path.join(arch_path, names[0])
        if not os.path.isfile(library_path):
            raise BundleShapeError(f"Expected a library file at {library_path}")
        os.rename(library_path, os.path.join(arch_path, f"lib{entry.library_name}.so"))
    marker = os.path.join(entry.output_path, MARKER_FILENAME)
    if os.path.lexists(marker):
        remove_path(marker)
    logger.info("android: linked %s -> %s", entry.original_path, entry.output_path)
    return entry
