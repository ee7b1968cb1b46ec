# addonlink/planner.py
"""
Incremental link planning.

Everything here runs before any file is touched: library names are
computed for the whole batch (a collision aborts it), then each bundle is
compared against its previous output to decide whether it can be skipped.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterable, List, Optional

from addonlink.context import ContextCache, assert_platform
from addonlink.errors import ConfigurationError, DuplicateLibraryNamesError
from addonlink.logging import get_logger
from addonlink.naming import group_by_library_name
from addonlink.utils import latest_mtime

logger = get_logger("planner")

APPLE_EXTENSIONS = (".xcframework", ".apple.node")


@dataclass(frozen=True)
class LinkPlanEntry:
    original_path: str
    library_name: str
    output_path: str
    skip: bool = False


def linked_output_path(platform: str, platform_output_dir: str, library_name: str, apple_extension: str = ".xcframework") -> str:
    if assert_platform(platform) == "android":
        return os.path.join(platform_output_dir, f"{library_name}.android.node")
    if apple_extension not in APPLE_EXTENSIONS:
        raise ConfigurationError(f"Unsupported Apple bundle extension: {apple_extension}")
    return os.path.join(platform_output_dir, library_name + apple_extension)


def is_up_to_date(original_path: str, output_path: str) -> bool:
    """True when every file under original_path is strictly older than the newest output file."""
    if not os.path.exists(output_path):
        return False
    return latest_mtime(original_path) < latest_mtime(output_path)


def plan_links(bundle_paths: Iterable[str], platform: str, platform_output_dir: str, path_suffix: str, incremental: bool = True, apple_extension: str = ".xcframework", cache: Optional[ContextCache] = None) -> List[LinkPlanEntry]:
    cache = cache or ContextCache()
    paths_per_name = group_by_library_name(bundle_paths, path_suffix, cache)
    duplicates = {name: paths for name, paths in paths_per_name.items() if len(paths) > 1}
    if duplicates:
        for name, paths in duplicates.items():
            logger.error("planner: library name %s is claimed by %s", name, ", ".join(paths))
        raise DuplicateLibraryNamesError(duplicates)

    plan: List[LinkPlanEntry] = []
    for library_name, (original_path,) in paths_per_name.items():
        output_path = linked_output_path(platform, platform_output_dir, library_name, apple_extension)
        skip = incremental and is_up_to_date(original_path, output_path)
        plan.append(LinkPlanEntry(original_path=original_path, library_name=library_name, output_path=output_path, skip=skip))
    logger.debug("planner: %d bundles planned, %d up to date", len(plan), sum(1 for e in plan if e.skip))
    return plan
