# addonlink/locator.py
# -*- coding: utf-8 -*-
"""
Module locator

Features:
- find_bundles: recursive search for addon bundles (marker file inside a
  platform-suffixed directory), listing directories in parallel
- find_bundles_by_dependency: the same search scoped to each declared
  dependency of a consumer package (optionally the consumer itself)
- is_addon_module / find_addon_for_bindings: probes used when rewriting
  require() call sites
"""

from __future__ import annotations

import os
import re
from concurrent.futures import ThreadPoolExecutor, FIRST_COMPLETED, wait
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Pattern, Sequence, Tuple

from addonlink.config import get_config
from addonlink.context import (
    MARKER_FILENAME,
    PLATFORM_EXTENSIONS,
    PlatformSelection,
    find_package_dependency_paths,
    find_package_root,
    has_platform_extension,
    read_manifest,
)
from addonlink.errors import ConfigurationError, UnreadableModuleError
from addonlink.logging import get_logger

logger = get_logger("locator")

# Matched against "/<relative suffix>/" so a pattern hits any path component below the scan root
DEFAULT_EXCLUDE_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"/node_modules/"),
    re.compile(r"/\.git/"),
    re.compile(r"/auto-linked/"),
)

# Directories `bindings` looks into, in order
BINDINGS_SUBDIRS = (
    ".",
    "build/Release",
    "build/Debug",
    "build",
    "out/Release",
    "out/Debug",
    "Release",
    "Debug",
)

_TOLERATED = (PermissionError, FileNotFoundError, NotADirectoryError)


@dataclass
class DependencyBundles:
    path: str
    bundle_paths: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {"path": self.path, "bundlePaths": list(self.bundle_paths)}


def default_exclude_patterns() -> List[Pattern[str]]:
    extra = get_config().get("locator.exclude", []) or []
    return list(DEFAULT_EXCLUDE_PATTERNS) + [re.compile(p) for p in extra]


def _is_excluded(suffix: str, patterns: Sequence[Pattern[str]]) -> bool:
    if not suffix:
        return False
    normalized = "/" + suffix.replace(os.sep, "/").strip("/") + "/"
    return any(p.search(normalized) for p in patterns)


def _scan_dir(from_path: str, suffix: str, platform: PlatformSelection) -> Tuple[List[str], List[str]]:
    """List one directory: (bundle paths found here, child suffixes to descend into)."""
    candidate = os.path.join(from_path, suffix) if suffix else from_path
    bundles: List[str] = []
    children: List[str] = []
    try:
        with os.scandir(candidate) as it:
            for entry in it:
                if entry.name == MARKER_FILENAME and entry.is_file():
                    if has_platform_extension(platform, candidate):
                        bundles.append(candidate)
                elif entry.is_dir(follow_symlinks=False):
                    children.append(os.path.join(suffix, entry.name) if suffix else entry.name)
    except _TOLERATED:
        logger.debug("locator: cannot read %s, treating as empty", candidate)
        return [], []
    return bundles, children


def find_bundles(from_path: str, platform: PlatformSelection, exclude_patterns: Optional[Sequence[Pattern[str]]] = None, jobs: Optional[int] = None) -> Iterator[str]:
    """
    Yield absolute paths of the bundles below from_path, in no particular order.

    Each subdirectory is listed as its own task; the generator is lazy and a
    new call starts a fresh scan.
    """
    patterns = default_exclude_patterns() if exclude_patterns is None else list(exclude_patterns)
    workers = jobs or int(get_config().get("locator.jobs", 8))
    root = os.path.abspath(from_path)
    with ThreadPoolExecutor(max_workers=workers) as ex:
        pending = {ex.submit(_scan_dir, root, "", platform)}
        while pending:
            done, pending = wait(pending, return_when=FIRST_COMPLETED)
            for fut in done:
                bundles, children = fut.result()
                for child in children:
                    if not _is_excluded(child, patterns):
                        pending.add(ex.submit(_scan_dir, root, child, platform))
                for bundle in bundles:
                    yield bundle


def find_bundles_by_dependency(from_path: str, platform: PlatformSelection, include_self: bool = True, exclude_packages: Iterable[str] = (), exclude_patterns: Optional[Sequence[Pattern[str]]] = None, jobs: Optional[int] = None) -> Dict[str, DependencyBundles]:
    """
    Find the bundles of every dependency of the package enclosing from_path.

    Returns dependency name -> DependencyBundles with bundle paths relative to
    the dependency root; dependencies without bundles are left out.
    """
    package_paths = find_package_dependency_paths(from_path)
    if include_self:
        package_root = find_package_root(from_path)
        if package_root is None:
            raise ConfigurationError(f"Could not find package root from {from_path}")
        name = read_manifest(package_root).name
        if not name:
            raise ConfigurationError(f"Expected {package_root}/package.json to have a name")
        package_paths[name] = package_root
    excluded = set(exclude_packages)
    targets = {name: path for name, path in package_paths.items() if name not in excluded}

    def scan(dependency_path: str) -> List[str]:
        found = find_bundles(dependency_path, platform, exclude_patterns=exclude_patterns, jobs=jobs)
        return sorted(os.path.relpath(p, dependency_path) for p in found)

    workers = jobs or int(get_config().get("locator.jobs", 8))
    result: Dict[str, DependencyBundles] = {}
    with ThreadPoolExecutor(max_workers=workers) as ex:
        futures = {name: ex.submit(scan, path) for name, path in targets.items()}
        for name, fut in futures.items():
            bundle_paths = fut.result()
            if bundle_paths:
                result[name] = DependencyBundles(path=targets[name], bundle_paths=bundle_paths)
    logger.debug("locator: found bundles in %d of %d packages", len(result), len(targets))
    return result


def _is_readable(path: str) -> bool:
    return os.access(path, os.R_OK)


def is_addon_module(module_path: str) -> bool:
    """
    True if module_path (extension-less or ending in .node) has a prebuilt addon.

    Unreadable or missing parent directories count as "no module"; a matching
    entry that exists but cannot be read raises UnreadableModuleError.
    """
    direct = module_path if module_path.endswith(".node") else f"{module_path}.node"
    if os.path.exists(direct):
        return True
    directory = os.path.dirname(module_path)
    base_name = os.path.basename(module_path)
    if base_name.endswith(".node"):
        base_name = base_name[: -len(".node")]
    try:
        entries = set(os.listdir(directory or "."))
    except OSError:
        return False
    for extension in PLATFORM_EXTENSIONS.values():
        file_name = base_name + extension
        if file_name not in entries:
            continue
        if not _is_readable(os.path.join(directory, file_name)):
            raise UnreadableModuleError(f"Found an unreadable module {file_name}")
        return True
    return False


def find_addon_for_bindings(addon_id: str, from_dir: str) -> Optional[str]:
    """Resolve a `bindings("<id>")` argument to an addon path the way `bindings` searches."""
    id_with_ext = addon_id if addon_id.endswith(".node") else f"{addon_id}.node"
    for subdir in BINDINGS_SUBDIRS:
        resolved = os.path.normpath(os.path.join(from_dir, subdir, id_with_ext))
        if is_addon_module(resolved):
            return resolved
    return None
