# addonlink/linker.py
# -*- coding: utf-8 -*-
"""
linker.py - auto-link the addons of an app's dependency tree

Main API:
  options = LinkOptions.from_config(from_path, "apple", incremental=True)
  results = link_modules(options)
  prune_linked_modules(platform_output_dir(options), results)

Behaviour:
  - discovery (locator) and naming/freshness planning (planner) run first;
    a library name collision aborts the batch before anything is written
  - bundles are linked in parallel, each into its own output path
  - SpawnFailure / BundleShapeError of one bundle is reported in its result
    without stopping the others; an OSError while linking one bundle is
    reported as a BundleShapeError; anything else propagates
  - prune only runs when every bundle succeeded
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from addonlink.android import link_android_dir
from addonlink.apple import link_xcframework
from addonlink.config import get_config
from addonlink.context import ContextCache, assert_platform, find_package_root
from addonlink.errors import AddonLinkError, BundleShapeError, ConfigurationError, SpawnFailure
from addonlink.locator import find_bundles_by_dependency
from addonlink.logging import get_logger
from addonlink.naming import assert_path_suffix
from addonlink.planner import APPLE_EXTENSIONS, LinkPlanEntry, plan_links
from addonlink.utils import remove_path

logger = get_logger("linker")

ModuleLinker = Callable[[LinkPlanEntry], LinkPlanEntry]

# errors confined to the bundle that raised them
PER_BUNDLE_ERRORS = (SpawnFailure, BundleShapeError)


@dataclass(frozen=True)
class LinkOptions:
    from_path: str
    platform: str
    path_suffix: str = "strip"
    incremental: bool = True
    prune: bool = True
    output_dir: Optional[str] = None
    jobs: int = 8
    apple_extension: str = ".xcframework"

    def __post_init__(self):
        assert_platform(self.platform)
        assert_path_suffix(self.path_suffix)
        if not isinstance(self.jobs, int) or self.jobs < 1:
            raise ConfigurationError(f"jobs must be a positive integer, got {self.jobs!r}")
        if self.apple_extension not in APPLE_EXTENSIONS:
            raise ConfigurationError(f"Unsupported Apple bundle extension: {self.apple_extension}")
        object.__setattr__(self, "from_path", os.path.abspath(self.from_path))

    @classmethod
    def from_config(cls, from_path: str, platform: str, **overrides: Any) -> "LinkOptions":
        """Options for one platform: the `link` config section, then explicit (non-None) overrides."""
        link_cfg = get_config().merged.get("link", {})
        values = {
            "path_suffix": link_cfg.get("path_suffix", "strip"),
            "incremental": bool(link_cfg.get("incremental", True)),
            "prune": bool(link_cfg.get("prune", True)),
            "output_dir": link_cfg.get("output_dir"),
            "jobs": link_cfg.get("jobs", 8),
            "apple_extension": link_cfg.get("apple_extension", ".xcframework"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(from_path=from_path, platform=platform, **values)


@dataclass
class LinkResult:
    original_path: str
    library_name: Optional[str] = None
    output_path: Optional[str] = None
    skipped: bool = False
    failure: Optional[AddonLinkError] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"originalPath": self.original_path, "skipped": self.skipped}
        if self.failure is None:
            d["outputPath"] = self.output_path
            d["libraryName"] = self.library_name
        else:
            d["failure"] = str(self.failure)
        return d


def get_linker(platform: str) -> ModuleLinker:
    if assert_platform(platform) == "android":
        return link_android_dir
    return link_xcframework


def platform_output_dir(options: LinkOptions) -> str:
    """<output dir>/<platform>, created if needed; defaults to <app package root>/auto-linked."""
    base = options.output_dir
    if not base:
        package_root = find_package_root(options.from_path)
        if package_root is None:
            raise ConfigurationError(f"Could not find package root from {options.from_path}")
        base = os.path.join(package_root, "auto-linked")
    result = os.path.join(base, options.platform)
    os.makedirs(result, exist_ok=True)
    return result


def link_modules(options: LinkOptions, linker: Optional[ModuleLinker] = None, cache: Optional[ContextCache] = None) -> List[LinkResult]:
    cache = cache or ContextCache()
    linker = linker or get_linker(options.platform)
    dependencies = find_bundles_by_dependency(options.from_path, options.platform, include_self=True, jobs=options.jobs)
    bundle_paths = [
        os.path.join(dependency.path, p)
        for dependency in dependencies.values()
        for p in dependency.bundle_paths
    ]
    logger.info("linker: found %d %s bundles in %d packages", len(bundle_paths), options.platform, len(dependencies))
    plan = plan_links(
        bundle_paths,
        options.platform,
        platform_output_dir(options),
        options.path_suffix,
        incremental=options.incremental,
        apple_extension=options.apple_extension,
        cache=cache,
    )

    results: List[LinkResult] = []
    if not plan:
        return results
    with ThreadPoolExecutor(max_workers=options.jobs) as ex:
        futures = {ex.submit(linker, entry): entry for entry in plan}
        for fut in as_completed(futures):
            entry = futures[fut]
            try:
                try:
                    done = fut.result()
                except OSError as e:
                    # partial filesystem state inside one bundle
                    raise BundleShapeError(f"Failed to link {entry.original_path}: {e}") from e
            except PER_BUNDLE_ERRORS as e:
                logger.error("linker: failed to link %s: %s", entry.original_path, e)
                results.append(LinkResult(original_path=entry.original_path, library_name=entry.library_name, failure=e))
                continue
            results.append(LinkResult(original_path=done.original_path, library_name=done.library_name, output_path=done.output_path, skipped=done.skip))
    return results


def prune_linked_modules(output_dir: str, linked_modules: List[LinkResult]) -> List[str]:
    """Delete entries of output_dir no linked module points at; nothing is deleted if any module failed."""
    if any(m.failure is not None for m in linked_modules):
        logger.warning("linker: skipping prune, some modules failed to link")
        return []
    expected = {os.path.abspath(m.output_path) for m in linked_modules if m.output_path}
    deleted: List[str] = []
    for name in sorted(os.listdir(output_dir)):
        candidate = os.path.abspath(os.path.join(output_dir, name))
        if candidate not in expected:
            logger.info("linker: deleting %s (no longer linked)", candidate)
            remove_path(candidate)
            deleted.append(candidate)
    return deleted
