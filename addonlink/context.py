# addonlink/context.py
# -*- coding: utf-8 -*-
"""
Package context resolution

- Platform names, their bundle extensions and the marker file name
- Package manifest (package.json) reader: name + declared dependencies
- ContextCache: nearest enclosing package root and its name, memoized per root
- Dependency-to-directory resolution following the node_modules lookup rules
"""

from __future__ import annotations

import os
import json
import posixpath
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

from addonlink.errors import ConfigurationError
from addonlink.logging import get_logger

logger = get_logger("context")

PLATFORMS = ("android", "apple")

PLATFORM_EXTENSIONS: Dict[str, str] = {
    "android": ".android.node",
    "apple": ".apple.node",
}

PLATFORM_DISPLAY_NAMES: Dict[str, str] = {
    "android": "Android",
    "apple": "Apple",
}

# zero-byte sentinel dropped into a platform-suffixed directory by the packaging step
MARKER_FILENAME = "react-native-node-api-module"

MANIFEST_FILENAME = "package.json"

PlatformSelection = Union[str, Sequence[str]]


def assert_platform(value: object) -> str:
    if value not in PLATFORMS:
        raise ConfigurationError(f"Unknown platform: {value!r} (expected one of {', '.join(PLATFORMS)})")
    return value  # type: ignore[return-value]


def has_platform_extension(platform: PlatformSelection, file_name: str) -> bool:
    if isinstance(platform, str):
        return file_name.endswith(PLATFORM_EXTENSIONS[assert_platform(platform)])
    return any(has_platform_extension(p, file_name) for p in platform)


def strip_extension(module_path: str) -> str:
    """Strip platform specific extensions (and a trailing .node) from a module path."""
    for extension in (*PLATFORM_EXTENSIONS.values(), ".node"):
        if module_path.endswith(extension):
            module_path = module_path[: -len(extension)]
    return module_path


def normalize_module_path(module_path: str) -> str:
    """Extension-less, lib-prefix-less, forward-slashed form of a package relative path."""
    module_path = module_path.replace("\\", "/")
    dirname = posixpath.dirname(module_path) or "."
    stripped = re.sub(r"^lib", "", strip_extension(posixpath.basename(module_path)))
    return posixpath.normpath(posixpath.join(dirname, stripped))


@dataclass(frozen=True)
class ModuleContext:
    package_name: str
    relative_path: str


@dataclass(frozen=True)
class PackageManifest:
    path: str
    name: Optional[str]
    dependencies: List[str] = field(default_factory=list)


def read_manifest(package_dir: str) -> PackageManifest:
    manifest_path = os.path.join(package_dir, MANIFEST_FILENAME)
    try:
        with open(manifest_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Missing {manifest_path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {manifest_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{manifest_path} must be a JSON object")
    name = data.get("name")
    deps = data.get("dependencies") or {}
    if not isinstance(deps, dict):
        raise ConfigurationError(f"{manifest_path}: 'dependencies' must be an object")
    return PackageManifest(path=manifest_path, name=name if isinstance(name, str) else None, dependencies=list(deps.keys()))


def find_package_root(from_path: str) -> Optional[str]:
    """Walk ancestors of from_path (itself included) to the nearest directory holding a package.json."""
    current = os.path.abspath(from_path)
    while True:
        if os.path.isfile(os.path.join(current, MANIFEST_FILENAME)):
            return current
        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent


def resolve_package_root(package_name: str, from_dir: str) -> Optional[str]:
    """
    Installed root directory of package_name as seen from from_dir: the first
    <ancestor>/node_modules/<package_name>/package.json walking upwards.
    """
    current = os.path.abspath(from_dir)
    while True:
        if os.path.basename(current) != "node_modules":
            candidate = os.path.join(current, "node_modules", *package_name.split("/"))
            if os.path.isfile(os.path.join(candidate, MANIFEST_FILENAME)):
                return os.path.realpath(candidate)
        parent = os.path.dirname(current)
        if parent == current:
            logger.debug("context: could not resolve %s from %s", package_name, from_dir)
            return None
        current = parent


class ContextCache:
    """
    Maps package root directories to package names.

    Entries are written once per root and never invalidated: manifests are
    treated as immutable for the lifetime of one invocation. Concurrent
    writers store the same value, so no lock is taken.
    """

    def __init__(self):
        self._names: Dict[str, str] = {}

    def package_name(self, package_dir: str) -> str:
        name = self._names.get(package_dir)
        if name is None:
            manifest = read_manifest(package_dir)
            if not manifest.name:
                raise ConfigurationError(f"Expected {manifest.path} to have a name")
            name = manifest.name
            self._names[package_dir] = name
        return name

    def determine_module_context(self, module_path: str, original_path: Optional[str] = None) -> ModuleContext:
        original_path = original_path or module_path
        pkg_dir = find_package_root(module_path)
        if pkg_dir is None:
            raise ConfigurationError(f"Could not find containing package of {module_path}")
        rel = os.path.relpath(os.path.abspath(original_path), pkg_dir)
        return ModuleContext(package_name=self.package_name(pkg_dir), relative_path=normalize_module_path(rel))


def determine_module_context(module_path: str, cache: Optional[ContextCache] = None) -> ModuleContext:
    return (cache or ContextCache()).determine_module_context(module_path)


def find_package_dependency_paths(from_path: str) -> Dict[str, str]:
    """Map every declared dependency of the package enclosing from_path to its installed directory."""
    package_root = find_package_root(from_path)
    if package_root is None:
        raise ConfigurationError(f"Could not find package root from {from_path}")
    manifest = read_manifest(package_root)
    result: Dict[str, str] = {}
    for dependency_name in manifest.dependencies:
        resolved = resolve_package_root(dependency_name, package_root)
        if resolved:
            result[dependency_name] = resolved
        else:
            logger.warning("context: dependency %s of %s is not installed", dependency_name, manifest.name)
    return result
