# addonlink/naming.py
"""
Library naming

A library name is derived from the owning package and the addon's path
inside that package. The path suffix strategy decides how much of the path
is kept, e.g. for package ``my-pkg`` and addon ``build/Release/my-addon.node``:

- ``omit``:  ``my-pkg``
- ``strip``: ``my-pkg--my-addon``
- ``keep``:  ``my-pkg--build-Release-my-addon``
"""

from __future__ import annotations

import os
import posixpath
import re
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional

from addonlink.context import ContextCache, ModuleContext
from addonlink.errors import ConfigurationError

PATH_SUFFIX_CHOICES = ("strip", "keep", "omit")

_UNSAFE = re.compile(r"[^a-zA-Z0-9]")


def assert_path_suffix(value: object) -> str:
    if not isinstance(value, str):
        raise ConfigurationError(f"Expected a string, got {type(value).__name__} ({value!r})")
    if value not in PATH_SUFFIX_CHOICES:
        raise ConfigurationError(f"Expected one of {', '.join(PATH_SUFFIX_CHOICES)}, got {value!r}")
    return value


def escape_path(module_path: str) -> str:
    return _UNSAFE.sub("-", module_path)


def library_name_from_context(context: ModuleContext, path_suffix: str) -> str:
    """Library name the runtime loader expects for an addon of a package."""
    escaped_package_name = escape_path(context.package_name)
    if assert_path_suffix(path_suffix) == "omit":
        return escaped_package_name
    suffix = posixpath.basename(context.relative_path) if path_suffix == "strip" else context.relative_path
    return f"{escaped_package_name}--{escape_path(suffix)}"


def get_library_name(module_path: str, path_suffix: str, cache: Optional[ContextCache] = None) -> str:
    """Get the name of the library which will be used when the module is linked in."""
    context = (cache or ContextCache()).determine_module_context(module_path)
    return library_name_from_context(context, path_suffix)


def group_by_library_name(module_paths: Iterable[str], path_suffix: str, cache: Optional[ContextCache] = None) -> Dict[str, List[str]]:
    cache = cache or ContextCache()
    paths_per_name: Dict[str, List[str]] = OrderedDict()
    for module_path in module_paths:
        paths_per_name.setdefault(get_library_name(module_path, path_suffix, cache), []).append(module_path)
    return paths_per_name


def find_duplicate_library_names(module_paths: Iterable[str], path_suffix: str, cache: Optional[ContextCache] = None) -> Dict[str, List[str]]:
    """Library names shared by more than one module path, with every colliding path."""
    return {name: paths for name, paths in group_by_library_name(module_paths, path_suffix, cache).items() if len(paths) > 1}


def determine_library_basename(library_paths: Iterable[str]) -> str:
    """
    Library basename (no file extension nor "lib" prefix) shared by all paths.
    Raises if the paths don't all produce the same basename.
    """
    candidates = set()
    for p in library_paths:
        stem, _ext = os.path.splitext(os.path.basename(p))
        candidates.add(re.sub(r"^lib", "", stem))
    if len(candidates) != 1:
        raise ConfigurationError(f"Expected all libraries to have the same name, got: {', '.join(sorted(candidates)) or '<none>'}")
    return candidates.pop()
