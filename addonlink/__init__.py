# addonlink/__init__.py
"""Discover prebuilt Node-API addon bundles in a dependency tree and link them for Android and Apple apps."""

from addonlink.context import ContextCache, ModuleContext, determine_module_context
from addonlink.errors import (
    AddonLinkError,
    BundleShapeError,
    ConfigurationError,
    DuplicateLibraryNamesError,
    SpawnFailure,
    UnreadableModuleError,
)
from addonlink.linker import LinkOptions, LinkResult, link_modules, prune_linked_modules
from addonlink.locator import find_bundles, find_bundles_by_dependency
from addonlink.naming import get_library_name

__version__ = "0.1.0"

__all__ = [
    "AddonLinkError",
    "BundleShapeError",
    "ConfigurationError",
    "ContextCache",
    "DuplicateLibraryNamesError",
    "LinkOptions",
    "LinkResult",
    "ModuleContext",
    "SpawnFailure",
    "UnreadableModuleError",
    "determine_module_context",
    "find_bundles",
    "find_bundles_by_dependency",
    "get_library_name",
    "link_modules",
    "prune_linked_modules",
]
