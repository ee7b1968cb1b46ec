# addonlink/prebuilds.py
# -*- coding: utf-8 -*-
"""
prebuilds.py - turn freshly compiled binaries into linkable bundles

Features:
- Target triplet tables (Android ABI directories, Apple architectures)
- create_android_libs_directory: <name>.android.node/<abi>/lib<name>.so (+ marker)
- create_apple_framework: single-binary .framework with Info.plist and install name
- create_xcframework: merge per-triplet frameworks with xcodebuild (+ marker)
- create_universal_apple_library: lipo several darwin slices into one binary
- filename helpers validating that every input belongs to the same addon
"""

from __future__ import annotations

import os
import plistlib
import shutil
import tempfile
from typing import Dict, Mapping, Sequence

from addonlink.config import get_config
from addonlink.context import MARKER_FILENAME
from addonlink.errors import BundleShapeError, ConfigurationError
from addonlink.logging import get_logger
from addonlink.naming import determine_library_basename
from addonlink.tools import create_xcframework_bundle, lipo_create, set_install_name
from addonlink.utils import remove_path, touch_marker

logger = get_logger("prebuilds")

# https://developer.android.com/ndk/guides/other_build_systems
ANDROID_TRIPLETS = (
    "aarch64-linux-android",
    "armv7a-linux-androideabi",
    "i686-linux-android",
    "x86_64-linux-android",
)

ANDROID_ARCHITECTURES: Dict[str, str] = {
    "armv7a-linux-androideabi": "armeabi-v7a",
    "aarch64-linux-android": "arm64-v8a",
    "i686-linux-android": "x86",
    "x86_64-linux-android": "x86_64",
}

APPLE_TRIPLETS = (
    "arm64;x86_64-apple-darwin",
    "x86_64-apple-darwin",
    "arm64-apple-darwin",
    "arm64-apple-ios",
    "arm64-apple-ios-sim",
    "arm64-apple-tvos",
    "arm64-apple-tvos-sim",
    "arm64-apple-visionos",
    "arm64-apple-visionos-sim",
)

APPLE_ARCHITECTURES: Dict[str, str] = {
    "x86_64-apple-darwin": "x86_64",
    "arm64-apple-darwin": "arm64",
    "arm64;x86_64-apple-darwin": "arm64;x86_64",
    "arm64-apple-ios": "arm64",
    "arm64-apple-ios-sim": "arm64",
    "arm64-apple-tvos": "arm64",
    "arm64-apple-tvos-sim": "arm64",
    "arm64-apple-visionos": "arm64",
    "arm64-apple-visionos-sim": "arm64",
}

SUPPORTED_TRIPLETS = APPLE_TRIPLETS + ANDROID_TRIPLETS


def is_supported_triplet(triplet: object) -> bool:
    return triplet in SUPPORTED_TRIPLETS


def is_android_triplet(triplet: str) -> bool:
    return triplet in ANDROID_TRIPLETS


def is_apple_triplet(triplet: str) -> bool:
    return triplet in APPLE_TRIPLETS

# -----------------------------
# Android
# -----------------------------
def determine_android_libs_filename(library_paths: Sequence[str]) -> str:
    return f"{determine_library_basename(library_paths)}.android.node"


def _android_library_filename(library_path: str) -> str:
    name = os.path.basename(library_path)
    if name.endswith(".node"):
        name = name[: -len(".node")]
    if os.path.splitext(name)[1] != ".so":
        name = f"{name}.so"
    return name if name.startswith("lib") else f"lib{name}"


def create_android_libs_directory(output_path: str, library_path_by_triplet: Mapping[str, str], auto_link: bool = True) -> str:
    """Lay out one library per ABI directory under output_path (recreated from scratch)."""
    remove_path(output_path)
    os.makedirs(output_path)
    for triplet, library_path in library_path_by_triplet.items():
        if triplet not in ANDROID_ARCHITECTURES:
            raise ConfigurationError(f"Not an Android triplet: {triplet}")
        if not os.path.exists(library_path):
            raise BundleShapeError(f"Library not found: {library_path} for triplet {triplet}")
        arch_output_path = os.path.join(output_path, ANDROID_ARCHITECTURES[triplet])
        os.makedirs(arch_output_path, exist_ok=True)
        shutil.copyfile(library_path, os.path.join(arch_output_path, _android_library_filename(library_path)))
    if auto_link:
        touch_marker(output_path, MARKER_FILENAME)
    logger.info("prebuilds: created %s (%d architectures)", output_path, len(library_path_by_triplet))
    return output_path

# -----------------------------
# Apple
# -----------------------------
def create_plist_content(values: Mapping[str, str]) -> str:
    return plistlib.dumps(dict(values), fmt=plistlib.FMT_XML, sort_keys=False).decode("utf-8")


def create_apple_framework(library_path: str) -> str:
    """Wrap a dynamic library into <name>.framework next to it; the library is moved in."""
    if not os.path.exists(library_path):
        raise BundleShapeError(f"Library not found: {library_path}")
    library_name = os.path.splitext(os.path.basename(library_path))[0]
    framework_path = os.path.join(os.path.dirname(library_path), f"{library_name}.framework")
    remove_path(framework_path)
    os.makedirs(os.path.join(framework_path, "Headers"))
    prefix = get_config().get("apple.bundle_id_prefix", "com.addonlink")
    with open(os.path.join(framework_path, "Info.plist"), "w", encoding="utf-8") as fh:
        fh.write(create_plist_content({
            "CFBundleDevelopmentRegion": "en",
            "CFBundleExecutable": library_name,
            "CFBundleIdentifier": f"{prefix}.{library_name}",
            "CFBundleInfoDictionaryVersion": "6.0",
            "CFBundleName": library_name,
            "CFBundlePackageType": "FMWK",
            "CFBundleShortVersionString": "1.0",
            "CFBundleVersion": "1",
            "NSPrincipalClass": "",
        }))
    new_library_path = os.path.join(framework_path, library_name)
    os.rename(library_path, new_library_path)
    set_install_name(new_library_path, f"@rpath/{library_name}.framework/{library_name}")
    return framework_path


def create_xcframework(framework_paths: Sequence[str], output_path: str, auto_link: bool = True) -> str:
    # xcodebuild refuses to add a library identifier that already exists, start over every time
    remove_path(output_path)
    # xcodebuild requires the output path to end with ".xcframework"
    xcode_output_path = output_path if output_path.endswith(".xcframework") else f"{output_path}.xcframework"
    if xcode_output_path != output_path:
        remove_path(xcode_output_path)
    create_xcframework_bundle(framework_paths, xcode_output_path)
    if xcode_output_path != output_path:
        os.rename(xcode_output_path, output_path)
    if auto_link:
        touch_marker(output_path, MARKER_FILENAME)
    return output_path


def determine_xcframework_filename(framework_paths: Sequence[str], extension: str = ".xcframework") -> str:
    if extension not in (".xcframework", ".apple.node"):
        raise ConfigurationError(f"Unsupported Apple bundle extension: {extension}")
    return f"{determine_library_basename(framework_paths)}{extension}"


def create_universal_apple_library(library_paths: Sequence[str]) -> str:
    """
    lipo the slices into a fresh temporary directory and return the merged library path.

    The caller owns that directory (the parent of the returned path) and removes it.
    """
    filenames = {os.path.basename(p) for p in library_paths}
    if len(filenames) != 1:
        raise ConfigurationError("Expected all darwin libraries to have the same name")
    (filename,) = filenames
    lipo_parent_path = os.path.realpath(tempfile.mkdtemp(prefix="addonlink-lipo-output-"))
    output_path = os.path.join(lipo_parent_path, filename)
    lipo_create(library_paths, output_path)
    if not os.path.exists(output_path):
        raise BundleShapeError(f"Expected lipo output at {output_path}")
    return output_path
