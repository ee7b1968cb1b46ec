# addonlink/utils.py
"""Small filesystem helpers used across the linker modules."""

from __future__ import annotations

import os
import shutil
from typing import Optional


def remove_path(path: str) -> None:
    """rm -rf: remove a file, symlink or directory tree; missing paths are ignored."""
    if os.path.islink(path) or os.path.isfile(path):
        os.unlink(path)
    elif os.path.isdir(path):
        shutil.rmtree(path)


def copy_tree(src: str, dst: str) -> None:
    # copies get fresh mtimes (no copy2), the incremental check relies on it
    shutil.copytree(src, dst, symlinks=True, copy_function=shutil.copy)


def latest_mtime(from_path: str) -> float:
    """Latest modification time (seconds) of any regular file below from_path, 0 when empty."""
    latest = 0.0
    for dirpath, _dirnames, filenames in os.walk(from_path):
        for fn in filenames:
            full = os.path.join(dirpath, fn)
            if os.path.islink(full) and not os.path.exists(full):
                continue
            m = os.stat(full).st_mtime
            if m > latest:
                latest = m
    return latest


def touch_marker(dir_path: str, name: str) -> str:
    marker = os.path.join(dir_path, name)
    with open(marker, "w", encoding="utf-8"):
        pass
    return marker


def pretty_path(p: str, cwd: Optional[str] = None) -> str:
    rel = os.path.relpath(p, cwd or os.getcwd())
    if rel == ".":
        return "current directory"
    return rel
