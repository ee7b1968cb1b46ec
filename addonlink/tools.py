# addonlink/tools.py
"""
External tool invocation (xcodebuild, install_name_tool, lipo).

Output is captured (never streamed) so concurrent invocations don't
interleave; a failing tool raises SpawnFailure carrying what it printed.
"""

from __future__ import annotations

import os
import subprocess
from typing import Dict, List, Optional, Sequence

from addonlink.config import get_tool
from addonlink.errors import SpawnFailure
from addonlink.logging import get_logger

logger = get_logger("tools")


def spawn(cmd: Sequence[str], cwd: Optional[str] = None, env: Optional[Dict[str, str]] = None) -> str:
    """Run cmd, return its stdout; raise SpawnFailure on a nonzero exit."""
    cmd = [str(c) for c in cmd]
    logger.debug("RUN: %s (cwd=%s)", " ".join(cmd), cwd)
    try:
        p = subprocess.Popen(cmd, cwd=cwd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, env=(env or os.environ), text=True)
    except OSError as e:
        raise SpawnFailure(cmd, 127, stderr=str(e), message=f"Failed to start {cmd[0]}: {e}") from e
    out, err = p.communicate()
    if p.returncode != 0:
        raise SpawnFailure(cmd, p.returncode, out, err)
    return out or ""


def run_tool(name: str, args: Sequence[str], cwd: Optional[str] = None) -> str:
    """Run a configured tool (see the `tools` config section) with args."""
    return spawn([get_tool(name), *args], cwd=cwd)


def set_install_name(library_path: str, install_name: str) -> None:
    run_tool("install_name_tool", ["-id", install_name, library_path])


def create_xcframework_bundle(framework_paths: Sequence[str], output_path: str) -> None:
    args: List[str] = ["-create-xcframework"]
    for framework_path in framework_paths:
        args.extend(["-framework", framework_path])
    args.extend(["-output", output_path])
    run_tool("xcodebuild", args)


def lipo_create(library_paths: Sequence[str], output_path: str) -> None:
    run_tool("lipo", ["-create", "-output", output_path, *library_paths])
