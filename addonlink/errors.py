# addonlink/errors.py
"""Exception types shared by the discovery, naming and linking modules."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence


class AddonLinkError(Exception):
    """Base class for every error raised by addonlink."""


class ConfigurationError(AddonLinkError):
    """Fatal before any mutation: missing manifest, bad options, mismatched basenames."""


class DuplicateLibraryNamesError(ConfigurationError):
    def __init__(self, paths_by_name: Dict[str, List[str]]):
        self.paths_by_name = paths_by_name
        names = ", ".join(sorted(paths_by_name))
        super().__init__(f"Found conflicting library names: {names}")


class UnreadableModuleError(AddonLinkError):
    pass


class BundleShapeError(AddonLinkError):
    """A discovered bundle does not have the layout its platform requires."""


class SpawnFailure(AddonLinkError):
    """An external tool exited with a nonzero status (or could not be started)."""

    def __init__(self, command: Sequence[str], returncode: int, stdout: str = "", stderr: str = "", message: Optional[str] = None):
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        super().__init__(message or f"{self.command[0]} exited with code {returncode}")

    def output(self) -> str:
        parts = [p.rstrip() for p in (self.stdout, self.stderr) if p and p.strip()]
        return "\n".join(parts)
