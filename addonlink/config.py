# addonlink/config.py
# -*- coding: utf-8 -*-
"""
addonlink configuration

- settings file looked up in order: explicit path, $ADDONLINK_CONFIG,
  ./addonlink.{yaml,yml,json}, ~/.config/addonlink/config.yaml
- file values are layered over DEFAULTS, then paths, sizes and job counts
  are normalized
- problems are collected as warnings; load(fatal=True) turns them into ValueError
- ADDONLINK_PATH_SUFFIX replaces link.path_suffix
"""

from __future__ import annotations
import os
import json
import logging
import threading
from pathlib import Path
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, List, Tuple, Union

import yaml

# plain stdlib logger: addonlink.logging imports this module
logger = logging.getLogger("addonlink.config")

PATH_SUFFIX_ENV = "ADDONLINK_PATH_SUFFIX"
CONFIG_ENV = "ADDONLINK_CONFIG"

CONFIG_FILENAMES = ("addonlink.yaml", "addonlink.yml", "addonlink.json")

# ----------------------------
# Built-in settings
# ----------------------------
DEFAULTS: Dict[str, Any] = {
    "logging": {
        "level": "INFO",
        "file": None,
        "file_level": "DEBUG",
        "color": True,
        "max_size": "10M",
        "backups": 3,
        "module_levels": {},
    },
    "link": {
        "output_dir": None,  # None -> <app package root>/auto-linked
        "path_suffix": "strip",
        "incremental": True,
        "prune": True,
        "jobs": 8,
        "apple_extension": ".xcframework",
    },
    "locator": {
        "exclude": [],  # extra regex patterns, matched against "/<relative path>/"
        "jobs": 8,
    },
    "tools": {
        "xcodebuild": "xcodebuild",
        "install_name_tool": "install_name_tool",
        "lipo": "lipo",
    },
    "apple": {
        "bundle_id_prefix": "com.addonlink",
    },
}

_SIZE_UNITS = (("GB", 1024 ** 3), ("MB", 1024 ** 2), ("KB", 1024), ("G", 1024 ** 3), ("M", 1024 ** 2), ("K", 1024))


@dataclass
class Config:
    raw: Dict[str, Any] = field(default_factory=dict)     # as read from the file
    merged: Dict[str, Any] = field(default_factory=dict)  # DEFAULTS + file + env, normalized
    path: Optional[Path] = None

    def get(self, path: str, default: Any = None) -> Any:
        """get("link.jobs") style lookup into the merged settings."""
        node: Any = self.merged
        for key in path.split(".") if path else []:
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node


_CONFIG: Optional[Config] = None
_CONFIG_LOCK = threading.RLock()

# ----------------------------
# Helpers
# ----------------------------
def _parse_size(val: Union[str, int, None]) -> Optional[int]:
    """'10M' -> 10485760; plain numbers are bytes; None or garbage -> None."""
    if val is None or isinstance(val, int):
        return val
    text = str(val).strip().upper()
    multiplier = 1
    for unit, factor in _SIZE_UNITS:
        if text.endswith(unit):
            text, multiplier = text[: -len(unit)].strip(), factor
            break
    try:
        return int(float(text) * multiplier)
    except ValueError:
        logger.warning("config: ignoring unparsable size %r", val)
        return None

def _resolve_path(val: str) -> str:
    return os.path.abspath(os.path.expanduser(os.path.expandvars(val)))

def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """New dict: override layered onto base, nested mappings merged key by key."""
    out = deepcopy(base)
    for key, value in override.items():
        current = out.get(key)
        out[key] = _deep_merge(current, value) if isinstance(current, dict) and isinstance(value, dict) else deepcopy(value)
    return out

def _search_paths(explicit: Optional[str] = None) -> List[Path]:
    paths = [Path(p) for p in (explicit, os.environ.get(CONFIG_ENV)) if p]
    paths.extend(Path.cwd() / name for name in CONFIG_FILENAMES)
    paths.append(Path.home() / ".config" / "addonlink" / "config.yaml")
    return paths

def _read_settings_file(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    is_yaml = path.suffix.lower() in (".yaml", ".yml")
    try:
        data = yaml.safe_load(text) if is_yaml else json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ValueError(f"config: cannot parse {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"config: expected a mapping at the top of {path}, got {type(data).__name__}")
    return data

def _normalize_and_coerce(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Expand configured paths, add logging.max_size_bytes, make job counts ints, apply env overrides."""
    out = deepcopy(cfg)
    link = out.get("link") if isinstance(out.get("link"), dict) else None
    log_cfg = out.get("logging") if isinstance(out.get("logging"), dict) else None

    if link and link.get("output_dir"):
        link["output_dir"] = _resolve_path(str(link["output_dir"]))
    if log_cfg:
        if log_cfg.get("file"):
            log_cfg["file"] = _resolve_path(str(log_cfg["file"]))
        size = _parse_size(log_cfg.get("max_size"))
        if size is not None:
            log_cfg["max_size_bytes"] = size

    for name in ("link", "locator"):
        section = out.get(name)
        if isinstance(section, dict) and isinstance(section.get("jobs"), str) and section["jobs"].strip().isdigit():
            section["jobs"] = int(section["jobs"])

    env_suffix = os.environ.get(PATH_SUFFIX_ENV)
    if env_suffix is not None:
        out.setdefault("link", {})["path_suffix"] = env_suffix
    return out

def _check_jobs(section: str, value: Any, problems: List[str]) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        problems.append(f"{section}.jobs must be an integer >= 1, got {value!r}")

def _validate_structure(cfg: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """(ok, problems) for a merged config; nothing is raised here."""
    problems = [f"Unknown top-level config key: {k}" for k in cfg if k not in DEFAULTS]

    link = cfg.get("link")
    if isinstance(link, dict):
        _check_jobs("link", link.get("jobs"), problems)
        if link.get("path_suffix") not in ("strip", "keep", "omit"):
            problems.append(f"link.path_suffix must be one of strip, keep, omit, got {link.get('path_suffix')!r}")
        if link.get("apple_extension") not in (".xcframework", ".apple.node"):
            problems.append("link.apple_extension must be .xcframework or .apple.node")
    else:
        problems.append("link must be a mapping")

    locator = cfg.get("locator")
    if isinstance(locator, dict):
        _check_jobs("locator", locator.get("jobs"), problems)
        if not isinstance(locator.get("exclude") or [], list):
            problems.append("locator.exclude must be a list of regular expressions")

    tools = cfg.get("tools")
    if isinstance(tools, dict):
        problems.extend(f"tools.{name} must be a non-empty string" for name, exe in tools.items() if not exe or not isinstance(exe, str))
    return (not problems, problems)

def _find_path(explicit: Optional[str] = None) -> Optional[Path]:
    found = next((p for p in _search_paths(explicit) if p.exists()), None)
    if found is None and explicit:
        raise FileNotFoundError(f"config: file not found: {explicit}")
    return found

# ----------------------------
# Public API
# ----------------------------
def load(explicit_path: Optional[str] = None, fatal: bool = False) -> Config:
    """
    Build the process config from the first settings file found (or DEFAULTS alone)
    and make it the one get_config() returns. Validation problems are logged,
    or raised as ValueError when fatal is set.
    """
    global _CONFIG
    with _CONFIG_LOCK:
        path = _find_path(explicit_path)
        raw = _read_settings_file(path) if path else {}
        merged = _normalize_and_coerce(_deep_merge(DEFAULTS, raw))
        ok, problems = _validate_structure(merged)
        if not ok:
            if fatal:
                raise ValueError("config: " + "; ".join(problems))
            for problem in problems:
                logger.warning("config: %s", problem)
        _CONFIG = Config(raw=raw, merged=merged, path=path)
        logger.debug("config: using %s", path or "built-in defaults")
        return _CONFIG

def get_config() -> Config:
    with _CONFIG_LOCK:
        return _CONFIG if _CONFIG is not None else load()

def reload(explicit_path: Optional[str] = None) -> Config:
    return load(explicit_path)

def get_section(name: str) -> Dict[str, Any]:
    section = get_config().merged.get(name)
    return deepcopy(section) if isinstance(section, dict) else {}

def get_tool(name: str) -> str:
    """Executable configured for an external tool, the tool name itself if unset."""
    return str(get_config().get(f"tools.{name}") or name)

def validate_config() -> Tuple[bool, List[str]]:
    return _validate_structure(get_config().merged)
