# addonlink/logging.py
# -*- coding: utf-8 -*-
"""
addonlink logging

One "addonlink" logger for the whole process, set up from the `logging`
config section by configure():
 - coloured console output on stderr (stdout is reserved for command output)
 - optional size-rotating log file
 - per-component thresholds (logging.module_levels: {"locator": "DEBUG"})

Components call get_logger("<component>"); the adapter stamps the component
name on each record as `addonlink_module`.
"""

from __future__ import annotations
import sys
import logging
import logging.handlers
import threading
from pathlib import Path
from typing import Dict, Any, Optional, List

from addonlink.config import get_config

_logger = logging.getLogger("addonlink.logging")

ROOT_LOGGER = "addonlink"
DEFAULT_FORMAT = "[%(asctime)s] [%(levelname)s] [%(addonlink_module)s] %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s [%(addonlink_module)s] %(message)s"


def _level(name: Any, default: int) -> int:
    value = getattr(logging, str(name).upper(), None)
    return value if isinstance(value, int) else default


class ColorFormatter(logging.Formatter):
    COLORS = {
        logging.DEBUG: "\033[37m",
        logging.INFO: "\033[36m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41;37m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = None, color: bool = True):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.color = color

    def format(self, record):
        text = super().format(record)
        if not self.color:
            return text
        return self.COLORS.get(record.levelno, "") + text + self.RESET


class ModuleLevelFilter(logging.Filter):
    """Drops records of a component below that component's configured level."""

    def __init__(self, module_levels: Dict[str, str]):
        super().__init__()
        self.module_levels = {module: _level(lvl, logging.INFO) for module, lvl in (module_levels or {}).items()}

    def filter(self, record):
        threshold = self.module_levels.get(getattr(record, "addonlink_module", None))
        return threshold is None or record.levelno >= threshold


class _ModuleFieldFilter(logging.Filter):
    """Records of child loggers (addonlink.config, ...) still need 'addonlink_module' for the formatters."""

    def filter(self, record):
        if not hasattr(record, "addonlink_module"):
            record.addonlink_module = record.name
        return True


class AddonLinkLogger:
    _instance = None
    _singleton_lock = threading.Lock()

    def __new__(cls):
        with cls._singleton_lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._inited = False
        return cls._instance

    def __init__(self):
        if self._inited:
            return
        self._lock = threading.RLock()
        self._root = logging.getLogger(ROOT_LOGGER)
        self._root.propagate = False
        self._handlers: List[logging.Handler] = []
        self._module_filter: Optional[ModuleLevelFilter] = None
        self._field_filter = _ModuleFieldFilter()
        self._apply_config(get_config().merged.get("logging", {}))
        self._inited = True

    def _add_handler(self, handler: logging.Handler, level: int, formatter: logging.Formatter):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(self._field_filter)
        self._root.addHandler(handler)
        self._handlers.append(handler)

    def _apply_config(self, cfg: Dict[str, Any]):
        with self._lock:
            while self._handlers:
                handler = self._handlers.pop()
                self._root.removeHandler(handler)
                handler.close()
            if self._module_filter is not None:
                self._root.removeFilter(self._module_filter)
            self._module_filter = ModuleLevelFilter(cfg.get("module_levels") or {})
            self._root.addFilter(self._module_filter)

            fmt = cfg.get("format")
            datefmt = cfg.get("datefmt", "%H:%M:%S")
            console_level = _level(cfg.get("level", "INFO"), logging.INFO)
            self._add_handler(
                logging.StreamHandler(sys.stderr),
                console_level,
                ColorFormatter(fmt or DEFAULT_FORMAT, datefmt=datefmt, color=bool(cfg.get("color", True))),
            )

            lowest = console_level
            if cfg.get("file"):
                log_path = Path(cfg["file"]).expanduser()
                log_path.parent.mkdir(parents=True, exist_ok=True)
                file_level = _level(cfg.get("file_level", "DEBUG"), logging.DEBUG)
                rotating = logging.handlers.RotatingFileHandler(
                    str(log_path),
                    maxBytes=int(cfg.get("max_size_bytes") or 10 * 1024 * 1024),
                    backupCount=int(cfg.get("backups", 3)),
                    encoding="utf-8",
                )
                self._add_handler(rotating, file_level, logging.Formatter(fmt or FILE_FORMAT, datefmt=datefmt))
                lowest = min(lowest, file_level)

            self._root.setLevel(lowest)
            _logger.debug("logging: %d handler(s) installed", len(self._handlers))

    def reload_config(self):
        """Re-apply the logging section of the current config."""
        self._apply_config(get_config().merged.get("logging", {}))

    def set_level(self, level: int):
        """Change the console threshold (the -v flag); the log file keeps its own level."""
        with self._lock:
            for handler in self._handlers:
                if not isinstance(handler, logging.FileHandler):
                    handler.setLevel(level)
            self._root.setLevel(min(self._root.level, level))


_GLOBAL_LOGGER: Optional[AddonLinkLogger] = None
_FACTORY_LOCK = threading.Lock()

def _instance() -> AddonLinkLogger:
    global _GLOBAL_LOGGER
    with _FACTORY_LOCK:
        if _GLOBAL_LOGGER is None:
            _GLOBAL_LOGGER = AddonLinkLogger()
        return _GLOBAL_LOGGER

def configure() -> AddonLinkLogger:
    """Install the handlers described by the logging config section (idempotent)."""
    return _instance()

def get_logger(module: str) -> logging.LoggerAdapter:
    # usable before configure(); records then follow the stdlib defaults
    return logging.LoggerAdapter(logging.getLogger(ROOT_LOGGER), {"addonlink_module": module})

def reload_config():
    return _instance().reload_config()

def set_level(level: int):
    return _instance().set_level(level)
