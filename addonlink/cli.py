# addonlink/cli.py
"""
addonlink CLI

Subcommands:
- link: copy/rename every addon bundle of the app's dependencies into the
  auto-linked output directory (per platform), then prune stale entries
- list: show the bundles of each dependency and their library names
- info: show how a single addon path is named

Uses rich for output and a spinner while linking runs.
"""

from __future__ import annotations

import os
import sys
import json
import time
import logging
import argparse
import threading
from typing import Any, Callable, Dict, List, Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from addonlink import config as config_mod
from addonlink import logging as addonlink_logging
from addonlink.context import PLATFORMS, PLATFORM_DISPLAY_NAMES, ContextCache, normalize_module_path
from addonlink.errors import AddonLinkError, ConfigurationError, DuplicateLibraryNamesError, SpawnFailure
from addonlink.linker import LinkOptions, LinkResult, link_modules, platform_output_dir, prune_linked_modules
from addonlink.locator import find_bundles_by_dependency
from addonlink.naming import PATH_SUFFIX_CHOICES, group_by_library_name, library_name_from_context
from addonlink.utils import pretty_path

logger = addonlink_logging.get_logger("cli")

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)

# -----------------------
# Small pretty helpers
# -----------------------
def print_ok(msg: str):
    console.print(f"[bold green]✔[/] {msg}")

def print_warn(msg: str):
    console.print(f"[bold yellow]![/] {msg}")

def print_err(msg: str):
    err_console.print(f"[bold red]✖[/] {msg}")

def print_info(msg: str):
    console.print(f"[cyan]{msg}[/cyan]")

def run_with_spinner(func: Callable[..., Any], text: str = "working", disable_spinner: bool = False) -> Any:
    """Run func in a worker thread while a spinner is shown; re-raise whatever it raised."""
    result: Dict[str, Any] = {"result": None, "exception": None}

    def target():
        try:
            result["result"] = func()
        except BaseException as e:
            result["exception"] = e

    th = threading.Thread(target=target, daemon=True)
    th.start()
    if not disable_spinner and console.is_terminal:
        with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console, transient=True) as prog:
            prog.add_task(description=text, total=None)
            while th.is_alive():
                time.sleep(0.1)
    th.join()
    if result["exception"] is not None:
        raise result["exception"]
    return result["result"]

def print_module_paths(module_paths: List[str], path_suffix: str, cache: ContextCache):
    """Print module paths grouped by library name; paths sharing a name are shown in red."""
    groups = group_by_library_name(module_paths, path_suffix, cache)
    for library_name, paths in groups.items():
        style = "red" if len(paths) > 1 else "dim"
        console.print(f"[bright_green]{library_name}[/]")
        for p in paths:
            console.print(f" ↳ [{style}]{pretty_path(p)}[/]")

def print_duplicates(error: DuplicateLibraryNamesError):
    for library_name, paths in error.paths_by_name.items():
        err_console.print(f"[bright_green]{library_name}[/]")
        for p in paths:
            err_console.print(f" ↳ [red]{pretty_path(p)}[/]")

def print_link_summary(results: List[LinkResult]) -> int:
    failures = [r for r in results if r.failure is not None]
    for r in sorted((r for r in results if r.failure is None), key=lambda r: r.original_path):
        target = f"→ {os.path.basename(r.output_path)}" if r.output_path else ""
        if r.skipped:
            console.print(f"[bright_green]-[/] Skipped [dim]{pretty_path(r.original_path)}[/] {target} (up to date)")
        else:
            console.print(f"[bright_green]⚭[/] Linked [dim]{pretty_path(r.original_path)}[/] {target}")
    for r in failures:
        print_err(f"Failed to link {pretty_path(r.original_path)}: {r.failure}")
        if isinstance(r.failure, SpawnFailure) and r.failure.output():
            err_console.print(r.failure.output(), markup=False)
    return 1 if failures else 0

# -----------------------
# Commands
# -----------------------
def cmd_link(args: argparse.Namespace) -> int:
    platforms = [p for p in PLATFORMS if getattr(args, p)]
    if not platforms:
        print_err("No platform specified, pass one or more of: " + ", ".join(f"--{p}" for p in PLATFORMS))
        return 1
    from_path = os.path.abspath(args.path)
    print_info(f"Auto-linking Node-API modules from {pretty_path(from_path)}")
    status = 0
    cache = ContextCache()
    for platform in platforms:
        options = LinkOptions.from_config(
            from_path,
            platform,
            path_suffix=args.path_suffix,
            incremental=False if args.force else None,
            prune=False if args.no_prune else None,
            output_dir=args.output_dir,
            jobs=args.jobs,
        )
        display = PLATFORM_DISPLAY_NAMES[platform]
        output_dir = platform_output_dir(options)
        results = run_with_spinner(
            lambda: link_modules(options, cache=cache),
            text=f"Linking {display} Node-API modules into {pretty_path(output_dir)}",
            disable_spinner=args.no_spinner,
        )
        if not results:
            print_warn(f"Found no {display} Node-API modules")
        else:
            print_ok(f"Linked {display} Node-API modules into {pretty_path(output_dir)}")
        status = max(status, print_link_summary(results))
        if options.prune:
            for deleted in prune_linked_modules(output_dir, results):
                console.print(f"Deleting [dim]{pretty_path(deleted)}[/] (no longer linked)")
    return status

def cmd_list(args: argparse.Namespace) -> int:
    root = os.path.abspath(args.path)
    dependencies = find_bundles_by_dependency(root, PLATFORMS, include_self=True)
    if args.json:
        print(json.dumps({name: dep.to_dict() for name, dep in dependencies.items()}, indent=2))
        return 0
    path_suffix = args.path_suffix or config_mod.get_config().get("link.path_suffix", "strip")
    count = sum(len(dep.bundle_paths) for dep in dependencies.values())
    console.print(
        f"Found [bright_green]{count}[/] Node-API modules in [bright_green]{len(dependencies)}[/] "
        f"{'package' if len(dependencies) == 1 else 'packages'} from {pretty_path(root)}"
    )
    cache = ContextCache()
    for name, dep in dependencies.items():
        console.print(f"[bright_blue]{name}[/] → [dim]{pretty_path(dep.path)}[/]")
        print_module_paths([os.path.join(dep.path, p) for p in dep.bundle_paths], path_suffix, cache)
    return 0

def cmd_info(args: argparse.Namespace) -> int:
    resolved = os.path.abspath(args.path)
    path_suffix = args.path_suffix or config_mod.get_config().get("link.path_suffix", "strip")
    context = ContextCache().determine_module_context(resolved)
    info = {
        "resolvedModulePath": resolved,
        "normalizedModulePath": normalize_module_path(resolved),
        "packageName": context.package_name,
        "relativePath": context.relative_path,
        "libraryName": library_name_from_context(context, path_suffix),
    }
    if args.json:
        print(json.dumps(info, indent=2))
        return 0
    table = Table(show_header=False, box=None)
    for key, value in info.items():
        table.add_row(f"[bold]{key}[/]", value)
    console.print(table)
    return 0

# -----------------------
# Argparse wiring
# -----------------------
def make_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="addonlink", description="Link prebuilt Node-API addons for Android and Apple apps")
    ap.add_argument("--config", help="explicit config file to load")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = ap.add_subparsers(dest="cmd")

    suffix_help = "how the addon path inside its package becomes part of the library name"

    p_link = sub.add_parser("link", help="link addons of the app's dependencies")
    p_link.add_argument("path", nargs="?", default=os.getcwd(), help="some path inside the app package")
    p_link.add_argument("--android", action="store_true", help="link Android modules")
    p_link.add_argument("--apple", action="store_true", help="link Apple modules")
    p_link.add_argument("--force", action="store_true", help="don't check timestamps of input files to skip unnecessary rebuilds")
    p_link.add_argument("--no-prune", action="store_true", help="keep linked modules that are no longer auto-linked")
    p_link.add_argument("--path-suffix", choices=PATH_SUFFIX_CHOICES, help=suffix_help)
    p_link.add_argument("--output-dir", help="directory receiving <platform>/<library> outputs")
    p_link.add_argument("--jobs", type=int, help="parallel link operations")
    p_link.add_argument("--no-spinner", action="store_true", help="disable spinner animations")

    p_list = sub.add_parser("list", help="list Node-API modules")
    p_list.add_argument("path", nargs="?", default=os.getcwd(), help="some path inside the app package")
    p_list.add_argument("--json", action="store_true", help="output as JSON")
    p_list.add_argument("--path-suffix", choices=PATH_SUFFIX_CHOICES, help=suffix_help)

    p_info = sub.add_parser("info", help="print package, relative path and library name of a module path")
    p_info.add_argument("path")
    p_info.add_argument("--json", action="store_true", help="output as JSON")
    p_info.add_argument("--path-suffix", choices=PATH_SUFFIX_CHOICES, help=suffix_help)

    return ap

COMMANDS: Dict[str, Callable[[argparse.Namespace], int]] = {
    "link": cmd_link,
    "list": cmd_list,
    "info": cmd_info,
}

def main(argv: Optional[List[str]] = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = make_parser()
    args = parser.parse_args(argv)
    if args.cmd not in COMMANDS:
        parser.print_help()
        return 1
    try:
        config_mod.load(args.config)
    except (ValueError, FileNotFoundError) as e:
        print_err(f"Configuration error: {e}")
        return 2
    addonlink_logging.configure()
    addonlink_logging.reload_config()
    if args.verbose:
        addonlink_logging.set_level(logging.DEBUG)
    try:
        return COMMANDS[args.cmd](args)
    except DuplicateLibraryNamesError as e:
        print_err(str(e))
        print_duplicates(e)
        return 2
    except ConfigurationError as e:
        print_err(f"Configuration error: {e}")
        return 2
    except AddonLinkError as e:
        logger.debug("command failed", exc_info=True)
        print_err(f"Command failed: {e}")
        return 1

if __name__ == "__main__":
    sys.exit(main())
