"""
Shared fixtures: temporary file trees, addon bundle layouts and fake
external tools (xcodebuild, install_name_tool, lipo) so the suite runs
without an Apple toolchain.
"""
import json
import logging
import os
import shutil

import pytest

from addonlink import config, tools
from addonlink import logging as addonlink_logging
from addonlink.context import MARKER_FILENAME
from addonlink.errors import SpawnFailure


def write_tree(root, files):
    """Create files below root from a {relative path: content | nested dict} mapping."""
    for rel, content in files.items():
        full = os.path.join(str(root), rel)
        if isinstance(content, dict):
            os.makedirs(full, exist_ok=True)
            write_tree(full, content)
        else:
            os.makedirs(os.path.dirname(full), exist_ok=True)
            mode = "wb" if isinstance(content, bytes) else "w"
            with open(full, mode) as fh:
                fh.write(content)
    return str(root)


def manifest(name, dependencies=()):
    data = {"name": name}
    if dependencies:
        data["dependencies"] = {dep: "*" for dep in dependencies}
    return json.dumps(data)


def android_bundle(library="addon", archs=("arm64-v8a", "x86_64"), marker=True):
    files = {f"{arch}/lib{library}.so": f"{arch} binary of {library}" for arch in archs}
    if marker:
        files[MARKER_FILENAME] = ""
    return files


def info_plist(library):
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<plist version=\"1.0\"><dict>"
        f"<key>CFBundleExecutable</key><string>{library}</string>"
        f"<key>CFBundleIdentifier</key><string>org.example.{library}</string>"
        "</dict></plist>\n"
    )


def apple_bundle(library="addon", triplets=("ios-arm64", "ios-arm64-simulator"), marker=True):
    files = {}
    for triplet in triplets:
        files[f"{triplet}/{library}.framework/{library}"] = f"{triplet} binary of {library}"
        files[f"{triplet}/{library}.framework/Info.plist"] = info_plist(library)
    if marker:
        files[MARKER_FILENAME] = ""
    return files


def age_tree(path, seconds=3600):
    """Push every file mtime below path into the past."""
    past = os.path.getmtime(path) - seconds
    for dirpath, _dirs, filenames in os.walk(path):
        for fn in filenames:
            os.utime(os.path.join(dirpath, fn), (past, past))


@pytest.fixture
def make_tree(tmp_path):
    root = os.path.realpath(str(tmp_path))

    def _make(files, base=None):
        return write_tree(os.path.join(root, base) if base else root, files)

    return _make


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    """Fresh default config per test, no config file or env overrides from the host."""
    monkeypatch.delenv(config.CONFIG_ENV, raising=False)
    monkeypatch.delenv(config.PATH_SUFFIX_ENV, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config, "_CONFIG", None)
    yield
    # drop handlers bound to this test's captured streams
    root = logging.getLogger("addonlink")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for log_filter in list(root.filters):
        root.removeFilter(log_filter)
    root.propagate = True
    addonlink_logging.AddonLinkLogger._instance = None
    addonlink_logging._GLOBAL_LOGGER = None


class FakeTools:
    def __init__(self):
        self.calls = []
        self.fail = set()

    def __call__(self, cmd, cwd=None, env=None):
        cmd = [str(c) for c in cmd]
        self.calls.append(cmd)
        name = os.path.basename(cmd[0])
        if name in self.fail:
            raise SpawnFailure(cmd, 1, "some output", f"{name}: simulated failure")
        if name == "xcodebuild":
            self._xcodebuild(cmd[1:])
        elif name == "lipo":
            output = cmd[cmd.index("-output") + 1]
            inputs = cmd[cmd.index("-output") + 2:]
            with open(output, "w") as fh:
                for p in inputs:
                    with open(p) as src:
                        fh.write(src.read())
        return ""

    def _xcodebuild(self, args):
        assert args[0] == "-create-xcframework"
        frameworks = [args[i + 1] for i, a in enumerate(args) if a == "-framework"]
        output = args[args.index("-output") + 1]
        assert output.endswith(".xcframework")
        assert not os.path.exists(output), "xcodebuild refuses existing outputs"
        os.makedirs(output)
        for fw in frameworks:
            slice_dir = os.path.join(output, os.path.basename(os.path.dirname(fw)))
            os.makedirs(slice_dir)
            shutil.copytree(fw, os.path.join(slice_dir, os.path.basename(fw)))
        with open(os.path.join(output, "Info.plist"), "w") as fh:
            fh.write("<plist/>")

    def commands(self, name):
        return [c for c in self.calls if os.path.basename(c[0]) == name]


@pytest.fixture
def fake_tools(monkeypatch):
    fake = FakeTools()
    monkeypatch.setattr(tools, "spawn", fake)
    return fake
