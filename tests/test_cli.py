import json
import os

import pytest

from addonlink import cli
from addonlink.context import MARKER_FILENAME

from conftest import android_bundle, apple_bundle, manifest


@pytest.fixture
def app(make_tree):
    files = {
        "app/package.json": manifest("app", ["lib-a"]),
        "app/node_modules/lib-a/package.json": manifest("lib-a"),
    }
    for rel, content in android_bundle("addon").items():
        files[f"app/node_modules/lib-a/build/Release/addon.android.node/{rel}"] = content
    for rel, content in apple_bundle("addon").items():
        files[f"app/node_modules/lib-a/build/Release/addon.apple.node/{rel}"] = content
    root = make_tree(files)
    return os.path.join(root, "app")


def test_link_android(app):
    assert cli.main(["link", app, "--android", "--no-spinner"]) == 0
    out = os.path.join(app, "auto-linked", "android")
    assert os.listdir(out) == ["lib-a--addon.android.node"]
    # second run is up to date and still succeeds
    assert cli.main(["link", app, "--android", "--no-spinner"]) == 0


def test_link_with_options(app, tmp_path):
    out = tmp_path / "linked"
    code = cli.main(["link", app, "--android", "--no-spinner", "--path-suffix", "keep", "--output-dir", str(out), "--force", "--jobs", "2"])
    assert code == 0
    assert os.listdir(out / "android") == ["lib-a--build-Release-addon.android.node"]


def test_link_prunes_stale_outputs(app):
    stale = os.path.join(app, "auto-linked", "android", "old.android.node")
    os.makedirs(stale)
    assert cli.main(["link", app, "--android", "--no-spinner"]) == 0
    assert not os.path.exists(stale)

    os.makedirs(stale)
    assert cli.main(["link", app, "--android", "--no-spinner", "--no-prune"]) == 0
    assert os.path.exists(stale)


def test_link_requires_a_platform(app, capsys):
    assert cli.main(["link", app]) == 1
    assert "No platform specified" in capsys.readouterr().err


def test_link_name_collision(app, make_tree):
    make_tree({"app/node_modules/lib-a/other/addon.android.node/arm64-v8a/libaddon.so": "", "app/node_modules/lib-a/other/addon.android.node/" + MARKER_FILENAME: ""})
    assert cli.main(["link", app, "--android", "--no-spinner"]) == 2
    assert os.listdir(os.path.join(app, "auto-linked", "android")) == []


def test_link_apple_tool_failure(app, fake_tools):
    fake_tools.fail.add("xcodebuild")
    assert cli.main(["link", app, "--apple", "--no-spinner"]) == 1


def test_list_json(app, capsys):
    assert cli.main(["list", app, "--json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data == {
        "lib-a": {
            "path": os.path.join(app, "node_modules", "lib-a"),
            "bundlePaths": ["build/Release/addon.android.node", "build/Release/addon.apple.node"],
        }
    }


def test_list_table(app, capsys):
    assert cli.main(["list", app]) == 0
    out = capsys.readouterr().out
    assert "lib-a--addon" in out


def test_info_json(app, capsys):
    module = os.path.join(app, "node_modules/lib-a/build/Release/addon.apple.node")
    assert cli.main(["info", module, "--json", "--path-suffix", "keep"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["packageName"] == "lib-a"
    assert data["relativePath"] == "build/Release/addon"
    assert data["libraryName"] == "lib-a--build-Release-addon"


def test_info_outside_a_package(tmp_path, monkeypatch):
    monkeypatch.setattr(cli.ContextCache, "determine_module_context", _raise_configuration_error)
    assert cli.main(["info", str(tmp_path / "addon.node")]) == 2


def _raise_configuration_error(self, module_path, original_path=None):
    raise cli.ConfigurationError(f"Could not find containing package of {module_path}")


def test_bad_config_file(app, tmp_path):
    assert cli.main(["--config", str(tmp_path / "missing.yaml"), "list", app]) == 2


def test_no_command(capsys):
    assert cli.main([]) == 1
