import os

import pytest

from addonlink.context import MARKER_FILENAME
from addonlink.errors import ConfigurationError, DuplicateLibraryNamesError
from addonlink.planner import is_up_to_date, linked_output_path, plan_links

from conftest import age_tree, manifest


def test_linked_output_path(tmp_path):
    out = str(tmp_path)
    assert linked_output_path("android", out, "pkg--addon") == os.path.join(out, "pkg--addon.android.node")
    assert linked_output_path("apple", out, "pkg--addon") == os.path.join(out, "pkg--addon.xcframework")
    assert linked_output_path("apple", out, "pkg--addon", ".apple.node") == os.path.join(out, "pkg--addon.apple.node")
    with pytest.raises(ConfigurationError):
        linked_output_path("apple", out, "pkg--addon", ".framework")


def test_is_up_to_date_requires_strictly_newer_output(make_tree):
    root = make_tree({"in/a": "a", "in/sub/b": "b", "out/a": "a"})
    src, out = os.path.join(root, "in"), os.path.join(root, "out")
    assert not is_up_to_date(src, os.path.join(root, "missing"))

    os.utime(os.path.join(src, "a"), (1000, 1000))
    os.utime(os.path.join(src, "sub/b"), (2000, 2000))
    os.utime(os.path.join(out, "a"), (2000, 2000))
    assert not is_up_to_date(src, out)

    os.utime(os.path.join(out, "a"), (2001, 2001))
    assert is_up_to_date(src, out)


def _bundles(make_tree, names):
    files = {"pkg/package.json": manifest("pkg")}
    for name in names:
        files[f"pkg/{name}/{MARKER_FILENAME}"] = ""
        files[f"pkg/{name}/arm64-v8a/libx.so"] = "x"
    root = make_tree(files)
    return root, [os.path.join(root, "pkg", name) for name in names]


def test_plan_links(make_tree):
    root, paths = _bundles(make_tree, ["a.android.node", "sub/b.android.node"])
    out = os.path.join(root, "out")
    plan = plan_links(paths, "android", out, "strip")
    assert [(e.library_name, e.output_path, e.skip) for e in plan] == [
        ("pkg--a", os.path.join(out, "pkg--a.android.node"), False),
        ("pkg--b", os.path.join(out, "pkg--b.android.node"), False),
    ]


def test_plan_skips_fresh_outputs(make_tree):
    root, paths = _bundles(make_tree, ["a.android.node"])
    out = os.path.join(root, "out")
    os.makedirs(os.path.join(out, "pkg--a.android.node"))
    with open(os.path.join(out, "pkg--a.android.node", "libpkg--a.so"), "w") as fh:
        fh.write("x")
    age_tree(paths[0])

    (entry,) = plan_links(paths, "android", out, "strip")
    assert entry.skip
    (entry,) = plan_links(paths, "android", out, "strip", incremental=False)
    assert not entry.skip


def test_duplicate_names_abort_before_output(make_tree):
    root, paths = _bundles(make_tree, ["one/addon.android.node", "two/addon.android.node", "other.android.node"])
    out = os.path.join(root, "out")
    with pytest.raises(DuplicateLibraryNamesError) as info:
        plan_links(paths, "android", out, "strip")
    assert info.value.paths_by_name == {"pkg--addon": paths[:2]}
    assert "pkg--addon" in str(info.value)
    assert not os.path.exists(out)
    assert len(plan_links(paths, "android", out, "keep")) == 3
