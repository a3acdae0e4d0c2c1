import os
import sys

import pytest

from fileshare.file_server_ui import PathOutsideRoot, decode_request_path, resolve_request_path


@pytest.fixture
def root(tmp_path):
    return str(tmp_path.resolve())


def test_root_path_maps_to_root(root):
    assert resolve_request_path(root, "/") == (root, "")
    assert resolve_request_path(root, "") == (root, "")


def test_dot_segments_are_collapsed(root):
    full, rel = resolve_request_path(root, "/a/./b/../c")
    assert rel == "a/c"
    assert full == os.path.join(root, "a", "c")


def test_trailing_slash_is_dropped(root):
    full, rel = resolve_request_path(root, "/docs/")
    assert rel == "docs"
    assert full == os.path.join(root, "docs")


@pytest.mark.parametrize("raw", [
    "/../../etc/passwd",
    "/../../../../../../etc/passwd",
    "/a/../../etc/passwd",
    "//etc/passwd",
    "/./../etc/passwd",
])
def test_traversal_stays_inside_root(root, raw):
    full, rel = resolve_request_path(root, raw)
    assert full.startswith(root + os.sep)
    assert rel == "etc/passwd"
    assert not rel.startswith("..")


def test_parent_of_root_is_root(root):
    assert resolve_request_path(root, "/..") == (root, "")


def test_nul_byte_is_rejected(root):
    with pytest.raises(PathOutsideRoot):
        resolve_request_path(root, "/a\x00b")


def test_filesystem_root_as_share():
    full, rel = resolve_request_path(os.sep, "/../tmp")
    assert rel == "tmp"
    assert full == os.path.join(os.sep, "tmp")


@pytest.mark.skipif(os.altsep is None, reason="backslash is only a separator on Windows")
def test_backslash_traversal_on_windows(root):
    full, rel = resolve_request_path(root, "/..\\..\\etc\\passwd")
    assert rel == "etc/passwd"
    assert full.startswith(root + os.sep)


@pytest.mark.skipif(os.altsep is not None, reason="backslash is a separator on Windows")
def test_backslash_is_part_of_a_posix_filename(root):
    full, rel = resolve_request_path(root, "/a\\b.txt")
    assert rel == "a\\b.txt"
    assert full == os.path.join(root, "a\\b.txt")

    full, rel = resolve_request_path(root, "/..\\..\\etc\\passwd")
    assert rel == "..\\..\\etc\\passwd"
    assert os.path.dirname(full) == root


def test_decode_request_path_keeps_raw_bytes():
    assert decode_request_path("/sub%20dir/a%5Cb.txt") == "/sub dir/a\\b.txt"
    if sys.platform.startswith("linux"):
        assert os.fsencode(decode_request_path("/bad%FF.txt")) == b"/bad\xff.txt"
    assert decode_request_path("/..%2Fetc") == "/../etc"
