"""
Unit tests for request target → filesystem path resolution.
"""

import os

import pytest

from staticserv.errors import NotFound, PathTraversal
from staticserv.handlers.resolver import (
    TargetKind,
    decode_url_path,
    is_within,
    resolve,
    stat_path,
)


class TestDecodeUrlPath:
    """Tests for query/fragment stripping and percent-decoding."""

    def test_strips_query_and_fragment(self):
        assert decode_url_path("/a/b.txt?x=1#top") == "/a/b.txt"

    def test_percent_decoding(self):
        assert decode_url_path("/my%20file%2Etxt") == "/my file.txt"

    def test_absolute_form(self):
        assert decode_url_path("http://example.com/docs/x.html?y") == "/docs/x.html"

    def test_empty_becomes_root(self):
        assert decode_url_path("?only=query") == "/"


class TestIsWithin:
    """Containment must not be a string prefix test."""

    def test_same_directory(self):
        assert is_within("/srv/site", "/srv/site") is True

    def test_child(self):
        assert is_within("/srv/site", "/srv/site/a/b") is True

    def test_sibling_with_common_prefix(self):
        assert is_within("/srv/site", "/srv/site-private/x") is False

    def test_parent(self):
        assert is_within("/srv/site", "/srv") is False


class TestResolve:
    """Tests for resolve()."""

    def test_file(self, site_root):
        target = resolve(str(site_root), "/subdir/garble.txt")

        assert target.kind is TargetKind.FILE
        assert target.size == 1028
        assert target.path == os.path.join(os.path.realpath(site_root), "subdir", "garble.txt")

    def test_directory(self, site_root):
        target = resolve(str(site_root), "/subdir/")
        assert target.is_directory

    def test_root(self, site_root):
        target = resolve(str(site_root), "/")
        assert target.is_directory
        assert target.path == os.path.realpath(site_root)

    def test_missing(self, site_root):
        assert resolve(str(site_root), "/nope.txt").is_missing

    def test_file_used_as_directory_is_missing(self, site_root):
        """ENOTDIR is treated like ENOENT."""
        assert resolve(str(site_root), "/index.html/child").is_missing

    def test_encoded_name(self, site_root):
        (site_root / "my file.txt").write_bytes(b"x")
        assert resolve(str(site_root), "/my%20file.txt").is_file

    def test_query_is_ignored(self, site_root):
        assert resolve(str(site_root), "/index.html?v=2").is_file

    def test_dot_segments_inside_root(self, site_root):
        target = resolve(str(site_root), "/subdir/../index.html")
        assert target.is_file
        assert target.size == 219

    @pytest.mark.parametrize("url_path", [
        "/../etc/passwd",
        "/../../../../etc/passwd",
        "/%2e%2e/%2e%2e/etc/passwd",
        "/subdir/../../outside.txt",
    ])
    def test_traversal_rejected(self, site_root, url_path):
        with pytest.raises(PathTraversal):
            resolve(str(site_root), url_path)

    def test_traversal_is_not_found(self, site_root):
        with pytest.raises(NotFound):
            resolve(str(site_root), "/../x")

    def test_symlink_escaping_root(self, site_root, tmp_path):
        outside = tmp_path / "outside.txt"
        outside.write_bytes(b"private")
        try:
            os.symlink(outside, site_root / "link.txt")
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not supported")

        with pytest.raises(PathTraversal):
            resolve(str(site_root), "/link.txt")

    def test_symlink_inside_root(self, site_root):
        try:
            os.symlink(site_root / "index.html", site_root / "home.html")
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not supported")

        assert resolve(str(site_root), "/home.html").is_file

    def test_nul_byte(self, site_root):
        assert resolve(str(site_root), "/index.html%00.txt").is_missing


class TestStatPath:

    def test_missing(self, tmp_path):
        assert stat_path(str(tmp_path / "nothing")).kind is TargetKind.MISSING

    def test_mtime_ns(self, site_root):
        target = stat_path(str(site_root / "index.html"))
        assert target.mtime_ns == 1_700_000_000 * 1_000_000_000

    @pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="needs mkfifo")
    def test_fifo_is_missing(self, tmp_path):
        fifo = tmp_path / "pipe"
        os.mkfifo(fifo)
        assert stat_path(str(fifo)).is_missing
