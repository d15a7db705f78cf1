"""
Unit tests for directory listings.
"""

import os

import pytest

from staticserv.config import DotfilePolicy
from staticserv.handlers.listing import DirectoryLister


def names(listing):
    return [entry.name for entry in listing.entries]


class TestDirectoryLister:

    def test_entries_sorted_and_typed(self, site_root):
        lister = DirectoryLister(str(site_root), DotfilePolicy.ALLOW)
        listing = lister.list("/", str(site_root))

        assert names(listing) == sorted(names(listing))
        dirs = {e.name for e in listing.entries if e.is_dir}
        assert dirs == {"assets", "empty", "subdir"}

    def test_ordinal_sort(self, tmp_path):
        for name in ("b.txt", "B.txt", "a.txt", "_x.txt"):
            (tmp_path / name).write_bytes(b"")
        listing = DirectoryLister(str(tmp_path)).list("/", str(tmp_path))
        assert names(listing) == ["B.txt", "_x.txt", "a.txt", "b.txt"]

    def test_ignore_policy_hides_platform_files(self, site_root):
        (site_root / ".git").mkdir()
        listing = DirectoryLister(str(site_root), DotfilePolicy.IGNORE).list("/", str(site_root))

        assert ".DS_Store" not in names(listing)
        assert ".git" not in names(listing)
        assert ".hidden" in names(listing)

    def test_deny_policy_hides_all_dotfiles(self, site_root):
        listing = DirectoryLister(str(site_root), DotfilePolicy.DENY).list("/", str(site_root))
        assert not [n for n in names(listing) if n.startswith(".")]

    def test_allow_policy_shows_everything(self, site_root):
        listing = DirectoryLister(str(site_root), DotfilePolicy.ALLOW).list("/", str(site_root))
        assert {".DS_Store", ".hidden"} <= set(names(listing))

    def test_parent_only_below_root(self, site_root):
        lister = DirectoryLister(str(site_root))
        assert lister.list("/", str(site_root)).has_parent is False
        assert lister.list("/subdir/", str(site_root / "subdir")).has_parent is True

    def test_missing_directory_raises(self, site_root):
        lister = DirectoryLister(str(site_root))
        with pytest.raises(OSError):
            lister.list("/gone/", str(site_root / "gone"))

    def test_broken_symlink_skipped(self, site_root):
        try:
            os.symlink(site_root / "nowhere", site_root / "empty" / "dangling")
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not supported")
        (site_root / "empty" / "real.txt").write_bytes(b"x")

        listing = DirectoryLister(str(site_root)).list("/empty/", str(site_root / "empty"))
        assert names(listing) == ["real.txt"]


class TestRender:

    def test_page_structure(self, site_root):
        page = DirectoryLister(str(site_root)).render("/subdir/", str(site_root / "subdir"))

        assert "<title>Index of /subdir/</title>" in page
        assert '<a href="/subdir/garble.txt">garble.txt</a>' in page
        assert '<a href="/">../</a>' in page

    def test_directory_links_have_trailing_slash(self, site_root):
        page = DirectoryLister(str(site_root)).render("/", str(site_root))
        assert '<a href="/subdir/">subdir/</a>' in page
        assert "../" not in page

    def test_missing_trailing_slash_in_url(self, site_root):
        page = DirectoryLister(str(site_root)).render("/subdir", str(site_root / "subdir"))
        assert 'href="/subdir/garble.txt"' in page

    def test_names_escaped_and_links_encoded(self, site_root):
        (site_root / "empty" / "a <b> & c.txt").write_bytes(b"")
        page = DirectoryLister(str(site_root)).render("/empty/", str(site_root / "empty"))

        assert "a &lt;b&gt; &amp; c.txt" in page
        assert 'href="/empty/a%20%3Cb%3E%20%26%20c.txt"' in page
        assert "<b>" not in page
