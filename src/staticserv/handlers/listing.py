"""
=============================================================================
DIRECTORY LISTING
=============================================================================

Renders an HTML index of a directory that has no index.html/index.htm.
Only used when listing is enabled in the configuration.

    GET /subdir/

    ┌──────────────────────────────┐
    │ Index of /subdir/            │
    │ ──────────────────────────── │
    │   ../                        │
    │   assets/                    │
    │   garble.txt                 │
    │   notes & todo.md            │
    └──────────────────────────────┘

=============================================================================
RULES
=============================================================================

- Immediate children only, sorted by name (plain code point order).
- Directories get a trailing "/" in both label and link.
- Every child is stat'ed; one that vanished or cannot be stat'ed is
  skipped instead of failing the page.
- Labels are HTML-escaped, links are percent-encoded absolute paths.
- ".." links to the parent unless the directory is the served root.

Dotfile policy:

    ALLOW   everything is listed
    IGNORE  .DS_Store and .git are hidden
    DENY    every name starting with "." is hidden

=============================================================================
"""

import html
import logging
import os
import posixpath
import stat as stat_module
from dataclasses import dataclass, field
from typing import List
from urllib.parse import quote

from ..config import DotfilePolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListingEntry:
    name: str
    is_dir: bool = False

    @property
    def label(self) -> str:
        return self.name + "/" if self.is_dir else self.name


@dataclass
class DirectoryListing:
    """The entries of one directory, ready for rendering."""

    url_path: str
    entries: List[ListingEntry] = field(default_factory=list)
    has_parent: bool = False


class DirectoryLister:
    """
    Builds and renders directory listings under one served root.

    Usage:
        lister = DirectoryLister("/srv/site", DotfilePolicy.IGNORE)
        page = lister.render("/subdir/", "/srv/site/subdir")
    """

    HIDDEN_NAMES = frozenset({".DS_Store", ".git"})

    def __init__(self, root_dir: str, dotfiles: DotfilePolicy = DotfilePolicy.IGNORE):
        self.root_dir = os.path.realpath(root_dir)
        self.dotfiles = DotfilePolicy(dotfiles)

    def is_hidden(self, name: str) -> bool:
        if self.dotfiles is DotfilePolicy.ALLOW:
            return False
        if self.dotfiles is DotfilePolicy.DENY:
            return name.startswith(".")
        return name in self.HIDDEN_NAMES

    def list(self, url_path: str, directory: str) -> DirectoryListing:
        """
        Collect the visible children of `directory`.

        Raises:
            OSError: The directory itself cannot be read.
        """
        entries = []
        for name in sorted(os.listdir(directory)):
            if self.is_hidden(name):
                continue
            try:
                st = os.stat(os.path.join(directory, name))
            except OSError as exc:
                logger.debug("Skipping unreadable entry %s: %s", name, exc)
                continue
            entries.append(ListingEntry(name, stat_module.S_ISDIR(st.st_mode)))

        at_root = os.path.realpath(directory) == self.root_dir
        return DirectoryListing(url_path=url_path, entries=entries, has_parent=not at_root)

    def render(self, url_path: str, directory: str) -> str:
        """Render the listing of `directory`, reached at `url_path`, as HTML."""
        listing = self.list(url_path, directory)

        base = url_path if url_path.endswith("/") else url_path + "/"
        items = []

        if listing.has_parent:
            parent = posixpath.dirname(base.rstrip("/"))
            parent = parent if parent.endswith("/") else parent + "/"
            items.append(f'<li><a href="{quote(parent)}">../</a></li>')

        for entry in listing.entries:
            href = quote(base + entry.name) + ("/" if entry.is_dir else "")
            items.append(
                f'<li><a href="{html.escape(href)}">{html.escape(entry.label)}</a></li>'
            )

        title = html.escape(base)
        return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Index of {title}</title>
    <style>
        body {{ font-family: monospace; padding: 20px; }}
        h1 {{ border-bottom: 1px solid #ccc; padding-bottom: 10px; }}
        ul {{ list-style: none; padding: 0; }}
        li {{ padding: 5px 0; }}
        a {{ text-decoration: none; color: #0066cc; }}
        a:hover {{ text-decoration: underline; }}
    </style>
</head>
<body>
    <h1>Index of {title}</h1>
    <ul>
        {"".join(items)}
    </ul>
</body>
</html>
"""
