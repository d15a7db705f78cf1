"""
=============================================================================
MIME TYPE LOOKUP
=============================================================================

Maps file extensions to Content-Type values for served files.

    index.html   →  text/html; charset=utf-8
    app.mjs      →  text/javascript; charset=utf-8
    logo.svg     →  image/svg+xml; charset=utf-8
    movie.mp4    →  video/mp4
    blob.xyz     →  application/octet-stream

The lookup is by extension only and never sniffs file contents: a dev
server should answer the same way a CDN in front of the same tree would.

Text-like types carry "; charset=utf-8". Binary types carry no parameters.

=============================================================================
"""

import posixpath
from typing import Optional


MIME_TYPES = {
    # ─────────────────────────────────────────────────────────────────────
    # MARKUP, STYLES, SCRIPTS
    # ─────────────────────────────────────────────────────────────────────
    ".html": "text/html",
    ".htm": "text/html",
    ".xhtml": "application/xhtml+xml",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".cjs": "text/javascript",
    ".json": "application/json",
    ".webmanifest": "application/manifest+json",
    ".map": "application/json",
    ".xml": "application/xml",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".wasm": "application/wasm",

    # ─────────────────────────────────────────────────────────────────────
    # IMAGES
    # ─────────────────────────────────────────────────────────────────────
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".bmp": "image/bmp",

    # ─────────────────────────────────────────────────────────────────────
    # FONTS
    # ─────────────────────────────────────────────────────────────────────
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",

    # ─────────────────────────────────────────────────────────────────────
    # AUDIO / VIDEO
    # ─────────────────────────────────────────────────────────────────────
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".flac": "audio/flac",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mov": "video/quicktime",

    # ─────────────────────────────────────────────────────────────────────
    # DOCUMENTS AND ARCHIVES
    # ─────────────────────────────────────────────────────────────────────
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".gz": "application/gzip",
    ".tar": "application/x-tar",
}

DEFAULT_MIME_TYPE = "application/octet-stream"

# application/* and image/* types that are really text
_TEXT_LIKE = frozenset({
    "application/json",
    "application/manifest+json",
    "application/xml",
    "application/xhtml+xml",
    "image/svg+xml",
})


def get_mime_type(path: str, default: Optional[str] = None) -> str:
    """
    Get the MIME type for a file name or path.

        >>> get_mime_type("/srv/site/style.CSS")
        'text/css'
        >>> get_mime_type("archive.unknown")
        'application/octet-stream'
    """
    extension = posixpath.splitext(path.replace("\\", "/"))[1].lower()
    return MIME_TYPES.get(extension, default or DEFAULT_MIME_TYPE)


def is_text_type(mime_type: str) -> bool:
    """Whether the type is textual and should be sent with a charset."""
    base = mime_type.split(";", 1)[0].strip().lower()
    return base.startswith("text/") or base in _TEXT_LIKE


def get_content_type(path: str, charset: str = "utf-8") -> str:
    """
    Full Content-Type header value for a file.

        >>> get_content_type("index.html")
        'text/html; charset=utf-8'
        >>> get_content_type("photo.png")
        'image/png'
    """
    mime_type = get_mime_type(path)
    if is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"
    return mime_type
