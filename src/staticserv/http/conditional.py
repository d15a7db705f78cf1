"""
=============================================================================
CONDITIONAL REQUESTS
=============================================================================

Decides whether a GET/HEAD for a file can be answered with 304, must be
refused with 412, or should proceed normally (RFC 9110 section 13).

=============================================================================
VALIDATORS
=============================================================================

Every file response carries two validators derived from stat():

    ETag:           "404-17a3c2b1e9f4a200"
                     ───┬ ─────────┬──────
                        │          └── st_mtime_ns in hex
                        └───────────── st_size in hex
    Last-Modified:  Tue, 14 Oct 2025 09:12:44 GMT   (whole seconds)

Both change whenever the file is rewritten, and computing them costs one
stat call, so they are recomputed on every request with no cache.

=============================================================================
EVALUATION ORDER
=============================================================================

    ┌──────────────────────────────────────────────────────────────────┐
    │ 1. If-Match present?                                             │
    │      "*" or any tag matches (W/ ignored)   → continue            │
    │      otherwise                             → PRECONDITION_FAILED │
    │ 2. else If-Unmodified-Since is a valid date?                     │
    │      Last-Modified > date                  → PRECONDITION_FAILED │
    ├──────────────────────────────────────────────────────────────────┤
    │ 3. Cache-Control: no-cache on the request  → PROCEED             │
    │ 4. If-None-Match present?                                        │
    │      "*" or any tag matches (weak compare) → FRESH               │
    │      otherwise                             → PROCEED             │
    │    (If-Modified-Since is ignored when If-None-Match is present)  │
    │ 5. else If-Modified-Since is a valid date?                       │
    │      Last-Modified <= date                 → FRESH               │
    ├──────────────────────────────────────────────────────────────────┤
    │ 6.                                         → PROCEED             │
    └──────────────────────────────────────────────────────────────────┘

Preconditions are always checked first: a request can get 412 even when
its If-None-Match would have matched.

=============================================================================
"""

import math
from dataclasses import dataclass
from datetime import timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Mapping, Optional

from .response import format_http_date


class ConditionalResult(Enum):
    FRESH = "fresh"
    PRECONDITION_FAILED = "precondition_failed"
    PROCEED = "proceed"


@dataclass(frozen=True)
class Validators:
    """Strong ETag plus Last-Modified (whole POSIX seconds) for one file."""

    etag: str
    last_modified: int

    @classmethod
    def from_stat(cls, size: int, mtime_ns: int) -> "Validators":
        return cls(
            etag=f'"{size:x}-{mtime_ns:x}"',
            last_modified=mtime_ns // 1_000_000_000,
        )

    @property
    def last_modified_header(self) -> str:
        return format_http_date(self.last_modified)

    def as_headers(self) -> dict:
        return {"ETag": self.etag, "Last-Modified": self.last_modified_header}


# =============================================================================
# HEADER PARSING HELPERS
# =============================================================================

def parse_token_list(value: str) -> list:
    """
    Split a comma-separated header value into tokens.

    Surrounding spaces are trimmed, but empty members are kept, so the
    result always has one more element than there are commas:

        >>> parse_token_list('"a", "b"')
        ['"a"', '"b"']
        >>> parse_token_list('"a",,"b"')
        ['"a"', '', '"b"']
        >>> parse_token_list('')
        ['']
    """
    return [token.strip(" ") for token in value.split(",")]


def parse_http_date(value: Optional[str]) -> Optional[int]:
    """
    Parse an HTTP-date into whole POSIX seconds.

    Returns None for a missing or unparseable value; conditional headers
    carrying an invalid date are ignored, not treated as errors.
    """
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError, OverflowError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return math.floor(parsed.timestamp())


def _opaque(tag: str) -> str:
    return tag[2:] if tag.startswith("W/") else tag


def weak_match(a: str, b: str) -> bool:
    """Weak comparison: equal once any W/ prefix is dropped."""
    return _opaque(a) == _opaque(b)


def strong_match(a: str, b: str) -> bool:
    """Strong comparison: both tags strong and byte-identical."""
    return not a.startswith("W/") and not b.startswith("W/") and a == b


def _any_tag_matches(header: str, etag: str) -> bool:
    for token in parse_token_list(header):
        if token == "*" or (token and weak_match(token, etag)):
            return True
    return False


def _has_no_cache(headers: Mapping[str, str]) -> bool:
    cache_control = headers.get("cache-control")
    if not cache_control:
        return False
    return any(token.lower() == "no-cache" for token in parse_token_list(cache_control))


# =============================================================================
# EVALUATION
# =============================================================================

def is_precondition_failure(headers: Mapping[str, str], validators: Validators) -> bool:
    if_match = headers.get("if-match")
    if if_match is not None:
        return not _any_tag_matches(if_match, validators.etag)

    since = parse_http_date(headers.get("if-unmodified-since"))
    if since is not None:
        return validators.last_modified > since

    return False


def is_fresh(headers: Mapping[str, str], validators: Validators) -> bool:
    if _has_no_cache(headers):
        return False

    if_none_match = headers.get("if-none-match")
    if if_none_match is not None:
        return _any_tag_matches(if_none_match, validators.etag)

    since = parse_http_date(headers.get("if-modified-since"))
    if since is not None:
        return validators.last_modified <= since

    return False


def evaluate(headers: Mapping[str, str], validators: Validators) -> ConditionalResult:
    """
    Evaluate the conditional headers of a request.

    Args:
        headers: Request headers with lowercase names.
        validators: Current validators of the selected file.
    """
    if is_precondition_failure(headers, validators):
        return ConditionalResult.PRECONDITION_FAILED
    if is_fresh(headers, validators):
        return ConditionalResult.FRESH
    return ConditionalResult.PROCEED


def if_range_allows(headers: Mapping[str, str], validators: Validators) -> bool:
    """
    Whether the Range header of this request may be honoured.

    If-Range carries either an entity tag (compared strongly) or a date
    (must equal Last-Modified exactly). When it does not match, the
    client's copy is stale and must receive the whole file with 200.
    """
    if_range = headers.get("if-range")
    if if_range is None:
        return True

    if_range = if_range.strip()
    if if_range.startswith('"') or if_range.startswith("W/"):
        return strong_match(if_range, validators.etag)

    date = parse_http_date(if_range)
    return date is not None and date == validators.last_modified
