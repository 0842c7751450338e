"""
Link building for stored files.

Stored paths come from different storage backends and operating systems
(backslashes, absolute prefixes, inconsistent "uploads/" casing). Links in
the documents always point at "<base>/uploads/...".
"""

import re
from typing import Optional

UPLOADS_SEGMENT = "uploads/"


def normalize_base_url(url: Optional[str]) -> str:
    """Drop a trailing "/api" and trailing slashes from the public base URL."""
    base = (url or "").strip()
    base = re.sub(r"/api/?$", "", base)
    return base.rstrip("/")


def relative_segment(stored_path: Optional[str], filename: Optional[str] = None) -> str:
    """
    Relative "uploads/..." segment for a stored path.

    Everything before the first (case-insensitive) "uploads/" is discarded.
    Paths without that segment fall back to "uploads/<filename>". The
    result never starts with a slash, and feeding it back in returns it
    unchanged.
    """
    normalized = (stored_path or "").replace("\\", "/")
    index = normalized.lower().find(UPLOADS_SEGMENT)
    if index >= 0:
        segment = normalized[index:]
    else:
        fallback = filename or normalized.lstrip("/")
        segment = f"{UPLOADS_SEGMENT}{fallback}"
    return segment.lstrip("/")


def build_link(stored_path: Optional[str], base_url: str, filename: Optional[str] = None) -> str:
    """Absolute link for a stored file."""
    return f"{base_url.rstrip('/')}/{relative_segment(stored_path, filename)}"


def build_public_download_url(file_path: str, base_url: Optional[str] = None) -> str:
    """Download URL for a generated report's relative path."""
    normalized = "/" + (file_path or "").replace("\\", "/").lstrip("/")
    base = normalize_base_url(base_url)
    return f"{base}{normalized}" if base else normalized
