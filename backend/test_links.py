"""
Tests for links.py
"""

import pytest

from links import build_link, build_public_download_url, normalize_base_url, relative_segment

BASE = "https://pld.example.com"


@pytest.mark.parametrize("stored, expected", [
    ("uploads/forms/q1/doc.pdf", "uploads/forms/q1/doc.pdf"),
    ("/srv/app/uploads/forms/q1/doc.pdf", "uploads/forms/q1/doc.pdf"),
    ("C:\\app\\uploads\\forms\\doc.pdf", "uploads/forms/doc.pdf"),
    ("/srv/app/Uploads/forms/doc.pdf", "Uploads/forms/doc.pdf"),
])
def test_relative_segment_starts_at_uploads(stored, expected):
    assert relative_segment(stored) == expected


def test_relative_segment_falls_back_to_filename():
    assert relative_segment("/var/data/abc123", "relatorio.pdf") == "uploads/relatorio.pdf"
    assert relative_segment("/var/data/doc.pdf") == "uploads/var/data/doc.pdf"


@pytest.mark.parametrize("stored", [
    "uploads/a/b.pdf",
    "/abs/uploads/a/b.pdf",
    "D:\\x\\UPLOADS\\b.pdf",
    "/no/segment/here.pdf",
    "",
])
def test_relative_segment_is_idempotent(stored):
    once = relative_segment(stored, "fallback.pdf")
    assert relative_segment(once, "fallback.pdf") == once
    assert not once.startswith("/")


def test_build_link_has_single_uploads_segment():
    link = build_link("/srv/app/uploads/forms/doc.pdf", BASE)
    assert link == f"{BASE}/uploads/forms/doc.pdf"
    assert link.lower().count("uploads/") == 1
    assert "//uploads" not in link


def test_build_link_ignores_trailing_slash_on_base():
    assert build_link("uploads/x.pdf", BASE + "/") == f"{BASE}/uploads/x.pdf"


@pytest.mark.parametrize("raw, expected", [
    ("https://pld.example.com/api", "https://pld.example.com"),
    ("https://pld.example.com/api/", "https://pld.example.com"),
    ("https://pld.example.com///", "https://pld.example.com"),
    (None, ""),
])
def test_normalize_base_url(raw, expected):
    assert normalize_base_url(raw) == expected


def test_public_download_url():
    assert build_public_download_url("uploads/reports/r.pdf", BASE + "/api") == \
        f"{BASE}/uploads/reports/r.pdf"
    assert build_public_download_url("uploads\\reports\\r.pdf") == "/uploads/reports/r.pdf"
