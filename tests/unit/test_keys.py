"""
Unit tests for object key rules.

Pure functions, no storage involved.
"""

import re

import pytest

from src.core.storage.keys import (
    build_object_key,
    key_from_reference,
    normalize_path,
    public_path,
    sanitize_prefix,
    slugify,
    split_filename,
)


# ---------------------------------------------------------------------------
# Path normalization
# ---------------------------------------------------------------------------

class TestNormalizePath:
    """Tests for normalize_path."""

    @pytest.mark.parametrize("raw, expected", [
        ("/foods/a.jpg", "foods/a.jpg"),
        ("foods//a.jpg", "foods/a.jpg"),
        ("///foods/./a.jpg", "foods/a.jpg"),
        ("foods/a.jpg/", "foods/a.jpg"),
        ("a.jpg", "a.jpg"),
    ])
    def test_equivalent_spellings_collapse(self, raw, expected):
        assert normalize_path(raw) == expected

    def test_traversal_segments_are_dropped(self):
        """'..' is dropped, never resolved, so keys cannot climb out."""
        assert normalize_path("../../etc/passwd") == "etc/passwd"
        assert normalize_path("foods/../../secret") == "foods/secret"

    @pytest.mark.parametrize("raw", ["/../a", "../../b/../c", "///x/..", "a/../../../"])
    def test_no_traversal_or_leading_slash(self, raw):
        result = normalize_path(raw)
        assert not result.startswith("/")
        assert ".." not in result.split("/")

    @pytest.mark.parametrize("raw", [None, "", "/", "//", "./..", "/../."])
    def test_empty_results(self, raw):
        assert normalize_path(raw) == ""

    @pytest.mark.parametrize("raw", [
        "/a//b/./c/../d",
        "uploads/uploads/x",
        "..//..//",
        "foods/1700000000000-jollof.webp",
    ])
    def test_idempotent(self, raw):
        once = normalize_path(raw)
        assert normalize_path(once) == once

    def test_backslash_is_not_a_separator(self):
        assert normalize_path("foods\\a.jpg") == "foods\\a.jpg"


# ---------------------------------------------------------------------------
# Key building
# ---------------------------------------------------------------------------

class TestBuildObjectKey:
    """Tests for keys derived from uploaded filenames."""

    def test_prefix_and_slug(self):
        key = build_object_key("My Photo.JPG", "foods")
        assert re.fullmatch(r"foods/\d+-my-photo\.jpg", key)

    def test_missing_extension_uses_bin(self):
        key = build_object_key("noext")
        assert re.fullmatch(r"\d+-noext\.bin", key)

    def test_empty_stem_uses_file(self):
        key = build_object_key(".png")
        assert re.fullmatch(r"\d+-file\.png", key)

    def test_symbols_only_stem_uses_file(self):
        key = build_object_key("???.png")
        assert re.fullmatch(r"\d+-file\.png", key)

    def test_no_filename(self):
        key = build_object_key(None)
        assert re.fullmatch(r"\d+-file\.bin", key)

    def test_prefix_slashes_are_trimmed(self):
        key = build_object_key("a.png", "/drinks/", now_ms=1700000000000)
        assert key == "drinks/1700000000000-a.png"

    def test_uses_supplied_timestamp(self):
        assert build_object_key("Jollof Rice!.webp", now_ms=42) == "42-jollof-rice.webp"

    def test_key_is_url_safe(self):
        key = build_object_key("Ça va? (final) .J P G", "foods", now_ms=1)
        assert re.fullmatch(r"[a-z0-9./-]+", key)

    def test_key_is_already_normalized(self):
        key = build_object_key("x.jpg", "a/b")
        assert normalize_path(key) == key


class TestFilenameHelpers:
    """Tests for slugify and split_filename."""

    def test_slugify_collapses_runs(self):
        assert slugify("  Fried  Rice & Chicken ") == "fried-rice-chicken"

    def test_split_uses_last_dot(self):
        assert split_filename("archive.tar.GZ") == ("archive.tar", ".gz")

    def test_split_trailing_dot(self):
        assert split_filename("weird.") == ("weird", ".bin")


# ---------------------------------------------------------------------------
# Prefixes and references
# ---------------------------------------------------------------------------

class TestSanitizePrefix:
    """Tests for client-supplied folder prefixes."""

    @pytest.mark.parametrize("raw, expected", [
        ("foods/", "foods"),
        ("/banners", "banners"),
        ("../../etc", "etc"),
        ("a b/c$d", "ab/cd"),
        ("promo_2024/hero-images", "promo_2024/hero-images"),
        (None, ""),
        ("", ""),
    ])
    def test_sanitize(self, raw, expected):
        assert sanitize_prefix(raw) == expected


class TestKeyFromReference:
    """Tests for turning stored image references back into keys."""

    def test_public_path(self):
        assert key_from_reference("/uploads/foods/1-a.jpg") == "foods/1-a.jpg"

    def test_absolute_url(self):
        ref = "https://api.example.com/uploads/foods/1-a%20b.jpg"
        assert key_from_reference(ref) == "foods/1-a b.jpg"

    def test_bare_key(self):
        assert key_from_reference("drinks/2-b.png") == "drinks/2-b.png"

    def test_only_one_uploads_segment_removed(self):
        assert key_from_reference("/Uploads/uploads/x.jpg") == "uploads/x.jpg"

    @pytest.mark.parametrize("ref", [None, "", "/uploads/"])
    def test_empty(self, ref):
        assert key_from_reference(ref) == ""

    def test_round_trip_with_public_path(self):
        key = "foods/1700000000000-suya.webp"
        assert key_from_reference(public_path(key)) == key
