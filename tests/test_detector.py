"""Tests for fileview.detector module."""

import pytest

from fileview.detector import (
    DetectionInput,
    DetectionReason,
    DetectionResult,
    FormatDescriptor,
    FormatRegistry,
    get_file_extension,
    normalize_extension,
)
from fileview.errors import RegistrationError


def _registry(*descriptors):
    registry = FormatRegistry()
    for descriptor in descriptors:
        registry.register(descriptor.id, descriptor)
    return registry


class TestGetFileExtension:
    """Tests for get_file_extension function."""

    def test_plain_path(self):
        """Test extension of a simple file name."""
        assert get_file_extension("data.json") == "json"

    def test_url_with_query_and_fragment(self):
        """Test query strings and fragments are ignored."""
        assert get_file_extension("https://example.com/a/Data.YAML?x=1#top") == "yaml"

    def test_windows_path(self):
        """Test backslash separated paths."""
        assert get_file_extension(r"C:\files\export.csv") == "csv"

    def test_no_extension(self):
        """Test names without a dot."""
        assert get_file_extension("https://example.com/README") is None

    def test_dotfile(self):
        """Test a leading dot is not an extension."""
        assert get_file_extension("/home/user/.bashrc") is None

    def test_trailing_dot(self):
        """Test a trailing dot has no extension."""
        assert get_file_extension("file.") is None

    def test_overlong_extension(self):
        """Test pseudo-extensions longer than 9 characters are rejected."""
        assert get_file_extension("archive.notanextension") is None

    def test_empty(self):
        """Test empty URL."""
        assert get_file_extension("") is None


class TestFormatDescriptor:
    """Tests for FormatDescriptor.create."""

    def test_normalizes_extensions_and_mime_types(self):
        """Test extensions lose their dot and everything is lower-cased."""
        descriptor = FormatDescriptor.create(
            "json", mime_types=["Application/JSON"], extensions=[".JSON", "geojson"]
        )

        assert descriptor.mime_types == frozenset({"application/json"})
        assert descriptor.extensions == frozenset({"json", "geojson"})

    def test_normalize_extension(self):
        """Test normalize_extension strips dots and whitespace."""
        assert normalize_extension(" .Yml ") == "yml"


class TestRegister:
    """Tests for FormatRegistry.register."""

    def test_rejects_empty_id(self):
        """Test empty format ids are refused."""
        with pytest.raises(RegistrationError):
            FormatRegistry().register("", FormatDescriptor.create(""))

    def test_rejects_mismatched_id(self):
        """Test the descriptor id must match the registered id."""
        with pytest.raises(RegistrationError, match="does not match"):
            FormatRegistry().register("json", FormatDescriptor.create("yaml"))

    def test_last_writer_wins(self):
        """Test re-registering an id replaces its descriptor."""
        registry = _registry(
            FormatDescriptor.create("a", extensions=["old"]),
            FormatDescriptor.create("b"),
        )
        registry.register("a", FormatDescriptor.create("a", extensions=["new"]))

        assert registry.get("a").extensions == frozenset({"new"})
        assert registry.supported_formats() == ["a", "b"]

    def test_contains(self):
        """Test membership by id."""
        registry = _registry(FormatDescriptor.create("a"))
        assert "a" in registry
        assert "b" not in registry
        assert registry.get("b") is None


class TestDetect:
    """Tests for FormatRegistry.detect."""

    def test_priority_ordering(self):
        """Test the higher priority wins when both extension sets match."""
        registry = _registry(
            FormatDescriptor.create("low", extensions=["dat"], priority=7),
            FormatDescriptor.create("high", extensions=["dat"], priority=9),
        )

        result = registry.detect(DetectionInput(url="file.dat"))

        assert result == DetectionResult("high", DetectionReason.EXTENSION)

    def test_registration_order_breaks_ties(self):
        """Test equal priorities resolve in registration order."""
        registry = _registry(
            FormatDescriptor.create("first", extensions=["dat"], priority=5),
            FormatDescriptor.create("second", extensions=["dat"], priority=5),
        )

        assert registry.detect(DetectionInput(url="x.dat")).format_id == "first"

    def test_deterministic(self):
        """Test detect returns identical results for identical input."""
        registry = _registry(
            FormatDescriptor.create("a", content_matcher=lambda t: "a" in t),
            FormatDescriptor.create("b", extensions=["b"], priority=3),
        )
        request = DetectionInput(url="x.b", sample_text="abc")

        assert registry.detect(request) == registry.detect(request)

    def test_mime_type_substring(self):
        """Test a declared content type with parameters still matches."""
        registry = _registry(
            FormatDescriptor.create("json", mime_types=["application/json"])
        )

        result = registry.detect(
            DetectionInput(declared_content_type="Application/JSON; charset=utf-8")
        )

        assert result == DetectionResult("json", DetectionReason.MIME_TYPE)

    def test_descriptor_checked_in_full_before_next(self):
        """Test a higher priority content match beats a lower extension match."""
        registry = _registry(
            FormatDescriptor.create("ext", extensions=["txt"], priority=1),
            FormatDescriptor.create(
                "content", content_matcher=lambda t: t.startswith("{"), priority=10
            ),
        )

        result = registry.detect(DetectionInput(url="a.txt", sample_text="{}"))

        assert result == DetectionResult("content", DetectionReason.CONTENT_PATTERN)

    def test_content_pattern(self):
        """Test content matcher used when nothing else applies."""
        registry = _registry(
            FormatDescriptor.create("x", content_matcher=lambda t: t.startswith("<"))
        )

        result = registry.detect(DetectionInput(sample_text="<root/>"))

        assert result.reason == DetectionReason.CONTENT_PATTERN

    def test_no_match(self):
        """Test None when no descriptor applies."""
        registry = _registry(FormatDescriptor.create("x", extensions=["x"]))
        assert registry.detect(DetectionInput(url="a.y", sample_text="hello")) is None

    def test_failing_matcher_is_no_match(self):
        """Test a content matcher that raises is treated as no match."""

        def boom(text):
            raise RuntimeError("boom")

        registry = _registry(
            FormatDescriptor.create("bad", content_matcher=boom, priority=10),
            FormatDescriptor.create("good", content_matcher=lambda t: True),
        )

        assert registry.detect(DetectionInput(sample_text="x")).format_id == "good"


class TestOverrides:
    """Tests for explicit extension overrides."""

    def test_override_wins(self):
        """Test an override beats MIME type and priority."""
        registry = _registry(
            FormatDescriptor.create("json", mime_types=["application/json"], priority=10),
            FormatDescriptor.create("yaml", priority=1),
        )

        result = registry.detect(
            DetectionInput(url="app.conf", declared_content_type="application/json"),
            overrides={".CONF": "yaml"},
        )

        assert result == DetectionResult("yaml", DetectionReason.EXPLICIT_MAPPING)

    def test_unregistered_override_ignored(self):
        """Test an override naming an unknown format falls through."""
        registry = _registry(FormatDescriptor.create("json", extensions=["conf"]))

        result = registry.detect(
            DetectionInput(url="app.conf"), overrides={"conf": "missing"}
        )

        assert result == DetectionResult("json", DetectionReason.EXTENSION)

    def test_override_needs_extension(self):
        """Test overrides are not consulted for URLs without an extension."""
        registry = _registry(FormatDescriptor.create("yaml"))

        assert registry.detect(DetectionInput(url="README"), {"": "yaml"}) is None
