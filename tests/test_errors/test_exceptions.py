"""Tests for custom exception hierarchy."""

import pytest

from assetgraph.errors.exceptions import (
    AssetGraphError,
    CacheError,
    CorruptEntryError,
    CycleError,
    EncodeFailedError,
    FetchFailedError,
    GraphError,
    OpenFailedError,
    ResourceError,
    StoreUnavailableError,
    TaskTimeoutError,
    TooDeepError,
    UnresolvableReferenceError,
    UnsupportedFormatError,
)


class TestExceptionHierarchy:
    @pytest.mark.parametrize("cls", [CycleError, TooDeepError, UnresolvableReferenceError])
    def test_graph_errors(self, cls):
        assert issubclass(cls, GraphError)
        assert issubclass(cls, AssetGraphError)

    @pytest.mark.parametrize(
        "cls",
        [OpenFailedError, UnsupportedFormatError, FetchFailedError, EncodeFailedError, TaskTimeoutError],
    )
    def test_resource_errors(self, cls):
        assert issubclass(cls, ResourceError)

    @pytest.mark.parametrize("cls", [StoreUnavailableError, CorruptEntryError])
    def test_cache_errors(self, cls):
        assert issubclass(cls, CacheError)

    def test_base_is_exception(self):
        assert issubclass(AssetGraphError, Exception)


class TestCycleError:
    def test_message_names_cycle(self):
        err = CycleError(members=["a.md", "b.md", "a.md"])
        assert str(err) == "Cycle detected: a.md -> b.md -> a.md"
        assert err.members == ["a.md", "b.md", "a.md"]
        assert err.error_type == "cycle"


class TestTooDeepError:
    def test_attributes(self):
        err = TooDeepError(depth=33, limit=32)
        assert err.depth == 33
        assert err.limit == 32
        assert "33" in err.message


class TestUnresolvableReferenceError:
    def test_attributes(self):
        err = UnresolvableReferenceError(reference="missing.md")
        assert err.reference == "missing.md"
        assert "missing.md" in str(err)


class TestResourceErrors:
    def test_fetch_failed_attributes(self):
        err = FetchFailedError("HTTP 404", source="https://x/a.png", http_status=404)
        assert err.source == "https://x/a.png"
        assert err.http_status == 404
        assert err.error_type == "fetch_failed"

    def test_error_types(self):
        assert OpenFailedError("x").error_type == "open_failed"
        assert UnsupportedFormatError("x").error_type == "unsupported_format"
        assert EncodeFailedError("x").error_type == "encode_failed"
        assert TaskTimeoutError("x").error_type == "timeout"

    def test_catchable_as_base(self):
        with pytest.raises(AssetGraphError):
            raise OpenFailedError("gone", source="/a.png")
