"""Unit tests for fs/resolver.py — path resolution and reverse lookup."""

import posixpath
from unittest.mock import MagicMock

import pytest

from remote_drive.api.models import ROOT_ID, BasicInfo
from remote_drive.api.realm import PersonalRealm
from remote_drive.errors import InvalidPath, NotFound, TransportFailure
from remote_drive.fs.listing import ListingAggregator
from remote_drive.fs.resolver import PathResolver, split_path

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_REALM = PersonalRealm()


def _make_resolver(files) -> tuple[PathResolver, MagicMock]:
    """Return (resolver, mock_sleep)."""
    sleep = MagicMock()
    resolver = PathResolver(files, ListingAggregator(files), lookup_delay=0.1, sleep=sleep)
    return resolver, sleep


# ---------------------------------------------------------------------------
# split_path tests
# ---------------------------------------------------------------------------


class TestSplitPath:
    def test_root_has_no_components(self) -> None:
        assert split_path("/") == []

    def test_empty_has_no_components(self) -> None:
        assert split_path("") == []

    def test_cleans_dot_segments_and_duplicate_slashes(self) -> None:
        assert split_path("/docs/./sub//../report.pdf/") == ["docs", "report.pdf"]

    def test_relative_path_rejected(self) -> None:
        with pytest.raises(InvalidPath):
            split_path("docs/report.pdf")


# ---------------------------------------------------------------------------
# resolve tests
# ---------------------------------------------------------------------------


class TestResolve:
    def test_root_returns_sentinel_without_requests(self, sample_drive) -> None:
        resolver, _ = _make_resolver(sample_drive)

        node = resolver.resolve(_REALM, "/")

        assert node.is_root
        assert node.path == "/"
        assert sample_drive.calls == []

    def test_resolves_nested_file(self, sample_drive) -> None:
        resolver, _ = _make_resolver(sample_drive)

        node = resolver.resolve(_REALM, "/docs/report.pdf")

        assert node.id == "f2"
        assert node.parent_id == "f1"
        assert node.path == "/docs/report.pdf"
        assert node.size == 2048
        assert sample_drive.calls == [("list", ROOT_ID, 1), ("list", "f1", 1)]

    def test_normalizes_path_before_descent(self, sample_drive) -> None:
        resolver, _ = _make_resolver(sample_drive)

        node = resolver.resolve(_REALM, "/docs/../docs//sub/")

        assert node.id == "f3"
        assert node.path == "/docs/sub"

    def test_missing_component_raises_not_found(self, sample_drive) -> None:
        resolver, _ = _make_resolver(sample_drive)

        with pytest.raises(NotFound, match="/docs/missing"):
            resolver.resolve(_REALM, "/docs/missing/deeper")

    def test_names_match_exactly(self, sample_drive) -> None:
        resolver, _ = _make_resolver(sample_drive)

        with pytest.raises(NotFound):
            resolver.resolve(_REALM, "/Docs")

    def test_descending_through_file_raises_not_found(self, sample_drive) -> None:
        resolver, _ = _make_resolver(sample_drive)

        with pytest.raises(NotFound, match="not a folder"):
            resolver.resolve(_REALM, "/readme.txt/inner")

    def test_relative_path_raises_invalid_path(self, sample_drive) -> None:
        resolver, _ = _make_resolver(sample_drive)

        with pytest.raises(InvalidPath):
            resolver.resolve(_REALM, "docs")


# ---------------------------------------------------------------------------
# path_of tests
# ---------------------------------------------------------------------------


class TestPathOf:
    def test_root_id_is_slash(self, sample_drive) -> None:
        resolver, _ = _make_resolver(sample_drive)

        assert resolver.path_of(_REALM, ROOT_ID) == "/"
        assert sample_drive.calls == []

    def test_walks_parents_up_to_root(self, sample_drive) -> None:
        resolver, sleep = _make_resolver(sample_drive)

        path = resolver.path_of(_REALM, "f2")

        assert path == "/docs/report.pdf"
        assert sample_drive.calls == [("info", "f2"), ("info", "f1")]
        sleep.assert_called_once_with(0.1)

    def test_root_child_keeps_its_name(self, sample_drive) -> None:
        resolver, _ = _make_resolver(sample_drive)

        assert resolver.path_of(_REALM, "f7") == "/readme.txt"

    def test_uses_server_supplied_path(self) -> None:
        files = MagicMock()
        files.get_basic_info.side_effect = [
            BasicInfo(id="leaf", parent_id="mid", name="leaf.txt"),
            BasicInfo(id="mid", parent_id="top", name="mid", path="/top/mid"),
        ]
        resolver, _ = _make_resolver(files)

        assert resolver.path_of(_REALM, "leaf") == "/top/mid/leaf.txt"
        assert files.get_basic_info.call_count == 2

    def test_fetch_failure_raises_not_found_with_cause(self, sample_drive) -> None:
        cause = TransportFailure("timeout")
        sample_drive.info_failures["f1"] = cause
        resolver, _ = _make_resolver(sample_drive)

        with pytest.raises(NotFound) as exc_info:
            resolver.path_of(_REALM, "f2")

        assert exc_info.value.__cause__ is cause

    def test_parent_cycle_raises_not_found(self) -> None:
        files = MagicMock()
        files.get_basic_info.side_effect = [
            BasicInfo(id="a", parent_id="b", name="a"),
            BasicInfo(id="b", parent_id="a", name="b"),
        ]
        resolver, _ = _make_resolver(files)

        with pytest.raises(NotFound, match="loops"):
            resolver.path_of(_REALM, "a")

    def test_round_trip_for_every_node(self, sample_drive) -> None:
        resolver, _ = _make_resolver(sample_drive)

        for node_id in ("f1", "f2", "f3", "f4", "f5", "f6", "f7"):
            path = resolver.path_of(_REALM, node_id)
            assert resolver.resolve(_REALM, path).id == node_id

    def test_round_trip_from_path(self, sample_drive) -> None:
        resolver, _ = _make_resolver(sample_drive)

        for path in ("/docs/sub/a.txt", "/music//song.mp3", "/docs/sub/../report.pdf"):
            node = resolver.resolve(_REALM, path)
            assert resolver.path_of(_REALM, node.id) == posixpath.normpath(path)


# ---------------------------------------------------------------------------
# node_of tests
# ---------------------------------------------------------------------------


class TestNodeOf:
    def test_returns_full_node_with_path(self, sample_drive) -> None:
        resolver, _ = _make_resolver(sample_drive)

        node = resolver.node_of(_REALM, "f4")

        assert node.name == "a.txt"
        assert node.size == 10
        assert node.content_hash == "HASH-f4"
        assert node.path == "/docs/sub/a.txt"

    def test_root_needs_no_request(self, sample_drive) -> None:
        resolver, _ = _make_resolver(sample_drive)

        assert resolver.node_of(_REALM, ROOT_ID).is_root
        assert sample_drive.calls == []

    def test_unknown_id_raises_not_found(self, sample_drive) -> None:
        resolver, _ = _make_resolver(sample_drive)

        with pytest.raises(NotFound):
            resolver.node_of(_REALM, "nope")
