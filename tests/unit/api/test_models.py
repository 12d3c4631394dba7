"""Unit tests for api/models.py."""

import pytest

from remote_drive.api.models import (
    ROOT_ID,
    ByteRange,
    Listing,
    ListOrder,
    Node,
    SortKey,
    SortOrder,
    UploadSession,
    UploadState,
)


def _node(node_id: str, is_folder: bool, size: int = 0) -> Node:
    return Node(id=node_id, parent_id="p", name=node_id, is_folder=is_folder, size=size)


class TestNode:
    def test_root_sentinel(self) -> None:
        root = Node.root()
        assert root.id == ROOT_ID
        assert root.is_root
        assert root.is_folder
        assert root.path == "/"

    def test_regular_node_is_not_root(self) -> None:
        assert not _node("abc", is_folder=True).is_root


class TestListOrder:
    def test_defaults_to_name_ascending(self) -> None:
        order = ListOrder()
        assert order.key is SortKey.NAME
        assert not order.descending

    def test_descending(self) -> None:
        assert ListOrder(SortKey.SIZE, SortOrder.DESC).descending


class TestByteRange:
    def test_end_and_header_value(self) -> None:
        byte_range = ByteRange(offset=400, length=600)
        assert byte_range.end == 1000
        assert byte_range.header_value() == "bytes=400-600"

    def test_rejects_negative_values(self) -> None:
        with pytest.raises(ValueError):
            ByteRange(offset=-1, length=10)
        with pytest.raises(ValueError):
            ByteRange(offset=0, length=-5)


class TestListing:
    def test_count_and_total_size(self) -> None:
        listing = Listing(
            folder_id="f",
            items=[_node("a", True), _node("b", False, 10), _node("c", False, 32)],
            total_count=3,
        )
        assert listing.count() == (2, 1)
        assert listing.total_size() == 42
        assert listing.complete

    def test_error_marks_listing_incomplete(self) -> None:
        assert not Listing(folder_id="f", error=RuntimeError("x")).complete


class TestUploadSession:
    def test_new_session_starts_created_at_offset_zero(self) -> None:
        session = UploadSession(
            session_id="s",
            upload_url="u",
            commit_url="c",
            request_id="r",
            already_exists=False,
        )
        assert session.state is UploadState.CREATED
        assert session.acknowledged_offset == 0
