"""Listing aggregator — merges paginated folder listings into one child list."""

from __future__ import annotations

import logging
import math
import posixpath
from enum import Enum
from typing import TYPE_CHECKING

from remote_drive.api.models import ROOT_PATH, Listing, ListOrder, Node
from remote_drive.errors import DriveError

if TYPE_CHECKING:
    from remote_drive.api.files import FileApi
    from remote_drive.api.realm import Realm

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 200


class AggregationMode(Enum):
    """What to do when a page after the first fails.

    STRICT raises the page error. PARTIAL returns the items collected so far
    with the error attached to the listing.
    """

    STRICT = "strict"
    PARTIAL = "partial"


def join_path(parent_path: str, name: str) -> str:
    """Join a folder path and a child name; the root's children get ``/name``."""
    return posixpath.join(parent_path or ROOT_PATH, name)


class ListingAggregator:
    """Produces the complete child list of a folder by sequential page requests."""

    def __init__(self, files: FileApi, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        if page_size <= 0:
            raise ValueError(f"page size must be positive: {page_size}")
        self._files = files
        self._page_size = page_size

    def list_children(
        self,
        realm: Realm,
        folder: Node,
        order: ListOrder | None = None,
        parent_path: str | None = None,
        mode: AggregationMode = AggregationMode.STRICT,
    ) -> Listing:
        """List every child of ``folder``.

        The first page fixes ``total_count``; pages ``2..ceil(total/page_size)``
        follow in order. Items keep page order and within-page order, folders
        before files on each page. Every item's ``parent_id`` is forced to the
        folder id, and when ``parent_path`` is given each item's ``path`` is
        built from it.

        Args:
            realm: Namespace of the folder.
            folder: Folder to list.
            order: Sort key and direction; name ascending when omitted.
            parent_path: Path of ``folder``; enables path construction.
            mode: Failure handling for pages after the first.

        Returns:
            The aggregated listing.

        Raises:
            DriveError: When the first page fails, or any page fails in STRICT mode.
        """
        order = order or ListOrder()
        first = self._files.list_page(realm, folder, order, 1, self._page_size)
        listing = Listing(
            folder_id=folder.id,
            items=list(first.items),
            total_count=first.total_count,
        )

        if first.total_count > self._page_size:
            page_count = math.ceil(first.total_count / self._page_size)
            for page_num in range(2, page_count + 1):
                try:
                    page = self._files.list_page(realm, folder, order, page_num, self._page_size)
                except DriveError as exc:
                    logger.warning(
                        "[list_children] page failed; folder_id:%s;page:%d;collected:%d;error:%s",
                        folder.id,
                        page_num,
                        len(listing.items),
                        exc,
                    )
                    if mode is AggregationMode.STRICT:
                        raise
                    listing.error = exc
                    break
                listing.items.extend(page.items)

        if 0 < listing.total_count < len(listing.items):
            logger.warning(
                "[list_children] listing drifted past first-page count; folder_id:%s;"
                "total:%d;collected:%d",
                folder.id,
                listing.total_count,
                len(listing.items),
            )
            del listing.items[listing.total_count :]

        for item in listing.items:
            item.parent_id = folder.id
            if parent_path is not None:
                item.path = join_path(parent_path, item.name)

        return listing
