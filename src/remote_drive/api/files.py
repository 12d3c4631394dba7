"""File and folder endpoints: metadata by id, paginated listing, folder create."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from remote_drive.api.models import BasicInfo, CreatedFolder, ListingPage, ListOrder, Node
from remote_drive.api.parse import parse_basic_info, parse_created_folder, parse_listing_page

if TYPE_CHECKING:
    from remote_drive.api.client import DriveClient
    from remote_drive.api.realm import Realm

logger = logging.getLogger(__name__)


class FileApi:
    """Typed wrappers over the single-request file endpoints."""

    def __init__(self, client: DriveClient) -> None:
        self._client = client

    def get_basic_info(self, realm: Realm, file_id: str) -> BasicInfo:
        """Fetch id, parent id, name and (personal realm only) path of a node."""
        body = self._client.request(realm, "GET", realm.metadata_url(file_id))
        return parse_basic_info(body)

    def list_page(
        self,
        realm: Realm,
        folder: Node,
        order: ListOrder,
        page_num: int,
        page_size: int,
    ) -> ListingPage:
        """Fetch one page of a folder's children.

        Args:
            realm: Namespace of the folder.
            folder: Folder whose children to list.
            order: Sort key and direction.
            page_num: Page number, starting at 1.
            page_size: Items per page.

        Returns:
            The parsed page, folders before files.
        """
        url = realm.list_url(folder.id, order, page_num, page_size)
        body = self._client.request(realm, "GET", url)
        page = parse_listing_page(body, page_num, page_size)
        logger.debug(
            "[list_page] fetched page; folder_id:%s;page:%d;items:%d;total:%d",
            folder.id,
            page_num,
            len(page.items),
            page.total_count,
        )
        return page

    def create_folder(self, realm: Realm, parent: Node, name: str) -> CreatedFolder:
        """Create a single folder ``name`` under ``parent``."""
        body = self._client.request(realm, "GET", realm.create_folder_url(parent.id, name))
        created = parse_created_folder(body)
        logger.info(
            "[create_folder] create request answered; parent_id:%s;name:%s;folder_id:%s;is_new:%s",
            parent.id,
            name,
            created.folder_id,
            created.is_new,
        )
        return created
