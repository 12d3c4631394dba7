"""Realm capability objects — personal and family namespaces.

Both namespaces speak the same protocol. They differ only in endpoint shape,
in the wire value of the root folder and in which credential pair signs the
request, so the algorithms take a realm object instead of branching.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import quote, urlencode

from remote_drive.api.models import ROOT_ID, ListOrder, SortKey

DEFAULT_API_BASE_URL = "https://api.cloud.189.cn"
DEFAULT_WEB_BASE_URL = "https://cloud.189.cn/api"
DEFAULT_CLIENT_INFO = "clientType=TELEPC&version=6.2&channelId=web_cloud.189.cn"

# Wire value of the personal namespace root
PERSONAL_ROOT_WIRE_ID = "-11"

_PERSONAL_ORDER_BY = {
    SortKey.NAME: "filename",
    SortKey.SIZE: "filesize",
    SortKey.MODIFIED: "lastOpTime",
}

_FAMILY_ORDER_BY = {
    SortKey.NAME: 1,
    SortKey.SIZE: 2,
    SortKey.MODIFIED: 3,
}


@dataclass(frozen=True)
class Credentials:
    """A session key/secret pair. Opaque to everything but the signer."""

    session_key: str
    session_secret: str


@dataclass(frozen=True)
class DriveSession:
    """The two independent credential pairs of a logged-in account."""

    personal: Credentials
    family: Credentials | None = None


def _bool(value: bool) -> str:
    return "true" if value else "false"


class Realm(ABC):
    """Endpoint family and credential selector for one namespace."""

    name = "realm"
    root_wire_id = ""

    def __init__(
        self,
        api_base_url: str = DEFAULT_API_BASE_URL,
        web_base_url: str = DEFAULT_WEB_BASE_URL,
    ) -> None:
        self.api_base_url = api_base_url.rstrip("/")
        self.web_base_url = web_base_url.rstrip("/")

    def wire_id(self, node_id: str) -> str:
        """Translate a node id into the value the server expects."""
        return self.root_wire_id if node_id == ROOT_ID else node_id

    @abstractmethod
    def credentials(self, session: DriveSession) -> Credentials:
        """Select the credential pair that signs requests in this namespace."""

    @abstractmethod
    def metadata_url(self, file_id: str, file_path: str = "") -> str:
        """URL of the metadata-by-id endpoint."""

    @abstractmethod
    def list_url(self, folder_id: str, order: ListOrder, page_num: int, page_size: int) -> str:
        """URL of one page of a folder listing."""

    @abstractmethod
    def create_folder_url(self, parent_id: str, name: str) -> str:
        """URL that creates folder ``name`` under ``parent_id``."""


class PersonalRealm(Realm):
    """The account owner's private namespace."""

    name = "personal"
    root_wire_id = PERSONAL_ROOT_WIRE_ID

    def credentials(self, session: DriveSession) -> Credentials:
        return session.personal

    def metadata_url(self, file_id: str, file_path: str = "") -> str:
        query = urlencode(
            {
                "folderId": self.wire_id(file_id),
                "folderPath": file_path,
                "pathList": 0,
                "dt": 3,
            },
            quote_via=quote,
        )
        return f"{self.api_base_url}/getFolderInfo.action?{query}"

    def list_url(self, folder_id: str, order: ListOrder, page_num: int, page_size: int) -> str:
        query = urlencode(
            {
                "folderId": self.wire_id(folder_id),
                "recursive": 0,
                "fileType": 0,
                "iconOption": 10,
                "mediaAttr": 0,
                "orderBy": _PERSONAL_ORDER_BY[order.key],
                "descending": _bool(order.descending),
                "pageNum": page_num,
                "pageSize": page_size,
            },
            quote_via=quote,
        )
        return f"{self.api_base_url}/listFiles.action?{query}"

    def create_folder_url(self, parent_id: str, name: str) -> str:
        query = urlencode({"parentId": self.wire_id(parent_id), "fileName": name}, quote_via=quote)
        return f"{self.web_base_url}/v2/createFolder.action?{query}"


class FamilyRealm(Realm):
    """A shared family namespace identified by its family id."""

    name = "family"
    root_wire_id = ""

    def __init__(
        self,
        family_id: int,
        api_base_url: str = DEFAULT_API_BASE_URL,
        web_base_url: str = DEFAULT_WEB_BASE_URL,
    ) -> None:
        if family_id <= 0:
            raise ValueError(f"family id must be positive: {family_id}")
        super().__init__(api_base_url, web_base_url)
        self.family_id = family_id

    def credentials(self, session: DriveSession) -> Credentials:
        if session.family is None:
            raise ValueError("session has no family credentials")
        return session.family

    def metadata_url(self, file_id: str, file_path: str = "") -> str:
        wire_id = self.wire_id(file_id)
        if not wire_id:
            raise ValueError("family metadata lookup needs a non-root file id")
        query = urlencode(
            {
                "familyId": self.family_id,
                "folderId": wire_id,
                "folderPath": file_path,
                "pathList": 0,
            },
            quote_via=quote,
        )
        return f"{self.api_base_url}/family/file/getFolderInfo.action?{query}"

    def list_url(self, folder_id: str, order: ListOrder, page_num: int, page_size: int) -> str:
        query = urlencode(
            {
                "folderId": self.wire_id(folder_id),
                "familyId": self.family_id,
                "fileType": 0,
                "iconOption": 0,
                "mediaAttr": 0,
                "orderBy": _FAMILY_ORDER_BY[order.key],
                "descending": _bool(order.descending),
                "pageNum": page_num,
                "pageSize": page_size,
            },
            quote_via=quote,
        )
        return f"{self.api_base_url}/family/file/listFiles.action?{query}"

    def create_folder_url(self, parent_id: str, name: str) -> str:
        query = urlencode(
            {
                "familyId": self.family_id,
                "parentId": self.wire_id(parent_id),
                "folderName": name,
            },
            quote_via=quote,
        )
        return f"{self.api_base_url}/family/file/createFolder.action?{query}"
