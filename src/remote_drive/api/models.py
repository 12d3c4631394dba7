"""Data models for remote drive nodes, listings and upload sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

# Marker id of the synthetic namespace root. Never sent to the server.
ROOT_ID = "root"
ROOT_PATH = "/"

# XML element names of file and folder records
FIELD_ID = "id"
FIELD_PARENT_ID = "parentId"
FIELD_PARENT_FOLDER_ID = "parentFolderId"
FIELD_NAME = "name"
FIELD_SIZE = "size"
FIELD_MD5 = "md5"
FIELD_CREATE_DATE = "createDate"
FIELD_LAST_OP_TIME = "lastOpTime"
FIELD_PATH = "path"
FIELD_REV = "rev"
FIELD_FILE_COUNT = "fileCount"

# XML element names of listings
LIST_FILE_LIST = "fileList"
LIST_COUNT = "count"
LIST_FOLDER = "folder"
LIST_FILE = "file"

# XML element names of upload responses
UPLOAD_FILE_ID = "uploadFileId"
UPLOAD_URL = "fileUploadUrl"
UPLOAD_COMMIT_URL = "fileCommitUrl"
UPLOAD_DATA_EXISTS = "fileDataExists"

# JSON keys of the create-folder response
MKDIR_FILE_ID = "fileId"
MKDIR_IS_NEW = "isNew"

# Server timestamp format, e.g. "2018-11-18 09:12:13"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# MD5 reported for empty files
EMPTY_FILE_MD5 = "D41D8CD98F00B204E9800998ECF8427E"


class SortKey(Enum):
    NAME = "name"
    SIZE = "size"
    MODIFIED = "modified"


class SortOrder(Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class ListOrder:
    """Sort key and direction requested from the listing endpoint."""

    key: SortKey = SortKey.NAME
    order: SortOrder = SortOrder.ASC

    @property
    def descending(self) -> bool:
        return self.order is SortOrder.DESC


@dataclass
class Node:
    """A file or folder record identified by an opaque server-assigned id.

    ``path`` is a client-side projection filled in by the operation that
    built the node; the remote store itself is addressed by ``id`` only.
    """

    id: str
    parent_id: str
    name: str
    is_folder: bool
    size: int = 0
    content_hash: str = ""
    created_at: datetime | None = None
    modified_at: datetime | None = None
    path: str = ""
    child_count: int = 0
    rev: str = ""

    @property
    def is_root(self) -> bool:
        return self.id == ROOT_ID

    @classmethod
    def root(cls) -> Node:
        """Return the synthetic root folder of a namespace."""
        return cls(id=ROOT_ID, parent_id="", name=ROOT_PATH, is_folder=True, path=ROOT_PATH)


@dataclass
class BasicInfo:
    """Metadata returned by the metadata-by-id endpoint."""

    id: str
    parent_id: str
    name: str
    path: str = ""


@dataclass
class ListingPage:
    """One page of one folder's children, folders first."""

    items: list[Node]
    total_count: int
    page_number: int
    page_size: int


@dataclass
class CreatedFolder:
    """Response of a single-folder create request."""

    folder_id: str
    is_new: bool


@dataclass
class MkdirResult:
    """Deepest folder of an ensured path and whether anything was created."""

    folder_id: str
    created: bool


class UploadState(Enum):
    CREATED = "created"
    TRANSFERRING = "transferring"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class UploadSession:
    """One upload attempt.

    ``request_id`` is threaded through every step as ``X-Request-ID`` so the
    server can correlate them. ``acknowledged_offset`` is the number of bytes
    the server is known to hold; the next transfer must start there.
    """

    session_id: str
    upload_url: str
    commit_url: str
    request_id: str
    already_exists: bool
    parent_id: str = ""
    filename: str = ""
    size: int = 0
    content_hash: str = ""
    state: UploadState = UploadState.CREATED
    acknowledged_offset: int = 0


@dataclass(frozen=True)
class ByteRange:
    """A chunk of file content: ``length`` bytes starting at ``offset``."""

    offset: int
    length: int

    def __post_init__(self) -> None:
        if self.offset < 0 or self.length < 0:
            raise ValueError(f"byte range must be non-negative: {self.offset}, {self.length}")

    @property
    def end(self) -> int:
        return self.offset + self.length

    def header_value(self) -> str:
        """Render the range the way the transfer endpoint expects it."""
        return f"bytes={self.offset}-{self.length}"


@dataclass
class UploadStatus:
    """Server-side progress of an upload session."""

    session_id: str
    received_bytes: int
    upload_url: str = ""
    commit_url: str = ""
    already_exists: bool = False


@dataclass
class Listing:
    """The aggregated child list of one folder.

    ``error`` is set only in partial aggregation mode when a page after the
    first failed; ``items`` then holds everything collected before it.
    """

    folder_id: str
    items: list[Node] = field(default_factory=list)
    total_count: int = 0
    error: Exception | None = None

    @property
    def complete(self) -> bool:
        return self.error is None

    def total_size(self) -> int:
        """Sum of the sizes of all items."""
        return sum(item.size for item in self.items)

    def count(self) -> tuple[int, int]:
        """Return ``(file_count, folder_count)``."""
        folders = sum(1 for item in self.items if item.is_folder)
        return len(self.items) - folders, folders
