"""Wire parsing for drive API responses.

The app endpoints answer in XML, the web create-folder endpoint in JSON.
Either may carry an error envelope instead of a payload, so every response is
passed through ``check_error_envelope`` before the payload parsers run.
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from datetime import datetime
from typing import Any

from remote_drive.api.models import (
    FIELD_CREATE_DATE,
    FIELD_FILE_COUNT,
    FIELD_ID,
    FIELD_LAST_OP_TIME,
    FIELD_MD5,
    FIELD_NAME,
    FIELD_PARENT_FOLDER_ID,
    FIELD_PARENT_ID,
    FIELD_PATH,
    FIELD_REV,
    FIELD_SIZE,
    LIST_COUNT,
    LIST_FILE,
    LIST_FILE_LIST,
    LIST_FOLDER,
    MKDIR_FILE_ID,
    MKDIR_IS_NEW,
    ROOT_ID,
    TIMESTAMP_FORMAT,
    UPLOAD_COMMIT_URL,
    UPLOAD_DATA_EXISTS,
    UPLOAD_FILE_ID,
    UPLOAD_URL,
    BasicInfo,
    CreatedFolder,
    ListingPage,
    Node,
    UploadSession,
    UploadStatus,
)
from remote_drive.errors import (
    AlreadyExists,
    CommitVerifyFailed,
    DriveError,
    NotFound,
    OffsetMismatch,
    SessionNotFound,
    TransportFailure,
)

logger = logging.getLogger(__name__)

# Server error codes with a dedicated error kind
_ERROR_KINDS: dict[str, type[DriveError]] = {
    "FileNotFound": NotFound,
    "FileAlreadyExists": AlreadyExists,
    "UploadOffsetVerifyFailed": OffsetMismatch,
    "UploadFileStatusVerifyFailed": CommitVerifyFailed,
    "UploadFileNotFound": SessionNotFound,
}


def normalize_id(value: str) -> str:
    """Map the server's reserved root ids onto ``ROOT_ID``.

    The server encodes namespace roots as ids starting with ``-`` (``-11`` in
    the personal namespace); this is the only place that convention is read.
    """
    value = value.strip()
    if value.startswith("-"):
        return ROOT_ID
    return value


def error_from_code(code: str, message: str = "") -> DriveError:
    """Build the error kind matching a server error code."""
    kind = _ERROR_KINDS.get(code)
    text = message or code
    if kind is None:
        return TransportFailure(f"server error {code}: {text}", code=code)
    return kind(text, code=code)


def _parse_xml(body: bytes) -> ET.Element:
    try:
        return ET.fromstring(body)
    except ET.ParseError as exc:
        raise TransportFailure(f"malformed XML response: {exc}") from exc


def _parse_json(body: bytes) -> dict[str, Any]:
    try:
        data = json.loads(body)
    except ValueError as exc:
        raise TransportFailure(f"malformed JSON response: {exc}") from exc
    if not isinstance(data, dict):
        raise TransportFailure("unexpected JSON response shape")
    return data


def _is_xml(body: bytes) -> bool:
    return body.lstrip().startswith(b"<")


def check_error_envelope(body: bytes) -> None:
    """Raise the mapped error if the response body is an error envelope.

    Recognizes ``<error><code>..</code><message>..</message></error>`` and the
    JSON ``{"errorCode": .., "errorMsg": ..}`` / non-zero ``res_code`` shapes.
    Bodies that are neither are left for the payload parsers.
    """
    stripped = body.strip()
    if not stripped:
        return
    if _is_xml(stripped):
        try:
            root = ET.fromstring(stripped)
        except ET.ParseError:
            return
        code = (root.findtext("code") or "").strip()
        if code:
            raise error_from_code(code, (root.findtext("message") or "").strip())
        return
    try:
        data = json.loads(stripped)
    except ValueError:
        return
    if not isinstance(data, dict):
        return
    code = str(data.get("errorCode") or "")
    if code:
        raise error_from_code(code, str(data.get("errorMsg", "")))
    res_code = data.get("res_code")
    if res_code not in (None, 0, "0"):
        raise error_from_code(str(res_code), str(data.get("res_message", "")))


def _text(element: ET.Element, tag: str) -> str:
    return (element.findtext(tag) or "").strip()


def _int(element: ET.Element, tag: str) -> int:
    raw = _text(element, tag)
    try:
        return int(raw) if raw else 0
    except ValueError:
        logger.warning("[parse] non-integer field; tag:%s;value:%s", tag, raw)
        return 0


def parse_timestamp(raw: str) -> datetime | None:
    """Parse a server timestamp, returning None when absent or malformed."""
    if not raw:
        return None
    try:
        return datetime.strptime(raw, TIMESTAMP_FORMAT)
    except ValueError:
        return None


def _node(element: ET.Element, is_folder: bool) -> Node:
    return Node(
        id=normalize_id(_text(element, FIELD_ID)),
        parent_id=normalize_id(_text(element, FIELD_PARENT_ID)),
        name=_text(element, FIELD_NAME),
        is_folder=is_folder,
        size=_int(element, FIELD_SIZE),
        content_hash=_text(element, FIELD_MD5),
        created_at=parse_timestamp(_text(element, FIELD_CREATE_DATE)),
        modified_at=parse_timestamp(_text(element, FIELD_LAST_OP_TIME)),
        path=_text(element, FIELD_PATH),
        child_count=_int(element, FIELD_FILE_COUNT),
        rev=_text(element, FIELD_REV),
    )


def parse_basic_info(body: bytes) -> BasicInfo:
    """Parse a metadata-by-id response.

    The personal endpoint names the parent ``parentFolderId`` and sometimes
    includes the full ``path``; the family endpoint uses ``parentId`` and never
    includes a path.
    """
    root = _parse_xml(body)
    parent = _text(root, FIELD_PARENT_FOLDER_ID) or _text(root, FIELD_PARENT_ID)
    file_id = _text(root, FIELD_ID)
    if not file_id:
        raise TransportFailure("metadata response has no id")
    return BasicInfo(
        id=normalize_id(file_id),
        parent_id=normalize_id(parent) if parent else ROOT_ID,
        name=_text(root, FIELD_NAME),
        path=_text(root, FIELD_PATH),
    )


def parse_listing_page(body: bytes, page_number: int, page_size: int) -> ListingPage:
    """Parse one listing page, folders first and then files."""
    root = _parse_xml(body)
    file_list = root if root.tag == LIST_FILE_LIST else root.find(LIST_FILE_LIST)
    if file_list is None:
        raise TransportFailure("listing response has no fileList")
    items = [_node(el, is_folder=True) for el in file_list.findall(LIST_FOLDER)]
    items.extend(_node(el, is_folder=False) for el in file_list.findall(LIST_FILE))
    return ListingPage(
        items=items,
        total_count=_int(file_list, LIST_COUNT),
        page_number=page_number,
        page_size=page_size,
    )


def parse_created_folder(body: bytes) -> CreatedFolder:
    """Parse a create-folder response (JSON from the web API, XML from the app API)."""
    if _is_xml(body):
        root = _parse_xml(body)
        folder_id = _text(root, FIELD_ID)
        raw_new = _text(root, MKDIR_IS_NEW)
        is_new = raw_new.lower() not in ("false", "0") if raw_new else True
    else:
        data = _parse_json(body)
        folder_id = str(data.get(MKDIR_FILE_ID, ""))
        is_new = bool(data.get(MKDIR_IS_NEW, False))
    if not folder_id:
        raise TransportFailure("create-folder response has no folder id")
    return CreatedFolder(folder_id=folder_id, is_new=is_new)


def parse_upload_session(body: bytes, request_id: str) -> UploadSession:
    root = _parse_xml(body)
    session_id = _text(root, UPLOAD_FILE_ID)
    if not session_id:
        raise TransportFailure("upload session response has no uploadFileId")
    return UploadSession(
        session_id=session_id,
        upload_url=_text(root, UPLOAD_URL),
        commit_url=_text(root, UPLOAD_COMMIT_URL),
        request_id=request_id,
        already_exists=_int(root, UPLOAD_DATA_EXISTS) == 1,
    )


def parse_upload_status(body: bytes) -> UploadStatus:
    root = _parse_xml(body)
    return UploadStatus(
        session_id=_text(root, UPLOAD_FILE_ID),
        received_bytes=_int(root, FIELD_SIZE),
        upload_url=_text(root, UPLOAD_URL),
        commit_url=_text(root, UPLOAD_COMMIT_URL),
        already_exists=_int(root, UPLOAD_DATA_EXISTS) == 1,
    )


def parse_committed_file(body: bytes, parent_id: str) -> Node:
    """Parse the ``<file>`` record returned by a successful commit."""
    root = _parse_xml(body)
    node = _node(root, is_folder=False)
    if not node.id:
        raise TransportFailure("commit response has no file id")
    node.parent_id = parent_id
    return node
