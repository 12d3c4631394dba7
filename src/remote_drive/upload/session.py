"""Resumable upload session — create, transfer range, commit, status query.

Each step is a single request. The client tracks the session state and the
offset the server has acknowledged but never retries on its own: recoverable
errors carry their corrective action and the caller decides.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from remote_drive.api.client import new_request_id
from remote_drive.api.models import (
    TIMESTAMP_FORMAT,
    ByteRange,
    Node,
    UploadSession,
    UploadState,
    UploadStatus,
)
from remote_drive.api.parse import parse_committed_file, parse_upload_session, parse_upload_status
from remote_drive.api.realm import PersonalRealm
from remote_drive.errors import (
    CommitVerifyFailed,
    OffsetMismatch,
    SessionNotFound,
    UploadStateError,
)

if TYPE_CHECKING:
    from remote_drive.api.client import DriveClient

logger = logging.getLogger(__name__)

# Form value declaring that the client supports resumed transfers
RESUME_POLICY = "1"

# Commit "opertype": rename on conflict (default) or overwrite
COMMIT_RENAME = "1"
COMMIT_OVERWRITE = "5"


class UploadSessionClient:
    """Drives the four-step upload protocol against one realm."""

    def __init__(self, client: DriveClient, realm: PersonalRealm) -> None:
        """Initialise the session client.

        Args:
            client: Signed request client.
            realm: Personal namespace; the upload endpoints exist only there.
        """
        if not isinstance(realm, PersonalRealm):
            raise ValueError("uploads target the personal namespace only")
        self._client = client
        self._realm = realm

    def create_session(
        self,
        parent_id: str,
        filename: str,
        size: int,
        content_hash: str,
        last_modified: datetime,
        local_path: str = "",
    ) -> UploadSession:
        """Step 1 — open an upload session.

        Args:
            parent_id: Id of the target folder.
            filename: Name of the file in the drive.
            size: Total size in bytes.
            content_hash: MD5 of the content as upper-case hex.
            last_modified: Local modification time of the file.
            local_path: Local path, reported to the server for its records.

        Returns:
            The new session. ``already_exists`` means the server already holds
            this content and the transfer step can be skipped.
        """
        if size < 0:
            raise ValueError(f"size must be non-negative: {size}")
        request_id = new_request_id()
        form = {
            "parentFolderId": self._realm.wire_id(parent_id),
            "baseFileId": "",
            "fileName": filename,
            "size": str(size),
            "md5": content_hash,
            "lastWrite": last_modified.strftime(TIMESTAMP_FORMAT),
            "localPath": local_path.replace("\\", "/"),
            "opertype": "1",
            "flag": "1",
            "resumePolicy": RESUME_POLICY,
            "isLog": "0",
            "fileExt": "",
        }
        url = f"{self._realm.api_base_url}/createUploadFile.action"
        body = self._client.request(self._realm, "POST", url, body=form, request_id=request_id)
        session = parse_upload_session(body, request_id)
        session.parent_id = parent_id
        session.filename = filename
        session.size = size
        session.content_hash = content_hash
        logger.info(
            "[create_session] upload session created; session_id:%s;filename:%s;size:%d;"
            "already_exists:%s",
            session.session_id,
            filename,
            size,
            session.already_exists,
        )
        return session

    def transfer(self, session: UploadSession, byte_range: ByteRange, data: bytes) -> None:
        """Step 2 — send one range of the file content.

        The range must start exactly at the acknowledged offset: resending
        acknowledged bytes or skipping ahead is rejected before any request.

        Raises:
            UploadStateError: If the session is committed or failed.
            ValueError: If ``data`` does not match the range length.
            OffsetMismatch: If the range does not start at the acknowledged
                offset, or the server expected another offset.
        """
        if session.state in (UploadState.COMMITTED, UploadState.FAILED):
            raise UploadStateError(f"cannot transfer in state {session.state.value}")
        if len(data) != byte_range.length:
            raise ValueError(f"range length {byte_range.length} but {len(data)} bytes given")
        if byte_range.offset != session.acknowledged_offset:
            raise OffsetMismatch(
                f"range starts at {byte_range.offset}, server holds {session.acknowledged_offset}",
                expected_offset=session.acknowledged_offset,
            )

        headers = {
            "Content-Type": "application/octet-stream",
            "ResumePolicy": RESUME_POLICY,
            "Edrive-UploadFileId": session.session_id,
            "Edrive-UploadFileRange": byte_range.header_value(),
            "Expect": "100-continue",
        }
        session.state = UploadState.TRANSFERRING
        try:
            self._client.request(
                self._realm,
                "PUT",
                session.upload_url,
                body=data,
                headers=headers,
                request_id=session.request_id,
            )
        except OffsetMismatch:
            logger.warning(
                "[transfer] server rejected offset; session_id:%s;offset:%d;length:%d",
                session.session_id,
                byte_range.offset,
                byte_range.length,
            )
            raise
        session.acknowledged_offset = byte_range.end
        logger.debug(
            "[transfer] range sent; session_id:%s;offset:%d;length:%d",
            session.session_id,
            byte_range.offset,
            byte_range.length,
        )

    def commit(self, session: UploadSession, overwrite: bool = False) -> Node:
        """Step 3 — finalize the upload.

        Args:
            session: Session to commit.
            overwrite: Replace a same-named file instead of letting the server
                rename the new one.

        Returns:
            The committed file.

        Raises:
            UploadStateError: If the session is already committed or failed.
            CommitVerifyFailed: If the server could not verify the bytes; the
                session is failed and the file must not be assumed to exist.
        """
        if session.state in (UploadState.COMMITTED, UploadState.FAILED):
            raise UploadStateError(f"cannot commit in state {session.state.value}")
        form = {
            "uploadFileId": session.session_id,
            "opertype": COMMIT_OVERWRITE if overwrite else COMMIT_RENAME,
            "ResumePolicy": RESUME_POLICY,
            "isLog": "0",
        }
        try:
            body = self._client.request(
                self._realm,
                "POST",
                session.commit_url,
                body=form,
                request_id=session.request_id,
            )
        except CommitVerifyFailed:
            session.state = UploadState.FAILED
            logger.warning("[commit] verification failed; session_id:%s", session.session_id)
            raise
        node = parse_committed_file(body, session.parent_id)
        session.state = UploadState.COMMITTED
        logger.info(
            "[commit] upload committed; session_id:%s;file_id:%s;name:%s",
            session.session_id,
            node.id,
            node.name,
        )
        return node

    def query_status(self, session_id: str) -> UploadStatus:
        """Step 4 — ask how many bytes the server holds for a session.

        Raises:
            SessionNotFound: If the session expired or was discarded.
        """
        query = urlencode({"uploadFileId": session_id, "ResumePolicy": RESUME_POLICY})
        url = f"{self._realm.api_base_url}/getUploadFileStatus.action?{query}"
        try:
            body = self._client.request(self._realm, "GET", url)
        except SessionNotFound:
            logger.warning("[query_status] session not found; session_id:%s", session_id)
            raise
        status = parse_upload_status(body)
        if not status.session_id:
            status.session_id = session_id
        logger.info(
            "[query_status] status received; session_id:%s;received_bytes:%d",
            session_id,
            status.received_bytes,
        )
        return status

    def resume(self, session: UploadSession) -> UploadStatus:
        """Re-sync a session with the server's acknowledged offset.

        The corrective action for ``OffsetMismatch`` and interrupted
        transfers: the next ``transfer`` must start at the returned
        ``received_bytes``.

        Raises:
            SessionNotFound: If the session is gone; it is marked failed.
        """
        try:
            status = self.query_status(session.session_id)
        except SessionNotFound:
            session.state = UploadState.FAILED
            raise
        session.acknowledged_offset = status.received_bytes
        if status.upload_url:
            session.upload_url = status.upload_url
        if status.commit_url:
            session.commit_url = status.commit_url
        return status
