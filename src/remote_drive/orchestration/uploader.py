"""File uploader — orchestrates mkdir, session reuse, chunked transfer and commit."""

from __future__ import annotations

import hashlib
import logging
import os
import posixpath
from datetime import datetime
from typing import TYPE_CHECKING

from remote_drive.api.files import FileApi
from remote_drive.api.models import ByteRange, Node, UploadSession
from remote_drive.api.realm import PersonalRealm
from remote_drive.errors import (
    AlreadyExists,
    CommitVerifyFailed,
    OffsetMismatch,
    SessionNotFound,
    TransportFailure,
)
from remote_drive.fs.listing import ListingAggregator
from remote_drive.fs.mkdir import DirectoryMaterializer
from remote_drive.upload.checkpoint import checkpoint_key, checkpoint_store_from_config
from remote_drive.upload.session import UploadSessionClient

if TYPE_CHECKING:
    from remote_drive.api.client import DriveClient
    from remote_drive.config import AppConfig
    from remote_drive.upload.checkpoint import UploadCheckpointStore

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 10 * 1024 * 1024
DEFAULT_MAX_RESUMES = 3

_HASH_BUFFER_SIZE = 1024 * 1024


def file_md5(local_path: str) -> str:
    """Return the MD5 of a local file as upper-case hex, as the server reports it."""
    digest = hashlib.md5()
    with open(local_path, "rb") as fh:
        for block in iter(lambda: fh.read(_HASH_BUFFER_SIZE), b""):
            digest.update(block)
    return digest.hexdigest().upper()


class FileUploader:
    """Uploads local files into the personal namespace, resuming when possible."""

    def __init__(
        self,
        sessions: UploadSessionClient,
        materializer: DirectoryMaterializer,
        realm: PersonalRealm,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_resumes: int = DEFAULT_MAX_RESUMES,
        checkpoints: UploadCheckpointStore | None = None,
    ) -> None:
        """Initialise the uploader.

        Args:
            sessions: Upload protocol client.
            materializer: Creates the target folder chain.
            realm: Namespace of the target folders.
            chunk_size: Bytes sent per transfer request.
            max_resumes: Status-query resumes allowed per upload after an
                offset mismatch or interrupted transfer.
            checkpoints: Optional persistent store of open sessions.
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk size must be positive: {chunk_size}")
        self._sessions = sessions
        self._materializer = materializer
        self._realm = realm
        self._chunk_size = chunk_size
        self._max_resumes = max_resumes
        self._checkpoints = checkpoints

    def upload(self, local_path: str, remote_dir: str, overwrite: bool = False) -> Node:
        """Upload one local file into ``remote_dir``.

        Steps:
            1. Ensure the remote folder chain exists.
            2. Hash the local file.
            3. Reuse a checkpointed session (re-synced by a status query) or
               create a new one and checkpoint it.
            4. Skip the transfer when the server already holds the content,
               otherwise send the remaining bytes in chunks, re-syncing on an
               offset mismatch or interrupted request.
            5. Commit and drop the checkpoint.

        Args:
            local_path: Path of the local file.
            remote_dir: Absolute path of the target folder.
            overwrite: Replace a same-named remote file instead of letting the
                server rename the new one.

        Returns:
            The committed file, with its path filled in.
        """
        folder_id = self._ensure_folder(remote_dir)
        size = os.path.getsize(local_path)
        last_modified = datetime.fromtimestamp(os.path.getmtime(local_path))
        content_hash = file_md5(local_path)
        filename = os.path.basename(local_path)
        key = checkpoint_key(os.path.abspath(local_path), folder_id, content_hash)

        session = self._open_session(
            key, folder_id, filename, size, content_hash, last_modified, local_path
        )
        if session.already_exists:
            logger.info(
                "[upload] server already holds content; skipping transfer; filename:%s",
                filename,
            )
        else:
            self._transfer_remaining(session, local_path)

        try:
            node = self._sessions.commit(session, overwrite=overwrite)
        except CommitVerifyFailed:
            self._forget(key)
            raise
        self._forget(key)
        node.path = posixpath.join(remote_dir, node.name)
        logger.info(
            "[upload] upload complete; path:%s;file_id:%s;size:%d",
            node.path,
            node.id,
            size,
        )
        return node

    def _ensure_folder(self, remote_dir: str) -> str:
        try:
            return self._materializer.ensure(self._realm, remote_dir).folder_id
        except AlreadyExists as exc:
            # Another client created some component between our listing and
            # create; it is listed now, so a second pass descends into it.
            logger.info(
                "[upload] folder created concurrently; retrying; path:%s;raced_id:%s",
                remote_dir,
                exc.folder_id,
            )
        return self._materializer.ensure(self._realm, remote_dir).folder_id

    def _open_session(
        self,
        key: str,
        folder_id: str,
        filename: str,
        size: int,
        content_hash: str,
        last_modified: datetime,
        local_path: str,
    ) -> UploadSession:
        if self._checkpoints is not None:
            saved = self._checkpoints.load(key)
            if saved is not None:
                try:
                    status = self._sessions.resume(saved)
                except SessionNotFound:
                    logger.info(
                        "[upload] checkpointed session expired; restarting; session_id:%s",
                        saved.session_id,
                    )
                    self._checkpoints.delete(key)
                else:
                    logger.info(
                        "[upload] resuming checkpointed session; session_id:%s;offset:%d",
                        saved.session_id,
                        status.received_bytes,
                    )
                    return saved

        session = self._sessions.create_session(
            parent_id=folder_id,
            filename=filename,
            size=size,
            content_hash=content_hash,
            last_modified=last_modified,
            local_path=local_path,
        )
        if self._checkpoints is not None:
            self._checkpoints.save(key, session)
        return session

    def _transfer_remaining(self, session: UploadSession, local_path: str) -> None:
        resumes = 0
        with open(local_path, "rb") as fh:
            while session.acknowledged_offset < session.size:
                offset = session.acknowledged_offset
                fh.seek(offset)
                data = fh.read(min(self._chunk_size, session.size - offset))
                if not data:
                    raise ValueError(f"local file shrank during upload: {local_path}")
                try:
                    self._sessions.transfer(session, ByteRange(offset, len(data)), data)
                except (OffsetMismatch, TransportFailure) as exc:
                    if resumes >= self._max_resumes:
                        raise
                    resumes += 1
                    status = self._sessions.resume(session)
                    logger.info(
                        "[upload] resuming transfer; session_id:%s;failed_offset:%d;"
                        "server_offset:%d;attempt:%d;error:%s",
                        session.session_id,
                        offset,
                        status.received_bytes,
                        resumes,
                        exc,
                    )

    def _forget(self, key: str) -> None:
        if self._checkpoints is not None:
            self._checkpoints.delete(key)


def file_uploader_from_config(config: AppConfig, client: DriveClient) -> FileUploader:
    """Construct a FileUploader from application configuration.

    Args:
        config: Application configuration instance.
        client: Signed request client.

    Returns:
        Configured FileUploader instance targeting the personal namespace.
    """
    realm = PersonalRealm(config.api_base_url, config.web_base_url)
    files = FileApi(client)
    aggregator = ListingAggregator(files, page_size=config.page_size)
    return FileUploader(
        sessions=UploadSessionClient(client, realm),
        materializer=DirectoryMaterializer(files, aggregator),
        realm=realm,
        chunk_size=config.upload_chunk_size,
        max_resumes=config.upload_max_resumes,
        checkpoints=checkpoint_store_from_config(config),
    )
