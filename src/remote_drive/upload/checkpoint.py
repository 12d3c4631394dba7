"""Upload checkpoints persisted in Azure Blob Storage.

A checkpoint records an open upload session so an interrupted upload can be
resumed by a later process instead of starting over.
"""

from __future__ import annotations

import contextlib
import hashlib
import json
import logging
from typing import TYPE_CHECKING

from azure.core.exceptions import ResourceNotFoundError
from azure.storage.blob import BlobClient, BlobServiceClient

from remote_drive.api.models import UploadSession

if TYPE_CHECKING:
    from remote_drive.config import AppConfig

logger = logging.getLogger(__name__)

# Named constants for checkpoint storage defaults
DEFAULT_CHECKPOINT_CONTAINER = "remote-drive-state"
DEFAULT_CHECKPOINT_BLOB_PREFIX = "upload-checkpoints/"

_CHECKPOINT_FIELDS = (
    "session_id",
    "upload_url",
    "commit_url",
    "request_id",
    "already_exists",
    "parent_id",
    "filename",
    "size",
    "content_hash",
)


def checkpoint_key(local_path: str, parent_id: str, content_hash: str) -> str:
    """Derive the checkpoint key of one local file uploaded into one folder.

    The content hash is part of the key so a file modified since the
    interrupted attempt never resumes the old session.
    """
    raw = f"{local_path}\n{parent_id}\n{content_hash}".encode()
    return hashlib.sha256(raw).hexdigest()


class UploadCheckpointStore:
    """Open upload sessions stored as JSON blobs keyed by ``checkpoint_key``."""

    def __init__(
        self,
        storage_connection_string: str,
        container: str = DEFAULT_CHECKPOINT_CONTAINER,
        blob_prefix: str = DEFAULT_CHECKPOINT_BLOB_PREFIX,
    ) -> None:
        """Initialise the checkpoint store.

        Args:
            storage_connection_string: Azure Storage connection string.
            container: Blob container name for checkpoints.
            blob_prefix: Prefix for checkpoint blob paths.
        """
        self._blob_service = BlobServiceClient.from_connection_string(storage_connection_string)
        self._container = container
        self._blob_prefix = blob_prefix

    def _blob_client(self, key: str) -> BlobClient:
        container_client = self._blob_service.get_container_client(self._container)
        return container_client.get_blob_client(f"{self._blob_prefix}{key}")

    def load(self, key: str) -> UploadSession | None:
        """Return the checkpointed session for ``key``, or None if there is none."""
        try:
            data = self._blob_client(key).download_blob().readall()
        except ResourceNotFoundError:
            logger.info("[upload_checkpoint] no checkpoint; key:%s", key)
            return None
        try:
            fields = json.loads(data.decode("utf-8"))
            session = UploadSession(**{name: fields[name] for name in _CHECKPOINT_FIELDS})
        except (ValueError, KeyError, TypeError):
            logger.warning("[upload_checkpoint] unreadable checkpoint ignored; key:%s", key)
            return None
        logger.info(
            "[upload_checkpoint] checkpoint loaded; key:%s;session_id:%s",
            key,
            session.session_id,
        )
        return session

    def save(self, key: str, session: UploadSession) -> None:
        """Store ``session`` under ``key``, creating the container if needed."""
        container_client = self._blob_service.get_container_client(self._container)
        with contextlib.suppress(Exception):
            container_client.create_container()

        payload = {name: getattr(session, name) for name in _CHECKPOINT_FIELDS}
        blob_client = container_client.get_blob_client(f"{self._blob_prefix}{key}")
        blob_client.upload_blob(json.dumps(payload).encode("utf-8"), overwrite=True)
        logger.info(
            "[upload_checkpoint] stored; key:%s;session_id:%s",
            key,
            session.session_id,
        )

    def delete(self, key: str) -> None:
        """Remove the checkpoint for ``key``; a missing checkpoint is not an error."""
        try:
            self._blob_client(key).delete_blob()
        except ResourceNotFoundError:
            return
        logger.info("[upload_checkpoint] deleted; key:%s", key)


def checkpoint_store_from_config(config: AppConfig) -> UploadCheckpointStore | None:
    """Construct an UploadCheckpointStore from application configuration.

    Args:
        config: Application configuration instance.

    Returns:
        Configured store, or None when no connection string is configured.
    """
    if not config.checkpoint_connection_string:
        return None
    return UploadCheckpointStore(
        storage_connection_string=config.checkpoint_connection_string,
        container=config.checkpoint_container,
        blob_prefix=config.checkpoint_blob_prefix,
    )
