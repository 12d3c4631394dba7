"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

from remote_drive.api.realm import (
    DEFAULT_API_BASE_URL,
    DEFAULT_CLIENT_INFO,
    DEFAULT_WEB_BASE_URL,
    Credentials,
    DriveSession,
    FamilyRealm,
    PersonalRealm,
    Realm,
)


@dataclass(frozen=True)
class AppConfig:
    """Centralized application configuration.

    Required fields have no defaults and will cause a KeyError at startup
    if the corresponding environment variable is missing. Protocol constants
    have sensible defaults but can be overridden via environment variables.
    """

    # Required: no defaults, fail at startup if missing
    session_key: str
    session_secret: str

    # Family namespace, optional
    family_session_key: str = ""
    family_session_secret: str = ""
    family_id: int = 0

    # Endpoints
    api_base_url: str = DEFAULT_API_BASE_URL
    web_base_url: str = DEFAULT_WEB_BASE_URL
    client_info: str = DEFAULT_CLIENT_INFO
    http_timeout: float = 30.0

    # Traversal pacing and paging
    page_size: int = 200
    path_lookup_delay: float = 0.1
    walk_delay: float = 0.2

    # Uploads
    upload_chunk_size: int = 10 * 1024 * 1024
    upload_max_resumes: int = 3
    checkpoint_connection_string: str = ""
    checkpoint_container: str = "remote-drive-state"
    checkpoint_blob_prefix: str = "upload-checkpoints/"


def load_config() -> AppConfig:
    """Construct an AppConfig from environment variables.

    Required environment variables:
        RD_SESSION_KEY: Session key of the personal namespace.
        RD_SESSION_SECRET: Session secret of the personal namespace.

    Optional environment variables (with defaults):
        RD_FAMILY_SESSION_KEY / RD_FAMILY_SESSION_SECRET: Family credential pair.
        RD_FAMILY_ID: Family namespace id; 0 selects the personal realm.
        RD_API_BASE_URL / RD_WEB_BASE_URL: Endpoint roots.
        RD_CLIENT_INFO: Query suffix identifying the client on every request.
        RD_HTTP_TIMEOUT: Per-request timeout in seconds (default: 30).
        RD_PAGE_SIZE: Listing page size (default: 200).
        RD_PATH_LOOKUP_DELAY: Seconds between id-to-path lookups (default: 0.1).
        RD_WALK_DELAY: Seconds between folder expansions of a walk (default: 0.2).
        RD_UPLOAD_CHUNK_SIZE: Bytes per transfer request (default: 10 MiB).
        RD_UPLOAD_MAX_RESUMES: Offset-mismatch resumes per upload (default: 3).
        RD_CHECKPOINT_CONNECTION_STRING: Azure Storage connection string for
            upload checkpoints; checkpoints are disabled when empty.
        RD_CHECKPOINT_CONTAINER: Blob container for upload checkpoints.
        RD_CHECKPOINT_BLOB_PREFIX: Blob path prefix for upload checkpoints.

    Returns:
        Configured AppConfig instance.
    """
    return AppConfig(
        session_key=os.environ["RD_SESSION_KEY"],
        session_secret=os.environ["RD_SESSION_SECRET"],
        family_session_key=os.environ.get("RD_FAMILY_SESSION_KEY", ""),
        family_session_secret=os.environ.get("RD_FAMILY_SESSION_SECRET", ""),
        family_id=int(os.environ.get("RD_FAMILY_ID", "0")),
        api_base_url=os.environ.get("RD_API_BASE_URL", DEFAULT_API_BASE_URL),
        web_base_url=os.environ.get("RD_WEB_BASE_URL", DEFAULT_WEB_BASE_URL),
        client_info=os.environ.get("RD_CLIENT_INFO", DEFAULT_CLIENT_INFO),
        http_timeout=float(os.environ.get("RD_HTTP_TIMEOUT", "30")),
        page_size=int(os.environ.get("RD_PAGE_SIZE", "200")),
        path_lookup_delay=float(os.environ.get("RD_PATH_LOOKUP_DELAY", "0.1")),
        walk_delay=float(os.environ.get("RD_WALK_DELAY", "0.2")),
        upload_chunk_size=int(os.environ.get("RD_UPLOAD_CHUNK_SIZE", str(10 * 1024 * 1024))),
        upload_max_resumes=int(os.environ.get("RD_UPLOAD_MAX_RESUMES", "3")),
        checkpoint_connection_string=os.environ.get("RD_CHECKPOINT_CONNECTION_STRING", ""),
        checkpoint_container=os.environ.get("RD_CHECKPOINT_CONTAINER", "remote-drive-state"),
        checkpoint_blob_prefix=os.environ.get(
            "RD_CHECKPOINT_BLOB_PREFIX", "upload-checkpoints/"
        ),
    )


def session_from_config(config: AppConfig) -> DriveSession:
    """Build the credential pairs of the configured account."""
    family = None
    if config.family_session_key:
        family = Credentials(config.family_session_key, config.family_session_secret)
    return DriveSession(
        personal=Credentials(config.session_key, config.session_secret),
        family=family,
    )


def realm_from_config(config: AppConfig) -> Realm:
    """Return the family realm when a family id is configured, else the personal one."""
    if config.family_id > 0:
        return FamilyRealm(config.family_id, config.api_base_url, config.web_base_url)
    return PersonalRealm(config.api_base_url, config.web_base_url)
