"""Directory materializer — ensures a folder chain exists ("mkdir -p")."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from remote_drive.api.models import MkdirResult, Node
from remote_drive.errors import AlreadyExists, InvalidName, NotFound
from remote_drive.fs.listing import join_path
from remote_drive.fs.resolver import split_path

if TYPE_CHECKING:
    from remote_drive.api.files import FileApi
    from remote_drive.api.realm import Realm
    from remote_drive.fs.listing import ListingAggregator

logger = logging.getLogger(__name__)

# Characters the remote store rejects in file and folder names
FORBIDDEN_NAME_CHARS = '\\/:*?"<>|'


def is_valid_name(name: str) -> bool:
    """Return True if ``name`` is non-empty and free of forbidden characters."""
    return bool(name) and not any(char in FORBIDDEN_NAME_CHARS for char in name)


class DirectoryMaterializer:
    """Creates the missing suffix of a folder path, one level at a time."""

    def __init__(self, files: FileApi, aggregator: ListingAggregator) -> None:
        self._files = files
        self._aggregator = aggregator

    def ensure(self, realm: Realm, path: str) -> MkdirResult:
        """Make sure every folder of ``path`` exists.

        Existing components are descended into without a create request;
        missing ones are validated and created under the current folder.

        Args:
            realm: Namespace to create the folders in.
            path: Absolute folder path, e.g. ``/backup/2024/photos``.

        Returns:
            Id of the deepest folder and whether any folder was created.

        Raises:
            InvalidPath: If the path is not absolute.
            InvalidName: If a missing component contains forbidden characters.
            NotFound: If a component exists as a file.
            AlreadyExists: If the server reports a create as not new (another
                client created it first); ``folder_id`` holds its id.
        """
        current = Node.root()
        created = False
        for part in split_path(path):
            listing = self._aggregator.list_children(realm, current, parent_path=current.path)
            existing = next((item for item in listing.items if item.name == part), None)
            child_path = join_path(current.path, part)
            if existing is not None:
                if not existing.is_folder:
                    raise NotFound(f"not a folder: {child_path}")
                current = existing
                continue

            if not is_valid_name(part):
                logger.warning("[ensure] invalid folder name; path:%s", child_path)
                raise InvalidName(
                    f"folder name must not contain any of {FORBIDDEN_NAME_CHARS}: {part}"
                )

            result = self._files.create_folder(realm, current, part)
            if not result.is_new:
                raise AlreadyExists(
                    f"folder already exists: {child_path}",
                    folder_id=result.folder_id,
                )
            logger.info(
                "[ensure] created folder; path:%s;folder_id:%s",
                child_path,
                result.folder_id,
            )
            created = True
            current = Node(
                id=result.folder_id,
                parent_id=current.id,
                name=part,
                is_folder=True,
                path=child_path,
            )

        return MkdirResult(folder_id=current.id, created=created)
