"""Path resolver — maps absolute paths to nodes and node ids back to paths."""

from __future__ import annotations

import logging
import posixpath
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from remote_drive.api.models import ROOT_ID, ROOT_PATH, Node
from remote_drive.errors import DriveError, InvalidPath, NotFound

if TYPE_CHECKING:
    from remote_drive.api.files import FileApi
    from remote_drive.api.realm import Realm
    from remote_drive.fs.listing import ListingAggregator

logger = logging.getLogger(__name__)

# Seconds between consecutive metadata requests while walking up to the root
DEFAULT_PATH_LOOKUP_DELAY = 0.1


def split_path(path: str) -> list[str]:
    """Clean an absolute path and return its components.

    Raises:
        InvalidPath: If the path is not absolute.
    """
    if not path:
        return []
    if not posixpath.isabs(path):
        raise InvalidPath(f"path must be absolute: {path}")
    cleaned = posixpath.normpath(path)
    return [part for part in cleaned.split("/") if part]


class PathResolver:
    """Bidirectional mapping between absolute paths and server ids."""

    def __init__(
        self,
        files: FileApi,
        aggregator: ListingAggregator,
        lookup_delay: float = DEFAULT_PATH_LOOKUP_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialise the resolver.

        Args:
            files: Endpoint wrapper for metadata requests.
            aggregator: Lists folder children during descent.
            lookup_delay: Seconds to sleep between consecutive metadata
                requests of ``path_of``; the server throttles faster clients.
            sleep: Sleep function, replaceable in tests.
        """
        self._files = files
        self._aggregator = aggregator
        self._lookup_delay = lookup_delay
        self._sleep = sleep

    def resolve(self, realm: Realm, path: str) -> Node:
        """Resolve an absolute path to its node.

        Descends from the root one component at a time, matching names
        exactly. Each matched node carries the cumulative path and the id of
        the folder it was found in. ``""`` and ``/`` return the root sentinel
        without a request.

        Raises:
            InvalidPath: If the path is not absolute.
            NotFound: If a component is missing.
        """
        parts = split_path(path)
        current = Node.root()
        for index, part in enumerate(parts):
            if not current.is_folder:
                raise NotFound(f"not a folder: {current.path}")
            listing = self._aggregator.list_children(realm, current, parent_path=current.path)
            match = next((item for item in listing.items if item.name == part), None)
            if match is None:
                missing = ROOT_PATH + "/".join(parts[: index + 1])
                logger.info("[resolve] path component not found; path:%s", missing)
                raise NotFound(f"file not found: {missing}")
            current = match
        return current

    def path_of(self, realm: Realm, file_id: str) -> str:
        """Reconstruct the absolute path of a node id.

        Walks up through parents, prepending names, until the root is
        reached or the server supplies the full path itself.

        Raises:
            NotFound: If any metadata request fails or the parent chain loops.
        """
        if file_id == ROOT_ID:
            return ROOT_PATH

        names: list[str] = []
        seen: set[str] = set()
        current_id = file_id
        while True:
            if current_id in seen:
                raise NotFound(f"parent chain of {file_id} loops at {current_id}")
            seen.add(current_id)
            try:
                info = self._files.get_basic_info(realm, current_id)
            except DriveError as exc:
                logger.warning(
                    "[path_of] metadata lookup failed; file_id:%s;step_id:%s;error:%s",
                    file_id,
                    current_id,
                    exc,
                )
                raise NotFound(f"cannot resolve path of {file_id}: {exc}") from exc

            if info.path:
                return posixpath.join(info.path, *reversed(names)) if names else info.path
            if info.id == ROOT_ID:
                break
            names.append(info.name)
            if info.parent_id == ROOT_ID:
                break
            current_id = info.parent_id
            if self._lookup_delay > 0:
                self._sleep(self._lookup_delay)

        return ROOT_PATH + "/".join(reversed(names))

    def node_of(self, realm: Realm, file_id: str) -> Node:
        """Return the full node for an id, with its path filled in.

        The metadata endpoint only returns a few fields, so the node is read
        from its parent's listing.

        Raises:
            NotFound: If the id cannot be resolved or is absent from its parent.
        """
        if file_id == ROOT_ID:
            return Node.root()
        try:
            info = self._files.get_basic_info(realm, file_id)
        except DriveError as exc:
            raise NotFound(f"file not found: {file_id}") from exc
        parent = Node(id=info.parent_id, parent_id="", name="", is_folder=True)
        listing = self._aggregator.list_children(realm, parent)
        for item in listing.items:
            if item.id == file_id:
                item.path = self.path_of(realm, file_id)
                return item
        raise NotFound(f"file {file_id} is not listed in its parent {info.parent_id}")
