"""Remote drive facade — wires the navigation engine for one realm."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from remote_drive.api.files import FileApi
from remote_drive.api.models import Listing, ListOrder, MkdirResult, Node
from remote_drive.config import realm_from_config
from remote_drive.errors import NotFound
from remote_drive.fs.listing import ListingAggregator
from remote_drive.fs.mkdir import DirectoryMaterializer
from remote_drive.fs.resolver import PathResolver
from remote_drive.fs.walker import CancellationToken, TreeWalker, WalkCallback

if TYPE_CHECKING:
    from remote_drive.api.client import DriveClient
    from remote_drive.api.realm import Realm
    from remote_drive.config import AppConfig

logger = logging.getLogger(__name__)


class RemoteDrive:
    """Path-addressed operations over one namespace."""

    def __init__(
        self,
        realm: Realm,
        aggregator: ListingAggregator,
        resolver: PathResolver,
        walker: TreeWalker,
        materializer: DirectoryMaterializer,
    ) -> None:
        self.realm = realm
        self._aggregator = aggregator
        self._resolver = resolver
        self._walker = walker
        self._materializer = materializer

    def stat(self, path: str) -> Node:
        """Return the node at ``path``."""
        return self._resolver.resolve(self.realm, path)

    def list_dir(self, path: str, order: ListOrder | None = None) -> Listing:
        """List the children of the folder at ``path``, paths filled in.

        Raises:
            NotFound: If the path is missing or names a file.
        """
        folder = self._resolver.resolve(self.realm, path)
        if not folder.is_folder:
            logger.info("[list_dir] path is a file; path:%s", folder.path)
            raise NotFound(f"not a folder: {folder.path}")
        return self._aggregator.list_children(
            self.realm, folder, order=order, parent_path=folder.path
        )

    def path_of(self, file_id: str) -> str:
        return self._resolver.path_of(self.realm, file_id)

    def node_of(self, file_id: str) -> Node:
        return self._resolver.node_of(self.realm, file_id)

    def walk(
        self,
        path: str,
        callback: WalkCallback | None = None,
        keep_partial: bool = False,
        token: CancellationToken | None = None,
    ) -> list[Node] | None:
        return self._walker.walk(
            self.realm, path, callback=callback, keep_partial=keep_partial, token=token
        )

    def makedirs(self, path: str) -> MkdirResult:
        """Ensure every folder of ``path`` exists; see ``DirectoryMaterializer.ensure``."""
        return self._materializer.ensure(self.realm, path)


def remote_drive_from_config(
    config: AppConfig,
    client: DriveClient,
    realm: Realm | None = None,
) -> RemoteDrive:
    """Construct a RemoteDrive from application configuration.

    Args:
        config: Application configuration instance.
        client: Signed request client.
        realm: Namespace to operate on; the configured default when omitted.

    Returns:
        Configured RemoteDrive instance.
    """
    realm = realm or realm_from_config(config)
    files = FileApi(client)
    aggregator = ListingAggregator(files, page_size=config.page_size)
    resolver = PathResolver(files, aggregator, lookup_delay=config.path_lookup_delay)
    return RemoteDrive(
        realm=realm,
        aggregator=aggregator,
        resolver=resolver,
        walker=TreeWalker(resolver, aggregator, walk_delay=config.walk_delay),
        materializer=DirectoryMaterializer(files, aggregator),
    )
