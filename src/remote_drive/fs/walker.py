"""Tree walker — depth-first, pre-order traversal of the remote hierarchy."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from remote_drive.api.models import Node
from remote_drive.errors import Cancelled, DriveError

if TYPE_CHECKING:
    from remote_drive.api.realm import Realm
    from remote_drive.fs.listing import ListingAggregator
    from remote_drive.fs.resolver import PathResolver

logger = logging.getLogger(__name__)

# Seconds to wait before expanding each sub-folder
DEFAULT_WALK_DELAY = 0.2

# callback(depth, path, node, error) -> keep going
WalkCallback = Callable[[int, str, Node | None, DriveError | None], bool]


class CancellationToken:
    """Whole-walk stop flag, checked before every folder expansion."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class _Outcome:
    nodes: list[Node] = field(default_factory=list)
    error: DriveError | None = None
    cancelled: bool = False

    @property
    def completed(self) -> bool:
        return self.error is None and not self.cancelled


class TreeWalker:
    """Walks a remote subtree, reporting files to a caller-supplied callback."""

    def __init__(
        self,
        resolver: PathResolver,
        aggregator: ListingAggregator,
        walk_delay: float = DEFAULT_WALK_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialise the walker.

        Args:
            resolver: Resolves the starting path.
            aggregator: Lists each folder's children.
            walk_delay: Seconds to sleep before expanding each sub-folder.
            sleep: Sleep function, replaceable in tests.
        """
        self._resolver = resolver
        self._aggregator = aggregator
        self._walk_delay = walk_delay
        self._sleep = sleep

    def walk(
        self,
        realm: Realm,
        path: str,
        callback: WalkCallback | None = None,
        keep_partial: bool = False,
        token: CancellationToken | None = None,
    ) -> list[Node] | None:
        """Walk the subtree at ``path``.

        Files are reported as ``callback(depth, path, node, None)``; a folder
        whose listing fails is reported once as ``callback(depth, path, None,
        error)``. A ``False`` return stops the whole walk, not just the
        current folder. Children of the starting folder have depth 1; a
        starting file is reported at depth 0.

        Args:
            realm: Namespace to walk.
            path: Absolute path of the starting file or folder.
            callback: Per-entry callback; every entry is accepted when omitted.
            keep_partial: Return the nodes visited before a cancel or failure
                instead of None.
            token: Externally controlled cancellation flag.

        Returns:
            Every visited node (folders and files) in pre-order, or None when
            the walk was cancelled or failed and ``keep_partial`` is False.
        """
        outcome = self._run(realm, path, callback, token or CancellationToken())
        if outcome.completed or keep_partial:
            return outcome.nodes
        return None

    def walk_or_raise(
        self,
        realm: Realm,
        path: str,
        callback: WalkCallback | None = None,
        token: CancellationToken | None = None,
    ) -> list[Node]:
        """Walk like ``walk`` but raise instead of returning None.

        Raises:
            Cancelled: If the callback or the token stopped the walk.
            DriveError: The resolve or listing error that failed the walk.
        """
        outcome = self._run(realm, path, callback, token or CancellationToken())
        if outcome.error is not None:
            raise outcome.error
        if outcome.cancelled:
            raise Cancelled(f"walk of {path} cancelled after {len(outcome.nodes)} nodes")
        return outcome.nodes

    @staticmethod
    def _notify(
        callback: WalkCallback | None,
        depth: int,
        path: str,
        node: Node | None,
        error: DriveError | None,
    ) -> bool:
        if callback is None:
            return True
        return bool(callback(depth, path, node, error))

    def _run(
        self,
        realm: Realm,
        path: str,
        callback: WalkCallback | None,
        token: CancellationToken,
    ) -> _Outcome:
        outcome = _Outcome()
        try:
            start = self._resolver.resolve(realm, path)
        except DriveError as exc:
            logger.warning("[walk] start path unresolvable; path:%s;error:%s", path, exc)
            self._notify(callback, 0, path, None, exc)
            outcome.error = exc
            return outcome

        if not start.is_folder:
            outcome.nodes.append(start)
            self._notify(callback, 0, start.path or path, start, None)
            return outcome

        # Pending entries in reverse visiting order; the top is visited next.
        stack: list[tuple[Node, int]] = []

        def expand(folder: Node, depth: int) -> bool:
            if token.cancelled:
                return False
            try:
                listing = self._aggregator.list_children(realm, folder, parent_path=folder.path)
            except DriveError as exc:
                logger.warning(
                    "[walk] folder listing failed; path:%s;depth:%d;error:%s",
                    folder.path,
                    depth,
                    exc,
                )
                self._notify(callback, depth, folder.path, None, exc)
                outcome.error = exc
                return False
            stack.extend((child, depth) for child in reversed(listing.items))
            return True

        if not expand(start, 1):
            outcome.cancelled = outcome.error is None
            return outcome

        while stack:
            if token.cancelled:
                break
            node, depth = stack.pop()
            outcome.nodes.append(node)
            if node.is_folder:
                if self._walk_delay > 0:
                    self._sleep(self._walk_delay)
                if not expand(node, depth + 1):
                    break
            elif not self._notify(callback, depth, node.path, node, None):
                token.cancel()

        if outcome.error is None and token.cancelled:
            outcome.cancelled = True
            logger.info(
                "[walk] walk cancelled; path:%s;visited:%d",
                path,
                len(outcome.nodes),
            )
        return outcome
