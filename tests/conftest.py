"""Pytest configuration — adds src/ to sys.path and provides an in-memory drive."""

import dataclasses
import os
import sys
from itertools import count

import pytest

# Add src/ to Python path so tests can import from remote_drive
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from remote_drive.api.models import (  # noqa: E402
    ROOT_ID,
    BasicInfo,
    CreatedFolder,
    ListingPage,
    ListOrder,
    Node,
)
from remote_drive.api.realm import Realm  # noqa: E402
from remote_drive.errors import DriveError, NotFound  # noqa: E402


class FakeFileApi:
    """In-memory stand-in for ``FileApi`` that records every request.

    ``calls`` holds ``("list", folder_id, page)``, ``("info", file_id)`` and
    ``("create", parent_id, name)`` tuples in request order.
    """

    def __init__(self) -> None:
        self.nodes: dict[str, Node] = {}
        self.children: dict[str, list[str]] = {ROOT_ID: []}
        self.calls: list[tuple] = []
        self.page_failures: dict[tuple[str, int], DriveError] = {}
        self.info_failures: dict[str, DriveError] = {}
        self.report_not_new = False
        # name -> error raised (or None for an is_new=False answer) the first
        # time that name is created; another client's folder appears first.
        self.create_races: dict[str, DriveError | None] = {}
        self._ids = count(100)

    def add(self, node_id: str, parent_id: str, name: str, is_folder: bool, size: int = 0) -> Node:
        node = Node(
            id=node_id,
            parent_id=parent_id,
            name=name,
            is_folder=is_folder,
            size=size,
            content_hash=f"HASH-{node_id}",
        )
        self.nodes[node_id] = node
        self.children.setdefault(parent_id, []).append(node_id)
        if is_folder:
            self.children.setdefault(node_id, [])
        return node

    def _sorted_children(self, folder_id: str) -> list[Node]:
        items = [self.nodes[child_id] for child_id in self.children.get(folder_id, [])]
        return [n for n in items if n.is_folder] + [n for n in items if not n.is_folder]

    def list_page(
        self,
        realm: Realm,
        folder: Node,
        order: ListOrder,
        page_num: int,
        page_size: int,
    ) -> ListingPage:
        self.calls.append(("list", folder.id, page_num))
        failure = self.page_failures.get((folder.id, page_num))
        if failure is not None:
            raise failure
        if folder.id not in self.children:
            raise NotFound(f"no folder {folder.id}")
        items = self._sorted_children(folder.id)
        start = (page_num - 1) * page_size
        page = [dataclasses.replace(item) for item in items[start : start + page_size]]
        return ListingPage(
            items=page,
            total_count=len(items),
            page_number=page_num,
            page_size=page_size,
        )

    def get_basic_info(self, realm: Realm, file_id: str) -> BasicInfo:
        self.calls.append(("info", file_id))
        failure = self.info_failures.get(file_id)
        if failure is not None:
            raise failure
        node = self.nodes.get(file_id)
        if node is None:
            raise NotFound(f"no file {file_id}")
        return BasicInfo(id=node.id, parent_id=node.parent_id, name=node.name)

    def create_folder(self, realm: Realm, parent: Node, name: str) -> CreatedFolder:
        self.calls.append(("create", parent.id, name))
        if name in self.create_races:
            failure = self.create_races.pop(name)
            raced = self.add(f"raced-{name}", parent.id, name, is_folder=True)
            if failure is not None:
                raise failure
            return CreatedFolder(folder_id=raced.id, is_new=False)
        if self.report_not_new:
            existing = next(
                (n for n in self._sorted_children(parent.id) if n.name == name),
                None,
            )
            folder_id = existing.id if existing else f"existing-{name}"
            return CreatedFolder(folder_id=folder_id, is_new=False)
        folder_id = f"d{next(self._ids)}"
        self.add(folder_id, parent.id, name, is_folder=True)
        return CreatedFolder(folder_id=folder_id, is_new=True)

    def count_calls(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)


@pytest.fixture
def fake_files() -> FakeFileApi:
    """An empty in-memory drive."""
    return FakeFileApi()


@pytest.fixture
def sample_drive(fake_files: FakeFileApi) -> FakeFileApi:
    """A small drive tree.

    /docs (f1)
        report.pdf (f2)
        sub (f3)
            a.txt (f4)
    /music (f5)
        song.mp3 (f6)
    /readme.txt (f7)
    """
    fake_files.add("f1", ROOT_ID, "docs", is_folder=True)
    fake_files.add("f2", "f1", "report.pdf", is_folder=False, size=2048)
    fake_files.add("f3", "f1", "sub", is_folder=True)
    fake_files.add("f4", "f3", "a.txt", is_folder=False, size=10)
    fake_files.add("f5", ROOT_ID, "music", is_folder=True)
    fake_files.add("f6", "f5", "song.mp3", is_folder=False, size=4096)
    fake_files.add("f7", ROOT_ID, "readme.txt", is_folder=False, size=1)
    return fake_files
