"""In-memory store provider.

Stores live in the provider keyed by path and survive detaching, the way
files on disk would. Items are plain objects; duplicating one places the copy
next to the original in the same folder, as Outlook's ``Copy()`` does.
"""

import itertools
from typing import Any, Optional, Union

from ..provider import IPM_SUBTREE_ENTRYID

_entry_ids = itertools.count(1)


def _next_entry_id() -> str:
    return f"{next(_entry_ids):016X}"


class MemoryItem:
    """A unit of content; ``payload`` is whatever the test or caller stores."""

    def __init__(self, payload: Any, folder: Optional["MemoryFolder"] = None):
        self.payload = payload
        self.folder = folder

    def __repr__(self):
        return f"MemoryItem({self.payload!r})"


class MemoryFolder:
    """A folder holding items and subfolders."""

    def __init__(self, name: str, default_item_type: Optional[int] = None,
                 store: Optional["MemoryStore"] = None,
                 parent: Optional["MemoryFolder"] = None):
        self.name = name
        self.default_item_type = default_item_type
        self.store = store
        self.parent = parent
        self.entry_id = _next_entry_id()
        self._items: list[MemoryItem] = []
        self._children: list[MemoryFolder] = []

    def items(self) -> list[MemoryItem]:
        # Live list: removals are visible to the caller, like a COM collection.
        return self._items

    def children(self) -> list["MemoryFolder"]:
        return list(self._children)

    def add_item(self, payload: Any) -> MemoryItem:
        item = MemoryItem(payload, self)
        self._items.append(item)
        return item

    def add_folder(self, name: str, default_item_type: Optional[int] = None) -> "MemoryFolder":
        child = MemoryFolder(name, default_item_type, self.store, self)
        self._children.append(child)
        return child

    def payloads(self) -> list[Any]:
        return [item.payload for item in self._items]

    def walk(self):
        """Yield ``(relative_path, folder)`` for this folder and its descendants."""
        yield "", self
        for child in self._children:
            for path, folder in child.walk():
                yield (f"{child.name}/{path}" if path else child.name), folder

    def __repr__(self):
        return f"MemoryFolder({self.name!r})"


class MemoryStore:
    """An archive: a root folder plus store-level properties."""

    def __init__(self, path: str, root_name: str = "Top of Personal Folders",
                 entry_id_as_bytes: bool = False):
        self.path = path
        self.store_id = _next_entry_id()
        self.root = MemoryFolder(root_name, store=self)
        self.properties: dict[str, Union[str, bytes]] = {}
        self.set_subtree_property(as_bytes=entry_id_as_bytes)

    def set_subtree_property(self, as_bytes: bool = False) -> None:
        value = self.root.entry_id
        self.properties[IPM_SUBTREE_ENTRYID] = bytes.fromhex(value) if as_bytes else value

    def find_folder(self, path: str) -> Optional[MemoryFolder]:
        """Look a folder up by ``/``-separated path relative to the root."""
        for relative, folder in self.root.walk():
            if relative == path:
                return folder
        return None

    def __repr__(self):
        return f"MemoryStore({self.path!r})"


class MemoryProvider:
    """Store provider keeping every store in memory."""

    def __init__(self):
        self.stores: dict[str, MemoryStore] = {}
        self.attached: list[MemoryStore] = []
        self.released: list[Any] = []

    def add_store(self, path: str, **kwargs) -> MemoryStore:
        """Create a store without attaching it."""
        store = MemoryStore(path, **kwargs)
        self.stores[path.casefold()] = store
        return store

    def attach_store(self, path: str) -> MemoryStore:
        store = self.stores.get(path.casefold()) or self.add_store(path)
        if store not in self.attached:
            self.attached.append(store)
        return store

    def detach_store(self, store: MemoryStore) -> None:
        if store not in self.attached:
            raise ValueError(f"Store is not attached: {store.path}")
        self.attached.remove(store)

    def enumerate_stores(self) -> list[MemoryStore]:
        return list(self.attached)

    def get_structural_property(self, store: MemoryStore, key: str):
        return store.properties.get(key)

    def resolve_folder_by_id(self, entry_id: str, store_id: str) -> Optional[MemoryFolder]:
        for store in self.attached:
            if store.store_id != store_id:
                continue
            for _, folder in store.root.walk():
                if folder.entry_id == entry_id:
                    return folder
        return None

    def enumerate_top_level_folders(self) -> list[MemoryFolder]:
        return [store.root for store in self.attached]

    def create_child_folder(self, parent: MemoryFolder, name: str,
                            item_type: Optional[int] = None) -> MemoryFolder:
        return parent.add_folder(name, item_type)

    def duplicate_item(self, item: MemoryItem) -> MemoryItem:
        if item.folder is None:
            raise ValueError("Item is not in a folder")
        return item.folder.add_item(item.payload)

    def relocate_item(self, item: MemoryItem, dest_folder: MemoryFolder) -> MemoryItem:
        if item.folder is not None:
            item.folder._items.remove(item)
        dest_folder._items.append(item)
        item.folder = dest_folder
        return item

    def remove_item(self, item: MemoryItem) -> None:
        if item.folder is not None:
            item.folder._items.remove(item)
            item.folder = None

    def release(self, handle: Any) -> None:
        if handle is not None:
            self.released.append(handle)

