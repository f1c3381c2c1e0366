"""Store provider interface.

The merger never touches a mail store directly. Everything it needs - attaching
stores, walking folders, creating folders and moving items - goes through an
object implementing :class:`StoreProvider`. Concrete backends live in
:mod:`pst_merger.providers`.

Every handle a provider hands out (stores, folders, items) must be given back
with :meth:`StoreProvider.release` once the caller is done with it. Use
:func:`released` so that this also happens on error paths.
"""

from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Optional, Protocol, Sequence, runtime_checkable

# MAPI property holding the entry id of a store's top-of-information-store
# (IPM subtree) folder.
IPM_SUBTREE_ENTRYID = "http://schemas.microsoft.com/mapi/proptag/0x35E00102"


@runtime_checkable
class Store(Protocol):
    """An attached archive."""
    path: str
    store_id: str


@runtime_checkable
class Item(Protocol):
    """Opaque unit of content held by a folder."""


@runtime_checkable
class Folder(Protocol):
    """A node in a store's folder hierarchy."""
    name: str
    default_item_type: Optional[int]

    @property
    def store(self) -> Optional[Store]:
        """Store owning this folder, if the provider can tell."""

    def items(self) -> Sequence[Item]:
        """Items of this folder, in provider order."""

    def children(self) -> Sequence["Folder"]:
        """Immediate subfolders, in provider order."""


@runtime_checkable
class StoreProvider(Protocol):
    """Capabilities the merger needs from a mail store backend."""

    def attach_store(self, path: str) -> Store:
        """Open the store at ``path``, creating it if it does not exist."""

    def detach_store(self, store: Store) -> None:
        """Close a store previously returned by :meth:`attach_store`."""

    def enumerate_stores(self) -> Iterable[Store]:
        """All stores currently attached to the session."""

    def get_structural_property(self, store: Store, key: str) -> Any:
        """Read a store-level property; ``str``, ``bytes`` or ``None``."""

    def resolve_folder_by_id(self, entry_id: str, store_id: str) -> Optional[Folder]:
        """Look a folder up by entry id within the given store."""

    def enumerate_top_level_folders(self) -> Iterable[Folder]:
        """Top-level folders of every attached store."""

    def create_child_folder(self, parent: Folder, name: str,
                            item_type: Optional[int] = None) -> Folder:
        """Create a subfolder, optionally with a default item type."""

    def duplicate_item(self, item: Item) -> Item:
        """Create a copy of ``item``."""

    def relocate_item(self, item: Item, dest_folder: Folder) -> Item:
        """Move ``item`` into ``dest_folder`` and return it there."""

    def remove_item(self, item: Item) -> None:
        """Delete ``item`` from its folder."""

    def release(self, handle: Any) -> None:
        """Give back a handle. Must accept ``None`` and repeated calls."""


@contextmanager
def released(provider: StoreProvider, handle: Any) -> Iterator[Any]:
    """Yield ``handle`` and release it on exit, whatever happens."""
    try:
        yield handle
    finally:
        provider.release(handle)


@contextmanager
def released_all(provider: StoreProvider, handles: Sequence[Any]) -> Iterator[Sequence[Any]]:
    """
    Yield a sequence of handles and release every member, then the sequence
    itself, on exit.

    Use it for enumerations whose members are all given back by the caller;
    handles that outlive the block belong in :func:`released` instead.
    """
    try:
        yield handles
    finally:
        for handle in handles:
            provider.release(handle)
        provider.release(handles)
