"""Outlook store provider.

Drives Outlook through its MAPI namespace with pywin32, so PST files can be
attached, walked and filled the same way Outlook itself does it. Only Windows
with Outlook installed is supported; elsewhere creating the provider raises
:class:`ProviderUnavailableError`.

COM collections are 1-based. The wrappers below expose them 0-based and keep
a reference to the underlying COM object until :meth:`OutlookProvider.release`
drops it.
"""

import logging
from typing import Any, Optional

try:  # pragma: no cover - only importable on Windows
    from win32com.client import Dispatch
except ImportError:  # pragma: no cover
    Dispatch = None

from ..errors import PstMergerError, ProviderUnavailableError
from ..paths import paths_equal

logger = logging.getLogger(__name__)

OL_FOLDER_DELETED_ITEMS = 3


class _ComHandle:
    """Wrapper owning one COM object reference."""

    def __init__(self, com: Any):
        self._com = com

    @property
    def com(self) -> Any:
        if self._com is None:
            raise PstMergerError(f"{type(self).__name__} used after release")
        return self._com

    def release(self) -> None:
        self._com = None


class OutlookStore(_ComHandle):
    """An attached Outlook store (PST or OST file)."""

    @property
    def path(self) -> str:
        return self.com.FilePath

    @property
    def store_id(self) -> str:
        return self.com.StoreID


class OutlookItem(_ComHandle):
    """Any Outlook item: mail, appointment, contact, task..."""


class OutlookItems(_ComHandle):
    """Zero-based view over a live ``Items`` collection."""

    def __len__(self) -> int:
        return self.com.Count

    def __getitem__(self, index: int) -> OutlookItem:
        if not 0 <= index < len(self):
            raise IndexError(index)
        return OutlookItem(self.com.Item(index + 1))


class OutlookFolder(_ComHandle):
    """An Outlook MAPI folder."""

    @property
    def name(self) -> str:
        return self.com.Name

    @property
    def default_item_type(self) -> Optional[int]:
        return self.com.DefaultItemType

    @property
    def store(self) -> Optional[OutlookStore]:
        com_store = self.com.Store
        return OutlookStore(com_store) if com_store is not None else None

    def items(self) -> OutlookItems:
        return OutlookItems(self.com.Items)

    def children(self) -> list["OutlookFolder"]:
        return [OutlookFolder(f) for f in self.com.Folders]


class OutlookProvider:
    """Store provider backed by an Outlook MAPI session."""

    def __init__(self) -> None:
        if Dispatch is None:
            raise ProviderUnavailableError(
                "Outlook COM automation unavailable (pywin32 / Outlook missing)"
            )
        self._app = Dispatch("Outlook.Application")
        self._namespace = self._app.GetNamespace("MAPI")

    def attach_store(self, path: str) -> OutlookStore:
        """Add a PST to the session; Outlook creates the file if needed."""
        logger.info("Attaching PST: %s", path)
        self._namespace.AddStore(path)
        for store in self.enumerate_stores():
            try:
                if paths_equal(store.path, path):
                    return store
            except Exception as e:
                logger.debug("Skipping store without file path: %s", e)
            store.release()
        raise PstMergerError(f"Outlook did not list the store after attaching {path}")

    def detach_store(self, store: OutlookStore) -> None:
        logger.info("Detaching PST: %s", store.path)
        self._namespace.RemoveStore(store.com.GetRootFolder())

    def enumerate_stores(self) -> list[OutlookStore]:
        return [OutlookStore(s) for s in self._namespace.Stores]

    def get_structural_property(self, store: OutlookStore, key: str) -> Any:
        return store.com.PropertyAccessor.GetProperty(key)

    def resolve_folder_by_id(self, entry_id: str, store_id: str) -> Optional[OutlookFolder]:
        com_folder = self._namespace.GetFolderFromID(entry_id, store_id)
        return OutlookFolder(com_folder) if com_folder is not None else None

    def enumerate_top_level_folders(self) -> list[OutlookFolder]:
        return [OutlookFolder(f) for f in self._namespace.Folders]

    def create_child_folder(self, parent: OutlookFolder, name: str,
                            item_type: Optional[int] = None) -> OutlookFolder:
        folders = parent.com.Folders
        if item_type is None:
            return OutlookFolder(folders.Add(name))
        return OutlookFolder(folders.Add(name, item_type))

    def duplicate_item(self, item: OutlookItem) -> OutlookItem:
        return OutlookItem(item.com.Copy())

    def relocate_item(self, item: OutlookItem, dest_folder: OutlookFolder) -> OutlookItem:
        return OutlookItem(item.com.Move(dest_folder.com))

    def remove_item(self, item: OutlookItem) -> None:
        """
        Delete ``item`` permanently.

        A plain ``Delete()`` only moves the item into its store's Deleted
        Items folder, which is part of the tree being merged. Items are moved
        there first and then deleted from it, which removes them for good.
        """
        com = item.com
        deleted_items = com.Parent.Store.GetDefaultFolder(OL_FOLDER_DELETED_ITEMS)
        if com.Parent.EntryID != deleted_items.EntryID:
            com = com.Move(deleted_items)
        com.Delete()

    def release(self, handle: Any) -> None:
        if isinstance(handle, _ComHandle):
            handle.release()

    def close(self) -> None:
        logger.info("Closing Outlook session")
        self._namespace = None
        self._app = None
