"""Maildir store provider.

A store is a Maildir directory; subfolders are nested ``.Name`` maildirs as
created by :meth:`mailbox.Maildir.add_folder`. Folder entry ids are the
``/``-joined folder names below the store root, the root itself being ``/``.

Relocating a message writes it into the destination folder and reads it back,
comparing xxhash digests, so the original is only removed once an identical
copy is on disk.
"""

import email.generator
import io
import logging
import mailbox
import os
from pathlib import Path
from typing import Optional

import xxhash

from ..errors import ItemCopyError
from ..paths import paths_equal
from ..provider import IPM_SUBTREE_ENTRYID

logger = logging.getLogger(__name__)

ROOT_ENTRY_ID = "/"


def compute_message_hash(data: bytes) -> str:
    """Compute hash of a message using xxhash (fast hashing algorithm)."""
    return xxhash.xxh64(data).hexdigest()


def serialize_message(message: mailbox.MaildirMessage) -> bytes:
    """Flatten a message exactly the way :class:`mailbox.Maildir` writes it."""
    buffer = io.BytesIO()
    email.generator.BytesGenerator(buffer, mangle_from_=False, maxheaderlen=0).flatten(message)
    return buffer.getvalue()


class MaildirStore:
    """An attached Maildir tree."""

    def __init__(self, path: str):
        self.path = path
        self.store_id = str(Path(path).resolve())
        self.mailbox = mailbox.Maildir(path, factory=None, create=True)

    def __repr__(self):
        return f"MaildirStore({self.path!r})"


class MaildirItem:
    """A message in a folder, or a detached copy waiting to be placed."""

    def __init__(self, folder: "MaildirFolder", key: Optional[str] = None,
                 message: Optional[mailbox.MaildirMessage] = None):
        self.folder = folder
        self.key = key
        self.message = message

    @property
    def is_stored(self) -> bool:
        return self.key is not None


class MaildirFolder:
    """A folder of a Maildir store."""

    default_item_type = None

    def __init__(self, store: MaildirStore, box: mailbox.Maildir,
                 entry_id: str = ROOT_ENTRY_ID):
        self.store = store
        self.mailbox = box
        self.entry_id = entry_id

    @property
    def name(self) -> str:
        if self.entry_id == ROOT_ENTRY_ID:
            return Path(self.store.path).name
        return self.entry_id.rsplit("/", 1)[-1]

    def items(self) -> list[MaildirItem]:
        return [MaildirItem(self, key) for key in sorted(self.mailbox.keys())]

    def children(self) -> list["MaildirFolder"]:
        return [self.child(name) for name in sorted(self.mailbox.list_folders())]

    def child(self, name: str) -> "MaildirFolder":
        return MaildirFolder(self.store, self.mailbox.get_folder(name), self._child_id(name))

    def _child_id(self, name: str) -> str:
        if self.entry_id == ROOT_ENTRY_ID:
            return name
        return f"{self.entry_id}/{name}"

    def __repr__(self):
        return f"MaildirFolder({self.entry_id!r})"


class MaildirProvider:
    """Store provider for Maildir directory trees."""

    def __init__(self):
        self.attached: list[MaildirStore] = []

    def attach_store(self, path: str) -> MaildirStore:
        for store in self.attached:
            if paths_equal(store.path, path):
                return store
        if os.path.exists(path) and not os.path.isdir(path):
            raise NotADirectoryError(f"Not a Maildir directory: {path}")
        store = MaildirStore(path)
        self.attached.append(store)
        logger.debug("Opened Maildir %s", path)
        return store

    def detach_store(self, store: MaildirStore) -> None:
        store.mailbox.close()
        if store in self.attached:
            self.attached.remove(store)

    def enumerate_stores(self) -> list[MaildirStore]:
        return list(self.attached)

    def get_structural_property(self, store: MaildirStore, key: str) -> Optional[str]:
        if key == IPM_SUBTREE_ENTRYID:
            return ROOT_ENTRY_ID
        return None

    def resolve_folder_by_id(self, entry_id: str, store_id: str) -> Optional[MaildirFolder]:
        for store in self.attached:
            if store.store_id != store_id:
                continue
            folder = MaildirFolder(store, store.mailbox)
            if entry_id == ROOT_ENTRY_ID:
                return folder
            for name in entry_id.split("/"):
                if name not in folder.mailbox.list_folders():
                    return None
                folder = folder.child(name)
            return folder
        return None

    def enumerate_top_level_folders(self) -> list[MaildirFolder]:
        return [MaildirFolder(store, store.mailbox) for store in self.attached]

    def create_child_folder(self, parent: MaildirFolder, name: str,
                            item_type: Optional[int] = None) -> MaildirFolder:
        if "/" in name or name.startswith("."):
            raise ValueError(f"Invalid Maildir folder name: {name!r}")
        parent.mailbox.add_folder(name)
        return parent.child(name)

    def duplicate_item(self, item: MaildirItem) -> MaildirItem:
        message = item.folder.mailbox.get_message(item.key)
        return MaildirItem(item.folder, message=message)

    def relocate_item(self, item: MaildirItem, dest_folder: MaildirFolder) -> MaildirItem:
        if item.message is None:
            item.message = item.folder.mailbox.get_message(item.key)
        expected = compute_message_hash(serialize_message(item.message))
        key = dest_folder.mailbox.add(item.message)
        actual = compute_message_hash(dest_folder.mailbox.get_bytes(key))
        if actual != expected:
            dest_folder.mailbox.discard(key)
            raise ItemCopyError(
                f"Copy in {dest_folder.name} does not match original ({actual} != {expected})"
            )
        if item.is_stored:
            item.folder.mailbox.remove(item.key)
        return MaildirItem(dest_folder, key)

    def remove_item(self, item: MaildirItem) -> None:
        if item.is_stored:
            item.folder.mailbox.discard(item.key)
            item.key = None

    def release(self, handle) -> None:
        """Maildir handles hold no open resources."""
