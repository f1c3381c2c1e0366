"""Resolution of a store's top-level content folder."""

import logging
from typing import Any, Optional

from .paths import paths_equal
from .provider import IPM_SUBTREE_ENTRYID, Folder, Store, StoreProvider, released

logger = logging.getLogger(__name__)


def entry_id_to_text(value: Any) -> Optional[str]:
    """
    Convert a raw entry id property value to its textual form.

    Text is returned unchanged. Binary values (``bytes``, ``bytearray`` or
    ``memoryview``, depending on the backend) become upper-case hex, which is
    what ``GetFolderFromID`` expects. Anything else yields ``None``.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex().upper()
    return None


def _store_matches(store: Store, store_path: str) -> bool:
    try:
        return paths_equal(store.path, store_path)
    except Exception as e:
        logger.debug("Could not read path of store %r: %s", store, e)
        return False


def find_store(provider: StoreProvider, store_path: str) -> Optional[Store]:
    """Find the attached store whose path matches ``store_path``."""
    found = None
    with released(provider, provider.enumerate_stores()) as stores:
        for store in stores:
            if found is None and _store_matches(store, store_path):
                found = store
            else:
                provider.release(store)
    return found


def _resolve_from_subtree_property(provider: StoreProvider, store: Store) -> Optional[Folder]:
    value = provider.get_structural_property(store, IPM_SUBTREE_ENTRYID)
    entry_id = entry_id_to_text(value)
    if not entry_id:
        return None
    return provider.resolve_folder_by_id(entry_id, store.store_id)


def _owned_by(provider: StoreProvider, folder: Folder, store_path: str) -> bool:
    owner = None
    try:
        owner = folder.store
        return owner is not None and paths_equal(owner.path, store_path)
    except Exception as e:
        logger.debug("Skipping unreadable top-level folder: %s", e)
        return False
    finally:
        provider.release(owner)


def _scan_top_level_folders(provider: StoreProvider, store_path: str) -> Optional[Folder]:
    found = None
    with released(provider, provider.enumerate_top_level_folders()) as folders:
        for folder in folders:
            if found is None and _owned_by(provider, folder, store_path):
                found = folder
            else:
                provider.release(folder)
    return found


def resolve_root(provider: StoreProvider, store_path: str) -> Optional[Folder]:
    """
    Find the top-level content folder of the attached store at ``store_path``.

    The store's IPM subtree entry id is tried first. If the store is not
    listed, the property is missing, or resolving it fails in any way, the
    top-level folders of the session are scanned for one owned by a store
    with the same path.

    Returns:
        The root folder, or None if no folder could be found. The caller owns
        the returned handle.
    """
    store = find_store(provider, store_path)
    if store is not None:
        try:
            root = _resolve_from_subtree_property(provider, store)
            if root is not None:
                return root
            logger.debug("No IPM subtree entry id for %s, scanning folders", store_path)
        except Exception as e:
            logger.debug("Failed to resolve IPM subtree of %s: %s", store_path, e)
        finally:
            provider.release(store)

    return _scan_top_level_folders(provider, store_path)
