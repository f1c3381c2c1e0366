"""Folder lookup by name."""

from typing import Optional

from .provider import Folder, StoreProvider, released


def names_match(first: str, second: str) -> bool:
    """Case-insensitive folder name comparison."""
    return first.casefold() == second.casefold()


def find_child_by_name(provider: StoreProvider, parent: Folder, name: str) -> Optional[Folder]:
    """
    Find an immediate subfolder of ``parent`` called ``name``.

    The comparison ignores case and only looks one level down. When several
    children share the name, the first one in provider order wins. Every
    other child handle is released, also when reading a name fails; the
    returned folder belongs to the caller.
    """
    found = None
    with released(provider, parent.children()) as children:
        try:
            for child in children:
                if names_match(child.name, name):
                    found = child
                    break
        finally:
            for child in children:
                if child is not found:
                    provider.release(child)
    return found
