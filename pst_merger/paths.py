"""Store path comparison helpers.

Store paths come from the user (or from Outlook's ``Store.FilePath``) and are
compared case-insensitively, the way Windows treats file names.
"""

import os
from pathlib import PureWindowsPath
from typing import Optional, Union


def paths_equal(first: Optional[str], second: Optional[str]) -> bool:
    """Case-insensitive exact comparison of two store paths."""
    if first is None or second is None:
        return False
    return first.casefold() == second.casefold()


def normalize_store_path(path: Union[str, os.PathLike]) -> str:
    """Absolute, normalised, case-folded form of a store path."""
    return os.path.normpath(os.path.abspath(os.fspath(path))).casefold()


def same_store_file(first: Union[str, os.PathLike], second: Union[str, os.PathLike]) -> bool:
    """Check whether two paths refer to the same store file."""
    return normalize_store_path(first) == normalize_store_path(second)


def store_display_name(path: Union[str, os.PathLike]) -> str:
    """File name part of a store path, accepting both separator styles."""
    return PureWindowsPath(os.fspath(path)).name or os.fspath(path)
