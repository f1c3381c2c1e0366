"""Core merge logic: folder-by-folder absorption of one tree into another."""

import logging
import threading
import time
from typing import Callable, Optional

from .matcher import find_child_by_name
from .models import (
    ISSUE_COUNT,
    MergeIssue,
    MergeOptions,
    MergeStats,
    ProgressCallback,
    Severity,
)
from .provider import Folder, StoreProvider, released, released_all

logger = logging.getLogger(__name__)


class MergeEngine:
    """
    Merge a source folder tree into a destination folder tree.

    Items of each source folder are copied into the matching destination
    folder and then removed from the source. Subfolders are matched by name
    (ignoring case) or created, and merged recursively. Problems with single
    items or subfolders are reported through ``on_progress`` with a count of
    ``ISSUE_COUNT`` and never stop the traversal.
    """

    def __init__(
        self,
        provider: StoreProvider,
        on_progress: ProgressCallback,
        cancel_event: Optional[threading.Event] = None,
        options: Optional[MergeOptions] = None,
        source_name: str = "",
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.provider = provider
        self.on_progress = on_progress
        self.cancel_event = cancel_event or threading.Event()
        self.options = options or MergeOptions()
        self.source_name = source_name
        self.sleep = sleep
        self.stats = MergeStats()
        self.issues: list[MergeIssue] = []

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def report_issue(self, message: str, folder: Optional[str] = None,
                     severity: Severity = Severity.WARNING) -> None:
        """Record a non-fatal problem and pass it to the progress sink."""
        self.issues.append(MergeIssue(self.source_name, message, severity, folder))
        self.on_progress(ISSUE_COUNT, message)

    def merge_into(self, source: Folder, dest: Folder) -> None:
        """Merge ``source`` and all its subfolders into ``dest``."""
        if self.cancelled:
            return
        self._merge_items(source, dest)
        self._merge_subfolders(source, dest)

    def _merge_items(self, source: Folder, dest: Folder) -> None:
        with released(self.provider, source.items()) as items:
            # Walk backwards: removing an item shifts the ones after it.
            for index in range(len(items) - 1, -1, -1):
                if self.cancelled:
                    break
                self._merge_item(items, index, source, dest)

    def _merge_item(self, items, index: int, source: Folder, dest: Folder) -> None:
        item = copy = moved = None
        relocated = False
        try:
            item = items[index]
            copy = self.provider.duplicate_item(item)
            moved = self.provider.relocate_item(copy, dest)
            relocated = True
            self.stats.items_moved += 1
            if not self.options.keep_source_items:
                self.provider.remove_item(item)
        except Exception as e:
            if relocated:
                # The item now exists twice; a rerun would copy it again.
                self.stats.originals_left += 1
                self.report_issue(
                    f"Warning: Failed to remove original item in {source.name} after copying: {e}",
                    folder=source.name,
                )
            else:
                self.stats.items_failed += 1
                if copy is not None:
                    self._discard_copy(copy)
                self.report_issue(
                    f"Warning: Failed to copy item in {source.name}: {e}",
                    folder=source.name,
                )
        finally:
            for handle in (moved, copy, item):
                self.provider.release(handle)

    def _discard_copy(self, copy) -> None:
        """Best-effort removal of a duplicate that never reached its destination."""
        try:
            self.provider.remove_item(copy)
        except Exception as e:
            logger.warning("Could not remove stray copy left in source: %s", e)

    def _merge_subfolders(self, source: Folder, dest: Folder) -> None:
        with released_all(self.provider, source.children()) as children:
            for source_child in children:
                if self.cancelled:
                    break
                dest_child = self._resolve_dest_child(source_child, dest)
                if dest_child is None:
                    continue
                with released(self.provider, dest_child):
                    self.merge_into(source_child, dest_child)

    def _resolve_dest_child(self, source_child: Folder, dest: Folder) -> Optional[Folder]:
        """
        Find or create the destination counterpart of ``source_child``.

        Lookup and creation are retried up to ``options.max_attempts`` times,
        sleeping ``options.retry_delay`` seconds between attempts. Returns
        None once every attempt has failed.
        """
        name = source_child.name
        max_attempts = self.options.max_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                return self._find_or_create(source_child, dest)
            except Exception as e:
                if attempt == max_attempts:
                    self.stats.folders_skipped += 1
                    self.report_issue(
                        f"Error creating folder {name} after {max_attempts} attempts: {e}",
                        folder=name,
                        severity=Severity.ERROR,
                    )
                else:
                    self.report_issue(
                        f"Retry {attempt}/{max_attempts} for folder {name}: {e}",
                        folder=name,
                    )
                    self.sleep(self.options.retry_delay)
        return None

    def _find_or_create(self, source_child: Folder, dest: Folder) -> Folder:
        name = source_child.name
        existing = find_child_by_name(self.provider, dest, name)
        if existing is not None:
            self.stats.folders_matched += 1
            return existing

        item_type = source_child.default_item_type
        created = None
        if item_type is not None:
            try:
                created = self.provider.create_child_folder(dest, name, item_type)
            except Exception as e:
                # Root-like and special folders refuse an explicit type.
                logger.debug("Creating %s as type %s failed (%s), retrying untyped",
                             name, item_type, e)
        if created is None:
            created = self.provider.create_child_folder(dest, name)
        self.stats.folders_created += 1
        return created
