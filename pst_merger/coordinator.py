"""Merging a list of source stores into one destination store."""

import logging
import threading
from typing import Iterable, Optional

from .db import MergeJournal
from .engine import MergeEngine
from .errors import RootNotFoundError
from .models import (
    ISSUE_COUNT,
    MergeIssue,
    MergeOptions,
    MergeSummary,
    ProgressCallback,
    Severity,
)
from .paths import same_store_file, store_display_name
from .provider import Folder, Store, StoreProvider
from .resolver import resolve_root

logger = logging.getLogger(__name__)


def _report(summary: MergeSummary, on_progress: ProgressCallback, source: str,
            message: str, severity: Severity = Severity.ERROR) -> None:
    summary.issues.append(MergeIssue(source, message, severity))
    on_progress(ISSUE_COUNT, message)


def _detach(provider: StoreProvider, store: Store, path: str,
            summary: MergeSummary, on_progress: ProgressCallback) -> None:
    name = store_display_name(path)
    try:
        provider.detach_store(store)
        logger.info("Detached %s", path)
    except Exception as e:
        _report(summary, on_progress, name,
                f"Warning: Failed to detach {name}: {e}", Severity.WARNING)
    finally:
        provider.release(store)


def merge_source_store(
    provider: StoreProvider,
    source_path: str,
    dest_root: Folder,
    on_progress: ProgressCallback,
    summary: MergeSummary,
    cancel_event: threading.Event,
    options: MergeOptions,
) -> bool:
    """
    Attach one source store, merge it into ``dest_root`` and detach it.

    Every failure is reported through ``on_progress`` and recorded in
    ``summary``; nothing is raised. Returns True when the whole source tree
    was traversed without cancellation.
    """
    name = store_display_name(source_path)
    try:
        store = provider.attach_store(source_path)
    except Exception as e:
        _report(summary, on_progress, name, f"Error processing {name}: {e}")
        return False
    logger.info("Attached source %s", source_path)

    engine = MergeEngine(provider, on_progress, cancel_event, options, source_name=name)
    try:
        source_root = resolve_root(provider, source_path)
        if source_root is None:
            _report(summary, on_progress, name,
                    f"Error processing {name}: {RootNotFoundError(source_path)}")
            return False
        try:
            engine.merge_into(source_root, dest_root)
        finally:
            provider.release(source_root)
        return not cancel_event.is_set()
    except Exception as e:
        _report(summary, on_progress, name, f"Error processing {name}: {e}")
        return False
    finally:
        summary.stats.add(engine.stats)
        summary.issues.extend(engine.issues)
        _detach(provider, store, source_path, summary, on_progress)


def merge_stores(
    provider: StoreProvider,
    source_paths: Iterable[str],
    destination_path: str,
    on_progress: ProgressCallback,
    cancel_event: Optional[threading.Event] = None,
    options: Optional[MergeOptions] = None,
    journal: Optional[MergeJournal] = None,
) -> MergeSummary:
    """
    Merge every source store into the destination store.

    Sources are processed in order, each attached, merged and detached before
    the next one. A source that is the destination file itself is skipped
    without counting. Sources already recorded in ``journal`` are skipped as
    well, and each source that finishes uncancelled is recorded there.

    Raises:
        RootNotFoundError: If the destination root folder cannot be found.
        Exception: Whatever the provider raises when attaching the destination.
    """
    cancel_event = cancel_event or threading.Event()
    options = options or MergeOptions()
    summary = MergeSummary(destination=destination_path)
    dest_name = store_display_name(destination_path)

    on_progress(0, f"Opening destination: {dest_name}")
    dest_store = provider.attach_store(destination_path)
    logger.info("Attached destination %s", destination_path)
    try:
        dest_root = resolve_root(provider, destination_path)
        if dest_root is None:
            raise RootNotFoundError(destination_path)
        try:
            count = 0
            for source_path in source_paths:
                if cancel_event.is_set():
                    break
                if same_store_file(source_path, destination_path):
                    logger.debug("Skipping destination listed as source: %s", source_path)
                    continue
                if journal is not None and journal.is_source_merged(source_path):
                    logger.info("Already merged in a previous run: %s", source_path)
                    summary.sources_skipped += 1
                    continue

                count += 1
                on_progress(count, f"Merging: {store_display_name(source_path)}")
                moved_before = summary.stats.items_moved
                completed = merge_source_store(
                    provider, source_path, dest_root, on_progress,
                    summary, cancel_event, options,
                )
                if completed:
                    summary.sources_merged += 1
                    if journal is not None:
                        journal.mark_source_merged(
                            source_path, summary.stats.items_moved - moved_before
                        )
                elif not cancel_event.is_set():
                    summary.sources_failed += 1
        finally:
            provider.release(dest_root)
    finally:
        summary.cancelled = cancel_event.is_set()
        _detach(provider, dest_store, destination_path, summary, on_progress)

    return summary
