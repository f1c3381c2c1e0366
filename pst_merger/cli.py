"""Command-line interface for the PST merger."""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

from tqdm import tqdm

from .coordinator import merge_stores
from .db import MergeJournal
from .errors import ProviderUnavailableError
from .models import ISSUE_COUNT, MergeOptions, MergeSummary
from .paths import same_store_file
from .providers import get_provider

EXIT_CANCELLED = 130


def default_backend() -> str:
    return "outlook" if sys.platform == "win32" else "maildir"


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Merge several mail archives into one destination archive.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s old1.pst old2.pst -o merged.pst
  %(prog)s --backend maildir ~/Mail/work ~/Mail/home -o ~/Mail/all
        """
    )

    parser.add_argument("sources", type=Path, nargs="+", help="Source stores to merge")
    parser.add_argument(
        "--output", "-o",
        type=Path,
        required=True,
        help="Destination store (created if it does not exist)"
    )

    parser.add_argument(
        "--backend", "-b",
        choices=("outlook", "maildir"),
        default=default_backend(),
        help="Store backend (default: outlook on Windows, maildir elsewhere)"
    )

    parser.add_argument(
        "--db", "-d",
        type=Path,
        default=Path("merge_journal.db"),
        help="Path to SQLite journal used to resume interrupted runs (default: merge_journal.db)"
    )

    parser.add_argument(
        "--reset",
        action="store_true",
        help="Reset journal and start fresh"
    )

    parser.add_argument(
        "--keep-source",
        action="store_true",
        help="Copy items instead of moving them out of the source stores"
    )

    parser.add_argument(
        "--retries",
        type=int,
        default=3,
        help="Attempts to find or create each folder (default: 3)"
    )

    parser.add_argument(
        "--retry-delay",
        type=float,
        default=0.5,
        help="Seconds to wait between folder attempts (default: 0.5)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug)"
    )

    return parser.parse_args()


def validate_args(args: argparse.Namespace) -> None:
    """Validate command-line arguments."""
    for source in args.sources:
        if not source.exists():
            print(f"Error: Source store does not exist: {source}")
            sys.exit(1)
    if args.retries < 1:
        print("Error: --retries must be at least 1")
        sys.exit(1)
    if args.retry_delay < 0:
        print("Error: --retry-delay must not be negative")
        sys.exit(1)


def count_pending_sources(sources: list[str], destination: str, journal: MergeJournal) -> int:
    """Number of sources a run will merge, leaving out the destination and journaled ones."""
    return sum(
        1 for source in sources
        if not same_store_file(source, destination) and not journal.is_source_merged(source)
    )


def setup_logging(verbose: int = 0) -> None:
    """Configure logging based on verbosity level."""
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    logger = logging.getLogger("pst_merger")
    logger.handlers = []
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(level)


class ProgressReporter:
    """Progress sink drawing a bar over the source stores."""

    def __init__(self, total: int):
        self.pbar = tqdm(total=total, desc="Merging", unit="store")
        self.issue_count = 0

    def __call__(self, count: int, message: str) -> None:
        if count == ISSUE_COUNT:
            self.issue_count += 1
            tqdm.write(f"  {message}")
        elif count == 0:
            tqdm.write(message)
        else:
            self.pbar.set_postfix_str(message)
            self.pbar.update(count - self.pbar.n)

    def close(self) -> None:
        self.pbar.close()


def print_summary(summary: MergeSummary) -> None:
    """Print the outcome of a run."""
    if summary.issues:
        print(f"\n--- Problems ({len(summary.issues)} reported) ---")
        for issue in summary.issues[:10]:  # Show first 10
            print(f"  [{issue.source}] {issue.message}")
        if len(summary.issues) > 10:
            print(f"  ... and {len(summary.issues) - 10} more")
        print("-" * 20)

    stats = summary.stats
    print("\n" + "=" * 60)
    print("MERGE CANCELLED" if summary.cancelled else "MERGE COMPLETE!")
    print("=" * 60)
    print(f"Destination: {summary.destination}")
    print(f"Stores merged: {summary.sources_merged}")
    if summary.sources_skipped:
        print(f"  - Already merged earlier (skipped): {summary.sources_skipped}")
    if summary.sources_failed:
        print(f"  - Failed: {summary.sources_failed}")
    print(f"Items moved: {stats.items_moved}")
    if stats.items_failed:
        print(f"  - Items failed (left in source): {stats.items_failed}")
    if stats.originals_left:
        print(f"  - Copied but still in source (a rerun copies them again): {stats.originals_left}")
    print(f"Folders created: {stats.folders_created}")
    print(f"Folders matched: {stats.folders_matched}")
    if stats.folders_skipped:
        print(f"  - Folders skipped: {stats.folders_skipped}")


def main() -> None:
    """Main entry point."""
    args = parse_args()
    validate_args(args)
    setup_logging(args.verbose)

    # Handle reset
    if args.reset and args.db.exists():
        print("Resetting journal...")
        args.db.unlink()

    destination = str(args.output.absolute())
    sources = [str(source.absolute()) for source in args.sources]

    journal = MergeJournal(args.db)
    if not journal.belongs_to(destination):
        print(f"Error: Journal {args.db} belongs to another destination: {journal.get_destination()}")
        print("Use --reset to start fresh.")
        journal.close()
        sys.exit(1)
    journal.set_destination(destination)

    try:
        provider = get_provider(args.backend)
    except ProviderUnavailableError as e:
        print(f"Error: {e}")
        journal.close()
        sys.exit(1)

    print("=" * 60)
    print("PST MERGER")
    print("=" * 60)
    for source in sources:
        print(f"Source:      {source}")
    print(f"Destination: {destination}")
    print(f"Backend:     {args.backend}")
    if journal.get_merged_count():
        print(f"Resuming: {journal.get_merged_count()} stores already merged")

    options = MergeOptions(
        max_attempts=args.retries,
        retry_delay=args.retry_delay,
        keep_source_items=args.keep_source,
    )

    # First Ctrl+C stops after the current item, a second one aborts.
    cancel_event = threading.Event()

    def request_cancel(signum, frame):
        cancel_event.set()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    previous_handler = signal.signal(signal.SIGINT, request_cancel)
    reporter = ProgressReporter(count_pending_sources(sources, destination, journal))
    try:
        summary = merge_stores(
            provider,
            sources,
            destination,
            reporter,
            cancel_event=cancel_event,
            options=options,
            journal=journal,
        )
    except KeyboardInterrupt:
        reporter.close()
        print("\n\nInterrupted! Finished stores have been recorded.")
        print("To resume, run the same command again.")
        print("To start fresh, use --reset flag.")
        journal.close()
        sys.exit(1)
    except Exception as e:
        reporter.close()
        print(f"\nError: {e}")
        journal.close()
        sys.exit(1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        close = getattr(provider, "close", None)
        if close is not None:
            close()

    reporter.close()
    print_summary(summary)

    if summary.cancelled:
        print("\nStopped on request. Finished stores have been recorded.")
        print("To resume, run the same command again.")
        journal.close()
        sys.exit(EXIT_CANCELLED)

    journal.clear()
