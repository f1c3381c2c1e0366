"""Data models for the PST merger."""

from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Callable, Optional

# Progress sink: (count, message). A count of ISSUE_COUNT marks a warning or
# error rather than a position in the source list.
ProgressCallback = Callable[[int, str], None]

ISSUE_COUNT = -1


class Severity(Enum):
    """How bad a reported issue is."""
    WARNING = "warning"
    ERROR = "error"


@dataclass
class MergeOptions:
    """Tunable behaviour of a merge run."""
    max_attempts: int = 3
    retry_delay: float = 0.5
    keep_source_items: bool = False

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must not be negative")


@dataclass
class MergeStats:
    """Counters collected while merging folder trees."""
    items_moved: int = 0
    items_failed: int = 0
    folders_created: int = 0
    folders_matched: int = 0
    folders_skipped: int = 0
    originals_left: int = 0

    def add(self, other: "MergeStats") -> None:
        self.items_moved += other.items_moved
        self.items_failed += other.items_failed
        self.folders_created += other.folders_created
        self.folders_matched += other.folders_matched
        self.folders_skipped += other.folders_skipped
        self.originals_left += other.originals_left

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MergeIssue:
    """Record of a non-fatal problem reported during a run."""
    source: str
    message: str
    severity: Severity = Severity.WARNING
    folder: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["severity"] = self.severity.value
        return data


@dataclass
class MergeSummary:
    """Outcome of merging a list of source stores into one destination."""
    destination: str
    sources_merged: int = 0
    sources_failed: int = 0
    sources_skipped: int = 0
    cancelled: bool = False
    stats: MergeStats = field(default_factory=MergeStats)
    issues: list[MergeIssue] = field(default_factory=list)

    @property
    def errors(self) -> list[MergeIssue]:
        return [i for i in self.issues if i.severity is Severity.ERROR]

    @property
    def warnings(self) -> list[MergeIssue]:
        return [i for i in self.issues if i.severity is Severity.WARNING]
