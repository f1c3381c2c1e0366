"""Shared test fixtures."""

import logging
import tempfile
from email.message import EmailMessage
from pathlib import Path

import pytest

from pst_merger.db import MergeJournal
from pst_merger.models import ISSUE_COUNT
from pst_merger.providers.memory import MemoryFolder, MemoryProvider


class ProgressRecorder:
    """Progress sink collecting every (count, message) event."""

    def __init__(self):
        self.events = []

    def __call__(self, count, message):
        self.events.append((count, message))

    @property
    def issues(self):
        return [message for count, message in self.events if count == ISSUE_COUNT]

    @property
    def counts(self):
        return [count for count, _ in self.events if count > 0]


def populate(folder: MemoryFolder, layout: dict) -> MemoryFolder:
    """
    Fill a memory folder from a compact layout.

    ``{"Inbox": ["m1", "m2", {"Drafts": ["m3"]}]}`` creates folder Inbox with
    items m1 and m2 and a Drafts subfolder holding m3.
    """
    for name, entries in layout.items():
        child = folder.add_folder(name)
        for entry in entries:
            if isinstance(entry, dict):
                populate(child, entry)
            else:
                child.add_item(entry)
    return folder


def make_message(subject: str, body: str = "Hello") -> EmailMessage:
    """Create a simple email message."""
    msg = EmailMessage()
    msg["From"] = "alice@example.com"
    msg["To"] = "bob@example.com"
    msg["Subject"] = subject
    msg.set_content(body)
    return msg


@pytest.fixture(autouse=True)
def reset_logger():
    """Drop handlers installed by setup_logging."""
    yield
    logger = logging.getLogger("pst_merger")
    logger.handlers = []
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def provider():
    """Create an empty MemoryProvider."""
    return MemoryProvider()


@pytest.fixture
def recorder():
    """Create a progress sink recording all events."""
    return ProgressRecorder()


@pytest.fixture
def source_store(provider):
    """Source store with Inbox/[m1, m2] and Inbox/Drafts/[m3]."""
    store = provider.add_store("C:\\mail\\source.pst")
    populate(store.root, {"Inbox": ["m1", "m2", {"Drafts": ["m3"]}]})
    return store


@pytest.fixture
def dest_store(provider):
    """Empty destination store."""
    return provider.add_store("C:\\mail\\merged.pst")


@pytest.fixture
def db_path(temp_dir):
    """Create a temporary database path."""
    return temp_dir / "test_journal.db"


@pytest.fixture
def journal(db_path):
    """Create a MergeJournal instance."""
    db = MergeJournal(db_path)
    yield db
    try:
        db.close()
    except Exception:
        pass
