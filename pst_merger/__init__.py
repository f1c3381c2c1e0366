"""
PST Merger - merge several mail archives into a single destination archive.

Features:
- One-directional merge of any number of source stores into one destination
- Folders matched by name (case-insensitive), missing ones created
- Items copied then removed, so a failure never loses the source copy
- Retries for transient folder lookup/creation failures
- Cooperative cancellation and checkpoint/resume between source stores
- Backends for Outlook (PST via MAPI), Maildir trees and in-memory stores
"""

__version__ = "1.0.0"
