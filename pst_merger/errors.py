"""Exceptions raised by the merger and its store providers."""


class PstMergerError(Exception):
    """Base class for merger errors."""


class RootNotFoundError(PstMergerError):
    """Raised when the top-level content folder of a store cannot be found."""

    def __init__(self, store_path: str):
        super().__init__(f"Could not find root folder of {store_path}")
        self.store_path = store_path


class ProviderUnavailableError(PstMergerError):
    """Raised when a store backend cannot be started on this machine."""


class ItemCopyError(PstMergerError):
    """Raised when a relocated item cannot be verified in its destination."""
