"""Store provider backends."""

from ..provider import StoreProvider

BACKENDS = ("outlook", "maildir", "memory")


def get_provider(name: str) -> StoreProvider:
    """
    Create the store provider for a backend name.

    The Outlook backend is imported lazily since it needs pywin32.

    Raises:
        ValueError: If the backend name is unknown.
        ProviderUnavailableError: If the backend cannot run on this machine.
    """
    if name == "outlook":
        from .outlook import OutlookProvider
        return OutlookProvider()
    if name == "maildir":
        from .maildir import MaildirProvider
        return MaildirProvider()
    if name == "memory":
        from .memory import MemoryProvider
        return MemoryProvider()
    raise ValueError(f"Unknown backend: {name} (expected one of {', '.join(BACKENDS)})")
