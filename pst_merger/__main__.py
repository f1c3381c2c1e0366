"""Allow running as ``python -m pst_merger``."""

from .cli import main

if __name__ == "__main__":
    main()
