"""Helper modules for the ArtPrintWeb order workflow."""

__all__ = [
    "mockup_poller",
    "simulation",
]
