"""ArchCare: Arch Linux maintenance and system health checks."""

__version__ = "1.0.0"
