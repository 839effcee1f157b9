"""filesync - One-way local-to-remote file mirroring over SSH."""

__version__ = "1.0.0"
