"""Remote side of the pipeline: SSH sessions to the target servers."""

from filesync.remote.session import TRANSPORT_EXCEPTIONS, RemoteSession

__all__ = [
    "TRANSPORT_EXCEPTIONS",
    "RemoteSession",
]
