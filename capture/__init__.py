# capture/__init__.py
"""Capture package: frame sources polled by the motion detector."""

from .snapshot import SnapshotConfig, SnapshotError, SnapshotFrameSource
from .source import ArrayFrameSource, FrameSource

__all__ = [
    "FrameSource",
    "ArrayFrameSource",
    "SnapshotConfig",
    "SnapshotError",
    "SnapshotFrameSource",
]

__version__ = "0.1.0"
