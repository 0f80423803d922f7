"""Task sources the digest reads from. Sources are never written to."""

from taskdigest.source.base import BaseTaskSource, SourceError
from taskdigest.source.clickup import ClickUpSource

__all__ = [
    "BaseTaskSource",
    "SourceError",
    "ClickUpSource",
]
