"""Protocol definitions for Jotter.

This module defines the interfaces the generator depends on rather than
concrete classes, so collaborators (markup converters, the object storage
client) can be swapped out or faked in tests.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ContentRenderer(Protocol):
    """Protocol for converting a source body to output markup.

    Implementations handle specific content types (Markdown, HTML).
    """

    @abstractmethod
    def can_render(self, path: Path) -> bool:
        """Check if this renderer can handle the given file.

        Args:
            path: Path to the source file.

        Returns:
            True if this renderer can process the file.
        """
        ...

    @abstractmethod
    def render(self, content: str) -> str:
        """Render a source body.

        Args:
            content: Source content, with front matter removed.

        Returns:
            The converted body.
        """
        ...

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source type identifier (e.g., 'markdown', 'template')."""
        ...


@runtime_checkable
class ObjectStore(Protocol):
    """Subset of the boto3 S3 client used by the Publisher."""

    @abstractmethod
    def put_object(self, **kwargs: Any) -> Any:
        """Store one object.

        Called with Bucket, Key, Body, ContentType and ACL keyword arguments.
        """
        ...
