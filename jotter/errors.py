"""Exception types raised by Jotter.

Every error raised on purpose by the generator derives from JotterError so the
CLI and the watch coordinator can report it without catching unrelated bugs.
Errors tied to a file carry the offending path so users can find the problem.
"""

from __future__ import annotations

from pathlib import Path


class JotterError(Exception):
    """Base class for all Jotter errors."""


class ConfigError(JotterError):
    """Missing or malformed site configuration."""


class _FileError(JotterError):
    """Error with file context.

    Attributes:
        source_path: Path to the file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path | str,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


class ScanError(_FileError):
    """A source file could not be read or parsed while scanning."""


class TemplateError(_FileError):
    """A layout is missing or a template failed to compile or execute."""


class SyncError(_FileError):
    """The destination directory could not be prepared or written."""


class PublishError(JotterError):
    """A file could not be uploaded, even after retrying.

    Attributes:
        key: Object key of the file that failed.
        message: Human-readable error message.
        original_error: The last exception raised by the storage client.
    """

    def __init__(self, key: str, message: str, original_error: Exception | None = None):
        self.key = key
        self.message = message
        self.original_error = original_error
        super().__init__(f"{key}: {message}")
