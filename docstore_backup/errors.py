"""Exception hierarchy for export and restore runs."""

from pathlib import Path
from typing import Any, Optional, Tuple


class BackupError(Exception):
    """Base exception for docstore-backup operations."""
    pass


class ProtocolError(BackupError):
    """The store answered, but not with what the scroll protocol requires."""
    pass


class TransportError(BackupError):
    """A request to the store failed at the network or client layer."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ScrollExpiredError(TransportError):
    """The server no longer holds the scroll context."""
    pass


class ParseError(BackupError):
    """A stored document file could not be parsed."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Failed to parse {path}: {reason}")
        self.path = path
        self.reason = reason


class PathCollisionError(BackupError):
    """Two distinct document identities sanitized to the same file path."""

    def __init__(
        self,
        path: Path,
        existing: Tuple[str, str, str],
        incoming: Tuple[str, str, str],
    ):
        super().__init__(
            f"Path collision at {path}: {incoming} would overwrite {existing}"
        )
        self.path = path
        self.existing = existing
        self.incoming = incoming


class ArchivePipelineError(BackupError):
    """Packing or unpacking the backup tree failed."""

    def __init__(self, message: str, diagnostic: str = ""):
        full = f"{message}\n{diagnostic}" if diagnostic else message
        super().__init__(full)
        self.diagnostic = diagnostic
