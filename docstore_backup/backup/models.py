"""Data models for backup/restore operations."""

from datetime import datetime
from typing import Dict, List
from pydantic import BaseModel, Field


class BackupManifest(BaseModel):
    """Backup tree manifest with metadata and statistics."""

    backup_id: str = Field(..., description="Unique backup identifier")
    created_at: datetime = Field(..., description="Backup creation timestamp")
    docstore_backup_version: str = Field(..., description="docstore-backup version")
    source_url: str = Field("", description="Store the documents were exported from")
    indices: List[str] = Field(default_factory=list, description="Exported index expressions")
    mode: str = Field("scan", description="Export strategy used")
    statistics: Dict[str, int] = Field(default_factory=dict, description="Data statistics")
    checksum: str = Field("", description="SHA-256 checksum of the document tree")


class BackupMetadata(BaseModel):
    """Backup metadata returned to callers."""

    backup_id: str
    created_at: datetime
    size_bytes: int
    artifact: str
    indices: List[str]
    statistics: Dict[str, int]


class ExportSummary(BaseModel):
    """Outcome of one export run."""

    documents: int = 0
    pages: int = 0
    collisions: List[str] = Field(default_factory=list)

    def statistics(self) -> Dict[str, int]:
        return {
            "documents": self.documents,
            "pages": self.pages,
            "collisions": len(self.collisions),
        }


class RestoreSummary(BaseModel):
    """Outcome of one restore run: what made it into the store and what did not."""

    succeeded: int = 0
    failed: int = 0
    parse_errors: int = 0
    batches: int = 0
    failed_batches: int = 0
    errors: List[str] = Field(default_factory=list)

    @property
    def total_failed(self) -> int:
        return self.failed + self.parse_errors
