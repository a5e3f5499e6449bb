"""Flat-file export and bulk restore of document store indices."""

from .manager import BackupManager
from .models import BackupManifest, BackupMetadata, ExportSummary, RestoreSummary

__all__ = ["BackupManager", "BackupManifest", "BackupMetadata", "ExportSummary", "RestoreSummary"]
