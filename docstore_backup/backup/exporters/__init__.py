"""Export strategies for backup operations."""

from .base import ExportStrategy
from .scan_exporter import ScanExportStrategy
from .factory import get_export_strategy, EXPORT_STRATEGIES

__all__ = ["ExportStrategy", "ScanExportStrategy", "get_export_strategy", "EXPORT_STRATEGIES"]
