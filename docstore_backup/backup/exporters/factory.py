"""Factory for export strategies."""

import logging
from typing import Dict, Optional, Type

from ...client.base import BaseDocumentStoreClient
from .base import ExportStrategy
from .scan_exporter import ScanExportStrategy

EXPORT_STRATEGIES: Dict[str, Type[ExportStrategy]] = {
    ScanExportStrategy.name: ScanExportStrategy,
}


def get_export_strategy(
    mode: str,
    client: BaseDocumentStoreClient,
    logger: Optional[logging.Logger] = None,
) -> ExportStrategy:
    """Create the export strategy registered under ``mode``."""
    strategy_cls = EXPORT_STRATEGIES.get(mode)
    if strategy_cls is None:
        raise ValueError(
            f"Unsupported export mode: {mode}. Supported: {', '.join(sorted(EXPORT_STRATEGIES))}"
        )
    return strategy_cls(client, logger=logger)
