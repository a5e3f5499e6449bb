"""Export strategy interface."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..._utils import get_logger
from ...client.base import BaseDocumentStoreClient
from ...config import BackupJob
from ..models import ExportSummary
from ..writer import DiskWriter


class ExportStrategy(ABC):
    """One way of pulling every document of a job out of the store."""

    name: str = ""

    def __init__(self, client: BaseDocumentStoreClient, logger: Optional[logging.Logger] = None):
        self.client = client
        self.logger = get_logger(logger)

    @abstractmethod
    async def export(self, job: BackupJob, writer: DiskWriter) -> ExportSummary:
        """Export all documents of ``job`` through ``writer``."""
        pass
