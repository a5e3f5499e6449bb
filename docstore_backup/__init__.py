from .backup import BackupManager
from .config import BackupJob, ClientConfig, RestoreConfig
from .client import HttpDocumentStoreClient

__version__ = "0.1.0"
__author__ = "docstore-backup contributors"
__url__ = "https://github.com/docstore-backup/docstore-backup"

__all__ = [
    "BackupManager",
    "BackupJob",
    "ClientConfig",
    "RestoreConfig",
    "HttpDocumentStoreClient",
]
