"""Wire clients for Elasticsearch-compatible document stores."""

from .base import BaseDocumentStoreClient
from .http import HttpDocumentStoreClient

__all__ = ["BaseDocumentStoreClient", "HttpDocumentStoreClient"]
