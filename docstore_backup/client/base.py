"""Document store client abstraction."""

from abc import ABC, abstractmethod
from typing import Iterable, Sequence

from ..schemas import BulkResult, IndexAction, ScrollPage


class BaseDocumentStoreClient(ABC):
    """The narrow surface export and restore need from a store.

    Implementations must raise ``TransportError`` for failed requests and
    return an empty page, never raise, when a scroll has no more results.
    """

    @abstractmethod
    async def open_scroll(self, indices: Iterable[str], page_size: int, ttl: str) -> ScrollPage:
        """Start a scan-ordered scroll over ``indices``."""
        pass

    @abstractmethod
    async def advance_scroll(self, scroll_id: str, ttl: str) -> ScrollPage:
        """Fetch the next page of an open scroll."""
        pass

    @abstractmethod
    async def clear_scroll(self, scroll_id: str) -> None:
        """Release the server-side scroll context."""
        pass

    @abstractmethod
    async def bulk_write(self, actions: Sequence[IndexAction], include_type: bool = False) -> BulkResult:
        """Send ``actions`` as one bulk request."""
        pass

    async def aclose(self) -> None:
        """Release client resources."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
