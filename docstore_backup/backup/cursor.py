"""Scroll cursor over an unbounded, server-held result set."""

import asyncio
import logging
from typing import AsyncIterator, Iterable, List, Optional

from .._utils import get_logger
from ..client.base import BaseDocumentStoreClient
from ..errors import ProtocolError
from ..schemas import Hit, ScrollPage, ScrollState


class ScrollCursor:
    """Drive the scroll protocol and yield one page of hits at a time.

    States: the initial search opens the scroll (Init), each following request
    uses the most recently returned scroll id (Advancing), and the first empty
    page ends the iteration (Exhausted). The server-side context is cleared on
    the way out, whether the run finished or failed.
    """

    def __init__(
        self,
        client: BaseDocumentStoreClient,
        indices: Iterable[str],
        page_size: int,
        scroll_ttl: str,
        prefetch: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize cursor.

        Args:
            client: Store client issuing the search and scroll requests
            indices: Index names to export
            page_size: Hits requested per page
            scroll_ttl: How long the server keeps the context between requests
            prefetch: Request page N+1 while the caller processes page N
            logger: Logger to report to, defaults to the package logger
        """
        self.client = client
        self.indices = frozenset(indices)
        self.page_size = page_size
        self.scroll_ttl = scroll_ttl
        self.prefetch = prefetch
        self.logger = get_logger(logger)

        self.state = ScrollState()
        self.pages_delivered = 0
        self.hits_delivered = 0
        self.requests_issued = 0

    async def _open(self) -> ScrollPage:
        self.requests_issued += 1
        page = await self.client.open_scroll(self.indices, self.page_size, self.scroll_ttl)
        if not page.scroll_id:
            raise ProtocolError(
                f"No scroll id returned when opening scroll on {sorted(self.indices)}"
            )
        self.state.scroll_id = page.scroll_id
        return page

    async def _advance(self) -> ScrollPage:
        self.requests_issued += 1
        page = await self.client.advance_scroll(self.state.scroll_id, self.scroll_ttl)
        if page.scroll_id:
            self.state.scroll_id = page.scroll_id
        elif not page.is_empty:
            raise ProtocolError("Scroll response carried hits but no scroll id")
        return page

    def _accept(self, page: ScrollPage) -> Optional[List[Hit]]:
        """Record a page; return its hits, or None once exhausted."""
        if page.is_empty:
            self.state.is_exhausted = True
            self.logger.debug(
                f"Scroll exhausted after {self.pages_delivered} pages, {self.hits_delivered} hits"
            )
            return None
        self.pages_delivered += 1
        self.hits_delivered += len(page.hits)
        return page.hits

    async def pages(self) -> AsyncIterator[List[Hit]]:
        """Yield every non-empty page of hits in order."""
        pending: Optional[asyncio.Task] = None
        try:
            page = await self._open()
            while True:
                hits = self._accept(page)
                if hits is None:
                    return

                if self.prefetch:
                    # At most one fetch in flight, the scroll id forces request order
                    pending = asyncio.ensure_future(self._advance())
                    yield hits
                    task, pending = pending, None
                    page = await task
                else:
                    yield hits
                    page = await self._advance()
        finally:
            if pending is not None:
                if not pending.done():
                    pending.cancel()
                try:
                    await pending
                except asyncio.CancelledError:
                    pass
                except Exception as e:
                    self.logger.debug(f"Discarded prefetch failure on shutdown: {e}")
            await self._release()

    async def _release(self) -> None:
        if not self.state.scroll_id:
            return
        try:
            await self.client.clear_scroll(self.state.scroll_id)
            self.logger.debug("Scroll context cleared")
        except Exception as e:
            self.logger.warning(f"Failed to clear scroll context: {e}")
        finally:
            self.state.scroll_id = None
