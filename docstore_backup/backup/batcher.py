"""Group indexing instructions into bounded bulk requests."""

import asyncio
import logging
from typing import List, Optional

from .._utils import get_logger
from ..client.base import BaseDocumentStoreClient
from ..errors import TransportError
from ..schemas import IndexAction
from .models import RestoreSummary


class BulkBatcher:
    """Accumulate actions and send them ``batch_size`` at a time.

    With ``max_in_flight=1`` a flush is sent as a background task while the
    caller keeps accumulating; the previous flush is awaited before the next
    one starts, so at most one request is in flight and two batches in memory.
    """

    def __init__(
        self,
        client: BaseDocumentStoreClient,
        batch_size: int = 100,
        abort_on_error: bool = True,
        include_type: bool = False,
        max_in_flight: int = 0,
        logger: Optional[logging.Logger] = None,
    ):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.client = client
        self.batch_size = batch_size
        self.abort_on_error = abort_on_error
        self.include_type = include_type
        self.max_in_flight = max_in_flight
        self.logger = get_logger(logger)

        self.summary = RestoreSummary()
        self.flush_sizes: List[int] = []
        self._batch: List[IndexAction] = []
        self._pending: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "BulkBatcher":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            await self.close()
        else:
            await self._cancel_pending()

    async def add(self, action: IndexAction) -> None:
        self._batch.append(action)
        if len(self._batch) >= self.batch_size:
            await self.flush()

    async def flush(self) -> None:
        """Send the accumulated actions. An empty batch is never sent."""
        if not self._batch:
            return
        batch, self._batch = self._batch, []
        self.flush_sizes.append(len(batch))

        if self.max_in_flight:
            await self._wait_pending()
            self._pending = asyncio.ensure_future(self._send(batch))
            # Let the request go out before the caller resumes parsing
            await asyncio.sleep(0)
        else:
            await self._send(batch)

    async def close(self) -> RestoreSummary:
        """Flush the trailing partial batch and wait for everything sent."""
        await self.flush()
        await self._wait_pending()
        return self.summary

    async def _wait_pending(self) -> None:
        if self._pending is not None:
            pending, self._pending = self._pending, None
            await pending

    async def _cancel_pending(self) -> None:
        if self._pending is None:
            return
        pending, self._pending = self._pending, None
        if not pending.done():
            pending.cancel()
        try:
            await pending
        except asyncio.CancelledError:
            pass
        except Exception as e:
            self.logger.debug(f"In-flight batch failed during abort: {e}")

    async def _send(self, batch: List[IndexAction]) -> None:
        self.summary.batches += 1
        batch_no = self.summary.batches
        try:
            result = await self.client.bulk_write(batch, include_type=self.include_type)
        except TransportError as e:
            self.summary.failed_batches += 1
            self.summary.failed += len(batch)
            self.summary.errors.append(f"Batch {batch_no} ({len(batch)} documents) failed: {e}")
            self.logger.error(f"Bulk batch {batch_no} failed: {e}")
            if self.abort_on_error:
                raise
            return

        self.summary.succeeded += result.succeeded
        self.summary.failed += result.failed
        self.summary.errors.extend(result.errors)
        if result.failed:
            self.logger.warning(
                f"Bulk batch {batch_no}: {result.failed} of {len(batch)} documents rejected"
            )
        else:
            self.logger.debug(f"Bulk batch {batch_no}: {result.succeeded} documents indexed")
