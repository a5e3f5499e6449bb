"""REST client for Elasticsearch-compatible stores built on httpx."""

import logging
from typing import Any, Dict, Iterable, Optional, Sequence
from urllib.parse import quote

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from .._utils import get_logger
from ..config import ClientConfig
from ..errors import ProtocolError, ScrollExpiredError, TransportError
from ..schemas import BulkResult, IndexAction, ScrollPage
from .base import BaseDocumentStoreClient

# Raised before the request reaches the server, so a retry cannot skip a page
RETRYABLE_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)

SCAN_QUERY = {"sort": ["_doc"], "query": {"match_all": {}}}


class HttpDocumentStoreClient(BaseDocumentStoreClient):
    """Talk to the store's search, scroll and bulk REST endpoints."""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_backoff: float = 1.0,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize client.

        Args:
            config: Connection settings, defaults to ``ClientConfig.from_env()``
            transport: Optional httpx transport (mock transports in tests)
            retry_backoff: Multiplier for the exponential wait between retries
            logger: Logger to report to, defaults to the package logger
        """
        self.config = config or ClientConfig.from_env()
        self.logger = get_logger(logger)
        self._retry_backoff = retry_backoff

        headers = {"Accept": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"ApiKey {self.config.api_key}"
        auth = None
        if self.config.username:
            auth = (self.config.username, self.config.password or "")

        self._client = httpx.AsyncClient(
            base_url=self.config.url.rstrip("/"),
            headers=headers,
            auth=auth,
            timeout=self.config.request_timeout,
            verify=self.config.verify_certs,
            transport=transport,
        )
        self._retry_decorator = self._get_retry_decorator()

    def _get_retry_decorator(self):
        """Get retry decorator for connection-level failures."""
        return retry(
            stop=stop_after_attempt(self.config.max_retries),
            wait=wait_exponential(multiplier=self._retry_backoff, min=0, max=10),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True,
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        content: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        send = self._retry_decorator(self._client.request)
        try:
            response = await send(
                method, path, params=params, json=json_body, content=content, headers=headers
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"{method} {path} timed out after {self.config.request_timeout}s: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            error_cls = TransportError
            if response.status_code == 404 and path.startswith("/_search/scroll"):
                error_cls = ScrollExpiredError
            raise error_cls(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError(f"{method} {path} returned a non-JSON body: {response.text[:200]}") from e

    @staticmethod
    def _to_page(data: Dict[str, Any]) -> ScrollPage:
        hits = data.get("hits")
        if not isinstance(hits, dict) or not isinstance(hits.get("hits"), list):
            raise ProtocolError(f"Response has no hits section: {str(data)[:200]}")
        return ScrollPage(scroll_id=data.get("_scroll_id"), hits=hits["hits"])

    async def open_scroll(self, indices: Iterable[str], page_size: int, ttl: str) -> ScrollPage:
        index_expr = quote(",".join(sorted(indices)), safe=",*")
        data = await self._request(
            "POST",
            f"/{index_expr}/_search",
            params={"scroll": ttl, "size": page_size},
            json_body=SCAN_QUERY,
        )
        page = self._to_page(data)
        self.logger.debug(f"Opened scroll on {index_expr}: {len(page.hits)} hits in first page")
        return page

    async def advance_scroll(self, scroll_id: str, ttl: str) -> ScrollPage:
        data = await self._request(
            "POST",
            "/_search/scroll",
            json_body={"scroll": ttl, "scroll_id": scroll_id},
        )
        return self._to_page(data)

    async def clear_scroll(self, scroll_id: str) -> None:
        try:
            await self._request("DELETE", "/_search/scroll", json_body={"scroll_id": [scroll_id]})
        except ScrollExpiredError:
            self.logger.debug("Scroll context already released")

    async def bulk_write(self, actions: Sequence[IndexAction], include_type: bool = False) -> BulkResult:
        if not actions:
            return BulkResult()

        lines = []
        for action in actions:
            lines.extend(action.to_bulk_lines(include_type=include_type))
        body = "\n".join(lines) + "\n"

        data = await self._request(
            "POST",
            "/_bulk",
            content=body,
            headers={"Content-Type": "application/x-ndjson"},
        )

        items = data.get("items")
        if not isinstance(items, list):
            raise ProtocolError(f"Bulk response has no items: {str(data)[:200]}")

        result = BulkResult()
        for item in items:
            # Each item is keyed by its operation type
            outcome = next(iter(item.values()), {})
            status = outcome.get("status", 500)
            if status < 300:
                result.succeeded += 1
            else:
                result.failed += 1
                error = outcome.get("error") or {}
                if isinstance(error, dict):
                    reason = f"{error.get('type', 'error')}: {error.get('reason', '')}"
                else:
                    reason = str(error)
                result.errors.append(f"{outcome.get('_index')}/{outcome.get('_id')}: {reason}")
        return result

    async def aclose(self) -> None:
        await self._client.aclose()
