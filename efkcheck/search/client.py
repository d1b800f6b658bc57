"""Search index client - queries indexed log records over HTTP."""

from typing import List, Optional, Sequence

import httpx
from pydantic import ValidationError

from efkcheck.logging_config import configure_module_logging
from .exceptions import SearchConnectionError, SearchValidationError
from .models import LogRecord, SearchResponse

logger = configure_module_logging("search")


class SearchClient:
    """Client for the search index REST API (``_cat/indices`` and ``_search``)."""

    def __init__(
        self,
        base_url: str = "http://localhost:9200",
        timeout: float = 5.0,
        client: Optional[httpx.Client] = None,
    ):
        """Initialize the client.

        Args:
            base_url: Base URL of the search service, usually a port-forward
            timeout: Per-request I/O timeout in seconds
            client: Preconfigured httpx client (default: a new one)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = client or httpx.Client()

    def _get(self, path: str, params: Optional[dict] = None) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self.client.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response
        except httpx.HTTPError as e:
            logger.debug(f"Search request {url} failed: {e}")
            raise SearchConnectionError(f"Search request failed: {e}")

    def is_alive(self) -> bool:
        """Check if the search service answers."""
        try:
            self._get("/")
            return True
        except SearchConnectionError:
            return False

    def cat_indices(self) -> List[str]:
        """Lines of ``_cat/indices`` (health status index uuid ...)."""
        response = self._get("/_cat/indices")
        return [line for line in response.text.splitlines() if line.strip()]

    def find_index(self, fragment: str) -> Optional[str]:
        """Name of the first index whose ``_cat/indices`` line contains ``fragment``."""
        for line in self.cat_indices():
            columns = line.split()
            if fragment in line and len(columns) > 2:
                return columns[2]
        return None

    def search(self, index: str, query: str) -> SearchResponse:
        """
        Run a query-string search against an index.

        Args:
            index: Index name
            query: Query string, e.g. ``log:Started AND host:release-1``

        Returns:
            Validated SearchResponse

        Raises:
            SearchConnectionError: If the request fails
            SearchValidationError: If the response is not a search result
        """
        response = self._get(f"/{index}/_search", params={"q": query})
        try:
            return SearchResponse.model_validate(response.json())
        except (ValidationError, ValueError) as e:
            logger.debug(f"Invalid search response for {index}: {e}")
            raise SearchValidationError(f"Invalid search response: {e}")

    def query_records(
        self,
        index: str,
        field: str,
        keywords: Sequence[str],
        host_field: str,
        host: str,
    ) -> List[LogRecord]:
        """
        Records whose ``field`` matches any keyword on hosts matching ``host``.

        One query is issued per keyword and the hits are concatenated.
        """
        records = []
        for keyword in keywords:
            query = f"{field}:{keyword} AND {host_field}:{host}"
            response = self.search(index, query)
            records.extend(hit.record(host_field, field) for hit in response.hits.hits)
        logger.debug(f"{len(records)} records for {field} in {index}")
        return records

    def close(self):
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
