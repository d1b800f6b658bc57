import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import requests
from pydantic import ValidationError
from requests.exceptions import RequestException

from .exceptions import DashboardError, SearchValidationError
from .models import IndexPattern

logger = logging.getLogger(__name__)


class DashboardClient:
    """Dashboard saved-objects client with Pydantic validation"""

    def __init__(self, base_url: str = "http://localhost:5601", timeout: float = 5.0):
        self.url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = self._create_session()

    def _create_session(self) -> requests.Session:
        """Create configured requests session"""
        session = requests.session()
        session.headers.update(
            {"User-Agent": "efkcheck-dashboard-client/0.1.0", "kbn-xsrf": "true"}
        )
        return session

    def _pattern_url(self, pattern_id: str) -> str:
        return f"{self.url}/api/saved_objects/index-pattern/{pattern_id}"

    def is_alive(self) -> bool:
        """Check if dashboard is alive"""
        try:
            response = self._session.get(f"{self.url}/api/status", timeout=self.timeout)
            return response.status_code == 200
        except RequestException as e:
            logger.debug(f"Dashboard health check failed: {e}")
            return False

    def get_index_pattern(self, pattern_id: str) -> Optional[IndexPattern]:
        """
        Fetch an index pattern saved object

        Args:
            pattern_id: Saved object id

        Returns:
            IndexPattern, or None if the dashboard has no such object

        Raises:
            DashboardError: If request fails
            SearchValidationError: If response doesn't match schema
        """
        try:
            response = self._session.get(
                self._pattern_url(pattern_id), timeout=self.timeout
            )
            if response.status_code == 404:
                return None
            response.raise_for_status()

            return IndexPattern.model_validate(response.json())

        except RequestException as e:
            logger.debug(f"Failed to get index pattern {pattern_id}: {e}")
            raise DashboardError(f"Index pattern fetch failed: {e}")
        except (ValidationError, ValueError) as e:
            logger.error(f"Invalid index pattern response for {pattern_id}: {e}")
            raise SearchValidationError(f"Invalid index pattern format: {e}")

    def index_pattern_exists(self, pattern_id: str) -> bool:
        pattern = self.get_index_pattern(pattern_id)
        return pattern is not None and pattern.id == pattern_id

    def create_index_pattern(
        self, pattern_id: str, body: Union[Dict[str, Any], Path, str]
    ) -> Dict[str, Any]:
        """
        Create an index pattern saved object

        Args:
            pattern_id: Saved object id (e.g., "cloud-*")
            body: Saved object JSON, or a path to a file holding it

        Returns:
            Created saved object as returned by the dashboard
        """
        if isinstance(body, (Path, str)):
            body = json.loads(Path(body).read_text())

        try:
            response = self._session.post(
                self._pattern_url(pattern_id),
                json=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except RequestException as e:
            logger.error(f"Failed to create index pattern {pattern_id}: {e}")
            raise DashboardError(f"Index pattern creation failed: {e}")

        if response.status_code != 200:
            raise DashboardError(
                f"Index pattern creation failed: {response.status_code} - {response.text}"
            )
        return response.json()

    def close(self):
        """Close the underlying session"""
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exec_type, exec_val, exec_tb):
        self.close()
