from .client import SearchClient
from .dashboard import DashboardClient
from .exceptions import (
    DashboardError,
    SearchConnectionError,
    SearchError,
    SearchValidationError,
)
from .models import IndexPattern, LogRecord, SearchHit, SearchHits, SearchResponse

__all__ = [
    "DashboardClient",
    "DashboardError",
    "IndexPattern",
    "LogRecord",
    "SearchClient",
    "SearchConnectionError",
    "SearchError",
    "SearchHit",
    "SearchHits",
    "SearchResponse",
    "SearchValidationError",
]
