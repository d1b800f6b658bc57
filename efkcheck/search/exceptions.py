"""
Search and dashboard exceptions

Provides a hierarchy of exceptions for different log-store failure modes.
All of them are transient from the point of view of a polling loop.
"""


class SearchError(Exception):
    """Base exception for search and dashboard operations"""

    pass


class SearchConnectionError(SearchError):
    """Search service request failed"""

    pass


class SearchValidationError(SearchError):
    """Response validation failed"""

    pass


class DashboardError(SearchError):
    """Dashboard service request failed or was rejected"""

    pass
