"""
Pagination utilities for API endpoints.

Used by the endpoints that answer with ``{"<items>": [...], "pagination": {...}}``
instead of the DRF page format.
"""

import math
from typing import Any, Callable, Dict, List, Optional

from django.db.models import QuerySet
from django.http import HttpRequest


class APIPaginator:
    """
    Page/limit paginator.

    Usage:
        paginator = APIPaginator(request, queryset)
        return Response(paginator.get_response_data("cash_registers", serialize))
    """

    def __init__(
        self,
        request: HttpRequest,
        queryset: QuerySet,
        limit: int = 20,
        max_limit: int = 100,
    ):
        """
        Args:
            request: The HTTP request object
            queryset: The queryset to paginate
            limit: Default number of items per page
            max_limit: Maximum allowed items per page
        """
        self.request = request
        self.queryset = queryset
        self.default_limit = limit
        self.max_limit = max_limit

        self.page_number = self._get_page_number()
        self.limit = self._get_limit()
        self.total_count = queryset.count()

    def _get_page_number(self) -> int:
        try:
            return max(1, int(self.request.GET.get("page", 1)))
        except (ValueError, TypeError):
            return 1

    def _get_limit(self) -> int:
        try:
            limit = int(self.request.GET.get("limit", self.default_limit))
            return max(1, min(limit, self.max_limit))
        except (ValueError, TypeError):
            return self.default_limit

    def get_page_data(self) -> List[Any]:
        offset = (self.page_number - 1) * self.limit
        return list(self.queryset[offset : offset + self.limit])

    def get_pagination_metadata(self) -> Dict[str, Any]:
        return {
            "page": self.page_number,
            "limit": self.limit,
            "total_count": self.total_count,
            "total_pages": math.ceil(self.total_count / self.limit),
        }

    def get_response_data(
        self, key: str = "results", serializer_func: Optional[Callable] = None
    ) -> Dict[str, Any]:
        """
        Args:
            key: Name of the items list in the response
            serializer_func: Function to serialize each item

        Returns:
            Dictionary with the items under ``key`` and a 'pagination' entry
        """
        items = self.get_page_data()
        if serializer_func:
            items = [serializer_func(item) for item in items]
        return {key: items, "pagination": self.get_pagination_metadata()}
