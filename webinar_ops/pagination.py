# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Paginated Fetcher - Aggregates every page of a list endpoint
"""
import logging
from typing import Callable, List, TypeVar

from models import PageResponse
from utils.errors import PaginationLimitError
from webinar_ops.base import check_page_size

logger = logging.getLogger(__name__)

T = TypeVar('T')


class PaginatedFetcher:
    """Fetch all pages of a list endpoint.

    totalPages is re-read from every response because the server does not
    guarantee a stable total while the result set moves. max_pages bounds
    the loop in case the server keeps announcing more pages.
    """

    def __init__(self, max_pages: int = 500):
        self.max_pages = max_pages

    def fetch_all(self, request: Callable[[int, int], PageResponse[T]], page_size: int) -> List[T]:
        """
        Args:
            request: callable taking (page, size) and returning one PageResponse
            page_size: items per page, at most 200

        Returns:
            Items of all pages in server order
        """
        check_page_size(page_size)

        items: List[T] = []
        page = 0
        total_pages = 1
        calls = 0

        while page < total_pages:
            if calls >= self.max_pages:
                raise PaginationLimitError(
                    f"Pagination exceeded {self.max_pages} pages (server reports {total_pages})"
                )

            response = request(page, page_size)
            calls += 1

            if response is None or response.items is None:
                logger.debug(f"Page {page} carried no items - stopping")
                break

            items.extend(response.items)
            total_pages = response.total_pages
            page += 1

            if page < total_pages:
                logger.debug(f"Fetching page {page + 1}/{total_pages} (current total: {len(items)})")

        return items
