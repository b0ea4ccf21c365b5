"""
Pagination helpers for client-side tables.
Page numbers are 1-based.
"""

import math
from typing import List, Sequence, TypeVar, Union

T = TypeVar('T')

DEFAULT_PAGE_SIZE = 10
ELLIPSIS = '...'


class PaginationError(Exception):
    """Raised when pagination arguments are invalid."""
    pass


def total_pages(item_count: int, page_size: int = DEFAULT_PAGE_SIZE) -> int:
    """Number of pages needed for item_count items (0 for no items)."""
    if page_size <= 0:
        raise PaginationError(f"page_size must be positive, got {page_size}")
    return math.ceil(item_count / page_size)


def clamp_page(page: int, pages: int) -> int:
    """
    Page to show given the page count.

    A page beyond the last one resets to 1, as does a page below 1.
    """
    if page < 1:
        return 1
    if page > pages and pages > 0:
        return 1
    return page


def paginate(items: Sequence[T], page: int, page_size: int = DEFAULT_PAGE_SIZE) -> List[T]:
    """
    Slice one page out of items.

    Example:
        paginate(list(range(25)), 3, 10) -> [20, 21, 22, 23, 24]
    """
    if page_size <= 0:
        raise PaginationError(f"page_size must be positive, got {page_size}")
    start = (page - 1) * page_size
    return list(items[start:start + page_size])


def page_window(current: int, pages: int) -> List[Union[int, str]]:
    """
    Page links to display: first, last and current ±1, with '...' at current ±2.

    Example:
        page_window(5, 10) -> [1, '...', 4, 5, 6, '...', 10]
    """
    window = []
    for page in range(1, pages + 1):
        if page == 1 or page == pages or current - 1 <= page <= current + 1:
            window.append(page)
        elif page == current - 2 or page == current + 2:
            window.append(ELLIPSIS)
    return window
