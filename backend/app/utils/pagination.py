"""
Pagination helpers for list views.

``page_numbers`` builds the compact page selector shown under rankings and
withdrawal lists, using ``"..."`` as the gap marker.
"""

import math
from typing import Any, Dict, List, Sequence, Union

ELLIPSIS = "..."

PageItem = Union[int, str]


def total_pages(total_items: int, page_size: int) -> int:
    """Number of pages needed for ``total_items``; at least 1."""
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return max(1, math.ceil(total_items / page_size))


def page_numbers(current: int, total: int, max_visible: int = 5) -> List[PageItem]:
    """
    Page selector entries for ``current`` out of ``total`` pages.

    All pages are listed when they fit in ``max_visible``. Otherwise the
    first and last page are always shown with the current page's
    neighbourhood in between:

    * near the start: ``1 2 3 4 ... N``
    * near the end:   ``1 ... N-3 N-2 N-1 N``
    * in the middle:  ``1 ... c-1 c c+1 ... N``
    """
    if total <= max_visible:
        return list(range(1, total + 1))

    if current <= 3:
        return [1, 2, 3, 4, ELLIPSIS, total]

    if current >= total - 2:
        return [1, ELLIPSIS] + list(range(total - 3, total + 1))

    return [1, ELLIPSIS, current - 1, current, current + 1, ELLIPSIS, total]


def paginate(items: Sequence[Any], page: int, page_size: int) -> Dict[str, Any]:
    """
    Slice an in-memory sequence into one page.

    ``page`` is 1-based and clamped into the valid range. ``start_index`` and
    ``end_index`` are 1-based and inclusive ("Showing 11 to 20 of 35"); both
    are 0 for an empty sequence.
    """
    total_items = len(items)
    pages = total_pages(total_items, page_size)
    page = min(max(page, 1), pages)

    start = (page - 1) * page_size
    end = min(start + page_size, total_items)

    return {
        "items": list(items[start:end]),
        "page": page,
        "page_size": page_size,
        "total": total_items,
        "total_pages": pages,
        "page_numbers": page_numbers(page, pages),
        "start_index": start + 1 if total_items else 0,
        "end_index": end,
    }
