"""Pagination Rules: when a cursor-paginated follows listing is exhausted.

Invariants:
    - Continue only while a cursor is present AND accumulated < reported total
    - An empty page stops pagination (no progress possible)
    - Upper bound on calls for a well-behaved upstream: ceil(total / page_size)
"""

import math


def has_more_pages(
    cursor: str | None, accumulated: int, total: int, last_page_size: int,
) -> bool:
    if not cursor:
        return False
    if last_page_size == 0:
        return False
    return accumulated < total


def max_page_count(total: int, page_size: int) -> int:
    if total <= 0:
        return 0
    return math.ceil(total / page_size)
