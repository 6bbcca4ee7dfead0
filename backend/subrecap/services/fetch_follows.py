"""Paginated Fetcher: merge every page of channels/followed into one collection.

Invariants:
    - Iterative: stack depth is constant regardless of follow count
    - Items keep upstream order across pages
    - Stops when no cursor is returned, the page is empty, or accumulated >= total
    - total == 0 on the first page returns an empty collection immediately
"""

import logging

from subrecap.core.credentials import ViewerCredentials
from subrecap.core.domain_types import FOLLOWS_PAGE_SIZE
from subrecap.core.pagination import has_more_pages, max_page_count
from subrecap.core.records import FollowCollection, FollowRecord
from subrecap.core.repository_protocols import FollowsApi

logger = logging.getLogger(__name__)


async def fetch_all_follows(
    client: FollowsApi,
    credentials: ViewerCredentials,
    page_size: int = FOLLOWS_PAGE_SIZE,
) -> FollowCollection:
    items: list[FollowRecord] = []
    cursor: str | None = None
    pages = 0

    while True:
        body = await client.get_followed_page(
            credentials.twitch_id, credentials.access_token,
            after=cursor, first=page_size,
        )
        pages += 1
        total = body["total"]
        if total == 0 and pages == 1:
            return FollowCollection(
                items=(), total=0,
                cursor=body["pagination"].get("cursor"), pages_fetched=pages,
            )

        page = [FollowRecord.from_payload(item) for item in body["data"]]
        items.extend(page)
        next_cursor = body["pagination"].get("cursor")
        cursor = next_cursor or cursor

        if not has_more_pages(next_cursor, len(items), total, len(page)):
            break

    if pages > max_page_count(total, page_size):
        logger.warning(
            "Follows pagination used more pages than expected",
            extra={"user_id": credentials.user_id, "page": pages, "total": total},
        )
    logger.info(
        "Fetched follows",
        extra={"user_id": credentials.user_id, "items": len(items),
               "total": total, "page": pages},
    )
    return FollowCollection(
        items=tuple(items), total=total, cursor=cursor, pages_fetched=pages,
    )
