"""
Cursor pagination over list endpoints.
"""

import logging
from typing import Callable, Iterator, Optional

from meterboard.connect.base import Page

logger = logging.getLogger(__name__)

PageFetcher = Callable[[Optional[str]], Page]


def iter_pages(fetch_page: PageFetcher) -> Iterator[Page]:
    """
    Yield pages in server order.

    The first call passes no cursor; each later call passes the cursor the
    previous page returned. Stops once a page comes back without a cursor.
    Requests are strictly sequential and errors propagate unchanged.
    """
    cursor: Optional[str] = None
    while True:
        page = fetch_page(cursor)
        yield page
        if not page.next_page:
            return
        cursor = page.next_page


def paginate(fetch_page: PageFetcher) -> list:
    """Drain a paginated endpoint into one list, preserving page order."""
    records = []
    pages = 0
    for page in iter_pages(fetch_page):
        records.extend(page.data)
        pages += 1
    logger.debug("Fetched %d records over %d pages", len(records), pages)
    return records
