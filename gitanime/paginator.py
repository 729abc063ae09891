from __future__ import annotations

import logging
import time
from typing import Callable, Hashable, List, Optional, TypeVar

from bs4 import BeautifulSoup

from gitanime.errors import FetchError
from gitanime.fetcher import Fetcher, make_soup
from gitanime.parser import has_next_page

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONTINUE = "continue"
ABORT = "abort"


def page_url(collection_url: str, page_number: int) -> str:
    if not collection_url.endswith("/"):
        collection_url += "/"
    if page_number <= 1:
        return collection_url
    return f"{collection_url}page/{page_number}/"


class Paginator:
    """Walks ``collection_url``, ``collection_url/page/2/`` and so on.

    A bounded walk (``end_page`` given) logs a failed page and moves on; an
    unbounded walk stops at the first failure and raises it, since there is
    no other signal for when to stop.
    """

    def __init__(self, fetcher: Fetcher, delay: float = 1.0, sleep: Callable[[float], None] = time.sleep):
        self.fetcher = fetcher
        self.delay = delay
        self.sleep = sleep

    def walk(
        self,
        collection_url: str,
        extract_page: Callable[[BeautifulSoup, int], List[T]],
        start_page: int = 1,
        end_page: Optional[int] = None,
        dedup_key: Optional[Callable[[T], Hashable]] = None,
        on_error: Optional[str] = None,
    ) -> List[T]:
        bounded = end_page is not None
        on_error = on_error or (CONTINUE if bounded else ABORT)
        if on_error not in (CONTINUE, ABORT):
            raise ValueError(f"on_error must be {CONTINUE!r} or {ABORT!r}, got {on_error!r}")

        records: List[T] = []
        seen = set()
        page_number = max(1, start_page)

        while end_page is None or page_number <= end_page:
            url = page_url(collection_url, page_number)
            logger.info("Scraping page %d: %s", page_number, url)
            try:
                soup = make_soup(self.fetcher.fetch(url))
            except FetchError as e:
                if on_error == ABORT:
                    logger.error("Error scraping page %d: %s", page_number, e)
                    raise
                logger.warning("Error scraping page %d, continuing: %s", page_number, e)
                page_number += 1
                continue

            page_records = extract_page(soup, page_number)
            if not page_records:
                logger.info("No entries found on page %d, stopping", page_number)
                break

            added = 0
            for record in page_records:
                if dedup_key is not None:
                    key = dedup_key(record)
                    if key in seen:
                        logger.debug("Skipping duplicate %r on page %d", key, page_number)
                        continue
                    seen.add(key)
                records.append(record)
                added += 1
            logger.info("Page %d: %d entries, %d new", page_number, len(page_records), added)

            if not bounded and not has_next_page(soup):
                logger.info("No next page found, stopping at page %d", page_number)
                break
            if bounded and page_number >= end_page:
                break

            page_number += 1
            if self.delay > 0:
                self.sleep(self.delay)

        logger.info("Walk of %s finished with %d records", collection_url, len(records))
        return records
