from __future__ import annotations

import logging
from typing import Mapping, Optional

import requests
from bs4 import BeautifulSoup

from gitanime.errors import FetchError, HttpStatusError, NetworkTimeout

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

# extra headers for full page loads; the AJAX endpoint gets its own set
PAGE_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}


def make_soup(markup) -> BeautifulSoup:
    return BeautifulSoup(markup or "", "lxml")


class Fetcher:
    HEADERS = {"User-Agent": USER_AGENT}

    def __init__(self, timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(self.HEADERS)

    def fetch(
        self,
        url: str,
        method: str = "GET",
        data: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Return the response body of ``url``.

        Raises :class:`NetworkTimeout` when the timeout expires,
        :class:`HttpStatusError` on a non-2xx status and :class:`FetchError`
        for every other transport failure. Nothing is retried here.
        """
        timeout = timeout or self.timeout
        try:
            if method.upper() == "POST":
                response = self.session.post(url, data=data, headers=headers, timeout=timeout)
            else:
                response = self.session.get(url, headers=headers, timeout=timeout)
            response.raise_for_status()
        except requests.Timeout as e:
            raise NetworkTimeout(url) from e
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise HttpStatusError(url, status) from e
        except requests.RequestException as e:
            raise FetchError(url, message=f"error fetching {url}: {e}") from e

        logger.debug("%s %s -> %s", method.upper(), url, response.status_code)
        return response.text

    def fetch_soup(self, url: str, **kwargs) -> BeautifulSoup:
        return make_soup(self.fetch(url, **kwargs))

    def close(self) -> None:
        self.session.close()
