from __future__ import annotations

import logging
import re
import threading
import time
from typing import Callable, List, Optional, Union

from bs4 import BeautifulSoup

from gitanime.config import Settings
from gitanime.extractors import (
    extract_anime_detail,
    extract_anime_list,
    extract_episode_detail,
    extract_latest_episodes,
)
from gitanime.fetcher import PAGE_HEADERS, Fetcher
from gitanime.images import ImageResolver, default_resolver
from gitanime.models import AnimeDetail, AnimeListEntry, EpisodeDetail, LatestEpisode, VideoLocator
from gitanime.paginator import Paginator
from gitanime.parser import episode_id, slug_from_url, slugify
from gitanime.store import (
    ANIME_DATA,
    ANIME_LIST,
    LATEST_EPISODES,
    DocumentStore,
    ensure_anime_data,
    save_anime_data,
    save_anime_list,
    save_latest_episodes,
)
from gitanime.video import VideoLocatorService

logger = logging.getLogger(__name__)


def store_for(settings: Settings) -> DocumentStore:
    return DocumentStore(settings.data_dir, names={
        ANIME_DATA: settings.anime_data_file,
        ANIME_LIST: settings.anime_list_file,
        LATEST_EPISODES: settings.latest_episodes_file,
    })


class SamehadakuScraper:
    """Scrapes the Samehadaku site and persists what it finds.

    The ``run_*`` methods write documents and are mutually exclusive: while
    one runs, the others return ``None`` straight away. The ``scrape_*``
    methods only fetch and extract.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        fetcher: Optional[Fetcher] = None,
        store: Optional[DocumentStore] = None,
        image_for: Optional[Callable[[str], str]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or Settings.from_env()
        self.base_url = self.settings.base_url
        self.fetcher = fetcher or Fetcher(timeout=self.settings.page_timeout)
        self.store = store or store_for(self.settings)
        self.sleep = sleep
        self.paginator = Paginator(self.fetcher, delay=self.settings.page_delay, sleep=sleep)
        self.video = VideoLocatorService(
            self.fetcher,
            self.base_url,
            ajax_timeout=self.settings.ajax_timeout,
            retries=self.settings.video_retries,
            retry_delay=self.settings.video_retry_delay,
            sleep=sleep,
        )
        self.image_for = image_for or self._image_lookup()
        self._lock = threading.Lock()

    def _image_lookup(self) -> Callable[[str], str]:
        resolver = default_resolver()
        if self.settings.image_map_file:
            try:
                resolver = ImageResolver.from_file(self.settings.image_map_file)
            except (OSError, ValueError) as e:
                logger.warning("Cannot load image map %s, using the bundled table: %s", self.settings.image_map_file, e)
        if not self.settings.online_images:
            return resolver.resolve

        def lookup(title: str) -> str:
            return resolver.lookup(title) or resolver.resolve_online(title, session=self.fetcher.session)

        return lookup

    @property
    def is_scraping(self) -> bool:
        return self._lock.locked()

    def _guarded(self, name: str, func: Callable, *args):
        if not self._lock.acquire(blocking=False):
            logger.info("Scraping already in progress, skipping %s", name)
            return None
        try:
            logger.info("Starting %s", name)
            return func(*args)
        finally:
            self._lock.release()

    # --- triggers -------------------------------------------------------------

    def run_full_scrape(self) -> Optional[dict]:
        """Latest releases expanded into every episode, merged into anime-data."""
        return self._guarded("full scrape", self._full_scrape)

    def _full_scrape(self) -> dict:
        latest = self.scrape_latest_episodes()
        episodes = self.scrape_all_episodes(latest)
        document = save_anime_data(self.store, episodes)
        logger.info(
            "Scraping completed: %d latest episodes, %d total episodes",
            len(latest), document["totalEpisodes"],
        )
        return document

    def run_anime_list_batch(self, start: int = 1, end: Optional[int] = None) -> Optional[dict]:
        return self._guarded("anime list batch", self._anime_list_batch, start, end)

    def _anime_list_batch(self, start: int, end: Optional[int]) -> dict:
        entries = self.scrape_anime_list_batch(start, end)
        return save_anime_list(self.store, entries, self.settings.anime_list_source)

    def run_latest_episodes_batch(self, start: int = 1, end: Optional[int] = None) -> Optional[dict]:
        return self._guarded("latest episodes batch", self._latest_episodes_batch, start, end)

    def _latest_episodes_batch(self, start: int, end: Optional[int]) -> dict:
        episodes = self.scrape_latest_episodes_batch(start, end)
        return save_latest_episodes(self.store, episodes, self.settings.latest_episodes_source)

    def run_all_pages(self) -> Optional[dict]:
        """Walk both collections until the site runs out of pages."""
        return self._guarded("all pages scrape", self._all_pages)

    def _all_pages(self) -> dict:
        anime_list = self._anime_list_batch(1, None)
        latest = self._latest_episodes_batch(1, None)
        return {"animeList": anime_list, "latestEpisodes": latest}

    def ensure_data_files(self) -> None:
        ensure_anime_data(self.store)

    # --- collections ----------------------------------------------------------

    def scrape_latest_episodes(self) -> List[LatestEpisode]:
        url = self.settings.latest_episodes_source
        logger.info("Scraping latest episodes from %s", url)
        soup = self.fetcher.fetch_soup(url)
        episodes = extract_latest_episodes(soup, self.base_url, 1, self.image_for)
        logger.info("Found %d latest episodes", len(episodes))
        return episodes

    def scrape_latest_episodes_batch(self, start: int = 1, end: Optional[int] = None) -> List[LatestEpisode]:
        return self.paginator.walk(
            self.settings.latest_episodes_source,
            self._latest_page,
            start_page=start,
            end_page=end,
        )

    def _latest_page(self, soup: BeautifulSoup, page_number: int) -> List[LatestEpisode]:
        return extract_latest_episodes(soup, self.base_url, page_number, self.image_for)

    def scrape_anime_list_batch(self, start: int = 1, end: Optional[int] = None) -> List[AnimeListEntry]:
        return self.paginator.walk(
            self.settings.anime_list_source,
            self._anime_list_page,
            start_page=start,
            end_page=end,
            dedup_key=lambda entry: entry.title,
        )

    def _anime_list_page(self, soup: BeautifulSoup, page_number: int) -> List[AnimeListEntry]:
        return extract_anime_list(soup, self.base_url, page_number, self.image_for)

    def anime_url_for(self, episode_link: str) -> str:
        slug = re.sub(r"-episode-\d+.*$", "", slug_from_url(episode_link), flags=re.I)
        return f"{self.base_url}anime/{slug}/"

    def scrape_all_episodes(self, latest: List[LatestEpisode]) -> List[LatestEpisode]:
        """Every episode of each anime that shows up in ``latest``.

        An anime whose detail page cannot be scraped keeps its latest
        entries as they are.
        """
        titles = list(dict.fromkeys(ep.title for ep in latest))
        logger.info("Scraping all episodes for %d anime", len(titles))
        expanded: List[LatestEpisode] = []

        for index, title in enumerate(titles):
            own = [ep for ep in latest if ep.title == title]
            url = self.anime_url_for(own[0].link)
            try:
                detail = self._scrape_anime_page(url)
            except Exception as e:
                logger.warning("Failed to scrape episodes for %s: %s", title, e)
                detail = None

            if detail is None or not detail.episodes:
                expanded.extend(own)
            else:
                known = {ep.episode_number: ep for ep in own}
                image = detail.image_url or self.image_for(title)
                for link in detail.episodes:
                    original = known.get(link.number)
                    expanded.append(LatestEpisode(
                        id=episode_id(title, link.number),
                        title=title,
                        episode_number=link.number,
                        link=link.link,
                        anime_id=slugify(title),
                        page_number=original.page_number if original else 1,
                        posted_by=original.posted_by if original else None,
                        released_on=original.released_on if original else None,
                        image_url=image,
                    ))
                logger.info("Added %d episodes for %s", len(detail.episodes), title)

            if index < len(titles) - 1 and self.settings.detail_delay > 0:
                self.sleep(self.settings.detail_delay)

        logger.info("Total episodes scraped: %d", len(expanded))
        return expanded

    # --- on demand ------------------------------------------------------------

    def scrape_anime_detail(self, url: str) -> Union[AnimeDetail, EpisodeDetail, None]:
        if "episode" in url:
            return self.scrape_episode_detail(url)
        return self._scrape_anime_page(url)

    def _scrape_anime_page(self, url: str) -> Optional[AnimeDetail]:
        logger.info("Scraping anime detail from %s", url)
        soup = self.fetcher.fetch_soup(url, headers=PAGE_HEADERS)
        detail = extract_anime_detail(soup, url, self.base_url)
        if detail:
            logger.info("Found anime detail: %s with %d episodes", detail.title, len(detail.episodes))
        return detail

    def scrape_episode_detail(self, url: str) -> EpisodeDetail:
        logger.info("Scraping episode detail from %s", url)
        soup = self.fetcher.fetch_soup(url, headers=PAGE_HEADERS)
        return extract_episode_detail(soup, url, self.base_url, self.image_for)

    def scrape_episode_video(self, url: str) -> VideoLocator:
        return self.video.locate(url)

    def scrape_episode_screenshot(self, url: str) -> Optional[str]:
        return self.video.screenshot(url)

    def close(self) -> None:
        self.fetcher.close()
