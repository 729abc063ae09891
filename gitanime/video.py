"""Locate a playable video URL for an episode page.

The site hides its players behind WordPress ``admin-ajax.php``: each
``player-option-N`` element maps to a POST with the page's post id and the
1-based option index. When none of the options resolve, the page itself is
scanned with an ordered table of strategies.
"""
from __future__ import annotations

import hashlib
import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple
from urllib.parse import quote

from bs4 import Tag

from gitanime.errors import FetchError
from gitanime.fetcher import PAGE_HEADERS, Fetcher, make_soup
from gitanime.models import PlayerOption, VideoLocator
from gitanime.parser import anime_title_from_url

logger = logging.getLogger(__name__)

MEDIA_EXT = r"(?:mp4|m3u8|webm|ogg)"
MEDIA_URL = re.compile(rf"(https?://[^\"'\s]+\.{MEDIA_EXT})", re.I)
HOSTING_DOMAIN = "wibufile.com"
HOSTING_MP4 = re.compile(r"(https?://[^\"'\s]*wibufile\.com[^\"'\s]*\.mp4[^\"'\s]*)", re.I)
ANY_MP4 = re.compile(r"(https?://[^\"'\s]*\.mp4[^\"'\s]*)", re.I)
SRC_MP4 = re.compile(r'src="([^"]*\.mp4[^"]*)"', re.I)
SRC_MEDIA = re.compile(rf'src="([^"]*\.{MEDIA_EXT}[^"]*)"', re.I)
JS_SRC_PROPERTY = re.compile(rf"[\"']?src[\"']?\s*:\s*[\"'](https?://[^\"'\s]+\.{MEDIA_EXT})[\"']", re.I)
GOOGLE_VIDEO = re.compile(r"(https?://[^\"'\s]*googlevideo\.com[^\"'\s]*)", re.I)

SCRIPT_POST_ID = (
    re.compile(r"var\s+post_id\s*=\s*['\"]?(\d+)['\"]?", re.I),
    re.compile(r"\"post\"\s*:\s*['\"]?(\d+)['\"]?", re.I),
    re.compile(r"post_id\s*=\s*['\"]?(\d+)['\"]?", re.I),
    re.compile(r"\bpost\s*:\s*['\"]?(\d+)['\"]?", re.I),
    re.compile(r"episode_id\s*=\s*['\"]?(\d+)['\"]?", re.I),
    re.compile(r"\bid\s*:\s*['\"]?(\d+)['\"]?", re.I),
)
URL_POST_ID = (
    re.compile(r"[?&]p=(\d+)"),
    re.compile(r"/(\d+)/?$"),
)

SCREENSHOT_COLORS = (
    "ff6b6b", "4ecdc4", "45b7d1", "96ceb4", "feca57",
    "ff9ff3", "54a0ff", "5f27cd", "00d2d3", "ff9f43",
)
SCREENSHOT_URL = "https://via.placeholder.com/400x225/{color}/ffffff?text={text}"


@dataclass
class PageContext:
    episode_url: str
    html: str
    soup: Tag

    @classmethod
    def from_html(cls, episode_url: str, html: str) -> "PageContext":
        return cls(episode_url=episode_url, html=html, soup=make_soup(html))

    def scripts(self) -> List[str]:
        return [script.string or script.get_text() for script in self.soup.find_all("script")]


Strategy = Callable[[PageContext], Optional[str]]


def list_player_options(soup: Tag) -> List[PlayerOption]:
    options = []
    for el in soup.select('[id^="player-option-"]'):
        classes = el.get("class") or []
        options.append(PlayerOption(
            id=el.get("id"),
            label=el.get_text(strip=True),
            class_name=" ".join(classes) if isinstance(classes, list) else str(classes),
        ))
    return options


# --- post id ----------------------------------------------------------------

def _post_id_from_input(page: PageContext) -> Optional[str]:
    el = page.soup.find("input", attrs={"name": "post_id"})
    return el.get("value") if el else None


def _post_id_from_scripts(page: PageContext) -> Optional[str]:
    for content in page.scripts():
        if not content:
            continue
        for pattern in SCRIPT_POST_ID:
            match = pattern.search(content)
            if match:
                return match.group(1)
    return None


def _post_id_from_meta(page: PageContext) -> Optional[str]:
    meta = page.soup.find("meta", attrs={"name": "post_id"})
    return meta.get("content") if meta else None


def _post_id_from_data_attr(page: PageContext) -> Optional[str]:
    el = page.soup.select_one("[data-post-id]")
    return el.get("data-post-id") if el else None


def _post_id_from_wordpress(page: PageContext) -> Optional[str]:
    body = page.soup.find("body")
    for cls in (body.get("class") or []) if body else []:
        match = re.fullmatch(r"postid-(\d+)", cls)
        if match:
            return match.group(1)
    article = page.soup.find("article", id=re.compile(r"^post-\d+$"))
    if article:
        return article["id"].split("-", 1)[1]
    shortlink = page.soup.find("link", rel="shortlink")
    if shortlink and shortlink.get("href"):
        match = re.search(r"[?&]p=(\d+)", shortlink["href"])
        if match:
            return match.group(1)
    return None


def _post_id_from_url(page: PageContext) -> Optional[str]:
    for pattern in URL_POST_ID:
        match = pattern.search(page.episode_url or "")
        if match:
            return match.group(1)
    return None


def _post_id_from_any_number(page: PageContext) -> Optional[str]:
    for match in re.finditer(r"(?<!\d)(\d{4,8})(?!\d)", page.html):
        number = match.group(1)
        # four digit years show up everywhere in a page
        if len(number) == 4 and 1900 <= int(number) <= 2100:
            continue
        return number
    return None


POST_ID_STRATEGIES: Sequence[Tuple[str, Strategy]] = (
    ("input", _post_id_from_input),
    ("script", _post_id_from_scripts),
    ("meta", _post_id_from_meta),
    ("data_attribute", _post_id_from_data_attr),
    ("wordpress", _post_id_from_wordpress),
    ("url", _post_id_from_url),
    ("any_number", _post_id_from_any_number),
)


def _run(strategies: Sequence[Tuple[str, Strategy]], page: PageContext) -> Tuple[Optional[str], Optional[str]]:
    for tag, strategy in strategies:
        try:
            value = strategy(page)
        except Exception as e:
            logger.debug("Strategy %s failed on %s: %s", tag, page.episode_url, e)
            continue
        if value and value.strip():
            return value.strip(), tag
    return None, None


def find_post_id(page: PageContext) -> Optional[str]:
    post_id, tag = _run(POST_ID_STRATEGIES, page)
    if post_id:
        logger.debug("Post id %s found via %s", post_id, tag)
    return post_id


# --- ajax response ------------------------------------------------------------

def parse_player_response(body: str) -> Optional[str]:
    """Video URL inside an ``admin-ajax.php`` player response, if any."""
    if not body:
        return None
    iframe = make_soup(body).find("iframe")
    if iframe and iframe.get("src"):
        return iframe["src"].strip()
    for pattern in (HOSTING_MP4, SRC_MP4, ANY_MP4):
        match = pattern.search(body)
        if match:
            return match.group(1)
    return None


# --- page scan ----------------------------------------------------------------

def _first_attr(page: PageContext, selector: str, attr: str = "src") -> Optional[str]:
    for el in page.soup.select(selector):
        if el.get(attr):
            return el[attr]
    return None


def _scan_direct_video(page: PageContext) -> Optional[str]:
    return _first_attr(page, "video[src]")


def _scan_video_source(page: PageContext) -> Optional[str]:
    return _first_attr(page, "video source[src]")


def _scan_hosting_iframe(page: PageContext) -> Optional[str]:
    for iframe in page.soup.find_all("iframe", src=True):
        if HOSTING_DOMAIN in iframe["src"]:
            return iframe["src"]
    return None


def _scan_video_iframe(page: PageContext) -> Optional[str]:
    for iframe in page.soup.find_all("iframe", src=True):
        src = iframe["src"].lower()
        if any(word in src for word in ("video", "player", "embed", "stream")):
            return iframe["src"]
    return None


def _scan_data_attributes(page: PageContext) -> Optional[str]:
    for el in page.soup.select("[data-video], [data-src], [data-url], [data-player]"):
        for attr in ("data-video", "data-src", "data-url", "data-player"):
            value = el.get(attr) or ""
            if ".mp4" in value or ".m3u8" in value or HOSTING_DOMAIN in value:
                return value
    return None


def _scan_scripts(page: PageContext) -> Optional[str]:
    for content in page.scripts():
        match = MEDIA_URL.search(content or "")
        if match:
            return match.group(1)
    return None


def _scan_js_src_property(page: PageContext) -> Optional[str]:
    for content in page.scripts():
        match = JS_SRC_PROPERTY.search(content or "")
        if match:
            return match.group(1)
    return None


def _scan_player_options(page: PageContext) -> Optional[str]:
    for el in page.soup.select('[id^="player-option-"]'):
        match = MEDIA_URL.search(str(el))
        if match:
            return match.group(1)
    return None


def _scan_player_embed(page: PageContext) -> Optional[str]:
    for el in page.soup.select("#player_embed, #pembed, .player-embed"):
        match = MEDIA_URL.search(str(el))
        if match:
            return match.group(1)
    return None


def _scan_media_links(page: PageContext) -> Optional[str]:
    for a in page.soup.find_all("a", href=True):
        if re.search(rf"\.{MEDIA_EXT}", a["href"], re.I):
            return a["href"]
    return None


def _search(pattern: re.Pattern) -> Strategy:
    def strategy(page: PageContext) -> Optional[str]:
        match = pattern.search(page.html)
        return match.group(1) if match else None

    return strategy


# tag names are reported back to callers as ``VideoLocator.type``
PAGE_STRATEGIES: Sequence[Tuple[str, Strategy]] = (
    ("direct_video", _scan_direct_video),
    ("video_source", _scan_video_source),
    ("iframe_hosting", _scan_hosting_iframe),
    ("iframe_video", _scan_video_iframe),
    ("data_attribute", _scan_data_attributes),
    ("script", _scan_scripts),
    ("js_src_property", _scan_js_src_property),
    ("player_option", _scan_player_options),
    ("player_embed", _scan_player_embed),
    ("link_video", _scan_media_links),
    ("hosting_mp4", _search(HOSTING_MP4)),
    ("google_video", _search(GOOGLE_VIDEO)),
    ("html_video", _search(MEDIA_URL)),
    ("src_video", _search(SRC_MEDIA)),
)


def scan_page(page: PageContext) -> Tuple[Optional[str], Optional[str]]:
    return _run(PAGE_STRATEGIES, page)


# --- service ------------------------------------------------------------------

class VideoLocatorService:
    def __init__(
        self,
        fetcher: Fetcher,
        base_url: str,
        ajax_timeout: float = 45.0,
        retries: int = 3,
        retry_delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.fetcher = fetcher
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.ajax_timeout = ajax_timeout
        self.retries = max(1, retries)
        self.retry_delay = retry_delay
        self.sleep = sleep

    @property
    def ajax_url(self) -> str:
        return f"{self.base_url}wp-admin/admin-ajax.php"

    def locate(self, episode_url: str) -> VideoLocator:
        """Find a video for ``episode_url``.

        A network failure on the episode page itself propagates as
        :class:`FetchError`. Not finding anything is not an error: the
        returned locator simply has ``url=None``.
        """
        logger.info("Scraping video from episode: %s", episode_url)
        html = self.fetcher.fetch(episode_url, headers=PAGE_HEADERS)
        page = PageContext.from_html(episode_url, html)
        options = list_player_options(page.soup)
        post_id = find_post_id(page)
        locator = VideoLocator(episode_url=episode_url, post_id=post_id, player_options=options)

        if post_id:
            for nume, option in enumerate(options, start=1):
                option.resolved_video_url = self.fetch_option(episode_url, post_id, nume, option.label)
                if option.resolved_video_url and not locator.url:
                    locator.url = option.resolved_video_url
                    locator.type = "api_fetch"
        elif options:
            logger.warning("No post id on %s, skipping %d player options", episode_url, len(options))

        if not locator.url:
            locator.url, locator.type = scan_page(page)

        if locator.url:
            logger.info("Found video URL %s (type: %s)", locator.url, locator.type)
        else:
            logger.info("No video URL found for %s", episode_url)
        return locator

    def fetch_option(self, episode_url: str, post_id: str, nume: int, label: str = "") -> Optional[str]:
        data = {"action": "player_ajax", "post": post_id, "nume": str(nume), "type": "schtml"}
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Referer": episode_url,
            "Origin": self.base_url.rstrip("/"),
        }
        for attempt in range(1, self.retries + 1):
            try:
                body = self.fetcher.fetch(
                    self.ajax_url, method="POST", data=data, headers=headers, timeout=self.ajax_timeout
                )
            except FetchError as e:
                logger.warning("Player %s (nume=%s) attempt %d/%d failed: %s", label, nume, attempt, self.retries, e)
                if attempt < self.retries:
                    self.sleep(self.retry_delay)
                continue
            return parse_player_response(body)
        logger.error("Giving up on player %s (nume=%s) for %s", label, nume, episode_url)
        return None

    def screenshot(self, episode_url: str) -> Optional[str]:
        """Placeholder frame image for the first resolved player option."""
        locator = self.locate(episode_url)
        video_url = next((opt.resolved_video_url for opt in locator.player_options if opt.resolved_video_url), None)
        if not video_url:
            logger.info("No video URL found for screenshot of %s", episode_url)
            return None
        return screenshot_url(episode_url, video_url)


def screenshot_url(episode_url: str, video_url: str) -> str:
    digest = hashlib.md5(video_url.encode("utf-8")).hexdigest()
    color = SCREENSHOT_COLORS[int(digest, 16) % len(SCREENSHOT_COLORS)]
    text = quote(f"{anime_title_from_url(episode_url)} - 10:00", safe="!*'()")
    return SCREENSHOT_URL.format(color=color, text=text)
