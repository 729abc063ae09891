"""Per-kind field extraction over the shared toolkit in :mod:`gitanime.parser`.

Every record kind has an ordered table of ``(field, strategies)``. Fields are
extracted independently, so a selector that stops matching after a site
redesign only costs that one field.
"""
from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from bs4 import BeautifulSoup, Tag

from gitanime.errors import ParseFailure
from gitanime.fetcher import make_soup
from gitanime.images import resolve_image
from gitanime.models import (
    AnimeDetail,
    AnimeListEntry,
    EpisodeDetail,
    EpisodeLink,
    LatestEpisode,
)
from gitanime.parser import (
    Strategy,
    anime_title_from_url,
    episode_id,
    first_match,
    heading_title,
    label_links,
    label_value,
    labelled_text,
    meta_content,
    none_if_empty,
    pick_image,
    pick_large_image,
    regex_text,
    resolve_url,
    select_attr,
    select_text,
    select_texts,
    slugify,
    strip_title_noise,
)
from gitanime.video import PageContext, find_post_id, list_player_options

logger = logging.getLogger(__name__)

Markup = Union[str, bytes, Tag]
ImageLookup = Callable[[str], str]

EPISODE_NUMBER = r"Episode\s+(\d+)"


class RecordKind(str, Enum):
    ANIME_LIST_ENTRY = "anime-list-entry"
    LATEST_EPISODE = "latest-episode"
    ANIME_DETAIL = "anime-detail"
    EPISODE_DETAIL = "episode-detail"
    VIDEO_LOCATOR = "video-locator"


def _genre_links(selector: str) -> Strategy:
    return lambda element: select_texts(element, selector)


def _labelled_genres(element: Tag) -> List[str]:
    return label_links(element, "Genres") or label_links(element, "Genre")


def _episode_links(element: Tag) -> List[Tuple[str, str, str]]:
    links = []
    seen = set()
    for a in element.select('a[href*="episode"]'):
        text = a.get_text(strip=True)
        href = (a.get("href") or "").strip()
        match = re.search(EPISODE_NUMBER, text, re.I)
        if not match or not href or href in seen:
            continue
        seen.add(href)
        links.append((match.group(1), text, href))
    return links


FieldTable = Sequence[Tuple[str, Sequence[Strategy]]]

ANIME_LIST_FIELDS: FieldTable = (
    ("title", (select_text(".data .title h2"), select_text(".title h2"), heading_title("h2", "h3"), select_attr("a[title]", "title"))),
    ("link", (select_attr(".animposx a", "href"), select_attr("a[href]", "href"))),
    ("image", (select_attr(".content-thumb img.anmsa", "src", "data-src"), select_attr(".content-thumb img", "src", "data-src"), pick_image)),
    ("rating", (select_text(".score"),)),
    ("status", (select_text(".data .type"),)),
    ("type", (select_text(".content-thumb .type"),)),
    ("genres", (_genre_links(".stooltip .genres .mta a"), _genre_links(".genres a"), _labelled_genres)),
    ("description", (select_text(".stooltip .ttls"), select_text(".ttls"))),
    ("episode_count_label", (select_text(".metadata span:last-child"),)),
)

_STOP_LABELS = ("Posted by", "Released on")

LATEST_EPISODE_FIELDS: FieldTable = (
    ("title", (heading_title("h2"), select_text(".title"), select_attr("a[title]", "title"))),
    # joined with spaces so "Episode 1" and a following "2 days" stay apart
    ("episode_number", (regex_text(EPISODE_NUMBER, separator=" "), select_text(".epx"))),
    ("posted_by", (labelled_text("Posted by", _STOP_LABELS), labelled_text("Posted by", _STOP_LABELS, "\n"), select_text("author"))),
    ("released_on", (labelled_text("Released on", _STOP_LABELS), labelled_text("Released on", _STOP_LABELS, "\n"))),
    ("link", (select_attr("h2 a", "href"), select_attr("a[href]", "href"))),
    ("image", (pick_image,)),
)

DETAIL_LABELS = (
    ("japanese", "Japanese"),
    ("english", "English"),
    ("status", "Status"),
    ("type", "Type"),
    ("source", "Source"),
    ("duration", "Duration"),
    ("total_episode_label", "Total Episode"),
    ("season", "Season"),
    ("studio", "Studio"),
    ("released", "Released:"),
)

ANIME_DETAIL_FIELDS: FieldTable = (
    ("title", (heading_title("h1"), select_text(".entry-title"), meta_content("og:title"))),
    *((name, (label_value(label),)) for name, label in DETAIL_LABELS),
    ("genres", (_labelled_genres, _genre_links(".genre-info a"))),
    ("episodes", (_episode_links,)),
    ("image", (pick_image, pick_large_image, meta_content("og:image"))),
)

EPISODE_DETAIL_FIELDS: FieldTable = (
    ("episode_title", (heading_title("h1"), select_text(".entry-title"), meta_content("og:title"))),
    ("posted_by", (label_value("Posted By"), labelled_text("Posted by", _STOP_LABELS))),
    ("released_on", (label_value("Released On"), labelled_text("Released on", _STOP_LABELS))),
    ("image", (pick_image, pick_large_image, meta_content("og:image"))),
)

FIELD_TABLES: Dict[RecordKind, FieldTable] = {
    RecordKind.ANIME_LIST_ENTRY: ANIME_LIST_FIELDS,
    RecordKind.LATEST_EPISODE: LATEST_EPISODE_FIELDS,
    RecordKind.ANIME_DETAIL: ANIME_DETAIL_FIELDS,
    RecordKind.EPISODE_DETAIL: EPISODE_DETAIL_FIELDS,
}

LIST_FIELDS = frozenset({"genres", "episodes", "player_options"})


def _as_element(markup: Markup) -> Tag:
    if isinstance(markup, Tag):
        return markup
    try:
        return make_soup(markup)
    except Exception as e:
        raise ParseFailure(f"unparseable markup: {e}") from e


def extract(markup: Markup, kind: RecordKind, url: str = "") -> dict:
    """Partial record for ``kind``; never raises.

    Missing fields come back as ``None`` (lists as ``[]``).
    """
    try:
        element = _as_element(markup)
    except ParseFailure as e:
        logger.warning("Could not parse markup for %s: %s", kind.value, e)
        element = make_soup("")

    if kind is RecordKind.VIDEO_LOCATOR:
        return _extract_video_fields(element, url)

    record = {}
    for name, strategies in FIELD_TABLES[kind]:
        value = first_match(strategies, element, name)
        record[name] = list(value or []) if name in LIST_FIELDS else value
    return record


def _extract_video_fields(element: Tag, url: str) -> dict:
    record = {"post_id": None, "player_options": []}
    try:
        page = PageContext(episode_url=url, html=str(element), soup=element)
        record["post_id"] = find_post_id(page)
        record["player_options"] = list_player_options(element)
    except Exception as e:
        logger.debug("Video fields failed for %s: %s", url, e)
    return record


# --- record containers ------------------------------------------------------

def anime_list_containers(soup: Tag) -> List[Tag]:
    return soup.select("article.animpost") or soup.select(".animpost")


def latest_episode_containers(soup: Tag) -> List[Tag]:
    items = [li for li in soup.find_all("li") if li.find("h2")]
    # drop wrappers whose own matching children are listed already
    return [li for li in items if not any(inner.find("h2") for inner in li.find_all("li"))]


# --- builders ---------------------------------------------------------------

def build_latest_episode(
    partial: dict,
    base_url: str,
    page_number: int = 1,
    image_for: ImageLookup = resolve_image,
) -> Optional[LatestEpisode]:
    title = none_if_empty(partial.get("title"))
    link = none_if_empty(partial.get("link"))
    if not title or not link:
        return None
    number = partial.get("episode_number")
    image = partial.get("image")
    return LatestEpisode(
        id=episode_id(title, number),
        title=title,
        episode_number=number,
        link=resolve_url(link, base_url),
        anime_id=slugify(title),
        page_number=page_number,
        posted_by=partial.get("posted_by"),
        released_on=partial.get("released_on"),
        image_url=resolve_url(image, base_url) if image else image_for(title),
    )


def build_anime_list_entry(
    partial: dict,
    base_url: str,
    page_number: Optional[int] = None,
    image_for: ImageLookup = resolve_image,
) -> Optional[AnimeListEntry]:
    title = none_if_empty(partial.get("title"))
    link = none_if_empty(partial.get("link"))
    if not title or not link:
        return None
    image = partial.get("image")
    return AnimeListEntry(
        id=slugify(title),
        title=title,
        detail_link=resolve_url(link, base_url),
        image_url=resolve_url(image, base_url) if image else image_for(title),
        rating=partial.get("rating"),
        status=partial.get("status"),
        type=partial.get("type"),
        genres=list(partial.get("genres") or []),
        description=partial.get("description"),
        episode_count_label=partial.get("episode_count_label"),
        page_number=page_number,
    )


def build_anime_detail(partial: dict, url: str, base_url: str) -> Optional[AnimeDetail]:
    title = strip_title_noise(partial.get("title") or "")
    if not title:
        return None
    episodes = [
        EpisodeLink(number=number, title=text, link=resolve_url(href, base_url), id=episode_id(title, number))
        for number, text, href in partial.get("episodes") or []
    ]
    image = partial.get("image")
    return AnimeDetail(
        id=slugify(title),
        title=title,
        source_url=url,
        genres=list(partial.get("genres") or []),
        episodes=episodes,
        image_url=resolve_url(image, base_url) if image else None,
        **{name: partial.get(name) for name, _ in DETAIL_LABELS},
    )


def build_episode_detail(
    partial: dict,
    url: str,
    base_url: str,
    image_for: ImageLookup = resolve_image,
) -> EpisodeDetail:
    match = re.search(r"episode-(\d+)", url, re.I)
    number = match.group(1) if match else None
    anime_title = anime_title_from_url(url)
    image = partial.get("image")
    episode_title = partial.get("episode_title")
    return EpisodeDetail(
        id=episode_id(anime_title, number),
        title=anime_title,
        episode_url=url,
        anime_url=re.sub(r"-?episode-\d+.*$", "/", url, flags=re.I),
        episode_number=number,
        episode_title=strip_title_noise(episode_title) if episode_title else None,
        posted_by=partial.get("posted_by"),
        released_on=partial.get("released_on"),
        image_url=image_for(anime_title) or (resolve_url(image, base_url) if image else None),
    )


# --- page level -------------------------------------------------------------

def extract_latest_episodes(
    soup: BeautifulSoup,
    base_url: str,
    page_number: int = 1,
    image_for: ImageLookup = resolve_image,
) -> List[LatestEpisode]:
    episodes = []
    for index, item in enumerate(latest_episode_containers(soup), start=1):
        try:
            episode = build_latest_episode(extract(item, RecordKind.LATEST_EPISODE), base_url, page_number, image_for)
        except Exception as e:
            logger.warning("Skipping latest episode %s on page %s: %s", index, page_number, e)
            continue
        if episode is not None:
            episodes.append(episode)
    return episodes


def extract_anime_list(
    soup: BeautifulSoup,
    base_url: str,
    page_number: Optional[int] = None,
    image_for: ImageLookup = resolve_image,
) -> List[AnimeListEntry]:
    entries = []
    for index, item in enumerate(anime_list_containers(soup), start=1):
        try:
            entry = build_anime_list_entry(extract(item, RecordKind.ANIME_LIST_ENTRY), base_url, page_number, image_for)
        except Exception as e:
            logger.warning("Skipping anime entry %s on page %s: %s", index, page_number, e)
            continue
        if entry is None:
            logger.debug("Skipping anime entry %s on page %s - no title or link", index, page_number)
            continue
        entries.append(entry)
    return entries


def extract_anime_detail(soup: BeautifulSoup, url: str, base_url: str) -> Optional[AnimeDetail]:
    return build_anime_detail(extract(soup, RecordKind.ANIME_DETAIL), url, base_url)


def extract_episode_detail(
    soup: BeautifulSoup,
    url: str,
    base_url: str,
    image_for: ImageLookup = resolve_image,
) -> EpisodeDetail:
    return build_episode_detail(extract(soup, RecordKind.EPISODE_DETAIL), url, base_url, image_for)
