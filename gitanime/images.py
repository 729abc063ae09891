from __future__ import annotations

import json
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, Mapping, Optional
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MAP = Path(__file__).resolve().parent / "data" / "anime_images.json"
JIKAN_SEARCH_URL = "https://api.jikan.moe/v4/anime"
PLACEHOLDER_URL = "https://via.placeholder.com/300x400/{color}/ffffff?text={text}"
DEFAULT_COLOR = "3b82f6"

STOPWORDS = frozenset({"anime", "season", "part", "episode", "the", "and", "or", "with"})

# checked in order, first group with a hit decides the colour
THEME_COLORS = (
    (("action", "battle", "fight"), "dc2626"),
    (("romance", "love", "girl"), "ec4899"),
    (("comedy", "funny", "humor"), "f59e0b"),
    (("fantasy", "magic", "supernatural"), "7c3aed"),
)

_NOISE = (
    re.compile(r"Season \d+", re.I),
    re.compile(r"Part \d+", re.I),
    re.compile(r"Episode \d+", re.I),
)


def clean_title(title: str) -> str:
    for pattern in _NOISE:
        title = pattern.sub("", title)
    return re.sub(r"\s+", " ", title).strip()


def placeholder_image(title: str, cleaned: Optional[str] = None) -> str:
    lower = (cleaned if cleaned is not None else clean_title(title)).lower()
    color = DEFAULT_COLOR
    for words, theme_color in THEME_COLORS:
        if any(word in lower for word in words):
            color = theme_color
            break
    return PLACEHOLDER_URL.format(color=color, text=quote(title[:15], safe="!*'()"))


class ImageResolver:
    """Maps an anime title to artwork using a static title table."""

    def __init__(self, table: Mapping[str, str]):
        self.table: Dict[str, str] = {key.lower(): url for key, url in table.items()}

    @classmethod
    def from_file(cls, path: Path = DEFAULT_IMAGE_MAP) -> "ImageResolver":
        with Path(path).open("r", encoding="utf-8") as f:
            return cls(json.load(f))

    def lookup(self, title: str) -> Optional[str]:
        lower = clean_title(title).lower()
        if lower in self.table:
            return self.table[lower]
        for key, url in self.table.items():
            if len(key) >= 4 and key not in STOPWORDS and key in lower:
                return url
        return None

    def resolve(self, title: str) -> str:
        title = title or ""
        url = self.lookup(title)
        if url:
            return url
        logger.debug("No mapped image for %r, using themed placeholder", title)
        return placeholder_image(title)

    def resolve_online(self, title: str, session: Optional[requests.Session] = None, timeout: float = 15.0) -> str:
        """Ask the Jikan (MyAnimeList) search API, falling back to a placeholder."""
        title = title or ""
        if session is None:
            with requests.Session() as owned:
                return self.resolve_online(title, session=owned, timeout=timeout)
        try:
            response = session.get(
                JIKAN_SEARCH_URL,
                params={"q": clean_title(title), "limit": 1},
                timeout=timeout,
            )
            response.raise_for_status()
            results = response.json().get("data") or []
        except (requests.RequestException, ValueError) as e:
            logger.info("Jikan lookup failed for %r: %s", title, e)
            return placeholder_image(title)

        if results:
            url = ((results[0].get("images") or {}).get("jpg") or {}).get("image_url")
            if url:
                return url
        return placeholder_image(title)


@lru_cache(maxsize=1)
def default_resolver() -> ImageResolver:
    return ImageResolver.from_file(DEFAULT_IMAGE_MAP)


def resolve_image(title: str) -> str:
    return default_resolver().resolve(title)
