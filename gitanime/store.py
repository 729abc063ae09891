"""JSON document store and the writers for the three persisted documents."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

from gitanime.errors import DocumentNotFound
from gitanime.models import AnimeListEntry, LatestEpisode, utc_now_iso

logger = logging.getLogger(__name__)

ANIME_DATA = "anime-data.json"
ANIME_LIST = "anime-list.json"
LATEST_EPISODES = "latest-episodes.json"


class DocumentStore:
    """Whole-document JSON files under ``root``.

    Keys are file names; an absolute key is used as is.
    """

    def __init__(self, root: Union[str, Path], names: Optional[dict] = None):
        self.root = Path(root)
        # maps the logical document name to the configured file name
        self.names = dict(names or {})

    def path(self, key: str) -> Path:
        name = Path(self.names.get(key, key))
        return name if name.is_absolute() else self.root / name

    def exists(self, key: str) -> bool:
        return self.path(key).is_file()

    def read(self, key: str) -> dict:
        path = self.path(key)
        if not path.is_file():
            raise DocumentNotFound(key)
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)

    def write(self, key: str, document: dict) -> Path:
        path = self.path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
        logger.info("Saved %s", path)
        return path

    def modified_at(self, key: str) -> Optional[datetime]:
        path = self.path(key)
        if not path.is_file():
            return None
        return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)

    def size(self, key: str) -> int:
        path = self.path(key)
        return path.stat().st_size if path.is_file() else 0


def _dicts(records: Iterable) -> list:
    return [r.to_dict() if hasattr(r, "to_dict") else dict(r) for r in records]


def save_anime_list(store: DocumentStore, entries: Iterable[AnimeListEntry], source: str) -> dict:
    anime_list = _dicts(entries)
    document = {
        "animeList": anime_list,
        "totalAnime": len(anime_list),
        "lastUpdated": utc_now_iso(),
        "source": source,
    }
    store.write(ANIME_LIST, document)
    logger.info("Total anime saved: %d", len(anime_list))
    return document


def save_latest_episodes(store: DocumentStore, episodes: Iterable[LatestEpisode], source: str) -> dict:
    latest = _dicts(episodes)
    document = {
        "latestEpisodes": latest,
        "totalEpisodes": len(latest),
        "lastUpdated": utc_now_iso(),
        "source": source,
    }
    store.write(LATEST_EPISODES, document)
    logger.info("Total latest episodes saved: %d", len(latest))
    return document


def empty_anime_data() -> dict:
    return {
        "anime": [],
        "episodes": [],
        "latestEpisodes": [],
        "lastUpdated": None,
        "totalAnime": 0,
        "totalEpisodes": 0,
    }


def ensure_anime_data(store: DocumentStore) -> dict:
    """Create ``anime-data.json`` when it is missing or empty."""
    if store.exists(ANIME_DATA) and store.size(ANIME_DATA) > 0:
        try:
            return store.read(ANIME_DATA)
        except ValueError as e:
            logger.warning("Unreadable %s, recreating: %s", ANIME_DATA, e)
    document = empty_anime_data()
    store.write(ANIME_DATA, document)
    return document


def save_anime_data(store: DocumentStore, latest_episodes: Iterable, episodes: Optional[Iterable] = None) -> dict:
    """Refresh ``latestEpisodes`` keeping the stored ``anime`` list.

    ``episodes`` replaces the stored episode list only when given.
    """
    try:
        current = store.read(ANIME_DATA)
    except DocumentNotFound:
        current = empty_anime_data()
    except ValueError as e:
        logger.warning("Unreadable %s, starting fresh: %s", ANIME_DATA, e)
        current = empty_anime_data()

    document = {**empty_anime_data(), **current}
    document["latestEpisodes"] = _dicts(latest_episodes)
    if episodes is not None:
        document["episodes"] = _dicts(episodes)
    document["lastUpdated"] = utc_now_iso()
    document["totalAnime"] = len(document["anime"] or [])
    document["totalEpisodes"] = len(document["latestEpisodes"])
    store.write(ANIME_DATA, document)
    return document
