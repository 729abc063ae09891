from __future__ import annotations

import logging
import math
import re
from typing import List, Optional

from gitanime.errors import DocumentNotFound
from gitanime.store import ANIME_DATA, ANIME_LIST, LATEST_EPISODES, DocumentStore

logger = logging.getLogger(__name__)

DAYS_AGO = re.compile(r"(\d+)\s+days?\s+yang\s+lalu", re.I)


def days_ago(released_on: Optional[str]) -> int:
    """``"3 days yang lalu"`` -> 3. Anything else counts as today."""
    match = DAYS_AGO.search(released_on or "")
    return int(match.group(1)) if match else 0


def paginate(items: list, page: int = 1, limit: int = 20) -> tuple[list, dict]:
    page = max(1, page)
    limit = max(1, limit)
    start = (page - 1) * limit
    return items[start:start + limit], {
        "currentPage": page,
        "totalPages": math.ceil(len(items) / limit),
        "totalItems": len(items),
        "itemsPerPage": limit,
    }


def _contains(value: Optional[str], query: str) -> bool:
    return bool(value) and query in value.lower()


class AnimeRepository:
    """Read side of the document store, shaped for the API."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def _read(self, key: str) -> dict:
        try:
            return self.store.read(key)
        except DocumentNotFound:
            logger.info("%s does not exist yet", key)
            return {}

    def anime_data(self) -> dict:
        return self._read(ANIME_DATA)

    def episodes(self, page: int = 1, limit: int = 20, search: str = "") -> dict:
        episodes = [ep for ep in self.anime_data().get("latestEpisodes") or [] if ep.get("releasedOn")]
        query = search.lower().strip()
        if query:
            episodes = [
                ep for ep in episodes
                if _contains(ep.get("title"), query) or _contains(ep.get("episodeTitle"), query)
            ]
        episodes.sort(key=lambda ep: days_ago(ep.get("releasedOn")))
        items, pagination = paginate(episodes, page, limit)
        return {"anime": items, "pagination": pagination}

    def latest_grouped(self) -> dict:
        latest = self.anime_data().get("latestEpisodes") or []
        groups: dict = {}
        for ep in latest:
            title = ep.get("title")
            group = groups.setdefault(title, {
                "title": title,
                "totalEpisodes": 0,
                "episodes": [],
                "latestEpisode": None,
                "imageUrl": ep.get("imageUrl"),
                "animeId": ep.get("animeId"),
            })
            summary = {
                "id": ep.get("id"),
                "episodeNumber": ep.get("episodeNumber"),
                "postedBy": ep.get("postedBy"),
                "releasedOn": ep.get("releasedOn"),
                "link": ep.get("link"),
                "createdAt": ep.get("createdAt"),
            }
            group["totalEpisodes"] += 1
            group["episodes"].append(summary)
            current = group["latestEpisode"]
            if current is None or (summary["createdAt"] or "") > (current["createdAt"] or ""):
                group["latestEpisode"] = summary

        # ISO timestamps sort lexically
        anime = sorted(
            groups.values(),
            key=lambda g: (g["latestEpisode"] or {}).get("createdAt") or "",
            reverse=True,
        )
        return {
            "latest": anime,
            "summary": {
                "totalAnime": len(anime),
                "totalEpisodes": len(latest),
                "animeList": [
                    {k: g[k] for k in ("title", "totalEpisodes", "latestEpisode", "imageUrl", "animeId")}
                    for g in anime
                ],
            },
        }

    def latest_episodes(self, page: int = 1, limit: int = 20, search: str = "") -> dict:
        document = self._read(LATEST_EPISODES)
        episodes = list(document.get("latestEpisodes") or [])
        query = search.lower().strip()
        if query:
            episodes = [ep for ep in episodes if _contains(ep.get("title"), query)]
        items, pagination = paginate(episodes, page, limit)
        return {
            "episodes": items,
            "pagination": pagination,
            "summary": {
                "totalEpisodes": document.get("totalEpisodes", 0),
                "lastUpdated": document.get("lastUpdated"),
                "source": document.get("source"),
            },
        }

    def anime_list(self, page: int = 1, limit: int = 20, search: str = "", document: Optional[dict] = None) -> dict:
        document = document if document is not None else self._read(ANIME_LIST)
        anime: List[dict] = list(document.get("animeList") or [])
        query = search.lower().strip()
        if query:
            anime = [
                a for a in anime
                if _contains(a.get("title"), query)
                or _contains(a.get("description"), query)
                or any(query in genre.lower() for genre in a.get("genres") or [])
            ]
        items, pagination = paginate(anime, page, limit)
        return {
            "anime": items,
            "pagination": pagination,
            "summary": {
                "totalAnime": document.get("totalAnime", 0),
                "lastUpdated": document.get("lastUpdated"),
                "source": document.get("source"),
            },
        }

    def debug_info(self) -> dict:
        path = self.store.path(ANIME_DATA)
        if not self.store.exists(ANIME_DATA):
            return {"exists": False, "filePath": str(path)}
        data = self.store.read(ANIME_DATA)
        return {
            "exists": True,
            "filePath": str(path),
            "lastUpdated": data.get("lastUpdated"),
            "totalAnime": data.get("totalAnime"),
            "totalEpisodes": data.get("totalEpisodes"),
            "latestEpisodesCount": len(data.get("latestEpisodes") or []),
            "animeCount": len(data.get("anime") or []),
            "episodesCount": len(data.get("episodes") or []),
        }
