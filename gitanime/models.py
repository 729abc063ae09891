from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(slots=True)
class AnimeListEntry:
    id: str
    title: str
    detail_link: str
    image_url: str
    rating: Optional[str] = None
    status: Optional[str] = None
    type: Optional[str] = None
    genres: List[str] = field(default_factory=list)
    description: Optional[str] = None
    episode_count_label: Optional[str] = None
    page_number: Optional[int] = None
    scraped_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "detailLink": self.detail_link,
            "imageUrl": self.image_url,
            "rating": self.rating,
            "status": self.status,
            "type": self.type,
            "genres": list(self.genres),
            "description": self.description,
            "episodeCountLabel": self.episode_count_label,
            "pageNumber": self.page_number,
            "scrapedAt": self.scraped_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AnimeListEntry":
        return cls(
            id=data["id"],
            title=data["title"],
            detail_link=data.get("detailLink") or data.get("link") or "",
            image_url=data.get("imageUrl") or "",
            rating=data.get("rating"),
            status=data.get("status"),
            type=data.get("type"),
            genres=list(data.get("genres") or []),
            description=data.get("description"),
            episode_count_label=data.get("episodeCountLabel") or data.get("episodeInfo"),
            page_number=data.get("pageNumber"),
            scraped_at=data.get("scrapedAt") or utc_now_iso(),
        )


@dataclass(slots=True)
class LatestEpisode:
    id: str
    title: str
    episode_number: Optional[str]
    link: str
    anime_id: str
    page_number: int = 1
    posted_by: Optional[str] = None
    released_on: Optional[str] = None
    image_url: Optional[str] = None
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "episodeNumber": self.episode_number,
            "link": self.link,
            "postedBy": self.posted_by,
            "releasedOn": self.released_on,
            "imageUrl": self.image_url,
            "animeId": self.anime_id,
            "pageNumber": self.page_number,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LatestEpisode":
        return cls(
            id=data["id"],
            title=data["title"],
            episode_number=data.get("episodeNumber"),
            link=data.get("link") or "",
            anime_id=data.get("animeId") or "",
            page_number=data.get("pageNumber") or 1,
            posted_by=data.get("postedBy"),
            released_on=data.get("releasedOn"),
            image_url=data.get("imageUrl") or data.get("image"),
            created_at=data.get("createdAt") or utc_now_iso(),
        )


@dataclass(slots=True)
class EpisodeLink:
    number: str
    title: str
    link: str
    id: str

    def to_dict(self) -> dict:
        return {"number": self.number, "title": self.title, "link": self.link, "id": self.id}


@dataclass(slots=True)
class AnimeDetail:
    id: str
    title: str
    source_url: str
    japanese: Optional[str] = None
    english: Optional[str] = None
    status: Optional[str] = None
    type: Optional[str] = None
    source: Optional[str] = None
    duration: Optional[str] = None
    total_episode_label: Optional[str] = None
    season: Optional[str] = None
    studio: Optional[str] = None
    released: Optional[str] = None
    genres: List[str] = field(default_factory=list)
    episodes: List[EpisodeLink] = field(default_factory=list)
    image_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "japanese": self.japanese,
            "english": self.english,
            "status": self.status,
            "type": self.type,
            "source": self.source,
            "duration": self.duration,
            "totalEpisodeLabel": self.total_episode_label,
            "season": self.season,
            "studio": self.studio,
            "released": self.released,
            "genres": list(self.genres),
            "episodes": [ep.to_dict() for ep in self.episodes],
            "imageUrl": self.image_url,
            "sourceUrl": self.source_url,
        }


@dataclass(slots=True)
class EpisodeDetail:
    id: str
    title: str
    episode_url: str
    anime_url: str
    episode_number: Optional[str] = None
    episode_title: Optional[str] = None
    posted_by: Optional[str] = None
    released_on: Optional[str] = None
    image_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "episodeNumber": self.episode_number,
            "episodeTitle": self.episode_title,
            "postedBy": self.posted_by,
            "releasedOn": self.released_on,
            "episodeUrl": self.episode_url,
            "animeUrl": self.anime_url,
            "imageUrl": self.image_url,
        }


@dataclass(slots=True)
class PlayerOption:
    id: str
    label: str
    class_name: str = ""
    resolved_video_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "className": self.class_name,
            "resolvedVideoUrl": self.resolved_video_url,
        }


@dataclass(slots=True)
class VideoLocator:
    episode_url: str
    url: Optional[str] = None
    type: Optional[str] = None
    post_id: Optional[str] = None
    player_options: List[PlayerOption] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.url)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "type": self.type,
            "episodeUrl": self.episode_url,
            "postId": self.post_id,
            "playerOptions": [opt.to_dict() for opt in self.player_options],
        }
