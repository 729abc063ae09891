from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://v1.samehadaku.how/"
DEFAULT_SCRAPING_INTERVAL = "0 0 * * *"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(slots=True)
class Settings:
    base_url: str = DEFAULT_BASE_URL
    data_dir: Path = Path("data")
    anime_data_file: str = "anime-data.json"
    anime_list_file: str = "anime-list.json"
    latest_episodes_file: str = "latest-episodes.json"
    config_file: str = "config.json"
    admin_password: Optional[str] = None
    production: bool = False
    page_timeout: float = 30.0
    ajax_timeout: float = 45.0
    page_delay: float = 1.0
    detail_delay: float = 1.0
    video_retries: int = 3
    video_retry_delay: float = 2.0
    image_map_file: Optional[Path] = None
    online_images: bool = False
    port: int = 5000

    def __post_init__(self):
        if not self.base_url.endswith("/"):
            self.base_url += "/"

    @property
    def anime_list_source(self) -> str:
        return f"{self.base_url}daftar-anime-2/"

    @property
    def latest_episodes_source(self) -> str:
        return f"{self.base_url}anime-terbaru/"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()
        env = os.getenv("GITANIME_ENV") or os.getenv("NODE_ENV") or "development"
        production = env == "production"
        default_dir = "/tmp" if production else "data"
        image_map = os.getenv("GITANIME_IMAGE_MAP")
        return cls(
            base_url=os.getenv("SAMEHADAKU_URL", DEFAULT_BASE_URL),
            data_dir=Path(os.getenv("GITANIME_DATA_DIR", default_dir)),
            # file names are kept relative to data_dir; absolute paths are honoured as well
            anime_data_file=os.getenv("DATA_FILE", "anime-data.json"),
            anime_list_file=os.getenv("ANIME_LIST_FILE", "anime-list.json"),
            latest_episodes_file=os.getenv("LATEST_EPISODES_FILE", "latest-episodes.json"),
            config_file=os.getenv("CONFIG_FILE", "config.json"),
            admin_password=os.getenv("ADMIN_PASSWORD") or None,
            production=production,
            page_timeout=_env_float("GITANIME_PAGE_TIMEOUT", 30.0),
            ajax_timeout=_env_float("GITANIME_AJAX_TIMEOUT", 45.0),
            page_delay=_env_float("GITANIME_PAGE_DELAY", 1.0),
            detail_delay=_env_float("GITANIME_DETAIL_DELAY", 1.0),
            video_retries=int(_env_float("GITANIME_VIDEO_RETRIES", 3)),
            video_retry_delay=_env_float("GITANIME_VIDEO_RETRY_DELAY", 2.0),
            image_map_file=Path(image_map) if image_map else None,
            online_images=_env_bool("GITANIME_ONLINE_IMAGES", False),
            port=int(_env_float("PORT", 5000)),
        )


class ConfigStore:
    """Small JSON file holding the runtime-editable scraper options."""

    DEFAULTS = {
        "sourceUrl": DEFAULT_BASE_URL,
        "scrapingInterval": DEFAULT_SCRAPING_INTERVAL,
        "autoScraping": True,
    }

    def __init__(self, path: Path, source_url: Optional[str] = None):
        self.path = Path(path)
        self.defaults = dict(self.DEFAULTS)
        if source_url:
            self.defaults["sourceUrl"] = source_url

    def ensure(self) -> None:
        if self.path.exists():
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._write(self.defaults)

    def get(self) -> dict:
        try:
            self.ensure()
            with self.path.open("r", encoding="utf-8") as f:
                stored = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("Error reading config %s: %s", self.path, e)
            return dict(self.defaults)
        return {**self.defaults, **stored}

    def update(self, changes: dict) -> dict:
        updated = {**self.get(), **changes}
        self._write(updated)
        return updated

    def _write(self, data: dict) -> None:
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
