from __future__ import annotations

import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from gitanime.config import ConfigStore, Settings
from gitanime.errors import BadRequest, FetchError, NotFound, Unauthorized
from gitanime.repository import AnimeRepository
from gitanime.scraper import SamehadakuScraper
from gitanime.store import ANIME_DATA, ANIME_LIST

logger = logging.getLogger(__name__)

ANIME_LIST_MAX_AGE = timedelta(hours=24)
REFRESH_PAGES = (1, 10)


def _int_arg(name: str, default: int) -> int:
    value = request.args.get(name, default, type=int)
    return value if value and value > 0 else default


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


def create_app(
    scraper: Optional[SamehadakuScraper] = None,
    settings: Optional[Settings] = None,
    config: Optional[ConfigStore] = None,
) -> Flask:
    settings = settings or (scraper.settings if scraper else Settings.from_env())
    scraper = scraper or SamehadakuScraper(settings)
    config = config or ConfigStore(settings.data_dir / settings.config_file, source_url=settings.base_url)
    repo = AnimeRepository(scraper.store)

    app = Flask(__name__)
    app.json.sort_keys = False
    app.extensions["gitanime"] = {"scraper": scraper, "config": config, "repository": repo}

    def require_admin(body: dict) -> None:
        expected = settings.admin_password
        given = body.get("password")
        if not expected or not isinstance(given, str) or not hmac.compare_digest(given, expected):
            raise Unauthorized("Unauthorized")

    def required_url() -> str:
        url = (request.args.get("url") or "").strip()
        if not url:
            raise BadRequest("URL parameter is required")
        return url

    @app.errorhandler(BadRequest)
    def bad_request(e):
        return jsonify({"success": False, "message": str(e)}), 400

    @app.errorhandler(Unauthorized)
    def unauthorized(e):
        return jsonify({"error": "Unauthorized"}), 401

    @app.errorhandler(NotFound)
    def not_found(e):
        return jsonify({"success": False, "message": str(e)}), 404

    @app.errorhandler(FetchError)
    def upstream_failed(e):
        logger.error("Upstream fetch failed: %s", e)
        return jsonify({"success": False, "message": "Failed to fetch data from source", "details": str(e)}), 502

    @app.errorhandler(Exception)
    def internal_error(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception("Unhandled error on %s", request.path)
        return jsonify({"success": False, "message": "Internal server error"}), 500

    @app.route("/health")
    @app.route("/api/health")
    def health():
        return jsonify({"status": "OK", "message": "GitAnime API is running"})

    @app.route("/api/debug")
    def debug():
        return jsonify({
            "status": "OK",
            "environment": "production" if settings.production else "development",
            "dataFile": str(scraper.store.path(ANIME_DATA)),
            "dataInfo": repo.debug_info(),
            "isScraping": scraper.is_scraping,
        })

    @app.route("/api/anime")
    def anime():
        return jsonify(repo.episodes(_int_arg("page", 1), _int_arg("limit", 20), request.args.get("search", "")))

    @app.route("/api/latest")
    def latest():
        return jsonify(repo.latest_grouped())

    @app.route("/api/latest-episodes")
    def latest_episodes():
        data = repo.latest_episodes(_int_arg("page", 1), _int_arg("limit", 20), request.args.get("search", ""))
        return jsonify({"success": True, "data": data})

    @app.route("/api/anime-list")
    def anime_list():
        force = request.args.get("forceRefresh", "false").lower() == "true"
        modified = scraper.store.modified_at(ANIME_LIST)
        stale = modified is None or datetime.now(timezone.utc) - modified > ANIME_LIST_MAX_AGE

        document = None
        if force or stale:
            logger.info("Scraping fresh anime list (forced=%s)", force)
            document = scraper.run_anime_list_batch(*REFRESH_PAGES)
        if document is None:
            logger.info("Loading existing anime list")
        data = repo.anime_list(
            _int_arg("page", 1), _int_arg("limit", 20), request.args.get("search", ""), document=document
        )
        return jsonify({"success": True, "data": data})

    @app.route("/api/anime-detail")
    def anime_detail():
        detail = scraper.scrape_anime_detail(required_url())
        if detail is None:
            raise NotFound("Anime not found or failed to scrape")
        return jsonify({"success": True, "data": detail.to_dict()})

    @app.route("/api/episode-video")
    def episode_video():
        locator = scraper.scrape_episode_video(required_url())
        return jsonify({"success": True, "data": locator.to_dict()})

    @app.route("/api/episode-screenshot")
    def episode_screenshot():
        url = required_url()
        screenshot = scraper.scrape_episode_screenshot(url)
        if not screenshot:
            raise NotFound("Screenshot not available")
        return jsonify({"success": True, "data": {"episodeUrl": url, "screenshotUrl": screenshot}})

    def _busy():
        return jsonify({"success": False, "message": "Scraping already in progress"}), 409

    @app.route("/api/scrape", methods=["POST"])
    def scrape():
        require_admin(_json_body())
        if scraper.run_full_scrape() is None:
            return _busy()
        return jsonify({"message": "Scraping completed successfully"})

    @app.route("/api/scrape-anime-list", methods=["POST"])
    def scrape_anime_list():
        require_admin(_json_body())
        result = scraper.run_anime_list_batch(*REFRESH_PAGES)
        if result is None:
            return _busy()
        return jsonify({
            "success": True,
            "message": "Anime list scraping completed successfully",
            "data": {
                "totalAnime": result["totalAnime"],
                "lastUpdated": result["lastUpdated"],
                "pagesScraped": "%d-%d" % REFRESH_PAGES,
            },
        })

    def _page_range(body: dict) -> tuple[int, int]:
        try:
            start, end = int(body.get("startPage", 1)), int(body.get("endPage", 10))
        except (TypeError, ValueError):
            raise BadRequest("startPage and endPage must be integers")
        if start < 1 or end < start:
            raise BadRequest("invalid page range")
        return start, end

    @app.route("/api/scrape-anime-list-batch", methods=["POST"])
    def scrape_anime_list_batch():
        body = _json_body()
        require_admin(body)
        start, end = _page_range(body)
        result = scraper.run_anime_list_batch(start, end)
        if result is None:
            return _busy()
        return jsonify({
            "success": True,
            "message": f"Anime list batch scraping completed successfully for pages {start}-{end}",
            "data": {
                "totalAnime": result["totalAnime"],
                "lastUpdated": result["lastUpdated"],
                "pagesScraped": f"{start}-{end}",
            },
        })

    @app.route("/api/scrape-latest-episodes-batch", methods=["POST"])
    def scrape_latest_episodes_batch():
        body = _json_body()
        require_admin(body)
        start, end = _page_range(body)
        result = scraper.run_latest_episodes_batch(start, end)
        if result is None:
            return _busy()
        return jsonify({
            "success": True,
            "message": f"Latest episodes batch scraping completed successfully for pages {start}-{end}",
            "data": {
                "totalEpisodes": result["totalEpisodes"],
                "lastUpdated": result["lastUpdated"],
                "pagesScraped": f"{start}-{end}",
            },
        })

    @app.route("/api/config", methods=["GET"])
    def get_config():
        return jsonify(config.get())

    @app.route("/api/config", methods=["PUT"])
    def put_config():
        body = _json_body()
        require_admin(body)
        if body.get("testAuth"):
            return jsonify({"message": "Authentication successful"})
        changes = {k: v for k, v in body.items() if k not in ("password", "testAuth")}
        config.update(changes)
        return jsonify({"message": "Configuration updated successfully"})

    return app
