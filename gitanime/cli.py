"""Command line entry point: ``gitanime serve``, ``gitanime scrape`` and friends."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from gitanime.config import ConfigStore, Settings
from gitanime.errors import GitAnimeError
from gitanime.scheduler import ScrapeScheduler
from gitanime.scraper import SamehadakuScraper

logger = logging.getLogger("gitanime")


def _dump(payload) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _summary(document: Optional[dict]) -> dict:
    if document is None:
        return {"skipped": True, "reason": "scraping already in progress"}
    return {k: v for k, v in document.items() if not isinstance(v, list)}


def cmd_serve(args, settings: Settings) -> int:
    from gitanime.web import create_app

    scraper = SamehadakuScraper(settings)
    scraper.ensure_data_files()
    config = ConfigStore(settings.data_dir / settings.config_file, source_url=settings.base_url)
    config.ensure()
    app = create_app(scraper=scraper, settings=settings, config=config)
    if not args.no_schedule:
        ScrapeScheduler(scraper.run_full_scrape, config).start()
    port = args.port or settings.port
    logger.info("GitAnime API server running on port %d", port)
    app.run(host=args.host, port=port, debug=False)
    return 0


def cmd_scrape(args, settings: Settings) -> int:
    _dump(_summary(SamehadakuScraper(settings).run_full_scrape()))
    return 0


def cmd_anime_list(args, settings: Settings) -> int:
    _dump(_summary(SamehadakuScraper(settings).run_anime_list_batch(args.start, args.end)))
    return 0


def cmd_latest_episodes(args, settings: Settings) -> int:
    _dump(_summary(SamehadakuScraper(settings).run_latest_episodes_batch(args.start, args.end)))
    return 0


def cmd_all_pages(args, settings: Settings) -> int:
    result = SamehadakuScraper(settings).run_all_pages()
    if result is None:
        _dump(_summary(None))
    else:
        _dump({name: _summary(doc) for name, doc in result.items()})
    return 0


def cmd_detail(args, settings: Settings) -> int:
    detail = SamehadakuScraper(settings).scrape_anime_detail(args.url)
    if detail is None:
        logger.error("Nothing found at %s", args.url)
        return 1
    _dump(detail.to_dict())
    return 0


def cmd_video(args, settings: Settings) -> int:
    locator = SamehadakuScraper(settings).scrape_episode_video(args.url)
    _dump(locator.to_dict())
    return 0 if locator.found else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gitanime", description="Samehadaku scraper and JSON API")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the HTTP API with the background scheduler")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--no-schedule", action="store_true", help="do not start the scheduler")
    serve.set_defaults(func=cmd_serve)

    scrape = sub.add_parser("scrape", help="latest releases expanded into all episodes")
    scrape.set_defaults(func=cmd_scrape)

    for name, func, help_text in (
        ("anime-list", cmd_anime_list, "scrape the anime catalog"),
        ("latest-episodes", cmd_latest_episodes, "scrape the latest episode pages"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--start", type=int, default=1)
        p.add_argument("--end", type=int, default=None, help="last page; omit to walk until the end")
        p.set_defaults(func=func)

    all_pages = sub.add_parser("all-pages", help="walk every catalog and latest episode page")
    all_pages.set_defaults(func=cmd_all_pages)

    detail = sub.add_parser("detail", help="scrape one anime or episode page")
    detail.add_argument("url")
    detail.set_defaults(func=cmd_detail)

    video = sub.add_parser("video", help="locate the video of an episode")
    video.add_argument("url")
    video.set_defaults(func=cmd_video)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = Settings.from_env()
    try:
        return args.func(args, settings)
    except GitAnimeError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
