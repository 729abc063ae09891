import pytest
from conftest import (
    ANIME_DETAIL_PAGE,
    ANIME_LIST_PAGE,
    ANIME_LIST_PAGE_2,
    BASE_URL,
    LATEST_PAGE,
    FakeFetcher,
    fake_image,
)

from gitanime.config import Settings
from gitanime.errors import FetchError
from gitanime.models import AnimeDetail, EpisodeDetail
from gitanime.scraper import SamehadakuScraper, store_for
from gitanime.store import ANIME_DATA, ANIME_LIST, LATEST_EPISODES

LATEST_URL = BASE_URL + "anime-terbaru/"
LIST_URL = BASE_URL + "daftar-anime-2/"
AOT_URL = BASE_URL + "anime/attack-on-titan/"


def test_guard_skips_while_another_run_is_active(scraper, fetcher):
    scraper._lock.acquire()
    try:
        assert scraper.is_scraping
        assert scraper.run_full_scrape() is None
        assert scraper.run_anime_list_batch(1, 2) is None
        assert scraper.run_latest_episodes_batch() is None
    finally:
        scraper._lock.release()
    assert fetcher.calls == []
    assert not scraper.is_scraping


def test_guard_is_released_after_failure(scraper):
    # nothing is served, so the latest page fails
    with pytest.raises(FetchError):
        scraper.run_full_scrape()
    assert not scraper.is_scraping


def test_scrape_latest_episodes(scraper, fetcher):
    fetcher.pages[LATEST_URL] = LATEST_PAGE
    episodes = scraper.scrape_latest_episodes()
    assert [ep.id for ep in episodes] == ["attack-on-titan-episode-5", "one-piece-episode-1100"]
    assert fetcher.urls() == [LATEST_URL]


def test_run_anime_list_batch(scraper, fetcher):
    fetcher.pages[LIST_URL] = ANIME_LIST_PAGE
    fetcher.pages[LIST_URL + "page/2/"] = ANIME_LIST_PAGE_2

    document = scraper.run_anime_list_batch(1, 2)

    assert [a["title"] for a in document["animeList"]] == ["One Piece", "Naruto", "Bleach"]
    assert document["totalAnime"] == 3
    assert document["source"] == LIST_URL
    assert scraper.store.read(ANIME_LIST) == document


def test_run_latest_episodes_batch(scraper, fetcher):
    fetcher.pages[LATEST_URL] = LATEST_PAGE
    document = scraper.run_latest_episodes_batch(1, 1)
    assert document["totalEpisodes"] == 2
    assert document["source"] == LATEST_URL
    assert scraper.store.exists(LATEST_EPISODES)


def test_anime_url_for():
    scraper = SamehadakuScraper(Settings(), fetcher=FakeFetcher(), image_for=fake_image)
    assert scraper.anime_url_for(BASE_URL + "dandadan-season-2-episode-5/") == BASE_URL + "anime/dandadan-season-2/"
    assert scraper.anime_url_for(BASE_URL + "one-piece-episode-1100-end/") == BASE_URL + "anime/one-piece/"


def test_scrape_all_episodes_expands_each_anime(scraper, fetcher):
    fetcher.pages[LATEST_URL] = LATEST_PAGE
    fetcher.pages[AOT_URL] = ANIME_DETAIL_PAGE
    latest = scraper.scrape_latest_episodes()

    episodes = scraper.scrape_all_episodes(latest)

    assert [ep.id for ep in episodes] == [
        "attack-on-titan-episode-5",
        "attack-on-titan-episode-4",
        # the One Piece detail page is not served, so its latest entry stays
        "one-piece-episode-1100",
    ]
    ep5, ep4, one_piece = episodes
    assert ep5.posted_by == "admin"
    assert ep5.released_on == "2 days ago"
    assert ep4.posted_by is None
    assert ep4.link == BASE_URL + "attack-on-titan-episode-4/"
    assert ep5.image_url == "https://cdn.test/attack-on-titan-cover.jpg"
    assert one_piece is latest[1]
    assert fetcher.urls() == [LATEST_URL, AOT_URL, BASE_URL + "anime/one-piece/"]


def test_scrape_all_episodes_pauses_between_anime(tmp_path):
    sleeps = []
    settings = Settings(data_dir=tmp_path, detail_delay=0.5, page_delay=0)
    fetcher = FakeFetcher({LATEST_URL: LATEST_PAGE})
    scraper = SamehadakuScraper(settings, fetcher=fetcher, image_for=fake_image, sleep=sleeps.append)

    scraper.scrape_all_episodes(scraper.scrape_latest_episodes())
    assert sleeps == [0.5]


def test_run_full_scrape(scraper, fetcher):
    fetcher.pages[LATEST_URL] = LATEST_PAGE
    fetcher.pages[AOT_URL] = ANIME_DETAIL_PAGE
    scraper.store.write(ANIME_DATA, {"anime": [{"id": "kept"}], "episodes": [], "latestEpisodes": []})

    document = scraper.run_full_scrape()

    assert document["totalEpisodes"] == 3
    assert document["anime"] == [{"id": "kept"}]
    stored = scraper.store.read(ANIME_DATA)
    assert [ep["id"] for ep in stored["latestEpisodes"]][:2] == [
        "attack-on-titan-episode-5",
        "attack-on-titan-episode-4",
    ]


def test_scrape_anime_detail_dispatch(scraper, fetcher):
    episode_url = BASE_URL + "dandadan-season-2-episode-5/"
    fetcher.pages[AOT_URL] = ANIME_DETAIL_PAGE
    fetcher.pages[episode_url] = '<h1 class="entry-title">Dandadan Season 2 Episode 5</h1>'

    assert isinstance(scraper.scrape_anime_detail(AOT_URL), AnimeDetail)
    episode = scraper.scrape_anime_detail(episode_url)
    assert isinstance(episode, EpisodeDetail)
    assert episode.episode_number == "5"


def test_scrape_episode_video(scraper, fetcher):
    url = BASE_URL + "naruto-episode-1/"
    fetcher.pages[url] = '<html><body><video src="https://cdn.test/n1.mp4"></video></body></html>'
    locator = scraper.scrape_episode_video(url)
    assert locator.to_dict()["url"] == "https://cdn.test/n1.mp4"
    assert locator.to_dict()["type"] == "direct_video"


def test_ensure_data_files(settings):
    scraper = SamehadakuScraper(settings, fetcher=FakeFetcher(), store=store_for(settings), image_for=fake_image)
    scraper.ensure_data_files()
    assert (settings.data_dir / "anime-data.json").is_file()


def test_missing_image_map_falls_back_to_bundled_table(tmp_path):
    settings = Settings(data_dir=tmp_path, image_map_file=tmp_path / "missing.json")
    scraper = SamehadakuScraper(settings, fetcher=FakeFetcher())
    assert scraper.image_for("Attack on Titan") == "https://cdn.myanimelist.net/images/anime/10/47347.jpg"
    assert scraper.image_for("Unknown Show").startswith("https://via.placeholder.com/")
