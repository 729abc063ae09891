import pytest

from gitanime.repository import AnimeRepository, days_ago, paginate
from gitanime.store import ANIME_DATA, ANIME_LIST, LATEST_EPISODES, DocumentStore


def latest(title, number, released, created):
    return {
        "id": f"{title.lower()}-episode-{number}",
        "title": title,
        "episodeNumber": str(number),
        "link": f"https://v1.samehadaku.how/{title.lower()}-episode-{number}/",
        "postedBy": "admin",
        "releasedOn": released,
        "imageUrl": f"https://img.test/{title}",
        "animeId": title.lower(),
        "createdAt": created,
    }


@pytest.fixture
def repository(tmp_path):
    store = DocumentStore(tmp_path)
    store.write(ANIME_DATA, {
        "anime": [],
        "episodes": [],
        "latestEpisodes": [
            latest("Naruto", 2, "5 days yang lalu", "2025-01-02T00:00:00.000Z"),
            latest("Bleach", 7, "1 day yang lalu", "2025-01-05T00:00:00.000Z"),
            latest("Naruto", 3, "2 days yang lalu", "2025-01-04T00:00:00.000Z"),
            latest("Gintama", 1, None, "2025-01-01T00:00:00.000Z"),
        ],
    })
    store.write(ANIME_LIST, {
        "animeList": [
            {"title": "Naruto", "description": "Ninja story", "genres": ["Action"]},
            {"title": "Bleach", "description": "Soul reapers", "genres": ["Action", "Supernatural"]},
            {"title": "Clannad", "description": "After story", "genres": ["Drama"]},
        ],
        "totalAnime": 3,
        "lastUpdated": "2025-01-05T00:00:00.000Z",
        "source": "https://v1.samehadaku.how/daftar-anime-2/",
    })
    return AnimeRepository(store)


@pytest.mark.parametrize("text,expected", [
    ("3 days yang lalu", 3),
    ("1 day yang lalu", 1),
    ("12 Days Yang Lalu", 12),
    ("2 days ago", 0),
    ("", 0),
    (None, 0),
])
def test_days_ago(text, expected):
    assert days_ago(text) == expected


def test_paginate():
    items, pagination = paginate(list(range(45)), page=3, limit=20)
    assert items == list(range(40, 45))
    assert pagination == {"currentPage": 3, "totalPages": 3, "totalItems": 45, "itemsPerPage": 20}

    items, pagination = paginate([], page=0, limit=0)
    assert items == []
    assert pagination["currentPage"] == 1
    assert pagination["totalPages"] == 0


def test_episodes_sorted_by_release(repository):
    result = repository.episodes()
    # the episode without a release label is left out
    assert [ep["id"] for ep in result["anime"]] == ["bleach-episode-7", "naruto-episode-3", "naruto-episode-2"]
    assert result["pagination"]["totalItems"] == 3


def test_episodes_search_and_page(repository):
    result = repository.episodes(page=2, limit=1, search="NARUTO")
    assert [ep["id"] for ep in result["anime"]] == ["naruto-episode-2"]
    assert result["pagination"]["totalPages"] == 2


def test_latest_grouped(repository):
    result = repository.latest_grouped()
    assert [g["title"] for g in result["latest"]] == ["Bleach", "Naruto", "Gintama"]

    naruto = result["latest"][1]
    assert naruto["totalEpisodes"] == 2
    assert naruto["latestEpisode"]["episodeNumber"] == "3"
    assert naruto["animeId"] == "naruto"
    assert result["summary"]["totalAnime"] == 3
    assert result["summary"]["totalEpisodes"] == 4
    assert "episodes" not in result["summary"]["animeList"][0]


def test_anime_list_search(repository):
    assert [a["title"] for a in repository.anime_list(search="action")["anime"]] == ["Naruto", "Bleach"]
    assert [a["title"] for a in repository.anime_list(search="story")["anime"]] == ["Naruto", "Clannad"]
    result = repository.anime_list(page=2, limit=2)
    assert [a["title"] for a in result["anime"]] == ["Clannad"]
    assert result["summary"]["totalAnime"] == 3


def test_missing_documents(tmp_path):
    repository = AnimeRepository(DocumentStore(tmp_path))
    assert repository.latest_episodes()["episodes"] == []
    assert repository.latest_grouped()["latest"] == []
    assert repository.debug_info() == {"exists": False, "filePath": str(tmp_path / ANIME_DATA)}


def test_latest_episodes_document(tmp_path):
    store = DocumentStore(tmp_path)
    store.write(LATEST_EPISODES, {
        "latestEpisodes": [latest("Naruto", 1, "x", "t"), latest("Bleach", 1, "x", "t")],
        "totalEpisodes": 2,
        "lastUpdated": "2025-01-05T00:00:00.000Z",
        "source": "https://v1.samehadaku.how/anime-terbaru/",
    })
    result = AnimeRepository(store).latest_episodes(search="blea")
    assert [ep["title"] for ep in result["episodes"]] == ["Bleach"]
    assert result["summary"]["totalEpisodes"] == 2


def test_debug_info(repository):
    info = repository.debug_info()
    assert info["exists"]
    assert info["latestEpisodesCount"] == 4
    assert info["animeCount"] == 0
