from pathlib import Path

from gitanime.config import DEFAULT_SCRAPING_INTERVAL, ConfigStore, Settings

ENV_VARS = (
    "SAMEHADAKU_URL", "GITANIME_ENV", "NODE_ENV", "GITANIME_DATA_DIR", "ADMIN_PASSWORD",
    "GITANIME_PAGE_DELAY", "GITANIME_ONLINE_IMAGES", "DATA_FILE", "PORT",
)


def clear_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    clear_env(monkeypatch)
    settings = Settings.from_env(dotenv=False)
    assert settings.base_url == "https://v1.samehadaku.how/"
    assert settings.data_dir == Path("data")
    assert settings.admin_password is None
    assert settings.anime_list_source == "https://v1.samehadaku.how/daftar-anime-2/"
    assert settings.latest_episodes_source == "https://v1.samehadaku.how/anime-terbaru/"


def test_from_env(monkeypatch):
    clear_env(monkeypatch)
    monkeypatch.setenv("SAMEHADAKU_URL", "https://mirror.test")
    monkeypatch.setenv("ADMIN_PASSWORD", "hunter2")
    monkeypatch.setenv("GITANIME_PAGE_DELAY", "0.25")
    monkeypatch.setenv("GITANIME_ONLINE_IMAGES", "yes")
    monkeypatch.setenv("DATA_FILE", "custom.json")
    monkeypatch.setenv("PORT", "8080")

    settings = Settings.from_env(dotenv=False)
    assert settings.base_url == "https://mirror.test/"
    assert settings.admin_password == "hunter2"
    assert settings.page_delay == 0.25
    assert settings.online_images
    assert settings.anime_data_file == "custom.json"
    assert settings.port == 8080


def test_production_uses_tmp(monkeypatch):
    clear_env(monkeypatch)
    monkeypatch.setenv("NODE_ENV", "production")
    settings = Settings.from_env(dotenv=False)
    assert settings.production
    assert settings.data_dir == Path("/tmp")


def test_invalid_number_falls_back(monkeypatch):
    clear_env(monkeypatch)
    monkeypatch.setenv("GITANIME_PAGE_DELAY", "soon")
    assert Settings.from_env(dotenv=False).page_delay == 1.0


def test_config_store_defaults(tmp_path):
    store = ConfigStore(tmp_path / "nested" / "config.json", source_url="https://mirror.test/")
    config = store.get()
    assert config == {
        "sourceUrl": "https://mirror.test/",
        "scrapingInterval": DEFAULT_SCRAPING_INTERVAL,
        "autoScraping": True,
    }
    assert store.path.is_file()


def test_config_store_update(tmp_path):
    store = ConfigStore(tmp_path / "config.json")
    updated = store.update({"autoScraping": False, "scrapingInterval": "30 * * * *"})
    assert updated["autoScraping"] is False
    assert ConfigStore(tmp_path / "config.json").get()["scrapingInterval"] == "30 * * * *"


def test_config_store_unreadable_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    assert ConfigStore(path).get()["autoScraping"] is True
