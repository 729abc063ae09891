from __future__ import annotations

import pytest

from gitanime.config import Settings
from gitanime.errors import FetchError
from gitanime.fetcher import make_soup
from gitanime.scraper import SamehadakuScraper, store_for

BASE_URL = "https://v1.samehadaku.how/"


class FakeFetcher:
    """Serves canned bodies by URL.

    A value may be a string, an exception to raise, or a list consumed one
    item per call.
    """

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.calls = []

    def fetch(self, url, method="GET", data=None, headers=None, timeout=None):
        self.calls.append((method, url, dict(data or {})))
        if url not in self.pages:
            raise FetchError(url, message=f"no page for {url}")
        value = self.pages[url]
        if isinstance(value, list):
            value = value.pop(0) if len(value) > 1 else value[0]
        if isinstance(value, Exception):
            raise value
        return value

    def fetch_soup(self, url, **kwargs):
        return make_soup(self.fetch(url, **kwargs))

    def urls(self, method=None):
        return [url for m, url, _ in self.calls if method is None or m == method]

    def close(self):
        pass


def fake_image(title):
    return f"https://img.test/{title}"


LATEST_PAGE = """
<html><body>
<ul class="post-show">
  <li>
    <div class="thumb"><a href="/attack-on-titan-episode-5/"><img src="https://v1.samehadaku.how/wp-content/uploads/aot.jpg"></a></div>
    <div class="dtla">
      <h2 class="entry-title"><a href="/attack-on-titan-episode-5/">Attack on Titan</a></h2>
      <span>Episode 5</span>
      <span>Posted by: admin</span>
      <span>Released on: 2 days ago</span>
    </div>
  </li>
  <li>
    <div class="dtla">
      <h2 class="entry-title"><a href="https://v1.samehadaku.how/one-piece-episode-1100/">One Piece</a></h2>
      <span>Episode 1100</span>
      <span>Posted by: kuro</span>
      <span>Released on: 1 day yang lalu</span>
    </div>
  </li>
  <li><a href="/about/">About</a></li>
</ul>
</body></html>
"""

ANIME_DETAIL_PAGE = """
<html><head><meta property="og:image" content="https://cdn.test/og.jpg"></head><body>
<h1 class="entry-title">Attack on Titan Sub Indo</h1>
<img src="https://cdn.test/attack-on-titan-cover.jpg" alt="Attack on Titan cover">
<div class="spe">
  <span><b>Japanese</b> 進撃の巨人</span>
  <span><b>English</b> Attack on Titan</span>
  <span><b>Status</b> Completed</span>
  <span><b>Type</b> TV</span>
  <span><b>Source</b> Manga</span>
  <span><b>Duration</b> 24 min. per ep.</span>
  <span><b>Total Episode</b> 25</span>
  <span><b>Season</b> Spring 2013</span>
  <span><b>Studio</b> Wit Studio</span>
  <span><b>Released:</b> Apr 7, 2013</span>
</div>
<div class="genre-info"><b>Genres</b> <a href="/genre/action/">Action</a> <a href="/genre/drama/">Drama</a></div>
<div class="lstepsiode"><ul>
  <li><a href="https://v1.samehadaku.how/attack-on-titan-episode-5/">Episode 5</a></li>
  <li><a href="https://v1.samehadaku.how/attack-on-titan-episode-4/">Episode 4</a></li>
  <li><a href="https://v1.samehadaku.how/attack-on-titan-episode-4/">Episode 4</a></li>
</ul></div>
</body></html>
"""

ANIME_LIST_PAGE = """
<html><body><div class="relat">
<article class="animpost">
  <div class="animposx">
    <a href="https://v1.samehadaku.how/anime/one-piece/" title="One Piece">
      <div class="content-thumb">
        <div class="type TV">TV</div>
        <img class="anmsa" src="https://cdn.test/one-piece.jpg" alt="One Piece">
        <div class="score">8.7</div>
      </div>
      <div class="data">
        <div class="title"><h2>One Piece</h2></div>
        <div class="type">Ongoing</div>
      </div>
    </a>
  </div>
  <div class="stooltip">
    <div class="metadata"><span>1999</span><span>1100 Episode</span></div>
    <div class="ttls">Pirates looking for treasure.</div>
    <div class="genres"><div class="mta"><a href="/genre/action/">Action</a><a href="/genre/adventure/">Adventure</a></div></div>
  </div>
</article>
<article class="animpost">
  <div class="animposx">
    <a href="/anime/naruto/">
      <div class="content-thumb"><img class="anmsa" data-src="/covers/naruto.jpg"></div>
      <div class="data"><div class="title"><h2>Naruto</h2></div></div>
    </a>
  </div>
</article>
<article class="animpost"><div class="data"><div class="title"><h2>No Link</h2></div></div></article>
</div>
<div class="pagination"><a class="next page-numbers" href="/daftar-anime-2/page/2/">Next</a></div>
</body></html>
"""

ANIME_LIST_PAGE_2 = """
<html><body><div class="relat">
<article class="animpost">
  <div class="animposx"><a href="/anime/naruto/"><div class="data"><div class="title"><h2>Naruto</h2></div></div></a></div>
</article>
<article class="animpost">
  <div class="animposx"><a href="/anime/bleach/"><div class="data"><div class="title"><h2>Bleach</h2></div></div></a></div>
</article>
</div></body></html>
"""


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=tmp_path,
        admin_password="secret",
        page_delay=0,
        detail_delay=0,
        video_retry_delay=0,
    )


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def scraper(settings, fetcher, sleeps):
    return SamehadakuScraper(
        settings,
        fetcher=fetcher,
        store=store_for(settings),
        image_for=fake_image,
        sleep=sleeps.append,
    )
