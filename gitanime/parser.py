from __future__ import annotations

import html
import logging
import re
from typing import Callable, Iterable, List, Optional, Sequence
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

Strategy = Callable[[Tag], Optional[str]]

IMAGE_EXCLUDE = ("avatar", "logo", "icon", "wp-content")
IMAGE_HINTS = ("anime", "cover", "poster")
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png")
SUFFIX_NOISE = re.compile(r"\s*Sub(?:title)?\s+Indo(?:nesia)?\s*$", re.I)


def clean_text(value: Optional[str]) -> str:
    """Decode entities and collapse runs of whitespace."""
    return re.sub(r"\s+", " ", html.unescape(value or "")).strip()


def none_if_empty(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def slugify(text: str) -> str:
    """Stable URL-safe identifier used as the join key for every record.

    ``"Attack on Titan"`` and ``"attack-on-titan!"`` both become
    ``"attack-on-titan"``.
    """
    slug = re.sub(r"[^a-z0-9]", "-", (text or "").lower())
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def episode_id(title: str, number: Optional[str]) -> str:
    return slugify(f"{title}-episode-{number}")


def slug_from_url(url: str) -> str:
    p = urlparse(url)
    return p.path.strip("/").split("/")[-1]


def strip_title_noise(title: str) -> str:
    return SUFFIX_NOISE.sub("", clean_text(title)).strip()


def resolve_url(url: str, base_url: str) -> str:
    if url.startswith("http"):
        return url
    if url.startswith("//"):
        return f"https:{url}"
    return f"{base_url}{url.lstrip('/')}"


def anime_title_from_url(url: str) -> str:
    """Readable anime title from an episode URL slug."""
    last = slug_from_url(url)
    if not last:
        return "Anime Episode"
    title = " ".join(word.capitalize() for word in last.split("-") if word)
    title = re.sub(r"\bEpisode \d+\b.*$", "", title, flags=re.I).strip()
    title = re.sub(r"\bSeason (\d+)\b", r"S\1", title, flags=re.I)
    title = re.sub(r"\bPart (\d+)\b", r"P\1", title, flags=re.I)
    return title.strip() or "Anime Episode"


# --- extraction toolkit -----------------------------------------------------

def first_match(strategies: Iterable[Strategy], element: Tag, field_name: str = "") -> Optional[str]:
    """Run ``strategies`` in order and return the first non-empty result.

    A strategy that raises is logged and skipped.
    """
    for strategy in strategies:
        try:
            value = strategy(element)
        except Exception as e:
            logger.debug("Strategy %s for %s failed: %s", getattr(strategy, "__name__", strategy), field_name, e)
            continue
        value = none_if_empty(value) if isinstance(value, str) else value
        if value:
            return value
    return None


def element_text(element: Tag, separator: str = "") -> str:
    return element.get_text(separator) if element is not None else ""


def select_text(selector: str) -> Strategy:
    def strategy(element: Tag) -> Optional[str]:
        found = element.select_one(selector)
        return found.get_text(strip=True) if found else None

    strategy.__name__ = f"select_text({selector})"
    return strategy


def select_attr(selector: str, *attrs: str) -> Strategy:
    def strategy(element: Tag) -> Optional[str]:
        for found in element.select(selector):
            for attr in attrs:
                value = found.get(attr)
                if value and value.strip():
                    return value.strip()
        return None

    strategy.__name__ = f"select_attr({selector})"
    return strategy


def heading_title(*tags: str) -> Strategy:
    def strategy(element: Tag) -> Optional[str]:
        heading = element.find(list(tags) or ["h1", "h2"])
        return strip_title_noise(heading.get_text()) if heading else None

    strategy.__name__ = f"heading_title({','.join(tags)})"
    return strategy


def regex_text(pattern: str, flags: int = re.I, separator: str = "") -> Strategy:
    compiled = re.compile(pattern, flags)

    def strategy(element: Tag) -> Optional[str]:
        match = compiled.search(element_text(element, separator))
        return match.group(1).strip() if match else None

    strategy.__name__ = f"regex_text({pattern})"
    return strategy


def labelled_text(label: str, stop_labels: Sequence[str] = (), separator: str = "") -> Strategy:
    """Text following ``label:`` up to the end of the line or the next label."""
    stops = "|".join(re.escape(s) + r"\s*:" for s in stop_labels)
    lookahead = rf"(?=\s*(?:{stops})|\n|$)" if stops else r"(?=\n|$)"
    return regex_text(rf"{re.escape(label)}\s*:\s*(.+?){lookahead}", re.I | re.M, separator)


def find_label(element: Tag, label: str, tags: Sequence[str] = ("strong", "b")) -> Optional[Tag]:
    needle = label.lower()
    for tag in element.find_all(list(tags)):
        if needle in tag.get_text().lower():
            return tag
    return None


def label_value(label: str, tags: Sequence[str] = ("strong", "b")) -> Strategy:
    """Parent text of the bold ``label`` element with the label removed."""

    def strategy(element: Tag) -> Optional[str]:
        tag = find_label(element, label, tags)
        if tag is None or tag.parent is None:
            return None
        text = tag.parent.get_text().replace(tag.get_text(), "", 1)
        return re.sub(r"\s+", " ", text).strip().lstrip(":").strip()

    strategy.__name__ = f"label_value({label})"
    return strategy


def label_links(element: Tag, label: str, tags: Sequence[str] = ("strong", "b")) -> List[str]:
    tag = find_label(element, label, tags)
    if tag is None or tag.parent is None:
        return []
    return [a.get_text(strip=True) for a in tag.parent.find_all("a") if a.get_text(strip=True)]


def select_texts(element: Tag, selector: str) -> List[str]:
    return [el.get_text(strip=True) for el in element.select(selector) if el.get_text(strip=True)]


def meta_content(*names: str) -> Strategy:
    def strategy(element: Tag) -> Optional[str]:
        for name in names:
            meta = element.find("meta", attrs={"property": name}) or element.find("meta", attrs={"name": name})
            if meta and meta.get("content"):
                return meta["content"]
        return None

    strategy.__name__ = f"meta_content({','.join(names)})"
    return strategy


def _image_source(img: Tag) -> str:
    return (img.get("src") or img.get("data-src") or "").strip()


def _excluded(src: str) -> bool:
    return any(word in src for word in IMAGE_EXCLUDE)


def pick_image(element: Tag) -> Optional[str]:
    """First image that looks like artwork rather than site chrome."""
    for img in element.find_all("img"):
        src = _image_source(img)
        if not src or _excluded(src):
            continue
        hint = f"{img.get('alt') or ''} {img.get('title') or ''}".lower()
        if any(word in hint for word in IMAGE_HINTS) or any(ext in src.lower() for ext in IMAGE_EXTENSIONS):
            return src
    return None


def _dimension(value) -> int:
    try:
        return int(str(value).strip().rstrip("px"))
    except (TypeError, ValueError):
        return 0


def pick_large_image(element: Tag) -> Optional[str]:
    for img in element.find_all("img"):
        src = _image_source(img)
        if not src or _excluded(src):
            continue
        if _dimension(img.get("width")) > 200 or _dimension(img.get("height")) > 200:
            return src
    return None


NEXT_PAGE_SELECTORS = (
    ".pagination .next",
    '.pagination a[rel="next"]',
    '.pagination a:-soup-contains("Next")',
    "a.next.page-numbers",
    'link[rel="next"]',
)


def has_next_page(soup: BeautifulSoup) -> bool:
    for selector in NEXT_PAGE_SELECTORS:
        try:
            if soup.select_one(selector) is not None:
                return True
        except Exception as e:
            logger.debug("Next page selector %s failed: %s", selector, e)
    return False
