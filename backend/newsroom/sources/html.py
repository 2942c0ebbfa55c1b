"""
HTML helpers shared by the feed and scrape adapters.
"""
from typing import Optional

from bs4 import BeautifulSoup

META_IMAGE_KEYS = [
    ("property", "og:image"),
    ("property", "og:image:url"),
    ("name", "twitter:image"),
    ("name", "twitter:image:src"),
]


def strip_html(markup: Optional[str]) -> str:
    """Return the visible text of an HTML fragment with whitespace collapsed."""
    if not markup:
        return ""
    if "<" not in markup and "&" not in markup:
        return " ".join(markup.split())
    text = BeautifulSoup(markup, "html.parser").get_text(" ", strip=True)
    return " ".join(text.split())


def extract_meta_image(html: Optional[str]) -> Optional[str]:
    """Find the page's share image in og/twitter meta tags."""
    if not html:
        return None
    soup = BeautifulSoup(html, "html.parser")
    for attr, key in META_IMAGE_KEYS:
        tag = soup.find("meta", attrs={attr: key})
        if tag and tag.get("content"):
            return tag["content"].strip()
    return None


def first_image_src(markup: Optional[str]) -> Optional[str]:
    """First <img src> inside a fragment, used for feeds that inline images."""
    if not markup or "<img" not in markup:
        return None
    img = BeautifulSoup(markup, "html.parser").find("img", src=True)
    return img["src"] if img else None
