"""Verify that internal links in built pages resolve to built files."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Set
from urllib.parse import urlparse

from bs4 import BeautifulSoup  # type: ignore

logger = logging.getLogger(__name__)

LINK_ATTRIBUTES = (("a", "href"), ("link", "href"), ("script", "src"), ("img", "src"))


@dataclass(frozen=True)
class BrokenLink:
    page: str
    href: str


def _soup(html: str) -> BeautifulSoup:
    try:
        return BeautifulSoup(html, "lxml")
    except Exception:
        return BeautifulSoup(html, "html.parser")


def _is_internal(href: str) -> bool:
    parsed = urlparse(href)
    if parsed.scheme or parsed.netloc:
        return False
    return bool(parsed.path)


def candidate_files(href: str, page: str) -> List[str]:
    """Built files that would satisfy ``href`` when linked from ``page``."""

    path = urlparse(href).path
    if path.startswith("/"):
        target = path.strip("/")
    else:
        parent = Path(page).parent
        target = (parent / path).as_posix().strip("/")
        if target == ".":
            target = ""

    if not target:
        return ["index.html"]
    if Path(target).suffix:
        return [target]
    return [f"{target}.html", f"{target}/index.html"]


def check_internal_links(output_dir: str | Path, files: Iterable[str]) -> List[BrokenLink]:
    """Parse every built HTML file and report internal links with no target."""

    root = Path(output_dir)
    built: Set[str] = {Path(name).as_posix() for name in files}
    broken: List[BrokenLink] = []

    for name in sorted(built):
        if not name.endswith(".html"):
            continue
        soup = _soup((root / name).read_text(encoding="utf-8"))
        for tag_name, attribute in LINK_ATTRIBUTES:
            for tag in soup.find_all(tag_name):
                href = (tag.get(attribute) or "").strip()
                if not href or not _is_internal(href):
                    continue
                if not any(candidate in built for candidate in candidate_files(href, name)):
                    broken.append(BrokenLink(page=name, href=href))

    for link in broken:
        logger.warning("Broken internal link in %s: %s", link.page, link.href)
    return broken
