"""URL slug helpers shared by categories and products."""

from __future__ import annotations

import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """Lowercase ASCII slug: ``"Audio & Video"`` -> ``"audio-video"``."""
    folded = (
        unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    )
    return _NON_ALNUM.sub("-", folded.lower()).strip("-")


def suffixed_slug(base: str, taken: set[str]) -> str:
    """Return ``base`` or the first free ``base-N`` (N >= 2)."""
    if base not in taken:
        return base
    n = 2
    while f"{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


def slug_from_url(url: str | None) -> str | None:
    """Last path segment of a product URL without ``.html``."""
    if not url:
        return None
    tail = url.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]
    if tail.endswith(".html"):
        tail = tail[: -len(".html")]
    return slugify(tail) or None
