"""
URL slug generation for categories and albums.
"""
from slugify import slugify


def make_slug(name: str) -> str:
    """
    Deterministic slug: transliterated to ASCII, lowercase, [a-z0-9] words joined by hyphens.

    "Nature" -> "nature", "Wedding Photos 2024" -> "wedding-photos-2024"
    Names with no transliterable characters produce an empty string.
    """
    return slugify(name, lowercase=True, max_length=100, word_boundary=True)
