"""Slug generation utilities for record identifiers.

Ingredients, menu items and recipe lines are keyed by short, human-readable
string ids. When the caller does not supply an id, one is derived from the
record name.

Examples:
    >>> create_slug("Shredded Cheese")
    'shredded-cheese'

    >>> create_slug("Jalapeño Peppers")
    'jalapeno-peppers'

    >>> ensure_id(None, "Salsa Verde")
    'salsa-verde'
"""

import re
import unicodedata
import uuid
from typing import Optional

from .constants import MAX_ID_LENGTH, MIN_ID_LENGTH


def create_slug(name: str) -> str:
    """Generate a URL-safe slug from a display name.

    Algorithm:
        1. Normalize Unicode to NFD (decompose accented characters)
        2. Encode to ASCII, ignoring non-ASCII characters
        3. Convert to lowercase
        4. Replace every run of non-alphanumeric characters with a hyphen
        5. Strip leading/trailing hyphens
        6. Truncate to MAX_ID_LENGTH characters

    Args:
        name: Name to convert to slug

    Returns:
        Slug string (lowercase, alphanumeric + hyphens only). May be empty.
    """
    normalized = unicodedata.normalize("NFD", name)
    slug = normalized.encode("ascii", "ignore").decode("ascii")
    slug = slug.lower().strip()
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    slug = slug.strip("-")
    return slug[:MAX_ID_LENGTH]


def ensure_id(record_id: Optional[str], fallback_name: str) -> str:
    """Return ``record_id`` when given, otherwise derive one from a name.

    Slugs shorter than MIN_ID_LENGTH are too collision-prone to use as keys,
    so a random ``item-xxxxxx`` id is generated instead.

    Args:
        record_id: Caller-supplied id, may be None or empty
        fallback_name: Name used to derive an id

    Returns:
        Non-empty identifier string
    """
    if record_id:
        return record_id

    slug = create_slug(fallback_name)
    if len(slug) >= MIN_ID_LENGTH:
        return slug

    return f"item-{uuid.uuid4().hex[:6]}"
