"""Natural key helpers.

Slug generation and the shared "first free name" probe used for product
slugs, SKUs and image filenames.
"""

import re
import unicodedata
from collections.abc import Awaitable, Callable

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """Convert text to a URL slug.

    Lowercases, strips accents, collapses every run of non-alphanumeric
    characters into a single hyphen and trims leading/trailing hyphens.

    Args:
        value: Text to convert.

    Returns:
        Slug (may be empty if the text has no alphanumeric characters).

    Example:
        >>> slugify("SG Test Bat")
        'sg-test-bat'
    """
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode()
    return _NON_ALNUM.sub("-", normalized.lower()).strip("-")


async def first_available(
    base: str,
    exists: Callable[[str], Awaitable[bool]],
    suffix: str = "",
) -> str:
    """Find the first candidate name that does not exist yet.

    Probes ``base``, then ``base-1``, ``base-2`` and so on. ``suffix`` is
    appended after the counter (e.g. a file extension).

    Args:
        base: Base name.
        exists: Async probe returning True when a candidate is taken.
        suffix: Text appended to every candidate.

    Returns:
        First free candidate.
    """
    candidate = f"{base}{suffix}"
    counter = 1
    while await exists(candidate):
        candidate = f"{base}-{counter}{suffix}"
        counter += 1
    return candidate
