from __future__ import annotations

import math
from typing import Any, Callable, Final, Mapping, Optional, Sequence, TypeVar

from docqa.domain.errors import InvalidInput
from docqa.domain.models import Metadata, Page

T = TypeVar("T")

# Closed set of metadata value kinds; filters compare with ==
METADATA_VALUE_TYPES: Final[tuple[type, ...]] = (str, int, float, bool)

DEFAULT_PAGE_LIMIT: Final[int] = 50
MAX_PAGE_LIMIT: Final[int] = 500


def validate_content(content: Any) -> str:
    if not isinstance(content, str) or not content.strip():
        raise InvalidInput("content must be a non-empty string")
    return content


def validate_metadata(metadata: Optional[Mapping[str, Any]], *, what: str = "metadata") -> Metadata:
    """
    Check that metadata is a flat mapping of str -> str/int/float/bool.

    Returns a plain dict copy. Nothing is coerced: nested values, None and
    non-finite floats are rejected.
    """
    if metadata is None:
        return {}
    if not isinstance(metadata, Mapping):
        raise InvalidInput(f"{what} must be a mapping")

    out: dict[str, Any] = {}
    for key, value in metadata.items():
        if not isinstance(key, str) or not key:
            raise InvalidInput(f"{what} keys must be non-empty strings")
        if not isinstance(value, METADATA_VALUE_TYPES):
            raise InvalidInput(
                f"{what}[{key!r}] must be a string, number or boolean, got {type(value).__name__}"
            )
        if isinstance(value, float) and not math.isfinite(value):
            raise InvalidInput(f"{what}[{key!r}] must be a finite number")
        out[key] = value
    return out


def matches_filters(metadata: Metadata, filters: Optional[Metadata]) -> bool:
    """Exact-match conjunction over metadata keys."""
    if not filters:
        return True
    for k, v in filters.items():
        if k not in metadata:
            return False
        actual = metadata[k]
        # True == 1 in Python; keep booleans and numbers apart
        if isinstance(actual, bool) != isinstance(v, bool) or actual != v:
            return False
    return True


def validate_page_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_PAGE_LIMIT
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_PAGE_LIMIT:
        raise InvalidInput(f"limit must be an integer between 1 and {MAX_PAGE_LIMIT}")
    return limit


def paginate(
    items: Sequence[T],
    *,
    key: Callable[[T], str],
    cursor: Optional[str] = None,
    limit: Optional[int] = None,
) -> Page[T]:
    """
    Cursor pagination by ascending key; the cursor is the last key already seen.
    """
    limit = validate_page_limit(limit)
    ordered = sorted(items, key=key)
    if cursor:
        ordered = [item for item in ordered if key(item) > cursor]

    page = ordered[:limit]
    next_cursor = key(page[-1]) if len(ordered) > limit else None
    return Page(items=tuple(page), next_cursor=next_cursor)
