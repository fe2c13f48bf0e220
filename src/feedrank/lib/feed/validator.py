"""Feed request normalization.

``validate`` turns a loosely-typed mapping (query parameters, a JSON body, or
an existing :class:`FeedRequest`) into a frozen ``FeedRequest``.  Missing
fields get defaults; out-of-range numbers are rejected rather than clamped.
"""

import math
from collections.abc import Mapping
from typing import Any

from ...models import FeedRequest, PostType, SortMode
from ..errors import InvalidArgument

DEFAULT_LIMIT = 20
MIN_LIMIT = 1
MAX_LIMIT = 100

DEFAULT_DECAY_FACTOR = 1.0
MIN_DECAY_FACTOR = 0.1
MAX_DECAY_FACTOR = 5.0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_user_id(raw: Any) -> int:
    if raw is None or raw == "":
        raise InvalidArgument("User ID is required")
    if isinstance(raw, bool):
        raise InvalidArgument("User ID must be an integer")
    if isinstance(raw, float):
        if not raw.is_integer():
            raise InvalidArgument(f"User ID must be an integer, got {raw!r}")
        return int(raw)
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise InvalidArgument(f"User ID must be an integer, got {raw!r}") from None


def _parse_limit(raw: Any) -> int:
    if raw is None:
        return DEFAULT_LIMIT
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    if not isinstance(raw, int) or isinstance(raw, bool):
        raise InvalidArgument(f"Limit must be an integer, got {raw!r}")
    if raw < MIN_LIMIT or raw > MAX_LIMIT:
        raise InvalidArgument(f"Limit must be between {MIN_LIMIT} and {MAX_LIMIT}")
    return raw


def _parse_decay_factor(raw: Any) -> float:
    if raw is None:
        return DEFAULT_DECAY_FACTOR
    if not _is_number(raw):
        raise InvalidArgument(f"Time decay factor must be a number, got {raw!r}")
    # NaN compares false against both bounds
    if not math.isfinite(raw) or not MIN_DECAY_FACTOR <= raw <= MAX_DECAY_FACTOR:
        raise InvalidArgument(
            f"Time decay factor must be between {MIN_DECAY_FACTOR} and {MAX_DECAY_FACTOR}"
        )
    return float(raw)


_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off", ""}


def _parse_flag(name: str, raw: Any) -> bool:
    if raw is None:
        return False
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        value = raw.strip().lower()
        if value in _TRUE_STRINGS:
            return True
        if value in _FALSE_STRINGS:
            return False
    raise InvalidArgument(f"{name} must be a boolean, got {raw!r}")


def _parse_sort_mode(raw: Any) -> SortMode:
    if isinstance(raw, SortMode):
        return raw
    if isinstance(raw, str):
        try:
            return SortMode(raw.strip().lower())
        except ValueError:
            pass
    return SortMode.ALGORITHM


def _parse_post_types(raw: Any) -> frozenset[PostType] | None:
    if raw is None:
        return None
    if isinstance(raw, (str, PostType)):
        raw = [raw]
    types: set[PostType] = set()
    for item in raw:
        if isinstance(item, PostType):
            types.add(item)
            continue
        try:
            types.add(PostType(str(item).upper()))
        except ValueError:
            raise InvalidArgument(f"Unknown post type: {item!r}") from None
    return frozenset(types) if types else None


def validate(raw: Mapping[str, Any] | FeedRequest) -> FeedRequest:
    """Normalize *raw* into a ``FeedRequest`` or raise ``InvalidArgument``."""
    if raw is None:
        raise InvalidArgument("Feed request cannot be empty")
    if isinstance(raw, FeedRequest):
        raw = raw.model_dump()
    elif not isinstance(raw, Mapping):
        raise InvalidArgument(f"Unsupported feed request type: {type(raw).__name__}")

    return FeedRequest(
        user_id=_parse_user_id(raw.get("user_id")),
        limit=_parse_limit(raw.get("limit")),
        sort_mode=_parse_sort_mode(raw.get("sort_mode")),
        post_types=_parse_post_types(raw.get("post_types")),
        include_nsfw=_parse_flag("include_nsfw", raw.get("include_nsfw")),
        following_only=_parse_flag("following_only", raw.get("following_only")),
        time_decay_factor=_parse_decay_factor(raw.get("time_decay_factor")),
    )
