from __future__ import annotations

from typing import Iterable, List, Set, Tuple

from .log import get_logger
from .model import BookmarkRecord

log = get_logger(__name__)


def unique_against(candidates: Iterable[BookmarkRecord], existing_keys: Set[Tuple[str, str]]) -> List[BookmarkRecord]:
    """Keep candidates whose (parent_url, url) key is new; first seen wins."""
    seen: Set[Tuple[str, str]] = set()
    out: List[BookmarkRecord] = []
    for r in candidates:
        k = r.key()
        if k in seen or k in existing_keys:
            continue
        seen.add(k)
        out.append(r)
    return out


def filter_unique(candidates: List[BookmarkRecord], user_id: int, store) -> List[BookmarkRecord]:
    existing = {r.key() for r in store.find_all_for_user(user_id)}
    out = unique_against(candidates, existing)
    dropped = len(candidates) - len(out)
    if dropped:
        log.debug("Dropped %d duplicate bookmarks for user %s.", dropped, user_id)
    return out
