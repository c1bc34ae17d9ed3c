from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence, Tuple

from .log import get_logger
from .model import BookmarkRecord, BookmarkTreeNode, is_root_parent

log = get_logger(__name__)

# Plain integer text, as ids appear in stored parent references ("7", "+7", "007").
_INT_RE = re.compile(r"[+-]?[0-9]+")


def build_tree(records: Sequence[BookmarkRecord]) -> List[BookmarkTreeNode]:
    """Rebuild the ordered forest for one user's flat record list.

    A parent reference is resolved against record ids first and folder titles
    second, so records imported with name-based linkage attach to the folders
    they were imported under. Nothing is dropped: unresolved references and
    cycles surface as extra roots.
    """
    nodes = [BookmarkTreeNode(record=r) for r in records]
    lookup = _build_lookup(records)
    parents = [_resolve_parent(r.parent_url, lookup) for r in records]

    orphans = sum(
        1 for r, p in zip(records, parents) if p is None and not is_root_parent(r.parent_url)
    )
    if orphans:
        log.debug("Promoted %d bookmarks with unknown parents to the top level.", orphans)
    _break_cycles(parents, records)

    roots: List[BookmarkTreeNode] = []
    for node, p in zip(nodes, parents):
        if p is None:
            roots.append(node)
        else:
            nodes[p].children.append(node)

    _sort_siblings(roots)
    return roots


def _build_lookup(records: Sequence[BookmarkRecord]) -> Dict[str, int]:
    lookup: Dict[str, int] = {}

    # Folder titles first; the lowest id claims a title shared by several folders.
    for i in sorted(range(len(records)), key=lambda i: _id_rank(records[i], i), reverse=True):
        if records[i].is_folder:
            lookup[records[i].title] = i

    # Ids override any folder whose title happens to look like an id.
    for i, r in enumerate(records):
        if r.id is not None:
            lookup[str(r.id)] = i
    return lookup


def _resolve_parent(parent_url: Optional[str], lookup: Dict[str, int]) -> Optional[int]:
    if is_root_parent(parent_url):
        return None
    idx = lookup.get(parent_url)
    if idx is None and _INT_RE.fullmatch(parent_url):
        idx = lookup.get(str(int(parent_url)))
    return idx


def _break_cycles(parents: List[Optional[int]], records: Sequence[BookmarkRecord]) -> None:
    """Cut every parent loop by promoting its smallest member to a root."""
    unvisited, on_path, done = 0, 1, 2
    state = [unvisited] * len(parents)

    for start in range(len(parents)):
        path: List[int] = []
        cur = start
        while cur is not None and state[cur] == unvisited:
            state[cur] = on_path
            path.append(cur)
            cur = parents[cur]

        if cur is not None and state[cur] == on_path:
            cycle = path[path.index(cur):]
            head = min(cycle, key=lambda i: _order_key(records[i]))
            log.debug("Parent loop through %d bookmarks; promoting %r to the top level.", len(cycle), records[head].title)
            parents[head] = None

        for i in path:
            state[i] = done


def _sort_siblings(roots: List[BookmarkTreeNode]) -> None:
    stack = [roots]
    while stack:
        siblings = stack.pop()
        siblings.sort(key=lambda n: _order_key(n.record))
        stack.extend(n.children for n in siblings if n.children)


def _order_key(r: BookmarkRecord) -> Tuple[int, str, bool, int]:
    return (r.sort, r.title, r.id is None, r.id or 0)


def _id_rank(r: BookmarkRecord, index: int) -> Tuple[bool, int, int]:
    return (r.id is None, r.id or 0, index)
