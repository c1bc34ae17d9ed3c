from __future__ import annotations

from typing import List, Optional, Union

from bs4 import BeautifulSoup, NavigableString, Tag  # type: ignore
from bs4.builder import ParserRejectedMarkup  # type: ignore

from .errors import ParseError
from .log import get_logger
from .model import DEFAULT_SORT, ROOT_PARENT, BookmarkRecord

log = get_logger(__name__)


def parse_bookmarks_html(
    html: Union[str, bytes],
    user_id: Optional[int],
    *,
    default_sort: int = DEFAULT_SORT,
) -> List[BookmarkRecord]:
    """Parse a Netscape bookmark export into unsaved records.

    Records come out depth-first in document order. Folders are linked by
    name: a child's ``parent_url`` is the title of its enclosing folder, and
    top-level entries get ``ROOT_PARENT``.
    """
    if isinstance(html, bytes):
        try:
            html = html.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"bookmark file is not valid UTF-8: {e}") from e
    if not isinstance(html, str):
        raise ParseError(f"expected bookmark markup as text, got {type(html).__name__}")

    try:
        soup = BeautifulSoup(html, "html5lib")
    except ParserRejectedMarkup as e:
        raise ParseError(str(e)) from e

    out: List[BookmarkRecord] = []
    _walk(soup, ROOT_PARENT, out, user_id, default_sort)

    folders = sum(1 for r in out if r.is_folder)
    log.debug("Parsed %d folders and %d links from bookmark HTML.", folders, len(out) - folders)
    return out


def _walk(node: Tag, parent_url: str, out: List[BookmarkRecord], user_id, default_sort: int) -> None:
    if node.name == "dl":
        # Only direct DT entries belong to this list; nested lists are reached through their folder.
        for dt in node.find_all("dt", recursive=False):
            _process_dt(dt, parent_url, out, user_id, default_sort)
        return

    for child in node.children:
        if isinstance(child, Tag):
            _walk(child, parent_url, out, user_id, default_sort)


def _process_dt(dt: Tag, parent_url: str, out: List[BookmarkRecord], user_id, default_sort: int) -> None:
    h3 = dt.find("h3", recursive=False)
    if h3 is not None:
        name = _direct_text(h3)
        if name:
            out.append(
                BookmarkRecord(
                    title=name,
                    url=name,
                    is_folder=True,
                    parent_url=parent_url,
                    user_id=user_id,
                )
            )
            sub_dl = dt.find("dl", recursive=False)
            if sub_dl is None:
                sub_dl = dt.find_next_sibling("dl")
            if sub_dl is None:
                log.debug("Folder without DL: %s", name)
                return
            _walk(sub_dl, name, out, user_id, default_sort)
            return
        log.debug("Skipping folder with empty name under %r", parent_url)

    a = dt.find("a", recursive=False)
    if a is None:
        return
    url = a.get("href") or ""
    if not url:
        return
    out.append(
        BookmarkRecord(
            title=_direct_text(a),
            url=url,
            is_folder=False,
            parent_url=parent_url,
            lan_url="",
            sort=default_sort,
            user_id=user_id,
        )
    )


def _direct_text(el: Tag) -> str:
    # Only the element's own text runs; nested markup and comments are ignored.
    return "".join(str(c) for c in el.children if type(c) is NavigableString).strip()
