from pathlib import Path

import pytest

from markpanel.errors import NotFoundOrForbidden, ParseError, ValidationError
from markpanel.service import BookmarkService

EXPORT = """<!DOCTYPE NETSCAPE-Bookmark-file-1>
<TITLE>Bookmarks</TITLE>
<H1>Bookmarks</H1>
<DL><p>
    <DT><H3>F</H3>
    <DL><p>
        <DT><A HREF="https://l.example/">L</A>
    </DL><p>
</DL><p>
"""


def test_import_then_list_rebuilds_the_folder(store):
    svc = BookmarkService(store)

    result = svc.import_html(EXPORT, 1)
    assert result.count == 2
    assert all(r.id is not None for r in result.records)

    roots = svc.list_tree(1)
    assert [n.title for n in roots] == ["F"]
    assert [c.title for c in roots[0].children] == ["L"]
    assert roots[0].children[0].record.sort == 9999


def test_reimport_adds_nothing(store):
    svc = BookmarkService(store)
    svc.import_html(EXPORT, 1)

    again = svc.import_html(EXPORT, 1)

    assert again.count == 0
    assert again.to_dict() == {"count": 0, "list": []}
    assert len(store.find_all_for_user(1)) == 2


def test_import_is_per_user(store):
    svc = BookmarkService(store)
    svc.import_html(EXPORT, 1)
    assert svc.import_html(EXPORT, 2).count == 2
    assert svc.list_tree(3) == []


def test_import_uses_configured_default_sort(store):
    svc = BookmarkService(store, default_sort=100)
    result = svc.import_html(EXPORT, 1)
    assert [r.sort for r in result.records] == [0, 100]


def test_import_request_with_json_bookmarks(store):
    svc = BookmarkService(store)
    payload = {
        "Bookmarks": [
            {"title": "Dev", "url": "Dev", "isFolder": 1, "parentUrl": "0", "userId": 99},
            {"title": "Repo", "url": "https://git.example/", "parentUrl": "Dev", "lanUrl": "http://10.0.0.2/"},
            {"title": "Repo again", "url": "https://git.example/", "parentUrl": "Dev"},
        ]
    }
    result = svc.import_request(payload, 1)

    assert result.count == 2
    assert all(r.user_id == 1 for r in result.records)
    roots = svc.list_tree(1)
    assert roots[0].record.is_folder is True
    assert roots[0].children[0].record.lan_url == "http://10.0.0.2/"


def test_import_request_prefers_html_content(store):
    svc = BookmarkService(store)
    result = svc.import_request({"htmlContent": EXPORT, "Bookmarks": []}, 1)
    assert result.count == 2


def test_import_request_needs_a_source(store):
    with pytest.raises(ValidationError):
        BookmarkService(store).import_request({}, 1)


def test_import_html_surfaces_parse_errors(store):
    with pytest.raises(ParseError):
        BookmarkService(store).import_html(b"\xff\xfe\xfa", 1)
    assert store.find_all_for_user(1) == []


def test_add_single_record(store):
    svc = BookmarkService(store)
    rec = svc.add({"title": "One", "url": "https://one.example/", "sort": 4}, 1)

    assert rec.id is not None
    assert rec.user_id == 1
    assert store.find_by_id(rec.id).sort == 4


def test_add_requires_title_and_url(store):
    with pytest.raises(ValidationError) as ei:
        BookmarkService(store).add({"title": "", "url": "https://x/"}, 1)
    assert "title" in str(ei.value)


def test_added_record_can_point_at_folder_by_id(store):
    svc = BookmarkService(store)
    svc.import_html(EXPORT, 1)
    folder = next(r for r in store.find_all_for_user(1) if r.is_folder)
    svc.add({"title": "M", "url": "https://m.example/", "parentUrl": str(folder.id), "sort": 1}, 1)

    roots = svc.list_tree(1)
    assert [c.title for c in roots[0].children] == ["M", "L"]


def test_update_changes_fields_and_returns_fresh_record(store):
    svc = BookmarkService(store)
    rec = svc.add({"title": "Old", "url": "https://old.example/", "parentUrl": "Work", "sort": 3}, 1)

    updated = svc.update({"id": rec.id, "title": "New", "url": "https://new.example/", "sort": 1}, 1)

    assert updated.title == "New"
    assert updated.url == "https://new.example/"
    assert updated.sort == 1
    assert updated.parent_url == "Work"
    assert updated.is_folder is False


def test_update_of_someone_elses_record_is_refused(store):
    svc = BookmarkService(store)
    rec = svc.add({"title": "Mine", "url": "https://mine.example/"}, 1)

    with pytest.raises(NotFoundOrForbidden):
        svc.update({"id": rec.id, "title": "X", "url": "https://x/"}, 2)
    with pytest.raises(NotFoundOrForbidden):
        svc.update({"id": rec.id + 1000, "title": "X", "url": "https://x/"}, 1)
    assert store.find_by_id(rec.id).title == "Mine"


def test_update_requires_id_title_url(store):
    with pytest.raises(ValidationError):
        BookmarkService(store).update({"title": "X", "url": "https://x/"}, 1)


def test_delete_only_owned_and_ignores_unknown(store):
    svc = BookmarkService(store)
    mine = svc.add({"title": "Mine", "url": "https://mine.example/"}, 1)
    theirs = svc.add({"title": "Theirs", "url": "https://theirs.example/"}, 2)

    assert svc.delete({"ids": [mine.id, theirs.id, 12345]}, 1) == 1
    assert svc.list_tree(1) == []
    assert [n.title for n in svc.list_tree(2)] == ["Theirs"]


def test_delete_requires_ids(store):
    with pytest.raises(ValidationError):
        BookmarkService(store).delete({}, 1)


def _titles(nodes):
    return [(n.title, _titles(n.children)) for n in nodes]


def test_firefox_export_round_trip(store):
    svc = BookmarkService(store)
    html = (Path(__file__).parent / "fixtures" / "firefox_export.html").read_text(encoding="utf-8")

    assert svc.import_html(html, 1).count == 9

    assert _titles(svc.list_tree(1)) == [
        ("Bookmarks Toolbar", [("GitHub", [])]),
        ("Other Bookmarks", []),
        ("Recipes", [("Soups", [("Miso", [])]), ("Bread", []), ("Pasta", [])]),
        ("Mozilla", []),
    ]
    assert svc.import_html(html, 1).count == 0
