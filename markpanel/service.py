from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .dedupe import filter_unique
from .errors import NotFoundOrForbidden, ValidationError
from .log import get_logger
from .model import DEFAULT_SORT, ROOT_PARENT, BookmarkRecord, BookmarkTreeNode
from .parse_netscape import parse_bookmarks_html
from .store import BookmarkStore
from .tree import build_tree

log = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


class RecordIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    url: str = ""
    lan_url: str = Field("", alias="lanUrl")
    is_folder: bool = Field(False, alias="isFolder")
    parent_url: str = Field(ROOT_PARENT, alias="parentUrl")
    sort: int = 0

    def to_record(self, user_id: int) -> BookmarkRecord:
        return BookmarkRecord(
            title=self.title,
            url=self.url,
            lan_url=self.lan_url,
            is_folder=self.is_folder,
            parent_url=self.parent_url,
            sort=self.sort,
            user_id=user_id,
        )


class AddRequest(RecordIn):
    title: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)


class ImportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    html_content: str = Field("", alias="htmlContent")
    bookmarks: Optional[List[RecordIn]] = Field(None, alias="Bookmarks")

    @model_validator(mode="after")
    def _one_source(self) -> "ImportRequest":
        if not self.html_content and self.bookmarks is None:
            raise ValueError("either htmlContent or Bookmarks is required")
        return self


class UpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(..., gt=0)
    title: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    lan_url: Optional[str] = Field(None, alias="lanUrl")
    parent_url: Optional[str] = Field(None, alias="parentUrl")
    sort: Optional[int] = None


class DeleteRequest(BaseModel):
    ids: List[int]


@dataclass
class ImportResult:
    count: int
    records: List[BookmarkRecord]

    def to_dict(self) -> Dict[str, Any]:
        return {"count": self.count, "list": [r.to_dict() for r in self.records]}


def _validate(model: Type[M], payload: Union[Dict[str, Any], M]) -> M:
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        parts = []
        for err in e.errors():
            loc = ".".join(str(x) for x in err.get("loc", ())) or "request"
            parts.append(f"{loc}: {err.get('msg', 'invalid')}")
        raise ValidationError("; ".join(parts)) from e


class BookmarkService:
    """Request-level bookmark operations over an injected store."""

    def __init__(self, store: BookmarkStore, *, default_sort: int = DEFAULT_SORT):
        self.store = store
        self.default_sort = default_sort

    def import_request(self, payload: Dict[str, Any], user_id: int) -> ImportResult:
        req = _validate(ImportRequest, payload)
        if req.html_content:
            return self.import_html(req.html_content, user_id)
        return self._store_unique([b.to_record(user_id) for b in req.bookmarks or []], user_id)

    def import_html(self, html: Union[str, bytes], user_id: int) -> ImportResult:
        records = parse_bookmarks_html(html, user_id, default_sort=self.default_sort)
        return self._store_unique(records, user_id)

    def import_records(self, items: List[Dict[str, Any]], user_id: int) -> ImportResult:
        req = _validate(ImportRequest, {"Bookmarks": items})
        return self._store_unique([b.to_record(user_id) for b in req.bookmarks or []], user_id)

    def _store_unique(self, records: List[BookmarkRecord], user_id: int) -> ImportResult:
        unique = filter_unique(records, user_id, self.store)
        if unique:
            self.store.bulk_insert(unique)
        log.info("Imported %d of %d bookmarks for user %s.", len(unique), len(records), user_id)
        return ImportResult(count=len(unique), records=unique)

    def add(self, payload: Dict[str, Any], user_id: int) -> BookmarkRecord:
        record = _validate(AddRequest, payload).to_record(user_id)
        self.store.insert(record)
        return record

    def list_tree(self, user_id: int) -> List[BookmarkTreeNode]:
        return build_tree(self.store.find_all_for_user(user_id))

    def update(self, payload: Dict[str, Any], user_id: int) -> BookmarkRecord:
        req = _validate(UpdateRequest, payload)
        if self.store.find_by_id_for_user(req.id, user_id) is None:
            raise NotFoundOrForbidden()

        fields: Dict[str, object] = {"title": req.title, "url": req.url}
        for name in ("lan_url", "parent_url", "sort"):
            if name in req.model_fields_set:
                value = getattr(req, name)
                if value is not None:
                    fields[name] = value
        self.store.update_fields(req.id, fields)

        updated = self.store.find_by_id(req.id)
        if updated is None:
            raise NotFoundOrForbidden()
        return updated

    def delete(self, payload: Dict[str, Any], user_id: int) -> int:
        req = _validate(DeleteRequest, payload)
        deleted = self.store.delete_by_ids_for_user(user_id, req.ids)
        log.info("Deleted %d of %d requested bookmarks for user %s.", deleted, len(req.ids), user_id)
        return deleted
