from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

ROOT_PARENT = "0"
ROOT_SENTINELS = frozenset({"0", "", "null"})
DEFAULT_SORT = 9999


def is_root_parent(parent_url: Optional[str]) -> bool:
    return parent_url is None or parent_url in ROOT_SENTINELS


@dataclass
class BookmarkRecord:
    title: str
    url: str
    is_folder: bool = False
    parent_url: str = ROOT_PARENT
    lan_url: str = ""
    sort: int = 0
    user_id: Optional[int] = None
    id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def key(self) -> Tuple[str, str]:
        """Uniqueness key inside one user's collection."""
        return (self.parent_url, self.url)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "lanUrl": self.lan_url,
            "isFolder": 1 if self.is_folder else 0,
            "parentUrl": self.parent_url,
            "sort": self.sort,
            "userId": self.user_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class BookmarkTreeNode:
    record: BookmarkRecord
    children: List["BookmarkTreeNode"] = field(default_factory=list)

    @property
    def title(self) -> str:
        return self.record.title

    def to_dict(self) -> Dict[str, Any]:
        d = self.record.to_dict()
        d["children"] = [c.to_dict() for c in self.children]
        return d
