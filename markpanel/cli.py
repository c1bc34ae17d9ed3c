from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, List

import yaml

from . import __version__
from .config import load_settings
from .errors import MarkpanelError
from .log import LogConfig, get_logger, setup_logging
from .service import BookmarkService
from .store import BookmarkStore, init_store

log = get_logger(__name__)


def main(argv: List[str] | None = None) -> int:
    p = argparse.ArgumentParser(
        prog="markpanel",
        description="Import browser bookmark exports and manage per-user bookmark trees.",
    )
    p.add_argument("-V", "--version", action="version", version=f"markpanel {__version__}")
    p.add_argument("--config", default=None, help="YAML config file (optional). Env vars override defaults.")
    p.add_argument("--db", default=None, help="SQLite database path (overrides env/config).")
    p.add_argument("--log-level", default=None, help="DEBUG/INFO/WARN/ERROR (overrides env/config).")
    p.add_argument("--no-color", action="store_true", help="Disable colored logging.")
    sub = p.add_subparsers(dest="cmd", required=True)

    imp = sub.add_parser("import", help="Import a bookmarks HTML export or a JSON list of bookmarks.")
    imp.add_argument("--user", type=int, required=True, help="Owning user id.")
    src = imp.add_mutually_exclusive_group(required=True)
    src.add_argument("--html", help="Browser bookmarks HTML export (Netscape format).")
    src.add_argument("--json", help="JSON file holding a list of bookmark objects.")

    ls = sub.add_parser("list", help="Print the user's bookmark tree as JSON.")
    ls.add_argument("--user", type=int, required=True, help="Owning user id.")

    add = sub.add_parser("add", help="Add a single bookmark or folder.")
    add.add_argument("--user", type=int, required=True, help="Owning user id.")
    _record_args(add)
    add.add_argument("--folder", action="store_true", help="Create a folder instead of a link.")

    upd = sub.add_parser("update", help="Update title/url/lanUrl/parentUrl/sort of a bookmark.")
    upd.add_argument("--user", type=int, required=True, help="Owning user id.")
    upd.add_argument("--id", type=int, required=True, help="Bookmark id.")
    _record_args(upd)

    rm = sub.add_parser("delete", help="Delete bookmarks by id (only those owned by the user).")
    rm.add_argument("--user", type=int, required=True, help="Owning user id.")
    rm.add_argument("ids", nargs="+", type=int, help="Bookmark ids.")

    args = p.parse_args(argv)
    try:
        cfg = load_settings(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        p.error(f"cannot load config {args.config}: {e}")
    if args.db:
        cfg.db_path = args.db
    if args.log_level:
        cfg.log_level = args.log_level
    if args.no_color:
        cfg.no_color = True
    setup_logging(LogConfig(level=cfg.log_level, no_color=cfg.no_color))

    handlers = {
        "import": _cmd_import,
        "list": _cmd_list,
        "add": _cmd_add,
        "update": _cmd_update,
        "delete": _cmd_delete,
    }
    try:
        init_store(cfg.db_path)
        with BookmarkStore(cfg.db_path) as store:
            service = BookmarkService(store, default_sort=cfg.default_sort)
            return handlers[args.cmd](args, service)
    except MarkpanelError as e:
        log.error("%s failed: %s", args.cmd, e)
        return 2


def _record_args(sp: argparse.ArgumentParser) -> None:
    sp.add_argument("--title", required=True, help="Display title.")
    sp.add_argument("--url", required=True, help="Target address (folders: the folder name).")
    sp.add_argument("--lan-url", default=None, help="Secondary (local network) address.")
    sp.add_argument("--parent-url", default=None, help="Parent folder id or name; 0 for top level.")
    sp.add_argument("--sort", type=int, default=None, help="Sibling order (ascending).")


def _record_payload(args) -> dict:
    payload: dict = {"title": args.title, "url": args.url}
    if args.lan_url is not None:
        payload["lanUrl"] = args.lan_url
    if args.parent_url is not None:
        payload["parentUrl"] = args.parent_url
    if args.sort is not None:
        payload["sort"] = args.sort
    return payload


def _cmd_import(args, service: BookmarkService) -> int:
    path = Path(args.html or args.json)
    if not path.exists():
        log.error("Input file not found: %s", path)
        return 2
    try:
        raw = path.read_bytes()
    except OSError as e:
        log.error("Cannot read %s: %s", path, e)
        return 2

    if args.html:
        result = service.import_html(raw, args.user)
    else:
        try:
            items = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            log.error("Invalid JSON in %s: %s", path, e)
            return 2
        result = service.import_records(items, args.user)
    _emit(result.to_dict())
    return 0


def _cmd_list(args, service: BookmarkService) -> int:
    tree = service.list_tree(args.user)
    _emit({"list": [n.to_dict() for n in tree], "count": len(tree)})
    return 0


def _cmd_add(args, service: BookmarkService) -> int:
    payload = _record_payload(args)
    payload["isFolder"] = args.folder
    _emit(service.add(payload, args.user).to_dict())
    return 0


def _cmd_update(args, service: BookmarkService) -> int:
    payload = _record_payload(args)
    payload["id"] = args.id
    _emit(service.update(payload, args.user).to_dict())
    return 0


def _cmd_delete(args, service: BookmarkService) -> int:
    deleted = service.delete({"ids": args.ids}, args.user)
    _emit({"deleted": deleted})
    return 0


def _emit(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))
