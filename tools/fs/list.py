from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from ._path import expand_user_path, require_str


def _entry(p: Path, root: Path) -> Dict[str, Any]:
    st = p.lstat()
    try:
        name = str(p.relative_to(root))
    except ValueError:
        name = p.name
    return {
        "name": name,
        "is_directory": p.is_dir(),
        "size": st.st_size,
        "is_hidden": p.name.startswith("."),
        "modified": datetime.fromtimestamp(st.st_mtime).strftime("%Y-%m-%d %H:%M:%S"),
    }


def run(args: dict[str, Any], dry_run: bool) -> dict[str, Any]:
    """
    List directory entries (read-only; dry-run identical).
    args:
      - path: string
      - show_hidden: bool (default false)
      - recursive: bool (default false)
    """
    path = expand_user_path(require_str(args, "path", tool="file_list"))
    show_hidden = bool(args.get("show_hidden", False))
    recursive = bool(args.get("recursive", False))

    if not path.exists():
        raise FileNotFoundError(f"file_list: directory not found: {path}")
    if not path.is_dir():
        raise NotADirectoryError(f"file_list: path is not a directory: {path}")

    files: List[Dict[str, Any]] = []
    stack: List[Path] = [path]
    while stack:
        cur = stack.pop()
        children = sorted(cur.iterdir(), key=lambda p: p.name)
        sub: List[Path] = []
        for ch in children:
            if not show_hidden and ch.name.startswith("."):
                continue
            files.append(_entry(ch, path))
            if recursive and ch.is_dir() and not ch.is_symlink():
                sub.append(ch)
        stack.extend(reversed(sub))

    return {"path": str(path), "files": files, "count": len(files), "dry_run": dry_run}
