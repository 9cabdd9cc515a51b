from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from ._path import PartialFailure, path_list


def _new_name(path: Path, index: int, *, pattern: str | None, find: str | None, replace: str) -> str | None:
    if pattern:
        stem, ext = os.path.splitext(path.name)
        date = datetime.fromtimestamp(path.lstat().st_mtime).strftime("%Y-%m-%d")
        try:
            name = pattern.format(name=stem, ext=ext.lstrip("."), n=index, date=date)
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"batch_rename: bad pattern {pattern!r}: {e}") from e
        if ext and "{ext}" not in pattern and not name.endswith(ext):
            name += ext
        return name
    if find and find in path.name:
        # First occurrence only.
        return path.name.replace(find, replace, 1)
    return None


def run(args: Dict[str, Any], dry_run: bool) -> Dict[str, Any]:
    """
    Rename several files, either by find/replace in the name or by a pattern.
    Pattern placeholders: {name} (stem), {ext}, {n} (1-based index), {date} (mtime).
    Files whose name would not change, or whose target exists, are skipped.
    args:
      - paths: string | [string]
      - pattern: string (optional)
      - find: string (optional)
      - replace: string (optional, default "")
    """
    paths = path_list(args.get("paths"), tool="batch_rename", key="paths")
    pattern = args.get("pattern") if isinstance(args.get("pattern"), str) else None
    find = args.get("find") if isinstance(args.get("find"), str) else None
    replace = args.get("replace") if isinstance(args.get("replace"), str) else ""
    if not pattern and not find:
        raise ValueError("batch_rename: either 'pattern' or 'find' is required")

    effects: List[Dict[str, Any]] = []
    skipped: List[Dict[str, str]] = []
    taken: set[str] = set()
    for i, p in enumerate(paths, start=1):
        if not p.exists() and not p.is_symlink():
            skipped.append({"path": str(p), "reason": "not found"})
            continue
        name = _new_name(p, i, pattern=pattern, find=find, replace=replace)
        if not name or name == p.name:
            continue
        if "/" in name:
            skipped.append({"path": str(p), "reason": "new name contains '/'"})
            continue
        target = p.with_name(name)
        if os.path.lexists(target) or str(target) in taken:
            skipped.append({"path": str(p), "reason": "target exists"})
            continue
        taken.add(str(target))
        if not dry_run:
            try:
                p.rename(target)
            except OSError as e:
                raise PartialFailure(f"batch_rename: failed to rename {p}: {e}", effects) from e
        effects.append({"kind": "renamed", "from": str(p), "to": str(target)})

    return {
        "message": f"Renamed {len(effects)} of {len(paths)} files",
        "count": len(effects),
        "effects": effects,
        "skipped": skipped,
        "dry_run": dry_run,
    }
