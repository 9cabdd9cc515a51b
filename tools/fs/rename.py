from __future__ import annotations

import os
from typing import Any

from ._path import expand_user_path, require_str


def run(args: dict[str, Any], dry_run: bool) -> dict[str, Any]:
    """
    Rename in place. new_name is a bare name; an existing target is an error.
    args:
      - path: string
      - new_name: string
    """
    path = expand_user_path(require_str(args, "path", tool="file_rename"))
    new_name = require_str(args, "new_name", tool="file_rename")
    if "/" in new_name or new_name in (".", ".."):
        raise ValueError("file_rename: 'new_name' must be a plain name, not a path")
    if not path.exists() and not path.is_symlink():
        raise FileNotFoundError(f"file_rename: not found: {path}")

    target = path.with_name(new_name)
    if target == path:
        return {"message": f"'{new_name}' already has that name", "count": 0, "effects": [], "dry_run": dry_run}
    if os.path.lexists(target):
        raise FileExistsError(f"file_rename: target already exists: {target}")

    if not dry_run:
        path.rename(target)
    return {
        "message": f"Renamed to '{new_name}'",
        "count": 1,
        "effects": [{"kind": "renamed", "from": str(path), "to": str(target)}],
        "dry_run": dry_run,
    }
