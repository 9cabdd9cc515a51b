from __future__ import annotations

from typing import Any, Dict

from ._path import expand_user_path, require_str


def run(args: Dict[str, Any], dry_run: bool) -> Dict[str, Any]:
    """
    Remove a directory only if it is empty. A non-empty or missing
    directory is left alone and reported, not treated as an error.
    args:
      - path: string
    """
    path = expand_user_path(require_str(args, "path", tool="rmdir"))
    if not path.is_dir() or path.is_symlink():
        return {"message": f"'{path}' is gone", "count": 0, "removed": False, "dry_run": dry_run}
    if any(path.iterdir()):
        return {"message": f"Kept non-empty directory '{path}'", "count": 0, "removed": False, "dry_run": dry_run}
    if not dry_run:
        path.rmdir()
    return {"message": f"Removed empty directory '{path}'", "count": 1, "removed": True, "dry_run": dry_run}
