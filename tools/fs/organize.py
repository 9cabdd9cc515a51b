from __future__ import annotations

from typing import Any, Dict

from ._path import expand_user_path, require_str
from .batch_move import move_grouped


def run(args: Dict[str, Any], dry_run: bool) -> Dict[str, Any]:
    """
    Sort the top-level files of a directory into subfolders.
    Hidden files and existing subdirectories are left alone.
    args:
      - path: string
      - organize_by: "type" | "date" (default "type")
    """
    root = expand_user_path(require_str(args, "path", tool="organize"))
    organize_by = args.get("organize_by") or "type"
    if organize_by not in ("type", "date"):
        raise ValueError("organize: 'organize_by' must be one of: type|date")
    if not root.is_dir():
        raise NotADirectoryError(f"organize: not a directory: {root}")

    files = sorted(
        (p for p in root.iterdir() if p.is_file() and not p.is_symlink() and not p.name.startswith(".")),
        key=lambda p: p.name,
    )
    effects = move_grouped(files, root, organize_by, dry_run=dry_run)
    moved = sum(1 for e in effects if e["kind"] == "moved")
    return {
        "message": f"Organized {moved} files in '{root}' by {organize_by}",
        "count": moved,
        "effects": effects,
        "dry_run": dry_run,
    }
