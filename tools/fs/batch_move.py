from __future__ import annotations

import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ._path import PartialFailure, expand_user_path, path_list, require_str, unique_path

ORGANIZE_MODES = ("type", "date", "none")

_CATEGORIES = {
    "Images": {"jpg", "jpeg", "png", "gif", "bmp", "tiff", "webp", "heic", "svg", "raw"},
    "Videos": {"mp4", "mov", "avi", "mkv", "webm", "m4v"},
    "Audio": {"mp3", "wav", "flac", "aac", "ogg", "m4a"},
    "Documents": {"pdf", "doc", "docx", "txt", "md", "rtf", "odt", "pages", "xls", "xlsx", "csv", "ppt", "pptx", "key"},
    "Archives": {"zip", "tar", "gz", "bz2", "xz", "7z", "rar", "dmg"},
    "Code": {"py", "c", "h", "js", "ts", "go", "rs", "java", "rb", "sh", "json", "yaml", "yml", "toml", "html", "css"},
}


def category_of(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    for name, exts in _CATEGORIES.items():
        if ext in exts:
            return name
    return "Other"


def group_folder(path: Path, organize_by: str) -> str | None:
    if organize_by == "type":
        return category_of(path)
    if organize_by == "date":
        return datetime.fromtimestamp(path.lstat().st_mtime).strftime("%Y-%m")
    return None


def move_grouped(
    sources: List[Path],
    dest: Path,
    organize_by: str,
    *,
    dry_run: bool,
    effects: Optional[List[Dict[str, Any]]] = None,
) -> List[Dict[str, Any]]:
    """
    Move sources under dest, optionally into per-group subfolders.
    Subfolders created along the way are reported before the moves that use them.
    New effects are appended to effects when given.
    """
    effects = [] if effects is None else effects
    made: set[Path] = set()
    for src in sources:
        folder = group_folder(src, organize_by)
        target_dir = dest / folder if folder else dest
        if folder and target_dir not in made and not target_dir.exists():
            if not dry_run:
                try:
                    target_dir.mkdir()
                except OSError as e:
                    raise PartialFailure(f"move: failed to create {target_dir}: {e}", effects) from e
            made.add(target_dir)
            effects.append({"kind": "created", "path": str(target_dir), "is_dir": True, "implicit": True})
        if src.parent == target_dir:
            continue
        target = unique_path(target_dir / src.name)
        if not dry_run:
            try:
                shutil.move(str(src), str(target))
            except OSError as e:
                raise PartialFailure(f"move: failed to move {src}: {e}", effects) from e
        effects.append({"kind": "moved", "from": str(src), "to": str(target)})
    return effects


def run(args: Dict[str, Any], dry_run: bool) -> Dict[str, Any]:
    """
    Move several files into a destination directory.
    args:
      - paths: string | [string]
      - destination: string (created if missing)
      - organize_by: "type" | "date" | "none" (default "none")
    """
    sources = path_list(args.get("paths"), tool="batch_move", key="paths")
    dest = expand_user_path(require_str(args, "destination", tool="batch_move"))
    organize_by = args.get("organize_by") or "none"
    if organize_by not in ORGANIZE_MODES:
        raise ValueError("batch_move: 'organize_by' must be one of: type|date|none")

    for src in sources:
        if not src.exists() and not src.is_symlink():
            raise FileNotFoundError(f"batch_move: source not found: {src}")

    effects: List[Dict[str, Any]] = []
    if not dest.exists():
        if not dry_run:
            dest.mkdir(parents=True)
        effects.append({"kind": "created", "path": str(dest), "is_dir": True, "implicit": True})
    elif not dest.is_dir():
        raise NotADirectoryError(f"batch_move: destination is not a directory: {dest}")

    move_grouped(sources, dest, organize_by, dry_run=dry_run, effects=effects)
    moved = sum(1 for e in effects if e["kind"] == "moved")
    return {
        "message": f"Moved {moved} of {len(sources)} files to '{dest}'",
        "count": moved,
        "effects": effects,
        "dry_run": dry_run,
    }
