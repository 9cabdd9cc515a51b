from __future__ import annotations

import stat as stat_mod
from datetime import datetime
from typing import Any

from ._path import expand_user_path, require_str


def _fmt(ts: float) -> str:
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def run(args: dict[str, Any], dry_run: bool) -> dict[str, Any]:
    """
    Stat a file or directory (read-only; dry-run identical).
    args:
      - path: string
    """
    path = expand_user_path(require_str(args, "path", tool="file_metadata"))
    if not path.exists() and not path.is_symlink():
        raise FileNotFoundError(f"file_metadata: not found: {path}")

    st = path.lstat()
    return {
        "path": str(path),
        "size": st.st_size,
        "is_directory": stat_mod.S_ISDIR(st.st_mode),
        "is_file": stat_mod.S_ISREG(st.st_mode),
        "is_symlink": stat_mod.S_ISLNK(st.st_mode),
        "modified": _fmt(st.st_mtime),
        "created": _fmt(getattr(st, "st_birthtime", st.st_ctime)),
        "permissions": oct(st.st_mode & 0o777),
        "count": 1,
        "dry_run": dry_run,
    }
