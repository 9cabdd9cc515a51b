from __future__ import annotations

from typing import Any

from ._path import expand_user_path, require_str, unique_path


def run(args: dict[str, Any], dry_run: bool) -> dict[str, Any]:
    """
    Create a file (optionally with content) or a directory.
    An existing name gets a " (n)" suffix instead of being overwritten.
    args:
      - path: string
      - is_directory: bool (default false)
      - content: string (files only)
    """
    path = expand_user_path(require_str(args, "path", tool="file_create"))
    is_dir = bool(args.get("is_directory", False))
    content = args.get("content")
    if content is not None and not isinstance(content, str):
        raise ValueError("file_create: 'content' must be a string")

    if not path.parent.is_dir():
        raise FileNotFoundError(f"file_create: parent directory not found: {path.parent}")

    target = unique_path(path)
    if not dry_run:
        if is_dir:
            target.mkdir()
        else:
            with target.open("x", encoding="utf-8") as f:
                if content:
                    f.write(content)

    if is_dir:
        message = f"Created directory '{target.name}'"
    elif content:
        message = f"Created file '{target.name}' with content ({len(content.encode('utf-8'))} bytes)"
    else:
        message = f"Created file '{target.name}'"
    effects = [{"kind": "created", "path": str(target), "is_dir": is_dir}]
    return {"message": message, "count": 1, "effects": effects, "dry_run": dry_run}
