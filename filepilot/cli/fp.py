from __future__ import annotations

import argparse
import json
import logging
import os
import re
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from filepilot.bootstrap_tools import build_tool_catalog
from filepilot.core.chain import (
    OperationStatus,
    confirm_all,
    execute_chain,
    format_chain,
    format_results,
    generate_preview,
    parse_command,
    validate_chain,
)
from filepilot.core.config import OperationsConfig, default_config_path, load_config, render_default_config_yaml
from filepilot.core.errors import FilePilotError, ValidationError
from filepilot.core.executor import ToolExecutor, describe_operation
from filepilot.core.session import AgentSession, SessionState
from filepilot.core.undo import UndoHistory
from filepilot.intake.chat import ChatProvider
from filepilot.intake.provider_loading import load_chat_provider
from filepilot.trace.trace_emitter import TraceEmitter
from filepilot.trace.trace_store_jsonl import TraceStoreJSONL

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _confirm_bool(text: str, *, default: bool = False) -> bool:
    d = "Y/n" if default else "y/N"
    try:
        v = input(f"{text} ({d}): ").strip().lower()
    except EOFError:
        return False
    if not v:
        return bool(default)
    return v in ("y", "yes")


def _write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _load_dotenv_from_file(path: Path) -> None:
    """
    Minimal dotenv loader (no dependencies).

    - Supports lines like KEY=VALUE (optionally prefixed with 'export ')
    - Ignores empty lines and comments (# ...)
    - Strips single/double quotes around values
    - Does not override already-present environment variables
    """
    if not path.is_file():
        return
    try:
        txt = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return
    for raw_line in txt.splitlines():
        s = raw_line.strip()
        if not s or s.startswith("#"):
            continue
        if s.startswith("export "):
            s = s[len("export ") :].lstrip()
        if "=" not in s:
            continue
        k, v = s.split("=", 1)
        k = k.strip()
        v = v.strip()
        if not k or not _ENV_KEY_RE.match(k) or k in os.environ:
            continue
        if len(v) >= 2 and ((v[0] == v[-1] == '"') or (v[0] == v[-1] == "'")):
            v = v[1:-1]
        os.environ[k] = v


def _maybe_load_dotenv() -> None:
    cwd = Path.cwd()
    for name in (".env", "env"):
        _load_dotenv_from_file(cwd / name)


def _format_cli_error(e: Exception) -> str:
    """
    Print-friendly error formatting for CLI commands.
    - Always includes code/message (via __str__) when it's a FilePilotError
    - Includes structured `data` payload when present (useful for HTTP errors)
    """
    if isinstance(e, FilePilotError) and isinstance(e.data, dict) and e.data:
        data = dict(e.data)
        # Keep error bodies bounded to avoid dumping huge blobs.
        if isinstance(data.get("body"), str) and len(data["body"]) > 2000:
            data["body"] = data["body"][:2000] + "...(truncated)"
        return str(e) + "\n" + json.dumps(data, ensure_ascii=False, indent=2)
    return str(e)


def _parse_args_json(text: Optional[str]) -> str:
    raw = text if text else "{}"
    try:
        obj = json.loads(raw)
    except ValueError as e:
        raise ValidationError(code="cli.invalid_args", message=f"--args is not valid JSON: {e}") from e
    if not isinstance(obj, dict):
        raise ValidationError(code="cli.invalid_args", message="--args must be a JSON object")
    return raw


def _load_cli_config(args: argparse.Namespace) -> OperationsConfig:
    cfg = load_config(Path(args.config) if getattr(args, "config", None) else None)
    if getattr(args, "cwd", None):
        cfg.current_directory = args.cwd
    if getattr(args, "trash_dir", None):
        cfg.trash_dir = args.trash_dir
    return cfg


def _build_trace(args: argparse.Namespace, cfg: OperationsConfig) -> TraceEmitter:
    path = getattr(args, "trace", None) or cfg.trace_path
    if not path:
        return TraceEmitter()
    return TraceEmitter(TraceStoreJSONL(Path(path).expanduser()), run_id=getattr(args, "run_id", None))


def _build_provider(args: argparse.Namespace, cfg: OperationsConfig) -> ChatProvider:
    llm = cfg.llm
    loaded = load_chat_provider(
        provider=args.provider or llm.provider,
        model=args.model or llm.model,
        api_base=args.api_base or llm.api_base,
        api_key_env=args.api_key_env or llm.api_key_env,
        timeout_s=llm.timeout_s,
        max_tokens=llm.max_tokens,
    )
    return loaded.provider


def _build_executor(cfg: OperationsConfig) -> ToolExecutor:
    return ToolExecutor(build_tool_catalog(), working_directory=cfg.current_directory, trash_dir=cfg.trash_dir)


def cmd_list_tools(args: argparse.Namespace) -> int:
    catalog = build_tool_catalog(semantic_search=args.all, visual_search=args.all, image_generate=args.all)
    if args.json:
        print(json.dumps(catalog.export_schema(), ensure_ascii=False, indent=2))
    else:
        for t in catalog:
            flag = " [confirm]" if t.requires_confirmation else ""
            print(f"{t.name} - {t.description}{flag}")
    return 0


def cmd_describe(args: argparse.Namespace) -> int:
    print(describe_operation(args.tool, _parse_args_json(args.args)))
    return 0


def cmd_exec_tool(args: argparse.Namespace) -> int:
    cfg = _load_cli_config(args)
    executor = _build_executor(cfg)
    res = executor.execute(args.tool, _parse_args_json(args.args), dry_run=bool(args.dry_run))
    out: Dict[str, Any] = {
        "success": res.success,
        "output": res.output,
        "affected_count": res.affected_count,
        "effects": res.effects,
    }
    if not res.success:
        out["error"] = res.error
        out["error_code"] = res.error_code
    print(json.dumps(out, ensure_ascii=False, indent=2))
    return res.exit_code


def cmd_run(args: argparse.Namespace) -> int:
    text = args.text
    if text is None:
        text = sys.stdin.read()
    if not isinstance(text, str) or not text.strip():
        print("run.invalid: missing command text (pass it as an argument or pipe stdin)")
        return 2

    cfg = _load_cli_config(args)
    trace = _build_trace(args, cfg)
    provider = _build_provider(args, cfg)
    executor = _build_executor(cfg)
    undo = UndoHistory(reverser=executor.revert)

    chain = parse_command(text, cfg, provider, catalog=executor.catalog, trace=trace)
    if chain.status is OperationStatus.NO_OPERATIONS:
        print(chain.ai_interpretation or chain.status.message)
        return 0
    if chain.status is not OperationStatus.OK:
        print(f"{chain.status.value}: {chain.error or chain.status.message}")
        return 1

    validate_chain(chain, cfg, executor=executor, trace=trace)
    preview = generate_preview(chain)
    print(format_chain(chain) if cfg.verbose_preview else preview.summary)
    if preview.warnings:
        print(preview.warnings)

    if args.yes:
        confirm_all(chain)
        on_confirm = None
    else:
        def on_confirm(op) -> bool:
            return _confirm_bool(f"Run '{op.description}' [{op.risk.label}]?")

    def on_progress(i: int, total: int, description: str) -> None:
        logging.getLogger(__name__).debug("step %d/%d: %s", i + 1, total, description)

    status = execute_chain(chain, cfg, undo, on_progress, on_confirm, executor=executor, trace=trace)
    print(format_results(chain))
    if chain.error:
        print(chain.error)
    return 0 if status is OperationStatus.OK else 1


def _print_pending(session: AgentSession) -> None:
    for i, p in enumerate(session.pending, start=1):
        marker = ">" if i - 1 == session.selected_index else " "
        flag = " [confirm]" if p.requires_confirmation else ""
        print(f"{marker} {i}. {p.description}{flag}")
    if session.notice:
        print(session.notice)


def _shell_meta(session: AgentSession, line: str) -> bool:
    """
    Handle ':' commands. Returns False when the shell should exit.
    """
    cmd, _, rest = line[1:].partition(" ")
    if cmd in ("q", "quit", "exit"):
        return False
    if cmd == "undo":
        undo = session.undo_history
        label = undo.description(len(undo) - 1) if len(undo) else None
        if session.undo_last():
            print(f"Undone: {label}")
        else:
            print("Nothing to undo")
    elif cmd == "history":
        for h in session.history:
            mark = "ok" if h.success else "!!"
            print(f"[{mark}] {h.input}")
    elif cmd == "cd":
        target = session.executor.resolve_path(rest.strip() or "~")
        if not os.path.isdir(target):
            print(f"Not a directory: {target}")
        else:
            session.set_current_dir(target)
            print(target)
    elif cmd == "pwd":
        print(session.executor.working_directory)
    else:
        print("Commands: :undo :history :cd DIR :pwd :quit")
    return True


def cmd_shell(args: argparse.Namespace) -> int:
    cfg = _load_cli_config(args)
    trace = _build_trace(args, cfg)
    session = AgentSession(provider=_build_provider(args, cfg), config=cfg, executor=_build_executor(cfg), trace=trace)
    session.show()
    while True:
        try:
            line = input("fp> ")
        except EOFError:
            print()
            break
        line = line.strip()
        if not line:
            continue
        if line.startswith(":"):
            if not _shell_meta(session, line):
                break
            continue

        session.key_pressed()
        session.set_input(line)
        session.submit()
        if session.state is SessionState.CONFIRMING:
            _print_pending(session)
            if args.yes or _confirm_bool("Run these operations?"):
                session.confirm()
            else:
                session.cancel()
        print(session.result_message)
        session.key_pressed()
    session.hide()
    return 0


def cmd_show_trace(args: argparse.Namespace) -> int:
    store = TraceStoreJSONL(args.trace)
    filters = {"chain_id": args.chain_id, "event_type": args.event_type or None}
    if args.tail is not None and args.tail >= 0:
        events = store.tail(args.tail, **filters)
    else:
        events = store.iter_events(**filters)

    for e in events:
        if args.pretty:
            print(json.dumps(e, ensure_ascii=False, indent=2))
        else:
            print(json.dumps(e, ensure_ascii=False))
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    path = Path(args.config).expanduser() if args.config else default_config_path()
    if args.init:
        if path.exists() and not args.force:
            print(f"config.exists: {path} (use --force to overwrite)")
            return 1
        _write_text(path, render_default_config_yaml())
        print(f"OK: wrote config to {path}")
        return 0

    cfg = load_config(Path(args.config) if args.config else None)
    print(yaml.safe_dump(cfg.to_dict(), sort_keys=False, allow_unicode=True), end="")
    return 0


def _add_llm_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--provider", help="Provider ID or 'module:object' spec (default: from config)")
    p.add_argument("--model", help="Model name (default: from config)")
    p.add_argument("--api-base", help="Provider API base URL (when supported)")
    p.add_argument("--api-key-env", help="API key env var name (default: ANTHROPIC_API_KEY)")
    p.add_argument("--trace", help="Trace output path (jsonl); default: from config")
    p.add_argument("--run-id", help="Run ID for trace correlation")


def main(argv=None) -> int:
    if str(os.environ.get("FILEPILOT_DISABLE_DOTENV", "")).strip().lower() not in ("1", "true", "yes"):
        _maybe_load_dotenv()
    parser = argparse.ArgumentParser(prog="fp", description="FilePilot: natural-language file operations")
    parser.add_argument("--config", help="Config YAML path (default: XDG config)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging to stderr")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_list_tools = sub.add_parser("list-tools", help="List tools the model may call")
    p_list_tools.add_argument("--json", action="store_true", help="Output the tool schema as JSON")
    p_list_tools.add_argument("--all", action="store_true", help="Include tools that need a search index or image generator")
    p_list_tools.set_defaults(func=cmd_list_tools)

    p_describe = sub.add_parser("describe", help="Describe a tool call without running it")
    p_describe.add_argument("tool", help="Tool name (e.g. file_move)")
    p_describe.add_argument("--args", help="Tool arguments as a JSON object")
    p_describe.set_defaults(func=cmd_describe)

    p_exec = sub.add_parser("exec-tool", help="Run one tool call directly (no LLM)")
    p_exec.add_argument("tool", help="Tool name (e.g. file_list)")
    p_exec.add_argument("--args", help="Tool arguments as a JSON object")
    p_exec.add_argument("--cwd", help="Directory relative paths are resolved against")
    p_exec.add_argument("--trash-dir", help="Trash directory for deletes")
    p_exec.add_argument("--dry-run", action="store_true", help="Report what would happen without touching files")
    p_exec.set_defaults(func=cmd_exec_tool)

    p_run = sub.add_parser("run", help="Plan a command with the LLM, preview it, confirm and execute")
    p_run.add_argument("text", nargs="?", help="Command text. If omitted, read from stdin.")
    p_run.add_argument("--cwd", help="Directory relative paths are resolved against")
    p_run.add_argument("--trash-dir", help="Trash directory for deletes")
    p_run.add_argument("--yes", "-y", action="store_true", help="Confirm every step without asking")
    _add_llm_args(p_run)
    p_run.set_defaults(func=cmd_run)

    p_shell = sub.add_parser("shell", help="Interactive session (:undo, :history, :cd, :quit)")
    p_shell.add_argument("--cwd", help="Starting directory")
    p_shell.add_argument("--trash-dir", help="Trash directory for deletes")
    p_shell.add_argument("--yes", "-y", action="store_true", help="Confirm staged operations without asking")
    _add_llm_args(p_shell)
    p_shell.set_defaults(func=cmd_shell)

    p_show_trace = sub.add_parser("show-trace", help="Show trace events from a JSONL file")
    p_show_trace.add_argument("--trace", required=True, help="Trace path (jsonl)")
    p_show_trace.add_argument("--chain-id", help="Filter by chain_id")
    p_show_trace.add_argument("--event-type", help="Filter by event_type")
    p_show_trace.add_argument("--tail", type=int, help="Show only last N events")
    p_show_trace.add_argument("--pretty", action="store_true", help="Pretty-print each event as JSON")
    p_show_trace.set_defaults(func=cmd_show_trace)

    p_config = sub.add_parser("config", help="Show the effective config, or write a default one")
    p_config.add_argument("--init", action="store_true", help="Write a default config file")
    p_config.add_argument("--force", action="store_true", help="Overwrite an existing config with --init")
    p_config.set_defaults(func=cmd_config)

    ns = parser.parse_args(argv)
    if ns.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    try:
        return int(ns.func(ns))
    except Exception as e:  # noqa: BLE001
        print(_format_cli_error(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
