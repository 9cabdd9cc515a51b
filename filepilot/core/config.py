from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema
import yaml

from .errors import ConfigError
from .risk import RiskLevel

logger = logging.getLogger(__name__)


CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "version": {"type": "string"},
        "operations": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "require_confirmation_for_risk": {"type": "boolean"},
                "confirmation_threshold": {"type": "string", "enum": ["none", "low", "medium", "high"]},
                "enable_undo": {"type": "boolean"},
                "verbose_preview": {"type": "boolean"},
                "max_files_without_confirmation": {"type": "integer", "minimum": 0},
                "current_directory": {"type": "string", "minLength": 1},
                "trash_dir": {"type": "string", "minLength": 1},
            },
        },
        "trace": {
            "type": "object",
            "additionalProperties": False,
            "properties": {"path": {"type": ["string", "null"]}},
        },
        "llm": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "provider": {"type": "string", "minLength": 1},
                "model": {"type": "string", "minLength": 1},
                "api_base": {"type": ["string", "null"]},
                "api_key_env": {"type": ["string", "null"]},
                "timeout_s": {"type": "number", "exclusiveMinimum": 0},
                "max_tokens": {"type": "integer", "minimum": 1},
            },
        },
    },
}


def default_config_path() -> Path:
    """
    Default per-user config location.

    - If XDG_CONFIG_HOME is set, use it.
    - Else use ~/.config
    """
    base = os.environ.get("XDG_CONFIG_HOME")
    if isinstance(base, str) and base.strip():
        return Path(base).expanduser() / "filepilot" / "config.yml"
    return Path("~/.config").expanduser() / "filepilot" / "config.yml"


def default_trash_dir() -> str:
    base = os.environ.get("XDG_DATA_HOME")
    if isinstance(base, str) and base.strip():
        return str(Path(base).expanduser() / "filepilot" / "Trash")
    return str(Path("~/.local/share").expanduser() / "filepilot" / "Trash")


@dataclass
class LLMConfig:
    provider: str = "anthropic.messages"
    model: str = "claude-sonnet-4-5"
    api_base: Optional[str] = None
    api_key_env: Optional[str] = None
    timeout_s: float = 30.0
    max_tokens: int = 4096


@dataclass
class OperationsConfig:
    """
    Tunables for planning and executing operations.

    Read at validate/execute time, so edits made between two commands
    apply to the next one.
    """

    require_confirmation_for_risk: bool = True
    confirmation_threshold: RiskLevel = RiskLevel.MEDIUM
    enable_undo: bool = True
    verbose_preview: bool = True
    max_files_without_confirmation: int = 10
    current_directory: str = "."
    trash_dir: str = field(default_factory=default_trash_dir)
    trace_path: Optional[str] = None
    llm: LLMConfig = field(default_factory=LLMConfig)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operations": {
                "require_confirmation_for_risk": self.require_confirmation_for_risk,
                "confirmation_threshold": self.confirmation_threshold.name.lower(),
                "enable_undo": self.enable_undo,
                "verbose_preview": self.verbose_preview,
                "max_files_without_confirmation": self.max_files_without_confirmation,
                "current_directory": self.current_directory,
                "trash_dir": self.trash_dir,
            },
            "trace": {"path": self.trace_path},
            "llm": {
                "provider": self.llm.provider,
                "model": self.llm.model,
                "api_base": self.llm.api_base,
                "api_key_env": self.llm.api_key_env,
                "timeout_s": self.llm.timeout_s,
                "max_tokens": self.llm.max_tokens,
            },
        }


def config_from_dict(raw: Dict[str, Any]) -> OperationsConfig:
    try:
        jsonschema.Draft202012Validator(CONFIG_SCHEMA).validate(raw)
    except jsonschema.ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path) or "(root)"
        raise ConfigError(code="config.invalid", message=f"{where}: {e.message}") from e

    cfg = OperationsConfig()
    ops = raw.get("operations") or {}
    if "require_confirmation_for_risk" in ops:
        cfg.require_confirmation_for_risk = bool(ops["require_confirmation_for_risk"])
    if "confirmation_threshold" in ops:
        cfg.confirmation_threshold = RiskLevel.parse(ops["confirmation_threshold"])
    if "enable_undo" in ops:
        cfg.enable_undo = bool(ops["enable_undo"])
    if "verbose_preview" in ops:
        cfg.verbose_preview = bool(ops["verbose_preview"])
    if "max_files_without_confirmation" in ops:
        cfg.max_files_without_confirmation = int(ops["max_files_without_confirmation"])
    if "current_directory" in ops:
        cfg.current_directory = os.path.expanduser(ops["current_directory"])
    if "trash_dir" in ops:
        cfg.trash_dir = os.path.expanduser(ops["trash_dir"])

    trace = raw.get("trace") or {}
    if trace.get("path"):
        cfg.trace_path = os.path.expanduser(trace["path"])

    llm = raw.get("llm") or {}
    for key in ("provider", "model", "api_base", "api_key_env", "timeout_s", "max_tokens"):
        if key in llm:
            setattr(cfg.llm, key, llm[key])
    return cfg


def load_config(path: Optional[Path] = None) -> OperationsConfig:
    """
    Load YAML config. A missing file at the default location yields defaults;
    a missing file that was asked for explicitly is an error.
    """
    explicit = path is not None
    p = (path or default_config_path()).expanduser()
    if not p.exists():
        if explicit:
            raise ConfigError(code="config.not_found", message=f"Config not found: {p}")
        logger.debug("no config at %s, using defaults", p)
        return OperationsConfig()

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(code="config.invalid_yaml", message=f"Config is not valid YAML: {p}", data={"error": str(e)}) from e
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(code="config.invalid", message="Config must be a YAML mapping/object at top-level")
    return config_from_dict(raw)


def render_default_config_yaml() -> str:
    return yaml.safe_dump(OperationsConfig().to_dict(), sort_keys=False, allow_unicode=True)
