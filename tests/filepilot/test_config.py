import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import yaml

from filepilot.core.config import (
    OperationsConfig,
    config_from_dict,
    default_config_path,
    default_trash_dir,
    load_config,
    render_default_config_yaml,
)
from filepilot.core.errors import ConfigError
from filepilot.core.risk import RiskLevel


class TestOperationsConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        cfg = OperationsConfig()
        self.assertTrue(cfg.require_confirmation_for_risk)
        self.assertEqual(cfg.confirmation_threshold, RiskLevel.MEDIUM)
        self.assertTrue(cfg.enable_undo)
        self.assertTrue(cfg.verbose_preview)
        self.assertEqual(cfg.max_files_without_confirmation, 10)
        self.assertEqual(cfg.current_directory, ".")
        self.assertEqual(cfg.llm.provider, "anthropic.messages")

    def test_from_dict(self) -> None:
        cfg = config_from_dict(
            {
                "operations": {"confirmation_threshold": "high", "max_files_without_confirmation": 3, "enable_undo": False},
                "trace": {"path": "/tmp/fp-trace.jsonl"},
                "llm": {"model": "claude-haiku-4-5", "timeout_s": 5},
            }
        )
        self.assertEqual(cfg.confirmation_threshold, RiskLevel.HIGH)
        self.assertEqual(cfg.max_files_without_confirmation, 3)
        self.assertFalse(cfg.enable_undo)
        self.assertEqual(cfg.trace_path, "/tmp/fp-trace.jsonl")
        self.assertEqual(cfg.llm.model, "claude-haiku-4-5")
        self.assertEqual(cfg.llm.timeout_s, 5)

    def test_schema_rejects_unknown_keys(self) -> None:
        with self.assertRaises(ConfigError) as ctx:
            config_from_dict({"operations": {"confirm_everything": True}})
        self.assertEqual(ctx.exception.code, "config.invalid")

        with self.assertRaises(ConfigError):
            config_from_dict({"operations": {"confirmation_threshold": "extreme"}})

    def test_load_missing_default_gives_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with patch.dict(os.environ, {"XDG_CONFIG_HOME": td}):
                self.assertEqual(default_config_path(), Path(td) / "filepilot" / "config.yml")
                cfg = load_config()
        self.assertEqual(cfg.max_files_without_confirmation, 10)

    def test_load_missing_explicit_path_fails(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError) as ctx:
                load_config(Path(td) / "nope.yml")
        self.assertEqual(ctx.exception.code, "config.not_found")

    def test_load_yaml_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "config.yml"
            p.write_text("operations:\n  require_confirmation_for_risk: false\n  current_directory: ~/Documents\n", encoding="utf-8")
            cfg = load_config(p)
        self.assertFalse(cfg.require_confirmation_for_risk)
        self.assertEqual(cfg.current_directory, os.path.expanduser("~/Documents"))

    def test_invalid_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "config.yml"
            p.write_text("operations: [unclosed\n", encoding="utf-8")
            with self.assertRaises(ConfigError) as ctx:
                load_config(p)
        self.assertEqual(ctx.exception.code, "config.invalid_yaml")

    def test_non_mapping_top_level(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "config.yml"
            p.write_text("- a\n- b\n", encoding="utf-8")
            with self.assertRaises(ConfigError) as ctx:
                load_config(p)
        self.assertEqual(ctx.exception.code, "config.invalid")

    def test_rendered_default_round_trips(self) -> None:
        raw = yaml.safe_load(render_default_config_yaml())
        cfg = config_from_dict(raw)
        self.assertEqual(cfg.to_dict(), OperationsConfig().to_dict())

    def test_trash_dir_follows_xdg_data_home(self) -> None:
        with patch.dict(os.environ, {"XDG_DATA_HOME": "/data"}):
            self.assertEqual(default_trash_dir(), str(Path("/data") / "filepilot" / "Trash"))


if __name__ == "__main__":
    unittest.main()
