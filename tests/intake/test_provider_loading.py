import os
import unittest

from filepilot.core.errors import ValidationError
from filepilot.intake.chat import AnthropicChatProvider, StopReason
from filepilot.intake.provider_loading import load_chat_provider
from filepilot.intake.testing import ModelAsToolCallsProvider


class TestProviderLoading(unittest.TestCase):
    def test_load_anthropic_provider_and_missing_key_error(self) -> None:
        old = os.environ.get("ANTHROPIC_API_KEY")
        os.environ.pop("ANTHROPIC_API_KEY", None)
        try:
            loaded = load_chat_provider(provider="anthropic.messages", model="claude-sonnet-4-5")
            self.assertEqual(loaded.provider_id, "anthropic.messages")
            self.assertEqual(loaded.model, "claude-sonnet-4-5")
            self.assertIsInstance(loaded.provider, AnthropicChatProvider)

            turn = loaded.provider.send_chat_turn(system_prompt="sys", user_message="hi", tools=[])
            self.assertEqual(turn.stop_reason, StopReason.ERROR)
            self.assertEqual(turn.error_code, "llm.missing_api_key")
            self.assertIn("ANTHROPIC_API_KEY", turn.error)
        finally:
            if old is None:
                os.environ.pop("ANTHROPIC_API_KEY", None)
            else:
                os.environ["ANTHROPIC_API_KEY"] = old

    def test_alias_and_custom_key_env(self) -> None:
        loaded = load_chat_provider(provider="anthropic", model="m", api_key_env="MY_KEY", timeout_s=3)
        self.assertEqual(loaded.provider_id, "anthropic.messages")
        turn = loaded.provider.send_chat_turn(system_prompt="sys", user_message="hi", tools=[])
        self.assertIn("MY_KEY", turn.error)

    def test_load_dynamic_provider(self) -> None:
        loaded = load_chat_provider(provider="filepilot.intake.testing:ModelAsToolCallsProvider", model='[{"name": "file_list", "input": {"path": "."}}]')
        self.assertIsInstance(loaded.provider, ModelAsToolCallsProvider)
        turn = loaded.provider.send_chat_turn(system_prompt="", user_message="x", tools=[])
        self.assertEqual([c.name for c in turn.tool_calls], ["file_list"])

    def test_bad_specs(self) -> None:
        cases = [
            ("no_colon_here", "llm.provider_invalid"),
            ("filepilot.does_not_exist:X", "llm.provider_not_found"),
            ("filepilot.intake.testing:Missing", "llm.provider_not_found"),
            ("filepilot.intake.testing:text_turn", "llm.provider_invalid"),
        ]
        for spec, code in cases:
            with self.subTest(spec=spec):
                with self.assertRaises(ValidationError) as ctx:
                    load_chat_provider(provider=spec, model="m")
                self.assertEqual(ctx.exception.code, code)

    def test_empty_model(self) -> None:
        with self.assertRaises(ValidationError):
            load_chat_provider(provider="anthropic", model="")


if __name__ == "__main__":
    unittest.main()
