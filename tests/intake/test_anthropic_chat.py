import io
import socket
import unittest
import urllib.error
from unittest.mock import patch

from filepilot.core.errors import ApiError
from filepilot.intake.anthropic_messages import (
    AnthropicMessagesClient,
    AnthropicMessagesConfig,
    MessagesRequest,
    _default_http_post,
)
from filepilot.intake.chat import AnthropicChatProvider, StopReason, parse_messages_response


TOOL_RESPONSE = {
    "id": "msg_01",
    "type": "message",
    "role": "assistant",
    "stop_reason": "tool_use",
    "content": [
        {"type": "text", "text": "Moving the files."},
        {"type": "tool_use", "id": "toolu_a", "name": "file_move", "input": {"source": "a.txt", "destination": "b"}},
        {"type": "tool_use", "id": "toolu_b", "name": "file_list", "input": {"path": "b"}},
    ],
    "usage": {"input_tokens": 120, "output_tokens": 40},
}


class _RecordingPost:
    def __init__(self, response=None, error=None) -> None:
        self.response = response
        self.error = error
        self.calls = []

    def __call__(self, url, *, headers, body, timeout_s):
        self.calls.append({"url": url, "headers": headers, "body": body, "timeout_s": timeout_s})
        if self.error is not None:
            raise self.error
        return self.response


class TestParseMessagesResponse(unittest.TestCase):
    def test_tool_calls_in_order(self) -> None:
        turn = parse_messages_response(TOOL_RESPONSE)
        self.assertEqual(turn.stop_reason, StopReason.TOOL_USE)
        self.assertEqual(turn.text, "Moving the files.")
        self.assertEqual([c.id for c in turn.tool_calls], ["toolu_a", "toolu_b"])
        self.assertEqual(turn.tool_calls[0].arguments_json, '{"source": "a.txt", "destination": "b"}')
        self.assertEqual((turn.input_tokens, turn.output_tokens), (120, 40))

    def test_text_only(self) -> None:
        turn = parse_messages_response({"content": [{"type": "text", "text": "Hello"}], "stop_reason": "end_turn"})
        self.assertEqual(turn.stop_reason, StopReason.END_TURN)
        self.assertEqual(turn.tool_calls, [])

    def test_missing_content(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            parse_messages_response({"stop_reason": "end_turn"})
        self.assertEqual(ctx.exception.code, "llm.invalid_response")


class TestAnthropicChatProvider(unittest.TestCase):
    def test_request_shape(self) -> None:
        post = _RecordingPost(response=TOOL_RESPONSE)
        client = AnthropicMessagesClient(config=AnthropicMessagesConfig(api_base="https://example.test/", timeout_s=7), http_post=post)
        provider = AnthropicChatProvider(client=client, model="claude-sonnet-4-5", max_tokens=512)
        tools = [{"name": "file_list", "description": "List", "input_schema": {"type": "object", "properties": {}, "required": []}}]

        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": "sk-test"}):
            turn = provider.send_chat_turn(system_prompt="You manage files.", user_message="move a.txt", tools=tools)

        self.assertFalse(turn.failed)
        call = post.calls[0]
        self.assertEqual(call["url"], "https://example.test/v1/messages")
        self.assertEqual(call["headers"]["x-api-key"], "sk-test")
        self.assertEqual(call["timeout_s"], 7)
        self.assertEqual(call["body"]["system"], "You manage files.")
        self.assertEqual(call["body"]["max_tokens"], 512)
        self.assertEqual(call["body"]["messages"], [{"role": "user", "content": "move a.txt"}])
        self.assertEqual(call["body"]["tools"], tools)

    def test_errors_become_error_turns(self) -> None:
        for code in ("llm.timeout", "llm.http_error", "llm.invalid_response"):
            with self.subTest(code=code):
                post = _RecordingPost(error=ApiError(code=code, message="boom"))
                client = AnthropicMessagesClient(http_post=post)
                provider = AnthropicChatProvider(client=client, model="m")
                with patch.dict("os.environ", {"ANTHROPIC_API_KEY": "sk-test"}):
                    turn = provider.send_chat_turn(system_prompt="s", user_message="u", tools=[])
                self.assertEqual(turn.stop_reason, StopReason.ERROR)
                self.assertEqual(turn.error_code, code)

    def test_bad_response_body_is_error_turn(self) -> None:
        client = AnthropicMessagesClient(http_post=_RecordingPost(response={"unexpected": True}))
        provider = AnthropicChatProvider(client=client, model="m")
        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": "sk-test"}):
            turn = provider.send_chat_turn(system_prompt="s", user_message="u", tools=[])
        self.assertTrue(turn.failed)
        self.assertEqual(turn.error_code, "llm.invalid_response")


class TestMessagesRequest(unittest.TestCase):
    def test_tool_result_round(self) -> None:
        req = MessagesRequest(model="m", system_prompt="sys")
        req.add_user_message("list files").add_assistant_message(
            [{"type": "tool_use", "id": "toolu_1", "name": "file_list", "input": {"path": "."}}]
        ).add_tool_result("toolu_1", "a.txt\nb.txt")
        body = req.to_body()
        self.assertEqual([m["role"] for m in body["messages"]], ["user", "assistant", "user"])
        self.assertEqual(body["messages"][2]["content"][0]["tool_use_id"], "toolu_1")
        self.assertNotIn("is_error", body["messages"][2]["content"][0])
        self.assertNotIn("tools", body)
        self.assertEqual(body["system"], "sys")

    def test_validation(self) -> None:
        for req in (MessagesRequest(model=""), MessagesRequest(model="m"), MessagesRequest(model="m").add_user_message("  ")):
            with self.subTest(req=req):
                with self.assertRaises(ApiError) as ctx:
                    req.validate()
                self.assertEqual(ctx.exception.code, "llm.invalid_request")

    def test_send_without_key(self) -> None:
        post = _RecordingPost(response=TOOL_RESPONSE)
        client = AnthropicMessagesClient(config=AnthropicMessagesConfig(api_key_env="FILEPILOT_TEST_NO_KEY"), http_post=post)
        with patch.dict("os.environ", {}, clear=True):
            with self.assertRaises(ApiError) as ctx:
                client.send(MessagesRequest(model="m").add_user_message("hi"))
        self.assertEqual(ctx.exception.code, "llm.missing_api_key")
        self.assertEqual(post.calls, [])


class TestDefaultHttpPost(unittest.TestCase):
    def test_http_error_body_is_decoded(self) -> None:
        body = b'{"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}'
        err = urllib.error.HTTPError("https://example.test/v1/messages", 529, "Overloaded", {}, io.BytesIO(body))
        with patch("urllib.request.urlopen", side_effect=err):
            with self.assertRaises(ApiError) as ctx:
                _default_http_post("https://example.test/v1/messages", headers={}, body={}, timeout_s=1.5)
        self.assertEqual(ctx.exception.code, "llm.http_error")
        self.assertEqual(ctx.exception.message, "Anthropic HTTP error 529: Overloaded")
        self.assertEqual(ctx.exception.data["error_type"], "overloaded_error")

    def test_timeout_has_its_own_code(self) -> None:
        with patch("urllib.request.urlopen", side_effect=socket.timeout("timed out")):
            with self.assertRaises(ApiError) as ctx:
                _default_http_post("https://example.test/v1/messages", headers={}, body={}, timeout_s=1.5)
        self.assertEqual(ctx.exception.code, "llm.timeout")
        self.assertTrue(ctx.exception.is_timeout)

    def test_wrapped_timeout(self) -> None:
        err = urllib.error.URLError(socket.timeout("timed out"))
        with patch("urllib.request.urlopen", side_effect=err):
            with self.assertRaises(ApiError) as ctx:
                _default_http_post("https://example.test/v1/messages", headers={}, body={}, timeout_s=1.5)
        self.assertEqual(ctx.exception.code, "llm.timeout")

    def test_other_failures(self) -> None:
        with patch("urllib.request.urlopen", side_effect=urllib.error.URLError("connection refused")):
            with self.assertRaises(ApiError) as ctx:
                _default_http_post("https://example.test/v1/messages", headers={}, body={}, timeout_s=1.5)
        self.assertEqual(ctx.exception.code, "llm.request_failed")
        self.assertFalse(ctx.exception.is_timeout)


if __name__ == "__main__":
    unittest.main()
