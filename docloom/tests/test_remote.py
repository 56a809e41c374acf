"""Tests for the remote placement adapter."""

import json
from unittest.mock import MagicMock, patch

import httpx
from docloom.core.placement import InsertPosition, ProposalSource, RemoteAssistAdapter, TextDocument
from docloom.core.placement.prompts import build_placement_prompt, language_rules
from docloom.core.placement.rate_limiter import RateLimiter
from docloom.core.placement.remote import ANTHROPIC_VERSION, parse_reply


TS_SOURCE = '''
export class Calculator {
  add(value: number): number {
    return value;
  }
}
'''

REPLY = {
    "comment": "/**\n * Adds a value.\n */",
    "targetLine": 2,
    "position": "before",
    "indentation": 2,
    "reasoning": "method declaration",
}


def _response(payload=None, text=None):
    response = MagicMock()
    response.json.return_value = {"content": [{"type": "text", "text": text or json.dumps(payload or REPLY)}]}
    return response


def _client(*responses):
    client = MagicMock()
    client.post.side_effect = list(responses)
    return client


def _status_error(status):
    return httpx.HTTPStatusError(
        f"HTTP {status}",
        request=httpx.Request("POST", "https://example.invalid"),
        response=httpx.Response(status),
    )


# =========================================================================
# Tests: Reply parsing
# =========================================================================

class TestParseReply:
    def test_plain_json(self):
        reply = parse_reply(json.dumps(REPLY))
        assert reply.targetLine == 2
        assert reply.position == "BEFORE"

    def test_markdown_fences(self):
        raw = "```json\n" + json.dumps({"targetLine": 4, "position": "after"}) + "\n```"
        reply = parse_reply(raw)
        assert reply.targetLine == 4
        assert reply.position == "AFTER"

    def test_prose_around_json(self):
        reply = parse_reply('Sure! {"targetLine": 3} Hope that helps.')
        assert reply.targetLine == 3
        assert reply.comment == ""

    def test_garbage(self):
        assert parse_reply("not json at all") is None

    def test_missing_target_line(self):
        assert parse_reply(json.dumps({"comment": "// x"})) is None

    def test_unknown_position(self):
        assert parse_reply(json.dumps({"targetLine": 1, "position": "SIDEWAYS"})) is None

    def test_non_object(self):
        assert parse_reply("[1, 2]") is None


# =========================================================================
# Tests: Prompt
# =========================================================================

class TestPrompt:
    def test_prompt_contents(self):
        prompt = build_placement_prompt("def f():\n    pass", "python", "Explain f", cursor_line=40, cursor_offset=1)
        assert "Explain f" in prompt
        assert "def f():" in prompt
        assert "targetLine" in prompt

    def test_language_rules(self):
        assert "docstring" in language_rules("python").lower()
        assert language_rules("cobol")


# =========================================================================
# Tests: Adapter
# =========================================================================

class TestRemoteAssistAdapter:
    def test_successful_proposal(self):
        client = _client(_response())
        adapter = RemoteAssistAdapter(api_key="test-key", client=client, max_tries=1)
        doc = TextDocument(TS_SOURCE, "typescript")

        proposal = adapter.propose(doc, 3, "adds a value")
        assert proposal.target_line == 2
        assert proposal.insert_position == InsertPosition.BEFORE
        assert proposal.source == ProposalSource.REMOTE
        assert proposal.comment_text == REPLY["comment"]
        assert proposal.reasoning == "method declaration"

        kwargs = client.post.call_args.kwargs
        assert kwargs["headers"]["x-api-key"] == "test-key"
        assert kwargs["headers"]["anthropic-version"] == ANTHROPIC_VERSION
        assert kwargs["json"]["model"] == adapter.model
        assert adapter.get_metrics()["total_calls"] == 1

    def test_after_position(self):
        client = _client(_response({"targetLine": 3, "position": "AFTER"}))
        adapter = RemoteAssistAdapter(api_key="k", client=client, max_tries=1)
        proposal = adapter.propose(TextDocument(TS_SOURCE, "typescript"), 3, "x")
        assert proposal.insert_position == InsertPosition.AFTER
        assert proposal.comment_text is None
        assert proposal.reasoning == "remote placement"

    def test_context_window(self):
        client = _client(_response())
        adapter = RemoteAssistAdapter(api_key="k", client=client, max_tries=1, context_radius=5)
        doc = TextDocument("\n".join(f"x{i} = {i}" for i in range(60)), "python")

        adapter.propose(doc, 30, "describe")
        prompt = client.post.call_args.kwargs["json"]["messages"][0]["content"]
        assert "x25 = 25" in prompt
        assert "x35 = 35" in prompt
        assert "x24 = 24" not in prompt
        assert "x36 = 36" not in prompt

    def test_no_api_key(self):
        client = _client(_response())
        adapter = RemoteAssistAdapter(api_key=None, client=client)
        assert not adapter.has_credential
        assert adapter.propose(TextDocument(TS_SOURCE, "typescript"), 2, "x") is None
        client.post.assert_not_called()

    def test_timeout_returns_none(self):
        client = _client(httpx.TimeoutException("timed out"))
        adapter = RemoteAssistAdapter(api_key="k", client=client, max_tries=1)
        assert adapter.propose(TextDocument(TS_SOURCE, "typescript"), 2, "x") is None
        assert adapter.get_metrics()["errors"] == 1

    @patch("time.sleep")
    def test_transient_error_retried(self, mock_sleep):
        client = _client(httpx.ConnectError("refused"), _response())
        adapter = RemoteAssistAdapter(api_key="k", client=client, max_tries=2)

        proposal = adapter.propose(TextDocument(TS_SOURCE, "typescript"), 2, "x")
        assert proposal is not None
        assert client.post.call_count == 2
        assert adapter.get_metrics()["retries"] == 1

    def test_client_error_not_retried(self):
        response = MagicMock()
        response.raise_for_status.side_effect = _status_error(401)
        client = _client(response, response, response)
        adapter = RemoteAssistAdapter(api_key="k", client=client, max_tries=3)

        assert adapter.propose(TextDocument(TS_SOURCE, "typescript"), 2, "x") is None
        assert client.post.call_count == 1

    def test_malformed_content(self):
        response = MagicMock()
        response.json.return_value = {"content": []}
        adapter = RemoteAssistAdapter(api_key="k", client=_client(response), max_tries=1)
        assert adapter.propose(TextDocument(TS_SOURCE, "typescript"), 2, "x") is None

    def test_unparseable_reply(self):
        adapter = RemoteAssistAdapter(api_key="k", client=_client(_response(text="no idea")), max_tries=1)
        assert adapter.propose(TextDocument(TS_SOURCE, "typescript"), 2, "x") is None
        assert adapter.get_metrics()["errors"] == 1

    def test_rate_limited(self):
        client = _client(_response(), _response())
        adapter = RemoteAssistAdapter(api_key="k", client=client, max_tries=1, rate_limiter=RateLimiter(max_calls=1))
        doc = TextDocument(TS_SOURCE, "typescript")

        assert adapter.propose(doc, 2, "x") is not None
        assert adapter.propose(doc, 2, "x") is None
        assert client.post.call_count == 1
        assert adapter.get_metrics()["rate_limited"] == 1
