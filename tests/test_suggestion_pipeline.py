"""Tests for the LLM suggestion pipeline (mocked LLM)."""

import json

import pytest

from suggestion_backend.services.critic_parser import accept_markers, strip_markers
from suggestion_backend.services.errors import ExternalCallFailure
from suggestion_backend.services.suggestion_pipeline import (
    SuggestionPipeline,
    check_rewrite,
    parse_json_from_response,
    strip_code_fence,
)

ORIGINAL = "Hello world.\n\nSecond paragraph.\n"
EDITED = "Hello brave world.\n\nSecond paragraph.\n"


class FakeLLM:
    """Returns canned replies in order and records prompts"""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts = []

    async def generate_response(self, prompt: str, json_mode: bool = False) -> str:
        self.prompts.append((prompt, json_mode))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def _edits(*edits: str) -> str:
    return "```json\n" + json.dumps({"edits": list(edits)}) + "\n```"


class TestGenerate:
    @pytest.mark.asyncio
    async def test_four_steps(self):
        llm = FakeLLM(_edits("Hello brave world.", "... existing text ..."), EDITED)
        steps = []

        annotated = await SuggestionPipeline(llm).generate(
            ORIGINAL, "Add an adjective", on_progress=lambda step, progress: steps.append((step, progress))
        )

        assert annotated == "Hello {++brave ++}world.\n\nSecond paragraph.\n"
        assert strip_markers(annotated) == ORIGINAL
        assert accept_markers(annotated) == EDITED
        assert steps == [
            ("Generating AI suggestions...", 25),
            ("Applying suggestions...", 50),
            ("Generating diff...", 75),
            ("Complete", 100),
        ]

    @pytest.mark.asyncio
    async def test_prompts_carry_request_and_content(self):
        llm = FakeLLM(_edits("Hello brave world."), EDITED)

        await SuggestionPipeline(llm).generate(ORIGINAL, "Add an adjective")

        (suggest_prompt, json_mode), (apply_prompt, _) = llm.prompts
        assert json_mode
        assert "Add an adjective" in suggest_prompt
        assert ORIGINAL in suggest_prompt
        assert "Hello brave world." in apply_prompt
        assert ORIGINAL in apply_prompt

    @pytest.mark.asyncio
    async def test_fenced_rewrite_is_unwrapped(self):
        llm = FakeLLM(_edits("Hello brave world."), "```markdown\n" + EDITED + "```")

        annotated = await SuggestionPipeline(llm).generate(ORIGINAL, "Edit")
        assert accept_markers(annotated) == EDITED

    @pytest.mark.asyncio
    async def test_callable_as_generator(self):
        llm = FakeLLM(_edits("Hello brave world."), EDITED)

        annotated = await SuggestionPipeline(llm)(ORIGINAL, "Edit")
        assert "{++brave ++}" in annotated


class TestFailures:
    @pytest.mark.asyncio
    async def test_invalid_json(self):
        llm = FakeLLM("not json at all")

        with pytest.raises(ExternalCallFailure):
            await SuggestionPipeline(llm).generate(ORIGINAL, "Edit")

    @pytest.mark.asyncio
    async def test_schema_violation(self):
        llm = FakeLLM(_edits("... existing text ...", "content"))

        with pytest.raises(ExternalCallFailure, match="expected format"):
            await SuggestionPipeline(llm).generate(ORIGINAL, "Edit")

    @pytest.mark.asyncio
    async def test_llm_error(self):
        llm = FakeLLM(RuntimeError("quota exceeded"))

        with pytest.raises(ExternalCallFailure, match="quota exceeded"):
            await SuggestionPipeline(llm).generate(ORIGINAL, "Edit")

    @pytest.mark.asyncio
    async def test_empty_rewrite(self):
        llm = FakeLLM(_edits("Hello brave world."), "   ")

        with pytest.raises(ExternalCallFailure):
            await SuggestionPipeline(llm).generate(ORIGINAL, "Edit")

    @pytest.mark.asyncio
    async def test_rewrite_with_unexpanded_marker_rejected(self):
        llm = FakeLLM(_edits("Hello brave world."), "Hello brave world.\n\n... existing text ...\n")

        with pytest.raises(ExternalCallFailure, match="rejected"):
            await SuggestionPipeline(llm).generate(ORIGINAL, "Edit")

    @pytest.mark.asyncio
    async def test_truncated_rewrite_rejected(self):
        llm = FakeLLM(_edits("Hello brave world."), "Hello.\n")

        with pytest.raises(ExternalCallFailure, match="too short"):
            await SuggestionPipeline(llm).generate(ORIGINAL, "Edit")


class TestHelpers:
    def test_parse_json_from_code_block(self):
        assert parse_json_from_response('```json\n{"edits": ["a"]}\n```') == {"edits": ["a"]}

    def test_parse_json_surrounded_by_text(self):
        assert parse_json_from_response('Sure! {"edits": ["a"]} Done.') == {"edits": ["a"]}

    def test_strip_code_fence(self):
        assert strip_code_fence("```\ntext\n```") == "text\n"
        assert strip_code_fence("plain text") == "plain text"


class TestCheckRewrite:
    def test_valid_rewrite(self):
        check = check_rewrite(ORIGINAL, EDITED)

        assert check.valid
        assert check.issues == []

    def test_unexpanded_marker_is_error(self):
        check = check_rewrite(ORIGINAL, "Hello world.\n\n... existing text ...\n")

        assert check.severity == "error"
        assert check.issues == ["Contains unexpanded markers"]

    def test_too_short_is_error(self):
        check = check_rewrite(ORIGINAL, "Hi.\n")

        assert check.severity == "error"
        assert check.issues[0].startswith("Content too short")

    def test_too_long_is_warning(self):
        check = check_rewrite("Short.\n", "Short.\n\nWith a much longer second paragraph.\n")

        assert not check.valid
        assert check.severity == "warning"
        assert check.issues[0].startswith("Content too long")

    def test_lost_headings_is_warning(self):
        original = "# One\n\nText.\n\n## Two\n\nMore text.\n\n## Three\n\nEnd.\n"
        edited = "# One\n\nText.\n\nTwo\n\nMore text.\n\nThree\n\nEnd.\n"

        check = check_rewrite(original, edited)

        assert check.severity == "warning"
        assert check.issues == ["Lost headings: 3 -> 1"]
