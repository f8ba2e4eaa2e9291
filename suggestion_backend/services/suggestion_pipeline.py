"""
Suggestion Pipeline - LLM edits -> applied rewrite -> CriticMarkup
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from suggestion_backend.models.suggestion import EXISTING_TEXT_MARKER, AISuggestionOutput, RewriteCheck
from suggestion_backend.services.critic_diff import CriticDiffGenerator
from suggestion_backend.services.errors import ExternalCallFailure
from suggestion_backend.services.llm_service import LLMService

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]

STEP_SUGGEST = ("Generating AI suggestions...", 25)
STEP_APPLY = ("Applying suggestions...", 50)
STEP_DIFF = ("Generating diff...", 75)
STEP_COMPLETE = ("Complete", 100)

_HEADING = re.compile(r"^#{1,6} .+$", re.MULTILINE)


def parse_json_from_response(response: str) -> dict[str, Any]:
    """Parse JSON from LLM response, handling code blocks"""
    json_match = re.search(r"```(?:json)?\s*([\s\S]*?)```", response)
    json_str = json_match.group(1).strip() if json_match else response.strip()

    try:
        return json.loads(json_str)
    except json.JSONDecodeError as e:
        # Fall back to the outermost object in the reply
        brace_start = json_str.find("{")
        brace_end = json_str.rfind("}") + 1
        if brace_start >= 0 and brace_end > brace_start:
            try:
                return json.loads(json_str[brace_start:brace_end])
            except json.JSONDecodeError:
                pass
        raise ExternalCallFailure(f"Failed to parse JSON: {e}") from e


def strip_code_fence(response: str) -> str:
    """Unwrap a reply the model put in a single fenced block"""
    match = re.fullmatch(r"\s*```[\w-]*\n([\s\S]*?)```\s*", response)
    return match.group(1) if match else response


def check_rewrite(original: str, edited: str) -> RewriteCheck:
    """Compare the applied rewrite with the original for lost or unexpanded content"""
    if not original or not edited:
        return RewriteCheck(issues=["Original or edited content is empty"], severity="error")

    issues = []
    errors = False
    ratio = len(edited) / len(original)
    if ratio < 0.5:
        issues.append(f"Content too short: {round(ratio * 100)}% of original (min 50%)")
        errors = True
    elif ratio > 2.0:
        issues.append(f"Content too long: {round(ratio * 100)}% of original (max 200%)")

    original_headings = len(_HEADING.findall(original))
    edited_headings = len(_HEADING.findall(edited))
    if original_headings and edited_headings < original_headings * 0.5:
        issues.append(f"Lost headings: {original_headings} -> {edited_headings}")

    if EXISTING_TEXT_MARKER in edited:
        issues.append("Contains unexpanded markers")
        errors = True

    return RewriteCheck(issues=issues, severity="error" if errors else "warning")


def build_suggestion_prompt(current_text: str, user_prompt: str) -> str:
    return f"""Edit the article below as the user requests.

USER REQUEST:
{user_prompt}

<output_format>
You must respond with a JSON object containing an "edits" array.
The edits array describes the edits in order from the beginning of the content,
skipping unchanged text with the marker "{EXISTING_TEXT_MARKER}".

Even positions (0, 2, 4...) hold edited text content.
Odd positions (1, 3, 5...) hold exactly "{EXISTING_TEXT_MARKER}".

Example:
{{
    "edits": [
        "Improved introduction paragraph here",
        "{EXISTING_TEXT_MARKER}",
        "Enhanced middle section with better examples"
    ]
}}
</output_format>

<rules>
- Preserve markdown formatting in your edits
- Each edit should be a complete, coherent section
- Leave code blocks and tables untouched unless the request is about them
</rules>

== Article to edit ==
{current_text}"""


def build_apply_edits_prompt(suggestions: str, original_content: str) -> str:
    return f"""You are an edit application tool. Apply the suggested edits to the original content.

The suggestions use "{EXISTING_TEXT_MARKER}" to mark unchanged sections.

IMPORTANT RULES:
- Return ONLY the final edited text, nothing else
- Do not include the "{EXISTING_TEXT_MARKER}" markers in your output
- Preserve all formatting, spacing, and structure from the original
- Return the COMPLETE final text

== AI SUGGESTIONS ==
{suggestions}

== ORIGINAL CONTENT ==
{original_content}

== YOUR TASK ==
Apply the AI suggestions to the original content and return the complete final text."""


class SuggestionPipeline:
    """Four-step pipeline producing CriticMarkup over the current text"""

    def __init__(self, llm_service: LLMService, diff_generator: CriticDiffGenerator | None = None):
        self.llm_service = llm_service
        self.diff_generator = diff_generator or CriticDiffGenerator()

    async def generate(
        self,
        current_text: str,
        user_prompt: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        def report(step: tuple[str, int]):
            if on_progress:
                on_progress(*step)

        logger.info(f"[Pipeline] Start (content length: {len(current_text)})")

        report(STEP_SUGGEST)
        raw = await self._ask(build_suggestion_prompt(current_text, user_prompt), json_mode=True)
        try:
            suggestions = AISuggestionOutput.model_validate(parse_json_from_response(raw))
        except ValidationError as e:
            logger.error(f"[Pipeline] Invalid suggestion output: {e}")
            raise ExternalCallFailure("AI suggestions did not match the expected format") from e
        logger.info(f"[Pipeline] Received {len(suggestions.edits)} edit segments")

        report(STEP_APPLY)
        edited = await self._ask(build_apply_edits_prompt(suggestions.merged(), current_text))
        if not current_text.lstrip().startswith("```"):
            edited = strip_code_fence(edited)
        if not edited.strip():
            raise ExternalCallFailure("AI returned empty edited content")

        check = check_rewrite(current_text, edited)
        if check.severity == "error":
            logger.error(f"[Pipeline] Rewrite rejected: {check.issues}")
            raise ExternalCallFailure(f"AI rewrite rejected: {'; '.join(check.issues)}")
        if not check.valid:
            logger.warning(f"[Pipeline] Rewrite issues: {check.issues}")

        report(STEP_DIFF)
        annotated = self.diff_generator.generate(current_text, edited)

        report(STEP_COMPLETE)
        logger.info(f"[Pipeline] Complete (annotated length: {len(annotated)})")
        return annotated

    async def __call__(self, current_text: str, user_prompt: str) -> str:
        return await self.generate(current_text, user_prompt)

    async def _ask(self, prompt: str, json_mode: bool = False) -> str:
        try:
            response = await self.llm_service.generate_response(prompt, json_mode=json_mode)
        except ExternalCallFailure:
            raise
        except Exception as e:
            logger.error(f"[Pipeline] LLM call failed: {e}")
            raise ExternalCallFailure(f"AI processing failed: {e}") from e
        if not response or not response.strip():
            raise ExternalCallFailure("AI returned an empty response")
        return response
