"""Structured LLM output for the suggestion pipeline"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

EXISTING_TEXT_MARKER = "... existing text ..."


class AISuggestionOutput(BaseModel):
    """Edits alternating between edited content and the existing-text marker"""

    edits: list[str] = Field(min_length=1)

    @field_validator("edits")
    @classmethod
    def check_alternation(cls, edits: list[str]) -> list[str]:
        # Even indices hold content, odd indices hold the marker
        for index, edit in enumerate(edits):
            if (edit == EXISTING_TEXT_MARKER) != (index % 2 == 1):
                raise ValueError(
                    f"Edits must alternate between content and '{EXISTING_TEXT_MARKER}' markers"
                )
        return edits

    def merged(self) -> str:
        """Join the edits into one block, one element per line"""
        return "\n".join(self.edits)


class RewriteCheck(BaseModel):
    """Outcome of comparing the applied rewrite with the original content"""

    issues: list[str] = Field(default_factory=list)
    severity: Literal["warning", "error"] = "warning"

    @property
    def valid(self) -> bool:
        return not self.issues
