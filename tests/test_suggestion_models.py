"""Tests for the structured suggestion output schema."""

import pytest
from pydantic import ValidationError

from suggestion_backend.models.suggestion import EXISTING_TEXT_MARKER, AISuggestionOutput


def test_alternating_edits_are_valid():
    output = AISuggestionOutput(edits=["Intro", EXISTING_TEXT_MARKER, "Middle", EXISTING_TEXT_MARKER])

    assert output.merged() == f"Intro\n{EXISTING_TEXT_MARKER}\nMiddle\n{EXISTING_TEXT_MARKER}"


def test_single_edit_is_valid():
    assert AISuggestionOutput(edits=["Only content"]).edits == ["Only content"]


@pytest.mark.parametrize(
    "edits",
    [
        [],
        [EXISTING_TEXT_MARKER, "content"],
        ["a", "b"],
        ["a", EXISTING_TEXT_MARKER, EXISTING_TEXT_MARKER],
    ],
)
def test_invalid_edits(edits):
    with pytest.raises(ValidationError):
        AISuggestionOutput(edits=edits)
