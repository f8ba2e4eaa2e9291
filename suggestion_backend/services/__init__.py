"""Services module - Business logic"""

from .anchor_resolver import AnchorResolver
from .config_manager import ConfigManager, SuggestionSettings
from .critic_diff import CriticDiffGenerator
from .critic_parser import CriticMarkupParser, strip_markers
from .diff_engine import DiffApplicationEngine, render_markers
from .errors import (
    ExternalCallFailure,
    HistoryConflict,
    InvalidHunkOperation,
    InvalidSubmission,
    SaveBlockedError,
    SessionStateError,
    SubmissionInProgress,
    SuggestionError,
)
from .history_manager import HistoryManager
from .llm_service import LLMService
from .markdown_blocks import Document
from .suggestion_pipeline import SuggestionPipeline
from .suggestion_session import SuggestionSessionMachine
from .workspace import EditorWorkspace

__all__ = [
    "AnchorResolver",
    "ConfigManager",
    "CriticDiffGenerator",
    "CriticMarkupParser",
    "DiffApplicationEngine",
    "Document",
    "EditorWorkspace",
    "ExternalCallFailure",
    "HistoryConflict",
    "HistoryManager",
    "InvalidHunkOperation",
    "InvalidSubmission",
    "LLMService",
    "SaveBlockedError",
    "SessionStateError",
    "SubmissionInProgress",
    "SuggestionError",
    "SuggestionPipeline",
    "SuggestionSessionMachine",
    "SuggestionSettings",
    "render_markers",
    "strip_markers",
]
