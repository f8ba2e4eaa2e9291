"""
Editor Workspace - One document with its engine, history and suggestion session
"""

from __future__ import annotations

import logging
import uuid

from suggestion_backend.models.session import (
    DocumentState,
    SessionState,
    SuggestionResponse,
    SuggestionSession,
)
from suggestion_backend.services.anchor_resolver import AnchorResolver
from suggestion_backend.services.config_manager import SuggestionSettings
from suggestion_backend.services.critic_parser import CriticMarkupParser
from suggestion_backend.services.diff_engine import DiffApplicationEngine
from suggestion_backend.services.errors import SubmissionInProgress
from suggestion_backend.services.history_manager import HistoryManager
from suggestion_backend.services.markdown_blocks import Document
from suggestion_backend.services.suggestion_session import (
    SuggestionGenerator,
    SuggestionSessionMachine,
)

logger = logging.getLogger(__name__)


class EditorWorkspace:
    """Wires the editing components together for a single document"""

    def __init__(
        self,
        content: str,
        settings: SuggestionSettings | None = None,
        document_id: str | None = None,
    ):
        settings = settings or SuggestionSettings()
        self.document_id = document_id or uuid.uuid4().hex
        self.document = Document(content)
        self.resolver = AnchorResolver(
            context_chars=settings.contextChars,
            max_context_chars=settings.maxContextChars,
            min_score=settings.minFingerprintScore,
        )
        self.parser = CriticMarkupParser(
            context_chars=settings.contextChars,
            max_context_chars=settings.maxContextChars,
        )
        self.engine = DiffApplicationEngine(self.document, self.resolver)
        self.history = HistoryManager(self.engine, limit=settings.historyLimit)
        self.machine = SuggestionSessionMachine(
            self.engine, self.history, parser=self.parser, resolver=self.resolver
        )

    @property
    def session(self) -> SuggestionSession | None:
        return self.machine.session

    def state(self) -> DocumentState:
        return DocumentState(
            document_id=self.document_id,
            content=self.document.text,
            marked_content=self.engine.render_markers(),
            hunks=self.engine.hunk_views(),
            counts=self.engine.counts(),
            save_gate=self.machine.save_gate(),
            session=self.machine.session,
            can_undo=self.history.can_undo,
            can_redo=self.history.can_redo,
        )

    async def suggest(self, prompt: str, generate: SuggestionGenerator) -> SuggestionResponse:
        session = await self.machine.submit(prompt, generate=generate)
        succeeded = session.state == SessionState.SUCCESS
        return SuggestionResponse(
            success=succeeded,
            error=None if succeeded else session.error,
            session=session,
            state=self.state(),
        )

    def replace_content(self, content: str):
        """Manual edit; recorded history no longer matches the text"""
        if self.machine.state == SessionState.LOADING:
            raise SubmissionInProgress("Cannot edit while a suggestion request is in progress")
        self.engine.replace_content(content)
        self.history.clear()
        logger.info(f"[Workspace] {self.document_id} edited manually")

    def save(self) -> str:
        return self.machine.mark_saved()
