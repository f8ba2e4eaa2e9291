"""
Suggestion Session State Machine - One prompt/response round and the save gate
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable

from suggestion_backend.models.diff import HunkStatus
from suggestion_backend.models.session import (
    SAVE_BLOCKED_REASON,
    SaveGate,
    SessionState,
    SuggestionSession,
)
from suggestion_backend.services.anchor_resolver import AnchorResolver
from suggestion_backend.services.critic_parser import CriticMarkupParser
from suggestion_backend.services.diff_engine import DiffApplicationEngine
from suggestion_backend.services.errors import (
    ExternalCallFailure,
    InvalidSubmission,
    SaveBlockedError,
    SessionStateError,
    SubmissionInProgress,
)
from suggestion_backend.services.history_manager import HistoryManager

logger = logging.getLogger(__name__)

# generate(current_document_text, user_prompt) -> CriticMarkup-annotated text
SuggestionGenerator = Callable[[str, str], Awaitable[str]]


class SuggestionSessionMachine:
    """Idle -> Composing -> Loading -> Success | Error, plus the save gate"""

    def __init__(
        self,
        engine: DiffApplicationEngine,
        history: HistoryManager,
        generate: SuggestionGenerator | None = None,
        parser: CriticMarkupParser | None = None,
        resolver: AnchorResolver | None = None,
    ):
        self.engine = engine
        self.history = history
        self.generate = generate
        self.parser = parser or CriticMarkupParser()
        self.resolver = resolver or engine.resolver
        self.session: SuggestionSession | None = None

    @property
    def state(self) -> SessionState:
        return self.session.state if self.session else SessionState.IDLE

    def compose(self, prompt: str = "") -> SuggestionSession:
        """Start (or restart) composing a request"""
        if self.state == SessionState.LOADING:
            raise SubmissionInProgress("A suggestion request is already in progress")
        if self.state == SessionState.COMPOSING:
            self.session.request_prompt = prompt
        else:
            self.session = SuggestionSession(session_id=uuid.uuid4().hex, request_prompt=prompt)
        return self.session

    async def submit(
        self,
        prompt: str | None = None,
        generate: SuggestionGenerator | None = None,
    ) -> SuggestionSession:
        """Run one round. Failures of the external call end in the error state."""
        if self.state == SessionState.LOADING:
            logger.warning("[Session] Rejected submit while a request is loading")
            raise SubmissionInProgress("A suggestion request is already in progress")
        if prompt is not None:
            self.compose(prompt)
        if self.state != SessionState.COMPOSING:
            raise SessionStateError(f"Cannot submit from state {self.state.value}")

        session = self.session
        snapshot = self.engine.document.text
        if not session.request_prompt.strip() or not snapshot.strip():
            raise InvalidSubmission("Please enter a prompt and ensure there is content to edit")
        generate = generate or self.generate
        if generate is None:
            raise SessionStateError("No suggestion generator configured")

        session.document_snapshot_before_request = snapshot
        session.state = SessionState.LOADING
        session.error = None
        logger.info(f"[Session] {session.session_id} loading (content length: {len(snapshot)})")

        try:
            annotated = await self._call(generate, snapshot, session.request_prompt)
            parsed = self.parser.parse(annotated)
            if not parsed.hunks and parsed.warnings:
                raise ExternalCallFailure("AI response contained no valid CriticMarkup")

            # Anchor against the document as it stands now, prior rounds included
            hunks = self.resolver.resolve(
                parsed.hunks,
                self.engine.document,
                occupied=self.engine.occupied_spans(),
                session_id=session.session_id,
            )
            self.engine.add_hunks(hunks)
        except ExternalCallFailure as e:
            session.state = SessionState.ERROR
            session.error = str(e)
            logger.error(f"[Session] {session.session_id} failed: {e}")
            return session
        except asyncio.CancelledError:
            session.state = SessionState.ERROR
            session.error = "Suggestion request cancelled"
            logger.info(f"[Session] {session.session_id} cancelled")
            raise
        except Exception:
            session.state = SessionState.ERROR
            session.error = "AI suggestions pipeline failed"
            raise

        session.hunks = hunks
        session.warnings = parsed.warnings
        session.state = SessionState.SUCCESS
        unresolved = sum(1 for hunk in hunks if hunk.status == HunkStatus.UNRESOLVED)
        logger.info(
            f"[Session] {session.session_id} succeeded: {len(hunks) - unresolved} hunks rendered, "
            f"{unresolved} unresolved, {len(parsed.warnings)} parse warnings"
        )
        return session

    def finish(self) -> None:
        """Success -> Idle, ready for the next round"""
        if self.state != SessionState.SUCCESS:
            raise SessionStateError(f"Cannot finish from state {self.state.value}")
        self.session.state = SessionState.IDLE

    def retry(self) -> SuggestionSession:
        """Error -> Composing with the same prompt"""
        if self.state != SessionState.ERROR:
            raise SessionStateError(f"Cannot retry from state {self.state.value}")
        self.session.state = SessionState.COMPOSING
        self.session.error = None
        return self.session

    def pending_count(self) -> int:
        return self.engine.pending_count()

    def can_save(self) -> bool:
        return self.pending_count() == 0

    def save_gate(self) -> SaveGate:
        pending = self.pending_count()
        return SaveGate(
            can_save=pending == 0,
            pending_count=pending,
            reason=SAVE_BLOCKED_REASON if pending else None,
        )

    def mark_saved(self) -> str:
        """End the session at save time; returns the saved content"""
        gate = self.save_gate()
        if not gate.can_save:
            raise SaveBlockedError(gate.reason, gate.pending_count)
        if self.state == SessionState.LOADING:
            raise SubmissionInProgress("Cannot save while a suggestion request is in progress")
        self.session = None
        self.history.clear()
        self.engine.clear()
        logger.info("[Session] Document saved; suggestion session ended")
        return self.engine.document.text

    async def _call(self, generate: SuggestionGenerator, text: str, prompt: str) -> str:
        try:
            annotated = await generate(text, prompt)
        except ExternalCallFailure:
            raise
        except Exception as e:
            raise ExternalCallFailure(str(e) or "AI processing failed") from e
        if not isinstance(annotated, str) or not annotated.strip():
            raise ExternalCallFailure("AI returned an empty response")
        return annotated
