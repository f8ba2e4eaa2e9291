"""Document editing and AI suggestion API endpoints"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager

from fastapi import APIRouter, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse

from suggestion_backend.models.session import (
    CreateDocumentRequest,
    DocumentState,
    ManualEditRequest,
    ProgressEvent,
    SaveGate,
    SaveResponse,
    SessionState,
    SuggestionRequest,
    SuggestionResponse,
)
from suggestion_backend.services.config_manager import ConfigManager
from suggestion_backend.services.critic_diff import CriticDiffGenerator
from suggestion_backend.services.errors import (
    HistoryConflict,
    InvalidHunkOperation,
    InvalidSubmission,
    SaveBlockedError,
    SessionStateError,
    SuggestionError,
)
from suggestion_backend.services.llm_service import LLMService
from suggestion_backend.services.suggestion_pipeline import SuggestionPipeline
from suggestion_backend.services.workspace import EditorWorkspace

logger = logging.getLogger(__name__)

router = APIRouter()

# In-memory workspaces, keyed by document id
workspaces: dict[str, EditorWorkspace] = {}


def get_suggestion_pipeline() -> SuggestionPipeline:
    """Pipeline built from the current configuration"""
    config_manager = ConfigManager.get_instance()
    settings = config_manager.get_suggestion_settings()
    return SuggestionPipeline(
        LLMService(config_manager.get_config()),
        CriticDiffGenerator(granularity=settings.granularity),
    )


def get_workspace(document_id: str) -> EditorWorkspace:
    workspace = workspaces.get(document_id)
    if workspace is None:
        raise HTTPException(status_code=404, detail=f"Document {document_id} not found")
    return workspace


@contextmanager
def translate_errors():
    """Map suggestion workflow errors onto HTTP status codes"""
    try:
        yield
    except InvalidHunkOperation as e:
        raise HTTPException(status_code=404 if e.unknown else 409, detail=str(e)) from e
    except InvalidSubmission as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except SaveBlockedError as e:
        raise HTTPException(
            status_code=409,
            detail={"reason": e.reason, "pending_count": e.pending_count},
        ) from e
    except (SessionStateError, HistoryConflict) as e:
        raise HTTPException(status_code=409, detail=str(e)) from e


def check_submission(workspace: EditorWorkspace, request: SuggestionRequest):
    """Reject a round up front, before any streaming starts"""
    if workspace.machine.state == SessionState.LOADING:
        raise HTTPException(status_code=409, detail="A suggestion request is already in progress")
    if not request.prompt.strip() or not workspace.document.text.strip():
        raise HTTPException(
            status_code=400,
            detail="Please enter a prompt and ensure there is content to edit",
        )


# ========== Documents ==========


@router.post("", response_model=DocumentState)
async def create_document(request: CreateDocumentRequest) -> DocumentState:
    """Open an editing workspace for the given content"""
    settings = ConfigManager.get_instance().get_suggestion_settings()
    workspace = EditorWorkspace(request.content, settings)
    workspaces[workspace.document_id] = workspace
    logger.info(f"[Documents] Opened {workspace.document_id} ({len(request.content)} chars)")
    return workspace.state()


@router.get("/{document_id}", response_model=DocumentState)
async def get_document(workspace: EditorWorkspace = Depends(get_workspace)) -> DocumentState:
    return workspace.state()


@router.put("/{document_id}/content", response_model=DocumentState)
async def edit_document(
    request: ManualEditRequest,
    workspace: EditorWorkspace = Depends(get_workspace),
) -> DocumentState:
    """Manual edit outside the suggestion flow"""
    with translate_errors():
        workspace.replace_content(request.content)
    return workspace.state()


# ========== Suggestions ==========


@router.post("/{document_id}/suggestions", response_model=SuggestionResponse)
async def request_suggestions(
    request: SuggestionRequest,
    workspace: EditorWorkspace = Depends(get_workspace),
    pipeline: SuggestionPipeline = Depends(get_suggestion_pipeline),
) -> SuggestionResponse:
    """Run one suggestion round (non-streaming)"""
    check_submission(workspace, request)
    with translate_errors():
        return await workspace.suggest(request.prompt, pipeline.generate)


@router.post("/{document_id}/suggestions/stream")
async def stream_suggestions(
    request: SuggestionRequest,
    workspace: EditorWorkspace = Depends(get_workspace),
    pipeline: SuggestionPipeline = Depends(get_suggestion_pipeline),
):
    """Run one suggestion round, streaming progress (SSE)"""
    check_submission(workspace, request)
    queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()

    def on_progress(step: str, progress: int):
        queue.put_nowait(ProgressEvent(type="progress", step=step, progress=progress))

    async def generate(text: str, prompt: str) -> str:
        return await pipeline.generate(text, prompt, on_progress=on_progress)

    def collect(task: asyncio.Task):
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"[Documents] Suggestion round failed after client left: {task.exception()}")

    async def event_generator():
        task = asyncio.create_task(workspace.suggest(request.prompt, generate))
        task.add_done_callback(lambda _: queue.put_nowait(None))
        delivered = False

        try:
            while (event := await queue.get()) is not None:
                yield {"event": "message", "data": event.model_dump_json()}

            delivered = True
            try:
                event = ProgressEvent(type="result", result=task.result())
            except SuggestionError as e:
                event = ProgressEvent(type="error", error=str(e))
            except Exception as e:
                logger.exception(f"[Documents] Suggestion stream failed: {e}")
                event = ProgressEvent(type="error", error="AI suggestions pipeline failed")
            yield {"event": "message", "data": event.model_dump_json()}
        finally:
            if not delivered:
                # Client disconnected mid-round
                if task.cancel():
                    logger.info(f"[Documents] Client left; cancelled suggestion round for {workspace.document_id}")
                task.add_done_callback(collect)

    return EventSourceResponse(event_generator())


# ========== Hunk actions ==========


@router.post("/{document_id}/hunks/accept-all", response_model=DocumentState)
async def accept_all(workspace: EditorWorkspace = Depends(get_workspace)) -> DocumentState:
    with translate_errors():
        workspace.history.accept_all()
    return workspace.state()


@router.post("/{document_id}/hunks/reject-all", response_model=DocumentState)
async def reject_all(workspace: EditorWorkspace = Depends(get_workspace)) -> DocumentState:
    with translate_errors():
        workspace.history.reject_all()
    return workspace.state()


@router.post("/{document_id}/hunks/{hunk_id}/accept", response_model=DocumentState)
async def accept_hunk(hunk_id: str, workspace: EditorWorkspace = Depends(get_workspace)) -> DocumentState:
    with translate_errors():
        workspace.history.accept(hunk_id)
    return workspace.state()


@router.post("/{document_id}/hunks/{hunk_id}/reject", response_model=DocumentState)
async def reject_hunk(hunk_id: str, workspace: EditorWorkspace = Depends(get_workspace)) -> DocumentState:
    with translate_errors():
        workspace.history.reject(hunk_id)
    return workspace.state()


# ========== History ==========


@router.post("/{document_id}/undo", response_model=DocumentState)
async def undo(workspace: EditorWorkspace = Depends(get_workspace)) -> DocumentState:
    """Undo the last hunk action; no-op when there is nothing to undo"""
    with translate_errors():
        workspace.history.undo()
    return workspace.state()


@router.post("/{document_id}/redo", response_model=DocumentState)
async def redo(workspace: EditorWorkspace = Depends(get_workspace)) -> DocumentState:
    """Redo the last undone action; no-op when there is nothing to redo"""
    with translate_errors():
        workspace.history.redo()
    return workspace.state()


# ========== Save gate ==========


@router.get("/{document_id}/save-gate", response_model=SaveGate)
async def save_gate(workspace: EditorWorkspace = Depends(get_workspace)) -> SaveGate:
    return workspace.machine.save_gate()


@router.post("/{document_id}/save", response_model=SaveResponse)
async def save_document(workspace: EditorWorkspace = Depends(get_workspace)) -> SaveResponse:
    """Save through the gate; blocked while any suggestion is pending"""
    with translate_errors():
        content = workspace.save()
    logger.info(f"[Documents] Saved {workspace.document_id}")
    return SaveResponse(status="saved", content=content)
