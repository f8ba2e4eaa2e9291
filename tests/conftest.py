"""Pytest configuration and fixtures."""

import pytest

from suggestion_backend.routers import documents
from suggestion_backend.services.anchor_resolver import AnchorResolver
from suggestion_backend.services.config_manager import ConfigManager
from suggestion_backend.services.critic_parser import CriticMarkupParser
from suggestion_backend.services.diff_engine import DiffApplicationEngine
from suggestion_backend.services.markdown_blocks import Document


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config singleton at a temporary directory."""
    monkeypatch.setenv("SUGGESTION_BACKEND_CONFIG_DIR", str(tmp_path / "config"))
    ConfigManager._instance = None
    documents.workspaces.clear()
    yield
    ConfigManager._instance = None
    documents.workspaces.clear()


@pytest.fixture
def make_engine():
    """Build an engine whose document is the rejected view of annotated text."""

    def _make(annotated: str):
        parsed = CriticMarkupParser().parse(annotated)
        document = Document(parsed.base_text)
        resolver = AnchorResolver()
        engine = DiffApplicationEngine(document, resolver)
        hunks = resolver.resolve(parsed.hunks, document, session_id="round-1")
        engine.add_hunks(hunks)
        return engine, hunks

    return _make
