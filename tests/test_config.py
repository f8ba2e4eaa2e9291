"""Tests for configuration persistence and the config API."""

import pytest
from fastapi.testclient import TestClient

from suggestion_backend.main import app
from suggestion_backend.services.config_manager import ConfigManager, SuggestionSettings


@pytest.fixture
def client():
    return TestClient(app)


class TestConfigManager:
    def test_defaults(self):
        manager = ConfigManager.get_instance()

        assert manager.get("provider") == "gemini"
        assert manager.get_suggestion_settings() == SuggestionSettings()
        assert manager.get_suggestion_settings().minFingerprintScore == 0.6

    def test_singleton(self):
        assert ConfigManager.get_instance() is ConfigManager.get_instance()

    def test_save_persists_to_file(self, tmp_path):
        manager = ConfigManager.get_instance()
        manager.set("provider", "openai")

        assert manager.config_file.parent == tmp_path / "config"
        ConfigManager._instance = None
        assert ConfigManager.get_instance().get("provider") == "openai"

    def test_missing_sections_filled_from_defaults(self):
        manager = ConfigManager.get_instance()
        manager.config_file.write_text('{"provider": "vllm"}')

        config = manager.get_config()
        assert config["provider"] == "vllm"
        assert config["suggestions"]["historyLimit"] == 100

    def test_corrupt_file_falls_back_to_defaults(self):
        manager = ConfigManager.get_instance()
        manager.config_file.write_text("{not json")

        assert manager.get_config()["provider"] == "gemini"


class TestConfigApi:
    def test_keys_are_masked(self, client):
        ConfigManager.get_instance().save_config({"openai": {"apiKey": "sk-1234567890abcd", "model": "gpt-4o-mini"}})

        data = client.get("/api/config").json()
        assert data["openai"]["apiKey"] == "sk-1*********abcd"
        assert data["suggestions"]["contextChars"] == 40

    def test_update_merges_sections(self, client):
        response = client.put("/api/config", json={"suggestions": {"historyLimit": 5}})

        assert response.status_code == 200
        settings = ConfigManager.get_instance().get_suggestion_settings()
        assert settings.historyLimit == 5
        assert settings.contextChars == 40

    def test_invalid_suggestion_settings(self, client):
        response = client.put("/api/config", json={"suggestions": {"minFingerprintScore": 2}})

        assert response.status_code == 400

    def test_validate_without_key(self, client):
        data = client.post("/api/config/validate").json()

        assert data["valid"] is False
        assert "API key not configured" in data["message"]
