"""
Tests for AgentConfig, ServiceConfig and library scopes.
"""

import pytest

from bibliotool.config import AgentConfig, LibraryScope, ScopeKind, ServiceConfig


class TestLibraryScope:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, LibraryScope()),
            ("user", LibraryScope()),
            ("all", LibraryScope(kind=ScopeKind.ALL)),
            ("group:4", LibraryScope(kind=ScopeKind.GROUP, group_id=4)),
            ("collection:12", LibraryScope(kind=ScopeKind.COLLECTION, collection_id=12)),
            (
                "collection:3:12",
                LibraryScope(kind=ScopeKind.COLLECTION, library_id=3, collection_id=12),
            ),
        ],
    )
    def test_parse(self, value, expected):
        assert LibraryScope.parse(value) == expected

    @pytest.mark.parametrize("value", ["group", "group:x", "collection:1:2:3", "everything"])
    def test_unrecognized_falls_back_to_user(self, value):
        assert LibraryScope.parse(value) == LibraryScope()


class TestAgentConfig:
    def test_defaults(self):
        config = AgentConfig()
        assert config.max_search_results == 20
        assert config.max_tool_retries == 2
        assert config.require_approval_for_destructive is False
        assert dict(config.tool_permissions) == {}
        assert config.permission_handler is None

    def test_is_read_only(self):
        config = AgentConfig(tool_permissions={"move_item": "deny"})
        with pytest.raises(AttributeError):
            config.max_tool_retries = 5
        with pytest.raises(TypeError):
            config.tool_permissions["move_item"] = "allow"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("BIBLIOTOOL_LIBRARY_SCOPE", "group:7")
        monkeypatch.setenv("BIBLIOTOOL_MAX_RESULTS", "5")
        monkeypatch.setenv("BIBLIOTOOL_AUTO_OCR", "yes")
        monkeypatch.setenv("BIBLIOTOOL_REQUIRE_APPROVAL_FOR_DESTRUCTIVE", "true")
        monkeypatch.setenv("BIBLIOTOOL_TOOL_PERMISSIONS", '{"*": "deny", "move_item": "allow"}')

        config = AgentConfig.from_env()

        assert config.library_scope == LibraryScope(kind=ScopeKind.GROUP, group_id=7)
        assert config.max_search_results == 5
        assert config.auto_ocr is True
        assert config.require_approval_for_destructive is True
        assert dict(config.tool_permissions) == {"*": "deny", "move_item": "allow"}

    @pytest.mark.parametrize("raw", ["abc", "-3"])
    def test_bad_integers_keep_default(self, monkeypatch, raw):
        monkeypatch.setenv("BIBLIOTOOL_MAX_TOOL_RETRIES", raw)
        assert AgentConfig.from_env().max_tool_retries == 2

    def test_zero_retries_allowed(self, monkeypatch):
        """Zero retries is a real setting, not a malformed value."""
        monkeypatch.setenv("BIBLIOTOOL_MAX_TOOL_RETRIES", "0")
        assert AgentConfig.from_env().max_tool_retries == 0

    def test_zero_results_keeps_default(self, monkeypatch):
        monkeypatch.setenv("BIBLIOTOOL_MAX_RESULTS", "0")
        assert AgentConfig.from_env().max_search_results == 20

    @pytest.mark.parametrize("raw", ["not json", '["deny"]'])
    def test_bad_permissions_are_ignored(self, monkeypatch, raw):
        monkeypatch.setenv("BIBLIOTOOL_TOOL_PERMISSIONS", raw)
        assert dict(AgentConfig.from_env().tool_permissions) == {}


class TestServiceConfig:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("WEB_SEARCH_PROVIDER", "tavily")
        monkeypatch.setenv("TAVILY_API_KEY", "tvly-key")
        monkeypatch.setenv("DATALAB_POLL_INTERVAL", "0.5")

        config = ServiceConfig.from_env()

        assert config.web_search_provider == "tavily"
        assert config.tavily_api_key == "tvly-key"
        assert config.ocr_poll_interval == 0.5
        assert config.semantic_scholar_base_url == "https://api.semanticscholar.org/graph/v1"

    @pytest.mark.parametrize(
        "name, raw",
        [
            ("DATALAB_POLL_INTERVAL", "soon"),
            ("DATALAB_POLL_INTERVAL", "-1"),
            ("DATALAB_MAX_POLLS", "many"),
            ("DATALAB_MAX_POLLS", "0"),
            ("LLM_TEMPERATURE", "warm"),
        ],
    )
    def test_malformed_numbers_keep_defaults(self, monkeypatch, name, raw):
        """A bad number in the environment falls back to the default instead of raising."""
        monkeypatch.setenv(name, raw)

        config = ServiceConfig.from_env()

        assert config.ocr_poll_interval == 2.0
        assert config.ocr_max_polls == 300
        assert config.llm_temperature == 0.3
