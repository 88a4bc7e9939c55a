"""Tests for ErrorTranslator: user-friendly messages for workflow errors."""

import pytest
from pydantic import ValidationError

from echos.core.config import RuntimeSettings
from echos.errors import ConfigError, ErrorTranslator, UserFriendlyError


class TestWorkflowErrorTranslation:
    """Configuration errors map to actionable messages."""

    def test_unknown_route_agent(self):
        translator = ErrorTranslator()

        result = translator.translate(ConfigError("route references unknown agent: ghost"))

        assert isinstance(result, UserFriendlyError)
        assert result.title == "Workflow references an undeclared agent"
        assert result.show_technical

    def test_unknown_fallback_agent(self):
        result = ErrorTranslator().translate(ConfigError("fallback references unknown agent: a -> b"))
        assert result.title == "Workflow references an undeclared agent"

    def test_missing_orchestrator(self):
        result = ErrorTranslator().translate(
            ConfigError("workflow must declare an agent named 'orchestrator'")
        )
        assert result.title == "Workflow entry point is misconfigured"

    def test_retry_policy(self):
        result = ErrorTranslator().translate(ConfigError("retries.count must be >= 1, got 0"))
        assert result.title == "Invalid retry policy"

    def test_yaml_error(self):
        result = ErrorTranslator().translate(ConfigError("failed to parse yaml in wf.yaml: bad indent"))
        assert result.title == "Workflow file is not valid YAML"

    def test_missing_file_wins_over_yaml_path(self):
        result = ErrorTranslator().translate(FileNotFoundError("workflow file not found at /tmp/wf.yaml"))
        assert result.title == "File missing"


class TestFallbackTranslation:
    def test_unknown_error(self):
        result = ErrorTranslator().translate(RuntimeError("something odd"))

        assert result.title == "Unexpected error"
        assert result.explanation == "something odd"
        assert not result.show_technical


class TestFormatting:
    def test_format_for_cli_lists_actions(self):
        translator = ErrorTranslator()
        friendly = translator.translate(ConfigError("route references unknown agent: ghost"))

        output = translator.format_for_cli(friendly)

        assert "How to fix:" in output
        assert "1. Add the agent" in output
        assert "route references unknown agent: ghost" in output

    def test_format_for_cli_detail_override(self):
        translator = ErrorTranslator()
        friendly = translator.translate(ConfigError("retries.count must be >= 1"))

        output = translator.format_for_cli(friendly, detail="agent db_agent")

        assert "agent db_agent" in output

    def test_bracketed_detail_is_printed_literally(self):
        translator = ErrorTranslator()
        friendly = translator.translate(ConfigError("retries.count must be >= 1 [type=value_error]"))

        output = translator.format_for_cli(friendly)

        assert "\\[type=value_error]" in output


class TestSettingsTranslation:
    def test_runtime_settings_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            RuntimeSettings(api_url="ftp://traces.example")

        result = ErrorTranslator().translate(exc_info.value)

        assert result.title == "Invalid runtime settings"
        assert result.show_technical
