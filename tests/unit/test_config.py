"""
Unit tests for configuration loading and validation.

Tests config.yaml defaults, schema validation errors, and environment
settings.
"""

import pytest
from pydantic import ValidationError

from portal.config import DEFAULT_CONFIG, PortalSettings, get_config_path, load_yaml_config
from portal.config_schema import PortalConfig, get_validation_errors, validate_config


class TestConfigDefaults:
    """Test schema defaults."""

    def test_empty_config_is_valid(self):
        """An empty mapping should produce a complete default config."""
        config = validate_config({})

        assert config.database.odbc_driver == "ODBC Driver 18 for SQL Server"
        assert config.database.marker_table_prefix == "SX3"
        assert config.erp.generic_query_path == "/api/framework/v1/genericQuery"
        assert config.erp.retry_attempts == 3
        assert config.workflow.max_iterations == 100
        assert config.application.logging.level == "INFO"

    def test_none_config_is_valid(self):
        assert isinstance(validate_config(None), PortalConfig)

    def test_default_file_matches_schema(self):
        """The generated default config.yaml should validate cleanly."""
        import yaml

        assert get_validation_errors(yaml.safe_load(DEFAULT_CONFIG)) == []


class TestConfigValidation:
    """Test configuration validation."""

    def test_relative_query_path_rejected(self):
        with pytest.raises(ValidationError, match="must start with '/'"):
            validate_config({"erp": {"generic_query_path": "api/genericQuery"}})

    def test_relative_decision_path_rejected(self):
        with pytest.raises(ValidationError, match="decision_path must start with"):
            validate_config({"erp": {"decision_path": "aprova_documento"}})

    def test_write_back_defaults(self):
        erp = validate_config({}).erp
        assert erp.write_back is True
        assert erp.decision_path == "/aprova_documento"
        assert erp.company_code == "01"

    def test_validation_errors_are_readable(self):
        errors = get_validation_errors(
            {
                "erp": {"retry_attempts": 0},
                "application": {"logging": {"level": "VERBOSE"}},
            }
        )

        assert len(errors) == 2
        assert any(e.startswith("erp.retry_attempts:") for e in errors)
        assert any(e.startswith("application.logging.level:") for e in errors)

    def test_lowercase_table_rejected(self):
        errors = get_validation_errors({"aggregator": {"document_table": "scr"}})
        assert errors and errors[0].startswith("aggregator.document_table:")

    def test_valid_overrides(self):
        config = validate_config({"workflow": {"bulk_max_workers": 8}, "erp": {"retry_backoff_seconds": 0}})

        assert config.workflow.bulk_max_workers == 8
        assert config.erp.retry_backoff_seconds == 0


class TestYamlLoading:
    """Test config.yaml file handling."""

    def test_creates_default_file(self, tmp_path):
        config_file = tmp_path / "nested" / "config.yaml"

        data = load_yaml_config(str(config_file))

        assert config_file.exists()
        assert config_file.read_text(encoding="utf-8") == DEFAULT_CONFIG
        assert "erp" in data

    def test_reads_existing_file(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("workflow:\n  max_iterations: 7\n", encoding="utf-8")

        data = load_yaml_config(str(config_file))

        assert data == {"workflow": {"max_iterations": 7}}

    def test_empty_file_is_empty_mapping(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("", encoding="utf-8")

        assert load_yaml_config(str(config_file)) == {}

    def test_config_path_from_environment(self, tmp_path, monkeypatch):
        target = tmp_path / "custom.yaml"
        monkeypatch.setenv("PORTAL_CONFIG_PATH", str(target))

        assert get_config_path() == target


class TestPortalSettings:
    """Test environment-driven settings."""

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("PORTAL_RATE_LIMIT_PER_MINUTE", "120")
        monkeypatch.setenv("PORTAL_DEBUG", "true")

        settings = PortalSettings()

        assert settings.rate_limit_per_minute == 120
        assert settings.debug is True
        assert settings.api_prefix == "/api/v1"
