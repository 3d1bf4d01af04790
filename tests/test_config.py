"""Tests for explorer configuration."""

import json

import pytest

from navcrawl.config import DEFAULT_SECTION_VOCABULARY, ExplorerConfig
from navcrawl.exceptions import ConfigurationError


class TestExplorerConfig:
    """Tests for ExplorerConfig."""

    def test_defaults(self):
        """Test default values."""
        config = ExplorerConfig()

        assert config.max_depth == 2
        assert config.max_breadth_per_resource == 5
        assert config.per_action_timeout_ms == 30000
        assert config.capture_screenshots is True
        assert config.screenshot_dir is None
        assert config.section_vocabulary == DEFAULT_SECTION_VOCABULARY
        assert config.base_entry_points == []
        assert config.session_expired_texts == []

    def test_invalid_values_rejected(self):
        """Test out-of-range values are rejected."""
        with pytest.raises(ValueError):
            ExplorerConfig(max_depth=-1)
        with pytest.raises(ValueError):
            ExplorerConfig(per_action_timeout_ms=10)

    def test_validate_for_run_requires_entry_points(self):
        """Test a run needs at least one entry point."""
        with pytest.raises(ConfigurationError):
            ExplorerConfig().validate_for_run()

    def test_validate_for_run_requires_absolute_urls(self):
        """Test entry points must be absolute http(s) URLs."""
        with pytest.raises(ConfigurationError):
            ExplorerConfig(base_entry_points=["/dashboard"]).validate_for_run()

        ExplorerConfig(base_entry_points=["https://app.test/dashboard"]).validate_for_run()

    def test_from_env(self, monkeypatch):
        """Test loading from NAVCRAWL_ environment variables."""
        monkeypatch.setenv("NAVCRAWL_MAX_DEPTH", "3")
        monkeypatch.setenv("NAVCRAWL_BASE_ENTRY_POINTS", "https://a.test, https://b.test")
        monkeypatch.setenv("NAVCRAWL_ENABLE_PROBES", "false")
        monkeypatch.setenv("NAVCRAWL_TIME_BUDGET_SECONDS", "90")

        config = ExplorerConfig.from_env()

        assert config.max_depth == 3
        assert config.base_entry_points == ["https://a.test", "https://b.test"]
        assert config.enable_probes is False
        assert config.time_budget_seconds == 90.0

    def test_from_env_invalid(self, monkeypatch):
        """Test invalid environment values raise ConfigurationError."""
        monkeypatch.setenv("NAVCRAWL_MAX_DEPTH", "deep")

        with pytest.raises(ConfigurationError):
            ExplorerConfig.from_env()

    def test_from_yaml_file(self, tmp_path):
        """Test loading a YAML file with an explorer section."""
        path = tmp_path / "navcrawl.yaml"
        path.write_text(
            "explorer:\n"
            "  max_breadth_per_resource: 8\n"
            "  base_entry_points:\n"
            "    - https://app.test/home\n"
            "  section_vocabulary: [client, invoice]\n"
        )

        config = ExplorerConfig.from_file(str(path))

        assert config.max_breadth_per_resource == 8
        assert config.base_entry_points == ["https://app.test/home"]
        assert config.section_vocabulary == ["client", "invoice"]

    def test_missing_file(self, tmp_path):
        """Test a missing file raises ConfigurationError."""
        with pytest.raises(ConfigurationError):
            ExplorerConfig.from_file(str(tmp_path / "missing.yaml"))

    def test_save_and_reload(self, tmp_path):
        """Test saved JSON can be loaded back."""
        path = tmp_path / "config.json"
        ExplorerConfig(max_depth=4, base_entry_points=["https://app.test"]).save_to_file(str(path))

        data = json.loads(path.read_text())
        config = ExplorerConfig.from_file(str(path))

        assert data["explorer"]["max_depth"] == 4
        assert config.max_depth == 4

    def test_with_overrides(self):
        """Test None overrides keep existing values."""
        config = ExplorerConfig(max_depth=4)

        updated = config.with_overrides(max_depth=None, max_breadth_per_resource=2)

        assert updated.max_depth == 4
        assert updated.max_breadth_per_resource == 2
        assert config.max_breadth_per_resource == 5

    def test_with_overrides_validates(self):
        """Test overrides are validated."""
        with pytest.raises(ConfigurationError):
            ExplorerConfig().with_overrides(max_breadth_per_resource=-3)
