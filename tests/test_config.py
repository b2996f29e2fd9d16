"""Tests for configuration functionality."""

import pytest

from rust_forest.config import (
    AnalysisConfig,
    Config,
    ConfigError,
    DiscoveryConfig,
    load_config,
    save_config,
)


class TestDiscoveryConfig:
    """Tests for DiscoveryConfig."""

    def test_default_values(self):
        """Should have sensible defaults."""
        config = DiscoveryConfig()
        assert config.extensions == [".rs"]
        assert "target" in config.exclude_dirs
        assert config.max_file_size == 2 * 1024 * 1024

    def test_to_dict(self):
        """Should serialize to dict."""
        config = DiscoveryConfig(extensions=[".rs", ".rs.in"], max_file_size=100)
        d = config.to_dict()
        assert d["extensions"] == [".rs", ".rs.in"]
        assert d["max_file_size"] == 100

    def test_validate_empty_extensions(self):
        """Should reject an empty extension list."""
        config = DiscoveryConfig(extensions=[])
        with pytest.raises(ConfigError, match="extensions"):
            config.validate()

    def test_validate_extension_without_dot(self):
        """Should reject extensions that do not start with a dot."""
        config = DiscoveryConfig(extensions=["rs"])
        with pytest.raises(ConfigError, match="extension"):
            config.validate()

    def test_validate_exclude_dir_with_separator(self):
        """Should reject exclude entries that are paths."""
        config = DiscoveryConfig(exclude_dirs=["target/debug"])
        with pytest.raises(ConfigError, match="exclude_dirs"):
            config.validate()

    def test_validate_max_file_size(self):
        """Should reject a non-positive size limit."""
        config = DiscoveryConfig(max_file_size=0)
        with pytest.raises(ConfigError, match="max_file_size"):
            config.validate()


class TestAnalysisConfig:
    """Tests for AnalysisConfig."""

    def test_validate_jobs_too_small(self):
        """Should reject fewer than one worker."""
        config = AnalysisConfig(jobs=0)
        with pytest.raises(ConfigError, match="jobs"):
            config.validate()

    def test_validate_jobs_too_large(self):
        """Should reject an unreasonable worker count."""
        config = AnalysisConfig(jobs=1000)
        with pytest.raises(ConfigError, match="jobs"):
            config.validate()


class TestConfig:
    """Tests for main Config class."""

    def test_validate(self):
        """Should validate all nested configs."""
        config = Config()
        config.validate()  # Should not raise


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_defaults(self, tmp_path):
        """Should load defaults when no config file."""
        config = load_config(project_dir=tmp_path)
        assert config.discovery.extensions == [".rs"]

    def test_load_from_project_dir(self, tmp_path):
        """Should pick up forest.yaml in the project directory."""
        (tmp_path / "forest.yaml").write_text("""
discovery:
  exclude_dirs: ["target", "generated"]
analysis:
  jobs: 2
""")
        config = load_config(project_dir=tmp_path)
        assert config.discovery.exclude_dirs == ["target", "generated"]
        assert config.analysis.jobs == 2

    def test_malformed_file_falls_back_to_defaults(self, tmp_path):
        """Should warn and use defaults for unparseable YAML."""
        config_path = tmp_path / "forest.yaml"
        config_path.write_text("discovery: [unclosed\n")
        config = load_config(config_path=config_path)
        assert config.discovery.extensions == [".rs"]

    def test_env_override_jobs(self, tmp_path, monkeypatch):
        """Environment variables should override config file."""
        (tmp_path / "forest.yaml").write_text("analysis:\n  jobs: 2\n")
        monkeypatch.setenv("FOREST_JOBS", "3")
        config = load_config(project_dir=tmp_path)
        assert config.analysis.jobs == 3

    def test_env_override_invalid_value(self, tmp_path, monkeypatch):
        """Should reject an out-of-range override."""
        monkeypatch.setenv("FOREST_JOBS", "0")
        with pytest.raises(ConfigError, match="jobs"):
            load_config(project_dir=tmp_path)


class TestSaveConfig:
    """Tests for save_config function."""

    def test_save_and_load_roundtrip(self, tmp_path):
        """Config should survive save/load roundtrip."""
        config = Config(
            discovery=DiscoveryConfig(exclude_dirs=["target", "out"], max_file_size=4096),
            analysis=AnalysisConfig(jobs=5),
        )
        config_path = tmp_path / "forest.yaml"

        save_config(config, config_path)
        loaded = load_config(config_path=config_path)

        assert loaded.discovery.exclude_dirs == ["target", "out"]
        assert loaded.discovery.max_file_size == 4096
        assert loaded.analysis.jobs == 5
