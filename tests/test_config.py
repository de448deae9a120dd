"""Tests for environment-driven configuration."""

from pathlib import Path

from unreal_indexer.config import (
    DEFAULT_MAX_FILE_BYTES,
    Config,
    find_project_root,
    get_config,
    reset_config,
    set_config,
)


class TestConfig:
    """Test Config defaults and environment parsing."""

    def test_defaults(self):
        config = Config()
        assert config.project_path is None
        assert config.max_file_bytes == DEFAULT_MAX_FILE_BYTES
        assert config.parallel_scan is False
        assert config.debug is False
        assert config.log_file is None

    def test_environment_values(self, monkeypatch, tmp_path):
        monkeypatch.setenv("UPROJECT_PATH", str(tmp_path))
        monkeypatch.setenv("INDEXER_MAX_FILE_BYTES", "2048")
        monkeypatch.setenv("INDEXER_PARALLEL_SCAN", "yes")
        monkeypatch.setenv("INDEXER_DEBUG", "1")
        monkeypatch.setenv("INDEXER_LOG_FILE", str(tmp_path / "indexer.log"))

        config = Config()

        assert config.project_path == str(tmp_path.resolve())
        assert config.max_file_bytes == 2048
        assert config.parallel_scan is True
        assert config.debug is True
        assert config.log_file == str(tmp_path / "indexer.log")

    def test_invalid_size_falls_back(self, monkeypatch):
        monkeypatch.setenv("INDEXER_MAX_FILE_BYTES", "lots")
        assert Config().max_file_bytes == DEFAULT_MAX_FILE_BYTES

        monkeypatch.setenv("INDEXER_MAX_FILE_BYTES", "-5")
        assert Config().max_file_bytes == DEFAULT_MAX_FILE_BYTES

    def test_auto_detect(self, monkeypatch, project):
        project.manifest()
        nested = project.root / "Source" / "Game"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)
        monkeypatch.setenv("INDEXER_AUTO_DETECT_PROJECT", "true")

        assert Config().project_path == str(project.root)

    def test_find_project_root_none(self, tmp_path):
        assert find_project_root(tmp_path) is None

    def test_find_project_root_from_start(self, project):
        project.manifest()
        assert find_project_root(project.root / "Content") == project.root

    def test_set_project_path_resolves(self, tmp_path):
        config = Config()
        config.set_project_path(tmp_path / "." / "Game")
        assert config.project_path == str((tmp_path / "Game").resolve())

    def test_global_instance(self):
        first = get_config()
        assert get_config() is first

        replacement = Config(project_path="/somewhere")
        set_config(replacement)
        assert get_config() is replacement

        reset_config()
        assert get_config() is not replacement

    def test_to_dict(self):
        data = Config(project_path=str(Path("/p"))).to_dict()
        assert set(data) == {"project_path", "max_file_bytes", "parallel_scan", "debug", "log_file"}
