"""Tests for configuration loading."""

from pathlib import Path

import pytest

from fsimupload.config import load_config


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    """Tests for load_config()."""

    def test_paths_resolve_against_config_dir(self, tmp_path: Path) -> None:
        """Relative paths are relative to the config file."""
        cfg_path = _write(
            tmp_path / "config.yaml",
            "upload:\n  directory: uploads\n  staging_dir: stage\n"
            "logging:\n  level: debug\n  file: logs/out.log\n"
            "audit:\n  enabled: true\n",
        )
        cfg = load_config(cfg_path)

        assert cfg.upload.directory == (tmp_path / "uploads").resolve()
        assert cfg.upload.staging_dir == (tmp_path / "stage").resolve()
        assert cfg.upload.staging_prefix == "fdo.upload_"
        assert cfg.upload.copy_chunk_kb == 1024
        assert cfg.logging.level == "debug"
        assert cfg.logging.file == (tmp_path / "logs" / "out.log").resolve()
        assert cfg.audit.enabled is True
        assert cfg.audit.dir == (tmp_path / "logs" / "uploads").resolve()

    def test_defaults(self, tmp_path: Path) -> None:
        """Only the upload directory is required."""
        cfg = load_config(_write(tmp_path / "c.yaml", "upload:\n  directory: /srv/uploads\n"))

        assert cfg.upload.directory == Path("/srv/uploads").resolve()
        assert cfg.upload.staging_dir is None
        assert cfg.logging.file is None
        assert cfg.audit.enabled is False

    def test_staging_factory(self, tmp_path: Path) -> None:
        """The configured factory creates files in staging_dir."""
        (tmp_path / "stage").mkdir()
        cfg = load_config(
            _write(tmp_path / "c.yaml", "upload:\n  directory: up\n  staging_dir: stage\n  staging_prefix: pre_\n")
        )
        handle = cfg.upload.staging_factory()()
        try:
            path = Path(handle.name)
            assert path.parent == (tmp_path / "stage").resolve()
            assert path.name.startswith("pre_")
        finally:
            handle.close()
            path.unlink()

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing config raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    @pytest.mark.parametrize(
        "text",
        [
            "- a list\n",
            "upload: {}\n",
            "upload:\n  directory: up\n  copy_chunk_kb: 0\n",
            "upload:\n  directory: up\n  staging_prefix: ''\n",
            "upload:\n  directory: up\n  staging_prefix: a/b\n",
        ],
    )
    def test_invalid(self, tmp_path: Path, text: str) -> None:
        """Invalid settings raise ValueError."""
        with pytest.raises(ValueError):
            load_config(_write(tmp_path / "c.yaml", text))
