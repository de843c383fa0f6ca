"""Tests for transcript replay, audit logging and the CLI."""

import base64
import hashlib
from pathlib import Path

import pytest

from fsimupload.cli import main
from fsimupload.errors import ProtocolViolation
from fsimupload.module import UploadPhase, UploadRequest
from fsimupload.replay import load_transcript, run_transcript
from fsimupload.transfer.audit import log_event

PAYLOAD = b"hello from the device\n"


def _transcript(path: Path, payload: bytes = PAYLOAD, digest: bytes | None = None, with_digest: bool = True) -> Path:
    digest = hashlib.sha384(payload).digest() if digest is None else digest
    lines = [
        "messages:",
        "  - {name: active, value: true}",
        f"  - {{name: length, value: {len(payload)}}}",
        f"  - {{name: data, value: [!!binary {base64.b64encode(payload[:5]).decode()}]}}",
        f"  - {{name: data, value: [!!binary {base64.b64encode(payload[5:]).decode()}]}}",
    ]
    if with_digest:
        lines.append(f"  - {{name: sha-384, value: !!binary {base64.b64encode(digest).decode()}}}")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


class TestReplay:
    """Tests for load_transcript() and run_transcript()."""

    def test_load_transcript_decodes_binary(self, tmp_path: Path) -> None:
        """!!binary values load as bytes."""
        messages = load_transcript(_transcript(tmp_path / "t.yaml"))

        assert [name for name, _ in messages] == ["active", "length", "data", "data", "sha-384"]
        assert messages[2][1] == [PAYLOAD[:5]]
        assert messages[4][1] == hashlib.sha384(PAYLOAD).digest()

    @pytest.mark.parametrize("text", ["[]\n", "messages: 3\n", "messages:\n  - {value: 1}\n", "messages:\n  - {name: x}\n", "a: [\n"])
    def test_bad_transcript(self, tmp_path: Path, text: str) -> None:
        """Malformed transcripts raise ValueError."""
        path = tmp_path / "bad.yaml"
        path.write_text(text, encoding="utf-8")
        with pytest.raises(ValueError):
            load_transcript(path)

    def test_run_transcript(self, tmp_path: Path, upload_dir: Path) -> None:
        """A complete transcript commits the file."""
        request = UploadRequest(upload_dir, "device/boot.log")
        result = run_transcript(request, load_transcript(_transcript(tmp_path / "t.yaml")))

        assert result.done is True
        assert result.messages_consumed == 5
        assert [name for name, _ in result.produced] == ["active", "need-sha", "name"]
        assert (upload_dir / "boot.log").read_bytes() == PAYLOAD

    def test_incomplete_transcript(self, tmp_path: Path, upload_dir: Path) -> None:
        """A transcript without digest never completes."""
        request = UploadRequest(upload_dir, "boot.log")
        messages = load_transcript(_transcript(tmp_path / "t.yaml", with_digest=False))

        with pytest.raises(ProtocolViolation, match="ended before"):
            run_transcript(request, messages)
        assert request.phase is UploadPhase.ABORTED
        assert list(upload_dir.iterdir()) == []


class TestAudit:
    """Tests for log_event()."""

    def test_appends_line(self, tmp_path: Path) -> None:
        """Each event is one line in the daily log."""
        log_path = log_event("a.bin", "upload", "success", 10, 0.5, base_dir=tmp_path / "audit")
        log_event("b.bin", "upload", "failed", 0, 0.0, base_dir=tmp_path / "audit")

        lines = log_path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert "file=a.bin action=upload status=success size=10 time=0.50s" in lines[0]
        assert "status=failed" in lines[1]


class TestCli:
    """Tests for the command line entry point."""

    def test_replay_with_dir(self, tmp_path: Path, upload_dir: Path, capsys) -> None:
        """replay commits the upload and prints its path."""
        transcript = _transcript(tmp_path / "t.yaml")

        code = main(
            [
                "replay",
                str(transcript),
                "--name",
                "boot.log",
                "--rename",
                "saved.log",
                "--dir",
                str(upload_dir),
                "--config",
                str(tmp_path / "absent.yaml"),
            ]
        )

        assert code == 0
        assert (upload_dir / "saved.log").read_bytes() == PAYLOAD
        assert "saved.log" in capsys.readouterr().out

    def test_replay_with_config_and_audit(self, tmp_path: Path) -> None:
        """The config supplies directory, staging and audit settings."""
        (tmp_path / "stage").mkdir()
        (tmp_path / "up").mkdir()
        cfg = tmp_path / "config.yaml"
        cfg.write_text(
            "upload:\n  directory: up\n  staging_dir: stage\naudit:\n  enabled: true\n  dir: audit\n",
            encoding="utf-8",
        )
        transcript = _transcript(tmp_path / "t.yaml", digest=b"\x00" * 48)

        code = main(["replay", str(transcript), "--name", "boot.log", "--config", str(cfg)])

        assert code == 1
        assert list((tmp_path / "up").iterdir()) == []
        assert list((tmp_path / "stage").iterdir()) == []
        logs = list((tmp_path / "audit").iterdir())
        assert len(logs) == 1
        assert "status=failed" in logs[0].read_text(encoding="utf-8")

    def test_replay_without_directory(self, tmp_path: Path) -> None:
        """replay needs --dir or a config file."""
        transcript = _transcript(tmp_path / "t.yaml")
        assert main(["replay", str(transcript), "--name", "x", "--config", str(tmp_path / "none.yaml")]) == 1

    def test_check(self, tmp_path: Path, capsys) -> None:
        """check validates the config and creates the directory."""
        cfg = tmp_path / "config.yaml"
        cfg.write_text("upload:\n  directory: up\n", encoding="utf-8")

        assert main(["check", "--config", str(cfg)]) == 0
        assert (tmp_path / "up").is_dir()
        assert "Configuration check passed." in capsys.readouterr().out

    def test_check_missing_config(self, tmp_path: Path) -> None:
        """check fails on a missing config."""
        assert main(["check", "--config", str(tmp_path / "none.yaml")]) == 1
