from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

import meshcore_gateway.gateway.logging_setup as log_mod


def _reset_module() -> None:
    """Drop handlers installed by configure_logging so it can run again."""
    root = logging.getLogger()
    installed = [log_mod._stderr_handler] + [
        h for h in root.handlers if isinstance(h, logging.handlers.RotatingFileHandler)
    ]
    for handler in installed:
        if handler is not None and handler in root.handlers:
            root.removeHandler(handler)
            handler.close()
    log_mod._configured = False
    log_mod._stderr_handler = None


def test_configure_logging_creates_handlers(tmp_path: Path, monkeypatch) -> None:
    _reset_module()
    log_dir = tmp_path / "state"
    log_file = log_dir / "gateway.log"
    monkeypatch.setattr(log_mod, "LOG_DIR", log_dir)
    monkeypatch.setattr(log_mod, "LOG_FILE", log_file)
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    log_mod.configure_logging()

    root = logging.getLogger()
    handler_types = [type(h).__name__ for h in root.handlers]
    assert "RotatingFileHandler" in handler_types
    assert log_mod._stderr_handler in root.handlers
    assert log_mod._stderr_handler.level == logging.INFO
    assert log_file.exists()
    assert logging.getLogger("meshcore").level == logging.WARNING

    # second call is a no-op
    count = len(root.handlers)
    log_mod.configure_logging()
    assert len(root.handlers) == count

    _reset_module()


def test_log_level_env_wins(tmp_path: Path, monkeypatch) -> None:
    _reset_module()
    monkeypatch.setenv("LOG_LEVEL", "debug")

    log_mod.configure_logging("WARNING", file_logging=False)
    assert log_mod._stderr_handler.level == logging.DEBUG

    _reset_module()


def test_set_stderr_level(tmp_path: Path, monkeypatch) -> None:
    _reset_module()
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    log_mod.configure_logging("INFO", file_logging=False)
    assert log_mod._stderr_handler is not None
    assert log_mod._stderr_handler.level == logging.INFO

    log_mod.set_stderr_level("DEBUG")
    assert log_mod._stderr_handler.level == logging.DEBUG

    log_mod.set_stderr_level("bogus")
    assert log_mod._stderr_handler.level == logging.DEBUG

    _reset_module()


def test_export_logs_concatenates(tmp_path: Path, monkeypatch) -> None:
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    log_file = log_dir / "gateway.log"

    monkeypatch.setattr(log_mod, "LOG_DIR", log_dir)
    monkeypatch.setattr(log_mod, "LOG_FILE", log_file)

    (log_dir / "gateway.log.2").write_text("line-from-backup-2\n")
    (log_dir / "gateway.log.1").write_text("line-from-backup-1\n")
    log_file.write_text("line-from-current\n")

    dest = log_mod.export_logs_to_path(tmp_path / "export.txt")

    assert dest.read_text().splitlines() == [
        "line-from-backup-2",
        "line-from-backup-1",
        "line-from-current",
    ]


def test_export_logs_to_stdout(tmp_path: Path, monkeypatch, capsys) -> None:
    log_file = tmp_path / "gateway.log"
    log_file.write_text("only-line\n")
    monkeypatch.setattr(log_mod, "LOG_FILE", log_file)

    log_mod.export_logs_to_stdout()

    assert capsys.readouterr().out == "only-line\n"
