from __future__ import annotations

import argparse

from meshcore_gateway import cli
from meshcore_gateway.gateway import logging_setup
from meshcore_gateway.gateway.config import GatewayConfig


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser()
    cli.add_run_args(parser)
    sub = parser.add_subparsers(dest="command")
    cli.register_subcommands(sub)
    return parser


def test_run_options_survive_subcommand() -> None:
    args = _parser().parse_args(["--mock", "run"])
    assert args.mock is True
    assert args.command == "run"

    args = _parser().parse_args(["run", "--log-level", "DEBUG"])
    assert args.mock is False
    assert args.log_level == "DEBUG"


def test_export_logs_to_file(tmp_path, monkeypatch, capsys) -> None:
    log_file = tmp_path / "gateway.log"
    log_file.write_text("hello\n")
    monkeypatch.setattr(logging_setup, "LOG_FILE", log_file)
    dest = tmp_path / "out.txt"

    assert cli.export_logs(str(dest)) == 0

    assert dest.read_text() == "hello\n"
    assert "Logs written to" in capsys.readouterr().out


def test_doctor_reports_missing_device(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path))
    config = GatewayConfig(device=str(tmp_path / "ttyACM0"))

    assert cli.doctor(config) == 1

    out = capsys.readouterr().out
    assert "[FAIL] device" in out
    assert "[OK] aiohttp" in out
    assert "[OK] database" in out
