from __future__ import annotations

import argparse
import asyncio
import importlib
import os
import signal

from meshcore_gateway.gateway.config import GatewayConfig, load_config


def register_subcommands(sub: argparse._SubParsersAction) -> None:
    run = sub.add_parser("run", help="Run the gateway (default)")
    add_run_args(run, suppress_defaults=True)

    sub.add_parser("doctor", help="Check device, dependencies and database location")

    export = sub.add_parser("export-logs", help="Export application logs for bug reports")
    export.add_argument(
        "-o",
        "--output",
        default=None,
        help="Write logs to file (default: stdout)",
    )


def add_run_args(p: argparse.ArgumentParser, *, suppress_defaults: bool = False) -> None:
    # the subcommand must not reset options already given before it
    default = argparse.SUPPRESS if suppress_defaults else None
    p.add_argument(
        "--mock",
        action="store_true",
        default=default if suppress_defaults else False,
        help="Use a simulated device instead of MESHCORE_DEVICE",
    )
    p.add_argument(
        "--log-level",
        default=default,
        help="Console log level (LOG_LEVEL in the environment wins)",
    )


def doctor(config: GatewayConfig | None = None) -> int:
    from meshcore_gateway.gateway.paths import db_path

    config = config or load_config()
    checks: list[tuple[str, bool, str]] = []
    if config.device:
        checks.append(
            ("device", os.path.exists(config.device), f"Expected serial device {config.device}")
        )
    else:
        checks.append(("device", config.mock, "MESHCORE_DEVICE is not set"))

    for module in ("meshcore", "aiohttp"):
        try:
            importlib.import_module(module)
            checks.append((module, True, "Python module import succeeded"))
        except Exception as exc:  # noqa: BLE001
            checks.append((module, False, f"Import failed: {exc}"))

    database = db_path(config.sqlite_db)
    parent = database.parent
    while not parent.exists():
        parent = parent.parent
    writable = os.access(parent, os.W_OK)
    checks.append(("database", writable, f"Database at {database}"))

    ok = True
    for name, passed, detail in checks:
        label = "OK" if passed else "FAIL"
        print(f"[{label}] {name}: {detail}")
        if not passed:
            ok = False
    return 0 if ok else 1


def export_logs(output: str | None) -> int:
    from meshcore_gateway.gateway.logging_setup import export_logs_to_path, export_logs_to_stdout

    if output:
        export_logs_to_path(output)
        print(f"Logs written to {output}")
    else:
        export_logs_to_stdout()
    return 0


async def run_gateway(config: GatewayConfig) -> int:
    from meshcore_gateway.gateway.service import Gateway

    gateway = Gateway(config)
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, gateway.request_stop)
        except NotImplementedError:
            # no signal handlers outside the main thread / on Windows
            pass
    await gateway.run()
    return 0
