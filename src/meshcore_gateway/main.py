from __future__ import annotations

import argparse
import asyncio
import importlib.metadata
import traceback


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="meshcore-gateway",
        description="MeshCore gateway: ingestion, bot and HTTP control for a companion radio",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=importlib.metadata.version("meshcore-gateway"),
    )

    from meshcore_gateway.cli import add_run_args, register_subcommands

    add_run_args(parser)
    sub = parser.add_subparsers(dest="command")
    register_subcommands(sub)

    args = parser.parse_args()

    if args.command == "export-logs":
        from meshcore_gateway.cli import export_logs

        return export_logs(args.output)

    from meshcore_gateway.gateway.config import load_config
    from meshcore_gateway.gateway.logging_setup import configure_logging

    config = load_config()
    if args.mock:
        config.mock = True

    if args.command == "doctor":
        from meshcore_gateway.cli import doctor

        return doctor(config)

    configure_logging(args.log_level)

    from meshcore_gateway.cli import run_gateway

    try:
        return asyncio.run(run_gateway(config))
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # noqa: BLE001
        print(f"error: {exc}")
        if args.log_level and args.log_level.upper() == "DEBUG":
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
