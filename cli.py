#!/usr/bin/env python3
"""
Command-line interface for the order pipeline.

Usage:
    uv run python cli.py [command] [options]

Commands:
    demo        Run demo scenarios
    replay      Replay the outbox into the notification consumer
    test        Run the test suite
    serve       Start the API server

Examples:
    uv run python cli.py demo pipeline
    uv run python cli.py replay --data-dir ./data
    uv run python cli.py serve
"""

import argparse
import asyncio
import subprocess
import sys
from pathlib import Path
from typing import Optional

from shared.config import Settings, configure_logging, get_settings


def run_demo(scenario: str) -> None:
    """Run a demo scenario."""
    from order_pipeline.demo import run_order_pipeline_demo, run_replay_demo

    if scenario == "pipeline":
        run_order_pipeline_demo()
    elif scenario == "replay":
        run_replay_demo()
    elif scenario == "all":
        run_order_pipeline_demo()
        run_replay_demo()
    else:
        print(f"Unknown scenario: {scenario}")
        sys.exit(1)


async def _replay(settings: Settings) -> dict:
    from order_pipeline.notification_service import NotificationService, create_processed_store
    from order_pipeline.replay import replay_outbox
    from order_pipeline.services.ordering import create_order_store
    from shared.channels import LogNotificationChannel

    consumer = NotificationService(
        marks=create_processed_store(settings.processed_path),
        channel=LogNotificationChannel(fail_rate=settings.notification_fail_rate),
    )
    report = await replay_outbox(create_order_store(settings.orders_path), consumer)
    return report.to_dict()


def run_replay(data_dir: Optional[str]) -> dict:
    """Replay the outbox found in the data directory."""
    settings = get_settings()
    if data_dir is not None:
        settings = settings.model_copy(update={"data_dir": Path(data_dir)})

    report = asyncio.run(_replay(settings))
    print(f"Events read:        {report['eventsRead']}")
    print(f"Events replayed:    {report['eventsReplayed']}")
    print(f"Notifications sent: {report['notificationsSent']}")
    if report["failedOrders"]:
        print(f"Failed orders:      {', '.join(report['failedOrders'])}")
    return report


def run_tests(args: list[str]) -> None:
    """Run the test suite."""
    cmd = ["uv", "run", "pytest"] + args
    subprocess.run(cmd)


def run_server(host: str, port: int, reload: bool) -> None:
    """Start the API server."""
    cmd = ["uv", "run", "uvicorn", "api.main:app", f"--host={host}", f"--port={port}"]
    if reload:
        cmd.append("--reload")

    print(f"Starting server at http://{host}:{port}")
    print(f"API docs available at http://{host}:{port}/docs")
    subprocess.run(cmd)


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Order Outbox Pipeline CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s demo pipeline
  %(prog)s demo all
  %(prog)s replay --data-dir ./data
  %(prog)s test -v
  %(prog)s serve --reload
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Demo command
    demo_parser = subparsers.add_parser("demo", help="Run demo scenarios")
    demo_parser.add_argument(
        "scenario",
        choices=["pipeline", "replay", "all"],
        help="Which scenario to run",
    )

    # Replay command
    replay_parser = subparsers.add_parser("replay", help="Replay the outbox into the consumer")
    replay_parser.add_argument("--data-dir", default=None, help="Directory holding the JSON stores")

    # Test command
    test_parser = subparsers.add_parser("test", help="Run the test suite")
    test_parser.add_argument(
        "pytest_args",
        nargs="*",
        default=[],
        help="Arguments to pass to pytest",
    )

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default=settings.host, help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=settings.port, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(get_settings().log_level)

    if args.command == "demo":
        run_demo(args.scenario)
    elif args.command == "replay":
        run_replay(args.data_dir)
    elif args.command == "test":
        run_tests(args.pytest_args)
    elif args.command == "serve":
        run_server(args.host, args.port, args.reload)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
