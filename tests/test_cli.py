"""
Tests for the command-line interface.
"""

import asyncio

import pytest

import cli
from order_pipeline.services.ordering import OrderingService, create_order_store


class TestParser:

    def test_demo_scenario(self):
        args = cli.build_parser().parse_args(["demo", "replay"])

        assert args.command == "demo"
        assert args.scenario == "replay"

    def test_unknown_demo_scenario(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["demo", "nope"])

    def test_serve_defaults(self):
        args = cli.build_parser().parse_args(["serve"])

        assert args.port == 8080
        assert args.reload is False

    def test_replay_data_dir(self):
        args = cli.build_parser().parse_args(["replay", "--data-dir", "/tmp/x"])

        assert args.data_dir == "/tmp/x"


class TestReplayCommand:

    def test_replays_outbox_from_data_dir(self, data_dir, capsys):
        ordering = OrderingService(store=create_order_store(data_dir / "orders.json"))
        asyncio.run(ordering.submit(["a", "b"], order_id="o1"))

        report = cli.run_replay(str(data_dir))

        assert report["eventsRead"] == 1
        assert report["notificationsSent"] == 2
        assert "Notifications sent: 2" in capsys.readouterr().out

        # Processed marks were written next to the outbox
        assert cli.run_replay(str(data_dir))["notificationsSent"] == 0

    def test_empty_data_dir(self, data_dir):
        report = cli.run_replay(str(data_dir))

        assert report == {
            "eventsRead": 0,
            "eventsReplayed": 0,
            "notificationsSent": 0,
            "failedOrders": [],
        }
