"""
Tests for runtime settings.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from shared.config import Settings


class TestSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("ORDER_OUTBOX_DATA_DIR", raising=False)
        settings = Settings()

        assert settings.orders_path == Path("data") / "orders.json"
        assert settings.processed_path == Path("data") / "processed_notifications.json"
        assert settings.port == 8080
        assert settings.replay_on_startup is True

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ORDER_OUTBOX_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("ORDER_OUTBOX_PORT", "9000")
        monkeypatch.setenv("ORDER_OUTBOX_REPLAY_ON_STARTUP", "false")

        settings = Settings()

        assert settings.data_dir == tmp_path
        assert settings.port == 9000
        assert settings.replay_on_startup is False

    def test_log_level_is_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(PydanticValidationError):
            Settings(log_level="chatty")

    def test_fail_rate_bounds(self):
        with pytest.raises(PydanticValidationError):
            Settings(notification_fail_rate=1.5)
