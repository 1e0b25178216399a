"""Pytest configuration and fixtures."""

import copy
from pathlib import Path
from typing import Any

import pytest

from censor_bot.config import Config, IOTQQConfig
from censor_bot.core.commands import DEFAULT_COMMANDS, CommandRegistry
from censor_bot.core.events import GroupMessage
from censor_bot.core.logging import reset_session_stats
from censor_bot.core.policy import PolicyStore
from censor_bot.core.settings_store import PersistenceError

OPERATOR_ID = 10001
BOT_ID = 10000


class MemorySink:
    """Persistence sink that records every save."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.saves: list[dict[str, Any]] = []

    def save(self, data: dict[str, Any]) -> None:
        if self.fail:
            raise PersistenceError("disk full")
        self.saves.append(copy.deepcopy(data))


@pytest.fixture(autouse=True)
def fresh_stats():
    """Isolate the global session counters between tests."""
    reset_session_stats()
    yield
    reset_session_stats()


@pytest.fixture
def default_config() -> Config:
    """Provide a default configuration for testing."""
    return Config()


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def registry() -> CommandRegistry:
    return CommandRegistry(DEFAULT_COMMANDS)


@pytest.fixture
def policy_store(registry: CommandRegistry, sink: MemorySink) -> PolicyStore:
    """Policy store with default settings and the operator/bot protected."""
    return PolicyStore(registry.specs, sink=sink, protected_ids=(OPERATOR_ID, BOT_ID))


@pytest.fixture
def make_group_message():
    """Factory for group messages with sensible defaults."""

    def make(content: str = "buy cheap followers now", sender_id: int = 12345, **kwargs) -> GroupMessage:
        fields = {
            "group_id": 555,
            "group_name": "Test Group",
            "sender_id": sender_id,
            "sender_nick": "spammer",
            "content": content,
            "msg_seq": 42,
            "msg_random": 777,
        }
        fields.update(kwargs)
        return GroupMessage(**fields)

    return make


@pytest.fixture
def iotqq_config() -> IOTQQConfig:
    return IOTQQConfig(login_qq=BOT_ID, report_qq=OPERATOR_ID)


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Path:
    """Create a temporary config file."""
    config_content = """
iotqq:
  web_api: "http://bridge.test:8888/v1"
  ws_api: "http://bridge.test:8888"
  login_qq: 10000
  report_qq: 10001

baidu:
  app_id: "app"
  api_key: "test-key"
  secret_key: "test-secret"

moderation:
  settings_path: "./test-data/settings.json"
  revoke_signatures:
    - "恶意推广"
    - "广告"

debug:
  port: 9090
"""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(config_content, encoding="utf-8")
    return config_path
