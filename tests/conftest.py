"""Pytest configuration and shared fixtures."""
from __future__ import annotations

from typing import Any

import pytest

from redfish_tap.client import RedfishClient
from redfish_tap.config import AlertConfig, RedfishConfig


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as a full poll cycle test"
    )


class FakeRedfishClient:
    """Serves canned payloads by path; exceptions in the table are raised."""

    def __init__(self, responses: dict[str, Any]) -> None:
        self.responses = responses
        self.requested: list[str] = []

    def get(self, path: str) -> Any:
        self.requested.append(path)
        if path not in self.responses:
            raise AssertionError(f"Unexpected request for {path}")
        response = self.responses[path]
        if isinstance(response, Exception):
            raise response
        return response

    get_link = staticmethod(RedfishClient.get_link)


@pytest.fixture
def fake_client():
    return FakeRedfishClient


@pytest.fixture
def redfish_config():
    return RedfishConfig(
        host="ilo.example.test",
        username="monitor",
        password="secret",
        timeout_s=10.0,
        verify_tls=False,
        ca_cert=None,
    )


@pytest.fixture
def alert_config():
    return AlertConfig(
        cpu_temp_limit=70.0,
        telegram_token=None,
        telegram_chat_id=None,
        spoken_command_path=None,
        suppress_repeats=False,
        timeout_s=10.0,
    )
