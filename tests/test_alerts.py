"""Tests for threshold alerts and notification channels."""
from __future__ import annotations

from dataclasses import replace
import logging
from unittest.mock import Mock

import pytest
import requests

from redfish_tap.alerts import (
    Alert,
    AlertEvaluator,
    NotificationError,
    SpokenChannel,
    TelegramChannel,
    build_channels,
)
from redfish_tap.sink import MemoryStateSink


@pytest.fixture
def channels():
    text = Mock(name="telegram")
    text.name = "telegram"
    spoken = Mock(name="spoken")
    spoken.name = "spoken"
    return [text, spoken]


@pytest.fixture
def evaluator(alert_config, channels):
    return AlertEvaluator(alert_config, channels)


def test_cpu_above_limit_alerts_every_channel_once(evaluator, channels):
    alert = evaluator.check_temperature("CPU1", "CPU1", 71)

    assert alert is not None
    assert alert.text == '⚠️ CPU temperature "CPU1" = 71 °C (limit: 70 °C)'
    assert alert.spoken == "Warning! The temperature of CPU1 is 71 degrees."
    for channel in channels:
        channel.send.assert_called_once_with(alert)


def test_cpu_at_limit_does_not_alert(evaluator, channels):
    assert evaluator.check_temperature("CPU1", "CPU1", 70) is None
    for channel in channels:
        channel.send.assert_not_called()


@pytest.mark.parametrize("context", ["Intake", "cpu", None, "SystemBoard"])
def test_non_cpu_context_does_not_alert(evaluator, channels, context):
    assert evaluator.check_temperature("Sensor", context, 95) is None
    channels[0].send.assert_not_called()


def test_configured_threshold_is_used(alert_config, channels):
    evaluator = AlertEvaluator(replace(alert_config, cpu_temp_limit=80.0), channels)
    assert evaluator.check_temperature("02-CPU 1", "CPU", 75) is None
    assert evaluator.check_temperature("02-CPU 1", "CPU", 80.5) is not None


def test_healthy_psu_does_not_alert(evaluator, channels):
    assert evaluator.check_power_supply(1, "OK", "Enabled") is None
    channels[0].send.assert_not_called()


def test_degraded_psu_alerts_once(evaluator, channels):
    alert = evaluator.check_power_supply(2, "Degraded", "Enabled")

    assert alert.text == "⚠️ Power supply PSU 2 reports status: Degraded / Enabled"
    assert "Degraded / Enabled" in alert.spoken
    for channel in channels:
        channel.send.assert_called_once_with(alert)


def test_disabled_psu_alerts(evaluator):
    assert evaluator.check_power_supply(1, "OK", "Absent") is not None


def test_repeats_are_sent_every_cycle_by_default(evaluator, channels):
    evaluator.check_power_supply(1, "Critical", "Enabled")
    evaluator.check_power_supply(1, "Critical", "Enabled")
    assert channels[0].send.call_count == 2


def test_suppress_repeats_fires_on_transitions_only(alert_config, channels):
    evaluator = AlertEvaluator(replace(alert_config, suppress_repeats=True), channels)

    assert evaluator.check_power_supply(1, "Critical", "Enabled") is not None
    assert evaluator.check_power_supply(1, "Critical", "Enabled") is None
    assert evaluator.check_power_supply(1, "OK", "Enabled") is None
    assert evaluator.check_power_supply(1, "Critical", "Enabled") is not None
    assert channels[0].send.call_count == 2


def test_clear_temperature_rearms_a_suppressed_sensor(alert_config, channels):
    evaluator = AlertEvaluator(replace(alert_config, suppress_repeats=True), channels)

    assert evaluator.check_temperature("02-CPU 1", "CPU", 90) is not None
    assert evaluator.check_temperature("02-CPU 1", "CPU", 90) is None
    evaluator.clear_temperature("02-CPU 1")
    assert evaluator.check_temperature("02-CPU 1", "CPU", 90) is not None
    assert channels[0].send.call_count == 2


def test_channel_failure_is_logged_and_others_still_run(evaluator, channels, caplog):
    channels[0].send.side_effect = NotificationError("HTTP 502")

    with caplog.at_level(logging.ERROR):
        evaluator.check_temperature("CPU1", "CPU", 90)

    channels[1].send.assert_called_once()
    assert "Failed to send alert cpu_temp:CPU1 via telegram" in caplog.text


def test_telegram_channel_posts_message():
    session = Mock()
    session.post.return_value = Mock(status_code=200)
    channel = TelegramChannel("123:abc", "42", timeout_s=5, session=session)

    channel.send(Alert(key="psu:1", text="hello", spoken="hello"))

    session.post.assert_called_once_with(
        "https://api.telegram.org/bot123:abc/sendMessage",
        json={"chat_id": "42", "text": "hello"},
        timeout=5,
    )


def test_telegram_channel_raises_on_failure():
    session = Mock()
    session.post.return_value = Mock(status_code=401)
    channel = TelegramChannel("123:abc", "42", session=session)
    with pytest.raises(NotificationError):
        channel.send(Alert(key="k", text="t", spoken="s"))

    session.post.side_effect = requests.ConnectionError("down")
    with pytest.raises(NotificationError):
        channel.send(Alert(key="k", text="t", spoken="s"))


def test_spoken_channel_sends_command_to_sink():
    sink = MemoryStateSink()
    channel = SpokenChannel(sink, "alexa2.0.Echo-Devices.G090XX.Commands.speak")

    channel.send(Alert(key="k", text="t", spoken="Warning! Power supply 1 reports status Degraded / Enabled."))

    assert list(sink.commands) == [
        (
            "alexa2.0.Echo-Devices.G090XX.Commands.speak",
            "Warning! Power supply 1 reports status Degraded / Enabled.",
        )
    ]


def test_build_channels_from_config(alert_config):
    sink = MemoryStateSink()
    assert build_channels(alert_config, sink) == []

    configured = replace(
        alert_config,
        telegram_token="123:abc",
        telegram_chat_id="42",
        spoken_command_path="alexa2.0.Echo.speak",
    )
    names = [channel.name for channel in build_channels(configured, sink)]
    assert names == ["telegram", "spoken"]
