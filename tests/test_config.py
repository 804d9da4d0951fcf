"""Tests for CFG configuration loading."""
from __future__ import annotations

import pytest

from redfish_tap.config import load_config

FULL_CONFIG = """
[redfish]
host = 10.0.0.5
username = admin
password = p%ss
timeout_s = 4.5
verify_tls = true

[mqtt]
host = broker
port = 8883
base_topic = servers/ilo/
tls = true

[publish]
interval_s = 60
prefix = ilo4xxx.
bios_dump = yes

[alerts]
cpu_temp_limit = 65
telegram_token = 123:abc
telegram_chat_id = 42
spoken_command_path = alexa2.0.Echo.speak
suppress_repeats = true
"""


def test_load_full_config(tmp_path):
    path = tmp_path / "redfish-tap.cfg"
    path.write_text(FULL_CONFIG, encoding="utf-8")

    config = load_config(path)

    assert config.redfish.host == "10.0.0.5"
    assert config.redfish.password == "p%ss"
    assert config.redfish.timeout_s == 4.5
    assert config.redfish.verify_tls is True
    assert config.mqtt.port == 8883
    assert config.mqtt.base_topic == "servers/ilo"
    assert config.mqtt.tls_enabled is True
    assert config.publish.interval_s == 60
    assert config.publish.prefix == "ilo4xxx"
    assert config.publish.bios_dump is True
    assert config.alerts.cpu_temp_limit == 65
    assert config.alerts.telegram_chat_id == "42"
    assert config.alerts.spoken_command_path == "alexa2.0.Echo.speak"
    assert config.alerts.suppress_repeats is True


def test_defaults_for_minimal_config(tmp_path):
    path = tmp_path / "minimal.cfg"
    path.write_text("[redfish]\nhost = ilo.local\n", encoding="utf-8")

    config = load_config(path)

    assert config.redfish.timeout_s == 10.0
    assert config.redfish.verify_tls is False
    assert config.redfish.ca_cert is None
    assert config.mqtt.host == "localhost"
    assert config.mqtt.keepalive == 60
    assert config.publish.interval_s == 120
    assert config.publish.prefix == "ilo4"
    assert config.alerts.cpu_temp_limit == 70.0
    assert config.alerts.telegram_token is None
    assert config.alerts.suppress_repeats is False


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.cfg")


def test_missing_host_raises(tmp_path):
    path = tmp_path / "nohost.cfg"
    path.write_text("[redfish]\nhost =\n", encoding="utf-8")
    with pytest.raises(ValueError, match="host"):
        load_config(path)


def test_example_config_loads():
    from pathlib import Path

    example = Path(__file__).resolve().parent.parent / "config" / "example.cfg"
    config = load_config(example)
    assert config.redfish.verify_tls is False
    assert config.alerts.spoken_command_path is None
