from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import configparser


@dataclass(frozen=True)
class RedfishConfig:
    host: str
    username: str
    password: str
    timeout_s: float
    # Management controllers ship self-signed certificates, so verification
    # is off unless explicitly enabled or a CA bundle is supplied.
    verify_tls: bool
    ca_cert: str | None


@dataclass(frozen=True)
class MqttConfig:
    host: str
    port: int
    base_topic: str
    discovery_topic: str
    client_id: str
    username: str | None
    password: str | None
    qos: int
    retain: bool
    tls_enabled: bool
    ca_cert: str | None
    keepalive: int


@dataclass(frozen=True)
class PublishConfig:
    interval_s: int
    prefix: str
    bios_dump: bool


@dataclass(frozen=True)
class AlertConfig:
    cpu_temp_limit: float
    telegram_token: str | None
    telegram_chat_id: str | None
    spoken_command_path: str | None
    suppress_repeats: bool
    timeout_s: float


@dataclass(frozen=True)
class AppConfig:
    redfish: RedfishConfig
    mqtt: MqttConfig
    publish: PublishConfig
    alerts: AlertConfig


def _get_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value if value else None


def load_config(path: str | Path) -> AppConfig:
    parser = configparser.ConfigParser(interpolation=None)
    read_files = parser.read(path, encoding="utf-8")
    if not read_files:
        raise FileNotFoundError(f"Config file not found: {path}")

    host = _get_optional(parser.get("redfish", "host", fallback=None))
    if host is None:
        raise ValueError(f"Missing [redfish] host in {path}")

    redfish = RedfishConfig(
        host=host,
        username=parser.get("redfish", "username", fallback=""),
        password=parser.get("redfish", "password", fallback=""),
        timeout_s=parser.getfloat("redfish", "timeout_s", fallback=10.0),
        verify_tls=parser.getboolean("redfish", "verify_tls", fallback=False),
        ca_cert=_get_optional(parser.get("redfish", "ca_cert", fallback=None)),
    )

    # Use parser.get with fallback so [mqtt] may be omitted for dry runs
    mqtt = MqttConfig(
        host=parser.get("mqtt", "host", fallback="localhost"),
        port=parser.getint("mqtt", "port", fallback=1883),
        base_topic=parser.get("mqtt", "base_topic", fallback="redfish_tap").rstrip("/"),
        discovery_topic=parser.get("mqtt", "discovery_topic", fallback="homeassistant"),
        client_id=parser.get("mqtt", "client_id", fallback="redfish-tap"),
        username=_get_optional(parser.get("mqtt", "username", fallback=None)),
        password=_get_optional(parser.get("mqtt", "password", fallback=None)),
        qos=parser.getint("mqtt", "qos", fallback=0),
        retain=parser.getboolean("mqtt", "retain", fallback=True),
        tls_enabled=parser.getboolean("mqtt", "tls", fallback=False),
        ca_cert=_get_optional(parser.get("mqtt", "ca_cert", fallback=None)),
        keepalive=parser.getint("mqtt", "keepalive", fallback=60),
    )

    publish = PublishConfig(
        interval_s=parser.getint("publish", "interval_s", fallback=120),
        prefix=parser.get("publish", "prefix", fallback="ilo4").strip().strip("."),
        bios_dump=parser.getboolean("publish", "bios_dump", fallback=False),
    )

    alerts = AlertConfig(
        cpu_temp_limit=parser.getfloat("alerts", "cpu_temp_limit", fallback=70.0),
        telegram_token=_get_optional(parser.get("alerts", "telegram_token", fallback=None)),
        telegram_chat_id=_get_optional(
            parser.get("alerts", "telegram_chat_id", fallback=None)
        ),
        spoken_command_path=_get_optional(
            parser.get("alerts", "spoken_command_path", fallback=None)
        ),
        suppress_repeats=parser.getboolean("alerts", "suppress_repeats", fallback=False),
        timeout_s=parser.getfloat("alerts", "timeout_s", fallback=10.0),
    )

    return AppConfig(redfish=redfish, mqtt=mqtt, publish=publish, alerts=alerts)
