"""Redfish Tap management controller exporter."""

from redfish_tap.alerts import AlertEvaluator
from redfish_tap.client import RedfishClient
from redfish_tap.config import AppConfig, load_config
from redfish_tap.mappers import default_mappers
from redfish_tap.mqtt_client import MqttStateSink
from redfish_tap.orchestrator import PollOrchestrator
from redfish_tap.sanitize import sanitize_id
from redfish_tap.sink import MemoryStateSink, StateSink

__all__ = [
    "AlertEvaluator",
    "AppConfig",
    "MemoryStateSink",
    "MqttStateSink",
    "PollOrchestrator",
    "RedfishClient",
    "StateSink",
    "default_mappers",
    "load_config",
    "sanitize_id",
]
