from __future__ import annotations

import json
import logging
import ssl
import threading
from typing import Any

import paho.mqtt.client as mqtt

from redfish_tap.config import MqttConfig
from redfish_tap.datapoints import DataPointMeta, ValueType
from redfish_tap.sink import StateSink, StateSinkError, validate_path

_DEVICE_CLASSES = {
    "value.temperature": "temperature",
    "value.power": "power",
}


class MqttStateSink(StateSink):
    """Publishes data points as MQTT topics with Home Assistant discovery.

    ``ilo4.power.PSU_1.Status`` becomes ``<base_topic>/ilo4/power/PSU_1/Status``.
    Commands (``ack=False``) go to the same topic with a ``/set`` suffix.
    """

    def __init__(self, config: MqttConfig, device_name: str | None = None) -> None:
        self.config = config
        self.device_name = device_name or config.client_id
        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=config.client_id,
            protocol=mqtt.MQTTv311,
        )
        self.logger = logging.getLogger(self.__class__.__name__)
        self._connected = False
        self._declared: dict[str, DataPointMeta] = {}
        # declare() runs on the poll thread, _on_connect on paho's network thread
        self._declared_lock = threading.Lock()

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        if config.username:
            self.client.username_pw_set(config.username, config.password)
        if config.tls_enabled:
            self.client.tls_set(
                ca_certs=config.ca_cert,
                cert_reqs=ssl.CERT_REQUIRED,
            )

        self.client.will_set(
            self._availability_topic,
            payload="offline",
            qos=1,
            retain=True,
        )
        self.client.reconnect_delay_set(min_delay=1, max_delay=120)

    @property
    def _availability_topic(self) -> str:
        return f"{self.config.base_topic}/status"

    @property
    def connected(self) -> bool:
        return self._connected

    def topic_for(self, path: str) -> str:
        return f"{self.config.base_topic}/{path.replace('.', '/')}"

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        if not reason_code.is_failure:
            self._connected = True
            self.logger.info(
                "Connected to MQTT broker %s:%s", self.config.host, self.config.port
            )
            self.client.publish(
                self._availability_topic,
                payload="online",
                qos=1,
                retain=True,
            )
            # Retained discovery configs may have been lost with the broker
            with self._declared_lock:
                declared = list(self._declared.items())
            for path, meta in declared:
                self._publish_discovery(path, meta)
        else:
            self._connected = False
            self.logger.error("Failed to connect to MQTT broker: %s", reason_code)

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        disconnect_flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        self._connected = False
        if not reason_code.is_failure:
            self.logger.info("Disconnected from MQTT broker (clean)")
        else:
            self.logger.warning(
                "Unexpectedly disconnected from MQTT broker: %s. "
                "Will attempt to reconnect.",
                reason_code,
            )

    def connect(self) -> None:
        self.logger.info(
            "Connecting to MQTT broker %s:%s", self.config.host, self.config.port
        )
        self.client.connect(
            self.config.host,
            self.config.port,
            keepalive=self.config.keepalive,
        )
        self.client.loop_start()

    def close(self) -> None:
        if self._connected:
            self.client.publish(
                self._availability_topic,
                payload="offline",
                qos=1,
                retain=True,
            )
        self.client.loop_stop()
        self.client.disconnect()
        self.logger.info("Disconnected from MQTT broker")

    def publish_status(self, status: str) -> bool:
        """Publish a custom status to the availability topic.

        Args:
            status: Status string (e.g., "online", "offline", "sleeping")

        Returns:
            True if publish succeeded, False otherwise.
        """
        self.logger.info("Publishing status '%s' to %s", status, self._availability_topic)
        result = self.client.publish(
            self._availability_topic,
            payload=status,
            qos=1,
            retain=True,
        )
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            self.logger.error("Failed to publish status, error code: %s", result.rc)
            return False
        return True

    def declare(self, path: str, default: Any, meta: DataPointMeta) -> None:
        validate_path(path)
        with self._declared_lock:
            existing = self._declared.get(path)
            if existing is None:
                self._declared[path] = meta
        if existing is not None:
            if existing != meta:
                self.logger.debug("Ignoring changed metadata for already declared %s", path)
            return
        self._publish_discovery(path, meta)

    def publish(self, path: str, value: Any, ack: bool = True) -> None:
        validate_path(path)
        topic = self.topic_for(path)
        if ack:
            with self._declared_lock:
                declared = path in self._declared
            if not declared:
                raise StateSinkError(f"Data point {path} has not been declared")
            retain = self.config.retain
        else:
            topic = f"{topic}/set"
            retain = False
        if not self._connected:
            self.logger.warning("Not connected to MQTT broker, message may be queued")
        self.logger.debug("Publishing %s to %s", path, topic)
        result = self.client.publish(
            topic,
            payload=encode_value(value),
            qos=self.config.qos,
            retain=retain,
        )
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            raise StateSinkError(f"Failed to publish {path}, error code: {result.rc}")

    def _publish_discovery(self, path: str, meta: DataPointMeta) -> None:
        component = "binary_sensor" if meta.type is ValueType.BOOLEAN else "sensor"
        object_id = path.replace(".", "_")
        payload: dict[str, Any] = {
            "name": meta.name,
            "unique_id": f"{self.config.client_id}_{object_id}",
            "state_topic": self.topic_for(path),
            "availability_topic": self._availability_topic,
            "payload_available": "online",
            "payload_not_available": "offline",
            "device": {
                "identifiers": [self.config.client_id],
                "name": self.device_name,
            },
        }
        if meta.type is ValueType.BOOLEAN:
            payload["payload_on"] = "ON"
            payload["payload_off"] = "OFF"
        if meta.unit:
            payload["unit_of_measurement"] = meta.unit
        if meta.type is ValueType.NUMBER:
            payload["state_class"] = "measurement"
        if device_class := _DEVICE_CLASSES.get(meta.role):
            payload["device_class"] = device_class

        topic = (
            f"{self.config.discovery_topic}/{component}/{self.config.client_id}/"
            f"{object_id}/config"
        )
        self.logger.debug("Publishing Home Assistant discovery to %s", topic)
        self.client.publish(
            topic,
            payload=json.dumps(payload),
            qos=self.config.qos,
            retain=True,
        )


def encode_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "ON" if value else "OFF"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)
