from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
from typing import Any, Iterable

import requests

from redfish_tap.config import AlertConfig
from redfish_tap.sink import StateSink

TELEGRAM_API = "https://api.telegram.org"


class NotificationError(Exception):
    """A notification channel could not deliver an alert."""


@dataclass(frozen=True)
class Alert:
    key: str
    text: str
    spoken: str


class NotificationChannel(ABC):
    name = "channel"

    @abstractmethod
    def send(self, alert: Alert) -> None:
        ...


class TelegramChannel(NotificationChannel):
    name = "telegram"

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        timeout_s: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.url = f"{TELEGRAM_API}/bot{bot_token}/sendMessage"
        self.chat_id = chat_id
        self.timeout_s = timeout_s
        self.session = session if session is not None else requests.Session()

    def send(self, alert: Alert) -> None:
        try:
            response = self.session.post(
                self.url,
                json={"chat_id": self.chat_id, "text": alert.text},
                timeout=self.timeout_s,
            )
        except requests.RequestException as exc:
            raise NotificationError(f"Telegram request failed: {exc}") from exc
        if response.status_code != 200:
            raise NotificationError(
                f"Telegram API returned HTTP {response.status_code}"
            )


class SpokenChannel(NotificationChannel):
    """Sends the spoken rendering as a command to a voice assistant data point."""

    name = "spoken"

    def __init__(self, sink: StateSink, command_path: str) -> None:
        self.sink = sink
        self.command_path = command_path

    def send(self, alert: Alert) -> None:
        self.sink.publish(self.command_path, alert.spoken, ack=False)


def build_channels(config: AlertConfig, sink: StateSink) -> list[NotificationChannel]:
    channels: list[NotificationChannel] = []
    if config.telegram_token and config.telegram_chat_id:
        channels.append(
            TelegramChannel(config.telegram_token, config.telegram_chat_id, config.timeout_s)
        )
    if config.spoken_command_path:
        channels.append(SpokenChannel(sink, config.spoken_command_path))
    return channels


def _format_number(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class AlertEvaluator:
    """Checks mapped readings against static limits and notifies every channel.

    With ``suppress_repeats`` enabled an alert fires only when its condition
    starts; it fires again after a passing check of the same key.
    """

    def __init__(
        self, config: AlertConfig, channels: Iterable[NotificationChannel] = ()
    ) -> None:
        self.config = config
        self.channels = list(channels)
        self.logger = logging.getLogger(self.__class__.__name__)
        self._active: set[str] = set()

    def check_temperature(self, sensor: str, context: str | None, reading: Any) -> Alert | None:
        key = f"cpu_temp:{sensor}"
        limit = self.config.cpu_temp_limit
        if (
            context is None
            or "CPU" not in context
            or not isinstance(reading, (int, float))
            or isinstance(reading, bool)
            or reading <= limit
        ):
            self._clear(key)
            return None
        alert = Alert(
            key=key,
            text=(
                f'⚠️ CPU temperature "{sensor}" = {_format_number(reading)} °C '
                f"(limit: {_format_number(limit)} °C)"
            ),
            spoken=f"Warning! The temperature of {sensor} is {_format_number(reading)} degrees.",
        )
        return self._raise(alert)

    def check_power_supply(self, index: int, health: str, state: str) -> Alert | None:
        key = f"psu:{index}"
        if health == "OK" and state == "Enabled":
            self._clear(key)
            return None
        status = f"{health} / {state}"
        alert = Alert(
            key=key,
            text=f"⚠️ Power supply PSU {index} reports status: {status}",
            spoken=f"Warning! Power supply {index} reports status {status}.",
        )
        return self._raise(alert)

    def clear_temperature(self, sensor: str) -> None:
        """Re-arm a sensor whose reading dropped out (absent or <= 0)."""
        self._clear(f"cpu_temp:{sensor}")

    def _clear(self, key: str) -> None:
        if key in self._active:
            self.logger.info("Condition %s cleared", key)
            self._active.discard(key)

    def _raise(self, alert: Alert) -> Alert | None:
        if self.config.suppress_repeats and alert.key in self._active:
            self.logger.debug("Suppressing repeated alert %s", alert.key)
            return None
        self._active.add(alert.key)
        self.dispatch(alert)
        return alert

    def dispatch(self, alert: Alert) -> None:
        self.logger.warning("%s", alert.text)
        for channel in self.channels:
            try:
                channel.send(alert)
            except Exception as exc:
                self.logger.error(
                    "Failed to send alert %s via %s: %s", alert.key, channel.name, exc
                )
