from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
import logging
import re
from typing import Any

from redfish_tap.datapoints import DataPointMeta, classify_value

_VALID_PATH = re.compile(r"^[A-Za-z0-9_-]+(\.[A-Za-z0-9_-]+)*$")

# Dry runs can last for days; only the latest commands are kept
COMMAND_HISTORY = 100


class StateSinkError(Exception):
    """The state store rejected a declare or publish call."""


class StateSink(ABC):
    """Where data points live between cycles.

    ``declare`` may be called every cycle for the same path; only the first
    call defines the metadata. ``publish`` with ``ack=True`` records a
    sensor reading, ``ack=False`` issues a command to the path's owner.
    """

    @abstractmethod
    def declare(self, path: str, default: Any, meta: DataPointMeta) -> None:
        ...

    @abstractmethod
    def publish(self, path: str, value: Any, ack: bool = True) -> None:
        ...

    def close(self) -> None:
        pass


def validate_path(path: str) -> None:
    if not isinstance(path, str) or not _VALID_PATH.match(path):
        raise StateSinkError(f"Invalid data point path: {path!r}")


@dataclass
class StoredState:
    meta: DataPointMeta
    value: Any
    ack: bool = True


@dataclass
class MemoryStateSink(StateSink):
    """In-process sink for dry runs and tests."""

    states: dict[str, StoredState] = field(default_factory=dict)
    commands: deque[tuple[str, Any]] = field(
        default_factory=lambda: deque(maxlen=COMMAND_HISTORY)
    )

    def __post_init__(self) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)

    def declare(self, path: str, default: Any, meta: DataPointMeta) -> None:
        validate_path(path)
        existing = self.states.get(path)
        if existing is not None:
            if existing.meta != meta:
                self.logger.debug(
                    "Ignoring changed metadata for already declared %s", path
                )
            return
        self.states[path] = StoredState(meta=meta, value=default)
        self.logger.debug("Declared %s (%s)", path, meta.type.value)

    def publish(self, path: str, value: Any, ack: bool = True) -> None:
        validate_path(path)
        if not ack:
            self.commands.append((path, value))
            self.logger.debug("Command %s = %r", path, value)
            return
        state = self.states.get(path)
        if state is None:
            raise StateSinkError(f"Data point {path} has not been declared")
        if value is not None and classify_value(value) is not state.meta.type:
            raise StateSinkError(
                f"Type mismatch for {path}: expected {state.meta.type.value}, "
                f"got {type(value).__name__}"
            )
        state.value = value
        state.ack = ack

    def value(self, path: str) -> Any:
        return self.states[path].value

    def snapshot(self) -> dict[str, Any]:
        return {path: state.value for path, state in sorted(self.states.items())}
