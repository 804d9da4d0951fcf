from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Iterable

from redfish_tap.client import RedfishError
from redfish_tap.datapoints import DataPoint
from redfish_tap.mappers import ResourceMapper
from redfish_tap.sink import StateSink, StateSinkError


@dataclass
class CycleReport:
    published: int = 0
    failed_fields: int = 0
    failed_mappers: list[str] = field(default_factory=list)
    duration_s: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failed_mappers and not self.failed_fields


class PollOrchestrator:
    """Runs every mapper once per cycle, one after the other.

    A failing mapper is logged and skipped; the rest of the cycle still runs.
    Cycles never overlap: a trigger that arrives while one is running is
    dropped.
    """

    def __init__(self, mappers: Iterable[ResourceMapper], sink: StateSink) -> None:
        self.mappers = list(mappers)
        self.sink = sink
        self.logger = logging.getLogger(self.__class__.__name__)
        self._running = threading.Lock()

    @property
    def running(self) -> bool:
        return self._running.locked()

    def run_cycle(self) -> CycleReport | None:
        if not self._running.acquire(blocking=False):
            self.logger.warning("Previous poll cycle still running; skipping trigger.")
            return None
        try:
            return self._run()
        finally:
            self._running.release()

    def _run(self) -> CycleReport:
        report = CycleReport()
        started = time.monotonic()
        self.logger.debug("Starting poll cycle with %s mappers.", len(self.mappers))
        for mapper in self.mappers:
            try:
                points = mapper.collect()
            except RedfishError as exc:
                self.logger.error("[%s] Mapper failed: %s", mapper.name, exc)
                report.failed_mappers.append(mapper.name)
                continue
            except Exception:
                self.logger.exception("[%s] Unexpected payload or mapping error", mapper.name)
                report.failed_mappers.append(mapper.name)
                continue
            for point in points:
                if self._store(mapper.name, point):
                    report.published += 1
                else:
                    report.failed_fields += 1
        report.duration_s = time.monotonic() - started
        self.logger.info(
            "Poll cycle finished in %.1fs: %s points published, %s field errors, "
            "%s mappers failed.",
            report.duration_s,
            report.published,
            report.failed_fields,
            len(report.failed_mappers),
        )
        return report

    def _store(self, mapper: str, point: DataPoint) -> bool:
        try:
            self.sink.declare(point.path, point.default, point.meta)
            self.sink.publish(point.path, point.value, ack=True)
        except StateSinkError as exc:
            self.logger.error("[%s] Could not store %s: %s", mapper, point.path, exc)
            return False
        return True
