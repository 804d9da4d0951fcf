from __future__ import annotations

import argparse
import json
import logging
import time
from typing import Callable

from redfish_tap.alerts import AlertEvaluator, build_channels
from redfish_tap.client import RedfishClient
from redfish_tap.config import load_config
from redfish_tap.logging_utils import configure_logging, resolve_log_level
from redfish_tap.mappers import default_mappers
from redfish_tap.mqtt_client import MqttStateSink
from redfish_tap.orchestrator import PollOrchestrator
from redfish_tap.sink import MemoryStateSink, StateSink


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Redfish Tap management controller exporter")
    parser.add_argument(
        "--config",
        default="config/example.cfg",
        help="Path to CFG configuration file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable debug logging (-v) or trace logging (-vv)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Keep data points in memory instead of publishing to MQTT",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single poll cycle, then exit",
    )
    parser.add_argument(
        "--dump-json",
        help="Write all data point values to a file after each cycle (dry run only)",
    )
    parser.add_argument(
        "--publish-status",
        metavar="STATUS",
        help="Publish a status (e.g., 'sleeping', 'online') to the availability topic and exit. "
             "Useful for system sleep/wake hooks.",
    )
    return parser


def run_forever(
    cycle: Callable[[], object],
    interval_s: float,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    max_cycles: int | None = None,
) -> int:
    """Run ``cycle`` now and then on a fixed interval.

    Ticks that pass while a cycle is still running are skipped rather than
    queued, so a slow controller never causes back-to-back cycles.
    Returns the number of cycles run.
    """
    interval_s = max(1.0, interval_s)
    runs = 0
    next_run = clock()
    while max_cycles is None or runs < max_cycles:
        cycle()
        runs += 1
        next_run += interval_s
        now = clock()
        if now > next_run:
            missed = int((now - next_run) // interval_s) + 1
            logging.getLogger("redfish_tap").warning(
                "Poll cycle overran the %ss interval; skipping %s trigger(s).",
                interval_s,
                missed,
            )
            next_run += missed * interval_s
        if max_cycles is not None and runs >= max_cycles:
            break
        sleep(next_run - now)
    return runs


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    level = resolve_log_level(args.verbose, args.log_level)
    configure_logging(level)
    logger = logging.getLogger("redfish_tap")
    config = load_config(args.config)

    # Handle --publish-status mode (quick publish and exit)
    if args.publish_status:
        publisher = MqttStateSink(config.mqtt, device_name=config.redfish.host)
        publisher.connect()
        # Wait briefly for connection to establish
        time.sleep(0.5)
        if publisher.connected:
            publisher.publish_status(args.publish_status)
            time.sleep(0.5)
        else:
            logger.error("Failed to connect to MQTT broker")
        publisher.close()
        return

    sink: StateSink
    if args.dry_run:
        logger.info("Dry run enabled; data points stay in memory.")
        sink = MemoryStateSink()
    else:
        publisher = MqttStateSink(config.mqtt, device_name=config.redfish.host)
        publisher.connect()
        sink = publisher

    client = RedfishClient(config.redfish)
    evaluator = AlertEvaluator(config.alerts, build_channels(config.alerts, sink))
    orchestrator = PollOrchestrator(
        default_mappers(
            client,
            config.publish.prefix,
            evaluator,
            bios_dump=config.publish.bios_dump,
        ),
        sink,
    )

    def cycle() -> None:
        orchestrator.run_cycle()
        if isinstance(sink, MemoryStateSink):
            snapshot = json.dumps(sink.snapshot(), indent=2, ensure_ascii=False)
            logger.debug("Data points: %s", snapshot)
            if args.dump_json:
                with open(args.dump_json, "w", encoding="utf-8") as handle:
                    handle.write(snapshot)

    logger.info(
        "Redfish Tap started for %s. Polling every %s seconds.",
        config.redfish.host,
        config.publish.interval_s,
    )
    try:
        run_forever(cycle, config.publish.interval_s, max_cycles=1 if args.once else None)
    except KeyboardInterrupt:
        logger.info("Redfish Tap stopped.")
    finally:
        client.close()
        sink.close()


if __name__ == "__main__":
    main()
