from __future__ import annotations

from abc import ABC, abstractmethod
import json
from typing import Any

from redfish_tap.alerts import AlertEvaluator
from redfish_tap.client import RedfishClient, RedfishNotSupportedError
from redfish_tap.datapoints import (
    DataPoint,
    DataPointMeta,
    ValueType,
    classify_value,
    dig,
    join_path,
    scalar_type,
)
from redfish_tap.logging_utils import mapper_logger
from redfish_tap.sanitize import sanitize_id
from redfish_tap.schema import validate_resource

THERMAL_PATH = "/rest/v1/Chassis/1/Thermal"
SYSTEM_PATH = "/rest/v1/Systems/1"
POWER_PATH = "/rest/v1/Chassis/1/Power"
MANAGER_PATH = "/rest/v1/Managers/1"
ETHERNET_PATH = "/rest/v1/Managers/1/EthernetInterfaces/1"
BIOS_SETTINGS_PATH = "/redfish/v1/Systems/1/Bios/Settings"
ARRAY_CONTROLLER_PATH = "/rest/v1/Systems/1/SmartStorage/ArrayControllers/0"

UNAVAILABLE = "n/a"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _text(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return _render(value)


def _render(value: Any) -> str:
    if value is None:
        return UNAVAILABLE
    if isinstance(value, (bool, dict, list)):
        return json.dumps(value)
    return str(value)


def _status(resource: Any) -> tuple[str, str, str]:
    health = dig(resource, "Status", "Health") or UNAVAILABLE
    state = dig(resource, "Status", "State") or UNAVAILABLE
    return health, state, f"{health} / {state}"


def _member_links(collection: Any) -> list[str | None]:
    members = dig(collection, "Members")
    if not isinstance(members, list):
        return []
    links: list[str | None] = []
    for member in members:
        link = dig(member, "@odata.id") or dig(member, "href")
        links.append(link if isinstance(link, str) else None)
    return links


class ResourceMapper(ABC):
    """Maps one hardware domain of the controller into data points.

    ``collect`` raises RedfishError subclasses for transport and protocol
    failures; the orchestrator catches them at this boundary.
    """

    name = "resource"

    def __init__(
        self,
        client: RedfishClient,
        prefix: str = "",
        alerts: AlertEvaluator | None = None,
    ) -> None:
        self.client = client
        self.prefix = prefix
        self.alerts = alerts
        self.logger = mapper_logger(self.name)

    @abstractmethod
    def collect(self) -> list[DataPoint]:
        ...

    def fetch(self, path: str, kind: str) -> Any:
        data = self.client.get(path)
        problems = validate_resource(kind, data)
        if problems:
            self.logger.warning(
                "%s resource at %s has %s unexpected fields", kind, path, len(problems)
            )
            self.logger.debug("Schema problems: %s", problems)
        return data

    def path(self, *segments: str) -> str:
        return join_path(self.prefix, *segments)

    def point(
        self,
        segments: tuple[str, ...],
        name: str,
        value: Any,
        value_type: ValueType | None = None,
        role: str = "text",
        unit: str | None = None,
    ) -> DataPoint:
        meta = DataPointMeta(
            name=name,
            type=value_type if value_type is not None else scalar_type(value),
            role=role,
            unit=unit,
        )
        return DataPoint(path=self.path(*segments), meta=meta, value=value)

    def text_points(self, domain: str, values: dict[str, Any]) -> list[DataPoint]:
        return [
            self.point((domain, sanitize_id(key)), key, _text(value), ValueType.STRING)
            for key, value in values.items()
        ]

    def field_points(
        self,
        base: tuple[str, ...],
        values: dict[str, Any],
        numeric: tuple[str, ...] = (),
    ) -> list[DataPoint]:
        """Composite records: fields named in ``numeric`` are always declared
        as numbers (missing readings publish None), everything else is text.
        """
        points = []
        for key, value in values.items():
            if key in numeric:
                value_type = ValueType.NUMBER
                if not _is_number(value):
                    value = None
            else:
                value_type = ValueType.STRING
                value = _text(value)
            points.append(self.point((*base, sanitize_id(key)), key, value, value_type))
        return points


class ThermalMapper(ResourceMapper):
    name = "thermal"

    def collect(self) -> list[DataPoint]:
        data = self.fetch(THERMAL_PATH, "thermal")
        self.logger.info("Thermal data retrieved.")
        points: list[DataPoint] = []

        temperatures = dig(data, "Temperatures")
        if isinstance(temperatures, list):
            for sensor in temperatures:
                reading = dig(sensor, "CurrentReading")
                sensor_name = _text(dig(sensor, "Name")) or ""
                # Absent sensors report 0
                if not _is_number(reading) or reading <= 0:
                    if self.alerts is not None:
                        self.alerts.clear_temperature(sensor_name)
                    continue
                context = _text(dig(sensor, "PhysicalContext"))
                points.append(
                    self.point(
                        ("temperatures", sanitize_id(sensor_name)),
                        context or sensor_name,
                        reading,
                        ValueType.NUMBER,
                        role="value.temperature",
                        unit="°C",
                    )
                )
                if self.alerts is not None:
                    self.alerts.check_temperature(sensor_name, context, reading)

        fans = dig(data, "Fans")
        if isinstance(fans, list):
            for fan in fans:
                if not isinstance(fan, dict):
                    continue
                reading = fan.get("CurrentReading")
                points.append(
                    self.point(
                        ("fans", sanitize_id(_text(fan.get("FanName")))),
                        "Fan Speed",
                        reading if _is_number(reading) else None,
                        ValueType.NUMBER,
                        role="value.speed",
                        unit="%",
                    )
                )
        return points


class SystemInfoMapper(ResourceMapper):
    name = "system"

    def collect(self) -> list[DataPoint]:
        data = self.fetch(SYSTEM_PATH, "system")
        self.logger.info("System data retrieved.")
        return self.text_points(
            "system",
            {
                "Model": dig(data, "Model"),
                "SerialNumber": dig(data, "SerialNumber"),
                "BIOSVersion": dig(data, "Bios", "Current", "VersionString"),
            },
        )


class PowerMapper(ResourceMapper):
    name = "power"

    def collect(self) -> list[DataPoint]:
        data = self.fetch(POWER_PATH, "power")
        self.logger.info("Power data retrieved.")
        self.logger.trace("Power payload: %s", data)
        points: list[DataPoint] = []

        watts = dig(data, "PowerControl", 0, "PowerConsumedWatts")
        if _is_number(watts) and watts > 0:
            points.append(
                self.point(
                    ("power", "PowerConsumedWatts"),
                    "Power consumption",
                    watts,
                    ValueType.NUMBER,
                    role="value.power",
                    unit="W",
                )
            )
        else:
            self.logger.warning("PowerConsumedWatts unavailable or 0.")

        supplies = dig(data, "PowerSupplies")
        if not isinstance(supplies, list):
            self.logger.warning("No PowerSupplies found or unexpected format.")
            return points

        for index, psu in enumerate(supplies, start=1):
            health, state, status = _status(psu)
            points.extend(
                self.field_points(
                    ("power", f"PSU_{index}"),
                    {
                        "Name": dig(psu, "Name"),
                        "Status": status,
                        "PowerCapacityWatts": dig(psu, "PowerCapacityWatts"),
                        "LastPowerOutputWatts": dig(psu, "LastPowerOutputWatts"),
                    },
                    numeric=("PowerCapacityWatts", "LastPowerOutputWatts"),
                )
            )
            if self.alerts is not None:
                self.alerts.check_power_supply(index, health, state)
        return points


class FirmwareMapper(ResourceMapper):
    name = "firmware"

    def collect(self) -> list[DataPoint]:
        data = self.fetch(MANAGER_PATH, "manager")
        self.logger.info("Firmware data retrieved.")
        values = {"iLOFirmwareVersion": dig(data, "Firmware", "Current", "VersionString")}
        date = dig(data, "Firmware", "Current", "Date")
        if isinstance(date, str):
            values["iLODate"] = date
        return self.text_points("firmware", values)


class NetworkMapper(ResourceMapper):
    name = "network"

    def collect(self) -> list[DataPoint]:
        data = self.fetch(ETHERNET_PATH, "ethernet_interface")
        self.logger.info("Network data retrieved.")
        return self.text_points(
            "network",
            {
                "MACAddress": dig(data, "MACAddress"),
                "IPv4": dig(data, "IPv4", 0, "Address"),
            },
        )


class BiosMapper(ResourceMapper):
    """Dumps the BIOS settings object; ``Attributes`` is flattened one level."""

    name = "bios"

    def __init__(
        self,
        client: RedfishClient,
        prefix: str = "",
        alerts: AlertEvaluator | None = None,
        dump: bool = False,
    ) -> None:
        super().__init__(client, prefix, alerts)
        self.dump = dump

    def collect(self) -> list[DataPoint]:
        try:
            data = self.fetch(BIOS_SETTINGS_PATH, "bios_settings")
        except RedfishNotSupportedError:
            self.logger.warning("BIOS settings API is not supported by this firmware.")
            return []
        if not isinstance(data, dict):
            self.logger.warning("BIOS settings payload is not an object.")
            return []

        points: list[DataPoint] = []
        lines = ["BIOS fields:"]
        for key, value in data.items():
            if key == "Attributes" and isinstance(value, dict):
                lines.append(f"• {key}:")
                for attr_key, attr_value in value.items():
                    # Nested values below Attributes are kept as JSON text
                    if isinstance(attr_value, (dict, list)):
                        attr_value = json.dumps(attr_value)
                    lines.append(f"   - {attr_key}: {_render(attr_value)}")
                    points.append(
                        self.point(("bios", sanitize_id(attr_key)), attr_key, attr_value)
                    )
                continue

            lines.append(f"• {key}: {_render(value)}")
            points.append(
                self.point(("bios", sanitize_id(key)), key, value, classify_value(value))
            )

        if self.dump:
            points.append(
                self.point(("bios", "Dump"), "BIOS dump", "\n".join(lines), ValueType.STRING)
            )
        self.logger.info("BIOS settings retrieved (%s fields).", len(points))
        return points


class PhysicalDiskMapper(ResourceMapper):
    name = "disks"

    def collect(self) -> list[DataPoint]:
        try:
            controller = self.fetch(ARRAY_CONTROLLER_PATH, "array_controller")
            self.logger.info("Array controller data retrieved.")
            drives_url = self.client.get_link(controller, "PhysicalDrives")
            if not drives_url:
                self.logger.warning("No PhysicalDrives link found.")
                return []
            collection = self.fetch(drives_url, "collection")
        except RedfishNotSupportedError as exc:
            self.logger.warning("Physical drives are not supported by this firmware: %s", exc)
            return []

        points: list[DataPoint] = []
        for index, drive_url in enumerate(_member_links(collection), start=1):
            if drive_url is None:
                self.logger.debug("Drive member %s has no link, skipping.", index)
                continue
            try:
                drive = self.fetch(drive_url, "drive")
            except RedfishNotSupportedError as exc:
                # Drives can be pulled between the collection and member reads
                self.logger.warning("Drive member %s is gone: %s", index, exc)
                continue
            points.extend(
                self.field_points(
                    ("disks", f"Drive_{index}"),
                    {
                        "Location": dig(drive, "Location"),
                        "Model": dig(drive, "Model"),
                        "CapacityMiB": dig(drive, "CapacityMiB"),
                        "Status": _status(drive)[2],
                    },
                    numeric=("CapacityMiB",),
                )
            )
        return points


class RaidMapper(ResourceMapper):
    name = "raid"

    def collect(self) -> list[DataPoint]:
        controller = self.fetch(ARRAY_CONTROLLER_PATH, "array_controller")
        self.logger.info("RAID controller data retrieved.")
        if not isinstance(controller, dict):
            self.logger.warning("Invalid or missing array controller data.")
            return []

        firmware = controller.get("FirmwareVersion")
        if isinstance(firmware, dict):
            firmware = dig(firmware, "Current", "VersionString")
        configuration = "\n".join(
            [
                f"Model: {_render(controller.get('Model'))}",
                f"Firmware: {_render(firmware)}",
                f"Status: {_render(dig(controller, 'Status', 'Health'))}",
            ]
        )
        points = [
            self.point(("raid", "Configuration"), "RAID configuration", configuration)
        ]

        logical_url = self.client.get_link(controller, "LogicalDrives")
        if not logical_url:
            self.logger.warning("No LogicalDrives link found.")
            return points

        collection = self.fetch(logical_url, "collection")
        for index, drive_url in enumerate(_member_links(collection), start=1):
            if drive_url is None:
                self.logger.debug("Logical drive member %s has no link, skipping.", index)
                continue
            drive = self.fetch(drive_url, "drive")
            points.extend(
                self.field_points(
                    ("smart", f"LogicalDrive_{index}"),
                    {
                        "RaidLevel": dig(drive, "Raid"),
                        "CapacityMiB": dig(drive, "CapacityMiB"),
                        "Status": _status(drive)[2],
                    },
                    numeric=("CapacityMiB",),
                )
            )
        return points


def default_mappers(
    client: RedfishClient,
    prefix: str,
    alerts: AlertEvaluator | None = None,
    bios_dump: bool = False,
) -> list[ResourceMapper]:
    """All mappers in the order a cycle runs them."""
    return [
        ThermalMapper(client, prefix, alerts),
        SystemInfoMapper(client, prefix, alerts),
        PowerMapper(client, prefix, alerts),
        FirmwareMapper(client, prefix, alerts),
        NetworkMapper(client, prefix, alerts),
        BiosMapper(client, prefix, alerts, dump=bios_dump),
        PhysicalDiskMapper(client, prefix, alerts),
        RaidMapper(client, prefix, alerts),
    ]
