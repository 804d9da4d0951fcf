"""Tests for raw resource shape checks."""
from __future__ import annotations

import pytest

from redfish_tap.schema import validate_resource


def test_well_formed_thermal_has_no_problems():
    payload = {
        "Temperatures": [{"Name": "CPU1", "PhysicalContext": "CPU", "CurrentReading": 40}],
        "Fans": [{"FanName": "Fan 1", "CurrentReading": 20}],
    }
    assert validate_resource("thermal", payload) == []


def test_problems_point_at_the_offending_field():
    payload = {"Temperatures": [{"Name": "CPU1", "CurrentReading": "hot"}]}
    problems = validate_resource("thermal", payload)
    assert len(problems) == 1
    assert problems[0].startswith("Temperatures/0/CurrentReading:")


def test_nested_status_reference_resolves():
    problems = validate_resource("drive", {"Status": {"Health": 3}})
    assert problems and problems[0].startswith("Status/Health:")


def test_non_object_root():
    assert validate_resource("array_controller", [])[0].startswith("<root>:")


def test_unknown_kind():
    with pytest.raises(KeyError):
        validate_resource("chassis", {})
