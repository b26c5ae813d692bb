"""
Unit tests for the domain models

Tests for alias handling, closed-set validation and id uniqueness.
"""

import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from pydantic import ValidationError

from core.models import (
    AnalysisResult,
    DiffResult,
    HardwareComponent,
    HardwareType,
    Layer,
    ModuleConnection,
    Priority,
    Requirement,
    RequirementCategory,
    SoftwareArchitecture,
    SoftwareModule,
    ensure_unique_ids,
)


class TestHardwareComponent:
    """Test hardware component parsing"""

    def test_known_type(self):
        """Should accept known types case-insensitively"""
        component = HardwareComponent(id="hw1", name="MCU", type=" Processor ")

        assert component.type == HardwareType.PROCESSOR
        assert component.connections == []
        assert component.specifications == {}

    def test_unknown_type_becomes_other(self):
        """Should coerce unknown types instead of rejecting them"""
        component = HardwareComponent(id="hw1", name="FPGA", type="fpga")

        assert component.type == HardwareType.OTHER

    def test_null_specifications(self):
        """Should treat null specifications as empty"""
        component = HardwareComponent.model_validate(
            {"id": "hw1", "name": "Flash", "type": "storage", "connections": ["hw2"], "specifications": None}
        )

        assert component.specifications == {}
        assert component.connections == ["hw2"]


class TestSoftwareModule:
    """Test software module aliases"""

    def test_camel_case_input(self):
        """Should accept the camelCase hardware mapping key"""
        module = SoftwareModule.model_validate(
            {"id": "drv_x", "name": "X Driver", "layer": "driver", "hardwareMapping": "x"}
        )

        assert module.hardware_mapping == "x"
        assert module.layer == Layer.DRIVER

    def test_dump_by_alias(self):
        """Should dump camelCase keys"""
        module = SoftwareModule(id="drv_x", name="X Driver", layer=Layer.DRIVER, hardware_mapping="x")
        data = module.model_dump(by_alias=True)

        assert data["hardwareMapping"] == "x"

    def test_invalid_layer(self):
        """Should reject layers outside the closed set"""
        with pytest.raises(ValidationError):
            SoftwareModule(id="m", name="M", layer="firmware")


class TestArchitecture:
    """Test architecture container helpers"""

    def test_connection_aliases(self):
        """Should read from/to keys"""
        connection = ModuleConnection.model_validate({"from": "a", "to": "b"})

        assert connection.source == "a"
        assert connection.target == "b"
        assert connection.model_dump(by_alias=True)["from"] == "a"

    def test_get_module(self):
        """Should look up modules by id"""
        module = SoftwareModule(id="m1", name="M1", layer=Layer.SERVICE)
        architecture = SoftwareArchitecture(modules=[module])

        assert architecture.get_module("m1") is module
        with pytest.raises(KeyError):
            architecture.get_module("m2")


class TestRequirement:
    """Test requirement validation"""

    def test_normalizes_closed_sets(self):
        """Should accept upper-case category and priority"""
        requirement = Requirement.model_validate({
            "id": "R1", "category": "SAFETY", "description": "fail safe",
            "testable": True, "priority": "High", "relatedModules": ["app_main"], "version": 1,
        })

        assert requirement.category == RequirementCategory.SAFETY
        assert requirement.priority == Priority.HIGH
        assert requirement.related_modules == ["app_main"]

    def test_is_frozen(self):
        """Should not allow in-place edits"""
        requirement = Requirement(id="R1", category="functional", description="x")

        with pytest.raises(ValidationError):
            requirement.description = "y"

    def test_version_positive(self):
        """Should reject versions below one"""
        with pytest.raises(ValidationError):
            Requirement(id="R1", category="functional", description="x", version=0)

    def test_unknown_priority(self):
        """Should reject priorities outside the closed set"""
        with pytest.raises(ValidationError):
            Requirement(id="R1", category="functional", description="x", priority="urgent")


class TestAnalysisResult:
    """Test the analysis payload"""

    def test_parses_camel_case_payload(self):
        """Should parse the analysis JSON shape"""
        result = AnalysisResult.model_validate({
            "hardwareComponents": [{"id": "hw1", "name": "IMU", "type": "sensor", "connections": []}],
            "suggestedArchitecture": {"layers": ["application"], "modules": [], "interfaces": []},
            "requirements": [{"id": "R1", "category": "functional", "description": "read IMU",
                              "testable": True, "priority": "high", "relatedModules": [], "version": 1}],
        })

        assert result.hardware_components[0].type == HardwareType.SENSOR
        assert result.suggested_architecture.layers == ["application"]
        assert result.requirements[0].id == "R1"

    def test_duplicate_hardware_ids(self):
        """Should reject duplicate hardware ids"""
        with pytest.raises(ValidationError) as exc_info:
            AnalysisResult.model_validate({
                "hardwareComponents": [
                    {"id": "hw1", "name": "A", "type": "sensor"},
                    {"id": "hw1", "name": "B", "type": "memory"},
                ],
            })

        assert "hw1" in str(exc_info.value)


class TestHelpers:
    """Test shared helpers"""

    def test_ensure_unique_ids(self):
        """Should name every duplicated id"""
        items = [HardwareComponent(id=i, name=i, type="sensor") for i in ("a", "b", "a", "b", "c")]

        with pytest.raises(ValueError) as exc_info:
            ensure_unique_ids(items, "hardware component")

        assert str(exc_info.value) == "Duplicate hardware component id(s): a, b"

    def test_empty_diff(self):
        """Should report an empty diff"""
        assert DiffResult().is_empty
