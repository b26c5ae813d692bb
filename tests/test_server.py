"""
Integration tests for the MCP tool server

Calls the tool functions directly with JSON payloads, the way an MCP
client would, with the LLM factory mocked.
"""

import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import json
import pytest
from unittest.mock import MagicMock, Mock, patch

from PIL import Image
from langchain_core.language_models.chat_models import BaseChatModel

import server
from core.models import HardwareComponent, Layer, SoftwareModule


HARDWARE = [
    {"id": "imu", "name": "IMU", "type": "sensor", "connections": ["mcu"]},
    {"id": "ble", "name": "BLE Radio", "type": "communication", "connections": ["mcu"]},
]

REQ_R1 = {"id": "R1", "category": "functional", "description": "boot fast", "testable": True,
          "priority": "high", "relatedModules": ["app_main"], "version": 1}

ANALYSIS_JSON = {
    "hardwareComponents": HARDWARE,
    "suggestedArchitecture": {"layers": ["application"], "modules": [], "interfaces": []},
    "requirements": [REQ_R1],
}


def mock_llm(content):
    llm = Mock(spec=BaseChatModel)
    llm.invoke.return_value = MagicMock(content=content)
    return llm


@pytest.fixture
def diagram_png(tmp_path):
    path = tmp_path / "board.png"
    Image.new("RGB", (40, 20), color="white").save(path)
    return path


class TestParseList:
    """Test JSON array parsing for tool inputs"""

    def test_blank_payload(self):
        """Should treat a blank payload as an empty list"""
        assert server._parse_list("  ", HardwareComponent, "hardware_json") == []

    def test_non_array(self):
        """Should reject a JSON object where an array is expected"""
        with pytest.raises(ValueError) as exc_info:
            server._parse_list('{"id": "imu"}', HardwareComponent, "hardware_json")

        assert "hardware_json must be a JSON array" in str(exc_info.value)


class TestAssembleArchitectureTool:
    """Test the deterministic assembly tool"""

    def test_valid_hardware(self):
        """Should return the architecture as camelCase JSON"""
        result = json.loads(server.assemble_architecture(json.dumps(HARDWARE)))
        ids = [m["id"] for m in result["modules"]]

        assert "drv_imu" in ids
        assert "drv_ble" in ids
        assert result["mermaidDiagram"].startswith("graph LR")
        assert all("from" in c and "to" in c for c in result["connections"])

    def test_bad_json(self):
        """Should return an error string for malformed JSON"""
        assert server.assemble_architecture("[{").startswith("❌")

    def test_non_array(self):
        """Should return an error string for a non-array payload"""
        assert server.assemble_architecture(json.dumps(HARDWARE[0])).startswith("❌")

    def test_duplicate_ids(self):
        """Should return an error string for duplicate hardware ids"""
        result = server.assemble_architecture(json.dumps([HARDWARE[0], HARDWARE[0]]))

        assert result.startswith("❌")
        assert "imu" in result


class TestDiffRequirementsTool:
    """Test the requirement diff tool"""

    def test_summary(self):
        """Should return the readable report"""
        result = server.diff_requirements("[]", json.dumps([REQ_R1]))

        assert result.splitlines()[:2] == ["**Added Requirements (1):**", "+ R1: boot fast"]
        assert "• app_main" in result

    def test_json(self):
        """Should return the full diff as JSON"""
        result = json.loads(server.diff_requirements("[]", json.dumps([REQ_R1]), style="json"))

        assert [r["id"] for r in result["added"]] == ["R1"]
        assert result["modified"] == []
        assert result["removed"] == []
        assert result["impactedModules"] == ["app_main"]

    def test_no_changes(self):
        """Should say so when the lists match"""
        payload = json.dumps([REQ_R1])

        assert server.diff_requirements(payload, payload) == "No changes."

    def test_invalid_requirement(self):
        """Should return an error string for values outside the closed sets"""
        bad = dict(REQ_R1, priority="urgent")

        assert server.diff_requirements("[]", json.dumps([bad])).startswith("❌")

    def test_bad_json(self):
        """Should return an error string for malformed JSON"""
        assert server.diff_requirements("not json", "[]").startswith("❌")


class TestAnalyzeHardwareDiagramTool:
    """Test the diagram analysis tool"""

    @patch('server.create_analysis_llm')
    def test_analyze(self, mock_create, diagram_png):
        """Should return analysis and architecture as JSON"""
        mock_create.return_value = mock_llm(json.dumps(ANALYSIS_JSON))

        result = json.loads(server.analyze_hardware_diagram(str(diagram_png), "Log motion over BLE"))

        assert [h["id"] for h in result["analysis"]["hardwareComponents"]] == ["imu", "ble"]
        assert "drv_imu" in [m["id"] for m in result["architecture"]["modules"]]
        mock_create.assert_called_once_with("openai")

    def test_missing_file(self, tmp_path):
        """Should report a path that does not exist"""
        result = server.analyze_hardware_diagram(str(tmp_path / "nope.png"), "reqs")

        assert result.startswith("❌ Image not found")

    @patch('server.create_analysis_llm')
    def test_not_an_image(self, mock_create, tmp_path):
        """Should return an error string for a file that is not an image"""
        llm = mock_llm("{}")
        mock_create.return_value = llm
        path = tmp_path / "notes.png"
        path.write_text("just some text")

        result = server.analyze_hardware_diagram(str(path), "reqs")

        assert result.startswith("❌ Analysis failed")
        assert "Could not read diagram image" in result
        llm.invoke.assert_not_called()

    @patch('server.create_analysis_llm')
    def test_invalid_model_output(self, mock_create, diagram_png):
        """Should return an error string when the model returns garbage"""
        mock_create.return_value = mock_llm("sorry, no JSON today")

        assert server.analyze_hardware_diagram(str(diagram_png), "reqs").startswith("❌ Analysis failed")

    @patch('server.create_analysis_llm')
    def test_missing_configuration(self, mock_create, diagram_png):
        """Should return an error string when the provider is not configured"""
        mock_create.side_effect = RuntimeError("Set OPENAI_API_KEY in your .env file.")

        result = server.analyze_hardware_diagram(str(diagram_png), "reqs")

        assert result.startswith("❌")
        assert "OPENAI_API_KEY" in result


class TestGenerateModuleApiTool:
    """Test the API generation tool"""

    MODULE_JSON = SoftwareModule(
        id="drv_imu", name="IMU Driver", layer=Layer.DRIVER, dependencies=["hal_io"], hardware_mapping="imu",
    ).model_dump_json(by_alias=True)

    @patch('server.create_api_llm')
    def test_generate(self, mock_create):
        """Should return the API followed by the usage example"""
        mock_create.return_value = mock_llm("int imu_read(void);\n\n### USAGE EXAMPLE\nimu_read();")

        result = server.generate_module_api(self.MODULE_JSON, "c", provider="nebius")

        assert result == "int imu_read(void);\n\n### USAGE EXAMPLE\nimu_read();"
        mock_create.assert_called_once_with("nebius")

    @patch('server.create_api_llm')
    def test_without_example(self, mock_create):
        """Should return only the API when no example is given"""
        mock_create.return_value = mock_llm("int imu_read(void);")

        assert server.generate_module_api(self.MODULE_JSON, "c") == "int imu_read(void);"

    def test_invalid_module(self):
        """Should return an error string for malformed module JSON"""
        assert server.generate_module_api("{", "python").startswith("❌ Invalid module")

    @patch('server.create_api_llm')
    def test_unsupported_language(self, mock_create):
        """Should return an error string for an unsupported language"""
        mock_create.return_value = mock_llm("unused")

        result = server.generate_module_api(self.MODULE_JSON, "rust")

        assert result.startswith("❌ API generation failed")
        assert "Unsupported language" in result

    @patch('server.create_api_llm')
    def test_llm_failure(self, mock_create):
        """Should return an error string when the model call fails"""
        llm = Mock(spec=BaseChatModel)
        llm.invoke.side_effect = ConnectionError("network down")
        mock_create.return_value = llm

        result = server.generate_module_api(self.MODULE_JSON, "python")

        assert result.startswith("❌ API generation failed")
        assert "network down" in result
