"""
Unit tests for API Generation Service

Tests for prompt construction, output splitting and error handling.
"""

import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from unittest.mock import MagicMock, Mock

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from core.models import Layer, ProgrammingLanguage, SoftwareModule
from services.api_generation_service import (
    APIGenerationError,
    APIGenerator,
    USAGE_EXAMPLE_MARKER,
    parse_language,
)


MODULE = SoftwareModule(
    id="drv_imu",
    name="IMU Driver",
    layer=Layer.DRIVER,
    dependencies=["hal_io"],
    interfaces=["IMU Interface"],
    hardware_mapping="imu",
)

LLM_OUTPUT = f"""```python
class IMUDriver:
    def read(self) -> bytes: ...
```

{USAGE_EXAMPLE_MARKER}
```python
driver = IMUDriver()
driver.read()
```"""


@pytest.fixture
def mock_llm():
    llm = Mock(spec=BaseChatModel)
    llm.invoke.return_value = MagicMock(content=LLM_OUTPUT)
    return llm


class TestParseLanguage:
    """Test language selection"""

    @pytest.mark.parametrize("raw,expected", [
        ("python", ProgrammingLanguage.PYTHON),
        ("TypeScript", ProgrammingLanguage.TYPESCRIPT),
        (" c ", ProgrammingLanguage.C),
        (ProgrammingLanguage.JAVA, ProgrammingLanguage.JAVA),
    ])
    def test_supported(self, raw, expected):
        """Should accept the supported languages in any case"""
        assert parse_language(raw) == expected

    def test_unsupported(self):
        """Should reject unknown languages with the supported list"""
        with pytest.raises(ValueError) as exc_info:
            parse_language("rust")

        assert "Unsupported language" in str(exc_info.value)
        assert "typescript" in str(exc_info.value)


class TestAPIGenerator:
    """Test API stub generation"""

    def test_splits_api_and_example(self, mock_llm):
        """Should separate the API from the usage example and strip fences"""
        api = APIGenerator(mock_llm).generate(MODULE, "python")

        assert api.module_id == "drv_imu"
        assert api.module_name == "IMU Driver"
        assert api.language == ProgrammingLanguage.PYTHON
        assert api.content.startswith("class IMUDriver:")
        assert "```" not in api.content
        assert USAGE_EXAMPLE_MARKER not in api.content
        assert api.examples == "driver = IMUDriver()\ndriver.read()"

    def test_no_example_section(self, mock_llm):
        """Should leave examples empty when the marker is missing"""
        mock_llm.invoke.return_value = MagicMock(content="int imu_read(void);")

        api = APIGenerator(mock_llm).generate(MODULE, "c")

        assert api.content == "int imu_read(void);"
        assert api.examples is None

    def test_messages(self, mock_llm):
        """Should send a system prompt and a module-specific user prompt"""
        APIGenerator(mock_llm).generate(
            MODULE, "java", requirements=["REQ_001: sample at 100 Hz"], connected_modules=["hal_io"]
        )

        system, human = mock_llm.invoke.call_args[0][0]
        assert isinstance(system, SystemMessage)
        assert isinstance(human, HumanMessage)
        assert 'named "IMU Driver"' in human.content
        assert "Java interfaces and classes" in human.content
        assert "REQ_001: sample at 100 Hz" in human.content
        assert "Connected Modules:\nhal_io" in human.content
        assert USAGE_EXAMPLE_MARKER in human.content

    @pytest.mark.parametrize("language,style", [
        ("typescript", "TypeScript interfaces"),
        ("python", "Python classes"),
        ("c", "C header file"),
        ("java", "Java interfaces"),
    ])
    def test_language_specific_prompt(self, mock_llm, language, style):
        """Should describe the style of the requested language"""
        prompt = APIGenerator(mock_llm).build_prompt(MODULE, ProgrammingLanguage(language), [], [])

        assert style in prompt
        assert "Related Requirements" not in prompt
        assert "- Dependencies: hal_io" in prompt

    def test_unsupported_language_skips_llm(self, mock_llm):
        """Should fail before calling the model"""
        with pytest.raises(ValueError):
            APIGenerator(mock_llm).generate(MODULE, "cobol")

        mock_llm.invoke.assert_not_called()

    @pytest.mark.parametrize("content", ["", "   ", [{"type": "text", "text": "class IMUDriver: ..."}]])
    def test_unusable_response(self, mock_llm, content):
        """Should fail on empty or non-text model output"""
        mock_llm.invoke.return_value = MagicMock(content=content)

        with pytest.raises(APIGenerationError) as exc_info:
            APIGenerator(mock_llm).generate(MODULE, "python")

        assert "No API returned" in str(exc_info.value)

    def test_llm_failure(self, mock_llm):
        """Should wrap model errors in APIGenerationError"""
        mock_llm.invoke.side_effect = TimeoutError("timed out")

        with pytest.raises(APIGenerationError) as exc_info:
            APIGenerator(mock_llm).generate(MODULE, "python")

        assert "timed out" in str(exc_info.value)
