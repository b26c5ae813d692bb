import base64
import io
import json
import logging
from pathlib import Path
from typing import Optional, Union

from PIL import Image
from pydantic import ValidationError
from langchain_core.messages import HumanMessage, SystemMessage

from core.llm_factory import create_analysis_llm
from core.models import AnalysisResult, SoftwareArchitecture
from services.architecture_service import ArchitectureAssembler


class AnalysisError(RuntimeError):
    """The hardware diagram could not be analyzed. The message is shown to the user."""


ANALYSIS_PROMPT = """
You are an expert system architect. Analyze this hardware block diagram and the provided system requirements to generate a software architecture.

System Requirements:
{system_requirements}

Please identify:
1. All hardware components (processors, memory, interfaces, sensors, etc.)
2. Their connections and communication protocols
3. Suggest a layered software architecture
4. Generate testable software requirements

Return the analysis in the following JSON format:
{{
  "hardwareComponents": [
    {{
      "id": "unique_id",
      "name": "component_name",
      "type": "processor|memory|communication|sensor|actuator|power|storage|interface|display",
      "connections": ["connected_component_ids"],
      "specifications": {{}}
    }}
  ],
  "suggestedArchitecture": {{
    "layers": ["application", "service", "driver", "hal", "kernel"],
    "modules": ["module_names"],
    "interfaces": ["interface_names"]
  }},
  "requirements": [
    {{
      "id": "REQ_001",
      "category": "functional|performance|interface|safety|security",
      "description": "requirement description",
      "testable": true,
      "priority": "high|medium|low",
      "relatedModules": ["module_ids"],
      "version": 1
    }}
  ]
}}
"""

ImageInput = Union[Image.Image, str, Path, bytes]


def encode_image(image: ImageInput, max_side: int = 2048) -> str:
    """
    Normalize an uploaded diagram to a base64 JPEG string.

    Accepts a Pillow image, a file path or raw bytes. Large images are
    downscaled so the longest side is at most ``max_side`` pixels.
    """
    if isinstance(image, (str, Path)):
        image = Image.open(image)
    elif isinstance(image, bytes):
        image = Image.open(io.BytesIO(image))

    image = image.convert("RGB")
    image.thumbnail((max_side, max_side))

    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=90)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


class HardwareAnalyzer:
    """
    Reads a hardware block diagram with a vision LLM.
    Returns the hardware inventory plus an initial requirement list.
    """

    def __init__(self, llm=None):
        self.llm = llm or create_analysis_llm()

    def analyze(self, image: ImageInput, system_requirements: str) -> AnalysisResult:
        if not system_requirements or not system_requirements.strip():
            raise ValueError("System requirements must not be empty")

        try:
            image_b64 = encode_image(image)
        except OSError as e:
            logging.error(f"Unreadable diagram image: {e}")
            raise AnalysisError(f"Could not read diagram image: {e}") from e
        logging.info("🔍 Analyzing hardware diagram...")

        messages = [
            SystemMessage(content="You are a JSON-only hardware analysis assistant."),
            HumanMessage(content=[
                {"type": "text", "text": ANALYSIS_PROMPT.format(system_requirements=system_requirements)},
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:image/jpeg;base64,{image_b64}", "detail": "high"},
                },
            ]),
        ]

        try:
            response = self.llm.invoke(messages)
        except Exception as e:
            logging.error(f"Hardware analysis call failed: {e}")
            raise AnalysisError(f"Failed to analyze hardware diagram: {e}") from e

        content = response.content if isinstance(response.content, str) else ""
        if not content.strip():
            raise AnalysisError("No response from the analysis model")

        try:
            data = json.loads(self._clean_json_output(content))
            result = AnalysisResult.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            logging.error(f"Unusable analysis response: {e}")
            raise AnalysisError(f"Analysis returned an invalid result: {e}") from e

        logging.info(
            f"✅ Found {len(result.hardware_components)} hardware components, "
            f"{len(result.requirements)} requirements"
        )
        return result

    def _clean_json_output(self, content: str) -> str:
        """Strips markdown fences around the JSON payload."""
        if "```json" in content:
            content = content.split("```json")[1].split("```")[0]
        elif "```" in content:
            content = content.split("```")[1].split("```")[0]
        return content.strip()


class SystemAnalysisService:
    """Diagram + requirements in, analysis and assembled architecture out."""

    def __init__(self, analyzer: Optional[HardwareAnalyzer] = None, assembler: Optional[ArchitectureAssembler] = None):
        self.analyzer = analyzer or HardwareAnalyzer()
        self.assembler = assembler or ArchitectureAssembler()

    def run(self, image: ImageInput, system_requirements: str) -> tuple[AnalysisResult, SoftwareArchitecture]:
        analysis = self.analyzer.analyze(image, system_requirements)
        architecture = self.assembler.assemble(analysis.hardware_components)
        return analysis, architecture
