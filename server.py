import sys
import json
import logging
from pathlib import Path
from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError
from dotenv import load_dotenv

load_dotenv()

# --- 🛡️ PROTOCOL PROTECTION & LOGGING SETUP 🛡️ ---
# stdout carries the MCP protocol, so logs go to stderr.
logging.basicConfig(
    level=logging.INFO,
    stream=sys.stderr,
    format='%(message)s'
)

for lib in ["httpx", "httpcore", "asyncio", "urllib3"]:
    logging.getLogger(lib).setLevel(logging.WARNING)

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

# 1. Initialize MCP Server
mcp = FastMCP("HW2SW Architect", dependencies=["langchain-openai", "langchain-core", "pillow"])

# 2. Import Core Logic
try:
    from core.llm_factory import create_analysis_llm, create_api_llm
    from core.models import HardwareComponent, Requirement, SoftwareModule
    from services.analysis_service import AnalysisError, HardwareAnalyzer, SystemAnalysisService
    from services.api_generation_service import APIGenerationError, APIGenerator
    from services.architecture_service import ArchitectureAssembler
    from services.diff_service import diff, summarize
    logging.info("✅ All services imported successfully")
except ImportError as e:
    logging.error(f"❌ Critical Import Error: {e}")
    raise


def _parse_list(payload: str, model, what: str) -> list:
    data = json.loads(payload) if payload.strip() else []
    if not isinstance(data, list):
        raise ValueError(f"{what} must be a JSON array")
    return [model.model_validate(item) for item in data]


# --- MCP TOOLS ---

@mcp.tool()
def analyze_hardware_diagram(image_path: str, system_requirements: str, provider: str = "openai") -> str:
    """
    Reads a hardware block diagram image and system requirements, and returns
    the hardware inventory, generated requirements and the layered software
    architecture (modules plus Mermaid diagram) as JSON.
    """
    try:
        path = Path(image_path).expanduser().resolve()
        if not path.is_file():
            return f"❌ Image not found: '{image_path}'"

        service = SystemAnalysisService(analyzer=HardwareAnalyzer(create_analysis_llm(provider)))
        analysis, architecture = service.run(path, system_requirements)
        logging.info(f"✓ Analyzed {path.name}")
        return json.dumps({
            "analysis": analysis.model_dump(mode="json", by_alias=True),
            "architecture": architecture.model_dump(mode="json", by_alias=True),
        }, indent=2)

    except (AnalysisError, ValueError, RuntimeError) as e:
        logging.error(f"❌ Analysis failed: {e}")
        return f"❌ Analysis failed: {e}"


@mcp.tool()
def assemble_architecture(hardware_json: str) -> str:
    """
    Builds the layered software architecture for a JSON array of hardware
    components ({id, name, type, connections, specifications}).
    Deterministic; no LLM call.
    """
    try:
        hardware = _parse_list(hardware_json, HardwareComponent, "hardware_json")
        architecture = ArchitectureAssembler().assemble(hardware)
        return json.dumps(architecture.model_dump(mode="json", by_alias=True), indent=2)
    except (json.JSONDecodeError, ValidationError, ValueError) as e:
        logging.error(f"❌ Assembly failed: {e}")
        return f"❌ Invalid hardware list: {e}"


@mcp.tool()
def diff_requirements(old_json: str, new_json: str, style: str = "summary") -> str:
    """
    Compares two JSON arrays of requirements by id.

    Args:
        old_json: Previous requirement list.
        new_json: Current requirement list.
        style: 'summary' for a readable report, 'json' for the full diff.
    """
    try:
        old = _parse_list(old_json, Requirement, "old_json")
        new = _parse_list(new_json, Requirement, "new_json")
        result = diff(old, new)
    except (json.JSONDecodeError, ValidationError, ValueError) as e:
        logging.error(f"❌ Diff failed: {e}")
        return f"❌ Invalid requirement list: {e}"

    if style == "json":
        return json.dumps(result.model_dump(mode="json", by_alias=True), indent=2)
    return summarize(result) or "No changes."


@mcp.tool()
def generate_module_api(
    module_json: str,
    language: str = "python",
    requirements: list[str] | None = None,
    connected_modules: list[str] | None = None,
    provider: str = "openai",
) -> str:
    """
    Generates an API stub for one architecture module.
    Supported languages: typescript, python, c, java.
    """
    try:
        module = SoftwareModule.model_validate(json.loads(module_json))
        generator = APIGenerator(create_api_llm(provider))
        api = generator.generate(module, language, requirements, connected_modules)
    except (json.JSONDecodeError, ValidationError) as e:
        return f"❌ Invalid module: {e}"
    except (APIGenerationError, ValueError, RuntimeError) as e:
        logging.error(f"❌ API generation failed: {e}")
        return f"❌ API generation failed: {e}"

    result = api.content
    if api.examples:
        result += f"\n\n### USAGE EXAMPLE\n{api.examples}"
    return result


def main():
    logging.info("🚀 Starting HW2SW Architect MCP server")
    mcp.run()


if __name__ == "__main__":
    main()
