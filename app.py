import gradio as gr
import logging
import sys
from pathlib import Path

# --- SETUP PATHS ---
sys.path.insert(0, str(Path(__file__).parent))

# --- IMPORTS ---
from core.models import ProgrammingLanguage, Requirement, SoftwareArchitecture
from core.settings import settings
from services.analysis_service import AnalysisError, HardwareAnalyzer, SystemAnalysisService
from services.api_generation_service import APIGenerationError, APIGenerator
from services.architecture_service import get_block_details
from services.diagram_service import highlight_changes
from services.diff_service import apply_requirement_changes, diff, remove_requirement, summarize
from services.render_service import MermaidRenderer, RenderError
from core.llm_factory import create_analysis_llm, create_api_llm

# --- LOGGING SETUP ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
for lib in ["httpx", "httpcore", "urllib3"]:
    logging.getLogger(lib).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

# --- CONFIG ---
PROVIDERS = ["openai", "nebius"]
LANGUAGES = [lang.value for lang in ProgrammingLanguage]
REQUIREMENT_HEADERS = ["ID", "Category", "Priority", "Testable", "Description", "Modules", "Version"]

renderer = MermaidRenderer()
renderer.initialize()


# --- HELPER FUNCTIONS ---
def render_diagram(diagram_text: str):
    """Render Mermaid text to an image; None if the render server is unavailable."""
    if not diagram_text:
        return None
    try:
        return renderer.render(diagram_text)
    except RenderError as e:
        logger.error(f"Diagram render error: {e}")
        return None


def requirement_rows(requirements: list[dict]) -> list[list]:
    rows = []
    for req in requirements:
        rows.append([
            req["id"],
            req["category"],
            req["priority"],
            "yes" if req["testable"] else "no",
            req["description"],
            ", ".join(req["relatedModules"]),
            req["version"],
        ])
    return rows


def _load_requirements(requirements_state: list[dict]) -> list[Requirement]:
    return [Requirement.model_validate(r) for r in requirements_state or []]


def _dump_requirements(requirements: list[Requirement]) -> list[dict]:
    return [r.model_dump(mode="json", by_alias=True) for r in requirements]


# --- TAB 1: ANALYSIS ---
def run_analysis(image, system_requirements: str, provider: str = "openai"):
    """
    Analyze the uploaded block diagram and build the software architecture.
    """
    empty = (None, "", None, [], None, [], gr.update(choices=[]), gr.update(choices=[]))
    if image is None:
        return ("⚠️ Please upload a hardware block diagram.",) + empty
    if not system_requirements or not system_requirements.strip():
        return ("⚠️ Please describe the system requirements.",) + empty

    try:
        service = SystemAnalysisService(analyzer=HardwareAnalyzer(create_analysis_llm(provider)))
        analysis, architecture = service.run(image, system_requirements)
    except (AnalysisError, ValueError, RuntimeError) as e:
        logger.error(f"Analysis failed: {e}")
        return (f"❌ {e}",) + empty

    requirements = _dump_requirements(analysis.requirements)
    hardware = [hw.model_dump(mode="json", by_alias=True) for hw in analysis.hardware_components]
    module_ids = [m.id for m in architecture.modules]
    requirement_ids = [r["id"] for r in requirements]

    status = (
        f"✅ Found **{len(hardware)}** hardware components, "
        f"generated **{len(architecture.modules)}** modules and **{len(requirements)}** requirements."
    )
    return (
        status,
        render_diagram(architecture.mermaid_diagram),
        architecture.mermaid_diagram,
        hardware,
        requirement_rows(requirements),
        architecture.model_dump(mode="json", by_alias=True),
        requirements,
        gr.update(choices=module_ids, value=module_ids[0] if module_ids else None),
        gr.update(choices=requirement_ids, value=requirement_ids[0] if requirement_ids else None),
    )


# --- TAB 2: MODULE APIs ---
def generate_module_api(module_id: str, language: str, architecture_state: dict, requirements_state: list, provider: str = "openai"):
    if not architecture_state or not module_id:
        return "", "", "⚠️ Run an analysis and pick a module first."

    architecture = SoftwareArchitecture.model_validate(architecture_state)
    requirements = _load_requirements(requirements_state)

    try:
        details = get_block_details(module_id, architecture, requirements)
    except KeyError:
        return "", "", f"⚠️ Unknown module: {module_id}"

    try:
        generator = APIGenerator(create_api_llm(provider))
        api = generator.generate(
            details.module,
            language,
            requirements=[f"{r.id}: {r.description}" for r in details.related_requirements],
            connected_modules=[m.name for m in details.connected_modules],
        )
    except (APIGenerationError, ValueError, RuntimeError) as e:
        logger.error(f"API generation failed: {e}")
        return "", "", f"❌ {e}"

    summary = [
        f"### {details.module.name}",
        f"**Layer:** {details.module.layer.value}",
        f"**Interfaces:** {', '.join(details.module.interfaces) or '-'}",
        f"**Connected:** {', '.join(m.name for m in details.connected_modules) or '-'}",
        f"**Related requirements:** {len(details.related_requirements)}",
    ]
    return api.content, api.examples or "", "\n\n".join(summary)


# --- TAB 3: REQUIREMENT CHANGES ---
def _after_change(old: list[Requirement], new: list[Requirement], architecture_state: dict):
    result = diff(old, new)
    diagram = (architecture_state or {}).get("mermaidDiagram", "")
    highlighted = highlight_changes(diagram, result.impacted_modules) if diagram else ""
    report = summarize(result) or "No changes."
    new_state = _dump_requirements(new)
    return (
        report,
        render_diagram(highlighted),
        highlighted,
        new_state,
        requirement_rows(new_state),
        gr.update(choices=[r.id for r in new], value=new[0].id if new else None),
    )


def edit_requirement(requirement_id: str, description: str, priority: str, architecture_state: dict, requirements_state: list):
    old = _load_requirements(requirements_state)
    if not requirement_id:
        return ("⚠️ Select a requirement.", None, "", requirements_state, requirement_rows(requirements_state or []), gr.update())

    change = {"id": requirement_id}
    if description and description.strip():
        change["description"] = description.strip()
    if priority:
        change["priority"] = priority
    new = apply_requirement_changes(old, [change])
    return _after_change(old, new, architecture_state)


def delete_requirement(requirement_id: str, architecture_state: dict, requirements_state: list):
    old = _load_requirements(requirements_state)
    if not requirement_id:
        return ("⚠️ Select a requirement.", None, "", requirements_state, requirement_rows(requirements_state or []), gr.update())
    new = remove_requirement(old, requirement_id)
    return _after_change(old, new, architecture_state)


# --- GRADIO INTERFACE ---
with gr.Blocks(title=f"{settings.APP_NAME} - Hardware to Software Architecture", fill_height=True) as demo:

    gr.Markdown(f"# {settings.APP_NAME}\n{settings.APP_DESCRIPTION}")

    architecture_state = gr.State(None)
    requirements_state = gr.State([])

    with gr.Tabs():

        # TAB 1: Analysis
        with gr.Tab("🔍 Analyze Diagram", id=0):
            with gr.Row():
                with gr.Column(scale=1):
                    image_input = gr.Image(label="Hardware Block Diagram", type="pil")
                    requirements_input = gr.Textbox(
                        label="System Requirements",
                        lines=8,
                        placeholder="Describe what the system must do...",
                    )
                    provider_choice = gr.Dropdown(choices=PROVIDERS, value=settings.LLM_PROVIDER, label="LLM Provider")
                    analyze_btn = gr.Button("🔍 Generate Architecture", variant="primary", size="lg")

                with gr.Column(scale=2):
                    status_banner = gr.Markdown()
                    diagram_img = gr.Image(label="Software Architecture", type="pil")
                    with gr.Accordion("Mermaid Source", open=False):
                        diagram_code = gr.Code(language="markdown", lines=12, label="Mermaid")

            with gr.Row():
                hardware_json = gr.JSON(label="Hardware Components")
            requirements_table = gr.Dataframe(headers=REQUIREMENT_HEADERS, label="Requirements", interactive=False, wrap=True)

        # TAB 2: Module APIs
        with gr.Tab("🧩 Module APIs", id=1):
            with gr.Row():
                module_choice = gr.Dropdown(choices=[], label="Module", interactive=True)
                language_choice = gr.Radio(choices=LANGUAGES, value="python", label="Language")
                api_btn = gr.Button("⚙️ Generate API", variant="primary")
            module_details = gr.Markdown()
            api_code = gr.Code(language="markdown", lines=20, label="API")
            api_example = gr.Code(language="markdown", lines=10, label="Usage Example")

        # TAB 3: Requirement changes
        with gr.Tab("📝 Requirement Changes", id=2):
            with gr.Row():
                with gr.Column(scale=1):
                    requirement_choice = gr.Dropdown(choices=[], label="Requirement", interactive=True)
                    new_description = gr.Textbox(label="New Description", lines=3)
                    new_priority = gr.Dropdown(choices=["", "high", "medium", "low"], value="", label="New Priority")
                    with gr.Row():
                        edit_btn = gr.Button("✏️ Update", variant="primary")
                        remove_btn = gr.Button("🗑️ Remove", variant="stop")
                with gr.Column(scale=2):
                    diff_report = gr.Markdown()
                    changed_img = gr.Image(label="Impacted Modules", type="pil")
                    with gr.Accordion("Mermaid Source", open=False):
                        changed_code = gr.Code(language="markdown", lines=12)
            changes_table = gr.Dataframe(headers=REQUIREMENT_HEADERS, label="Current Requirements", interactive=False, wrap=True)

    # Event handlers
    analyze_btn.click(
        fn=run_analysis,
        inputs=[image_input, requirements_input, provider_choice],
        outputs=[
            status_banner, diagram_img, diagram_code, hardware_json, requirements_table,
            architecture_state, requirements_state, module_choice, requirement_choice,
        ],
    ).then(
        fn=lambda rows: rows,
        inputs=requirements_table,
        outputs=changes_table,
    )

    api_btn.click(
        fn=generate_module_api,
        inputs=[module_choice, language_choice, architecture_state, requirements_state, provider_choice],
        outputs=[api_code, api_example, module_details],
    )

    change_outputs = [diff_report, changed_img, changed_code, requirements_state, changes_table, requirement_choice]
    edit_btn.click(
        fn=edit_requirement,
        inputs=[requirement_choice, new_description, new_priority, architecture_state, requirements_state],
        outputs=change_outputs,
    )
    remove_btn.click(
        fn=delete_requirement,
        inputs=[requirement_choice, architecture_state, requirements_state],
        outputs=change_outputs,
    )


def main():
    demo.launch(
        server_name=settings.HOST,
        server_port=settings.PORT,
        share=False,
    )


if __name__ == "__main__":
    main()
