import logging
from typing import Iterable, Optional, Union

from langchain_core.messages import HumanMessage, SystemMessage

from core.llm_factory import create_api_llm
from core.models import GeneratedAPI, ProgrammingLanguage, SoftwareModule

USAGE_EXAMPLE_MARKER = "### USAGE EXAMPLE"

SYSTEM_PROMPT = (
    "You are an expert software architect who generates clean, well-documented API interfaces "
    "for software modules. Generate practical, production-ready APIs with proper error handling "
    "and data structures."
)

LANGUAGE_SPECIFICS = {
    ProgrammingLanguage.TYPESCRIPT: {
        "style": "TypeScript interfaces and classes with proper typing",
        "conventions": "Use async/await, proper error types, and JSDoc comments",
        "example": "interface, class, type definitions",
    },
    ProgrammingLanguage.PYTHON: {
        "style": "Python classes with type hints and docstrings",
        "conventions": "Follow PEP 8, use type hints, include docstrings",
        "example": "class definitions with @property decorators and type hints",
    },
    ProgrammingLanguage.C: {
        "style": "C header file with function prototypes and structures",
        "conventions": "Use proper naming conventions, include guards, and documentation",
        "example": "typedef structs, function prototypes, and #define constants",
    },
    ProgrammingLanguage.JAVA: {
        "style": "Java interfaces and classes with proper annotations",
        "conventions": "Follow Java naming conventions, use JavaDoc, include annotations",
        "example": "interface definitions, abstract classes, and enums",
    },
}


class APIGenerationError(RuntimeError):
    """The LLM call for an API stub failed."""


def parse_language(language: Union[str, ProgrammingLanguage]) -> ProgrammingLanguage:
    try:
        return ProgrammingLanguage(str(getattr(language, "value", language)).strip().lower())
    except ValueError:
        supported = ", ".join(lang.value for lang in ProgrammingLanguage)
        raise ValueError(f"Unsupported language: '{language}'. Supported: {supported}") from None


class APIGenerator:
    """
    Asks the LLM for an API stub of a single architecture module.
    """
    def __init__(self, llm=None):
        self.llm = llm or create_api_llm()

    def generate(
        self,
        module: SoftwareModule,
        language: Union[str, ProgrammingLanguage],
        requirements: Optional[Iterable[str]] = None,
        connected_modules: Optional[Iterable[str]] = None,
    ) -> GeneratedAPI:
        language = parse_language(language)
        logging.info(f"🔨 Generating {language.value} API for: {module.id}")

        prompt = self.build_prompt(module, language, list(requirements or []), list(connected_modules or []))
        messages = [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(content=prompt),
        ]

        try:
            response = self.llm.invoke(messages)
        except Exception as e:
            logging.error(f"API generation failed for {module.id}: {e}")
            raise APIGenerationError(f"Failed to generate API: {e}") from e

        content = response.content if isinstance(response.content, str) else ""
        if not content.strip():
            raise APIGenerationError("No API returned by the model")

        main_api, _, examples = content.partition(USAGE_EXAMPLE_MARKER)
        return GeneratedAPI(
            module_id=module.id,
            module_name=module.name,
            language=language,
            content=self._clean_output(main_api),
            examples=self._clean_output(examples) or None,
        )

    def build_prompt(
        self,
        module: SoftwareModule,
        language: ProgrammingLanguage,
        requirements: list[str],
        connected_modules: list[str],
    ) -> str:
        spec = LANGUAGE_SPECIFICS[language]
        layer = module.layer.value

        details = [f"- Layer: {layer}", f"- Name: {module.name}"]
        if module.description:
            details.append(f"- Description: {module.description}")
        if module.responsibilities:
            details.append(f"- Responsibilities: {', '.join(module.responsibilities)}")
        if module.dependencies:
            details.append(f"- Dependencies: {', '.join(module.dependencies)}")
        if module.interfaces:
            details.append(f"- Interfaces: {', '.join(module.interfaces)}")

        prompt = f"""Generate a {language.value} API interface for a {layer} layer module named "{module.name}".

Module Details:
{chr(10).join(details)}

Language Requirements:
- Style: {spec['style']}
- Conventions: {spec['conventions']}
- Include: {spec['example']}
"""
        if requirements:
            prompt += "\nRelated Requirements:\n" + "\n".join(requirements) + "\n"
        if connected_modules:
            prompt += "\nConnected Modules:\n" + ", ".join(connected_modules) + "\n"

        prompt += f"""
Generate a comprehensive API that includes:
1. Main interface/class definition
2. Data structures/types needed
3. Core methods with parameters and return types
4. Error handling approach
5. Any constants or enums needed

After the API definition, add:
{USAGE_EXAMPLE_MARKER}
Provide a brief usage example showing how to use this API.

Make the API practical and production-ready for a {layer} layer component."""
        return prompt

    def _clean_output(self, text: str) -> str:
        text = text.strip()
        if text.startswith("```"):
            first_newline = text.find("\n")
            text = text[first_newline + 1:] if first_newline != -1 else ""
        if text.endswith("```"):
            text = text[:-3]
        return text.strip()
