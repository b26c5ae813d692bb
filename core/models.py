"""
Domain models shared by the assembler, the differ and the LLM services.

Payloads coming back from the LLM use camelCase keys (``hardwareMapping``,
``relatedModules``); every model accepts both spellings and dumps camelCase
with ``model_dump(by_alias=True)``.
"""
import logging
from collections import Counter
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class HardwareType(str, Enum):
    PROCESSOR = "processor"
    MEMORY = "memory"
    COMMUNICATION = "communication"
    SENSOR = "sensor"
    ACTUATOR = "actuator"
    POWER = "power"
    STORAGE = "storage"
    INTERFACE = "interface"
    DISPLAY = "display"
    # Anything the analysis returns outside the known categories
    OTHER = "other"


class Layer(str, Enum):
    APPLICATION = "application"
    SERVICE = "service"
    MIDDLEWARE = "middleware"
    DRIVER = "driver"
    HAL = "hal"
    KERNEL = "kernel"

    @classmethod
    def ordered(cls) -> list["Layer"]:
        """Top-to-bottom emission order."""
        return [cls.APPLICATION, cls.SERVICE, cls.MIDDLEWARE, cls.DRIVER, cls.HAL, cls.KERNEL]


class RequirementCategory(str, Enum):
    FUNCTIONAL = "functional"
    PERFORMANCE = "performance"
    INTERFACE = "interface"
    SAFETY = "safety"
    SECURITY = "security"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ProgrammingLanguage(str, Enum):
    TYPESCRIPT = "typescript"
    PYTHON = "python"
    C = "c"
    JAVA = "java"


class ConnectionType(str, Enum):
    DATA = "data"
    CONTROL = "control"
    EVENT = "event"


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class HardwareComponent(_Record):
    """One physical part found on the block diagram."""
    id: str
    name: str
    type: HardwareType
    connections: list[str] = Field(default_factory=list)
    specifications: dict[str, Any] = Field(default_factory=dict)

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_unknown_type(cls, value):
        if isinstance(value, HardwareType):
            return value
        normalized = str(value).strip().lower()
        try:
            return HardwareType(normalized)
        except ValueError:
            logging.warning(f"⚠️ Unknown hardware type '{value}', treating as 'other'")
            return HardwareType.OTHER

    @field_validator("specifications", mode="before")
    @classmethod
    def _none_specifications(cls, value):
        return value or {}


class SoftwareModule(_Record):
    """One node of the generated architecture graph."""
    id: str
    name: str
    layer: Layer
    dependencies: list[str] = Field(default_factory=list)
    interfaces: list[str] = Field(default_factory=list)
    hardware_mapping: Optional[str] = Field(None, alias="hardwareMapping")
    description: Optional[str] = None
    responsibilities: list[str] = Field(default_factory=list)


class ModuleConnection(_Record):
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    type: ConnectionType = ConnectionType.CONTROL


class SoftwareArchitecture(_Record):
    modules: list[SoftwareModule] = Field(default_factory=list)
    connections: list[ModuleConnection] = Field(default_factory=list)
    mermaid_diagram: str = Field("", alias="mermaidDiagram")

    def get_module(self, module_id: str) -> SoftwareModule:
        for module in self.modules:
            if module.id == module_id:
                return module
        raise KeyError(module_id)


class Requirement(_Record):
    """A generated requirement statement. ``version`` grows by one per edit."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    category: RequirementCategory
    description: str
    testable: bool = True
    priority: Priority = Priority.MEDIUM
    related_modules: list[str] = Field(default_factory=list, alias="relatedModules")
    version: int = Field(1, ge=1)

    @field_validator("category", "priority", mode="before")
    @classmethod
    def _lowercase(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class DiffResult(_Record):
    added: list[Requirement] = Field(default_factory=list)
    modified: list[Requirement] = Field(default_factory=list)
    removed: list[Requirement] = Field(default_factory=list)
    impacted_modules: list[str] = Field(default_factory=list, alias="impactedModules")

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.removed)


class SuggestedArchitecture(_Record):
    layers: list[str] = Field(default_factory=list)
    modules: list[str] = Field(default_factory=list)
    interfaces: list[str] = Field(default_factory=list)


class AnalysisResult(_Record):
    """What the diagram analysis returns: hardware inventory plus requirements."""
    hardware_components: list[HardwareComponent] = Field(default_factory=list, alias="hardwareComponents")
    suggested_architecture: SuggestedArchitecture = Field(
        default_factory=SuggestedArchitecture, alias="suggestedArchitecture"
    )
    requirements: list[Requirement] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_ids(self):
        ensure_unique_ids(self.hardware_components, "hardware component")
        ensure_unique_ids(self.requirements, "requirement")
        return self


class GeneratedAPI(_Record):
    module_id: str = Field(alias="moduleId")
    module_name: str = Field(alias="moduleName")
    language: ProgrammingLanguage
    content: str
    data_structures: Optional[str] = Field(None, alias="dataStructures")
    examples: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class BlockDetails(_Record):
    module: SoftwareModule
    connected_modules: list[SoftwareModule] = Field(default_factory=list, alias="connectedModules")
    related_requirements: list[Requirement] = Field(default_factory=list, alias="relatedRequirements")
    apis: list[GeneratedAPI] = Field(default_factory=list)


def ensure_unique_ids(items: Iterable[Any], kind: str) -> None:
    """Raise ValueError if two items share an ``id``."""
    counts = Counter(item.id for item in items)
    duplicates = sorted(item_id for item_id, count in counts.items() if count > 1)
    if duplicates:
        raise ValueError(f"Duplicate {kind} id(s): {', '.join(duplicates)}")
