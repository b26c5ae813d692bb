import logging
from typing import Iterable, Optional

from core.models import (
    BlockDetails,
    ConnectionType,
    HardwareComponent,
    HardwareType,
    Layer,
    ModuleConnection,
    Requirement,
    SoftwareArchitecture,
    SoftwareModule,
    ensure_unique_ids,
)
from services.diagram_service import MermaidDiagramBuilder, render_mermaid


# Fixed modules present in every generated architecture, whatever the hardware.
SCAFFOLD_MODULES: tuple[SoftwareModule, ...] = (
    SoftwareModule(
        id="app_main",
        name="Main Application",
        layer=Layer.APPLICATION,
        dependencies=["svc_data", "svc_comm"],
        interfaces=["User Interface", "API"],
    ),
    SoftwareModule(
        id="svc_data",
        name="Data Processing Service",
        layer=Layer.SERVICE,
        dependencies=["drv_storage", "drv_sensor"],
        interfaces=["Data API"],
    ),
    SoftwareModule(
        id="svc_comm",
        name="Communication Service",
        layer=Layer.SERVICE,
        dependencies=["drv_network", "drv_bluetooth"],
        interfaces=["Comm API"],
    ),
    SoftwareModule(
        id="hal_communication",
        name="Communication HAL",
        layer=Layer.HAL,
        dependencies=["kernel_io"],
        interfaces=["UART", "SPI", "I2C"],
    ),
    SoftwareModule(
        id="hal_memory",
        name="Memory HAL",
        layer=Layer.HAL,
        dependencies=["kernel_memory"],
        interfaces=["Memory Management"],
    ),
    SoftwareModule(
        id="hal_io",
        name="I/O HAL",
        layer=Layer.HAL,
        dependencies=["kernel_io"],
        interfaces=["GPIO", "ADC", "PWM"],
    ),
    SoftwareModule(
        id="kernel_io",
        name="I/O Subsystem",
        layer=Layer.KERNEL,
        dependencies=[],
        interfaces=["System Calls"],
    ),
    SoftwareModule(
        id="kernel_memory",
        name="Memory Management",
        layer=Layer.KERNEL,
        dependencies=[],
        interfaces=["Memory Allocation"],
    ),
)

# Which HAL module a driver for each hardware category sits on.
DRIVER_HAL_BY_TYPE: dict[HardwareType, str] = {
    HardwareType.COMMUNICATION: "hal_communication",
    HardwareType.STORAGE: "hal_memory",
    HardwareType.MEMORY: "hal_memory",
    HardwareType.SENSOR: "hal_io",
    HardwareType.INTERFACE: "hal_io",
}

# Categories that get no driver module at all.
UNMAPPED_TYPES = frozenset(t for t in HardwareType if t not in DRIVER_HAL_BY_TYPE)

DRIVER_PREFIX = "drv_"


def driver_id_for(hardware_id: str) -> str:
    return f"{DRIVER_PREFIX}{hardware_id}"


class ArchitectureAssembler:
    """
    Turns a hardware inventory into the canonical layered module graph.

    Deterministic and free of I/O: the same hardware list always gives the
    same modules and the same diagram text.
    """

    def __init__(self, diagram_builder: Optional[MermaidDiagramBuilder] = None):
        self.diagram_builder = diagram_builder or MermaidDiagramBuilder()

    def assemble(self, hardware_components: Iterable[HardwareComponent]) -> SoftwareArchitecture:
        hardware = list(hardware_components)
        ensure_unique_ids(hardware, "hardware component")
        drivers = self.build_drivers(hardware)

        modules = [m.model_copy(deep=True) for m in SCAFFOLD_MODULES if m.layer in (Layer.APPLICATION, Layer.SERVICE)]
        modules.extend(drivers)
        modules.extend(m.model_copy(deep=True) for m in SCAFFOLD_MODULES if m.layer in (Layer.HAL, Layer.KERNEL))

        plan = self.diagram_builder.plan(modules, hardware)
        diagram = render_mermaid(plan)

        logging.info(
            f"🏗️ Assembled {len(modules)} modules ({len(drivers)} drivers) from {len(hardware)} hardware components"
        )
        return SoftwareArchitecture(
            modules=modules,
            connections=build_connections(modules),
            mermaid_diagram=diagram,
        )

    def build_drivers(self, hardware: list[HardwareComponent]) -> list[SoftwareModule]:
        """One driver per hardware component whose category has a HAL mapping."""
        drivers = []
        for hw in hardware:
            hal_id = DRIVER_HAL_BY_TYPE.get(hw.type)
            if hal_id is None:
                logging.debug(f"No driver for '{hw.id}' (type {hw.type.value} is unmapped)")
                continue
            drivers.append(SoftwareModule(
                id=driver_id_for(hw.id),
                name=f"{hw.name} Driver",
                layer=Layer.DRIVER,
                dependencies=[hal_id],
                interfaces=[f"{hw.name} Interface"],
                hardware_mapping=hw.id,
            ))
        return drivers


def assemble(hardware_components: Iterable[HardwareComponent]) -> tuple[list[SoftwareModule], str]:
    """Functional form: ``(modules, diagram_text)``."""
    architecture = ArchitectureAssembler().assemble(hardware_components)
    return architecture.modules, architecture.mermaid_diagram


def build_connections(modules: list[SoftwareModule]) -> list[ModuleConnection]:
    """A control connection for every dependency that resolves to an emitted module."""
    known = {m.id for m in modules}
    return [
        ModuleConnection(source=m.id, target=dep, type=ConnectionType.CONTROL)
        for m in modules
        for dep in m.dependencies
        if dep in known
    ]


def find_dangling_dependencies(modules: list[SoftwareModule]) -> dict[str, list[str]]:
    """
    Map module id -> dependency ids that name no emitted module.

    Dangling references are allowed in an architecture (the scaffold services
    point at conventional driver ids that only exist for matching hardware);
    this is for callers that want to report them.
    """
    known = {m.id for m in modules}
    dangling = {}
    for module in modules:
        missing = [dep for dep in module.dependencies if dep not in known]
        if missing:
            dangling[module.id] = missing
    return dangling


def get_block_details(
    module_id: str,
    architecture: SoftwareArchitecture,
    requirements: Iterable[Requirement] = (),
) -> BlockDetails:
    """
    Collect what the UI shows for a selected diagram block.

    Raises:
        KeyError: If the module id is not part of the architecture
    """
    module = architecture.get_module(module_id)

    connected = []
    seen = set()
    for other in architecture.modules:
        if other.id == module.id or other.id in seen:
            continue
        if other.id in module.dependencies or module.id in other.dependencies:
            connected.append(other)
            seen.add(other.id)

    related = [req for req in requirements if module.id in req.related_modules]
    return BlockDetails(module=module, connected_modules=connected, related_requirements=related)
