"""
Mermaid flowchart generation for the layered architecture.

Building happens in two steps: ``MermaidDiagramBuilder.plan`` decides which
sections, nodes, edges and styles go into the picture and returns plain
records; ``render_mermaid`` turns a plan into Mermaid text in one pass.
"""
import hashlib
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from core.models import HardwareComponent, Layer, SoftwareModule

# Max nodes listed individually per group before collapsing the rest
DRIVER_GROUP_LIMIT = 2
HARDWARE_GROUP_LIMIT = 3

LAYER_TITLES = {
    Layer.APPLICATION: "Application Layer",
    Layer.SERVICE: "Service Layer",
    Layer.MIDDLEWARE: "Middleware Layer",
    Layer.DRIVER: "Driver Layer",
    Layer.HAL: "HAL Layer",
    Layer.KERNEL: "OS/Kernel",
}

LAYER_CLASSES = {
    Layer.APPLICATION: "appClass",
    Layer.SERVICE: "serviceClass",
    Layer.MIDDLEWARE: "middlewareClass",
    Layer.DRIVER: "driverClass",
    Layer.HAL: "halClass",
    Layer.KERNEL: "kernelClass",
}
HARDWARE_CLASS = "hwClass"
COLLAPSED_CLASS = "moreClass"
CHANGED_CLASS = "changed"

CLASS_DEFS = {
    "appClass": "fill:#e3f2fd,stroke:#1565c0,stroke-width:2px,color:#000",
    "serviceClass": "fill:#f3e5f5,stroke:#7b1fa2,stroke-width:2px,color:#000",
    "middlewareClass": "fill:#e1f5fe,stroke:#0277bd,stroke-width:2px,color:#000",
    "driverClass": "fill:#fff3e0,stroke:#ef6c00,stroke-width:2px,color:#000",
    "halClass": "fill:#e8f5e9,stroke:#2e7d32,stroke-width:2px,color:#000",
    "kernelClass": "fill:#fce4ec,stroke:#c2185b,stroke-width:2px,color:#000",
    "hwClass": "fill:#f5f5f5,stroke:#424242,stroke-width:2px,stroke-dasharray: 5 5,color:#000",
    "moreClass": "fill:#fffde7,stroke:#f57f17,stroke-width:1px,font-style:italic,color:#666",
}
CHANGED_STYLE = "fill:#ffeb3b,stroke:#f57c00,stroke-width:3px"

# Mermaid keywords that break the parser when used as a node id
_RESERVED_IDS = {"end", "graph", "subgraph", "class", "classdef", "style", "click", "direction"}


@dataclass
class DiagramNode:
    id: str
    label: str
    css_class: str
    shape: str = "box"  # box | parallelogram
    collapsed: bool = False


@dataclass
class DiagramSection:
    id: str
    title: str
    nodes: list[DiagramNode] = field(default_factory=list)
    sections: list["DiagramSection"] = field(default_factory=list)
    direction: Optional[str] = None

    def iter_nodes(self):
        yield from self.nodes
        for section in self.sections:
            yield from section.iter_nodes()


@dataclass
class DiagramEdge:
    source: str
    target: str
    dashed: bool = False


@dataclass
class DiagramPlan:
    sections: list[DiagramSection] = field(default_factory=list)
    edges: list[DiagramEdge] = field(default_factory=list)
    direction: str = "LR"

    def iter_nodes(self):
        for section in self.sections:
            yield from section.iter_nodes()

    def node_ids(self) -> set[str]:
        return {node.id for node in self.iter_nodes()}

    def find_section(self, section_id: str) -> Optional[DiagramSection]:
        stack = list(self.sections)
        while stack:
            section = stack.pop()
            if section.id == section_id:
                return section
            stack.extend(section.sections)
        return None


def mermaid_id(raw: str) -> str:
    """
    Make a token safe to use as a Mermaid node id.

    Ids that are already safe pass through unchanged. Anything rewritten gets
    a short hash of the original appended, so ``hw-1`` and ``hw 1`` stay two
    distinct nodes and the same input always maps to the same id.
    """
    raw = str(raw).strip()
    safe = re.sub(r"[^A-Za-z0-9_]", "_", raw)
    if safe == raw and raw and raw.lower() not in _RESERVED_IDS:
        return raw
    digest = hashlib.sha1(raw.encode("utf-8")).hexdigest()[:6]
    return f"{safe or '_'}_{digest}"


def escape_label(text: str) -> str:
    """Quote-safe label text for ``["..."]`` nodes."""
    text = re.sub(r"\s+", " ", str(text)).strip()
    return text.replace('"', "#quot;")


class MermaidDiagramBuilder:
    """
    Decides the content of the architecture diagram.

    Only a handful of illustrative edges are drawn (one per adjacent layer
    pair plus one dashed driver-to-hardware link); the full dependency list
    of each module is not rendered.
    """

    def __init__(self, driver_limit: int = DRIVER_GROUP_LIMIT, hardware_limit: int = HARDWARE_GROUP_LIMIT):
        self.driver_limit = driver_limit
        self.hardware_limit = hardware_limit

    def plan(self, modules: list[SoftwareModule], hardware: list[HardwareComponent]) -> DiagramPlan:
        by_layer: dict[Layer, list[SoftwareModule]] = {layer: [] for layer in Layer.ordered()}
        for module in modules:
            by_layer[module.layer].append(module)

        hardware_types = {hw.id: hw.type.value for hw in hardware}

        software = DiagramSection(id="software_architecture", title="Software Architecture", direction="TB")
        visible: dict[Layer, list[SoftwareModule]] = {}
        for layer in Layer.ordered():
            layer_modules = by_layer[layer]
            if not layer_modules:
                continue
            section = DiagramSection(id=f"layer_{layer.value}", title=LAYER_TITLES[layer])
            if layer == Layer.DRIVER:
                shown = self._add_drivers(section, layer_modules, hardware_types)
            else:
                shown = layer_modules
                section.nodes.extend(self._module_node(m) for m in layer_modules)
            visible[layer] = shown
            software.sections.append(section)

        plan = DiagramPlan(sections=[software])

        shown_hardware: set[str] = set()
        if hardware:
            hw_section = DiagramSection(id="hardware_components", title="Hardware Components", direction="TB")
            groups: dict[str, list[HardwareComponent]] = {}
            for hw in hardware:
                groups.setdefault(hw.type.value, []).append(hw)
            for hw_type, components in groups.items():
                for hw in components[:self.hardware_limit]:
                    hw_section.nodes.append(
                        DiagramNode(id=mermaid_id(hw.id), label=hw.name, css_class=HARDWARE_CLASS, shape="parallelogram")
                    )
                    shown_hardware.add(hw.id)
                hidden = len(components) - self.hardware_limit
                if hidden > 0:
                    hw_section.nodes.append(DiagramNode(
                        id=f"more_hw_{mermaid_id(hw_type)}",
                        label=f"... +{hidden} more {hw_type}",
                        css_class=COLLAPSED_CLASS,
                        shape="parallelogram",
                        collapsed=True,
                    ))
            plan.sections.append(hw_section)

        plan.edges = self._layer_edges(visible, shown_hardware)
        logging.debug(
            f"Diagram plan: {len(plan.node_ids())} nodes, {len(plan.edges)} edges"
        )
        return plan

    def _module_node(self, module: SoftwareModule) -> DiagramNode:
        return DiagramNode(id=mermaid_id(module.id), label=module.name, css_class=LAYER_CLASSES[module.layer])

    def _add_drivers(self, section: DiagramSection, drivers: list[SoftwareModule], hardware_types: dict[str, str]):
        groups: dict[str, list[SoftwareModule]] = {}
        for driver in drivers:
            group = hardware_types.get(driver.hardware_mapping or "", "other")
            groups.setdefault(group, []).append(driver)

        shown = []
        for group, members in groups.items():
            for driver in members[:self.driver_limit]:
                section.nodes.append(self._module_node(driver))
                shown.append(driver)
            hidden = len(members) - self.driver_limit
            if hidden > 0:
                section.nodes.append(DiagramNode(
                    id=f"more_driver_{mermaid_id(group)}",
                    label=f"... +{hidden} more {group} drivers",
                    css_class=COLLAPSED_CLASS,
                    collapsed=True,
                ))
        return shown

    def _layer_edges(self, visible: dict[Layer, list[SoftwareModule]], shown_hardware: set[str]) -> list[DiagramEdge]:
        edges = []
        pairs = [
            (Layer.APPLICATION, Layer.SERVICE),
            (Layer.SERVICE, Layer.DRIVER),
            (Layer.DRIVER, Layer.HAL),
            (Layer.HAL, Layer.KERNEL),
        ]
        for upper, lower in pairs:
            sources, targets = visible.get(upper), visible.get(lower)
            if not sources or not targets:
                continue
            source = sources[0]
            target_ids = {t.id for t in targets}
            target = next((dep for dep in source.dependencies if dep in target_ids), targets[0].id)
            edges.append(DiagramEdge(source=mermaid_id(source.id), target=mermaid_id(target)))

        for driver in visible.get(Layer.DRIVER, []):
            if driver.hardware_mapping and driver.hardware_mapping in shown_hardware:
                edges.append(DiagramEdge(
                    source=mermaid_id(driver.id),
                    target=mermaid_id(driver.hardware_mapping),
                    dashed=True,
                ))
                break
        return edges


def _render_node(node: DiagramNode) -> str:
    label = escape_label(node.label)
    if node.shape == "parallelogram":
        return f'{node.id}[/"{label}"/]'
    return f'{node.id}["{label}"]'


def _render_section(section: DiagramSection, depth: int, lines: list[str]) -> None:
    pad = "  " * depth
    lines.append(f'{pad}subgraph {section.id}["{escape_label(section.title)}"]')
    if section.direction:
        lines.append(f"{pad}  direction {section.direction}")
    for node in section.nodes:
        lines.append(f"{pad}  {_render_node(node)}")
    for child in section.sections:
        _render_section(child, depth + 1, lines)
    lines.append(f"{pad}end")


def render_mermaid(plan: DiagramPlan) -> str:
    """Serialize a plan into Mermaid flowchart text."""
    lines = [f"graph {plan.direction}"]
    for section in plan.sections:
        _render_section(section, 1, lines)
    lines.append("")

    for edge in plan.edges:
        arrow = "-.->" if edge.dashed else "-->"
        lines.append(f"  {edge.source} {arrow} {edge.target}")
    lines.append("")

    for name, style in CLASS_DEFS.items():
        lines.append(f"  classDef {name} {style};")

    by_class: dict[str, list[str]] = {}
    for node in plan.iter_nodes():
        by_class.setdefault(node.css_class, []).append(node.id)
    for css_class, ids in by_class.items():
        lines.append(f"  class {','.join(ids)} {css_class};")

    return "\n".join(lines) + "\n"


def generate_mermaid_diagram(modules: list[SoftwareModule], hardware: list[HardwareComponent]) -> str:
    return render_mermaid(MermaidDiagramBuilder().plan(modules, hardware))


_NODE_DECL_RE = r"^\s*{id}\s*(\[|\(|\{{)"


def highlight_changes(diagram: str, module_ids: list[str]) -> str:
    """
    Mark the given modules as changed in an existing diagram.

    Ids not declared as nodes (collapsed into a "+K more" placeholder, or
    unknown) are skipped so no stray nodes appear.
    """
    declared = []
    for module_id in module_ids:
        node_id = mermaid_id(module_id)
        if node_id in declared:
            continue
        if re.search(_NODE_DECL_RE.format(id=re.escape(node_id)), diagram, re.MULTILINE):
            declared.append(node_id)

    if not declared:
        return diagram

    lines = [diagram.rstrip("\n"), f"  classDef {CHANGED_CLASS} {CHANGED_STYLE};"]
    lines.append(f"  class {','.join(declared)} {CHANGED_CLASS};")
    return "\n".join(lines) + "\n"


_TITLE_TO_LAYER = {title: layer for layer, title in LAYER_TITLES.items()}
_SUBGRAPH_RE = re.compile(r'^\s*subgraph\s+(?:\w+\s*\[)?"([^"]+)"\]?')
_MODULE_RE = re.compile(r'^\s*(\w+)\["([^"]*)"\]')
_EDGE_RE = re.compile(r"^\s*(\w+)\s+-->\s+(\w+)")


def parse_mermaid_to_modules(diagram: str) -> list[SoftwareModule]:
    """
    Recover software modules from a generated diagram.

    Layer membership comes from the enclosing section title; ``-->`` edges
    are recorded as dependencies of the edge target. Collapsed placeholders
    and hardware nodes are skipped.
    """
    modules: dict[str, SoftwareModule] = {}
    stack: list[Optional[Layer]] = []

    for line in diagram.splitlines():
        stripped = line.strip()
        subgraph = _SUBGRAPH_RE.match(line)
        if subgraph:
            stack.append(_TITLE_TO_LAYER.get(subgraph.group(1)))
            continue
        if stripped == "end":
            if stack:
                stack.pop()
            continue

        layer = stack[-1] if stack else None
        node = _MODULE_RE.match(line)
        if node and layer is not None:
            label = node.group(2).replace("#quot;", '"')
            if not label.startswith("..."):
                modules[node.group(1)] = SoftwareModule(id=node.group(1), name=label, layer=layer)
            continue

        edge = _EDGE_RE.match(line)
        if edge:
            target = modules.get(edge.group(2))
            if target and edge.group(1) not in target.dependencies:
                target.dependencies.append(edge.group(1))

    return list(modules.values())
