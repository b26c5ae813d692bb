"""
Requirement versioning: diffing two requirement lists and applying edits.
"""
import difflib
import logging
from typing import Any, Iterable, Mapping

from core.models import DiffResult, Requirement, ensure_unique_ids


def requirements_equal(a: Requirement, b: Requirement) -> bool:
    """Field equality used by the differ. ``version`` and module order are ignored."""
    return (
        a.description == b.description
        and a.category == b.category
        and a.priority == b.priority
        and a.testable == b.testable
        and set(a.related_modules) == set(b.related_modules)
    )


class RequirementDiffer:
    """
    Compares two versions of a requirement list keyed by requirement id.

    ``impacted_modules`` keeps first-seen order: the walk over the old list
    (removed records, then old+new modules of modified records) comes before
    the added records of the new list.
    """

    def diff(self, old: Iterable[Requirement], new: Iterable[Requirement]) -> DiffResult:
        old = list(old)
        new = list(new)
        ensure_unique_ids(old, "requirement")
        ensure_unique_ids(new, "requirement")

        old_by_id = {req.id: req for req in old}
        new_by_id = {req.id: req for req in new}

        added, modified, removed = [], [], []
        impacted: dict[str, None] = {}

        def touch(modules: Iterable[str]):
            for module_id in modules:
                impacted.setdefault(module_id, None)

        for old_req in old:
            new_req = new_by_id.get(old_req.id)
            if new_req is None:
                removed.append(old_req)
                touch(old_req.related_modules)
            elif not requirements_equal(old_req, new_req):
                modified.append(new_req)
                touch(old_req.related_modules)
                touch(new_req.related_modules)

        for new_req in new:
            if new_req.id not in old_by_id:
                added.append(new_req)
                touch(new_req.related_modules)

        logging.info(
            f"📊 Requirement diff: +{len(added)} ~{len(modified)} -{len(removed)}, "
            f"{len(impacted)} impacted modules"
        )
        return DiffResult(
            added=added,
            modified=modified,
            removed=removed,
            impacted_modules=list(impacted),
        )


def diff(old: Iterable[Requirement], new: Iterable[Requirement]) -> DiffResult:
    return RequirementDiffer().diff(old, new)


def summarize(result: DiffResult) -> str:
    """Human-readable report of a diff (Markdown)."""
    lines = []
    groups = (
        ("Added", "+", result.added),
        ("Modified", "~", result.modified),
        ("Removed", "-", result.removed),
    )
    for title, marker, requirements in groups:
        if not requirements:
            continue
        lines.append(f"**{title} Requirements ({len(requirements)}):**")
        lines.extend(f"{marker} {req.id}: {req.description}" for req in requirements)
        lines.append("")

    if result.impacted_modules:
        lines.append(f"**Impacted Modules ({len(result.impacted_modules)}):**")
        lines.extend(f"• {module_id}" for module_id in result.impacted_modules)

    return "\n".join(lines)


def highlight_differences(old: Iterable[Requirement], new: Iterable[Requirement]) -> dict[str, set[str]]:
    """Requirement ids per change kind, for row highlighting."""
    result = diff(old, new)
    return {
        "added": {req.id for req in result.added},
        "modified": {req.id for req in result.modified},
        "removed": {req.id for req in result.removed},
    }


def generate_text_diff(old_text: str, new_text: str) -> str:
    """Line diff with ``+ ``/``- ``/``  `` prefixes; blank lines are dropped."""
    old_lines = [line for line in old_text.splitlines() if line]
    new_lines = [line for line in new_text.splitlines() if line]

    out = []
    matcher = difflib.SequenceMatcher(a=old_lines, b=new_lines, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            out.extend(f"  {line}" for line in old_lines[i1:i2])
            continue
        out.extend(f"- {line}" for line in old_lines[i1:i2])
        out.extend(f"+ {line}" for line in new_lines[j1:j2])
    return "".join(f"{line}\n" for line in out)


def apply_requirement_changes(
    current: Iterable[Requirement],
    changes: Iterable[Mapping[str, Any]],
) -> list[Requirement]:
    """
    Merge partial edits into a requirement list.

    Each change must carry an ``id``; the matching requirement gets the other
    fields overwritten and its version bumped by one. Changes that leave every
    field as it was, and changes for unknown ids, are ignored. The input list is not modified.
    """
    updated = list(current)
    index_by_id = {req.id: i for i, req in enumerate(updated)}

    for change in changes:
        req_id = change.get("id")
        if req_id not in index_by_id:
            logging.debug(f"Ignoring change for unknown requirement '{req_id}'")
            continue
        i = index_by_id[req_id]
        fields = updated[i].model_dump(by_alias=True)
        for key, value in change.items():
            if key in ("id", "version"):
                continue
            field_info = Requirement.model_fields.get(key)
            fields[(field_info.alias or key) if field_info else key] = value
        candidate = Requirement.model_validate(fields)
        if candidate == updated[i]:
            logging.debug(f"Change for '{req_id}' leaves it as is; version kept")
            continue
        updated[i] = candidate.model_copy(update={"version": candidate.version + 1})

    return updated


def remove_requirement(current: Iterable[Requirement], requirement_id: str) -> list[Requirement]:
    return [req for req in current if req.id != requirement_id]
