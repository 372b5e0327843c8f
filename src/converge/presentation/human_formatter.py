"""Human-friendly output formatter for plans, apply results and state."""

import os
from typing import Any, Dict, List, Optional
from ..contracts.plan import FORCES_REPLACEMENT, ActionType, Change, ChangeKind, Plan
from ..contracts.result import ApplyResult, OutcomeStatus
from ..contracts.state import StateRecord, StateSnapshot
from ..contracts.values import render_value


def _use_ascii(ascii_mode: Optional[bool] = None) -> bool:
    """Resolve whether to use ASCII output (checked at format time)."""
    if ascii_mode is not None:
        return bool(ascii_mode)
    return os.environ.get("CONVERGE_ASCII", "").lower() in ("1", "true", "yes")


def _box(title: str, width: int = 65, ascii_mode: bool = False) -> List[str]:
    """Return box-drawing header lines."""
    b = {"tl": "+", "tr": "+", "h": "-", "v": "|"} if ascii_mode else {"tl": "┌", "tr": "┐", "h": "─", "v": "│"}
    h = b["h"] * (width - 2)
    return [
        b["tl"] + h + b["tr"],
        f"{b['v']} {title:<{width - 4}} {b['v']}",
        ("+" if ascii_mode else "└") + h + ("+" if ascii_mode else "┘"),
        "",
    ]


def _section(title: str, width: int = 65) -> List[str]:
    h = "-" * width
    return [h, title.center(width), h]


def _marker(change: Change, create_first: bool) -> str:
    """Terraform-style change marker; +/- when the replacement is created first."""
    kind = ChangeKind(change.kind)
    if kind == ChangeKind.CREATE:
        return "+"
    if kind == ChangeKind.UPDATE:
        return "~"
    if kind == ChangeKind.DESTROY:
        return "-"
    if kind == ChangeKind.REPLACE:
        return "+/-" if create_first else "-/+"
    return " "


def _describe(change: Change) -> str:
    kind = ChangeKind(change.kind)
    if kind == ChangeKind.CREATE:
        return "will be created"
    if kind == ChangeKind.UPDATE:
        return "will be updated in-place"
    if kind == ChangeKind.DESTROY:
        if change.orphaned:
            return "will be destroyed (no longer declared)"
        return "will be destroyed"
    if kind == ChangeKind.REPLACE:
        return "must be replaced"
    return "has leftover instances to remove"


def _attribute_lines(change: Change, branch: str, last: str) -> List[str]:
    kind = ChangeKind(change.kind)
    before = change.before_attributes
    after = change.after_attributes

    if kind == ChangeKind.CREATE:
        rows = [(key, f"{render_value(after[key])}") for key in sorted(after)]
    elif kind == ChangeKind.DESTROY:
        rows = [(key, f"{render_value(before[key])}") for key in sorted(before)]
    else:
        forced = {
            reason[:-len(FORCES_REPLACEMENT)] for reason in change.replace_reasons
            if reason.endswith(FORCES_REPLACEMENT)
        }
        rows = []
        for key in change.changed_attributes:
            old = render_value(before[key]) if key in before else "(none)"
            new = render_value(after[key]) if key in after else "(none)"
            suffix = " # forces replacement" if key in forced else ""
            rows.append((key, f"{old} -> {new}{suffix}"))
        for reason in change.replace_reasons:
            if not reason.endswith(FORCES_REPLACEMENT):
                rows.append(("reason", reason))

    lines = []
    for idx, (key, value) in enumerate(rows):
        prefix = last if idx == len(rows) - 1 else branch
        lines.append(f"    {prefix} {key}: {value}")
    return lines


def format_plan(plan: Plan, ascii_mode: Optional[bool] = None) -> str:
    """
    Format a plan for review before apply.

    Args:
        plan: Plan produced by the planner
        ascii_mode: Force ASCII output; defaults to the CONVERGE_ASCII env var

    Returns:
        Multi-line plan description
    """
    ascii_mode = _use_ascii(ascii_mode)
    branch, last = ("|-", "\\-") if ascii_mode else ("├─", "└─")
    title = "DESTROY PLAN" if plan.destroy else "EXECUTION PLAN"
    lines = _box(title, ascii_mode=ascii_mode)

    if not plan.has_changes:
        lines.append("No changes. Infrastructure matches the configuration.")
        return "\n".join(lines)

    create_first = {a.node_id for a in plan.actions if a.create_before_destroy}
    for change in plan.changes:
        if change.is_noop:
            continue
        lines.append(f"{_marker(change, change.node_id in create_first)} {change.node_id} {_describe(change)}")
        lines.extend(_attribute_lines(change, branch, last))
        for instance_id in change.deposed:
            lines.append(f"    {branch} deposed object {instance_id} will be destroyed")
        lines.append("")

    lines.extend(_section("EXECUTION ORDER"))
    for idx, wave in enumerate(plan.waves()):
        steps = ", ".join(
            f"{ActionType(a.action).value} {a.node_id}" + (f" ({a.provider_instance_id})" if a.deposed else "")
            for a in wave
        )
        lines.append(f"Wave {idx + 1}: {steps}")
    lines.append("")

    counts = plan.summary()
    lines.append(
        f"Plan: {counts['CREATE']} to add, {counts['UPDATE']} to change, "
        f"{counts['REPLACE']} to replace, {counts['DESTROY']} to destroy."
    )
    return "\n".join(lines)


def format_apply_result(result: ApplyResult, ascii_mode: Optional[bool] = None) -> str:
    """Format per-action outcomes and a closing summary line."""
    ascii_mode = _use_ascii(ascii_mode)
    marks = {
        OutcomeStatus.SUCCEEDED.value: "[OK]" if ascii_mode else "✅",
        OutcomeStatus.FAILED.value: "[FAIL]" if ascii_mode else "❌",
        OutcomeStatus.SKIPPED.value: "[SKIP]" if ascii_mode else "⏭️ ",
    }
    lines = _box("APPLY RESULT", ascii_mode=ascii_mode)

    for outcome in result.outcomes:
        status = OutcomeStatus(outcome.status).value
        line = f"{marks[status]} {ActionType(outcome.action).value} {outcome.node_id}: {status}"
        if outcome.attempts > 1:
            line += f" after {outcome.attempts} attempts"
        if outcome.error:
            line += f" ({outcome.error})"
        lines.append(line)

    if result.outcomes:
        lines.append("")
    if result.cancelled:
        lines.append("Apply cancelled. Remaining actions were not started.")
    lines.append(
        f"Apply complete: {len(result.succeeded)} succeeded, {len(result.failed)} failed, "
        f"{len(result.skipped)} skipped."
    )
    return "\n".join(lines)


def format_state_list(snapshot: StateSnapshot) -> str:
    """One line per recorded resource; non-applied statuses are flagged."""
    lines = []
    for record_id in snapshot.ids():
        record = snapshot.get(record_id)
        suffix = f" ({record.status})" if record.status != "applied" else ""
        lines.append(f"{record_id}{suffix}")
    return "\n".join(lines)


def format_state_record(record: StateRecord) -> str:
    """Detailed view of one recorded resource."""
    lines: List[str] = [
        f"# {record.id}",
        f"type                 = {record.type}",
        f"provider_instance_id = {record.provider_instance_id}",
        f"status               = {record.status}",
    ]
    if record.dependencies:
        lines.append(f"dependencies         = {', '.join(record.dependencies)}")
    if record.deposed:
        lines.append(f"deposed              = {', '.join(record.deposed)}")
    lines.append("")
    width = max((len(k) for k in record.attributes), default=0)
    for key in sorted(record.attributes):
        lines.append(f"{key:<{width}} = {render_value(record.attributes[key])}")
    return "\n".join(lines)


def plan_to_dict(plan: Plan) -> Dict[str, Any]:
    """JSON-ready plan with a summary block."""
    data = plan.model_dump(mode="json")
    data["summary"] = plan.summary()
    return data
