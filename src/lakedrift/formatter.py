"""Output formatters for drift reports, failures and final results."""

import json

from rich.console import Console
from rich.markup import escape
from rich.text import Text
from rich.tree import Tree

from lakedrift.errors import DriftError
from lakedrift.models import (
    DriftAnalysis,
    DriftStatus,
    PropertyDiff,
    ReconciliationResult,
    ResourceDrift,
    StackStatus,
)

STATUS_COLORS = {
    StackStatus.IN_SYNC: "green",
    StackStatus.DRIFTED: "red",
    StackStatus.NOT_CHECKED: "yellow",
    StackStatus.UNKNOWN: "yellow",
}

REDACTED = "[REDACTED]"
MISSING = "—"


def _escape_md_cell(value: str) -> str:
    """Escape characters that break markdown table cells."""
    return value.replace("|", "\\|").replace("\n", " ")


def _value(value: str | None, redact: bool) -> str:
    if redact:
        return REDACTED
    return MISSING if value is None else value


def _timestamp(status: DriftStatus) -> str:
    return status.timestamp.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def _resource_json(rd: ResourceDrift, redact: bool) -> dict:
    return {
        "logical_id": rd.logical_id,
        "physical_id": rd.physical_id,
        "resource_type": rd.resource_type,
        "status": rd.status.value,
        "property_diffs": [
            {
                "property_path": pd.property_path,
                "diff_type": pd.diff_type.value,
                "expected_value": REDACTED if redact else pd.expected_value,
                "actual_value": REDACTED if redact else pd.actual_value,
            }
            for pd in rd.property_diffs
        ],
    }


def format_json(status: DriftStatus, analysis: DriftAnalysis, *, redact: bool = False) -> str:
    """Format a drift report as JSON."""
    return json.dumps(
        {
            "stack_name": status.stack_name,
            "detection_id": status.detection_id,
            "status": status.stack_status.value,
            "detected_at": status.timestamp.isoformat(),
            "summary": {
                "total": analysis.total,
                "in_sync": analysis.in_sync,
                "drifted": analysis.drifted,
            },
            "deleted": [_resource_json(rd, redact) for rd in analysis.deleted],
            "modified": [_resource_json(rd, redact) for rd in analysis.modified],
        },
        indent=2,
    )


def format_markdown(status: DriftStatus, analysis: DriftAnalysis, *, redact: bool = False) -> str:
    """Format a drift report as Markdown."""
    stack_name = _escape_md_cell(status.stack_name)
    if not analysis.has_drift:
        return f"No drift detected on {stack_name} ({analysis.total} resources checked)."

    lines = [
        f"## Drift Report: {stack_name} ({status.stack_status.value})",
        "",
        f"{analysis.drifted}/{analysis.total} resources drifted, "
        f"{analysis.in_sync} in sync. Detected {_timestamp(status)}.",
        "",
        "| Resource | Type | Status | Property | Change | Expected | Actual |",
        "|----------|------|--------|----------|--------|----------|--------|",
    ]

    for rd in [*analysis.deleted, *analysis.modified]:
        logical_id = _escape_md_cell(rd.logical_id)
        resource_type = _escape_md_cell(rd.resource_type)
        if not rd.property_diffs:
            lines.append(
                f"| {logical_id} | {resource_type} | {rd.status.value} "
                f"| {MISSING} | {MISSING} | {MISSING} | {MISSING} |"
            )
            continue
        for pd in rd.property_diffs:
            expected = _escape_md_cell(_value(pd.expected_value, redact))
            actual = _escape_md_cell(_value(pd.actual_value, redact))
            lines.append(
                f"| {logical_id} | {resource_type} | {rd.status.value} "
                f"| `{_escape_md_cell(pd.property_path)}` | {pd.diff_type.value} "
                f"| `{expected}` | `{actual}` |"
            )

    return "\n".join(lines)


def _diff_label(pd: PropertyDiff, redact: bool) -> Text:
    expected = escape(_value(pd.expected_value, redact))
    actual = escape(_value(pd.actual_value, redact))
    return Text.from_markup(
        f"{escape(pd.property_path)} ({pd.diff_type.value}): "
        f"[green]{expected}[/green] → [red]{actual}[/red]"
    )


def format_report(status: DriftStatus, analysis: DriftAnalysis, *, redact: bool = False) -> str:
    """Format a drift report as a Rich tree view, returned as a string."""
    console = Console(record=True, width=120)
    color = STATUS_COLORS.get(status.stack_status, "yellow")
    tree = Tree(
        Text.from_markup(
            f"[bold]Drift Report[/bold]: {escape(status.stack_name)} "
            f"— [{color}]{status.stack_status.value}[/{color}]"
        )
    )
    tree.add(f"Detected at: {_timestamp(status)}")
    tree.add(f"Total resources: {analysis.total}")
    tree.add(f"In sync: {analysis.in_sync}")
    tree.add(f"Drifted: {analysis.drifted}")

    if analysis.deleted:
        deleted_branch = tree.add(Text.from_markup("[red]Deleted resources[/red]"))
        for rd in analysis.deleted:
            deleted_branch.add(
                Text.from_markup(
                    f"[red]{escape(rd.logical_id)}[/red] ({escape(rd.resource_type)})"
                    f" physical id: {escape(rd.physical_id or MISSING)}"
                )
            )

    if analysis.modified:
        modified_branch = tree.add(Text.from_markup("[yellow]Modified resources[/yellow]"))
        for rd in analysis.modified:
            resource_branch = modified_branch.add(
                Text.from_markup(
                    f"[yellow]{escape(rd.logical_id)}[/yellow] ({escape(rd.resource_type)})"
                    f" physical id: {escape(rd.physical_id or MISSING)}"
                )
            )
            for pd in rd.property_diffs:
                resource_branch.add(_diff_label(pd, redact))

    console.print(tree)
    return console.export_text()


def format_failure(error: DriftError, stack_name: str, checked: str = "Drift detection") -> str:
    """Summarize what was checked, what failed and what to do about it."""
    lines = [
        f"{checked} for stack {stack_name} failed.",
        f"  Error: {error.message}",
    ]
    if error.__cause__ is not None:
        lines.append(f"  Cause: {error.__cause__}")
    if error.suggestion:
        lines.append(f"  Suggested action: {error.suggestion}")
    return "\n".join(lines)


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


def format_result(result: ReconciliationResult) -> str:
    """Format the final outcome of a reconciliation."""
    lines = ["Final result:", f"  Stack exists: {_yes_no(result.stack_exists)}"]
    if result.stack_exists:
        if result.analysis is not None:
            lines.append(f"  Drifted resources: {result.analysis.drifted}")
        lines.append(f"  Repair attempted: {_yes_no(result.repair_attempted)}")
        if result.repair_attempted:
            lines.append(f"  Repair succeeded: {_yes_no(result.repair_succeeded)}")
    return "\n".join(lines)
