"""Render course peer-review summaries from an export file or the live backend."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import anyio
import typer
from rich.console import Console
from rich.table import Table

from courseven.container import bootstrap_client
from courseven.core.errors import CoursevenError
from courseven.data.records import activity_from_record, assessment_from_record
from courseven.domain.models import CoursePeerReviewSummary, ScoreAverages
from courseven.domain.peer_review import build_course_summary, select_review_activity_ids

app = typer.Typer(help="Summarise peer-review scores per group and per student.")
console = Console()

NO_EVALUATIONS = "no evaluations"


def load_export(path: Path) -> Dict[str, List[Dict[str, Any]]]:
    """Read an export: a bare list of assessment rows, or a mapping of tables.

    The mapping form may carry ``assessments``, ``activities`` and ``groups``
    row lists, using the same column names as the backend tables.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{path} is not valid JSON: {exc}") from exc
    if isinstance(data, list):
        return {"assessments": data, "activities": [], "groups": []}
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{path} must hold a list or an object")
    return {
        "assessments": list(data.get("assessments") or []),
        "activities": list(data.get("activities") or []),
        "groups": list(data.get("groups") or []),
    }


def summarise_export(
    export: Dict[str, List[Dict[str, Any]]],
    activity_ids: Optional[List[str]] = None,
) -> CoursePeerReviewSummary:
    assessments = [assessment_from_record(row) for row in export["assessments"]]
    if not activity_ids:
        if export["activities"]:
            activities = [activity_from_record(row) for row in export["activities"]]
            activity_ids = select_review_activity_ids(activities)
        else:
            activity_ids = list(dict.fromkeys(item.activity_id for item in assessments))
    selected = set(activity_ids)
    group_ids = [str(row.get("_id")) for row in export["groups"] if row.get("_id")]
    return build_course_summary(
        activity_ids,
        [item for item in assessments if item.activity_id in selected],
        group_ids or None,
    )


def _score_cells(averages: ScoreAverages | None) -> List[str]:
    if averages is None:
        return ["-"] * 5
    return [
        f"{averages.punctuality:.2f}",
        f"{averages.contributions:.2f}",
        f"{averages.commitment:.2f}",
        f"{averages.attitude:.2f}",
        f"{averages.overall:.2f}",
    ]


def render_summary(summary: CoursePeerReviewSummary, title: str) -> None:
    table = Table(title=title, show_header=True)
    table.add_column("Group")
    table.add_column("Assessments", justify="right")
    for name in ("Punctuality", "Contributions", "Commitment", "Attitude", "Overall"):
        table.add_column(name, justify="right")
    for group in summary.groups:
        if not group.has_evaluations:
            table.add_row(group.group_id, "0", NO_EVALUATIONS, "", "", "", "", style="dim")
            continue
        table.add_row(group.group_id, str(group.assessments_count), *_score_cells(group.averages))
    console.print(table)

    if summary.students:
        students = Table(title="Students", show_header=True)
        students.add_column("Student")
        students.add_column("Received", justify="right")
        students.add_column("Overall", justify="right")
        for student in summary.students:
            students.add_row(
                student.student_id,
                str(student.assessments_received),
                f"{student.averages.overall:.2f}",
            )
        console.print(students)

    if summary.course_averages is None:
        console.print(f"[yellow]Course average: {NO_EVALUATIONS}[/yellow]")
    else:
        console.print(f"[green]Course overall average: {summary.course_averages.overall:.2f}[/green]")


def _emit(summary: CoursePeerReviewSummary, title: str, as_json: bool) -> None:
    if as_json:
        typer.echo(summary.model_dump_json(indent=2))
    else:
        render_summary(summary, title)


@app.command()
def export(
    export_path: Path = typer.Argument(..., exists=True, dir_okay=False),
    activity: Optional[List[str]] = typer.Option(
        None, "--activity", "-a", help="Restrict to these activity ids (repeatable)."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON."),
) -> None:
    """Summarise a JSON export of assessment rows."""
    summary = summarise_export(load_export(export_path), activity or None)
    _emit(summary, f"Peer review: {export_path.name}", as_json)


@app.command()
def live(
    course_id: str = typer.Argument(..., help="Course whose public reviews are summarised."),
    email: str = typer.Option(..., "--email", envvar="COURSEVEN_EMAIL"),
    password: str = typer.Option(..., "--password", envvar="COURSEVEN_PASSWORD", hide_input=True),
    config: Optional[Path] = typer.Option(None, "--config", help="Client config YAML."),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON."),
) -> None:
    """Sign in and summarise a course from the backend."""

    async def run() -> CoursePeerReviewSummary:
        container = bootstrap_client(config)
        async with container:
            await container.auth_use_cases.login.execute(email, password)
            controller = container.controllers.peer_review
            summary = await controller.load_course_summary(course_id, force=True)
            if summary is None:
                raise CoursevenError(controller.error or "Could not load the summary")
            return summary

    try:
        summary = anyio.run(run)
    except CoursevenError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1) from exc
    _emit(summary, f"Peer review: course {course_id}", as_json)


if __name__ == "__main__":
    app()
