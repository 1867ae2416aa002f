#!/usr/bin/env python3
"""
Referral workflow CLI

Command-line interface for checking and applying referral stage changes
against a stage catalog.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from referral_workflow import __version__
from referral_workflow.engines import (
    WorkflowEngine,
    load_document_catalog,
    load_stage_catalog,
)
from referral_workflow.engines.catalog import (
    default_document_catalog_path,
    default_stage_catalog_path,
)
from referral_workflow.exceptions import TransitionRejected, WorkflowError
from referral_workflow.models import Order, Patient

console = Console()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _read_json(path: str) -> dict:
    try:
        return json.loads(Path(path).read_text())
    except json.JSONDecodeError as e:
        raise click.ClickException(f"{path} is not valid JSON: {e}") from e


def load_case(engine: WorkflowEngine, path: str) -> tuple[Patient, Order]:
    """
    Load a case file: {"patient": {...}, "order": {...}}.

    Document keys are checked against the document catalog.
    """
    data = _read_json(path)
    if "patient" not in data or "order" not in data:
        raise click.ClickException(f"{path} must contain 'patient' and 'order' objects")
    try:
        patient = Patient.model_validate(data["patient"])
        order = Order.model_validate(data["order"])
    except ValidationError as e:
        raise click.ClickException(f"{path}: {e}") from e
    engine.documents.validate_keys(patient.required_documents)
    engine.documents.validate_keys(order.document_status)
    return patient, order


def load_batch(engine: WorkflowEngine, path: str) -> tuple[dict[str, Patient], list[Order]]:
    """Load a batch file: {"patients": [...], "orders": [...]}."""
    data = _read_json(path)
    try:
        patients = [Patient.model_validate(p) for p in data.get("patients", [])]
        orders = [Order.model_validate(o) for o in data.get("orders", [])]
    except ValidationError as e:
        raise click.ClickException(f"{path}: {e}") from e
    for patient in patients:
        engine.documents.validate_keys(patient.required_documents)
    for order in orders:
        engine.documents.validate_keys(order.document_status)
    return {p.id: p for p in patients}, orders


def _doc_list(engine: WorkflowEngine, keys) -> str:
    if not keys:
        return "[dim]none[/dim]"
    return ", ".join(f"{engine.documents.label(k)} ({k})" for k in sorted(keys))


class CatalogGroup(click.Group):
    """Turns workflow errors into clean CLI errors."""

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except WorkflowError as e:
            raise click.ClickException(str(e)) from e


@click.group(cls=CatalogGroup)
@click.version_option(version=__version__, prog_name="referral-workflow")
@click.option("--catalog", "catalog_path", type=click.Path(exists=True, dir_okay=False),
              help="Stage catalog (YAML or JSON)")
@click.option("--documents", "documents_path", type=click.Path(exists=True, dir_okay=False),
              help="Document catalog (YAML or JSON)")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, catalog_path: Optional[str], documents_path: Optional[str], verbose: bool):
    """
    Referral workflow - stage transitions and document readiness

    Check whether a referral can move to a stage, see what documents it
    still needs, and produce the audit records for a stage change.
    """
    configure_logging(verbose)
    try:
        catalog = load_stage_catalog(catalog_path or default_stage_catalog_path())
        documents = load_document_catalog(documents_path or default_document_catalog_path())
    except WorkflowError as e:
        raise click.ClickException(str(e)) from e
    ctx.obj = WorkflowEngine(catalog, documents)


@cli.command()
@click.pass_obj
def stages(engine: WorkflowEngine):
    """List the workflow stages in order."""
    table = Table(title="Workflow Stages")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Stage", style="bold")
    table.add_column("Target", justify="right")
    table.add_column("Required Documents")

    for stage in engine.catalog:
        name = stage.name
        if name == engine.catalog.par_stage:
            name = f"{name} [yellow](gate)[/yellow]"
        target = f"{stage.target_days}d" if stage.target_days is not None else "-"
        table.add_row(str(stage.index), name, target, ", ".join(sorted(stage.required_docs)) or "-")

    console.print(table)


@cli.command()
@click.argument("case_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def derive(engine: WorkflowEngine, case_file: str):
    """Show the required documents derived for a case."""
    patient, order = load_case(engine, case_file)
    derived = engine.derive_required_documents(patient, order)
    added = derived - patient.required_documents

    console.print(Panel(
        f"[bold]On file:[/bold] {_doc_list(engine, patient.required_documents)}\n"
        f"[bold]Added:[/bold] {_doc_list(engine, added)}\n"
        f"[bold]Required:[/bold] {_doc_list(engine, derived)}",
        title=f"Required Documents - patient {patient.id}",
    ))


@cli.command()
@click.argument("case_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def readiness(engine: WorkflowEngine, case_file: str):
    """Show document completion and stage dwell for a case."""
    patient, order = load_case(engine, case_file)
    result = engine.evaluate_readiness(patient.required_documents, order.document_status)
    missing = engine.missing_documents(patient.required_documents, order.document_status)
    relevant = engine.stage_relevant_docs(patient.required_documents, order.workflow_stage)
    dwell = engine.stage_dwell(order)

    status = "[green]Ready[/green]" if result.ready else "[yellow]Not Ready[/yellow]"
    target = f" / {dwell.target_days}d target" if dwell.target_days is not None else ""
    overdue = f" [red](over by {dwell.days_over}d)[/red]" if dwell.overdue else ""

    console.print(Panel(
        f"[bold]Stage:[/bold] {order.workflow_stage}\n"
        f"[bold]Days in stage:[/bold] {dwell.days_in_stage}{target}{overdue}\n"
        f"[bold]Documents:[/bold] {result.completed}/{result.total} complete\n"
        f"[bold]PAR readiness:[/bold] {status}\n"
        f"[bold]Missing:[/bold] {_doc_list(engine, missing)}\n"
        f"[bold]Needed for this stage:[/bold] {_doc_list(engine, relevant)}",
        title=f"Order {order.id}",
    ))


@cli.command()
@click.argument("case_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--to", "to_stage", required=True, help="Target stage name")
@click.option("--note", default="", help="Note for the audit trail")
@click.option("--reason", help="Regression reason (required for backward moves)")
@click.pass_context
def check(ctx, case_file: str, to_stage: str, note: str, reason: Optional[str]):
    """Validate a stage change without applying it."""
    engine: WorkflowEngine = ctx.obj
    patient, order = load_case(engine, case_file)
    verdict = engine.validate_transition(order, to_stage, note, reason, patient=patient)

    if verdict.approved:
        console.print(f"[green]✓[/green] {order.workflow_stage} -> {to_stage}: {verdict.message}")
        return
    console.print(f"[red]✗[/red] {verdict.message}")
    ctx.exit(1)


@cli.command()
@click.argument("case_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--to", "to_stage", required=True, help="Target stage name")
@click.option("--note", required=True, help="Note for the audit trail")
@click.option("--reason", help="Regression reason (required for backward moves)")
@click.option("--user", "user_id", help="User making the change")
@click.pass_context
def move(ctx, case_file: str, to_stage: str, note: str, reason: Optional[str], user_id: Optional[str]):
    """Apply a stage change and print the resulting records as JSON."""
    engine: WorkflowEngine = ctx.obj
    patient, order = load_case(engine, case_file)
    try:
        result = engine.apply_transition(order, patient, to_stage, note, reason, user_id=user_id)
    except TransitionRejected as e:
        console.print(f"[red]✗[/red] {e.violation.message}")
        ctx.exit(1)
    console.print_json(result.model_dump_json())


@cli.command()
@click.argument("batch_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--to", "to_stage", required=True, help="Target stage name")
@click.option("--note", required=True, help="Note for the audit trail")
@click.option("--reason", help="Reason recorded for any backward moves")
@click.option("--user", "user_id", help="User making the change")
@click.pass_context
def bulk(ctx, batch_file: str, to_stage: str, note: str, reason: Optional[str], user_id: Optional[str]):
    """Apply one stage change to every order in a batch file."""
    engine: WorkflowEngine = ctx.obj
    patients, orders = load_batch(engine, batch_file)
    results = engine.apply_bulk_transition(
        orders, to_stage, note, patients, user_id=user_id, regression_reason=reason,
    )

    table = Table(title=f"Bulk move to {to_stage}")
    table.add_column("Order", style="bold")
    table.add_column("Result")
    table.add_column("Detail")
    for order, result in zip(orders, results):
        if result.ok:
            detail = f"{order.workflow_stage} -> {to_stage}"
            if result.is_regression:
                detail += f" [yellow](regression: {result.regression.reason})[/yellow]"
            table.add_row(result.order_id, "[green]applied[/green]", detail)
        else:
            table.add_row(result.order_id, "[red]failed[/red]", result.message)
    console.print(table)

    failed = sum(1 for r in results if not r.ok)
    console.print(f"{len(results) - failed} applied, {failed} failed")
    if failed:
        ctx.exit(1)


@cli.command()
@click.argument("batch_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def pipeline(engine: WorkflowEngine, batch_file: str):
    """Show referral counts and average days per stage for a batch file."""
    _, orders = load_batch(engine, batch_file)

    table = Table(title="Pipeline")
    table.add_column("Stage", style="bold")
    table.add_column("Referrals", justify="right")
    table.add_column("Avg Days", justify="right")
    table.add_column("Target", justify="right")
    for row in engine.pipeline_summary(orders):
        target = f"{row.target_days}d" if row.target_days is not None else "-"
        avg = f"{row.average_days:.1f}"
        if row.target_days is not None and row.average_days > row.target_days:
            avg = f"[red]{avg}[/red]"
        table.add_row(row.stage, str(row.count), avg, target)
    console.print(table)


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
