"""
Investigation coordinator: runs one vendor submission through the pipeline.

created -> intake-running -> intake-done -> parallel-checks-running ->
parallel-checks-done -> aggregating -> complete, or errored from any step.

Intake runs first and is the only checker whose failure is fatal. The other
four run concurrently behind the check runner. The event log, the store, the
oracle and the probe are all injected; nothing here is a process-wide
singleton.
"""

import asyncio
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

import typer
from pydantic import ValidationError
from rich.panel import Panel
from rich.table import Table

from .check_runner import run_check
from .compliance_checker import check_compliance
from .config_loader import CONFIG
from .context import (
    COMPLIANCE_AGENT,
    COORDINATOR_AGENT,
    CheckContext,
    DIGITAL_AGENT,
    FINANCIAL_AGENT,
    INTAKE_AGENT,
    PRIVACY_AGENT,
    Probe,
    RISK_AGENT,
)
from .digital_presence import check_digital_presence
from .enrichment_oracle import EnrichmentOracle, build_oracle
from .event_log import EventLog, InvestigationLog, NullEventLog
from .financial_checker import check_financial_plausibility
from .http_client import probe_reachability
from .intake_validator import validate_intake
from .investigation_store import InvestigationStore, SqliteInvestigationStore
from .pii_scanner import scan_pii
from .risk_aggregator import aggregate_risk
from .schemas import (
    AgentResults,
    ComplianceResult,
    DigitalResult,
    FinancialResult,
    Investigation,
    LogRecord,
    PrivacyResult,
    Submission,
)
from .utils import console, save_or_print_results

logger = logging.getLogger(__name__)

ERROR_RISK_SCORE = 75
ERROR_SUMMARY = "Investigation failed - manual review required"

# Agents reported by investigation_status(), in pipeline order.
STATUS_AGENTS = (
    INTAKE_AGENT,
    DIGITAL_AGENT,
    PRIVACY_AGENT,
    FINANCIAL_AGENT,
    COMPLIANCE_AGENT,
    RISK_AGENT,
)


def new_investigation_id() -> str:
    return f"vendor-{uuid.uuid4().hex[:12]}"


class InvestigationCoordinator:
    """
    Drives investigations and persists each finished record exactly once.

    Args:
        event_log (EventLog): Shared side-channel sink. Defaults to a NullEventLog.
        store (InvestigationStore): Where finished records go. None disables persistence.
        oracle (EnrichmentOracle): Optional advisory oracle for the checkers.
        probe (Probe): Website reachability probe. None skips probing.
    """

    def __init__(
        self,
        event_log: Optional[EventLog] = None,
        store: Optional[InvestigationStore] = None,
        oracle: Optional[EnrichmentOracle] = None,
        probe: Optional[Probe] = probe_reachability,
    ):
        self.event_log = event_log if event_log is not None else NullEventLog()
        self.store = store
        self.oracle = oracle
        self.probe = probe

    def _phase(self, ctx: CheckContext, phase: str, action: str, **metadata: Any) -> None:
        logger.debug("Investigation %s entering %s", ctx.investigation_id, phase)
        ctx.log.activity(COORDINATOR_AGENT, action, phase=phase, **metadata)

    async def _run_parallel_checks(self, submission: Submission, ctx: CheckContext):
        return await asyncio.gather(
            run_check(DIGITAL_AGENT, check_digital_presence, DigitalResult, submission, ctx),
            run_check(PRIVACY_AGENT, scan_pii, PrivacyResult, submission, ctx),
            run_check(
                FINANCIAL_AGENT,
                check_financial_plausibility,
                FinancialResult,
                submission,
                ctx,
            ),
            run_check(COMPLIANCE_AGENT, check_compliance, ComplianceResult, submission, ctx),
        )

    async def investigate(self, submission: Submission) -> Investigation:
        """
        Runs a full investigation.

        Never raises: a fatal failure yields an errored record with a
        conservative high-risk verdict.

        Args:
            submission (Submission): The vendor submission.

        Returns:
            Investigation: The complete (or errored) record.
        """
        investigation_id = new_investigation_id()
        started_at = datetime.now(timezone.utc)
        start = time.perf_counter()
        ctx = CheckContext(
            log=InvestigationLog(self.event_log, investigation_id),
            oracle=self.oracle,
            probe=self.probe,
        )
        logger.info(
            "Starting investigation %s for %s",
            investigation_id,
            submission.company_name or "Unknown Company",
        )
        self._phase(ctx, "created", "Investigation created")

        try:
            self._phase(ctx, "intake-running", "Running intake validation...")
            ctx.log.activity(INTAKE_AGENT, "Starting data validation...", status="running")
            intake = validate_intake(submission, ctx)
            ctx.log.activity(
                INTAKE_AGENT, "Validation complete", status="complete", score=intake.score
            )
            self._phase(ctx, "intake-done", "Intake validation finished")

            self._phase(ctx, "parallel-checks-running", "Launching parallel investigations...")
            digital, privacy, financial, compliance = await self._run_parallel_checks(
                submission, ctx
            )
            self._phase(ctx, "parallel-checks-done", "All checkers settled")

            results = AgentResults(
                intake=intake,
                digital=digital,
                privacy=privacy,
                financial=financial,
                compliance=compliance,
            )

            self._phase(ctx, "aggregating", "Aggregating risk...")
            ctx.log.activity(RISK_AGENT, "Analyzing all findings...", status="running")
            report = await aggregate_risk(results, submission, ctx)
            ctx.log.activity(
                RISK_AGENT,
                f"Investigation complete - Risk Score: {report.risk_score}",
                status="complete",
                risk_score=report.risk_score,
            )
            duration = round(time.perf_counter() - start, 3)
            self._phase(ctx, "complete", "Investigation complete", duration=duration)

            record = Investigation(
                investigation_id=investigation_id,
                timestamp=started_at,
                duration=duration,
                status="complete",
                submission=submission,
                agent_results=results,
                messages=ctx.log.messages,
                **report.model_dump(),
            )
            logger.info(
                "Investigation %s complete in %.1fs - risk score %d",
                investigation_id,
                duration,
                report.risk_score,
            )
        except Exception as e:
            logger.error("Investigation %s failed: %s", investigation_id, e)
            self._phase(ctx, "errored", f"Investigation error: {e}", status="error")
            record = Investigation(
                investigation_id=investigation_id,
                timestamp=started_at,
                duration=round(time.perf_counter() - start, 3),
                status="errored",
                submission=submission,
                agent_results=None,
                risk_score=ERROR_RISK_SCORE,
                risk_level="high",
                recommendation="reject",
                summary=ERROR_SUMMARY,
                messages=ctx.log.messages,
                error=str(e),
            )

        self._persist(record)
        return record

    def _persist(self, record: Investigation) -> None:
        if self.store is None:
            return
        try:
            self.store.save(record)
        except Exception as e:
            logger.error("Failed to persist investigation %s: %s", record.investigation_id, e)


def investigation_status(
    records: Iterable[LogRecord], investigation_id: str
) -> Dict[str, Any]:
    """
    Summarizes an investigation's progress from its activity records.

    Args:
        records (Iterable[LogRecord]): Event log records (any investigation).
        investigation_id (str): The investigation to report on.

    Returns:
        Dict[str, Any]: Latest status/action/timestamp per agent and whether
        the risk aggregator has completed.
    """
    activities = [
        r
        for r in records
        if r.type == "activity" and r.investigation_id == investigation_id
    ]
    agent_status: Dict[str, Dict[str, Any]] = {}
    for agent in STATUS_AGENTS:
        own = [a for a in activities if a.agent == agent]
        latest = own[-1] if own else None
        agent_status[agent] = {
            "status": latest.metadata.get("status", "pending") if latest else "pending",
            "action": latest.action if latest else "Waiting...",
            "timestamp": latest.timestamp if latest else None,
        }
    return {
        "investigation_id": investigation_id,
        "is_complete": any(
            a.agent == RISK_AGENT and "complete" in a.action.lower() for a in activities
        ),
        "agent_status": agent_status,
    }


# --- Typer CLI Application ---


investigation_app = typer.Typer()


def load_submission(path: str) -> Submission:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return Submission.model_validate(json.load(f))
    except (OSError, ValueError, ValidationError) as e:
        console.print(f"[bold red]Could not load submission:[/bold red] {e}")
        raise typer.Exit(code=1)


def render_investigation(record: Investigation) -> None:
    color = {"low": "green", "medium": "yellow", "high": "red"}[record.risk_level]
    console.print(
        Panel(
            f"[bold]{record.summary}[/bold]",
            title=f"[{color}]{record.risk_level.upper()} RISK ({record.risk_score}/100) - "
            f"{record.recommendation.upper()}[/{color}]",
            subtitle=record.investigation_id,
        )
    )
    if record.agent_scores:
        table = Table(title="Checker Scores")
        table.add_column("Checker", style="cyan")
        table.add_column("Score", justify="right", style="magenta")
        for name, score in record.agent_scores.items():
            table.add_row(name, str(score))
        console.print(table)
    sections = [
        ("Critical Issues", record.critical_issues, "red"),
        ("Warnings", record.warnings, "yellow"),
        ("Contradictions", record.contradictions, "red"),
    ]
    for title, items, style in sections:
        if items:
            console.print(f"[bold {style}]{title}:[/bold {style}]")
            for item in items:
                console.print(f"  - {item}")
    if record.error:
        console.print(f"[bold red]Error:[/bold red] {record.error}")


@investigation_app.command("run")
def run_investigation_command(
    submission_file: str = typer.Argument(
        ..., help="Path to a JSON file holding the vendor submission."
    ),
    output_file: Optional[str] = typer.Option(
        None, "--output", "-o", help="Save the full investigation to a JSON file."
    ),
    no_ai: bool = typer.Option(
        False, "--no-ai", help="Disable the enrichment oracle (rule-based only)."
    ),
    no_save: bool = typer.Option(
        False, "--no-save", help="Do not write the investigation to the local store."
    ),
):
    """
    Runs a full risk investigation on a vendor submission.
    """
    submission = load_submission(submission_file)
    coordinator = InvestigationCoordinator(
        event_log=EventLog(CONFIG.pipeline.event_log_capacity),
        store=None if no_save else SqliteInvestigationStore(),
        oracle=None if no_ai else build_oracle(),
        probe=probe_reachability if CONFIG.pipeline.probe_websites else None,
    )
    with console.status("[bold cyan]Investigating vendor...[/bold cyan]"):
        record = asyncio.run(coordinator.investigate(submission))
    render_investigation(record)
    if output_file:
        save_or_print_results(record.model_dump(mode="json", by_alias=True), output_file)
    if record.status == "errored":
        raise typer.Exit(code=1)


@investigation_app.command("status")
def investigation_status_command(
    investigation_id: str = typer.Argument(..., help="The investigation ID to inspect.")
):
    """
    Shows per-checker status for a stored investigation.
    """
    record = SqliteInvestigationStore().get(investigation_id)
    if record is None:
        console.print(f"[bold red]No investigation found with ID {investigation_id}[/bold red]")
        raise typer.Exit(code=1)
    status = investigation_status(record.messages, investigation_id)
    table = Table(
        title=f"Investigation {investigation_id} "
        f"({'complete' if status['is_complete'] else 'incomplete'})"
    )
    table.add_column("Agent", style="cyan")
    table.add_column("Status", style="magenta")
    table.add_column("Last Action")
    for agent, info in status["agent_status"].items():
        table.add_row(agent, info["status"], info["action"])
    console.print(table)
