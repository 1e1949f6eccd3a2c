"""
PII scanner: detects sensitive personal identifiers in a submission.

All submitted fields are flattened into one "key: value" text blob and run
through an ordered table of detectors. Each detector carries a severity and a
per-instance penalty. Samples are masked before they leave this module.
"""

import asyncio
import json
import logging
from typing import List, Optional

import typer
from rich.table import Table

from .context import COMPLIANCE_AGENT, CheckContext, PRIVACY_AGENT, detached_context
from .patterns import (
    PatternRule,
    apply_pattern_set,
    compile_pattern,
    contains_any,
)
from .schemas import PIIDetection, PrivacyResult, Submission
from .utils import console, save_or_print_results

logger = logging.getLogger(__name__)

PII_RULES: List[PatternRule] = [
    PatternRule(
        name="Social Security Number",
        pattern=compile_pattern(r"\b\d{3}-\d{2}-\d{4}\b"),
        severity="critical",
        penalty=25,
    ),
    PatternRule(
        name="Credit Card",
        pattern=compile_pattern(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"),
        severity="critical",
        penalty=30,
    ),
    PatternRule(
        name="Email Address",
        pattern=compile_pattern(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        severity="low",
        penalty=5,
    ),
    PatternRule(
        name="Phone Number",
        pattern=compile_pattern(r"\b\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b"),
        severity="low",
        penalty=5,
    ),
    PatternRule(
        name="Driver License Pattern",
        pattern=compile_pattern(
            r"\b(?:DL|DRIVER(?:'?S)?\s*LIC(?:ENSE)?)\s*#?\s*[A-Z0-9]{5,15}\b",
            ignore_case=True,
        ),
        severity="high",
        penalty=20,
    ),
    PatternRule(
        name="Passport Number",
        pattern=compile_pattern(r"\b[A-Z]{1,2}\d{6,9}\b"),
        severity="high",
        penalty=20,
    ),
    PatternRule(
        name="Date of Birth",
        pattern=compile_pattern(
            r"\b(?:DOB|DATE\s+OF\s+BIRTH)[:\s]*\d{1,2}[-/]\d{1,2}[-/]\d{2,4}\b",
            ignore_case=True,
        ),
        severity="medium",
        penalty=15,
    ),
]

PII_SERVICE_KEYWORDS = (
    "personal",
    "data",
    "information",
    "customers",
    "users",
    "patient",
    "health",
    "financial",
)

MASK_CHAR = "*"
SHORT_MASK = "***"


def mask_pii(value: str) -> str:
    """
    Masks a detected value for display, keeping the first and last two
    characters. Values of four characters or fewer are fully replaced.
    """
    if len(value) <= 4:
        return SHORT_MASK
    return value[:2] + MASK_CHAR * (len(value) - 4) + value[-2:]


def serialize_submission(submission: Submission) -> str:
    return "\n".join(
        f"{key}: {value}" for key, value in submission.submitted_fields().items()
    )


def privacy_rating(score: int) -> str:
    if score > 80:
        return "Excellent"
    if score > 60:
        return "Good"
    if score > 40:
        return "Needs Attention"
    return "Critical Issues"


async def scan_pii(submission: Submission, ctx: CheckContext) -> PrivacyResult:
    """
    Scans every submitted field for sensitive PII.

    Args:
        submission (Submission): The vendor submission.
        ctx (CheckContext): The investigation context.

    Returns:
        PrivacyResult: Detections with masked samples, privacy rating and score.
    """
    findings: List[str] = []
    risk_indicators: List[str] = []
    detections: List[PIIDetection] = []
    score = 100

    for hit in apply_pattern_set(serialize_submission(submission), PII_RULES):
        rule = hit.rule
        detections.append(
            PIIDetection(
                type=rule.name,
                count=hit.count,
                severity=rule.severity,
                samples=[mask_pii(m) for m in hit.matches[:2]],
            )
        )
        score -= hit.total_penalty
        plural = "s" if hit.count > 1 else ""
        risk_indicators.append(f"{rule.name} detected ({hit.count} instance{plural})")
        ctx.log.finding(
            PRIVACY_AGENT,
            f"Detected {hit.count} {rule.name}(s) in submission",
            "critical" if rule.severity == "critical" else "warning",
        )

    critical = [d for d in detections if d.severity == "critical"]
    if critical:
        findings.append(
            f"CRITICAL: Found {len(critical)} types of sensitive PII that should not be submitted"
        )
        ctx.log.notify(
            PRIVACY_AGENT,
            COMPLIANCE_AGENT,
            "Critical PII detected in submission - enhanced privacy controls required",
            "high",
        )

    handles_pii = contains_any(submission.text("services_description"), PII_SERVICE_KEYWORDS)
    if handles_pii:
        findings.append("Vendor services may involve handling personal data")
        ctx.log.notify(
            PRIVACY_AGENT,
            COMPLIANCE_AGENT,
            "Vendor services suggest PII handling - verify GDPR/CCPA compliance",
            "medium",
        )

    if detections:
        findings.append(f"Detected {len(detections)} types of PII in submission documents")
        findings.append("Recommendation: Implement data masking before storage")
    else:
        findings.append("No sensitive PII detected in submission")

    score = max(0, score)

    logger.info(
        "PII scan: score %d/100, %d PII types detected", score, len(detections)
    )

    return PrivacyResult(
        findings=findings,
        risk_indicators=risk_indicators,
        score=score,
        confidence="high" if not detections else "medium",
        pii_detected=detections,
        privacy_rating=privacy_rating(score),
        requires_data_masking=bool(critical),
        handles_pii=handles_pii,
    )


# --- Typer CLI Application ---

privacy_app = typer.Typer()


@privacy_app.command("scan")
def run_pii_scan_command(
    submission_file: str = typer.Argument(
        ..., help="Path to a JSON file holding the vendor submission."
    ),
    output_file: Optional[str] = typer.Option(
        None, "--output", "-o", help="Save the scan result to a JSON file."
    ),
):
    """
    Scans a submission for sensitive PII without running a full investigation.
    """
    try:
        with open(submission_file, "r", encoding="utf-8") as f:
            submission = Submission.model_validate(json.load(f))
    except (OSError, ValueError) as e:
        console.print(f"[bold red]Could not load submission:[/bold red] {e}")
        raise typer.Exit(code=1)

    result = asyncio.run(scan_pii(submission, detached_context("pii-scan")))

    if output_file:
        save_or_print_results(result.model_dump(), output_file)
        return
    table = Table(title=f"PII Scan ({result.privacy_rating}, score {result.score}/100)")
    table.add_column("Type", style="cyan")
    table.add_column("Count", style="magenta")
    table.add_column("Severity", style="red")
    table.add_column("Samples", style="yellow")
    for d in result.pii_detected:
        table.add_row(d.type, str(d.count), d.severity, ", ".join(d.samples))
    console.print(table)
    for finding in result.findings:
        console.print(f"- {finding}")
