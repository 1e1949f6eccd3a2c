"""
Intake validation: completeness and format checks on the raw submission.

This is the gating check of an investigation. It runs first, synchronously,
and its failure is fatal for the whole investigation.
"""

import logging
from typing import List, Tuple
from urllib.parse import urlparse

from .context import CheckContext, DIGITAL_AGENT, FINANCIAL_AGENT, INTAKE_AGENT
from .patterns import PatternRule, compile_pattern
from .schemas import IntakeResult, Submission

logger = logging.getLogger(__name__)

# (attribute, form key) of every field an onboarding submission must carry.
REQUIRED_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("company_name", "companyName"),
    ("address", "address"),
    ("email", "email"),
    ("phone", "phone"),
    ("business_type", "businessType"),
    ("services_description", "servicesDescription"),
)
MISSING_FIELD_PENALTY = 10

# Format rules for optional contact fields; checked only when the field is present.
FORMAT_RULES: Tuple[Tuple[str, PatternRule], ...] = (
    (
        "email",
        PatternRule(
            name="Invalid email format",
            pattern=compile_pattern(r"^[^\s@]+@[^\s@]+\.[^\s@]+$"),
            severity="warning",
            penalty=15,
        ),
    ),
    (
        "phone",
        PatternRule(
            name="Invalid phone format",
            pattern=compile_pattern(r"\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}"),
            severity="info",
            penalty=10,
        ),
    ),
)

TAX_ID_PATTERN = compile_pattern(r"^\d{2}-?\d{7}$")
TAX_ID_INVALID_PENALTY = 20
TAX_ID_MISSING_PENALTY = 15
WEBSITE_INVALID_PENALTY = 10
SHORT_FIELDS_PENALTY = 15
MIN_AVERAGE_FIELD_LENGTH = 5


def is_well_formed_url(value: str) -> bool:
    """True when the value parses as an absolute URL with a scheme and host."""
    try:
        parsed = urlparse(value.strip())
    except ValueError:
        return False
    return bool(parsed.scheme and parsed.netloc) and " " not in value.strip()


def find_missing_fields(submission: Submission) -> List[str]:
    return [
        key
        for attr, key in REQUIRED_FIELDS
        if not submission.text(attr).strip()
    ]


def average_field_length(submission: Submission) -> float:
    """
    Mean text length over every submitted field. Non-text values count
    towards the denominator but contribute no length.
    """
    fields = submission.submitted_fields()
    if not fields:
        return float("nan")
    total = sum(len(v) for v in fields.values() if isinstance(v, str))
    return total / len(fields)


def validate_intake(submission: Submission, ctx: CheckContext) -> IntakeResult:
    """
    Validates data completeness and basic field formats.

    Args:
        submission (Submission): The vendor submission.
        ctx (CheckContext): The investigation context (for notices and findings).

    Returns:
        IntakeResult: Score, findings, missing fields and completeness.
    """
    findings: List[str] = []
    risk_indicators: List[str] = []
    score = 100

    missing_fields = find_missing_fields(submission)
    if missing_fields:
        score -= len(missing_fields) * MISSING_FIELD_PENALTY
        risk_indicators.append(f"Missing {len(missing_fields)} required fields")
        findings.append(f"Missing required information: {', '.join(missing_fields)}")
        ctx.log.finding(
            INTAKE_AGENT, f"Missing fields: {', '.join(missing_fields)}", "warning"
        )
    else:
        findings.append("All required fields provided")

    for attr, rule in FORMAT_RULES:
        value = submission.text(attr)
        if not value:
            continue
        label = attr.capitalize()
        if rule.pattern.search(value):
            findings.append(f"{label} format valid")
            continue
        score -= rule.penalty
        risk_indicators.append(rule.name)
        findings.append(f"{label} format appears invalid: {value}")
        if rule.severity == "warning":
            ctx.log.finding(INTAKE_AGENT, f"{rule.name} detected", "warning")

    tax_id = submission.text("tax_id")
    if tax_id:
        if TAX_ID_PATTERN.match("".join(tax_id.split())):
            findings.append("Tax ID format appears valid")
        else:
            score -= TAX_ID_INVALID_PENALTY
            risk_indicators.append("Tax ID format invalid")
            findings.append("Tax ID does not match standard EIN format")
            ctx.log.notify(
                INTAKE_AGENT,
                FINANCIAL_AGENT,
                "Tax ID format appears invalid - please verify",
                "high",
            )
    else:
        score -= TAX_ID_MISSING_PENALTY
        risk_indicators.append("No Tax ID provided")
        findings.append("Tax ID not provided")

    website = submission.text("website")
    if website:
        if is_well_formed_url(website):
            findings.append("Website URL format valid")
            ctx.log.notify(
                INTAKE_AGENT,
                DIGITAL_AGENT,
                f"Website provided: {website} - please investigate",
                "medium",
            )
        else:
            score -= WEBSITE_INVALID_PENALTY
            risk_indicators.append("Invalid website URL")
            findings.append("Website URL format invalid")

    # NaN (nothing submitted) compares False, so an empty form is not double-penalised.
    if average_field_length(submission) < MIN_AVERAGE_FIELD_LENGTH:
        score -= SHORT_FIELDS_PENALTY
        risk_indicators.append("Suspiciously short field values")
        findings.append("Many fields contain very little information")

    score = max(0, score)
    present = len(REQUIRED_FIELDS) - len(missing_fields)

    logger.info("Intake validation: score %d/100, %d findings", score, len(findings))

    return IntakeResult(
        findings=findings,
        risk_indicators=risk_indicators,
        score=score,
        confidence="high" if score > 70 else "medium" if score > 40 else "low",
        completeness_percentage=round(present / len(REQUIRED_FIELDS) * 100),
        missing_fields=missing_fields,
    )
