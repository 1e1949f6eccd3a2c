"""
Risk aggregator: combines the five checker results into one verdict.

The weighted base turns each checker's legitimacy score into a risk
contribution. Fixed modifiers are then added for critical issues, warnings
and cross-checker contradictions and subtracted for positive factors. The
clamped total is banded into low / medium / high.
"""

import logging
from typing import Dict, List, Tuple

from .context import CheckContext, DIGITAL_AGENT, RISK_AGENT
from .schemas import AgentResults, Confidence, RiskReport, Submission
from .utils import clamp_score

logger = logging.getLogger(__name__)

WEIGHTS: Dict[str, float] = {
    "intake": 0.15,
    "digital": 0.20,
    "privacy": 0.20,
    "financial": 0.25,
    "compliance": 0.20,
}

LOW_RISK_CEILING = 35
MEDIUM_RISK_CEILING = 70

CONFIDENCE_VALUES: Dict[str, int] = {"high": 3, "medium": 2, "low": 1}

ROLE_PROMPT = """You are a Risk Assessment Executive summarizing vendor investigation results.

Based on all agent findings, provide strategic recommendations and key insights.

Return JSON with this structure:
{
  "executiveInsights": ["insight 1", "insight 2"],
  "keyRisks": ["risk 1", "risk 2"],
  "mitigationStrategies": ["strategy 1", "strategy 2"],
  "confidence": "high" | "medium" | "low"
}"""


def classify_risk(risk_score: int) -> Tuple[str, str]:
    """Maps a risk score to (risk level, recommendation)."""
    if risk_score <= LOW_RISK_CEILING:
        return "low", "approve"
    if risk_score <= MEDIUM_RISK_CEILING:
        return "medium", "review"
    return "high", "reject"


def weighted_base(scores: Dict[str, int]) -> float:
    return sum((100 - scores[name]) * weight for name, weight in WEIGHTS.items())


def overall_confidence(results: AgentResults) -> Confidence:
    """Averages the checkers' confidence labels (high=3, medium=2, low=1)."""
    labels = [getattr(results, name).confidence for name in WEIGHTS]
    average = sum(CONFIDENCE_VALUES.get(c, 1) for c in labels) / len(labels)
    if average >= 2.5:
        return "high"
    if average >= 1.5:
        return "medium"
    return "low"


def build_summary(
    submission: Submission,
    results: AgentResults,
    risk_score: int,
    risk_level: str,
    critical_issues: List[str],
    warnings: List[str],
    contradictions: List[str],
) -> str:
    parts = [
        f"{submission.text('company_name') or 'Vendor'} has been assessed with a "
        f"risk score of {risk_score}/100 ({risk_level.upper()} risk)."
    ]
    if critical_issues:
        parts.append(
            f"{len(critical_issues)} critical issue(s) identified: {', '.join(critical_issues)}."
        )
    if warnings:
        parts.append(f"{len(warnings)} warning(s) flagged for review.")
    if contradictions:
        parts.append("Data contradictions detected that require clarification.")

    positives = []
    if results.financial.years_in_business > 5:
        positives.append("established business history")
    if results.compliance.certifications:
        positives.append("security certifications")
    if results.digital.website_provided:
        positives.append("verifiable web presence")
    if positives:
        parts.append(f"Positive factors include: {', '.join(positives)}.")
    return " ".join(parts)


def build_data_prompt(
    submission: Submission,
    scores: Dict[str, int],
    risk_score: int,
    risk_level: str,
    critical_issues: List[str],
    warnings: List[str],
    contradictions: List[str],
) -> str:
    return f"""Synthesize these investigation results:

Vendor: {submission.text("company_name")}
Calculated Risk Score: {risk_score}/100
Risk Level: {risk_level.upper()}

Agent Scores:
- Intake: {scores["intake"]}/100
- Digital Forensics: {scores["digital"]}/100
- Privacy: {scores["privacy"]}/100
- Financial: {scores["financial"]}/100
- Compliance: {scores["compliance"]}/100

Critical Issues: {"; ".join(critical_issues) or "None"}
Warnings: {"; ".join(warnings) or "None"}
Contradictions: {"; ".join(contradictions) or "None"}

Provide:
1. Executive-level insights for leadership
2. Key risks that require attention
3. Mitigation strategies if we proceed with this vendor"""


async def aggregate_risk(
    results: AgentResults, submission: Submission, ctx: CheckContext
) -> RiskReport:
    """
    Computes the final risk verdict for an investigation.

    Args:
        results (AgentResults): The five checker results (real or fallback).
        submission (Submission): The original submission, for the narrative.
        ctx (CheckContext): The investigation context.

    Returns:
        RiskReport: The clamped risk score, level, recommendation and narrative.
    """
    findings: List[str] = []
    critical_issues: List[str] = []
    warnings: List[str] = []
    contradictions: List[str] = []

    scores = {name: getattr(results, name).score for name in WEIGHTS}
    raw = weighted_base(scores)

    # --- Critical issues and warnings ---

    if len(results.intake.missing_fields) > 3:
        raw += 10
        critical_issues.append("Missing multiple required fields")

    if results.financial.tax_id_issue:
        raw += 15
        critical_issues.append("Tax ID validation failed")
        ctx.log.finding(RISK_AGENT, "Critical: Tax ID issues detected", "critical")

    if results.privacy.has_critical_pii:
        raw += 10
        critical_issues.append("Critical PII exposed in submission")

    if not results.digital.website_provided:
        raw += 12
        warnings.append("No website provided for verification")

    if results.digital.suspicious_domain:
        raw += 15
        critical_issues.append("Suspicious digital footprint")
        ctx.log.notify(
            RISK_AGENT,
            DIGITAL_AGENT,
            "Suspicious patterns require deeper investigation",
            "high",
        )

    gap_count = len(results.compliance.compliance_gaps)
    if gap_count > 2:
        raw += 8
        warnings.append(f"{gap_count} compliance gaps identified")

    # --- Positive factors ---

    if results.digital.email_domain_match:
        raw -= 5
    if results.financial.years_in_business > 5:
        raw -= 8
    if len(results.compliance.certifications) > 1:
        raw -= 10
    if results.privacy.score > 80:
        raw -= 5

    # --- Cross-checker contradictions ---

    if results.compliance.certifications and not results.digital.website_provided:
        contradictions.append("Claims certifications but has no verifiable web presence")
        raw += 12

    if results.financial.years_in_business < 2 and results.financial.implausible_revenue:
        contradictions.append("High revenue claim for very new company")
        raw += 10

    if contradictions:
        findings.append("CONTRADICTIONS DETECTED:")
        findings.extend(f"  - {c}" for c in contradictions)
        ctx.log.finding(
            RISK_AGENT,
            f"Contradictions in vendor data: {'; '.join(contradictions)}",
            "critical",
        )

    risk_score = clamp_score(raw)
    risk_level, recommendation = classify_risk(risk_score)
    if risk_level == "low":
        findings.append("LOW RISK - Vendor meets requirements for approval")
    elif risk_level == "medium":
        findings.append("MEDIUM RISK - Human review recommended")
    else:
        findings.append("HIGH RISK - Recommend rejection or additional investigation")

    summary = build_summary(
        submission, results, risk_score, risk_level, critical_issues, warnings, contradictions
    )

    # The oracle only adds narrative; the score is final at this point.
    advisory = await ctx.consult_oracle(
        RISK_AGENT,
        ROLE_PROMPT,
        build_data_prompt(
            submission, scores, risk_score, risk_level, critical_issues, warnings, contradictions
        ),
        "Generating AI-powered executive insights...",
    )
    if advisory is not None:
        if advisory.executive_insights:
            findings.append("")
            findings.append("AI-Generated Executive Insights:")
            findings.extend(f"  - {insight}" for insight in advisory.executive_insights)
        if advisory.mitigation_strategies:
            findings.append("")
            findings.append("Recommended Mitigation Strategies:")
            findings.extend(f"  - {strategy}" for strategy in advisory.mitigation_strategies)

    logger.info(
        "Risk aggregation: score %d/100 (%s), recommendation %s",
        risk_score,
        risk_level.upper(),
        recommendation,
    )

    return RiskReport(
        risk_score=risk_score,
        risk_level=risk_level,
        recommendation=recommendation,
        summary=summary,
        findings=findings,
        critical_issues=critical_issues,
        warnings=warnings,
        contradictions=contradictions,
        agent_scores=scores,
        confidence=overall_confidence(results),
    )
