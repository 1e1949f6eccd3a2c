"""
Compliance checker: certifications, industry obligations, insurance, data
handling and declared security controls.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .context import COMPLIANCE_AGENT, CheckContext, PRIVACY_AGENT, RISK_AGENT
from .patterns import KeywordRule, contains_any, match_keyword_rules
from .schemas import ComplianceResult, Submission
from .utils import round_half_up

logger = logging.getLogger(__name__)

CERTIFICATION_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(name="SOC 2", keywords=("soc 2", "soc2", "soc ii"), severity="high"),
    KeywordRule(name="ISO 27001", keywords=("iso 27001", "iso27001"), severity="high"),
    KeywordRule(name="PCI DSS", keywords=("pci", "pci dss", "pci-dss"), severity="medium"),
    KeywordRule(
        name="HIPAA",
        keywords=("hipaa", "health insurance portability"),
        severity="high",
    ),
    KeywordRule(
        name="GDPR", keywords=("gdpr", "general data protection"), severity="medium"
    ),
    KeywordRule(name="FedRAMP", keywords=("fedramp", "fed ramp"), severity="medium"),
)


@dataclass(frozen=True)
class IndustryRule:
    """An industry inferred from the services text and what it obliges."""

    name: str
    keywords: Tuple[str, ...]
    requirements: Tuple[str, ...]
    # Any one of these certifications satisfies the industry.
    accepted_certifications: Tuple[str, ...]
    penalty: int
    gap: str
    escalate: bool = False


# Evaluated in order; the first industry whose keywords appear wins.
INDUSTRY_RULES: Tuple[IndustryRule, ...] = (
    IndustryRule(
        name="healthcare",
        keywords=("health", "medical", "patient", "hipaa", "clinical"),
        requirements=("HIPAA compliance", "BAA agreement", "Patient data encryption"),
        accepted_certifications=("HIPAA",),
        penalty=25,
        gap="HIPAA compliance required but not demonstrated",
        escalate=True,
    ),
    IndustryRule(
        name="financial",
        keywords=("financial", "banking", "payment", "transaction", "money"),
        requirements=("PCI DSS", "SOC 2 Type II", "Data encryption", "Audit logs"),
        accepted_certifications=("SOC 2", "ISO 27001"),
        penalty=20,
        gap="Financial services require SOC 2 or ISO 27001",
    ),
    IndustryRule(
        name="government",
        keywords=("government", "federal", "state", "public sector", "fedramp"),
        requirements=("FedRAMP authorization", "FISMA compliance", "US data residency"),
        accepted_certifications=("FedRAMP",),
        penalty=15,
        gap="Government contracts typically require FedRAMP",
    ),
    IndustryRule(
        name="ecommerce",
        keywords=("ecommerce", "e-commerce", "payment", "credit card", "shopping"),
        requirements=("PCI DSS", "Payment security", "TLS encryption"),
        accepted_certifications=("PCI DSS",),
        penalty=15,
        gap="E-commerce handling requires PCI DSS compliance",
    ),
)

SECURITY_CONTROL_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(
        name="encryption", keywords=("encryption", "encrypted", "aes", "tls", "ssl")
    ),
    KeywordRule(
        name="access control",
        keywords=("access control", "authentication", "authorization", "mfa", "2fa"),
    ),
    KeywordRule(name="monitoring", keywords=("monitoring", "logging", "audit", "siem")),
    KeywordRule(
        name="backup",
        keywords=("backup", "disaster recovery", "business continuity"),
    ),
)

DATA_HANDLING_KEYWORDS = ("data", "information", "personal", "customer", "user")
PRIVACY_KEYWORDS = ("gdpr", "privacy")

NO_CERTIFICATIONS_PENALTY = 20
MISSING_INSURANCE_PENALTY = 15
NO_CYBER_COVERAGE_PENALTY = 5
NO_PRIVACY_COMPLIANCE_PENALTY = 10
NO_SECURITY_CONTROLS_PENALTY = 15
ADDITIONAL_REVIEW_GAP_THRESHOLD = 2

ROLE_PROMPT = """You are a Compliance and Security Assessment specialist.

Analyze vendor compliance posture and identify regulatory gaps.

Return JSON with this structure:
{
  "findings": ["finding 1", "finding 2"],
  "riskIndicators": ["risk 1"],
  "score": <number 0-100>,
  "confidence": "high" | "medium" | "low",
  "complianceGaps": ["gap 1", "gap 2"],
  "recommendations": ["rec 1", "rec 2"]
}"""


def detect_certifications(certifications: str, services: str) -> List[str]:
    return [rule.name for rule in match_keyword_rules(CERTIFICATION_RULES, certifications, services)]


def infer_industry(services: str) -> Optional[IndustryRule]:
    for rule in INDUSTRY_RULES:
        if contains_any(services, rule.keywords):
            return rule
    return None


def build_data_prompt(submission: Submission, industry: str) -> str:
    return f"""Assess compliance for this vendor:

Company: {submission.text("company_name")}
Business Type: {submission.text("business_type") or "Not specified"}
Services: {submission.text("services_description") or "Not specified"}
Certifications: {submission.text("certifications") or "None provided"}
Insurance: {submission.text("insurance_info") or "None"}
Industry Context: {industry}

Analyze:
1. What compliance frameworks apply to their services?
2. What certifications should they have but don't?
3. What are the security compliance gaps?
4. What documentation should be requested?"""


async def check_compliance(
    submission: Submission, ctx: CheckContext
) -> ComplianceResult:
    """
    Assesses the vendor's regulatory and security compliance posture.

    Args:
        submission (Submission): The vendor submission.
        ctx (CheckContext): The investigation context.

    Returns:
        ComplianceResult: Score, gaps, certifications found and inferred industry.
    """
    findings: List[str] = []
    risk_indicators: List[str] = []
    gaps: List[str] = []
    score = 100

    certifications_text = submission.text("certifications")
    services = submission.text("services_description")

    found = detect_certifications(certifications_text, services)
    for name in found:
        findings.append(f"{name} certification claimed")
    if found:
        findings.append(
            f"Found {len(found)} security certification(s): {', '.join(found)}"
        )
    else:
        score -= NO_CERTIFICATIONS_PENALTY
        gaps.append("No security certifications provided")
        risk_indicators.append("No security certifications")
        findings.append("No recognized security certifications (SOC 2, ISO 27001, etc.)")
        ctx.log.finding(COMPLIANCE_AGENT, "No security certifications detected", "warning")

    industry = infer_industry(services)
    if industry is not None:
        findings.append(f"Industry detected: {industry.name.upper()}")
        findings.append(f"Required compliance: {', '.join(industry.requirements)}")
        if not any(cert in found for cert in industry.accepted_certifications):
            score -= industry.penalty
            gaps.append(industry.gap)
            if industry.escalate:
                ctx.log.notify(
                    COMPLIANCE_AGENT,
                    RISK_AGENT,
                    f"{industry.name.capitalize()} services detected but no "
                    f"{industry.accepted_certifications[0]} compliance - HIGH RISK",
                    "high",
                )

    insurance = submission.text("insurance_info")
    if not insurance or "none" in insurance.lower():
        score -= MISSING_INSURANCE_PENALTY
        gaps.append("No liability insurance")
        findings.append("No liability insurance - may not meet procurement requirements")
    elif contains_any(insurance, ("cyber",)):
        findings.append("Cyber liability insurance noted")
    else:
        score -= NO_CYBER_COVERAGE_PENALTY
        findings.append("Note: Cyber liability insurance not explicitly mentioned")

    if contains_any(services, DATA_HANDLING_KEYWORDS):
        findings.append("Vendor services involve data handling")
        if not contains_any(certifications_text, PRIVACY_KEYWORDS) and not contains_any(
            services, PRIVACY_KEYWORDS
        ):
            score -= NO_PRIVACY_COMPLIANCE_PENALTY
            gaps.append("Data handling requires privacy compliance (GDPR, CCPA)")
            ctx.log.notify(
                COMPLIANCE_AGENT,
                PRIVACY_AGENT,
                "Vendor handles data but no privacy compliance mentioned",
                "medium",
            )

    controls = [
        rule.name
        for rule in match_keyword_rules(SECURITY_CONTROL_RULES, services, certifications_text)
    ]
    if controls:
        findings.append(f"Security controls mentioned: {', '.join(controls)}")
    else:
        score -= NO_SECURITY_CONTROLS_PENALTY
        gaps.append("No specific security controls mentioned")
        findings.append("No security controls or practices described")

    industry_name = industry.name if industry is not None else "general"

    advisory = await ctx.consult_oracle(
        COMPLIANCE_AGENT,
        ROLE_PROMPT,
        build_data_prompt(submission, industry_name),
        "Running AI compliance assessment...",
    )
    if advisory is None:
        findings.append("Note: AI compliance analysis unavailable")
    else:
        findings.extend(advisory.findings or [])
        risk_indicators.extend(advisory.risk_indicators or [])
        gaps.extend(advisory.compliance_gaps or [])
        if advisory.score is not None:
            score = round_half_up((score + advisory.score) / 2)

    score = max(0, min(100, score))

    logger.info("Compliance: score %d/100, %d gaps identified", score, len(gaps))

    return ComplianceResult(
        findings=findings,
        risk_indicators=risk_indicators,
        score=score,
        confidence="medium" if found else "low",
        compliance_gaps=gaps,
        certifications=found,
        industry=industry_name,
        required_compliance=list(industry.requirements) if industry else [],
        security_controls=controls,
        requires_additional_review=len(gaps) > ADDITIONAL_REVIEW_GAP_THRESHOLD,
    )
