"""
Financial plausibility checker.

Validates the tax identifier (shape and IRS campus prefix), sanity-checks the
declared revenue against the company's age, and looks at business structure
and insurance. The enrichment oracle, when available, gets a second opinion on
the overall financial profile.
"""

import logging
from typing import FrozenSet, List, Optional, Tuple

from .context import (
    COMPLIANCE_AGENT,
    CheckContext,
    DIGITAL_AGENT,
    FINANCIAL_AGENT,
    RISK_AGENT,
)
from .patterns import KeywordRule, compile_pattern, contains_any, first_keyword_rule
from .schemas import FinancialResult, Submission
from .utils import parse_leading_int, parse_leading_number, round_half_up

logger = logging.getLogger(__name__)

EIN_PATTERN = compile_pattern(r"^\d{2}-?\d{7}$")
# Two-digit prefixes never assigned by an IRS campus. Valid prefixes run 01-98.
VALID_EIN_PREFIX_RANGE = range(1, 99)
INVALID_EIN_PREFIXES: FrozenSet[int] = frozenset(
    {7, 8, 9, 17, 18, 19, 28, 29, 49, 69, 70, 78, 79, 89}
)

MISSING_TAX_ID_PENALTY = 25
MALFORMED_TAX_ID_PENALTY = 20
INVALID_PREFIX_PENALTY = 20
UNPARSEABLE_REVENUE_PENALTY = 10
MISSING_REVENUE_PENALTY = 15
IMPLAUSIBLE_GROWTH_PENALTY = 15
LOW_REVENUE_PENALTY = 10
NO_HISTORY_PENALTY = 5
NEW_COMPANY_PENALTY = 3
MISSING_INSURANCE_PENALTY = 15
NO_CYBER_COVERAGE_PENALTY = 5

NEW_COMPANY_YEARS = 2
ESTABLISHED_YEARS = 5
MATURE_YEARS = 10
HIGH_REVENUE = 1_000_000
LOW_REVENUE = 50_000

BUSINESS_STRUCTURE_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(
        name="High-risk business structure",
        keywords=("sole proprietor", "individual"),
        severity="warning",
        penalty=10,
    ),
    KeywordRule(
        name="Formal business structure",
        keywords=("llc", "corporation"),
        severity="info",
        penalty=0,
    ),
)

ROLE_PROMPT = """You are a Financial Investigation specialist analyzing vendor financial legitimacy.

Assess the financial health and authenticity indicators from the provided data.

Return JSON with this structure:
{
  "findings": ["finding 1", "finding 2"],
  "riskIndicators": ["risk 1"],
  "score": <number 0-100>,
  "confidence": "high" | "medium" | "low",
  "redFlags": ["flag 1", "flag 2"]
}"""


def is_valid_ein_prefix(prefix: int) -> bool:
    return prefix in VALID_EIN_PREFIX_RANGE and prefix not in INVALID_EIN_PREFIXES


def normalize_tax_id(tax_id: str) -> str:
    return "".join(tax_id.split())


def has_insurance(insurance: str) -> bool:
    """Declared insurance counts only when it does not say 'none'."""
    return bool(insurance) and "none" not in insurance.lower()


def build_data_prompt(
    submission: Submission, years: int, tax_id_provided: bool
) -> str:
    return f"""Analyze this vendor's financial profile:

Company: {submission.text("company_name")}
Business Type: {submission.text("business_type") or "Not specified"}
Years in Business: {years or "Not specified"}
Annual Revenue: {submission.text("annual_revenue") or "Not specified"}
Tax ID Provided: {"Yes" if tax_id_provided else "No"}
Insurance: {submission.text("insurance_info") or "Not specified"}

Assess:
1. Do the revenue claims seem realistic for this business type and age?
2. Are there any financial red flags?
3. What is the likelihood this is a shell company or fraudulent entity?
4. What financial documentation should be requested for verification?"""


async def check_financial_plausibility(
    submission: Submission, ctx: CheckContext
) -> FinancialResult:
    """
    Investigates the vendor's financial legitimacy.

    Args:
        submission (Submission): The vendor submission.
        ctx (CheckContext): The investigation context.

    Returns:
        FinancialResult: Score plus the tax-id, revenue, history and insurance
        facts used by the risk aggregator.
    """
    findings: List[str] = []
    risk_indicators: List[str] = []
    score = 100
    tax_id_valid = False
    tax_id_issue = False
    implausible_revenue = False
    revenue_value: Optional[float] = None

    # --- Tax identifier ---

    tax_id = normalize_tax_id(submission.text("tax_id"))
    if not tax_id:
        score -= MISSING_TAX_ID_PENALTY
        tax_id_issue = True
        risk_indicators.append("No Tax ID provided")
        findings.append("No Tax ID/EIN provided - cannot verify business registration")
        ctx.log.finding(FINANCIAL_AGENT, "No Tax ID provided for verification", "warning")
    elif not EIN_PATTERN.match(tax_id):
        score -= MALFORMED_TAX_ID_PENALTY
        tax_id_issue = True
        risk_indicators.append("Tax ID format invalid")
        findings.append("Tax ID does not match standard EIN format (XX-XXXXXXX)")
    else:
        findings.append("Tax ID format appears valid")
        if is_valid_ein_prefix(int(tax_id[:2])):
            tax_id_valid = True
        else:
            score -= INVALID_PREFIX_PENALTY
            tax_id_issue = True
            risk_indicators.append("Tax ID prefix is invalid")
            findings.append("Tax ID prefix does not match valid IRS ranges")
            ctx.log.notify(
                FINANCIAL_AGENT,
                DIGITAL_AGENT,
                "Suspicious Tax ID detected - please verify company registration",
                "high",
            )

    # --- Revenue versus company age ---

    years = max(0, parse_leading_int(submission.text("years_in_business")))
    revenue = submission.text("annual_revenue").strip()
    if revenue:
        parsed = parse_leading_number(revenue)
        if parsed is not None and parsed > 0:
            revenue_value = parsed
            findings.append(f"Annual revenue reported: ${parsed:,.0f}")
            if years < NEW_COMPANY_YEARS and parsed > HIGH_REVENUE:
                score -= IMPLAUSIBLE_GROWTH_PENALTY
                implausible_revenue = True
                risk_indicators.append("Unusually high revenue for new company")
                findings.append(
                    "Revenue seems high for a company this new - requires verification"
                )
                ctx.log.finding(
                    FINANCIAL_AGENT,
                    f"New company ({years} years) claiming ${parsed:,.0f} revenue",
                    "warning",
                )
            if years > MATURE_YEARS and parsed < LOW_REVENUE:
                score -= LOW_REVENUE_PENALTY
                findings.append(
                    "Note: Low revenue for established company - may be struggling"
                )
        else:
            score -= UNPARSEABLE_REVENUE_PENALTY
            findings.append("Revenue value could not be parsed")
    else:
        score -= MISSING_REVENUE_PENALTY
        risk_indicators.append("No revenue information")
        findings.append("No annual revenue information provided")

    # --- Track record ---

    if years == 0:
        score -= NO_HISTORY_PENALTY
        risk_indicators.append("No business history")
        findings.append("Brand new company - limited track record")
        ctx.log.notify(
            FINANCIAL_AGENT,
            RISK_AGENT,
            "New vendor with no business history - recommend enhanced monitoring",
            "medium",
        )
    elif years < NEW_COMPANY_YEARS:
        score -= NEW_COMPANY_PENALTY
        findings.append("Company is relatively new (< 2 years)")
    elif years >= ESTABLISHED_YEARS:
        findings.append(f"Established company with {years} years of operation")

    # --- Business structure ---

    structure = first_keyword_rule(
        BUSINESS_STRUCTURE_RULES, submission.text("business_type")
    )
    if structure is not None:
        score -= structure.penalty
        if structure.penalty:
            findings.append("Business structure is high-risk for large contracts")
        else:
            findings.append("Formal business structure (LLC or Corporation)")

    # --- Insurance ---

    insurance = submission.text("insurance_info")
    insured = has_insurance(insurance)
    if not insured:
        score -= MISSING_INSURANCE_PENALTY
        risk_indicators.append("No insurance information")
        findings.append("No business insurance information provided")
        ctx.log.notify(
            FINANCIAL_AGENT,
            COMPLIANCE_AGENT,
            "No insurance information - may be compliance issue",
            "medium",
        )
    else:
        findings.append("Insurance information provided")
        if contains_any(insurance, ("cyber",)):
            findings.append("Cyber liability coverage mentioned")
        else:
            score -= NO_CYBER_COVERAGE_PENALTY
            findings.append("Insurance does not explicitly mention cyber liability coverage")

    # --- Oracle second opinion ---

    advisory = await ctx.consult_oracle(
        FINANCIAL_AGENT,
        ROLE_PROMPT,
        build_data_prompt(submission, years, bool(tax_id)),
        "Running AI financial analysis...",
    )
    if advisory is None:
        findings.append("Note: AI financial analysis unavailable, using rule-based assessment")
    else:
        findings.extend(advisory.findings or [])
        risk_indicators.extend(advisory.risk_indicators or [])
        if advisory.score is not None:
            score = round_half_up((score + advisory.score) / 2)
        if advisory.red_flags:
            ctx.log.notify(
                FINANCIAL_AGENT,
                RISK_AGENT,
                f"AI detected financial red flags: {'; '.join(advisory.red_flags)}",
                "high",
            )

    score = max(0, min(100, score))

    logger.info(
        "Financial plausibility: score %d/100, %d risk indicators",
        score,
        len(risk_indicators),
    )

    return FinancialResult(
        findings=findings,
        risk_indicators=risk_indicators,
        score=score,
        confidence="medium" if tax_id and revenue else "low",
        tax_id_provided=bool(tax_id),
        tax_id_valid=tax_id_valid,
        tax_id_issue=tax_id_issue,
        revenue_provided=bool(revenue),
        annual_revenue=revenue_value,
        implausible_revenue=implausible_revenue,
        years_in_business=years,
        has_insurance=insured,
    )
