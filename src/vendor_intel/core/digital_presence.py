"""
Digital-presence checker: website, domain and email-domain heuristics.

Performs a best-effort reachability probe of the declared website and, when
the website parses, asks the enrichment oracle for a legitimacy read. Network
and oracle failures become penalties or notes, never exceptions.
"""

import logging
import re
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from .context import CheckContext, DIGITAL_AGENT, RISK_AGENT
from .patterns import count_keywords
from .schemas import DigitalResult, Submission
from .utils import is_ipv4_literal, is_valid_hostname, round_half_up

logger = logging.getLogger(__name__)

SUSPICIOUS_TLDS: Tuple[str, ...] = (".tk", ".ml", ".ga", ".cf", ".gq", ".buzz", ".club")
FREE_EMAIL_PROVIDERS = frozenset(
    {"gmail.com", "yahoo.com", "hotmail.com", "outlook.com", "aol.com"}
)
GENERIC_NAME_TERMS: Tuple[str, ...] = (
    "solutions",
    "services",
    "group",
    "international",
    "global",
)

NO_WEBSITE_PENALTY = 20
INVALID_URL_PENALTY = 20
SUSPICIOUS_TLD_PENALTY = 25
IP_HOST_PENALTY = 30
UNREACHABLE_PENALTY = 15
FREE_EMAIL_PENALTY = 15
EMAIL_MISMATCH_PENALTY = 10
GENERIC_NAME_PENALTY = 10
SHORT_NAME_PENALTY = 5

_SCHEME_WWW_RE = re.compile(r"^(https?://)?(www\.)?", re.IGNORECASE)

ROLE_PROMPT = """You are a Digital Forensics specialist analyzing a vendor's legitimacy based on their digital presence.

Your job is to assess authenticity indicators from the provided information.

Return JSON with this structure:
{
  "findings": ["finding 1", "finding 2", "finding 3"],
  "riskIndicators": ["risk 1", "risk 2"],
  "score": <number 0-100, where 100 is most legitimate>,
  "confidence": "high" | "medium" | "low",
  "legitimacyConcerns": ["concern 1", "concern 2"]
}"""


def parse_website(website: str) -> Optional[str]:
    """
    Normalizes a declared website to an absolute URL, prepending https://
    when no scheme is given.

    Returns:
        Optional[str]: The absolute URL, or None if it does not parse.
    """
    candidate = website.strip()
    if not candidate.lower().startswith("http"):
        candidate = f"https://{candidate}"
    if any(ch.isspace() for ch in candidate):
        return None
    try:
        parsed = urlparse(candidate)
        hostname = parsed.hostname or ""
        parsed.port  # raises ValueError on a malformed port
    except ValueError:
        return None
    if not is_valid_hostname(hostname):
        return None
    return candidate


def website_label(website: str) -> str:
    """'https://www.acme.com/about' -> 'acme'."""
    bare = _SCHEME_WWW_RE.sub("", website.strip()).split("/")[0]
    return bare.lower().split(".")[0]


def email_domain(email: str) -> str:
    return email.rsplit("@", 1)[1].lower() if "@" in email else ""


def build_data_prompt(submission: Submission, website: str) -> str:
    domain = email_domain(submission.text("email")) or "Not provided"
    return f"""Analyze this vendor's digital presence:

Company Name: {submission.text("company_name")}
Website: {website}
Business Type: {submission.text("business_type") or "Not specified"}
Years in Business: {submission.text("years_in_business") or "Not specified"}
Email Domain: {domain}

Assess:
1. Does the email domain match the website domain? If not, is it suspicious?
2. Does the company name sound legitimate for their business type?
3. Are there any red flags in the digital footprint?
4. What additional verification would you recommend?"""


async def check_digital_presence(
    submission: Submission, ctx: CheckContext
) -> DigitalResult:
    """
    Investigates the vendor's online presence.

    Args:
        submission (Submission): The vendor submission.
        ctx (CheckContext): The investigation context (log, probe, oracle).

    Returns:
        DigitalResult: Score and flags consumed by the risk aggregator.
    """
    findings: List[str] = []
    risk_indicators: List[str] = []
    score = 100
    suspicious_domain = False
    reachable: Optional[bool] = None
    email_match = False
    consult_oracle = False

    website = submission.text("website")
    email = submission.text("email")

    if not website:
        score -= NO_WEBSITE_PENALTY
        risk_indicators.append("No website provided")
        findings.append("No company website provided - unable to verify digital presence")
        ctx.log.finding(DIGITAL_AGENT, "No website provided for verification", "warning")
    else:
        url = parse_website(website)
        if url is None:
            score -= INVALID_URL_PENALTY
            risk_indicators.append("Invalid website URL format")
            findings.append(f"Website URL format invalid: {website}")
        else:
            consult_oracle = True
            hostname = urlparse(url).hostname or ""
            findings.append(f"Website URL: {hostname}")

            if hostname.endswith(SUSPICIOUS_TLDS):
                suspicious_domain = True
                score -= SUSPICIOUS_TLD_PENALTY
                risk_indicators.append("Suspicious domain extension")
                findings.append(f"Domain uses suspicious TLD: {hostname}")
                ctx.log.notify(
                    DIGITAL_AGENT,
                    RISK_AGENT,
                    f"Suspicious domain TLD detected: {hostname}",
                    "high",
                )

            if is_ipv4_literal(hostname):
                score -= IP_HOST_PENALTY
                risk_indicators.append("Website is IP address, not domain")
                findings.append(
                    "Website URL is an IP address - professional businesses use domain names"
                )

            if ctx.probe is None:
                findings.append("Website reachability not checked")
            else:
                try:
                    reachable = await ctx.probe(url)
                except Exception as e:
                    logger.warning("Reachability probe raised for %s: %s", url, e)
                    reachable = False
                if reachable:
                    findings.append("Website is reachable")
                else:
                    score -= UNREACHABLE_PENALTY
                    risk_indicators.append("Website unreachable")
                    findings.append(
                        "Unable to reach website - may be offline or blocking automated requests"
                    )
                    ctx.log.finding(DIGITAL_AGENT, f"Website unreachable: {url}", "warning")

    if email and website:
        domain = email_domain(email)
        if domain in FREE_EMAIL_PROVIDERS:
            score -= FREE_EMAIL_PENALTY
            risk_indicators.append("Using free email provider")
            findings.append(
                "Company uses free email provider - professional businesses typically use custom domains"
            )
            ctx.log.finding(
                DIGITAL_AGENT,
                "Vendor using free email provider instead of corporate domain",
                "warning",
            )
        elif not domain or website_label(website) not in domain:
            score -= EMAIL_MISMATCH_PENALTY
            risk_indicators.append("Email domain does not match website")
            findings.append("Email domain does not match company website")
        else:
            email_match = True
            findings.append("Email domain matches company website")

    company_name = submission.text("company_name")
    if company_name:
        if count_keywords(company_name, GENERIC_NAME_TERMS) >= 2:
            score -= GENERIC_NAME_PENALTY
            findings.append("Company name uses multiple generic business terms")
        if len(company_name) < 5:
            score -= SHORT_NAME_PENALTY
            findings.append("Company name is unusually short")

    if consult_oracle:
        advisory = await ctx.consult_oracle(
            DIGITAL_AGENT,
            ROLE_PROMPT,
            build_data_prompt(submission, website),
            "Running AI analysis of digital footprint...",
        )
        if advisory is None:
            findings.append(
                "Note: AI-powered analysis unavailable, using rule-based assessment only"
            )
        else:
            findings.extend(advisory.findings or [])
            risk_indicators.extend(advisory.risk_indicators or [])
            if advisory.score is not None:
                score = round_half_up((score + advisory.score) / 2)
            if advisory.legitimacy_concerns:
                ctx.log.notify(
                    DIGITAL_AGENT,
                    RISK_AGENT,
                    f"AI detected legitimacy concerns: {'; '.join(advisory.legitimacy_concerns)}",
                    "medium",
                )

    score = max(0, min(100, score))

    logger.info("Digital presence: score %d/100, %d findings", score, len(findings))

    return DigitalResult(
        findings=findings,
        risk_indicators=risk_indicators,
        score=score,
        confidence="medium" if website else "low",
        website_provided=bool(website),
        website_reachable=reachable,
        email_domain_match=email_match,
        suspicious_domain=suspicious_domain,
    )
