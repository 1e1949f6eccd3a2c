from typing import Any, Dict, List, Literal, Optional, Union
from typing_extensions import Annotated
from datetime import datetime, timezone
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

# --- Shared Literals ---

Confidence = Literal["high", "medium", "low"]
Severity = Literal["low", "medium", "high", "critical"]
Priority = Literal["low", "medium", "high"]
FindingSeverity = Literal["info", "warning", "critical"]
RiskLevel = Literal["low", "medium", "high"]
Recommendation = Literal["approve", "review", "reject"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Submission Model ---


class Submission(BaseModel):
    """
    A vendor-onboarding submission as produced by the intake form or the
    document field extractor. Every field is optional free text; unknown keys
    are kept so they still count as submitted text.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    company_name: Optional[str] = Field(None, alias="companyName")
    tax_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("taxId", "tax_id", "ein"),
        serialization_alias="taxId",
    )
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    business_type: Optional[str] = Field(None, alias="businessType")
    services_description: Optional[str] = Field(None, alias="servicesDescription")
    years_in_business: Optional[str] = Field(None, alias="yearsInBusiness")
    annual_revenue: Optional[str] = Field(None, alias="annualRevenue")
    insurance_info: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("insuranceInfo", "insurance_info", "insurance"),
        serialization_alias="insuranceInfo",
    )
    certifications: Optional[str] = None
    website: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("website", "companyWebsite"),
        serialization_alias="website",
    )

    @field_validator("*", mode="before")
    @classmethod
    def coerce_to_text(cls, v: Any) -> Any:
        # Form widgets send numbers for years/revenue.
        if v is None or isinstance(v, str):
            return v
        return str(v)

    def text(self, field: str) -> str:
        """Returns the named field's value, or an empty string when absent."""
        value = getattr(self, field, None)
        return value if isinstance(value, str) else ""

    def submitted_fields(self) -> Dict[str, Any]:
        """All submitted key/value pairs (form keys, extras included)."""
        return self.model_dump(by_alias=True, exclude_none=True)


# --- Check Result Models ---


class CheckResult(BaseModel):
    """Output of a single checker. Score 100 means least risky."""

    model_config = ConfigDict(frozen=True)

    findings: List[str] = Field(default_factory=list)
    risk_indicators: List[str] = Field(default_factory=list)
    score: int = Field(..., ge=0, le=100)
    confidence: Confidence
    error: Optional[str] = None


class IntakeResult(CheckResult):
    missing_fields: List[str] = Field(default_factory=list)
    completeness_percentage: int = 0


class PIIDetection(BaseModel):
    """One PII type found in a submission, with masked samples."""

    model_config = ConfigDict(frozen=True)

    type: str
    count: int
    severity: Severity
    samples: List[str] = Field(default_factory=list, max_length=2)


class PrivacyResult(CheckResult):
    pii_detected: List[PIIDetection] = Field(default_factory=list)
    privacy_rating: str = "Unknown"
    requires_data_masking: bool = False
    handles_pii: bool = False

    @property
    def has_critical_pii(self) -> bool:
        return any(d.severity == "critical" for d in self.pii_detected)


class DigitalResult(CheckResult):
    website_provided: bool = False
    website_reachable: Optional[bool] = None
    email_domain_match: bool = False
    suspicious_domain: bool = False


class FinancialResult(CheckResult):
    tax_id_provided: bool = False
    tax_id_valid: bool = False
    tax_id_issue: bool = False
    revenue_provided: bool = False
    annual_revenue: Optional[float] = None
    implausible_revenue: bool = False
    years_in_business: int = 0
    has_insurance: bool = False


class ComplianceResult(CheckResult):
    compliance_gaps: List[str] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)
    industry: str = "general"
    required_compliance: List[str] = Field(default_factory=list)
    security_controls: List[str] = Field(default_factory=list)
    requires_additional_review: bool = False


class AgentResults(BaseModel):
    """The five checker outputs of one investigation."""

    model_config = ConfigDict(frozen=True)

    intake: IntakeResult
    digital: DigitalResult
    privacy: PrivacyResult
    financial: FinancialResult
    compliance: ComplianceResult


# --- Enrichment Oracle Models ---


class OracleAdvisory(BaseModel):
    """
    Structured advisory returned by the enrichment oracle. Every field is
    optional because the oracle decides which lists it fills in.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    findings: Optional[List[str]] = None
    risk_indicators: Optional[List[str]] = Field(None, alias="riskIndicators")
    score: Optional[float] = None
    confidence: Optional[Confidence] = None
    compliance_gaps: Optional[List[str]] = Field(None, alias="complianceGaps")
    red_flags: Optional[List[str]] = Field(None, alias="redFlags")
    legitimacy_concerns: Optional[List[str]] = Field(
        None, alias="legitimacyConcerns"
    )
    recommendations: Optional[List[str]] = None
    executive_insights: Optional[List[str]] = Field(None, alias="executiveInsights")
    key_risks: Optional[List[str]] = Field(None, alias="keyRisks")
    mitigation_strategies: Optional[List[str]] = Field(
        None, alias="mitigationStrategies"
    )
    status: Optional[str] = None
    raw_response: Optional[str] = None

    @field_validator("score")
    @classmethod
    def clamp_score(cls, v: Optional[float]) -> Optional[float]:
        if v is None:
            return v
        return max(0.0, min(100.0, float(v)))

    @field_validator("confidence", mode="before")
    @classmethod
    def normalize_confidence(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().lower() in ("high", "medium", "low"):
            return v.strip().lower()
        return None


# --- Side-channel Log Records ---


class ActivityRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["activity"] = "activity"
    agent: str
    action: str
    investigation_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)


class CommunicationRecord(BaseModel):
    """A cross-checker notice. Observability only, nothing waits on it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: Literal["communication"] = "communication"
    sender: str = Field(..., alias="from")
    recipient: str = Field(..., alias="to")
    message: str
    priority: Priority = "medium"
    investigation_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class FindingRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["finding"] = "finding"
    agent: str
    finding: str
    severity: FindingSeverity = "info"
    investigation_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


LogRecord = Annotated[
    Union[ActivityRecord, CommunicationRecord, FindingRecord],
    Field(discriminator="type"),
]


# --- Risk Report & Investigation Models ---


class RiskReport(BaseModel):
    """Final verdict. Score 100 means most risky (inverse of CheckResult)."""

    model_config = ConfigDict(frozen=True)

    risk_score: int = Field(..., ge=0, le=100)
    risk_level: RiskLevel
    recommendation: Recommendation
    summary: str
    findings: List[str] = Field(default_factory=list)
    critical_issues: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    contradictions: List[str] = Field(default_factory=list)
    agent_scores: Dict[str, int] = Field(default_factory=dict)
    confidence: Confidence = "low"


class Investigation(BaseModel):
    """One full pipeline run, either complete or errored, never partial."""

    model_config = ConfigDict(frozen=True)

    investigation_id: str
    timestamp: datetime
    duration: float = 0.0
    status: Literal["complete", "errored"] = "complete"
    submission: Submission
    agent_results: Optional[AgentResults] = None
    risk_score: int = Field(..., ge=0, le=100)
    risk_level: RiskLevel
    recommendation: Recommendation
    summary: str
    findings: List[str] = Field(default_factory=list)
    critical_issues: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    contradictions: List[str] = Field(default_factory=list)
    agent_scores: Dict[str, int] = Field(default_factory=dict)
    confidence: Confidence = "low"
    messages: List[LogRecord] = Field(default_factory=list)
    error: Optional[str] = None


# --- Configuration Models ---


class NetworkConfig(BaseModel):
    timeout: float = 30.0
    probe_timeout: float = 5.0
    retries: int = 3
    user_agent: str = "Vendor-Intel/1.0"
    proxy: Optional[str] = None


class OracleConfig(BaseModel):
    enabled: bool = True
    model: str = "gemini-1.5-flash"
    timeout: float = 30.0


class PipelineConfig(BaseModel):
    event_log_capacity: int = 100
    probe_websites: bool = True


class StorageConfig(BaseModel):
    database_path: str = "./vendor_investigations.db"
    retention: int = 50


class AppConfig(BaseModel):
    app_name: str = "Vendor Intel"
    version: str = "1.0.0"
    log_level: str = "INFO"
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    oracle: OracleConfig = Field(default_factory=OracleConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
