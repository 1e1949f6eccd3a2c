import asyncio
import unittest
from unittest.mock import AsyncMock

from vendor_intel.core.context import DIGITAL_AGENT, detached_context
from vendor_intel.core.enrichment_oracle import OracleError
from vendor_intel.core.event_log import EventLog
from vendor_intel.core.risk_aggregator import (
    aggregate_risk,
    classify_risk,
    overall_confidence,
)
from vendor_intel.core.schemas import (
    AgentResults,
    ComplianceResult,
    DigitalResult,
    FinancialResult,
    IntakeResult,
    OracleAdvisory,
    PIIDetection,
    PrivacyResult,
    Submission,
)


def neutral_results(**overrides):
    """Every checker at 50 with no modifier triggered, so the base risk is 50."""
    results = {
        "intake": IntakeResult(score=50, confidence="medium"),
        "digital": DigitalResult(score=50, confidence="medium", website_provided=True),
        "privacy": PrivacyResult(score=50, confidence="medium"),
        "financial": FinancialResult(score=50, confidence="medium", years_in_business=3),
        "compliance": ComplianceResult(
            score=50, confidence="medium", certifications=["SOC 2"]
        ),
    }
    results.update(overrides)
    return AgentResults(**results)


class TestRiskAggregator(unittest.TestCase):
    """Test cases for the risk aggregator."""

    def setUp(self):
        self.sink = EventLog()
        self.ctx = detached_context("risk-test", sink=self.sink)
        self.submission = Submission(companyName="Northwind Cloud LLC")

    def aggregate(self, results):
        return asyncio.run(aggregate_risk(results, self.submission, self.ctx))

    def test_classify_risk_boundaries(self):
        self.assertEqual(classify_risk(0), ("low", "approve"))
        self.assertEqual(classify_risk(35), ("low", "approve"))
        self.assertEqual(classify_risk(36), ("medium", "review"))
        self.assertEqual(classify_risk(70), ("medium", "review"))
        self.assertEqual(classify_risk(71), ("high", "reject"))
        self.assertEqual(classify_risk(100), ("high", "reject"))

    def test_neutral_results(self):
        report = self.aggregate(neutral_results())

        self.assertEqual(report.risk_score, 50)
        self.assertEqual(report.risk_level, "medium")
        self.assertEqual(report.recommendation, "review")
        self.assertEqual(report.critical_issues, [])
        self.assertEqual(report.confidence, "medium")
        self.assertIn("MEDIUM RISK - Human review recommended", report.findings)
        self.assertEqual(
            report.agent_scores,
            {"intake": 50, "digital": 50, "privacy": 50, "financial": 50, "compliance": 50},
        )

    def test_clean_vendor_clamps_at_zero(self):
        results = AgentResults(
            intake=IntakeResult(score=100, confidence="high"),
            digital=DigitalResult(
                score=100, confidence="medium", website_provided=True, email_domain_match=True
            ),
            privacy=PrivacyResult(score=100, confidence="high"),
            financial=FinancialResult(score=100, confidence="medium", years_in_business=8),
            compliance=ComplianceResult(
                score=100, confidence="medium", certifications=["SOC 2", "ISO 27001"]
            ),
        )
        report = self.aggregate(results)

        self.assertEqual(report.risk_score, 0)
        self.assertEqual(report.recommendation, "approve")
        self.assertIn("established business history", report.summary)
        self.assertIn("verifiable web presence", report.summary)

    def test_tax_id_issue_is_critical(self):
        results = neutral_results(
            financial=FinancialResult(
                score=50, confidence="medium", years_in_business=3, tax_id_issue=True
            )
        )
        report = self.aggregate(results)

        self.assertEqual(report.risk_score, 65)
        self.assertIn("Tax ID validation failed", report.critical_issues)
        critical = [f for f in self.sink.records(record_type="finding") if f.severity == "critical"]
        self.assertEqual(len(critical), 1)

    def test_missing_fields_and_critical_pii(self):
        results = neutral_results(
            intake=IntakeResult(
                score=50, confidence="medium", missing_fields=["a", "b", "c", "d"]
            ),
            privacy=PrivacyResult(
                score=50,
                confidence="medium",
                pii_detected=[
                    PIIDetection(type="Social Security Number", count=1, severity="critical")
                ],
            ),
        )
        report = self.aggregate(results)

        self.assertEqual(report.risk_score, 70)
        self.assertEqual(report.risk_level, "medium")
        self.assertIn("Missing multiple required fields", report.critical_issues)
        self.assertIn("Critical PII exposed in submission", report.critical_issues)

    def test_certifications_without_website_is_contradiction(self):
        results = neutral_results(digital=DigitalResult(score=50, confidence="medium"))
        report = self.aggregate(results)

        # 50 + 12 (no website) + 12 (contradiction).
        self.assertEqual(report.risk_score, 74)
        self.assertEqual(report.risk_level, "high")
        self.assertIn("No website provided for verification", report.warnings)
        self.assertEqual(
            report.contradictions,
            ["Claims certifications but has no verifiable web presence"],
        )
        self.assertIn("CONTRADICTIONS DETECTED:", report.findings)
        self.assertIn(
            "  - Claims certifications but has no verifiable web presence", report.findings
        )

    def test_implausible_revenue_contradiction(self):
        results = neutral_results(
            financial=FinancialResult(
                score=50, confidence="medium", years_in_business=1, implausible_revenue=True
            )
        )
        report = self.aggregate(results)

        self.assertEqual(report.risk_score, 60)
        self.assertEqual(report.contradictions, ["High revenue claim for very new company"])

    def test_suspicious_domain_notifies_digital_checker(self):
        results = neutral_results(
            digital=DigitalResult(
                score=50, confidence="medium", website_provided=True, suspicious_domain=True
            )
        )
        report = self.aggregate(results)

        self.assertEqual(report.risk_score, 65)
        self.assertIn("Suspicious digital footprint", report.critical_issues)
        notices = self.sink.records(record_type="communication")
        self.assertEqual([n.recipient for n in notices], [DIGITAL_AGENT])

    def test_compliance_gaps_warning(self):
        results = neutral_results(
            compliance=ComplianceResult(
                score=50,
                confidence="medium",
                certifications=["SOC 2"],
                compliance_gaps=["a", "b", "c"],
            )
        )
        report = self.aggregate(results)

        self.assertEqual(report.risk_score, 58)
        self.assertIn("3 compliance gaps identified", report.warnings)

    def test_positive_factors_lower_risk(self):
        results = neutral_results(
            privacy=PrivacyResult(score=90, confidence="high"),
            compliance=ComplianceResult(
                score=50, confidence="medium", certifications=["SOC 2", "HIPAA"]
            ),
        )
        report = self.aggregate(results)

        # Privacy 90 lowers the base by 8, then -5 (privacy) and -10 (certifications).
        self.assertEqual(report.risk_score, 27)
        self.assertEqual(report.risk_level, "low")

    def test_oracle_adds_narrative_only(self):
        oracle = AsyncMock()
        oracle.consult.return_value = OracleAdvisory(
            executiveInsights=["Vendor is mid-sized"],
            mitigationStrategies=["Request SOC 2 report"],
        )
        self.ctx.oracle = oracle

        report = self.aggregate(neutral_results())

        self.assertEqual(report.risk_score, 50)
        self.assertIn("AI-Generated Executive Insights:", report.findings)
        self.assertIn("  - Vendor is mid-sized", report.findings)
        self.assertIn("Recommended Mitigation Strategies:", report.findings)
        self.assertIn("  - Request SOC 2 report", report.findings)

    def test_oracle_failure_is_ignored(self):
        oracle = AsyncMock()
        oracle.consult.side_effect = OracleError("quota exceeded")
        self.ctx.oracle = oracle

        report = self.aggregate(neutral_results())

        self.assertEqual(report.risk_score, 50)
        self.assertNotIn("AI-Generated Executive Insights:", report.findings)

    def test_overall_confidence(self):
        low = neutral_results(
            intake=IntakeResult(score=50, confidence="low"),
            digital=DigitalResult(score=50, confidence="low"),
            privacy=PrivacyResult(score=50, confidence="low"),
        )
        self.assertEqual(overall_confidence(low), "low")

        high = neutral_results(
            intake=IntakeResult(score=50, confidence="high"),
            digital=DigitalResult(score=50, confidence="high"),
            privacy=PrivacyResult(score=50, confidence="high"),
        )
        self.assertEqual(overall_confidence(high), "high")


if __name__ == "__main__":
    unittest.main()
