import asyncio
import unittest
from unittest.mock import AsyncMock

from vendor_intel.core.context import CheckContext, RISK_AGENT
from vendor_intel.core.digital_presence import (
    check_digital_presence,
    email_domain,
    parse_website,
    website_label,
)
from vendor_intel.core.enrichment_oracle import OracleError
from vendor_intel.core.event_log import EventLog, InvestigationLog
from vendor_intel.core.schemas import OracleAdvisory, Submission

AI_NOTE = "Note: AI-powered analysis unavailable, using rule-based assessment only"


class TestDigitalPresence(unittest.TestCase):
    """Test cases for the digital-presence checker."""

    def setUp(self):
        self.sink = EventLog()
        self.probe = AsyncMock(return_value=True)

    def run_check(self, oracle=None, **fields):
        ctx = CheckContext(
            log=InvestigationLog(self.sink, "digital-test"),
            oracle=oracle,
            probe=self.probe,
        )
        return asyncio.run(check_digital_presence(Submission(**fields), ctx))

    def test_legitimate_presence(self):
        result = self.run_check(
            companyName="Northwind Cloud LLC",
            website="https://example.com",
            email="contact@example.com",
        )

        self.assertEqual(result.score, 100)
        self.assertTrue(result.website_provided)
        self.assertTrue(result.website_reachable)
        self.assertTrue(result.email_domain_match)
        self.assertFalse(result.suspicious_domain)
        self.assertEqual(result.confidence, "medium")
        self.assertIn(AI_NOTE, result.findings)
        self.probe.assert_awaited_once_with("https://example.com")

    def test_no_website(self):
        result = self.run_check(companyName="Northwind Cloud LLC", email="a@example.com")

        self.assertEqual(result.score, 80)
        self.assertFalse(result.website_provided)
        self.assertIn("No website provided", result.risk_indicators)
        self.assertEqual(result.confidence, "low")
        self.assertNotIn(AI_NOTE, result.findings)
        self.probe.assert_not_awaited()

    def test_ip_literal_website(self):
        """An IPv4 host is penalized once and never as a suspicious TLD."""
        result = self.run_check(website="http://192.168.1.1")

        self.assertEqual(result.score, 70)
        self.assertFalse(result.suspicious_domain)
        self.assertIn("Website is IP address, not domain", result.risk_indicators)

    def test_suspicious_tld(self):
        result = self.run_check(website="shady-deals.tk")

        self.assertEqual(result.score, 75)
        self.assertTrue(result.suspicious_domain)
        self.assertIn("Suspicious domain extension", result.risk_indicators)
        notices = self.sink.records(record_type="communication")
        self.assertEqual(notices[0].recipient, RISK_AGENT)
        self.assertEqual(notices[0].priority, "high")
        self.probe.assert_awaited_once_with("https://shady-deals.tk")

    def test_invalid_website_skips_further_checks(self):
        result = self.run_check(website="http://bad host name")

        self.assertEqual(result.score, 80)
        self.assertIn("Invalid website URL format", result.risk_indicators)
        self.probe.assert_not_awaited()

    def test_unreachable_website(self):
        self.probe.return_value = False
        result = self.run_check(website="https://example.com")

        self.assertEqual(result.score, 85)
        self.assertFalse(result.website_reachable)
        self.assertIn("Website unreachable", result.risk_indicators)

    def test_probe_exception_counts_as_unreachable(self):
        self.probe.side_effect = OSError("network down")
        result = self.run_check(website="https://example.com")

        self.assertEqual(result.score, 85)
        self.assertFalse(result.website_reachable)

    def test_probe_disabled(self):
        self.probe = None
        result = self.run_check(website="https://example.com")

        self.assertEqual(result.score, 100)
        self.assertIsNone(result.website_reachable)

    def test_free_email_provider(self):
        result = self.run_check(website="https://example.com", email="owner@gmail.com")

        self.assertEqual(result.score, 85)
        self.assertFalse(result.email_domain_match)
        self.assertIn("Using free email provider", result.risk_indicators)

    def test_email_domain_mismatch(self):
        result = self.run_check(website="https://www.example.com", email="ceo@other.net")

        self.assertEqual(result.score, 90)
        self.assertIn("Email domain does not match website", result.risk_indicators)

    def test_generic_and_short_company_names(self):
        generic = self.run_check(companyName="Global Solutions Group")
        self.assertEqual(generic.score, 80 - 10)

        short = self.run_check(companyName="Abc")
        self.assertEqual(short.score, 80 - 5)

    def test_oracle_score_is_averaged(self):
        oracle = AsyncMock()
        oracle.consult.return_value = OracleAdvisory(
            findings=["Established brand"],
            riskIndicators=["Thin social footprint"],
            score=61,
            legitimacyConcerns=["Recently registered domain"],
        )
        result = self.run_check(oracle=oracle, website="https://example.com")

        # (100 + 61) / 2 = 80.5, rounded half up.
        self.assertEqual(result.score, 81)
        self.assertIn("Established brand", result.findings)
        self.assertIn("Thin social footprint", result.risk_indicators)
        self.assertNotIn(AI_NOTE, result.findings)
        concerns = [
            n
            for n in self.sink.records(record_type="communication")
            if "legitimacy concerns" in n.message
        ]
        self.assertEqual(len(concerns), 1)

    def test_oracle_failure_is_swallowed(self):
        oracle = AsyncMock()
        oracle.consult.side_effect = OracleError("timeout")
        result = self.run_check(oracle=oracle, website="https://example.com")

        self.assertEqual(result.score, 100)
        self.assertIn(AI_NOTE, result.findings)

    def test_helpers(self):
        self.assertEqual(parse_website("example.com"), "https://example.com")
        self.assertEqual(parse_website("HTTP://Example.com"), "HTTP://Example.com")
        self.assertIsNone(parse_website("http://"))
        self.assertEqual(website_label("https://www.acme.com/about"), "acme")
        self.assertEqual(email_domain("Sales@Acme.COM"), "acme.com")
        self.assertEqual(email_domain("no-at-sign"), "")


if __name__ == "__main__":
    unittest.main()
