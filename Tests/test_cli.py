import json
import unittest
from datetime import datetime, timezone
from tempfile import TemporaryDirectory
from unittest.mock import AsyncMock, MagicMock, patch

from typer.testing import CliRunner

from vendor_intel.cli import get_cli_app
from vendor_intel.core.config_loader import CONFIG
from vendor_intel.core.investigation_store import InMemoryInvestigationStore
from vendor_intel.core.schemas import Investigation, Submission

runner = CliRunner()
app = get_cli_app()

# Wide enough that rich tables never fold a cell.
WIDE = {"COLUMNS": "200"}

SUBMISSION = {
    "companyName": "Northwind Cloud LLC",
    "taxId": "12-3456789",
    "email": "contact@example.com",
    "phone": "(555) 123-4567",
    "address": "100 Main Street, Springfield",
    "businessType": "LLC",
    "servicesDescription": "Cloud infrastructure consulting with encryption and monitoring",
    "yearsInBusiness": "8",
    "annualRevenue": "$12,500,000",
    "insuranceInfo": "General and cyber liability coverage",
    "certifications": "SOC 2, ISO 27001",
    "website": "https://example.com",
}


def stored_record():
    return Investigation(
        investigation_id="vendor-0123456789ab",
        timestamp=datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
        submission=Submission(companyName="Northwind"),
        risk_score=12,
        risk_level="low",
        recommendation="approve",
        summary="Northwind has been assessed with a risk score of 12/100 (LOW risk).",
        messages=[
            {
                "type": "activity",
                "agent": "Risk Aggregator",
                "action": "Investigation complete - Risk Score: 12",
                "investigation_id": "vendor-0123456789ab",
                "metadata": {"status": "complete"},
            }
        ],
    )


class TestCli(unittest.TestCase):
    """Test cases for the top-level command-line application."""

    def setUp(self):
        tmp = TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.tmp = tmp.name

    def write_submission(self, data):
        path = f"{self.tmp}/submission.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        return path

    def test_version_command(self):
        result = runner.invoke(app, ["version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn(f"{CONFIG.app_name} v{CONFIG.version}", result.stdout)

    @patch("vendor_intel.core.coordinator.probe_reachability", new_callable=AsyncMock)
    def test_investigate_run_rule_based(self, mock_probe):
        mock_probe.return_value = True
        path = self.write_submission(SUBMISSION)
        output = f"{self.tmp}/result.json"

        result = runner.invoke(
            app,
            ["investigate", "run", path, "--no-ai", "--no-save", "-o", output],
            env=WIDE,
        )

        self.assertEqual(result.exit_code, 0, result.stdout)
        self.assertIn("LOW RISK", result.stdout)
        self.assertIn("APPROVE", result.stdout)
        with open(output, encoding="utf-8") as f:
            saved = json.load(f)
        self.assertEqual(saved["risk_score"], 0)
        self.assertEqual(saved["status"], "complete")
        self.assertEqual(saved["submission"]["companyName"], "Northwind Cloud LLC")
        self.assertEqual(saved["submission"]["taxId"], "12-3456789")

    @patch("vendor_intel.core.coordinator.validate_intake", side_effect=ValueError("boom"))
    def test_investigate_run_errored_exits_nonzero(self, mock_intake):
        path = self.write_submission(SUBMISSION)

        result = runner.invoke(
            app, ["investigate", "run", path, "--no-ai", "--no-save"], env=WIDE
        )

        self.assertEqual(result.exit_code, 1)
        self.assertIn("manual review required", result.stdout)

    def test_investigate_run_bad_file(self):
        path = f"{self.tmp}/broken.json"
        with open(path, "w", encoding="utf-8") as f:
            f.write("{not json")

        result = runner.invoke(app, ["investigate", "run", path, "--no-ai", "--no-save"])

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Could not load submission", result.stdout)

    @patch("vendor_intel.core.investigation_store.SqliteInvestigationStore")
    def test_history_list(self, mock_store_class):
        store = InMemoryInvestigationStore()
        store.save(stored_record())
        mock_store_class.return_value = store

        result = runner.invoke(app, ["history", "list", "-n", "5"], env=WIDE)

        self.assertEqual(result.exit_code, 0)
        self.assertIn("vendor-0123456789ab", result.stdout)
        self.assertIn("Northwind", result.stdout)
        self.assertIn("LOW", result.stdout)

    @patch("vendor_intel.core.investigation_store.SqliteInvestigationStore")
    def test_history_list_empty(self, mock_store_class):
        mock_store_class.return_value = InMemoryInvestigationStore()

        result = runner.invoke(app, ["history", "list"])

        self.assertEqual(result.exit_code, 0)
        self.assertIn("No investigations recorded yet", result.stdout)

    @patch("vendor_intel.core.investigation_store.SqliteInvestigationStore")
    def test_history_show_saves_json(self, mock_store_class):
        store = InMemoryInvestigationStore()
        store.save(stored_record())
        mock_store_class.return_value = store
        output = f"{self.tmp}/record.json"

        result = runner.invoke(app, ["history", "show", "vendor-0123456789ab", "-o", output])

        self.assertEqual(result.exit_code, 0)
        with open(output, encoding="utf-8") as f:
            self.assertEqual(json.load(f)["risk_level"], "low")

    @patch("vendor_intel.core.investigation_store.SqliteInvestigationStore")
    def test_history_show_missing(self, mock_store_class):
        mock_store_class.return_value = InMemoryInvestigationStore()

        result = runner.invoke(app, ["history", "show", "vendor-missing"])

        self.assertEqual(result.exit_code, 1)

    @patch("vendor_intel.core.coordinator.SqliteInvestigationStore")
    def test_investigate_status(self, mock_store_class):
        mock_store = MagicMock()
        mock_store.get.return_value = stored_record()
        mock_store_class.return_value = mock_store

        result = runner.invoke(app, ["investigate", "status", "vendor-0123456789ab"], env=WIDE)

        self.assertEqual(result.exit_code, 0)
        self.assertIn("(complete)", result.stdout)
        self.assertIn("Waiting...", result.stdout)

    def test_privacy_scan(self):
        path = self.write_submission({"companyName": "Acme", "address": "SSN 123-45-6789"})

        result = runner.invoke(app, ["privacy", "scan", path], env=WIDE)

        self.assertEqual(result.exit_code, 0)
        self.assertIn("Social Security Number", result.stdout)


if __name__ == "__main__":
    unittest.main()
