import sqlite3
import unittest
from datetime import datetime, timezone
from pathlib import Path
from tempfile import TemporaryDirectory

from vendor_intel.core.investigation_store import (
    InMemoryInvestigationStore,
    SqliteInvestigationStore,
)
from vendor_intel.core.schemas import Investigation, Submission


def make_record(n, risk_score=20):
    return Investigation(
        investigation_id=f"vendor-{n:012d}",
        timestamp=datetime(2024, 1, 1, 12, n % 60, tzinfo=timezone.utc),
        submission=Submission(companyName=f"Vendor {n}", ein="12-3456789"),
        risk_score=risk_score,
        risk_level="low",
        recommendation="approve",
        summary=f"Vendor {n} assessed",
        messages=[
            {
                "type": "finding",
                "agent": "Risk Aggregator",
                "finding": "LOW RISK",
                "investigation_id": f"vendor-{n:012d}",
            }
        ],
    )


class StoreContract:
    """Behaviour shared by every store implementation."""

    def make_store(self, retention):
        raise NotImplementedError

    def test_save_and_list_in_order(self):
        store = self.make_store(retention=10)
        for n in range(3):
            store.save(make_record(n))

        ids = [r.investigation_id for r in store.list_all()]
        self.assertEqual(ids, [make_record(n).investigation_id for n in range(3)])

    def test_retention_drops_oldest(self):
        store = self.make_store(retention=3)
        for n in range(5):
            store.save(make_record(n))

        records = store.list_all()
        self.assertEqual(len(records), 3)
        self.assertEqual(records[0].submission.company_name, "Vendor 2")

    def test_recent_is_newest_first(self):
        store = self.make_store(retention=10)
        for n in range(4):
            store.save(make_record(n))

        recent = store.recent(2)
        self.assertEqual(
            [r.submission.company_name for r in recent], ["Vendor 3", "Vendor 2"]
        )

    def test_get(self):
        store = self.make_store(retention=10)
        store.save(make_record(7, risk_score=64))

        record = store.get(make_record(7).investigation_id)
        self.assertIsNotNone(record)
        self.assertEqual(record.risk_score, 64)
        self.assertEqual(record.submission.tax_id, "12-3456789")
        self.assertEqual(record.messages[0].type, "finding")
        self.assertIsNone(store.get("vendor-unknown"))


class TestInMemoryInvestigationStore(StoreContract, unittest.TestCase):
    def make_store(self, retention):
        return InMemoryInvestigationStore(retention=retention)


class TestSqliteInvestigationStore(StoreContract, unittest.TestCase):
    def setUp(self):
        self.tmp = TemporaryDirectory()
        self.db_path = str(Path(self.tmp.name) / "investigations.db")

    def tearDown(self):
        self.tmp.cleanup()

    def make_store(self, retention):
        return SqliteInvestigationStore(database_path=self.db_path, retention=retention)

    def test_records_survive_new_store_instance(self):
        self.make_store(retention=10).save(make_record(1))

        reopened = self.make_store(retention=10)
        self.assertEqual(len(reopened.list_all()), 1)

    def test_resaving_same_id_does_not_duplicate(self):
        store = self.make_store(retention=10)
        store.save(make_record(1, risk_score=10))
        store.save(make_record(1, risk_score=90))

        records = store.list_all()
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].risk_score, 90)

    def test_unreadable_rows_are_skipped(self):
        store = self.make_store(retention=10)
        store.save(make_record(1))
        conn = sqlite3.connect(self.db_path)
        conn.execute(
            "INSERT INTO investigations (id, timestamp, risk_score, risk_level, data) "
            "VALUES ('broken', 'now', 0, 'low', 'not json')"
        )
        conn.commit()
        conn.close()

        self.assertEqual(len(store.list_all()), 1)
        self.assertIsNone(store.get("broken"))

    def test_unwritable_path_is_logged_not_raised(self):
        store = SqliteInvestigationStore(
            database_path=str(Path(self.tmp.name) / "missing-dir" / "db.sqlite")
        )
        with self.assertLogs("vendor_intel.core.investigation_store", level="ERROR"):
            store.save(make_record(1))
        self.assertEqual(store.list_all(), [])


if __name__ == "__main__":
    unittest.main()
