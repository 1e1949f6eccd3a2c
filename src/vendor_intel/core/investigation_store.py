"""
Persistence for completed investigations.

The store is an injected sink: the coordinator writes each finished
Investigation exactly once. Retention is bounded; the oldest records are
dropped when the limit is exceeded. Storage failures are logged and never
raised into the pipeline.
"""

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, List, Optional

import typer
from pydantic import ValidationError
from rich.table import Table

from .config_loader import CONFIG
from .schemas import Investigation
from .utils import console, save_or_print_results

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = CONFIG.storage.retention


class InvestigationStore(ABC):
    """Abstract base class for an investigation store."""

    @abstractmethod
    def save(self, record: Investigation) -> None:
        pass

    @abstractmethod
    def list_all(self) -> List[Investigation]:
        """All retained records, oldest first."""
        pass

    def recent(self, limit: int = 10) -> List[Investigation]:
        """The newest records, newest first."""
        return list(reversed(self.list_all()))[:limit]

    def get(self, investigation_id: str) -> Optional[Investigation]:
        for record in self.list_all():
            if record.investigation_id == investigation_id:
                return record
        return None


class InMemoryInvestigationStore(InvestigationStore):
    """Bounded in-process store. Used by tests and one-off CLI runs."""

    def __init__(self, retention: int = DEFAULT_RETENTION):
        self.retention = retention
        self._records: Deque[Investigation] = deque(maxlen=retention)

    def save(self, record: Investigation) -> None:
        self._records.append(record)
        logger.debug("Saved investigation %s in memory.", record.investigation_id)

    def list_all(self) -> List[Investigation]:
        return list(self._records)


class SqliteInvestigationStore(InvestigationStore):
    """
    Local SQLite store: one JSON document per investigation, keyed by id,
    with insertion order kept in an autoincrement column.
    """

    def __init__(
        self,
        database_path: Optional[str] = None,
        retention: int = DEFAULT_RETENTION,
    ):
        self.database_path = database_path or CONFIG.storage.database_path
        self.retention = retention
        self._init_db()

    def _create_connection(self) -> Optional[sqlite3.Connection]:
        try:
            return sqlite3.connect(self.database_path)
        except sqlite3.Error as e:
            logger.error("Error connecting to local SQLite DB: %s", e)
            return None

    def _init_db(self) -> None:
        conn = self._create_connection()
        if not conn:
            return
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS investigations (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    company_name TEXT,
                    timestamp TEXT NOT NULL,
                    risk_score INTEGER NOT NULL,
                    risk_level TEXT NOT NULL,
                    data TEXT NOT NULL
                );
                """
            )
            conn.commit()
            logger.info("Investigation store initialized at %s", self.database_path)
        except sqlite3.Error as e:
            logger.error("Error creating investigations table: %s", e)
        finally:
            conn.close()

    def save(self, record: Investigation) -> None:
        conn = self._create_connection()
        if not conn:
            return
        try:
            conn.execute(
                """INSERT OR REPLACE INTO investigations
                   (id, company_name, timestamp, risk_score, risk_level, data)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    record.investigation_id,
                    record.submission.company_name,
                    record.timestamp.isoformat(),
                    record.risk_score,
                    record.risk_level,
                    record.model_dump_json(by_alias=True),
                ),
            )
            conn.execute(
                """DELETE FROM investigations WHERE seq NOT IN
                   (SELECT seq FROM investigations ORDER BY seq DESC LIMIT ?)""",
                (self.retention,),
            )
            conn.commit()
            logger.debug("Saved investigation %s to SQLite.", record.investigation_id)
        except sqlite3.Error as e:
            logger.error(
                "Failed to save investigation %s to SQLite: %s",
                record.investigation_id,
                e,
            )
        finally:
            conn.close()

    def _load(self, raw: str) -> Optional[Investigation]:
        try:
            return Investigation.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.error("Skipping unreadable investigation row: %s", e)
            return None

    def list_all(self) -> List[Investigation]:
        conn = self._create_connection()
        if not conn:
            return []
        try:
            rows = conn.execute(
                "SELECT data FROM investigations ORDER BY seq ASC"
            ).fetchall()
        except sqlite3.Error as e:
            logger.error("Failed to list investigations from SQLite: %s", e)
            return []
        finally:
            conn.close()
        records = [self._load(row[0]) for row in rows]
        return [r for r in records if r is not None]

    def get(self, investigation_id: str) -> Optional[Investigation]:
        conn = self._create_connection()
        if not conn:
            return None
        try:
            row = conn.execute(
                "SELECT data FROM investigations WHERE id = ?", (investigation_id,)
            ).fetchone()
        except sqlite3.Error as e:
            logger.error("Failed to retrieve %s from SQLite: %s", investigation_id, e)
            return None
        finally:
            conn.close()
        return self._load(row[0]) if row else None


# --- Typer CLI Application ---


history_app = typer.Typer()


@history_app.command("list")
def list_investigations(
    limit: int = typer.Option(10, "--limit", "-n", help="Number of investigations to show.")
):
    """
    Lists the most recent investigations, newest first.
    """
    records = SqliteInvestigationStore().recent(limit)
    if not records:
        console.print("[yellow]No investigations recorded yet.[/yellow]")
        return
    table = Table(title="Recent Vendor Investigations")
    table.add_column("ID", style="cyan")
    table.add_column("Company", style="magenta")
    table.add_column("Timestamp")
    table.add_column("Risk", justify="right")
    table.add_column("Level")
    table.add_column("Recommendation", style="green")
    for r in records:
        table.add_row(
            r.investigation_id,
            r.submission.company_name or "-",
            r.timestamp.isoformat(timespec="seconds"),
            str(r.risk_score),
            r.risk_level.upper(),
            r.recommendation,
        )
    console.print(table)


@history_app.command("show")
def show_investigation(
    investigation_id: str = typer.Argument(..., help="The investigation ID to display."),
    output_file: Optional[str] = typer.Option(
        None, "--output", "-o", help="Save the record to a JSON file."
    ),
):
    """
    Shows one stored investigation as JSON.
    """
    record = SqliteInvestigationStore().get(investigation_id)
    if record is None:
        console.print(f"[bold red]No investigation found with ID {investigation_id}[/bold red]")
        raise typer.Exit(code=1)
    save_or_print_results(record.model_dump(mode="json", by_alias=True), output_file)
