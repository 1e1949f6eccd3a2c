"""
Per-investigation context handed to every checker.

It carries the investigation-bound event log, the optional enrichment oracle
and the reachability probe. All three are injected, so tests can replace them
with deterministic doubles.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .enrichment_oracle import EnrichmentOracle
from .event_log import EventLog, InvestigationLog, NullEventLog
from .http_client import probe_reachability
from .schemas import OracleAdvisory

logger = logging.getLogger(__name__)

# --- Agent names used in the side-channel log ---

INTAKE_AGENT = "Intake Validator"
DIGITAL_AGENT = "Digital Presence Checker"
FINANCIAL_AGENT = "Financial Plausibility Checker"
COMPLIANCE_AGENT = "Compliance Checker"
PRIVACY_AGENT = "PII Scanner"
RISK_AGENT = "Risk Aggregator"
COORDINATOR_AGENT = "Investigation Coordinator"

Probe = Callable[[str], Awaitable[bool]]


@dataclass
class CheckContext:
    log: InvestigationLog
    oracle: Optional[EnrichmentOracle] = None
    probe: Optional[Probe] = probe_reachability

    @property
    def investigation_id(self) -> str:
        return self.log.investigation_id

    async def consult_oracle(
        self, agent: str, role_prompt: str, data_prompt: str, activity: str
    ) -> Optional[OracleAdvisory]:
        """
        Calls the oracle on behalf of a checker. Returns None when no oracle
        is configured or the call fails; the caller falls back to its
        rule-based result.
        """
        if self.oracle is None:
            return None
        self.log.activity(agent, activity)
        try:
            return await self.oracle.consult(role_prompt, data_prompt)
        except Exception as e:
            # Any oracle failure degrades to the rule-based result.
            logger.warning("%s: oracle analysis failed: %s", agent, e)
            return None


def detached_context(investigation_id: str = "adhoc", sink: Optional[EventLog] = None) -> CheckContext:
    """A context with no oracle and no probe, for running a checker on its own."""
    return CheckContext(
        log=InvestigationLog(
            sink if sink is not None else NullEventLog(), investigation_id
        ),
        oracle=None,
        probe=None,
    )
