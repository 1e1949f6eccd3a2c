"""
Side-channel event log for investigations.

Checkers report activity, findings and cross-checker notices here. The log is
observability only: nothing in the pipeline reads it to make decisions. It is
passed into the coordinator explicitly rather than living as a process-wide
singleton, so tests can swap in a NullEventLog or a fresh EventLog.
"""

import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

from .schemas import (
    ActivityRecord,
    CommunicationRecord,
    FindingRecord,
    LogRecord,
)

logger = logging.getLogger(__name__)

Listener = Callable[[LogRecord], None]

DEFAULT_CAPACITY = 100


class EventLog:
    """Bounded ring buffer of log records; oldest entries are dropped first."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self.capacity = capacity
        self._records: Deque[LogRecord] = deque(maxlen=capacity)
        self._listeners: Dict[str, List[Listener]] = {}

    def subscribe(self, record_type: str, callback: Listener) -> None:
        """Registers a callback for 'activity', 'communication', 'finding' or '*'."""
        self._listeners.setdefault(record_type, []).append(callback)

    def append(self, record: LogRecord) -> None:
        self._records.append(record)
        for callback in self._listeners.get(record.type, []) + self._listeners.get(
            "*", []
        ):
            try:
                callback(record)
            except Exception as e:
                logger.error("Event log listener failed on %s record: %s", record.type, e)

    def records(
        self,
        investigation_id: Optional[str] = None,
        record_type: Optional[str] = None,
    ) -> List[LogRecord]:
        """Returns a snapshot of retained records, optionally filtered."""
        return [
            r
            for r in self._records
            if (investigation_id is None or r.investigation_id == investigation_id)
            and (record_type is None or r.type == record_type)
        ]

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)


class NullEventLog(EventLog):
    """Drops every record. Useful when no observer is attached."""

    def __init__(self):
        super().__init__(capacity=0)

    def append(self, record: LogRecord) -> None:
        return None


class InvestigationLog:
    """
    An event log view bound to one investigation id.

    Every record is forwarded to the shared sink and also kept locally, so
    the investigation's full message history survives ring-buffer rotation.
    """

    def __init__(self, sink: EventLog, investigation_id: str):
        self.sink = sink
        self.investigation_id = investigation_id
        self._records: List[LogRecord] = []

    def _emit(self, record: LogRecord) -> None:
        self._records.append(record)
        self.sink.append(record)

    def activity(self, agent: str, action: str, **metadata: Any) -> None:
        self._emit(
            ActivityRecord(
                agent=agent,
                action=action,
                investigation_id=self.investigation_id,
                metadata=metadata,
            )
        )

    def notify(
        self, sender: str, recipient: str, message: str, priority: str = "medium"
    ) -> None:
        """Records a cross-checker notice. Delivery is not guaranteed or awaited."""
        self._emit(
            CommunicationRecord(
                sender=sender,
                recipient=recipient,
                message=message,
                priority=priority,
                investigation_id=self.investigation_id,
            )
        )

    def finding(self, agent: str, finding: str, severity: str = "info") -> None:
        self._emit(
            FindingRecord(
                agent=agent,
                finding=finding,
                severity=severity,
                investigation_id=self.investigation_id,
            )
        )

    @property
    def messages(self) -> List[LogRecord]:
        return list(self._records)
