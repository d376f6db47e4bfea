"""NDJSON audit logging for the config-key service.

Provides one structured line per service event with:
- Per-node log files
- Stream and file output modes
- Event type tracking and counts

Only keys are recorded; values never reach the audit log.
"""

import json
from datetime import datetime, timezone
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, TextIO
from enum import Enum


class AuditEventType(str, Enum):
    """Audit event types."""
    COMMAND_RECEIVED = "command.received"
    COMMAND_REPLIED = "command.replied"
    COMMAND_FORWARDED = "command.forwarded"
    COMMAND_PARKED = "command.parked"
    MUTATION_STAGED = "mutation.staged"
    MUTATION_COMMITTED = "mutation.committed"
    TICK = "tick"
    LIFECYCLE_CREATE = "lifecycle.create"
    LIFECYCLE_DESTROY = "lifecycle.destroy"


@dataclass
class AuditEvent:
    """A single audit event."""
    timestamp: str
    event_type: str
    node: str
    epoch: int
    payload: Dict[str, Any]
    request_id: Optional[str] = None

    def to_ndjson(self) -> str:
        """Serialize to NDJSON line."""
        data = {
            "ts": self.timestamp,
            "type": self.event_type,
            "node": self.node,
            "epoch": self.epoch,
            "payload": self.payload,
        }
        if self.request_id:
            data["req"] = self.request_id
        return json.dumps(data, separators=(',', ':'))


@dataclass
class AuditSummary:
    """Summary statistics for an audit log."""
    node: str
    total_events: int = 0
    event_counts: Dict[str, int] = field(default_factory=dict)
    first_timestamp: Optional[str] = None
    last_timestamp: Optional[str] = None
    failed_replies: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node": self.node,
            "total_events": self.total_events,
            "event_counts": self.event_counts,
            "first_timestamp": self.first_timestamp,
            "last_timestamp": self.last_timestamp,
            "failed_replies": self.failed_replies,
        }


class NDJSONAuditLog:
    """NDJSON audit log for one node.

    Writes events to:
    - {base_dir}/{node}/audit.ndjson (when base_dir is set)
    - {base_dir}/{node}/audit.summary.json on close
    - ``stream`` (when set)
    """

    def __init__(
        self,
        node: str,
        base_dir: Optional[str] = None,
        stream: Optional[TextIO] = None,
    ):
        self.node = node
        self.base_dir = Path(base_dir) if base_dir else None
        self.stream = stream
        self.epoch = 0

        self.summary = AuditSummary(node=node)
        self._file: Optional[TextIO] = None
        self._log_path: Optional[Path] = None
        self._summary_path: Optional[Path] = None

        if self.base_dir is not None:
            self._init_log_dir()

    def _init_log_dir(self) -> None:
        """Create log directory structure."""
        log_dir = self.base_dir / self.node
        log_dir.mkdir(parents=True, exist_ok=True)
        self._log_path = log_dir / "audit.ndjson"
        self._summary_path = log_dir / "audit.summary.json"

    def _open_file(self) -> TextIO:
        """Open log file for appending."""
        if self._file is None:
            self._file = open(self._log_path, 'a', encoding='utf-8')
        return self._file

    def log(
        self,
        event_type: str,
        payload: Dict[str, Any],
        request_id: Optional[str] = None,
    ) -> None:
        """Log an event."""
        event = AuditEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event_type=event_type.value if isinstance(event_type, AuditEventType) else event_type,
            node=self.node,
            epoch=self.epoch,
            payload=payload,
            request_id=request_id,
        )
        self._update_summary(event)

        line = event.to_ndjson() + "\n"

        if self.stream:
            self.stream.write(line)
            self.stream.flush()

        if self._log_path is not None:
            f = self._open_file()
            f.write(line)
            f.flush()

    def _update_summary(self, event: AuditEvent) -> None:
        """Update summary statistics."""
        self.summary.total_events += 1
        self.summary.event_counts[event.event_type] = (
            self.summary.event_counts.get(event.event_type, 0) + 1
        )
        if self.summary.first_timestamp is None:
            self.summary.first_timestamp = event.timestamp
        self.summary.last_timestamp = event.timestamp

        if event.event_type == AuditEventType.COMMAND_REPLIED.value and event.payload.get("code", 0) != 0:
            self.summary.failed_replies += 1

    def command_received(self, request_id: str, prefix: str, key: str, source: str) -> None:
        self.log(
            AuditEventType.COMMAND_RECEIVED,
            {"prefix": prefix, "key": key, "source": source},
            request_id=request_id,
        )

    def command_replied(self, request_id: str, code: int, status: str, sent: bool) -> None:
        self.log(
            AuditEventType.COMMAND_REPLIED,
            {"code": code, "status": status, "sent": sent},
            request_id=request_id,
        )

    def command_forwarded(self, request_id: str, prefix: str) -> None:
        self.log(AuditEventType.COMMAND_FORWARDED, {"prefix": prefix}, request_id=request_id)

    def command_parked(self, request_id: str) -> None:
        self.log(AuditEventType.COMMAND_PARKED, {}, request_id=request_id)

    def mutation_staged(self, request_id: Optional[str], op: str, key: str) -> None:
        self.log(AuditEventType.MUTATION_STAGED, {"op": op, "key": key}, request_id=request_id)

    def mutation_committed(self, request_id: Optional[str], op: str, key: str) -> None:
        self.log(AuditEventType.MUTATION_COMMITTED, {"op": op, "key": key}, request_id=request_id)

    def tick(self, count: int) -> None:
        self.log(AuditEventType.TICK, {"count": count})

    def lifecycle(self, event_type: AuditEventType, device_uuid: str, payload: Dict[str, Any]) -> None:
        """Log a device lifecycle event."""
        self.log(event_type, {"device_uuid": device_uuid, **payload})

    def get_summary(self) -> AuditSummary:
        """Get current summary."""
        return self.summary

    def write_summary(self) -> None:
        """Write summary file."""
        if self._summary_path is None:
            return
        with open(self._summary_path, 'w', encoding='utf-8') as f:
            json.dump(self.summary.to_dict(), f, indent=2)

    def close(self) -> None:
        """Close log and write final summary."""
        self.write_summary()
        if self._file:
            self._file.close()
            self._file = None


def create_audit_log(
    node: str,
    base_dir: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> NDJSONAuditLog:
    """Create an audit log for a node."""
    return NDJSONAuditLog(node, base_dir, stream=stream)
