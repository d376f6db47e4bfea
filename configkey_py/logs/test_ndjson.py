"""Tests for the NDJSON audit log and the service log prefix."""

import io
import json
import logging

from .ndjson import (
    AuditEvent,
    AuditEventType,
    AuditSummary,
    NDJSONAuditLog,
    create_audit_log,
)
from .prefix import ServiceLogAdapter, service_prefix


class TestAuditEvent:
    """Tests for AuditEvent dataclass."""

    def test_to_ndjson_basic(self):
        event = AuditEvent(
            timestamp="2024-01-01T00:00:00Z",
            event_type=AuditEventType.TICK.value,
            node="a",
            epoch=3,
            payload={"count": 1},
        )
        data = json.loads(event.to_ndjson())
        assert data == {
            "ts": "2024-01-01T00:00:00Z",
            "type": "tick",
            "node": "a",
            "epoch": 3,
            "payload": {"count": 1},
        }

    def test_to_ndjson_with_request_id(self):
        event = AuditEvent(
            timestamp="2024-01-01T00:00:00Z",
            event_type=AuditEventType.COMMAND_PARKED.value,
            node="a",
            epoch=0,
            payload={},
            request_id="req-1",
        )
        assert json.loads(event.to_ndjson())["req"] == "req-1"

    def test_single_line(self):
        event = AuditEvent("t", "tick", "a", 0, {"status": "multi\nline"})
        assert "\n" not in event.to_ndjson()


class TestAuditSummary:

    def test_to_dict(self):
        summary = AuditSummary(node="a", total_events=4, event_counts={"tick": 4})
        d = summary.to_dict()
        assert d["node"] == "a"
        assert d["total_events"] == 4
        assert d["event_counts"] == {"tick": 4}
        assert d["failed_replies"] == 0


class TestNDJSONAuditLog:

    def test_stream_output(self):
        stream = io.StringIO()
        audit = NDJSONAuditLog("a", stream=stream)
        audit.epoch = 2

        audit.command_received("r1", "config-key get", "foo", "client")
        audit.command_replied("r1", 0, "obtained 'foo'", True)

        lines = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert [line["type"] for line in lines] == ["command.received", "command.replied"]
        assert lines[0]["payload"] == {"prefix": "config-key get", "key": "foo", "source": "client"}
        assert all(line["epoch"] == 2 and line["req"] == "r1" for line in lines)

    def test_summary_counts(self):
        audit = NDJSONAuditLog("a", stream=io.StringIO())
        audit.command_replied("r1", 0, "", True)
        audit.command_replied("r2", -2, "missing", True)
        audit.tick(1)

        summary = audit.get_summary()
        assert summary.total_events == 3
        assert summary.event_counts == {"command.replied": 2, "tick": 1}
        assert summary.failed_replies == 1
        assert summary.first_timestamp <= summary.last_timestamp

    def test_file_output_and_summary(self, tmp_path):
        audit = create_audit_log("b", base_dir=str(tmp_path))
        audit.mutation_staged("r1", "put", "foo")
        audit.mutation_committed("r1", "put", "foo")
        audit.close()

        log_path = tmp_path / "b" / "audit.ndjson"
        lines = log_path.read_text().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[1])["type"] == "mutation.committed"

        summary = json.loads((tmp_path / "b" / "audit.summary.json").read_text())
        assert summary["total_events"] == 2

    def test_appends_across_instances(self, tmp_path):
        for _ in range(2):
            audit = NDJSONAuditLog("a", base_dir=str(tmp_path))
            audit.tick(1)
            audit.close()

        assert len((tmp_path / "a" / "audit.ndjson").read_text().splitlines()) == 2

    def test_no_output_configured(self):
        audit = NDJSONAuditLog("a")
        audit.tick(1)
        audit.close()
        assert audit.get_summary().total_events == 1

    def test_lifecycle_payload(self):
        stream = io.StringIO()
        audit = NDJSONAuditLog("a", stream=stream)
        audit.lifecycle(AuditEventType.LIFECYCLE_DESTROY, "uuid-1", {"device_id": 3, "erased": 2})

        event = json.loads(stream.getvalue())
        assert event["type"] == "lifecycle.destroy"
        assert event["payload"] == {"device_uuid": "uuid-1", "device_id": 3, "erased": 2}


class FakeNode:
    name = "a"
    rank = 1

    def __init__(self):
        self.state = "peon"

    def get_state_name(self):
        return self.state


class TestServiceLogAdapter:

    def test_service_prefix(self):
        assert service_prefix(FakeNode(), "config_key", 5) == "mon.a@1(peon).config_key(5)"

    def test_prefix_is_evaluated_per_message(self, caplog):
        node = FakeNode()
        log = ServiceLogAdapter(
            logging.getLogger("configkey_py.test"),
            lambda: service_prefix(node, "config_key", 1),
        )

        with caplog.at_level(logging.INFO, logger="configkey_py.test"):
            log.info("first %d", 1)
            node.state = "leader"
            log.info("second")

        assert [r.getMessage() for r in caplog.records] == [
            "mon.a@1(peon).config_key(1) first 1",
            "mon.a@1(leader).config_key(1) second",
        ]
