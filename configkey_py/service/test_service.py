"""Tests for ConfigKeyService wiring."""

import asyncio
import io
import json
import logging

import pytest

from .commands import CommandRequest
from .dispatcher import DispatchOutcome
from .service import SERVICE_NAME, ConfigKeyService
from ..config import ServiceConfig
from ..consensus.local import LocalNode, LocalPaxos, Role
from ..logs.ndjson import NDJSONAuditLog
from ..store.memory import MemoryEngine


def make_service(role=Role.LEADER, audit=None, **config):
    engine = MemoryEngine()
    paxos = LocalPaxos(engine, role=role, auto_propose=False)
    node = LocalNode("a", 0, paxos)
    service = ConfigKeyService(
        node, paxos, engine,
        config=ServiceConfig(tick_interval=config.pop("tick_interval", 0), **config),
        audit=audit,
    )
    node.dispatch = service.dispatch
    return service


class TestConfigKeyService:

    def test_identity(self):
        service = make_service()
        assert service.get_name() == SERVICE_NAME == "config_key"
        assert service.get_store_prefixes() == {"mon_config_key"}

    def test_custom_namespace(self):
        service = make_service(namespace="alt")
        assert service.get_store_prefixes() == {"alt"}
        assert service.store.namespace == "alt"

    def test_start_sets_epoch(self):
        audit = NDJSONAuditLog("a", stream=io.StringIO())
        service = make_service(audit=audit)

        service.start(7)

        assert service.get_epoch() == 7
        assert audit.epoch == 7
        assert not service.ticks.pending

        service.finish()
        assert service.get_epoch() == 7

    def test_in_quorum_follows_role(self):
        service = make_service(role=Role.ELECTING)
        assert not service.in_quorum()
        service.consensus.set_role(Role.PEON)
        assert service.in_quorum()

    def test_dispatch_roundtrip(self):
        service = make_service()
        request = CommandRequest(cmd={"prefix": "config-key put", "key": "k", "val": "v"})

        result = service.dispatch(request)
        service.consensus.propose()

        assert result.outcome == DispatchOutcome.DEFERRED
        assert service.node.reply_for(request.request_id).status == "set k"
        assert service.store.get("k") == b"v"

    def test_log_prefix_tracks_role_and_epoch(self, caplog):
        service = make_service()
        service.start(3)

        with caplog.at_level(logging.WARNING, logger="configkey_py.service.service"):
            service.shutdown()
            service.consensus.set_role(Role.PEON)
            service.epoch = 4
            service.shutdown()

        messages = [r.getMessage() for r in caplog.records]
        assert messages == [
            "mon.a@0(leader).config_key(3) quorum service shutdown",
            "mon.a@0(peon).config_key(4) quorum service shutdown",
        ]

    @pytest.mark.asyncio
    async def test_ticks_run_until_shutdown(self):
        stream = io.StringIO()
        service = make_service(audit=NDJSONAuditLog("a", stream=stream), tick_interval=0.01)

        service.start(1)
        await asyncio.sleep(0.1)
        service.shutdown()
        fired = service.ticks.fired

        await asyncio.sleep(0.03)

        assert fired >= 2
        assert service.ticks.fired == fired
        ticks = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert ticks and all(t["type"] == "tick" for t in ticks)

    @pytest.mark.asyncio
    async def test_restart_keeps_one_tick(self):
        service = make_service(tick_interval=10)
        service.start(1)
        first = service.ticks._handle
        service.start(2)

        assert first.cancelled()
        assert service.ticks.pending
        service.shutdown()

    @pytest.mark.asyncio
    async def test_set_update_period(self):
        service = make_service(tick_interval=10)
        service.start(1)
        service.set_update_period(0.01)

        await asyncio.sleep(0.03)
        assert service.ticks.fired == 0

        service.start(2)
        await asyncio.sleep(0.06)
        service.shutdown()
        assert service.ticks.fired >= 1
