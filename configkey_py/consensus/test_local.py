"""Tests for the in-process consensus layer and node."""

import asyncio
import logging

import pytest

from .local import LocalNode, LocalPaxos, Role
from ..service.commands import CommandRequest, RequestSource
from ..store.base import Transaction
from ..store.memory import MemoryEngine


NS = "mon_config_key"


def stage(paxos, key, value):
    paxos.get_pending_transaction().put(NS, key, value)


class TestLocalPaxos:

    def test_pending_transaction_is_reused_until_propose(self):
        paxos = LocalPaxos(MemoryEngine(), auto_propose=False)
        t1 = paxos.get_pending_transaction()
        assert paxos.get_pending_transaction() is t1

        paxos.propose()
        t2 = paxos.get_pending_transaction()
        assert t2 is not t1
        assert isinstance(t2, Transaction)

    def test_propose_with_nothing_pending(self):
        paxos = LocalPaxos(MemoryEngine(), auto_propose=False)
        assert paxos.propose() is False
        assert paxos.proposals == 0

    def test_finisher_only_round_still_fires(self):
        paxos = LocalPaxos(MemoryEngine(), auto_propose=False)
        fired = []
        paxos.queue_pending_finisher(lambda: fired.append(1))
        assert paxos.propose() is True
        assert fired == [1]

    def test_failing_finisher_does_not_drop_later_ones(self, caplog):
        engine = MemoryEngine()
        paxos = LocalPaxos(engine, auto_propose=False)
        fired = []

        def boom():
            raise OSError(5, "audit stream closed")

        stage(paxos, "k", b"v")
        paxos.queue_pending_finisher(boom)
        paxos.queue_pending_finisher(lambda: fired.append("second"))

        with caplog.at_level(logging.ERROR, logger="configkey_py.consensus.local"):
            assert paxos.propose() is True

        assert fired == ["second"]
        assert engine.get(NS, "k") == b"v"
        assert not paxos.has_pending()
        assert "finisher failed" in caplog.text

    def test_plugged_defers_proposal(self):
        engine = MemoryEngine()
        paxos = LocalPaxos(engine, auto_propose=False)
        paxos.plug()
        assert paxos.is_plugged()

        stage(paxos, "k", b"v")
        assert paxos.trigger_propose() is False

        paxos.unplug()
        assert not paxos.is_plugged()
        paxos.propose()
        assert engine.get(NS, "k") == b"v"

    @pytest.mark.asyncio
    async def test_auto_propose_runs_on_next_loop_iteration(self):
        engine = MemoryEngine()
        paxos = LocalPaxos(engine)

        stage(paxos, "k", b"v")
        paxos.trigger_propose()
        paxos.trigger_propose()
        assert engine.get(NS, "k") is None

        await paxos.flush()

        assert engine.get(NS, "k") == b"v"
        assert paxos.proposals == 1

    @pytest.mark.asyncio
    async def test_unplug_resumes_requested_proposal(self):
        engine = MemoryEngine()
        paxos = LocalPaxos(engine)
        paxos.plug()

        stage(paxos, "k", b"v")
        paxos.trigger_propose()
        await asyncio.sleep(0)
        assert engine.get(NS, "k") is None

        paxos.unplug()
        await paxos.flush()
        assert engine.get(NS, "k") == b"v"

    def test_wait_for_readable_parks_until_quorum(self):
        paxos = LocalPaxos(MemoryEngine(), role=Role.ELECTING)
        retried = []
        request = CommandRequest(cmd={"prefix": "config-key ls"})

        paxos.wait_for_readable(request, lambda: retried.append(request.request_id))
        assert paxos.waiting == 1

        paxos.set_role(Role.ELECTING)
        assert retried == []

        paxos.set_role(Role.PEON)
        assert retried == [request.request_id]
        assert paxos.waiting == 0


class TestLocalNode:

    def make_pair(self):
        engine = MemoryEngine()
        leader = LocalNode("a", 0, LocalPaxos(engine, role=Role.LEADER))
        peon = LocalNode("b", 1, LocalPaxos(engine, role=Role.PEON))
        peon.leader = leader
        leader.leader = leader
        return leader, peon

    def test_roles(self):
        leader, peon = self.make_pair()
        assert leader.is_leader() and not leader.is_peon()
        assert peon.is_peon() and not peon.is_leader()
        assert peon.get_state_name() == "peon"

    def test_deliver_without_service_raises(self):
        leader, _ = self.make_pair()
        with pytest.raises(RuntimeError):
            leader.deliver(CommandRequest(cmd={}))

    def test_forwarded_reply_is_relayed_to_origin(self):
        leader, peon = self.make_pair()
        delivered = []

        def leader_dispatch(request):
            delivered.append(request)
            leader.reply_command(request, 0, "done", b"")

        leader.dispatch = leader_dispatch
        request = CommandRequest(cmd={"prefix": "config-key put", "key": "k", "val": "v"})

        peon.forward_request_leader(request)

        assert delivered == [request]
        assert peon.forwarded == [request]
        assert leader.replies == []
        assert peon.reply_for(request.request_id).status == "done"

    def test_peer_forward_keeps_no_route(self):
        leader, peon = self.make_pair()
        leader.dispatch = lambda request: None

        peon.forward_request_leader(
            CommandRequest(cmd={"prefix": "config-key put"}, source=RequestSource.MON)
        )

        assert leader.routes == 0

    def test_clear_routes(self):
        leader, peon = self.make_pair()
        leader.dispatch = lambda request: None
        request = CommandRequest(cmd={"prefix": "config-key put", "key": "k", "val": "v"})

        peon.forward_request_leader(request)
        assert leader.routes == 1

        leader.clear_routes()
        leader.reply_command(request, 0, "set k", b"")

        assert leader.routes == 0
        assert peon.replies == []
        assert leader.reply_for(request.request_id).status == "set k"

    @pytest.mark.asyncio
    async def test_wait_for_reply(self):
        leader, _ = self.make_pair()
        request = CommandRequest(cmd={})

        loop = asyncio.get_running_loop()
        loop.call_soon(leader.reply_command, request, -2, "missing", b"")
        reply = await leader.wait_for_reply(request.request_id, timeout=1)

        assert reply.code == -2
        assert not reply.ok

        again = await leader.wait_for_reply(request.request_id, timeout=1)
        assert again == reply
