"""In-process cluster of config-key services sharing one engine."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TextIO

from .config import ServiceConfig
from .consensus.local import LocalNode, LocalPaxos, Role
from .logs.ndjson import NDJSONAuditLog
from .service.commands import CommandReply, CommandRequest, RequestSource
from .service.dispatcher import DispatchResult
from .service.service import ConfigKeyService
from .store.base import KVEngine


@dataclass
class Member:
    """One node of a local cluster."""
    node: LocalNode
    paxos: LocalPaxos
    service: ConfigKeyService
    audit: Optional[NDJSONAuditLog] = None


class LocalCluster:
    """A leader and zero or more peons over a shared engine.

    Rank 0 starts as leader; every other member is a peon forwarding writes
    to it.
    """

    def __init__(
        self,
        engine: KVEngine,
        size: int = 1,
        config: Optional[ServiceConfig] = None,
        auto_propose: bool = True,
        audit_stream: Optional[TextIO] = None,
    ):
        if size < 1:
            raise ValueError("cluster needs at least one member")
        self.engine = engine
        self.config = config or ServiceConfig()
        self.audit_stream = audit_stream
        self.members: List[Member] = []

        for rank in range(size):
            role = Role.LEADER if rank == 0 else Role.PEON
            paxos = LocalPaxos(engine, role=role, auto_propose=auto_propose)
            node = LocalNode(chr(ord("a") + rank), rank, paxos)
            audit = None
            if self.config.audit_dir or audit_stream is not None:
                audit = NDJSONAuditLog(node.name, self.config.audit_dir, stream=audit_stream)
            service = ConfigKeyService(node, paxos, engine, config=self.config, audit=audit)
            node.dispatch = service.dispatch
            self.members.append(Member(node, paxos, service, audit))

        self.elect(0)

    @property
    def leader(self) -> Member:
        for member in self.members:
            if member.node.is_leader():
                return member
        raise RuntimeError("cluster has no leader")

    def elect(self, rank: int) -> None:
        """Make ``rank`` the leader and every other member a peon."""
        leader = self.members[rank]
        for member in self.members:
            member.node.clear_routes()
            member.node.leader = leader.node
        # leader first, so requests parked on peons find it readable on retry
        leader.paxos.set_role(Role.LEADER)
        for member in self.members:
            if member is not leader:
                member.paxos.set_role(Role.PEON)

    def lose_quorum(self) -> None:
        """Drop every member out of quorum until the next election."""
        for member in self.members:
            member.paxos.set_role(Role.ELECTING)

    def start(self, epoch: int = 1) -> None:
        for member in self.members:
            member.service.start(epoch)

    def shutdown(self) -> None:
        for member in self.members:
            member.service.shutdown()
            if member.audit:
                member.audit.close()

    def submit(
        self,
        cmd: Dict[str, Any],
        data: bytes = b"",
        rank: int = 0,
        source: RequestSource = RequestSource.CLIENT,
    ) -> tuple:
        """Deliver a command to member ``rank``.

        Returns:
            (request, DispatchResult)
        """
        request = CommandRequest(cmd=cmd, data=data, source=source)
        result: DispatchResult = self.members[rank].node.deliver(request)
        return request, result

    async def run_command(
        self,
        cmd: Dict[str, Any],
        data: bytes = b"",
        rank: int = 0,
        timeout: Optional[float] = 5.0,
    ) -> CommandReply:
        """Submit a client command and wait for its (possibly deferred) reply."""
        request, _ = self.submit(cmd, data=data, rank=rank)
        return await self.members[rank].node.wait_for_reply(request.request_id, timeout)

    async def settle(self) -> None:
        """Let every scheduled proposal run."""
        for member in self.members:
            await member.paxos.flush()
