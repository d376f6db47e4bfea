"""In-process consensus layer and node.

``LocalPaxos`` drives a single shared engine: it accumulates one pending
transaction per proposal round, applies it atomically on propose, then runs
that round's finishers in registration order. ``LocalNode`` provides node
identity, role and request transport, and relays replies for requests it
forwarded to the leader back to itself.

Used by the CLI and the test-suite; a replicated deployment swaps both for
the real node and consensus implementations.
"""

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from .base import Finisher
from ..store.base import KVEngine, Transaction

if TYPE_CHECKING:
    from ..service.commands import CommandReply, CommandRequest


logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Cluster role of a node."""
    LEADER = "leader"
    PEON = "peon"
    ELECTING = "electing"


class LocalPaxos:
    """Single-store consensus with plug/unplug and readable-waiters."""

    def __init__(
        self,
        engine: KVEngine,
        role: Role = Role.LEADER,
        auto_propose: bool = True,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.engine = engine
        self.role = role
        self.auto_propose = auto_propose
        self._loop = loop

        self._pending: Optional[Transaction] = None
        self._finishers: List[Finisher] = []
        self._plugged = False
        self._propose_requested = False
        self._scheduled = False
        self._waiting: List[Tuple["CommandRequest", Callable[[], object]]] = []

        self.proposals = 0

    # Pending round

    def get_pending_transaction(self) -> Transaction:
        if self._pending is None:
            self._pending = Transaction()
        return self._pending

    def queue_pending_finisher(self, callback: Finisher) -> None:
        self._finishers.append(callback)

    def has_pending(self) -> bool:
        return self._pending is not None or bool(self._finishers)

    def trigger_propose(self) -> bool:
        """Request a proposal of the pending round.

        Returns False while plugged; the request is remembered and honoured
        on unplug.
        """
        self._propose_requested = True
        if self._plugged:
            logger.debug("plugged, not proposing now")
            return False
        if not self.auto_propose:
            return True
        if not self._scheduled:
            loop = self._loop or asyncio.get_running_loop()
            loop.call_soon(self._scheduled_propose)
            self._scheduled = True
        return True

    def _scheduled_propose(self) -> None:
        self._scheduled = False
        if self._plugged:
            return
        self.propose()

    def propose(self) -> bool:
        """Commit the pending round now and run its finishers.

        Returns:
            False if there was nothing to propose
        """
        transaction, finishers = self._pending, self._finishers
        self._pending, self._finishers = None, []
        self._propose_requested = False
        if transaction is None and not finishers:
            return False

        if transaction is not None:
            self.engine.apply(transaction)
        self.proposals += 1
        logger.debug(
            "committed proposal %d (%d ops, %d finishers)",
            self.proposals, len(transaction) if transaction is not None else 0, len(finishers),
        )

        # the round is committed; every finisher runs even if an earlier one fails
        for callback in finishers:
            try:
                callback()
            except Exception:
                logger.exception("finisher failed after proposal %d", self.proposals)
        return True

    async def flush(self) -> None:
        """Yield to the loop until no scheduled proposal is outstanding."""
        while self._scheduled:
            await asyncio.sleep(0)

    # Plugging

    def plug(self) -> None:
        self._plugged = True

    def unplug(self) -> None:
        self._plugged = False
        if self._propose_requested:
            self.trigger_propose()

    def is_plugged(self) -> bool:
        return self._plugged

    # Readability

    def is_readable(self) -> bool:
        return self.role in (Role.LEADER, Role.PEON)

    def wait_for_readable(self, request: "CommandRequest", retry: Callable[[], object]) -> None:
        self._waiting.append((request, retry))

    @property
    def waiting(self) -> int:
        return len(self._waiting)

    def set_role(self, role: Role) -> None:
        """Change role; becoming readable re-delivers parked requests."""
        self.role = role
        if not self.is_readable():
            return
        waiting, self._waiting = self._waiting, []
        for _, retry in waiting:
            retry()


class LocalNode:
    """A node whose role comes from its consensus instance."""

    def __init__(self, name: str, rank: int, paxos: LocalPaxos):
        self.name = name
        self.rank = rank
        self.paxos = paxos
        self.leader: Optional["LocalNode"] = None
        self.dispatch: Optional[Callable[["CommandRequest"], object]] = None

        self.replies: List["CommandReply"] = []
        self.forwarded: List["CommandRequest"] = []
        self._routes: Dict[str, "LocalNode"] = {}
        self._reply_waiters: Dict[str, asyncio.Future] = {}

    def get_state_name(self) -> str:
        return self.paxos.role.value

    def is_leader(self) -> bool:
        return self.paxos.role == Role.LEADER

    def is_peon(self) -> bool:
        return self.paxos.role == Role.PEON

    def deliver(self, request: "CommandRequest"):
        """Hand an inbound request to this node's service."""
        if self.dispatch is None:
            raise RuntimeError(f"node {self.name} has no service attached")
        return self.dispatch(request)

    def forward_request_leader(self, request: "CommandRequest") -> None:
        self.forwarded.append(request)
        if self.leader is None or self.leader is self:
            logger.warning("mon.%s: no leader to forward %s to", self.name, request.request_id)
            return
        # peer requests are never replied to
        if not request.from_peer:
            self.leader._routes[request.request_id] = self
        self.leader.deliver(request)

    def clear_routes(self) -> None:
        """Forget replies owed to other nodes; used when leadership changes."""
        if self._routes:
            logger.debug("mon.%s: dropping %d reply routes", self.name, len(self._routes))
        self._routes.clear()

    @property
    def routes(self) -> int:
        return len(self._routes)

    def reply_command(self, request: "CommandRequest", code: int, status: str, data: bytes) -> None:
        from ..service.commands import CommandReply

        origin = self._routes.pop(request.request_id, None)
        if origin is not None:
            origin.reply_command(request, code, status, data)
            return

        reply = CommandReply(request_id=request.request_id, code=code, status=status, data=data)
        self.replies.append(reply)
        waiter = self._reply_waiters.pop(request.request_id, None)
        if waiter is not None and not waiter.done():
            waiter.set_result(reply)

    def reply_for(self, request_id: str) -> Optional["CommandReply"]:
        for reply in self.replies:
            if reply.request_id == request_id:
                return reply
        return None

    async def wait_for_reply(self, request_id: str, timeout: Optional[float] = None) -> "CommandReply":
        """Wait until the reply for ``request_id`` arrives at this node."""
        reply = self.reply_for(request_id)
        if reply is not None:
            return reply
        waiter = self._reply_waiters.get(request_id)
        if waiter is None:
            waiter = asyncio.get_running_loop().create_future()
            self._reply_waiters[request_id] = waiter
        return await asyncio.wait_for(asyncio.shield(waiter), timeout)
