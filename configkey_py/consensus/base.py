"""Interfaces of the node and consensus layer the service runs inside.

The service never elects, replicates or orders commits itself. It only drives
these two surfaces, which are injected at construction.
"""

from typing import TYPE_CHECKING, Callable, Protocol

from ..store.base import Transaction

if TYPE_CHECKING:
    from ..service.commands import CommandRequest


# Completion callback run once after a transaction commits
Finisher = Callable[[], None]


class QuorumNode(Protocol):
    """The surrounding node: identity, cluster role and request transport."""

    name: str
    rank: int

    def get_state_name(self) -> str:
        """Human readable role, e.g. ``leader``, ``peon`` or ``electing``."""
        ...

    def is_leader(self) -> bool:
        ...

    def is_peon(self) -> bool:
        """True if this node is a converged follower in quorum."""
        ...

    def forward_request_leader(self, request: "CommandRequest") -> None:
        """Send the request, unchanged, to the current leader."""
        ...

    def reply_command(self, request: "CommandRequest", code: int, status: str, data: bytes) -> None:
        """Send a reply for ``request`` to its originator."""
        ...


class Consensus(Protocol):
    """Quorum-gated commit pipeline."""

    def get_pending_transaction(self) -> Transaction:
        """Return the batch for the next proposal.

        Repeated calls before that batch is proposed return the same object.
        """
        ...

    def queue_pending_finisher(self, callback: Finisher) -> None:
        """Run ``callback`` after the pending transaction commits."""
        ...

    def trigger_propose(self) -> bool:
        """Ask for the pending transaction to be proposed."""
        ...

    def wait_for_readable(self, request: "CommandRequest", retry: Callable[[], object]) -> None:
        """Park ``retry`` until the store is readable in quorum again."""
        ...

    def is_plugged(self) -> bool:
        """True while proposals from other proposers are held back."""
        ...
