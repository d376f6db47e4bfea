"""Consensus interfaces, deferred commit and the in-process implementation."""

from .base import QuorumNode, Consensus, Finisher
from .commit import DeferredCommit
from .local import LocalPaxos, LocalNode, Role

__all__ = [
    "QuorumNode",
    "Consensus",
    "Finisher",
    "DeferredCommit",
    "LocalPaxos",
    "LocalNode",
    "Role",
]
