"""Deferred commit of staged mutations.

A mutation is staged into the consensus layer's pending transaction, an
optional finisher is queued behind it and a proposal is requested. Control
returns immediately; the finisher runs only once the cluster has committed the
batch, so callers must never assume synchronous completion.
"""

import logging
from typing import Callable, Optional

from .base import Consensus, Finisher
from ..store.adapter import StoreAdapter
from ..store.base import Transaction


logger = logging.getLogger(__name__)


class DeferredCommit:
    """Stage-then-propose helper bound to one consensus layer and store."""

    def __init__(self, consensus: Consensus, store: StoreAdapter):
        self.consensus = consensus
        self.store = store

    def commit_mutation(
        self,
        mutate: Callable[[Transaction], object],
        on_committed: Optional[Finisher] = None,
    ) -> Transaction:
        """Stage ``mutate`` into the pending transaction and request a proposal.

        Args:
            mutate: Called with the pending transaction to stage writes
            on_committed: Run once after the transaction commits

        Returns:
            The pending transaction the mutation was staged into
        """
        transaction = self.consensus.get_pending_transaction()
        mutate(transaction)
        if on_committed is not None:
            self.consensus.queue_pending_finisher(on_committed)
        self.consensus.trigger_propose()
        return transaction

    def put(self, key: str, value: bytes, on_committed: Optional[Finisher] = None) -> Transaction:
        logger.debug("staging put '%s' (%d bytes)", key, len(value))
        return self.commit_mutation(
            lambda t: self.store.put(t, key, value),
            on_committed,
        )

    def delete(self, key: str, on_committed: Optional[Finisher] = None) -> Transaction:
        logger.debug("staging delete '%s'", key)
        return self.commit_mutation(
            lambda t: self.store.delete(t, key),
            on_committed,
        )
