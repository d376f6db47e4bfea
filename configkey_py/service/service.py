"""Config-key quorum service.

Composition root wiring the store adapter, deferred commit pipeline, command
dispatcher, tick scheduler and lifecycle hooks around an injected node,
consensus layer and engine.
"""

import asyncio
import logging
from typing import Optional, Set

from .dispatcher import CommandDispatcher, DispatchResult
from .commands import CommandRequest
from .lifecycle import LifecycleHooks
from .tick import TickScheduler
from ..config import ServiceConfig
from ..consensus.base import Consensus, QuorumNode
from ..consensus.commit import DeferredCommit
from ..logs.ndjson import NDJSONAuditLog
from ..logs.prefix import ServiceLogAdapter, service_prefix
from ..store.adapter import StoreAdapter
from ..store.base import KVEngine


logger = logging.getLogger(__name__)

SERVICE_NAME = "config_key"


class ConfigKeyService:
    """Quorum service exposing the config-key store."""

    def __init__(
        self,
        node: QuorumNode,
        consensus: Consensus,
        engine: KVEngine,
        config: Optional[ServiceConfig] = None,
        audit: Optional[NDJSONAuditLog] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.node = node
        self.consensus = consensus
        self.config = config or ServiceConfig()
        self.audit = audit
        self.epoch = 0

        self.log = ServiceLogAdapter(
            logger, lambda: service_prefix(self.node, SERVICE_NAME, self.epoch)
        )

        self.store = StoreAdapter(engine, self.config.namespace)
        self.commit = DeferredCommit(consensus, self.store)
        self.dispatcher = CommandDispatcher(
            node, consensus, self.store, self.commit,
            config=self.config, audit=audit, log=self.log,
        )
        self.lifecycle = LifecycleHooks(self.store, consensus, self.commit, audit=audit)
        self.ticks = TickScheduler(self.service_tick, self.config.tick_interval, loop=loop)

    def get_name(self) -> str:
        return SERVICE_NAME

    def get_epoch(self) -> int:
        return self.epoch

    def start(self, epoch: int) -> None:
        """Begin a new epoch and restart the tick."""
        self.epoch = epoch
        if self.audit:
            self.audit.epoch = epoch
        self.log.debug("start")
        self.ticks.start()

    def finish(self) -> None:
        self.log.debug("finish")

    def shutdown(self) -> None:
        self.log.warning("quorum service shutdown")
        self.ticks.stop()

    def set_update_period(self, seconds: float) -> None:
        """Change the tick cadence from the next reschedule on."""
        self.ticks.set_interval(seconds)

    def service_tick(self) -> None:
        self.log.debug("tick %d", self.ticks.fired)
        if self.audit:
            self.audit.tick(self.ticks.fired)

    def in_quorum(self) -> bool:
        return self.dispatcher.in_quorum()

    def dispatch(self, request: CommandRequest) -> DispatchResult:
        return self.dispatcher.dispatch(request)

    def get_store_prefixes(self) -> Set[str]:
        """Engine namespaces owned by this service."""
        return {self.config.namespace}
