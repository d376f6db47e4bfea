"""Config-key command dispatch.

Routes each inbound command by cluster role:

- not in quorum: park the request until the store is readable again
- reads (get/exists/list/dump): answer from the local store on any quorum member
- writes (put/del): forward to the leader, or stage through the deferred
  commit pipeline and reply from the commit callback

Replies go only to client-originated requests; peer requests are executed
silently.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Callable, Dict, Optional, Union

from .commands import CommandKind, CommandRequest, ParsedCommand, parse_command
from ..config import ServiceConfig
from ..consensus.base import Consensus, QuorumNode
from ..consensus.commit import DeferredCommit
from ..errors import ConfigKeyError, EntryTooLargeError, KeyNotFoundError
from ..logs.ndjson import NDJSONAuditLog
from ..store.adapter import StoreAdapter


logger = logging.getLogger(__name__)


class DispatchOutcome(str, Enum):
    """What happened to a request during dispatch."""
    REPLIED = "replied"      # reply produced synchronously
    DEFERRED = "deferred"    # reply sent once the staged mutation commits
    FORWARDED = "forwarded"  # handed to the leader, no local reply
    WAITING = "waiting"      # parked until quorum is regained


@dataclass
class DispatchResult:
    """Result of dispatching one request."""
    outcome: DispatchOutcome
    code: int = 0
    status: str = ""
    data: bytes = b""

    @property
    def ok(self) -> bool:
        return self.code == 0

    @property
    def replied(self) -> bool:
        return self.outcome == DispatchOutcome.REPLIED


def format_json(value) -> bytes:
    return (json.dumps(value, indent=4) + "\n").encode("utf-8")


class CommandDispatcher:
    """State machine turning one command into a reply, a forward or a deferred commit."""

    def __init__(
        self,
        node: QuorumNode,
        consensus: Consensus,
        store: StoreAdapter,
        commit: DeferredCommit,
        config: Optional[ServiceConfig] = None,
        audit: Optional[NDJSONAuditLog] = None,
        log: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None,
    ):
        self.node = node
        self.consensus = consensus
        self.store = store
        self.commit = commit
        self.config = config or ServiceConfig()
        self.audit = audit
        self.log = log or logger

        self._handlers: Dict[CommandKind, Callable[[CommandRequest, ParsedCommand], DispatchResult]] = {
            CommandKind.GET: self._handle_get,
            CommandKind.PUT: self._handle_put,
            CommandKind.DEL: self._handle_del,
            CommandKind.EXISTS: self._handle_exists,
            CommandKind.LIST: self._handle_list,
            CommandKind.DUMP: self._handle_dump,
        }

    def in_quorum(self) -> bool:
        return self.node.is_leader() or self.node.is_peon()

    def dispatch(self, request: CommandRequest) -> DispatchResult:
        """Dispatch one request.

        Returns:
            DispatchResult; only REPLIED results carry the final status
        """
        self.log.debug("dispatch %s %s", request.request_id, request.prefix)

        if not self.in_quorum():
            self.log.info("dispatch not in quorum -- waiting")
            self.consensus.wait_for_readable(request, partial(self.dispatch, request))
            if self.audit:
                self.audit.command_parked(request.request_id)
            return DispatchResult(DispatchOutcome.WAITING)

        try:
            command = parse_command(request)
            if command is None:
                # Not ours; nothing performed, default status
                return self._reply(request, 0, "")

            if self.audit:
                self.audit.command_received(
                    request.request_id, request.prefix, command.key, request.source.value
                )
            if command.kind.is_mutation and not self.node.is_leader():
                return self._forward(request)
            return self._handlers[command.kind](request, command)
        except ConfigKeyError as e:
            return self._reply(request, e.code, e.message)

    def _reply(self, request: CommandRequest, code: int, status: str, data: bytes = b"") -> DispatchResult:
        sent = not request.from_peer
        if sent:
            self.node.reply_command(request, code, status, data)
        if self.audit:
            self.audit.command_replied(request.request_id, code, status, sent)
        return DispatchResult(DispatchOutcome.REPLIED, code, status, data)

    def _forward(self, request: CommandRequest) -> DispatchResult:
        self.log.debug("forwarding %s to leader", request.prefix)
        self.node.forward_request_leader(request)
        if self.audit:
            self.audit.command_forwarded(request.request_id, request.prefix)
        return DispatchResult(DispatchOutcome.FORWARDED)

    def _on_committed(self, request: CommandRequest, op: str, key: str, status: str) -> None:
        if self.audit:
            self.audit.mutation_committed(request.request_id, op, key)
        self._reply(request, 0, status)

    # Reads

    def _handle_get(self, request: CommandRequest, command: ParsedCommand) -> DispatchResult:
        value = self.store.get(command.key)
        return self._reply(request, 0, f"obtained '{command.key}'", value)

    def _handle_exists(self, request: CommandRequest, command: ParsedCommand) -> DispatchResult:
        if self.store.exists(command.key):
            return self._reply(request, 0, f"key '{command.key}' exists")
        return self._reply(request, KeyNotFoundError.code, f"key '{command.key}' doesn't exist")

    def _handle_list(self, request: CommandRequest, command: ParsedCommand) -> DispatchResult:
        return self._reply(request, 0, "", format_json(list(self.store.list_keys())))

    def _handle_dump(self, request: CommandRequest, command: ParsedCommand) -> DispatchResult:
        # dump takes its prefix from the key field
        return self._reply(request, 0, "", format_json(dict(self.store.dump(command.key))))

    # Writes

    def _handle_put(self, request: CommandRequest, command: ParsedCommand) -> DispatchResult:
        if command.val is not None:
            data = command.val.encode("utf-8")
        else:
            data = request.data

        if len(data) > self.config.max_entry_size:
            raise EntryTooLargeError(self.config.max_entry_size)

        status = f"set {command.key}"
        if self.audit:
            self.audit.mutation_staged(request.request_id, "put", command.key)
        # reply once the proposal has been handled
        self.commit.put(
            command.key, data,
            on_committed=partial(self._on_committed, request, "put", command.key, status),
        )
        return DispatchResult(DispatchOutcome.DEFERRED, 0, status)

    def _handle_del(self, request: CommandRequest, command: ParsedCommand) -> DispatchResult:
        if not self.store.exists(command.key):
            return self._reply(request, 0, f"no such key '{command.key}'")

        status = "key deleted"
        if self.audit:
            self.audit.mutation_staged(request.request_id, "del", command.key)
        self.commit.delete(
            command.key,
            on_committed=partial(self._on_committed, request, "del", command.key, status),
        )
        return DispatchResult(DispatchOutcome.DEFERRED, 0, status)
