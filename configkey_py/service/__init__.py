"""Command dispatch, tick scheduling and lifecycle hooks."""

from .commands import (
    CommandKind,
    CommandReply,
    CommandRequest,
    ParsedCommand,
    RequestSource,
    COMMAND_PREFIXES,
    parse_command,
)
from .dispatcher import CommandDispatcher, DispatchOutcome, DispatchResult
from .tick import TickScheduler
from .lifecycle import (
    LifecycleHooks,
    CreateCheck,
    CreateValidation,
    check_create,
    dmcrypt_prefix,
    daemon_prefix,
    device_prefixes,
)
from .service import ConfigKeyService, SERVICE_NAME

__all__ = [
    # Commands
    "CommandKind",
    "CommandReply",
    "CommandRequest",
    "ParsedCommand",
    "RequestSource",
    "COMMAND_PREFIXES",
    "parse_command",
    # Dispatch
    "CommandDispatcher",
    "DispatchOutcome",
    "DispatchResult",
    # Tick
    "TickScheduler",
    # Lifecycle
    "LifecycleHooks",
    "CreateCheck",
    "CreateValidation",
    "check_create",
    "dmcrypt_prefix",
    "daemon_prefix",
    "device_prefixes",
    # Service
    "ConfigKeyService",
    "SERVICE_NAME",
]
