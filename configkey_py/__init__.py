"""
configkey-py

A quorum-coordinated config-key service: commands are routed by cluster role,
mutations commit through the consensus layer and replies are sent only after
commit. Lifecycle hooks bind per-device secrets to device create/destroy.
"""

# Errors
from .errors import (
    ConfigKeyError,
    CommandParseError,
    CommandValidationError,
    EntryTooLargeError,
    KeyNotFoundError,
    SecretConflictError,
    StoreUnavailableError,
)

# Configuration
from .config import ServiceConfig

# Store
from .store import (
    Transaction,
    WriteOp,
    OpKind,
    KVEngine,
    Cursor,
    MemoryEngine,
    SqliteEngine,
    StoreAdapter,
    render_value,
)

# Consensus
from .consensus import (
    QuorumNode,
    Consensus,
    DeferredCommit,
    LocalPaxos,
    LocalNode,
    Role,
)

# Service
from .service import (
    ConfigKeyService,
    CommandDispatcher,
    DispatchOutcome,
    DispatchResult,
    CommandRequest,
    CommandReply,
    CommandKind,
    RequestSource,
    TickScheduler,
    LifecycleHooks,
    CreateCheck,
    CreateValidation,
)

from .cluster import LocalCluster

__version__ = "0.1.0"

__all__ = [
    # Errors
    "ConfigKeyError",
    "CommandParseError",
    "CommandValidationError",
    "EntryTooLargeError",
    "KeyNotFoundError",
    "SecretConflictError",
    "StoreUnavailableError",
    # Configuration
    "ServiceConfig",
    # Store
    "Transaction",
    "WriteOp",
    "OpKind",
    "KVEngine",
    "Cursor",
    "MemoryEngine",
    "SqliteEngine",
    "StoreAdapter",
    "render_value",
    # Consensus
    "QuorumNode",
    "Consensus",
    "DeferredCommit",
    "LocalPaxos",
    "LocalNode",
    "Role",
    # Service
    "ConfigKeyService",
    "CommandDispatcher",
    "DispatchOutcome",
    "DispatchResult",
    "CommandRequest",
    "CommandReply",
    "CommandKind",
    "RequestSource",
    "TickScheduler",
    "LifecycleHooks",
    "CreateCheck",
    "CreateValidation",
    # Local cluster
    "LocalCluster",
]
