"""Device lifecycle hooks for per-device secrets.

The device-management workflow calls each ``validate_*`` first and only
invokes the matching ``apply_*`` when validation succeeded. ``apply_*`` run on
the leader while the caller holds consensus plugged, so no other proposal can
interleave with the staged writes.

Key layout::

    dm-crypt/osd/<uuid>/luks      the device's dm-crypt secret
    daemon-private/osd.<id>/...   daemon-private secrets of the device
"""

import errno
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from ..consensus.base import Consensus
from ..consensus.commit import DeferredCommit
from ..errors import (
    ConfigKeyError,
    KeyNotFoundError,
    SecretConflictError,
    StoreUnavailableError,
)
from ..logs.ndjson import AuditEventType, NDJSONAuditLog
from ..store.adapter import StoreAdapter


logger = logging.getLogger(__name__)

DeviceUUID = Union[str, uuid.UUID]


def dmcrypt_prefix(device_uuid: DeviceUUID, suffix: str = "") -> str:
    return f"dm-crypt/osd/{uuid.UUID(str(device_uuid))}/{suffix}"


def daemon_prefix(device_id: int) -> str:
    return f"daemon-private/osd.{int(device_id)}/"


def device_prefixes(device_uuid: DeviceUUID, device_id: int) -> Tuple[str, str]:
    """Both prefixes owning a device's secrets."""
    return dmcrypt_prefix(device_uuid), daemon_prefix(device_id)


class CreateCheck(str, Enum):
    """Outcome of validating a dm-crypt secret binding."""
    OK = "ok"
    ALREADY_BOUND_SAME = "already_bound_same"
    CONFLICT = "conflict"
    ERROR = "error"


@dataclass
class CreateValidation:
    """Result of :meth:`LifecycleHooks.validate_create`.

    ``code`` follows errno conventions: 0, +EEXIST for an identical existing
    secret (a successful no-op), -EEXIST on conflict, the engine's error
    otherwise.
    """
    status: CreateCheck
    code: int = 0
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status in (CreateCheck.OK, CreateCheck.ALREADY_BOUND_SAME)

    def raise_for_status(self) -> None:
        if self.status == CreateCheck.CONFLICT:
            raise SecretConflictError(self.message)
        if self.status == CreateCheck.ERROR:
            raise StoreUnavailableError(self.message, code=self.code)


def _as_bytes(secret: Union[str, bytes]) -> bytes:
    if isinstance(secret, str):
        return secret.encode("utf-8")
    return bytes(secret)


class LifecycleHooks:
    """Validate/apply pairs coupling device secrets to device create/destroy."""

    def __init__(
        self,
        store: StoreAdapter,
        consensus: Consensus,
        commit: DeferredCommit,
        audit: Optional[NDJSONAuditLog] = None,
    ):
        self.store = store
        self.consensus = consensus
        self.commit = commit
        self.audit = audit

    def validate_create(self, device_uuid: DeviceUUID, secret: Union[str, bytes]) -> CreateValidation:
        key = dmcrypt_prefix(device_uuid, "luks")
        value = _as_bytes(secret)

        try:
            if not self.store.exists(key):
                return CreateValidation(CreateCheck.OK)
            existing = self.store.get(key)
        except (KeyNotFoundError, StoreUnavailableError) as e:
            logger.debug("unable to get dm-crypt key from store (r = %d)", e.code)
            return CreateValidation(CreateCheck.ERROR, e.code, e.message)

        if existing == value:
            # both values match; this will be an idempotent op
            return CreateValidation(CreateCheck.ALREADY_BOUND_SAME, errno.EEXIST)
        return CreateValidation(
            CreateCheck.CONFLICT,
            SecretConflictError.code,
            "dm-crypt key already exists and does not match",
        )

    def apply_create(self, device_uuid: DeviceUUID, secret: Union[str, bytes]) -> None:
        """Stage the dm-crypt secret and trigger a proposal.

        Does not wait for the commit.

        Raises:
            RuntimeError: if consensus is not plugged
        """
        if not self.consensus.is_plugged():
            raise RuntimeError("apply_create requires consensus to be plugged")

        key = dmcrypt_prefix(device_uuid, "luks")
        self.commit.put(key, _as_bytes(secret))
        if self.audit:
            self.audit.lifecycle(AuditEventType.LIFECYCLE_CREATE, str(device_uuid), {"key": key})

    def validate_destroy(self, device_uuid: DeviceUUID, device_id: int) -> bool:
        """True if the device has any secret left to destroy."""
        return any(self.store.has_prefix(p) for p in device_prefixes(device_uuid, device_id))

    def apply_destroy(self, device_uuid: DeviceUUID, device_id: int) -> int:
        """Stage deletion of both device prefixes in one transaction and propose it.

        Returns:
            Number of erases staged
        """
        staged = 0

        def erase_all(transaction) -> None:
            nonlocal staged
            for prefix in device_prefixes(device_uuid, device_id):
                staged += self.store.delete_prefix(transaction, prefix)

        self.commit.commit_mutation(erase_all)
        logger.debug("destroy %s (osd.%d): %d keys staged", device_uuid, device_id, staged)
        if self.audit:
            self.audit.lifecycle(
                AuditEventType.LIFECYCLE_DESTROY, str(device_uuid),
                {"device_id": device_id, "erased": staged},
            )
        return staged


def check_create(hooks: LifecycleHooks, device_uuid: DeviceUUID, secret: Union[str, bytes]) -> bool:
    """Validate a create, raising on failure.

    Returns:
        True if the secret still needs to be applied, False for an idempotent retry
    """
    result = hooks.validate_create(device_uuid, secret)
    try:
        result.raise_for_status()
    except ConfigKeyError:
        logger.info("dm-crypt validation for %s failed: %s", device_uuid, result.message)
        raise
    return result.status == CreateCheck.OK
