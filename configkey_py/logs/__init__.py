"""Logging module for the config-key service."""

from .ndjson import (
    NDJSONAuditLog,
    AuditEventType,
    AuditEvent,
    AuditSummary,
    create_audit_log,
)
from .prefix import ServiceLogAdapter, service_prefix

__all__ = [
    "NDJSONAuditLog",
    "AuditEventType",
    "AuditEvent",
    "AuditSummary",
    "create_audit_log",
    "ServiceLogAdapter",
    "service_prefix",
]
