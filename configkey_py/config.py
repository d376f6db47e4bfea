"""Service configuration."""

import os
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_NAMESPACE = "mon_config_key"

# Environment variable -> field name
ENV_VARS = {
    "CONFIGKEY_NAMESPACE": "namespace",
    "CONFIGKEY_MAX_ENTRY_SIZE": "max_entry_size",
    "CONFIGKEY_TICK_INTERVAL": "tick_interval",
    "CONFIGKEY_AUDIT_DIR": "audit_dir",
}


class ServiceConfig(BaseModel):
    """Configuration for a config-key service instance."""

    model_config = ConfigDict(extra='forbid')

    namespace: str = Field(default=DEFAULT_NAMESPACE, description="Engine namespace holding all entries")
    max_entry_size: int = Field(default=65536, ge=0, description="Maximum value size in bytes for put/set")
    tick_interval: float = Field(default=5.0, ge=0, description="Seconds between service ticks, 0 disables")
    audit_dir: Optional[str] = Field(default=None, description="Directory for the NDJSON audit log")

    @field_validator('namespace')
    def validate_namespace(cls, v):
        if not v.strip():
            raise ValueError("Namespace cannot be empty")
        return v

    @classmethod
    def from_env(cls, **overrides: Any) -> "ServiceConfig":
        """Build a config from CONFIGKEY_* environment variables.

        Keyword overrides take precedence over the environment.
        """
        values: dict = {}
        for env_name, field_name in ENV_VARS.items():
            raw = os.getenv(env_name)
            if raw is not None and raw != "":
                values[field_name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
