"""Command requests, replies and parsing.

Parsing turns a raw command map into a :class:`ParsedCommand` with a closed
:class:`CommandKind`; the dispatcher only ever executes parsed commands.
"""

import json
import uuid
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError

from ..errors import CommandParseError, CommandValidationError


class RequestSource(str, Enum):
    """Originator of a request."""
    CLIENT = "client"
    MON = "mon"  # internal peer; never replied to


class CommandKind(str, Enum):
    """Closed set of config-key operations."""
    GET = "get"
    PUT = "put"
    DEL = "del"
    EXISTS = "exists"
    LIST = "list"
    DUMP = "dump"

    @property
    def is_mutation(self) -> bool:
        return self in (CommandKind.PUT, CommandKind.DEL)


# Textual command prefix -> operation
COMMAND_PREFIXES: Dict[str, CommandKind] = {
    "config-key get": CommandKind.GET,
    "config-key put": CommandKind.PUT,
    "config-key set": CommandKind.PUT,
    "config-key del": CommandKind.DEL,
    "config-key rm": CommandKind.DEL,
    "config-key exists": CommandKind.EXISTS,
    "config-key list": CommandKind.LIST,
    "config-key ls": CommandKind.LIST,
    "config-key dump": CommandKind.DUMP,
}


class CommandRequest(BaseModel):
    """An inbound administrative command."""

    model_config = ConfigDict(extra='forbid')

    cmd: Dict[str, Any] = Field(description="Parsed command map; 'prefix' selects the operation")
    data: bytes = Field(default=b"", description="Binary input payload (the '-i <file>' form)")
    source: RequestSource = Field(default=RequestSource.CLIENT)
    request_id: str = Field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def from_json(
        cls,
        cmd: str,
        data: bytes = b"",
        source: RequestSource = RequestSource.CLIENT,
    ) -> "CommandRequest":
        """Build a request from a JSON command string."""
        try:
            cmdmap = json.loads(cmd)
        except json.JSONDecodeError as e:
            raise CommandParseError(f"command is not valid JSON: {e}") from e
        if not isinstance(cmdmap, dict):
            raise CommandParseError("command must be a JSON object")
        return cls(cmd=cmdmap, data=data, source=source)

    @property
    def from_peer(self) -> bool:
        return self.source == RequestSource.MON

    @property
    def prefix(self) -> str:
        return str(self.cmd.get("prefix", ""))


class CommandReply(BaseModel):
    """Reply sent back to the originator of a request."""

    request_id: str
    code: int
    status: str
    data: bytes = b""

    @property
    def ok(self) -> bool:
        return self.code == 0


class ParsedCommand(BaseModel):
    """A validated command ready for execution."""

    model_config = ConfigDict(extra='ignore')

    kind: CommandKind
    key: StrictStr = ""
    val: Optional[StrictStr] = None


def parse_command(request: CommandRequest) -> Optional[ParsedCommand]:
    """Parse a request's command map.

    Returns:
        The parsed command, or None when the prefix is not a config-key command

    Raises:
        CommandValidationError: if a known command carries malformed fields
    """
    kind = COMMAND_PREFIXES.get(request.prefix)
    if kind is None:
        return None

    fields = {k: v for k, v in request.cmd.items() if k in ("key", "val")}
    try:
        return ParsedCommand(kind=kind, **fields)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise CommandValidationError(f"invalid '{request.prefix}' command: {errors}") from e
