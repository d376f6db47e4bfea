"""Service-scoped process logger."""

import logging
from typing import Any, Callable, MutableMapping, Tuple


class ServiceLogAdapter(logging.LoggerAdapter):
    """Prefix every message with ``mon.<name>@<rank>(<state>).<service>(<epoch>)``.

    The prefix is computed per message, so role and epoch changes show up
    without rebuilding the adapter.
    """

    def __init__(self, logger: logging.Logger, prefix: Callable[[], str]):
        super().__init__(logger, {})
        self._prefix = prefix

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"{self._prefix()} {msg}", kwargs


def service_prefix(node: Any, service_name: str, epoch: int) -> str:
    return f"mon.{node.name}@{node.rank}({node.get_state_name()}).{service_name}({epoch})"
