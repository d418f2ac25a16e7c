"""
Connector contract and registry.

Connectors are interchangeable strategies selected by name from
configuration. There is no base class to inherit from; anything with a
``source`` attribute and an async ``fetch`` generator qualifies.
"""

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, Protocol, runtime_checkable
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceDocument:
    """One raw document exactly as the provider returned it."""
    external_id: str
    payload: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class Connector(Protocol):
    """fetch(query) -> finite, lazily produced sequence of documents"""

    source: str

    def fetch(self, query: str) -> AsyncIterator[SourceDocument]:
        ...


# Maps source name -> factory(settings, transport) returning a Connector
CONNECTOR_REGISTRY: Dict[str, Callable[..., Connector]] = {}


def register_connector(name: str):
    """
    Register a connector factory under a source name.

    Usage:
        @register_connector("youtube")
        class YouTubeConnector:
            ...
    """
    def decorator(factory):
        if name in CONNECTOR_REGISTRY:
            logger.warning(f"Connector '{name}' registered twice, keeping the latest")
        CONNECTOR_REGISTRY[name] = factory
        return factory
    return decorator
