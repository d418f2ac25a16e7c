"""
Connector selection from configuration.

Importing this module registers every bundled connector.
"""

from typing import List, Optional
import httpx
from core.config import Settings
from ingestion.connectors.base import CONNECTOR_REGISTRY, Connector
from ingestion.connectors import youtube, news_rss, google_news, instagram, indonesia_news  # noqa: F401


def available_sources() -> List[str]:
    return sorted(CONNECTOR_REGISTRY)


def build_connectors(
    sources: List[str],
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> List[Connector]:
    """
    Instantiate the connectors named in ``sources``, preserving order.

    Raises:
        ValueError: If a source name has no registered connector
    """
    unknown = [name for name in sources if name not in CONNECTOR_REGISTRY]
    if unknown:
        raise ValueError(
            f"Unknown source(s) {unknown}; available: {available_sources()}"
        )
    return [CONNECTOR_REGISTRY[name](settings, transport) for name in sources]
