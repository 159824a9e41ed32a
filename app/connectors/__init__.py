"""Platform connectors for the Unified Marketing Dashboard"""

from app.config import Settings
from app.connectors.base_connector import BaseConnector, ConnectorError
from app.connectors.klaviyo_connector import KlaviyoConnector
from app.connectors.triple_whale_connector import TripleWhaleConnector
from app.connectors.triple_whale_mcp import TripleWhaleMcpConnector

COMMERCE_TRANSPORTS = {
    "rest": TripleWhaleConnector,
    "mcp": TripleWhaleMcpConnector,
}


def get_commerce_connector(settings: Settings) -> TripleWhaleConnector:
    """Build the commerce connector for the configured transport"""
    transport = settings.commerce_transport.lower()
    if transport not in COMMERCE_TRANSPORTS:
        raise ValueError(
            f"Unknown commerce_transport '{settings.commerce_transport}' "
            f"(expected one of: {', '.join(COMMERCE_TRANSPORTS)})"
        )
    return COMMERCE_TRANSPORTS[transport](settings)


__all__ = [
    "BaseConnector",
    "ConnectorError",
    "KlaviyoConnector",
    "TripleWhaleConnector",
    "TripleWhaleMcpConnector",
    "get_commerce_connector",
]
