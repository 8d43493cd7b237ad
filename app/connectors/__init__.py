"""
app/connectors package marker.
"""

from app.connectors.external_api_connector import ExternalApiConnector, build_request_headers
from app.connectors.graph_sync_client import GraphSyncClient

__all__ = [
    "ExternalApiConnector",
    "GraphSyncClient",
    "build_request_headers",
]
