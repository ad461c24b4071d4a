"""NGSI v2 client and error taxonomy."""

from ngsi_source.core.ngsi.client import NgsiV2Client, make_client_factory
from ngsi_source.core.ngsi.errors import (
    BrokerConnectionError,
    BrokerRejectedError,
    NGSIError,
    ProxyConnectionError,
)

__all__ = [
    "NgsiV2Client",
    "make_client_factory",
    "NGSIError",
    "ProxyConnectionError",
    "BrokerConnectionError",
    "BrokerRejectedError",
]
