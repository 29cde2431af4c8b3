"""Client registry, factory and the service client lifecycle.

Client implementations are not imported here; the factory loads them on
first use so that only the libraries of the clients actually built are
needed.
"""

from smoker.clients.base import BaseServiceClient, ClientType, ServiceClient
from smoker.clients.factory import ClientFactory
from smoker.clients.registry import ClientRegistry, create_registry_from_config

__all__ = [
    "BaseServiceClient",
    "ClientFactory",
    "ClientRegistry",
    "ClientType",
    "ServiceClient",
    "create_registry_from_config",
]
