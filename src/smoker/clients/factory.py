"""Client factory.

Builds client instances from registry configuration. The factory only knows
client types as names mapped to constructors; the default table refers to
the built-in implementations by import path and loads them on first use.
"""

import importlib
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from smoker.clients.base import ClientType, ServiceClient, client_type_name
from smoker.clients.registry import ClientRegistry
from smoker.core.errors import UnknownClientType
from smoker.core.freeze import thaw


logger = logging.getLogger(__name__)

ClientConstructor = Callable[[str, Dict[str, Any]], ServiceClient]

DEFAULT_CLIENT_CONSTRUCTORS: Dict[str, str] = {
    ClientType.REST.value: "smoker.clients.rest:RestClient",
    ClientType.MQTT.value: "smoker.clients.mqtt:MqttClient",
    ClientType.KAFKA.value: "smoker.clients.kafka:KafkaClient",
    ClientType.S3.value: "smoker.clients.aws.s3:S3Client",
    ClientType.SSM.value: "smoker.clients.aws.ssm:SsmClient",
    ClientType.SQS.value: "smoker.clients.aws.sqs:SqsClient",
    ClientType.KINESIS.value: "smoker.clients.aws.kinesis:KinesisClient",
    ClientType.CLOUDWATCH.value: "smoker.clients.aws.cloudwatch:CloudWatchClient",
}


@dataclass(frozen=True)
class ClientDescriptor:
    """Everything needed to construct one client instance."""

    client_type: str
    client_id: str
    config: Mapping = field(default_factory=dict)


def load_constructor(path: str) -> ClientConstructor:
    """Import a constructor from a 'module:attribute' path."""
    module_name, _, attribute = path.partition(":")
    module = importlib.import_module(module_name)
    return getattr(module, attribute)


class ClientFactory:
    """Creates service clients from registry configuration.

    Example:
        registry = ClientRegistry()
        registry.register(ClientType.REST, {"baseUrl": "https://api.example.com"})
        factory = ClientFactory(registry)
        client = await factory.create_and_initialize(ClientType.REST)
    """

    def __init__(self, registry: ClientRegistry,
                 constructors: Optional[Dict[str, Union[str, ClientConstructor]]] = None) -> None:
        """Initialize the factory.

        Args:
            registry: Registry holding client configurations
            constructors: Type name to constructor (or 'module:Class' path)
                table; defaults to the built-in clients
        """
        self.registry = registry
        table = DEFAULT_CLIENT_CONSTRUCTORS if constructors is None else constructors
        self._constructors: Dict[str, Union[str, ClientConstructor]] = {
            client_type_name(key): value for key, value in table.items()
        }

    def register_constructor(self, client_type: Any,
                             constructor: Union[str, ClientConstructor]) -> None:
        """Add or replace the constructor used for a client type."""
        self._constructors[client_type_name(client_type)] = constructor

    def supported_types(self) -> List[str]:
        return list(self._constructors)

    def supports(self, client_type: Any) -> bool:
        return client_type_name(client_type) in self._constructors

    def describe(self, client_type: Any, client_id: Optional[str] = None) -> ClientDescriptor:
        """Work out the configuration and effective id for a client.

        The effective id is the explicit id, else the ``id`` field of the
        configuration, else the type name.
        """
        type_name = client_type_name(client_type)
        config = self.registry.get(type_name, client_id) or {}

        config_id = config.get("id")
        effective_id = client_id or (config_id if isinstance(config_id, str) and config_id else None) or type_name

        return ClientDescriptor(client_type=type_name, client_id=effective_id, config=config)

    def create(self, client_type: Any, client_id: Optional[str] = None) -> ServiceClient:
        """Create a client without initializing it.

        Raises:
            UnknownClientType: When no constructor is known for the type
        """
        descriptor = self.describe(client_type, client_id)
        constructor = self._get_constructor(descriptor.client_type)
        client = constructor(descriptor.client_id, thaw(descriptor.config))
        logger.debug(f"Created {descriptor.client_type} client '{descriptor.client_id}'")
        return client

    async def create_and_initialize(self, client_type: Any,
                                    client_id: Optional[str] = None) -> ServiceClient:
        """Create a client and await its init()."""
        client = self.create(client_type, client_id)
        await client.init()
        return client

    def _get_constructor(self, type_name: str) -> ClientConstructor:
        constructor = self._constructors.get(type_name)
        if constructor is None:
            raise UnknownClientType(type_name)
        if isinstance(constructor, str):
            constructor = load_constructor(constructor)
            self._constructors[type_name] = constructor
        return constructor
