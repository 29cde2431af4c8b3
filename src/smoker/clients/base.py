"""Service client capability and shared lifecycle handling.

Every client the factory can build exposes the same small lifecycle:
init(), is_initialized(), reset() and destroy(). BaseServiceClient
implements the state tracking around it; subclasses only provide
_initialize_client() and, when they hold resources, cleanup_client().
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import Enum
from typing import Any, Dict, List, Optional

from smoker.core.errors import (
    ClientNotInitializedError,
    SmokerError,
    ValidationError,
    ERR_CLIENT_LIFECYCLE,
)
from smoker.core.polling import DEFAULT_POLL_INTERVAL_SECONDS


logger = logging.getLogger(__name__)


class ClientType(str, Enum):
    """Client types known to the harness."""

    REST = "rest"
    MQTT = "mqtt"
    S3 = "s3"
    CLOUDWATCH = "cloudwatch"
    SSM = "ssm"
    SQS = "sqs"
    KINESIS = "kinesis"
    KAFKA = "kafka"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_string(cls, value: str) -> Optional["ClientType"]:
        """Look up a client type by name, case-insensitively."""
        try:
            return cls(value.lower())
        except (ValueError, AttributeError):
            return None

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return cls.from_string(value) is not None

    @classmethod
    def all_types(cls) -> List["ClientType"]:
        return list(cls)


def client_type_name(client_type: Any) -> str:
    """Normalize a ClientType member or plain string to its string form."""
    if isinstance(client_type, Enum):
        return str(client_type.value)
    return str(client_type)


class ServiceClient(ABC):
    """Lifecycle contract shared by all clients."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Client identifier."""

    @abstractmethod
    async def init(self, config: Optional[Mapping] = None) -> None:
        """Initialize the client, optionally replacing its configuration."""

    @abstractmethod
    def is_initialized(self) -> bool:
        """Check whether init() completed successfully."""

    @abstractmethod
    async def reset(self) -> None:
        """Destroy and re-initialize the client."""

    @abstractmethod
    async def destroy(self) -> None:
        """Release the client's resources."""

    async def cleanup_client(self) -> None:
        """Client-specific cleanup called by destroy()."""


class BaseServiceClient(ServiceClient):
    """Base implementation of the client lifecycle.

    Args:
        client_id: Client identifier
        config: Client-specific configuration
    """

    def __init__(self, client_id: str, config: Optional[Mapping] = None) -> None:
        self._name = client_id
        self._config: Dict[str, Any] = dict(config or {})
        self._initialized = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> Dict[str, Any]:
        return dict(self._config)

    @property
    def enabled(self) -> bool:
        return bool(self._config.get("enabled", True))

    async def init(self, config: Optional[Mapping] = None) -> None:
        """Initialize the client.

        The client is marked initialized only when _initialize_client()
        completes; on failure the error propagates and the client stays
        uninitialized.

        Args:
            config: Optional configuration replacing the constructor's
        """
        if config is not None:
            self._config = dict(config)

        self._initialized = False
        await self._initialize_client()
        self._initialized = True
        logger.debug(f"Client {self._name} initialized")

    @abstractmethod
    async def _initialize_client(self) -> None:
        """Client-specific initialization."""

    def is_initialized(self) -> bool:
        return self._initialized

    async def reset(self) -> None:
        """Destroy and re-initialize the client.

        Raises:
            SmokerError: When destroy or init fails
        """
        if not self._initialized:
            return

        try:
            await self.destroy()
            await self.init()
        except Exception as e:
            raise SmokerError(
                f"Failed to reset client: {e}",
                code=ERR_CLIENT_LIFECYCLE,
                domain="client",
                details={"client": self._name},
            ) from e

    async def destroy(self) -> None:
        """Release resources and mark the client uninitialized.

        Raises:
            SmokerError: When cleanup fails
        """
        if not self._initialized:
            return

        try:
            await self.cleanup_client()
        except Exception as e:
            raise SmokerError(
                f"Failed to destroy client: {e}",
                code=ERR_CLIENT_LIFECYCLE,
                domain="client",
                details={"client": self._name},
            ) from e
        self._initialized = False
        logger.debug(f"Client {self._name} destroyed")

    def get_config(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    def require_config(self, key: str, component: Optional[str] = None) -> Any:
        """Get a configuration value that must be present and non-empty.

        Raises:
            ValidationError: When the value is missing or empty
        """
        value = self._config.get(key)
        if value is None or value == "" or value == [] or value == ():
            label = component or type(self).__name__
            raise ValidationError(
                f"{label} requires '{key}' in its configuration",
                details={"client": self._name, "field": key},
            )
        return value

    def get_poll_interval(self) -> float:
        """Seconds between two polls of a wait operation."""
        return float(self._config.get("pollInterval", DEFAULT_POLL_INTERVAL_SECONDS))

    def ensure_initialized(self) -> None:
        """Raise unless init() has completed."""
        if not self._initialized:
            raise ClientNotInitializedError(self._name)
