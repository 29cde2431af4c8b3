"""Client configuration registry.

The registry stores one configuration per client instance, keyed by
``type`` for the default instance of a type or ``type:id`` for a named
instance. Stored configurations are deep clones of what was registered and
every read returns a deep, structurally frozen copy, so neither the caller
that registered a configuration nor any reader can change registry state.

Registries are meant to be created and passed around explicitly. A
process-wide default instance is available through shared() and
reset_shared() for callers that cannot thread one through.
"""

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Dict, List, Optional

from smoker.clients.base import ClientType, client_type_name
from smoker.core.freeze import deep_freeze, thaw


logger = logging.getLogger(__name__)

KEY_SEPARATOR = ":"


def config_key(client_type: Any, client_id: Optional[str] = None) -> str:
    """Derive the registry key for a client type and optional id.

    Returns:
        ``type`` when no id is given or the id equals the type, else ``type:id``
    """
    type_name = client_type_name(client_type)
    if not client_id or client_id == type_name:
        return type_name
    return f"{type_name}{KEY_SEPARATOR}{client_id}"


class ClientRegistry:
    """Keyed, immutable storage of client configurations."""

    _shared: Optional["ClientRegistry"] = None

    def __init__(self) -> None:
        self._configs: Dict[str, Dict[str, Any]] = {}

    @classmethod
    def shared(cls) -> "ClientRegistry":
        """Get the process-wide default registry, creating it on first use."""
        if cls._shared is None:
            cls._shared = cls()
        return cls._shared

    @classmethod
    def reset_shared(cls, instance: Optional["ClientRegistry"] = None) -> None:
        """Replace the process-wide default registry.

        Args:
            instance: Registry to install, or None to drop the current one
        """
        cls._shared = instance

    def register(self, client_type: Any, config: Mapping,
                 client_id: Optional[str] = None) -> None:
        """Store a configuration, replacing any entry under the same key.

        Args:
            client_type: ClientType member or type name
            config: Client configuration (deep-copied)
            client_id: Optional instance identifier
        """
        key = config_key(client_type, client_id)
        self._configs[key] = thaw(config)
        logger.debug(f"Registered client configuration '{key}'")

    def register_bulk(self, configs: Any) -> None:
        """Register several configurations at once.

        Keys are either ``type`` or ``type:id``. Entries whose value is not
        a mapping are skipped.

        Args:
            configs: Mapping of keys to client configurations
        """
        if not isinstance(configs, Mapping):
            return

        for key, value in configs.items():
            if not isinstance(value, Mapping):
                logger.debug(f"Skipping non-mapping client configuration '{key}'")
                continue
            client_type, _, client_id = str(key).partition(KEY_SEPARATOR)
            self.register(client_type, value, client_id or None)

    def get(self, client_type: Any, client_id: Optional[str] = None) -> Optional[Mapping]:
        """Get a frozen copy of a configuration.

        When an id is given but has no entry of its own, the default entry
        for the type is returned instead.

        Args:
            client_type: ClientType member or type name
            client_id: Optional instance identifier

        Returns:
            Read-only configuration, or None when nothing is registered
        """
        config = self._configs.get(config_key(client_type, client_id))
        if config is not None:
            return deep_freeze(config)

        if client_id:
            default_config = self._configs.get(config_key(client_type))
            if default_config is not None:
                return deep_freeze(default_config)

        return None

    def has(self, client_type: Any, client_id: Optional[str] = None) -> bool:
        """Check whether an entry exists under the exact derived key."""
        return config_key(client_type, client_id) in self._configs

    def configs_by_type(self, client_type: Any) -> List[Mapping]:
        """Get every configuration for a type, default entry first."""
        type_name = client_type_name(client_type)
        prefix = f"{type_name}{KEY_SEPARATOR}"
        result = []
        if type_name in self._configs:
            result.append(deep_freeze(self._configs[type_name]))
        for key, config in self._configs.items():
            if key.startswith(prefix):
                result.append(deep_freeze(config))
        return result

    def all_entries(self) -> Mapping:
        """Get a read-only view of every entry, keyed by registry key."""
        return MappingProxyType(
            {key: deep_freeze(config) for key, config in self._configs.items()}
        )

    def keys(self) -> List[str]:
        return list(self._configs)

    def clear(self) -> None:
        """Remove every entry."""
        self._configs.clear()

    def __len__(self) -> int:
        return len(self._configs)

    def __contains__(self, key: object) -> bool:
        return key in self._configs


def create_registry_from_config(clients_config: Mapping) -> ClientRegistry:
    """Build a registry from a ``clients`` configuration section."""
    registry = ClientRegistry()
    registry.register_bulk(clients_config)
    return registry


__all__ = ["ClientRegistry", "ClientType", "config_key", "create_registry_from_config"]
