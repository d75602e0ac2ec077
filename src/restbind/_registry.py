"""Registry — provider client lifecycle and access by name."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from restbind._config import RegistryConfig, TransportConfig
from restbind._transport import HttpxTransport

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from restbind._config import ProviderConfig
    from restbind._transport import Transport

# Global provider factory registry: maps type strings to client factories.
_PROVIDER_FACTORIES: dict[str, Callable[[ProviderConfig, Transport], Any]] = {}


def register_provider(type_name: str, factory: Callable[[ProviderConfig, Transport], Any]) -> None:
    """Register a client factory for a given provider type.

    :param type_name: The type identifier (e.g. ``"s3"``).
    :param factory: Called with the provider config and a transport; returns the client.
    """
    _PROVIDER_FACTORIES[type_name] = factory


def _register_builtin_providers() -> None:
    """Register the built-in providers."""
    from restbind.providers._aws_s3 import create_aws_s3_client
    from restbind.providers._s3 import create_s3_client
    from restbind.providers._vcloud import create_session_client

    for type_name, factory in (
        ("s3", create_s3_client),
        ("aws-s3", create_aws_s3_client),
        ("vcloud-session", create_session_client),
    ):
        if type_name not in _PROVIDER_FACTORIES:
            register_provider(type_name, factory)


def default_transport(config: TransportConfig) -> Transport:
    """Build the HTTP transport described by ``config``."""
    return HttpxTransport(
        timeout=config.timeout,
        connect_timeout=config.connect_timeout,
        max_attempts=config.max_attempts,
        retry_wait=config.retry_wait,
    )


class Registry:
    """Creates provider clients on first use and keeps one per configured name.

    :param config: Optional configuration. Validates immediately.
    :param transport_factory: Builds a transport for each client.
    :raises ValueError: If config is invalid.
    """

    def __init__(
        self,
        config: RegistryConfig | None = None,
        *,
        transport_factory: Callable[[TransportConfig], Transport] = default_transport,
    ) -> None:
        _register_builtin_providers()
        self._config = config or RegistryConfig()
        self._config.validate()
        self._transport_factory = transport_factory
        self._clients: dict[str, Any] = {}

    def __repr__(self) -> str:
        providers = sorted(self._config.providers.keys())
        return f"Registry(providers={providers!r})"

    def get_client(self, name: str) -> Any:
        """Get the client for a configured provider name.

        :raises KeyError: If no provider with this name is configured.
        :raises ValueError: If the provider type is unknown or its options are invalid.
        """
        if name not in self._config.providers:
            available = sorted(self._config.providers.keys())
            raise KeyError(f"Unknown provider '{name}'. Available providers: {available}")
        if name not in self._clients:
            self._clients[name] = self._create_client(name, self._config.providers[name])
        return self._clients[name]

    def _create_client(self, name: str, cfg: ProviderConfig) -> Any:
        if cfg.type not in _PROVIDER_FACTORIES:
            raise ValueError(
                f"Unknown provider type '{cfg.type}'. Registered types: {sorted(_PROVIDER_FACTORIES.keys())}"
            )
        factory = _PROVIDER_FACTORIES[cfg.type]
        transport = self._transport_factory(self._config.transport)
        try:
            return factory(cfg, transport)
        except (TypeError, ValueError) as exc:
            transport.close()
            raise ValueError(
                f"Invalid options for provider '{name}' (type={cfg.type!r}): {exc}. "
                f"Provided options: {sorted(cfg.options.keys())}"
            ) from exc

    def close(self) -> None:
        """Close all instantiated clients."""
        for client in self._clients.values():
            client.close()
        self._clients.clear()

    def __enter__(self) -> Registry:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
