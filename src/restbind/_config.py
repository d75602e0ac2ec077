"""Configuration model — immutable data containers describing providers and transports."""

from __future__ import annotations

import dataclasses
from urllib.parse import urlsplit


@dataclasses.dataclass(frozen=True)
class TransportConfig:
    """Settings for the HTTP transport of each client.

    :param timeout: Overall request timeout in seconds.
    :param connect_timeout: Connection timeout in seconds.
    :param max_attempts: Attempts per request when the connection cannot be established.
    :param retry_wait: Backoff multiplier in seconds between attempts.
    """

    timeout: float = 30.0
    connect_timeout: float = 10.0
    max_attempts: int = 3
    retry_wait: float = 1.0

    def validate(self) -> None:
        """:raises ValueError: If a value is out of range."""
        if self.timeout <= 0 or self.connect_timeout <= 0:
            raise ValueError("Transport timeouts must be positive")
        if self.max_attempts < 1:
            raise ValueError("Transport max_attempts must be at least 1")
        if self.retry_wait < 0:
            raise ValueError("Transport retry_wait must not be negative")


@dataclasses.dataclass(frozen=True)
class ProviderConfig:
    """Describes one configured provider client.

    :param type: Provider type identifier (e.g. ``"s3"``, ``"aws-s3"``).
    :param endpoint: Absolute base URL of the service.
    :param identity: Access identity (user, access key id).
    :param credential: Secret matching ``identity``.
    :param options: Provider-specific options.
    """

    type: str
    endpoint: str = ""
    identity: str = ""
    credential: str = dataclasses.field(default="", repr=False)
    options: dict[str, object] = dataclasses.field(default_factory=dict)

    def validate(self, name: str = "") -> None:
        """:raises ValueError: If the type is empty or the endpoint is not an absolute http(s) URL."""
        label = f"Provider '{name}'" if name else "Provider"
        if not self.type:
            raise ValueError(f"{label} has no type")
        if self.endpoint:
            parts = urlsplit(self.endpoint)
            if parts.scheme not in ("http", "https") or not parts.hostname:
                raise ValueError(f"{label} endpoint must be an absolute http(s) URL, got {self.endpoint!r}")


@dataclasses.dataclass(frozen=True)
class RegistryConfig:
    """Top-level configuration container.

    :param providers: Mapping of client names to their provider configs.
    :param transport: Transport settings shared by all clients.
    """

    providers: dict[str, ProviderConfig] = dataclasses.field(default_factory=dict)
    transport: TransportConfig = dataclasses.field(default_factory=TransportConfig)

    def validate(self) -> None:
        """Validate every provider config and the transport settings.

        :raises ValueError: If any part is invalid.
        """
        for name, provider in self.providers.items():
            provider.validate(name)
        self.transport.validate()

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> RegistryConfig:
        """Construct from a plain dict (e.g. parsed TOML/JSON).

        :param data: Dict with a ``providers`` key and an optional ``transport`` key.
        """
        raw_providers = data.get("providers", {})
        raw_transport = data.get("transport", {})
        if not isinstance(raw_providers, dict) or not isinstance(raw_transport, dict):
            msg = "Expected 'providers' and 'transport' to be dicts"
            raise TypeError(msg)

        providers: dict[str, ProviderConfig] = {}
        for name, cfg in raw_providers.items():
            if not isinstance(cfg, dict):
                msg = f"Provider config for '{name}' must be a dict"
                raise TypeError(msg)
            providers[str(name)] = ProviderConfig(
                type=str(cfg["type"]),
                endpoint=str(cfg.get("endpoint", "")),
                identity=str(cfg.get("identity", "")),
                credential=str(cfg.get("credential", "")),
                options=dict(cfg.get("options", {})),
            )

        transport = TransportConfig(
            timeout=float(raw_transport.get("timeout", 30.0)),
            connect_timeout=float(raw_transport.get("connect_timeout", 10.0)),
            max_attempts=int(raw_transport.get("max_attempts", 3)),
            retry_wait=float(raw_transport.get("retry_wait", 1.0)),
        )
        return cls(providers=providers, transport=transport)
