"""ProviderApi — the registration surface where a provider declares its operations."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from restbind._descriptor import OperationDescriptor


class ProviderApi:
    """A named, append-only table of operation descriptors.

    Populated once when a provider plug-in is initialized and read-only
    afterwards.

    :param name: Provider name (e.g. ``"s3"``).
    :param operations: Descriptors to register immediately.
    """

    def __init__(self, name: str, operations: Iterable[OperationDescriptor] = ()) -> None:
        if not name:
            raise ValueError("Provider API name must be a non-empty string")
        self.name = name
        self._operations: dict[str, OperationDescriptor] = {}
        for descriptor in operations:
            self.register(descriptor)

    def __repr__(self) -> str:
        return f"ProviderApi({self.name!r}, operations={sorted(self._operations)!r})"

    def register(self, descriptor: OperationDescriptor) -> OperationDescriptor:
        """Add an operation.

        :raises ValueError: If an operation with the same name is registered.
        """
        if descriptor.name in self._operations:
            raise ValueError(f"Operation '{descriptor.name}' is already registered on '{self.name}'")
        self._operations[descriptor.name] = descriptor
        return descriptor

    def operation(self, name: str) -> OperationDescriptor:
        """Look up an operation by name.

        :raises KeyError: If no such operation is registered.
        """
        try:
            return self._operations[name]
        except KeyError:
            raise KeyError(
                f"Unknown operation '{name}' on '{self.name}'. Available operations: {sorted(self._operations)}"
            ) from None

    def derive(self, name: str, overrides: Iterable[OperationDescriptor] = ()) -> ProviderApi:
        """Return a new API with every operation of this one, ``overrides`` replacing same-named ones."""
        replaced = {d.name: d for d in overrides}
        derived = ProviderApi(name, (replaced.pop(n, d) for n, d in self._operations.items()))
        for descriptor in replaced.values():
            derived.register(descriptor)
        return derived

    @property
    def names(self) -> list[str]:
        return sorted(self._operations)

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __iter__(self) -> Iterator[OperationDescriptor]:
        return iter(self._operations.values())

    def __len__(self) -> int:
        return len(self._operations)
