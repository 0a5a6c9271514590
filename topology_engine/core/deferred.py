"""
Deferred values for resources whose runtime identity is not yet known.

A database address or a load balancer DNS name only exists once the
provisioning backend reports completion. Declarations made before that
point hold a `Deferred` (the cell) or an `EndpointAttr` (a typed pointer
to one field of another resource's endpoint) instead of the value.

Example:
    Declaring a task environment against an unprovisioned database::

        env = {
            "DB_HOST": EndpointAttr(database, "host"),
            "DB_PORT": EndpointAttr(database, "port"),
        }

        EndpointAttr(database, "host").render()   # DependencyUnresolvedError
        database.endpoint.resolve(Endpoint("db.internal", 5432))
        EndpointAttr(database, "host").render()   # "db.internal"
"""

from typing import Any, Generic, TypeVar

from topology_engine.core.errors import (
    ConfigError,
    DependencyUnresolvedError,
    TopologyInvalidStateError,
)

__all__ = ["Deferred", "EndpointAttr", "ENDPOINT_ATTRIBUTES"]

T = TypeVar("T")

ENDPOINT_ATTRIBUTES = ("host", "port")

_UNSET = object()


class Deferred(Generic[T]):
    """Single-assignment cell for a value produced by provisioning.

    The cell starts empty. `resolve` sets it exactly once; afterwards the
    value is read-only. Reading an empty cell raises
    `DependencyUnresolvedError` rather than returning a placeholder.

    Args:
        label: Human readable owner, used in error messages
            (e.g. ``"MyDB.endpoint"``).
    """

    __slots__ = ("label", "_value")

    def __init__(self, label: str) -> None:
        self.label = label
        self._value: Any = _UNSET

    @property
    def is_resolved(self) -> bool:
        return self._value is not _UNSET

    @property
    def value(self) -> T:
        """Return the resolved value.

        Raises:
            DependencyUnresolvedError: If `resolve` has not been called yet.
        """
        if self._value is _UNSET:
            raise DependencyUnresolvedError(
                f"{self.label} read before provisioning completed"
            )
        return self._value

    def resolve(self, value: T) -> None:
        """Set the value. Allowed exactly once.

        Raises:
            TopologyInvalidStateError: If the cell was already resolved.
        """
        if self._value is not _UNSET:
            raise TopologyInvalidStateError(f"{self.label} already resolved")
        self._value = value

    def __repr__(self) -> str:
        status = repr(self._value) if self.is_resolved else "unresolved"
        return f"<Deferred({self.label}, {status})>"


class EndpointAttr:
    """Reference to the `host` or `port` of another resource's endpoint.

    The referenced resource must expose ``resource_id`` and an ``endpoint``
    attribute holding a `Deferred`. The reference is stored as-is in
    declarations and only rendered when the task is realized.

    Args:
        resource: The resource whose endpoint is referenced.
        attribute: ``"host"`` or ``"port"``.

    Raises:
        ConfigError: If the attribute is unknown or the resource has no
            deferred endpoint.
    """

    __slots__ = ("resource", "attribute")

    def __init__(self, resource: Any, attribute: str) -> None:
        if attribute not in ENDPOINT_ATTRIBUTES:
            raise ConfigError(
                f"Unknown endpoint attribute {attribute!r}, "
                f"expected one of {ENDPOINT_ATTRIBUTES}"
            )
        if not isinstance(getattr(resource, "endpoint", None), Deferred):
            raise ConfigError(
                f"{getattr(resource, 'resource_id', resource)!r} has no deferred endpoint"
            )
        self.resource = resource
        self.attribute = attribute

    @property
    def is_resolved(self) -> bool:
        return self.resource.endpoint.is_resolved

    def render(self) -> str:
        """Render the referenced field as an environment string.

        Raises:
            DependencyUnresolvedError: If the resource has not been provisioned.
        """
        endpoint = self.resource.endpoint.value
        return str(getattr(endpoint, self.attribute))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, EndpointAttr):
            return self.resource is other.resource and self.attribute == other.attribute
        return False

    def __hash__(self) -> int:
        return hash((id(self.resource), self.attribute))

    def __repr__(self) -> str:
        return f"EndpointAttr[{self.resource.resource_id}, {self.attribute!r}]"
