# topology_engine/core/backend.py

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict

from topology_engine.domain.models import Endpoint, ResourceKind


@dataclass(frozen=True)
class ResourceSpec:
    """Abstract resource handed to a provisioning backend."""
    kind: ResourceKind
    logical_id: str
    properties: Dict[str, Any] = field(default_factory=dict, hash=False)


class ProvisioningBackend(ABC):
    """
    Contract for realizing resource specs as live cloud resources.

    Implementations may block or poll internally. Retries, backoff and
    timeouts belong here, not in the assembler.
    """

    @abstractmethod
    def create(self, spec: ResourceSpec) -> str:
        """
        Realize a resource.
        Returns an opaque provider handle.
        """
        raise NotImplementedError

    @abstractmethod
    def resolve(self, handle: str) -> Endpoint:
        """
        Return the endpoint of a created resource, waiting until the
        provider reports it ready.
        """
        raise NotImplementedError
