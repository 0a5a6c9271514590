# topology_engine/infrastructure/memory/backend.py

import hashlib
from itertools import count
from threading import Lock
from typing import Dict, Iterable, List, Optional

from topology_engine.core.backend import ProvisioningBackend, ResourceSpec
from topology_engine.core.errors import ProvisioningError
from topology_engine.domain.models import Endpoint, ResourceKind


_HANDLE_PREFIXES = {
    ResourceKind.NETWORK: "vpc",
    ResourceKind.CLUSTER: "cluster",
    ResourceKind.DATABASE: "db",
    ResourceKind.TASK_DEFINITION: "taskdef",
    ResourceKind.SERVICE: "svc",
    ResourceKind.LOAD_BALANCER: "alb",
    ResourceKind.LISTENER: "listener",
    ResourceKind.INGRESS_RULE: "sgr",
}


class InMemoryProvisioningBackend(ProvisioningBackend):
    """
    Backend that records specs and fabricates provider handles and endpoints.

    Endpoints are deterministic for a given logical id and region, so two
    runs of the same topology publish the same DNS name.
    """

    def __init__(
        self,
        region: str = "us-east-1",
        fail_on: Iterable[ResourceKind] = (),
        polls_until_ready: int = 0,
    ):
        self.region = region
        self._fail_on = set(fail_on)
        self._polls_until_ready = polls_until_ready
        self._store: Dict[str, ResourceSpec] = {}
        self._polls: Dict[str, int] = {}
        self._sequence = count(1)
        self._lock = Lock()

    def create(self, spec: ResourceSpec) -> str:
        with self._lock:
            if spec.kind in self._fail_on:
                raise ProvisioningError(f"Injected failure creating {spec.kind.value} {spec.logical_id}")

            handle = f"{_HANDLE_PREFIXES[spec.kind]}-{next(self._sequence):08x}"
            self._store[handle] = spec
            self._polls[handle] = 0
            return handle

    def resolve(self, handle: str) -> Endpoint:
        # Simulates a provider that needs a few status polls before ready
        while True:
            with self._lock:
                spec = self._store.get(handle)
                if spec is None:
                    raise ProvisioningError(f"Unknown provider handle {handle}")

                if self._polls[handle] >= self._polls_until_ready:
                    return self._endpoint_for(handle, spec)

                self._polls[handle] += 1

    def get(self, handle: str) -> Optional[ResourceSpec]:
        return self._store.get(handle)

    def created(self, kind: Optional[ResourceKind] = None) -> List[ResourceSpec]:
        """Specs in creation order, optionally filtered by kind."""
        return [s for s in self._store.values() if kind is None or s.kind == kind]

    def polls(self, handle: str) -> int:
        return self._polls.get(handle, 0)

    def _endpoint_for(self, handle: str, spec: ResourceSpec) -> Endpoint:
        suffix = hashlib.sha1(f"{spec.logical_id}:{self.region}".encode("utf-8")).hexdigest()

        if spec.kind == ResourceKind.DATABASE:
            identifier = spec.properties.get("identifier", spec.logical_id).lower()
            return Endpoint(
                host=f"{identifier}.{suffix[:12]}.{self.region}.rds.amazonaws.com",
                port=int(spec.properties.get("port", 5432)),
            )

        if spec.kind == ResourceKind.LOAD_BALANCER:
            name = spec.logical_id.lower()[:20]
            return Endpoint(
                host=f"{name}-{int(suffix[:8], 16)}.{self.region}.elb.amazonaws.com",
                port=80,
            )

        raise ProvisioningError(f"{spec.kind.value} {spec.logical_id} ({handle}) has no endpoint")
