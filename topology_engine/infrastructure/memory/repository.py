# topology_engine/infrastructure/memory/repository.py

from threading import Lock
from typing import Iterable, Optional
from uuid import UUID

from topology_engine.core.errors import TopologyInvalidStateError
from topology_engine.core.repository import TopologyRepository


class InMemoryTopologyRepository(TopologyRepository):
    def __init__(self):
        self._store = {}
        self._lock = Lock()

    def create(self, topology) -> None:
        with self._lock:
            if topology.topology_id in self._store:
                raise TopologyInvalidStateError("Topology already exists")
            self._store[topology.topology_id] = topology

    def get(self, topology_id: UUID) -> Optional[object]:
        return self._store.get(topology_id)

    def list(self, limit: int = 100) -> Iterable[object]:
        return list(self._store.values())[:limit]
