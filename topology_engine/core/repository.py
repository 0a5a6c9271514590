# topology_engine/core/repository.py

from abc import ABC, abstractmethod
from typing import Iterable, Optional
from uuid import UUID

from topology_engine.core.errors import TopologyNotFound


class TopologyRepository(ABC):
    """
    Persistence contract for assembled topologies.
    """

    @abstractmethod
    def create(self, topology) -> None:
        """
        Persist an assembled topology.
        Must fail if topology_id already exists.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, topology_id: UUID) -> Optional[object]:
        """
        Fetch topology by ID.
        Returns None if not found.
        """
        raise NotImplementedError

    @abstractmethod
    def list(self, limit: int = 100) -> Iterable[object]:
        """
        List topologies, oldest first.
        """
        raise NotImplementedError

    def require(self, topology_id: UUID):
        """
        Fetch topology by ID.
        Raises TopologyNotFound if missing.
        """
        topology = self.get(topology_id)
        if topology is None:
            raise TopologyNotFound(f"Topology {topology_id} not found")
        return topology
