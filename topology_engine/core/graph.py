"""
Dependency graph over declared topology entities.

Edges are not stored; they are read off the live references the entities
already hold (a service's cluster and task, a task's endpoint references,
a load balancer's listener targets). The graph itself is append-only.

Edge direction is "source uses destination", so a topological order lists
every destination before the entities that use it, which is also a valid
creation order.
"""

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from topology_engine.core.errors import ConfigError
from topology_engine.domain.models import (
    Cluster,
    DatabaseInstance,
    LoadBalancer,
    NetworkTopology,
    Service,
    TaskSpec,
)

__all__ = ["EdgeKind", "Edge", "TopologyGraph", "ENTITY_TYPES", "BOUNDARY_TYPES"]

ENTITY_TYPES = (NetworkTopology, Cluster, DatabaseInstance, TaskSpec, Service, LoadBalancer)

# Entities that own a security boundary and can be the destination of a rule
BOUNDARY_TYPES = (Service, DatabaseInstance)


class EdgeKind(Enum):
    """Why the source holds a reference to the destination."""
    PLACED_IN = "PLACED_IN"        # cluster/database/load balancer -> network
    RUNS_ON = "RUNS_ON"            # service -> cluster
    RUNS_TASK = "RUNS_TASK"        # service -> task spec
    READS_ENDPOINT = "READS_ENDPOINT"  # task or service -> database (environment)
    TARGETS = "TARGETS"            # load balancer -> service (listener target)


@dataclass(frozen=True)
class Edge:
    source: str
    destination: str
    kind: EdgeKind
    port: Optional[int] = None


class TopologyGraph:
    """Append-only registry of entities keyed by logical id."""

    def __init__(self, entities: Iterable[object] = ()):
        self._entities: Dict[str, object] = {}
        for entity in entities:
            self.add(entity)

    def add(self, entity: object) -> None:
        """
        Register an entity. Adding the same object twice is a no-op.

        Raises:
            ConfigError: Unsupported entity type, or a different entity
                already registered under the same id.
        """
        if not isinstance(entity, ENTITY_TYPES):
            raise ConfigError(f"Unsupported topology entity: {type(entity).__name__}")

        existing = self._entities.get(entity.resource_id)
        if existing is entity:
            return
        if existing is not None:
            raise ConfigError(f"Duplicate resource id {entity.resource_id!r}")

        self._entities[entity.resource_id] = entity

    def get(self, resource_id: str) -> Optional[object]:
        return self._entities.get(resource_id)

    def __contains__(self, entity: object) -> bool:
        resource_id = getattr(entity, "resource_id", None)
        return resource_id is not None and self._entities.get(resource_id) is entity

    def __len__(self) -> int:
        return len(self._entities)

    @property
    def entities(self) -> List[object]:
        return list(self._entities.values())

    # -------------------------
    # EDGES
    # -------------------------

    def edges_from(self, entity: object) -> List[Edge]:
        """Outgoing edges of one entity, restricted to entities in the graph."""
        candidates: List[Tuple[object, EdgeKind, Optional[int]]] = []

        if isinstance(entity, (Cluster, DatabaseInstance, LoadBalancer)):
            candidates.append((entity.network, EdgeKind.PLACED_IN, None))

        if isinstance(entity, TaskSpec):
            for resource in entity.referenced_resources():
                candidates.append((resource, EdgeKind.READS_ENDPOINT, getattr(resource, "port", None)))

        if isinstance(entity, Service):
            candidates.append((entity.cluster, EdgeKind.RUNS_ON, None))
            candidates.append((entity.task_spec, EdgeKind.RUNS_TASK, None))
            for resource in entity.task_spec.referenced_resources():
                candidates.append((resource, EdgeKind.READS_ENDPOINT, getattr(resource, "port", None)))

        if isinstance(entity, LoadBalancer):
            for listener in entity.listeners:
                for target in listener.targets:
                    candidates.append((target.service, EdgeKind.TARGETS, listener.port))

        edges = []
        for destination, kind, port in candidates:
            if destination in self:
                edges.append(Edge(entity.resource_id, destination.resource_id, kind, port))
        return edges

    def edges(self) -> List[Edge]:
        result = []
        for entity in self._entities.values():
            result.extend(self.edges_from(entity))
        return result

    def dependencies(self, entity: object) -> List[object]:
        """Entities `entity` directly uses."""
        seen = []
        for edge in self.edges_from(entity):
            target = self._entities[edge.destination]
            if target not in seen:
                seen.append(target)
        return seen

    # -------------------------
    # ORDERING
    # -------------------------

    def topological_order(self) -> List[object]:
        """
        Dependencies first (Kahn). Ties are broken by resource id so the
        walk does not depend on insertion order.

        Raises:
            ConfigError: If the references form a cycle.
        """
        pending: Dict[str, int] = {rid: 0 for rid in self._entities}
        users: Dict[str, List[str]] = defaultdict(list)

        for edge in self.edges():
            if edge.source == edge.destination:
                continue
            pending[edge.source] += 1
            users[edge.destination].append(edge.source)

        ready = sorted(rid for rid, count in pending.items() if count == 0)
        order: List[str] = []

        while ready:
            current = ready.pop(0)
            order.append(current)
            for user in users[current]:
                pending[user] -= 1
                if pending[user] == 0:
                    ready.append(user)
            ready.sort()

        if len(order) != len(self._entities):
            stuck = sorted(rid for rid, count in pending.items() if count > 0)
            raise ConfigError(f"Circular reference between {stuck}")

        return [self._entities[rid] for rid in order]

    def __repr__(self) -> str:
        return f"<TopologyGraph(entities={len(self._entities)})>"
