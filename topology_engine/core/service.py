"""Provisioning service - the only component that talks to the backend."""

import logging
from typing import Callable, Iterable, List, TypeVar

from topology_engine.core.backend import ProvisioningBackend, ResourceSpec
from topology_engine.core.errors import (
    DependencyUnresolvedError,
    ProvisioningError,
    TopologyError,
    TopologyInvalidStateError,
)
from topology_engine.core.events_model import TopologyEvent
from topology_engine.core.graph import TopologyGraph
from topology_engine.domain.models import (
    AccessRule,
    Cluster,
    DatabaseInstance,
    Endpoint,
    Listener,
    LoadBalancer,
    NetworkTopology,
    ResourceKind,
    Service,
    TaskSpec,
)
from topology_engine.policy.derivation import apply_access_rules

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProvisioningService:
    """Realizes declared entities and resolves their deferred endpoints."""

    def __init__(self, backend: ProvisioningBackend, event_emitters, topology_name: str):
        self._backend = backend
        self._emitters = event_emitters
        self._topology_name = topology_name

    # -------------------------
    # CREATE
    # -------------------------

    def realize(self, entity) -> str:
        """
        Create `entity` through the backend and record its provider handle.

        Task specs are realized with their environment fully resolved, so
        every endpoint they reference must already be resolved.
        """
        if entity.provider_handle is not None:
            raise TopologyInvalidStateError(
                f"{entity.resource_id} already realized as {entity.provider_handle}"
            )

        spec = self._spec_for(entity)
        handle = self._call(
            lambda: self._backend.create(spec),
            f"create {spec.kind.value} {spec.logical_id}",
        )
        entity.provider_handle = handle

        logger.info(f"[provisioning] created {spec.kind.value} {spec.logical_id} -> {handle}")
        self._emit([
            TopologyEvent.resource_created(self._topology_name, entity.resource_id, spec.kind.value, handle)
        ])
        return handle

    # -------------------------
    # RESOLVE (single wait point per resource)
    # -------------------------

    def wait_for_endpoint(self, entity) -> Endpoint:
        """Block until the backend reports the endpoint, then resolve the handle's cell."""
        if entity.provider_handle is None:
            raise DependencyUnresolvedError(
                f"{entity.resource_id} has not been created, endpoint cannot be resolved"
            )

        if entity.endpoint.is_resolved:
            return entity.endpoint.value

        endpoint = self._call(
            lambda: self._backend.resolve(entity.provider_handle),
            f"resolve {entity.resource_id}",
        )
        if not isinstance(endpoint, Endpoint):
            raise ProvisioningError(
                f"Backend returned {type(endpoint).__name__} for {entity.resource_id}, expected Endpoint"
            )
        entity.endpoint.resolve(endpoint)

        logger.info(f"[provisioning] {entity.resource_id} endpoint resolved: {endpoint}")
        self._emit([
            TopologyEvent.endpoint_resolved(self._topology_name, entity.resource_id, endpoint)
        ])
        return endpoint

    # -------------------------
    # ACCESS RULES
    # -------------------------

    def apply_rules(self, graph: TopologyGraph, rules: Iterable[AccessRule]) -> List[AccessRule]:
        """
        Realize new rules as ingress rules, appending each to its boundary
        only after the backend created it.
        """
        return apply_access_rules(
            graph, rules, realize=lambda rule: self._realize_rule(graph, rule)
        )

    # -------------------------
    # INTERNAL HELPERS
    # -------------------------

    def _realize_rule(self, graph: TopologyGraph, rule: AccessRule) -> None:
        source = graph.get(rule.source)
        destination = graph.get(rule.destination)
        spec = ResourceSpec(
            kind=ResourceKind.INGRESS_RULE,
            logical_id=f"{rule.destination}-from-{rule.source}-{rule.port}",
            properties={
                "source_id": rule.source,
                "source_handle": self._handle_of(source),
                "destination_id": rule.destination,
                "destination_handle": self._handle_of(destination),
                "port": rule.port,
                "protocol": rule.protocol.value,
                "description": rule.description,
            },
        )
        self._call(
            lambda: self._backend.create(spec),
            f"authorize {rule.source} -> {rule.destination}:{rule.port}",
        )
        self._emit([
            TopologyEvent.access_rule_applied(self._topology_name, rule)
        ])

    def _spec_for(self, entity) -> ResourceSpec:
        if isinstance(entity, NetworkTopology):
            return ResourceSpec(ResourceKind.NETWORK, entity.resource_id, {
                "cidr": entity.cidr,
                "availability_zones": list(entity.availability_zones),
                "internet_gateway": entity.has_internet_gateway,
                "subnets": [
                    {
                        "subnet_id": s.subnet_id,
                        "name": s.name,
                        "tier": s.tier.value,
                        "cidr": s.cidr,
                        "availability_zone": s.availability_zone,
                        "route_to_internet": s.has_internet_route,
                    }
                    for s in entity.subnets
                ],
            })

        if isinstance(entity, Cluster):
            return ResourceSpec(ResourceKind.CLUSTER, entity.resource_id, {
                "network": self._handle_of(entity.network),
                "namespace": entity.namespace,
            })

        if isinstance(entity, DatabaseInstance):
            return ResourceSpec(ResourceKind.DATABASE, entity.resource_id, {
                "network": self._handle_of(entity.network),
                "identifier": entity.identifier,
                "engine": entity.engine.kind.value,
                "engine_version": entity.engine.version,
                "instance_class": entity.instance_class,
                "database_name": entity.database_name,
                "username": entity.credentials.username,
                "password": entity.credentials.password,
                "allocated_storage": entity.allocated_storage,
                "port": entity.port,
                "subnet_ids": [s.subnet_id for s in entity.subnets],
                "publicly_accessible": False,
            })

        if isinstance(entity, TaskSpec):
            return ResourceSpec(ResourceKind.TASK_DEFINITION, entity.resource_id, {
                "cpu": entity.cpu,
                "memory": entity.memory,
                "container": {
                    "name": entity.container_name,
                    "image": entity.image,
                    "port_mappings": [
                        {"container_port": p.container_port, "protocol": p.protocol.value}
                        for p in entity.port_mappings
                    ],
                    # Raises DependencyUnresolvedError before anything is created
                    "environment": entity.resolved_environment(),
                },
            })

        if isinstance(entity, Service):
            return ResourceSpec(ResourceKind.SERVICE, entity.resource_id, {
                "cluster": self._handle_of(entity.cluster),
                "task_definition": self._handle_of(entity.task_spec),
                "desired_count": entity.desired_count,
                "assign_public_ip": entity.assign_public_ip,
                "subnet_ids": [s.subnet_id for s in entity.subnets],
            })

        if isinstance(entity, LoadBalancer):
            return ResourceSpec(ResourceKind.LOAD_BALANCER, entity.resource_id, {
                "network": self._handle_of(entity.network),
                "internet_facing": entity.internet_facing,
                "http2_enabled": entity.http2_enabled,
                "subnet_ids": [s.subnet_id for s in entity.subnets],
            })

        if isinstance(entity, Listener):
            return ResourceSpec(ResourceKind.LISTENER, entity.resource_id, {
                "load_balancer": self._handle_of(entity.load_balancer),
                "port": entity.port,
                "protocol": entity.protocol.value,
                "open": entity.open,
                "targets": [
                    {
                        "service": self._handle_of(t.service),
                        "port": entity.port,
                        "health_check_path": t.health_check_path,
                    }
                    for t in entity.targets
                ],
            })

        raise TopologyError(f"Cannot provision {type(entity).__name__}")

    def _handle_of(self, entity) -> str:
        if entity is None or entity.provider_handle is None:
            resource_id = getattr(entity, "resource_id", entity)
            raise DependencyUnresolvedError(f"{resource_id} must be created first")
        return entity.provider_handle

    def _call(self, fn: Callable[[], T], description: str) -> T:
        try:
            return fn()
        except TopologyError:
            raise
        except Exception as e:
            logger.error(f"[provisioning] {description} failed: {e}")
            raise ProvisioningError(f"Backend failed to {description}: {e}") from e

    def _emit(self, events):
        """Emit events via emitters."""
        self._emitters.emit(events)
