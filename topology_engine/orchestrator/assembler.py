# topology_engine/orchestrator/assembler.py
"""Topology assembler - declares, realizes and wires a web service topology."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import FrozenSet, Iterable, List, Optional
from uuid import UUID, uuid4

from topology_engine.blueprints import WebServiceBlueprint
from topology_engine.compute.cluster import create_cluster
from topology_engine.compute.images import ImageBuilder
from topology_engine.compute.task import define_task
from topology_engine.core.backend import ProvisioningBackend
from topology_engine.core.config import StackConfiguration
from topology_engine.core.errors import ProvisioningError, TopologyError
from topology_engine.core.events_model import TopologyEvent
from topology_engine.core.graph import TopologyGraph
from topology_engine.core.repository import TopologyRepository
from topology_engine.core.service import ProvisioningService
from topology_engine.database.provisioner import provision_database
from topology_engine.domain.models import (
    AccessRule,
    Cluster,
    Credentials,
    DatabaseInstance,
    Listener,
    LoadBalancer,
    NetworkTopology,
    PortMapping,
    ResourceKind,
    Service,
    SubnetTier,
    TaskSpec,
)
from topology_engine.network.builder import build_network
from topology_engine.policy.derivation import derive_access_rules
from topology_engine.wiring.load_balancer import (
    add_listener,
    create_load_balancer,
    register_target,
)
from topology_engine.wiring.service import create_service

logger = logging.getLogger(__name__)


@dataclass
class AssembledTopology:
    """A fully realized topology and its published output."""
    topology_id: UUID
    name: str
    graph: TopologyGraph
    network: NetworkTopology
    cluster: Cluster
    database: DatabaseInstance
    task_spec: TaskSpec
    service: Service
    load_balancer: LoadBalancer
    listener: Listener
    access_rules: FrozenSet[AccessRule]
    output: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def dns_name(self) -> str:
        return self.load_balancer.dns_name

    def sorted_rules(self) -> List[AccessRule]:
        return sorted(self.access_rules, key=lambda r: r.key)


class TopologyAssembler:
    """
    Builds the network + cluster + database + load-balanced service shape.

    Flow:
    1. Network, then cluster and database (database endpoint is deferred)
    2. Image, load balancer and listener
    3. Task spec with deferred DB_HOST / DB_PORT
    4. Wait for the database endpoint, realize the task and the service
    5. Register the service behind the listener
    6. Derive access rules from the finished graph and apply them
    7. Publish http://<load balancer dns>

    Any error aborts the whole assembly. Nothing is rolled back here; the
    backend owns cleanup of partially created resources.
    """

    def __init__(
        self,
        backend: ProvisioningBackend,
        event_emitters,
        image_builder: ImageBuilder,
        available_zones: Iterable[str],
        repository: Optional[TopologyRepository] = None,
    ):
        self._backend = backend
        self._emitters = event_emitters
        self._image_builder = image_builder
        self._available_zones = list(available_zones)
        self._repository = repository

    def assemble(
        self,
        blueprint: WebServiceBlueprint,
        configuration: StackConfiguration,
        require_credentials: bool = False,
    ) -> AssembledTopology:
        """
        Assemble one topology.

        Raises:
            TopologyError: Any configuration, placement, dependency or
                provisioning failure. No output is published in that case.
        """
        logger.info(f"[assembler] assembling {blueprint.name}")

        try:
            topology = self._assemble(blueprint, configuration, require_credentials)
        except TopologyError as e:
            self._fail(blueprint.name, e)
            raise
        except Exception as e:
            self._fail(blueprint.name, e)
            raise ProvisioningError(f"Assembly of {blueprint.name} failed: {e}") from e

        if self._repository is not None:
            self._repository.create(topology)

        logger.info(f"[assembler] {blueprint.name} published at {topology.output}")
        self._emit([TopologyEvent.topology_published(blueprint.name, topology.output)])
        return topology

    # -------------------------
    # INTERNAL HELPERS
    # -------------------------

    def _assemble(
        self,
        blueprint: WebServiceBlueprint,
        configuration: StackConfiguration,
        require_credentials: bool,
    ) -> AssembledTopology:
        provisioning = ProvisioningService(self._backend, self._emitters, blueprint.name)
        graph = TopologyGraph()

        # Network
        network = build_network(
            blueprint.vpc_cidr,
            blueprint.max_azs,
            blueprint.subnet_specs,
            self._available_zones,
        )
        self._declare(graph, blueprint.name, network, ResourceKind.NETWORK)
        provisioning.realize(network)

        # Cluster and database
        cluster = create_cluster(network, namespace=blueprint.cluster_namespace)
        self._declare(graph, blueprint.name, cluster, ResourceKind.CLUSTER)
        provisioning.realize(cluster)

        database = provision_database(
            network,
            blueprint.db_engine,
            Credentials(configuration.db_username, configuration.db_password),
            SubnetTier.ISOLATED,
            blueprint.db_storage_gb,
            identifier=blueprint.db_identifier,
            database_name=configuration.db_database,
            instance_class=blueprint.db_instance_class,
            require_credentials=require_credentials,
        )
        self._declare(graph, blueprint.name, database, ResourceKind.DATABASE)
        provisioning.realize(database)

        # Image, load balancer, listener
        image = self._build_image(blueprint)

        load_balancer = create_load_balancer(
            network,
            internet_facing=blueprint.internet_facing,
            http2_enabled=blueprint.http2_enabled,
        )
        listener = add_listener(
            load_balancer,
            port=blueprint.listener_port,
            open=blueprint.listener_open,
        )
        self._declare(graph, blueprint.name, load_balancer, ResourceKind.LOAD_BALANCER)
        provisioning.realize(load_balancer)

        # Task spec; DB_HOST / DB_PORT stay deferred until the database is up
        task_spec = define_task(
            image,
            blueprint.cpu,
            blueprint.memory,
            [PortMapping(blueprint.container_port)],
            env=blueprint.task_environment(database, configuration),
        )
        self._declare(graph, blueprint.name, task_spec, ResourceKind.TASK_DEFINITION)

        provisioning.wait_for_endpoint(database)
        provisioning.realize(task_spec)

        # Service behind the load balancer
        service = create_service(
            cluster,
            task_spec,
            desired_count=blueprint.desired_count,
            assign_public_ip=blueprint.assign_public_ip,
        )
        self._declare(graph, blueprint.name, service, ResourceKind.SERVICE)
        provisioning.realize(service)

        register_target(listener, service, health_check_path=blueprint.health_check_path)
        provisioning.realize(listener)

        provisioning.wait_for_endpoint(load_balancer)

        # Policy runs once, on the complete graph
        rules = derive_access_rules(graph)
        provisioning.apply_rules(graph, rules)

        return AssembledTopology(
            topology_id=uuid4(),
            name=blueprint.name,
            graph=graph,
            network=network,
            cluster=cluster,
            database=database,
            task_spec=task_spec,
            service=service,
            load_balancer=load_balancer,
            listener=listener,
            access_rules=rules,
            output=f"http://{load_balancer.dns_name}",
        )

    def _build_image(self, blueprint: WebServiceBlueprint) -> str:
        try:
            return self._image_builder.build_and_publish(
                blueprint.app_source_path, blueprint.image_platform
            )
        except TopologyError:
            raise
        except Exception as e:
            raise ProvisioningError(
                f"Image build failed for {blueprint.app_source_path}: {e}"
            ) from e

    def _declare(self, graph: TopologyGraph, name: str, entity, kind: ResourceKind) -> None:
        graph.add(entity)
        self._emit([TopologyEvent.resource_declared(name, entity.resource_id, kind.value)])

    def _fail(self, name: str, error: Exception) -> None:
        logger.error(f"[assembler] {name} failed: {type(error).__name__}: {error}")
        self._emit([TopologyEvent.topology_failed(name, error)])

    def _emit(self, events):
        """Emit events via emitters."""
        self._emitters.emit(events)
