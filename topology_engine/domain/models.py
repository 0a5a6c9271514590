#topology_engine\domain\models.py
"""Domain models for the network, database, compute and load balancing tiers."""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple, Union

from topology_engine.core.deferred import Deferred, EndpointAttr
from topology_engine.core.errors import ConfigError


# ============================================
# ENUMS
# ============================================

class SubnetTier(Enum):
    """Subnet classification by reachability."""
    PUBLIC = "PUBLIC"
    ISOLATED = "ISOLATED"


class Protocol(Enum):
    """Transport protocol for port mappings and access rules."""
    TCP = "tcp"
    UDP = "udp"


class ListenerProtocol(Enum):
    HTTP = "HTTP"


class EngineKind(Enum):
    """Managed database engine."""
    POSTGRES = "postgres"
    MYSQL = "mysql"


ENGINE_DEFAULT_PORTS: Dict[EngineKind, int] = {
    EngineKind.POSTGRES: 5432,
    EngineKind.MYSQL: 3306,
}


class ResourceKind(Enum):
    """Resource kinds understood by the provisioning backend."""
    NETWORK = "NETWORK"
    CLUSTER = "CLUSTER"
    DATABASE = "DATABASE"
    TASK_DEFINITION = "TASK_DEFINITION"
    SERVICE = "SERVICE"
    LOAD_BALANCER = "LOAD_BALANCER"
    LISTENER = "LISTENER"
    INGRESS_RULE = "INGRESS_RULE"


# ============================================
# SHARED VALUES
# ============================================

@dataclass(frozen=True)
class Endpoint:
    """Resolved network address of a provisioned resource."""
    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class AccessRule:
    """Derived network-allow rule between two topology entities.

    Identity is the (source, destination, port) triple. Protocol and
    description do not take part in equality, so a set of rules never
    holds two entries for the same triple.
    """
    source: str
    destination: str
    port: int
    protocol: Protocol = field(default=Protocol.TCP, compare=False)
    description: str = field(default="", compare=False)

    @property
    def key(self) -> Tuple[str, str, int]:
        return (self.source, self.destination, self.port)


@dataclass(eq=False)
class SecurityBoundary:
    """Security group of one entity. Ingress rules only ever grow."""
    owner_id: str
    ingress: List[AccessRule] = field(default_factory=list)

    def allow(self, rule: AccessRule) -> bool:
        """Append a rule. Returns False if an equal rule is already present."""
        if rule.destination != self.owner_id:
            raise ConfigError(
                f"Rule for {rule.destination} cannot be added to boundary of {self.owner_id}"
            )
        if rule in self.ingress:
            return False
        self.ingress.append(rule)
        return True

    def allows(self, source: str, port: int) -> bool:
        return any(r.source == source and r.port == port for r in self.ingress)


# ============================================
# NETWORK
# ============================================

@dataclass(frozen=True)
class SubnetSpec:
    """One subnet tier to allocate in every availability zone."""
    name: str
    cidr_mask: int
    tier: SubnetTier


@dataclass(frozen=True)
class Subnet:
    """AZ-scoped subnet. Immutable once the topology is built."""
    subnet_id: str
    name: str
    tier: SubnetTier
    cidr: str
    availability_zone: str

    @property
    def has_internet_route(self) -> bool:
        return self.tier == SubnetTier.PUBLIC


INTERNET = "internet"
INTERNET_GATEWAY = "internet-gateway"


@dataclass(eq=False)
class NetworkTopology:
    """Virtual network with tiered subnets."""
    resource_id: str
    cidr: str
    availability_zones: Tuple[str, ...]
    subnet_specs: Tuple[SubnetSpec, ...]
    subnets: Tuple[Subnet, ...]
    provider_handle: Optional[str] = None

    def subnets_for(self, tier: SubnetTier) -> Tuple[Subnet, ...]:
        return tuple(s for s in self.subnets if s.tier == tier)

    def has_tier(self, tier: SubnetTier) -> bool:
        return any(s.tier == tier for s in self.subnets)

    @property
    def has_internet_gateway(self) -> bool:
        return self.has_tier(SubnetTier.PUBLIC)

    def route_graph(self) -> Dict[str, Set[str]]:
        """
        Directed reachability graph from the internet into the network.

        Only subnets whose route table targets the internet gateway are
        attached to it; isolated subnets have no inbound edge.
        """
        graph: Dict[str, Set[str]] = {INTERNET: set()}
        if self.has_internet_gateway:
            graph[INTERNET].add(INTERNET_GATEWAY)
            graph[INTERNET_GATEWAY] = set()
        for subnet in self.subnets:
            graph.setdefault(subnet.subnet_id, set())
            if subnet.has_internet_route:
                graph[INTERNET_GATEWAY].add(subnet.subnet_id)
        return graph

    def internet_reachable_subnets(self) -> Set[str]:
        """Subnet ids reachable from the internet (BFS over `route_graph`)."""
        graph = self.route_graph()
        subnet_ids = {s.subnet_id for s in self.subnets}
        seen = {INTERNET}
        queue = deque([INTERNET])
        while queue:
            node = queue.popleft()
            for nxt in graph.get(node, ()):
                if nxt not in seen:
                    seen.add(nxt)
                    queue.append(nxt)
        return seen & subnet_ids


# ============================================
# DATABASE
# ============================================

@dataclass(frozen=True)
class EngineSpec:
    """Engine kind and version."""
    kind: EngineKind = EngineKind.POSTGRES
    version: str = "13"

    @property
    def default_port(self) -> int:
        return ENGINE_DEFAULT_PORTS[self.kind]


@dataclass(frozen=True)
class Credentials:
    """Username/password pair. The password never shows up in repr."""
    username: str
    password: str = field(repr=False)


@dataclass(eq=False)
class DatabaseInstance:
    """Managed database handle. `endpoint` resolves after provisioning."""
    resource_id: str
    identifier: str
    engine: EngineSpec
    instance_class: str
    credentials: Credentials
    database_name: str
    allocated_storage: int
    network: NetworkTopology
    subnets: Tuple[Subnet, ...]
    port: int
    provider_handle: Optional[str] = None
    endpoint: Deferred = field(init=False)
    boundary: SecurityBoundary = field(init=False)

    def __post_init__(self):
        self.endpoint = Deferred(f"{self.resource_id}.endpoint")
        self.boundary = SecurityBoundary(self.resource_id)

    @property
    def placement_tier(self) -> SubnetTier:
        return self.subnets[0].tier


# ============================================
# COMPUTE
# ============================================

EnvValue = Union[str, EndpointAttr]


@dataclass(frozen=True)
class PortMapping:
    container_port: int
    protocol: Protocol = Protocol.TCP


@dataclass(eq=False)
class TaskSpec:
    """Container task definition. Environment values may be deferred."""
    resource_id: str
    image: str
    cpu: int
    memory: int
    port_mappings: Tuple[PortMapping, ...]
    environment: Dict[str, EnvValue] = field(default_factory=dict)
    container_name: str = "MyContainer"
    provider_handle: Optional[str] = None

    def endpoint_references(self) -> List[EndpointAttr]:
        return [v for v in self.environment.values() if isinstance(v, EndpointAttr)]

    def referenced_resources(self) -> List[object]:
        """Resources whose endpoints this task reads, in first-use order."""
        seen: List[object] = []
        for ref in self.endpoint_references():
            if not any(ref.resource is r for r in seen):
                seen.append(ref.resource)
        return seen

    def is_resolvable(self) -> bool:
        return all(ref.is_resolved for ref in self.endpoint_references())

    def resolved_environment(self) -> Dict[str, str]:
        """Substitute every deferred value.

        Raises:
            DependencyUnresolvedError: If a referenced endpoint is still pending.
        """
        return {
            key: value.render() if isinstance(value, EndpointAttr) else value
            for key, value in self.environment.items()
        }


@dataclass(eq=False)
class Cluster:
    """Container orchestration cluster bound to one network."""
    resource_id: str
    network: NetworkTopology
    namespace: Optional[str] = None
    services: List["Service"] = field(default_factory=list)
    provider_handle: Optional[str] = None


@dataclass(eq=False)
class Service:
    """Long-running service running one task spec on one cluster."""
    resource_id: str
    cluster: Cluster
    task_spec: TaskSpec
    desired_count: int
    assign_public_ip: bool
    subnets: Tuple[Subnet, ...]
    provider_handle: Optional[str] = None
    boundary: SecurityBoundary = field(init=False)

    def __post_init__(self):
        self.boundary = SecurityBoundary(self.resource_id)

    @property
    def placement_tier(self) -> SubnetTier:
        return self.subnets[0].tier


# ============================================
# LOAD BALANCING
# ============================================

@dataclass(frozen=True)
class TargetRegistration:
    """Target group entry of a listener. Traffic arrives on the listener port."""
    service: Service
    health_check_path: str = "/"


@dataclass(eq=False)
class Listener:
    resource_id: str
    load_balancer: "LoadBalancer"
    port: int
    protocol: ListenerProtocol = ListenerProtocol.HTTP
    open: bool = True
    targets: List[TargetRegistration] = field(default_factory=list)
    provider_handle: Optional[str] = None

    def target_for(self, service: Service) -> Optional[TargetRegistration]:
        for target in self.targets:
            if target.service is service:
                return target
        return None


@dataclass(eq=False)
class LoadBalancer:
    """Application load balancer. `endpoint.host` is the DNS name."""
    resource_id: str
    network: NetworkTopology
    internet_facing: bool
    subnets: Tuple[Subnet, ...]
    http2_enabled: bool = True
    listeners: List[Listener] = field(default_factory=list)
    provider_handle: Optional[str] = None
    endpoint: Deferred = field(init=False)
    boundary: SecurityBoundary = field(init=False)

    def __post_init__(self):
        self.endpoint = Deferred(f"{self.resource_id}.endpoint")
        self.boundary = SecurityBoundary(self.resource_id)

    @property
    def dns_name(self) -> str:
        return self.endpoint.value.host
