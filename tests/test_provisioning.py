#tests\test_provisioning.py

"""Test the provisioning service and the in-memory backend."""

import pytest

from topology_engine.core.backend import ProvisioningBackend, ResourceSpec
from topology_engine.core.errors import (
    DependencyUnresolvedError,
    ProvisioningError,
    TopologyInvalidStateError,
)
from topology_engine.core.graph import TopologyGraph
from topology_engine.core.service import ProvisioningService
from topology_engine.domain.models import ResourceKind
from topology_engine.infrastructure.memory.backend import InMemoryProvisioningBackend
from topology_engine.policy.derivation import derive_access_rules
from topology_engine.wiring.load_balancer import (
    add_listener,
    create_load_balancer,
    register_target,
)
from topology_engine.wiring.service import create_service


@pytest.fixture
def provisioning(backend, emitters):
    return ProvisioningService(backend, emitters, "test-topology")


class ExplodingBackend(ProvisioningBackend):
    """Backend raising a non-topology error."""

    def create(self, spec):
        raise RuntimeError("connection reset")

    def resolve(self, handle):
        raise RuntimeError("connection reset")


class FlakyIngressBackend(InMemoryProvisioningBackend):
    """In-memory backend whose ingress rule creation fails a set number of times."""

    def __init__(self, failures: int, succeed_first: int = 0):
        super().__init__()
        self._failures = failures
        self._succeed_first = succeed_first

    def create(self, spec):
        if spec.kind == ResourceKind.INGRESS_RULE:
            if self._succeed_first:
                self._succeed_first -= 1
            elif self._failures:
                self._failures -= 1
                raise ProvisioningError(f"Throttled creating {spec.logical_id}")
        return super().create(spec)


class TestInMemoryBackend:

    def test_handles_are_unique(self, backend):
        a = backend.create(ResourceSpec(ResourceKind.NETWORK, "MyVpc"))
        b = backend.create(ResourceSpec(ResourceKind.NETWORK, "MyVpc"))

        assert a != b
        assert a.startswith("vpc-")

    def test_database_endpoint(self, backend):
        handle = backend.create(ResourceSpec(
            ResourceKind.DATABASE, "MyDB", {"identifier": "educando-dev", "port": 5432}
        ))

        endpoint = backend.resolve(handle)

        assert endpoint.host.startswith("educando-dev.")
        assert endpoint.host.endswith(".us-east-1.rds.amazonaws.com")
        assert endpoint.port == 5432

    def test_endpoints_are_deterministic(self):
        spec = ResourceSpec(ResourceKind.LOAD_BALANCER, "MyLoadBalancer")
        first = InMemoryProvisioningBackend()
        second = InMemoryProvisioningBackend()

        assert first.resolve(first.create(spec)) == second.resolve(second.create(spec))

    def test_resolve_polls_until_ready(self):
        backend = InMemoryProvisioningBackend(polls_until_ready=3)
        handle = backend.create(ResourceSpec(ResourceKind.LOAD_BALANCER, "MyLoadBalancer"))

        endpoint = backend.resolve(handle)

        assert backend.polls(handle) == 3
        assert endpoint.host.endswith(".elb.amazonaws.com")

    def test_kind_without_endpoint(self, backend):
        handle = backend.create(ResourceSpec(ResourceKind.CLUSTER, "MyCluster"))

        with pytest.raises(ProvisioningError, match="has no endpoint"):
            backend.resolve(handle)

    def test_unknown_handle(self, backend):
        with pytest.raises(ProvisioningError, match="Unknown"):
            backend.resolve("db-deadbeef")

    def test_injected_failure(self):
        backend = InMemoryProvisioningBackend(fail_on=[ResourceKind.DATABASE])

        with pytest.raises(ProvisioningError, match="Injected"):
            backend.create(ResourceSpec(ResourceKind.DATABASE, "MyDB"))


class TestRealize:

    def test_realize_sets_handle_and_emits(self, provisioning, backend, network, event_log):
        handle = provisioning.realize(network)

        assert network.provider_handle == handle
        spec = backend.get(handle)
        assert spec.kind == ResourceKind.NETWORK
        assert len(spec.properties["subnets"]) == 4
        assert event_log.of_type("resource.created")[0].metadata["provider_handle"] == handle

    def test_realize_twice_fails(self, provisioning, network):
        provisioning.realize(network)

        with pytest.raises(TopologyInvalidStateError):
            provisioning.realize(network)

    def test_dependency_must_exist_first(self, provisioning, cluster):
        with pytest.raises(DependencyUnresolvedError, match="MyVpc"):
            provisioning.realize(cluster)

    def test_database_is_never_public(self, provisioning, backend, network, database):
        provisioning.realize(network)
        handle = provisioning.realize(database)

        properties = backend.get(handle).properties
        assert properties["publicly_accessible"] is False
        assert all("Private" in s for s in properties["subnet_ids"])

    def test_task_with_pending_endpoint_is_not_created(self, provisioning, backend, task_spec):
        with pytest.raises(DependencyUnresolvedError):
            provisioning.realize(task_spec)

        assert backend.created(ResourceKind.TASK_DEFINITION) == []

    def test_task_environment_is_substituted(self, provisioning, backend, network, database, task_spec):
        provisioning.realize(network)
        provisioning.realize(database)
        endpoint = provisioning.wait_for_endpoint(database)

        handle = provisioning.realize(task_spec)

        environment = backend.get(handle).properties["container"]["environment"]
        assert environment["DB_HOST"] == endpoint.host
        assert environment["DB_PORT"] == "5432"

    def test_backend_errors_are_wrapped(self, emitters, network):
        provisioning = ProvisioningService(ExplodingBackend(), emitters, "test-topology")

        with pytest.raises(ProvisioningError) as exc_info:
            provisioning.realize(network)

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert network.provider_handle is None


class TestWaitForEndpoint:

    def test_not_created(self, provisioning, database):
        with pytest.raises(DependencyUnresolvedError, match="has not been created"):
            provisioning.wait_for_endpoint(database)

    def test_resolves_once(self, provisioning, network, database, event_log):
        provisioning.realize(network)
        provisioning.realize(database)

        first = provisioning.wait_for_endpoint(database)
        second = provisioning.wait_for_endpoint(database)

        assert first is second
        assert database.endpoint.value is first
        assert len(event_log.of_type("endpoint.resolved")) == 1


class TestApplyRules:

    @pytest.fixture
    def reference_graph(self, network, cluster, database, task_spec):
        service = create_service(cluster, task_spec)
        lb = create_load_balancer(network)
        register_target(add_listener(lb), service)
        return TopologyGraph([network, cluster, database, task_spec, service, lb])

    def _realize_all(self, provisioning, graph):
        for resource_id in ["MyVpc", "MyCluster", "MyDB"]:
            provisioning.realize(graph.get(resource_id))
        provisioning.wait_for_endpoint(graph.get("MyDB"))
        for resource_id in ["MyTaskDefinition", "MyService", "MyLoadBalancer"]:
            provisioning.realize(graph.get(resource_id))

    def test_rules_realized_as_ingress(self, provisioning, backend, reference_graph):
        graph = reference_graph
        self._realize_all(provisioning, graph)

        added = provisioning.apply_rules(graph, derive_access_rules(graph))
        ingress = backend.created(ResourceKind.INGRESS_RULE)

        assert len(added) == 2
        assert {(s.properties["source_id"], s.properties["destination_id"], s.properties["port"])
                for s in ingress} == {("MyLoadBalancer", "MyService", 80), ("MyService", "MyDB", 5432)}

        # Second application adds nothing
        assert provisioning.apply_rules(graph, derive_access_rules(graph)) == []
        assert len(backend.created(ResourceKind.INGRESS_RULE)) == 2

    def test_failed_ingress_leaves_boundaries_untouched(self, emitters, reference_graph):
        backend = FlakyIngressBackend(failures=1)
        provisioning = ProvisioningService(backend, emitters, "test-topology")
        graph = reference_graph
        self._realize_all(provisioning, graph)

        with pytest.raises(ProvisioningError):
            provisioning.apply_rules(graph, derive_access_rules(graph))

        assert graph.get("MyService").boundary.ingress == []
        assert graph.get("MyDB").boundary.ingress == []
        assert backend.created(ResourceKind.INGRESS_RULE) == []

        # Retry creates every rule the failed attempt left out
        added = provisioning.apply_rules(graph, derive_access_rules(graph))

        assert len(added) == 2
        assert len(backend.created(ResourceKind.INGRESS_RULE)) == 2
        assert graph.get("MyService").boundary.allows("MyLoadBalancer", 80)
        assert graph.get("MyDB").boundary.allows("MyService", 5432)

    def test_partial_failure_keeps_created_rules(self, emitters, reference_graph):
        backend = FlakyIngressBackend(failures=1, succeed_first=1)
        provisioning = ProvisioningService(backend, emitters, "test-topology")
        graph = reference_graph
        self._realize_all(provisioning, graph)

        with pytest.raises(ProvisioningError):
            provisioning.apply_rules(graph, derive_access_rules(graph))

        # Rules are applied in key order: the LB rule went through, the DB rule did not
        assert graph.get("MyService").boundary.allows("MyLoadBalancer", 80)
        assert graph.get("MyDB").boundary.ingress == []
        assert len(backend.created(ResourceKind.INGRESS_RULE)) == 1

        added = provisioning.apply_rules(graph, derive_access_rules(graph))

        assert [r.key for r in added] == [("MyService", "MyDB", 5432)]
        assert len(backend.created(ResourceKind.INGRESS_RULE)) == 2
