#tests\test_assembler.py

"""End-to-end assembly against the in-memory backend."""

from dataclasses import replace

import pytest

from topology_engine.compute.images import DirectoryDigestImageBuilder, ImageBuilder
from topology_engine.core.config import StackConfiguration
from topology_engine.core.errors import (
    ConfigError,
    ProvisioningError,
    ResourceLimitError,
)
from topology_engine.domain.models import AccessRule, ResourceKind
from topology_engine.infrastructure.memory.backend import InMemoryProvisioningBackend
from topology_engine.orchestrator.assembler import TopologyAssembler

ZONES = ["us-east-1a", "us-east-1b", "us-east-1c"]


class BrokenImageBuilder(ImageBuilder):

    def build_and_publish(self, source_path, platform="linux/amd64"):
        raise RuntimeError("daemon went away")


class TestAssembleReference:
    """Test the reference web service topology."""

    @pytest.fixture
    def topology(self, assembler, blueprint, configuration):
        return assembler.assemble(blueprint, configuration)

    def test_output_is_load_balancer_url(self, topology):
        assert topology.output == f"http://{topology.load_balancer.dns_name}"
        assert topology.output.endswith(".us-east-1.elb.amazonaws.com")

    def test_exactly_two_access_rules(self, topology):
        assert topology.sorted_rules() == [
            AccessRule("MyLoadBalancer", "MyService", 80),
            AccessRule("MyService", "MyDB", 5432),
        ]

    def test_rules_applied_to_boundaries(self, topology):
        assert topology.service.boundary.allows("MyLoadBalancer", 80)
        assert topology.database.boundary.allows("MyService", 5432)

    def test_task_environment(self, topology, backend):
        spec = backend.get(topology.task_spec.provider_handle)
        environment = spec.properties["container"]["environment"]

        assert environment == {
            "PORT": "80",
            "NODE_ENV": "production",
            "DB_HOST": topology.database.endpoint.value.host,
            "DB_PORT": "5432",
            "DB_DATABASE": "postgres",
            "DB_USERNAME": "postgres",
            "DB_PASSWORD": "password",
            "DB_SCHEMA": "public",
            "JWT_SECRET": "JWT_SECRET",
            "JWT_EXPIRES_IN": "1d",
        }

    def test_configuration_flows_into_environment(self, assembler, blueprint, backend):
        configuration = StackConfiguration(db_username="app", db_password="s3cret", jwt_expires_in="7d")

        topology = assembler.assemble(blueprint, configuration)
        environment = backend.get(topology.task_spec.provider_handle).properties["container"]["environment"]

        assert environment["DB_USERNAME"] == "app"
        assert environment["JWT_EXPIRES_IN"] == "7d"
        assert topology.database.credentials.username == "app"

    def test_creation_order(self, topology, backend):
        kinds = [spec.kind for spec in backend.created()]

        assert kinds == [
            ResourceKind.NETWORK,
            ResourceKind.CLUSTER,
            ResourceKind.DATABASE,
            ResourceKind.LOAD_BALANCER,
            ResourceKind.TASK_DEFINITION,
            ResourceKind.SERVICE,
            ResourceKind.LISTENER,
            ResourceKind.INGRESS_RULE,
            ResourceKind.INGRESS_RULE,
        ]

    def test_listener_targets_service(self, topology, backend):
        listener = backend.get(topology.listener.provider_handle)

        assert listener.properties["targets"] == [{
            "service": topology.service.provider_handle,
            "port": 80,
            "health_check_path": "/",
        }]
        assert listener.properties["open"] is True

    def test_every_entity_realized(self, topology):
        assert len(topology.graph) == 6
        assert all(e.provider_handle for e in topology.graph.entities)

    def test_events(self, topology, event_log):
        assert len(event_log.of_type("resource.declared")) == 6
        assert len(event_log.of_type("access_rule.applied")) == 2
        published = event_log.of_type("topology.published")
        assert len(published) == 1
        assert published[0].metadata["output"] == topology.output
        assert event_log.of_type("topology.failed") == []

    def test_persisted(self, topology, repository):
        assert repository.get(topology.topology_id) is topology

    def test_same_blueprint_publishes_same_dns(self, blueprint, configuration, emitters):
        outputs = []
        for _ in range(2):
            assembler = TopologyAssembler(
                InMemoryProvisioningBackend(),
                emitters,
                image_builder=DirectoryDigestImageBuilder("app"),
                available_zones=ZONES,
            )
            outputs.append(assembler.assemble(blueprint, configuration).output)

        assert outputs[0] == outputs[1]


class TestAssemblyFailure:
    """Test that any error aborts before rules and output."""

    def _assembler(self, backend, emitters, repository, image_builder=None):
        return TopologyAssembler(
            backend=backend,
            event_emitters=emitters,
            image_builder=image_builder or DirectoryDigestImageBuilder("app"),
            available_zones=ZONES,
            repository=repository,
        )

    @pytest.mark.parametrize("kind", [ResourceKind.DATABASE, ResourceKind.LISTENER])
    def test_backend_failure(self, kind, emitters, event_log, repository, blueprint, configuration):
        backend = InMemoryProvisioningBackend(fail_on=[kind])
        assembler = self._assembler(backend, emitters, repository)

        with pytest.raises(ProvisioningError):
            assembler.assemble(blueprint, configuration)

        assert backend.created(ResourceKind.INGRESS_RULE) == []
        assert event_log.of_type("topology.published") == []
        assert len(event_log.of_type("topology.failed")) == 1
        assert list(repository.list()) == []

    def test_invalid_resources(self, assembler, blueprint, configuration, backend, event_log):
        with pytest.raises(ResourceLimitError):
            assembler.assemble(replace(blueprint, memory=4096), configuration)

        assert backend.created(ResourceKind.TASK_DEFINITION) == []
        assert event_log.of_type("topology.failed")[0].metadata["error_type"] == "ResourceLimitError"

    def test_too_many_azs(self, assembler, blueprint, configuration, backend):
        with pytest.raises(ConfigError):
            assembler.assemble(replace(blueprint, max_azs=4), configuration)

        assert backend.created() == []

    def test_missing_source_directory(self, assembler, blueprint, configuration, backend):
        with pytest.raises(ConfigError, match="not a directory"):
            assembler.assemble(replace(blueprint, app_source_path="/nonexistent/app"), configuration)

        assert backend.created(ResourceKind.TASK_DEFINITION) == []

    def test_image_builder_error_is_wrapped(self, backend, emitters, repository, blueprint, configuration):
        assembler = self._assembler(backend, emitters, repository, BrokenImageBuilder())

        with pytest.raises(ProvisioningError) as exc_info:
            assembler.assemble(blueprint, configuration)

        assert isinstance(exc_info.value.__cause__, RuntimeError)

