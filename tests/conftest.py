#tests\conftest.py

"""Pytest configuration and fixtures."""

import pytest
from dataclasses import replace

from topology_engine.blueprints import REFERENCE_BLUEPRINT
from topology_engine.compute.cluster import create_cluster
from topology_engine.compute.images import DirectoryDigestImageBuilder
from topology_engine.compute.task import define_task
from topology_engine.core.config import StackConfiguration
from topology_engine.core.deferred import EndpointAttr
from topology_engine.core.events import LoggingEventEmitter, MultiEventEmitter
from topology_engine.database.provisioner import provision_database
from topology_engine.domain.models import (
    Credentials,
    EngineSpec,
    PortMapping,
    SubnetSpec,
    SubnetTier,
)
from topology_engine.infrastructure.memory.backend import InMemoryProvisioningBackend
from topology_engine.infrastructure.memory.repository import InMemoryTopologyRepository
from topology_engine.network.builder import build_network
from topology_engine.orchestrator.assembler import TopologyAssembler


ZONES = ["us-east-1a", "us-east-1b", "us-east-1c"]

REFERENCE_SPECS = (
    SubnetSpec(name="Public", cidr_mask=24, tier=SubnetTier.PUBLIC),
    SubnetSpec(name="Private", cidr_mask=24, tier=SubnetTier.ISOLATED),
)


# -------------------------
# DECLARATIONS
# -------------------------

@pytest.fixture
def zones():
    return list(ZONES)


@pytest.fixture
def network():
    """Reference network: 30.0.0.0/16, two AZs, public + isolated /24."""
    return build_network("30.0.0.0/16", 2, REFERENCE_SPECS, ZONES)


@pytest.fixture
def cluster(network):
    return create_cluster(network, namespace="my-namespace")


@pytest.fixture
def database(network):
    return provision_database(
        network,
        EngineSpec(),
        Credentials("postgres", "password"),
        SubnetTier.ISOLATED,
        10,
    )


@pytest.fixture
def task_spec(database):
    return define_task(
        "app:0123456789ab",
        256,
        512,
        [PortMapping(80)],
        env=[
            ("PORT", "80"),
            ("DB_HOST", EndpointAttr(database, "host")),
            ("DB_PORT", EndpointAttr(database, "port")),
        ],
    )


# -------------------------
# COLLABORATORS
# -------------------------

@pytest.fixture
def backend():
    return InMemoryProvisioningBackend(region="us-east-1")


@pytest.fixture
def event_log():
    return LoggingEventEmitter()


@pytest.fixture
def emitters(event_log):
    return MultiEventEmitter([event_log])


@pytest.fixture
def repository():
    return InMemoryTopologyRepository()


@pytest.fixture
def app_source(tmp_path):
    """Minimal application source directory."""
    source = tmp_path / "app"
    source.mkdir()
    (source / "Dockerfile").write_text("FROM node:18-alpine\nCMD [\"node\", \"index.js\"]\n")
    (source / "index.js").write_text("console.log('hello')\n")
    return str(source)


@pytest.fixture
def blueprint(app_source):
    return replace(REFERENCE_BLUEPRINT, app_source_path=app_source)


@pytest.fixture
def configuration():
    return StackConfiguration()


@pytest.fixture
def assembler(backend, emitters, repository):
    return TopologyAssembler(
        backend=backend,
        event_emitters=emitters,
        image_builder=DirectoryDigestImageBuilder("app"),
        available_zones=ZONES,
        repository=repository,
    )
