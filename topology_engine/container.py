# topology_engine/container.py
"""Dependency injection container - wires all services together."""

from topology_engine.compute.images import (
    DirectoryDigestImageBuilder,
    DockerImageBuilder,
    ImageBuilder,
)
from topology_engine.core.backend import ProvisioningBackend
from topology_engine.core.config import EngineSettings, StackSettings
from topology_engine.core.errors import ConfigError
from topology_engine.core.events import LoggingEventEmitter, MultiEventEmitter
from topology_engine.infrastructure.http.agent_client import ProvisioningAgentClient
from topology_engine.infrastructure.memory.backend import InMemoryProvisioningBackend
from topology_engine.infrastructure.memory.repository import InMemoryTopologyRepository
from topology_engine.orchestrator.assembler import TopologyAssembler


def build_backend(settings: EngineSettings) -> ProvisioningBackend:
    if settings.backend == "http":
        if not settings.provisioning_agent_url:
            raise ConfigError("TOPOLOGY_PROVISIONING_AGENT_URL is required for the http backend")
        return ProvisioningAgentClient(
            settings.provisioning_agent_url,
            timeout=settings.agent_timeout,
            poll_interval=settings.agent_poll_interval,
            resolve_timeout=settings.agent_resolve_timeout,
        )
    return InMemoryProvisioningBackend(region=settings.aws_region)


def build_image_builder(settings: EngineSettings) -> ImageBuilder:
    if settings.image_builder == "docker":
        return DockerImageBuilder(settings.image_repository)
    return DirectoryDigestImageBuilder(settings.image_repository)


# ============================================
# SETTINGS
# ============================================

settings = EngineSettings()
stack_settings = StackSettings()


# ============================================
# REPOSITORIES
# ============================================

topology_repository = InMemoryTopologyRepository()


# ============================================
# EVENTS
# ============================================

event_log = LoggingEventEmitter(max_events=settings.event_log_size)

emitters = MultiEventEmitter([
    event_log
])


# ============================================
# SERVICES
# ============================================

backend = build_backend(settings)

assembler = TopologyAssembler(
    backend=backend,
    event_emitters=emitters,
    image_builder=build_image_builder(settings),
    available_zones=settings.zones(),
    repository=topology_repository,
)
