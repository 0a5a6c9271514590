# topology_engine/compute/task.py
"""Task definitions - image, limits, port mappings and environment."""

import logging
from typing import Dict, Iterable, Mapping, Tuple, Union

from topology_engine.core.deferred import EndpointAttr
from topology_engine.core.errors import ConfigError
from topology_engine.core.validation import (
    validate_cpu_memory,
    validate_port,
    validate_resource_id,
)
from topology_engine.domain.models import EnvValue, PortMapping, TaskSpec

logger = logging.getLogger(__name__)

EnvInput = Union[Mapping[str, EnvValue], Iterable[Tuple[str, EnvValue]]]


def define_task(
    image: str,
    cpu: int,
    memory: int,
    ports: Iterable[PortMapping],
    env: EnvInput = (),
    resource_id: str = "MyTaskDefinition",
    container_name: str = "MyContainer",
) -> TaskSpec:
    """
    Declare a task spec.

    Environment values are plain strings or `EndpointAttr` references.
    References are stored unresolved; `TaskSpec.resolved_environment`
    substitutes them once the referenced resources are provisioned.

    Raises:
        ResourceLimitError: cpu/memory pairing not in the provider table.
        ConfigError: Missing image, bad or duplicate port mappings,
            duplicate or invalid environment entries.
    """
    validate_resource_id(resource_id)

    if not image:
        raise ConfigError("image reference is required")

    validate_cpu_memory(cpu, memory)

    port_mappings = _validate_ports(ports)
    environment = _validate_environment(env)

    task = TaskSpec(
        resource_id=resource_id,
        image=image,
        cpu=cpu,
        memory=memory,
        port_mappings=port_mappings,
        environment=environment,
        container_name=container_name,
    )

    deferred = [key for key, value in environment.items() if isinstance(value, EndpointAttr)]
    logger.info(
        f"[compute] declared task {resource_id} image={image} cpu={cpu} memory={memory} "
        f"env={len(environment)} (deferred: {', '.join(deferred) or 'none'})"
    )
    return task


def _validate_ports(ports: Iterable[PortMapping]) -> Tuple[PortMapping, ...]:
    mappings = tuple(ports)
    seen = set()
    for mapping in mappings:
        validate_port(mapping.container_port, "containerPort")
        key = (mapping.container_port, mapping.protocol)
        if key in seen:
            raise ConfigError(
                f"Duplicate port mapping {mapping.container_port}/{mapping.protocol.value}"
            )
        seen.add(key)
    return mappings


def _validate_environment(env: EnvInput) -> Dict[str, EnvValue]:
    pairs = env.items() if isinstance(env, Mapping) else env

    environment: Dict[str, EnvValue] = {}
    for key, value in pairs:
        if not key:
            raise ConfigError("Environment variable name must not be empty")

        if key in environment:
            raise ConfigError(f"Duplicate environment variable {key!r}")

        if not isinstance(value, (str, EndpointAttr)):
            raise ConfigError(
                f"Environment variable {key!r} must be a string or endpoint reference, "
                f"got {type(value).__name__}"
            )

        environment[key] = value
    return environment
