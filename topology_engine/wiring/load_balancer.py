# topology_engine/wiring/load_balancer.py
"""Load balancer, listener and target registration declarations."""

import logging

from topology_engine.core.errors import ConfigError, PlacementError
from topology_engine.core.validation import (
    validate_health_check_path,
    validate_port,
    validate_resource_id,
)
from topology_engine.domain.models import (
    Listener,
    ListenerProtocol,
    LoadBalancer,
    NetworkTopology,
    Service,
    SubnetTier,
    TargetRegistration,
)

logger = logging.getLogger(__name__)


def create_load_balancer(
    topology: NetworkTopology,
    internet_facing: bool = True,
    http2_enabled: bool = True,
    resource_id: str = "MyLoadBalancer",
) -> LoadBalancer:
    """Declare an application load balancer in the public (or isolated) tier."""
    validate_resource_id(resource_id)

    tier = SubnetTier.PUBLIC if internet_facing else SubnetTier.ISOLATED
    subnets = topology.subnets_for(tier)
    if not subnets:
        raise PlacementError(
            f"Load balancer {resource_id} needs {tier.value} subnets in {topology.resource_id}"
        )

    lb = LoadBalancer(
        resource_id=resource_id,
        network=topology,
        internet_facing=internet_facing,
        subnets=subnets,
        http2_enabled=http2_enabled,
    )

    logger.info(
        f"[wiring] declared load balancer {resource_id} "
        f"(internet_facing={internet_facing}, http2={http2_enabled})"
    )
    return lb


def add_listener(
    lb: LoadBalancer,
    port: int = 80,
    open: bool = True,
    protocol: ListenerProtocol = ListenerProtocol.HTTP,
    resource_id: str = "MyListener",
) -> Listener:
    """
    Add a listener. `open` allows ingress from anywhere to the load
    balancer itself; it is applied with the listener, not derived.
    """
    validate_resource_id(resource_id)
    validate_port(port, "listener port")

    for existing in lb.listeners:
        if existing.port == port:
            raise ConfigError(f"Load balancer {lb.resource_id} already listens on port {port}")
        if existing.resource_id == resource_id:
            raise ConfigError(f"Load balancer {lb.resource_id} already has listener {resource_id}")

    listener = Listener(
        resource_id=resource_id,
        load_balancer=lb,
        port=port,
        protocol=protocol,
        open=open,
    )
    lb.listeners.append(listener)

    logger.info(f"[wiring] {lb.resource_id} listening on {port}/{protocol.value} (open={open})")
    return listener


def register_target(
    listener: Listener,
    service: Service,
    health_check_path: str = "/",
) -> None:
    """
    Register `service` behind `listener`.

    Traffic is forwarded on the listener port.

    Idempotent per (listener, service): registering the same pair again
    leaves the target set unchanged.
    """
    validate_health_check_path(health_check_path)

    if listener.target_for(service) is not None:
        logger.debug(
            f"[wiring] {service.resource_id} already registered on {listener.resource_id}"
        )
        return

    if service.cluster.network is not listener.load_balancer.network:
        raise ConfigError(
            f"Service {service.resource_id} and load balancer "
            f"{listener.load_balancer.resource_id} are in different networks"
        )

    listener.targets.append(TargetRegistration(
        service=service,
        health_check_path=health_check_path,
    ))

    logger.info(
        f"[wiring] registered {service.resource_id} on {listener.resource_id} "
        f"(port={listener.port}, health_check={health_check_path})"
    )
