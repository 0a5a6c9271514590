# topology_engine/wiring/service.py
"""Service declarations - a task spec kept running on a cluster."""

import logging

from topology_engine.core.errors import ConfigError, PlacementError
from topology_engine.core.validation import validate_resource_id
from topology_engine.domain.models import Cluster, Service, SubnetTier, TaskSpec

logger = logging.getLogger(__name__)


def create_service(
    cluster: Cluster,
    task_spec: TaskSpec,
    desired_count: int = 1,
    assign_public_ip: bool = True,
    placement_tier: SubnetTier = SubnetTier.PUBLIC,
    resource_id: str = "MyService",
) -> Service:
    """
    Declare a service and attach it to `cluster`.

    `assign_public_ip` defaults to True even though traffic arrives
    through the load balancer.

    Raises:
        ConfigError: desired_count below 1 or duplicate service id.
        PlacementError: Tier missing from the network, or a public IP
            requested in the isolated tier.
    """
    validate_resource_id(resource_id)

    # Scaling to zero is not supported here
    if isinstance(desired_count, bool) or not isinstance(desired_count, int) or desired_count < 1:
        raise ConfigError(f"desired_count must be >= 1, got {desired_count!r}")

    if assign_public_ip and placement_tier == SubnetTier.ISOLATED:
        raise PlacementError(
            f"Service {resource_id} cannot be assigned a public IP in the ISOLATED tier"
        )

    subnets = cluster.network.subnets_for(placement_tier)
    if not subnets:
        raise PlacementError(
            f"Network {cluster.network.resource_id} has no {placement_tier.value} subnets "
            f"for service {resource_id}"
        )

    if any(s.resource_id == resource_id for s in cluster.services):
        raise ConfigError(f"Cluster {cluster.resource_id} already has a service {resource_id}")

    service = Service(
        resource_id=resource_id,
        cluster=cluster,
        task_spec=task_spec,
        desired_count=desired_count,
        assign_public_ip=assign_public_ip,
        subnets=subnets,
    )
    cluster.services.append(service)

    logger.info(
        f"[wiring] declared service {resource_id} on {cluster.resource_id} "
        f"(task={task_spec.resource_id}, desired={desired_count}, public_ip={assign_public_ip})"
    )
    return service
