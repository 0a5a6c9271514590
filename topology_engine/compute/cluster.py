# topology_engine/compute/cluster.py
"""Container cluster declarations."""

import logging
from typing import Optional

from topology_engine.core.errors import ConfigError
from topology_engine.core.validation import validate_resource_id
from topology_engine.domain.models import Cluster, NetworkTopology

logger = logging.getLogger(__name__)


def create_cluster(
    topology: NetworkTopology,
    namespace: Optional[str] = None,
    resource_id: str = "MyCluster",
) -> Cluster:
    """Declare a cluster bound to `topology`, optionally with a service discovery namespace."""
    validate_resource_id(resource_id)

    if not topology.subnets:
        raise ConfigError(f"Network {topology.resource_id} has no subnets")

    if namespace is not None and not namespace.strip():
        raise ConfigError("namespace must not be blank")

    cluster = Cluster(
        resource_id=resource_id,
        network=topology,
        namespace=namespace,
    )

    logger.info(f"[compute] declared cluster {resource_id} on {topology.resource_id}")
    return cluster
