# topology_engine/network/builder.py
"""Network topology builder - allocates tiered subnets per availability zone."""

import ipaddress
import logging
from typing import Iterable, Sequence

from topology_engine.core.errors import ConfigError
from topology_engine.core.validation import validate_resource_id
from topology_engine.domain.models import NetworkTopology, Subnet, SubnetSpec

logger = logging.getLogger(__name__)

# Smallest subnet most providers accept
MAX_SUBNET_MASK = 28


def build_network(
    cidr: str,
    max_azs: int,
    subnet_specs: Sequence[SubnetSpec],
    available_zones: Iterable[str],
    resource_id: str = "MyVpc",
) -> NetworkTopology:
    """
    Allocate one subnet per spec per availability zone.

    Subnets are carved from `cidr` in spec order, AZ by AZ, each block
    aligned to its own mask. The first `max_azs` zones of
    `available_zones` are used.

    Args:
        cidr: VPC CIDR block (e.g. "30.0.0.0/16").
        max_azs: Number of availability zones to span.
        subnet_specs: Ordered tier specs ({name, cidr_mask, tier}).
        available_zones: Zones offered by the target region.
        resource_id: Logical id of the network.

    Returns:
        NetworkTopology descriptor. No provider call is made here.

    Raises:
        ConfigError: Unparsable CIDR, bad masks, duplicate spec names,
            tiers that would overlap or overflow the VPC, or `max_azs`
            larger than the number of zones in the region.
    """
    validate_resource_id(resource_id)

    try:
        network = ipaddress.ip_network(cidr, strict=True)
    except ValueError as e:
        raise ConfigError(f"Invalid VPC CIDR {cidr!r}: {e}") from e

    zones = list(available_zones)
    if max_azs < 1:
        raise ConfigError(f"max_azs must be at least 1, got {max_azs}")
    if max_azs > len(zones):
        raise ConfigError(
            f"max_azs={max_azs} exceeds the {len(zones)} availability zones "
            f"available in the region ({', '.join(zones) or 'none'})"
        )
    zones = zones[:max_azs]

    specs = list(subnet_specs)
    if not specs:
        raise ConfigError("At least one subnet spec is required")

    names = [spec.name for spec in specs]
    duplicates = {n for n in names if names.count(n) > 1}
    if duplicates:
        raise ConfigError(f"Duplicate subnet spec names: {sorted(duplicates)}")

    for spec in specs:
        if not network.prefixlen <= spec.cidr_mask <= MAX_SUBNET_MASK:
            raise ConfigError(
                f"Subnet {spec.name!r}: cidr_mask /{spec.cidr_mask} must be within "
                f"/{network.prefixlen}../{MAX_SUBNET_MASK} for VPC {cidr}"
            )

    subnets = []
    cursor = int(network.network_address)
    network_end = int(network.broadcast_address)

    for spec in specs:
        block_size = 2 ** (network.max_prefixlen - spec.cidr_mask)
        for index, zone in enumerate(zones, start=1):
            # Align to the block boundary of this mask
            start = -(-cursor // block_size) * block_size
            end = start + block_size - 1
            if end > network_end:
                raise ConfigError(
                    f"Subnet {spec.name!r} /{spec.cidr_mask} in {zone} would overlap "
                    f"or fall outside VPC {cidr}: address space exhausted"
                )
            block = type(network)((start, spec.cidr_mask))
            subnets.append(Subnet(
                subnet_id=f"{resource_id}-{spec.name}-Subnet{index}",
                name=spec.name,
                tier=spec.tier,
                cidr=str(block),
                availability_zone=zone,
            ))
            cursor = end + 1

    _assert_disjoint(subnets)

    topology = NetworkTopology(
        resource_id=resource_id,
        cidr=str(network),
        availability_zones=tuple(zones),
        subnet_specs=tuple(specs),
        subnets=tuple(subnets),
    )

    logger.info(
        f"[network] {resource_id} {network} across {len(zones)} AZs: "
        + ", ".join(f"{s.subnet_id}={s.cidr}" for s in subnets)
    )
    return topology


def _assert_disjoint(subnets: Sequence[Subnet]) -> None:
    blocks = [(s, ipaddress.ip_network(s.cidr)) for s in subnets]
    for i, (a, net_a) in enumerate(blocks):
        for b, net_b in blocks[i + 1:]:
            if net_a.overlaps(net_b):
                raise ConfigError(f"Subnets {a.subnet_id} and {b.subnet_id} overlap")
