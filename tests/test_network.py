#tests\test_network.py

"""Test subnet allocation and reachability of the network topology."""

import ipaddress

import pytest

from topology_engine.core.errors import ConfigError
from topology_engine.domain.models import SubnetSpec, SubnetTier
from topology_engine.network.builder import build_network

ZONES = ["us-east-1a", "us-east-1b", "us-east-1c"]

REFERENCE_SPECS = (
    SubnetSpec("Public", 24, SubnetTier.PUBLIC),
    SubnetSpec("Private", 24, SubnetTier.ISOLATED),
)


class TestReferenceAllocation:
    """Test the 30.0.0.0/16 two-AZ layout."""

    def test_one_subnet_per_spec_per_zone(self, network):
        assert len(network.subnets) == 4
        assert network.availability_zones == ("us-east-1a", "us-east-1b")

    def test_cidrs_are_sequential_per_tier(self, network):
        assert [(s.subnet_id, s.cidr, s.availability_zone) for s in network.subnets] == [
            ("MyVpc-Public-Subnet1", "30.0.0.0/24", "us-east-1a"),
            ("MyVpc-Public-Subnet2", "30.0.1.0/24", "us-east-1b"),
            ("MyVpc-Private-Subnet1", "30.0.2.0/24", "us-east-1a"),
            ("MyVpc-Private-Subnet2", "30.0.3.0/24", "us-east-1b"),
        ]

    def test_subnets_are_disjoint_and_inside_vpc(self, network):
        vpc = ipaddress.ip_network(network.cidr)
        blocks = [ipaddress.ip_network(s.cidr) for s in network.subnets]

        for block in blocks:
            assert block.subnet_of(vpc)
        for i, a in enumerate(blocks):
            for b in blocks[i + 1:]:
                assert not a.overlaps(b)

    def test_subnets_for_tier(self, network):
        public = network.subnets_for(SubnetTier.PUBLIC)
        isolated = network.subnets_for(SubnetTier.ISOLATED)

        assert {s.availability_zone for s in public} == {"us-east-1a", "us-east-1b"}
        assert {s.availability_zone for s in isolated} == {"us-east-1a", "us-east-1b"}
        assert all(ipaddress.ip_network(s.cidr).prefixlen == 24 for s in public + isolated)


class TestReachability:
    """Test that only public subnets route to the internet."""

    def test_isolated_subnets_not_reachable(self, network):
        reachable = network.internet_reachable_subnets()
        isolated = {s.subnet_id for s in network.subnets_for(SubnetTier.ISOLATED)}

        assert reachable.isdisjoint(isolated)

    def test_public_subnets_reachable(self, network):
        reachable = network.internet_reachable_subnets()
        public = {s.subnet_id for s in network.subnets_for(SubnetTier.PUBLIC)}

        assert reachable == public
        assert network.has_internet_gateway

    def test_isolated_only_network_has_no_gateway(self):
        topology = build_network(
            "10.0.0.0/16", 1,
            [SubnetSpec("Private", 24, SubnetTier.ISOLATED)],
            ZONES,
        )

        assert not topology.has_internet_gateway
        assert topology.internet_reachable_subnets() == set()


class TestAllocation:
    """Test alignment and exhaustion."""

    def test_blocks_are_aligned_to_their_mask(self):
        topology = build_network(
            "10.0.0.0/16", 1,
            [
                SubnetSpec("Small", 26, SubnetTier.PUBLIC),
                SubnetSpec("Large", 24, SubnetTier.ISOLATED),
            ],
            ZONES,
        )

        assert [s.cidr for s in topology.subnets] == ["10.0.0.0/26", "10.0.1.0/24"]

    def test_exhausted_address_space_fails(self):
        with pytest.raises(ConfigError, match="overlap"):
            build_network(
                "10.0.0.0/24", 3,
                [
                    SubnetSpec("Public", 25, SubnetTier.PUBLIC),
                    SubnetSpec("Private", 25, SubnetTier.ISOLATED),
                ],
                ZONES,
            )

    def test_single_zone(self):
        topology = build_network("30.0.0.0/16", 1, REFERENCE_SPECS, ZONES)

        assert [s.cidr for s in topology.subnets] == ["30.0.0.0/24", "30.0.1.0/24"]


class TestValidation:
    """Test rejected layouts."""

    def test_more_azs_than_region_offers(self):
        with pytest.raises(ConfigError, match="availability zones"):
            build_network("30.0.0.0/16", 4, REFERENCE_SPECS, ZONES)

    def test_zero_azs(self):
        with pytest.raises(ConfigError):
            build_network("30.0.0.0/16", 0, REFERENCE_SPECS, ZONES)

    @pytest.mark.parametrize("cidr", ["not-a-cidr", "30.0.0.1/16", "300.0.0.0/16"])
    def test_invalid_cidr(self, cidr):
        with pytest.raises(ConfigError):
            build_network(cidr, 2, REFERENCE_SPECS, ZONES)

    @pytest.mark.parametrize("mask", [8, 29])
    def test_mask_out_of_range(self, mask):
        with pytest.raises(ConfigError, match="cidr_mask"):
            build_network(
                "30.0.0.0/16", 1,
                [SubnetSpec("Public", mask, SubnetTier.PUBLIC)],
                ZONES,
            )

    def test_duplicate_spec_names(self):
        with pytest.raises(ConfigError, match="Duplicate"):
            build_network(
                "30.0.0.0/16", 1,
                [
                    SubnetSpec("Public", 24, SubnetTier.PUBLIC),
                    SubnetSpec("Public", 24, SubnetTier.ISOLATED),
                ],
                ZONES,
            )

    def test_empty_specs(self):
        with pytest.raises(ConfigError):
            build_network("30.0.0.0/16", 1, [], ZONES)
