# topology_engine/policy/derivation.py
"""
Network policy derivation.

Access rules are never declared by hand. They are read off the graph:

- a load balancer whose listener targets a service may reach that service
  on the listener port;
- a service whose task environment reads a database endpoint may reach
  that database on the database port.

`derive_access_rules` is pure: it only reads the graph and returns a set.
`apply_access_rules` is the single place that mutates security boundaries,
and it only ever appends.
"""

import logging
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from topology_engine.core.errors import ConfigError
from topology_engine.core.graph import BOUNDARY_TYPES, EdgeKind, TopologyGraph
from topology_engine.domain.models import AccessRule, LoadBalancer, Protocol, Service

logger = logging.getLogger(__name__)

# edge kind -> (required source type, rule description)
RULE_SOURCES = {
    EdgeKind.TARGETS: (LoadBalancer, "Load balancer access"),
    EdgeKind.READS_ENDPOINT: (Service, "Service access"),
}


def derive_access_rules(graph: TopologyGraph) -> FrozenSet[AccessRule]:
    """
    Walk the graph once in topological order and collect one rule per
    distinct (source, destination, port).

    The result depends only on the sub-graph reachable through rule edges,
    so adding unrelated entities never changes existing rules, and running
    it twice on the same graph yields the same set.
    """
    rules: Dict[Tuple[str, str, int], AccessRule] = {}

    for entity in graph.topological_order():
        for edge in graph.edges_from(entity):
            if edge.kind not in RULE_SOURCES or edge.port is None:
                continue

            source_type, description = RULE_SOURCES[edge.kind]
            if not isinstance(entity, source_type):
                continue

            destination = graph.get(edge.destination)
            if not isinstance(destination, BOUNDARY_TYPES):
                continue

            rule = AccessRule(
                source=edge.source,
                destination=edge.destination,
                port=edge.port,
                protocol=Protocol.TCP,
                description=description,
            )
            rules.setdefault(rule.key, rule)

    return frozenset(rules.values())


def apply_access_rules(
    graph: TopologyGraph,
    rules: Iterable[AccessRule],
    realize: Optional[Callable[[AccessRule], None]] = None,
) -> List[AccessRule]:
    """
    Append rules to their destination boundaries.

    `realize` is called for each new rule before it is appended, so a rule
    only shows up in a boundary once it exists at the provider. If it
    raises, that rule and every later one stay out.

    Returns the rules that were not present yet, sorted by key. Existing
    rules are left untouched; nothing is ever revoked here.
    """
    added = []
    for rule in sorted(rules, key=lambda r: r.key):
        destination = graph.get(rule.destination)
        if destination is None or not hasattr(destination, "boundary"):
            raise ConfigError(f"Rule destination {rule.destination!r} has no security boundary")

        if rule in destination.boundary.ingress:
            continue

        if realize is not None:
            realize(rule)

        destination.boundary.allow(rule)
        added.append(rule)
        logger.info(
            f"[policy] allow {rule.source} -> {rule.destination} "
            f"{rule.port}/{rule.protocol.value} ({rule.description})"
        )

    return added
