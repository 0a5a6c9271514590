"""Event models for topology assembly."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TopologyEvent:
    """Base topology event."""
    
    event_type: str
    topology_name: str
    resource_id: Optional[str]
    timestamp: datetime = field(default_factory=_now)
    metadata: Dict[str, Any] = field(default_factory=dict)
    
    @staticmethod
    def resource_declared(topology_name: str, resource_id: str, kind: str):
        """Resource declared (not yet realized)."""
        return TopologyEvent(
            event_type="resource.declared",
            topology_name=topology_name,
            resource_id=resource_id,
            metadata={"kind": kind},
        )
    
    @staticmethod
    def resource_created(topology_name: str, resource_id: str, kind: str, provider_handle: str):
        """Resource realized by the provisioning backend."""
        return TopologyEvent(
            event_type="resource.created",
            topology_name=topology_name,
            resource_id=resource_id,
            metadata={
                "kind": kind,
                "provider_handle": provider_handle,
            },
        )
    
    @staticmethod
    def endpoint_resolved(topology_name: str, resource_id: str, endpoint):
        """Deferred endpoint resolved."""
        return TopologyEvent(
            event_type="endpoint.resolved",
            topology_name=topology_name,
            resource_id=resource_id,
            metadata={
                "host": endpoint.host,
                "port": endpoint.port,
            },
        )
    
    @staticmethod
    def access_rule_applied(topology_name: str, rule):
        """Derived access rule applied to its destination."""
        return TopologyEvent(
            event_type="access_rule.applied",
            topology_name=topology_name,
            resource_id=rule.destination,
            metadata={
                "source": rule.source,
                "destination": rule.destination,
                "port": rule.port,
                "protocol": rule.protocol.value,
                "description": rule.description,
            },
        )
    
    @staticmethod
    def topology_published(topology_name: str, output: str):
        """Assembly finished; output is the public URL."""
        return TopologyEvent(
            event_type="topology.published",
            topology_name=topology_name,
            resource_id=None,
            metadata={"output": output},
        )
    
    @staticmethod
    def topology_failed(topology_name: str, error: Exception):
        """Assembly aborted."""
        return TopologyEvent(
            event_type="topology.failed",
            topology_name=topology_name,
            resource_id=None,
            metadata={
                "error_type": type(error).__name__,
                "error_message": str(error),
            },
        )
