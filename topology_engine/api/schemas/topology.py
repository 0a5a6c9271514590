from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel


class TopologyCreateRequest(BaseModel):
    """Overrides applied on top of the reference blueprint."""
    name: Optional[str] = None
    app_source_path: Optional[str] = None
    vpc_cidr: Optional[str] = None
    max_azs: Optional[int] = None
    cpu: Optional[int] = None
    memory: Optional[int] = None
    desired_count: Optional[int] = None
    health_check_path: Optional[str] = None
    require_credentials: Optional[bool] = None

    def blueprint_overrides(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True, exclude={"require_credentials"})


class ResourceResponse(BaseModel):
    resource_id: str
    kind: str
    provider_handle: Optional[str]


class AccessRuleResponse(BaseModel):
    source: str
    destination: str
    port: int
    protocol: str
    description: str


class TopologyResponse(BaseModel):
    topology_id: UUID
    name: str
    output: str
    dns_name: str
    database_endpoint: str
    resources: List[ResourceResponse]
    access_rules: List[AccessRuleResponse]
    created_at: datetime
