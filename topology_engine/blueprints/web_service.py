# topology_engine/blueprints/web_service.py
"""Load-balanced web service backed by an isolated Postgres database."""

from dataclasses import dataclass
from typing import List, Tuple

from topology_engine.compute.images import LINUX_AMD64
from topology_engine.core.config import StackConfiguration
from topology_engine.core.deferred import EndpointAttr
from topology_engine.domain.models import (
    DatabaseInstance,
    EngineKind,
    EngineSpec,
    EnvValue,
    SubnetSpec,
    SubnetTier,
)


@dataclass(frozen=True)
class WebServiceBlueprint:
    """Parameters of the network + cluster + database + load-balanced service shape."""
    name: str = "cdk-docker-rds"

    # Network
    vpc_cidr: str = "30.0.0.0/16"
    max_azs: int = 2
    subnet_specs: Tuple[SubnetSpec, ...] = (
        SubnetSpec(name="Public", cidr_mask=24, tier=SubnetTier.PUBLIC),
        SubnetSpec(name="Private", cidr_mask=24, tier=SubnetTier.ISOLATED),
    )

    # Cluster
    cluster_namespace: str = "my-namespace"

    # Database
    db_engine: EngineSpec = EngineSpec(kind=EngineKind.POSTGRES, version="13")
    db_instance_class: str = "db.t3.micro"
    db_identifier: str = "educando-dev"
    db_storage_gb: int = 10

    # Task
    app_source_path: str = "app"
    image_platform: str = LINUX_AMD64
    cpu: int = 256
    memory: int = 512
    container_port: int = 80
    node_env: str = "production"

    # Service
    desired_count: int = 1
    assign_public_ip: bool = True

    # Load balancer
    internet_facing: bool = True
    http2_enabled: bool = True
    listener_port: int = 80
    listener_open: bool = True
    health_check_path: str = "/"

    def task_environment(
        self,
        database: DatabaseInstance,
        configuration: StackConfiguration,
    ) -> List[Tuple[str, EnvValue]]:
        """Container environment; DB_HOST and DB_PORT stay deferred until provisioning."""
        return [
            ("PORT", str(self.container_port)),
            ("NODE_ENV", self.node_env),
            ("DB_HOST", EndpointAttr(database, "host")),
            ("DB_PORT", EndpointAttr(database, "port")),
            ("DB_DATABASE", configuration.db_database),
            ("DB_USERNAME", configuration.db_username),
            ("DB_PASSWORD", configuration.db_password),
            ("DB_SCHEMA", configuration.db_schema),
            ("JWT_SECRET", configuration.jwt_secret),
            ("JWT_EXPIRES_IN", configuration.jwt_expires_in),
        ]


REFERENCE_BLUEPRINT = WebServiceBlueprint()
