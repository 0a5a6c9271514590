# topology_engine/database/provisioner.py
"""Managed database declarations - isolated placement and credentials."""

import logging
from typing import Optional

from topology_engine.core.errors import ConfigError, PlacementError
from topology_engine.core.validation import validate_port, validate_resource_id
from topology_engine.domain.models import (
    Credentials,
    DatabaseInstance,
    EngineSpec,
    NetworkTopology,
    SubnetTier,
)

logger = logging.getLogger(__name__)

# Reference defaults. Plaintext and not secret-safe: production deployments
# should set require_credentials=True so a missing value fails instead.
DEFAULT_DB_USERNAME = "postgres"
DEFAULT_DB_PASSWORD = "password"
DEFAULT_DB_NAME = "postgres"
DEFAULT_INSTANCE_CLASS = "db.t3.micro"
DEFAULT_IDENTIFIER = "educando-dev"


def provision_database(
    topology: NetworkTopology,
    engine: EngineSpec,
    credentials: Optional[Credentials],
    placement_tier: SubnetTier,
    storage_size: int,
    *,
    resource_id: str = "MyDB",
    identifier: str = DEFAULT_IDENTIFIER,
    database_name: str = DEFAULT_DB_NAME,
    instance_class: str = DEFAULT_INSTANCE_CLASS,
    port: Optional[int] = None,
    require_credentials: bool = False,
) -> DatabaseInstance:
    """
    Declare a managed database instance in the isolated tier.

    The returned handle's `endpoint` stays unresolved until the
    provisioning backend reports completion; task specs that need the
    address hold an `EndpointAttr` to it.

    Args:
        topology: Network the instance lives in.
        engine: Engine kind and version.
        credentials: Username/password. None falls back to the documented
            defaults unless `require_credentials` is set.
        placement_tier: Must be ISOLATED.
        storage_size: Allocated storage in GiB.
        port: Listener port; defaults to the engine default.
        require_credentials: Raise instead of using default credentials.

    Raises:
        PlacementError: Tier other than ISOLATED, or no isolated subnets.
        ConfigError: Missing credentials when required, bad storage size.
    """
    # Placement is checked before anything else: a non-isolated database is
    # rejected whatever the remaining arguments are.
    if placement_tier != SubnetTier.ISOLATED:
        raise PlacementError(
            f"Database {resource_id} must be placed in the ISOLATED tier, "
            f"got {getattr(placement_tier, 'value', placement_tier)}"
        )

    subnets = topology.subnets_for(SubnetTier.ISOLATED)
    if not subnets:
        raise PlacementError(
            f"Network {topology.resource_id} has no ISOLATED subnets for database {resource_id}"
        )

    validate_resource_id(resource_id)

    if not identifier:
        raise ConfigError("Database identifier is required")

    if isinstance(storage_size, bool) or not isinstance(storage_size, int) or storage_size <= 0:
        raise ConfigError(f"storage_size must be a positive number of GiB, got {storage_size!r}")

    credentials = _resolve_credentials(resource_id, credentials, require_credentials)

    port = engine.default_port if port is None else port
    validate_port(port, "database port")

    database = DatabaseInstance(
        resource_id=resource_id,
        identifier=identifier,
        engine=engine,
        instance_class=instance_class,
        credentials=credentials,
        database_name=database_name,
        allocated_storage=storage_size,
        network=topology,
        subnets=subnets,
        port=port,
    )

    logger.info(
        f"[database] declared {resource_id} ({engine.kind.value} {engine.version}, "
        f"{instance_class}, {storage_size} GiB) in {len(subnets)} isolated subnets"
    )
    return database


def _resolve_credentials(
    resource_id: str,
    credentials: Optional[Credentials],
    require_credentials: bool,
) -> Credentials:
    username = credentials.username if credentials else None
    password = credentials.password if credentials else None

    if require_credentials:
        missing = [name for name, value in (("username", username), ("password", password)) if not value]
        if missing:
            raise ConfigError(
                f"Database {resource_id}: explicit {' and '.join(missing)} required"
            )
        return credentials

    if not username or not password:
        logger.warning(
            f"[database] {resource_id}: falling back to default plaintext credentials"
        )

    return Credentials(
        username=username or DEFAULT_DB_USERNAME,
        password=password or DEFAULT_DB_PASSWORD,
    )
