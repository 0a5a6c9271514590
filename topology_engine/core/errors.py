# topology_engine/core/errors.py

# -----------------------------
# Base Errors
# -----------------------------

class TopologyError(Exception):
    """Base class for all topology engine errors."""
    pass


# -----------------------------
# Declaration Errors
# -----------------------------

class ConfigError(TopologyError):
    """Invalid network layout or malformed resource declaration."""
    pass


class PlacementError(TopologyError):
    """Resource placed in a subnet tier it must never live in."""
    pass


class ResourceLimitError(TopologyError):
    """CPU/memory pairing not accepted by the provider."""
    pass


# -----------------------------
# Lifecycle Errors
# -----------------------------

class DependencyUnresolvedError(TopologyError):
    """Deferred value read before the owning resource was provisioned."""
    pass


class TopologyInvalidStateError(TopologyError):
    """Illegal state change attempted (e.g. resolving a value twice)."""
    pass


# -----------------------------
# Collaborator Errors
# -----------------------------

class ProvisioningError(TopologyError):
    """Provisioning backend call failed. The original error is chained."""
    pass


# -----------------------------
# Persistence Errors
# -----------------------------

class TopologyNotFound(TopologyError):
    pass
