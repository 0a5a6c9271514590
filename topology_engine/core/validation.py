#topology_engine\core\validation.py
from typing import Dict, Tuple

from topology_engine.core.errors import ConfigError, ResourceLimitError


# -------------------------
# Fargate CPU/memory pairing (cpu units -> accepted MiB values)
# -------------------------

def _mib_range(start: int, stop: int, step: int) -> Tuple[int, ...]:
    return tuple(range(start, stop + 1, step))


CPU_MEMORY_TIERS: Dict[int, Tuple[int, ...]] = {
    256: (512, 1024, 2048),
    512: _mib_range(1024, 4096, 1024),
    1024: _mib_range(2048, 8192, 1024),
    2048: _mib_range(4096, 16384, 1024),
    4096: _mib_range(8192, 30720, 1024),
    8192: _mib_range(16384, 61440, 4096),
    16384: _mib_range(32768, 122880, 8192),
}


def validate_cpu_memory(cpu: int, memory: int) -> None:
    if cpu not in CPU_MEMORY_TIERS:
        raise ResourceLimitError(
            f"cpu={cpu} is not a supported tier, expected one of {sorted(CPU_MEMORY_TIERS)}"
        )

    allowed = CPU_MEMORY_TIERS[cpu]
    if memory not in allowed:
        raise ResourceLimitError(
            f"memory={memory} MiB is not valid for cpu={cpu} "
            f"(allowed {allowed[0]}..{allowed[-1]} MiB: {list(allowed)})"
        )


# -------------------------
# Identity / ports
# -------------------------

def validate_resource_id(resource_id: str) -> None:
    if not resource_id or not resource_id.strip():
        raise ConfigError("resource_id is required")


def validate_port(port: int, what: str = "port") -> None:
    if isinstance(port, bool) or not isinstance(port, int):
        raise ConfigError(f"{what} must be an integer, got {port!r}")

    if not 1 <= port <= 65535:
        raise ConfigError(f"{what} must be within 1..65535, got {port}")


def validate_health_check_path(path: str) -> None:
    if not path or not path.startswith("/"):
        raise ConfigError(f"health check path must start with '/', got {path!r}")
