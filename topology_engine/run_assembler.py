# topology_engine/run_assembler.py
"""Assemble the reference topology and print its public URL."""

import logging
import sys
from dataclasses import replace

from topology_engine.blueprints import REFERENCE_BLUEPRINT
from topology_engine.container import assembler, settings, stack_settings
from topology_engine.core.errors import TopologyError

# Setup logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    """Main entry point. Optional first argument: application source directory."""
    argv = sys.argv[1:] if argv is None else argv

    blueprint = REFERENCE_BLUEPRINT
    if argv:
        blueprint = replace(blueprint, app_source_path=argv[0])

    logger.info("=" * 80)
    logger.info("TOPOLOGY ASSEMBLER")
    logger.info("=" * 80)
    logger.info(f"Blueprint: {blueprint.name}")
    logger.info(f"Backend: {settings.backend}")
    logger.info(f"Region: {settings.aws_region} ({', '.join(settings.zones())})")
    logger.info(f"Application source: {blueprint.app_source_path}")
    logger.info("=" * 80)

    require_credentials = settings.require_explicit_credentials
    try:
        configuration = stack_settings.to_configuration(require_credentials=require_credentials)
        topology = assembler.assemble(
            blueprint, configuration, require_credentials=require_credentials
        )
    except TopologyError as e:
        logger.error(f"Assembly failed: {e}")
        return 1

    for rule in topology.sorted_rules():
        logger.info(
            f"  {rule.source} -> {rule.destination} {rule.port}/{rule.protocol.value}"
            f" ({rule.description})"
        )

    print(topology.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
