"""Topology blueprints."""

from .web_service import REFERENCE_BLUEPRINT, WebServiceBlueprint


__all__ = ["REFERENCE_BLUEPRINT", "WebServiceBlueprint"]
