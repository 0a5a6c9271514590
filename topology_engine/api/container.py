#topology_engine\api\container.py
from topology_engine.container import (
    assembler,
    settings,
    stack_settings,
    topology_repository,
)


def get_assembler():
    return assembler


def get_repository():
    return topology_repository


def get_stack_settings():
    return stack_settings


def get_engine_settings():
    return settings
