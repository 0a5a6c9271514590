from dataclasses import replace
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from topology_engine.api.container import (
    get_assembler,
    get_engine_settings,
    get_repository,
    get_stack_settings,
)
from topology_engine.api.schemas.topology import (
    AccessRuleResponse,
    ResourceResponse,
    TopologyCreateRequest,
    TopologyResponse,
)
from topology_engine.blueprints import REFERENCE_BLUEPRINT
from topology_engine.core.errors import TopologyError, TopologyNotFound

router = APIRouter(prefix="/topologies", tags=["topologies"])


def _rule_response(rule) -> AccessRuleResponse:
    return AccessRuleResponse(
        source=rule.source,
        destination=rule.destination,
        port=rule.port,
        protocol=rule.protocol.value,
        description=rule.description,
    )


def _to_response(topology) -> TopologyResponse:
    return TopologyResponse(
        topology_id=topology.topology_id,
        name=topology.name,
        output=topology.output,
        dns_name=topology.dns_name,
        database_endpoint=str(topology.database.endpoint.value),
        resources=[
            ResourceResponse(
                resource_id=entity.resource_id,
                kind=type(entity).__name__,
                provider_handle=entity.provider_handle,
            )
            for entity in topology.graph.topological_order()
        ],
        access_rules=[_rule_response(r) for r in topology.sorted_rules()],
        created_at=topology.created_at,
    )


@router.post("/", response_model=TopologyResponse, status_code=201)
def create_topology(
    request: TopologyCreateRequest,
    assembler=Depends(get_assembler),
    stack_settings=Depends(get_stack_settings),
    engine_settings=Depends(get_engine_settings),
):
    require_credentials = request.require_credentials
    if require_credentials is None:
        require_credentials = engine_settings.require_explicit_credentials

    try:
        blueprint = replace(REFERENCE_BLUEPRINT, **request.blueprint_overrides())
        configuration = stack_settings.to_configuration(require_credentials=require_credentials)
        topology = assembler.assemble(
            blueprint, configuration, require_credentials=require_credentials
        )
    except TopologyError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return _to_response(topology)


@router.get("/", response_model=List[TopologyResponse])
def list_topologies(
    limit: int = 100,
    repository=Depends(get_repository),
):
    return [_to_response(t) for t in repository.list(limit)]


@router.get("/{topology_id}", response_model=TopologyResponse)
def get_topology(
    topology_id: UUID,
    repository=Depends(get_repository),
):
    try:
        topology = repository.require(topology_id)
    except TopologyNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    return _to_response(topology)


@router.get("/{topology_id}/access-rules", response_model=List[AccessRuleResponse])
def get_access_rules(
    topology_id: UUID,
    repository=Depends(get_repository),
):
    try:
        topology = repository.require(topology_id)
    except TopologyNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    return [_rule_response(r) for r in topology.sorted_rules()]
