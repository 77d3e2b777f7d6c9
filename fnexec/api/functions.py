"""Function management and invocation endpoints."""

import json
from typing import Any, List

import structlog
from fastapi import APIRouter, Request, status

from ..dependencies import FunctionServiceDep
from ..models.api import DeleteResponse, FunctionCreate, FunctionUpdate, InvokeResponse
from ..models.errors import ValidationError
from ..models.function import FunctionRecord
from ..utils.id_generator import generate_request_id

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/functions", tags=["functions"])


@router.post(
    "",
    response_model=FunctionRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Register and deploy a function",
)
async def create_function(request: FunctionCreate, service: FunctionServiceDep):
    """Register a function and build its artifact.

    A failed build returns 500; the record remains with ``status=error``.
    """
    return await service.create(request)


@router.get("", response_model=List[FunctionRecord], summary="List functions")
async def list_functions(service: FunctionServiceDep):
    return await service.list()


@router.get("/{function_id}", response_model=FunctionRecord, summary="Get a function")
async def get_function(function_id: str, service: FunctionServiceDep):
    return await service.get(function_id)


@router.put("/{function_id}", response_model=FunctionRecord, summary="Update a function")
async def update_function(
    function_id: str, request: FunctionUpdate, service: FunctionServiceDep
):
    """Update a function; code, language or backend changes trigger a redeploy."""
    return await service.update(function_id, request)


@router.post(
    "/{function_id}/deploy",
    response_model=FunctionRecord,
    summary="Redeploy a function",
)
async def deploy_function(function_id: str, service: FunctionServiceDep):
    return await service.redeploy(function_id)


@router.delete(
    "/{function_id}", response_model=DeleteResponse, summary="Delete a function"
)
async def delete_function(function_id: str, service: FunctionServiceDep):
    """Reclaim the function's containers and image, then delete the record."""
    await service.delete(function_id)
    return DeleteResponse(id=function_id)


@router.post(
    "/{function_id}/invoke",
    response_model=InvokeResponse,
    summary="Invoke a function",
)
async def invoke_function(
    function_id: str, http_request: Request, service: FunctionServiceDep
):
    """Invoke a function with the request body as its event.

    An empty body is an empty event. A body that is not valid JSON is
    rejected before reaching the orchestrator.
    """
    request_id = generate_request_id()
    payload = await _read_payload(http_request, request_id)

    result = await service.invoke(function_id, payload, request_id)
    return InvokeResponse(
        request_id=request_id,
        result=result.data,
        execution_time=result.execution_time,
        memory_usage=result.memory_usage,
        cpu_usage=result.cpu_usage,
        cold_start=result.cold_start,
        status=result.status.value,
    )


async def _read_payload(http_request: Request, request_id: str) -> Any:
    body = await http_request.body()
    if not body.strip():
        return {}
    try:
        return json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(
            "Rejected invocation with invalid JSON body",
            request_id=request_id,
            error=str(e),
        )
        raise ValidationError(
            f"Request body is not valid JSON: {e}", request_id=request_id
        )
