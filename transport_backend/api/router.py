"""
API router. Calls application only. No business logic.

Organization and acting user come from the X-Organization-Id / X-User-Id headers.
Failed OperationResults map to HTTP errors by error code.
"""

import logging
from dataclasses import asdict
from typing import Awaitable, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from transport_backend.api.schemas import (
    AssignRequest,
    ChecklistCategorySchema,
    ChecklistQuestionSchema,
    ChecklistSchema,
    CompleteRouteRequest,
    DriverCreateRequest,
    DriverResponse,
    DriverSchema,
    ExpenseRequest,
    InspectionSchema,
    PodRequest,
    RouteCreateRequest,
    RouteEditRequest,
    RouteListResponse,
    RouteResponse,
    RouteSchema,
    StartRouteRequest,
    StatusRequest,
    StopStatusRequest,
    VehicleCreateRequest,
    VehicleResponse,
    VehicleSchema,
)
from transport_backend.application.checklist import CHECKLIST_CATEGORIES
from transport_backend.application.results import OperationResult
from transport_backend.application.use_cases.fleet_resources import FleetResourceService
from transport_backend.application.use_cases.route_lifecycle import RouteLifecycleManager
from transport_backend.domain.models import ItemResponse, PodData, Route
from transport_backend.domain.progress import pod_count
from transport_backend.infrastructure.store import to_iso

logger = logging.getLogger(__name__)

router = APIRouter()

HTTP_STATUS_BY_ERROR = {
    "precondition_failed": 400,
    "workflow_error": 400,
    "policy_violation": 403,
    "not_found": 404,
    "conflict": 409,
}


def get_manager(
    request: Request,
    x_organization_id: str = Header(...),
    x_user_id: str = Header(""),
) -> RouteLifecycleManager:
    state = request.app.state
    return RouteLifecycleManager(state.store, state.notifier, state.whatsapp, x_organization_id, x_user_id)


def get_fleet(
    request: Request,
    x_organization_id: str = Header(...),
    x_user_id: str = Header(""),
) -> FleetResourceService:
    state = request.app.state
    return FleetResourceService(state.store, state.notifier, x_organization_id, x_user_id)


async def _call(operation: Awaitable[OperationResult]) -> OperationResult:
    try:
        result = await operation
    except Exception as e:
        logger.exception("Unhandled error")
        raise HTTPException(status_code=500, detail=str(e))
    if not result.ok:
        raise HTTPException(
            status_code=HTTP_STATUS_BY_ERROR.get(result.error, 500),
            detail={"error": result.error, "message": result.message},
        )
    return result


def route_schema(route: Route) -> RouteSchema:
    return RouteSchema(
        **to_iso(asdict(route)),
        total_expenses=route.total_expenses,
        balance=route.balance,
        pods_collected=pod_count(route.stops),
    )


def _route_response(result: OperationResult) -> RouteResponse:
    return RouteResponse(
        message=result.message,
        warnings=result.warnings,
        route=route_schema(result.data) if result.data is not None else None,
    )


# ----------------------------------------------------------------------
# Routes
# ----------------------------------------------------------------------

@router.post("/routes", response_model=RouteResponse, status_code=201)
async def post_route(request: RouteCreateRequest, manager: RouteLifecycleManager = Depends(get_manager)):
    result = await _call(manager.create_route(request.model_dump()))
    return _route_response(result)


@router.get("/routes", response_model=RouteListResponse)
async def get_routes(
    status: Optional[str] = None,
    driver_id: Optional[str] = None,
    vehicle_id: Optional[str] = None,
    manager: RouteLifecycleManager = Depends(get_manager),
):
    result = await _call(manager.list_routes(status=status, driver_id=driver_id, vehicle_id=vehicle_id))
    return RouteListResponse(routes=[route_schema(r) for r in result.data])


@router.get("/routes/{route_id}", response_model=RouteSchema)
async def get_route(route_id: str, manager: RouteLifecycleManager = Depends(get_manager)):
    result = await _call(manager.get_route(route_id))
    return route_schema(result.data)


@router.patch("/routes/{route_id}", response_model=RouteResponse)
async def patch_route(
    route_id: str,
    request: RouteEditRequest,
    manager: RouteLifecycleManager = Depends(get_manager),
):
    """PATCH /routes/{route_id}. Pending routes only; 403 otherwise."""
    result = await _call(manager.edit_route(route_id, request.model_dump(exclude_unset=True)))
    return _route_response(result)


@router.delete("/routes/{route_id}", response_model=RouteResponse)
async def delete_route(route_id: str, manager: RouteLifecycleManager = Depends(get_manager)):
    result = await _call(manager.delete_route(route_id))
    return _route_response(result)


@router.post("/routes/{route_id}/assign", response_model=RouteResponse)
async def post_assign(
    route_id: str,
    request: AssignRequest,
    manager: RouteLifecycleManager = Depends(get_manager),
):
    result = await _call(manager.assign(route_id, request.driver_id, request.vehicle_id))
    return _route_response(result)


@router.post("/routes/{route_id}/start", response_model=RouteResponse)
async def post_start(
    route_id: str,
    request: StartRouteRequest,
    manager: RouteLifecycleManager = Depends(get_manager),
):
    """
    POST /routes/{route_id}/start

    Body: pre-trip checklist answers keyed by item id. Unanswered required items -> 400.
    Critical issues still start the route; they come back in `warnings`.
    """
    responses = {item_id: ItemResponse(**r.model_dump()) for item_id, r in request.responses.items()}
    result = await _call(manager.start_route(route_id, responses, request.time_to_complete))
    return _route_response(result)


@router.post("/routes/{route_id}/stops/{stop_id}/status", response_model=RouteResponse)
async def post_stop_status(
    route_id: str,
    stop_id: str,
    request: StopStatusRequest,
    manager: RouteLifecycleManager = Depends(get_manager),
):
    result = await _call(manager.update_stop(route_id, stop_id, request.status, request.notes))
    return _route_response(result)


@router.post("/routes/{route_id}/stops/{stop_id}/pod", response_model=RouteResponse)
async def post_pod(
    route_id: str,
    stop_id: str,
    request: PodRequest,
    manager: RouteLifecycleManager = Depends(get_manager),
):
    result = await _call(manager.submit_pod(route_id, stop_id, PodData(**request.model_dump())))
    return _route_response(result)


@router.post("/routes/{route_id}/complete", response_model=RouteResponse)
async def post_complete(
    route_id: str,
    request: Optional[CompleteRouteRequest] = None,
    manager: RouteLifecycleManager = Depends(get_manager),
):
    reading = request.odometer_reading if request else None
    result = await _call(manager.complete_route(route_id, odometer_reading=reading))
    return _route_response(result)


@router.post("/routes/{route_id}/expenses", response_model=RouteResponse)
async def post_expense(
    route_id: str,
    request: ExpenseRequest,
    manager: RouteLifecycleManager = Depends(get_manager),
):
    result = await _call(manager.add_expense(route_id, request.model_dump()))
    return _route_response(result)


@router.get("/routes/{route_id}/inspection", response_model=InspectionSchema)
async def get_inspection(route_id: str, manager: RouteLifecycleManager = Depends(get_manager)):
    result = await _call(manager.route_inspection(route_id))
    return InspectionSchema(**to_iso(asdict(result.data)))


@router.get("/checklist", response_model=ChecklistSchema)
def get_checklist() -> ChecklistSchema:
    return ChecklistSchema(
        categories=[
            ChecklistCategorySchema(
                category=category,
                items=[
                    ChecklistQuestionSchema(item_id=item_id, question=question, required=required)
                    for item_id, question, required in items
                ],
            )
            for category, items in CHECKLIST_CATEGORIES.items()
        ]
    )


# ----------------------------------------------------------------------
# Drivers / vehicles
# ----------------------------------------------------------------------

@router.post("/drivers", response_model=DriverResponse, status_code=201)
async def post_driver(request: DriverCreateRequest, fleet: FleetResourceService = Depends(get_fleet)):
    result = await _call(fleet.register_driver(request.model_dump()))
    return DriverResponse(message=result.message, driver=DriverSchema(**asdict(result.data)))


@router.post("/drivers/{driver_id}/status", response_model=DriverResponse)
async def post_driver_status(
    driver_id: str,
    request: StatusRequest,
    fleet: FleetResourceService = Depends(get_fleet),
):
    result = await _call(fleet.set_driver_status(driver_id, request.status))
    return DriverResponse(message=result.message, driver=DriverSchema(**asdict(result.data)))


@router.post("/vehicles", response_model=VehicleResponse, status_code=201)
async def post_vehicle(request: VehicleCreateRequest, fleet: FleetResourceService = Depends(get_fleet)):
    result = await _call(fleet.register_vehicle(request.model_dump()))
    return VehicleResponse(message=result.message, vehicle=VehicleSchema(**asdict(result.data)))


@router.post("/vehicles/{vehicle_id}/status", response_model=VehicleResponse)
async def post_vehicle_status(
    vehicle_id: str,
    request: StatusRequest,
    fleet: FleetResourceService = Depends(get_fleet),
):
    result = await _call(fleet.set_vehicle_status(vehicle_id, request.status))
    return VehicleResponse(message=result.message, vehicle=VehicleSchema(**asdict(result.data)))
