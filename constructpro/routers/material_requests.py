from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from constructpro.core.api_docs import error_responses
from constructpro.core.deps import get_db
from constructpro.core.observability import unwrap
from constructpro.core.permissions import CurrentUser
from constructpro.core.security_current import get_current_actor
from constructpro.schemas.material_request import (
    MaterialRequestAcknowledgeIn,
    MaterialRequestApproveIn,
    MaterialRequestCancelIn,
    MaterialRequestCompleteIn,
    MaterialRequestCreateIn,
    MaterialRequestIssueIn,
    MaterialRequestListOut,
    MaterialRequestOut,
)
from constructpro.services import material_actions

router = APIRouter(prefix="/material-requests", tags=["material-requests"])

TRANSITION_ERRORS = error_responses(401, 403, 404, 409, 422, 500)


@router.get(
    "",
    response_model=MaterialRequestListOut,
    summary="List material requests",
    responses=error_responses(401, 403, 422, 500),
)
def list_material_requests(
    status_filter: str | None = Query(default=None, alias="status", description="PENDING, APPROVED, ISSUED, ..."),
    project_id: int | None = Query(default=None, ge=1),
    material_id: str | None = Query(default=None),
    mine: bool = Query(default=False, description="Only requests raised by the caller"),
    urgency: str | None = Query(default=None, description="LOW, NORMAL, HIGH or CRITICAL"),
    search: str | None = Query(default=None, description="Matches request number or justification"),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(
        material_actions.list_material_requests(
            db,
            actor,
            status=status_filter,
            project_id=project_id,
            material_id=material_id,
            mine=mine,
            urgency=urgency,
            search=search,
            limit=limit,
            offset=offset,
        )
    )


@router.post(
    "",
    response_model=MaterialRequestOut,
    status_code=status.HTTP_201_CREATED,
    summary="Raise a material request",
    description="Creates a PENDING request with a unit and total cost snapshot taken from the catalog.",
    responses=error_responses(401, 403, 404, 422, 500),
)
def create_material_request(
    payload: MaterialRequestCreateIn,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(material_actions.create_material_request(db, actor, payload))


@router.get(
    "/{request_id}",
    response_model=MaterialRequestOut,
    summary="Get material request",
    responses=error_responses(401, 403, 404, 500),
)
def get_material_request(
    request_id: str,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(material_actions.get_material_request(db, actor, request_id))


@router.post(
    "/{request_id}/approve",
    response_model=MaterialRequestOut,
    summary="Approve or reject a pending request",
    responses=TRANSITION_ERRORS,
)
def approve_material_request(
    request_id: str,
    payload: MaterialRequestApproveIn,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(material_actions.approve_material_request(db, actor, request_id, payload))


@router.post(
    "/{request_id}/issue",
    response_model=MaterialRequestOut,
    summary="Issue stock against an approved request",
    description="Debits store stock and, for SITE delivery, credits the project's site stock in one transaction.",
    responses=TRANSITION_ERRORS,
)
def issue_material_request(
    request_id: str,
    payload: MaterialRequestIssueIn,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(material_actions.issue_material_request(db, actor, request_id, payload))


@router.post(
    "/{request_id}/acknowledge",
    response_model=MaterialRequestOut,
    summary="Acknowledge receipt",
    responses=TRANSITION_ERRORS,
)
def acknowledge_material_request(
    request_id: str,
    payload: MaterialRequestAcknowledgeIn,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(material_actions.acknowledge_material_request(db, actor, request_id, payload))


@router.post(
    "/{request_id}/complete",
    response_model=MaterialRequestOut,
    summary="Complete an acknowledged request",
    responses=TRANSITION_ERRORS,
)
def complete_material_request(
    request_id: str,
    payload: MaterialRequestCompleteIn,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(material_actions.complete_material_request(db, actor, request_id, payload))


@router.post(
    "/{request_id}/cancel",
    response_model=MaterialRequestOut,
    summary="Cancel a pending or approved request",
    responses=TRANSITION_ERRORS,
)
def cancel_material_request(
    request_id: str,
    payload: MaterialRequestCancelIn,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(material_actions.cancel_material_request(db, actor, request_id, payload))
