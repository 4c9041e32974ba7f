from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from constructpro.core.api_docs import error_responses
from constructpro.core.deps import get_db
from constructpro.core.observability import unwrap
from constructpro.core.permissions import CurrentUser
from constructpro.core.security_current import get_current_actor
from constructpro.schemas.inventory import (
    InventoryAdjustIn,
    InventoryAdjustOut,
    InventoryTransferIn,
    InventoryTransferOut,
    MaterialInventoryListOut,
    MaterialTransactionListOut,
    ReconciliationOut,
)
from constructpro.services import material_actions

router = APIRouter(prefix="/material-inventory", tags=["material-inventory"])


@router.get(
    "",
    response_model=MaterialInventoryListOut,
    summary="List stock balances",
    responses=error_responses(401, 403, 422, 500),
)
def list_inventory(
    material_id: str | None = Query(default=None),
    location_type: str | None = Query(default=None, description="STORE or SITE"),
    project_id: int | None = Query(default=None, ge=0),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(
        material_actions.list_inventory(
            db,
            actor,
            material_id=material_id,
            location_type=location_type,
            project_id=project_id,
            limit=limit,
            offset=offset,
        )
    )


@router.post(
    "/adjust",
    response_model=InventoryAdjustOut,
    summary="Manual stock adjustment",
    description="INCREASE or DECREASE one location. Stock-level warnings are advisory and never block the adjustment.",
    responses=error_responses(401, 403, 404, 409, 422, 500),
)
def adjust_inventory(
    payload: InventoryAdjustIn,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(material_actions.adjust_inventory(db, actor, payload))


@router.post(
    "/transfer",
    response_model=InventoryTransferOut,
    summary="Move stock between locations",
    responses=error_responses(401, 403, 404, 409, 422, 500),
)
def transfer_material(
    payload: InventoryTransferIn,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(material_actions.transfer_material(db, actor, payload))


@router.get(
    "/transactions",
    response_model=MaterialTransactionListOut,
    summary="List stock movements",
    responses=error_responses(401, 403, 422, 500),
)
def list_transactions(
    material_id: str | None = Query(default=None),
    transaction_type: str | None = Query(default=None, description="ISSUE, TRANSFER or ADJUSTMENT"),
    reference_id: str | None = Query(default=None, description="e.g. a material request id"),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(
        material_actions.list_transactions(
            db,
            actor,
            material_id=material_id,
            transaction_type=transaction_type,
            reference_id=reference_id,
            limit=limit,
            offset=offset,
        )
    )


@router.get(
    "/reconciliation",
    response_model=ReconciliationOut,
    summary="Compare balances against the movement log",
    description="Replays every logged movement and reports any location whose stored balance differs.",
    responses=error_responses(401, 403, 500),
)
def reconcile_inventory(
    material_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(material_actions.reconcile_inventory(db, actor, material_id=material_id))
