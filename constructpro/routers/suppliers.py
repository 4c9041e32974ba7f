from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from constructpro.core.api_docs import error_responses
from constructpro.core.deps import get_db
from constructpro.core.observability import unwrap
from constructpro.core.permissions import CurrentUser
from constructpro.core.security_current import get_current_actor
from constructpro.schemas.common import OkOut
from constructpro.schemas.supplier import SupplierCreateIn, SupplierListOut, SupplierOut, SupplierUpdateIn
from constructpro.services import material_actions

router = APIRouter(prefix="/suppliers", tags=["suppliers"])


@router.get(
    "",
    response_model=SupplierListOut,
    summary="List suppliers",
    responses=error_responses(401, 403, 422, 500),
)
def list_suppliers(
    search: str | None = Query(default=None, description="Match on name or contact person"),
    is_active: bool | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(
        material_actions.list_suppliers(
            db,
            actor,
            search=search,
            is_active=is_active,
            limit=limit,
            offset=offset,
        )
    )


@router.post(
    "",
    response_model=SupplierOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create supplier",
    responses=error_responses(401, 403, 422, 500),
)
def create_supplier(
    payload: SupplierCreateIn,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(material_actions.create_supplier(db, actor, payload))


@router.get(
    "/{supplier_id}",
    response_model=SupplierOut,
    summary="Get supplier",
    responses=error_responses(401, 403, 404, 500),
)
def get_supplier(
    supplier_id: str,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(material_actions.get_supplier(db, actor, supplier_id))


@router.patch(
    "/{supplier_id}",
    response_model=SupplierOut,
    summary="Update supplier",
    responses=error_responses(401, 403, 404, 422, 500),
)
def update_supplier(
    supplier_id: str,
    payload: SupplierUpdateIn,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(material_actions.update_supplier(db, actor, supplier_id, payload))


@router.delete(
    "/{supplier_id}",
    response_model=OkOut,
    summary="Delete supplier",
    responses=error_responses(401, 403, 404, 409, 500),
)
def delete_supplier(
    supplier_id: str,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    unwrap(material_actions.delete_supplier(db, actor, supplier_id))
    return OkOut()
