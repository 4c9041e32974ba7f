from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from constructpro.core.api_docs import error_responses
from constructpro.core.deps import get_db
from constructpro.core.observability import unwrap
from constructpro.core.permissions import CurrentUser
from constructpro.core.security_current import get_current_actor
from constructpro.schemas.common import OkOut
from constructpro.schemas.material import MaterialCreateIn, MaterialListOut, MaterialOut, MaterialUpdateIn
from constructpro.services import material_actions

router = APIRouter(prefix="/materials", tags=["materials"])


@router.get(
    "",
    response_model=MaterialListOut,
    summary="List materials",
    description="Catalog listing with total stock across all locations. `low_stock=true` keeps only materials below their minimum level.",
    responses=error_responses(401, 403, 422, 500),
)
def list_materials(
    search: str | None = Query(default=None, description="Match on name, code or description"),
    category: str | None = Query(default=None),
    supplier_id: str | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    low_stock: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(
        material_actions.list_materials(
            db,
            actor,
            search=search,
            category=category,
            supplier_id=supplier_id,
            is_active=is_active,
            low_stock=low_stock,
            limit=limit,
            offset=offset,
        )
    )


@router.post(
    "",
    response_model=MaterialOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create material",
    responses=error_responses(401, 403, 404, 409, 422, 500),
)
def create_material(
    payload: MaterialCreateIn,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(material_actions.create_material(db, actor, payload))


@router.get(
    "/{material_id}",
    response_model=MaterialOut,
    summary="Get material",
    responses=error_responses(401, 403, 404, 500),
)
def get_material(
    material_id: str,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(material_actions.get_material(db, actor, material_id))


@router.patch(
    "/{material_id}",
    response_model=MaterialOut,
    summary="Update material",
    description="Partial update. Set `is_active=false` to retire a material that still has history.",
    responses=error_responses(401, 403, 404, 409, 422, 500),
)
def update_material(
    material_id: str,
    payload: MaterialUpdateIn,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    return unwrap(material_actions.update_material(db, actor, material_id, payload))


@router.delete(
    "/{material_id}",
    response_model=OkOut,
    summary="Delete material",
    description="Refused with 409 while requests, inventory or transactions reference the material.",
    responses=error_responses(401, 403, 404, 409, 500),
)
def delete_material(
    material_id: str,
    db: Session = Depends(get_db),
    actor: CurrentUser = Depends(get_current_actor),
):
    unwrap(material_actions.delete_material(db, actor, material_id))
    return OkOut()
