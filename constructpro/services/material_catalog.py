from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from constructpro.core.id_utils import generate_uuid
from constructpro.core.money import to_money, to_quantity
from constructpro.models.inventory import MaterialInventory
from constructpro.models.material import Material
from constructpro.models.material_request import MaterialRequest
from constructpro.models.material_transaction import MaterialTransaction
from constructpro.models.supplier import PurchaseOrder, Supplier
from constructpro.schemas.material import MaterialCreateIn, MaterialUpdateIn
from constructpro.schemas.supplier import SupplierCreateIn, SupplierUpdateIn
from constructpro.services.errors import (
    DuplicateCode,
    HasDependents,
    MaterialNotFound,
    SupplierNotFound,
    ValidationFailed,
)

_QUANTITY_FIELDS = ("minimum_stock_level", "maximum_stock_level", "reorder_point")


def get_material(db: Session, material_id: str) -> Material:
    material = db.execute(select(Material).where(Material.id == material_id)).scalar_one_or_none()
    if material is None:
        raise MaterialNotFound(material_id)
    return material


def get_supplier(db: Session, supplier_id: str) -> Supplier:
    supplier = db.execute(select(Supplier).where(Supplier.id == supplier_id)).scalar_one_or_none()
    if supplier is None:
        raise SupplierNotFound(supplier_id)
    return supplier


def _code_taken(db: Session, material_code: str, *, exclude_id: str | None = None) -> bool:
    stmt = select(Material.id).where(func.upper(Material.material_code) == material_code.upper())
    if exclude_id:
        stmt = stmt.where(Material.id != exclude_id)
    return db.execute(stmt.limit(1)).scalar_one_or_none() is not None


def _exists(db: Session, column, value) -> bool:
    return db.execute(select(column).where(column == value).limit(1)).scalar_one_or_none() is not None


def create_material(db: Session, payload: MaterialCreateIn) -> Material:
    if _code_taken(db, payload.material_code):
        raise DuplicateCode("Material code already exists")
    if payload.supplier_id:
        get_supplier(db, payload.supplier_id)

    material = Material(
        id=generate_uuid(),
        material_code=payload.material_code,
        name=payload.name,
        description=payload.description,
        category=payload.category,
        unit=payload.unit,
        unit_cost=to_money(payload.unit_cost) if payload.unit_cost is not None else None,
        minimum_stock_level=payload.minimum_stock_level,
        maximum_stock_level=payload.maximum_stock_level,
        reorder_point=payload.reorder_point,
        supplier_id=payload.supplier_id,
        is_active=True,
    )
    db.add(material)
    db.flush()
    db.refresh(material)
    return material


def update_material(db: Session, material_id: str, patch: MaterialUpdateIn) -> Material:
    material = get_material(db, material_id)
    changes = patch.model_dump(exclude_unset=True)

    for required in ("material_code", "name", "category", "unit", "is_active"):
        if required in changes and changes[required] is None:
            raise ValidationFailed.for_field(required, f"{required} cannot be null")

    if "material_code" in changes and _code_taken(db, changes["material_code"], exclude_id=material.id):
        raise DuplicateCode("Material code already exists")
    if changes.get("supplier_id"):
        get_supplier(db, changes["supplier_id"])

    if "unit_cost" in changes and changes["unit_cost"] is not None:
        changes["unit_cost"] = to_money(changes["unit_cost"])
    for field in _QUANTITY_FIELDS:
        if changes.get(field) is not None:
            changes[field] = to_quantity(changes[field])

    minimum = changes.get("minimum_stock_level", material.minimum_stock_level)
    maximum = changes.get("maximum_stock_level", material.maximum_stock_level)
    if minimum is not None and maximum is not None and maximum < minimum:
        raise ValidationFailed.for_field(
            "maximum_stock_level",
            "maximum_stock_level cannot be below minimum_stock_level",
        )

    for field, value in changes.items():
        setattr(material, field, value)
    material.updated_at = datetime.now(timezone.utc)
    db.flush()
    db.refresh(material)
    return material


def delete_material(db: Session, material_id: str) -> None:
    material = get_material(db, material_id)
    # Requests, stock rows and the movement log all reference the material.
    if (
        _exists(db, MaterialRequest.material_id, material.id)
        or _exists(db, MaterialInventory.material_id, material.id)
        or _exists(db, MaterialTransaction.material_id, material.id)
    ):
        raise HasDependents(
            "Cannot delete material with existing requests, inventory, or transactions; deactivate it instead"
        )
    db.delete(material)
    db.flush()


def list_materials(
    db: Session,
    *,
    search: str | None = None,
    category: str | None = None,
    supplier_id: str | None = None,
    is_active: bool | None = None,
    low_stock: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[tuple[Material, object]], int]:
    stock_subquery = (
        select(
            MaterialInventory.material_id.label("material_id"),
            func.coalesce(func.sum(MaterialInventory.current_stock), 0).label("total_stock"),
        )
        .group_by(MaterialInventory.material_id)
        .subquery()
    )
    total_stock = func.coalesce(stock_subquery.c.total_stock, 0)

    filters = []
    if search:
        pattern = f"%{search.strip().lower()}%"
        filters.append(
            or_(
                func.lower(Material.name).like(pattern),
                func.lower(Material.material_code).like(pattern),
                func.lower(func.coalesce(Material.description, "")).like(pattern),
            )
        )
    if category:
        filters.append(Material.category == category)
    if supplier_id:
        filters.append(Material.supplier_id == supplier_id)
    if is_active is not None:
        filters.append(Material.is_active.is_(is_active))
    if low_stock:
        filters.append(Material.minimum_stock_level.is_not(None))
        filters.append(total_stock < Material.minimum_stock_level)

    base = (
        select(Material, total_stock.label("total_stock"))
        .outerjoin(stock_subquery, stock_subquery.c.material_id == Material.id)
        .where(*filters)
    )
    total = int(db.execute(select(func.count()).select_from(base.subquery())).scalar_one())
    rows = db.execute(base.order_by(Material.name.asc()).offset(offset).limit(limit)).all()
    return [(material, stock) for material, stock in rows], total


def create_supplier(db: Session, payload: SupplierCreateIn) -> Supplier:
    supplier = Supplier(
        id=generate_uuid(),
        name=payload.name,
        contact_person=payload.contact_person,
        email=str(payload.email).lower() if payload.email else None,
        phone=payload.phone,
        address=payload.address,
        tax_number=payload.tax_number,
        payment_terms=payload.payment_terms,
        is_active=True,
    )
    db.add(supplier)
    db.flush()
    db.refresh(supplier)
    return supplier


def update_supplier(db: Session, supplier_id: str, patch: SupplierUpdateIn) -> Supplier:
    supplier = get_supplier(db, supplier_id)
    changes = patch.model_dump(exclude_unset=True)
    for required in ("name", "is_active"):
        if required in changes and changes[required] is None:
            raise ValidationFailed.for_field(required, f"{required} cannot be null")
    if changes.get("email"):
        changes["email"] = str(changes["email"]).lower()

    for field, value in changes.items():
        setattr(supplier, field, value)
    supplier.updated_at = datetime.now(timezone.utc)
    db.flush()
    db.refresh(supplier)
    return supplier


def delete_supplier(db: Session, supplier_id: str) -> None:
    supplier = get_supplier(db, supplier_id)
    if _exists(db, Material.supplier_id, supplier.id) or _exists(db, PurchaseOrder.supplier_id, supplier.id):
        raise HasDependents("Cannot delete supplier with existing materials or purchase orders")
    db.delete(supplier)
    db.flush()


def list_suppliers(
    db: Session,
    *,
    search: str | None = None,
    is_active: bool | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Supplier], int]:
    filters = []
    if search:
        pattern = f"%{search.strip().lower()}%"
        filters.append(
            or_(
                func.lower(Supplier.name).like(pattern),
                func.lower(func.coalesce(Supplier.contact_person, "")).like(pattern),
            )
        )
    if is_active is not None:
        filters.append(Supplier.is_active.is_(is_active))

    total = int(db.execute(select(func.count(Supplier.id)).where(*filters)).scalar_one())
    rows = db.execute(
        select(Supplier).where(*filters).order_by(Supplier.name.asc()).offset(offset).limit(limit)
    ).scalars().all()
    return list(rows), total
