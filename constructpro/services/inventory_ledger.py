import json
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from constructpro.core.id_utils import generate_uuid
from constructpro.core.money import MAX_QUANTITY, ZERO_QTY, to_quantity
from constructpro.models.inventory import MaterialInventory
from constructpro.models.material import Material
from constructpro.services.errors import InsufficientStock, ValidationFailed
from constructpro.services.locations import LocationKey

logger = logging.getLogger("constructpro.materials")


def checked_quantity(quantity: Decimal | int | float | str, field: str = "quantity") -> Decimal:
    """Quantize an incoming quantity, rejecting values the stock columns cannot hold."""
    try:
        value = to_quantity(quantity)
    except (InvalidOperation, ValueError):
        raise ValidationFailed.for_field(field, f"{field} is not a valid quantity") from None
    if not value.is_finite() or abs(value) > MAX_QUANTITY:
        raise ValidationFailed.for_field(field, f"{field} cannot exceed {MAX_QUANTITY}")
    return value


def _positive_quantity(quantity: Decimal | int | float | str) -> Decimal:
    value = checked_quantity(quantity)
    if value <= 0:
        raise ValidationFailed.for_field("quantity", "Quantity must be greater than zero")
    return value


def _row_stmt(material_id: str, key: LocationKey):
    return select(MaterialInventory).where(
        MaterialInventory.material_id == material_id,
        MaterialInventory.location_type == key.location_type,
        MaterialInventory.location_reference == key.reference,
        MaterialInventory.project_id == key.project_id,
    )


def _lock_row(db: Session, material_id: str, key: LocationKey) -> MaterialInventory | None:
    # Row lock held until the caller's transaction ends; serializes concurrent debits.
    return db.execute(
        _row_stmt(material_id, key)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def get_inventory_row(db: Session, material_id: str, key: LocationKey) -> MaterialInventory | None:
    return db.execute(_row_stmt(material_id, key)).scalar_one_or_none()


def get_balance(db: Session, material_id: str, key: LocationKey) -> Decimal:
    row = get_inventory_row(db, material_id, key)
    return row.current_stock if row is not None else ZERO_QTY


def credit(
    db: Session,
    *,
    material_id: str,
    key: LocationKey,
    quantity: Decimal | int | float | str,
) -> MaterialInventory:
    amount = _positive_quantity(quantity)
    now = datetime.now(timezone.utc)

    row = _lock_row(db, material_id, key)
    if row is None:
        savepoint = db.begin_nested()
        try:
            row = MaterialInventory(
                id=generate_uuid(),
                material_id=material_id,
                location_type=key.location_type,
                location_reference=key.reference,
                project_id=key.project_id,
                current_stock=amount,
                last_updated=now,
            )
            db.add(row)
            db.flush()
            savepoint.commit()
            return row
        except IntegrityError:
            # A concurrent credit created the account first; fall back to incrementing it.
            savepoint.rollback()
            logger.info(
                json.dumps(
                    {
                        "event": "inventory_row_create_race",
                        "material_id": material_id,
                        "location": key.as_dict(),
                    }
                )
            )
            row = _lock_row(db, material_id, key)
            if row is None:
                raise

    balance = to_quantity(row.current_stock + amount)
    if balance > MAX_QUANTITY:
        raise ValidationFailed.for_field("quantity", f"Stock at {key.label} cannot exceed {MAX_QUANTITY}")
    row.current_stock = balance
    row.last_updated = now
    db.flush()
    return row


def debit(
    db: Session,
    *,
    material_id: str,
    key: LocationKey,
    quantity: Decimal | int | float | str,
) -> MaterialInventory:
    amount = _positive_quantity(quantity)

    row = _lock_row(db, material_id, key)
    available = row.current_stock if row is not None else ZERO_QTY
    if row is None or available < amount:
        raise InsufficientStock(available=available, requested=amount, location=key.label)

    row.current_stock = to_quantity(available - amount)
    row.last_updated = datetime.now(timezone.utc)
    db.flush()
    return row


def transfer(
    db: Session,
    *,
    material_id: str,
    from_key: LocationKey,
    to_key: LocationKey,
    quantity: Decimal | int | float | str,
) -> tuple[MaterialInventory, MaterialInventory]:
    if from_key == to_key:
        raise ValidationFailed.for_field("to_location", "Source and destination locations must be different")
    source = debit(db, material_id=material_id, key=from_key, quantity=quantity)
    destination = credit(db, material_id=material_id, key=to_key, quantity=quantity)
    return source, destination


def list_inventory(
    db: Session,
    *,
    material_id: str | None = None,
    location_type: str | None = None,
    project_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[MaterialInventory], int]:
    count_stmt = select(func.count(MaterialInventory.id))
    stmt = select(MaterialInventory)
    filters = []
    if material_id:
        filters.append(MaterialInventory.material_id == material_id)
    if location_type:
        filters.append(MaterialInventory.location_type == location_type.strip().upper())
    if project_id is not None:
        filters.append(MaterialInventory.project_id == project_id)
    if filters:
        count_stmt = count_stmt.where(*filters)
        stmt = stmt.where(*filters)

    total = int(db.execute(count_stmt).scalar_one())
    rows = db.execute(
        stmt.order_by(
            MaterialInventory.material_id,
            MaterialInventory.location_type,
            MaterialInventory.location_reference,
            MaterialInventory.project_id,
        )
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return list(rows), total


def total_stock(db: Session, material_id: str) -> Decimal:
    q = select(func.coalesce(func.sum(MaterialInventory.current_stock), 0)).where(
        MaterialInventory.material_id == material_id,
    )
    return to_quantity(db.execute(q).scalar_one())


def stock_level_warnings(db: Session, material: Material) -> list[str]:
    """Advisory signals against the material's configured levels; never blocks a movement."""
    stock = total_stock(db, material.id)
    warnings: list[str] = []
    if material.minimum_stock_level is not None and stock < material.minimum_stock_level:
        warnings.append(
            f"Total stock {stock} is below the minimum stock level {material.minimum_stock_level}"
        )
    elif material.reorder_point is not None and stock <= material.reorder_point:
        warnings.append(f"Total stock {stock} has reached the reorder point {material.reorder_point}")
    if material.maximum_stock_level is not None and stock > material.maximum_stock_level:
        warnings.append(
            f"Total stock {stock} exceeds the maximum stock level {material.maximum_stock_level}"
        )
    return warnings
