from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from constructpro.core.id_utils import generate_uuid
from constructpro.core.money import ZERO_QTY, to_quantity
from constructpro.models.material_transaction import MaterialTransaction
from constructpro.services.locations import LocationKey

TRANSACTION_TYPES = ("ISSUE", "TRANSFER", "ADJUSTMENT")


@dataclass(frozen=True)
class TransactionEntry:
    material_id: str
    transaction_type: str
    quantity: Decimal
    from_location: LocationKey | None = None
    to_location: LocationKey | None = None
    reference_type: str | None = None
    reference_id: str | None = None
    unit_cost: Decimal | None = None
    total_cost: Decimal | None = None
    performed_by_id: str | None = None
    notes: str | None = None


def append(db: Session, entry: TransactionEntry) -> MaterialTransaction:
    if entry.transaction_type not in TRANSACTION_TYPES:
        raise ValueError(f"Unknown transaction type: {entry.transaction_type}")

    source = entry.from_location
    destination = entry.to_location
    row = MaterialTransaction(
        id=generate_uuid(),
        material_id=entry.material_id,
        transaction_type=entry.transaction_type,
        reference_type=entry.reference_type,
        reference_id=entry.reference_id,
        from_location_type=source.location_type if source else None,
        from_location_reference=source.reference if source else None,
        from_project_id=source.project_id if source else None,
        to_location_type=destination.location_type if destination else None,
        to_location_reference=destination.reference if destination else None,
        to_project_id=destination.project_id if destination else None,
        quantity=to_quantity(entry.quantity),
        unit_cost=entry.unit_cost,
        total_cost=entry.total_cost,
        performed_by_id=entry.performed_by_id,
        notes=entry.notes,
    )
    db.add(row)
    db.flush()
    return row


def list_transactions(
    db: Session,
    *,
    material_id: str | None = None,
    transaction_type: str | None = None,
    reference_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[MaterialTransaction], int]:
    count_stmt = select(func.count(MaterialTransaction.id))
    stmt = select(MaterialTransaction)
    filters = []
    if material_id:
        filters.append(MaterialTransaction.material_id == material_id)
    if transaction_type:
        filters.append(MaterialTransaction.transaction_type == transaction_type.strip().upper())
    if reference_id:
        filters.append(MaterialTransaction.reference_id == reference_id)
    if filters:
        count_stmt = count_stmt.where(*filters)
        stmt = stmt.where(*filters)

    total = int(db.execute(count_stmt).scalar_one())
    rows = db.execute(
        stmt.order_by(MaterialTransaction.created_at.desc(), MaterialTransaction.id)
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return list(rows), total


def _from_key(row: MaterialTransaction) -> LocationKey | None:
    if row.from_location_type is None:
        return None
    return LocationKey.of(row.from_location_type, row.from_location_reference, row.from_project_id)


def _to_key(row: MaterialTransaction) -> LocationKey | None:
    if row.to_location_type is None:
        return None
    return LocationKey.of(row.to_location_type, row.to_location_reference, row.to_project_id)


def reconstruct_balances(
    db: Session,
    *,
    material_id: str | None = None,
) -> dict[tuple[str, LocationKey], Decimal]:
    """Replay the log into per-(material, location) balances.

    ISSUE and TRANSFER move stock out of ``from`` and into ``to``; an ISSUE
    delivered at the store counter leaves inventory control, so only SITE
    destinations of an ISSUE are credited. ADJUSTMENT applies its signed
    quantity to ``to``.
    """
    stmt = select(MaterialTransaction).order_by(MaterialTransaction.created_at, MaterialTransaction.id)
    if material_id:
        stmt = stmt.where(MaterialTransaction.material_id == material_id)

    balances: dict[tuple[str, LocationKey], Decimal] = defaultdict(lambda: ZERO_QTY)
    for row in db.execute(stmt).scalars():
        quantity = Decimal(row.quantity)
        source = _from_key(row)
        destination = _to_key(row)

        if row.transaction_type == "ADJUSTMENT":
            if destination is not None:
                balances[(row.material_id, destination)] += quantity
            continue

        if source is not None:
            balances[(row.material_id, source)] -= quantity
        if destination is None:
            continue
        if row.transaction_type == "ISSUE" and destination.location_type != "SITE":
            continue
        balances[(row.material_id, destination)] += quantity

    return {key: to_quantity(value) for key, value in balances.items()}
