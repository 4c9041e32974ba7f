from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from constructpro.core.money import line_cost
from constructpro.core.permissions import CurrentUser
from constructpro.models.inventory import MaterialInventory
from constructpro.services import inventory_ledger, transaction_log
from constructpro.services.errors import ValidationFailed
from constructpro.services.locations import LocationKey
from constructpro.services.material_catalog import get_material

ADJUSTMENT_TYPES = ("INCREASE", "DECREASE")


@dataclass(frozen=True)
class AdjustmentCommand:
    material_id: str
    location: LocationKey
    adjustment_type: str
    quantity: Decimal
    reason: str


@dataclass(frozen=True)
class TransferCommand:
    material_id: str
    from_location: LocationKey
    to_location: LocationKey
    quantity: Decimal
    notes: str | None = None


@dataclass(frozen=True)
class AdjustmentResult:
    inventory: MaterialInventory
    warnings: list[str]


@dataclass(frozen=True)
class TransferResult:
    source: MaterialInventory
    destination: MaterialInventory
    warnings: list[str]


def adjust_inventory(db: Session, actor: CurrentUser, cmd: AdjustmentCommand) -> AdjustmentResult:
    if cmd.adjustment_type not in ADJUSTMENT_TYPES:
        raise ValidationFailed.for_field("adjustment_type", "adjustment_type must be INCREASE or DECREASE")
    reason = (cmd.reason or "").strip()
    if not reason:
        raise ValidationFailed.for_field("reason", "An adjustment reason is required")

    material = get_material(db, cmd.material_id)
    quantity = inventory_ledger.checked_quantity(cmd.quantity)

    if cmd.adjustment_type == "INCREASE":
        row = inventory_ledger.credit(db, material_id=material.id, key=cmd.location, quantity=quantity)
        signed_quantity = quantity
    else:
        row = inventory_ledger.debit(db, material_id=material.id, key=cmd.location, quantity=quantity)
        signed_quantity = -quantity

    transaction_log.append(
        db,
        transaction_log.TransactionEntry(
            material_id=material.id,
            transaction_type="ADJUSTMENT",
            quantity=signed_quantity,
            to_location=cmd.location,
            unit_cost=material.unit_cost,
            total_cost=line_cost(material.unit_cost, signed_quantity),
            performed_by_id=actor.id,
            notes=reason,
        ),
    )
    return AdjustmentResult(inventory=row, warnings=inventory_ledger.stock_level_warnings(db, material))


def transfer_material(db: Session, actor: CurrentUser, cmd: TransferCommand) -> TransferResult:
    material = get_material(db, cmd.material_id)
    quantity = inventory_ledger.checked_quantity(cmd.quantity)

    source, destination = inventory_ledger.transfer(
        db,
        material_id=material.id,
        from_key=cmd.from_location,
        to_key=cmd.to_location,
        quantity=quantity,
    )
    transaction_log.append(
        db,
        transaction_log.TransactionEntry(
            material_id=material.id,
            transaction_type="TRANSFER",
            quantity=quantity,
            from_location=cmd.from_location,
            to_location=cmd.to_location,
            unit_cost=material.unit_cost,
            total_cost=line_cost(material.unit_cost, quantity),
            performed_by_id=actor.id,
            notes=cmd.notes,
        ),
    )
    return TransferResult(
        source=source,
        destination=destination,
        warnings=inventory_ledger.stock_level_warnings(db, material),
    )
