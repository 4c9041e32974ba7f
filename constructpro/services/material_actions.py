"""Operation boundary for the materials core.

Every public function checks the caller, runs one unit of work, commits it on
success and rolls it back on any failure. Business-rule failures come back as a
structured ``ActionResult``; anything unexpected is logged and reported with a
generic message.
"""

import json
import logging
import traceback
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from constructpro.core.money import as_float
from constructpro.core.permissions import CurrentUser, has_permission
from constructpro.models.inventory import MaterialInventory
from constructpro.models.material import Material
from constructpro.models.material_request import MaterialRequest
from constructpro.models.material_transaction import MaterialTransaction
from constructpro.models.supplier import Supplier
from constructpro.schemas.common import pagination
from constructpro.schemas.inventory import (
    InventoryAdjustIn,
    InventoryAdjustOut,
    InventoryTransferIn,
    InventoryTransferOut,
    LocationIn,
    LocationOut,
    MaterialInventoryListOut,
    MaterialInventoryOut,
    MaterialTransactionListOut,
    MaterialTransactionOut,
    ReconciliationLineOut,
    ReconciliationOut,
)
from constructpro.schemas.material import (
    MaterialCreateIn,
    MaterialListOut,
    MaterialOut,
    MaterialUpdateIn,
    SupplierSummaryOut,
)
from constructpro.schemas.material_request import (
    MaterialRequestAcknowledgeIn,
    MaterialRequestApproveIn,
    MaterialRequestCancelIn,
    MaterialRequestCompleteIn,
    MaterialRequestCreateIn,
    MaterialRequestIssueIn,
    MaterialRequestListOut,
    MaterialRequestOut,
    MaterialSummaryOut,
)
from constructpro.schemas.supplier import SupplierCreateIn, SupplierListOut, SupplierOut, SupplierUpdateIn
from constructpro.services import (
    inventory_ledger,
    inventory_operations,
    material_catalog,
    material_request_workflow as workflow,
    transaction_log,
)
from constructpro.services.errors import MaterialsError, Unauthorized
from constructpro.services.locations import LocationKey

logger = logging.getLogger("constructpro.materials")

T = TypeVar("T")


class ActionResult(BaseModel):
    success: bool
    data: Any | None = None
    error: str | None = None
    code: str | None = None
    errors: list[dict[str, Any]] | None = None


def _require(user: CurrentUser | None, permission: str | None = None) -> CurrentUser:
    if user is None:
        raise Unauthorized("Authentication required")
    if permission and not has_permission(role=user.role, permission=permission):
        raise Unauthorized("Insufficient permission for this action")
    return user


def run_action(
    db: Session,
    operation: str,
    work: Callable[[], T],
    present: Callable[[T], Any],
    *,
    commit: bool = True,
) -> ActionResult:
    try:
        outcome = work()
        data = present(outcome)
        if commit:
            db.commit()
    except MaterialsError as exc:
        db.rollback()
        logger.info(
            json.dumps(
                {
                    "event": "material_action_rejected",
                    "operation": operation,
                    "code": exc.code,
                    "message": exc.message,
                }
            )
        )
        return ActionResult(success=False, error=exc.message, code=exc.code, errors=exc.errors)
    except Exception as exc:
        db.rollback()
        logger.error(
            json.dumps(
                {
                    "event": "material_action_failed",
                    "operation": operation,
                    "error": str(exc),
                    "traceback": traceback.format_exc(limit=10),
                }
            )
        )
        return ActionResult(
            success=False,
            error=f"Failed to {operation.replace('_', ' ')}",
            code="internal_error",
        )

    if commit:
        logger.info(json.dumps({"event": "material_action_committed", "operation": operation}))
    return ActionResult(success=True, data=data)


def _location_key(location: LocationIn) -> LocationKey:
    return LocationKey.of(location.type, location.reference, location.project_id)


def _material_out(material: Material, total_stock: Any = None) -> MaterialOut:
    supplier = material.supplier
    return MaterialOut(
        id=material.id,
        material_code=material.material_code,
        name=material.name,
        description=material.description,
        category=material.category,
        unit=material.unit,
        unit_cost=as_float(material.unit_cost),
        minimum_stock_level=as_float(material.minimum_stock_level),
        maximum_stock_level=as_float(material.maximum_stock_level),
        reorder_point=as_float(material.reorder_point),
        supplier_id=material.supplier_id,
        supplier=(
            SupplierSummaryOut(id=supplier.id, name=supplier.name, contact_person=supplier.contact_person)
            if supplier is not None
            else None
        ),
        is_active=material.is_active,
        total_stock=float(total_stock) if total_stock is not None else None,
        created_at=material.created_at,
        updated_at=material.updated_at,
    )


def _supplier_out(supplier: Supplier) -> SupplierOut:
    return SupplierOut.model_validate(supplier)


def _request_out(request: MaterialRequest) -> MaterialRequestOut:
    material = request.material
    return MaterialRequestOut(
        id=request.id,
        request_number=request.request_number,
        material_id=request.material_id,
        material=(
            MaterialSummaryOut(
                id=material.id,
                material_code=material.material_code,
                name=material.name,
                category=material.category,
                unit=material.unit,
            )
            if material is not None
            else None
        ),
        project_id=request.project_id,
        requested_by_id=request.requested_by_id,
        requested_quantity=float(request.requested_quantity),
        justification=request.justification,
        urgency=request.urgency,
        delivery_location=request.delivery_location,
        required_date=request.required_date,
        status=request.status,
        approved_quantity=as_float(request.approved_quantity),
        issued_quantity=as_float(request.issued_quantity),
        acknowledged_quantity=as_float(request.acknowledged_quantity),
        unit_cost=as_float(request.unit_cost),
        total_cost=as_float(request.total_cost),
        approved_by_id=request.approved_by_id,
        approval_date=request.approval_date,
        approval_comments=request.approval_comments,
        issued_by_id=request.issued_by_id,
        issuance_date=request.issuance_date,
        issuance_comments=request.issuance_comments,
        acknowledged_by_id=request.acknowledged_by_id,
        acknowledgment_date=request.acknowledgment_date,
        acknowledgment_comments=request.acknowledgment_comments,
        completed_by_id=request.completed_by_id,
        completion_date=request.completion_date,
        completion_comments=request.completion_comments,
        rejection_reason=request.rejection_reason,
        created_at=request.created_at,
        updated_at=request.updated_at,
    )


def _inventory_out(row: MaterialInventory) -> MaterialInventoryOut:
    return MaterialInventoryOut(
        id=row.id,
        material_id=row.material_id,
        location_type=row.location_type,
        location_reference=row.location_reference,
        project_id=row.project_id,
        current_stock=float(row.current_stock),
        reserved_stock=float(row.reserved_stock or 0),
        last_updated=row.last_updated,
    )


def _transaction_out(row: MaterialTransaction) -> MaterialTransactionOut:
    return MaterialTransactionOut(
        id=row.id,
        material_id=row.material_id,
        transaction_type=row.transaction_type,
        reference_type=row.reference_type,
        reference_id=row.reference_id,
        from_location=(
            LocationOut(
                location_type=row.from_location_type,
                reference=row.from_location_reference or "",
                project_id=row.from_project_id or 0,
            )
            if row.from_location_type
            else None
        ),
        to_location=(
            LocationOut(
                location_type=row.to_location_type,
                reference=row.to_location_reference or "",
                project_id=row.to_project_id or 0,
            )
            if row.to_location_type
            else None
        ),
        quantity=float(row.quantity),
        unit_cost=as_float(row.unit_cost),
        total_cost=as_float(row.total_cost),
        performed_by_id=row.performed_by_id,
        notes=row.notes,
        created_at=row.created_at,
    )


# Catalog


def create_material(db: Session, user: CurrentUser | None, payload: MaterialCreateIn) -> ActionResult:
    def work() -> Material:
        _require(user, "materials.catalog.manage")
        return material_catalog.create_material(db, payload)

    return run_action(db, "create_material", work, _material_out)


def update_material(
    db: Session,
    user: CurrentUser | None,
    material_id: str,
    payload: MaterialUpdateIn,
) -> ActionResult:
    def work() -> Material:
        _require(user, "materials.catalog.manage")
        return material_catalog.update_material(db, material_id, payload)

    return run_action(db, "update_material", work, _material_out)


def delete_material(db: Session, user: CurrentUser | None, material_id: str) -> ActionResult:
    def work() -> None:
        _require(user, "materials.catalog.manage")
        material_catalog.delete_material(db, material_id)

    return run_action(db, "delete_material", work, lambda _: None)


def get_material(db: Session, user: CurrentUser | None, material_id: str) -> ActionResult:
    def work() -> tuple[Material, Any]:
        _require(user, "materials.catalog.view")
        material = material_catalog.get_material(db, material_id)
        return material, inventory_ledger.total_stock(db, material.id)

    return run_action(db, "get_material", work, lambda pair: _material_out(*pair), commit=False)


def list_materials(
    db: Session,
    user: CurrentUser | None,
    *,
    search: str | None = None,
    category: str | None = None,
    supplier_id: str | None = None,
    is_active: bool | None = None,
    low_stock: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> ActionResult:
    def work():
        _require(user, "materials.catalog.view")
        return material_catalog.list_materials(
            db,
            search=search,
            category=category,
            supplier_id=supplier_id,
            is_active=is_active,
            low_stock=low_stock,
            limit=limit,
            offset=offset,
        )

    def present(outcome) -> MaterialListOut:
        rows, total = outcome
        items = [_material_out(material, stock) for material, stock in rows]
        return MaterialListOut(
            items=items,
            pagination=pagination(total=total, limit=limit, offset=offset, count=len(items)),
        )

    return run_action(db, "list_materials", work, present, commit=False)


def create_supplier(db: Session, user: CurrentUser | None, payload: SupplierCreateIn) -> ActionResult:
    def work() -> Supplier:
        _require(user, "materials.catalog.manage")
        return material_catalog.create_supplier(db, payload)

    return run_action(db, "create_supplier", work, _supplier_out)


def update_supplier(
    db: Session,
    user: CurrentUser | None,
    supplier_id: str,
    payload: SupplierUpdateIn,
) -> ActionResult:
    def work() -> Supplier:
        _require(user, "materials.catalog.manage")
        return material_catalog.update_supplier(db, supplier_id, payload)

    return run_action(db, "update_supplier", work, _supplier_out)


def delete_supplier(db: Session, user: CurrentUser | None, supplier_id: str) -> ActionResult:
    def work() -> None:
        _require(user, "materials.catalog.manage")
        material_catalog.delete_supplier(db, supplier_id)

    return run_action(db, "delete_supplier", work, lambda _: None)


def get_supplier(db: Session, user: CurrentUser | None, supplier_id: str) -> ActionResult:
    def work() -> Supplier:
        _require(user, "materials.catalog.view")
        return material_catalog.get_supplier(db, supplier_id)

    return run_action(db, "get_supplier", work, _supplier_out, commit=False)


def list_suppliers(
    db: Session,
    user: CurrentUser | None,
    *,
    search: str | None = None,
    is_active: bool | None = None,
    limit: int = 50,
    offset: int = 0,
) -> ActionResult:
    def work():
        _require(user, "materials.catalog.view")
        return material_catalog.list_suppliers(db, search=search, is_active=is_active, limit=limit, offset=offset)

    def present(outcome) -> SupplierListOut:
        rows, total = outcome
        items = [_supplier_out(row) for row in rows]
        return SupplierListOut(
            items=items,
            pagination=pagination(total=total, limit=limit, offset=offset, count=len(items)),
        )

    return run_action(db, "list_suppliers", work, present, commit=False)


# Material requests


def create_material_request(
    db: Session,
    user: CurrentUser | None,
    payload: MaterialRequestCreateIn,
) -> ActionResult:
    def work() -> MaterialRequest:
        actor = _require(user, "materials.request.create")
        return workflow.create_request(
            db,
            actor,
            workflow.CreateRequestCommand(
                material_id=payload.material_id,
                project_id=payload.project_id,
                requested_quantity=payload.requested_quantity,
                justification=payload.justification,
                urgency=payload.urgency,
                delivery_location=payload.delivery_location,
                required_date=payload.required_date,
            ),
        )

    return run_action(db, "create_material_request", work, _request_out)


def approve_material_request(
    db: Session,
    user: CurrentUser | None,
    request_id: str,
    payload: MaterialRequestApproveIn,
) -> ActionResult:
    def work() -> MaterialRequest:
        actor = _require(user, "materials.request.approve")
        return workflow.approve_request(
            db,
            request_id,
            actor,
            workflow.ApproveCommand(
                approved=payload.approved,
                approved_quantity=payload.approved_quantity,
                comments=payload.approval_comments,
                rejection_reason=payload.rejection_reason,
            ),
        )

    return run_action(db, "approve_material_request", work, _request_out)


def issue_material_request(
    db: Session,
    user: CurrentUser | None,
    request_id: str,
    payload: MaterialRequestIssueIn,
) -> ActionResult:
    def work() -> MaterialRequest:
        actor = _require(user, "materials.request.issue")
        return workflow.issue_request(
            db,
            request_id,
            actor,
            workflow.IssueCommand(issued_quantity=payload.issued_quantity, comments=payload.issuance_comments),
        )

    return run_action(db, "issue_material_request", work, _request_out)


def acknowledge_material_request(
    db: Session,
    user: CurrentUser | None,
    request_id: str,
    payload: MaterialRequestAcknowledgeIn,
) -> ActionResult:
    def work() -> MaterialRequest:
        actor = _require(user)
        return workflow.acknowledge_request(
            db,
            request_id,
            actor,
            workflow.AcknowledgeCommand(
                acknowledged_quantity=payload.acknowledged_quantity,
                comments=payload.acknowledgment_comments,
            ),
        )

    return run_action(db, "acknowledge_material_request", work, _request_out)


def complete_material_request(
    db: Session,
    user: CurrentUser | None,
    request_id: str,
    payload: MaterialRequestCompleteIn,
) -> ActionResult:
    def work() -> MaterialRequest:
        actor = _require(user, "materials.request.complete")
        return workflow.complete_request(
            db,
            request_id,
            actor,
            workflow.CompleteCommand(comments=payload.completion_comments),
        )

    return run_action(db, "complete_material_request", work, _request_out)


def cancel_material_request(
    db: Session,
    user: CurrentUser | None,
    request_id: str,
    payload: MaterialRequestCancelIn,
) -> ActionResult:
    def work() -> MaterialRequest:
        actor = _require(user)
        return workflow.cancel_request(db, request_id, actor, workflow.CancelCommand(reason=payload.reason))

    return run_action(db, "cancel_material_request", work, _request_out)


def get_material_request(db: Session, user: CurrentUser | None, request_id: str) -> ActionResult:
    def work() -> MaterialRequest:
        _require(user, "materials.request.view")
        return workflow.get_request(db, request_id)

    return run_action(db, "get_material_request", work, _request_out, commit=False)


def list_material_requests(
    db: Session,
    user: CurrentUser | None,
    *,
    status: str | None = None,
    project_id: int | None = None,
    material_id: str | None = None,
    mine: bool = False,
    urgency: str | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> ActionResult:
    def work():
        actor = _require(user, "materials.request.view")
        return workflow.list_requests(
            db,
            status=status,
            project_id=project_id,
            material_id=material_id,
            requested_by_id=actor.id if mine else None,
            urgency=urgency,
            search=search,
            limit=limit,
            offset=offset,
        )

    def present(outcome) -> MaterialRequestListOut:
        rows, total = outcome
        items = [_request_out(row) for row in rows]
        return MaterialRequestListOut(
            items=items,
            pagination=pagination(total=total, limit=limit, offset=offset, count=len(items)),
        )

    return run_action(db, "list_material_requests", work, present, commit=False)


# Inventory


def adjust_inventory(db: Session, user: CurrentUser | None, payload: InventoryAdjustIn) -> ActionResult:
    def work() -> inventory_operations.AdjustmentResult:
        actor = _require(user, "materials.inventory.adjust")
        return inventory_operations.adjust_inventory(
            db,
            actor,
            inventory_operations.AdjustmentCommand(
                material_id=payload.material_id,
                location=_location_key(payload.location),
                adjustment_type=payload.adjustment_type,
                quantity=payload.quantity,
                reason=payload.reason,
            ),
        )

    def present(outcome: inventory_operations.AdjustmentResult) -> InventoryAdjustOut:
        return InventoryAdjustOut(inventory=_inventory_out(outcome.inventory), warnings=outcome.warnings)

    return run_action(db, "adjust_inventory", work, present)


def transfer_material(db: Session, user: CurrentUser | None, payload: InventoryTransferIn) -> ActionResult:
    def work() -> inventory_operations.TransferResult:
        actor = _require(user, "materials.inventory.transfer")
        return inventory_operations.transfer_material(
            db,
            actor,
            inventory_operations.TransferCommand(
                material_id=payload.material_id,
                from_location=_location_key(payload.from_location),
                to_location=_location_key(payload.to_location),
                quantity=payload.quantity,
                notes=payload.notes,
            ),
        )

    def present(outcome: inventory_operations.TransferResult) -> InventoryTransferOut:
        return InventoryTransferOut(
            source=_inventory_out(outcome.source),
            destination=_inventory_out(outcome.destination),
            warnings=outcome.warnings,
        )

    return run_action(db, "transfer_material", work, present)


def list_inventory(
    db: Session,
    user: CurrentUser | None,
    *,
    material_id: str | None = None,
    location_type: str | None = None,
    project_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> ActionResult:
    def work():
        _require(user, "materials.inventory.view")
        return inventory_ledger.list_inventory(
            db,
            material_id=material_id,
            location_type=location_type,
            project_id=project_id,
            limit=limit,
            offset=offset,
        )

    def present(outcome) -> MaterialInventoryListOut:
        rows, total = outcome
        items = [_inventory_out(row) for row in rows]
        return MaterialInventoryListOut(
            items=items,
            pagination=pagination(total=total, limit=limit, offset=offset, count=len(items)),
        )

    return run_action(db, "list_inventory", work, present, commit=False)


def list_transactions(
    db: Session,
    user: CurrentUser | None,
    *,
    material_id: str | None = None,
    transaction_type: str | None = None,
    reference_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> ActionResult:
    def work():
        _require(user, "materials.inventory.view")
        return transaction_log.list_transactions(
            db,
            material_id=material_id,
            transaction_type=transaction_type,
            reference_id=reference_id,
            limit=limit,
            offset=offset,
        )

    def present(outcome) -> MaterialTransactionListOut:
        rows, total = outcome
        items = [_transaction_out(row) for row in rows]
        return MaterialTransactionListOut(
            items=items,
            pagination=pagination(total=total, limit=limit, offset=offset, count=len(items)),
        )

    return run_action(db, "list_transactions", work, present, commit=False)


def reconcile_inventory(
    db: Session,
    user: CurrentUser | None,
    *,
    material_id: str | None = None,
) -> ActionResult:
    def work() -> ReconciliationOut:
        _require(user, "materials.inventory.view")
        replayed = transaction_log.reconstruct_balances(db, material_id=material_id)

        stmt = select(MaterialInventory)
        if material_id:
            stmt = stmt.where(MaterialInventory.material_id == material_id)
        ledger = {
            (row.material_id, LocationKey.of(row.location_type, row.location_reference, row.project_id)):
                row.current_stock
            for row in db.execute(stmt).scalars()
        }

        lines = []
        keys = sorted(
            set(ledger) | set(replayed),
            key=lambda k: (k[0], k[1].location_type, k[1].reference, k[1].project_id),
        )
        for key in keys:
            ledger_balance = ledger.get(key, 0)
            replayed_balance = replayed.get(key, 0)
            lines.append(
                ReconciliationLineOut(
                    material_id=key[0],
                    location=LocationOut(**key[1].as_dict()),
                    ledger_balance=float(ledger_balance),
                    replayed_balance=float(replayed_balance),
                    matches=ledger_balance == replayed_balance,
                )
            )
        return ReconciliationOut(balanced=all(line.matches for line in lines), lines=lines)

    return run_action(db, "reconcile_inventory", work, lambda report: report, commit=False)
