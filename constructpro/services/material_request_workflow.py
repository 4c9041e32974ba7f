"""Material request lifecycle.

PENDING -> APPROVED -> ISSUED -> ACKNOWLEDGED -> COMPLETED, with PENDING -> REJECTED
at the approval step and PENDING|APPROVED -> CANCELLED. COMPLETED, REJECTED and
CANCELLED are terminal.

Functions here never commit. Each one leaves its request, ledger and log writes
pending in the caller's transaction so the operation boundary can commit or roll
back everything together.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from constructpro.core.config import settings
from constructpro.core.id_utils import generate_uuid
from constructpro.core.money import line_cost
from constructpro.core.permissions import CurrentUser, has_permission, is_admin
from constructpro.models.material_request import MaterialRequest
from constructpro.services import inventory_ledger, transaction_log
from constructpro.services.errors import (
    InvalidStateTransition,
    RequestNotFound,
    Unauthorized,
    ValidationFailed,
)
from constructpro.services.locations import LocationKey
from constructpro.services.material_catalog import get_material
from constructpro.services.request_numbers import next_request_number

URGENCIES = ("LOW", "NORMAL", "HIGH", "CRITICAL")
DELIVERY_LOCATIONS = ("STORE", "SITE")
TERMINAL_STATUSES = frozenset({"COMPLETED", "REJECTED", "CANCELLED"})

ALLOWED_TRANSITIONS: dict[str, dict[str, str]] = {
    "PENDING": {"approve": "APPROVED", "reject": "REJECTED", "cancel": "CANCELLED"},
    "APPROVED": {"issue": "ISSUED", "cancel": "CANCELLED"},
    "ISSUED": {"acknowledge": "ACKNOWLEDGED"},
    "ACKNOWLEDGED": {"complete": "COMPLETED"},
}

# Reference recorded on the log when a request is collected at the store counter.
STORE_HANDOVER_REFERENCE = "Store"


@dataclass(frozen=True)
class CreateRequestCommand:
    material_id: str
    project_id: int
    requested_quantity: Decimal
    justification: str
    urgency: str = "NORMAL"
    delivery_location: str = "SITE"
    required_date: datetime | None = None


@dataclass(frozen=True)
class ApproveCommand:
    approved: bool
    approved_quantity: Decimal | None = None
    comments: str | None = None
    rejection_reason: str | None = None


@dataclass(frozen=True)
class IssueCommand:
    issued_quantity: Decimal
    comments: str | None = None


@dataclass(frozen=True)
class AcknowledgeCommand:
    acknowledged_quantity: Decimal
    comments: str | None = None


@dataclass(frozen=True)
class CompleteCommand:
    comments: str | None = None


@dataclass(frozen=True)
class CancelCommand:
    reason: str


def _now() -> datetime:
    return datetime.now(timezone.utc)


def next_status(current_status: str, action: str) -> str:
    target = ALLOWED_TRANSITIONS.get(current_status, {}).get(action)
    if target is None:
        raise InvalidStateTransition(current_status, action)
    return target


def _load_for_update(db: Session, request_id: str) -> MaterialRequest:
    request = db.execute(
        select(MaterialRequest)
        .where(MaterialRequest.id == request_id)
        .with_for_update(of=MaterialRequest)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if request is None:
        raise RequestNotFound(request_id)
    return request


def get_request(db: Session, request_id: str) -> MaterialRequest:
    request = db.execute(
        select(MaterialRequest).where(MaterialRequest.id == request_id)
    ).scalar_one_or_none()
    if request is None:
        raise RequestNotFound(request_id)
    return request


def list_requests(
    db: Session,
    *,
    status: str | None = None,
    project_id: int | None = None,
    material_id: str | None = None,
    requested_by_id: str | None = None,
    urgency: str | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[MaterialRequest], int]:
    filters = []
    if status:
        filters.append(MaterialRequest.status == status.strip().upper())
    if urgency:
        filters.append(MaterialRequest.urgency == urgency.strip().upper())
    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        filters.append(
            or_(
                func.lower(MaterialRequest.request_number).like(pattern),
                func.lower(MaterialRequest.justification).like(pattern),
            )
        )
    if project_id is not None:
        filters.append(MaterialRequest.project_id == project_id)
    if material_id:
        filters.append(MaterialRequest.material_id == material_id)
    if requested_by_id:
        filters.append(MaterialRequest.requested_by_id == requested_by_id)

    total = int(db.execute(select(func.count(MaterialRequest.id)).where(*filters)).scalar_one())
    rows = db.execute(
        select(MaterialRequest)
        .where(*filters)
        .order_by(MaterialRequest.created_at.desc(), MaterialRequest.request_number.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return list(rows), total


def _validate_create(cmd: CreateRequestCommand) -> tuple[Decimal, str]:
    quantity = inventory_ledger.checked_quantity(cmd.requested_quantity, "requested_quantity")
    if quantity <= 0:
        raise ValidationFailed.for_field("requested_quantity", "requested_quantity must be greater than zero")
    if quantity > settings.max_requested_quantity:
        raise ValidationFailed.for_field(
            "requested_quantity",
            f"requested_quantity cannot exceed {settings.max_requested_quantity}",
        )
    if cmd.project_id <= 0:
        raise ValidationFailed.for_field("project_id", "project_id must be a positive integer")
    justification = (cmd.justification or "").strip()
    if not justification or len(justification) > 1000:
        raise ValidationFailed.for_field("justification", "justification must be 1 to 1000 characters")
    if cmd.urgency not in URGENCIES:
        raise ValidationFailed.for_field("urgency", f"urgency must be one of {', '.join(URGENCIES)}")
    if cmd.delivery_location not in DELIVERY_LOCATIONS:
        raise ValidationFailed.for_field(
            "delivery_location",
            f"delivery_location must be one of {', '.join(DELIVERY_LOCATIONS)}",
        )
    return quantity, justification


def create_request(db: Session, actor: CurrentUser, cmd: CreateRequestCommand) -> MaterialRequest:
    quantity, justification = _validate_create(cmd)
    material = get_material(db, cmd.material_id)
    if not material.is_active:
        raise ValidationFailed.for_field("material_id", "Material is inactive")

    request = MaterialRequest(
        id=generate_uuid(),
        request_number=next_request_number(db),
        material_id=material.id,
        project_id=cmd.project_id,
        requested_by_id=actor.id,
        requested_quantity=quantity,
        justification=justification,
        urgency=cmd.urgency,
        delivery_location=cmd.delivery_location,
        required_date=cmd.required_date,
        status="PENDING",
        unit_cost=material.unit_cost,
        total_cost=line_cost(material.unit_cost, quantity),
    )
    db.add(request)
    db.flush()
    return request


def approve_request(db: Session, request_id: str, actor: CurrentUser, cmd: ApproveCommand) -> MaterialRequest:
    request = _load_for_update(db, request_id)
    action = "approve" if cmd.approved else "reject"
    target = next_status(request.status, action)

    if cmd.approved:
        approved_quantity = (
            inventory_ledger.checked_quantity(cmd.approved_quantity, "approved_quantity")
            if cmd.approved_quantity is not None
            else request.requested_quantity
        )
        if approved_quantity <= 0:
            raise ValidationFailed.for_field("approved_quantity", "approved_quantity must be greater than zero")
        if approved_quantity > request.requested_quantity:
            raise ValidationFailed.for_field(
                "approved_quantity",
                "approved_quantity cannot exceed the requested quantity",
            )
        request.approved_quantity = approved_quantity
        request.total_cost = line_cost(request.unit_cost, approved_quantity)
    else:
        reason = (cmd.rejection_reason or "").strip()
        if not reason:
            raise ValidationFailed.for_field("rejection_reason", "rejection_reason is required when rejecting")
        request.rejection_reason = reason

    request.status = target
    request.approved_by_id = actor.id
    request.approval_date = _now()
    request.approval_comments = cmd.comments
    db.flush()
    return request


def issue_request(db: Session, request_id: str, actor: CurrentUser, cmd: IssueCommand) -> MaterialRequest:
    request = _load_for_update(db, request_id)
    target = next_status(request.status, "issue")

    quantity = inventory_ledger.checked_quantity(cmd.issued_quantity, "issued_quantity")
    if quantity <= 0:
        raise ValidationFailed.for_field("issued_quantity", "issued_quantity must be greater than zero")
    approved = request.approved_quantity if request.approved_quantity is not None else request.requested_quantity
    if quantity > approved:
        raise ValidationFailed.for_field("issued_quantity", "issued_quantity cannot exceed the approved quantity")

    store = LocationKey.store()
    inventory_ledger.debit(db, material_id=request.material_id, key=store, quantity=quantity)

    if request.delivery_location == "SITE":
        destination = LocationKey.site(request.project_id)
        inventory_ledger.credit(db, material_id=request.material_id, key=destination, quantity=quantity)
    else:
        destination = LocationKey.of("STORE", STORE_HANDOVER_REFERENCE)

    transaction_log.append(
        db,
        transaction_log.TransactionEntry(
            material_id=request.material_id,
            transaction_type="ISSUE",
            quantity=quantity,
            from_location=store,
            to_location=destination,
            reference_type="REQUEST",
            reference_id=request.id,
            unit_cost=request.unit_cost,
            total_cost=line_cost(request.unit_cost, quantity),
            performed_by_id=actor.id,
            notes=cmd.comments,
        ),
    )

    request.status = target
    request.issued_quantity = quantity
    request.issuance_date = _now()
    request.issued_by_id = actor.id
    request.issuance_comments = cmd.comments
    db.flush()
    return request


def acknowledge_request(
    db: Session,
    request_id: str,
    actor: CurrentUser,
    cmd: AcknowledgeCommand,
) -> MaterialRequest:
    request = _load_for_update(db, request_id)
    if actor.id != request.requested_by_id and not is_admin(actor):
        raise Unauthorized("Only the requester can acknowledge receipt of this request")
    target = next_status(request.status, "acknowledge")

    quantity = inventory_ledger.checked_quantity(cmd.acknowledged_quantity, "acknowledged_quantity")
    if quantity < 0:
        raise ValidationFailed.for_field("acknowledged_quantity", "acknowledged_quantity cannot be negative")
    if request.issued_quantity is not None and quantity > request.issued_quantity:
        raise ValidationFailed.for_field(
            "acknowledged_quantity",
            "acknowledged_quantity cannot exceed the issued quantity",
        )

    request.status = target
    request.acknowledged_quantity = quantity
    request.acknowledgment_date = _now()
    request.acknowledged_by_id = actor.id
    request.acknowledgment_comments = cmd.comments
    db.flush()
    return request


def complete_request(db: Session, request_id: str, actor: CurrentUser, cmd: CompleteCommand) -> MaterialRequest:
    request = _load_for_update(db, request_id)
    target = next_status(request.status, "complete")

    request.status = target
    request.completion_date = _now()
    request.completed_by_id = actor.id
    request.completion_comments = cmd.comments
    db.flush()
    return request


def cancel_request(db: Session, request_id: str, actor: CurrentUser, cmd: CancelCommand) -> MaterialRequest:
    request = _load_for_update(db, request_id)
    if actor.id != request.requested_by_id and not has_permission(
        role=actor.role, permission="materials.request.cancel"
    ):
        raise Unauthorized("Only the requester or a manager can cancel this request")
    target = next_status(request.status, "cancel")

    reason = (cmd.reason or "").strip()
    if not reason:
        raise ValidationFailed.for_field("reason", "A cancellation reason is required")

    request.status = target
    request.rejection_reason = reason
    request.updated_at = _now()
    db.flush()
    return request
