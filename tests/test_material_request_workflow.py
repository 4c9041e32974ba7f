from decimal import Decimal

import pytest
from sqlalchemy import select

from constructpro.core.config import settings
from constructpro.models.material_request import MaterialRequest
from constructpro.models.material_transaction import MaterialTransaction
from constructpro.schemas.material_request import (
    MaterialRequestAcknowledgeIn,
    MaterialRequestApproveIn,
    MaterialRequestCancelIn,
    MaterialRequestCompleteIn,
    MaterialRequestCreateIn,
    MaterialRequestIssueIn,
)
from constructpro.services import inventory_ledger, material_actions
from constructpro.services import material_request_workflow as workflow
from constructpro.services.errors import InvalidStateTransition
from constructpro.services.locations import LocationKey


@pytest.fixture()
def actors(make_user):
    return {
        "employee": make_user("employee"),
        "pm": make_user("project_manager"),
        "store": make_user("store_manager"),
        "admin": make_user("admin"),
    }


def _create(db, actor, material, quantity=5, delivery_location="SITE", project_id=12):
    result = material_actions.create_material_request(
        db,
        actor,
        MaterialRequestCreateIn(
            material_id=material.id,
            project_id=project_id,
            requested_quantity=quantity,
            justification="Slab casting",
            delivery_location=delivery_location,
        ),
    )
    assert result.success, result.error
    return result.data


def _approve(db, actor, request_id, quantity=None):
    result = material_actions.approve_material_request(
        db,
        actor,
        request_id,
        MaterialRequestApproveIn(approved=True, approved_quantity=quantity),
    )
    assert result.success, result.error
    return result.data


def _stock_store(db, material, quantity):
    inventory_ledger.credit(db, material_id=material.id, key=LocationKey.store(), quantity=quantity)
    db.commit()


def _transactions(db, request_id):
    return db.execute(
        select(MaterialTransaction).where(MaterialTransaction.reference_id == request_id)
    ).scalars().all()


def test_next_status_follows_allowed_transitions():
    assert workflow.next_status("PENDING", "approve") == "APPROVED"
    assert workflow.next_status("PENDING", "reject") == "REJECTED"
    assert workflow.next_status("APPROVED", "cancel") == "CANCELLED"
    assert workflow.next_status("ISSUED", "acknowledge") == "ACKNOWLEDGED"

    for status in workflow.TERMINAL_STATUSES:
        for action in ("approve", "issue", "acknowledge", "complete", "cancel"):
            with pytest.raises(InvalidStateTransition):
                workflow.next_status(status, action)

    with pytest.raises(InvalidStateTransition):
        workflow.next_status("ISSUED", "cancel")


def test_create_snapshots_cost_and_numbers_requests(db, actors, make_material):
    material = make_material(unit_cost="10.00")

    first = _create(db, actors["employee"], material, quantity=5)
    second = _create(db, actors["employee"], material, quantity=1)

    assert first.status == "PENDING"
    assert first.unit_cost == 10.0
    assert first.total_cost == 50.0
    assert first.request_number == "MR-0001"
    assert second.request_number == "MR-0002"
    assert first.requested_by_id == actors["employee"].id


def test_create_without_unit_cost_leaves_costs_empty(db, actors, make_material):
    material = make_material(unit_cost=None)

    created = _create(db, actors["employee"], material)

    assert created.unit_cost is None
    assert created.total_cost is None


def test_requested_quantity_cap_follows_settings(db, actors, make_material, monkeypatch):
    material = make_material()

    monkeypatch.setattr(settings, "max_requested_quantity", 50_000)
    raised = _create(db, actors["employee"], material, quantity=20_000)

    monkeypatch.setattr(settings, "max_requested_quantity", 10)
    capped = material_actions.create_material_request(
        db,
        actors["employee"],
        MaterialRequestCreateIn(
            material_id=material.id,
            project_id=12,
            requested_quantity=11,
            justification="Blockwork",
        ),
    )

    assert raised.requested_quantity == 20_000.0
    assert not capped.success
    assert capped.code == "validation_error"
    assert capped.errors[0]["field"] == "requested_quantity"


def test_create_rejects_inactive_material(db, actors, make_material):
    material = make_material(is_active=False)

    result = material_actions.create_material_request(
        db,
        actors["employee"],
        MaterialRequestCreateIn(
            material_id=material.id,
            project_id=12,
            requested_quantity=1,
            justification="Blockwork",
        ),
    )

    assert not result.success
    assert result.code == "validation_error"
    assert db.execute(select(MaterialRequest)).first() is None


def test_approval_recomputes_total_for_approved_quantity(db, actors, make_material):
    material = make_material(unit_cost="10.00")
    created = _create(db, actors["employee"], material, quantity=5)

    approved = _approve(db, actors["pm"], created.id, quantity=3)

    assert approved.status == "APPROVED"
    assert approved.approved_quantity == 3.0
    assert approved.total_cost == 30.0
    assert approved.approved_by_id == actors["pm"].id
    assert approved.approval_date is not None


def test_approval_cannot_exceed_requested_quantity(db, actors, make_material):
    material = make_material()
    created = _create(db, actors["employee"], material, quantity=5)

    result = material_actions.approve_material_request(
        db,
        actors["pm"],
        created.id,
        MaterialRequestApproveIn(approved=True, approved_quantity=6),
    )

    assert not result.success
    assert result.code == "validation_error"
    assert db.get(MaterialRequest, created.id).status == "PENDING"


def test_rejection_records_reason(db, actors, make_material):
    material = make_material()
    created = _create(db, actors["employee"], material)

    result = material_actions.approve_material_request(
        db,
        actors["pm"],
        created.id,
        MaterialRequestApproveIn(approved=False, rejection_reason="Over budget"),
    )

    assert result.success
    assert result.data.status == "REJECTED"
    assert result.data.rejection_reason == "Over budget"


def test_issue_with_insufficient_stock_changes_nothing(db, actors, make_material):
    material = make_material()
    created = _create(db, actors["employee"], material, quantity=5)
    _approve(db, actors["pm"], created.id, quantity=3)
    _stock_store(db, material, 2)

    result = material_actions.issue_material_request(
        db,
        actors["store"],
        created.id,
        MaterialRequestIssueIn(issued_quantity=3),
    )

    assert not result.success
    assert result.code == "insufficient_stock"
    assert db.get(MaterialRequest, created.id).status == "APPROVED"
    assert inventory_ledger.get_balance(db, material.id, LocationKey.store()) == Decimal("2")
    assert inventory_ledger.get_inventory_row(db, material.id, LocationKey.site(12)) is None
    assert _transactions(db, created.id) == []


def test_issue_to_site_moves_stock_and_logs_one_issue(db, actors, make_material):
    material = make_material()
    created = _create(db, actors["employee"], material, quantity=5)
    _approve(db, actors["pm"], created.id, quantity=3)
    _stock_store(db, material, 10)

    result = material_actions.issue_material_request(
        db,
        actors["store"],
        created.id,
        MaterialRequestIssueIn(issued_quantity=3, issuance_comments="Loaded on truck 4"),
    )

    assert result.success, result.error
    assert result.data.status == "ISSUED"
    assert result.data.issued_quantity == 3.0
    assert result.data.issued_by_id == actors["store"].id
    assert inventory_ledger.get_balance(db, material.id, LocationKey.store()) == Decimal("7")
    assert inventory_ledger.get_balance(db, material.id, LocationKey.site(12)) == Decimal("3")

    logged = _transactions(db, created.id)
    assert len(logged) == 1
    assert logged[0].transaction_type == "ISSUE"
    assert logged[0].quantity == Decimal("3")
    assert logged[0].to_location_type == "SITE"
    assert logged[0].to_project_id == 12
    assert logged[0].total_cost == Decimal("30.00")


def test_issue_for_store_collection_only_debits_store(db, actors, make_material):
    material = make_material()
    created = _create(db, actors["employee"], material, quantity=4, delivery_location="STORE")
    _approve(db, actors["pm"], created.id)
    _stock_store(db, material, 10)

    result = material_actions.issue_material_request(
        db,
        actors["store"],
        created.id,
        MaterialRequestIssueIn(issued_quantity=4),
    )

    assert result.success, result.error
    assert inventory_ledger.total_stock(db, material.id) == Decimal("6")
    logged = _transactions(db, created.id)
    assert logged[0].to_location_type == "STORE"
    assert logged[0].to_location_reference == workflow.STORE_HANDOVER_REFERENCE


def test_issue_cannot_exceed_approved_quantity(db, actors, make_material):
    material = make_material()
    created = _create(db, actors["employee"], material, quantity=5)
    _approve(db, actors["pm"], created.id, quantity=3)
    _stock_store(db, material, 10)

    result = material_actions.issue_material_request(
        db,
        actors["store"],
        created.id,
        MaterialRequestIssueIn(issued_quantity=4),
    )

    assert not result.success
    assert result.code == "validation_error"
    assert inventory_ledger.get_balance(db, material.id, LocationKey.store()) == Decimal("10")


def test_issue_of_pending_request_is_invalid_state(db, actors, make_material):
    material = make_material()
    created = _create(db, actors["employee"], material)
    _stock_store(db, material, 10)

    result = material_actions.issue_material_request(
        db,
        actors["store"],
        created.id,
        MaterialRequestIssueIn(issued_quantity=1),
    )

    assert not result.success
    assert result.code == "invalid_state"
    assert result.error == "Cannot issue a material request in PENDING status"


def test_full_lifecycle_and_terminal_cancel(db, actors, make_material):
    material = make_material()
    created = _create(db, actors["employee"], material, quantity=5)
    _approve(db, actors["pm"], created.id)
    _stock_store(db, material, 10)
    material_actions.issue_material_request(
        db, actors["store"], created.id, MaterialRequestIssueIn(issued_quantity=5)
    )

    acknowledged = material_actions.acknowledge_material_request(
        db,
        actors["employee"],
        created.id,
        MaterialRequestAcknowledgeIn(acknowledged_quantity=4, acknowledgment_comments="One bag torn"),
    )
    assert acknowledged.success, acknowledged.error
    assert acknowledged.data.status == "ACKNOWLEDGED"
    assert acknowledged.data.acknowledged_quantity == 4.0

    completed = material_actions.complete_material_request(
        db, actors["pm"], created.id, MaterialRequestCompleteIn(completion_comments="Closed")
    )
    assert completed.success, completed.error
    assert completed.data.status == "COMPLETED"
    assert completed.data.completed_by_id == actors["pm"].id

    cancelled = material_actions.cancel_material_request(
        db, actors["employee"], created.id, MaterialRequestCancelIn(reason="Too late")
    )
    assert not cancelled.success
    assert cancelled.code == "invalid_state"
    assert db.get(MaterialRequest, created.id).status == "COMPLETED"


def test_acknowledge_is_limited_to_requester(db, actors, make_material):
    material = make_material()
    created = _create(db, actors["employee"], material, quantity=2)
    _approve(db, actors["pm"], created.id)
    _stock_store(db, material, 5)
    material_actions.issue_material_request(
        db, actors["store"], created.id, MaterialRequestIssueIn(issued_quantity=2)
    )

    result = material_actions.acknowledge_material_request(
        db, actors["store"], created.id, MaterialRequestAcknowledgeIn(acknowledged_quantity=2)
    )
    assert not result.success
    assert result.code == "unauthorized"

    over = material_actions.acknowledge_material_request(
        db, actors["employee"], created.id, MaterialRequestAcknowledgeIn(acknowledged_quantity=3)
    )
    assert not over.success
    assert over.code == "validation_error"


def test_cancel_rules(db, actors, make_material):
    material = make_material()
    mine = _create(db, actors["employee"], material)
    other = _create(db, actors["pm"], material)

    denied = material_actions.cancel_material_request(
        db, actors["employee"], other.id, MaterialRequestCancelIn(reason="Not needed")
    )
    assert not denied.success
    assert denied.code == "unauthorized"

    own = material_actions.cancel_material_request(
        db, actors["employee"], mine.id, MaterialRequestCancelIn(reason="Not needed")
    )
    assert own.success
    assert own.data.status == "CANCELLED"
    assert own.data.rejection_reason == "Not needed"

    _approve(db, actors["pm"], other.id)
    by_manager = material_actions.cancel_material_request(
        db, actors["pm"], other.id, MaterialRequestCancelIn(reason="Design change")
    )
    assert by_manager.success
    assert by_manager.data.status == "CANCELLED"


def test_permissions_are_checked_before_any_change(db, actors, make_material):
    material = make_material()
    created = _create(db, actors["employee"], material)

    result = material_actions.approve_material_request(
        db,
        actors["employee"],
        created.id,
        MaterialRequestApproveIn(approved=True),
    )
    assert not result.success
    assert result.code == "unauthorized"

    anonymous = material_actions.get_material_request(db, None, created.id)
    assert not anonymous.success
    assert anonymous.code == "unauthorized"
    assert db.get(MaterialRequest, created.id).status == "PENDING"


def test_missing_request_reports_not_found(db, actors):
    result = material_actions.approve_material_request(
        db, actors["pm"], "missing", MaterialRequestApproveIn(approved=True)
    )

    assert not result.success
    assert result.code == "request_not_found"


def test_unexpected_failure_is_rolled_back_with_generic_message(db, actors, make_material, monkeypatch):
    material = make_material()
    created = _create(db, actors["employee"], material, quantity=2)
    _approve(db, actors["pm"], created.id)
    _stock_store(db, material, 5)

    def _broken_append(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(workflow.transaction_log, "append", _broken_append)
    result = material_actions.issue_material_request(
        db, actors["store"], created.id, MaterialRequestIssueIn(issued_quantity=2)
    )

    assert not result.success
    assert result.code == "internal_error"
    assert result.error == "Failed to issue material request"
    assert inventory_ledger.get_balance(db, material.id, LocationKey.store()) == Decimal("5")
    assert db.get(MaterialRequest, created.id).status == "APPROVED"


def test_reconciliation_matches_after_mixed_movements(db, actors, make_material):
    material = make_material()
    created = _create(db, actors["employee"], material, quantity=3)
    _approve(db, actors["pm"], created.id)

    from constructpro.schemas.inventory import InventoryAdjustIn, InventoryTransferIn, LocationIn

    adjusted = material_actions.adjust_inventory(
        db,
        actors["store"],
        InventoryAdjustIn(
            material_id=material.id,
            location=LocationIn(type="STORE", reference="Main Store"),
            adjustment_type="INCREASE",
            quantity=10,
            reason="Delivery received",
        ),
    )
    assert adjusted.success, adjusted.error
    material_actions.issue_material_request(
        db, actors["store"], created.id, MaterialRequestIssueIn(issued_quantity=3)
    )
    moved = material_actions.transfer_material(
        db,
        actors["store"],
        InventoryTransferIn(
            material_id=material.id,
            from_location=LocationIn(type="SITE", reference="Site Stock", project_id=12),
            to_location=LocationIn(type="SITE", reference="Site Stock", project_id=14),
            quantity=1,
        ),
    )
    assert moved.success, moved.error

    report = material_actions.reconcile_inventory(db, actors["admin"], material_id=material.id)

    assert report.success
    assert report.data.balanced is True
    balances = {
        (line.location.location_type, line.location.project_id): line.ledger_balance
        for line in report.data.lines
    }
    assert balances == {("STORE", 0): 7.0, ("SITE", 12): 2.0, ("SITE", 14): 1.0}
