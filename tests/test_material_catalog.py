from decimal import Decimal

from constructpro.schemas.material import MaterialCreateIn, MaterialUpdateIn
from constructpro.schemas.supplier import SupplierCreateIn, SupplierUpdateIn
from constructpro.services import inventory_ledger, material_actions
from constructpro.services.locations import LocationKey


def _material_payload(**overrides) -> MaterialCreateIn:
    data = {
        "material_code": "reb-12",
        "name": "Rebar 12mm",
        "category": "Steel",
        "unit": "ton",
        "unit_cost": "650.00",
        "minimum_stock_level": "2",
        "maximum_stock_level": "40",
    }
    data.update(overrides)
    return MaterialCreateIn(**data)


def test_store_manager_manages_catalog(db, make_user):
    store = make_user("store_manager")

    created = material_actions.create_material(db, store, _material_payload())

    assert created.success, created.error
    assert created.data.material_code == "REB-12"
    assert created.data.unit_cost == 650.0
    assert created.data.is_active is True

    updated = material_actions.update_material(
        db, store, created.data.id, MaterialUpdateIn(name="Rebar 12mm Y-bar", is_active=False)
    )
    assert updated.success, updated.error
    assert updated.data.name == "Rebar 12mm Y-bar"
    assert updated.data.is_active is False
    assert updated.data.unit_cost == 650.0


def test_employee_cannot_change_catalog(db, make_user):
    employee = make_user("employee")

    result = material_actions.create_material(db, employee, _material_payload())

    assert not result.success
    assert result.code == "unauthorized"


def test_material_codes_are_unique_ignoring_case(db, make_user):
    store = make_user("store_manager")
    material_actions.create_material(db, store, _material_payload())

    duplicate = material_actions.create_material(db, store, _material_payload(material_code="REB-12 "))

    assert not duplicate.success
    assert duplicate.code == "duplicate_code"


def test_update_checks_stock_level_bounds_against_stored_values(db, make_user):
    store = make_user("store_manager")
    created = material_actions.create_material(db, store, _material_payload())

    result = material_actions.update_material(
        db, store, created.data.id, MaterialUpdateIn(maximum_stock_level=Decimal("1"))
    )

    assert not result.success
    assert result.code == "validation_error"
    assert result.errors[0]["field"] == "maximum_stock_level"


def test_unknown_supplier_is_rejected(db, make_user):
    store = make_user("store_manager")

    result = material_actions.create_material(db, store, _material_payload(supplier_id="nope"))

    assert not result.success
    assert result.code == "supplier_not_found"


def test_delete_is_blocked_while_stock_exists(db, make_user, make_material):
    store = make_user("store_manager")
    stocked = make_material(code="SND-01")
    unused = make_material(code="GRV-01")
    inventory_ledger.credit(db, material_id=stocked.id, key=LocationKey.store(), quantity=1)
    db.commit()

    blocked = material_actions.delete_material(db, store, stocked.id)
    deleted = material_actions.delete_material(db, store, unused.id)

    assert not blocked.success
    assert blocked.code == "has_dependents"
    assert deleted.success
    assert material_actions.get_material(db, store, unused.id).code == "material_not_found"


def test_list_materials_reports_total_stock_and_low_stock(db, make_user, make_material):
    employee = make_user("employee")
    low = make_material(code="CEM-01", minimum_stock_level="10")
    healthy = make_material(code="CEM-02", minimum_stock_level="1")
    inventory_ledger.credit(db, material_id=low.id, key=LocationKey.store(), quantity=3)
    inventory_ledger.credit(db, material_id=low.id, key=LocationKey.site(4), quantity=2)
    inventory_ledger.credit(db, material_id=healthy.id, key=LocationKey.store(), quantity=5)
    db.commit()

    everything = material_actions.list_materials(db, employee)
    only_low = material_actions.list_materials(db, employee, low_stock=True)

    assert everything.data.pagination.total == 2
    stock_by_code = {item.material_code: item.total_stock for item in everything.data.items}
    assert stock_by_code == {"CEM-01": 5.0, "CEM-02": 5.0}
    assert [item.material_code for item in only_low.data.items] == ["CEM-01"]


def test_supplier_lifecycle(db, make_user):
    store = make_user("store_manager")

    supplier = material_actions.create_supplier(
        db, store, SupplierCreateIn(name="Lagos Steel", email="Sales@LagosSteel.example.com")
    )
    assert supplier.success, supplier.error
    assert supplier.data.email == "sales@lagossteel.example.com"

    material = material_actions.create_material(
        db, store, _material_payload(supplier_id=supplier.data.id)
    )
    assert material.data.supplier.name == "Lagos Steel"

    renamed = material_actions.update_supplier(
        db, store, supplier.data.id, SupplierUpdateIn(contact_person="Tunde")
    )
    assert renamed.data.contact_person == "Tunde"

    blocked = material_actions.delete_supplier(db, store, supplier.data.id)
    assert not blocked.success
    assert blocked.code == "has_dependents"

    listed = material_actions.list_suppliers(db, store, search="lagos")
    assert [item.name for item in listed.data.items] == ["Lagos Steel"]
