"""Business-rule failures raised by the materials core.

Every error carries a machine-readable ``code`` so the operation boundary can
turn it into a structured failure result without parsing messages.
"""

from decimal import Decimal
from typing import Any


class MaterialsError(Exception):
    code = "materials_error"

    def __init__(self, message: str, *, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class ValidationFailed(MaterialsError):
    code = "validation_error"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailed":
        return cls(message, errors=[{"field": field, "message": message, "type": "value_error"}])


class Unauthorized(MaterialsError):
    code = "unauthorized"


class MaterialNotFound(MaterialsError):
    code = "material_not_found"

    def __init__(self, material_id: str):
        super().__init__("Material not found")
        self.material_id = material_id


class RequestNotFound(MaterialsError):
    code = "request_not_found"

    def __init__(self, request_id: str):
        super().__init__("Material request not found")
        self.request_id = request_id


class SupplierNotFound(MaterialsError):
    code = "supplier_not_found"

    def __init__(self, supplier_id: str):
        super().__init__("Supplier not found")
        self.supplier_id = supplier_id


class InvalidStateTransition(MaterialsError):
    code = "invalid_state"

    def __init__(self, current_status: str, action: str):
        super().__init__(f"Cannot {action} a material request in {current_status} status")
        self.current_status = current_status
        self.action = action


class InsufficientStock(MaterialsError):
    code = "insufficient_stock"

    def __init__(self, *, available: Decimal, requested: Decimal, location: str):
        super().__init__(f"Insufficient stock at {location}: available {available}, requested {requested}")
        self.available = available
        self.requested = requested
        self.location = location


class HasDependents(MaterialsError):
    code = "has_dependents"


class DuplicateCode(MaterialsError):
    code = "duplicate_code"
