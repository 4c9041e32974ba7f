from dataclasses import dataclass


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: str


PERMISSION_MATRIX: dict[str, set[str]] = {
    "admin": {"*"},
    "project_manager": {
        "materials.catalog.view",
        "materials.request.create",
        "materials.request.view",
        "materials.request.approve",
        "materials.request.complete",
        "materials.request.cancel",
        "materials.inventory.view",
    },
    "store_manager": {
        "materials.catalog.view",
        "materials.catalog.manage",
        "materials.request.create",
        "materials.request.view",
        "materials.request.issue",
        "materials.request.complete",
        "materials.inventory.view",
        "materials.inventory.adjust",
        "materials.inventory.transfer",
    },
    "employee": {
        "materials.catalog.view",
        "materials.request.create",
        "materials.request.view",
    },
}


def normalize_role(role: str | None) -> str:
    return (role or "").strip().lower().replace(" ", "_")


def role_permissions(role: str) -> set[str]:
    return set(PERMISSION_MATRIX.get(normalize_role(role), set()))


def has_permission(*, role: str, permission: str) -> bool:
    permissions = role_permissions(role)
    if "*" in permissions:
        return True
    return permission in permissions


def is_admin(user: CurrentUser) -> bool:
    return normalize_role(user.role) == "admin"
