from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from asset_register.api.dependencies import get_db, get_permissions
from asset_register.permissions.matrix import DEPARTMENT_WIDE, Action, PermissionMatrix
from asset_register.permissions.roles import RoleService

router = APIRouter(tags=["roles"])


class RoleCreate(BaseModel):
    name: str
    description: str | None = None


class PermissionGrant(BaseModel):
    department: str
    category: str | None = None
    actions: list[Action]


class PermissionUpdate(BaseModel):
    grants: list[PermissionGrant]


def _require_admin(permissions: PermissionMatrix) -> None:
    if not permissions.is_admin:
        raise HTTPException(403, "Only administrators can manage roles")


def _role_dict(role) -> dict:
    return {
        "id": role.id,
        "name": role.name,
        "description": role.description,
        "permissions": [
            {
                "department": p.department,
                "category": p.category or DEPARTMENT_WIDE,
                "actions": [a.value for a in Action if getattr(p, f"can_{a.value}")],
            }
            for p in role.permissions
        ],
        "users": [ur.user_id for ur in role.user_roles],
    }


@router.get("/permissions/me")
def my_permissions(permissions: PermissionMatrix = Depends(get_permissions)):
    """The caller's resolved permission matrix."""
    return permissions.as_dict()


@router.get("/roles")
def list_roles(
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    _require_admin(permissions)
    return [_role_dict(r) for r in RoleService(session).list_roles()]


@router.post("/roles", status_code=201)
def create_role(
    body: RoleCreate,
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    _require_admin(permissions)
    try:
        role = RoleService(session).create_role(body.name, body.description)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return _role_dict(role)


@router.delete("/roles/{role_id}")
def delete_role(
    role_id: int,
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    _require_admin(permissions)
    try:
        RoleService(session).delete_role(role_id)
    except LookupError as e:
        raise HTTPException(404, str(e))
    return {"deleted": role_id}


@router.put("/roles/{role_id}/permissions")
def replace_permissions(
    role_id: int,
    body: PermissionUpdate,
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    """Replace every permission of a role.

    A missing category, or the ``_department`` key, grants the whole department.
    """
    _require_admin(permissions)
    grants = {}
    for g in body.grants:
        category = None if g.category in (None, "", DEPARTMENT_WIDE) else g.category
        grants[(g.department, category)] = g.actions

    service = RoleService(session)
    try:
        service.replace_permissions(role_id, grants)
        role = service.get_role(role_id)
    except LookupError as e:
        raise HTTPException(404, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))
    session.refresh(role)
    return _role_dict(role)


@router.put("/roles/{role_id}/users/{user_id}")
def assign_role(
    role_id: int,
    user_id: str,
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    _require_admin(permissions)
    try:
        RoleService(session).assign_role(user_id, role_id)
    except LookupError as e:
        raise HTTPException(404, str(e))
    return {"user_id": user_id, "role_id": role_id}


@router.delete("/roles/{role_id}/users/{user_id}")
def remove_role(
    role_id: int,
    user_id: str,
    session: Session = Depends(get_db),
    permissions: PermissionMatrix = Depends(get_permissions),
):
    _require_admin(permissions)
    removed = RoleService(session).remove_role(user_id, role_id)
    if not removed:
        raise HTTPException(404, f"User {user_id} does not have role {role_id}")
    return {"user_id": user_id, "role_id": role_id}
