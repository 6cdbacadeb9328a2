import logging
from collections.abc import Iterable, Mapping

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from asset_register.models.orm import Role, RolePermission, UserRole
from asset_register.permissions.matrix import Action, PermissionMatrix, resolve_key

logger = logging.getLogger("asset_register.permissions")

ADMIN_ROLE = "admin"


class RoleService:
    """Role, role assignment and role permission management."""

    def __init__(self, session: Session):
        self.session = session

    def list_roles(self) -> list[Role]:
        return list(self.session.scalars(select(Role).order_by(Role.name)).all())

    def get_role(self, role_id: int) -> Role:
        role = self.session.get(Role, role_id)
        if role is None:
            raise LookupError(f"Role {role_id} not found")
        return role

    def create_role(self, name: str, description: str | None = None) -> Role:
        name = name.strip()
        if not name:
            raise ValueError("Role name is required")
        if self.session.execute(select(Role.id).where(Role.name == name)).first():
            raise ValueError(f"Role '{name}' already exists")
        role = Role(name=name, description=description)
        self.session.add(role)
        self.session.flush()
        logger.info("Created role %s", name)
        return role

    def delete_role(self, role_id: int) -> None:
        role = self.get_role(role_id)
        self.session.delete(role)
        self.session.flush()
        logger.info("Deleted role %s", role.name)

    def assign_role(self, user_id: str, role_id: int) -> UserRole:
        self.get_role(role_id)
        existing = self.session.execute(
            select(UserRole).where(
                UserRole.user_id == user_id, UserRole.role_id == role_id
            )
        ).scalar_one_or_none()
        if existing is not None:
            return existing
        user_role = UserRole(user_id=user_id, role_id=role_id)
        self.session.add(user_role)
        self.session.flush()
        return user_role

    def remove_role(self, user_id: str, role_id: int) -> int:
        result = self.session.execute(
            delete(UserRole).where(
                UserRole.user_id == user_id, UserRole.role_id == role_id
            )
        )
        return result.rowcount or 0

    def replace_permissions(
        self,
        role_id: int,
        grants: Mapping[tuple[str, str | None], Iterable[Action | str]],
    ) -> list[RolePermission]:
        """Replace every permission row of a role with ``grants``.

        Args:
            role_id: Role to update.
            grants: Actions keyed by ``(department, category)``; a ``None``
                category grants the whole department.
        """
        self.get_role(role_id)
        rows = []
        for (department, category), actions in grants.items():
            dept, cat = resolve_key(department, category)
            allowed = {Action(a) for a in actions}
            rows.append(
                RolePermission(
                    role_id=role_id,
                    department=dept.value,
                    category=cat,
                    **{f"can_{a.value}": a in allowed for a in Action},
                )
            )

        self.session.execute(
            delete(RolePermission).where(RolePermission.role_id == role_id)
        )
        self.session.add_all(rows)
        self.session.flush()
        return rows

    def matrix_for_user(self, user_id: str) -> PermissionMatrix:
        """Merge the permissions of every role assigned to ``user_id``."""
        roles = list(
            self.session.scalars(
                select(Role).join(UserRole).where(UserRole.user_id == user_id)
            ).all()
        )
        is_admin = any(r.name == ADMIN_ROLE for r in roles)
        rows = self.session.scalars(
            select(RolePermission).where(
                RolePermission.role_id.in_([r.id for r in roles])
            )
        ).all()
        return PermissionMatrix.from_rows(rows, is_admin=is_admin)
