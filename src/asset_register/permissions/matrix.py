"""Typed permission lookup keyed by department and category.

Grants are stored per ``(Department, category)`` pair, where a ``None``
category is a department-wide grant covering every category of that
department. Unknown departments or categories are rejected with
``UnknownPermissionKey`` rather than read as "no permission".
"""

from collections.abc import Iterable, Mapping
from enum import Enum

from asset_register.models.reference import Department, categories_for


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    EXPORT = "export"


class PermissionLevel(str, Enum):
    ADMIN = "admin"
    VIEWER = "viewer"
    DEPARTMENT = "department"
    CATEGORY = "category"


class UnknownPermissionKey(ValueError):
    pass


# Category key used for department-wide grants in serialized permission maps.
DEPARTMENT_WIDE = "_department"

PermissionKey = tuple[Department, str | None]


def resolve_key(department: Department | str, category: str | None) -> PermissionKey:
    """Validate a department/category pair and return it in typed form."""
    try:
        dept = Department(department)
    except ValueError:
        raise UnknownPermissionKey(f"Unknown department: {department}") from None
    if category is not None and category not in categories_for(dept):
        raise UnknownPermissionKey(
            f"Unknown category '{category}' for department '{dept.value}'"
        )
    return dept, category


class PermissionMatrix:
    """Actions a user may perform, per department and category."""

    def __init__(
        self,
        grants: Mapping[PermissionKey, Iterable[Action]] | None = None,
        is_admin: bool = False,
    ):
        self.is_admin = is_admin
        self._grants: dict[PermissionKey, frozenset[Action]] = {}
        for (department, category), actions in (grants or {}).items():
            key = resolve_key(department, category)
            self._grants[key] = self._grants.get(key, frozenset()) | frozenset(
                Action(a) for a in actions
            )

    @classmethod
    def admin(cls) -> "PermissionMatrix":
        return cls(is_admin=True)

    @classmethod
    def from_rows(cls, rows: Iterable, is_admin: bool = False) -> "PermissionMatrix":
        """Build a matrix from ``RolePermission``-shaped rows.

        Rows from several roles merge: an action granted by any role is allowed.
        """
        grants: dict[PermissionKey, set[Action]] = {}
        for row in rows:
            category = row.category
            if category in ("", DEPARTMENT_WIDE):
                category = None
            key = resolve_key(row.department, category)
            actions = grants.setdefault(key, set())
            for action in Action:
                if getattr(row, f"can_{action.value}", False):
                    actions.add(action)
        return cls(grants, is_admin=is_admin)

    def allows(
        self,
        department: Department | str,
        category: str | None,
        action: Action | str,
    ) -> bool:
        dept, cat = resolve_key(department, category)
        action = Action(action)
        if self.is_admin:
            return True
        if action in self._grants.get((dept, None), frozenset()):
            return True
        if cat is not None:
            return action in self._grants.get((dept, cat), frozenset())
        return False

    @property
    def level(self) -> PermissionLevel:
        """Coarse level: admin, department-wide, category-scoped, or read-only."""
        if self.is_admin:
            return PermissionLevel.ADMIN
        writes = {Action.CREATE, Action.UPDATE, Action.DELETE}
        department_wide = (
            actions for (_, c), actions in self._grants.items() if c is None
        )
        if any(actions & writes for actions in department_wide):
            return PermissionLevel.DEPARTMENT
        if any(actions & writes for actions in self._grants.values()):
            return PermissionLevel.CATEGORY
        return PermissionLevel.VIEWER

    def as_dict(self) -> dict:
        out: dict[str, dict[str, list[str]]] = {}
        for (dept, cat), actions in self._grants.items():
            out.setdefault(dept.value, {})[cat or DEPARTMENT_WIDE] = sorted(
                a.value for a in actions
            )
        return {"is_admin": self.is_admin, "level": self.level.value, "grants": out}
