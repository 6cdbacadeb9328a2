import pytest
from sqlalchemy import select

from asset_register.models.orm import RolePermission
from asset_register.permissions.matrix import Action, PermissionLevel
from asset_register.permissions.roles import ADMIN_ROLE, RoleService


@pytest.fixture
def roles(session):
    return RoleService(session)


class TestRoleService:
    def test_create_and_list(self, roles):
        roles.create_role("treasurer", "Keeps the books")
        roles.create_role("auditor")
        assert [r.name for r in roles.list_roles()] == ["auditor", "treasurer"]

    def test_duplicate_name_rejected(self, roles):
        roles.create_role("auditor")
        with pytest.raises(ValueError, match="already exists"):
            roles.create_role("auditor")

    def test_blank_name_rejected(self, roles):
        with pytest.raises(ValueError):
            roles.create_role("   ")

    def test_missing_role(self, roles):
        with pytest.raises(LookupError):
            roles.get_role(9999)

    def test_assign_is_idempotent(self, roles):
        role = roles.create_role("staff")
        first = roles.assign_role("user-1", role.id)
        second = roles.assign_role("user-1", role.id)
        assert first.id == second.id

    def test_remove_role(self, roles):
        role = roles.create_role("staff")
        roles.assign_role("user-1", role.id)
        assert roles.remove_role("user-1", role.id) == 1
        assert roles.remove_role("user-1", role.id) == 0

    def test_replace_permissions(self, roles, session):
        role = roles.create_role("teachers")
        roles.replace_permissions(role.id, {("education", None): [Action.READ]})
        roles.replace_permissions(
            role.id, {("education", "tpa"): ["read", "create"]}
        )
        rows = list(
            session.scalars(
                select(RolePermission).where(RolePermission.role_id == role.id)
            ).all()
        )
        assert len(rows) == 1
        assert rows[0].category == "tpa"
        assert rows[0].can_create is True
        assert rows[0].can_delete is False

    def test_replace_permissions_rejects_unknown_key(self, roles):
        role = roles.create_role("teachers")
        with pytest.raises(ValueError):
            roles.replace_permissions(role.id, {("education", "fixed"): ["read"]})

    def test_matrix_for_user_merges_roles(self, roles):
        readers = roles.create_role("readers")
        writers = roles.create_role("writers")
        roles.replace_permissions(readers.id, {("education", None): ["read"]})
        roles.replace_permissions(writers.id, {("education", "tki"): ["update"]})
        roles.assign_role("guru", readers.id)
        roles.assign_role("guru", writers.id)

        matrix = roles.matrix_for_user("guru")
        assert matrix.allows("education", "tki", Action.READ)
        assert matrix.allows("education", "tki", Action.UPDATE)
        assert not matrix.allows("education", "sdi", Action.UPDATE)
        assert not matrix.is_admin

    def test_admin_role(self, roles):
        admin = roles.create_role(ADMIN_ROLE)
        roles.assign_role("boss", admin.id)
        assert roles.matrix_for_user("boss").level is PermissionLevel.ADMIN

    def test_user_without_roles(self, roles):
        matrix = roles.matrix_for_user("nobody")
        assert not matrix.allows("ict", None, Action.READ)

    def test_delete_role_removes_assignments(self, roles):
        role = roles.create_role("temp")
        roles.replace_permissions(role.id, {("ict", None): ["read"]})
        roles.assign_role("user-2", role.id)
        roles.delete_role(role.id)
        assert not roles.matrix_for_user("user-2").allows("ict", None, Action.READ)
