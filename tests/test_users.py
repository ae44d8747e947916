"""Tests for user management inside a tenant."""
import pytest

from taskboard.core.exceptions import (
    AuthorizationDenied,
    ConflictError,
    SelfDeleteDenied,
    UserNotFoundError,
    ValidationFailed,
)
from taskboard.core.security import verify_password
from taskboard.models.audit import AuditEntry
from taskboard.models.project import Project
from taskboard.models.task import Task
from taskboard.models.user import User, UserRole
from taskboard.services import projects as project_service
from taskboard.services import tasks as task_service
from taskboard.services import users as user_service

from conftest import make_user, principal_for


class TestAddUser:
    def test_admin_adds_member(self, db, acme, acme_admin):
        user = user_service.add_user(
            db, principal_for(acme_admin), acme.id, "New@Acme.com", "password123", "New Person"
        )
        assert user.tenant_id == acme.id
        assert user.email == "new@acme.com"
        assert user.role == UserRole.USER
        assert verify_password("password123", user.password_hash)

        [entry] = db.query(AuditEntry).all()
        assert (entry.action, entry.entity_id, entry.tenant_id) == ("CREATE_USER", user.id, acme.id)

    def test_duplicate_email_in_tenant(self, db, acme, acme_admin, acme_user):
        with pytest.raises(ConflictError):
            user_service.add_user(db, principal_for(acme_admin), acme.id, acme_user.email, "password123", "Dup")
        assert db.query(AuditEntry).count() == 0

    def test_same_email_in_another_tenant(self, db, acme, globex, acme_user, globex_admin):
        user = user_service.add_user(
            db, principal_for(globex_admin), globex.id, acme_user.email, "password123", "Twin"
        )
        assert user.tenant_id == globex.id

    def test_regular_user_cannot_add(self, db, acme, acme_user):
        with pytest.raises(AuthorizationDenied):
            user_service.add_user(db, principal_for(acme_user), acme.id, "x@acme.com", "password123", "X")

    def test_admin_cannot_add_to_other_tenant(self, db, acme_admin, globex):
        with pytest.raises(AuthorizationDenied):
            user_service.add_user(db, principal_for(acme_admin), globex.id, "x@globex.com", "password123", "X")
        assert db.query(User).filter(User.tenant_id == globex.id).count() == 0

    def test_super_admin_role_not_assignable(self, db, acme, acme_admin):
        with pytest.raises(ValidationFailed):
            user_service.add_user(
                db, principal_for(acme_admin), acme.id, "x@acme.com", "password123", "X",
                role=UserRole.SUPER_ADMIN,
            )

    def test_super_admin_adds_to_any_tenant(self, db, super_admin, globex):
        user = user_service.add_user(
            db, principal_for(super_admin), globex.id, "boss@globex.com", "password123", "Boss",
            role=UserRole.TENANT_ADMIN,
        )
        assert user.tenant_id == globex.id
        assert db.query(AuditEntry).one().actor_id == super_admin.id


class TestListUsers:
    def test_member_lists_own_tenant_only(self, db, acme, acme_admin, acme_user, globex_admin):
        users, total = user_service.list_users(db, principal_for(acme_user), acme.id)
        assert total == 2
        assert {u.id for u in users} == {acme_admin.id, acme_user.id}

    def test_search_and_role_filter(self, db, acme, acme_admin, acme_user):
        users, total = user_service.list_users(db, principal_for(acme_admin), acme.id, search="ALICE")
        assert [u.id for u in users] == [acme_user.id]

        users, total = user_service.list_users(
            db, principal_for(acme_admin), acme.id, role=UserRole.TENANT_ADMIN
        )
        assert [u.id for u in users] == [acme_admin.id]

    def test_other_tenant_denied(self, db, acme_user, globex):
        with pytest.raises(AuthorizationDenied):
            user_service.list_users(db, principal_for(acme_user), globex.id)


class TestUpdateUser:
    def test_user_updates_own_name(self, db, acme_user):
        user = user_service.update_user(db, principal_for(acme_user), acme_user.id, {"full_name": "Alice B"})
        assert user.full_name == "Alice B"
        assert db.query(AuditEntry).one().action == "UPDATE_USER"

    def test_user_cannot_change_own_role(self, db, acme_user):
        with pytest.raises(AuthorizationDenied):
            user_service.update_user(db, principal_for(acme_user), acme_user.id, {"role": "tenant_admin"})
        db.expire_all()
        assert acme_user.role == UserRole.USER
        assert db.query(AuditEntry).count() == 0

    def test_user_cannot_edit_someone_else(self, db, acme_admin, acme_user):
        with pytest.raises(AuthorizationDenied):
            user_service.update_user(db, principal_for(acme_user), acme_admin.id, {"full_name": "Hacked"})

    def test_admin_changes_role_and_status(self, db, acme_admin, acme_user):
        user = user_service.update_user(
            db, principal_for(acme_admin), acme_user.id, {"role": "tenant_admin", "is_active": False}
        )
        assert user.role == UserRole.TENANT_ADMIN
        assert user.is_active is False

    def test_user_in_other_tenant_not_found(self, db, acme_admin, globex_admin):
        with pytest.raises(UserNotFoundError):
            user_service.update_user(db, principal_for(acme_admin), globex_admin.id, {"full_name": "X"})

    def test_path_tenant_must_match(self, db, super_admin, acme_user, globex):
        with pytest.raises(UserNotFoundError):
            user_service.update_user(
                db, principal_for(super_admin), acme_user.id, {"full_name": "X"}, tenant_id=globex.id
            )

    @pytest.mark.parametrize("changes", [{}, {"email": "new@acme.com"}, {"full_name": None}])
    def test_invalid_changes(self, db, acme_admin, acme_user, changes):
        with pytest.raises(ValidationFailed):
            user_service.update_user(db, principal_for(acme_admin), acme_user.id, changes)


class TestDeleteUser:
    def test_self_delete_refused(self, db, acme_admin):
        with pytest.raises(SelfDeleteDenied):
            user_service.delete_user(db, principal_for(acme_admin), acme_admin.id)
        assert db.get(User, acme_admin.id) is not None

    def test_regular_user_cannot_delete(self, db, acme_admin, acme_user):
        with pytest.raises(AuthorizationDenied):
            user_service.delete_user(db, principal_for(acme_user), acme_admin.id)

    def test_other_tenant_not_found(self, db, acme_admin, globex_admin):
        with pytest.raises(UserNotFoundError):
            user_service.delete_user(db, principal_for(acme_admin), globex_admin.id)

    def test_work_survives_the_user(self, db, acme, acme_admin):
        leaver = make_user(db, acme, "leaver@acme.com")
        project = project_service.create_project(db, principal_for(leaver), "Leaver's project")
        task = task_service.create_task(
            db, principal_for(acme_admin), project.id, "Handover", assigned_to=leaver.id
        )

        user_service.delete_user(db, principal_for(acme_admin), leaver.id)

        db.expire_all()
        assert db.get(User, leaver.id) is None
        assert db.get(Project, project.id).created_by is None
        assert db.get(Task, task.id).assigned_to is None

        entry = db.query(AuditEntry).filter(AuditEntry.action == "DELETE_USER").one()
        assert entry.entity_id == leaver.id
        assert entry.tenant_id == acme.id

    def test_deleted_users_slot_is_freed(self, db, acme, acme_admin):
        for i in range(4):
            make_user(db, acme, f"user{i}@acme.com")
        victim = db.query(User).filter(User.email == "user0@acme.com").one()

        user_service.delete_user(db, principal_for(acme_admin), victim.id)
        user_service.add_user(db, principal_for(acme_admin), acme.id, "fresh@acme.com", "password123", "Fresh")
