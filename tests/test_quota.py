"""Tests for plan quota enforcement, including concurrent creations."""
import threading

import pytest

from taskboard.core import quota
from taskboard.core.exceptions import QuotaExceededError, TenantNotFoundError
from taskboard.core.quota import QuotaKind
from taskboard.database import transaction
from taskboard.models.audit import AuditEntry
from taskboard.models.project import Project
from taskboard.models.tenant import Tenant
from taskboard.models.user import User, UserRole
from taskboard.services import projects as project_service
from taskboard.services import users as user_service

from conftest import make_tenant, make_user, principal_for


def _fill_projects(db, tenant, count):
    for i in range(count):
        db.add(Project(tenant_id=tenant.id, name=f"Existing {i}"))
    db.commit()


class TestReserve:
    def test_usage_reports_limit_and_remaining(self, db):
        tenant = make_tenant(db, "acme", max_projects=3)
        _fill_projects(db, tenant, 1)

        with transaction(db):
            current = quota.reserve(db, tenant.id, QuotaKind.PROJECTS)
        assert (current.used, current.limit, current.remaining) == (1, 3, 2)

    def test_at_limit_raises(self, db):
        tenant = make_tenant(db, "acme", max_projects=2)
        _fill_projects(db, tenant, 2)

        with pytest.raises(QuotaExceededError) as exc_info:
            with transaction(db):
                quota.reserve(db, tenant.id, QuotaKind.PROJECTS)
        assert exc_info.value.kind == "projects"
        assert exc_info.value.limit == 2
        assert exc_info.value.status_code == 403

    def test_counts_only_the_tenant(self, db):
        acme = make_tenant(db, "acme", max_projects=1)
        globex = make_tenant(db, "globex", max_projects=1)
        _fill_projects(db, globex, 1)

        with transaction(db):
            assert quota.reserve(db, acme.id, QuotaKind.PROJECTS).used == 0

    def test_unknown_tenant(self, db):
        with pytest.raises(TenantNotFoundError):
            with transaction(db):
                quota.reserve(db, "missing", QuotaKind.USERS)

    def test_inactive_users_still_count(self, db):
        tenant = make_tenant(db, "acme", max_users=1)
        make_user(db, tenant, "idle@acme.com", is_active=False)

        with pytest.raises(QuotaExceededError):
            with transaction(db):
                quota.reserve(db, tenant.id, QuotaKind.USERS)

    def test_limit_reread_inside_transaction(self, db, session_factory):
        tenant = make_tenant(db, "acme", max_projects=1)
        _fill_projects(db, tenant, 1)

        other = session_factory()
        try:
            with transaction(other):
                other.get(Tenant, tenant.id).max_projects = 2
        finally:
            other.close()

        # ``tenant`` in this session still says 1
        with transaction(db):
            assert quota.reserve(db, tenant.id, QuotaKind.PROJECTS).limit == 2


class TestSequentialLimits:
    def test_sixth_user_refused(self, db):
        tenant = make_tenant(db, "acme", max_users=5)
        admin = make_user(db, tenant, "admin@acme.com", role=UserRole.TENANT_ADMIN)
        principal = principal_for(admin)

        for i in range(4):
            user_service.add_user(db, principal, tenant.id, f"user{i}@acme.com", "password123", f"User {i}")

        with pytest.raises(QuotaExceededError):
            user_service.add_user(db, principal, tenant.id, "sixth@acme.com", "password123", "Sixth")

        assert db.query(User).filter(User.tenant_id == tenant.id).count() == 5
        assert db.query(AuditEntry).filter(AuditEntry.action == "CREATE_USER").count() == 4

    def test_fourth_project_refused(self, db):
        tenant = make_tenant(db, "acme", max_projects=3)
        member = principal_for(make_user(db, tenant, "bob@acme.com"))

        for i in range(3):
            project_service.create_project(db, member, f"Project {i}")
        with pytest.raises(QuotaExceededError):
            project_service.create_project(db, member, "Project 3")

        assert db.query(Project).filter(Project.tenant_id == tenant.id).count() == 3

    def test_deleting_frees_a_slot(self, db):
        tenant = make_tenant(db, "acme", max_projects=1)
        member = principal_for(make_user(db, tenant, "bob@acme.com"))

        project = project_service.create_project(db, member, "First")
        project_service.delete_project(db, member, project.id)
        project_service.create_project(db, member, "Second")


class TestConcurrentCreation:
    def _race(self, session_factory, principal, attempts):
        barrier = threading.Barrier(attempts)
        outcomes = []
        lock = threading.Lock()

        def worker(index):
            session = session_factory()
            try:
                barrier.wait()
                project_service.create_project(session, principal, f"Concurrent {index}")
                result = "created"
            except QuotaExceededError:
                result = "refused"
            finally:
                session.close()
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(attempts)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)
        return outcomes

    @pytest.mark.parametrize("existing,expected_created", [(2, 1), (3, 0), (0, 3)])
    def test_never_exceeds_limit(self, db, session_factory, existing, expected_created):
        tenant = make_tenant(db, "acme", max_projects=3)
        _fill_projects(db, tenant, existing)
        principal = principal_for(make_user(db, tenant, "bob@acme.com"))
        db.close()

        outcomes = self._race(session_factory, principal, attempts=5)

        assert len(outcomes) == 5
        assert outcomes.count("created") == expected_created
        assert outcomes.count("refused") == 5 - expected_created

        check = session_factory()
        try:
            assert check.query(Project).filter(Project.tenant_id == tenant.id).count() == existing + expected_created
            created_entries = check.query(AuditEntry).filter(AuditEntry.action == "CREATE_PROJECT").count()
            assert created_entries == expected_created
        finally:
            check.close()
