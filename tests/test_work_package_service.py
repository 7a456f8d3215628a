"""
Tests for the work package service layer.

Covers:
    - create: defaults, validation errors, permission check
    - update: partial validation, lock_version bump, permission check
    - add_note: blank notes, missing work package, permission check
"""

import pytest

from bimtrack.models import db
from bimtrack.models.work_package import Journal, WorkPackage
from bimtrack.services.work_package_service import (
    ServiceResult,
    add_note,
    create_work_package,
    update_work_package,
)


@pytest.fixture()
def work_package(project, issue_type, importer):
    result = create_work_package(
        {"subject": "Leak", "project": project, "type": issue_type}, importer,
    )
    db.session.commit()
    return result.result


class TestServiceResult:
    def test_ok(self):
        res = ServiceResult.ok("x")
        assert res.success and res.result == "x" and res.errors == []

    def test_failure_messages(self):
        res = ServiceResult.failure("A.", "B.")
        assert not res.success
        assert res.full_messages() == "A.; B."


class TestCreate:
    def test_defaults_status(self, project, issue_type, statuses, importer):
        res = create_work_package({"subject": "Leak", "project": project, "type": issue_type}, importer)
        assert res.success
        assert res.result.status_id == statuses["New"].id
        assert res.result.author_id == importer.id
        assert res.result.id is not None

    def test_accepts_ids(self, project, issue_type, statuses, importer):
        res = create_work_package({
            "subject": "Leak", "project_id": project.id, "type_id": issue_type.id,
            "status_id": statuses["Open"].id,
        }, importer)
        assert res.success
        assert res.result.status_id == statuses["Open"].id

    def test_ignores_unknown_attributes(self, project, issue_type, importer):
        res = create_work_package(
            {"subject": "Leak", "project": project, "type": issue_type, "lock_version": 9},
            importer,
        )
        assert res.result.lock_version == 0

    def test_collects_all_errors(self, importer):
        res = create_work_package({"subject": "  ", "type": None}, importer)
        assert not res.success
        assert res.errors == [
            "Subject can't be blank.",
            "Project can't be blank.",
            "Type can't be blank.",
            "Status is invalid.",
        ]
        assert WorkPackage.query.count() == 0

    def test_subject_too_long(self, project, issue_type, importer):
        res = create_work_package({"subject": "x" * 256, "project": project, "type": issue_type}, importer)
        assert res.errors == ["Subject is too long (maximum is 255 characters)."]

    def test_requires_permission(self, project, issue_type, member_factory, reader_role):
        viewer = member_factory("viewer@example.com", role=reader_role)
        res = create_work_package({"subject": "Leak", "project": project, "type": issue_type}, viewer)
        assert res.errors == ["You are not authorized to create work packages."]
        assert WorkPackage.query.count() == 0


class TestUpdate:
    def test_changes_bump_lock_version(self, work_package, statuses, importer):
        res = update_work_package(work_package, {"subject": "Leak fixed", "status_id": statuses["Closed"].id}, importer)
        assert res.success
        assert work_package.subject == "Leak fixed"
        assert work_package.lock_version == 1

    def test_no_change_keeps_lock_version(self, work_package, importer):
        update_work_package(work_package, {"subject": "Leak"}, importer)
        assert work_package.lock_version == 0

    def test_partial_validation(self, work_package, importer):
        res = update_work_package(work_package, {"status_id": 9999}, importer)
        assert res.errors == ["Status is invalid."]

    def test_requires_permission(self, work_package, member_factory, reader_role):
        viewer = member_factory("viewer@example.com", role=reader_role)
        res = update_work_package(work_package, {"subject": "Hijack"}, viewer)
        assert not res.success
        assert work_package.subject == "Leak"


class TestAddNote:
    def test_appends_journal(self, work_package, importer):
        res = add_note(work_package, importer, "Checked on site")
        assert res.success
        assert isinstance(res.result, Journal)
        assert res.result.user_id == importer.id
        assert work_package.journals.count() == 1

    def test_blank_notes(self, work_package, importer):
        assert add_note(work_package, importer, "   ").errors == ["Notes can't be blank."]

    def test_missing_work_package(self, importer):
        assert add_note(None, importer, "Hi").errors == ["Work package can't be blank."]

    def test_requires_permission(self, work_package, member_factory, reader_role):
        viewer = member_factory("viewer@example.com", role=reader_role)
        res = add_note(work_package, viewer, "Hi")
        assert not res.success
        assert work_package.journals.count() == 0
