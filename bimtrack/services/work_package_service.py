"""
Work package service layer: create, update and annotate work packages.

Transaction policy: methods use flush() for ID generation, never commit().
Caller (route handler / importer) is responsible for db.session.commit().

Every operation validates first and mutates second, so a failed call
leaves the session untouched and reports why through ``ServiceResult``.
"""

import logging

from bimtrack.models import db
from bimtrack.models.project import Project
from bimtrack.models.work_package import Journal, Status, Type, WorkPackage
from bimtrack.services import permission_service

logger = logging.getLogger(__name__)

SUBJECT_MAX_LENGTH = 255
_WRITABLE_FIELDS = ("subject", "description", "status_id", "type_id", "project_id")


class ServiceResult:
    """Structured return value from work package operations.

    Attributes:
        success:  True if the operation was applied.
        result:   The created/updated entity (WorkPackage or Journal), else None.
        errors:   Human-readable error messages (empty on success).
    """

    def __init__(self, success: bool, result=None, errors: list[str] | None = None) -> None:
        self.success = success
        self.result = result
        self.errors = list(errors or [])

    @classmethod
    def ok(cls, result):
        return cls(True, result=result)

    @classmethod
    def failure(cls, *errors: str):
        return cls(False, errors=list(errors))

    def full_messages(self) -> str:
        return "; ".join(self.errors)

    def __repr__(self):
        state = "success" if self.success else f"failure: {self.full_messages()}"
        return f"<ServiceResult {state}>"


def _normalize_attributes(attributes: dict) -> dict:
    """Accept ``project``/``type``/``status`` objects as well as ids."""
    data = dict(attributes)
    for key in ("project", "type", "status"):
        if key in data:
            obj = data.pop(key)
            data[f"{key}_id"] = obj.id if obj is not None else None
    return {k: v for k, v in data.items() if k in _WRITABLE_FIELDS}


def _validate(data: dict, *, partial: bool) -> list[str]:
    errors = []
    if not partial or "subject" in data:
        subject = (data.get("subject") or "").strip()
        if not subject:
            errors.append("Subject can't be blank.")
        elif len(subject) > SUBJECT_MAX_LENGTH:
            errors.append(f"Subject is too long (maximum is {SUBJECT_MAX_LENGTH} characters).")
    if not partial or "project_id" in data:
        if data.get("project_id") is None:
            errors.append("Project can't be blank.")
    if not partial or "type_id" in data:
        type_id = data.get("type_id")
        if type_id is None or db.session.get(Type, type_id) is None:
            errors.append("Type can't be blank.")
    if not partial or "status_id" in data:
        status_id = data.get("status_id")
        if status_id is None or db.session.get(Status, status_id) is None:
            errors.append("Status is invalid.")
    return errors


def create_work_package(attributes: dict, author) -> ServiceResult:
    """Create a work package on behalf of ``author``.

    ``attributes`` may carry ``project``/``type`` objects or their ids.
    Returns a ServiceResult holding the flushed WorkPackage.
    """
    data = _normalize_attributes(attributes)
    if data.get("status_id") is None:
        default = Status.default()
        data["status_id"] = default.id if default else None

    errors = _validate(data, partial=False)
    if errors:
        return ServiceResult.failure(*errors)

    project = db.session.get(Project, data["project_id"])
    if not permission_service.has_permission(
        author, permission_service.ADD_WORK_PACKAGES, project
    ):
        return ServiceResult.failure("You are not authorized to create work packages.")

    wp = WorkPackage(author_id=author.id if author else None, **data)
    db.session.add(wp)
    db.session.flush()
    logger.info("Created work package %s in project %s", wp.id, wp.project_id)
    return ServiceResult.ok(wp)


def update_work_package(work_package: WorkPackage, attributes: dict, author) -> ServiceResult:
    """Apply ``attributes`` to an existing work package.

    Returns a ServiceResult holding the flushed WorkPackage.
    """
    data = _normalize_attributes(attributes)
    errors = _validate(data, partial=True)
    if errors:
        return ServiceResult.failure(*errors)

    if not permission_service.has_permission(
        author, permission_service.EDIT_WORK_PACKAGES, work_package.project
    ):
        return ServiceResult.failure("You are not authorized to edit this work package.")

    changed = False
    for field, value in data.items():
        if getattr(work_package, field) != value:
            setattr(work_package, field, value)
            changed = True
    if changed:
        work_package.lock_version = (work_package.lock_version or 0) + 1
    db.session.flush()
    logger.debug("Updated work package %s (changed=%s)", work_package.id, changed)
    return ServiceResult.ok(work_package)


def add_note(work_package: WorkPackage, author, notes: str) -> ServiceResult:
    """Append a note authored by ``author`` to the work package thread.

    Returns a ServiceResult holding the flushed Journal.
    """
    if work_package is None:
        return ServiceResult.failure("Work package can't be blank.")
    if not (notes or "").strip():
        return ServiceResult.failure("Notes can't be blank.")
    if not permission_service.can_add_notes(author, work_package.project):
        return ServiceResult.failure("You are not authorized to add notes to this work package.")

    journal = Journal(work_package_id=work_package.id, user_id=author.id, notes=notes)
    db.session.add(journal)
    db.session.flush()
    return ServiceResult.ok(journal)
