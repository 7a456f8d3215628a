"""
Permission Service: project-scoped RBAC lookups.

Evaluation is deny-by-default:
  - admins are always allowed
  - inactive users are never allowed
  - otherwise the user's membership role in the project must grant the codename
"""

import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func

from bimtrack.models import db
from bimtrack.models.auth import Permission, ProjectMember, RolePermission, User

logger = logging.getLogger(__name__)

ADD_NOTES = "add_work_package_notes"
ADD_WORK_PACKAGES = "add_work_packages"
EDIT_WORK_PACKAGES = "edit_work_packages"
MANAGE_BCF = "manage_bcf"


def get_user_permissions(user_id: int, project_id: int) -> set[str]:
    rows = (
        db.session.query(Permission.codename)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .join(ProjectMember, ProjectMember.role_id == RolePermission.role_id)
        .filter(ProjectMember.user_id == user_id, ProjectMember.project_id == project_id)
        .all()
    )
    return {r[0] for r in rows}


def has_permission(user, codename: str, project) -> bool:
    if user is None or project is None:
        return False
    if not user.is_active:
        return False
    if user.is_admin:
        return True
    return codename in get_user_permissions(user.id, project.id)


def can_add_notes(user, project) -> bool:
    return has_permission(user, ADD_NOTES, project)


def is_project_member(user_id: int, project_id: int) -> bool:
    return (
        db.session.query(ProjectMember.id)
        .filter_by(user_id=user_id, project_id=project_id)
        .first()
    ) is not None


def _normalize_email(email: str) -> str | None:
    if not email:
        return None
    try:
        return validate_email(email, check_deliverability=False).normalized.lower()
    except EmailNotValidError:
        return None


def find_member_by_email(project, email: str):
    """Return the project member (a User) whose e-mail matches, or None.

    The comparison is case-insensitive. Malformed addresses never match.
    """
    normalized = _normalize_email(email)
    if normalized is None:
        logger.debug("Ignoring unusable author address %r", email)
        return None
    return (
        User.query
        .join(ProjectMember, ProjectMember.user_id == User.id)
        .filter(
            ProjectMember.project_id == project.id,
            func.lower(User.email) == normalized,
        )
        .first()
    )
