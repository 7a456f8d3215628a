"""
BIM Issue Tracker
Request authentication helpers.

The API identifies the acting user through the ``X-User-Id`` header; an
upstream gateway is expected to authenticate the caller and set it.

Provides:
    - require_user: resolve the header into ``g.current_user``
    - require_project_permission: project-scoped permission guard
"""

import functools
import logging

from flask import g, request

from bimtrack.models import db
from bimtrack.models.auth import User
from bimtrack.models.project import Project
from bimtrack.services import permission_service
from bimtrack.utils.errors import E, api_error

logger = logging.getLogger(__name__)

USER_HEADER = "X-User-Id"


def _get_user_from_request():
    raw = request.headers.get(USER_HEADER, "").strip()
    if not raw.isdigit():
        return None
    user = db.session.get(User, int(raw))
    if user is None or not user.is_active:
        return None
    return user


def require_user(f):
    """
    Decorator: require a known, active user for the endpoint.

    Sets g.current_user.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        user = _get_user_from_request()
        if user is None:
            return api_error(E.UNAUTHORIZED, f"Authentication required. Provide {USER_HEADER} header.")
        g.current_user = user
        return f(*args, **kwargs)

    return decorated


def require_project_permission(codename: str):
    """
    Decorator: require ``codename`` on the project named by ``project_id``.

    Usage:
        @require_user
        @require_project_permission("manage_bcf")
        def import_bcf(project_id): ...

    Sets g.project.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            project = db.session.get(Project, kwargs.get("project_id"))
            if project is None:
                return api_error(E.NOT_FOUND, "Project not found")
            user = getattr(g, "current_user", None)
            if not permission_service.has_permission(user, codename, project):
                logger.warning(
                    "Access denied: user %s lacks %s on project %s",
                    getattr(user, "id", None), codename, project.id,
                )
                return api_error(E.FORBIDDEN, "You are not authorized to access this resource.")
            g.project = project
            return f(*args, **kwargs)

        return decorated

    return decorator
