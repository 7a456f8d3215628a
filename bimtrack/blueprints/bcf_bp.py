"""
BCF Blueprint: BCF archive import and imported issue browsing.

Endpoints:
  POST /api/v1/projects/<project_id>/bcf/import          - Upload & import a .bcfzip
  GET  /api/v1/projects/<project_id>/bcf/issues          - List imported issues
  GET  /api/v1/projects/<project_id>/bcf/issues/<uuid>   - Issue with viewpoints & comments
"""

import logging

from flask import Blueprint, g, jsonify, request

from bimtrack.auth import require_project_permission, require_user
from bimtrack.core.exceptions import InvalidArchiveError, NotFoundError
from bimtrack.models.bcf import BcfIssue
from bimtrack.services.bcf_import_service import import_archive
from bimtrack.services.permission_service import MANAGE_BCF
from bimtrack.utils.errors import E, api_error

logger = logging.getLogger(__name__)

bcf_bp = Blueprint("bcf_bp", __name__, url_prefix="/api/v1/projects/<int:project_id>/bcf")


# ═══════════════════════════════════════════════════════════════
# Error Handler
# ═══════════════════════════════════════════════════════════════
@bcf_bp.errorhandler(InvalidArchiveError)
def handle_invalid_archive(e):
    return api_error(E.VALIDATION_INVALID, str(e))


# ═══════════════════════════════════════════════════════════════
# Import
# ═══════════════════════════════════════════════════════════════
@bcf_bp.route("/import", methods=["POST"])
@require_user
@require_project_permission(MANAGE_BCF)
def import_bcf(project_id):
    """Upload and import a BCF archive into the project."""
    upload = request.files.get("file")
    if upload is None:
        return api_error(E.VALIDATION_REQUIRED, "BCF archive is required (multipart field 'file')")

    logger.info(
        "BCF upload %s by user %s", upload.filename, g.current_user.id,
        extra={"project_id": project_id, "user_id": g.current_user.id},
    )
    result = import_archive(g.project, upload.read(), g.current_user)

    status_code = 200
    if result["status"] == "partial":
        status_code = 207
    elif result["status"] == "error":
        status_code = 422
    return jsonify(result), status_code


# ═══════════════════════════════════════════════════════════════
# Browse
# ═══════════════════════════════════════════════════════════════
@bcf_bp.route("/issues", methods=["GET"])
@require_user
@require_project_permission(MANAGE_BCF)
def list_issues(project_id):
    issues = (
        BcfIssue.query.filter_by(project_id=project_id)
        .order_by(BcfIssue.id)
        .all()
    )
    return jsonify({"items": [i.to_dict() for i in issues], "total": len(issues)}), 200


@bcf_bp.route("/issues/<uuid>", methods=["GET"])
@require_user
@require_project_permission(MANAGE_BCF)
def get_issue(project_id, uuid):
    issue = BcfIssue.query.filter_by(project_id=project_id, uuid=uuid).first()
    if issue is None:
        raise NotFoundError("BcfIssue", uuid)
    return jsonify(issue.to_dict(include_children=True)), 200
