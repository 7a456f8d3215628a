"""
BCF Import Service: imports every topic of a BCF archive into a project.

Features:
  - Accepts a path, raw bytes or an uploaded file object
  - One StatusMap per run, shared by every topic
  - Topics are processed sequentially in entry-name order
  - Commit after each topic; a topic that fails fatally is rolled back and
    reported while the remaining topics are still imported
  - Any other error rolls back the open topic, including stored snapshot
    files, and propagates
"""

import logging

from bimtrack.core.exceptions import BcfImportError
from bimtrack.models import db
from bimtrack.services.bcf_archive import BcfArchive
from bimtrack.services.bcf_issue_reader import reconcile
from bimtrack.services.bcf_markup import StatusMap

logger = logging.getLogger(__name__)


def import_archive(project, source, current_user, *, stop_on_error: bool = False) -> dict:
    """Import all topics of a BCF archive.

    Args:
        project: Target Project.
        source: Path, bytes or binary file object of the .bcfzip.
        current_user: User performing the import.
        stop_on_error: Re-raise the first fatal topic error instead of
                       recording it and moving on.

    Returns:
        {"status": "completed"|"partial"|"error", "total": int,
         "imported": [issue dicts], "errors": [{"entry", "error"}]}

    Raises:
        InvalidArchiveError: if ``source`` is not a zip container.
    """
    imported = []
    errors = []

    with BcfArchive(source) as archive:
        entries = archive.markup_entries()
        statuses = StatusMap.from_catalog()
        logger.info(
            "Importing %d BCF topic(s) into project %s (%d statuses mapped)",
            len(entries), project.id, len(statuses),
            extra={"project_id": project.id, "event_type": "bcf_import_started"},
        )

        for entry in entries:
            try:
                issue = reconcile(project, archive, entry, current_user, statuses=statuses)
                db.session.commit()
            except BcfImportError as exc:
                db.session.rollback()
                logger.error(
                    "BCF topic %s skipped: %s", entry.name, exc,
                    extra={"project_id": project.id, "topic_uuid": entry.topic_uuid,
                           "event_type": "bcf_topic_failed"},
                )
                if stop_on_error:
                    raise
                errors.append({"entry": entry.name, "error": str(exc)})
                continue
            except Exception:
                db.session.rollback()
                logger.exception(
                    "Unexpected error importing BCF topic %s", entry.name,
                    extra={"project_id": project.id, "topic_uuid": entry.topic_uuid,
                           "event_type": "bcf_import_aborted"},
                )
                raise
            imported.append(issue.to_dict())

    if errors and not imported:
        status = "error"
    elif errors:
        status = "partial"
    else:
        status = "completed"

    logger.info(
        "BCF import finished for project %s: %d imported, %d failed",
        project.id, len(imported), len(errors),
        extra={"project_id": project.id, "event_type": "bcf_import_finished"},
    )
    return {
        "status": status,
        "total": len(entries),
        "imported": imported,
        "errors": errors,
    }
